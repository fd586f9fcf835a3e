from __future__ import annotations

from typing import Any, Mapping

import pydantic
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr

from .errors import ValidationError


class AdjustOptions(BaseModel):
    """Changes to apply on top of a running service's spec.

    Accepts the camelCase names used on the wire (``envRemove``, ``labelRemove``)
    as well as the snake_case attribute names. Unknown keys are ignored.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    image: StrictStr | None = Field(None, description="Image reference, e.g. app:2")
    env: dict[StrictStr, StrictStr] | None = Field(None, description="Env vars to add or overwrite")
    env_remove: list[StrictStr] | None = Field(None, alias="envRemove", description="Env keys to delete")
    labels: dict[StrictStr, StrictStr] | None = Field(None, description="Container labels to add or overwrite")
    label_remove: list[StrictStr] | None = Field(None, alias="labelRemove", description="Label keys to delete")
    replicas: StrictInt | None = Field(None, ge=0)
    force: StrictBool | None = Field(None, description="Force a redeploy even if nothing changed")


def parse_options(options: AdjustOptions | Mapping[str, Any] | None) -> AdjustOptions:
    if isinstance(options, AdjustOptions):
        return options
    if options is None:
        return AdjustOptions()
    if not isinstance(options, Mapping):
        raise ValidationError(f"options must be a mapping, got {type(options).__name__}")
    try:
        return AdjustOptions.model_validate(dict(options))
    except pydantic.ValidationError as e:
        raise ValidationError(str(e)) from e


class CreateServiceRequest(BaseModel):
    spec: dict[str, Any] = Field(..., description="Engine service spec (Name, TaskTemplate, Mode, ...)")
    detach: bool = Field(False, description="Return as soon as the engine accepts the change")


class UpdateServiceRequest(BaseModel):
    spec: dict[str, Any]
    detach: bool = False


class ScaleRequest(BaseModel):
    replicas: StrictInt = Field(..., ge=0, le=1000)


class PullRequest(BaseModel):
    name: str = Field(..., description="Image reference to pull (name:tag)")
