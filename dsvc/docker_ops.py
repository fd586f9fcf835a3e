from __future__ import annotations

from typing import Any, Mapping, Protocol

import docker
from docker.errors import APIError, NotFound

from .errors import NotFoundError, VersionConflictError
from .tasks import Task


# Keys of a service spec that docker.APIClient.create_service/update_service take as kwargs.
_SPEC_KWARGS = {
    "TaskTemplate": "task_template",
    "Name": "name",
    "Labels": "labels",
    "Mode": "mode",
    "UpdateConfig": "update_config",
    "RollbackConfig": "rollback_config",
    "Networks": "networks",
    "EndpointSpec": "endpoint_spec",
}


class Orchestrator(Protocol):
    """What the service controller needs from a swarm manager."""

    def list_tasks(self, name: str) -> list[Task]: ...

    def inspect_service(self, name: str) -> dict[str, Any]: ...

    def create_service(self, spec: Mapping[str, Any], auth: Mapping[str, Any] | None = None) -> str | None: ...

    def update_service(
        self, name: str, spec: Mapping[str, Any], version: int, auth: Mapping[str, Any] | None = None
    ) -> None: ...

    def remove_service(self, name: str) -> None: ...

    def pull(self, name: str, auth: Mapping[str, Any] | None = None) -> list[dict[str, Any]]: ...

    def list_images(self) -> list[dict[str, Any]]: ...


def spec_kwargs(spec: Mapping[str, Any]) -> dict[str, Any]:
    """Map an engine service spec document onto APIClient keyword arguments.

    Keys the SDK does not take are dropped. A spec without a TaskTemplate is
    rejected by the engine, so an empty one is passed through for it to decide.
    """
    kwargs: dict[str, Any] = {"task_template": dict(spec.get("TaskTemplate") or {})}
    for key, kw in _SPEC_KWARGS.items():
        if key == "TaskTemplate":
            continue
        if spec.get(key) is not None:
            kwargs[kw] = spec[key]
    return kwargs


def _is_version_conflict(err: APIError) -> bool:
    text = str(getattr(err, "explanation", None) or err).lower()
    return "out of sequence" in text


class DockerOrchestrator:
    """Orchestrator backed by the local (or DOCKER_HOST) engine in swarm mode."""

    def __init__(self, client: docker.DockerClient | None = None):
        self._client = client
        self._logged_in: set[str] = set()

    @property
    def api(self) -> docker.APIClient:
        if self._client is None:
            self._client = docker.from_env()
        return self._client.api

    def _login(self, auth: Mapping[str, Any] | None) -> None:
        # create/update resolve registry credentials from the client's auth configs.
        if not auth or not auth.get("username"):
            return
        registry = auth.get("serveraddress")
        key = f"{auth['username']}@{registry or ''}"
        if key in self._logged_in:
            return
        self.api.login(username=auth["username"], password=auth.get("password"), registry=registry)
        self._logged_in.add(key)

    def list_tasks(self, name: str) -> list[Task]:
        docs = self.api.tasks(filters={"service": name})
        return [Task.from_api(d) for d in docs]

    def inspect_service(self, name: str) -> dict[str, Any]:
        try:
            return self.api.inspect_service(name)
        except NotFound as e:
            raise NotFoundError(f"Service '{name}' not found.") from e

    def create_service(self, spec: Mapping[str, Any], auth: Mapping[str, Any] | None = None) -> str | None:
        self._login(auth)
        resp = self.api.create_service(**spec_kwargs(spec))
        return (resp or {}).get("ID")

    def update_service(
        self, name: str, spec: Mapping[str, Any], version: int, auth: Mapping[str, Any] | None = None
    ) -> None:
        self._login(auth)
        try:
            self.api.update_service(name, version, **spec_kwargs(spec))
        except NotFound as e:
            raise NotFoundError(f"Service '{name}' not found.") from e
        except APIError as e:
            if _is_version_conflict(e):
                raise VersionConflictError(f"Service '{name}' changed since version {version}: {e}") from e
            raise

    def remove_service(self, name: str) -> None:
        try:
            self.api.remove_service(name)
        except NotFound as e:
            raise NotFoundError(f"Service '{name}' not found.") from e

    def pull(self, name: str, auth: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        stream = self.api.pull(name, auth_config=dict(auth) if auth else None, stream=True, decode=True)
        return list(stream)

    def list_images(self) -> list[dict[str, Any]]:
        return self.api.images()
