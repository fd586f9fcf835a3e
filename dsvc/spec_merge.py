from __future__ import annotations

import copy
from typing import Any, Iterable, Mapping

from .api_models import AdjustOptions, parse_options


def env_to_dict(env: Iterable[str]) -> dict[str, str]:
    """Turn ``["KEY=VALUE", ...]`` into a mapping. Entries without '=' map to ''."""
    out: dict[str, str] = {}
    for item in env:
        key, _, value = item.partition("=")
        out[key] = value
    return out


def dict_to_env(values: Mapping[str, Any]) -> list[str]:
    # Sorted so the same inputs always produce the same list.
    return [f"{k}={v}" for k, v in sorted(values.items())]


def strip_digest(image: str) -> str:
    return image.split("@", 1)[0]


def _overlay(base: Mapping[str, Any], add: Mapping[str, Any] | None, remove: Iterable[str] | None) -> dict[str, Any]:
    merged = dict(base)
    if add:
        merged.update(add)
    for key in remove or ():
        merged.pop(key, None)
    return merged


def _container(spec: dict[str, Any]) -> dict[str, Any]:
    return spec.setdefault("TaskTemplate", {}).setdefault("ContainerSpec", {})


def merge_spec(spec: Mapping[str, Any], options: AdjustOptions | Mapping[str, Any] | None) -> dict[str, Any]:
    """Apply adjustment options to a service spec and return the new spec.

    The input is deep-copied and never modified. Options are validated before
    anything else happens (``ValidationError`` on a wrong shape).

    Rules, each applied only when the option is present:
      - image replaces the container image
      - env / envRemove overlay and prune the container env (sorted KEY=VALUE)
      - labels / labelRemove overlay and prune the container labels
      - replicas sets Mode.Replicated.Replicas
      - force bumps TaskTemplate.ForceUpdate and drops any @digest from the image
    """
    opts = parse_options(options)
    new = copy.deepcopy(dict(spec))

    if opts.image is not None:
        _container(new)["Image"] = opts.image

    if opts.env is not None or opts.env_remove is not None:
        container = _container(new)
        current = env_to_dict(container.get("Env") or [])
        container["Env"] = dict_to_env(_overlay(current, opts.env, opts.env_remove))

    if opts.labels is not None or opts.label_remove is not None:
        container = _container(new)
        container["Labels"] = _overlay(container.get("Labels") or {}, opts.labels, opts.label_remove)

    if opts.replicas is not None:
        replicated = new.setdefault("Mode", {}).setdefault("Replicated", {})
        replicated["Replicas"] = opts.replicas

    if opts.force:
        container = _container(new)
        template = new["TaskTemplate"]
        template["ForceUpdate"] = int(template.get("ForceUpdate") or 0) + 1
        if container.get("Image"):
            container["Image"] = strip_digest(container["Image"])

    return new
