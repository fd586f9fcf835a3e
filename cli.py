from __future__ import annotations

import argparse
import json
import sys
from typing import Any

import requests


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _pairs(values: list[str] | None) -> dict[str, str]:
    out: dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep:
            raise SystemExit(f"expected KEY=VALUE, got {item!r}")
        out[key] = value
    return out


def _load_spec(path: str) -> dict[str, Any]:
    if path == "-":
        return json.load(sys.stdin)
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def adjust_payload(args: argparse.Namespace) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if args.image:
        payload["image"] = args.image
    if args.env:
        payload["env"] = _pairs(args.env)
    if args.env_remove:
        payload["envRemove"] = args.env_remove
    if args.label:
        payload["labels"] = _pairs(args.label)
    if args.label_remove:
        payload["labelRemove"] = args.label_remove
    if args.replicas is not None:
        payload["replicas"] = args.replicas
    if args.force:
        payload["force"] = True
    return payload


def _show(r: requests.Response) -> int:
    try:
        _print(r.json())
    except ValueError:
        print(r.text)
    return 0 if r.ok else 1


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Docker services controller CLI")
    p.add_argument("--api", default="http://localhost:8000", help="API base URL")
    p.add_argument("--timeout", type=float, default=300, help="Seconds to wait for the API (rollouts can be slow)")
    sub = p.add_subparsers(dest="cmd", required=True)

    for cmd, help_text in (
        ("get", "Inspect a service"),
        ("exists", "Check whether a service exists"),
        ("tasks", "List a service's tasks"),
        ("remove", "Remove a service"),
    ):
        sp = sub.add_parser(cmd, help=help_text)
        sp.add_argument("name")

    s_create = sub.add_parser("create", help="Create a service from a JSON spec file ('-' for stdin)")
    s_create.add_argument("spec")
    s_create.add_argument("--detach", action="store_true", help="Do not wait for the rollout")

    s_update = sub.add_parser("update", help="Replace a service's spec from a JSON spec file")
    s_update.add_argument("spec")
    s_update.add_argument("--name", help="Service name (defaults to the spec's Name)")
    s_update.add_argument("--detach", action="store_true")

    s_adj = sub.add_parser("adjust", help="Change parts of a running service")
    s_adj.add_argument("name")
    s_adj.add_argument("--image")
    s_adj.add_argument("--env", action="append", metavar="KEY=VALUE")
    s_adj.add_argument("--env-remove", action="append", metavar="KEY")
    s_adj.add_argument("--label", action="append", metavar="KEY=VALUE")
    s_adj.add_argument("--label-remove", action="append", metavar="KEY")
    s_adj.add_argument("--replicas", type=int)
    s_adj.add_argument("--force", action="store_true", help="Redeploy even if nothing changed")

    s_scale = sub.add_parser("scale", help="Set the replica count")
    s_scale.add_argument("name")
    s_scale.add_argument("replicas", type=int)

    sub.add_parser("images", help="List local images")

    s_pull = sub.add_parser("pull", help="Pull an image")
    s_pull.add_argument("image")

    s_ev = sub.add_parser("events", help="Show recorded events")
    s_ev.add_argument("--limit", type=int, default=20)
    s_ev.add_argument("--service")

    args = p.parse_args(argv)

    base = args.api.rstrip("/")
    t = args.timeout

    if args.cmd == "get":
        return _show(requests.get(f"{base}/services/{args.name}", timeout=t))

    if args.cmd == "exists":
        r = requests.get(f"{base}/services/{args.name}/exists", timeout=t)
        _print(r.json())
        return 0 if r.ok and r.json().get("exists") else 1

    if args.cmd == "tasks":
        return _show(requests.get(f"{base}/services/{args.name}/tasks", timeout=t))

    if args.cmd == "remove":
        return _show(requests.delete(f"{base}/services/{args.name}", timeout=t))

    if args.cmd == "create":
        payload = {"spec": _load_spec(args.spec), "detach": args.detach}
        return _show(requests.post(f"{base}/services", json=payload, timeout=t))

    if args.cmd == "update":
        spec = _load_spec(args.spec)
        name = args.name or spec.get("Name")
        if not name:
            p.error("update needs --name or a spec with Name")
        payload = {"spec": spec, "detach": args.detach}
        return _show(requests.put(f"{base}/services/{name}", json=payload, timeout=t))

    if args.cmd == "adjust":
        return _show(requests.post(f"{base}/services/{args.name}/adjust", json=adjust_payload(args), timeout=t))

    if args.cmd == "scale":
        payload = {"replicas": args.replicas}
        return _show(requests.post(f"{base}/services/{args.name}/scale", json=payload, timeout=t))

    if args.cmd == "images":
        return _show(requests.get(f"{base}/images", timeout=t))

    if args.cmd == "pull":
        return _show(requests.post(f"{base}/images/pull", json={"name": args.image}, timeout=t))

    if args.cmd == "events":
        params: dict[str, Any] = {"limit": args.limit}
        if args.service:
            params["service"] = args.service
        return _show(requests.get(f"{base}/events", params=params, timeout=t))

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
