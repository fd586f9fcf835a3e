import copy
import os
import sys

import pytest

# Ensure project root is importable (so `import main` / `import cli` work without installing)
_project_root = os.path.dirname(os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from dsvc.errors import NotFoundError, VersionConflictError  # noqa: E402
from dsvc.tasks import Task  # noqa: E402


def snapshot(*entries):
    """Build a task snapshot from (id, state) or (id, state, err) tuples."""
    out = []
    for e in entries:
        tid, state = e[0], e[1]
        err = e[2] if len(e) > 2 else None
        out.append(Task(id=tid, state=state, error=err))
    return out


class TaskScript:
    """Hands out scripted snapshots in order; the last one repeats forever."""

    def __init__(self, *snapshots):
        self.snapshots = list(snapshots)
        self.calls = 0

    async def __call__(self, name):
        self.calls += 1
        if len(self.snapshots) > 1:
            return self.snapshots.pop(0)
        return self.snapshots[0] if self.snapshots else []


def _normalize(spec):
    # What the engine fills in when a field is left out.
    spec = copy.deepcopy(spec)
    spec.setdefault("Labels", {})
    template = spec.setdefault("TaskTemplate", {})
    template.setdefault("ForceUpdate", 0)
    spec.setdefault("Mode", {"Replicated": {"Replicas": 1}})
    return spec


class FakeSwarm:
    """In-memory stand-in for a swarm manager."""

    def __init__(self):
        self.services = {}
        self.scripts = {}
        self.calls = []
        self.images = [{"Id": "sha256:abc", "RepoTags": ["app:1"]}]

    def script(self, name, *snapshots):
        self.scripts[name] = list(snapshots)

    def list_tasks(self, name):
        self.calls.append(("list_tasks", name))
        script = self.scripts.get(name)
        if not script:
            return []
        if len(script) > 1:
            return script.pop(0)
        return script[0]

    def inspect_service(self, name):
        self.calls.append(("inspect_service", name))
        if name not in self.services:
            raise NotFoundError(f"Service '{name}' not found.")
        return copy.deepcopy(self.services[name])

    def create_service(self, spec, auth=None):
        self.calls.append(("create_service", spec["Name"]))
        sid = f"id-{spec['Name']}"
        self.services[spec["Name"]] = {"ID": sid, "Version": {"Index": 10}, "Spec": _normalize(spec)}
        return sid

    def update_service(self, name, spec, version, auth=None):
        self.calls.append(("update_service", name, version))
        if name not in self.services:
            raise NotFoundError(f"Service '{name}' not found.")
        current = self.services[name]
        if version != current["Version"]["Index"]:
            raise VersionConflictError(f"Service '{name}' changed since version {version}")
        current["Spec"] = _normalize(spec)
        current["Version"]["Index"] += 1

    def remove_service(self, name):
        self.calls.append(("remove_service", name))
        if name not in self.services:
            raise NotFoundError(f"Service '{name}' not found.")
        del self.services[name]

    def pull(self, name, auth=None):
        self.calls.append(("pull", name))
        return [{"status": f"Pulling from {name}"}, {"status": "Download complete"}]

    def list_images(self):
        return list(self.images)

    def network_calls(self):
        return [c for c in self.calls if c[0] != "list_tasks"]


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def no_sleep(sleeps):
    async def _sleep(seconds):
        sleeps.append(seconds)

    return _sleep


@pytest.fixture
def swarm():
    return FakeSwarm()


@pytest.fixture
def events():
    return []


@pytest.fixture
def controller(swarm, no_sleep, events):
    from dsvc.services import ServiceController

    return ServiceController(
        client=swarm,
        auth={},
        wait_delay=10,
        monitor_for=10,
        wait_time=50,
        listener=lambda category, data: events.append((category, data)),
        sleep=no_sleep,
    )
