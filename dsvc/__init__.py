"""Docker services controller (dsvc).

Creates, updates, scales and removes Docker Swarm services and watches each
rollout until the new tasks are running, have failed, or time out:
 - pure spec merging for image / env / label / replica / force changes
 - a convergence monitor that only looks at tasks spawned by the change
 - an async controller, an HTTP API (main.py) and a CLI (cli.py)
"""
from __future__ import annotations

from .api_models import AdjustOptions
from .errors import (
    DockerServicesError,
    MonitorTimeoutError,
    NotFoundError,
    TaskFailureError,
    ValidationError,
    VersionConflictError,
)
from .monitor import ConvergenceMonitor
from .runtime import MonitorResult, MonitorState, ServiceOperation
from .services import ServiceController
from .spec_merge import merge_spec
from .tasks import Task

__all__ = [
    "AdjustOptions",
    "ConvergenceMonitor",
    "DockerServicesError",
    "MonitorResult",
    "MonitorState",
    "MonitorTimeoutError",
    "NotFoundError",
    "ServiceController",
    "ServiceOperation",
    "Task",
    "TaskFailureError",
    "ValidationError",
    "VersionConflictError",
    "merge_spec",
]
