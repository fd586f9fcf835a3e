from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class MonitorState(str, Enum):
    INIT = "init"
    OBSERVING = "observing"
    RUNNING_UNCONFIRMED = "running_unconfirmed"
    RUNNING_SETTLING = "running_settling"
    CONVERGED = "converged"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    UNCHANGED = "unchanged"  # a poll found no new tasks and monitoring stopped

    @property
    def terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {MonitorState.CONVERGED, MonitorState.FAILED, MonitorState.TIMED_OUT, MonitorState.UNCHANGED}
)


@dataclass
class MonitorSession:
    """Mutable bookkeeping for one monitoring run. Discarded once terminal."""

    service: str
    baseline: frozenset[str]
    settling: bool
    state: MonitorState = MonitorState.INIT
    polls: int = 0
    task_running: bool = False
    settle_polls: int = 0
    new_task_ids: set[str] = field(default_factory=set)
    started_at: str = field(default_factory=utc_now)

    def finish(self, state: MonitorState) -> "MonitorResult":
        self.state = state
        return MonitorResult(
            service=self.service,
            state=state,
            polls=self.polls,
            new_task_ids=frozenset(self.new_task_ids),
            started_at=self.started_at,
        )


@dataclass(frozen=True)
class MonitorResult:
    service: str
    state: MonitorState
    polls: int
    new_task_ids: frozenset[str]
    started_at: str
    finished_at: str = field(default_factory=utc_now)

    @property
    def converged(self) -> bool:
        return self.state == MonitorState.CONVERGED

    def as_dict(self) -> dict[str, Any]:
        return {
            "service": self.service,
            "state": self.state.value,
            "polls": self.polls,
            "new_task_ids": sorted(self.new_task_ids),
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }


@dataclass(frozen=True)
class ServiceOperation:
    """What create/update/adjust hand back to the caller."""

    service: str
    spec: dict[str, Any]
    service_id: str | None = None
    monitor: MonitorResult | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "service": self.service,
            "service_id": self.service_id,
            "spec": self.spec,
            "monitor": self.monitor.as_dict() if self.monitor else None,
        }
