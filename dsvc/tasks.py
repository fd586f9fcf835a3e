from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping


UNSETTLED_STATES = frozenset({"new", "pending"})
FAILURE_STATES = frozenset({"failed", "rejected"})
RUNNING_STATE = "running"


class TaskBucket(str, Enum):
    UNSETTLED = "unsettled"
    RUNNING = "running"
    FAILURE = "failure"
    OTHER = "other"  # assigned, preparing, complete, shutdown, ...


@dataclass(frozen=True)
class Task:
    """One task snapshot as reported by the engine's /tasks endpoint."""

    id: str
    state: str
    error: str | None = None
    service_id: str | None = None
    slot: int | None = None

    @classmethod
    def from_api(cls, doc: Mapping[str, Any]) -> "Task":
        status = doc.get("Status") or {}
        return cls(
            id=str(doc["ID"]),
            state=str(status.get("State", "new")).lower(),
            error=status.get("Err") or None,
            service_id=doc.get("ServiceID"),
            slot=doc.get("Slot"),
        )

    @property
    def bucket(self) -> TaskBucket:
        return classify(self.state)

    @property
    def settled(self) -> bool:
        return self.state not in UNSETTLED_STATES


def classify(state: str) -> TaskBucket:
    if state in UNSETTLED_STATES:
        return TaskBucket.UNSETTLED
    if state == RUNNING_STATE:
        return TaskBucket.RUNNING
    if state in FAILURE_STATES:
        return TaskBucket.FAILURE
    return TaskBucket.OTHER


def settled_ids(tasks: Iterable[Task]) -> frozenset[str]:
    """Ids of tasks that are past new/pending; used as a monitoring baseline."""
    return frozenset(t.id for t in tasks if t.settled)
