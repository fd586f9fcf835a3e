from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Iterable

from .errors import MonitorTimeoutError, TaskFailureError
from .runtime import MonitorResult, MonitorSession, MonitorState
from .tasks import Task, TaskBucket, settled_ids

Listener = Callable[[str, dict[str, Any]], None]
TaskFetcher = Callable[[str], Awaitable[list[Task]]]
Sleeper = Callable[[float], Awaitable[Any]]


def null_listener(category: str, data: dict[str, Any]) -> None:
    return None


class ConvergenceMonitor:
    """Polls a service's tasks until a rollout converges, fails or times out.

    Only tasks whose id is not in the baseline set are looked at: the baseline
    is either passed in by the caller (ids known before the change) or taken
    from the first snapshot, keeping tasks already past new/pending.

    Per poll:
      - any new task failed/rejected -> TaskFailureError, no retry
      - any new task running -> the rollout counts as running
      - no new task at all -> monitoring stops with state UNCHANGED
    After ``max_wait_times`` polls without a running task it raises
    MonitorTimeoutError. With ``monitor=True`` it keeps polling for
    ``monitor_count`` extra cycles once running, so a task that crashes right
    after starting is still reported as a failure.
    """

    def __init__(
        self,
        fetch_tasks: TaskFetcher,
        wait_delay_ms: int = 2000,
        monitor_count: int = 1,
        max_wait_times: int = 30,
        listener: Listener | None = None,
        sleep: Sleeper | None = None,
    ):
        self.fetch_tasks = fetch_tasks
        self.wait_delay_ms = max(0, int(wait_delay_ms))
        self.monitor_count = max(0, int(monitor_count))
        self.max_wait_times = max(0, int(max_wait_times))
        self.listener = listener or null_listener
        self._sleep_fn = sleep or asyncio.sleep

    def emit(self, category: str, data: dict[str, Any]) -> None:
        try:
            self.listener(category, data)
        except Exception:  # noqa: BLE001, S110
            pass

    async def _wait(self) -> None:
        await self._sleep_fn(self.wait_delay_ms / 1000.0)

    async def run(self, name: str, monitor: bool = False, baseline: Iterable[str] | None = None) -> MonitorResult:
        if baseline is None:
            baseline_ids = settled_ids(await self.fetch_tasks(name))
        else:
            baseline_ids = frozenset(baseline)

        session = MonitorSession(service=name, baseline=baseline_ids, settling=bool(monitor))
        self.emit(
            "debug",
            {
                "message": f"Starting monitoring for {name}",
                "taskName": name,
                "monitorCount": self.monitor_count,
                "waitDelay": self.wait_delay_ms,
                "maxWaitTimes": self.max_wait_times,
                "baseline": len(baseline_ids),
            },
        )
        session.state = MonitorState.OBSERVING

        # Give the scheduler a chance to create the new tasks before the first look.
        await self._wait()
        while True:
            result = await self._poll(session)
            if result is not None:
                return result
            await self._wait()

    async def _poll(self, session: MonitorSession) -> MonitorResult | None:
        """Run one poll cycle. Returns a result once the session is terminal."""
        name = session.service
        tasks = await self.fetch_tasks(name)
        new_tasks = [t for t in tasks if t.id not in session.baseline]

        if not new_tasks:
            self.emit(
                "debug",
                {
                    "message": "No tasks found during check.",
                    "taskName": name,
                    "existingTasks": len(session.baseline),
                    "tasks": len(tasks),
                },
            )
            return session.finish(MonitorState.UNCHANGED)

        for task in new_tasks:
            session.new_task_ids.add(task.id)
            self.emit(
                "debug",
                {
                    "message": "Check Task",
                    "taskName": name,
                    "id": task.id,
                    "status": task.state,
                    "checkCount": session.polls,
                    "monitorCount": session.settle_polls,
                },
            )
            bucket = task.bucket
            if bucket is TaskBucket.FAILURE:
                session.finish(MonitorState.FAILED)
                self.emit(
                    "error",
                    {"message": "Task failed", "taskName": name, "id": task.id, "status": task.state, "error": task.error},
                )
                raise TaskFailureError(task.id, task.state, task.error)
            if bucket is TaskBucket.RUNNING:
                if not session.task_running:
                    self.emit("debug", {"message": "Task Running!", "taskName": name, "id": task.id})
                session.task_running = True

        session.polls += 1

        if session.polls > self.max_wait_times and not session.task_running:
            session.finish(MonitorState.TIMED_OUT)
            self.emit("error", {"message": "Service timed out", "taskName": name, "checkCount": session.polls})
            raise MonitorTimeoutError(name, session.polls)

        if not session.task_running:
            return None

        if not session.settling:
            self.emit("debug", {"message": "Done monitoring tasks.", "taskName": name, "checkCount": session.polls})
            return session.finish(MonitorState.CONVERGED)

        session.settle_polls += 1
        if session.settle_polls >= self.monitor_count:
            # One more poll must still see the task running before converging.
            session.settling = False
            session.state = MonitorState.RUNNING_UNCONFIRMED
        else:
            session.state = MonitorState.RUNNING_SETTLING
        return None
