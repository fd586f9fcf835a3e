from __future__ import annotations


class DockerServicesError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(DockerServicesError, ValueError):
    """Adjustment options had the wrong shape."""


class NotFoundError(DockerServicesError, LookupError):
    pass


class VersionConflictError(DockerServicesError):
    """The engine rejected an update made against a stale version index."""


class TaskFailureError(DockerServicesError):
    def __init__(self, task_id: str, state: str, detail: str | None = None):
        self.task_id = task_id
        self.state = state
        self.detail = detail
        super().__init__(f"{task_id} returned status {state} with {detail}")


class MonitorTimeoutError(DockerServicesError, TimeoutError):
    def __init__(self, service: str, polls: int):
        self.service = service
        self.polls = polls
        super().__init__("service timed out")
