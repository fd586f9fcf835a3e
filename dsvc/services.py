from __future__ import annotations

import asyncio
from typing import Any, Mapping

from docker.errors import DockerException

from .api_models import AdjustOptions, parse_options
from .docker_ops import DockerOrchestrator, Orchestrator
from .errors import DockerServicesError, NotFoundError
from .monitor import ConvergenceMonitor, Listener, Sleeper, null_listener
from .runtime import MonitorResult, ServiceOperation
from .settings import registry_auth, settings
from .spec_merge import merge_spec
from .tasks import Task


class ServiceController:
    """Creates, updates, scales and removes swarm services.

    create/update/adjust wait for the rollout to converge unless ``detach`` is
    set; failures of the new tasks and timeouts are raised to the caller.
    Timing arguments are in milliseconds and default to the DSVC_* settings.
    """

    def __init__(
        self,
        client: Orchestrator | None = None,
        auth: Mapping[str, Any] | None = None,
        wait_delay: int | None = None,
        monitor_for: int | None = None,
        wait_time: int | None = None,
        listener: Listener | None = None,
        sleep: Sleeper | None = None,
    ):
        self.client: Orchestrator = client or DockerOrchestrator()
        self.auth = auth if auth is not None else registry_auth()
        self.wait_delay = max(1, int(settings.wait_delay_ms if wait_delay is None else wait_delay))
        self.monitor_for = int(settings.monitor_for_ms if monitor_for is None else monitor_for)
        wait_time = int(settings.wait_time_ms if wait_time is None else wait_time)
        self.monitor_count = self.monitor_for // self.wait_delay
        self.max_wait_times = wait_time // self.wait_delay
        self.listener = listener or null_listener
        self.monitor = ConvergenceMonitor(
            self.get_tasks,
            wait_delay_ms=self.wait_delay,
            monitor_count=self.monitor_count,
            max_wait_times=self.max_wait_times,
            listener=self.listener,
            sleep=sleep,
        )

    def emit(self, category: str, data: dict[str, Any]) -> None:
        self.monitor.emit(category, data)

    async def _call(self, fn, *args):
        # docker-py is blocking; keep the event loop free while it talks to the engine.
        return await asyncio.to_thread(fn, *args)

    async def pull(self, name: str) -> list[dict[str, Any]]:
        return await self._call(self.client.pull, name, self.auth)

    async def list(self) -> list[dict[str, Any]]:
        return await self._call(self.client.list_images)

    async def get(self, name: str) -> dict[str, Any]:
        return await self._call(self.client.inspect_service, name)

    async def exists(self, name: str) -> bool:
        try:
            await self.get(name)
            return True
        except (NotFoundError, DockerException):
            return False

    async def get_tasks(self, name: str) -> list[Task]:
        return await self._call(self.client.list_tasks, name)

    async def wait_until_running(
        self, name: str, monitor: bool = False, baseline: set[str] | frozenset[str] | None = None
    ) -> MonitorResult:
        return await self.monitor.run(name, monitor=monitor, baseline=baseline)

    async def create(self, spec: Mapping[str, Any], detach: bool = False) -> ServiceOperation:
        spec = dict(spec)
        name = spec.get("Name")
        if not name:
            raise DockerServicesError("Service spec needs a Name.")
        service_id = await self._call(self.client.create_service, spec, self.auth)
        self.emit("info", {"message": f"Created service {name}", "taskName": name, "serviceId": service_id})
        result = None
        if not detach:
            # A brand-new service has no earlier tasks; every task is new.
            result = await self.wait_until_running(name, monitor=True, baseline=frozenset())
        return ServiceOperation(service=name, spec=spec, service_id=service_id, monitor=result)

    async def update(self, spec: Mapping[str, Any], detach: bool = False) -> ServiceOperation:
        spec = dict(spec)
        name = spec.get("Name")
        if not name:
            raise DockerServicesError("Service spec needs a Name.")
        existing, current = await asyncio.gather(self.get_tasks(name), self.get(name))
        version = current["Version"]["Index"]
        await self._call(self.client.update_service, name, spec, version, self.auth)
        self.emit("info", {"message": f"Updated service {name}", "taskName": name, "version": version})
        result = None
        if not detach:
            result = await self.wait_until_running(name, monitor=True, baseline=frozenset(t.id for t in existing))
        return ServiceOperation(service=name, spec=spec, service_id=current.get("ID"), monitor=result)

    async def adjust(self, name: str, options: AdjustOptions | Mapping[str, Any] | None) -> ServiceOperation:
        opts = parse_options(options)
        existing, current = await asyncio.gather(self.get_tasks(name), self.get(name))
        version = current["Version"]["Index"]
        new_spec = merge_spec(current["Spec"], opts)
        await self._call(self.client.update_service, name, new_spec, version, self.auth)
        self.emit(
            "info",
            {
                "message": f"Adjusted service {name}",
                "taskName": name,
                "version": version,
                "options": opts.model_dump(exclude_none=True, by_alias=True),
            },
        )
        result = await self.wait_until_running(name, monitor=True, baseline=frozenset(t.id for t in existing))
        return ServiceOperation(service=name, spec=new_spec, service_id=current.get("ID"), monitor=result)

    async def scale(self, name: str, replicas: int) -> ServiceOperation:
        return await self.adjust(name, {"replicas": replicas})

    async def remove(self, name: str) -> None:
        await self._call(self.client.remove_service, name)
        self.emit("info", {"message": f"Removed service {name}", "taskName": name})
