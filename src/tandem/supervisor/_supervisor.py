"""Main supervisor coordinator for managing the unit's services.

This module provides the Supervisor class that coordinates ServiceManagers
using anyio for structured concurrency: one monitoring task per child.
"""

from collections.abc import Sequence  # noqa: TC003 - Used in runtime type annotations
from types import TracebackType  # noqa: TC003 - Used in runtime type annotations
from typing import TYPE_CHECKING, Self, final

import anyio
import anyio.abc

from tandem.exceptions import (
    DuplicateServiceError,
    ServiceNotFoundError,
    ServiceStopError,
    SupervisorError,
)

from ._backoff import ConstantBackoff
from ._launcher import SubprocessLauncher
from ._models import ServiceSpec, ServiceStatus
from ._output import ConcatenatedOutputSink
from ._service import ServiceManager

if TYPE_CHECKING:
    from ._protocol import OutputSink, ProcessLauncher


@final
class Supervisor:
    """Coordinates the unit's subprocess services.

    Used as an async context manager that owns the task group in which
    every service's monitoring task runs. Leaving the context stops all
    services in reverse start order.

    Example:
        >>> async with Supervisor() as supervisor:
        ...     await supervisor.start(specs)
        ...     await shutdown_requested.wait()
    """

    __slots__ = (
        "_backoff",
        "_launcher",
        "_output_sink",
        "_services",
        "_task_group",
    )

    def __init__(
        self,
        launcher: "ProcessLauncher | None" = None,  # noqa: UP037
        output_sink: "OutputSink | None" = None,  # noqa: UP037
        backoff: ConstantBackoff | None = None,
    ) -> None:
        """Initialize the supervisor.

        Args:
            launcher: Spawns service processes. Uses SubprocessLauncher if None.
            output_sink: Sink for service output. Uses ConcatenatedOutputSink if None.
            backoff: Restart delay shared by all services. Defaults to 1s.
        """
        self._launcher: ProcessLauncher = launcher or SubprocessLauncher()
        self._output_sink: OutputSink = output_sink or ConcatenatedOutputSink()
        self._backoff = backoff or ConstantBackoff()
        # Insertion order is start order
        self._services: dict[str, ServiceManager] = {}
        self._task_group: anyio.abc.TaskGroup | None = None

    async def __aenter__(self) -> Self:
        task_group = anyio.create_task_group()
        _ = await task_group.__aenter__()
        self._task_group = task_group
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool | None:
        task_group = self._task_group
        if task_group is None:
            return None

        try:
            with anyio.CancelScope(shield=True):
                await self.stop_all()
        finally:
            self._task_group = None
            task_group.cancel_scope.cancel()
            suppress = await task_group.__aexit__(exc_type, exc_val, exc_tb)

        return suppress

    @property
    def services(self) -> dict[str, ServiceManager]:
        """Return the managed services, in start order."""
        return self._services

    def get_service(self, name: str) -> ServiceManager:
        """Get a service by name.

        Args:
            name: The service name.

        Returns:
            The ServiceManager for the named service.

        Raises:
            ServiceNotFoundError: If no service exists with that name.
        """
        service = self._services.get(name)
        if service is None:
            msg = f"Service '{name}' not found"
            raise ServiceNotFoundError(msg, service_name=name)
        return service

    def _register(self, specs: Sequence[ServiceSpec]) -> list[ServiceManager]:
        """Create one ServiceManager per spec, rejecting duplicate names."""
        seen: set[str] = set(self._services)
        for spec in specs:
            if spec.name in seen:
                msg = f"Service '{spec.name}' is declared more than once"
                raise DuplicateServiceError(msg, service_name=spec.name)
            seen.add(spec.name)

        managers = [
            ServiceManager(spec, self._launcher, self._output_sink, self._backoff)
            for spec in specs
        ]
        for manager in managers:
            self._services[manager.name] = manager
        return managers

    async def start(self, specs: Sequence[ServiceSpec]) -> None:
        """Launch services in the given order.

        Each launch returns as soon as the process has been spawned; no
        service waits for another to become ready.

        Args:
            specs: Services to launch, in start order.

        Raises:
            SupervisorError: If called outside the supervisor's context.
            DuplicateServiceError: If a service name is declared twice.
        """
        if self._task_group is None:
            msg = "Supervisor is not running; use 'async with Supervisor()'"
            raise SupervisorError(msg)

        for manager in self._register(specs):
            await self._task_group.start(manager.supervise)

    async def stop(self, name: str, graceful_timeout: float | None = None) -> None:
        """Stop a specific service.

        Args:
            name: The service name.
            graceful_timeout: Seconds to wait for graceful shutdown.

        Raises:
            ServiceNotFoundError: If no service exists with that name.
            ServiceStopError: If the service fails to stop.
        """
        await self.get_service(name).stop(graceful_timeout)

    async def stop_all(self) -> None:
        """Stop all services in reverse start order.

        Every service is stopped even if an earlier one fails to stop.

        Raises:
            ServiceStopError: The first stop failure, after all services
                have been handled.
        """
        errors: list[ServiceStopError] = []
        for service in reversed(list(self._services.values())):
            try:
                await service.stop()
            except ServiceStopError as e:
                errors.append(e)

        if errors:
            raise errors[0]

    def status(self, name: str) -> ServiceStatus:
        """Return the runtime status of a service.

        Raises:
            ServiceNotFoundError: If no service exists with that name.
        """
        return self.get_service(name).status

    def statuses(self) -> list[ServiceStatus]:
        """Return the runtime status of every service, in start order."""
        return [service.status for service in self._services.values()]

