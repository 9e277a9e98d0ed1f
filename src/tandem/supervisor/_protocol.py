"""Protocol definitions for the supervisor system.

This module defines the interfaces that decouple the supervisor core from
the operating system and from output handling:
- OutputSink: Protocol for consuming service output and events
- ManagedProcess: Protocol for a running child process group
- ProcessLauncher: Protocol for spawning a service's process
"""

from typing import TYPE_CHECKING, Literal, Protocol, runtime_checkable

if TYPE_CHECKING:
    from anyio.abc import ByteReceiveStream

    from ._models import ServiceEvent, ServiceSpec


@runtime_checkable
class OutputSink(Protocol):
    """Protocol for consuming service output lines.

    OutputSinks receive output from managed services and can format,
    store, or display it. The protocol is async to support non-blocking
    I/O operations like writing to files.

    Implementations must handle:
    - Service output lines (stdout/stderr)
    - Service lifecycle events
    """

    async def write_line(
        self,
        service_name: str,
        pid: int,
        stream: Literal["stdout", "stderr"],
        line: str,
    ) -> None:
        """Write a line of service output.

        Args:
            service_name: Name of the service that produced the output.
            pid: Process ID of the service.
            stream: Which output stream the line came from.
            line: The output line (without trailing newline).
        """
        ...

    async def write_event(
        self,
        service_name: str,
        event: "ServiceEvent",  # noqa: UP037
    ) -> None:
        """Write a service lifecycle event.

        Args:
            service_name: Name of the service that generated the event.
            event: The lifecycle event to record.
        """
        ...


@runtime_checkable
class ManagedProcess(Protocol):
    """Protocol for a launched service process.

    Signals are delivered to the whole process group the service leads,
    so helpers spawned by the service are terminated with it.
    """

    @property
    def pid(self) -> int:
        """Return the process ID of the group leader."""
        ...

    @property
    def returncode(self) -> int | None:
        """Return the exit code, or None while the process is running."""
        ...

    @property
    def stdout(self) -> "ByteReceiveStream | None":  # noqa: UP037
        """Return the stdout stream, if captured."""
        ...

    @property
    def stderr(self) -> "ByteReceiveStream | None":  # noqa: UP037
        """Return the stderr stream, if captured."""
        ...

    async def wait(self) -> int:
        """Wait until the process exits and return its exit code."""
        ...

    def terminate(self) -> None:
        """Ask the process group to shut down gracefully (SIGTERM)."""
        ...

    def kill(self) -> None:
        """Force the process group to terminate (SIGKILL)."""
        ...

    async def aclose(self) -> None:
        """Release the process's stream resources after it has exited."""
        ...


@runtime_checkable
class ProcessLauncher(Protocol):
    """Protocol for spawning service processes."""

    async def launch(self, spec: "ServiceSpec") -> ManagedProcess:  # noqa: UP037
        """Spawn the process described by a service spec.

        Args:
            spec: The service to launch.

        Returns:
            A handle to the running process.

        Raises:
            OSError: If the process cannot be spawned.
        """
        ...
