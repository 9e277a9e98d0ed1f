"""Service manager for subprocess lifecycle management.

This module provides the ServiceManager class that handles spawning,
monitoring, restarting and stopping a single service's process group.
"""

from typing import TYPE_CHECKING, Literal, final

import anyio
import anyio.abc
from anyio.streams.text import TextReceiveStream

from tandem.exceptions import ServiceStartError, ServiceStopError
from tandem.utils import get_timestamp

from ._backoff import ConstantBackoff
from ._models import (
    RestartPolicy,
    ServiceEvent,
    ServiceEventType,
    ServiceSpec,
    ServiceState,
    ServiceStatus,
)

if TYPE_CHECKING:
    from ._protocol import ManagedProcess, OutputSink, ProcessLauncher

# Bound on how long trailing output is drained after the process exits.
# A grandchild that inherited the pipes can keep them open indefinitely.
OUTPUT_DRAIN_TIMEOUT = 2.0

# Longest partial line carried between chunks; longer output is flushed as is
MAX_PENDING_CHARS = 64 * 1024


@final
class ServiceManager:
    """Manages the lifecycle of one service's process group.

    Launches the process, streams stdout/stderr to an OutputSink, applies
    the restart policy when the process exits, and stops it on request.
    Every state transition happens under a per-service lock, so at most
    one transition is in flight for a given service.

    Attributes:
        spec: Immutable definition of this service.
        status: Mutable runtime status tracking.
    """

    __slots__ = (
        "_backoff",
        "_launcher",
        "_lock",
        "_output_sink",
        "_process",
        "_stop_event",
        "_stop_requested",
        "spec",
        "status",
    )

    def __init__(
        self,
        spec: ServiceSpec,
        launcher: "ProcessLauncher",  # noqa: UP037
        output_sink: "OutputSink",  # noqa: UP037
        backoff: ConstantBackoff | None = None,
    ) -> None:
        """Initialize the service manager.

        Args:
            spec: Definition of the service.
            launcher: Spawns the service's process.
            output_sink: Sink for service output and events.
            backoff: Restart delay calculator. Defaults to a 1s constant.
        """
        self.spec = spec
        self.status = ServiceStatus(spec=spec)
        self._launcher = launcher
        self._output_sink = output_sink
        self._backoff = backoff or ConstantBackoff()
        self._process: ManagedProcess | None = None
        self._lock = anyio.Lock()
        self._stop_event = anyio.Event()
        self._stop_requested = False

    @property
    def name(self) -> str:
        """Return the unique name of this service."""
        return self.spec.name

    @property
    def state(self) -> ServiceState:
        """Return the current state of this service."""
        return self.status.state

    @property
    def pid(self) -> int | None:
        """Return the process ID if running, None otherwise."""
        return self.status.pid

    async def emit_event(
        self,
        event_type: ServiceEventType,
        *,
        message: str | None = None,
        exit_code: int | None = None,
    ) -> None:
        """Emit a service lifecycle event to the output sink.

        Args:
            event_type: Type of event to emit.
            message: Optional message for the event.
            exit_code: Exit code if process terminated.
        """
        event = ServiceEvent(
            service_name=self.name,
            event_type=event_type,
            timestamp=get_timestamp(),
            pid=self.status.pid,
            exit_code=exit_code,
            restart_count=self.status.restart_count,
            message=message,
        )
        try:  # noqa: SIM105
            await self._output_sink.write_event(self.name, event)
        except Exception:  # noqa: BLE001, S110
            # Output sink errors should not crash the service
            pass

    async def _stream_output(
        self,
        stream: TextReceiveStream,
        stream_name: Literal["stdout", "stderr"],
        pid: int,
    ) -> None:
        """Stream output from a text stream to the output sink.

        Args:
            stream: The text stream to read from.
            stream_name: Name of the stream ("stdout" or "stderr").
            pid: Process ID of the producing process.
        """
        pending = ""
        try:
            async for chunk in stream:
                # Chunks do not respect line boundaries
                *lines, pending = (pending + chunk).split("\n")
                for raw_line in lines:
                    await self._write_line(stream_name, pid, raw_line)
                while len(pending) >= MAX_PENDING_CHARS:
                    head, pending = (
                        pending[:MAX_PENDING_CHARS],
                        pending[MAX_PENDING_CHARS:],
                    )
                    await self._write_line(stream_name, pid, head)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            # Stream closed, which is expected on process exit
            pass

        if pending:
            await self._write_line(stream_name, pid, pending)

    async def _write_line(
        self,
        stream_name: Literal["stdout", "stderr"],
        pid: int,
        raw_line: str,
    ) -> None:
        try:  # noqa: SIM105
            await self._output_sink.write_line(
                self.name,
                pid,
                stream_name,
                raw_line.rstrip("\r"),
            )
        except Exception:  # noqa: BLE001, S110
            # Output sink errors should not crash streaming
            pass

    async def _drain_output(
        self, process: "ManagedProcess", done: anyio.Event  # noqa: UP037
    ) -> None:
        """Stream stdout and stderr concurrently until both reach EOF."""
        async with anyio.create_task_group() as tg:
            if process.stdout is not None:
                stdout_stream = TextReceiveStream(process.stdout, errors="replace")
                tg.start_soon(self._stream_output, stdout_stream, "stdout", process.pid)

            if process.stderr is not None:
                stderr_stream = TextReceiveStream(process.stderr, errors="replace")
                tg.start_soon(self._stream_output, stderr_stream, "stderr", process.pid)
        done.set()

    async def _promote_when_started(self, process: "ManagedProcess") -> None:
        """Mark the service running once it outlives its start delay."""
        await anyio.sleep(self.spec.start_delay)
        async with self._lock:
            if self._process is process and self.status.state == ServiceState.STARTING:
                self.status.state = ServiceState.RUNNING

    async def start(self) -> None:
        """Spawn the service's process.

        Does not wait for the process to complete or become ready.

        Raises:
            ServiceStartError: If the process cannot be spawned.
        """
        async with self._lock:
            if self._stop_requested or self._process is not None:
                return

            self.status.state = ServiceState.STARTING
            self.status.last_start_time = get_timestamp()

            try:
                self._process = await self._launcher.launch(self.spec)
            except OSError as e:
                self.status.pid = None
                msg = f"Failed to start service '{self.name}': {e}"
                raise ServiceStartError(msg, service_name=self.name, cause=e) from e

            self.status.pid = self._process.pid
            await self.emit_event(
                ServiceEventType.STARTED,
                message=f"Started with command: {' '.join(self.spec.command)}",
            )

    async def _watch(self, process: "ManagedProcess") -> int:
        """Stream a process's output until it exits.

        Returns:
            The process exit code.
        """
        drained = anyio.Event()
        async with anyio.create_task_group() as tg:
            tg.start_soon(self._drain_output, process, drained)
            tg.start_soon(self._promote_when_started, process)

            exit_code = await process.wait()

            with anyio.move_on_after(OUTPUT_DRAIN_TIMEOUT):
                await drained.wait()
            tg.cancel_scope.cancel()

        await process.aclose()
        return exit_code

    def _should_restart(self, exit_code: int | None) -> bool:
        """Apply the restart policy and cap to an exit."""
        policy = self.spec.restart_policy
        if policy == RestartPolicy.NEVER:
            return False
        if policy == RestartPolicy.ON_FAILURE and exit_code == 0:
            return False

        max_restarts = self.spec.max_restarts
        return max_restarts is None or self.status.restart_count < max_restarts

    async def _handle_exit(self, exit_code: int | None, uptime: float) -> float | None:
        """Record an exit and decide whether to relaunch.

        Args:
            exit_code: Exit code of the process, or None if it never spawned.
            uptime: Seconds between the launch attempt and the exit.

        Returns:
            The delay before relaunching, or None if the service stays down.
        """
        async with self._lock:
            if self._stop_requested:
                return None

            self._process = None
            self.status.pid = None
            self.status.last_exit_code = exit_code
            self.status.last_stop_time = get_timestamp()

            if exit_code is not None:
                await self.emit_event(
                    ServiceEventType.EXITED,
                    exit_code=exit_code,
                    message=f"Exited with code {exit_code}",
                )

            if not self._should_restart(exit_code):
                self.status.state = ServiceState.EXITED
                return None

            self.status.restart_count += 1
            self.status.state = ServiceState.RESTARTING

            delay = self._backoff.delay(
                self.status.restart_count - 1,
                uptime=uptime,
                min_uptime=self.spec.start_delay,
            )
            await self.emit_event(
                ServiceEventType.RESTARTING,
                message=f"Restarting in {delay:.1f}s (restart {self.status.restart_count})",  # noqa: E501
            )
            return delay

    async def supervise(
        self,
        *,
        task_status: anyio.abc.TaskStatus[None] = anyio.TASK_STATUS_IGNORED,
    ) -> None:
        """Run the service, relaunching it according to its restart policy.

        Signals ``task_status`` once the first launch attempt has been made,
        whether or not it succeeded, so callers can sequence launches
        without waiting for readiness.
        """
        notified = False

        while not self._stop_requested:
            launched_at = anyio.current_time()
            exit_code: int | None = None

            try:
                await self.start()
            except ServiceStartError as e:
                await self.emit_event(ServiceEventType.START_FAILED, message=str(e))

            if not notified:
                task_status.started()
                notified = True

            process = self._process
            if process is not None:
                exit_code = await self._watch(process)

            delay = await self._handle_exit(
                exit_code, anyio.current_time() - launched_at
            )
            if delay is None:
                break

            # Wait before restart (interruptible by a stop request)
            with anyio.move_on_after(delay):
                await self._stop_event.wait()

        if not notified:
            task_status.started()

    async def stop(self, graceful_timeout: float | None = None) -> None:
        """Stop the service and prevent further restarts.

        Sends SIGTERM to the process group and waits for graceful shutdown.
        If the process doesn't exit within the timeout, sends SIGKILL and
        waits up to the service's kill_timeout.

        Args:
            graceful_timeout: Seconds to wait for graceful shutdown.
                Uses the service's stop_timeout if None.

        Raises:
            ServiceStopError: If the process group cannot be signalled.
        """
        self._stop_requested = True
        self._stop_event.set()

        async with self._lock:
            process = self._process
            if process is None:
                if self.status.state != ServiceState.STOPPED:
                    self.status.state = ServiceState.STOPPED
                    await self.emit_event(
                        ServiceEventType.STOPPED, message="Stopped by request"
                    )
                return

            actual_timeout = (
                graceful_timeout
                if graceful_timeout is not None
                else self.spec.stop_timeout
            )
            self.status.state = ServiceState.STOPPING

            try:
                process.terminate()

                with anyio.move_on_after(actual_timeout):
                    _ = await process.wait()

                if process.returncode is None:
                    # Process didn't exit, force kill
                    process.kill()
                    with anyio.move_on_after(self.spec.kill_timeout):
                        _ = await process.wait()

            except OSError as e:
                msg = f"Failed to stop service '{self.name}': {e}"
                raise ServiceStopError(msg, service_name=self.name, cause=e) from e

            finally:
                self._process = None
                self.status.pid = None

            self.status.last_exit_code = process.returncode
            self.status.last_stop_time = get_timestamp()
            self.status.state = ServiceState.STOPPED

            await self.emit_event(
                ServiceEventType.STOPPED,
                exit_code=process.returncode,
                message="Stopped by request",
            )

    def is_running(self) -> bool:
        """Check if the service currently has a live process."""
        return self._process is not None and self.status.state in (
            ServiceState.STARTING,
            ServiceState.RUNNING,
        )
