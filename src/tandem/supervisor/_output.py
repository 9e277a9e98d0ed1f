"""Output sink implementations for the supervisor system.

This module provides concrete implementations of the OutputSink protocol:
- LogFileOutputSink: Appends each service's streams to its own files
- ConcatenatedOutputSink: Prints prefixed output to the console
- TeeOutputSink: Fans output out to several sinks
"""

from collections.abc import Mapping  # noqa: TC003 - Used in runtime type annotations
from typing import TYPE_CHECKING, Literal, final

import anyio
from rich.console import Console
from rich.style import Style
from rich.text import Text

from tandem.utils import create_unit_logger

from ._models import LogTargets, ServiceEventType

if TYPE_CHECKING:
    from anyio.abc import AsyncFile
    from structlog.typing import FilteringBoundLogger

    from ._models import ServiceEvent
    from ._protocol import OutputSink

StreamName = Literal["stdout", "stderr"]


@final
class LogFileOutputSink:
    """Output sink that appends service output to per-service log files.

    Every (service, stream) pair has its own append-only file, so output
    from different services is never interleaved. Files are opened lazily
    on the first line. Lifecycle events are written to the unit logger.
    """

    __slots__ = ("_files", "_lock", "_logger", "_targets")

    def __init__(
        self,
        targets: Mapping[str, LogTargets],
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> None:
        """Initialize the output sink.

        Args:
            targets: Log files for each service, keyed by service name.
                Output of services without an entry is discarded.
            logger: Logger for lifecycle events. Creates a unit logger if None.
        """
        self._targets = dict(targets)
        self._logger = logger or create_unit_logger()
        self._files: dict[tuple[str, StreamName], AsyncFile[str]] = {}
        self._lock = anyio.Lock()

    async def _get_file(
        self, service_name: str, stream: StreamName
    ) -> "AsyncFile[str] | None":  # noqa: UP037
        key = (service_name, stream)
        handle = self._files.get(key)
        if handle is not None:
            return handle

        targets = self._targets.get(service_name)
        if targets is None:
            return None

        async with self._lock:
            handle = self._files.get(key)
            if handle is None:
                path = targets.stdout_path if stream == "stdout" else targets.stderr_path
                await anyio.Path(path).parent.mkdir(parents=True, exist_ok=True)
                handle = await anyio.open_file(path, "a", encoding="utf-8")
                self._files[key] = handle
        return handle

    async def write_line(
        self,
        service_name: str,
        pid: int,  # noqa: ARG002
        stream: StreamName,
        line: str,
    ) -> None:
        """Append a line of service output to the service's stream file.

        Args:
            service_name: Name of the service that produced the output.
            pid: Process ID of the service.
            stream: Which output stream the line came from.
            line: The output line (without trailing newline).
        """
        handle = await self._get_file(service_name, stream)
        if handle is None:
            return
        _ = await handle.write(line + "\n")
        await handle.flush()

    async def write_event(
        self,
        service_name: str,
        event: "ServiceEvent",  # noqa: UP037
    ) -> None:
        """Record a service lifecycle event in the unit log.

        Args:
            service_name: Name of the service that generated the event.
            event: The lifecycle event to record.
        """
        log = self._logger.bind(
            service=service_name,
            pid=event.pid,
            restart_count=event.restart_count,
        )
        name = f"service_{event.event_type.value}"

        if event.event_type == ServiceEventType.START_FAILED:
            log.error(name, error=event.message)
        elif event.event_type == ServiceEventType.EXITED and event.exit_code != 0:
            log.warning(name, exit_code=event.exit_code)
        elif event.event_type == ServiceEventType.EXITED:
            log.info(name, exit_code=event.exit_code)
        else:
            log.info(name, message=event.message)

    async def aclose(self) -> None:
        """Close every open log file."""
        async with self._lock:
            files = list(self._files.values())
            self._files.clear()
        for handle in files:
            await handle.aclose()


@final
class ConcatenatedOutputSink:
    """Output sink that writes to the console with formatted prefixes.

    Formats service output as `[name:pid] line` with color coding:
    - stdout: Default styling
    - stderr: Dim red styling
    - Events: Special formatting based on event type
    """

    __slots__ = ("_console", "_event_styles", "_stderr_style", "_stdout_style")

    def __init__(self, console: Console | None = None) -> None:
        """Initialize the output sink.

        Args:
            console: Rich Console instance for output. If None, creates a new one.
        """
        self._console = console or Console()
        self._stdout_style = Style()
        self._stderr_style = Style(color="red", dim=True)
        self._event_styles: dict[ServiceEventType, Style] = {
            ServiceEventType.STARTED: Style(color="green", bold=True),
            ServiceEventType.START_FAILED: Style(color="red", bold=True),
            ServiceEventType.EXITED: Style(color="yellow"),
            ServiceEventType.RESTARTING: Style(color="cyan"),
            ServiceEventType.STOPPED: Style(color="magenta", dim=True),
        }

    async def write_line(
        self,
        service_name: str,
        pid: int,
        stream: StreamName,
        line: str,
    ) -> None:
        """Write a line of service output with prefix."""
        prefix = f"[{service_name}:{pid}]"
        style = self._stderr_style if stream == "stderr" else self._stdout_style

        text = Text()
        _ = text.append(prefix, style=Style(color="blue", bold=True))
        _ = text.append(" ")
        _ = text.append(line, style=style)

        self._console.print(text)

    async def write_event(
        self,
        service_name: str,
        event: "ServiceEvent",  # noqa: UP037
    ) -> None:
        """Write a service lifecycle event with special formatting."""
        style = self._event_styles.get(event.event_type, Style())

        text = Text()
        _ = text.append(f"[{service_name}]", style=Style(color="blue", bold=True))
        _ = text.append(" ")
        _ = text.append(event.event_type.value.upper(), style=style)

        if event.pid is not None:
            _ = text.append(f" (pid={event.pid})", style=Style(dim=True))

        if event.exit_code is not None:
            _ = text.append(f" exit_code={event.exit_code}", style=Style(dim=True))

        if event.message:
            _ = text.append(f" - {event.message}", style=style)

        self._console.print(text)


@final
class TeeOutputSink:
    """Output sink that forwards everything to several sinks in order."""

    __slots__ = ("_sinks",)

    def __init__(self, *sinks: "OutputSink") -> None:  # noqa: UP037
        self._sinks = sinks

    async def write_line(
        self,
        service_name: str,
        pid: int,
        stream: StreamName,
        line: str,
    ) -> None:
        for sink in self._sinks:
            await sink.write_line(service_name, pid, stream, line)

    async def write_event(
        self,
        service_name: str,
        event: "ServiceEvent",  # noqa: UP037
    ) -> None:
        for sink in self._sinks:
            await sink.write_event(service_name, event)
