"""Shared test fixtures for tandem tests."""

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import anyio
import anyio.abc
import pytest

from tandem.supervisor import ServiceEvent, ServiceEventType, ServiceSpec

ExitSchedule = Callable[[ServiceSpec, int], int | None]


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll a predicate until it holds, failing the test after ``timeout``."""
    with anyio.fail_after(timeout):
        while not predicate():
            await anyio.sleep(0.005)


class FakeProcess:
    """In-memory stand-in for a launched process group."""

    def __init__(
        self,
        pid: int,
        *,
        ignore_sigterm: bool = False,
        stdout: anyio.abc.ObjectReceiveStream[bytes] | None = None,
        stderr: anyio.abc.ObjectReceiveStream[bytes] | None = None,
    ) -> None:
        self._pid = pid
        self._returncode: int | None = None
        self._exited = anyio.Event()
        self.ignore_sigterm = ignore_sigterm
        self.signals: list[str] = []
        self.closed = False
        self.stdout = stdout
        self.stderr = stderr

    @property
    def pid(self) -> int:
        return self._pid

    @property
    def returncode(self) -> int | None:
        return self._returncode

    def exit(self, code: int) -> None:
        if self._returncode is None:
            self._returncode = code
            self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        assert self._returncode is not None
        return self._returncode

    def terminate(self) -> None:
        self.signals.append("SIGTERM")
        if not self.ignore_sigterm:
            self.exit(-15)

    def kill(self) -> None:
        self.signals.append("SIGKILL")
        self.exit(-9)

    async def aclose(self) -> None:
        self.closed = True


class FakeLauncher:
    """Launcher that hands out FakeProcess instances.

    ``exit_schedule`` maps (spec, launch index for that service) to an exit
    code the process reports immediately, or None to keep it running.
    """

    def __init__(
        self,
        exit_schedule: ExitSchedule | None = None,
        *,
        ignore_sigterm: bool = False,
    ) -> None:
        self._exit_schedule = exit_schedule
        self._ignore_sigterm = ignore_sigterm
        self._next_pid = 1000
        self.launched: list[tuple[str, FakeProcess]] = []
        self.launch_times: list[float] = []
        self.failures: dict[str, OSError] = {}

    def processes(self, name: str) -> list[FakeProcess]:
        return [process for service, process in self.launched if service == name]

    def launch_order(self) -> list[str]:
        return [service for service, _ in self.launched]

    async def launch(self, spec: ServiceSpec) -> FakeProcess:
        error = self.failures.get(spec.name)
        if error is not None:
            raise error

        self._next_pid += 1
        process = FakeProcess(self._next_pid, ignore_sigterm=self._ignore_sigterm)
        if self._exit_schedule is not None:
            code = self._exit_schedule(spec, len(self.processes(spec.name)))
            if code is not None:
                process.exit(code)
        self.launched.append((spec.name, process))
        self.launch_times.append(anyio.current_time())
        return process


@dataclass
class RecordingSink:
    """Output sink that keeps everything it receives."""

    lines: list[tuple[str, int, str, str]] = field(default_factory=list)
    events: list[ServiceEvent] = field(default_factory=list)

    async def write_line(
        self, service_name: str, pid: int, stream: str, line: str
    ) -> None:
        self.lines.append((service_name, pid, stream, line))

    async def write_event(self, service_name: str, event: ServiceEvent) -> None:
        self.events.append(event)

    def event_types(self, name: str) -> list[ServiceEventType]:
        return [e.event_type for e in self.events if e.service_name == name]


@pytest.fixture
def launcher() -> FakeLauncher:
    return FakeLauncher()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def make_spec(tmp_path: Path) -> Callable[..., ServiceSpec]:
    """Return a factory for fast service specs rooted in ``tmp_path``."""

    def _make(name: str = "backend", **overrides: object) -> ServiceSpec:
        values: dict[str, object] = {
            "command": ("serve", name),
            "cwd": tmp_path,
            "start_delay": 0.0,
            "stop_timeout": 0.5,
            "kill_timeout": 0.5,
        }
        values.update(overrides)
        return ServiceSpec(name=name, **values)  # pyright: ignore[reportArgumentType]

    return _make
