"""Unit tests for the single-service lifecycle manager."""

from collections.abc import Callable
from pathlib import Path

import anyio
import pytest

from tandem.exceptions import ServiceStopError
from tandem.supervisor import (
    ConstantBackoff,
    RestartPolicy,
    ServiceEvent,
    ServiceEventType,
    ServiceManager,
    ServiceSpec,
    ServiceState,
)
from tandem.supervisor._service import MAX_PENDING_CHARS
from tests.conftest import FakeLauncher, FakeProcess, RecordingSink, wait_until

pytestmark = pytest.mark.anyio

SpecFactory = Callable[..., ServiceSpec]
NO_BACKOFF = ConstantBackoff(interval=0.0)


def crash_first(count: int, code: int = 1) -> Callable[[ServiceSpec, int], int | None]:
    """Exit immediately for the first ``count`` launches, then keep running."""

    def _schedule(_spec: ServiceSpec, index: int) -> int | None:
        return code if index < count else None

    return _schedule


def always_exit(code: int) -> Callable[[ServiceSpec, int], int | None]:
    def _schedule(_spec: ServiceSpec, _index: int) -> int | None:
        return code

    return _schedule


class SingleProcessLauncher:
    def __init__(self, process: FakeProcess) -> None:
        self.process = process

    async def launch(self, spec: ServiceSpec) -> FakeProcess:
        return self.process


class TestServiceManagerStart:
    async def test_launch_records_pid_and_emits_started(
        self, launcher: FakeLauncher, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        manager = ServiceManager(make_spec(), launcher, sink)

        await manager.start()

        process = launcher.processes("backend")[0]
        assert manager.pid == process.pid
        assert manager.state == ServiceState.STARTING
        assert manager.status.last_start_time is not None
        assert sink.event_types("backend") == [ServiceEventType.STARTED]
        assert sink.events[0].pid == process.pid

    async def test_promoted_to_running_after_start_delay(
        self, launcher: FakeLauncher, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        manager = ServiceManager(make_spec(start_delay=0.05), launcher, sink)

        async with anyio.create_task_group() as tg:
            await tg.start(manager.supervise)
            assert manager.state == ServiceState.STARTING
            assert manager.is_running()

            await wait_until(lambda: manager.state == ServiceState.RUNNING)
            await manager.stop()

    async def test_spawn_failure_emits_start_failed(
        self, launcher: FakeLauncher, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        launcher.failures["backend"] = FileNotFoundError("no such file: serve")
        manager = ServiceManager(
            make_spec(restart_policy=RestartPolicy.NEVER), launcher, sink
        )

        with anyio.fail_after(2):
            await manager.supervise()

        assert manager.state == ServiceState.EXITED
        assert manager.status.last_exit_code is None
        assert manager.pid is None
        assert sink.event_types("backend") == [ServiceEventType.START_FAILED]

    async def test_spawn_failure_follows_restart_policy(
        self, launcher: FakeLauncher, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        launcher.failures["backend"] = PermissionError("denied")
        manager = ServiceManager(make_spec(max_restarts=2), launcher, sink, NO_BACKOFF)

        with anyio.fail_after(2):
            await manager.supervise()

        assert manager.status.restart_count == 2
        assert sink.event_types("backend").count(ServiceEventType.START_FAILED) == 3


class TestServiceManagerRestart:
    async def test_restarts_after_each_exit(
        self, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        launcher = FakeLauncher(crash_first(3))
        manager = ServiceManager(make_spec(), launcher, sink, NO_BACKOFF)

        async with anyio.create_task_group() as tg:
            await tg.start(manager.supervise)
            await wait_until(lambda: len(launcher.processes("backend")) == 4)
            await wait_until(lambda: manager.state == ServiceState.RUNNING)

            assert manager.status.restart_count == 3
            assert manager.status.last_exit_code == 1
            assert manager.pid == launcher.processes("backend")[-1].pid

            await manager.stop()

    async def test_always_restarts_after_clean_exit(
        self, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        launcher = FakeLauncher(crash_first(1, code=0))
        manager = ServiceManager(make_spec(), launcher, sink, NO_BACKOFF)

        async with anyio.create_task_group() as tg:
            await tg.start(manager.supervise)
            await wait_until(lambda: len(launcher.processes("backend")) == 2)

            assert manager.status.restart_count == 1
            assert manager.status.last_exit_code == 0

            await manager.stop()

    async def test_signalled_exit_restarts(
        self, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        launcher = FakeLauncher(crash_first(1, code=-9))
        manager = ServiceManager(make_spec(), launcher, sink, NO_BACKOFF)

        async with anyio.create_task_group() as tg:
            await tg.start(manager.supervise)
            await wait_until(lambda: len(launcher.processes("backend")) == 2)

            assert manager.status.last_exit_code == -9

            await manager.stop()

    async def test_restart_event_sequence(
        self, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        launcher = FakeLauncher(crash_first(1))
        manager = ServiceManager(make_spec(), launcher, sink, NO_BACKOFF)

        async with anyio.create_task_group() as tg:
            await tg.start(manager.supervise)
            await wait_until(lambda: len(launcher.processes("backend")) == 2)
            await manager.stop()

        assert sink.event_types("backend") == [
            ServiceEventType.STARTED,
            ServiceEventType.EXITED,
            ServiceEventType.RESTARTING,
            ServiceEventType.STARTED,
            ServiceEventType.STOPPED,
        ]
        restarting = [
            e for e in sink.events if e.event_type == ServiceEventType.RESTARTING
        ]
        assert restarting[0].restart_count == 1

    async def test_on_failure_does_not_restart_clean_exit(
        self, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        launcher = FakeLauncher(always_exit(0))
        manager = ServiceManager(
            make_spec(restart_policy=RestartPolicy.ON_FAILURE),
            launcher,
            sink,
            NO_BACKOFF,
        )

        with anyio.fail_after(2):
            await manager.supervise()

        assert manager.state == ServiceState.EXITED
        assert manager.status.restart_count == 0
        assert manager.status.last_exit_code == 0
        assert len(launcher.processes("backend")) == 1

    async def test_on_failure_restarts_non_zero_exit(
        self, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        launcher = FakeLauncher(crash_first(1, code=3))
        manager = ServiceManager(
            make_spec(restart_policy=RestartPolicy.ON_FAILURE),
            launcher,
            sink,
            NO_BACKOFF,
        )

        async with anyio.create_task_group() as tg:
            await tg.start(manager.supervise)
            await wait_until(lambda: len(launcher.processes("backend")) == 2)
            assert manager.status.restart_count == 1
            await manager.stop()

    async def test_never_leaves_service_exited(
        self, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        launcher = FakeLauncher(always_exit(1))
        manager = ServiceManager(
            make_spec(restart_policy=RestartPolicy.NEVER), launcher, sink, NO_BACKOFF
        )

        with anyio.fail_after(2):
            await manager.supervise()

        assert manager.state == ServiceState.EXITED
        assert manager.status.last_exit_code == 1
        assert manager.status.last_stop_time is not None
        assert sink.event_types("backend")[-1] == ServiceEventType.EXITED

    async def test_max_restarts_caps_relaunches(
        self, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        launcher = FakeLauncher(always_exit(1))
        manager = ServiceManager(
            make_spec(max_restarts=2), launcher, sink, NO_BACKOFF
        )

        with anyio.fail_after(2):
            await manager.supervise()

        assert len(launcher.processes("backend")) == 3
        assert manager.status.restart_count == 2
        assert manager.state == ServiceState.EXITED

    async def test_relaunch_waits_out_start_delay(
        self, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        launcher = FakeLauncher(crash_first(1))
        manager = ServiceManager(
            make_spec(start_delay=0.2), launcher, sink, NO_BACKOFF
        )

        async with anyio.create_task_group() as tg:
            await tg.start(manager.supervise)
            await wait_until(lambda: len(launcher.processes("backend")) == 2)
            await manager.stop()

        first, second = launcher.launch_times
        assert second - first >= 0.15

    async def test_restart_count_only_increases(
        self, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        launcher = FakeLauncher(crash_first(5))
        manager = ServiceManager(make_spec(), launcher, sink, NO_BACKOFF)
        seen: list[int] = []

        async with anyio.create_task_group() as tg:
            await tg.start(manager.supervise)
            while len(launcher.processes("backend")) < 6:
                seen.append(manager.status.restart_count)
                await anyio.sleep(0)
            await manager.stop()

        assert seen == sorted(seen)
        assert manager.status.restart_count == 5


class TestServiceManagerStop:
    async def test_graceful_stop(
        self, launcher: FakeLauncher, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        manager = ServiceManager(make_spec(), launcher, sink)

        async with anyio.create_task_group() as tg:
            await tg.start(manager.supervise)
            await manager.stop()

        process = launcher.processes("backend")[0]
        assert process.signals == ["SIGTERM"]
        assert process.closed
        assert manager.state == ServiceState.STOPPED
        assert manager.pid is None
        assert manager.status.last_exit_code == -15
        assert not manager.is_running()
        assert sink.event_types("backend")[-1] == ServiceEventType.STOPPED

    async def test_force_kill_after_timeout(
        self, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        launcher = FakeLauncher(ignore_sigterm=True)
        manager = ServiceManager(make_spec(stop_timeout=0.05), launcher, sink)

        async with anyio.create_task_group() as tg:
            await tg.start(manager.supervise)
            with anyio.fail_after(2):
                await manager.stop()

        process = launcher.processes("backend")[0]
        assert process.signals == ["SIGTERM", "SIGKILL"]
        assert manager.status.last_exit_code == -9
        assert manager.state == ServiceState.STOPPED

    async def test_graceful_timeout_override(
        self, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        launcher = FakeLauncher(ignore_sigterm=True)
        manager = ServiceManager(make_spec(stop_timeout=60.0), launcher, sink)

        async with anyio.create_task_group() as tg:
            await tg.start(manager.supervise)
            with anyio.fail_after(2):
                await manager.stop(graceful_timeout=0.01)

        assert launcher.processes("backend")[0].signals == ["SIGTERM", "SIGKILL"]

    async def test_stop_during_backoff(
        self, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        launcher = FakeLauncher(always_exit(1))
        manager = ServiceManager(
            make_spec(), launcher, sink, ConstantBackoff(interval=30.0)
        )

        with anyio.fail_after(2):
            async with anyio.create_task_group() as tg:
                await tg.start(manager.supervise)
                await wait_until(lambda: manager.state == ServiceState.RESTARTING)
                await manager.stop()

        assert manager.state == ServiceState.STOPPED
        assert len(launcher.processes("backend")) == 1

    async def test_stop_while_crash_looping(
        self, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        launcher = FakeLauncher(always_exit(1))
        manager = ServiceManager(make_spec(), launcher, sink, NO_BACKOFF)

        with anyio.fail_after(2):
            async with anyio.create_task_group() as tg:
                await tg.start(manager.supervise)
                await wait_until(lambda: manager.status.restart_count >= 3)
                await manager.stop()

        launches = len(launcher.processes("backend"))
        await anyio.sleep(0.05)
        assert len(launcher.processes("backend")) == launches
        assert manager.state == ServiceState.STOPPED

    async def test_stop_before_launch(
        self, launcher: FakeLauncher, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        manager = ServiceManager(make_spec(), launcher, sink)

        await manager.stop()
        await manager.supervise()

        assert manager.state == ServiceState.STOPPED
        assert launcher.launched == []

    async def test_stop_is_idempotent(
        self, launcher: FakeLauncher, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        manager = ServiceManager(make_spec(), launcher, sink)

        async with anyio.create_task_group() as tg:
            await tg.start(manager.supervise)
            await manager.stop()
            await manager.stop()

        assert sink.event_types("backend").count(ServiceEventType.STOPPED) == 1

    async def test_signal_failure_raises_stop_error(
        self, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        process = FakeProcess(77)

        def _deny() -> None:
            raise PermissionError("not permitted")

        process.terminate = _deny  # type: ignore[method-assign]
        manager = ServiceManager(make_spec(), SingleProcessLauncher(process), sink)
        await manager.start()

        with pytest.raises(ServiceStopError) as exc_info:
            await manager.stop()

        assert exc_info.value.service_name == "backend"
        assert isinstance(exc_info.value.cause, PermissionError)


class TestServiceManagerOutput:
    async def test_streams_lines_from_both_pipes(
        self, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        out_send, out_receive = anyio.create_memory_object_stream[bytes](10)
        err_send, err_receive = anyio.create_memory_object_stream[bytes](10)
        process = FakeProcess(4242, stdout=out_receive, stderr=err_receive)
        out_send.send_nowait(b"hello\nwor")
        out_send.send_nowait(b"ld\r\npartial")
        out_send.close()
        err_send.send_nowait(b"oops\n")
        err_send.close()
        process.exit(0)

        manager = ServiceManager(
            make_spec(restart_policy=RestartPolicy.NEVER),
            SingleProcessLauncher(process),
            sink,
        )

        with anyio.fail_after(2):
            await manager.supervise()

        stdout = [line for _, _, stream, line in sink.lines if stream == "stdout"]
        stderr = [line for _, _, stream, line in sink.lines if stream == "stderr"]
        assert stdout == ["hello", "world", "partial"]
        assert stderr == ["oops"]
        assert {pid for _, pid, _, _ in sink.lines} == {4242}

    async def test_unterminated_output_is_flushed_in_bounded_pieces(
        self, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        out_send, out_receive = anyio.create_memory_object_stream[bytes](10)
        process = FakeProcess(77, stdout=out_receive)
        out_send.send_nowait(b"a" * MAX_PENDING_CHARS)
        out_send.send_nowait(b"a" * MAX_PENDING_CHARS)
        out_send.send_nowait(b"a" * 10 + b"tail\n")
        out_send.close()
        process.exit(0)

        manager = ServiceManager(
            make_spec(restart_policy=RestartPolicy.NEVER),
            SingleProcessLauncher(process),
            sink,
        )
        with anyio.fail_after(2):
            await manager.supervise()

        lines = [line for _, _, _, line in sink.lines]
        assert lines == [
            "a" * MAX_PENDING_CHARS,
            "a" * MAX_PENDING_CHARS,
            "a" * 10 + "tail",
        ]

    async def test_invalid_utf8_is_replaced(
        self, sink: RecordingSink, make_spec: SpecFactory
    ) -> None:
        out_send, out_receive = anyio.create_memory_object_stream[bytes](10)
        process = FakeProcess(5, stdout=out_receive)
        out_send.send_nowait(b"bad \xff byte\n")
        out_send.close()
        process.exit(0)

        manager = ServiceManager(
            make_spec(restart_policy=RestartPolicy.NEVER),
            SingleProcessLauncher(process),
            sink,
        )
        with anyio.fail_after(2):
            await manager.supervise()

        assert sink.lines == [("backend", 5, "stdout", "bad � byte")]

    async def test_sink_failures_do_not_crash_service(
        self, make_spec: SpecFactory
    ) -> None:
        class BrokenSink:
            async def write_line(
                self, service_name: str, pid: int, stream: str, line: str
            ) -> None:
                raise RuntimeError("disk full")

            async def write_event(self, service_name: str, event: ServiceEvent) -> None:
                raise RuntimeError("disk full")

        out_send, out_receive = anyio.create_memory_object_stream[bytes](10)
        process = FakeProcess(9, stdout=out_receive)
        out_send.send_nowait(b"line\n")
        out_send.close()
        process.exit(1)

        manager = ServiceManager(
            make_spec(restart_policy=RestartPolicy.NEVER),
            SingleProcessLauncher(process),
            BrokenSink(),
        )
        with anyio.fail_after(2):
            await manager.supervise()

        assert manager.state == ServiceState.EXITED
        assert manager.status.last_exit_code == 1


class TestServiceManagerProperties:
    def test_name_comes_from_spec(
        self, launcher: FakeLauncher, sink: RecordingSink, tmp_path: Path
    ) -> None:
        spec = ServiceSpec(name="frontend", command=("node",), cwd=tmp_path)
        manager = ServiceManager(spec, launcher, sink)

        assert manager.name == "frontend"
        assert manager.state == ServiceState.PENDING
        assert manager.pid is None
