"""Subprocess launcher backed by anyio.

Each service is spawned in a new session so that it leads its own process
group; stop requests are delivered to the whole group.
"""

import os
import signal
import subprocess
from collections.abc import Mapping  # noqa: TC003 - Used in runtime type annotations
from typing import TYPE_CHECKING, final

import anyio
import anyio.abc

if TYPE_CHECKING:
    from ._models import ServiceSpec


@final
class ProcessGroup:
    """A spawned process whose signals target its entire process group."""

    __slots__ = ("_process",)

    def __init__(self, process: anyio.abc.Process) -> None:
        self._process = process

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    @property
    def stdout(self) -> anyio.abc.ByteReceiveStream | None:
        return self._process.stdout

    @property
    def stderr(self) -> anyio.abc.ByteReceiveStream | None:
        return self._process.stderr

    async def wait(self) -> int:
        return await self._process.wait()

    def terminate(self) -> None:
        self._signal_group(signal.SIGTERM)

    def kill(self) -> None:
        self._signal_group(signal.SIGKILL)

    async def aclose(self) -> None:
        await self._process.aclose()

    def _signal_group(self, signum: signal.Signals) -> None:
        """Send a signal to every process in the group.

        The leader's pid is the group id because it was started in a new
        session. A group with no remaining members is ignored.
        """
        try:
            os.killpg(self._process.pid, signum)
        except ProcessLookupError:
            pass


@final
class SubprocessLauncher:
    """Launches services as child process groups.

    The base environment is captured once at construction; each service's
    overlay is applied on top of it.
    """

    __slots__ = ("_base_env",)

    def __init__(self, base_env: Mapping[str, str] | None = None) -> None:
        """Initialize the launcher.

        Args:
            base_env: Environment inherited by every service. Defaults to a
                snapshot of the supervisor's own environment.
        """
        self._base_env: dict[str, str] = dict(
            base_env if base_env is not None else os.environ
        )

    async def launch(self, spec: "ServiceSpec") -> ProcessGroup:  # noqa: UP037
        """Spawn the service's command with stdout/stderr piped.

        Raises:
            OSError: If the process cannot be spawned.
        """
        process = await anyio.open_process(
            spec.command,
            cwd=spec.cwd,
            env={**self._base_env, **spec.env},
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            start_new_session=True,
        )
        return ProcessGroup(process)
