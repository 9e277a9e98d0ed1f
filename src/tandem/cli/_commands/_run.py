# pyright: reportUnusedCallResult=false
"""tandem run command - supervises the unit until shutdown."""

import os
from typing import Annotated

import anyio
from cyclopts import App, Parameter

from tandem.config import LogFormat, LogLevel, load_settings
from tandem.exceptions import SettingsError

from ._shared import ExitCode, exit_with_error

app = App(
    name="run",
    help="Resolve configuration, start both services and supervise them.",
    help_on_error=True,
)


def build_overrides(  # noqa: PLR0913
    *,
    dev: bool = False,
    console_output: bool = False,
    control: bool = True,
    control_port: int | None = None,
    log_level: LogLevel | None = None,
    log_format: LogFormat | None = None,
) -> dict[str, object]:
    """Translate CLI flags into settings overrides.

    Flags left at their defaults do not override the environment.
    """
    overrides: dict[str, object] = {
        "control_port": control_port,
        "log_level": log_level,
        "log_format": log_format,
    }
    if dev:
        overrides["dev"] = True
        overrides["console_output"] = True
    if console_output:
        overrides["console_output"] = True
    if not control:
        overrides["control_enabled"] = False
    return overrides


@app.default
def run(  # noqa: PLR0913
    *,
    dev: Annotated[
        bool,
        Parameter(help="Development mode: reloading servers, output on the console."),
    ] = False,
    console_output: Annotated[
        bool,
        Parameter(help="Also print service output on the console."),
    ] = False,
    control: Annotated[
        bool,
        Parameter(help="Serve the control and health API."),
    ] = True,
    control_port: Annotated[
        int | None,
        Parameter(help="Port for the control and health API."),
    ] = None,
    log_level: Annotated[
        LogLevel | None,
        Parameter(help="Supervisor log level."),
    ] = None,
    log_format: Annotated[
        LogFormat | None,
        Parameter(help="Supervisor log format."),
    ] = None,
) -> None:
    """Run the unit in the foreground.

    Resolves the effective configuration, writes the frontend's env file,
    launches the backend then the frontend, and restarts either one
    whenever it exits. SIGINT or SIGTERM stops both services and exits.
    """
    from tandem.unit import UnitOrchestrator

    overrides = build_overrides(
        dev=dev,
        console_output=console_output,
        control=control,
        control_port=control_port,
        log_level=log_level,
        log_format=log_format,
    )
    try:
        settings = load_settings(os.environ, overrides)
    except SettingsError as e:
        exit_with_error(str(e), ExitCode.CONFIG_ERROR)

    orchestrator = UnitOrchestrator(os.environ, settings)
    exit_code = anyio.run(orchestrator.run)
    raise SystemExit(exit_code)
