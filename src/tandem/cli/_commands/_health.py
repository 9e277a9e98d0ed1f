# pyright: reportUnusedCallResult=false
"""tandem health command - probes a running unit's health endpoint."""

import contextlib
import os
from typing import Annotated

import httpx
from cyclopts import App, Parameter
from rich.console import Console

from tandem.config import load_settings
from tandem.exceptions import SettingsError

from ._shared import ExitCode, exit_with_error

app = App(
    name="health",
    help="Check the health of a running unit.",
    help_on_error=True,
)


@app.default
def health(
    *,
    host: Annotated[
        str | None,
        Parameter(help="Host of the control API. Defaults to TANDEM_CONTROL_HOST."),
    ] = None,
    port: Annotated[
        int | None,
        Parameter(help="Port of the control API. Defaults to TANDEM_CONTROL_PORT."),
    ] = None,
    timeout: Annotated[
        float,
        Parameter(help="Seconds to wait for a response."),
    ] = 5.0,
    quiet: Annotated[
        bool,
        Parameter(help="Print nothing; report through the exit code only."),
    ] = False,
) -> None:
    """Query the unit's health endpoint.

    Exits 0 when the unit reports healthy and 1 otherwise, including when
    the endpoint cannot be reached. Suitable as a container health check.
    """
    console = Console(quiet=quiet)

    try:
        settings = load_settings(os.environ)
    except SettingsError as e:
        exit_with_error(str(e), ExitCode.CONFIG_ERROR)

    host = host or settings.control_host
    url = f"http://{host}:{port or settings.control_port}/health"

    try:
        response = httpx.get(url, timeout=timeout)
    except httpx.HTTPError as e:
        console.print(f"[red]unreachable[/red] {url}: {e}")
        raise SystemExit(ExitCode.UNHEALTHY) from e

    status = "unknown"
    with contextlib.suppress(ValueError):
        payload = response.json()
        if isinstance(payload, dict):
            status = str(payload.get("status", status))  # pyright: ignore[reportUnknownArgumentType]

    if response.status_code == httpx.codes.OK:
        console.print(f"[green]{status}[/green]")
        raise SystemExit(ExitCode.SUCCESS)

    console.print(f"[red]{status}[/red] (HTTP {response.status_code})")
    raise SystemExit(ExitCode.UNHEALTHY)
