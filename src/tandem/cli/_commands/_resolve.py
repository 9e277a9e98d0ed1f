# pyright: reportUnusedCallResult=false
# ruff: noqa: A002
"""tandem resolve command - prints the effective configuration."""

import os
from typing import Annotated, Literal

from cyclopts import App, Parameter
from rich.console import Console

from tandem.config import EffectiveConfig, load_settings, resolve, write_env_file
from tandem.exceptions import ConfigError

from ._shared import ExitCode, FormattableData, exit_with_error, format_json

OutputFormat = Literal["text", "json"]

app = App(
    name="resolve",
    help="Show the effective configuration derived from the environment.",
    help_on_error=True,
)


def config_to_dict(config: EffectiveConfig) -> FormattableData:
    """Convert the effective configuration to plain data."""
    return {
        "backend_port": config.backend_port,
        "frontend_port": config.frontend_port,
        "api_base_url": config.api_base_url,
        "api_base_overridden": config.api_base_overridden,
        "missing_secrets": sorted(config.missing_secrets),
    }


def _print_text(config: EffectiveConfig, console: Console) -> None:
    source = "override" if config.api_base_overridden else "derived"
    console.print(f"backend_port:  {config.backend_port}")
    console.print(f"frontend_port: {config.frontend_port}")
    console.print(f"api_base_url:  {config.api_base_url} ({source})")
    for key in sorted(config.missing_secrets):
        console.print(f"[yellow]Warning:[/yellow] {key} is not set")


@app.default
def resolve_command(
    *,
    format: Annotated[
        OutputFormat,
        Parameter(name="--format", help="Output format."),
    ] = "text",
    write: Annotated[
        bool,
        Parameter(help="Also write the frontend's env file."),
    ] = False,
) -> None:
    """Resolve the configuration without starting any service.

    Exits with a configuration error code if a port is invalid. Missing
    secrets are reported but are not an error.
    """
    console = Console()

    try:
        config = resolve(os.environ)
        env_file = None
        if write:
            settings = load_settings(os.environ)
            env_file = write_env_file(config, settings.resolved_env_file)
    except ConfigError as e:
        exit_with_error(str(e), ExitCode.CONFIG_ERROR)

    if format == "json":
        data = config_to_dict(config)
        if env_file is not None:
            data["env_file"] = str(env_file)
        print(format_json(data))  # noqa: T201
        return

    _print_text(config, console)
    if env_file is not None:
        console.print(f"Wrote {env_file}")
