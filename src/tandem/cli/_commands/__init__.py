"""tandem CLI commands."""
# pyright: reportUnusedCallResult=false

from typing import TYPE_CHECKING

from ._health import app as health_app
from ._resolve import app as resolve_app
from ._run import app as run_app
from ._shared import (
    ExitCode,
    FormattableData,
    exit_with_error,
    format_json,
    get_error_console,
)

if TYPE_CHECKING:
    from cyclopts import App

__all__ = [
    "ExitCode",
    "FormattableData",
    "exit_with_error",
    "format_json",
    "get_error_console",
    "health_app",
    "register_commands",
    "resolve_app",
    "run_app",
]


def register_commands(app: "App") -> None:  # noqa: UP037
    app.command(run_app)
    app.command(resolve_app)
    app.command(health_app)
