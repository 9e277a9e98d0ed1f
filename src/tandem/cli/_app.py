"""The command-line interface for tandem."""

from cyclopts import App
from rich.console import Console

from tandem import __version__

from ._commands import register_commands

APP_HELP = "Supervise the unit's backend and frontend services."

app = App(name="tandem", help=APP_HELP, version=__version__, help_on_error=True)
register_commands(app)


def create_app(
    console: Console | None = None,
    error_console: Console | None = None,
    *,
    exit_on_error: bool = True,
) -> App:
    """Create a CLI app bound to the given consoles."""
    if console is None:
        console = Console()
    if error_console is None:
        error_console = Console(stderr=True)
    app = App(
        name="tandem",
        help=APP_HELP,
        version=__version__,
        help_on_error=True,
        console=console,
        error_console=error_console,
        exit_on_error=exit_on_error,
    )
    register_commands(app)
    return app


def main() -> None:
    """Default entrypoint for the `tandem` CLI."""
    app = create_app()
    app()


if __name__ == "__main__":
    main()
