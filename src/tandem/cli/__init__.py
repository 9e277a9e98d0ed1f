"""The command-line interface for tandem."""

from ._app import app, create_app, main

__all__ = ["app", "create_app", "main"]
