"""Control application factory for the unit.

This module provides the in-process FastAPI application that exposes the
unit's health signal and the supervisor's control endpoints, and the
uvicorn server that runs it alongside the supervisor.
"""

import contextlib
from typing import TYPE_CHECKING

import uvicorn
from fastapi import FastAPI

from tandem.health import create_health_router
from tandem.supervisor import create_control_router

if TYPE_CHECKING:
    from collections.abc import Iterator

    from tandem.health import HealthReporter
    from tandem.supervisor import Supervisor


def create_control_app(
    supervisor: "Supervisor",  # noqa: UP037
    reporter: "HealthReporter",  # noqa: UP037
) -> FastAPI:
    """Create the FastAPI control application.

    Args:
        supervisor: The Supervisor instance to control.
        reporter: The reporter whose health signal is exposed.

    Returns:
        A FastAPI application with health and supervisor endpoints.
    """
    app = FastAPI(
        title="tandem control",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.include_router(create_health_router(reporter))
    app.include_router(create_control_router(supervisor))

    return app


class ControlServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the orchestrator."""

    @contextlib.contextmanager
    def capture_signals(self) -> "Iterator[None]":  # noqa: UP037
        yield
