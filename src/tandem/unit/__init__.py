"""The unit: two supervised services behind one health signal.

This package defines the backend and frontend services and the
orchestrator that sequences configuration, supervision and health
reporting for the lifetime of the container.
"""

from ._app import ControlServer, create_control_app
from ._orchestrator import UnitOrchestrator
from ._services import (
    BACKEND,
    FRONTEND,
    create_backend_service,
    create_frontend_service,
    create_service_specs,
    health_url,
    service_log_targets,
)
from ._state import ExitCode, UnitState

__all__ = [
    "BACKEND",
    "FRONTEND",
    "ControlServer",
    "ExitCode",
    "UnitOrchestrator",
    "UnitState",
    "create_backend_service",
    "create_control_app",
    "create_frontend_service",
    "create_service_specs",
    "health_url",
    "service_log_targets",
]
