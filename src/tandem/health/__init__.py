"""Unit health reporting.

The reporter polls the primary service's readiness endpoint and turns the
outcomes into a single health signal, honoring a start-period grace window
and a consecutive-failure threshold.
"""

from ._api import HealthResponse, create_health_router
from ._models import HealthPhase, HealthPolicy, HealthStatus
from ._reporter import HealthReporter

__all__ = [
    "HealthPhase",
    "HealthPolicy",
    "HealthReporter",
    "HealthResponse",
    "HealthStatus",
    "create_health_router",
]
