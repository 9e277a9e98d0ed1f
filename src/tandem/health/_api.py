"""FastAPI health endpoint for the unit."""

# pyright: reportUnusedFunction=false

from typing import TYPE_CHECKING

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

if TYPE_CHECKING:
    from ._reporter import HealthReporter


class HealthResponse(BaseModel):
    """Response model for the unit health signal."""

    status: str
    is_healthy: bool
    consecutive_failures: int
    last_check_time: str | None
    last_error: str | None


def create_health_router(reporter: "HealthReporter") -> APIRouter:  # noqa: UP037
    """Create a router exposing the unit's health.

    ``GET /health`` answers 200 while the unit is healthy and 503 otherwise,
    with the latest snapshot as the body. It does not trigger a poll.

    Args:
        reporter: The reporter whose status is exposed.

    Returns:
        A FastAPI APIRouter with the health endpoint.
    """
    router = APIRouter(prefix="", tags=["health"])

    @router.get("/health", response_model=HealthResponse)
    async def get_health(response: Response) -> HealthResponse:
        current = reporter.status
        if not current.is_healthy:
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

        return HealthResponse(
            status=current.phase.value,
            is_healthy=current.is_healthy,
            consecutive_failures=current.consecutive_failures,
            last_check_time=current.last_check_time,
            last_error=current.last_error,
        )

    return router
