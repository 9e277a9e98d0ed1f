"""FastAPI control endpoints for the supervisor.

This module provides REST API endpoints for monitoring the supervisor's
services and stopping them individually.
"""

# pyright: reportUnusedFunction=false
# FastAPI route handlers are registered via decorators, not direct calls

from typing import TYPE_CHECKING, Never

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from tandem.exceptions import ServiceNotFoundError, ServiceStopError

if TYPE_CHECKING:
    from ._models import ServiceStatus
    from ._supervisor import Supervisor


class ServiceStatusResponse(BaseModel):
    """Response model for service status."""

    name: str
    state: str
    pid: int | None
    port: int | None
    restart_count: int
    last_exit_code: int | None
    last_start_time: str | None
    last_stop_time: str | None


class SupervisorStatusResponse(BaseModel):
    """Response model for overall supervisor status."""

    services: dict[str, ServiceStatusResponse]
    total_services: int
    running_services: int


class MessageResponse(BaseModel):
    """Response model for simple message responses."""

    message: str


def _build_service_status(
    service_status: "ServiceStatus",  # noqa: UP037
) -> ServiceStatusResponse:
    return ServiceStatusResponse(
        name=service_status.name,
        state=service_status.state.value,
        pid=service_status.pid,
        port=service_status.spec.port,
        restart_count=service_status.restart_count,
        last_exit_code=service_status.last_exit_code,
        last_start_time=service_status.last_start_time,
        last_stop_time=service_status.last_stop_time,
    )


def _raise_not_found(name: str, cause: ServiceNotFoundError) -> Never:
    """Raise HTTP 404 for service not found.

    Raises:
        HTTPException: Always raises with 404 status.
    """
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Service '{name}' not found",
    ) from cause


def _raise_server_error(cause: Exception) -> Never:
    """Raise HTTP 500 for internal server error.

    Raises:
        HTTPException: Always raises with 500 status.
    """
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(cause),
    ) from cause


def create_control_router(supervisor: "Supervisor") -> APIRouter:  # noqa: UP037
    """Create a FastAPI router for supervisor control endpoints.

    Args:
        supervisor: The Supervisor instance to control.

    Returns:
        A FastAPI APIRouter with control endpoints.
    """
    router = APIRouter(prefix="/supervisor", tags=["supervisor"])

    @router.get("/status", response_model=SupervisorStatusResponse)
    async def get_supervisor_status() -> SupervisorStatusResponse:
        """Get overall supervisor status."""
        services = {
            s.name: _build_service_status(s) for s in supervisor.statuses()
        }
        running_count = sum(1 for s in services.values() if s.state == "running")

        return SupervisorStatusResponse(
            services=services,
            total_services=len(services),
            running_services=running_count,
        )

    @router.get("/services", response_model=list[ServiceStatusResponse])
    async def list_services() -> list[ServiceStatusResponse]:
        """List all managed services in start order."""
        return [_build_service_status(s) for s in supervisor.statuses()]

    @router.get("/services/{name}", response_model=ServiceStatusResponse)
    async def get_service_status(name: str) -> ServiceStatusResponse:
        """Get status of a specific service."""
        try:
            service_status = supervisor.status(name)
        except ServiceNotFoundError as e:
            _raise_not_found(name, e)

        return _build_service_status(service_status)

    @router.post("/services/{name}/stop", response_model=MessageResponse)
    async def stop_service(name: str) -> MessageResponse:
        """Stop a specific service."""
        try:
            await supervisor.stop(name)
        except ServiceNotFoundError as e:
            _raise_not_found(name, e)
        except ServiceStopError as e:
            _raise_server_error(e)

        return MessageResponse(message=f"Service '{name}' stopped")

    return router
