"""Service definitions for the unit's two managed services.

The backend (primary) serves the API with uvicorn; the frontend
(secondary) serves the web application with Next.js.
"""

import sys
from pathlib import Path  # noqa: TC003 - Used in runtime type annotations

from tandem.config import EffectiveConfig, UnitSettings
from tandem.supervisor import LogTargets, RestartPolicy, ServiceSpec

BACKEND = "backend"
FRONTEND = "frontend"

# Both services accept connections from outside the container
BIND_HOST = "0.0.0.0"  # noqa: S104


def service_log_targets(log_dir: Path, name: str) -> LogTargets:
    """Return the stdout/stderr log files for a service."""
    return LogTargets(
        stdout_path=log_dir / f"{name}.out.log",
        stderr_path=log_dir / f"{name}.err.log",
    )


def create_backend_service(
    config: EffectiveConfig, settings: UnitSettings
) -> ServiceSpec:
    """Create the service spec for the API backend.

    Args:
        config: Effective configuration of the unit.
        settings: Supervisor settings.

    Returns:
        ServiceSpec running uvicorn on the backend port.
    """
    command: tuple[str, ...] = (
        sys.executable,
        "-m",
        "uvicorn",
        settings.backend_app,
        "--host",
        BIND_HOST,
        "--port",
        str(config.backend_port),
    )
    if settings.dev:
        command += ("--reload",)

    return ServiceSpec(
        name=BACKEND,
        command=command,
        cwd=settings.app_dir,
        env={
            "PYTHONPATH": str(settings.app_dir),
            "PYTHONUNBUFFERED": "1",
            "BACKEND_PORT": str(config.backend_port),
        },
        restart_policy=RestartPolicy.ALWAYS,
        start_delay=settings.backend_start_delay,
        log_targets=service_log_targets(settings.log_dir, BACKEND),
        port=config.backend_port,
        stop_timeout=settings.stop_timeout,
        kill_timeout=settings.kill_timeout,
    )


def create_frontend_service(
    config: EffectiveConfig, settings: UnitSettings
) -> ServiceSpec:
    """Create the service spec for the web frontend.

    The frontend reads the derived env file in its working directory when
    it starts, so the file must be written before this service launches.

    Args:
        config: Effective configuration of the unit.
        settings: Supervisor settings.

    Returns:
        ServiceSpec running Next.js on the frontend port.
    """
    mode = "dev" if settings.dev else "start"
    command = (
        settings.node_bin,
        "node_modules/next/dist/bin/next",
        mode,
        "-H",
        BIND_HOST,
        "-p",
        str(config.frontend_port),
    )

    return ServiceSpec(
        name=FRONTEND,
        command=command,
        cwd=settings.resolved_web_dir,
        env={
            "NODE_ENV": "development" if settings.dev else "production",
            "FRONTEND_PORT": str(config.frontend_port),
            "NEXT_PUBLIC_API_BASE": config.api_base_url,
        },
        restart_policy=RestartPolicy.ALWAYS,
        start_delay=settings.frontend_start_delay,
        log_targets=service_log_targets(settings.log_dir, FRONTEND),
        port=config.frontend_port,
        stop_timeout=settings.stop_timeout,
        kill_timeout=settings.kill_timeout,
    )


def create_service_specs(
    config: EffectiveConfig, settings: UnitSettings
) -> tuple[ServiceSpec, ...]:
    """Return the unit's services in start order: backend, then frontend."""
    return (
        create_backend_service(config, settings),
        create_frontend_service(config, settings),
    )


def health_url(config: EffectiveConfig, settings: UnitSettings) -> str:
    """Return the backend readiness URL polled by the health reporter."""
    path = settings.health_path
    if not path.startswith("/"):
        path = f"/{path}"
    return f"http://localhost:{config.backend_port}{path}"
