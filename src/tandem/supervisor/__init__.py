"""Supervisor package for the unit's subprocess services.

This package launches each managed service as its own process group,
streams its output to per-service logs, restarts it at a constant
interval whenever it exits, and stops it with a graceful-then-forced
termination.

Key Components:
    - ServiceSpec: Immutable service definition
    - ServiceState: Lifecycle state enumeration
    - ServiceStatus: Runtime status tracking
    - ServiceEvent: Lifecycle event records
    - OutputSink: Protocol for output consumption
    - LogFileOutputSink: Per-service log file implementation
    - ConcatenatedOutputSink: Console output implementation
    - ProcessLauncher: Protocol for spawning processes
    - SubprocessLauncher: Process-group launcher built on anyio
    - ConstantBackoff: Fixed restart delay
    - ServiceManager: Single service lifecycle manager
    - Supervisor: Multi-service coordinator
    - create_control_router: FastAPI endpoint factory

Example:
    >>> from tandem.supervisor import ServiceSpec, Supervisor
    >>> specs = [
    ...     ServiceSpec(name="backend", command=("uvicorn", "app:app")),
    ...     ServiceSpec(name="frontend", command=("node", "server.js")),
    ... ]
    >>> async with Supervisor() as supervisor:
    ...     await supervisor.start(specs)
"""

from ._api import create_control_router
from ._backoff import ConstantBackoff
from ._launcher import ProcessGroup, SubprocessLauncher
from ._models import (
    LogTargets,
    RestartPolicy,
    ServiceEvent,
    ServiceEventType,
    ServiceSpec,
    ServiceState,
    ServiceStatus,
)
from ._output import ConcatenatedOutputSink, LogFileOutputSink, TeeOutputSink
from ._protocol import ManagedProcess, OutputSink, ProcessLauncher
from ._service import ServiceManager
from ._supervisor import Supervisor

__all__ = [
    "ConcatenatedOutputSink",
    "ConstantBackoff",
    "LogFileOutputSink",
    "LogTargets",
    "ManagedProcess",
    "OutputSink",
    "ProcessGroup",
    "ProcessLauncher",
    "RestartPolicy",
    "ServiceEvent",
    "ServiceEventType",
    "ServiceManager",
    "ServiceSpec",
    "ServiceState",
    "ServiceStatus",
    "SubprocessLauncher",
    "Supervisor",
    "TeeOutputSink",
    "create_control_router",
]
