"""Data models for the supervisor system.

This module defines the core data types for service management:
- RestartPolicy: What to do when a service's process exits
- ServiceState: Lifecycle states for managed services
- ServiceEventType: Types of lifecycle events
- ServiceEvent: Immutable event records
- LogTargets: Per-service output files
- ServiceSpec: Immutable service definition
- ServiceStatus: Mutable runtime status
"""

from collections.abc import Mapping  # noqa: TC003 - Used in runtime type annotations
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path  # noqa: TC003 - Used in runtime type annotations


class RestartPolicy(StrEnum):
    """Restart behavior applied when a service's process exits.

    - ALWAYS: Restart after every exit, normal or signalled
    - ON_FAILURE: Restart only after a non-zero or signalled exit
    - NEVER: Leave the service exited
    """

    ALWAYS = "always"
    ON_FAILURE = "on-failure"
    NEVER = "never"


class ServiceState(StrEnum):
    """Service lifecycle states.

    States represent the current operational status of a managed service:
    - PENDING: Declared but not launched yet
    - STARTING: Launched, still inside its start delay window
    - RUNNING: Running past its start delay
    - EXITED: Process exited and will not be restarted
    - RESTARTING: Process exited and is waiting out the backoff
    - STOPPING: A stop request is terminating the process group
    - STOPPED: Stopped by request
    """

    PENDING = "pending"
    STARTING = "starting"
    RUNNING = "running"
    EXITED = "exited"
    RESTARTING = "restarting"
    STOPPING = "stopping"
    STOPPED = "stopped"


class ServiceEventType(StrEnum):
    """Types of service lifecycle events."""

    STARTED = "started"
    START_FAILED = "start_failed"
    EXITED = "exited"
    RESTARTING = "restarting"
    STOPPED = "stopped"


@dataclass(frozen=True, slots=True)
class ServiceEvent:
    """Immutable service lifecycle event.

    Attributes:
        service_name: Name of the service that generated the event.
        event_type: Type of lifecycle event.
        timestamp: ISO 8601 formatted timestamp.
        pid: Process ID if applicable.
        exit_code: Exit code if process terminated.
        restart_count: Restart count at the time of the event.
        message: Optional human-readable message.
    """

    service_name: str
    event_type: ServiceEventType
    timestamp: str
    pid: int | None = None
    exit_code: int | None = None
    restart_count: int = 0
    message: str | None = None


@dataclass(frozen=True, slots=True)
class LogTargets:
    """Files a service's output streams are appended to.

    Attributes:
        stdout_path: Destination for stdout lines.
        stderr_path: Destination for stderr lines.
    """

    stdout_path: Path
    stderr_path: Path


@dataclass(frozen=True, slots=True)
class ServiceSpec:
    """Definition of a managed service.

    Immutable once handed to the supervisor.

    Attributes:
        name: Unique identifier for the service.
        command: Command and arguments to execute.
        cwd: Working directory for the process.
        env: Environment overlay applied on top of the supervisor's environment.
        restart_policy: What to do when the process exits.
        start_delay: Seconds the process must stay up to count as running.
            A relaunch never happens sooner than this after the previous launch.
        log_targets: Files for stdout/stderr, or None to skip file capture.
        port: Port number the service listens on, if applicable.
        stop_timeout: Seconds to wait for graceful shutdown before force kill.
        kill_timeout: Seconds to wait for the process after force kill.
        max_restarts: Restart cap, or None for unbounded restarts.
    """

    name: str
    command: tuple[str, ...]
    cwd: Path | None = None
    env: Mapping[str, str] = field(default_factory=dict)
    restart_policy: RestartPolicy = RestartPolicy.ALWAYS
    start_delay: float = 1.0
    log_targets: LogTargets | None = None
    port: int | None = None
    stop_timeout: float = 10.0
    kill_timeout: float = 5.0
    max_restarts: int | None = None


@dataclass(slots=True)
class ServiceStatus:
    """Mutable runtime status of a service.

    Owned and updated only by the supervisor.

    Attributes:
        spec: The service definition.
        state: Current service state.
        pid: Process ID of the running service, if any.
        restart_count: Number of times the service has been restarted.
        last_exit_code: Exit code from the last process termination.
        last_start_time: ISO 8601 timestamp of the last launch.
        last_stop_time: ISO 8601 timestamp of the last exit or stop.
    """

    spec: ServiceSpec
    state: ServiceState = ServiceState.PENDING
    pid: int | None = None
    restart_count: int = 0
    last_exit_code: int | None = None
    last_start_time: str | None = None
    last_stop_time: str | None = None

    @property
    def name(self) -> str:
        """Return the service name."""
        return self.spec.name
