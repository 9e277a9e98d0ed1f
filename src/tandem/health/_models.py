"""Data models for unit health reporting."""

from dataclasses import dataclass
from enum import StrEnum


class HealthPhase(StrEnum):
    """Health phases of the unit.

    - STARTING: No successful poll yet and not enough counted failures
    - HEALTHY: The most recent counted poll outcome is healthy
    - UNHEALTHY: Consecutive counted failures reached the retry threshold
    """

    STARTING = "starting"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


@dataclass(frozen=True, slots=True)
class HealthPolicy:
    """How the primary service's readiness endpoint is polled.

    Attributes:
        url: Readiness endpoint of the primary service.
        interval: Seconds between polls.
        timeout: Per-poll timeout in seconds.
        start_period: Seconds after the reporter starts during which
            failures are not counted. A success ends it early.
        retries: Consecutive counted failures before the unit is unhealthy.
    """

    url: str
    interval: float = 30.0
    timeout: float = 10.0
    start_period: float = 60.0
    retries: int = 3


@dataclass(frozen=True, slots=True)
class HealthStatus:
    """Snapshot of the unit's health.

    Attributes:
        is_healthy: Whether the unit currently reports healthy.
        phase: Current health phase.
        last_check_time: ISO 8601 timestamp of the last poll, if any.
        consecutive_failures: Counted failures since the last success.
        last_error: Description of the last failed poll, if any.
    """

    is_healthy: bool = False
    phase: HealthPhase = HealthPhase.STARTING
    last_check_time: str | None = None
    consecutive_failures: int = 0
    last_error: str | None = None
