"""Health reporter polling the primary service's readiness endpoint.

The reporter only observes. It never restarts services: restarts are the
supervisor's reaction to process exits, not to failed polls.
"""

import dataclasses
import time
from collections.abc import Callable  # noqa: TC003 - Used in runtime type annotations
from typing import TYPE_CHECKING, final

import anyio
import httpx

from tandem.utils import create_unit_logger, get_timestamp

from ._models import HealthPhase, HealthPolicy, HealthStatus

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

# Any status below this counts as a successful poll, as with `curl -f`.
HTTP_ERROR_THRESHOLD = 400


@final
class HealthReporter:
    """Tracks unit health by polling a readiness endpoint.

    ``check()`` may be called by an external probe and by the internal
    timer loop started with ``run()``; calls are serialized.
    """

    __slots__ = (
        "_client",
        "_clock",
        "_lock",
        "_logger",
        "_owns_client",
        "_start_period_over",
        "_started_at",
        "_status",
        "policy",
    )

    def __init__(
        self,
        policy: HealthPolicy,
        client: httpx.AsyncClient | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> None:
        """Initialize the reporter.

        The start period begins now.

        Args:
            policy: Polling policy.
            client: HTTP client to poll with. A private client is created
                and owned by the reporter if None.
            clock: Monotonic clock in seconds.
            logger: Logger for health transitions.
        """
        self.policy = policy
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()
        self._clock = clock
        self._logger = logger or create_unit_logger()
        self._lock = anyio.Lock()
        self._started_at = clock()
        self._start_period_over = False
        self._status = HealthStatus()

    @property
    def status(self) -> HealthStatus:
        """Return the latest health snapshot."""
        return self._status

    def in_start_period(self) -> bool:
        """Check whether failures are currently not counted."""
        if self._start_period_over:
            return False
        return self._clock() - self._started_at < self.policy.start_period

    async def _probe(self) -> str | None:
        """Poll the readiness endpoint once.

        Returns:
            None on success, otherwise a description of the failure.
        """
        with anyio.move_on_after(self.policy.timeout) as scope:
            try:
                response = await self._client.get(
                    self.policy.url, timeout=self.policy.timeout
                )
            except httpx.HTTPError as e:
                return f"{type(e).__name__}: {e}"

        if scope.cancelled_caught:
            return f"Timed out after {self.policy.timeout:g}s"
        if response.status_code >= HTTP_ERROR_THRESHOLD:
            return f"HTTP {response.status_code}"
        return None

    def _next_status(self, error: str | None, checked_at: str) -> HealthStatus:
        previous = self._status

        if error is None:
            self._start_period_over = True
            return HealthStatus(
                is_healthy=True,
                phase=HealthPhase.HEALTHY,
                last_check_time=checked_at,
            )

        if self.in_start_period():
            return dataclasses.replace(
                previous, last_check_time=checked_at, last_error=error
            )

        failures = previous.consecutive_failures + 1
        phase = (
            HealthPhase.UNHEALTHY if failures >= self.policy.retries else previous.phase
        )
        return HealthStatus(
            is_healthy=phase == HealthPhase.HEALTHY,
            phase=phase,
            last_check_time=checked_at,
            consecutive_failures=failures,
            last_error=error,
        )

    async def check(self) -> HealthStatus:
        """Poll once and update the health status.

        Returns:
            The updated health snapshot.
        """
        async with self._lock:
            error = await self._probe()
            previous = self._status
            self._status = self._next_status(error, get_timestamp())

            if error is not None:
                self._logger.debug(
                    "health_check_failed",
                    url=self.policy.url,
                    error=error,
                    consecutive_failures=self._status.consecutive_failures,
                )

            if self._status.phase != previous.phase:
                log = (
                    self._logger.warning
                    if self._status.phase == HealthPhase.UNHEALTHY
                    else self._logger.info
                )
                log(
                    "health_changed",
                    phase=self._status.phase.value,
                    previous=previous.phase.value,
                    consecutive_failures=self._status.consecutive_failures,
                )

            return self._status

    async def run(self) -> None:
        """Poll on a fixed interval until cancelled."""
        while True:
            await anyio.sleep(self.policy.interval)
            _ = await self.check()

    async def aclose(self) -> None:
        """Close the HTTP client if the reporter created it."""
        if self._owns_client:
            await self._client.aclose()
