"""Constant backoff for service restarts.

Long-running services are relaunched at a fixed interval for as long as
they keep exiting; the delay does not grow with the attempt number.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ConstantBackoff:
    """Fixed restart delay.

    Attributes:
        interval: Delay in seconds before each relaunch.
    """

    interval: float = 1.0

    def delay(
        self,
        attempt: int,  # noqa: ARG002
        *,
        uptime: float | None = None,
        min_uptime: float = 0.0,
    ) -> float:
        """Calculate the delay before a relaunch.

        Args:
            attempt: The attempt number (0-indexed). Does not affect the delay.
            uptime: Seconds the previous process ran, if known.
            min_uptime: Seconds a process must run before it counts as started.
                If the previous process exited sooner, the delay is extended so
                the relaunch happens no sooner than ``min_uptime`` after the
                previous launch.

        Returns:
            The delay in seconds before the next relaunch.
        """
        if uptime is None or uptime >= min_uptime:
            return self.interval
        return max(self.interval, min_uptime - uptime)
