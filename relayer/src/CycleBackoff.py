"""CycleBackoff: Delay between relay cycles with exponential backoff.

While cycles succeed the relayer waits a fixed interval. When a cycle fails
with a transient error (network, timeout, signing), the delay doubles with
each consecutive failure, up to a maximum. Permanent errors (schema
violations, parse errors, reverted transactions) wait at least a cooldown, which
can be set longer since retrying right away would fail the same way. A successful
cycle resets the counter.

By default both the cap and the cooldown equal the interval, so every
cycle waits the same fixed delay; backoff is opt-in.

.. code-block:: python

    >>> backoff = CycleBackoff(interval=10, max_backoff_seconds=60)
    >>> backoff.record_failure(transient=True)
    10.0
    >>> backoff.record_failure(transient=True)
    20.0
    >>> backoff.record_success()
    10.0
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class BackoffStatus:
    """Tracks the outcome of recent relay cycles.

    :ivar consecutive_failures: Number of consecutive failed cycles.
    :ivar total_failures: Failed cycles since tracking began.
    :ivar total_successes: Successful cycles since tracking began.
    :ivar last_delay: Delay returned for the most recent cycle.
    """

    consecutive_failures: int = 0
    total_failures: int = 0
    total_successes: int = 0
    last_delay: float = 0.0


class CycleBackoff:
    """Computes the wait before the next relay cycle.

    Transient failures back off exponentially:
        - First failure: interval
        - Second failure: 2 * interval
        - Third failure: 4 * interval
        - ... up to max_backoff_seconds

    Leaving ``max_backoff_seconds`` and ``cooldown_seconds`` unset gives a
    fixed delay regardless of outcome.

    :ivar interval: Delay after a successful cycle.
    :ivar max_backoff_seconds: Maximum delay after transient failures.
    :ivar cooldown_seconds: Minimum delay after a permanent failure.
    """

    def __init__(
        self,
        interval: float,
        max_backoff_seconds: float | None = None,
        cooldown_seconds: float | None = None,
    ) -> None:
        """Initialize the backoff policy.

        :param interval: Delay after a successful cycle in seconds.
        :param max_backoff_seconds: Cap on transient backoff; raised to
            interval if smaller or unset.
        :param cooldown_seconds: Minimum delay after a permanent failure
            (default: interval).
        :raises ValueError: If interval is not positive.
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = float(interval)
        if max_backoff_seconds is None:
            max_backoff_seconds = self.interval
        if cooldown_seconds is None:
            cooldown_seconds = self.interval
        self.max_backoff_seconds = max(float(max_backoff_seconds), self.interval)
        self.cooldown_seconds = float(cooldown_seconds)
        self.status = BackoffStatus()

    def record_success(self) -> float:
        """Record a successful cycle, resetting the failure counter.

        :returns: The delay before the next cycle.
        """
        self.status.consecutive_failures = 0
        self.status.total_successes += 1
        self.status.last_delay = self.interval
        return self.interval

    def record_failure(self, transient: bool = True) -> float:
        """Record a failed cycle and compute the backoff.

        :param transient: False for errors that will repeat on immediate retry.
        :returns: The delay before the next cycle.
        """
        self.status.consecutive_failures += 1
        self.status.total_failures += 1

        # Exponential backoff: interval * 2^(failures-1), capped at max.
        # The exponent is bounded so long outages cannot overflow the float.
        delay = min(
            self.interval * (2 ** min(self.status.consecutive_failures - 1, 32)),
            self.max_backoff_seconds,
        )
        if not transient:
            delay = max(delay, self.cooldown_seconds)

        self.status.last_delay = delay
        return delay

    def reset(self) -> None:
        """Reset all counters to the initial state."""
        self.status = BackoffStatus()
