"""SourceHealth: Per-source success/failure bookkeeping.

Every pass over the source registry reports each attempted source here.
The record never removes a source from rotation (every pass tries the
whole registry in order); it exists so operators can see which upstreams
are failing and why.

.. code-block:: python

    >>> health = SourceHealth(["coinbase", "etherscan"])
    >>> health.record_failure("coinbase", "timeout")
    1
    >>> health.record_failure("coinbase", "HTTP 503: unavailable")
    2
    >>> health.record_success("coinbase", latency=0.21)
    >>> health.get_source_status("coinbase").consecutive_failures
    0
"""

from __future__ import annotations

import time
from dataclasses import dataclass


@dataclass
class SourceStatus:
    """Tracks the status of a single source.

    :ivar consecutive_failures: Number of consecutive failures.
    :ivar total_failures: Total failures since tracking began.
    :ivar total_successes: Total successes since tracking began.
    :ivar last_error: Reason of the most recent failure.
    :ivar last_success_at: Unix timestamp of the most recent success.
    :ivar last_latency: Duration of the most recent successful request.
    """

    consecutive_failures: int = 0
    total_failures: int = 0
    total_successes: int = 0
    last_error: str | None = None
    last_success_at: float = 0.0
    last_latency: float | None = None


class SourceHealth:
    """Per-source outcome tracker.

    :ivar sources: List of tracked source names, in registry order.
    """

    def __init__(self, sources: list[str]) -> None:
        """Initialize the tracker.

        :param sources: List of source names to track.
        """
        self.sources = list(sources)
        self._status: dict[str, SourceStatus] = {s: SourceStatus() for s in sources}

    def _ensure(self, source: str) -> SourceStatus:
        if source not in self._status:
            self.sources.append(source)
            self._status[source] = SourceStatus()
        return self._status[source]

    def record_failure(self, source: str, reason: str) -> int:
        """Record a failure for a source.

        :param source: Source name that failed.
        :param reason: Short failure description.
        :returns: Consecutive failure count after this failure.
        """
        status = self._ensure(source)
        status.consecutive_failures += 1
        status.total_failures += 1
        status.last_error = reason[:200]
        return status.consecutive_failures

    def record_success(self, source: str, latency: float | None = None) -> None:
        """Record a successful fetch, resetting the failure counter.

        :param source: Source name that succeeded.
        :param latency: Request duration in seconds.
        """
        status = self._ensure(source)
        status.consecutive_failures = 0
        status.total_successes += 1
        status.last_success_at = time.time()
        status.last_latency = latency

    def get_source_status(self, source: str) -> SourceStatus | None:
        """Get the status of a specific source.

        :param source: Source name to query.
        :returns: SourceStatus or None if source not tracked.
        """
        return self._status.get(source)

    def summary(self) -> str:
        """One-line summary for logs, e.g. "coinbase=3/0 etherscan=0/2!".

        Each entry is successes/failures; "!" marks a failing source.
        """
        parts = []
        for source in self.sources:
            status = self._status[source]
            mark = "!" if status.consecutive_failures else ""
            parts.append(
                f"{source}={status.total_successes}/{status.total_failures}{mark}"
            )
        return " ".join(parts)
