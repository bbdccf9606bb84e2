"""RetryController: Repeat exhausted fetch passes with growing delays.

A pass that ends on the fallback quote is retried after the next delay in
the schedule, until a source answers or the schedule runs out. Each retry
is a full pass over the registry; nothing is reset in between. When the
schedule is exhausted the fallback quote stands for this cycle.

.. code-block:: python

    >>> exponential_delays(1.0, 4)
    (1.0, 2.0, 4.0, 8.0)
    >>> exponential_delays(5.0, 4, max_delay=12.0)
    (5.0, 10.0, 12.0, 12.0)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Sequence

from .price_cache import PriceCache
from .PriceQuote import FetchResult

logger = logging.getLogger(__name__)

# Seconds to wait before each retry of an exhausted pass
DEFAULT_RETRY_DELAYS: tuple[float, ...] = (1.0, 2.0, 5.0)


def exponential_delays(
    base_delay: float, count: int, max_delay: float | None = None
) -> tuple[float, ...]:
    """Build a doubling delay schedule: base * 2^(n-1), optionally capped.

    :param base_delay: First delay in seconds.
    :param count: Number of delays.
    :param max_delay: Optional cap for each delay.
    :returns: Tuple of delays in seconds.
    :raises ValueError: If base_delay is negative or count is negative.
    """
    if base_delay < 0:
        raise ValueError("base_delay must not be negative")
    if count < 0:
        raise ValueError("count must not be negative")
    delays = []
    for attempt in range(1, count + 1):
        delay = base_delay * (2 ** (attempt - 1))
        if max_delay is not None:
            delay = min(delay, max_delay)
        delays.append(float(delay))
    return tuple(delays)


class RetryController:
    """Wraps cache-gated fetch passes in a backoff loop.

    :ivar cache: Cache-gated fetcher invoked for every attempt.
    :ivar delays: Default delay schedule in seconds.
    """

    def __init__(
        self,
        cache: PriceCache,
        delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the retry controller.

        :param cache: Cache-gated fetcher.
        :param delays: Delay schedule in seconds (default: 1, 2, 5).
        :param sleep: Coroutine used to wait between attempts.
        :raises ValueError: If a delay is negative.
        """
        if any(d < 0 for d in delays):
            raise ValueError("retry delays must not be negative")
        self.cache = cache
        self.delays = tuple(delays)
        self._sleep = sleep

    async def fetch_with_backoff(
        self, delays: Sequence[float] | None = None
    ) -> FetchResult | None:
        """Fetch, retrying exhausted passes after each delay in turn.

        :param delays: Delay schedule overriding the default for this call.
        :returns: Result of the last attempt, or None if the cache skipped
            the first attempt.
        """
        schedule = self.delays if delays is None else tuple(delays)
        result = await self.cache.refresh()

        for attempt, delay in enumerate(schedule, start=1):
            if result is None or result.resolved:
                break
            logger.info(
                f"All sources failed, retry {attempt}/{len(schedule)} in {delay:.1f}s"
            )
            await self._sleep(delay)
            result = await self.cache.refresh()

        if result is not None and result.exhausted:
            logger.warning(
                f"Retries exhausted, keeping fallback {result.quote} for this cycle"
            )
        return result
