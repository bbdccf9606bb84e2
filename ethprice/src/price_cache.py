"""Cache window in front of the PriceFetcher.

A live quote younger than the cache window suppresses new fetch passes.
The fallback quote never counts as cached: after a total failure the next
trigger always tries the sources again.
"""

from __future__ import annotations

import logging
import time

from .PriceFetcher import PriceFetcher
from .PriceQuote import FetchResult, PriceQuote

logger = logging.getLogger(__name__)

# Minimum seconds between accepted re-fetches of a fresh quote
DEFAULT_CACHE_DURATION = 30.0


def should_skip_fetch(
    now: float,
    last_success_at: float,
    cache_duration: float,
    quote: PriceQuote,
) -> bool:
    """Decide whether a fetch pass can be skipped.

    :param now: Current unix timestamp.
    :param last_success_at: Unix timestamp of the last resolved pass.
    :param cache_duration: Cache window in seconds.
    :param quote: Quote currently held by the store.
    :returns: True only for a live quote inside the cache window.
    """
    if quote.is_fallback:
        return False
    return now - last_success_at < cache_duration


class PriceCache:
    """Cache-gated access to a PriceFetcher.

    :ivar fetcher: Wrapped fetch executor.
    :ivar cache_duration: Cache window in seconds.
    :ivar last_success_at: Start time of the last resolved pass (0 = never).
    """

    def __init__(
        self,
        fetcher: PriceFetcher,
        cache_duration: float = DEFAULT_CACHE_DURATION,
    ) -> None:
        """Initialize the cache.

        :param fetcher: Fetch executor to gate.
        :param cache_duration: Cache window in seconds (default: 30).
        :raises ValueError: If cache_duration is negative.
        """
        if cache_duration < 0:
            raise ValueError("cache_duration must not be negative")
        self.fetcher = fetcher
        self.cache_duration = cache_duration
        self.last_success_at = 0.0

    def is_fresh(self, now: float | None = None) -> bool:
        """Check if the held quote would satisfy the cache right now."""
        now = time.time() if now is None else now
        return should_skip_fetch(
            now,
            self.last_success_at,
            self.cache_duration,
            self.fetcher.store.state.quote,
        )

    def is_stale(self, now: float | None = None) -> bool:
        """Check if the last resolved pass is older than the cache window."""
        now = time.time() if now is None else now
        return now - self.last_success_at > self.cache_duration

    async def refresh(self) -> FetchResult | None:
        """Run a fetch pass unless the cached quote is still fresh.

        :returns: FetchResult of the pass, or None if it was skipped.
        """
        now = time.time()
        if self.is_fresh(now):
            logger.debug(
                f"Using cached ETH price {self.fetcher.store.state.quote} "
                f"({now - self.last_success_at:.1f}s old)"
            )
            return None

        result = await self.fetcher.fetch_price()
        if result.resolved:
            self.last_success_at = now
        return result
