"""PriceScheduler: Drives the refresh cadences of the ETH/USD feed.

Architecture:
    - One asyncio event loop, no threads; tasks suspend only on I/O and sleeps
    - Start-up: one robust refresh (retry with backoff) right away
    - Fast timer (default 30s): cache-gated refresh, no backoff
    - Robust timer (default 120s): cache-gated refresh with backoff retries
    - Visibility regain: cache-gated refresh if the last success is stale
    - Each timer tick spawns the refresh as its own task, so stopping the
      timers never cancels a fetch that is already running; its result is
      still published (last write wins)

The fast and robust cadences are independent and may overlap. Both write
the same PriceStore; every write is a whole-record replacement, so the
latest pass to finish simply wins.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Awaitable, Callable, Sequence

from .price_cache import DEFAULT_CACHE_DURATION, PriceCache
from .PriceFetcher import PriceFetcher
from .PriceQuote import DEFAULT_FALLBACK_PRICE, FetchResult
from .PriceStore import PriceState, PriceStore
from .RetryController import DEFAULT_RETRY_DELAYS, RetryController
from .sources import DEFAULT_SOURCE_ORDER, PriceSource, build_registry

logger = logging.getLogger(__name__)

DEFAULT_FAST_PERIOD = 30.0
DEFAULT_ROBUST_PERIOD = 120.0


class PriceScheduler:
    """Owner of the price pipeline and its timers.

    :ivar store: Price store read by consumers.
    :ivar fetcher: Fetch executor.
    :ivar cache: Cache gate in front of the fetcher.
    :ivar retry: Backoff controller used by robust refreshes.
    :ivar fast_period: Seconds between fast refreshes.
    :ivar robust_period: Seconds between robust refreshes.
    """

    def __init__(
        self,
        sources: list[PriceSource],
        store: PriceStore | None = None,
        fast_period: float = DEFAULT_FAST_PERIOD,
        robust_period: float = DEFAULT_ROBUST_PERIOD,
        cache_duration: float = DEFAULT_CACHE_DURATION,
        retry_delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
    ) -> None:
        """Initialize the scheduler.

        :param sources: Ordered source registry, most trusted first.
        :param store: Price store (default: new store with fallback 3400).
        :param fast_period: Seconds between fast refreshes (default: 30).
        :param robust_period: Seconds between robust refreshes (default: 120).
        :param cache_duration: Cache window in seconds (default: 30).
        :param retry_delays: Backoff schedule in seconds (default: 1, 2, 5).
        :raises ValueError: If a period is not positive.
        """
        if fast_period <= 0 or robust_period <= 0:
            raise ValueError("refresh periods must be positive")

        self.store = store if store is not None else PriceStore()
        self.fetcher = PriceFetcher(sources, self.store)
        self.cache = PriceCache(self.fetcher, cache_duration=cache_duration)
        self.retry = RetryController(self.cache, delays=retry_delays)
        self.fast_period = fast_period
        self.robust_period = robust_period

        self._timers: list[asyncio.Task] = []
        self._inflight: set[asyncio.Task] = set()
        self._visible = True
        self._stopped = asyncio.Event()

        logger.info(
            f"PriceScheduler initialized: sources={[s.name for s in sources]}, "
            f"fast_period={fast_period}s, robust_period={robust_period}s, "
            f"cache_duration={cache_duration}s, retry_delays={list(retry_delays)}"
        )

    @classmethod
    def from_names(
        cls,
        names: Sequence[str] = DEFAULT_SOURCE_ORDER,
        api_keys: dict[str, str] | None = None,
        fetch_timeout: float | None = None,
        fallback_price: Decimal = DEFAULT_FALLBACK_PRICE,
        **kwargs,
    ) -> PriceScheduler:
        """Build a scheduler from registered source names.

        :param names: Source names in priority order.
        :param api_keys: Dict mapping source names to API keys.
        :param fetch_timeout: Optional timeout override for every source.
        :param fallback_price: Rate used when no source answers.
        :param kwargs: Remaining PriceScheduler arguments.
        :returns: Configured scheduler.
        :raises ValueError: If a source name is unknown.
        """
        sources = build_registry(list(names), api_keys=api_keys, timeout=fetch_timeout)
        return cls(sources, store=PriceStore(fallback_price), **kwargs)

    @property
    def state(self) -> PriceState:
        """Current price state."""
        return self.store.state

    @property
    def running(self) -> bool:
        """Check if the timers are active."""
        return bool(self._timers)

    async def refresh(self) -> FetchResult | None:
        """Cache-gated fetch pass without retries."""
        return await self.cache.refresh()

    async def robust_refresh(self) -> FetchResult | None:
        """Cache-gated fetch pass with backoff retries."""
        return await self.retry.fetch_with_backoff()

    def _spawn(self, action: Callable[[], Awaitable], label: str) -> asyncio.Task:
        task = asyncio.create_task(action(), name=f"ethprice-{label}")
        self._inflight.add(task)
        task.add_done_callback(self._on_refresh_done)
        return task

    def _on_refresh_done(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"{task.get_name()} failed: {task.exception()!r}")

    async def _every(
        self, period: float, action: Callable[[], Awaitable], label: str
    ) -> None:
        while True:
            await asyncio.sleep(period)
            logger.debug(f"{label} refresh tick")
            self._spawn(action, label)

    def start(self) -> None:
        """Run the start-up refresh and arm both timers.

        Must be called from a running event loop. Calling it again while
        running does nothing.
        """
        if self._timers:
            return
        self._stopped.clear()
        logger.info("Starting ETH price refresh with fallbacks")
        self._spawn(self.robust_refresh, "initial")
        self._timers = [
            asyncio.create_task(
                self._every(self.fast_period, self.refresh, "fast"),
                name="ethprice-fast-timer",
            ),
            asyncio.create_task(
                self._every(self.robust_period, self.robust_refresh, "robust"),
                name="ethprice-robust-timer",
            ),
        ]

    def stop(self) -> None:
        """Cancel both timers; refreshes already running are left to finish."""
        for timer in self._timers:
            timer.cancel()
        if self._timers:
            logger.info("ETH price timers stopped")
        self._timers = []
        self._stopped.set()

    def set_visible(self, visible: bool) -> asyncio.Task | None:
        """Report the consumer's visibility.

        A hidden -> visible transition refreshes the price when the last
        successful fetch is older than the cache window.

        :param visible: True if the consumer is now visible.
        :returns: The spawned refresh task, or None if none was needed.
        """
        was_visible = self._visible
        self._visible = visible
        if visible and not was_visible and self.cache.is_stale():
            logger.info("Consumer visible again, refreshing ETH price")
            return self._spawn(self.refresh, "visibility")
        return None

    async def wait_idle(self) -> None:
        """Wait until no refresh is running."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def aclose(self) -> None:
        """Stop timers, let running refreshes finish, release resources."""
        self.stop()
        await self.wait_idle()
        self.store.clear_listeners()
        await PriceSource.close_shared_client()

    async def run(self) -> None:
        """Start the timers and block until stop() is called or cancelled."""
        self.start()
        try:
            await self._stopped.wait()
        finally:
            await self.aclose()

    async def __aenter__(self) -> PriceScheduler:
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
