"""PriceFetcher: Ordered fail-over across the source registry.

One call to fetch_price() is one pass over the registry:
    - Sources are tried strictly in registry order, one at a time
    - Each attempt is cancelled once the source's timeout elapses
    - A timeout, network/HTTP error or invalid price moves on to the next
      source; a source is never retried within the same pass
    - The first valid price ends the pass; later sources are not consulted
    - If every source fails, the fallback quote is published with a fresh
      timestamp. This is a normal outcome, not an error: consumers only see
      FetchResult.resolved == False and PriceState.last_error_suppressed.
"""

from __future__ import annotations

import asyncio
import logging
import time

from .PriceQuote import FetchResult, PriceQuote, fallback_quote
from .PriceStore import PriceStore
from .SourceHealth import SourceHealth
from .sources import PriceSource, SourceError

logger = logging.getLogger(__name__)


class PriceFetcher:
    """Fetch executor writing its results into a PriceStore.

    :ivar sources: Ordered source registry, most trusted first.
    :ivar store: Store receiving loading flags and quotes.
    :ivar health: Per-source outcome tracker.
    """

    def __init__(
        self,
        sources: list[PriceSource],
        store: PriceStore | None = None,
        health: SourceHealth | None = None,
    ) -> None:
        """Initialize the fetcher.

        :param sources: Ordered source registry.
        :param store: Price store (default: a new store with the default
            fallback price).
        :param health: Outcome tracker (default: tracks ``sources``).
        :raises ValueError: If two sources share a name.
        """
        names = [s.name for s in sources]
        if len(set(names)) != len(names):
            raise ValueError(f"Source names must be unique: {names}")
        if not sources:
            logger.warning("PriceFetcher has no sources, every pass will fall back")

        self.sources = list(sources)
        self.store = store if store is not None else PriceStore()
        self.health = health if health is not None else SourceHealth(names)

    async def _try_source(self, source: PriceSource) -> PriceQuote:
        """Fetch one quote from a source within its timeout.

        :raises asyncio.TimeoutError: If the timeout elapses first.
        :raises SourceError: On network, HTTP or payload failures.
        :raises ValueError: If the parsed value is not a valid price.
        """
        value = await asyncio.wait_for(source.fetch(), timeout=source.timeout)
        return PriceQuote(
            value_usd_per_unit=value,
            observed_at=time.time(),
            source_name=source.name,
        )

    async def fetch_price(self) -> FetchResult:
        """Run one pass over the registry and publish the outcome.

        Never raises (except on cancellation of the calling task).

        :returns: FetchResult for the first valid source, or the fallback.
        """
        self.store.set_loading(True)
        failures: dict[str, str] = {}

        try:
            for source in self.sources:
                logger.debug(f"[{source.name}] Trying (timeout {source.timeout}s)")
                started = time.monotonic()
                try:
                    quote = await self._try_source(source)
                except asyncio.TimeoutError:
                    reason = f"timeout after {source.timeout}s"
                except SourceError as e:
                    reason = str(e)
                except ValueError as e:
                    reason = f"invalid price: {e}"
                except Exception as e:  # misbehaving source
                    reason = f"{type(e).__name__}: {e}"
                else:
                    latency = time.monotonic() - started
                    status = self.health.get_source_status(source.name)
                    if status is not None and status.consecutive_failures:
                        logger.info(
                            f"[{source.name}] Recovered after "
                            f"{status.consecutive_failures} failed attempts"
                        )
                    self.health.record_success(source.name, latency=latency)
                    logger.info(
                        f"[{source.name}] ETH/USD {quote} in {latency:.2f}s"
                    )
                    self.store.publish(quote)
                    return FetchResult(quote=quote, resolved=True, failures=failures)

                failures[source.name] = reason
                count = self.health.record_failure(source.name, reason)
                logger.warning(f"[{source.name}] Failed ({count} in a row): {reason}")

        except asyncio.CancelledError:
            self.store.set_loading(False)
            raise

        quote = fallback_quote(self.store.fallback_price)
        logger.warning(
            f"All {len(self.sources)} price sources failed, "
            f"using fallback {quote} [{self.health.summary()}]"
        )
        self.store.publish(quote, error_suppressed=True)
        return FetchResult(quote=quote, resolved=False, failures=failures)
