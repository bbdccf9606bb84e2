"""
ETH Price Feed - Price Acquisition and Conversion Module

This module provides a resilient ETH/USD rate for display consumers:
- currency: Precision-safe wei/ETH/USD conversion
- PriceQuote: Validated quotes and fetch pass results
- PriceStore: Owned price state with subscriptions
- PriceFetcher: Ordered fail-over across price sources
- PriceCache: Cache window in front of the fetcher
- RetryController: Exponential backoff for exhausted passes
- PriceScheduler: Fast, robust and visibility-driven refreshes
- SourceHealth: Per-source success/failure tracking
- sources: Modular price source implementations
"""

from .currency import (
    CurrencyDisplay,
    StreamRate,
    UsdRates,
    eth_to_usd,
    parse_usd_input,
    usd_per_second_to_wei_per_second,
    wei_per_second_to_usd,
)
from .price_cache import PriceCache, should_skip_fetch
from .PriceFetcher import PriceFetcher
from .PriceQuote import (
    DEFAULT_FALLBACK_PRICE,
    FALLBACK_SOURCE,
    FetchResult,
    PriceQuote,
    fallback_quote,
)
from .PriceScheduler import PriceScheduler
from .PriceStore import PriceState, PriceStore
from .RetryController import RetryController, exponential_delays
from .SourceHealth import SourceHealth, SourceStatus

__all__ = [
    "CurrencyDisplay",
    "DEFAULT_FALLBACK_PRICE",
    "FALLBACK_SOURCE",
    "FetchResult",
    "PriceCache",
    "PriceFetcher",
    "PriceQuote",
    "PriceScheduler",
    "PriceState",
    "PriceStore",
    "RetryController",
    "SourceHealth",
    "SourceStatus",
    "StreamRate",
    "UsdRates",
    "eth_to_usd",
    "exponential_delays",
    "fallback_quote",
    "parse_usd_input",
    "should_skip_fetch",
    "usd_per_second_to_wei_per_second",
    "wei_per_second_to_usd",
]
