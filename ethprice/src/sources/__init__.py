"""
ETH/USD price sources.

This module provides a unified interface for fetching the ETH/USD price
from public APIs, and the ordered registry that defines fallback priority.

Usage:
    from ethprice.src.sources import build_registry, get_available_sources

    # Get list of available sources
    available = get_available_sources()
    # ['coinbase', 'coingecko', 'cryptocompare', 'etherscan']

    # Build the ordered registry (most trusted first)
    registry = build_registry(DEFAULT_SOURCE_ORDER)
    price = await registry[0].fetch()

    # For sources accepting API keys
    registry = build_registry(["etherscan"], api_keys={"etherscan": "key"})
"""

# Import base classes and utilities
from .base import (
    SOURCE_REGISTRY,
    PriceSource,
    SourceConfigError,
    SourceError,
    SourceHTTPError,
    SourcePayloadError,
    get_available_sources,
    get_source,
    register_source,
)

# Import all source implementations to trigger registration
from .coinbase import CoinbaseSource
from .coingecko import CoinGeckoSource
from .cryptocompare import CryptoCompareSource
from .etherscan import EtherscanSource

# Fallback priority, most trusted first
DEFAULT_SOURCE_ORDER: tuple[str, ...] = (
    "coinbase",
    "etherscan",
    "cryptocompare",
    "coingecko",
)


def build_registry(
    names: list[str] | tuple[str, ...] = DEFAULT_SOURCE_ORDER,
    api_keys: dict[str, str] | None = None,
    timeout: float | None = None,
) -> list[PriceSource]:
    """Instantiate sources in the given priority order.

    :param names: Source names, most trusted first.
    :param api_keys: Optional dict mapping source names to API keys.
    :param timeout: Optional timeout override applied to every source.
    :returns: Ordered list of source instances.
    :raises ValueError: On unknown or duplicate names.
    """
    duplicates = sorted({n for n in names if list(names).count(n) > 1})
    if duplicates:
        raise ValueError(f"Duplicate sources in registry: {duplicates}")

    api_keys = api_keys or {}
    return [
        get_source(name, api_key=api_keys.get(name), timeout=timeout)
        for name in names
    ]


__all__ = [
    # Base classes
    "PriceSource",
    "SourceError",
    "SourceConfigError",
    "SourceHTTPError",
    "SourcePayloadError",
    # Registry functions
    "register_source",
    "get_source",
    "get_available_sources",
    "build_registry",
    "SOURCE_REGISTRY",
    "DEFAULT_SOURCE_ORDER",
    # Source implementations
    "CoinbaseSource",
    "CoinGeckoSource",
    "CryptoCompareSource",
    "EtherscanSource",
]
