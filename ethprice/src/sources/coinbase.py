"""Coinbase exchange-rates source.

Endpoint: https://api.coinbase.com/v2/exchange-rates?currency=ETH
Rate Limit: High (no key required)
"""

from decimal import Decimal
from typing import Any

from .base import PriceSource, register_source, to_decimal


@register_source
class CoinbaseSource(PriceSource):
    """Source for the Coinbase public exchange-rates API.

    Response shape: ``{"data": {"currency": "ETH", "rates": {"USD": "3412.5", ...}}}``
    """

    name = "coinbase"
    URL = "https://api.coinbase.com/v2/exchange-rates"
    DEFAULT_TIMEOUT = 3.0

    @property
    def params(self) -> dict[str, str]:
        return {"currency": "ETH"}

    def parse(self, data: Any) -> Decimal:
        return to_decimal(data["data"]["rates"]["USD"])
