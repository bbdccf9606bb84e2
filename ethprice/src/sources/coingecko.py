"""CoinGecko source.

Endpoint: https://api.coingecko.com/api/v3/simple/price?ids=ethereum&vs_currencies=usd
Rate Limit: 30 calls/min (free), higher with API key
"""

from decimal import Decimal
from typing import Any

from .base import PriceSource, register_source, to_decimal


@register_source
class CoinGeckoSource(PriceSource):
    """Source for the CoinGecko simple price API.

    API tiers:
        - Free: api.coingecko.com (no key, 30 calls/min)
        - Demo: api.coingecko.com + x-cg-demo-api-key header
        - Pro: pro-api.coingecko.com + x-cg-pro-api-key header

    To use a demo key, prefix with "demo:": API_KEY_COINGECKO=demo:CG-xxxxx
    Pro keys need no prefix: API_KEY_COINGECKO=xxxxx

    Response shape: ``{"ethereum": {"usd": 3398.2, "last_updated_at": 1717000000}}``
    """

    name = "coingecko"
    BASE_URL_FREE = "https://api.coingecko.com/api/v3"
    BASE_URL_PRO = "https://pro-api.coingecko.com/api/v3"
    URL = f"{BASE_URL_FREE}/simple/price"
    DEFAULT_TIMEOUT = 5.0
    COIN_ID = "ethereum"

    def __init__(self, api_key: str | None = None, timeout: float | None = None):
        """Initialize with optional demo: prefix handling."""
        self._is_demo = False
        if api_key and api_key.lower().startswith("demo:"):
            self._is_demo = True
            api_key = api_key[5:]  # Strip "demo:" prefix
        super().__init__(api_key=api_key, timeout=timeout)

    @property
    def base_url(self) -> str:
        """Return appropriate base URL based on API key type."""
        if not self.has_api_key:
            return self.BASE_URL_FREE
        # Demo keys use free URL, pro keys use pro URL
        return self.BASE_URL_FREE if self._is_demo else self.BASE_URL_PRO

    @property
    def api_header(self) -> tuple[str, str] | None:
        """Return appropriate header name and value for API key."""
        if not self.api_key:
            return None
        header_name = "x-cg-demo-api-key" if self._is_demo else "x-cg-pro-api-key"
        return (header_name, self.api_key)

    @property
    def params(self) -> dict[str, str]:
        return {
            "ids": self.COIN_ID,
            "vs_currencies": "usd",
            "include_last_updated_at": "true",
        }

    async def fetch(self) -> Decimal:
        headers = None
        if self.api_header:
            header_name, header_value = self.api_header
            headers = {header_name: header_value}

        response = await self._get(
            f"{self.base_url}/simple/price", params=self.params, headers=headers
        )
        return self._parse_response(response)

    def parse(self, data: Any) -> Decimal:
        return to_decimal(data[self.COIN_ID]["usd"])
