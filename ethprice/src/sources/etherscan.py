"""Etherscan ETH price source.

Endpoint: https://api.etherscan.io/api?module=stats&action=ethprice
Rate Limit: 1 call/5s without a key, higher with API key
"""

from decimal import Decimal
from typing import Any

from .base import PriceSource, SourcePayloadError, register_source, to_decimal


@register_source
class EtherscanSource(PriceSource):
    """Source for the Etherscan stats API.

    Works without a key at a low rate limit; API_KEY_ETHERSCAN is passed
    as the ``apikey`` query parameter when configured.

    Response shape: ``{"status": "1", "result": {"ethusd": "3401.12", ...}}``
    """

    name = "etherscan"
    URL = "https://api.etherscan.io/api"
    DEFAULT_TIMEOUT = 4.0

    @property
    def params(self) -> dict[str, str]:
        params = {"module": "stats", "action": "ethprice"}
        if self.has_api_key:
            params["apikey"] = self.api_key
        return params

    def parse(self, data: Any) -> Decimal:
        # Errors come back as HTTP 200 with status "0" and a string result
        if data.get("status") == "0":
            raise SourcePayloadError(f"API error: {data.get('result')}")
        return to_decimal(data["result"]["ethusd"])
