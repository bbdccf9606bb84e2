"""CryptoCompare source.

Endpoint: https://min-api.cryptocompare.com/data/price?fsym=ETH&tsyms=USD
Rate Limit: 100,000 calls/month (free tier)
"""

import logging
from decimal import Decimal
from typing import Any

from .base import PriceSource, SourcePayloadError, register_source, to_decimal

logger = logging.getLogger(__name__)


@register_source
class CryptoCompareSource(PriceSource):
    """Source for the CryptoCompare min-api simple price endpoint.

    Response shape: ``{"USD": 3405.77}``
    """

    name = "cryptocompare"
    URL = "https://min-api.cryptocompare.com/data/price"
    DEFAULT_TIMEOUT = 4.0

    @property
    def params(self) -> dict[str, str]:
        return {"fsym": "ETH", "tsyms": "USD"}

    async def fetch(self) -> Decimal:
        # The key goes in a header rather than the query string
        if not self.has_api_key:
            return await super().fetch()
        response = await self._get(
            self.URL,
            params=self.params,
            headers={"authorization": f"Apikey {self.api_key}"},
        )
        return self._parse_response(response)

    def parse(self, data: Any) -> Decimal:
        if data.get("Response") == "Error":
            message = data.get("Message", "Unknown error")
            logger.warning(f"[cryptocompare] API error: {message}")
            raise SourcePayloadError(f"API error: {message}")
        return to_decimal(data["USD"])
