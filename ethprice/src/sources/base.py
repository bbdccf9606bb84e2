"""Base price source interface and shared HTTP client management.

Every ETH/USD source inherits from PriceSource, declares its endpoint and
timeout budget, and implements parse() for its own response shape. Callers
only ever see the parsed Decimal; raw upstream payloads stay inside the
source.

A shared httpx.AsyncClient is used across all sources to avoid connection
overhead.

.. code-block:: python

    @register_source
    class MySource(PriceSource):
        name = "mysource"
        URL = "https://api.example.com/eth/usd"
        DEFAULT_TIMEOUT = 3.0

        def parse(self, data) -> Decimal:
            return Decimal(str(data["price"]))
"""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, ClassVar

import httpx

logger = logging.getLogger(__name__)


class SourceError(Exception):
    """Base exception for price source errors."""

    pass


class SourceConfigError(SourceError):
    """Raised when source configuration is invalid (e.g., unknown name)."""

    pass


class SourcePayloadError(SourceError):
    """Raised when a response body cannot be turned into a price."""

    pass


class SourceHTTPError(SourceError):
    """Raised when HTTP request fails.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str):
        """Initialize the HTTP error.

        :param status_code: HTTP status code.
        :param message: Error message from response.
        """
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


class PriceSource(ABC):
    """Abstract base class for ETH/USD price sources.

    Subclasses must define:
        - name: Class variable identifying the source (e.g., "coinbase")
        - URL: Endpoint queried with a plain GET
        - parse(): Turn the decoded JSON body into a Decimal price

    :cvar name: Unique identifier for this source.
    :cvar URL: Endpoint URL.
    :cvar DEFAULT_TIMEOUT: Timeout budget for one request in seconds.
    :ivar api_key: Optional API key for sources that accept one.
    :ivar timeout: Request timeout in seconds.
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    # Source identification
    name: ClassVar[str] = ""
    URL: ClassVar[str] = ""

    # Default timeout for one request (seconds)
    DEFAULT_TIMEOUT: ClassVar[float] = 5.0

    def __init__(self, api_key: str | None = None, timeout: float | None = None):
        """Initialize the source.

        :param api_key: Optional API key.
        :param timeout: Request timeout in seconds (default: DEFAULT_TIMEOUT).
        :raises SourceConfigError: If timeout is not positive.
        """
        self.api_key = api_key
        self.timeout = timeout if timeout is not None else self.DEFAULT_TIMEOUT
        if self.timeout <= 0:
            raise SourceConfigError(f"[{self.name}] timeout must be positive")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(timeout={self.timeout})"

    @property
    def has_api_key(self) -> bool:
        """Check if this source has an API key configured."""
        return self.api_key is not None and len(self.api_key) > 0

    @property
    def params(self) -> dict[str, str]:
        """Query parameters sent with the request."""
        return {}

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        The client is shared across all source instances to reuse connections.

        :returns: Shared httpx.AsyncClient instance.
        """
        if (
            PriceSource._shared_client is None
            or PriceSource._shared_client.is_closed
        ):
            PriceSource._shared_client = httpx.AsyncClient(
                timeout=httpx.Timeout(10.0, connect=5.0),
                limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
                headers={"Accept": "application/json"},
                follow_redirects=True,
            )
        return PriceSource._shared_client

    @classmethod
    def set_shared_client(cls, client: httpx.AsyncClient | None) -> None:
        """Replace the shared HTTP client (e.g., one with a mock transport)."""
        PriceSource._shared_client = client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        client = PriceSource._shared_client
        if client is not None and not client.is_closed:
            await client.aclose()
        PriceSource._shared_client = None

    @abstractmethod
    def parse(self, data: Any) -> Decimal:
        """Extract the USD price of one ETH from a decoded response body.

        :param data: Decoded JSON body.
        :returns: Price as Decimal (not validated here).
        :raises KeyError, TypeError, ValueError, ArithmeticError: On an
            unexpected payload shape.
        """
        pass

    async def fetch(self) -> Decimal:
        """Fetch and parse the current ETH/USD price.

        :returns: Parsed price.
        :raises SourceError: On network, HTTP or payload failures.
        """
        response = await self._get(self.URL, params=self.params or None)
        return self._parse_response(response)

    def _parse_response(self, response: httpx.Response) -> Decimal:
        """Decode a response body and hand it to parse().

        :param response: Successful HTTP response.
        :returns: Parsed price.
        :raises SourcePayloadError: If the body is not JSON or parse() fails.
        """
        try:
            data = response.json()
        except ValueError as e:
            raise SourcePayloadError(f"Invalid JSON body: {e}") from e

        try:
            return self.parse(data)
        except (
            AttributeError,
            KeyError,
            IndexError,
            TypeError,
            ValueError,
            ArithmeticError,
        ) as e:
            logger.debug(f"[{self.name}] Unexpected payload: {data!r:.200}")
            raise SourcePayloadError(f"Unexpected payload: {e!r}") from e

    async def _get(
        self,
        url: str,
        *,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make an HTTP GET request using the shared client.

        :param url: Request URL.
        :param params: Optional query parameters.
        :param headers: Optional request headers.
        :returns: httpx.Response object.
        :raises SourceHTTPError: On non-2xx response.
        :raises SourceError: On network/timeout errors.
        """
        client = self.get_shared_client()
        try:
            response = await client.get(
                url,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
            if not response.is_success:
                logger.debug(
                    "HTTP GET %s failed with status %s: %s",
                    url,
                    response.status_code,
                    response.text[:200],
                )
                raise SourceHTTPError(response.status_code, response.text[:200])
            return response
        except httpx.TimeoutException as e:
            raise SourceError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise SourceError(f"Request failed: {e}") from e


def to_decimal(value: Any) -> Decimal:
    """Convert a JSON scalar to Decimal without going through binary floats.

    :param value: String or number from a response body.
    :returns: Decimal value.
    :raises TypeError: If value is not a string or number.
    :raises decimal.InvalidOperation: If the string is not numeric.
    """
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise TypeError(f"Expected a numeric value, got {type(value).__name__}")
    return Decimal(str(value).strip())


# Registry of available sources (populated by subclass imports)
SOURCE_REGISTRY: dict[str, type[PriceSource]] = {}


def register_source(cls: type[PriceSource]) -> type[PriceSource]:
    """Decorator to register a source class in the global registry.

    :param cls: Source class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If the source has no name or the name is taken.

    .. code-block:: python

        @register_source
        class CoinbaseSource(PriceSource):
            name = "coinbase"
            ...
    """
    if not cls.name:
        raise ValueError(f"Source {cls.__name__} must define a 'name' class variable")
    existing = SOURCE_REGISTRY.get(cls.name)
    if existing is not None and existing is not cls:
        raise ValueError(f"Source name '{cls.name}' already registered")
    SOURCE_REGISTRY[cls.name] = cls
    return cls


def get_source(
    name: str, api_key: str | None = None, timeout: float | None = None
) -> PriceSource:
    """Get a source instance by name.

    :param name: Source name (e.g., "coinbase", "coingecko").
    :param api_key: Optional API key.
    :param timeout: Optional timeout override in seconds.
    :returns: Source instance.
    :raises ValueError: If source name is unknown.
    """
    if name not in SOURCE_REGISTRY:
        available = ", ".join(sorted(SOURCE_REGISTRY.keys()))
        raise ValueError(f"Unknown source '{name}'. Available: {available}")
    return SOURCE_REGISTRY[name](api_key=api_key, timeout=timeout)


def get_available_sources() -> list[str]:
    """Get list of available source names.

    :returns: Sorted list of registered source names.
    """
    return sorted(SOURCE_REGISTRY.keys())
