"""Shared fixtures for price feed tests."""

import asyncio
from decimal import Decimal
from typing import Any, Callable

import httpx
import pytest

from ethprice.src.sources import PriceSource, SourceError


class FakeSource(PriceSource):
    """Scripted source: each fetch() returns or raises the next outcome.

    The last outcome repeats once the script runs out.
    """

    def __init__(self, name: str, *outcomes: Any, delay: float = 0.0, timeout: float = 1.0):
        self.name = name
        super().__init__(timeout=timeout)
        self.outcomes = list(outcomes) or [SourceError("no outcome scripted")]
        self.delay = delay
        self.calls = 0

    def parse(self, data: Any) -> Decimal:
        return Decimal(str(data))

    async def fetch(self) -> Decimal:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.outcomes[min(self.calls, len(self.outcomes)) - 1]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture
def fake_source() -> type[FakeSource]:
    """Factory for scripted sources."""
    return FakeSource


@pytest.fixture
def mock_http() -> Callable[[Callable[[httpx.Request], httpx.Response]], list[httpx.Request]]:
    """Route the shared HTTP client through a handler; returns sent requests."""

    def install(handler: Callable[[httpx.Request], httpx.Response]) -> list[httpx.Request]:
        requests: list[httpx.Request] = []

        def recording(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)

        PriceSource.set_shared_client(
            httpx.AsyncClient(transport=httpx.MockTransport(recording))
        )
        return requests

    return install


@pytest.fixture(autouse=True)
def reset_shared_client():
    """Never leak a mocked client into another test."""
    yield
    PriceSource.set_shared_client(None)
