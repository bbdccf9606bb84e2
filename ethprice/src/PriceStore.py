"""PriceStore: owned container for the current ETH/USD price state.

The state is an immutable PriceState record. Writers never mutate it in
place; each update builds a new record and swaps it in whole under a single
lock, then notifies subscribers. Readers therefore always see a complete
record, whichever thread or task they run in.

.. code-block:: python

    >>> store = PriceStore()
    >>> store.state.quote.is_fallback
    True
    >>> unsubscribe = store.subscribe(lambda state: print(state.quote))
    >>> store.publish(PriceQuote(Decimal("3500"), time.time(), "coinbase"))
    $3,500.00 (coinbase)
    >>> unsubscribe()
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable

from .PriceQuote import DEFAULT_FALLBACK_PRICE, PriceQuote, fallback_quote

logger = logging.getLogger(__name__)

Listener = Callable[["PriceState"], None]


@dataclass(frozen=True)
class PriceState:
    """Snapshot read by display consumers.

    :ivar quote: Current quote (fallback until a source answers).
    :ivar is_loading: True while a fetch pass is running.
    :ivar last_error_suppressed: True if the last pass exhausted every
        source and the fallback was published instead of an error.
    """

    quote: PriceQuote
    is_loading: bool = False
    last_error_suppressed: bool = False

    @property
    def eth_to_usd(self) -> Decimal:
        """Current USD per ETH."""
        return self.quote.value_usd_per_unit

    @property
    def source(self) -> str:
        """Name of the source behind the current quote."""
        return self.quote.source_name


class PriceStore:
    """Single-writer store holding the current PriceState.

    :ivar fallback_price: Rate used for the initial and fallback quotes.
    """

    def __init__(self, fallback_price: Decimal = DEFAULT_FALLBACK_PRICE) -> None:
        """Initialize with the fallback quote so the state is never unset.

        :param fallback_price: Fallback rate in USD per ETH.
        """
        self.fallback_price = fallback_price
        self._lock = threading.Lock()
        self._state = PriceState(quote=fallback_quote(fallback_price))
        self._listeners: list[Listener] = []

    @property
    def state(self) -> PriceState:
        """Current state record."""
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback invoked with every new state.

        :param listener: Callable receiving the new PriceState.
        :returns: Function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear_listeners(self) -> None:
        """Remove every subscriber."""
        self._listeners.clear()

    def set_loading(self, is_loading: bool) -> PriceState:
        """Replace the state with one carrying the given loading flag."""
        return self._replace(is_loading=is_loading)

    def publish(self, quote: PriceQuote, error_suppressed: bool = False) -> PriceState:
        """Publish a new quote and end the loading phase.

        :param quote: New quote (live or fallback).
        :param error_suppressed: True when the quote replaces a total failure.
        :returns: The new state.
        """
        return self._replace(
            quote=quote, is_loading=False, last_error_suppressed=error_suppressed
        )

    def _replace(self, **changes) -> PriceState:
        with self._lock:
            new_state = dataclasses.replace(self._state, **changes)
            self._state = new_state
        self._notify(new_state)
        return new_state

    def _notify(self, state: PriceState) -> None:
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Price listener %r failed", listener)
