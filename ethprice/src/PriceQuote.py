"""PriceQuote: a single observed ETH/USD rate with its provenance.

A quote can only be built from a finite, strictly positive value, so a
NaN, infinite or non-positive parse never reaches consumers.

.. code-block:: python

    >>> quote = PriceQuote(Decimal("3412.50"), observed_at=1700000000.0,
    ...                    source_name="coinbase")
    >>> quote.is_fallback
    False
    >>> fallback_quote().source_name
    'Fallback'
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation

# Source name carried by the hardcoded quote
FALLBACK_SOURCE = "Fallback"

# Conservative rate used when no live source answers
DEFAULT_FALLBACK_PRICE = Decimal("3400")


@dataclass(frozen=True)
class PriceQuote:
    """An observed exchange rate.

    :ivar value_usd_per_unit: USD per ETH, always finite and positive.
    :ivar observed_at: Unix timestamp of the observation.
    :ivar source_name: Name of the source that produced the value.
    """

    value_usd_per_unit: Decimal
    observed_at: float
    source_name: str

    def __post_init__(self) -> None:
        """Coerce the value to Decimal and enforce the positivity invariant.

        :raises ValueError: If the value is not a finite number above zero.
        """
        value = self.value_usd_per_unit
        if isinstance(value, bool):
            raise ValueError(f"Invalid price {value!r} from {self.source_name}")
        if not isinstance(value, Decimal):
            try:
                value = Decimal(str(value))
            except (InvalidOperation, ValueError) as e:
                raise ValueError(
                    f"Invalid price {value!r} from {self.source_name}"
                ) from e
        if not value.is_finite() or value <= 0:
            raise ValueError(f"Invalid price {value} from {self.source_name}")
        object.__setattr__(self, "value_usd_per_unit", value)

    @property
    def is_fallback(self) -> bool:
        """Check if this is the hardcoded fallback quote."""
        return self.source_name == FALLBACK_SOURCE

    def age(self, now: float | None = None) -> float:
        """Seconds elapsed since the observation (never negative)."""
        now = time.time() if now is None else now
        return max(0.0, now - self.observed_at)

    def describe_age(self, now: float | None = None) -> str:
        """Human-readable age, e.g. "12s ago", "3m ago" or "14:05:09".

        :param now: Reference unix timestamp (default: current time).
        :returns: Relative age under an hour, local clock time otherwise.
        """
        seconds = int(self.age(now))
        if seconds < 60:
            return f"{seconds}s ago"
        if seconds < 3600:
            return f"{seconds // 60}m ago"
        return datetime.fromtimestamp(self.observed_at).strftime("%H:%M:%S")

    def __str__(self) -> str:
        return f"${self.value_usd_per_unit:,.2f} ({self.source_name})"


def fallback_quote(
    price: Decimal = DEFAULT_FALLBACK_PRICE, observed_at: float | None = None
) -> PriceQuote:
    """Build the fallback quote with a fresh timestamp.

    :param price: Fallback rate in USD per ETH.
    :param observed_at: Timestamp (default: current time).
    :returns: Quote whose source is FALLBACK_SOURCE.
    """
    return PriceQuote(
        value_usd_per_unit=price,
        observed_at=time.time() if observed_at is None else observed_at,
        source_name=FALLBACK_SOURCE,
    )


@dataclass(frozen=True)
class FetchResult:
    """Outcome of one pass over the source registry.

    :ivar quote: Quote from the first valid source, or the fallback quote.
    :ivar resolved: True if a live source answered, False if all failed.
    :ivar failures: Failure reason per source, in attempt order.
    """

    quote: PriceQuote
    resolved: bool
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def exhausted(self) -> bool:
        """Check if every source failed and the fallback was used."""
        return not self.resolved
