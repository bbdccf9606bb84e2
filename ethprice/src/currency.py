"""Precision-safe conversion between wei, ETH and USD.

Amounts move between three representations:
    - wei: 18-decimal fixed-point base unit, carried as an integer string
    - ETH: decimal display unit
    - USD: fiat, formatted for display

Every function here is total: malformed numbers coerce to zero and no
conversion raises. Encoding ETH into wei goes through the exact string
parser (``Web3.to_wei``) after truncating the fraction to 18 digits, and
only degrades to a floored float multiplication when the exact path fails.

.. code-block:: python

    >>> eth_to_usd("0.5", Decimal("3400")).usd
    '$1,700.00'
    >>> usd_per_second_to_wei_per_second("0.01", "3400").wei_per_second
    '2941176470588'
    >>> parse_usd_input("$1,234.50")
    Decimal('1234.50')
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, getcontext, localcontext
from typing import Union

from web3 import Web3

logger = logging.getLogger(__name__)

SECONDS_IN_HOUR = 3600
SECONDS_IN_DAY = 86400

# Decimal places of the base unit
WEI_DECIMALS = 18

Numeric = Union[Decimal, int, float, str]

# Leading number of a string, as JavaScript's parseFloat reads it
_NUMBER_PREFIX = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

_ZERO = Decimal(0)


@dataclass(frozen=True)
class CurrencyDisplay:
    """An ETH amount prepared for display.

    :ivar eth: ETH amount with 6 decimals.
    :ivar usd: USD value formatted as currency (e.g., "$1,234.56").
    :ivar eth_raw: ETH amount as a plain decimal string.
    :ivar wei: Base-unit integer string.
    """

    eth: str
    usd: str
    eth_raw: str
    wei: str

    @classmethod
    def zero(cls) -> CurrencyDisplay:
        """Display used when the amount cannot be converted."""
        return cls(eth="0.000000", usd="$0.00", eth_raw="0", wei="0")


@dataclass(frozen=True)
class StreamRate:
    """A fiat flow rate converted into an on-chain ETH flow rate.

    :ivar eth_per_second: ETH streamed per second.
    :ivar wei_per_second: Base-unit integer string for contract parameters.
    """

    eth_per_second: Decimal
    wei_per_second: str

    def total_eth_for_duration(self, seconds: Numeric) -> Decimal:
        """ETH streamed over ``seconds``, linear in time (0 on overflow)."""
        try:
            return self.eth_per_second * parse_decimal(seconds)
        except ArithmeticError as e:
            logger.warning(f"Cannot project ETH rate over {seconds!r}s: {e!r}")
            return _ZERO

    def total_wei_for_duration(self, seconds: Numeric) -> str:
        """Wei streamed over ``seconds`` as an integer string."""
        return safe_to_wei(self.total_eth_for_duration(seconds))


@dataclass(frozen=True)
class UsdRates:
    """An on-chain wei flow rate expressed in USD.

    Hourly and daily figures are flat projections of the per-second rate.

    :ivar usd_per_second: USD per second.
    :ivar usd_per_hour: USD per hour (x3600).
    :ivar usd_per_day: USD per day (x86400).
    :ivar eth_per_second: ETH per second.
    """

    usd_per_second: Decimal
    usd_per_hour: Decimal
    usd_per_day: Decimal
    eth_per_second: Decimal
    formatted_usd_per_second: str
    formatted_usd_per_hour: str
    formatted_usd_per_day: str

    @classmethod
    def zero(cls) -> UsdRates:
        """Result used when the wei input cannot be read."""
        return cls(
            usd_per_second=_ZERO,
            usd_per_hour=_ZERO,
            usd_per_day=_ZERO,
            eth_per_second=_ZERO,
            formatted_usd_per_second="$0.00",
            formatted_usd_per_hour="$0.00",
            formatted_usd_per_day="$0.00",
        )


def parse_decimal(value: Numeric | None) -> Decimal:
    """Read a number leniently, returning 0 for anything unusable.

    Strings are read like parseFloat: leading whitespace is skipped and the
    longest numeric prefix is used ("12abc" -> 12). Floats go through their
    shortest repr so 0.1 stays 0.1. NaN, infinities and magnitudes beyond
    the decimal context's exponent range become 0.

    :param value: Number or numeric string.
    :returns: Finite Decimal.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        return _ZERO
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(repr(value))
    elif isinstance(value, str):
        match = _NUMBER_PREFIX.match(value)
        if not match:
            return _ZERO
        result = Decimal(match.group(1))
    else:
        return _ZERO
    if not result.is_finite() or result.adjusted() > getcontext().Emax:
        return _ZERO
    return result


def _round(value: Decimal, places: int) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + places + 2)
        return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def _plain(value: Decimal) -> str:
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_usd(value: Numeric, min_decimals: int = 2, max_decimals: int = 2) -> str:
    """Format an amount as en-US currency.

    :param value: USD amount.
    :param min_decimals: Minimum fraction digits kept.
    :param max_decimals: Maximum fraction digits, rounded half-up.
    :returns: String like "$1,234.50" or "-$0.0012".
    """
    amount = parse_decimal(value)
    text = format(_round(abs(amount), max_decimals), f",.{max_decimals}f")
    if max_decimals > min_decimals:
        whole, _, fraction = text.partition(".")
        fraction = fraction.rstrip("0").ljust(min_decimals, "0")
        text = f"{whole}.{fraction}" if fraction else whole
    sign = "-" if amount < 0 else ""
    return f"{sign}${text}"


def truncate_decimals(value: Numeric, max_decimals: int = WEI_DECIMALS) -> str:
    """Serialize a number positionally, cutting (never rounding) its fraction.

    Trailing zeros are stripped, and a fraction that ends up empty is
    dropped together with the point.

    :param value: Number to serialize.
    :param max_decimals: Fraction digits kept.
    :returns: Plain decimal string without exponent.

    .. code-block:: python

        >>> truncate_decimals(1.23456789e-07)
        '0.000000123456789'
        >>> truncate_decimals("2.9999999", 2)
        '2.99'
    """
    text = format(parse_decimal(value), "f")
    if "." not in text:
        return text
    whole, fraction = text.split(".", 1)
    fraction = fraction[:max_decimals].rstrip("0")
    return f"{whole}.{fraction}" if fraction else whole


def _float_to_wei(truncated: str) -> str:
    """Floored float multiplication used when the exact parser refuses."""
    try:
        wei = float(truncated) * 10**WEI_DECIMALS
    except (ValueError, OverflowError):
        return "0"
    if not math.isfinite(wei):
        return "0"
    return str(math.floor(wei))


def safe_to_wei(eth_amount: Numeric) -> str:
    """Encode an ETH amount as a wei integer string without raising.

    The amount is truncated to 18 decimals and parsed exactly with
    ``Web3.to_wei``. If the exact parser rejects it (e.g., the result falls
    outside the uint256 range), a floored float multiplication is used
    instead, which loses precision but always returns an integer string.

    :param eth_amount: ETH amount.
    :returns: Base-unit integer string.
    """
    truncated = truncate_decimals(eth_amount, WEI_DECIMALS)
    try:
        return str(Web3.to_wei(truncated, "ether"))
    except Exception as e:  # any failure degrades to the float path
        logger.warning(f"Exact wei conversion failed for {truncated}: {e}")
        return _float_to_wei(truncated)


def eth_to_usd(eth_amount: Numeric, rate: Numeric) -> CurrencyDisplay:
    """Convert an ETH amount into its display values.

    :param eth_amount: ETH amount; malformed input counts as 0.
    :param rate: USD per ETH.
    :returns: CurrencyDisplay with ETH, USD, raw and wei forms.
    """
    eth_value = parse_decimal(eth_amount)
    try:
        usd_value = eth_value * parse_decimal(rate)
    except ArithmeticError as e:
        logger.warning(f"Cannot convert {eth_amount!r} ETH at rate {rate!r}: {e!r}")
        return CurrencyDisplay.zero()
    return CurrencyDisplay(
        eth=format(_round(eth_value, 6), ".6f"),
        usd=format_usd(usd_value),
        eth_raw=_plain(eth_value),
        wei=safe_to_wei(eth_value),
    )


def usd_per_second_to_wei_per_second(
    usd_per_second: Numeric, rate: Numeric
) -> StreamRate:
    """Convert a USD flow rate into a wei flow rate for contract parameters.

    :param usd_per_second: USD streamed per second.
    :param rate: USD per ETH. A non-positive rate gives a zero flow.
    :returns: StreamRate with per-second and duration helpers.
    """
    usd = parse_decimal(usd_per_second)
    price = parse_decimal(rate)
    if price <= 0:
        logger.warning(f"Cannot convert USD rate with non-positive ETH price {price}")
        eth_per_second = _ZERO
    else:
        try:
            eth_per_second = usd / price
        except ArithmeticError as e:
            logger.warning(f"Cannot convert ${usd}/s at ${price}/ETH: {e!r}")
            eth_per_second = _ZERO

    wei_per_second = safe_to_wei(eth_per_second)
    logger.debug(
        f"Converted ${usd}/s at ${price}/ETH -> "
        f"{truncate_decimals(eth_per_second)} ETH/s ({wei_per_second} wei/s)"
    )
    return StreamRate(eth_per_second=eth_per_second, wei_per_second=wei_per_second)


def _parse_wei(value: Numeric) -> int:
    if isinstance(value, bool):
        raise TypeError("wei amount must be an integer, not bool")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value.strip())
    if isinstance(value, Decimal):
        if value.is_finite() and value == value.to_integral_value():
            return int(value)
    elif isinstance(value, float) and value.is_integer():
        return int(value)
    raise ValueError(f"wei amount must be integral, got {value!r}")


def wei_per_second_to_usd(wei_per_second: Numeric, rate: Numeric) -> UsdRates:
    """Convert a wei flow rate into USD per second, hour and day.

    :param wei_per_second: Base-unit integer (or integer string) per second.
    :param rate: USD per ETH.
    :returns: UsdRates; all zeros when the wei input is not a valid uint256.
    """
    try:
        wei = _parse_wei(wei_per_second)
        eth_per_second = Decimal(Web3.from_wei(wei, "ether"))
        usd_per_second = eth_per_second * parse_decimal(rate)
        usd_per_hour = usd_per_second * SECONDS_IN_HOUR
        usd_per_day = usd_per_second * SECONDS_IN_DAY
    except (ValueError, TypeError, ArithmeticError) as e:
        logger.warning(f"Cannot convert wei rate {wei_per_second!r} to USD: {e!r}")
        return UsdRates.zero()

    return UsdRates(
        usd_per_second=usd_per_second,
        usd_per_hour=usd_per_hour,
        usd_per_day=usd_per_day,
        eth_per_second=eth_per_second,
        formatted_usd_per_second=format_usd(usd_per_second, 2, 4),
        formatted_usd_per_hour=format_usd(usd_per_hour),
        formatted_usd_per_day=format_usd(usd_per_day),
    )


def parse_usd_input(text: str) -> Decimal:
    """Read a user-typed USD amount, ignoring "$" and thousands separators.

    :param text: Input such as "$1,234.50".
    :returns: Decimal amount, or 0 when nothing numeric is found.
    """
    if not isinstance(text, str):
        return parse_decimal(text)
    return parse_decimal(text.replace("$", "").replace(",", ""))
