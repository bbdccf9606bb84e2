"""Unit tests for wei/ETH/USD conversion."""

from decimal import Decimal
from unittest.mock import patch

from ethprice.src.currency import (
    SECONDS_IN_DAY,
    SECONDS_IN_HOUR,
    CurrencyDisplay,
    UsdRates,
    eth_to_usd,
    format_usd,
    parse_decimal,
    parse_usd_input,
    safe_to_wei,
    truncate_decimals,
    usd_per_second_to_wei_per_second,
    wei_per_second_to_usd,
)


class TestParseDecimal:
    """Test lenient number parsing."""

    def test_numeric_types(self) -> None:
        """Ints, floats, strings and Decimals should parse."""
        assert parse_decimal(5) == Decimal(5)
        assert parse_decimal(0.1) == Decimal("0.1")
        assert parse_decimal("1e3") == Decimal(1000)
        assert parse_decimal(Decimal("2.5")) == Decimal("2.5")

    def test_numeric_prefix(self) -> None:
        """Strings should be read up to the first non-numeric character."""
        assert parse_decimal("  12abc") == Decimal(12)
        assert parse_decimal("-.5x") == Decimal("-0.5")

    def test_unusable_values_are_zero(self) -> None:
        """Garbage, non-finite values, bools and None should become zero."""
        for value in ("garbage", "", "Infinity", float("nan"), float("inf"), True, None):
            assert parse_decimal(value) == 0


class TestFormatUsd:
    """Test currency formatting."""

    def test_thousands_and_two_decimals(self) -> None:
        """Default format has grouping and exactly two decimals."""
        assert format_usd(Decimal("1234.5")) == "$1,234.50"
        assert format_usd(0) == "$0.00"

    def test_negative(self) -> None:
        """Sign should precede the currency symbol."""
        assert format_usd(Decimal("-1234.5")) == "-$1,234.50"

    def test_rounds_half_up(self) -> None:
        """Rounding should be half-up, not banker's rounding."""
        assert format_usd(2.005) == "$2.01"
        assert format_usd("0.125") == "$0.13"

    def test_variable_fraction_digits(self) -> None:
        """Between min and max decimals, trailing zeros are trimmed."""
        assert format_usd("0.00123", 2, 4) == "$0.0012"
        assert format_usd("0.00005", 2, 4) == "$0.0001"
        assert format_usd("1.5", 2, 4) == "$1.50"
        assert format_usd("3400", 2, 4) == "$3,400.00"


class TestTruncateDecimals:
    """Test fraction truncation."""

    def test_truncates_without_rounding(self) -> None:
        """Extra digits should be cut, never rounded up."""
        assert truncate_decimals("2.9999999", 2) == "2.99"
        assert truncate_decimals("1.1234567890123456789") == "1.123456789012345678"

    def test_strips_trailing_zeros(self) -> None:
        """Trailing zeros and an empty fraction should be removed."""
        assert truncate_decimals("1.5000") == "1.5"
        assert truncate_decimals("3.000") == "3"
        assert truncate_decimals("0.0000000000000000001") == "0"

    def test_integers_unchanged(self) -> None:
        """Integers have no fraction to truncate."""
        assert truncate_decimals(7) == "7"

    def test_small_floats_are_positional(self) -> None:
        """Exponent notation should be expanded before truncation."""
        assert truncate_decimals(1e-7) == "0.0000001"
        assert truncate_decimals(1.23456789e-07) == "0.000000123456789"


class TestSafeToWei:
    """Test precision-safe base-unit encoding."""

    def test_exact_conversion(self) -> None:
        """Whole and fractional ETH should convert exactly."""
        assert safe_to_wei("1") == "1000000000000000000"
        assert safe_to_wei("0.1") == "100000000000000000"
        assert safe_to_wei(0.1) == "100000000000000000"
        assert safe_to_wei(0) == "0"

    def test_truncates_beyond_18_decimals(self) -> None:
        """The 19th decimal and beyond should be dropped, not rounded."""
        assert safe_to_wei("1.1234567890123456789") == "1123456789012345678"
        assert safe_to_wei("0.0000000000000000019") == "1"

    def test_fallback_when_exact_parser_fails(self) -> None:
        """A failing exact parser should degrade to floored float math."""
        with patch("ethprice.src.currency.Web3.to_wei", side_effect=ValueError("boom")):
            assert safe_to_wei("0.5") == "500000000000000000"
            assert safe_to_wei("garbage") == "0"

    def test_out_of_range_never_raises(self) -> None:
        """Amounts beyond uint256 should still yield an integer string."""
        wei = safe_to_wei(Decimal("1e60"))
        assert wei.isdigit()
        assert int(wei) > 2**256

    def test_malformed_input(self) -> None:
        """Malformed input should encode as zero."""
        assert safe_to_wei("not a number") == "0"


class TestEthToUsd:
    """Test ETH amount display conversion."""

    def test_basic_conversion(self) -> None:
        """Half an ETH at $3400 should be $1,700.00."""
        result = eth_to_usd("0.5", Decimal("3400"))
        assert result.eth == "0.500000"
        assert result.usd == "$1,700.00"
        assert result.eth_raw == "0.5"
        assert result.wei == "500000000000000000"

    def test_float_amount(self) -> None:
        """Float amounts should convert through their decimal repr."""
        result = eth_to_usd(1234.5678, "3400")
        assert result.eth == "1234.567800"
        assert result.usd == "$4,197,530.52"

    def test_malformed_amount_is_zero(self) -> None:
        """Malformed input should display as zero instead of raising."""
        result = eth_to_usd("garbage", 3400)
        assert result.eth == "0.000000"
        assert result.usd == "$0.00"
        assert result.eth_raw == "0"
        assert result.wei == "0"

    def test_tiny_amount_truncates_to_wei(self) -> None:
        """Amounts with more than 18 decimals should truncate to whole wei."""
        result = eth_to_usd("0.000000123456789012345", 3400)
        assert result.wei == "123456789012"
        assert result.eth == "0.000000"

        float_result = eth_to_usd(0.000000123456789012345, 3400)
        assert float_result.wei.isdigit()


class TestUsdPerSecondToWeiPerSecond:
    """Test USD flow rate to wei flow rate conversion."""

    def test_one_cent_per_second(self) -> None:
        """$0.01/s at $3400/ETH should stream 2941176470588 wei/s."""
        rate = usd_per_second_to_wei_per_second("0.01", "3400")
        assert rate.wei_per_second == "2941176470588"
        assert rate.eth_per_second == Decimal("0.01") / Decimal("3400")

    def test_duration_totals_are_linear(self) -> None:
        """Totals should multiply the per-second rate by the duration."""
        rate = usd_per_second_to_wei_per_second("0.01", "3400")
        assert rate.total_eth_for_duration(3600) == rate.eth_per_second * 3600
        assert rate.total_wei_for_duration(3600) == "10588235294117647"
        assert rate.total_wei_for_duration(0) == "0"

    def test_non_positive_rate_gives_zero_flow(self) -> None:
        """A zero or negative ETH price must not divide by zero."""
        for price in (0, "-5", "garbage"):
            rate = usd_per_second_to_wei_per_second("1", price)
            assert rate.eth_per_second == 0
            assert rate.wei_per_second == "0"


class TestWeiPerSecondToUsd:
    """Test wei flow rate to USD conversion."""

    def test_one_eth_per_second(self) -> None:
        """Hour and day figures should be flat multiples of the second."""
        rates = wei_per_second_to_usd("1000000000000000000", Decimal("3400"))
        assert rates.eth_per_second == 1
        assert rates.usd_per_second == 3400
        assert rates.usd_per_hour == 3400 * SECONDS_IN_HOUR
        assert rates.usd_per_day == 3400 * SECONDS_IN_DAY
        assert rates.formatted_usd_per_second == "$3,400.00"
        assert rates.formatted_usd_per_hour == "$12,240,000.00"
        assert rates.formatted_usd_per_day == "$293,760,000.00"

    def test_integer_input(self) -> None:
        """Integer wei amounts should be accepted."""
        rates = wei_per_second_to_usd(10**15, "3400")
        assert rates.usd_per_second == Decimal("3.4")

    def test_small_rate_keeps_four_decimals(self) -> None:
        """Per-second USD should show up to four decimals."""
        rates = wei_per_second_to_usd("500000000000", "3400")
        assert rates.usd_per_second == Decimal("0.0017")
        assert rates.formatted_usd_per_second == "$0.0017"
        assert rates.formatted_usd_per_hour == "$6.12"

    def test_invalid_input_returns_zero_rates(self) -> None:
        """Non-integer, negative or oversized wei should give zero rates."""
        for value in ("abc", "-5", "1.5", 2**256, 1.5, True):
            assert wei_per_second_to_usd(value, 3400) == UsdRates.zero()

    def test_zero_result_formatting(self) -> None:
        """Zero rates should format as $0.00."""
        rates = UsdRates.zero()
        assert rates.formatted_usd_per_second == "$0.00"
        assert rates.formatted_usd_per_day == "$0.00"


class TestOverflow:
    """Test conversions of readable but enormous numbers."""

    def test_parse_beyond_exponent_range(self) -> None:
        """Magnitudes past the decimal exponent limit should read as zero."""
        assert parse_decimal("1e1000000") == 0
        assert parse_decimal("1e999999") == Decimal("1e999999")

    def test_eth_to_usd_overflow(self) -> None:
        """An amount whose USD value overflows should display as zero."""
        result = eth_to_usd("1e999999", 3400)
        assert result == CurrencyDisplay.zero()
        assert result.usd == "$0.00"
        assert result.wei == "0"

    def test_usd_to_wei_overflow(self) -> None:
        """A quotient past the exponent limit should give a zero flow."""
        rate = usd_per_second_to_wei_per_second("1e999999", "1e-999999")
        assert rate.eth_per_second == 0
        assert rate.wei_per_second == "0"

    def test_duration_total_overflow(self) -> None:
        """Projecting a huge rate over a long duration should give zero."""
        rate = usd_per_second_to_wei_per_second("1e999990", "1")
        assert rate.total_eth_for_duration("1e999990") == 0
        assert rate.total_wei_for_duration("1e999990") == "0"

    def test_wei_to_usd_overflow(self) -> None:
        """An hourly or daily projection that overflows should give zero rates."""
        assert wei_per_second_to_usd(10**18, "1e999999") == UsdRates.zero()


class TestRoundTrip:
    """Test USD -> wei -> USD round trips."""

    def test_round_trip_within_tolerance(self) -> None:
        """Truncation to whole wei should lose at most 1e-6 of the input."""
        usd = Decimal("123.456")
        price = Decimal("98765.4321")
        wei = usd_per_second_to_wei_per_second(usd, price).wei_per_second
        back = wei_per_second_to_usd(wei, price).usd_per_second
        assert back <= usd
        assert usd - back <= usd * Decimal("1e-6")

    def test_zero_round_trip(self) -> None:
        """Zero should survive the round trip exactly."""
        wei = usd_per_second_to_wei_per_second("0", "3400").wei_per_second
        assert wei_per_second_to_usd(wei, "3400").usd_per_second == 0


class TestParseUsdInput:
    """Test user-typed USD parsing."""

    def test_currency_symbols_and_separators(self) -> None:
        """Dollar signs and commas should be ignored."""
        assert parse_usd_input("$1,234.50") == Decimal("1234.50")
        assert parse_usd_input("$.5") == Decimal("0.5")

    def test_garbage_is_zero(self) -> None:
        """Non-numeric input should give zero."""
        assert parse_usd_input("garbage") == 0
        assert parse_usd_input("") == 0
        assert parse_usd_input("$") == 0

    def test_trailing_text_ignored(self) -> None:
        """Text after the number should be ignored."""
        assert parse_usd_input("42 usd") == Decimal(42)
