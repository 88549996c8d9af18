"""Tests for human <-> fixed-point conversion."""

from decimal import Decimal

import pytest

from swapbot.services.exceptions import InvalidAmount
from swapbot.utils.units import to_fixed_point, to_human


class TestToFixedPoint:
    """Parsing human amounts into base units."""

    @pytest.mark.parametrize(
        "text, decimals, expected",
        [
            ("0.001", 18, 10**15),
            ("1", 6, 1_000_000),
            ("12.5", 6, 12_500_000),
            (".5", 2, 50),
            ("5.", 2, 500),
            ("0", 18, 0),
            ("3", 0, 3),
            (" 2.25 ", 2, 225),
        ],
    )
    def test_valid(self, text, decimals, expected):
        assert to_fixed_point(text, decimals) == expected

    def test_excess_zero_digits_are_accepted(self):
        """Trailing zeros past the precision do not change the value."""
        assert to_fixed_point("1.500000", 2) == 150

    def test_excess_significant_digits_rejected(self):
        """No silent rounding: 0.001 cannot be expressed with 2 decimals."""
        with pytest.raises(InvalidAmount):
            to_fixed_point("0.001", 2)

    @pytest.mark.parametrize("bad", ["", ".", "-1", "+1", "1e18", "abc", "1.2.3", "1,5", "NaN"])
    def test_malformed(self, bad):
        with pytest.raises(InvalidAmount):
            to_fixed_point(bad, 18)

    def test_decimal_input(self):
        assert to_fixed_point(Decimal("0.25"), 4) == 2500
        assert to_fixed_point(Decimal("1E-7"), 18) == 10**11

    def test_float_rejected(self):
        """Floats would carry binary rounding noise."""
        with pytest.raises(InvalidAmount):
            to_fixed_point(0.1, 18)

    def test_bad_decimals(self):
        with pytest.raises(InvalidAmount):
            to_fixed_point("1", -1)
        with pytest.raises(InvalidAmount):
            to_fixed_point("1", 256)

    def test_large_precision_exact(self):
        v = to_fixed_point("123456789.123456789123456789", 18)
        assert v == 123456789_123456789123456789


class TestToHuman:
    """Formatting base units as decimal strings."""

    def test_basic(self):
        assert to_human(10**15, 18) == "0.001"
        assert to_human(10**18, 18) == "1.0"
        assert to_human(2_000_250_000, 6) == "2000.25"
        assert to_human(0, 6) == "0.0"
        assert to_human(7, 0) == "7"

    def test_negative_delta(self):
        assert to_human(-1_500_000, 6) == "-1.5"

    @pytest.mark.parametrize(
        "text, decimals",
        [("0.001", 18), ("42", 6), ("1.000001", 6), ("99999.5", 8), ("0", 0)],
    )
    def test_round_trip_numeric_value(self, text, decimals):
        """Round trip keeps the numeric value; only zero padding may differ."""
        assert Decimal(to_human(to_fixed_point(text, decimals), decimals)) == Decimal(text)

