"""
Unit tests for amount normalization.

Tests:
- Precision limits per role (collateral 6, shares 2)
- Normalization (trailing zeros, exponent notation, zero)
- Base unit conversion
"""

import pytest
from decimal import Decimal

from kuest.amounts import (
    AmountRole,
    from_base_units,
    make_currency,
    make_shares,
    normalize,
    to_base_units,
)
from kuest.exceptions import PrecisionError, ValidationError


class TestPrecisionLimits:
    """Each role rejects values with too many fractional digits."""

    def test_shares_reject_three_decimals(self):
        with pytest.raises(PrecisionError) as exc_info:
            make_shares("0.23400")

        assert str(exc_info.value) == "Unable to build Amount with 3 decimal points, must be <= 2"
        assert exc_info.value.scale == 3
        assert exc_info.value.max_scale == 2

    def test_currency_rejects_seven_decimals(self):
        with pytest.raises(PrecisionError, match="7 decimal points, must be <= 6"):
            make_currency("0.2340011")

    def test_precision_error_is_validation_error(self):
        with pytest.raises(ValidationError):
            make_shares("1.005")

    def test_trailing_zeros_do_not_count(self):
        """Normalized before the limit is checked."""
        amount = make_shares("1.500000000")
        assert amount.value == Decimal("1.5")
        assert amount.scale == 1

    def test_limits_are_inclusive(self):
        assert make_shares("0.01").scale == 2
        assert make_currency("0.000001").scale == 6

    def test_role_limits(self):
        assert AmountRole.CURRENCY.max_scale == 6
        assert AmountRole.SHARES.max_scale == 2


class TestNormalization:
    """Normalized values have no trailing zeros and no exponent notation."""

    def test_strips_trailing_zeros(self):
        assert str(normalize(Decimal("1.500"))) == "1.5"

    def test_integer_stays_plain(self):
        assert str(make_shares("100").value) == "100"
        assert str(make_shares(Decimal("1E+2")).value) == "100"

    def test_zero(self):
        amount = make_currency("0.000")
        assert amount.value == 0
        assert amount.scale == 0

    def test_idempotent(self):
        for raw in ("1.500", "0.000100", "1E+3", "42", "0"):
            once = normalize(raw)
            twice = normalize(once)
            assert once == twice
            assert once.as_tuple() == twice.as_tuple()

    def test_float_input_has_no_binary_noise(self):
        assert make_currency(0.1).value == Decimal("0.1")

    @pytest.mark.parametrize("bad", [True, "abc", Decimal("NaN"), Decimal("Infinity"), None])
    def test_rejects_non_numeric(self, bad):
        with pytest.raises(ValidationError):
            make_currency(bad)


class TestBaseUnits:
    """On-chain integer representation (x 10**6)."""

    def test_to_base_units(self):
        assert to_base_units(make_currency("100.5")) == 100500000
        assert to_base_units(make_shares("0.01")) == 10000
        assert to_base_units(make_currency("0.000001")) == 1

    def test_from_base_units(self):
        assert from_base_units(330000) == Decimal("0.33")
        assert str(from_base_units(5000000)) == "5"

    def test_from_base_units_requires_int(self):
        with pytest.raises(ValidationError):
            from_base_units("330000")
        with pytest.raises(ValidationError):
            from_base_units(True)
