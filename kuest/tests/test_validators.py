"""Tests for validators."""

import time
from decimal import Decimal

import pytest
from ..utils.validators import (
    validate_address,
    validate_gtd_expiration,
    validate_price,
    validate_private_key,
    validate_token_id,
)
from ..exceptions import ValidationError
from .helpers import ADDRESS, PRIVATE_KEY


def test_validate_price():
    """Test price validation against tick size."""
    tick = Decimal("0.01")
    assert validate_price(0.50, tick) == Decimal("0.5")
    assert validate_price("0.01", tick) == Decimal("0.01")
    assert validate_price(Decimal("0.99"), tick) == Decimal("0.99")

    with pytest.raises(ValidationError):
        validate_price(0.0, tick)  # Too low

    with pytest.raises(ValidationError):
        validate_price(1.0, tick)  # Too high

    with pytest.raises(ValidationError):
        validate_price("invalid", tick)  # Not numeric

    with pytest.raises(ValidationError):
        validate_price(True, tick)


def test_validate_price_off_tick():
    """Off-tick prices are rejected, never rounded."""
    with pytest.raises(ValidationError, match="not a multiple"):
        validate_price("0.555", Decimal("0.01"))

    assert validate_price("0.555", Decimal("0.001")) == Decimal("0.555")


def test_validate_token_id():
    """Test token ID validation."""
    assert validate_token_id("123456") == "123456"

    with pytest.raises(ValidationError):
        validate_token_id("")  # Empty

    with pytest.raises(ValidationError):
        validate_token_id("abc")  # Not numeric

    with pytest.raises(ValidationError):
        validate_token_id(str(2 ** 256))


def test_validate_address():
    """Test address normalization and checksum check."""
    assert validate_address(ADDRESS.lower()) == ADDRESS
    assert validate_address(ADDRESS) == ADDRESS

    with pytest.raises(ValidationError, match="checksum"):
        validate_address("0xF" + ADDRESS[3:])

    with pytest.raises(ValidationError):
        validate_address("0x1234")


def test_validate_private_key():
    """Test private key normalization."""
    assert validate_private_key(PRIVATE_KEY[2:].upper()) == PRIVATE_KEY

    with pytest.raises(ValidationError):
        validate_private_key("0x1234")


def test_validate_gtd_expiration():
    """Test GTD expiration must be in the future."""
    future = int(time.time()) + 3600
    assert validate_gtd_expiration(future) == future

    with pytest.raises(ValidationError):
        validate_gtd_expiration(int(time.time()) - 1)

    with pytest.raises(ValidationError):
        validate_gtd_expiration(future, min_offset_seconds=7200)
