"""
Input validation utilities.

Validates keys, addresses, token IDs and prices before they reach a signer.
"""

import re
import time
from typing import Any
from decimal import Decimal, InvalidOperation

from eth_utils import is_checksum_address, to_checksum_address

from ..exceptions import ValidationError


def validate_price(price: Any, tick_size: Decimal) -> Decimal:
    """
    Validate a limit price against the market's tick size.

    The price must lie within [tick, 1 - tick] and carry no more decimals
    than the tick.

    Args:
        price: Order price (int, str, Decimal, or float)
        tick_size: Minimum price increment

    Returns:
        Price as Decimal

    Raises:
        ValidationError: If price is out of range or off-tick
    """
    try:
        if isinstance(price, Decimal):
            price_dec = price
        elif isinstance(price, (str, int, float)) and not isinstance(price, bool):
            price_dec = Decimal(str(price))
        else:
            raise ValidationError(f"Price must be numeric, got {type(price)}")
    except (ValueError, InvalidOperation) as e:
        raise ValidationError(f"Invalid price format: {price}") from e

    if not price_dec.is_finite():
        raise ValidationError(f"Invalid price format: {price}")

    min_price = tick_size
    max_price = Decimal(1) - tick_size
    if not (min_price <= price_dec <= max_price):
        raise ValidationError(
            f"Price ({price_dec}) must be between {min_price} and {max_price}"
        )

    if price_dec % tick_size != 0:
        raise ValidationError(
            f"Price ({price_dec}) is not a multiple of tick size {tick_size}"
        )

    return price_dec


def validate_token_id(token_id: str) -> str:
    """
    Validate token ID format.

    Args:
        token_id: ERC1155 token ID

    Returns:
        Token ID

    Raises:
        ValidationError: If token ID is invalid
    """
    if not isinstance(token_id, str):
        raise ValidationError(f"Token ID must be string, got {type(token_id)}")

    if not token_id:
        raise ValidationError("Token ID cannot be empty")

    # Token IDs are uint256 values as decimal strings
    if not token_id.isdigit():
        raise ValidationError(f"Token ID must be numeric string, got {token_id}")

    if int(token_id) >= 2 ** 256:
        raise ValidationError(f"Token ID does not fit in uint256: {token_id}")

    return token_id


def validate_address(address: str) -> str:
    """
    Validate Ethereum address.

    Mixed-case input must carry a valid EIP-55 checksum.

    Args:
        address: Ethereum address

    Returns:
        Checksummed address

    Raises:
        ValidationError: If address is invalid
    """
    if not isinstance(address, str):
        raise ValidationError(f"Address must be string, got {type(address)}")

    addr = address[2:] if address.startswith("0x") else address

    # 20 bytes = 40 hex chars
    if not re.match(r"^[0-9a-fA-F]{40}$", addr):
        raise ValidationError(f"Invalid Ethereum address: {address}")

    prefixed = f"0x{addr}"
    if addr != addr.lower() and addr != addr.upper() and not is_checksum_address(prefixed):
        raise ValidationError(f"Invalid address checksum: {address}")

    return to_checksum_address(prefixed)


def validate_private_key(private_key: str) -> str:
    """
    Validate private key format.

    Args:
        private_key: Private key hex string

    Returns:
        Normalized private key

    Raises:
        ValidationError: If private key is invalid
    """
    if not isinstance(private_key, str):
        raise ValidationError(f"Private key must be string, got {type(private_key)}")

    key = private_key[2:] if private_key.startswith("0x") else private_key

    # 32 bytes = 64 hex chars
    if not re.match(r"^[0-9a-fA-F]{64}$", key):
        raise ValidationError("Invalid private key format")

    return f"0x{key.lower()}"


def validate_gtd_expiration(expiration: int, min_offset_seconds: int = 0) -> int:
    """
    Validate GTD (Good-Til-Date) order expiration timestamp.

    Args:
        expiration: Unix timestamp for order expiration
        min_offset_seconds: Minimum seconds into the future

    Returns:
        Validated expiration timestamp

    Raises:
        ValidationError: If expiration is missing or not in the future
    """
    if isinstance(expiration, bool) or not isinstance(expiration, int):
        raise ValidationError(f"Expiration must be int, got {type(expiration)}")

    current_time = int(time.time())
    min_expiration = current_time + min_offset_seconds

    if expiration <= min_expiration:
        raise ValidationError(
            f"GTD expiration must be in the future. "
            f"Got {expiration}, need > {min_expiration}"
        )

    return expiration
