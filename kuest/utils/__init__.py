"""Utility modules for Kuest client."""

from .validators import (
    validate_address,
    validate_price,
    validate_private_key,
    validate_token_id,
)
from .numeric import to_decimal

__all__ = [
    "validate_address",
    "validate_price",
    "validate_private_key",
    "validate_token_id",
    "to_decimal",
]
