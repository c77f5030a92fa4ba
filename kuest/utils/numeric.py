"""
Numeric coercion for values decoded from API responses.

The CLOB sends amounts as JSON strings, numbers or empty strings. Models
convert them here so that floats never reach an amount.
"""

from typing import Any, Optional
from decimal import Decimal, InvalidOperation
import logging

logger = logging.getLogger(__name__)


def to_decimal(value: Any, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """
    Convert an API value to a finite Decimal.

    Floats go through their shortest repr, so 0.1 becomes Decimal("0.1")
    and not the binary expansion.

    Args:
        value: str, int, float or Decimal
        default: Returned when the value cannot be converted

    Returns:
        Decimal, or default for None, booleans, NaN/Infinity and garbage

    Examples:
        >>> to_decimal(" 0.65 ")
        Decimal('0.65')
        >>> to_decimal(0.1)
        Decimal('0.1')
        >>> to_decimal("NaN") is None
        True
    """
    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, str):
        text = value.strip()
        try:
            dec = Decimal(text)
        except InvalidOperation:
            logger.debug(f"Not a decimal string: {text[:32]!r}")
            return default
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        dec = Decimal(repr(value)) if isinstance(value, float) else Decimal(value)
    else:
        return default

    return dec if dec.is_finite() else default
