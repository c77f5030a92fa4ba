"""
Fixed-point amount normalization.

Currency (collateral) amounts carry at most USDC_DECIMALS fractional digits,
share amounts at most LOT_SIZE_SCALE. Values are normalized (trailing zeros
stripped) before the limit is checked, so "1.500000000" is a valid share
amount while "1.005" is not.
"""

from enum import Enum
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Union

from .exceptions import PrecisionError, ValidationError

USDC_DECIMALS = 6
LOT_SIZE_SCALE = 2

# On-chain representation of both collateral and conditional tokens
BASE_UNIT_DECIMALS = 6

DecimalLike = Union[Decimal, str, int, float]


class AmountRole(str, Enum):
    """What an amount measures."""
    CURRENCY = "currency"
    SHARES = "shares"

    @property
    def max_scale(self) -> int:
        return USDC_DECIMALS if self is AmountRole.CURRENCY else LOT_SIZE_SCALE


def _coerce(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"Invalid amount: {value!r}")
    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, (str, int, float)):
        try:
            # float goes through str to avoid binary noise
            dec = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValidationError(f"Invalid amount: {value!r}") from e
    else:
        raise ValidationError(f"Cannot convert {type(value).__name__} to amount")

    if not dec.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    return dec


def scale_of(value: Decimal) -> int:
    """Number of fractional digits of a Decimal (0 for integers)."""
    exponent = value.as_tuple().exponent
    return -exponent if exponent < 0 else 0


def normalize(value: DecimalLike) -> Decimal:
    """
    Strip trailing zeros without switching to exponent notation.

    Idempotent: normalize(normalize(x)) == normalize(x), same digits and scale.

    Examples:
        >>> normalize(Decimal("1.500"))
        Decimal('1.5')
        >>> normalize(Decimal("100"))
        Decimal('100')
    """
    dec = _coerce(value)
    if dec.is_zero():
        return Decimal(0)
    normalized = dec.normalize()
    if normalized.as_tuple().exponent > 0:
        # 1E+2 -> 100
        normalized = normalized.quantize(Decimal(1))
    return normalized


@dataclass(frozen=True)
class Amount:
    """
    A decimal tagged with its role.

    Construction normalizes the value and enforces the role's precision
    limit; an Amount that exists is always valid.
    """
    value: Decimal
    role: AmountRole

    def __post_init__(self):
        normalized = normalize(self.value)
        scale = scale_of(normalized)
        limit = self.role.max_scale
        if scale > limit:
            raise PrecisionError(
                f"Unable to build Amount with {scale} decimal points, must be <= {limit}",
                scale=scale,
                max_scale=limit
            )
        object.__setattr__(self, "value", normalized)

    @property
    def scale(self) -> int:
        return scale_of(self.value)

    def __str__(self) -> str:
        return str(self.value)


def make_currency(value: DecimalLike) -> Amount:
    """
    Build a collateral amount.

    Raises:
        PrecisionError: If more than USDC_DECIMALS fractional digits remain
        ValidationError: If value is not a finite number
    """
    return Amount(_coerce(value), AmountRole.CURRENCY)


def make_shares(value: DecimalLike) -> Amount:
    """
    Build a share amount.

    Raises:
        PrecisionError: If more than LOT_SIZE_SCALE fractional digits remain
        ValidationError: If value is not a finite number
    """
    return Amount(_coerce(value), AmountRole.SHARES)


def to_base_units(amount: Amount) -> int:
    """
    Convert to the integer on-chain representation (x 10**6).

    Exact: a valid Amount never has more than six fractional digits.

    Examples:
        >>> to_base_units(make_currency("100.5"))
        100500000
    """
    return int(amount.value.scaleb(BASE_UNIT_DECIMALS))


def from_base_units(raw: int) -> Decimal:
    """
    Convert an on-chain integer amount back to token units.

    Examples:
        >>> from_base_units(330000)
        Decimal('0.33')
    """
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValidationError(f"Base units must be an integer, got {raw!r}")
    return normalize(Decimal(raw).scaleb(-BASE_UNIT_DECIMALS))
