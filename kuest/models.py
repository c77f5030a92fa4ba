"""
Type definitions for Kuest client.

Uses Pydantic for runtime validation and type safety.
DECIMAL PRECISION: All numeric types use Decimal for financial-grade accuracy.

Wire enums are closed sets with an explicit UNKNOWN member: decoding an
unrecognized (or differently cased) server value never fails, it maps to the
matching member or to UNKNOWN.
"""

from enum import Enum
from typing import Optional, Any
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pydantic import BaseModel, Field, field_validator, ConfigDict

from .exceptions import ValidationError
from .utils.numeric import to_decimal

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class WireEnum(str, Enum):
    """String enum decoding case-insensitively with an UNKNOWN fallback."""

    @classmethod
    def _missing_(cls, value: Any):
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.lower():
                    return member
        return cls.UNKNOWN

    def __str__(self) -> str:
        return self.value


class Side(WireEnum):
    """Order side."""
    BUY = "BUY"
    SELL = "SELL"
    UNKNOWN = "UNKNOWN"

    def as_int(self) -> int:
        """Integer encoding used inside signed orders (0 = buy, 1 = sell)."""
        if self is Side.BUY:
            return 0
        if self is Side.SELL:
            return 1
        raise ValidationError(f"Side {self.value} has no integer encoding")

    @classmethod
    def from_int(cls, value: int) -> "Side":
        if value == 0:
            return cls.BUY
        if value == 1:
            return cls.SELL
        raise ValidationError(f"Unable to create Side from {value}")


class OrderType(WireEnum):
    """Order lifetime policy."""
    GTC = "GTC"  # Good-til-cancelled
    FOK = "FOK"  # Fill-or-kill
    GTD = "GTD"  # Good-til-date
    FAK = "FAK"  # Fill-and-kill
    UNKNOWN = "UNKNOWN"


class OrderStatus(WireEnum):
    """Order status values reported by the CLOB."""
    LIVE = "LIVE"
    MATCHED = "MATCHED"
    CANCELED = "CANCELED"
    DELAYED = "DELAYED"
    UNMATCHED = "UNMATCHED"
    UNKNOWN = "UNKNOWN"


class SignatureType(int, Enum):
    """Wallet signature scheme tag signed into every order."""
    EOA = 0  # Externally Owned Account
    PROXY = 1  # Proxy wallet (Magic/email)
    GNOSIS_SAFE = 2  # Multisig wallet


class TickSize(Enum):
    """Maximum number of decimal places for an order's price."""
    TENTH = Decimal("0.1")
    HUNDREDTH = Decimal("0.01")
    THOUSANDTH = Decimal("0.001")
    TEN_THOUSANDTH = Decimal("0.0001")

    @classmethod
    def from_decimal(cls, value: Any) -> "TickSize":
        """
        Parse a tick size from the API representation.

        Raises:
            ValidationError: If value is not a supported tick size
        """
        try:
            dec = value if isinstance(value, Decimal) else Decimal(str(value))
        except (ValueError, InvalidOperation) as e:
            raise ValidationError(f"Invalid tick size: {value}") from e

        for member in cls:
            if member.value == dec:
                return member
        raise ValidationError(
            f"Unknown tick size: {value}. Expected one of: 0.1, 0.01, 0.001, 0.0001"
        )

    @property
    def decimals(self) -> int:
        return -self.value.as_tuple().exponent

    def __str__(self) -> str:
        return f"{self.name.title().replace('_', '')}({self.value})"


@dataclass(frozen=True)
class ApiCredentials:
    """
    L2 API credentials issued for a wallet.

    SECURITY: secret and passphrase are hidden from repr.
    """
    key: str
    secret: str = field(repr=False)
    passphrase: str = field(repr=False)

    @classmethod
    def from_response(cls, response: Any) -> "ApiCredentials":
        """
        Build credentials from an issuance endpoint response.

        Raises:
            ValueError: If any field is missing or empty
        """
        if not isinstance(response, dict):
            raise ValueError(f"expected object, got {type(response).__name__}")

        key = response.get("apiKey")
        secret = response.get("secret")
        passphrase = response.get("passphrase")
        missing = [
            name for name, value in
            (("apiKey", key), ("secret", secret), ("passphrase", passphrase))
            if not isinstance(value, str) or not value
        ]
        if missing:
            raise ValueError(f"missing fields: {', '.join(missing)}")
        return cls(key=key, secret=secret, passphrase=passphrase)


# Request Models
class OrderArgs(BaseModel):
    """Limit order intent."""
    model_config = ConfigDict(frozen=True)

    token_id: str = Field(..., description="ERC1155 token ID (decimal string)")
    price: Decimal = Field(..., gt=0, lt=1, description="Price per share")
    size: Decimal = Field(..., gt=0, description="Size in shares")
    side: Side = Field(..., description="BUY or SELL")
    order_type: OrderType = Field(default=OrderType.GTC)
    expiration: int = Field(default=0, ge=0, description="Unix timestamp for GTD orders")
    fee_rate_bps: Optional[int] = Field(default=None, ge=0, description="Resolved from API when None")
    taker: str = Field(default=ZERO_ADDRESS)
    tick_size: Optional[TickSize] = Field(default=None, description="Resolved from API when None")
    neg_risk: Optional[bool] = Field(default=None, description="Resolved from API when None")

    @field_validator("price", "size", mode="before")
    @classmethod
    def validate_numeric(cls, v: Any) -> Decimal:
        """Convert to Decimal without float noise."""
        dec = to_decimal(v)
        if dec is None:
            raise ValueError(f"Cannot convert {type(v)} to Decimal")
        return dec

    @field_validator("tick_size", mode="before")
    @classmethod
    def validate_tick_size(cls, v: Any) -> Optional[TickSize]:
        if v is None or isinstance(v, TickSize):
            return v
        return TickSize.from_decimal(v)


class MarketOrderArgs(BaseModel):
    """
    Market order intent.

    BUY amounts are in collateral, SELL amounts are in shares.
    """
    model_config = ConfigDict(frozen=True)

    token_id: str = Field(..., description="ERC1155 token ID")
    amount: Decimal = Field(..., gt=0)
    side: Side = Field(..., description="BUY or SELL")
    price: Decimal = Field(..., gt=0, lt=1, description="Worst acceptable price")
    order_type: OrderType = Field(default=OrderType.FOK, description="FOK or FAK")
    fee_rate_bps: Optional[int] = Field(default=None, ge=0)
    taker: str = Field(default=ZERO_ADDRESS)
    tick_size: Optional[TickSize] = None
    neg_risk: Optional[bool] = None

    @field_validator("amount", "price", mode="before")
    @classmethod
    def validate_numeric(cls, v: Any) -> Decimal:
        dec = to_decimal(v)
        if dec is None:
            raise ValueError(f"Cannot convert {type(v)} to Decimal")
        return dec

    @field_validator("tick_size", mode="before")
    @classmethod
    def validate_tick_size(cls, v: Any) -> Optional[TickSize]:
        if v is None or isinstance(v, TickSize):
            return v
        return TickSize.from_decimal(v)


# Response Models
class PostOrderResponse(BaseModel):
    """Order placement response."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    error_msg: Optional[str] = Field(None, alias="errorMsg")
    order_id: str = Field("", alias="orderID")
    status: OrderStatus = OrderStatus.UNKNOWN
    making_amount: Decimal = Field(Decimal("0"), alias="makingAmount")
    taking_amount: Decimal = Field(Decimal("0"), alias="takingAmount")
    transaction_hashes: list[str] = Field(default_factory=list, alias="transactionsHashes")
    trade_ids: list[str] = Field(default_factory=list, alias="tradeIDs")

    @field_validator("making_amount", "taking_amount", mode="before")
    @classmethod
    def empty_string_as_zero(cls, v: Any) -> Decimal:
        """The CLOB sends "" for unfilled amounts."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return Decimal("0")
        dec = to_decimal(v)
        if dec is None:
            raise ValueError(f"Cannot convert {v!r} to Decimal")
        return dec

    @field_validator("transaction_hashes", "trade_ids", mode="before")
    @classmethod
    def default_on_null(cls, v: Any) -> list:
        return v if v is not None else []


class OrderSummary(BaseModel):
    """Single price level."""
    price: Decimal
    size: Decimal


class OrderBookSummary(BaseModel):
    """Order book snapshot for a token."""
    market: str
    asset_id: str
    timestamp: datetime
    hash: Optional[str] = None
    bids: list[OrderSummary] = Field(default_factory=list)
    asks: list[OrderSummary] = Field(default_factory=list)
    min_order_size: Optional[Decimal] = None
    neg_risk: Optional[bool] = None
    tick_size: Optional[Decimal] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_millis(cls, v: Any) -> Any:
        """Timestamps arrive as millisecond strings."""
        if isinstance(v, (str, int)) and str(v).isdigit():
            return datetime.fromtimestamp(int(v) / 1000, tz=timezone.utc)
        return v

    @field_validator("bids", "asks", mode="before")
    @classmethod
    def default_on_null(cls, v: Any) -> list:
        return v if v is not None else []

    @property
    def best_bid(self) -> Optional[Decimal]:
        """Highest bid price."""
        return max((level.price for level in self.bids), default=None)

    @property
    def best_ask(self) -> Optional[Decimal]:
        """Lowest ask price."""
        return min((level.price for level in self.asks), default=None)


# Streaming
class ChannelType(str, Enum):
    """Streaming channel."""
    MARKET = "market"
    USER = "user"


class StreamEventType(WireEnum):
    """Event types carried by streaming data frames."""
    BOOK = "book"
    PRICE_CHANGE = "price_change"
    LAST_TRADE_PRICE = "last_trade_price"
    TICK_SIZE_CHANGE = "tick_size_change"
    TRADE = "trade"
    ORDER = "order"
    UNKNOWN = "unknown"

    @property
    def channel(self) -> Optional[ChannelType]:
        """Channel an event type is published on (None if unknown)."""
        if self in (StreamEventType.TRADE, StreamEventType.ORDER):
            return ChannelType.USER
        if self is StreamEventType.UNKNOWN:
            return None
        return ChannelType.MARKET


@dataclass(frozen=True)
class StreamMessage:
    """Decoded data frame delivered to a subscription."""
    channel: ChannelType
    asset_id: str
    event_type: StreamEventType
    payload: dict[str, Any] = field(repr=False)
    received_at: float = 0.0

    def as_order_book(self) -> OrderBookSummary:
        """
        Parse a book event.

        Raises:
            ValidationError: If this is not a book event
        """
        if self.event_type is not StreamEventType.BOOK:
            raise ValidationError(f"Not a book event: {self.event_type.value}")
        return OrderBookSummary.model_validate(self.payload)
