"""
Kuest Client Library

Thread-safe session core for the Kuest prediction-market CLOB:
API credential lifecycle, L2 request signing, EIP-712 order signing and
refcounted real-time subscriptions.
"""

from .client import KuestClient
from .config import KuestSettings, get_settings, POLYGON, AMOY
from .amounts import Amount, AmountRole, make_currency, make_shares, to_base_units
from .models import (
    Side,
    OrderType,
    OrderStatus,
    SignatureType,
    TickSize,
    ApiCredentials,
    OrderArgs,
    MarketOrderArgs,
    PostOrderResponse,
    OrderBookSummary,
    ChannelType,
    StreamEventType,
    StreamMessage,
)
from .auth import AuthSession, AuthState, ClockSource, RequestSigner, WalletSigner
from .trading import CanonicalOrder, SignedOrder, OrderBuilder, verify_signed_order
from .api import Subscription, SubscriptionKey, SubscriptionMultiplexer
from .exceptions import (
    KuestError,
    ValidationError,
    PrecisionError,
    DomainMismatchError,
    AuthenticationError,
    NotAuthenticatedError,
    CryptographicError,
    APIError,
    RateLimitError,
    TimeoutError,
    TradingError,
    OrderRejectedError,
    WebSocketError,
    WebSocketConnectionError,
    WebSocketDisconnectedError,
)
from .logging_config import setup_logging

__version__ = "0.1.0"

__all__ = [
    # Main client
    "KuestClient",
    "KuestSettings",
    "get_settings",
    "POLYGON",
    "AMOY",
    "setup_logging",

    # Amounts
    "Amount",
    "AmountRole",
    "make_currency",
    "make_shares",
    "to_base_units",

    # Types
    "Side",
    "OrderType",
    "OrderStatus",
    "SignatureType",
    "TickSize",
    "ApiCredentials",
    "OrderArgs",
    "MarketOrderArgs",
    "PostOrderResponse",
    "OrderBookSummary",
    "ChannelType",
    "StreamEventType",
    "StreamMessage",

    # Session and signing
    "AuthSession",
    "AuthState",
    "ClockSource",
    "RequestSigner",
    "WalletSigner",
    "CanonicalOrder",
    "SignedOrder",
    "OrderBuilder",
    "verify_signed_order",

    # Streaming
    "Subscription",
    "SubscriptionKey",
    "SubscriptionMultiplexer",

    # Exceptions
    "KuestError",
    "ValidationError",
    "PrecisionError",
    "DomainMismatchError",
    "AuthenticationError",
    "NotAuthenticatedError",
    "CryptographicError",
    "APIError",
    "RateLimitError",
    "TimeoutError",
    "TradingError",
    "OrderRejectedError",
    "WebSocketError",
    "WebSocketConnectionError",
    "WebSocketDisconnectedError",
]
