"""API modules for Kuest client."""

from .base import BaseAPIClient
from .clob import CLOBAPI
from .websocket import (
    Subscription,
    SubscriptionKey,
    SubscriptionMultiplexer,
    WebSocketConnection,
)

__all__ = [
    "BaseAPIClient",
    "CLOBAPI",
    "Subscription",
    "SubscriptionKey",
    "SubscriptionMultiplexer",
    "WebSocketConnection",
]
