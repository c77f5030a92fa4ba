"""
Custom exceptions for Kuest client.

Provides typed exceptions so callers can tell local validation problems,
authentication misuse, signing failures and transport failures apart.
"""

from typing import Optional, Any


class KuestError(Exception):
    """Base exception for all Kuest errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(KuestError):
    """Input validation failed."""
    pass


class PrecisionError(ValidationError):
    """Decimal has more fractional digits than its role allows."""

    def __init__(self, message: str, scale: int, max_scale: int):
        super().__init__(message, {"scale": scale, "max_scale": max_scale})
        self.scale = scale
        self.max_scale = max_scale


class DomainMismatchError(ValidationError):
    """Signature domain (chain id / exchange contract) does not match the signer."""

    def __init__(self, message: str, expected: Optional[Any] = None,
                 actual: Optional[Any] = None):
        super().__init__(message, {"expected": expected, "actual": actual})
        self.expected = expected
        self.actual = actual


class AuthenticationError(KuestError):
    """Authentication failed."""
    pass


class NotAuthenticatedError(AuthenticationError):
    """Operation requires an authenticated session."""
    pass


class CryptographicError(KuestError):
    """Signing or salt generation failed."""
    pass


class APIError(KuestError):
    """API request failed."""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 response: Optional[Any] = None, method: Optional[str] = None,
                 path: Optional[str] = None):
        super().__init__(message, {
            "status_code": status_code,
            "response": response,
            "method": method,
            "path": path,
        })
        self.status_code = status_code
        self.response = response
        self.method = method
        self.path = path


class RateLimitError(APIError):
    """Rate limit exceeded."""

    def __init__(self, message: str, endpoint: str, retry_after: Optional[float] = None):
        super().__init__(message, status_code=429, path=endpoint)
        self.details["retry_after"] = retry_after
        self.endpoint = endpoint
        self.retry_after = retry_after


class TimeoutError(APIError):
    """Request timed out."""
    pass


# Trading-specific exceptions
class TradingError(KuestError):
    """Base exception for trading operations."""
    pass


class OrderRejectedError(TradingError):
    """Order was rejected by exchange."""

    def __init__(self, message: str, order_id: Optional[str] = None,
                 reason: Optional[str] = None):
        super().__init__(message, {"order_id": order_id, "reason": reason})
        self.order_id = order_id
        self.reason = reason


# WebSocket exceptions
class WebSocketError(KuestError):
    """WebSocket connection error."""
    pass


class WebSocketConnectionError(WebSocketError):
    """Failed to connect to WebSocket."""
    pass


class WebSocketDisconnectedError(WebSocketError):
    """WebSocket disconnected and could not be re-established."""

    def __init__(self, message: str, attempts: Optional[int] = None):
        super().__init__(message, {"attempts": attempts})
        self.attempts = attempts
