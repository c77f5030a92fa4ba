"""
Structured logging helpers.

Credential redaction and correlation IDs for log records emitted by the
session core.
"""

import logging
import re
import uuid
from typing import Optional
from contextvars import ContextVar

# Context-local correlation ID storage
_correlation_id: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)


class CredentialRedactionFilter(logging.Filter):
    """
    Filter that redacts credentials from log records.

    Covers private keys, HMAC secrets, passphrases, signing headers and long
    base64 blobs. Records are never dropped, only sanitized.

    Usage:
        >>> handler = logging.StreamHandler()
        >>> handler.addFilter(CredentialRedactionFilter())
        >>> logger.addHandler(handler)
    """

    PRIVATE_KEY_PATTERN = re.compile(r'0x[0-9a-fA-F]{64}(?![0-9a-fA-F])')
    # Keep the prefix (secret=) and drop the value
    API_SECRET_PATTERN = re.compile(
        r'((?:secret|passphrase|password|api_key|apikey)["\']?\s*[:=]\s*["\']?)[a-zA-Z0-9+/=_\-]{8,}["\']?',
        re.IGNORECASE
    )
    HEADER_PATTERN = re.compile(
        r'((?:KUEST_PASSPHRASE|KUEST_SIGNATURE|KUEST_API_KEY)["\']?\s*[:=]\s*["\']?)[^"\'\s,}]+',
    )
    BASE64_SECRET_PATTERN = re.compile(r'[A-Za-z0-9+/_\-]{40,}={0,2}')
    # Token ids and addresses are long but public
    PUBLIC_IDENTIFIER_PATTERN = re.compile(r'0x[0-9a-fA-F]{40}|[0-9]+')

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg:
            record.msg = self.redact(str(record.msg))

        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    k: self.redact(str(v))
                    for k, v in record.args.items()
                }
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    self.redact(str(arg))
                    for arg in record.args
                )

        if record.exc_text:
            record.exc_text = self.redact(record.exc_text)

        return True

    def redact(self, text: str) -> str:
        """
        Redact all credential patterns from text.

        Args:
            text: Text to redact

        Returns:
            Text with credentials redacted
        """
        if not text:
            return text

        text = self.PRIVATE_KEY_PATTERN.sub('0x[REDACTED]', text)
        text = self.HEADER_PATTERN.sub(r'\1[REDACTED]', text)
        text = self.API_SECRET_PATTERN.sub(r'\1[REDACTED]', text)

        def redact_base64(match):
            b64 = match.group(0)
            if self.PUBLIC_IDENTIFIER_PATTERN.fullmatch(b64):
                return b64
            return b64[:8] + '...[REDACTED]'

        return self.BASE64_SECRET_PATTERN.sub(redact_base64, text)


class CorrelationIdFilter(logging.Filter):
    """Attach the current correlation ID to every record as ``correlation_id``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = _correlation_id.get() or "-"
        return True


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """
    Set correlation ID for current context.

    Args:
        correlation_id: Correlation ID (generates one if None)

    Returns:
        The correlation ID set

    Example:
        >>> correlation_id = set_correlation_id()
        >>> client.place_order(args)  # All logs carry this correlation_id
    """
    if correlation_id is None:
        correlation_id = f"req_{uuid.uuid4().hex[:12]}"

    _correlation_id.set(correlation_id)
    return correlation_id


def get_correlation_id() -> Optional[str]:
    """Get current correlation ID."""
    return _correlation_id.get()


def clear_correlation_id() -> None:
    """Clear correlation ID from current context."""
    _correlation_id.set(None)
