"""
Prometheus metrics for monitoring.

Counts authentication attempts, signed orders and streaming control traffic.
"""

from typing import Optional
import logging

from prometheus_client import Counter, Gauge, start_http_server

logger = logging.getLogger(__name__)


class Metrics:
    """
    Prometheus metrics collector.

    Tracks:
    - API key derivation outcomes
    - Orders signed per side
    - Subscribe/unsubscribe frames sent on the wire
    - Stream reconnects and active subscription keys
    """

    def __init__(self, enabled: bool = True, port: Optional[int] = None):
        """
        Initialize metrics.

        Args:
            enabled: Enable metrics collection
            port: Metrics HTTP server port (no server when None)
        """
        self.enabled = enabled

        if not self.enabled:
            return

        self.auth_attempts = Counter(
            'kuest_auth_attempts_total',
            'API credential issuance attempts',
            ['outcome']
        )

        self.orders_signed = Counter(
            'kuest_orders_signed_total',
            'Orders signed',
            ['side']
        )

        self.stream_frames = Counter(
            'kuest_stream_control_frames_total',
            'Control frames written to the streaming connection',
            ['action', 'channel']
        )

        self.stream_reconnects = Counter(
            'kuest_stream_reconnects_total',
            'Streaming connection reconnects'
        )

        self.active_keys = Gauge(
            'kuest_stream_active_keys',
            'Subscription keys with a non-zero refcount'
        )

        if port is not None:
            try:
                start_http_server(port)
                logger.info(f"Metrics server started on port {port}")
            except OSError as e:
                logger.error(f"Failed to start metrics server: {e}")

    def track_auth(self, outcome: str) -> None:
        """Record API credential issuance attempt."""
        if self.enabled:
            self.auth_attempts.labels(outcome=outcome).inc()

    def track_order_signed(self, side: str) -> None:
        """Record signed order."""
        if self.enabled:
            self.orders_signed.labels(side=side).inc()

    def track_stream_frame(self, action: str, channel: str) -> None:
        """Record subscribe/unsubscribe frame."""
        if self.enabled:
            self.stream_frames.labels(action=action, channel=channel).inc()

    def track_reconnect(self) -> None:
        """Record streaming reconnect."""
        if self.enabled:
            self.stream_reconnects.inc()

    def track_active_keys(self, delta: int) -> None:
        """Adjust number of active subscription keys."""
        if self.enabled:
            self.active_keys.inc(delta)


# Global metrics instance (collectors register once per process)
_metrics: Optional[Metrics] = None
_disabled = Metrics(enabled=False)


def get_metrics(enabled: bool = True, port: Optional[int] = None) -> Metrics:
    """Get or create metrics instance."""
    global _metrics
    if not enabled:
        return _disabled
    if _metrics is None:
        _metrics = Metrics(enabled=True, port=port)
    return _metrics
