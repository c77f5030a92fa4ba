"""
Configuration management for Kuest client.

Loads settings from environment variables with validation.
"""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


POLYGON = 137
AMOY = 80002


class KuestSettings(BaseSettings):
    """
    Kuest client settings.

    Loads from environment variables with KUEST_ prefix.
    """
    model_config = SettingsConfigDict(
        env_prefix="KUEST_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # API URLs
    clob_url: str = Field(
        default="https://clob.kuest.com",
        description="CLOB API URL"
    )

    # Chain configuration
    chain_id: int = Field(default=POLYGON, description="Polygon chain ID")

    # Clock source
    use_server_time: bool = Field(
        default=False,
        description="Sign requests with server-synchronized timestamps"
    )
    clock_calibration_samples: int = Field(
        default=2, ge=1, le=10,
        description="Server clock round trips taken when (re)synchronizing"
    )

    # Timeouts
    request_timeout: float = Field(default=30.0, ge=1.0, description="Request timeout (seconds)")
    connect_timeout: float = Field(default=10.0, ge=1.0, description="Connection timeout (seconds)")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_requests: bool = Field(default=False, description="Log all HTTP requests")

    # Metrics
    enable_metrics: bool = Field(default=False, description="Enable Prometheus metrics")

    # WebSocket (CLOB orderbook and user orders)
    ws_url: str = Field(
        default="wss://ws-subscriptions-clob.kuest.com/ws",
        description="WebSocket URL"
    )
    ws_reconnect_delay: float = Field(default=5.0, ge=0.0, description="WS reconnect delay")
    ws_max_reconnects: int = Field(default=10, ge=0, description="Max WS reconnect attempts")
    ws_ping_interval: float = Field(default=10.0, ge=0.0, description="WS ping interval (0 disables)")
    ws_connect_timeout: Optional[float] = Field(
        default=None,
        description="Seconds to wait for the first connection in connect(wait=True)"
    )

    def __repr__(self) -> str:
        """Safe repr without sensitive data."""
        return (
            f"KuestSettings("
            f"clob_url={self.clob_url}, "
            f"chain_id={self.chain_id}, "
            f"use_server_time={self.use_server_time}"
            ")"
        )


def get_settings() -> KuestSettings:
    """
    Get Kuest settings.

    Returns:
        Validated settings instance
    """
    return KuestSettings()
