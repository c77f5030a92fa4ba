"""Tests for settings loading."""

import pytest
from pydantic import ValidationError

from kuest.config import AMOY, POLYGON, KuestSettings


def test_defaults(monkeypatch):
    for name in ("KUEST_CHAIN_ID", "KUEST_USE_SERVER_TIME", "KUEST_CLOCK_CALIBRATION_SAMPLES"):
        monkeypatch.delenv(name, raising=False)

    settings = KuestSettings(_env_file=None)

    assert settings.chain_id == POLYGON
    assert settings.use_server_time is False
    assert settings.clock_calibration_samples == 2
    assert settings.ws_max_reconnects == 10


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("KUEST_CHAIN_ID", str(AMOY))
    monkeypatch.setenv("KUEST_USE_SERVER_TIME", "true")
    monkeypatch.setenv("KUEST_WS_PING_INTERVAL", "0")

    settings = KuestSettings(_env_file=None)

    assert settings.chain_id == AMOY
    assert settings.use_server_time is True
    assert settings.ws_ping_interval == 0


def test_calibration_samples_must_be_positive():
    with pytest.raises(ValidationError):
        KuestSettings(_env_file=None, clock_calibration_samples=0)


def test_repr():
    settings = KuestSettings(_env_file=None)
    assert repr(settings).startswith("KuestSettings(clob_url=")
