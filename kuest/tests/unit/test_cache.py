"""Tests for the market metadata cache."""

import time
from unittest.mock import Mock

import pytest

from kuest.models import TickSize
from kuest.utils.cache import MarketMetadataCache, TTLCache


class TestTTLCache:
    def test_get_and_set(self):
        cache = TTLCache(default_ttl=60)
        cache.set("a", 1)

        assert cache.get("a") == 1
        assert cache.get("missing") is None

    def test_expiry(self):
        cache = TTLCache(default_ttl=60)
        cache.set("a", 1, ttl=0.01)
        time.sleep(0.05)

        assert cache.get("a") is None
        assert cache.size() == 0

    def test_lru_eviction(self):
        cache = TTLCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)

        assert cache.get("a") == 1
        assert cache.get("b") is None
        assert cache.get("c") == 3

    def test_get_or_fetch(self):
        cache = TTLCache()
        fetch = Mock(return_value=False)

        assert cache.get_or_fetch("neg_risk", fetch) is False
        assert cache.get_or_fetch("neg_risk", fetch) is False
        fetch.assert_called_once()

    def test_fetch_errors_are_not_cached(self):
        cache = TTLCache()
        fetch = Mock(side_effect=[RuntimeError("down"), 5])

        with pytest.raises(RuntimeError):
            cache.get_or_fetch("k", fetch)
        assert cache.get_or_fetch("k", fetch) == 5


class TestMarketMetadataCache:
    def test_fetches_once_per_token(self):
        cache = MarketMetadataCache()
        fetch = Mock(return_value=TickSize.THOUSANDTH)

        assert cache.tick_size("1", fetch) is TickSize.THOUSANDTH
        assert cache.tick_size("1", fetch) is TickSize.THOUSANDTH
        cache.tick_size("2", fetch)

        assert fetch.call_count == 2

    def test_zero_fee_is_cached(self):
        cache = MarketMetadataCache()
        fetch = Mock(return_value=0)

        cache.fee_rate_bps("1", fetch)
        cache.fee_rate_bps("1", fetch)

        fetch.assert_called_once()

    def test_set_and_invalidate(self):
        cache = MarketMetadataCache()
        cache.set_tick_size("1", TickSize.TENTH)

        assert cache.tick_size("1", Mock()) is TickSize.TENTH

        cache.invalidate("1")
        assert cache.tick_size("1", lambda: TickSize.HUNDREDTH) is TickSize.HUNDREDTH
