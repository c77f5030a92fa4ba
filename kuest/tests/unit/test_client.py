"""Tests for the client facade: parameter caching and authentication gates."""

from unittest.mock import Mock

import pytest

from kuest.api.websocket import SubscriptionMultiplexer
from kuest.client import KuestClient
from kuest.config import KuestSettings
from kuest.exceptions import NotAuthenticatedError
from kuest.models import ChannelType, MarketOrderArgs, OrderArgs, PostOrderResponse, Side, TickSize
from kuest.trading.orders import verify_signed_order
from kuest.tests.helpers import ADDRESS, API_KEY, PRIVATE_KEY, TOKEN_ID, FakeConnection


def make_client(credentials=None) -> KuestClient:
    client = KuestClient(
        PRIVATE_KEY,
        settings=KuestSettings(_env_file=None, enable_metrics=False),
        credentials=credentials,
    )
    client.clob = Mock()
    client.clob.get_tick_size.return_value = TickSize.HUNDREDTH
    client.clob.get_neg_risk.return_value = False
    client.clob.get_fee_rate_bps.return_value = 0
    client.stream = SubscriptionMultiplexer(
        auth_provider=client.signer.stream_auth,
        connection_factory=lambda **callbacks: FakeConnection(**callbacks),
    )
    return client


@pytest.fixture
def client(credentials):
    client = make_client(credentials)
    yield client
    client.close()


@pytest.fixture
def anonymous_client():
    client = make_client()
    yield client
    client.close()


def order_args(**overrides) -> OrderArgs:
    fields = dict(token_id=TOKEN_ID, price="0.5", size="10", side=Side.BUY)
    fields.update(overrides)
    return OrderArgs(**fields)


class TestCreateOrder:
    def test_fetches_market_parameters_once(self, client):
        client.create_order(order_args())
        client.create_order(order_args(price="0.4"))

        client.clob.get_tick_size.assert_called_once_with(TOKEN_ID)
        client.clob.get_neg_risk.assert_called_once_with(TOKEN_ID)
        client.clob.get_fee_rate_bps.assert_called_once_with(TOKEN_ID)

    def test_explicit_parameters_skip_fetch(self, client):
        client.create_order(order_args(tick_size=TickSize.TENTH, neg_risk=True, fee_rate_bps=10))

        client.clob.get_tick_size.assert_not_called()
        client.clob.get_neg_risk.assert_not_called()
        client.clob.get_fee_rate_bps.assert_not_called()

    def test_signed_under_exchange_domain(self, client):
        signed = client.create_order(order_args())

        assert signed.owner == API_KEY
        assert signed.order.maker == ADDRESS
        assert verify_signed_order(signed, 137) == ADDRESS

    def test_market_order(self, client):
        args = MarketOrderArgs(token_id=TOKEN_ID, amount="5", side=Side.BUY, price="0.5")
        signed = client.create_market_order(args)

        assert signed.order.maker_amount == 5_000_000

    def test_requires_authentication(self, anonymous_client):
        with pytest.raises(NotAuthenticatedError):
            anonymous_client.create_order(order_args())

        anonymous_client.clob.get_tick_size.assert_not_called()

    def test_create_and_post(self, client):
        client.clob.post_order.return_value = PostOrderResponse(success=True, orderID="0xabc")

        response = client.create_and_post_order(order_args())

        assert response.order_id == "0xabc"
        signed, signer = client.clob.post_order.call_args[0]
        assert signer is client.signer
        assert signed.owner == API_KEY


class TestStreaming:
    def test_user_channel_requires_authentication(self, anonymous_client):
        with pytest.raises(NotAuthenticatedError):
            anonymous_client.subscribe_user(["0xcond"])

        assert not anonymous_client._stream_started

    def test_orderbook_starts_stream_once(self, client):
        first = client.subscribe_orderbook([TOKEN_ID])
        second = client.subscribe_orderbook([TOKEN_ID])

        assert client._stream_started
        assert client.stream.refcount(ChannelType.MARKET, TOKEN_ID) == 2

        first.close()
        second.close()
        assert client.stream.refcount(ChannelType.MARKET, TOKEN_ID) == 0

    def test_user_subscription_carries_auth(self, client):
        client.stream._connection.start()
        client.stream._connection.open()

        with client.subscribe_user(["0xcond"]):
            frame = client.stream._connection.frames("subscribe")[0]

        assert frame["auth"]["apiKey"] == API_KEY

    def test_close_ends_subscriptions(self, client):
        sub = client.subscribe_orderbook([TOKEN_ID])

        client.close()

        assert list(sub) == []
