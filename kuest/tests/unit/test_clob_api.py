"""
Tests for the CLOB HTTP client.

The requests session is patched: bodies, headers and error mapping are
checked without network access.
"""

from unittest.mock import Mock, patch

import orjson
import pytest
import requests

from kuest.api.clob import CLOBAPI, MAX_BATCH_ORDERS
from kuest.auth.signer import (
    KUEST_API_KEY,
    KUEST_SIGNATURE,
    KUEST_TIMESTAMP,
    RequestSigner,
    build_hmac_signature,
)
from kuest.config import KuestSettings
from kuest.exceptions import (
    APIError,
    AuthenticationError,
    NotAuthenticatedError,
    OrderRejectedError,
    RateLimitError,
    TimeoutError,
    ValidationError,
)
from kuest.models import OrderArgs, OrderStatus, Side, TickSize
from kuest.trading.order_builder import OrderBuilder
from kuest.tests.helpers import API_KEY, SECRET, TOKEN_ID


def make_response(status_code=200, payload=None, headers=None):
    response = Mock()
    response.status_code = status_code
    response.content = orjson.dumps(payload) if payload is not None else b""
    response.text = response.content.decode("utf-8")
    response.headers = headers or {}
    return response


ACCEPTED = {
    "success": True,
    "errorMsg": "",
    "orderID": "0xabc",
    "status": "live",
    "makingAmount": "",
    "takingAmount": "",
}


@pytest.fixture
def api():
    client = CLOBAPI(KuestSettings(_env_file=None))
    yield client
    client.close()


@pytest.fixture
def signed_order(wallet):
    args = OrderArgs(
        token_id=TOKEN_ID,
        price="0.5",
        size="10",
        side=Side.BUY,
        tick_size=TickSize.HUNDREDTH,
        neg_risk=False,
        fee_rate_bps=0,
    )
    return OrderBuilder(wallet).build_order(args, owner=API_KEY)


class TestErrorMapping:
    @pytest.mark.parametrize("status", [401, 403])
    def test_authentication_errors(self, api, status):
        with patch.object(api.session, "request", return_value=make_response(status, {"error": "bad"})):
            with pytest.raises(AuthenticationError) as exc_info:
                api.get("/auth/api-keys")

        assert exc_info.value.details["status_code"] == status

    def test_rate_limit(self, api):
        response = make_response(429, {"error": "slow down"}, headers={"Retry-After": "2"})
        with patch.object(api.session, "request", return_value=response):
            with pytest.raises(RateLimitError) as exc_info:
                api.get("/tick-size")

        assert exc_info.value.retry_after == 2.0
        assert exc_info.value.endpoint == "/tick-size"

    def test_server_error(self, api):
        with patch.object(api.session, "request", return_value=make_response(500, {"error": "boom"})):
            with pytest.raises(APIError) as exc_info:
                api.post("/order", data="{}")

        error = exc_info.value
        assert error.status_code == 500
        assert error.method == "POST"
        assert error.path == "/order"
        assert error.response == {"error": "boom"}

    def test_timeout(self, api):
        with patch.object(api.session, "request", side_effect=requests.exceptions.ReadTimeout()):
            with pytest.raises(TimeoutError):
                api.get("/time")

    def test_connection_error(self, api):
        with patch.object(api.session, "request", side_effect=requests.exceptions.ConnectionError()):
            with pytest.raises(APIError, match="ConnectionError"):
                api.get("/time")

    def test_invalid_json(self, api):
        response = make_response(200)
        response.content = b"<html>"
        with patch.object(api.session, "request", return_value=response):
            with pytest.raises(APIError, match="Invalid JSON"):
                api.get("/time")


class TestServerTime:
    @pytest.mark.parametrize("payload", [1700000000, {"timestamp": 1700000000}, "1700000000"])
    def test_accepted_shapes(self, api, payload):
        with patch.object(api.session, "request", return_value=make_response(200, payload)):
            assert api.get_server_time() == 1700000000

    def test_rejects_non_timestamp(self, api):
        with patch.object(api.session, "request", return_value=make_response(200, {"time": "now"})):
            with pytest.raises(APIError, match="not a timestamp"):
                api.get_server_time()


class TestMarketParameters:
    def test_tick_size(self, api):
        with patch.object(api.session, "request", return_value=make_response(200, {"minimum_tick_size": 0.001})) as request:
            assert api.get_tick_size(TOKEN_ID) is TickSize.THOUSANDTH

        assert request.call_args.kwargs["params"] == {"token_id": TOKEN_ID}

    def test_unsupported_tick_size(self, api):
        with patch.object(api.session, "request", return_value=make_response(200, {"minimum_tick_size": 0.5})):
            with pytest.raises(ValidationError):
                api.get_tick_size(TOKEN_ID)

    def test_neg_risk_and_fee(self, api):
        responses = [make_response(200, {"neg_risk": True}), make_response(200, {"base_fee": 25})]
        with patch.object(api.session, "request", side_effect=responses):
            assert api.get_neg_risk(TOKEN_ID) is True
            assert api.get_fee_rate_bps(TOKEN_ID) == 25


class TestPostOrder:
    def test_sends_signed_body(self, api, signer, signed_order):
        with patch.object(api.session, "request", return_value=make_response(200, ACCEPTED)) as request:
            result = api.post_order(signed_order, signer)

        assert result.order_id == "0xabc"
        assert result.status is OrderStatus.LIVE

        kwargs = request.call_args.kwargs
        body = kwargs["data"].decode("utf-8")
        headers = kwargs["headers"]

        assert orjson.loads(body) == signed_order.to_wire()
        assert " " not in body
        assert headers[KUEST_API_KEY] == API_KEY
        assert headers[KUEST_SIGNATURE] == build_hmac_signature(
            SECRET, int(headers[KUEST_TIMESTAMP]), "POST", "/order", body
        )

    def test_rejected(self, api, signer, signed_order):
        rejection = dict(ACCEPTED, success=False, errorMsg="not enough balance", status="")
        with patch.object(api.session, "request", return_value=make_response(200, rejection)):
            with pytest.raises(OrderRejectedError) as exc_info:
                api.post_order(signed_order, signer)

        assert exc_info.value.reason == "not enough balance"
        assert exc_info.value.order_id == "0xabc"

    def test_unauthenticated_signer_sends_nothing(self, api, session, signed_order):
        with patch.object(api.session, "request") as request:
            with pytest.raises(NotAuthenticatedError):
                api.post_order(signed_order, RequestSigner(session))

        request.assert_not_called()


class TestPostOrders:
    def test_batch(self, api, signer, signed_order):
        responses = [ACCEPTED, dict(ACCEPTED, success=False, errorMsg="crossed", orderID="")]
        with patch.object(api.session, "request", return_value=make_response(200, responses)) as request:
            results = api.post_orders([signed_order, signed_order], signer)

        assert [r.success for r in results] == [True, False]
        sent = orjson.loads(request.call_args.kwargs["data"])
        assert len(sent) == 2

    def test_empty_batch(self, api, signer):
        with patch.object(api.session, "request") as request:
            assert api.post_orders([], signer) == []

        request.assert_not_called()

    def test_batch_limit(self, api, signer, signed_order):
        with patch.object(api.session, "request") as request:
            with pytest.raises(ValidationError, match="exceeds maximum"):
                api.post_orders([signed_order] * (MAX_BATCH_ORDERS + 1), signer)

        request.assert_not_called()
