"""
CLOB API client.

Credential issuance, server time, order submission and the market
parameters needed to build orders.
"""

from typing import Any, Dict, List, TYPE_CHECKING
import logging

from .base import BaseAPIClient, dumps_compact
from ..config import KuestSettings
from ..exceptions import APIError, OrderRejectedError, TradingError, ValidationError
from ..models import PostOrderResponse, TickSize
from ..trading.orders import SignedOrder

if TYPE_CHECKING:
    from ..auth.signer import RequestSigner

logger = logging.getLogger(__name__)

# Maximum orders accepted by POST /orders
MAX_BATCH_ORDERS = 15


class CLOBAPI(BaseAPIClient):
    """
    CLOB API client.

    L1 endpoints take pre-built L1 headers; L2 endpoints take a RequestSigner
    and sign the exact body they send.
    """

    def __init__(self, settings: KuestSettings):
        """
        Initialize CLOB API client.

        Args:
            settings: Client settings
        """
        super().__init__(base_url=settings.clob_url, settings=settings)

    # ========== System ==========

    def get_server_time(self) -> int:
        """
        Get current server timestamp.

        Returns:
            UNIX timestamp in seconds

        Raises:
            APIError: If the request fails or the response is not a timestamp
        """
        response = self.get("/time")
        if isinstance(response, dict):
            response = response.get("timestamp")

        try:
            return int(response)
        except (TypeError, ValueError):
            raise APIError(
                f"Server time response is not a timestamp: {response!r}",
                method="GET",
                path="/time"
            ) from None

    # ========== API Key Management ==========

    def create_api_key(self, l1_headers: Dict[str, str]) -> Dict[str, Any]:
        """Create new API credentials (L1 auth, no body)."""
        logger.debug("Creating API key")
        return self.post("/auth/api-key", headers=l1_headers)

    def derive_api_key(self, l1_headers: Dict[str, str]) -> Dict[str, Any]:
        """Derive existing API credentials (L1 auth)."""
        logger.debug("Deriving API key")
        return self.get("/auth/derive-api-key", headers=l1_headers)

    def get_api_keys(self, l2_headers: Dict[str, str]) -> Any:
        """List API keys for the authenticated wallet."""
        return self.get("/auth/api-keys", headers=l2_headers)

    def delete_api_key(self, l2_headers: Dict[str, str]) -> Any:
        """Revoke the API key used to sign the request."""
        return self.delete("/auth/api-key", headers=l2_headers)

    # ========== Market Parameters ==========

    def get_tick_size(self, token_id: str) -> TickSize:
        """
        Get minimum tick size for a token.

        Raises:
            ValidationError: If the server reports an unsupported tick size
        """
        response = self.get("/tick-size", params={"token_id": token_id})
        return TickSize.from_decimal(response["minimum_tick_size"])

    def get_neg_risk(self, token_id: str) -> bool:
        """Whether the token trades on the neg-risk exchange."""
        response = self.get("/neg-risk", params={"token_id": token_id})
        return bool(response["neg_risk"])

    def get_fee_rate_bps(self, token_id: str) -> int:
        """Base fee rate for the token in basis points."""
        response = self.get("/fee-rate", params={"token_id": token_id})
        return int(response["base_fee"])

    # ========== Orders ==========

    def post_order(self, signed_order: SignedOrder, signer: "RequestSigner") -> PostOrderResponse:
        """
        Post signed order to exchange.

        Args:
            signed_order: Signed order
            signer: L2 request signer

        Returns:
            Order response

        Raises:
            OrderRejectedError: If the exchange rejects the order
            NotAuthenticatedError: If the session is not authenticated
        """
        path = "/order"
        body = dumps_compact(signed_order.to_wire())
        headers = signer.headers("POST", path, body)

        response = self.post(path, data=body, headers=headers)
        if not isinstance(response, dict):
            raise TradingError(
                f"Invalid order response format: expected dict, got {type(response).__name__}"
            )

        result = PostOrderResponse.model_validate(response)
        self._raise_if_rejected(result)
        logger.info(f"Order posted: {result.order_id} ({result.status.value})")
        return result

    def post_orders(
        self,
        signed_orders: List[SignedOrder],
        signer: "RequestSigner"
    ) -> List[PostOrderResponse]:
        """
        Post multiple signed orders in a single request.

        Rejections are reported per order in the returned list, not raised.

        Raises:
            ValidationError: If more than MAX_BATCH_ORDERS orders are given
        """
        if not signed_orders:
            return []
        if len(signed_orders) > MAX_BATCH_ORDERS:
            raise ValidationError(
                f"Batch of {len(signed_orders)} orders exceeds maximum of {MAX_BATCH_ORDERS}"
            )

        path = "/orders"
        body = dumps_compact([order.to_wire() for order in signed_orders])
        headers = signer.headers("POST", path, body)

        response = self.post(path, data=body, headers=headers)
        if not isinstance(response, list):
            raise TradingError(
                f"Invalid batch response format: expected list, got {type(response).__name__}"
            )

        results = [PostOrderResponse.model_validate(item) for item in response]
        accepted = sum(1 for r in results if r.success)
        logger.info(f"Batch posted: {accepted}/{len(results)} accepted")
        return results

    @staticmethod
    def _raise_if_rejected(result: PostOrderResponse) -> None:
        if result.success and not result.error_msg:
            return
        reason = result.error_msg or "unknown"
        logger.warning(f"Order rejected: {reason}")
        raise OrderRejectedError(
            f"Order rejected: {reason}",
            order_id=result.order_id or None,
            reason=reason
        )
