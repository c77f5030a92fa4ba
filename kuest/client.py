"""
Main Kuest client.

Wires the wallet signer, authentication session, request signer, order
builder and subscription multiplexer for one wallet.
Thread-safe: any number of threads may build, post and subscribe at once.
"""

from typing import Iterable, List, Optional
import threading
import logging

from .api.clob import CLOBAPI
from .api.websocket import Subscription, SubscriptionMultiplexer
from .auth.session import AuthSession, ClockSource
from .auth.signer import RequestSigner
from .auth.wallet import WalletSigner
from .config import KuestSettings, get_settings
from .exceptions import NotAuthenticatedError
from .metrics import get_metrics
from .models import (
    ApiCredentials,
    ChannelType,
    MarketOrderArgs,
    OrderArgs,
    PostOrderResponse,
    SignatureType,
)
from .trading.order_builder import OrderBuilder
from .trading.orders import SignedOrder
from .utils.cache import MarketMetadataCache

logger = logging.getLogger(__name__)


class KuestClient:
    """
    Client for one Kuest trading wallet.

    Usage:
        >>> with KuestClient(private_key) as client:
        ...     client.authenticate()
        ...     response = client.create_and_post_order(
        ...         OrderArgs(token_id=token_id, price="0.55", size="10", side=Side.BUY)
        ...     )
    """

    def __init__(
        self,
        private_key: str,
        settings: Optional[KuestSettings] = None,
        signature_type: SignatureType = SignatureType.EOA,
        funder: Optional[str] = None,
        credentials: Optional[ApiCredentials] = None,
        metadata_ttl: float = 300.0
    ):
        """
        Initialize Kuest client.

        Args:
            private_key: Wallet private key (hex)
            settings: Optional settings (loads from env if not provided)
            signature_type: EOA, PROXY or GNOSIS_SAFE
            funder: Maker address for proxy/safe wallets
            credentials: Previously issued API credentials (skips authenticate())
            metadata_ttl: Seconds market parameters are cached

        Raises:
            ValidationError: If the key or funder is malformed
        """
        self.settings = settings or get_settings()
        self.metrics = get_metrics(enabled=self.settings.enable_metrics)

        self.wallet = WalletSigner(private_key, chain_id=self.settings.chain_id)
        self.clob = CLOBAPI(self.settings)

        clock = ClockSource.server() if self.settings.use_server_time else ClockSource.local()
        self.session = AuthSession(
            self.wallet,
            self.clob,
            clock=clock,
            calibration_samples=self.settings.clock_calibration_samples,
            metrics=self.metrics
        )
        if credentials is not None:
            self.session.use_credentials(credentials)

        self.signer = RequestSigner(self.session)
        self.order_builder = OrderBuilder(
            self.wallet,
            signature_type=signature_type,
            funder=funder,
            metrics=self.metrics
        )
        self.metadata_cache = MarketMetadataCache(ttl=metadata_ttl)

        self.stream = SubscriptionMultiplexer(
            url=self.settings.ws_url,
            auth_provider=self.signer.stream_auth,
            reconnect_delay=self.settings.ws_reconnect_delay,
            max_reconnects=self.settings.ws_max_reconnects,
            ping_interval=self.settings.ws_ping_interval,
            metrics=self.metrics
        )
        self._stream_started = False
        self._stream_lock = threading.Lock()

        logger.info(f"Kuest client initialized for {self.wallet.address} on chain {self.wallet.chain_id}")

    @property
    def address(self) -> str:
        return self.wallet.address

    @property
    def maker(self) -> str:
        """Address orders are funded from."""
        return self.order_builder.maker

    # ========== Authentication ==========

    def authenticate(self, nonce: Optional[int] = None) -> None:
        """
        Derive or create API credentials.

        Raises:
            AuthenticationError: If issuance fails
        """
        self.session.authenticate(nonce)

    def logout(self) -> None:
        self.session.logout()

    def get_server_time(self) -> int:
        return self.clob.get_server_time()

    # ========== Orders ==========

    def create_order(self, args: OrderArgs, nonce: int = 0) -> SignedOrder:
        """
        Build and sign a limit order.

        Tick size, neg-risk flag and fee rate are fetched (and cached) when
        the args leave them unset.

        Raises:
            NotAuthenticatedError: If the session is not authenticated
            ValidationError: If the order is invalid
        """
        owner = self._owner()
        args = args.model_copy(update=self._market_parameters(args))
        return self.order_builder.build_order(args, owner=owner, nonce=nonce)

    def create_market_order(self, args: MarketOrderArgs, nonce: int = 0) -> SignedOrder:
        """
        Build and sign a market order (FOK or FAK).

        Raises:
            NotAuthenticatedError: If the session is not authenticated
            ValidationError: If the order is invalid
        """
        owner = self._owner()
        args = args.model_copy(update=self._market_parameters(args))
        return self.order_builder.build_market_order(args, owner=owner, nonce=nonce)

    def post_order(self, signed_order: SignedOrder) -> PostOrderResponse:
        """
        Submit a signed order.

        Raises:
            OrderRejectedError: If the exchange rejects the order
            NotAuthenticatedError: If the session is not authenticated
        """
        return self.clob.post_order(signed_order, self.signer)

    def post_orders(self, signed_orders: List[SignedOrder]) -> List[PostOrderResponse]:
        """Submit up to 15 signed orders in one request."""
        return self.clob.post_orders(signed_orders, self.signer)

    def create_and_post_order(self, args: OrderArgs, nonce: int = 0) -> PostOrderResponse:
        """Build, sign and submit a limit order."""
        return self.post_order(self.create_order(args, nonce=nonce))

    def _owner(self) -> str:
        # Fails before any network call when unauthenticated
        with self.session._borrow_credentials() as credentials:
            return credentials.key

    def _market_parameters(self, args) -> dict:
        token_id = args.token_id
        update = {}
        if args.tick_size is None:
            update["tick_size"] = self.metadata_cache.tick_size(
                token_id, lambda: self.clob.get_tick_size(token_id)
            )
        if args.neg_risk is None:
            update["neg_risk"] = self.metadata_cache.neg_risk(
                token_id, lambda: self.clob.get_neg_risk(token_id)
            )
        if args.fee_rate_bps is None:
            update["fee_rate_bps"] = self.metadata_cache.fee_rate_bps(
                token_id, lambda: self.clob.get_fee_rate_bps(token_id)
            )
        return update

    # ========== Real-Time WebSocket ==========

    def subscribe(self, channel: ChannelType, asset_ids: Iterable[str]) -> Subscription:
        """
        Subscribe to streaming messages.

        Starts the connection on first use.

        Args:
            channel: MARKET (token ids) or USER (market ids, requires authentication)
            asset_ids: Assets to receive messages for

        Raises:
            NotAuthenticatedError: If USER is requested before authenticate()
        """
        if ChannelType(channel) is ChannelType.USER and not self.session.is_authenticated:
            raise NotAuthenticatedError("User channel requires an authenticated client")
        self._ensure_stream()
        return self.stream.subscribe(channel, asset_ids)

    def subscribe_orderbook(self, token_ids: Iterable[str]) -> Subscription:
        """
        Subscribe to order book events for tokens.

        Example:
            >>> with client.subscribe_orderbook([token_id]) as sub:
            ...     for message in sub:
            ...         if message.event_type is StreamEventType.BOOK:
            ...             print(message.as_order_book().best_bid)
        """
        return self.subscribe(ChannelType.MARKET, token_ids)

    def subscribe_user(self, market_ids: Iterable[str]) -> Subscription:
        """Subscribe to order and trade events of this wallet."""
        return self.subscribe(ChannelType.USER, market_ids)

    def unsubscribe(self, channel: ChannelType, asset_ids: Iterable[str]) -> None:
        self.stream.unsubscribe(channel, asset_ids)

    def _ensure_stream(self) -> None:
        with self._stream_lock:
            if not self._stream_started:
                self.stream.connect()
                self._stream_started = True

    # ========== Lifecycle ==========

    def close(self) -> None:
        """Close streaming connection and HTTP session."""
        with self._stream_lock:
            if self._stream_started:
                self.stream.close()
                self._stream_started = False
        self.clob.close()
        logger.info("Kuest client closed")

    def __enter__(self) -> "KuestClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
