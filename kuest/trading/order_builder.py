"""
Order builder with EIP-712 signing.

Turns an order intent into a SignedOrder:
amounts normalized per role, fresh 64-bit salt, canonical order, signature
under the exchange domain of the wallet's chain.
"""

import secrets
from decimal import Decimal, ROUND_DOWN
from typing import Optional, Union
import logging

from ..amounts import Amount, make_currency, make_shares, to_base_units
from ..auth.wallet import WalletSigner
from ..contracts import derive_proxy_wallet, derive_safe_wallet
from ..exceptions import CryptographicError, ValidationError
from ..metrics import Metrics, get_metrics
from ..models import (
    MarketOrderArgs,
    OrderArgs,
    OrderType,
    Side,
    SignatureType,
    TickSize,
)
from ..utils.validators import (
    validate_address,
    validate_gtd_expiration,
    validate_price,
    validate_token_id,
)
from .orders import CanonicalOrder, SignedOrder, exchange_domain_for

logger = logging.getLogger(__name__)

# Default values
DEFAULT_TICK_SIZE = TickSize.HUNDREDTH
DEFAULT_FEE_RATE_BPS = 0

LIMIT_ORDER_TYPES = (OrderType.GTC, OrderType.GTD, OrderType.FOK, OrderType.FAK)
MARKET_ORDER_TYPES = (OrderType.FOK, OrderType.FAK)


class OrderBuilder:
    """
    Builds and signs orders for Kuest CLOB.

    Handles:
    - Tick size and precision validation
    - Maker/taker amount calculation
    - Salt generation
    - EIP-712 signing under the exchange domain
    """

    def __init__(
        self,
        wallet: WalletSigner,
        signature_type: SignatureType = SignatureType.EOA,
        funder: Optional[str] = None,
        chain_id: Optional[int] = None,
        metrics: Optional[Metrics] = None
    ):
        """
        Initialize order builder.

        Args:
            wallet: Signer (the order's `signer` field)
            signature_type: EOA, PROXY or GNOSIS_SAFE
            funder: Maker address for proxy/safe wallets (derived via CREATE2 if None)
            chain_id: Domain chain (the wallet's chain if None)
            metrics: Metrics collector (disabled if None)

        Raises:
            ValidationError: If funder is set for an EOA or cannot be derived
        """
        self.wallet = wallet
        self.signature_type = SignatureType(signature_type)
        self.chain_id = wallet.chain_id if chain_id is None else chain_id
        self.metrics = metrics or get_metrics(enabled=False)
        self.maker = self._resolve_maker(funder)

    def _resolve_maker(self, funder: Optional[str]) -> str:
        if self.signature_type is SignatureType.EOA:
            if funder is not None and funder.lower() != self.wallet.address.lower():
                raise ValidationError("Funder is only supported for PROXY and GNOSIS_SAFE signature types")
            return self.wallet.address

        if funder is not None:
            return validate_address(funder)

        if self.signature_type is SignatureType.PROXY:
            derived = derive_proxy_wallet(self.wallet.address, self.chain_id)
        else:
            derived = derive_safe_wallet(self.wallet.address, self.chain_id)

        if derived is None:
            raise ValidationError(
                f"Cannot derive {self.signature_type.name} wallet on chain {self.chain_id}; pass funder explicitly"
            )
        logger.debug(f"Derived {self.signature_type.name} funder {derived}")
        return derived

    def build_order(self, args: OrderArgs, owner: str, nonce: int = 0) -> SignedOrder:
        """
        Build and sign a limit order.

        Args:
            args: Order intent
            owner: API key the order is posted under
            nonce: Exchange nonce

        Returns:
            Signed order

        Raises:
            ValidationError: If price, size or expiration are invalid
            DomainMismatchError: If the wallet is bound to another chain
            CryptographicError: If salt generation or signing fails
        """
        if args.order_type not in LIMIT_ORDER_TYPES:
            raise ValidationError(f"Unsupported order type: {args.order_type.value}")

        tick_size = args.tick_size or DEFAULT_TICK_SIZE
        price = validate_price(args.price, tick_size.value)
        size = make_shares(args.size)
        notional = make_currency(size.value * price)

        if args.side is Side.BUY:
            maker_amount, taker_amount = notional, size
        elif args.side is Side.SELL:
            maker_amount, taker_amount = size, notional
        else:
            raise ValidationError(f"Side must be BUY or SELL, got {args.side.value}")

        expiration = self._resolve_expiration(args.order_type, args.expiration)

        signed = self._sign(
            token_id=args.token_id,
            side=args.side,
            maker_amount=maker_amount,
            taker_amount=taker_amount,
            expiration=expiration,
            nonce=nonce,
            fee_rate_bps=args.fee_rate_bps,
            taker=args.taker,
            neg_risk=bool(args.neg_risk),
            order_type=args.order_type,
            owner=owner
        )

        logger.info(
            f"Built order: {args.side.value} {size} @ {price} "
            f"(token={args.token_id}, type={args.order_type.value}, nonce={nonce})"
        )
        return signed

    def build_market_order(self, args: MarketOrderArgs, owner: str, nonce: int = 0) -> SignedOrder:
        """
        Build and sign a market order.

        BUY spends `amount` collateral for at least amount / price shares;
        SELL sells `amount` shares for at least amount * price collateral.

        Raises:
            ValidationError: If inputs are invalid or round to zero shares
            DomainMismatchError: If the wallet is bound to another chain
            CryptographicError: If salt generation or signing fails
        """
        if args.order_type not in MARKET_ORDER_TYPES:
            raise ValidationError(
                f"Market orders must be FOK or FAK, got {args.order_type.value}"
            )

        tick_size = args.tick_size or DEFAULT_TICK_SIZE
        price = validate_price(args.price, tick_size.value)

        if args.side is Side.BUY:
            maker_amount = make_currency(args.amount)
            taker_amount = make_shares(
                (maker_amount.value / price).quantize(Decimal("0.01"), rounding=ROUND_DOWN)
            )
            if taker_amount.value == 0:
                raise ValidationError(
                    f"Amount {args.amount} buys no shares at price {price}"
                )
        elif args.side is Side.SELL:
            maker_amount = make_shares(args.amount)
            taker_amount = make_currency(maker_amount.value * price)
        else:
            raise ValidationError(f"Side must be BUY or SELL, got {args.side.value}")

        signed = self._sign(
            token_id=args.token_id,
            side=args.side,
            maker_amount=maker_amount,
            taker_amount=taker_amount,
            expiration=0,
            nonce=nonce,
            fee_rate_bps=args.fee_rate_bps,
            taker=args.taker,
            neg_risk=bool(args.neg_risk),
            order_type=args.order_type,
            owner=owner
        )

        logger.info(
            f"Built market order: {args.side.value} {args.amount} @ <= {price} "
            f"(token={args.token_id}, type={args.order_type.value})"
        )
        return signed

    def _sign(
        self,
        token_id: str,
        side: Side,
        maker_amount: Amount,
        taker_amount: Amount,
        expiration: int,
        nonce: int,
        fee_rate_bps: Optional[int],
        taker: str,
        neg_risk: bool,
        order_type: OrderType,
        owner: str
    ) -> SignedOrder:
        order = CanonicalOrder(
            salt=self._generate_salt(),
            maker=self.maker,
            signer=self.wallet.address,
            taker=validate_address(taker),
            token_id=int(validate_token_id(token_id)),
            maker_amount=to_base_units(maker_amount),
            taker_amount=to_base_units(taker_amount),
            expiration=expiration,
            nonce=nonce,
            fee_rate_bps=DEFAULT_FEE_RATE_BPS if fee_rate_bps is None else fee_rate_bps,
            side=side.as_int(),
            signature_type=int(self.signature_type),
        )

        domain = exchange_domain_for(self.chain_id, neg_risk)
        signature = self.wallet.sign_typed_data(order.to_typed_data(domain))

        self.metrics.track_order_signed(side.value)
        return SignedOrder(order=order, signature=signature, order_type=order_type, owner=owner)

    @staticmethod
    def _resolve_expiration(order_type: OrderType, expiration: Union[int, None]) -> int:
        if order_type is OrderType.GTD:
            return validate_gtd_expiration(expiration or 0)
        if expiration:
            raise ValidationError(
                f"Only GTD orders may set an expiration, got {expiration} for {order_type.value}"
            )
        return 0

    def _generate_salt(self) -> int:
        """
        Generate random 64-bit salt for order uniqueness.

        Raises:
            CryptographicError: If the system entropy source fails
        """
        try:
            return secrets.randbits(64)
        except (OSError, NotImplementedError) as e:
            logger.error(f"Salt generation failed: {type(e).__name__}")
            raise CryptographicError(f"Salt generation failed: {type(e).__name__}") from e
