"""
Order representations.

CanonicalOrder is the signing view: every field in the integer form the
exchange contract hashes. SignedOrder is the wire view: the signature folded
into the order object and side rendered as "BUY"/"SELL". The signature always
covers the integer side.
"""

from dataclasses import dataclass
from typing import Any, Optional
import logging

from eth_account import Account
from eth_account.messages import encode_typed_data

from ..contracts import contract_config
from ..exceptions import DomainMismatchError, CryptographicError, ValidationError
from ..models import OrderType, Side, SignatureType, ZERO_ADDRESS

logger = logging.getLogger(__name__)

EXCHANGE_DOMAIN_NAME = "Kuest CTF Exchange"
EXCHANGE_DOMAIN_VERSION = "1"

MAX_UINT256 = 2 ** 256 - 1
MAX_UINT64 = 2 ** 64 - 1

EIP712_DOMAIN_TYPE = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

ORDER_TYPE = [
    {"name": "salt", "type": "uint256"},
    {"name": "maker", "type": "address"},
    {"name": "signer", "type": "address"},
    {"name": "taker", "type": "address"},
    {"name": "tokenId", "type": "uint256"},
    {"name": "makerAmount", "type": "uint256"},
    {"name": "takerAmount", "type": "uint256"},
    {"name": "expiration", "type": "uint256"},
    {"name": "nonce", "type": "uint256"},
    {"name": "feeRateBps", "type": "uint256"},
    {"name": "side", "type": "uint8"},
    {"name": "signatureType", "type": "uint8"},
]


def exchange_domain(chain_id: int, verifying_contract: str) -> dict[str, Any]:
    """EIP-712 domain of the exchange contract on a chain."""
    return {
        "name": EXCHANGE_DOMAIN_NAME,
        "version": EXCHANGE_DOMAIN_VERSION,
        "chainId": chain_id,
        "verifyingContract": verifying_contract,
    }


def exchange_domain_for(chain_id: int, neg_risk: bool = False) -> dict[str, Any]:
    """
    Exchange domain from the contract table.

    Raises:
        ValidationError: If the chain is not supported
    """
    config = contract_config(chain_id, neg_risk)
    if config is None:
        raise ValidationError(f"No exchange contract configured for chain {chain_id}")
    return exchange_domain(chain_id, config.exchange)


@dataclass(frozen=True)
class CanonicalOrder:
    """
    Order exactly as hashed by the exchange contract.

    salt must fit in 64 bits (it travels as a JSON number); all other
    numeric fields are uint256.
    """
    salt: int
    maker: str
    signer: str
    token_id: int
    maker_amount: int
    taker_amount: int
    side: int
    signature_type: int
    taker: str = ZERO_ADDRESS
    expiration: int = 0
    nonce: int = 0
    fee_rate_bps: int = 0

    def __post_init__(self):
        if not 0 <= self.salt <= MAX_UINT64:
            raise ValidationError(f"Salt {self.salt} does not fit in 64 bits")

        for name in ("token_id", "maker_amount", "taker_amount",
                     "expiration", "nonce", "fee_rate_bps"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(f"{name} must be int, got {type(value).__name__}")
            if not 0 <= value <= MAX_UINT256:
                raise ValidationError(f"{name} {value} does not fit in uint256")

        if self.side not in (0, 1):
            raise ValidationError(f"Unable to create Side from {self.side}")
        # Raises ValueError for unknown tags
        try:
            SignatureType(self.signature_type)
        except ValueError:
            raise ValidationError(
                f"Unknown signature type {self.signature_type}, must be 0, 1 or 2"
            ) from None

    def message(self) -> dict[str, Any]:
        """EIP-712 message (integer side)."""
        return {
            "salt": self.salt,
            "maker": self.maker,
            "signer": self.signer,
            "taker": self.taker,
            "tokenId": self.token_id,
            "makerAmount": self.maker_amount,
            "takerAmount": self.taker_amount,
            "expiration": self.expiration,
            "nonce": self.nonce,
            "feeRateBps": self.fee_rate_bps,
            "side": self.side,
            "signatureType": self.signature_type,
        }

    def to_typed_data(self, domain: dict[str, Any]) -> dict[str, Any]:
        """Full EIP-712 payload for eth-account's encode_typed_data."""
        return {
            "types": {
                "EIP712Domain": EIP712_DOMAIN_TYPE,
                "Order": ORDER_TYPE,
            },
            "primaryType": "Order",
            "domain": domain,
            "message": self.message(),
        }

    def to_wire(self) -> dict[str, Any]:
        """
        JSON object for the CLOB.

        uint256 fields as decimal strings, salt as a number, side as its token.
        """
        return {
            "salt": self.salt,
            "maker": self.maker,
            "signer": self.signer,
            "taker": self.taker,
            "tokenId": str(self.token_id),
            "makerAmount": str(self.maker_amount),
            "takerAmount": str(self.taker_amount),
            "expiration": str(self.expiration),
            "nonce": str(self.nonce),
            "feeRateBps": str(self.fee_rate_bps),
            "side": Side.from_int(self.side).value,
            "signatureType": self.signature_type,
        }

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "CanonicalOrder":
        """
        Rebuild the signing view from a wire order.

        Raises:
            ValidationError: If a field is missing or side is not BUY/SELL
        """
        side = data.get("side")
        if isinstance(side, str):
            side = Side(side).as_int()

        try:
            return cls(
                salt=int(data["salt"]),
                maker=data["maker"],
                signer=data["signer"],
                taker=data.get("taker", ZERO_ADDRESS),
                token_id=int(data["tokenId"]),
                maker_amount=int(data["makerAmount"]),
                taker_amount=int(data["takerAmount"]),
                expiration=int(data.get("expiration", 0)),
                nonce=int(data.get("nonce", 0)),
                fee_rate_bps=int(data.get("feeRateBps", 0)),
                side=side,
                signature_type=int(data["signatureType"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Invalid wire order: {type(e).__name__} {e}") from e


@dataclass(frozen=True)
class SignedOrder:
    """Canonical order with its signature, lifetime policy and owner (API key)."""
    order: CanonicalOrder
    signature: str
    order_type: OrderType
    owner: str

    def to_wire(self) -> dict[str, Any]:
        """Body of POST /order, signature folded into the order object."""
        order = self.order.to_wire()
        order["signature"] = self.signature
        return {
            "order": order,
            "owner": self.owner,
            "orderType": self.order_type.value,
        }

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "SignedOrder":
        order = dict(data["order"])
        signature = order.pop("signature")
        return cls(
            order=CanonicalOrder.from_wire(order),
            signature=signature,
            order_type=OrderType(data.get("orderType", OrderType.GTC.value)),
            owner=data.get("owner", ""),
        )


def recover_order_signer(order: CanonicalOrder, signature: str, domain: dict[str, Any]) -> str:
    """
    Recover the address that signed order under domain.

    Raises:
        CryptographicError: If the signature cannot be decoded
    """
    try:
        signable = encode_typed_data(full_message=order.to_typed_data(domain))
        return Account.recover_message(signable, signature=signature)
    except Exception as e:
        logger.error(f"Order signature recovery failed: {type(e).__name__}")
        raise CryptographicError(f"Order signature recovery failed: {type(e).__name__}") from None


def verify_signed_order(
    signed: SignedOrder,
    chain_id: int,
    verifying_contract: Optional[str] = None,
    neg_risk: bool = False
) -> str:
    """
    Verify a signed order under a (chain id, exchange contract) domain.

    Args:
        signed: Signed order
        chain_id: Expected chain
        verifying_contract: Expected exchange (from the contract table if None)
        neg_risk: Table family used when verifying_contract is None

    Returns:
        The recovered signer address

    Raises:
        DomainMismatchError: If the signature does not recover to the order's
            signer under the given domain
    """
    if verifying_contract is None:
        domain = exchange_domain_for(chain_id, neg_risk)
    else:
        domain = exchange_domain(chain_id, verifying_contract)

    recovered = recover_order_signer(signed.order, signed.signature, domain)
    if recovered.lower() != signed.order.signer.lower():
        raise DomainMismatchError(
            f"Order signature does not verify under chain {chain_id} "
            f"exchange {domain['verifyingContract']}",
            expected=signed.order.signer,
            actual=recovered
        )
    return recovered
