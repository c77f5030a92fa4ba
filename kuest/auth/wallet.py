"""
Wallet signing capability.

Wraps an eth-account LocalAccount bound to one chain. The signer refuses to
produce a typed-data signature for a domain on another chain.
"""

from typing import Any, Optional
import logging

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import to_hex

from ..config import POLYGON
from ..exceptions import CryptographicError, DomainMismatchError
from ..utils.validators import validate_private_key

logger = logging.getLogger(__name__)


class WalletSigner:
    """
    Off-chain signer for a single EOA.

    SECURITY: The private key lives only inside the eth-account object and is
    never exposed through repr or attributes.
    """

    def __init__(self, private_key: str, chain_id: int = POLYGON):
        """
        Initialize signer.

        Args:
            private_key: Hex private key (with or without 0x)
            chain_id: Chain this signer is allowed to sign for

        Raises:
            ValidationError: If the private key is malformed
        """
        self._account = Account.from_key(validate_private_key(private_key))
        self.chain_id = chain_id

    @property
    def address(self) -> str:
        """Checksummed EOA address."""
        return self._account.address

    def __repr__(self) -> str:
        return f"WalletSigner(address={self.address}, chain_id={self.chain_id})"

    def check_domain(self, chain_id: Optional[int]) -> None:
        """
        Reject a signing domain bound to another chain.

        Raises:
            DomainMismatchError: If chain_id differs from the signer's chain
        """
        if chain_id != self.chain_id:
            raise DomainMismatchError(
                f"Signer is bound to chain {self.chain_id}, refusing to sign for chain {chain_id}",
                expected=self.chain_id,
                actual=chain_id
            )

    def sign_hash(self, digest: bytes) -> str:
        """
        Sign a 32-byte digest.

        Returns:
            0x-prefixed 65-byte signature

        Raises:
            CryptographicError: If signing fails
        """
        try:
            signed = self._account.unsafe_sign_hash(digest)
        except Exception as e:
            # SECURITY: Sanitize error message to prevent key leakage
            error_type = type(e).__name__
            logger.error(f"Hash signing failed: {error_type}")
            raise CryptographicError(f"Hash signing failed: {error_type}") from None
        return to_hex(signed.signature)

    def sign_typed_data(self, typed_data: dict[str, Any]) -> str:
        """
        Sign an EIP-712 message.

        Args:
            typed_data: Full message with types, primaryType, domain and message

        Returns:
            0x-prefixed 65-byte signature

        Raises:
            DomainMismatchError: If the domain's chainId differs from the signer's
            CryptographicError: If encoding or signing fails
        """
        self.check_domain(typed_data.get("domain", {}).get("chainId"))

        try:
            signable = encode_typed_data(full_message=typed_data)
            signed = self._account.sign_message(signable)
        except Exception as e:
            error_type = type(e).__name__
            logger.error(f"Typed data signing failed: {error_type}")
            raise CryptographicError(f"Typed data signing failed: {error_type}") from None
        return to_hex(signed.signature)
