"""
Request signing for Kuest CLOB.

L1: EIP-712 wallet signature used to derive or create API credentials.
L2: HMAC-SHA256 over (timestamp, method, path, body) keyed by the API secret,
    attached to every private request.
"""

import time
import hmac
import hashlib
import base64
from typing import Optional, TYPE_CHECKING
import logging

from poly_eip712_structs import make_domain
from eth_utils import keccak

from .eip712_models import (
    ClobAuth,
    CLOB_AUTH_DOMAIN_NAME,
    CLOB_AUTH_DOMAIN_VERSION,
    MSG_TO_SIGN,
)
from .wallet import WalletSigner
from ..exceptions import AuthenticationError, KuestError

if TYPE_CHECKING:
    from .session import AuthSession

logger = logging.getLogger(__name__)

KUEST_ADDRESS = "KUEST_ADDRESS"
KUEST_SIGNATURE = "KUEST_SIGNATURE"
KUEST_TIMESTAMP = "KUEST_TIMESTAMP"
KUEST_NONCE = "KUEST_NONCE"
KUEST_API_KEY = "KUEST_API_KEY"
KUEST_PASSPHRASE = "KUEST_PASSPHRASE"


def create_l1_headers(
    wallet: WalletSigner,
    timestamp: Optional[int] = None,
    nonce: int = 0
) -> dict[str, str]:
    """
    Create L1 authentication headers.

    The wallet signs a ClobAuth struct over {address, timestamp, nonce,
    attestation message} in the ClobAuthDomain for its chain.

    Args:
        wallet: Wallet signer
        timestamp: Unix timestamp in seconds (uses current time if None)
        nonce: Nonce value (default: 0)

    Returns:
        L1 headers dict

    Raises:
        AuthenticationError: If signing fails
    """
    if timestamp is None:
        timestamp = int(time.time())

    try:
        domain = make_domain(
            name=CLOB_AUTH_DOMAIN_NAME,
            version=CLOB_AUTH_DOMAIN_VERSION,
            chainId=wallet.chain_id
        )

        clob_auth_msg = ClobAuth(
            address=wallet.address,
            timestamp=str(timestamp),
            nonce=nonce,
            message=MSG_TO_SIGN
        )

        auth_struct_hash = keccak(clob_auth_msg.signable_bytes(domain))
        signature = wallet.sign_hash(auth_struct_hash)

    except KuestError as e:
        error_type = type(e).__name__
        logger.error(f"Failed to create L1 headers: {error_type}")
        raise AuthenticationError(f"L1 signature failed: {error_type}") from e
    except Exception as e:
        # SECURITY: Sanitize error message to prevent credential leakage
        error_type = type(e).__name__
        logger.error(f"Failed to create L1 headers: {error_type}")
        raise AuthenticationError(f"L1 signature failed: {error_type}") from None

    logger.debug(f"Created L1 headers for {wallet.address}")
    return {
        KUEST_ADDRESS: wallet.address,
        KUEST_SIGNATURE: signature,
        KUEST_TIMESTAMP: str(timestamp),
        KUEST_NONCE: str(nonce),
    }


def build_hmac_signature(
    secret: str,
    timestamp: int,
    method: str,
    path: str,
    body: Optional[str] = None
) -> str:
    """
    Compute the L2 request signature.

    Message is str(timestamp) + METHOD + path + body, with single quotes in
    the body replaced by double quotes.

    Args:
        secret: API secret (urlsafe base64)
        timestamp: Unix timestamp in seconds
        method: HTTP method
        path: Request path (no host, no query string)
        body: Serialized request body

    Returns:
        urlsafe base64 HMAC-SHA256 digest
    """
    base64_secret = base64.urlsafe_b64decode(secret)

    message = str(timestamp) + str(method).upper() + str(path)
    if body:
        message += str(body).replace("'", '"')

    h = hmac.new(base64_secret, message.encode("utf-8"), hashlib.sha256)
    return base64.urlsafe_b64encode(h.digest()).decode("utf-8")


class RequestSigner:
    """
    Produces L2 headers for private requests.

    Borrows credentials from the session for the duration of one signing
    operation and keeps no copy of them.
    """

    def __init__(self, session: "AuthSession"):
        """
        Initialize request signer.

        Args:
            session: Authentication session owning the credentials
        """
        self._session = session

    @property
    def address(self) -> str:
        return self._session.address

    def headers(
        self,
        method: str,
        path: str,
        body: Optional[str] = None,
        timestamp: Optional[int] = None
    ) -> dict[str, str]:
        """
        Create L2 authentication headers.

        Args:
            method: HTTP method (GET, POST, DELETE, etc.)
            path: Request path
            body: Request body exactly as it will be sent
            timestamp: Unix timestamp (session clock if None)

        Returns:
            L2 headers dict

        Raises:
            NotAuthenticatedError: If the session is not authenticated
            AuthenticationError: If the stored secret cannot be used
        """
        with self._session._borrow_credentials() as credentials:
            if timestamp is None:
                timestamp = self._session.timestamp()

            try:
                signature = build_hmac_signature(
                    credentials.secret, timestamp, method, path, body
                )
            except Exception as e:
                # SECURITY: Sanitize error message to prevent credential leakage
                error_type = type(e).__name__
                logger.error(f"Failed to create L2 headers: {error_type}")
                raise AuthenticationError(
                    f"L2 signature failed: {error_type}. Check API credentials format."
                ) from None

            headers = {
                KUEST_ADDRESS: self._session.address,
                KUEST_SIGNATURE: signature,
                KUEST_TIMESTAMP: str(timestamp),
                KUEST_API_KEY: credentials.key,
                KUEST_PASSPHRASE: credentials.passphrase,
            }

        logger.debug(f"Created L2 headers for {method} {path}")
        return headers

    def l1_headers(self, nonce: int = 0, timestamp: Optional[int] = None) -> dict[str, str]:
        """
        Create L1 headers for credential derivation (no body).

        Does not require an authenticated session.
        """
        if timestamp is None:
            timestamp = self._session.timestamp()
        return create_l1_headers(self._session.wallet, timestamp=timestamp, nonce=nonce)

    def verify(
        self,
        signature: str,
        timestamp: int,
        method: str,
        path: str,
        body: Optional[str] = None
    ) -> bool:
        """
        Verify an L2 signature against the session secret (constant time).

        Raises:
            NotAuthenticatedError: If the session is not authenticated
        """
        with self._session._borrow_credentials() as credentials:
            expected = build_hmac_signature(credentials.secret, timestamp, method, path, body)
        return hmac.compare_digest(signature, expected)

    def stream_auth(self) -> dict[str, str]:
        """
        Authentication object for the user streaming channel.

        Raises:
            NotAuthenticatedError: If the session is not authenticated
        """
        with self._session._borrow_credentials() as credentials:
            return {
                "apiKey": credentials.key,
                "secret": credentials.secret,
                "passphrase": credentials.passphrase,
            }
