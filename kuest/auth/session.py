"""
Authentication session state machine.

UNAUTHENTICATED -> AUTHENTICATING -> AUTHENTICATED, and back to
UNAUTHENTICATED only through logout(). A failed authentication leaves the
session UNAUTHENTICATED; retrying is the caller's decision.
"""

import time
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Optional, TYPE_CHECKING
import logging

from .signer import RequestSigner, create_l1_headers
from .wallet import WalletSigner
from ..exceptions import (
    APIError,
    AuthenticationError,
    NotAuthenticatedError,
    RateLimitError,
    ValidationError,
)
from ..metrics import Metrics, get_metrics
from ..models import ApiCredentials

if TYPE_CHECKING:
    from ..api.clob import CLOBAPI

logger = logging.getLogger(__name__)

DEFAULT_CALIBRATION_SAMPLES = 2


class AuthState(str, Enum):
    """Session authentication state."""
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


class ClockSource:
    """
    Timestamp source for signed requests.

    Local sources use the wall clock. Server-synced sources add an integer
    second offset that only changes through AuthSession.resync_clock().
    """

    def __init__(self, server_synced: bool = False):
        self.server_synced = server_synced
        self._offset = 0

    @classmethod
    def local(cls) -> "ClockSource":
        return cls(server_synced=False)

    @classmethod
    def server(cls) -> "ClockSource":
        return cls(server_synced=True)

    @property
    def offset(self) -> int:
        """Seconds added to the local clock."""
        return self._offset

    def _set_offset(self, offset: int) -> None:
        self._offset = offset

    def now(self) -> int:
        """Current Unix timestamp in seconds."""
        return int(time.time()) + self._offset

    def __repr__(self) -> str:
        kind = "server" if self.server_synced else "local"
        return f"ClockSource({kind}, offset={self._offset})"


class AuthSession:
    """
    Owns API credentials for one wallet.

    Thread-safe: state transitions are guarded by a reentrant lock; network
    calls run outside of it.

    SECURITY: Credentials are never exposed as attributes. RequestSigner
    borrows them for one signing operation through _borrow_credentials().
    """

    def __init__(
        self,
        wallet: WalletSigner,
        api: "CLOBAPI",
        clock: Optional[ClockSource] = None,
        calibration_samples: int = DEFAULT_CALIBRATION_SAMPLES,
        metrics: Optional[Metrics] = None
    ):
        """
        Initialize session.

        Args:
            wallet: Wallet signer used for L1 authentication
            api: CLOB API client (credential issuance and server time)
            clock: Clock source (local wall clock if None)
            calibration_samples: Server time round trips per resync
            metrics: Metrics collector (disabled if None)

        Raises:
            ValidationError: If calibration_samples < 1
        """
        if calibration_samples < 1:
            raise ValidationError(
                f"calibration_samples must be >= 1, got {calibration_samples}"
            )

        self.wallet = wallet
        self.api = api
        self.clock = clock or ClockSource.local()
        self.calibration_samples = calibration_samples
        self.metrics = metrics or get_metrics(enabled=False)

        self._state = AuthState.UNAUTHENTICATED
        self._credentials: Optional[ApiCredentials] = None
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"AuthSession(address={self.address}, state={self._state.value})"

    @property
    def address(self) -> str:
        return self.wallet.address

    @property
    def state(self) -> AuthState:
        with self._lock:
            return self._state

    @property
    def is_authenticated(self) -> bool:
        return self.state is AuthState.AUTHENTICATED

    @property
    def api_key(self) -> Optional[str]:
        """Public API key identifier (the order owner), None when unauthenticated."""
        with self._lock:
            return self._credentials.key if self._credentials else None

    def timestamp(self) -> int:
        """Current timestamp from the selected clock source."""
        return self.clock.now()

    def resync_clock(self) -> int:
        """
        Re-sample the server clock and update the offset.

        Takes calibration_samples round trips and keeps the sample with the
        shortest round trip. No-op for local clock sources.

        Returns:
            The clock offset in seconds

        Raises:
            APIError: If the time endpoint fails
        """
        if not self.clock.server_synced:
            return self.clock.offset

        best_rtt = None
        best_offset = 0
        for _ in range(self.calibration_samples):
            sent = time.time()
            server_time = self.api.get_server_time()
            received = time.time()

            rtt = received - sent
            if best_rtt is None or rtt < best_rtt:
                best_rtt = rtt
                best_offset = int(server_time - (sent + received) / 2)

        self.clock._set_offset(best_offset)
        logger.info(f"Clock synchronized with server (offset={best_offset}s)")
        return best_offset

    def authenticate(self, nonce: Optional[int] = None) -> None:
        """
        Obtain API credentials for the wallet.

        Derives existing credentials and falls back to creating new ones
        when derivation is rejected. Idempotent once authenticated.

        Args:
            nonce: L1 nonce (0 if None)

        Raises:
            AuthenticationError: If issuance is rejected or returns malformed credentials
            APIError: On transport failures
        """
        with self._lock:
            if self._state is AuthState.AUTHENTICATED:
                logger.debug("Session already authenticated")
                return
            if self._state is AuthState.AUTHENTICATING:
                raise AuthenticationError("Authentication already in progress")
            self._state = AuthState.AUTHENTICATING

        logger.info(f"Authenticating {self.address}")
        nonce = nonce or 0

        try:
            self.resync_clock()
            credentials = self._derive_or_create(nonce)
        except Exception as e:
            with self._lock:
                self._state = AuthState.UNAUTHENTICATED
            self.metrics.track_auth("failure")
            logger.error(f"Authentication failed: {type(e).__name__}")
            raise

        with self._lock:
            self._credentials = credentials
            self._state = AuthState.AUTHENTICATED

        self.metrics.track_auth("success")
        logger.info(f"Authenticated {self.address} (api_key={credentials.key})")

    def use_credentials(self, credentials: ApiCredentials) -> None:
        """
        Authenticate with previously issued credentials.

        Raises:
            AuthenticationError: If authentication is in progress
        """
        with self._lock:
            if self._state is AuthState.AUTHENTICATING:
                raise AuthenticationError("Authentication already in progress")
            self._credentials = credentials
            self._state = AuthState.AUTHENTICATED
        logger.info(f"Using provided credentials for {self.address}")

    def logout(self) -> None:
        """Clear credentials and return to UNAUTHENTICATED."""
        with self._lock:
            self._credentials = None
            self._state = AuthState.UNAUTHENTICATED
        logger.info(f"Logged out {self.address}")

    def derive_api_key(self, nonce: int = 0) -> ApiCredentials:
        """
        Derive existing API credentials (GET /auth/derive-api-key).

        Does not change session state.
        """
        headers = create_l1_headers(self.wallet, timestamp=self.timestamp(), nonce=nonce)
        return self._parse_credentials(self.api.derive_api_key(headers))

    def create_api_key(self, nonce: int = 0) -> ApiCredentials:
        """
        Create new API credentials (POST /auth/api-key).

        Does not change session state.
        """
        headers = create_l1_headers(self.wallet, timestamp=self.timestamp(), nonce=nonce)
        return self._parse_credentials(self.api.create_api_key(headers))

    def api_keys(self) -> list[str]:
        """
        List API keys issued for this wallet.

        Raises:
            NotAuthenticatedError: If the session is not authenticated
        """
        path = "/auth/api-keys"
        headers = RequestSigner(self).headers("GET", path)
        response = self.api.get_api_keys(headers)
        if isinstance(response, dict):
            return list(response.get("apiKeys") or [])
        return list(response or [])

    def delete_api_key(self) -> None:
        """
        Revoke the current API key and log out.

        Raises:
            NotAuthenticatedError: If the session is not authenticated
        """
        path = "/auth/api-key"
        headers = RequestSigner(self).headers("DELETE", path)
        self.api.delete_api_key(headers)
        self.logout()

    @contextmanager
    def _borrow_credentials(self) -> Iterator[ApiCredentials]:
        """
        Lend credentials for one signing operation.

        Raises:
            NotAuthenticatedError: If the session is not authenticated
        """
        with self._lock:
            if self._state is not AuthState.AUTHENTICATED or self._credentials is None:
                raise NotAuthenticatedError(
                    f"Session is {self._state.value}; authenticate() before signing requests"
                )
            credentials = self._credentials
        yield credentials

    def _derive_or_create(self, nonce: int) -> ApiCredentials:
        try:
            return self.derive_api_key(nonce)
        except AuthenticationError as e:
            logger.info(f"API key derivation rejected ({type(e).__name__}), creating new key")
        except APIError as e:
            # Only a 4xx rejection means no key exists yet
            status = e.status_code
            if isinstance(e, RateLimitError) or status is None or not 400 <= status < 500:
                raise
            logger.info(f"API key derivation rejected ({e.status_code}), creating new key")

        return self.create_api_key(nonce)

    @staticmethod
    def _parse_credentials(response) -> ApiCredentials:
        try:
            return ApiCredentials.from_response(response)
        except ValueError as e:
            # Field names only, never values
            raise AuthenticationError(f"Malformed credentials response: {e}") from None
