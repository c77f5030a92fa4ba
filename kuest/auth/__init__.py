"""Authentication modules for Kuest client."""

from .wallet import WalletSigner
from .session import AuthSession, AuthState, ClockSource
from .signer import RequestSigner, create_l1_headers

__all__ = [
    "WalletSigner",
    "AuthSession",
    "AuthState",
    "ClockSource",
    "RequestSigner",
    "create_l1_headers",
]
