"""
EIP-712 struct models for Kuest CLOB authentication.

Uses poly_eip712_structs library.
"""

from poly_eip712_structs import EIP712Struct, Address, String, Uint

CLOB_AUTH_DOMAIN_NAME = "ClobAuthDomain"
CLOB_AUTH_DOMAIN_VERSION = "1"
MSG_TO_SIGN = "This message attests that I control the given wallet"


class ClobAuth(EIP712Struct):
    """
    CLOB authentication message structure.

    Signed by the wallet to derive or create API credentials (L1 auth).
    """
    address = Address()
    timestamp = String()
    nonce = Uint()
    message = String()
