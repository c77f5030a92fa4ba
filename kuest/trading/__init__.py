"""Order construction and signing."""

from .orders import CanonicalOrder, SignedOrder, verify_signed_order
from .order_builder import OrderBuilder

__all__ = ["CanonicalOrder", "SignedOrder", "OrderBuilder", "verify_signed_order"]
