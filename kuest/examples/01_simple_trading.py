"""
Example 1: Simple Trading

This example shows:
- Deriving (or creating) API credentials
- Building, signing and posting a limit order
- Handling exchange rejections

Set KUEST_PRIVATE_KEY and KUEST_TOKEN_ID before running.
"""

import os
from decimal import Decimal

from kuest import (
    KuestClient,
    OrderArgs,
    OrderRejectedError,
    OrderType,
    Side,
    setup_logging,
)


def main():
    """Simple trading example."""
    setup_logging(level="INFO")

    private_key = os.getenv("KUEST_PRIVATE_KEY")
    token_id = os.getenv("KUEST_TOKEN_ID")
    if not private_key or not token_id:
        raise ValueError("Set KUEST_PRIVATE_KEY and KUEST_TOKEN_ID environment variables")

    with KuestClient(private_key) as client:
        # 1. Authenticate (derive existing key, create one on first use)
        client.authenticate()
        print(f"✓ Authenticated {client.address}")

        # 2. Build and sign; tick size, neg risk and fee rate are fetched once
        order = client.create_order(OrderArgs(
            token_id=token_id,
            price=Decimal("0.50"),
            size=Decimal("10"),
            side=Side.BUY,
            order_type=OrderType.GTC
        ))
        print(f"✓ Signed order salt={order.order.salt}")

        # 3. Post
        try:
            response = client.post_order(order)
            print(f"✅ Order placed: {response.order_id} ({response.status})")
        except OrderRejectedError as e:
            print(f"❌ Order rejected: {e.reason}")


if __name__ == "__main__":
    main()
