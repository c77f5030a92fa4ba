"""
Example 2: Shared Streaming Subscriptions

Several consumers subscribe to the same token. The connection carries one
subscribe frame per token no matter how many consumers hold it, and the
unsubscribe frame goes out when the last consumer lets go.

Set KUEST_TOKEN_ID before running. KUEST_PRIVATE_KEY adds the user channel.
"""

import os
import threading

from kuest import ChannelType, KuestClient, StreamEventType, WebSocketError


def consume(name, subscription, limit=20):
    """Print the first `limit` messages of a subscription."""
    try:
        for count, message in enumerate(subscription, start=1):
            if message.event_type is StreamEventType.BOOK:
                book = message.as_order_book()
                print(f"[{name}] book bid={book.best_bid} ask={book.best_ask}")
            else:
                print(f"[{name}] {message.event_type} {message.asset_id}")
            if count >= limit:
                break
    except WebSocketError as e:
        print(f"[{name}] stream ended: {e}")
    finally:
        subscription.close()


def main():
    """Streaming example."""
    token_id = os.getenv("KUEST_TOKEN_ID")
    if not token_id:
        raise ValueError("Set KUEST_TOKEN_ID environment variable")

    # Market data needs no credentials; a throwaway key is enough
    private_key = os.getenv("KUEST_PRIVATE_KEY") or "0x" + "11" * 32

    with KuestClient(private_key) as client:
        quotes = client.subscribe_orderbook([token_id])
        strategy = client.subscribe_orderbook([token_id])
        print(f"✓ Consumers on token: {client.stream.refcount(ChannelType.MARKET, token_id)}")

        threads = [
            threading.Thread(target=consume, args=("quotes", quotes)),
            threading.Thread(target=consume, args=("strategy", strategy, 5)),
        ]

        if os.getenv("KUEST_PRIVATE_KEY") and os.getenv("KUEST_MARKET_ID"):
            client.authenticate()
            fills = client.subscribe_user([os.environ["KUEST_MARKET_ID"]])
            threads.append(threading.Thread(target=consume, args=("fills", fills)))

        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        print(f"✓ Active keys after release: {client.stream.active_keys()}")


if __name__ == "__main__":
    main()
