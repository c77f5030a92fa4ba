"""
WebSocket subscription multiplexer.

One physical connection per venue, shared by any number of logical
subscriptions. Each (channel, asset) key is refcounted: the wire subscribe
frame is sent on the 0 -> 1 transition and the unsubscribe frame on 1 -> 0.

Locking: one lock per key, created lazily and always acquired in sorted key
order. Refcount change, consumer registration and the wire decision happen
under the key lock, so two callers can never both see refcount 0.
"""

import itertools
import queue
import threading
import time
import weakref
from contextlib import ExitStack
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional
import logging

import orjson
import websocket

from ..exceptions import (
    AuthenticationError,
    NotAuthenticatedError,
    ValidationError,
    WebSocketConnectionError,
    WebSocketDisconnectedError,
    WebSocketError,
)
from ..metrics import Metrics, get_metrics
from ..models import ChannelType, StreamEventType, StreamMessage

logger = logging.getLogger(__name__)

DEFAULT_WS_URL = "wss://ws-subscriptions-clob.kuest.com/ws"

# Queue sentinel: subscription finished, no more messages
_END = object()


@dataclass(frozen=True, order=True)
class SubscriptionKey:
    """(channel, asset) pair a subscription is refcounted on."""
    channel: ChannelType
    asset_id: str


class _KeyState:
    """Refcount and fanout registry for one key."""
    __slots__ = ("lock", "refcount", "consumers")

    def __init__(self):
        # Reentrant: a Subscription finalizer may run inside a locked region
        # on the same thread when the garbage collector fires
        self.lock = threading.RLock()
        self.refcount = 0
        # Insertion ordered: first entry is the oldest holder
        self.consumers: Dict[int, "_Consumer"] = {}


class _Consumer:
    """Receiving end of one Subscription. Owned by the multiplexer registry."""

    def __init__(self, consumer_id: int):
        self.id = consumer_id
        self.queue: "queue.Queue[Any]" = queue.Queue()
        self.keys: set = set()
        self._lock = threading.RLock()
        self._finished = False

    def hold(self, key: SubscriptionKey) -> None:
        with self._lock:
            self.keys.add(key)

    def drop(self, key: SubscriptionKey) -> bool:
        """Forget key; True if no keys remain."""
        with self._lock:
            self.keys.discard(key)
            return not self.keys

    def held_keys(self) -> List[SubscriptionKey]:
        with self._lock:
            return sorted(self.keys)

    def finish(self, error: Optional[Exception] = None) -> None:
        """End the message sequence (once), optionally with a terminal error."""
        with self._lock:
            if self._finished:
                return
            self._finished = True
        if error is not None:
            self.queue.put(error)
        self.queue.put(_END)


class Subscription:
    """
    Iterator over decoded messages for a set of keys.

    Closing (explicitly, via the context manager, or when garbage collected)
    releases every key this subscription still holds exactly once.

    Usage:
        >>> with mux.subscribe(ChannelType.MARKET, [token_id]) as sub:
        ...     for message in sub:
        ...         handle(message)
    """

    def __init__(self, multiplexer: "SubscriptionMultiplexer", consumer: _Consumer,
                 channel: ChannelType):
        self._consumer = consumer
        self.channel = channel
        # Must not reference self: the finalizer fires when self is collected
        self._finalizer = weakref.finalize(self, multiplexer._release_consumer, consumer)

    def __repr__(self) -> str:
        return (
            f"Subscription(id={self._consumer.id}, channel={self.channel.value}, "
            f"assets={len(self._consumer.keys)}, closed={self.closed})"
        )

    @property
    def keys(self) -> List[SubscriptionKey]:
        """Keys still held by this subscription."""
        return self._consumer.held_keys()

    @property
    def asset_ids(self) -> List[str]:
        return [key.asset_id for key in self.keys]

    @property
    def closed(self) -> bool:
        return not self._finalizer.alive

    def next(self, timeout: Optional[float] = None) -> Optional[StreamMessage]:
        """
        Wait for the next message.

        Args:
            timeout: Seconds to wait (forever if None)

        Returns:
            The next message, or None if timeout elapsed

        Raises:
            StopIteration: If the subscription has ended
            WebSocketDisconnectedError: If the connection was lost for good
        """
        try:
            item = self._consumer.queue.get(timeout=timeout)
        except queue.Empty:
            return None

        if item is _END:
            # Keep the sentinel for later callers
            self._consumer.queue.put(_END)
            raise StopIteration
        if isinstance(item, WebSocketError):
            raise item
        return item

    def __iter__(self) -> "Subscription":
        return self

    def __next__(self) -> StreamMessage:
        return self.next(timeout=None)

    def close(self) -> None:
        """Release held keys and end iteration. Idempotent."""
        self._finalizer()
        self._consumer.finish()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class WebSocketConnection:
    """
    Physical WebSocket connection with automatic reconnection.

    Runs websocket-client's WebSocketApp in a daemon thread. After
    max_reconnects consecutive failed attempts it gives up and reports a
    terminal failure.
    """

    def __init__(
        self,
        url: str,
        on_open: Callable[[], None],
        on_message: Callable[[str], None],
        on_close: Callable[[], None],
        on_terminal: Callable[[int], None],
        reconnect_delay: float = 5.0,
        max_reconnects: int = 10,
        ping_interval: float = 10.0,
        metrics: Optional[Metrics] = None
    ):
        """
        Initialize connection.

        Args:
            url: WebSocket URL
            on_open: Called after every (re)connect
            on_message: Called with each text frame
            on_close: Called when the socket drops
            on_terminal: Called with the attempt count when reconnects are exhausted
            reconnect_delay: Delay between reconnects
            max_reconnects: Max consecutive reconnect attempts
            ping_interval: Keepalive ping interval (0 disables)
            metrics: Metrics collector (disabled if None)
        """
        self.url = url
        self.reconnect_delay = reconnect_delay
        self.max_reconnects = max_reconnects
        self.ping_interval = ping_interval
        self.metrics = metrics or get_metrics(enabled=False)

        self._on_open_cb = on_open
        self._on_message_cb = on_message
        self._on_close_cb = on_close
        self._on_terminal_cb = on_terminal

        self._ws: Optional[websocket.WebSocketApp] = None
        self._thread: Optional[threading.Thread] = None
        self._running = False
        self._connected = threading.Event()
        self._stop = threading.Event()
        self._reconnect_count = 0

    @property
    def connected(self) -> bool:
        return self._connected.is_set()

    def start(self) -> None:
        """Start WebSocket connection in background thread."""
        if self._running:
            logger.warning("WebSocket already running")
            return

        self._running = True
        self._reconnect_count = 0
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="kuest-ws")
        self._thread.start()
        logger.info(f"WebSocket connection started: {self.url}")

    def wait_connected(self, timeout: Optional[float] = None) -> bool:
        return self._connected.wait(timeout)

    def send(self, text: str) -> None:
        """
        Send a text frame.

        Raises:
            WebSocketConnectionError: If not connected or the write fails
        """
        ws = self._ws
        if ws is None or not self.connected:
            raise WebSocketConnectionError("WebSocket is not connected")
        try:
            ws.send(text)
        except (websocket.WebSocketException, OSError) as e:
            raise WebSocketConnectionError(f"WebSocket send failed: {type(e).__name__}") from e

    def close(self) -> None:
        """Stop WebSocket connection."""
        self._running = False
        self._stop.set()
        self._connected.clear()
        ws = self._ws
        if ws is not None:
            try:
                ws.close()
            except (websocket.WebSocketException, OSError) as e:
                logger.debug(f"Error closing WebSocket: {e}")
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=5.0)
        logger.info("WebSocket disconnected")

    def _run(self) -> None:
        """Main WebSocket loop (runs in background thread)."""
        while self._running:
            ws = websocket.WebSocketApp(
                self.url,
                on_open=self._on_open,
                on_message=self._on_message,
                on_error=self._on_error,
                on_close=self._on_close
            )
            self._ws = ws

            try:
                logger.info("Connecting to WebSocket...")
                if self.ping_interval > 0:
                    ws.run_forever(
                        ping_interval=self.ping_interval,
                        ping_timeout=self.ping_interval / 2
                    )
                else:
                    ws.run_forever()
            except (websocket.WebSocketException, OSError) as e:
                logger.error(f"WebSocket error: {type(e).__name__}: {e}")
            finally:
                # Always cleanup WebSocket to prevent socket leak
                if self._connected.is_set():
                    self._connected.clear()
                    self._on_close_cb()
                try:
                    ws.close()
                except (websocket.WebSocketException, OSError) as e:
                    logger.debug(f"Error closing WebSocket in cleanup: {e}")

            if not self._running:
                break

            self._reconnect_count += 1
            if self._reconnect_count > self.max_reconnects:
                logger.error(f"Max reconnects exceeded ({self.max_reconnects})")
                self._running = False
                self._on_terminal_cb(self._reconnect_count - 1)
                break

            self.metrics.track_reconnect()
            logger.warning(
                f"Reconnecting in {self.reconnect_delay}s "
                f"(attempt {self._reconnect_count}/{self.max_reconnects})"
            )
            if self._stop.wait(self.reconnect_delay):
                break

    def _on_open(self, ws) -> None:
        """Handle connection open."""
        logger.info("WebSocket connected")
        self._reconnect_count = 0
        self._connected.set()
        self._on_open_cb()

    def _on_message(self, ws, message: str) -> None:
        self._on_message_cb(message)

    def _on_error(self, ws, error) -> None:
        logger.error(f"WebSocket error: {error}")

    def _on_close(self, ws, close_status_code, close_msg) -> None:
        """Handle connection close."""
        logger.warning(f"WebSocket closed: {close_status_code} - {close_msg}")
        if self._connected.is_set():
            self._connected.clear()
            self._on_close_cb()


class SubscriptionMultiplexer:
    """
    Refcounted subscriptions over a single WebSocket connection.

    Provides:
    - subscribe/unsubscribe with wire traffic only on 0 <-> 1 transitions
    - In-order fanout per key to every registered subscription
    - Batched resubscribe after reconnect
    - Terminal error delivery when reconnection fails for good
    """

    def __init__(
        self,
        url: str = DEFAULT_WS_URL,
        auth_provider: Optional[Callable[[], Dict[str, str]]] = None,
        reconnect_delay: float = 5.0,
        max_reconnects: int = 10,
        ping_interval: float = 10.0,
        metrics: Optional[Metrics] = None,
        connection_factory: Optional[Callable[..., Any]] = None
    ):
        """
        Initialize multiplexer.

        Args:
            url: WebSocket URL
            auth_provider: Returns the auth object for USER channel subscribes
            reconnect_delay: Delay between reconnects
            max_reconnects: Max consecutive reconnect attempts
            ping_interval: Keepalive ping interval (0 disables)
            metrics: Metrics collector (disabled if None)
            connection_factory: Builds the connection from the callbacks
                (on_open, on_message, on_close, on_terminal)
        """
        self.url = url
        self.auth_provider = auth_provider
        self.metrics = metrics or get_metrics(enabled=False)

        if connection_factory is None:
            def connection_factory(**callbacks):
                return WebSocketConnection(
                    url,
                    reconnect_delay=reconnect_delay,
                    max_reconnects=max_reconnects,
                    ping_interval=ping_interval,
                    metrics=self.metrics,
                    **callbacks
                )

        self._connection = connection_factory(
            on_open=self._handle_open,
            on_message=self._handle_message,
            on_close=self._handle_close,
            on_terminal=self._handle_terminal
        )

        self._keys: Dict[SubscriptionKey, _KeyState] = {}
        # Guards creation of key entries only
        self._keys_guard = threading.Lock()
        self._consumer_ids = itertools.count(1)
        self._online = False
        self._terminated: Optional[WebSocketDisconnectedError] = None

        logger.info(f"Subscription multiplexer initialized: {url}")

    # ========== Lifecycle ==========

    def connect(self, wait: bool = False, timeout: Optional[float] = None) -> None:
        """
        Start the connection.

        Args:
            wait: Block until the first connection is open
            timeout: Seconds to wait when wait=True

        Raises:
            WebSocketConnectionError: If wait=True and the connection did not open
        """
        self._terminated = None
        self._connection.start()
        if wait and not self._connection.wait_connected(timeout):
            raise WebSocketConnectionError(f"WebSocket did not connect within {timeout}s")

    def close(self) -> None:
        """Close the connection and end every subscription."""
        self._connection.close()
        self._online = False
        self._end_all()
        logger.info("Subscription multiplexer closed")

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ========== Subscriptions ==========

    def subscribe(self, channel: ChannelType, asset_ids: Iterable[str]) -> Subscription:
        """
        Subscribe to assets on a channel.

        Keys already active are multiplexed without wire traffic; newly
        active keys are batched into one subscribe frame.

        Args:
            channel: MARKET (asset ids) or USER (market ids)
            asset_ids: Assets to receive messages for

        Returns:
            Subscription scoped to the requested keys

        Raises:
            ValidationError: If no asset ids are given
            NotAuthenticatedError: If USER is requested without an auth provider
            WebSocketDisconnectedError: If the connection was lost for good
        """
        channel = ChannelType(channel)
        keys = self._make_keys(channel, asset_ids)
        if channel is ChannelType.USER and self.auth_provider is None:
            raise NotAuthenticatedError("User channel requires an authenticated client")
        if self._terminated is not None:
            raise self._terminated

        # Resolved before any key state changes so a failure leaks nothing
        auth = self.auth_provider() if channel is ChannelType.USER else None

        consumer = _Consumer(next(self._consumer_ids))
        states = [self._state_for(key) for key in keys]

        with ExitStack() as stack:
            for state in states:
                stack.enter_context(state.lock)

            activated = []
            for key, state in zip(keys, states):
                state.consumers[consumer.id] = consumer
                consumer.hold(key)
                state.refcount += 1
                if state.refcount == 1:
                    activated.append(key)

            if activated:
                self.metrics.track_active_keys(len(activated))
                logger.debug(f"Subscribing to {len(activated)} new {channel.value} assets")
                self._send_control("subscribe", channel, activated, auth=auth)
            else:
                logger.debug(f"All {channel.value} assets already subscribed, multiplexing")

        return Subscription(self, consumer, channel)

    def unsubscribe(self, channel: ChannelType, asset_ids: Iterable[str]) -> None:
        """
        Release one hold on each key.

        The oldest subscription still holding a key loses it (and ends once
        it holds nothing). Only keys reaching refcount 0 produce an
        unsubscribe frame.
        """
        channel = ChannelType(channel)
        keys = self._make_keys(channel, asset_ids)
        states = [self._keys.get(key) for key in keys]

        with ExitStack() as stack:
            for state in states:
                if state is not None:
                    stack.enter_context(state.lock)

            deactivated = []
            for key, state in zip(keys, states):
                holder = next(iter(state.consumers.values()), None) if state else None
                if holder is None:
                    logger.warning(f"Unsubscribe for inactive key {key.channel.value}:{key.asset_id}")
                    continue
                if self._detach(key, state, holder):
                    deactivated.append(key)

            self._deactivate(channel, deactivated)

    def refcount(self, channel: ChannelType, asset_id: str) -> int:
        """Current refcount of a key."""
        state = self._keys.get(SubscriptionKey(ChannelType(channel), asset_id))
        if state is None:
            return 0
        with state.lock:
            return state.refcount

    def active_keys(self) -> List[SubscriptionKey]:
        """Keys with non-zero refcount."""
        return [key for key, state in self._snapshot_states() if state.refcount > 0]

    def _release_consumer(self, consumer: _Consumer) -> None:
        """Release every key the consumer still holds (close or GC)."""
        keys = consumer.held_keys()
        if not keys:
            return
        states = [self._keys[key] for key in keys]

        with ExitStack() as stack:
            for state in states:
                stack.enter_context(state.lock)

            deactivated = [
                key for key, state in zip(keys, states)
                if consumer.id in state.consumers and self._detach(key, state, consumer)
            ]
            by_channel: Dict[ChannelType, List[SubscriptionKey]] = {}
            for key in deactivated:
                by_channel.setdefault(key.channel, []).append(key)
            for channel, channel_keys in by_channel.items():
                self._deactivate(channel, channel_keys)

        logger.debug(f"Released subscription {consumer.id} ({len(keys)} keys)")

    # ========== Internals (key locks held by caller) ==========

    def _detach(self, key: SubscriptionKey, state: _KeyState, consumer: _Consumer) -> bool:
        """Remove consumer from key; True if the key became inactive."""
        del state.consumers[consumer.id]
        state.refcount -= 1
        if consumer.drop(key):
            consumer.finish()
        return state.refcount == 0

    def _deactivate(self, channel: ChannelType, keys: List[SubscriptionKey]) -> None:
        if not keys:
            return
        self.metrics.track_active_keys(-len(keys))
        logger.debug(f"Unsubscribing from {len(keys)} {channel.value} assets")
        self._send_control("unsubscribe", channel, keys)

    def _send_control(
        self,
        action: str,
        channel: ChannelType,
        keys: List[SubscriptionKey],
        auth: Optional[Dict[str, str]] = None
    ) -> None:
        if not self._online:
            # Sent by the resubscribe batch once the connection opens
            logger.debug(f"Offline, deferring {action} for {len(keys)} assets")
            return

        frame: Dict[str, Any] = {
            "action": action,
            "channel": channel.value,
            "assets": [key.asset_id for key in keys],
        }
        if auth is not None:
            frame["auth"] = auth

        try:
            self._connection.send(orjson.dumps(frame).decode("utf-8"))
        except WebSocketError as e:
            # Reconnect resubscribes every active key
            logger.warning(f"Failed to send {action} frame: {e}")
            return

        self.metrics.track_stream_frame(action, channel.value)
        logger.debug(f"Sent {action}: {channel.value} {len(keys)} assets")

    def _make_keys(self, channel: ChannelType, asset_ids: Iterable[str]) -> List[SubscriptionKey]:
        if isinstance(asset_ids, str):
            asset_ids = [asset_ids]
        keys = sorted({SubscriptionKey(channel, str(asset_id)) for asset_id in asset_ids})
        if not keys:
            raise ValidationError("At least one asset id is required")
        return keys

    def _state_for(self, key: SubscriptionKey) -> _KeyState:
        # Double-checked: fast path without the guard
        state = self._keys.get(key)
        if state is None:
            with self._keys_guard:
                state = self._keys.get(key)
                if state is None:
                    state = _KeyState()
                    self._keys[key] = state
        return state

    def _snapshot_states(self) -> List[tuple]:
        with self._keys_guard:
            return sorted(self._keys.items(), key=lambda item: item[0])

    def _all_consumers(self) -> List[_Consumer]:
        consumers: Dict[int, _Consumer] = {}
        for _, state in self._snapshot_states():
            with state.lock:
                consumers.update(state.consumers)
        return list(consumers.values())

    def _end_all(self, error: Optional[Exception] = None) -> int:
        """End every subscription and release its keys. Returns how many ended."""
        consumers = self._all_consumers()
        for consumer in consumers:
            # Error first: releasing the last key finishes the sequence
            consumer.finish(error)
            self._release_consumer(consumer)
        return len(consumers)

    # ========== Connection callbacks ==========

    def _handle_open(self) -> None:
        """Resubscribe every active key, one batch per channel."""
        with self._keys_guard, ExitStack() as stack:
            items = sorted(self._keys.items(), key=lambda item: item[0])
            for _, state in items:
                stack.enter_context(state.lock)

            self._online = True
            by_channel: Dict[ChannelType, List[SubscriptionKey]] = {}
            for key, state in items:
                if state.refcount > 0:
                    by_channel.setdefault(key.channel, []).append(key)

            for channel, keys in by_channel.items():
                auth = None
                if channel is ChannelType.USER:
                    try:
                        auth = self.auth_provider()
                    except AuthenticationError as e:
                        logger.warning(f"Cannot resubscribe {len(keys)} user assets: {type(e).__name__}")
                        continue
                logger.info(f"Resubscribing {len(keys)} {channel.value} assets")
                self._send_control("subscribe", channel, keys, auth=auth)

    def _handle_close(self) -> None:
        """Connection lost: subscriptions stay open until reconnect or terminal failure."""
        self._online = False
        logger.warning("Stream connection lost, waiting for reconnect")

    def _handle_terminal(self, attempts: int) -> None:
        self._online = False
        error = WebSocketDisconnectedError(
            f"WebSocket disconnected after {attempts} reconnect attempts",
            attempts=attempts
        )
        self._terminated = error
        ended = self._end_all(error)
        logger.error(f"Stream terminated, notified {ended} subscriptions")

    def _handle_message(self, text: str) -> None:
        """Decode a frame and fan it out per key."""
        try:
            data = orjson.loads(text)
        except orjson.JSONDecodeError:
            logger.debug(f"Ignoring non-JSON frame: {text[:50]}")
            return

        items = data if isinstance(data, list) else [data]
        received_at = time.time()
        for item in items:
            if not isinstance(item, dict):
                continue
            message = self._decode(item, received_at)
            if message is None:
                continue

            state = self._keys.get(SubscriptionKey(message.channel, message.asset_id))
            if state is None:
                continue
            with state.lock:
                for consumer in list(state.consumers.values()):
                    consumer.queue.put(message)

    @staticmethod
    def _decode(item: Dict[str, Any], received_at: float) -> Optional[StreamMessage]:
        event_type = StreamEventType(item.get("event_type", "unknown"))

        channel_value = item.get("channel")
        if channel_value is not None:
            try:
                channel = ChannelType(channel_value)
            except ValueError:
                return None
        else:
            channel = event_type.channel
        if channel is None:
            return None

        if channel is ChannelType.MARKET:
            asset_id = item.get("asset_id") or item.get("market")
        else:
            asset_id = item.get("market") or item.get("asset_id")
        if not asset_id:
            return None

        return StreamMessage(
            channel=channel,
            asset_id=str(asset_id),
            event_type=event_type,
            payload=item,
            received_at=received_at
        )
