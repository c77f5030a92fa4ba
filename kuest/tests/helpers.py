"""Constants and doubles shared by the unit tests."""

import threading

import orjson

from kuest.exceptions import WebSocketConnectionError

# Well-known development key (never funded)
PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

API_KEY = "000000000-0000-0000-0000-000000000000"
SECRET = "AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA="
PASSPHRASE = "a" * 64

TOKEN_ID = "71321045679252212594626385532706912750332728571942532289631379312455583992563"


def credentials_response(key: str = API_KEY) -> dict:
    return {"apiKey": key, "secret": SECRET, "passphrase": PASSPHRASE}


class FakeConnection:
    """In-memory stand-in for WebSocketConnection that records control frames."""

    def __init__(self, on_open, on_message, on_close, on_terminal):
        self.on_open = on_open
        self.on_message = on_message
        self.on_close = on_close
        self.on_terminal = on_terminal
        self.connected = False
        self.started = False
        self.sent = []
        self._lock = threading.Lock()

    def start(self):
        self.started = True

    def wait_connected(self, timeout=None):
        return self.connected

    def send(self, text):
        if not self.connected:
            raise WebSocketConnectionError("WebSocket is not connected")
        with self._lock:
            self.sent.append(orjson.loads(text))

    def close(self):
        self.connected = False

    # Test controls

    def open(self):
        self.connected = True
        self.on_open()

    def drop(self):
        self.connected = False
        self.on_close()

    def push(self, payload):
        self.on_message(orjson.dumps(payload).decode("utf-8"))

    def frames(self, action=None):
        with self._lock:
            return [f for f in self.sent if action is None or f["action"] == action]
