"""
Pytest configuration for the VARA client tests.

FakeTransport stands in for StreamTransport: it records what the client
writes and lets a test push modem output with feed(), which runs the
client's callbacks synchronously on the test thread.
"""
import pytest

from vara import ModemVariant, VaraClient


class FakeTransport:
    def __init__(self, host, port, *, name="command", chunk_callback=None, closed_callback=None, **kwargs):
        self.host = host
        self.port = port
        self.name = name
        self.kwargs = kwargs
        self._chunk_cb = chunk_callback
        self._closed_cb = closed_callback
        self.connected = False
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.written = []
        self.fail_connect = False

    def connect(self):
        self.connect_calls += 1
        if self.fail_connect:
            raise ConnectionRefusedError(f"{self.name} refused")
        self.connected = True

    def disconnect(self):
        self.disconnect_calls += 1
        self.connected = False

    def write(self, data: bytes):
        if not self.connected:
            raise ConnectionError(f"{self.name} socket is not connected")
        self.written.append(data)

    # ---- test helpers ----

    def feed(self, data):
        if isinstance(data, str):
            data = data.encode("ascii")
        self._chunk_cb(data)

    def lines(self):
        return [w.decode("ascii") for w in self.written]

    def drop(self, error=None):
        """Simulate the peer closing the socket."""
        self.connected = False
        self._closed_cb(self.name, error or ConnectionError(f"{self.name} socket closed by peer"))


def make_client(variant=ModemVariant.HF, **kwargs):
    client = VaraClient("127.0.0.1", 8300, variant, settle_s=0, transport_factory=FakeTransport, **kwargs)
    client.open()
    return client


@pytest.fixture
def client():
    c = make_client(ModemVariant.HF)
    yield c
    c.close()


@pytest.fixture
def fm_client():
    c = make_client(ModemVariant.FM)
    yield c
    c.close()


@pytest.fixture
def cmd(client):
    return client.command_transport


def register(client, *calls):
    """Register callsigns and answer the way VARA does."""
    future = client.register_callsigns(*calls)
    client.command_transport.feed("REGISTERED " + " ".join(calls) + "\r")
    return future.result(timeout=0)
