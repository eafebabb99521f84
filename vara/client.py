# vara/client.py
import time
from concurrent.futures import Future
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from loghandler import get_logger, get_traffic_logger

from . import commands
from .correlator import Correlator, Matcher, resolved, rejected
from .errors import VaraCommandFailed, VaraTransportError
from .events import Event, EventBus, EventKind, Predicate, Subscription
from .models import (
    DEFAULT_VARA_PORT,
    CleanTxBufferState,
    Compression,
    ModemQuirks,
    ModemVariant,
    SessionType,
    default_quirks,
)
from .parser import LineFramer, VaraParser
from .state import SessionState, StateView
from .transport import StreamTransport

# Both sockets can report "connected" a moment before VARA really accepts
# commands on them; open() holds this long before returning.
OPEN_SETTLE_S: float = 0.1

CLEAN_TX_BUFFER_DONE = (CleanTxBufferState.OK, CleanTxBufferState.BUFFER_EMPTY)


class VaraClient:
    """
    Client for a running VARA HF/FM/SAT modem.

    Composition:
      - two StreamTransports: commands on `port`, payload data on `port + 1`.
      - LineFramer + VaraParser: turn the command stream into Events.
      - SessionState: updated by every event, exposed read-only as `state`.
      - Correlator: one Future per issued command, settled by the terminal
        notification of that command.
      - EventBus: fan-out of every event to external subscribers.

    Every command method writes exactly one line and returns a
    concurrent.futures.Future. There are no built-in timeouts: bound a wait
    with `future.result(timeout=...)`. Argument errors raise
    VaraValidationError before anything is written.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = DEFAULT_VARA_PORT,
        variant: Union[ModemVariant, str] = ModemVariant.HF,
        *,
        quirks: Optional[Union[ModemQuirks, Mapping[str, Any]]] = None,
        debug: bool = False,
        settle_s: float = OPEN_SETTLE_S,
        connect_timeout: float = 5.0,
        data_encoding: str = "utf-8",
        transport_factory: Callable[..., Any] = StreamTransport,
    ):
        self._logger = get_logger()
        self._traffic = get_traffic_logger()

        self.host = host
        self.port = int(port)
        self.variant = ModemVariant(variant)
        self.debug = debug
        self.settle_s = float(settle_s)
        self.data_encoding = data_encoding

        if isinstance(quirks, ModemQuirks):
            self.quirks = quirks
        else:
            self.quirks = default_quirks(self.variant).with_overrides(quirks)

        self._state = SessionState()
        self.state = StateView(self._state, self.variant)
        self.bus = EventBus()
        self._correlator = Correlator()
        self._parser = VaraParser()
        self._framer = LineFramer()
        self._closed = True

        self.command_transport = transport_factory(
            self.host,
            self.port,
            name="command",
            connect_timeout=connect_timeout,
            debug=debug,
            chunk_callback=self._on_command_chunk,
            closed_callback=self._on_transport_closed,
        )
        self.data_transport = transport_factory(
            self.host,
            self.port + 1,
            name="data",
            connect_timeout=connect_timeout,
            debug=debug,
            chunk_callback=self._on_data_chunk,
            closed_callback=self._on_transport_closed,
        )

    @classmethod
    def create(cls, *args, **kwargs) -> "VaraClient":
        """Build a client and open() it."""
        client = cls(*args, **kwargs)
        client.open()
        return client

    # ------------- Open/Close -------------

    def open(self) -> "VaraClient":
        """Connect both sockets; returns once both are ready and settled."""
        self._framer.reset()
        try:
            self.command_transport.connect()
        except OSError as e:
            raise VaraTransportError(f"Could not open VARA command port {self.host}:{self.port}: {e}") from e
        try:
            self.data_transport.connect()
        except OSError as e:
            self.command_transport.disconnect()
            raise VaraTransportError(f"Could not open VARA data port {self.host}:{self.port + 1}: {e}") from e

        if self.settle_s > 0:
            time.sleep(self.settle_s)
        self._closed = False
        self._logger.info(f"Connected to VARA {self.variant.value} at {self.host}:{self.port} (data {self.port + 1})")
        return self

    def close(self) -> None:
        """
        Close both sockets locally. Nothing is sent to the modem; commands
        still waiting fail with VaraTransportError.
        """
        if self._closed and not (self.command_transport.connected or self.data_transport.connected):
            return
        self._closed = True
        self.command_transport.disconnect()
        self.data_transport.disconnect()

        error = VaraTransportError("VARA client was closed")
        self._correlator.fail_all(error)
        self.bus.publish(Event(EventKind.CLOSED, "local", error))
        self._logger.info("VARA sockets closed")

    end = close

    @property
    def is_open(self) -> bool:
        return not self._closed and self.command_transport.connected

    def __enter__(self) -> "VaraClient":
        if self._closed:
            self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------- Inbound dispatch -------------

    def _on_command_chunk(self, chunk: bytes) -> None:
        for line in self._framer.feed(chunk):
            self._dispatch_line(line)

    def _dispatch_line(self, line: str) -> None:
        self._traffic.info(f"< {line}")
        if self.debug:
            self._logger.debug(f"[RECV] {line}")

        event = self._parser.parse(line)
        generic = Event(EventKind.COMMAND, line, event)

        if event is not None:
            self._state.apply(event)
        self._state.apply(generic)

        self._publish(generic)
        if event is not None:
            self._publish(event)
        elif self.debug:
            self._logger.debug(f"[RECV] no handler for '{line}'")

    def _on_data_chunk(self, chunk: bytes) -> None:
        self._traffic.info(f"<< {len(chunk)} bytes")
        event = Event(EventKind.DATA, "", bytes(chunk))
        self._state.apply(event)
        self.bus.publish(event)

    def _publish(self, event: Event) -> None:
        self._correlator.handle(event)
        self.bus.publish(event)

    def _on_transport_closed(self, name: str, error: Optional[BaseException]) -> None:
        failure = VaraTransportError(f"VARA {name} socket lost: {error}")
        self._logger.error(f"[NET] {failure}")
        self._correlator.fail_all(failure)
        self.bus.publish(Event(EventKind.CLOSED, name, failure))

    # ------------- Subscriptions -------------

    def on(self, kind: EventKind, callback: Callable[[Event], None]) -> Subscription:
        return self.bus.subscribe(callback, kinds=(EventKind(kind),))

    def once(self, kind: EventKind, callback: Callable[[Event], None]) -> Subscription:
        return self.bus.once(callback, kinds=(EventKind(kind),))

    def off(self, subscription: Subscription) -> None:
        self.bus.unsubscribe(subscription)

    def wait_for(self, kind: EventKind, predicate: Optional[Predicate] = None) -> "Future[Event]":
        """
        Future for the next event of `kind` (optionally also matching
        `predicate`). Fails with VaraTransportError if the client closes first.
        """
        kind = EventKind(kind)
        future: "Future[Event]" = Future()
        future.set_running_or_notify_cancel()

        def _match(event: Event) -> bool:
            if event.kind is EventKind.CLOSED and kind is not EventKind.CLOSED:
                return True
            return event.kind is kind and (predicate is None or predicate(event))

        def _done(event: Event) -> None:
            if event.kind is EventKind.CLOSED and kind is not EventKind.CLOSED:
                future.set_exception(event.value)
            else:
                future.set_result(event)

        self.bus.once(_done, kinds=(kind, EventKind.CLOSED), predicate=_match)
        return future

    # ------------- Command helpers -------------

    def _write_command(self, line: str) -> None:
        if self.debug:
            self._logger.debug(f"[SEND] {line}")
        self._traffic.info(f"> {line}")
        self.command_transport.write((line + "\r").encode("ascii", errors="replace"))

    def _issue(
        self,
        operation: str,
        arguments: Sequence[Any],
        line: str,
        matcher: Optional[Matcher] = None,
        awaits_ok: bool = False,
    ) -> "Future[Any]":
        if not self.command_transport.connected:
            raise VaraTransportError(f"Cannot send {operation}(): the VARA client is not open")

        # Register before writing so a fast reply cannot slip past us.
        pending = self._correlator.track(operation, arguments, line, matcher, awaits_ok)
        try:
            self._write_command(line)
        except OSError as e:
            self._correlator.discard(pending)
            raise VaraTransportError(f"Failed to send '{line}': {e}") from e
        return pending.future

    def _issue_ok(self, operation: str, arguments: Sequence[Any], line: str) -> "Future[None]":
        return self._issue(operation, arguments, line, awaits_ok=True)

    def _issue_unacknowledged(self, line: str) -> "Future[None]":
        if not self.command_transport.connected:
            raise VaraTransportError(f"Cannot send '{line}': the VARA client is not open")
        try:
            self._write_command(line)
        except OSError as e:
            raise VaraTransportError(f"Failed to send '{line}': {e}") from e
        self._correlator.untracked(line)
        future: "Future[None]" = Future()
        future.set_running_or_notify_cancel()
        future.set_result(None)
        return future

    # ------------- Public modem API -------------

    def connect(
        self,
        source: str,
        destination: str,
        relay1: Optional[str] = None,
        relay2: Optional[str] = None,
    ) -> "Future[Any]":
        """
        Connect to `destination`, optionally via one or two relays.
        Resolves with the ConnectionData of the CONNECTED line (None if
        that line could not be parsed).
        """
        line = commands.connect(source, destination, relay1, relay2)
        quirks = self.quirks

        def _matcher(event: Event):
            if event.kind is EventKind.COMMAND and event.line.startswith("CONNECTED"):
                # The generic event carries this line's parse; None if it did not fit.
                parsed = event.value
                if parsed is not None and parsed.kind is EventKind.CONNECTED:
                    return resolved(parsed.value)
                return resolved(None)
            if event.kind is EventKind.PENDING and quirks.connect_resolves_on_pending:
                return resolved(None)
            if event.kind is EventKind.DISCONNECTED or (
                event.kind is EventKind.CANCEL_PENDING and quirks.connect_rejects_on_cancel_pending
            ):
                return rejected(VaraCommandFailed(f"VARA was unable to make a connection to {destination}."))
            return None

        args = [a for a in (source, destination, relay1, relay2) if a is not None]
        return self._issue("connect", args, line, _matcher)

    def disconnect(self) -> "Future[None]":
        def _matcher(event: Event):
            if event.kind is EventKind.DISCONNECTED:
                return resolved(None)
            return None

        return self._issue(
            "disconnect", (), commands.disconnect(), _matcher,
            awaits_ok=self.quirks.disconnect_acknowledged_with_ok,
        )

    def listen_on(self) -> "Future[None]":
        future = self._issue_ok("listen_on", (), commands.listen(True))
        self._state.listen = True
        return future

    def listen_off(self) -> "Future[None]":
        future = self._issue_ok("listen_off", (), commands.listen(False))
        self._state.listen = False
        return future

    def register_callsigns(self, *callsigns: str) -> "Future[Any]":
        """
        MYCALL with up to five callsigns; resolves with the tuple VARA
        reports as REGISTERED. A single list/tuple argument is accepted too.
        """
        if len(callsigns) == 1 and isinstance(callsigns[0], (list, tuple)):
            callsigns = tuple(callsigns[0])
        line = commands.my_call(callsigns)

        def _matcher(event: Event):
            if event.kind is EventKind.REGISTERED:
                return resolved(event.value)
            return None

        return self._issue("register_callsigns", callsigns, line, _matcher)

    def abort(self) -> "Future[None]":
        return self._issue_ok("abort", (), commands.abort())

    def _set_compression(self, mode: Compression) -> "Future[None]":
        future = self._issue_ok(f"compression_{mode.value.lower()}", (), commands.compression(mode))
        self._state.compression = mode
        return future

    def compression_off(self) -> "Future[None]":
        return self._set_compression(Compression.OFF)

    def compression_text(self) -> "Future[None]":
        return self._set_compression(Compression.TEXT)

    def compression_files(self) -> "Future[None]":
        return self._set_compression(Compression.FILES)

    def _set_bandwidth(self, bw: int) -> "Future[None]":
        future = self._issue_ok(f"bw{bw}", (), commands.bandwidth(self.variant, bw))
        self._state.bandwidth = bw
        return future

    def bw500(self) -> "Future[None]":
        return self._set_bandwidth(500)

    def bw2300(self) -> "Future[None]":
        return self._set_bandwidth(2300)

    def bw2750(self) -> "Future[None]":
        return self._set_bandwidth(2750)

    def chat_on(self) -> "Future[None]":
        if self.quirks.chat_on_acknowledged:
            future = self._issue_ok("chat_on", (), commands.chat(True))
        else:
            # VARA HF never sends OK for CHAT ON; do not wait for it.
            future = self._issue_unacknowledged(commands.chat(True))
        self._state.chat = True
        return future

    def chat_off(self) -> "Future[None]":
        future = self._issue_ok("chat_off", (), commands.chat(False))
        self._state.chat = False
        return future

    def send_cq_frame(
        self,
        source: str,
        bandwidth: Optional[int] = None,
        relay1: Optional[str] = None,
        relay2: Optional[str] = None,
    ) -> "Future[None]":
        """
        Broadcast a CQ frame. Resolves on the next PTT OFF, when VARA has
        finished transmitting and accepts more work.
        """
        line = commands.cq_frame(self.variant, source, bandwidth, relay1, relay2)

        def _matcher(event: Event):
            if event.kind is EventKind.PTT_OFF:
                return resolved(None)
            return None

        args = [a for a in (source, bandwidth, relay1, relay2) if a is not None]
        return self._issue("send_cq_frame", args, line, _matcher)

    def _set_session(self, kind: SessionType) -> "Future[None]":
        future = self._issue_ok(f"{kind.value.lower()}_session", (), commands.session(self.variant, kind))
        self._state.session = kind
        return future

    def winlink_session(self) -> "Future[None]":
        return self._set_session(SessionType.WINLINK)

    def p2p_session(self) -> "Future[None]":
        return self._set_session(SessionType.P2P)

    def set_tune(self, decibels: int) -> "Future[None]":
        line = commands.set_tune(self.variant, decibels, self._state.registered)
        future = self._issue_ok("set_tune", (decibels,), line)
        self._state.tune = decibels
        self._state.tune_on = True
        return future

    def get_tune(self) -> "Future[int]":
        line = commands.tune_query(self.variant, self._state.registered)

        def _matcher(event: Event):
            if event.kind is not EventKind.COMMAND or not event.line.startswith("TUNE "):
                return None
            try:
                level = int(event.line[5:].strip())
            except ValueError:
                return None
            self._state.tune = level
            return resolved(level)

        return self._issue("get_tune", (), line, _matcher)

    def tune_off(self) -> "Future[None]":
        line = commands.tune_off(self.variant, self._state.registered)
        future = self._issue_ok("tune_off", (), line)
        self._state.tune_on = False
        return future

    def purge_buffer(self) -> "Future[CleanTxBufferState]":
        """CLEANTXBUFFER; resolves with OK or BUFFER_EMPTY, fails on FAILED."""

        def _matcher(event: Event):
            if event.kind is not EventKind.CLEAN_TX_BUFFER:
                return None
            if event.value in CLEAN_TX_BUFFER_DONE:
                return resolved(event.value)
            return rejected(VaraCommandFailed("Unable to erase the TX buffer at the moment."))

        return self._issue("purge_buffer", (), commands.clean_tx_buffer(), _matcher)

    def get_version(self) -> "Future[str]":
        def _matcher(event: Event):
            if event.kind is EventKind.COMMAND and event.line.startswith("VERSION VARA"):
                self._state.version = event.line
                return resolved(event.line)
            return None

        return self._issue("get_version", (), commands.version(), _matcher)

    # ------------- Data port -------------

    def send(self, payload: Union[bytes, bytearray, str]) -> int:
        """Write payload to the data socket; returns the number of bytes."""
        if isinstance(payload, str):
            payload = payload.encode(self.data_encoding)
        data = bytes(payload)
        if not self.data_transport.connected:
            raise VaraTransportError("Cannot send data: the VARA data port is not open")
        try:
            self.data_transport.write(data)
        except OSError as e:
            raise VaraTransportError(f"Failed to write {len(data)} bytes to the data port: {e}") from e
        self._traffic.info(f">> {len(data)} bytes")
        return len(data)

    def decode(self, data: bytes) -> str:
        """Decode a data payload with this client's data encoding."""
        return data.decode(self.data_encoding, errors="replace")


__all__ = ["VaraClient", "OPEN_SETTLE_S"]
