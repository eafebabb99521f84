# vara/state.py
import time
from typing import Any, Dict, Optional, Tuple

from .events import Event, EventKind
from .models import (
    BitrateData,
    CleanTxBufferState,
    Compression,
    ConnectionData,
    ModemVariant,
    SessionType,
)

# Notification -> (flag attribute, value). Each flag has exactly one pair.
_FLAG_UPDATES: Dict[EventKind, Tuple[str, bool]] = {
    EventKind.PTT_ON: ("ptt", True),
    EventKind.PTT_OFF: ("ptt", False),
    EventKind.BUSY_ON: ("busy", True),
    EventKind.BUSY_OFF: ("busy", False),
    EventKind.PENDING: ("pending", True),
    EventKind.CANCEL_PENDING: ("pending", False),
    EventKind.LINK_REGISTERED: ("link_registered", True),
    EventKind.LINK_UNREGISTERED: ("link_registered", False),
    EventKind.ENCRYPTION_READY: ("encryption", True),
    EventKind.ENCRYPTION_DISABLED: ("encryption", False),
    EventKind.ENCRYPTED_LINK: ("encrypted_link", True),
    EventKind.UNENCRYPTED_LINK: ("encrypted_link", False),
    EventKind.MISSING_SOUNDCARD: ("missing_soundcard", True),
}

# Notification -> attribute that stores the parsed value as-is.
_VALUE_UPDATES: Dict[EventKind, str] = {
    EventKind.CONNECTED: "connected",
    EventKind.CQFRAME: "cq_frame",
    EventKind.BUFFER: "buffer",
    EventKind.REGISTERED: "registered",
    EventKind.SN: "sn",
    EventKind.BITRATE: "bitrate",
    EventKind.CLEAN_TX_BUFFER: "clean_tx_buffer",
}


class SessionState:
    """
    Authoritative session fields.

    Modem-reported fields are written only by apply(), on the listener
    thread. The configuration echoes (listen ... version) are what the
    application last asked for and are written by the client when a command
    is issued.
    """

    def __init__(self):
        # application -> modem (echoes)
        self.listen: bool = False
        self.compression: Compression = Compression.TEXT
        self.bandwidth: int = 2300
        self.chat: Optional[bool] = None  # no documented default
        self.session: SessionType = SessionType.WINLINK
        self.tune: Optional[int] = None
        self.tune_on: bool = False
        self.version: Optional[str] = None

        # modem -> application
        self.command: str = ""
        self.data: Optional[bytes] = None
        self.connected: Optional[ConnectionData] = None
        self.ptt: bool = False
        self.buffer: int = 0
        self.pending: bool = False
        self.busy: bool = False
        self.registered: Tuple[str, ...] = ()
        self.link_registered: bool = False
        self.iamalive: Optional[float] = None
        self.missing_soundcard: bool = False
        self.cq_frame: Optional[ConnectionData] = None
        self.sn: Optional[int] = None
        self.bitrate: Optional[BitrateData] = None
        self.clean_tx_buffer: Optional[CleanTxBufferState] = None
        self.encryption: bool = False
        self.encrypted_link: bool = False
        self.ok: bool = True
        self.wrong: bool = False

    def apply(self, event: Event) -> None:
        kind = event.kind

        if kind is EventKind.COMMAND:
            self.command = event.line
            return
        if kind is EventKind.DATA:
            self.data = event.value
            return

        flag = _FLAG_UPDATES.get(kind)
        if flag is not None:
            setattr(self, flag[0], flag[1])
            return

        attr = _VALUE_UPDATES.get(kind)
        if attr is not None:
            setattr(self, attr, event.value)
            return

        if kind is EventKind.DISCONNECTED:
            self.connected = None
        elif kind is EventKind.IAMALIVE:
            self.iamalive = time.time()
        elif kind is EventKind.OK:
            self.ok, self.wrong = True, False
        elif kind is EventKind.WRONG:
            self.ok, self.wrong = False, True


class StateView:
    """
    Read-only view of a SessionState.

    Derived fields are computed on access. Fields that do not exist for the
    running modem variant return None (bandwidth on FM/SAT; session and tune
    on FM).
    """

    def __init__(self, state: SessionState, variant: ModemVariant):
        self._state = state
        self._variant = ModemVariant(variant)

    @property
    def variant(self) -> ModemVariant:
        return self._variant

    # ---------- application -> modem ----------

    @property
    def listen_on(self) -> bool:
        return self._state.listen

    @property
    def listen_off(self) -> bool:
        return not self._state.listen

    @property
    def my_call(self) -> Tuple[str, ...]:
        return self._state.registered

    @property
    def compression(self) -> Compression:
        return self._state.compression

    @property
    def compression_off(self) -> bool:
        return self._state.compression is Compression.OFF

    @property
    def compression_text(self) -> bool:
        return self._state.compression is Compression.TEXT

    @property
    def compression_files(self) -> bool:
        return self._state.compression is Compression.FILES

    @property
    def bandwidth(self) -> Optional[int]:
        if self._variant is not ModemVariant.HF:
            return None
        return self._state.bandwidth

    def _bw_is(self, bw: int) -> Optional[bool]:
        if self._variant is not ModemVariant.HF:
            return None
        return self._state.bandwidth == bw

    @property
    def bw500(self) -> Optional[bool]:
        return self._bw_is(500)

    @property
    def bw2300(self) -> Optional[bool]:
        return self._bw_is(2300)

    @property
    def bw2750(self) -> Optional[bool]:
        return self._bw_is(2750)

    @property
    def chat_on(self) -> Optional[bool]:
        return self._state.chat

    @property
    def chat_off(self) -> Optional[bool]:
        if self._state.chat is None:
            return None
        return not self._state.chat

    @property
    def winlink_session(self) -> Optional[bool]:
        if self._variant is ModemVariant.FM:
            return None
        return self._state.session is SessionType.WINLINK

    @property
    def p2p_session(self) -> Optional[bool]:
        if self._variant is ModemVariant.FM:
            return None
        return self._state.session is SessionType.P2P

    @property
    def tune(self) -> Optional[int]:
        if self._variant is ModemVariant.FM:
            return None
        return self._state.tune

    @property
    def tune_on(self) -> Optional[bool]:
        if self._variant is ModemVariant.FM:
            return None
        return self._state.tune_on

    @property
    def tune_off(self) -> Optional[bool]:
        if self._variant is ModemVariant.FM:
            return None
        return not self._state.tune_on

    @property
    def version(self) -> Optional[str]:
        return self._state.version

    # ---------- modem -> application ----------

    @property
    def data(self) -> Optional[bytes]:
        return self._state.data

    @property
    def command(self) -> str:
        return self._state.command

    @property
    def connected(self) -> Optional[ConnectionData]:
        return self._state.connected

    @property
    def disconnected(self) -> bool:
        return self._state.connected is None

    @property
    def ptt_on(self) -> bool:
        return self._state.ptt

    @property
    def ptt_off(self) -> bool:
        return not self._state.ptt

    @property
    def buffer(self) -> int:
        return self._state.buffer

    @property
    def pending(self) -> bool:
        return self._state.pending

    @property
    def busy_on(self) -> bool:
        return self._state.busy

    @property
    def busy_off(self) -> bool:
        return not self._state.busy

    @property
    def registered(self) -> Tuple[str, ...]:
        return self._state.registered

    @property
    def link_registered(self) -> bool:
        return self._state.link_registered

    @property
    def link_unregistered(self) -> bool:
        return not self._state.link_registered

    @property
    def iamalive(self) -> Optional[float]:
        """Epoch seconds of the last IAMALIVE keepalive."""
        return self._state.iamalive

    @property
    def missing_soundcard(self) -> bool:
        return self._state.missing_soundcard

    @property
    def cq_frame(self) -> Optional[ConnectionData]:
        return self._state.cq_frame

    @property
    def sn(self) -> Optional[int]:
        return self._state.sn

    @property
    def bitrate(self) -> Optional[BitrateData]:
        return self._state.bitrate

    @property
    def clean_tx_buffer(self) -> Optional[CleanTxBufferState]:
        return self._state.clean_tx_buffer

    @property
    def encryption_ready(self) -> bool:
        return self._state.encryption

    @property
    def encryption_disabled(self) -> bool:
        return not self._state.encryption

    @property
    def encrypted_link(self) -> bool:
        return self._state.encrypted_link

    @property
    def unencrypted_link(self) -> bool:
        return not self._state.encrypted_link

    @property
    def ok(self) -> bool:
        return self._state.ok

    @property
    def wrong(self) -> bool:
        return self._state.wrong

    # ---------- snapshot ----------

    _FIELDS = (
        "listen_on", "listen_off", "my_call",
        "compression", "compression_off", "compression_text", "compression_files",
        "bandwidth", "bw500", "bw2300", "bw2750",
        "chat_on", "chat_off", "winlink_session", "p2p_session",
        "tune", "tune_on", "tune_off", "version",
        "data", "command", "connected", "disconnected",
        "ptt_off", "ptt_on", "buffer", "pending", "busy_off", "busy_on",
        "registered", "link_registered", "link_unregistered", "iamalive",
        "missing_soundcard", "cq_frame", "sn", "bitrate", "clean_tx_buffer",
        "encryption_disabled", "encryption_ready", "unencrypted_link",
        "encrypted_link", "ok", "wrong",
    )

    def to_dict(self) -> Dict[str, Any]:
        """Materialise every field at once; values are JSON friendly."""
        out: Dict[str, Any] = {}
        for name in self._FIELDS:
            out[name] = _plain(getattr(self, name))
        return out

    def __repr__(self) -> str:
        return f"StateView(variant={self._variant.value}, disconnected={self.disconnected}, ptt_on={self.ptt_on})"


def _plain(value: Any) -> Any:
    if isinstance(value, (ConnectionData, BitrateData)):
        return value.to_dict()
    if isinstance(value, (Compression, SessionType, CleanTxBufferState, ModemVariant)):
        return value.value
    if isinstance(value, tuple):
        return list(value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return value
