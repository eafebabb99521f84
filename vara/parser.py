# vara/parser.py
from typing import Callable, Dict, List, Optional, Tuple

from loghandler import get_logger

from .events import Event, EventKind
from .models import BitrateData, CleanTxBufferState, ConnectionData

LINE_TERMINATOR = b"\r"

# Lines that are the whole notification, no arguments.
_BARE_NOTIFICATIONS: Dict[str, EventKind] = {
    kind.value: kind
    for kind in (
        EventKind.DISCONNECTED,
        EventKind.PTT_OFF,
        EventKind.PTT_ON,
        EventKind.PENDING,
        EventKind.CANCEL_PENDING,
        EventKind.BUSY_OFF,
        EventKind.BUSY_ON,
        EventKind.LINK_REGISTERED,
        EventKind.LINK_UNREGISTERED,
        EventKind.IAMALIVE,
        EventKind.MISSING_SOUNDCARD,
        EventKind.ENCRYPTION_DISABLED,
        EventKind.ENCRYPTION_READY,
        EventKind.UNENCRYPTED_LINK,
        EventKind.ENCRYPTED_LINK,
        EventKind.OK,
        EventKind.WRONG,
    )
}


class LineFramer:
    """
    Splits a pushed byte stream into '\\r'-terminated lines.

    A chunk may end in the middle of a line; the tail is kept until the
    terminator arrives with a later chunk.
    """

    def __init__(self, terminator: bytes = LINE_TERMINATOR, encoding: str = "ascii"):
        self.terminator = terminator
        self.encoding = encoding
        self._buffer = b""

    def feed(self, chunk: bytes) -> List[str]:
        self._buffer += chunk
        lines: List[str] = []
        while self.terminator in self._buffer:
            raw, self._buffer = self._buffer.split(self.terminator, 1)
            line = raw.decode(self.encoding, errors="replace").strip()
            if line:
                lines.append(line)
        return lines

    @property
    def pending(self) -> bytes:
        """Bytes received after the last terminator."""
        return self._buffer

    def reset(self) -> None:
        self._buffer = b""


def _to_int(token: Optional[str]) -> Optional[int]:
    if token is None:
        return None
    try:
        return int(token)
    except ValueError:
        return None


class VaraParser:
    """
    Classifies one VARA command line into a typed Event.

    Bare notifications ('PTT ON', 'OK', ...) are matched on the whole line;
    everything else is keyed on the first token. parse() returns None for
    lines it does not know (newer VARA releases add notifications) and for
    known prefixes whose arguments do not fit the grammar.
    """

    def __init__(self):
        self._logger = get_logger()
        self._handlers: Dict[str, Callable[[str, List[str]], Optional[Event]]] = {
            "CONNECTED": self._parse_connected,
            "CQFRAME": self._parse_cq_frame,
            "BUFFER": self._parse_buffer,
            "REGISTERED": self._parse_registered,
            "SN": self._parse_sn,
            "BITRATE": self._parse_bitrate,
            "CLEANTXBUFFER": self._parse_clean_tx_buffer,
        }

    def parse(self, line: str) -> Optional[Event]:
        if not line:
            return None

        kind = _BARE_NOTIFICATIONS.get(line)
        if kind is not None:
            return Event(kind, line)

        tokens = line.split(" ")
        handler = self._handlers.get(tokens[0])
        if handler is None:
            return None

        event = handler(line, tokens)
        if event is None:
            self._logger.debug(f"[PARSER] malformed {tokens[0]} line ignored: '{line}'")
        return event

    # ----------- Parsers -----------

    def _parse_connected(self, line: str, tokens: List[str]) -> Optional[Event]:
        """
        Matches:
          'CONNECTED N0CALL W1AW 2300'
          'CONNECTED N0CALL W1AW VIA R1 2300'
          'CONNECTED N0CALL W1AW VIA R1 R2 2300'
        """
        n = len(tokens)
        if n not in (4, 6, 7):
            return None
        if n >= 6 and tokens[3] != "VIA":
            return None

        relay1: Optional[str] = None
        relay2: Optional[str] = None
        bandwidth = _to_int(tokens[-1])
        if bandwidth is None:
            return None
        if n >= 6:
            relay1 = tokens[4]
        if n == 7:
            relay2 = tokens[5]

        cd = ConnectionData(
            source=tokens[1],
            destination=tokens[2],
            bandwidth=bandwidth,
            relay1=relay1,
            relay2=relay2,
        )
        return Event(EventKind.CONNECTED, line, cd)

    def _parse_cq_frame(self, line: str, tokens: List[str]) -> Optional[Event]:
        """
        Matches:
          'CQFRAME N0CALL 2300'       (HF: second field is the bandwidth)
          'CQFRAME N0CALL R1 [R2]'    (FM: relays)
          'CQFRAME N0CALL'
        """
        args = [t for t in tokens[1:] if t]
        if not args or len(args) > 3:
            return None

        source = args[0]
        arg2 = args[1] if len(args) > 1 else None
        arg3 = args[2] if len(args) > 2 else None

        bandwidth = _to_int(arg2)
        if bandwidth is not None:
            cd = ConnectionData(source=source, bandwidth=bandwidth, relay2=arg3)
        else:
            cd = ConnectionData(source=source, relay1=arg2, relay2=arg3)
        return Event(EventKind.CQFRAME, line, cd)

    def _parse_buffer(self, line: str, tokens: List[str]) -> Optional[Event]:
        """'BUFFER 1024' -> bytes not yet transmitted."""
        if len(tokens) != 2:
            return None
        n = _to_int(tokens[1])
        return None if n is None else Event(EventKind.BUFFER, line, n)

    def _parse_registered(self, line: str, tokens: List[str]) -> Optional[Event]:
        """'REGISTERED N0CALL N0CALL-1' -> ('N0CALL', 'N0CALL-1')."""
        calls: Tuple[str, ...] = tuple(t for t in tokens[1:] if t)
        if not calls:
            return None
        return Event(EventKind.REGISTERED, line, calls)

    def _parse_sn(self, line: str, tokens: List[str]) -> Optional[Event]:
        if len(tokens) != 2:
            return None
        sn = _to_int(tokens[1])
        return None if sn is None else Event(EventKind.SN, line, sn)

    def _parse_bitrate(self, line: str, tokens: List[str]) -> Optional[Event]:
        """
        Matches 'BITRATE (5)  600'. VARA puts two spaces before the bps value,
        so splitting on single spaces yields an empty token we skip.
        """
        args = [t for t in tokens[1:] if t]
        if len(args) != 2:
            return None
        level_tok, bps_tok = args
        if not (level_tok.startswith("(") and level_tok.endswith(")")):
            return None
        level = _to_int(level_tok[1:-1])
        bps = _to_int(bps_tok)
        if level is None or bps is None:
            return None
        return Event(EventKind.BITRATE, line, BitrateData(speed_level=level, bits_per_second=bps))

    def _parse_clean_tx_buffer(self, line: str, tokens: List[str]) -> Optional[Event]:
        if len(tokens) != 2:
            return None
        try:
            status = CleanTxBufferState(tokens[1])
        except ValueError:
            return None
        return Event(EventKind.CLEAN_TX_BUFFER, line, status)
