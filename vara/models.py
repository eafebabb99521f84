# vara/models.py
"""Value types shared by the parser, the state projection and the client."""

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional

DEFAULT_VARA_PORT: int = 8300
MAX_CALLSIGNS: int = 5
HF_BANDWIDTHS = (500, 2300, 2750)
TUNE_MIN_DB: int = -30
TUNE_MAX_DB: int = 0


class ModemVariant(str, Enum):
    HF = "HF"
    FM = "FM"
    SAT = "SAT"


class Compression(str, Enum):
    OFF = "OFF"
    TEXT = "TEXT"
    FILES = "FILES"


class SessionType(str, Enum):
    WINLINK = "WINLINK"
    P2P = "P2P"


class CleanTxBufferState(str, Enum):
    """Result of CLEANTXBUFFER; values are the wire tokens."""
    BUFFER_EMPTY = "BUFFEREMPTY"
    OK = "OK"
    FAILED = "FAILED"


@dataclass(frozen=True)
class ConnectionData:
    """Link descriptor parsed from a CONNECTED or CQFRAME line."""
    source: str
    destination: Optional[str] = None
    bandwidth: Optional[int] = None
    relay1: Optional[str] = None
    relay2: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class BitrateData:
    speed_level: int
    bits_per_second: int

    def to_dict(self) -> Dict[str, Any]:
        return {"speed_level": self.speed_level, "bits_per_second": self.bits_per_second}


@dataclass(frozen=True)
class ModemQuirks:
    """
    Known deviations of a VARA build from its developer documentation.

    These are workarounds for remote defects, so they are data rather than
    branches in the client: a fixed VARA release only needs a config change.
    """
    # VARA HF never answers CHAT ON with OK (FM and SAT do).
    chat_on_acknowledged: bool = True
    disconnect_acknowledged_with_ok: bool = False
    connect_resolves_on_pending: bool = False
    connect_rejects_on_cancel_pending: bool = False

    def with_overrides(self, overrides: Optional[Mapping[str, Any]]) -> "ModemQuirks":
        if not overrides:
            return self
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"Unknown modem quirk(s): {', '.join(unknown)}")
        return replace(self, **{k: bool(v) for k, v in overrides.items()})


_DEFAULT_QUIRKS: Dict[ModemVariant, ModemQuirks] = {
    ModemVariant.HF: ModemQuirks(chat_on_acknowledged=False),
    ModemVariant.FM: ModemQuirks(),
    ModemVariant.SAT: ModemQuirks(),
}


def default_quirks(variant: ModemVariant) -> ModemQuirks:
    return _DEFAULT_QUIRKS[ModemVariant(variant)]
