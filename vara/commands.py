# vara/commands.py
"""
Outbound command builders.

Each function validates its arguments and returns the canonical wire line
without the trailing '\\r'. Validation errors are raised before the client
writes anything.
"""

from typing import Optional, Sequence

from .errors import VaraValidationError
from .models import (
    HF_BANDWIDTHS,
    MAX_CALLSIGNS,
    TUNE_MAX_DB,
    TUNE_MIN_DB,
    Compression,
    ModemVariant,
    SessionType,
)


def _callsign(value: str, what: str) -> str:
    if not isinstance(value, str) or not value.strip() or " " in value.strip():
        raise VaraValidationError(f"{what} must be a single non-empty callsign, got {value!r}.")
    return value.strip()


def _require_variant(variant: ModemVariant, allowed, operation: str) -> None:
    if ModemVariant(variant) not in allowed:
        names = "/".join(v.value for v in allowed)
        raise VaraValidationError(f"{operation}() is only supported by VARA {names}, not {ModemVariant(variant).value}.")


def _require_registered(registered: Sequence[str], operation: str) -> None:
    if len(registered) < 1:
        raise VaraValidationError(
            f"You must register at least one callsign with register_callsigns() before calling {operation}()."
        )


def connect(source: str, destination: str, relay1: Optional[str] = None, relay2: Optional[str] = None) -> str:
    parts = ["CONNECT", _callsign(source, "source"), _callsign(destination, "destination")]
    if relay2 and not relay1:
        raise VaraValidationError("relay2 was given without relay1.")
    if relay1:
        parts += ["VIA", _callsign(relay1, "relay1")]
    if relay2:
        parts.append(_callsign(relay2, "relay2"))
    return " ".join(parts)


def listen(on: bool) -> str:
    return "LISTEN ON" if on else "LISTEN OFF"


def my_call(callsigns: Sequence[str]) -> str:
    if isinstance(callsigns, str):
        callsigns = [callsigns]
    calls = list(callsigns)
    if len(calls) > MAX_CALLSIGNS:
        raise VaraValidationError(
            f"{len(calls)} callsigns were passed to register_callsigns(). "
            f"VARA supports a maximum of {MAX_CALLSIGNS} callsigns."
        )
    if not calls:
        raise VaraValidationError("register_callsigns() needs at least one callsign.")
    return "MYCALL " + " ".join(_callsign(c, "callsign") for c in calls)


def disconnect() -> str:
    return "DISCONNECT"


def abort() -> str:
    return "ABORT"


def compression(mode: Compression) -> str:
    return f"COMPRESSION {Compression(mode).value}"


def bandwidth(variant: ModemVariant, bw: int) -> str:
    _require_variant(variant, (ModemVariant.HF,), f"bw{bw}")
    if bw not in HF_BANDWIDTHS:
        raise VaraValidationError(f"{bw} Hz is not a VARA HF bandwidth ({', '.join(map(str, HF_BANDWIDTHS))}).")
    return f"BW{bw}"


def chat(on: bool) -> str:
    return "CHAT ON" if on else "CHAT OFF"


def cq_frame(
    variant: ModemVariant,
    source: str,
    bandwidth: Optional[int] = None,
    relay1: Optional[str] = None,
    relay2: Optional[str] = None,
) -> str:
    """
    CQFRAME has one shape per variant:
      HF:  'CQFRAME <src> <bw>'
      FM:  'CQFRAME <src> [<r1> [<r2>]]'
      SAT: 'CQFRAME <src>'
    """
    variant = ModemVariant(variant)
    parts = ["CQFRAME", _callsign(source, "source")]

    if bandwidth is not None:
        if variant is not ModemVariant.HF:
            raise VaraValidationError(f"A CQ frame bandwidth is only valid for VARA HF, not {variant.value}.")
        if bandwidth not in HF_BANDWIDTHS:
            raise VaraValidationError(f"{bandwidth} Hz is not a VARA HF bandwidth.")
        parts.append(str(bandwidth))

    if relay1 or relay2:
        if variant is not ModemVariant.FM:
            raise VaraValidationError(f"CQ frame relays are only valid for VARA FM, not {variant.value}.")
        if relay2 and not relay1:
            raise VaraValidationError("relay2 was given without relay1.")
        parts.append(_callsign(relay1, "relay1"))
        if relay2:
            parts.append(_callsign(relay2, "relay2"))

    return " ".join(parts)


def session(variant: ModemVariant, kind: SessionType) -> str:
    kind = SessionType(kind)
    _require_variant(variant, (ModemVariant.HF, ModemVariant.SAT), f"{kind.value.lower()}_session")
    return f"{kind.value} SESSION"


def set_tune(variant: ModemVariant, decibels: int, registered: Sequence[str]) -> str:
    _require_variant(variant, (ModemVariant.HF, ModemVariant.SAT), "set_tune")
    _require_registered(registered, "set_tune")
    if isinstance(decibels, bool) or not isinstance(decibels, int):
        raise VaraValidationError(f"{decibels!r} is not an integer decibel value.")
    if decibels > TUNE_MAX_DB or decibels < TUNE_MIN_DB:
        raise VaraValidationError(
            f"{decibels} is an invalid decibel value. Values must be between "
            f"{TUNE_MIN_DB} and {TUNE_MAX_DB}, inclusive."
        )
    return f"TUNE {decibels}"


def tune_query(variant: ModemVariant, registered: Sequence[str]) -> str:
    _require_variant(variant, (ModemVariant.HF, ModemVariant.SAT), "get_tune")
    _require_registered(registered, "get_tune")
    return "TUNE ?"


def tune_off(variant: ModemVariant, registered: Sequence[str]) -> str:
    _require_variant(variant, (ModemVariant.HF, ModemVariant.SAT), "tune_off")
    _require_registered(registered, "tune_off")
    return "TUNE OFF"


def clean_tx_buffer() -> str:
    return "CLEANTXBUFFER"


def version() -> str:
    return "VERSION"
