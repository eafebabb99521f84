"""Configuration validation helpers for the VARA client CLI."""
from typing import Any, Dict

from vara.models import MAX_CALLSIGNS, ModemQuirks, ModemVariant


class ConfigValidationError(Exception):
    pass


def _fail(msg: str, logger) -> None:
    logger.error(msg)
    raise ConfigValidationError(msg)


def validate_modem_settings(settings: Dict[str, Any], logger) -> None:
    """Validate the 'modem' and 'station' sections early and loudly.

    - Require a known VARA variant (HF, FM or SAT).
    - Require a command port that leaves room for the data port (port + 1).
    - Require 1 to 5 station callsigns.
    - Reject unknown quirk names, so typos do not silently keep a workaround on.
    """
    modem = settings.get("modem") or {}

    variant = str(modem.get("variant", "HF")).upper()
    if variant not in ModemVariant.__members__:
        _fail(
            f"Configuration error: unknown VARA variant '{modem.get('variant')}'.\n"
            "→ Set modem.variant in your settings.yml to HF, FM or SAT.",
            logger,
        )

    port = modem.get("port", 8300)
    if isinstance(port, bool) or not isinstance(port, int) or not (1 <= port <= 65534):
        _fail(
            f"Configuration error: modem.port must be an integer between 1 and 65534, got {port!r}.\n"
            "→ VARA uses the next port (port + 1) for the data socket.",
            logger,
        )

    settle_ms = modem.get("settle_ms", 100)
    if isinstance(settle_ms, bool) or not isinstance(settle_ms, (int, float)) or settle_ms < 0:
        _fail(f"Configuration error: modem.settle_ms must be a non-negative number, got {settle_ms!r}.", logger)

    quirks = modem.get("quirks") or {}
    if not isinstance(quirks, dict):
        _fail("Configuration error: modem.quirks must be a mapping of quirk name to true/false.", logger)
    try:
        ModemQuirks().with_overrides(quirks)
    except ValueError as e:
        _fail(f"Configuration error: {e}", logger)

    callsigns = (settings.get("station") or {}).get("callsigns") or []
    if isinstance(callsigns, str):
        callsigns = [callsigns]
    if not callsigns:
        _fail(
            "Configuration error: 'station.callsigns' needs at least one callsign.\n"
            "→ Example: callsigns: [N0CALL]",
            logger,
        )
    if len(callsigns) > MAX_CALLSIGNS:
        _fail(
            f"Configuration error: {len(callsigns)} callsigns configured; "
            f"VARA registers at most {MAX_CALLSIGNS}.",
            logger,
        )
