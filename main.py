# main.py
import argparse
import json
import os
import sys
import time
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Dict, Optional

import yaml

from config_validation import ConfigValidationError, validate_modem_settings
from loghandler import clear_old_logs, setup_logging
from vara import EventKind, VaraClient, VaraError

PROGRAM_NAME = "vara-client"
CURRENT_VERSION = "1.0.0"

logger = None


class ConfigurationError(Exception):
    """Raised when the configuration file is missing or unreadable."""
    pass


# -------------------------
# Config loaders
# -------------------------
def load_yaml_file(file_path: str) -> Dict[str, Any]:
    """Load a small YAML file into a dict; raise if not found."""
    if not os.path.exists(file_path):
        raise ConfigurationError(f"Configuration file not found: {file_path}")
    with open(file_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {file_path} must contain a mapping")
    return data


def build_client(config: Dict[str, Any], debug: bool) -> VaraClient:
    modem = config.get("modem") or {}
    return VaraClient(
        host=modem.get("host", "127.0.0.1"),
        port=int(modem.get("port", 8300)),
        variant=str(modem.get("variant", "HF")).upper(),
        quirks=modem.get("quirks") or None,
        settle_s=float(modem.get("settle_ms", 100)) / 1000.0,
        debug=debug,
    )


def shutdown(client: Optional[VaraClient]) -> None:
    """Close the sockets locally; VARA is not told anything."""
    if client is None:
        return
    try:
        client.close()
    except VaraError as e:
        if logger:
            logger.debug(f"close raised: {e}")


# -------------------------
# Actions
# -------------------------
def _wait(future, timeout: float, what: str):
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError:
        raise VaraError(f"No answer from VARA to {what} within {timeout:.0f}s")


def run_version(client: VaraClient, timeout: float, args) -> None:
    print(_wait(client.get_version(), timeout, "VERSION"))


def run_state(client: VaraClient, timeout: float, args) -> None:
    # Give the modem a moment to push its initial notifications.
    time.sleep(1.0)
    print(json.dumps(client.state.to_dict(), indent=2))


def run_monitor(client: VaraClient, timeout: float, args) -> None:
    client.on(EventKind.COMMAND, lambda e: print(f"[CMD]  {e.line}"))
    client.on(EventKind.DATA, lambda e: print(f"[DATA] {client.decode(e.value)!r}"))
    if args.listen:
        _wait(client.listen_on(), timeout, "LISTEN ON")
    logger.info(f"Monitoring VARA for {args.seconds:.0f}s...")
    time.sleep(args.seconds)


def run_connect(client: VaraClient, timeout: float, args) -> None:
    relays = list(args.via or [])
    source = client.state.registered[0]
    cd = _wait(
        client.connect(source, args.destination, *relays[:2]),
        max(timeout, 120.0),
        "CONNECT",
    )
    logger.info(f"Connected: {cd}")
    if args.message:
        client.send(args.message + "\r")
        time.sleep(args.hold)
    _wait(client.disconnect(), max(timeout, 60.0), "DISCONNECT")
    logger.info("Disconnected.")


def run_cq(client: VaraClient, timeout: float, args) -> None:
    source = client.state.registered[0]
    relays = list(args.via or [])
    _wait(
        client.send_cq_frame(source, args.bw, *relays[:2]),
        max(timeout, 60.0),
        "CQFRAME",
    )
    logger.info("CQ frame sent.")


ACTIONS = {
    "version": run_version,
    "state": run_state,
    "monitor": run_monitor,
    "connect": run_connect,
    "cq": run_cq,
}


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description=f"{PROGRAM_NAME}: manual control of a running VARA modem")
    parser.add_argument("--config", default="settings.yml", help="Path to settings.yml")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--clear-logs", action="store_true", help="Delete old log files and exit")
    sub = parser.add_subparsers(dest="action")

    sub.add_parser("version", help="Print the VARA version string")
    sub.add_parser("state", help="Print a JSON snapshot of the session state")

    p_mon = sub.add_parser("monitor", help="Print every command line and data chunk")
    p_mon.add_argument("seconds", type=float, nargs="?", default=60.0)
    p_mon.add_argument("--listen", action="store_true", help="Send LISTEN ON first")

    p_con = sub.add_parser("connect", help="Connect to a station, optionally send a line, then disconnect")
    p_con.add_argument("destination")
    p_con.add_argument("--via", nargs="+", metavar="RELAY", help="One or two relay callsigns")
    p_con.add_argument("--message", help="Text to send on the data port once connected")
    p_con.add_argument("--hold", type=float, default=10.0, help="Seconds to stay connected after sending")

    p_cq = sub.add_parser("cq", help="Send a CQ frame")
    p_cq.add_argument("--bw", type=int, choices=(500, 2300, 2750), help="Bandwidth (VARA HF)")
    p_cq.add_argument("--via", nargs="+", metavar="RELAY", help="One or two relays (VARA FM)")

    return parser.parse_args(argv)


def main(argv=None) -> None:
    global logger
    args = parse_args(argv)

    # --clear-logs: purge old logs and exit without running anything else
    if args.clear_logs:
        clear_old_logs("logs")
        sys.exit(0)

    if not args.action:
        print("No action given. Use --help for the list of actions.")
        sys.exit(2)

    config = load_yaml_file(args.config)
    defaults = config.get("defaults") or {}
    logger, _ = setup_logging(log_dir="logs", debug=args.debug, trace=bool(defaults.get("trace", True)))
    validate_modem_settings(config, logger)

    timeout = float(defaults.get("command_timeout", 30))
    callsigns = (config.get("station") or {}).get("callsigns") or []
    if isinstance(callsigns, str):
        callsigns = [callsigns]

    logger.info(f"{PROGRAM_NAME} - v{CURRENT_VERSION}")
    client: Optional[VaraClient] = None
    try:
        client = build_client(config, args.debug)
        client.open()
        registered = _wait(client.register_callsigns(*callsigns), timeout, "MYCALL")
        logger.info(f"Registered callsigns: {', '.join(registered)}")
        ACTIONS[args.action](client, timeout, args)
    finally:
        shutdown(client)


def run(argv=None) -> None:
    """Console entry point: maps failures to exit codes instead of tracebacks."""
    try:
        main(argv)
    except (ConfigurationError, ConfigValidationError) as e:
        if logger:
            logger.error(f"[CONFIG ERROR] {e}")
        else:
            print(f"[CONFIG ERROR] {e}")
        sys.exit(1)
    except VaraError as e:
        if logger:
            logger.error(f"[FATAL] VARA communication failed: {e}")
        else:
            print(f"[FATAL] VARA communication failed: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    run()
