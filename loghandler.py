import os
import glob
import logging
from datetime import datetime

LOGGER_NAME = "vara"
TRAFFIC_LOGGER_NAME = "vara.traffic"

_logger = logging.getLogger(LOGGER_NAME)
_traffic_logger = logging.getLogger(TRAFFIC_LOGGER_NAME)
# Wire trace is file-only; never echo it to the console through the root logger.
_traffic_logger.propagate = False
_traffic_logger.addHandler(logging.NullHandler())

traffic_log_file = None


def setup_logging(log_dir="logs", clear_old=False, debug=False, trace=True):
    """
    Configure console + file logging for the VARA client.

    - vara-client_<ts>.log: everything at INFO (DEBUG with debug=True).
    - vara-traffic_<ts>.log: one line per wire line, '>' sent and '<' received,
      written only when trace=True.

    Returns (logger, traffic_log_file_or_None).
    """
    global traffic_log_file

    os.makedirs(log_dir, exist_ok=True)

    if clear_old:
        clear_old_logs(log_dir)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    general_log_file = os.path.join(log_dir, f"vara-client_{timestamp}.log")

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(general_log_file, encoding="utf-8"),
            logging.StreamHandler()
        ]
    )
    _logger.setLevel(logging.DEBUG if debug else logging.INFO)

    _logger.debug(f"Log file created: {general_log_file}")
    _logger.debug(f"Logging level set to: {'DEBUG' if debug else 'INFO'}")

    traffic_log_file = None
    if trace:
        traffic_log_file = os.path.join(log_dir, f"vara-traffic_{timestamp}.log")
        traffic_handler = logging.FileHandler(traffic_log_file, encoding="utf-8")
        traffic_handler.setFormatter(logging.Formatter("%(asctime)s %(message)s"))
        _traffic_logger.setLevel(logging.INFO)
        _traffic_logger.addHandler(traffic_handler)
        _logger.debug(f"Wire traffic will be written to: {traffic_log_file}")

    return _logger, traffic_log_file


def get_logger():
    """The client logger. Silent until setup_logging() (or the host app) adds handlers."""
    return _logger


def get_traffic_logger():
    return _traffic_logger


def clear_old_logs(log_dir: str):
    if not os.path.exists(log_dir):
        return

    deleted = 0
    for file in glob.glob(os.path.join(log_dir, "*.log")):
        try:
            os.remove(file)
            deleted += 1
        except OSError as e:
            print(f"Failed to delete {file}: {e}")

    print(f"Cleared {deleted} old log files.")
