# vara/__init__.py
"""
VARA HF/FM/SAT modem client package.

Exports:
- VaraClient (command/data sockets, one Future per command)
- VaraParser / LineFramer (command line classification)
- StreamTransport (TCP transport with a listener thread)
- Event / EventKind (typed notifications)
- the error hierarchy and value types
"""

from .client import OPEN_SETTLE_S, VaraClient
from .errors import (
    VaraCommandFailed,
    VaraCommandRejected,
    VaraError,
    VaraTransportError,
    VaraValidationError,
)
from .events import Event, EventBus, EventKind, Subscription
from .models import (
    DEFAULT_VARA_PORT,
    BitrateData,
    CleanTxBufferState,
    Compression,
    ConnectionData,
    ModemQuirks,
    ModemVariant,
    SessionType,
    default_quirks,
)
from .parser import LineFramer, VaraParser
from .state import StateView
from .transport import StreamTransport

__version__ = "1.0.0"

__all__ = [
    "VaraClient",
    "OPEN_SETTLE_S",
    "VaraError",
    "VaraValidationError",
    "VaraCommandRejected",
    "VaraCommandFailed",
    "VaraTransportError",
    "Event",
    "EventBus",
    "EventKind",
    "Subscription",
    "DEFAULT_VARA_PORT",
    "BitrateData",
    "CleanTxBufferState",
    "Compression",
    "ConnectionData",
    "ModemQuirks",
    "ModemVariant",
    "SessionType",
    "default_quirks",
    "LineFramer",
    "VaraParser",
    "StateView",
    "StreamTransport",
    "__version__",
]
