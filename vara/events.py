# vara/events.py
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional

from loghandler import get_logger


class EventKind(str, Enum):
    """Every notification the client publishes. Values are the wire tokens."""

    COMMAND = "command"          # any non-empty line from the command socket
    DATA = "data"                # any chunk from the data socket
    CLOSED = "closed"            # a socket was lost or closed

    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"
    PTT_OFF = "PTT OFF"
    PTT_ON = "PTT ON"
    BUFFER = "BUFFER"
    PENDING = "PENDING"
    CANCEL_PENDING = "CANCELPENDING"
    BUSY_OFF = "BUSY OFF"
    BUSY_ON = "BUSY ON"
    REGISTERED = "REGISTERED"
    LINK_REGISTERED = "LINK REGISTERED"
    LINK_UNREGISTERED = "LINK UNREGISTERED"
    IAMALIVE = "IAMALIVE"
    MISSING_SOUNDCARD = "MISSING SOUNDCARD"
    CQFRAME = "CQFRAME"
    SN = "SN"
    BITRATE = "BITRATE"
    CLEAN_TX_BUFFER = "CLEANTXBUFFER"
    ENCRYPTION_DISABLED = "ENCRYPTION DISABLED"
    ENCRYPTION_READY = "ENCRYPTION READY"
    UNENCRYPTED_LINK = "UNENCRYPTED LINK"
    ENCRYPTED_LINK = "ENCRYPTED LINK"
    OK = "OK"
    WRONG = "WRONG"


@dataclass(frozen=True)
class Event:
    kind: EventKind
    line: str = ""
    value: Any = None

    def text(self, encoding: str = "utf-8") -> str:
        """Decoded payload of a DATA event (or the raw line otherwise)."""
        if isinstance(self.value, (bytes, bytearray)):
            return bytes(self.value).decode(encoding, errors="replace")
        return self.line


Callback = Callable[[Event], None]
Predicate = Callable[[Event], bool]


class Subscription:
    __slots__ = ("callback", "kinds", "predicate", "once", "active")

    def __init__(
        self,
        callback: Callback,
        kinds: Optional[Iterable[EventKind]] = None,
        predicate: Optional[Predicate] = None,
        once: bool = False,
    ):
        self.callback = callback
        self.kinds = frozenset(kinds) if kinds is not None else None
        self.predicate = predicate
        self.once = once
        self.active = True

    def matches(self, event: Event) -> bool:
        if self.kinds is not None and event.kind not in self.kinds:
            return False
        return self.predicate is None or bool(self.predicate(event))


class EventBus:
    """
    Callback registry fanning every event out to its subscribers.

    - publish() walks a snapshot, so callbacks may subscribe/unsubscribe freely.
    - One-shot subscriptions are removed before their callback runs; a
      one-shot can never fire twice even if publish() is re-entered.
    - A raising callback is logged and skipped; it never breaks dispatch.
    """

    def __init__(self):
        self._logger = get_logger()
        self._subs: List[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(
        self,
        callback: Callback,
        kinds: Optional[Iterable[EventKind]] = None,
        predicate: Optional[Predicate] = None,
    ) -> Subscription:
        sub = Subscription(callback, kinds, predicate)
        with self._lock:
            self._subs.append(sub)
        return sub

    def once(
        self,
        callback: Callback,
        kinds: Optional[Iterable[EventKind]] = None,
        predicate: Optional[Predicate] = None,
    ) -> Subscription:
        sub = Subscription(callback, kinds, predicate, once=True)
        with self._lock:
            self._subs.append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            sub.active = False
            try:
                self._subs.remove(sub)
            except ValueError:
                pass

    def __len__(self) -> int:
        with self._lock:
            return len(self._subs)

    def publish(self, event: Event) -> None:
        with self._lock:
            snapshot = list(self._subs)

        for sub in snapshot:
            if not sub.active:
                continue
            try:
                if not sub.matches(event):
                    continue
            except Exception as e:
                self._logger.error(f"[EVENT] predicate failed for {event.kind.value}: {e}")
                continue

            if sub.once:
                with self._lock:
                    if not sub.active:
                        continue
                    sub.active = False
                    try:
                        self._subs.remove(sub)
                    except ValueError:
                        pass

            try:
                sub.callback(event)
            except Exception as e:
                # Subscriber bugs should not kill the dispatch loop.
                self._logger.error(f"[EVENT] subscriber failed on {event.kind.value}: {e}")
