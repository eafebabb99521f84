# vara/correlator.py
import threading
from concurrent.futures import Future
from typing import Any, Callable, List, NamedTuple, Optional, Sequence

from loghandler import get_logger

from .errors import VaraCommandRejected
from .events import Event, EventKind


class Outcome(NamedTuple):
    success: bool
    value: Any = None  # result on success, exception otherwise


def resolved(value: Any = None) -> Outcome:
    return Outcome(True, value)


def rejected(error: BaseException) -> Outcome:
    return Outcome(False, error)


Matcher = Callable[[Event], Optional[Outcome]]


class PendingCommand:
    """One issued command waiting for its terminal notification."""

    def __init__(
        self,
        operation: str,
        arguments: Sequence[Any],
        line: str,
        matcher: Optional[Matcher],
        awaits_ok: bool,
    ):
        self.operation = operation
        self.arguments = tuple(arguments)
        self.line = line
        self.matcher = matcher
        self.awaits_ok = awaits_ok
        self.future: "Future[Any]" = Future()
        # Once running, callers can no longer cancel() it under our feet.
        self.future.set_running_or_notify_cancel()

    def settle(self, outcome: Outcome) -> None:
        if outcome.success:
            self.future.set_result(outcome.value)
        else:
            self.future.set_exception(outcome.value)

    def __repr__(self) -> str:
        return f"PendingCommand({self.operation!r}, line={self.line!r})"


class Correlator:
    """
    Matches inbound events to the commands waiting for them.

    Rules:
      - WRONG rejects the most recently written command, if that command is
        still pending. The modem answers WRONG right after the offending
        line. If the last write was not tracked (see untracked()) or has
        already settled, the WRONG is logged and nothing is failed.
      - OK resolves the oldest pending command that waits for OK. Each OK
        settles at most one command.
      - Every other event is offered to each pending matcher, oldest first.
      - A settled command leaves the registry at once, so nothing can settle
        it twice (a late OK after WRONG is ignored).

    Futures are completed outside the lock; their callbacks may issue new
    commands.
    """

    def __init__(self):
        self._logger = get_logger()
        self._pending: List[PendingCommand] = []
        self._last: Optional[PendingCommand] = None
        self._last_line: Optional[str] = None
        self._lock = threading.Lock()

    def track(
        self,
        operation: str,
        arguments: Sequence[Any],
        line: str,
        matcher: Optional[Matcher] = None,
        awaits_ok: bool = False,
    ) -> PendingCommand:
        pending = PendingCommand(operation, arguments, line, matcher, awaits_ok)
        with self._lock:
            self._pending.append(pending)
            self._last = pending
            self._last_line = line
        return pending

    def untracked(self, line: str) -> None:
        """Record a write that no future waits for (the modem never answers it)."""
        with self._lock:
            self._last = None
            self._last_line = line

    def discard(self, pending: PendingCommand) -> None:
        with self._lock:
            if pending in self._pending:
                self._pending.remove(pending)
            if self._last is pending:
                self._last = None

    def pending(self) -> List[PendingCommand]:
        with self._lock:
            return list(self._pending)

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def handle(self, event: Event) -> None:
        settled = []

        with self._lock:
            if event.kind is EventKind.WRONG:
                p = self._last
                self._last = None
                if p is not None and p in self._pending:
                    self._pending.remove(p)
                    settled.append((p, rejected(VaraCommandRejected(p.operation, p.arguments))))
                else:
                    self._logger.warning(f"[WRONG] no pending command to blame (last line sent: {self._last_line!r})")
            else:
                if event.kind is EventKind.OK:
                    for p in self._pending:
                        if p.awaits_ok:
                            self._pending.remove(p)
                            settled.append((p, resolved(None)))
                            break

                for p in list(self._pending):
                    if p.matcher is None:
                        continue
                    try:
                        outcome = p.matcher(event)
                    except Exception as e:
                        self._logger.error(f"[CORRELATOR] matcher for {p.operation} failed: {e}")
                        self._pending.remove(p)
                        settled.append((p, rejected(e)))
                        continue
                    if outcome is not None:
                        self._pending.remove(p)
                        settled.append((p, outcome))

        for p, outcome in settled:
            if outcome.success:
                self._logger.debug(f"[CMD] {p.operation} done on '{event.line}'")
            else:
                self._logger.error(f"[CMD] {p.operation} failed: {outcome.value}")
            p.settle(outcome)

    def fail_all(self, error: BaseException) -> int:
        """Reject every pending command with `error`; returns how many."""
        with self._lock:
            victims, self._pending = self._pending, []
            self._last = None
        for p in victims:
            p.settle(rejected(error))
        if victims:
            self._logger.warning(f"[CMD] {len(victims)} pending command(s) aborted: {error}")
        return len(victims)
