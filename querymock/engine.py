"""Specificity-ranked resolution of intercepted calls against registrations."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Optional

from querymock.calls import CallLedger, NormalizedCall
from querymock.entries import ComputedResponse, DataResponse, RegistrationEntry, Response
from querymock.errors import UnmatchedCallError

logger = logging.getLogger(__name__)


class ResolutionEngine:
    """Owns the registration set and picks a winner for every call.

    Resolution is synchronous: the ledger append, the scan, the handle record and
    any queue pop or consumption transition all complete before a computed
    response is evaluated. The engine assumes one writer per instance.
    """

    def __init__(self, ledger: CallLedger, log_calls: bool = False) -> None:
        self._ledger = ledger
        self._entries: list[RegistrationEntry] = []
        self._log_calls = log_calls

    @property
    def entries(self) -> tuple[RegistrationEntry, ...]:
        return tuple(self._entries)

    def register(self, entry: RegistrationEntry) -> None:
        self._entries.append(entry)
        logger.debug("Registered mock #%d: %s", len(self._entries), entry.matcher.describe())

    def clear(self) -> None:
        self._entries = []

    def select(self, call: NormalizedCall) -> Optional[RegistrationEntry]:
        """Return the most specific pending entry accepting ``call``; newest wins ties."""
        best: Optional[RegistrationEntry] = None
        best_score = float("-inf")
        for entry in reversed(self._entries):
            if entry.consumed:
                continue
            if not entry.matcher.accepts(call):
                continue
            score = entry.matcher.specificity()
            if best is None or score > best_score:
                best = entry
                best_score = score
        return best

    def dispatch(self, call: NormalizedCall) -> Response:
        """Log ``call``, resolve it and apply the winner's state transition.

        Raises the winner's configured failure, or ``UnmatchedCallError`` when no
        entry accepts the call.
        """
        self._ledger.record(call)
        if self._log_calls:
            logger.info("Intercepted query: %s params=%r", call.text, list(call.parameters))

        winner = self.select(call)
        if winner is None:
            registered = [entry.matcher.describe() for entry in self._entries]
            logger.warning("No mock registered for query: %s", call.text)
            raise UnmatchedCallError(call, registered)

        logger.debug(
            "Resolved query to %s (specificity=%s)",
            winner.matcher.describe(),
            winner.matcher.specificity(),
        )
        winner.handle.record(call.text, call.parameters)

        queued = winner.next_response()
        if queued is not None:
            return queued

        if winner.one_shot:
            winner.consume()
        if winner.failure is not None:
            raise winner.failure
        return winner.response


def evaluate(response: Response, call: NormalizedCall) -> Any:
    """Produce the response value; computed responses may hand back an awaitable."""
    if isinstance(response, ComputedResponse):
        return response.fn(call.text, call.parameters)
    if isinstance(response, DataResponse):
        return response.data
    raise TypeError(f"Unsupported response strategy: {type(response).__name__}")


async def evaluate_async(response: Response, call: NormalizedCall) -> Any:
    value = evaluate(response, call)
    if inspect.isawaitable(value):
        return await value
    return value
