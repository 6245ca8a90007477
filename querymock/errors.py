"""Exception taxonomy for the query mock engine."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from querymock.calls import NormalizedCall

logger = logging.getLogger(__name__)


class QueryMockError(RuntimeError):
    """Base class for every error raised by the mock engine itself."""


class UnmatchedCallError(QueryMockError):
    """Raised when no pending registration accepts an intercepted call."""

    def __init__(self, call: NormalizedCall, registered: Sequence[str]) -> None:
        self.call = call
        self.registered = tuple(registered)
        super().__init__(_unmatched_message(call, self.registered))


class InvalidRefinementError(QueryMockError):
    """Raised at registration time when a refinement does not fit the matcher kind."""


class AsyncResponseError(QueryMockError):
    """Raised when a synchronous call resolves to an awaitable inside a running loop."""


class TransactionClosedError(QueryMockError):
    """Raised when a statement is issued on a rolled-back mock transaction."""


def _unmatched_message(call: NormalizedCall, registered: Sequence[str]) -> str:
    message = f"No mock registered for query:\n  SQL: {call.text}\n  Params: {list(call.parameters)!r}"
    if registered:
        listing = "\n".join(f"  - {line}" for line in registered)
        message += f"\n\nRegistered mocks:\n{listing}"
    return message
