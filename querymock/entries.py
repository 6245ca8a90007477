"""Registration entries, response strategies and per-entry handles."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
import enum
import logging
from typing import Any, Callable, Optional, Sequence, Union

from querymock.calls import params_equal
from querymock.matchers import Matcher

logger = logging.getLogger(__name__)

ResponseFn = Callable[[str, tuple[Any, ...]], Any]


@dataclass(frozen=True)
class DataResponse:
    data: Any


@dataclass(frozen=True)
class ComputedResponse:
    """Response computed from ``(text, parameters)``; may return an awaitable."""

    fn: ResponseFn


Response = Union[DataResponse, ComputedResponse]


class EntryState(str, enum.Enum):
    """Consumption state of a registration entry."""

    PENDING = "PENDING"
    CONSUMED = "CONSUMED"


class MockHandle:
    """Introspection view of one registration: how often and with what it matched."""

    def __init__(self, description: str = "") -> None:
        self.description = description
        self._calls: list[tuple[str, tuple[Any, ...]]] = []

    def record(self, text: str, parameters: tuple[Any, ...]) -> None:
        self._calls.append((text, parameters))

    @property
    def calls(self) -> tuple[tuple[str, tuple[Any, ...]], ...]:
        return tuple(self._calls)

    @property
    def call_count(self) -> int:
        return len(self._calls)

    @property
    def called(self) -> bool:
        return bool(self._calls)

    @property
    def last_call(self) -> Optional[tuple[str, tuple[Any, ...]]]:
        return self._calls[-1] if self._calls else None

    def assert_called(self) -> None:
        if not self._calls:
            raise AssertionError(f"Expected mock to have been called: {self.description}")

    def assert_not_called(self) -> None:
        if self._calls:
            raise AssertionError(
                f"Expected mock not to have been called, but it was called {len(self._calls)} time(s): "
                f"{self.description}"
            )

    def assert_called_times(self, expected: int) -> None:
        if len(self._calls) != expected:
            raise AssertionError(
                f"Expected mock to have been called {expected} time(s), got {len(self._calls)}: "
                f"{self.description}"
            )

    def assert_called_with(
        self,
        text: Optional[str] = None,
        parameters: Optional[Sequence[Any]] = None,
    ) -> None:
        """Check the most recent call; omitted arguments are not compared."""
        if not self._calls:
            raise AssertionError(f"Expected mock to have been called: {self.description}")
        last_text, last_params = self._calls[-1]
        if text is not None and last_text != text:
            raise AssertionError(f"Expected last SQL {text!r}, got {last_text!r}")
        if parameters is not None and not params_equal(tuple(parameters), last_params):
            raise AssertionError(f"Expected last params {list(parameters)!r}, got {list(last_params)!r}")

    def __repr__(self) -> str:
        return f"MockHandle({self.description!r}, calls={len(self._calls)})"


@dataclass
class RegistrationEntry:
    """One registered expectation: matcher, response and consumption state."""

    matcher: Matcher
    response: Response
    handle: MockHandle
    response_queue: deque[Response] = field(default_factory=deque)
    failure: Optional[BaseException] = None
    one_shot: bool = False
    state: EntryState = EntryState.PENDING

    @property
    def consumed(self) -> bool:
        return self.state is EntryState.CONSUMED

    def consume(self) -> None:
        self.state = EntryState.CONSUMED

    def next_response(self) -> Optional[Response]:
        """Pop the next queued response, consuming a one-shot entry on the last pop."""
        if not self.response_queue:
            return None
        queued = self.response_queue.popleft()
        if not self.response_queue and self.one_shot:
            self.consume()
        return queued
