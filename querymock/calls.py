"""Normalized call records and the append-only call ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import enum
import logging
import re
from typing import Any, Iterable, Iterator, Optional, Sequence

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_sql(text: str) -> str:
    """Collapse whitespace runs to one space and trim."""
    return _WHITESPACE_RE.sub(" ", text).strip()


class Operation(str, enum.Enum):
    """Statement shape reported by a query-builder binding."""

    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    FIND_FIRST = "findFirst"
    FIND_MANY = "findMany"


@dataclass(frozen=True)
class StructuralDescriptor:
    """Query shape captured from builder configuration rather than SQL text."""

    operation: Operation
    entity_name: str
    entity_schema: Optional[str] = None
    field_keys: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        object.__setattr__(self, "operation", Operation(self.operation))
        object.__setattr__(self, "field_keys", frozenset(self.field_keys))


@dataclass(frozen=True)
class NormalizedCall:
    text: str
    parameters: tuple[Any, ...] = ()
    descriptor: Optional[StructuralDescriptor] = None

    @classmethod
    def build(
        cls,
        text: str,
        parameters: Optional[Iterable[Any]] = None,
        descriptor: Optional[StructuralDescriptor] = None,
    ) -> "NormalizedCall":
        return cls(normalize_sql(text), tuple(parameters or ()), descriptor)


@dataclass(frozen=True)
class RecordedCall:
    """One ledger row."""

    text: str
    parameters: tuple[Any, ...]
    timestamp: datetime


@dataclass(frozen=True)
class LedgerClock:
    """Injectable UTC clock for deterministic testing."""

    def now_utc(self) -> datetime:
        return datetime.now(tz=timezone.utc)


class CallLedger:
    """Append-only record of every intercepted call, matched or not."""

    def __init__(self, clock: Optional[LedgerClock] = None) -> None:
        self._clock = clock or LedgerClock()
        self._records: list[RecordedCall] = []

    def record(self, call: NormalizedCall) -> RecordedCall:
        row = RecordedCall(call.text, call.parameters, self._clock.now_utc())
        self._records.append(row)
        return row

    def clear(self) -> None:
        self._records = []

    @property
    def records(self) -> tuple[RecordedCall, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[RecordedCall]:
        return iter(tuple(self._records))

    def __getitem__(self, index: int) -> RecordedCall:
        return self._records[index]


def params_equal(expected: Sequence[Any], actual: Sequence[Any]) -> bool:
    """Positional equality without deep structural comparison."""
    if len(expected) != len(actual):
        return False
    return all(_same_value(a, b) for a, b in zip(expected, actual))


def _same_value(a: Any, b: Any) -> bool:
    if a is b:
        return True
    # bool is an int subclass; True must not stand in for 1
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return a == b
