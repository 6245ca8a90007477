"""Controller facade: registration entry points, dispatch and reset operations."""

from __future__ import annotations

import asyncio
import inspect
import logging
import re
from typing import Any, Iterable, Optional, Sequence, Union

from querymock.builder import FragmentCompiler, MockBuilder, default_fragment_compiler
from querymock.calls import (
    CallLedger,
    LedgerClock,
    NormalizedCall,
    Operation,
    RecordedCall,
    StructuralDescriptor,
    normalize_sql,
)
from querymock.config import MockConfig
from querymock.engine import ResolutionEngine, evaluate, evaluate_async
from querymock.entries import RegistrationEntry
from querymock.errors import AsyncResponseError
from querymock.matchers import (
    ExactTextMatcher,
    PatternTextMatcher,
    StructuralMatcher,
    SubstringTextMatcher,
)

logger = logging.getLogger(__name__)

CallShape = Union[NormalizedCall, tuple[str, Sequence[Any]], str]


class MockController:
    """Owns the call ledger and the registration set for one mocked database."""

    def __init__(self, config: Optional[MockConfig] = None, clock: Optional[LedgerClock] = None) -> None:
        self.config = config or MockConfig()
        self._ledger = CallLedger(clock)
        self._engine = ResolutionEngine(self._ledger, log_calls=self.config.log_calls)

    @property
    def calls(self) -> tuple[RecordedCall, ...]:
        return self._ledger.records

    @property
    def entries(self) -> tuple[RegistrationEntry, ...]:
        return self._engine.entries

    def on(self, call_shape: CallShape) -> MockBuilder:
        """Start an exact-SQL registration from a pre-built query shape."""
        call = self._shape_to_call(call_shape)
        return self._builder(ExactTextMatcher(text=call.text, parameters=call.parameters))

    def on_structural(
        self,
        entity: str,
        operation: Union[Operation, str],
        fields: Optional[Iterable[str]] = None,
        schema: Optional[str] = None,
    ) -> MockBuilder:
        """Start a registration matching by operation, entity and (optionally) fields."""
        return self._builder(
            StructuralMatcher(
                operation=Operation(operation),
                entity_name=entity,
                entity_schema=schema,
                field_keys=frozenset(fields) if fields is not None else None,
                strip_qualifiers=self.config.strip_qualifiers,
            )
        )

    def on_pattern(self, pattern: Union[str, "re.Pattern[str]"]) -> MockBuilder:
        compiled = re.compile(pattern) if isinstance(pattern, str) else pattern
        return self._builder(PatternTextMatcher(pattern=compiled, parameters=None))

    def on_substring(self, substring: str) -> MockBuilder:
        return self._builder(SubstringTextMatcher(substring=substring, parameters=None))

    async def handle(
        self,
        text: str,
        parameters: Optional[Sequence[Any]] = None,
        descriptor: Optional[StructuralDescriptor] = None,
    ) -> Any:
        """Resolve one intercepted query and await its response."""
        call = NormalizedCall.build(text, parameters, descriptor)
        response = self._engine.dispatch(call)
        return await evaluate_async(response, call)

    def handle_sync(
        self,
        text: str,
        parameters: Optional[Sequence[Any]] = None,
        descriptor: Optional[StructuralDescriptor] = None,
    ) -> Any:
        """Synchronous counterpart of ``handle`` for blocking drivers."""
        call = NormalizedCall.build(text, parameters, descriptor)
        response = self._engine.dispatch(call)
        value = evaluate(response, call)
        if not inspect.isawaitable(value):
            return value
        if _loop_running():
            if inspect.iscoroutine(value):
                value.close()
            raise AsyncResponseError(
                f"Async response for {call.text!r} cannot be awaited from a synchronous call "
                "inside a running event loop; use the async connection instead."
            )
        return asyncio.run(_await(value))

    def reset(self) -> None:
        """Clear registrations and recorded calls."""
        self._engine.clear()
        self._ledger.clear()

    def reset_mocks(self) -> None:
        self._engine.clear()

    def reset_calls(self) -> None:
        self._ledger.clear()

    def _builder(self, matcher: Any) -> MockBuilder:
        return MockBuilder(self._engine, matcher, self._fragment_compiler())

    def _fragment_compiler(self) -> FragmentCompiler:
        return default_fragment_compiler(self.config.strip_qualifiers)

    def _shape_to_call(self, call_shape: CallShape) -> NormalizedCall:
        if isinstance(call_shape, NormalizedCall):
            return call_shape
        if isinstance(call_shape, str):
            return NormalizedCall(normalize_sql(call_shape))
        if isinstance(call_shape, tuple) and len(call_shape) == 2:
            text, parameters = call_shape
            return NormalizedCall.build(text, parameters)
        raise TypeError(f"Unsupported query shape: {type(call_shape).__name__}")


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


async def _await(value: Any) -> Any:
    return await value
