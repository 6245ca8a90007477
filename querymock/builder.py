"""Fluent registration builder."""

from __future__ import annotations

from dataclasses import replace
import logging
from typing import Any, Callable, Optional, Sequence

from querymock.engine import ResolutionEngine
from querymock.entries import (
    ComputedResponse,
    DataResponse,
    MockHandle,
    RegistrationEntry,
    Response,
    ResponseFn,
)
from querymock.errors import InvalidRefinementError
from querymock.matchers import (
    ExactTextMatcher,
    Fragment,
    Matcher,
    PrefixTextMatcher,
    StructuralMatcher,
)

logger = logging.getLogger(__name__)

FragmentCompiler = Callable[[Any, Sequence[Any]], Fragment]


def default_fragment_compiler(strip: bool = True) -> FragmentCompiler:
    """Accept ready ``Fragment`` objects or raw SQL text plus its parameters."""

    def compile_fragment(fragment: Any, parameters: Sequence[Any]) -> Fragment:
        if isinstance(fragment, Fragment):
            return fragment
        if isinstance(fragment, str):
            return Fragment.from_sql(fragment, tuple(parameters), strip)
        raise TypeError(f"Cannot build an SQL fragment from {type(fragment).__name__}")

    return compile_fragment


class MockBuilder:
    """Accumulates refinements for one matcher and registers the resulting entry."""

    def __init__(
        self,
        engine: ResolutionEngine,
        matcher: Matcher,
        fragment_compiler: Optional[FragmentCompiler] = None,
    ) -> None:
        self._engine = engine
        self._matcher = matcher
        self._fragment_compiler = fragment_compiler or default_fragment_compiler()
        self._match_params = False
        self._one_shot = False
        self._queued_entry: Optional[RegistrationEntry] = None

    @property
    def matcher(self) -> Matcher:
        return self._matcher

    def partial(self) -> "MockBuilder":
        """Match any SQL that starts with the captured SQL."""
        self._ensure_open("partial()")
        if isinstance(self._matcher, StructuralMatcher):
            raise InvalidRefinementError("partial() is not supported on structural matchers.")
        if not isinstance(self._matcher, ExactTextMatcher):
            raise InvalidRefinementError(
                f"partial() only applies to exact SQL matchers, not {self._matcher.kind} matchers."
            )
        self._matcher = PrefixTextMatcher(text=self._matcher.text, parameters=self._matcher.parameters)
        return self

    def with_exact_params(self, parameters: Optional[Sequence[Any]] = None) -> "MockBuilder":
        """Require positional parameter equality.

        Exact and partial matchers compare against the parameters captured from
        the registered query unless ``parameters`` overrides them; pattern and
        substring matchers need ``parameters``.
        """
        self._ensure_open("with_exact_params()")
        if isinstance(self._matcher, StructuralMatcher):
            raise InvalidRefinementError(
                "with_exact_params() is not supported on structural matchers; use containing_sql()."
            )
        if parameters is not None:
            self._matcher = replace(self._matcher, parameters=tuple(parameters))
        elif self._matcher.parameters is None:
            raise InvalidRefinementError(
                f"with_exact_params() on {self._matcher.kind} matchers requires explicit parameters."
            )
        self._match_params = True
        return self

    def containing_sql(self, fragment: Any, parameters: Sequence[Any] = ()) -> "MockBuilder":
        """Require an SQL fragment, with its parameter values, inside the query."""
        self._ensure_open("containing_sql()")
        if not isinstance(self._matcher, StructuralMatcher):
            raise InvalidRefinementError(
                f"containing_sql() only applies to structural matchers, not {self._matcher.kind} matchers."
            )
        compiled = self._fragment_compiler(fragment, parameters)
        fragments = (self._matcher.sql_fragments or ()) + (compiled,)
        self._matcher = replace(self._matcher, sql_fragments=fragments)
        return self

    def once(self) -> "MockBuilder":
        self._ensure_open("once()")
        self._one_shot = True
        return self

    def respond(self, data: Any) -> MockHandle:
        return self._finish(DataResponse(data))

    def respond_with(self, fn: ResponseFn) -> MockHandle:
        """Compute the response from ``(sql, params)``; ``fn`` may be a coroutine function."""
        return self._finish(ComputedResponse(fn))

    def throw(self, error: BaseException) -> MockHandle:
        """Raise ``error`` whenever this registration wins."""
        return self._finish(DataResponse(None), failure=error)

    def respond_once(self, data: Any) -> "MockBuilder":
        """Queue a one-time response; repeated calls queue further answers in order."""
        return self._enqueue(DataResponse(data))

    def respond_once_with(self, fn: ResponseFn) -> "MockBuilder":
        return self._enqueue(ComputedResponse(fn))

    @property
    def handle(self) -> Optional[MockHandle]:
        """Handle of the entry being queued by ``respond_once``, if any."""
        if self._queued_entry is None:
            return None
        return self._queued_entry.handle

    def _ensure_open(self, refinement: str) -> None:
        if self._queued_entry is not None:
            raise InvalidRefinementError(f"{refinement} must be applied before respond_once().")

    def _build_matcher(self) -> Matcher:
        if isinstance(self._matcher, StructuralMatcher):
            return self._matcher
        if self._match_params:
            return self._matcher
        return replace(self._matcher, parameters=None)

    def _new_entry(self, response: Response, failure: Optional[BaseException], one_shot: bool) -> RegistrationEntry:
        matcher = self._build_matcher()
        entry = RegistrationEntry(
            matcher=matcher,
            response=response,
            handle=MockHandle(matcher.describe()),
            failure=failure,
            one_shot=one_shot,
        )
        self._engine.register(entry)
        return entry

    def _enqueue(self, response: Response) -> "MockBuilder":
        entry = self._queued_entry
        if entry is None or entry.consumed:
            entry = self._new_entry(DataResponse(None), None, one_shot=True)
            self._queued_entry = entry
        entry.response_queue.append(response)
        return self

    def _finish(self, response: Response, failure: Optional[BaseException] = None) -> MockHandle:
        entry = self._queued_entry
        if entry is None or entry.consumed:
            return self._new_entry(response, failure, one_shot=self._one_shot).handle

        # Fallback after respond_once(): answers once the queue is exhausted.
        entry.response = response
        entry.failure = failure
        entry.one_shot = False
        self._queued_entry = None
        return entry.handle
