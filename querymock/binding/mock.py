"""Controller variant accepting SQLAlchemy statements as registration shapes."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from sqlalchemy.sql.expression import ClauseElement

from querymock.binding.statements import (
    Statement,
    build_dialect,
    compile_fragment,
    compile_statement,
    describe_statement,
    operation_for,
    positional_sql,
    resolve_entity,
)
from querymock.builder import FragmentCompiler, MockBuilder, default_fragment_compiler
from querymock.calls import LedgerClock, NormalizedCall, Operation
from querymock.config import MockConfig
from querymock.controller import CallShape, MockController
from querymock.matchers import ExactTextMatcher, Fragment, StructuralMatcher

logger = logging.getLogger(__name__)


class QueryMock(MockController):
    """``MockController`` that compiles SQLAlchemy statements with a fixed dialect."""

    def __init__(self, config: Optional[MockConfig] = None, clock: Optional[LedgerClock] = None) -> None:
        super().__init__(config, clock)
        self.dialect = build_dialect(self.config.dialect)

    def compile(
        self,
        statement: Statement,
        parameters: Optional[Mapping[str, Any]] = None,
        operation: Optional[Union[str, Operation]] = None,
    ) -> NormalizedCall:
        return compile_statement(statement, parameters, self.dialect, operation)

    def on(
        self,
        call_shape: Union[CallShape, ClauseElement],
        parameters: Optional[Mapping[str, Any]] = None,
    ) -> MockBuilder:
        """Register the exact SQL of a statement; parameter values are ignored unless
        ``with_exact_params()`` is applied."""
        if isinstance(call_shape, ClauseElement) or (isinstance(call_shape, str) and parameters):
            return self._exact(self.compile(call_shape, parameters))
        if isinstance(call_shape, str):
            return super().on(positional_sql(call_shape))
        if isinstance(call_shape, tuple) and len(call_shape) == 2:
            text, values = call_shape
            if isinstance(values, Mapping):
                return self._exact(self.compile(text, values))
            return super().on((positional_sql(text), values))
        return super().on(call_shape)

    def _exact(self, call: NormalizedCall) -> MockBuilder:
        return self._builder(ExactTextMatcher(text=call.text, parameters=call.parameters))

    def on_shape(
        self,
        statement: ClauseElement,
        operation: Optional[Union[str, Operation]] = None,
    ) -> MockBuilder:
        """Register a structural match derived from a prototype statement.

        Only the operation, the table and, for INSERT/UPDATE, the written columns
        are kept; values in the prototype are irrelevant.
        """
        descriptor = describe_statement(statement, operation)
        if descriptor is None:
            raise TypeError(f"Cannot derive a query shape from {type(statement).__name__}")
        fields: Optional[frozenset[str]] = None
        if descriptor.operation in (Operation.INSERT, Operation.UPDATE) and descriptor.field_keys:
            fields = descriptor.field_keys
        return self._builder(
            StructuralMatcher(
                operation=descriptor.operation,
                entity_name=descriptor.entity_name,
                entity_schema=descriptor.entity_schema,
                field_keys=fields,
                strip_qualifiers=self.config.strip_qualifiers,
            )
        )

    def on_structural(
        self,
        entity: Any,
        operation: Union[Operation, str],
        fields: Optional[Iterable[str]] = None,
        schema: Optional[str] = None,
    ) -> MockBuilder:
        name, entity_schema = resolve_entity(entity)
        return super().on_structural(name, operation_for(operation), fields, schema or entity_schema)

    def _fragment_compiler(self) -> FragmentCompiler:
        fallback = default_fragment_compiler(self.config.strip_qualifiers)

        def compile_clause(fragment: Any, parameters: Sequence[Any]) -> Fragment:
            if isinstance(fragment, ClauseElement):
                return compile_fragment(fragment, None, self.dialect, self.config.strip_qualifiers)
            return fallback(fragment, parameters)

        return compile_clause
