"""SQLAlchemy binding: statement compilation and connection doubles."""

from querymock.binding.connection import (
    AsyncMockConnection,
    AsyncMockTransaction,
    MockConnection,
    MockTransaction,
    RolledBack,
    mock_async_database,
    mock_database,
)
from querymock.binding.mock import QueryMock
from querymock.binding.statements import (
    build_dialect,
    compile_fragment,
    compile_statement,
    describe_statement,
    operation_for,
    positional_sql,
    resolve_entity,
)

__all__ = [
    "AsyncMockConnection",
    "AsyncMockTransaction",
    "MockConnection",
    "MockTransaction",
    "QueryMock",
    "RolledBack",
    "build_dialect",
    "compile_fragment",
    "compile_statement",
    "describe_statement",
    "mock_async_database",
    "mock_database",
    "operation_for",
    "positional_sql",
    "resolve_entity",
]
