"""Query-layer test double: register expectations, intercept queries, inspect calls."""

from querymock.binding import (
    AsyncMockConnection,
    MockConnection,
    MockTransaction,
    QueryMock,
    RolledBack,
    mock_async_database,
    mock_database,
)
from querymock.builder import MockBuilder
from querymock.calls import NormalizedCall, Operation, RecordedCall, StructuralDescriptor, normalize_sql
from querymock.config import MockConfig, load_mock_config
from querymock.controller import MockController
from querymock.entries import EntryState, MockHandle, RegistrationEntry
from querymock.errors import (
    AsyncResponseError,
    InvalidRefinementError,
    QueryMockError,
    TransactionClosedError,
    UnmatchedCallError,
)
from querymock.matchers import Fragment

__all__ = [
    "AsyncMockConnection",
    "AsyncResponseError",
    "EntryState",
    "Fragment",
    "InvalidRefinementError",
    "MockBuilder",
    "MockConfig",
    "MockConnection",
    "MockController",
    "MockHandle",
    "MockTransaction",
    "NormalizedCall",
    "Operation",
    "QueryMock",
    "QueryMockError",
    "RecordedCall",
    "RegistrationEntry",
    "RolledBack",
    "StructuralDescriptor",
    "TransactionClosedError",
    "UnmatchedCallError",
    "load_mock_config",
    "mock_async_database",
    "mock_database",
    "normalize_sql",
]
