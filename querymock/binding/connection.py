"""Connection doubles routing statements through a ``QueryMock``."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, TypeVar, Union

import sqlparse
from sqlalchemy.sql.expression import Select

from querymock.binding.mock import QueryMock
from querymock.binding.statements import Statement
from querymock.calls import NormalizedCall, Operation
from querymock.config import MockConfig
from querymock.errors import TransactionClosedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RolledBack:
    """Result of a transaction callback that called ``rollback()``."""

    reason: Optional[str] = None


def split_script(script: str) -> list[str]:
    """Split a script into statements without their trailing semicolons."""
    statements = (statement.strip().rstrip(";").strip() for statement in sqlparse.split(script))
    return [statement for statement in statements if statement]


class _ConnectionBase:
    def __init__(self, mock: QueryMock) -> None:
        self.mock = mock

    def _prepare(
        self,
        statement: Statement,
        parameters: Optional[Mapping[str, Any]],
        operation: Optional[Operation] = None,
    ) -> NormalizedCall:
        self._check_open()
        fetch_operation = operation if isinstance(statement, Select) else None
        return self.mock.compile(statement, parameters, fetch_operation)

    def _check_open(self) -> None:
        """Connections stay open; transactions override this."""


class MockConnection(_ConnectionBase):
    """Synchronous double for the ``fetch_one``/``fetch_all``/``execute`` DB protocol.

    Every method returns the registered response unchanged.
    """

    def execute(self, statement: Statement, parameters: Optional[Mapping[str, Any]] = None) -> Any:
        call = self._prepare(statement, parameters)
        return self.mock.handle_sync(call.text, call.parameters, call.descriptor)

    def fetch_one(self, statement: Statement, parameters: Optional[Mapping[str, Any]] = None) -> Any:
        call = self._prepare(statement, parameters, Operation.FIND_FIRST)
        return self.mock.handle_sync(call.text, call.parameters, call.descriptor)

    def fetch_all(self, statement: Statement, parameters: Optional[Mapping[str, Any]] = None) -> Any:
        call = self._prepare(statement, parameters, Operation.FIND_MANY)
        return self.mock.handle_sync(call.text, call.parameters, call.descriptor)

    def execute_script(self, script: str) -> list[Any]:
        """Run each statement of a multi-statement SQL script as its own call."""
        return [self.execute(statement) for statement in split_script(script)]

    def transaction(self, callback: Callable[["MockTransaction"], T]) -> Union[T, RolledBack]:
        tx = MockTransaction(self.mock)
        try:
            result = callback(tx)
        except TransactionClosedError:
            if not tx.rolled_back:
                raise
            result = None
        if tx.rolled_back:
            logger.debug("Mock transaction rolled back: %s", tx.reason)
            return RolledBack(tx.reason)
        return result


class MockTransaction(MockConnection):
    """Transaction scope sharing its parent's registrations and ledger."""

    def __init__(self, mock: QueryMock) -> None:
        super().__init__(mock)
        self.rolled_back = False
        self.reason: Optional[str] = None

    def rollback(self, reason: Optional[str] = None) -> None:
        self.rolled_back = True
        self.reason = reason

    def _check_open(self) -> None:
        if self.rolled_back:
            raise TransactionClosedError("Transaction was rolled back; no further statements are accepted.")


class AsyncMockConnection(_ConnectionBase):
    """Awaitable counterpart of ``MockConnection``."""

    async def execute(self, statement: Statement, parameters: Optional[Mapping[str, Any]] = None) -> Any:
        call = self._prepare(statement, parameters)
        return await self.mock.handle(call.text, call.parameters, call.descriptor)

    async def fetch_one(self, statement: Statement, parameters: Optional[Mapping[str, Any]] = None) -> Any:
        call = self._prepare(statement, parameters, Operation.FIND_FIRST)
        return await self.mock.handle(call.text, call.parameters, call.descriptor)

    async def fetch_all(self, statement: Statement, parameters: Optional[Mapping[str, Any]] = None) -> Any:
        call = self._prepare(statement, parameters, Operation.FIND_MANY)
        return await self.mock.handle(call.text, call.parameters, call.descriptor)

    async def execute_script(self, script: str) -> list[Any]:
        return [await self.execute(statement) for statement in split_script(script)]

    async def transaction(
        self,
        callback: Callable[["AsyncMockTransaction"], Awaitable[T]],
    ) -> Union[T, RolledBack]:
        tx = AsyncMockTransaction(self.mock)
        try:
            result = await callback(tx)
        except TransactionClosedError:
            if not tx.rolled_back:
                raise
            result = None
        if tx.rolled_back:
            logger.debug("Mock transaction rolled back: %s", tx.reason)
            return RolledBack(tx.reason)
        return result


class AsyncMockTransaction(AsyncMockConnection):
    def __init__(self, mock: QueryMock) -> None:
        super().__init__(mock)
        self.rolled_back = False
        self.reason: Optional[str] = None

    def rollback(self, reason: Optional[str] = None) -> None:
        self.rolled_back = True
        self.reason = reason

    def _check_open(self) -> None:
        if self.rolled_back:
            raise TransactionClosedError("Transaction was rolled back; no further statements are accepted.")


def mock_database(config: Optional[MockConfig] = None) -> tuple[MockConnection, QueryMock]:
    """Return a connection double and the controller that answers its queries."""
    mock = QueryMock(config)
    return MockConnection(mock), mock


def mock_async_database(config: Optional[MockConfig] = None) -> tuple[AsyncMockConnection, QueryMock]:
    mock = QueryMock(config)
    return AsyncMockConnection(mock), mock
