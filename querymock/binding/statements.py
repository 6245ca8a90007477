"""Compile SQLAlchemy statements into normalized calls and structural descriptors."""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping, Optional, Union

from sqlalchemy import inspect as sa_inspect, text as sa_text
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.engine import Dialect
from sqlalchemy.engine.interfaces import BindTyping
from sqlalchemy.sql.expression import (
    Alias,
    ClauseElement,
    Delete,
    Insert,
    Join,
    Select,
    TableClause,
    Update,
)

from querymock.calls import NormalizedCall, Operation, StructuralDescriptor
from querymock.matchers import Fragment

logger = logging.getLogger(__name__)

Statement = Union[ClauseElement, str]

_NAMED_PARAM_RE = re.compile(r"(?<![:\w\\]):([A-Za-z_][A-Za-z0-9_]*)(?![:\w])")

_OPERATION_TAGS: dict[str, Operation] = {
    "select": Operation.SELECT,
    "insert": Operation.INSERT,
    "update": Operation.UPDATE,
    "delete": Operation.DELETE,
    "fetch_one": Operation.FIND_FIRST,
    "first": Operation.FIND_FIRST,
    "findfirst": Operation.FIND_FIRST,
    "fetch_all": Operation.FIND_MANY,
    "all": Operation.FIND_MANY,
    "findmany": Operation.FIND_MANY,
}


def operation_for(tag: Union[str, Operation]) -> Operation:
    """Map a binding-level tag (statement kind or fetch method) to an ``Operation``."""
    if isinstance(tag, Operation):
        return tag
    try:
        return _OPERATION_TAGS[tag.strip().lower()]
    except KeyError as exc:
        raise ValueError(f"Unknown query operation tag: {tag}") from exc


class _PostgresDialect(postgresql.dialect):
    bind_typing = BindTyping.NONE
    supports_statement_cache = True


class _MySQLDialect(mysql.dialect):
    bind_typing = BindTyping.NONE
    supports_statement_cache = True


class _SQLiteDialect(sqlite.dialect):
    bind_typing = BindTyping.NONE
    supports_statement_cache = True


_DIALECTS: dict[str, type[Dialect]] = {
    "postgresql": _PostgresDialect,
    "mysql": _MySQLDialect,
    "sqlite": _SQLiteDialect,
}


def build_dialect(name: str = "postgresql") -> Dialect:
    """Dialect compiling to positional ``?`` placeholders with no bind casts.

    Drivers that render casts (``?::INTEGER``) would make the call text depend on
    the installed SQLAlchemy release.
    """
    dialect_cls = _DIALECTS.get(name)
    if dialect_cls is not None:
        return dialect_cls(paramstyle="qmark")
    raise ValueError(f"Unsupported dialect: {name}")


def _as_clause(statement: Statement) -> ClauseElement:
    if isinstance(statement, str):
        return sa_text(statement)
    if isinstance(statement, ClauseElement):
        return statement
    raise TypeError(f"Unsupported statement type: {type(statement).__name__}")


def positional_sql(sql: str) -> str:
    """Rewrite ``:name`` placeholders to ``?`` as compiled ``text()`` renders them."""
    return _NAMED_PARAM_RE.sub("?", sql)


def _compile(
    clause: ClauseElement,
    parameters: Optional[Mapping[str, Any]],
    dialect: Dialect,
) -> tuple[str, list[Any]]:
    compiled = clause.compile(
        dialect=dialect,
        column_keys=list(parameters) if parameters else None,
        compile_kwargs={"render_postcompile": True},
    )
    values = compiled.construct_params(dict(parameters) if parameters else None)
    ordered = [values[name] for name in (compiled.positiontup or ())]
    return str(compiled), ordered


def resolve_entity(entity: Any) -> tuple[str, Optional[str]]:
    """Return ``(name, schema)`` for a table, an ORM class or a ``schema.name`` string."""
    if isinstance(entity, str):
        schema, _, name = entity.rpartition(".")
        return name, schema or None
    if isinstance(entity, Alias):
        entity = entity.element
    if isinstance(entity, TableClause):
        return entity.name, getattr(entity, "schema", None)
    mapper = sa_inspect(entity, raiseerr=False)
    table = getattr(mapper, "local_table", None)
    if isinstance(table, TableClause):
        return table.name, getattr(table, "schema", None)
    raise TypeError(f"Cannot resolve a table from {entity!r}")


def _primary_table(from_clause: Any) -> Optional[TableClause]:
    while isinstance(from_clause, Join):
        from_clause = from_clause.left
    if isinstance(from_clause, Alias):
        from_clause = from_clause.element
    if isinstance(from_clause, TableClause):
        return from_clause
    return None


def _dml_field_keys(statement: Union[Insert, Update], parameters: Optional[Mapping[str, Any]]) -> frozenset[str]:
    keys: set[str] = set()
    # SQLAlchemy keeps VALUES/SET clauses on the statement itself.
    values = getattr(statement, "_values", None) or {}
    keys.update(getattr(key, "key", key) for key in values)
    multi = getattr(statement, "_multi_values", None) or ()
    for batch in multi:
        for row in batch[:1]:
            if isinstance(row, Mapping):
                keys.update(getattr(key, "key", key) for key in row)
    if parameters:
        columns = statement.table.c
        keys.update(key for key in parameters if key in columns)
    return frozenset(str(key) for key in keys)


def describe_statement(
    statement: Statement,
    operation: Optional[Union[str, Operation]] = None,
    parameters: Optional[Mapping[str, Any]] = None,
) -> Optional[StructuralDescriptor]:
    """Capture the builder-level shape of ``statement``; ``None`` for raw SQL."""
    if isinstance(statement, Select):
        table = next(
            (found for found in map(_primary_table, statement.get_final_froms()) if found is not None),
            None,
        )
        if table is None:
            return None
        op = operation_for(operation) if operation is not None else Operation.SELECT
        fields = frozenset(column.key for column in statement.selected_columns)
        return StructuralDescriptor(op, table.name, getattr(table, "schema", None), fields)

    if isinstance(statement, (Insert, Update)):
        table = _primary_table(statement.table)
        if table is None:
            return None
        op = Operation.INSERT if isinstance(statement, Insert) else Operation.UPDATE
        return StructuralDescriptor(
            op,
            table.name,
            getattr(table, "schema", None),
            _dml_field_keys(statement, parameters),
        )

    if isinstance(statement, Delete):
        table = _primary_table(statement.table)
        if table is None:
            return None
        return StructuralDescriptor(Operation.DELETE, table.name, getattr(table, "schema", None))

    return None


def compile_statement(
    statement: Statement,
    parameters: Optional[Mapping[str, Any]] = None,
    dialect: Optional[Dialect] = None,
    operation: Optional[Union[str, Operation]] = None,
) -> NormalizedCall:
    """Render ``statement`` to positional SQL plus its ordered parameter values."""
    clause = _as_clause(statement)
    text, ordered = _compile(clause, parameters, dialect or build_dialect())
    return NormalizedCall.build(text, ordered, describe_statement(clause, operation, parameters))


def compile_fragment(
    clause: Statement,
    parameters: Optional[Mapping[str, Any]] = None,
    dialect: Optional[Dialect] = None,
    strip: bool = True,
) -> Fragment:
    """Compile a filter expression such as ``users.c.id == 1`` into a ``Fragment``."""
    text, ordered = _compile(_as_clause(clause), parameters, dialect or build_dialect())
    return Fragment.from_sql(text, tuple(ordered), strip)
