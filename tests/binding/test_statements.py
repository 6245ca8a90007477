"""Statement compilation and structural description for SQLAlchemy queries."""

from __future__ import annotations

import pytest
from sqlalchemy import delete, insert, select, text, update
from sqlalchemy.engine.interfaces import BindTyping

from querymock.binding.statements import (
    build_dialect,
    compile_fragment,
    compile_statement,
    describe_statement,
    operation_for,
    positional_sql,
    resolve_entity,
)
from querymock.calls import Operation, StructuralDescriptor
from querymock.matchers import Fragment
from tests.utils.schema import User, audit_log, posts, users


def test_select_compiles_to_positional_sql() -> None:
    call = compile_statement(select(users).where(users.c.id == 1))

    assert call.text.endswith("FROM users WHERE users.id = ?")
    assert "\n" not in call.text
    assert call.parameters == (1,)
    assert call.descriptor == StructuralDescriptor(
        Operation.SELECT, "users", None, frozenset({"id", "name", "email", "created_at"})
    )


def test_text_statement_orders_named_parameters_by_position() -> None:
    call = compile_statement(
        "SELECT * FROM users WHERE id = :id AND name = :name",
        {"name": "Bob", "id": 3},
    )

    assert call.text == "SELECT * FROM users WHERE id = ? AND name = ?"
    assert call.parameters == (3, "Bob")
    assert call.descriptor is None


def test_text_clause_and_fetch_operation_tag() -> None:
    assert compile_statement(text("SELECT 1")).text == "SELECT 1"
    found = compile_statement(select(users), operation="fetch_one")
    assert found.descriptor is not None
    assert found.descriptor.operation is Operation.FIND_FIRST


def test_update_descriptor_lists_set_columns() -> None:
    call = compile_statement(update(users).values(name="x").where(users.c.id == 42))

    assert call.parameters == ("x", 42)
    assert call.descriptor == StructuralDescriptor(Operation.UPDATE, "users", None, frozenset({"name"}))


def test_insert_descriptor_from_values_and_execute_parameters() -> None:
    from_values = compile_statement(insert(users).values(name="Bob", email="b@test.com"))
    from_params = compile_statement(insert(users), {"name": "Eve", "email": "e@test.com"})

    assert from_values.descriptor.field_keys == frozenset({"name", "email"})
    assert set(from_values.parameters) == {"Bob", "b@test.com"}
    assert from_params.descriptor.field_keys == frozenset({"name", "email"})
    assert set(from_params.parameters) == {"Eve", "e@test.com"}


def test_delete_descriptor_has_no_fields() -> None:
    call = compile_statement(delete(posts).where(posts.c.author_id == 9))

    assert call.parameters == (9,)
    assert call.descriptor == StructuralDescriptor(Operation.DELETE, "posts")


def test_schema_qualified_and_orm_entities() -> None:
    audit = describe_statement(select(audit_log))
    orm = compile_statement(select(User).where(User.id == 3))

    assert audit.entity_name == "audit_log"
    assert audit.entity_schema == "ops"
    assert orm.descriptor.entity_name == "users"
    assert orm.parameters == (3,)


def test_raw_sql_has_no_descriptor() -> None:
    assert describe_statement("SELECT * FROM users") is None
    assert describe_statement(text("SELECT * FROM users")) is None


def test_unsupported_statement_type() -> None:
    with pytest.raises(TypeError, match="Unsupported statement type"):
        compile_statement(42)  # type: ignore[arg-type]


def test_operation_tags_map_to_operations() -> None:
    assert operation_for("update") is Operation.UPDATE
    assert operation_for("fetch_one") is Operation.FIND_FIRST
    assert operation_for("findMany") is Operation.FIND_MANY
    assert operation_for(Operation.DELETE) is Operation.DELETE
    with pytest.raises(ValueError, match="Unknown query operation tag"):
        operation_for("merge")


def test_resolve_entity_variants() -> None:
    assert resolve_entity(users) == ("users", None)
    assert resolve_entity(User) == ("users", None)
    assert resolve_entity(audit_log) == ("audit_log", "ops")
    assert resolve_entity("ops.audit_log") == ("audit_log", "ops")
    assert resolve_entity("users") == ("users", None)
    with pytest.raises(TypeError, match="Cannot resolve a table"):
        resolve_entity(object())


def test_compile_fragment_strips_table_prefix() -> None:
    assert compile_fragment(users.c.id == 1) == Fragment("id = ?", (1,))
    assert compile_fragment(users.c.id == 1, strip=False) == Fragment("users.id = ?", (1,))


def test_build_dialect_choices() -> None:
    sqlite_call = compile_statement(select(users).where(users.c.id == 1), dialect=build_dialect("sqlite"))

    assert sqlite_call.parameters == (1,)
    assert sqlite_call.text.endswith("WHERE users.id = ?")
    with pytest.raises(ValueError, match="Unsupported dialect"):
        build_dialect("oracle")


@pytest.mark.parametrize("name", ["postgresql", "mysql", "sqlite"])
def test_dialects_never_render_bind_casts(name: str) -> None:
    dialect = build_dialect(name)
    call = compile_statement(select(users).where(users.c.id == 1, users.c.name == "Alice"), dialect=dialect)
    fragment = compile_fragment(users.c.id == 1, dialect=dialect)

    assert dialect.bind_typing is BindTyping.NONE
    assert "::" not in call.text
    assert "CAST" not in call.text
    assert fragment == Fragment("id = ?", (1,))


def test_positional_sql_rewrites_named_placeholders() -> None:
    assert positional_sql("SELECT * FROM users WHERE id = :id AND name = :name") == (
        "SELECT * FROM users WHERE id = ? AND name = ?"
    )
    assert positional_sql("SELECT created_at::date FROM users") == "SELECT created_at::date FROM users"
    assert positional_sql("SELECT '10:30'") == "SELECT '10:30'"
