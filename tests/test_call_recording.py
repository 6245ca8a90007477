"""Call ledger, per-registration handles and reset operations."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from querymock.controller import MockController
from querymock.errors import UnmatchedCallError


def test_ledger_records_every_call_in_order(controller: MockController) -> None:
    controller.on("SELECT * FROM users").respond([])
    controller.on("SELECT * FROM posts").throw(RuntimeError("boom"))

    controller.handle_sync("SELECT * FROM users", [42])
    with pytest.raises(RuntimeError, match="boom"):
        controller.handle_sync("SELECT * FROM posts")
    with pytest.raises(UnmatchedCallError):
        controller.handle_sync("SELECT * FROM comments")

    assert [call.text for call in controller.calls] == [
        "SELECT * FROM users",
        "SELECT * FROM posts",
        "SELECT * FROM comments",
    ]
    assert controller.calls[0].parameters == (42,)
    assert controller.calls[0].timestamp == datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert controller.calls[0].timestamp < controller.calls[1].timestamp < controller.calls[2].timestamp


def test_calls_view_is_read_only(controller: MockController) -> None:
    controller.on("SELECT 1").respond(1)
    controller.handle_sync("SELECT 1")

    snapshot = controller.calls
    assert isinstance(snapshot, tuple)
    controller.handle_sync("SELECT 1")
    assert len(snapshot) == 1
    assert len(controller.calls) == 2


def test_handle_tracks_only_its_own_matches(controller: MockController) -> None:
    users = controller.on("SELECT * FROM users").respond([])
    posts = controller.on("SELECT * FROM posts").respond([])

    users.assert_not_called()
    controller.handle_sync("SELECT * FROM users", [1])
    controller.handle_sync("SELECT * FROM users", [2])

    assert users.called
    assert users.call_count == 2
    assert users.calls == (("SELECT * FROM users", (1,)), ("SELECT * FROM users", (2,)))
    assert users.last_call == ("SELECT * FROM users", (2,))
    users.assert_called_times(2)
    users.assert_called_with(parameters=[2])
    posts.assert_not_called()
    assert posts.last_call is None


def test_handle_assertions_fail_with_description(controller: MockController) -> None:
    handle = controller.on("SELECT * FROM users").respond([])

    with pytest.raises(AssertionError, match='exact: "SELECT \\* FROM users"'):
        handle.assert_called()

    controller.handle_sync("SELECT * FROM users", [1])
    with pytest.raises(AssertionError, match="called 3 time"):
        handle.assert_called_times(3)
    with pytest.raises(AssertionError, match="Expected last params"):
        handle.assert_called_with(parameters=[2])
    with pytest.raises(AssertionError, match="Expected last SQL"):
        handle.assert_called_with(text="SELECT 1")
    with pytest.raises(AssertionError, match="not to have been called"):
        handle.assert_not_called()


def test_handle_records_failed_matches(controller: MockController) -> None:
    handle = controller.on("SELECT 1").throw(ValueError("bad"))

    with pytest.raises(ValueError):
        controller.handle_sync("SELECT 1")

    handle.assert_called_times(1)


def test_reset_clears_registrations_and_calls(controller: MockController) -> None:
    controller.on("SELECT * FROM users").respond([])
    controller.handle_sync("SELECT * FROM users")

    controller.reset()
    controller.reset()

    assert controller.calls == ()
    with pytest.raises(UnmatchedCallError, match="No mock registered"):
        controller.handle_sync("SELECT * FROM users")


def test_reset_calls_keeps_registrations(controller: MockController) -> None:
    handle = controller.on("SELECT * FROM users").respond([])
    controller.handle_sync("SELECT * FROM users")

    controller.reset_calls()
    controller.reset_calls()

    assert len(controller.calls) == 0
    assert controller.handle_sync("SELECT * FROM users") == []
    assert len(controller.calls) == 1
    assert handle.call_count == 2


def test_reset_mocks_keeps_calls(controller: MockController) -> None:
    controller.on("SELECT * FROM users").respond([])
    controller.handle_sync("SELECT * FROM users")

    controller.reset_mocks()
    controller.reset_mocks()

    assert len(controller.calls) == 1
    with pytest.raises(UnmatchedCallError):
        controller.handle_sync("SELECT * FROM users")
    assert len(controller.calls) == 2
