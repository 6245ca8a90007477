"""Pytest fixtures shared across core and binding tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from querymock.binding import MockConnection, QueryMock, mock_database
from querymock.controller import MockController


class SteppingClock:
    """Clock returning strictly increasing timestamps, one second apart."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, tzinfo=timezone.utc)) -> None:
        self.start = start
        self.ticks = 0

    def now_utc(self) -> datetime:
        value = self.start + timedelta(seconds=self.ticks)
        self.ticks += 1
        return value


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()


@pytest.fixture
def controller(clock: SteppingClock) -> MockController:
    """Bare controller fed with pre-normalized calls."""
    return MockController(clock=clock)


@pytest.fixture
def db() -> tuple[MockConnection, QueryMock]:
    """Connection double plus the controller answering it."""
    return mock_database()
