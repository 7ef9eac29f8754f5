import os
import sqlite3
import time
from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

# db.py refuses to import without DB_PATH unless it knows it is under test.
os.environ.setdefault("PYTEST_RUNNING", "true")

from backend import sessions  # noqa: E402
from backend.schema import SCHEMA  # noqa: E402
from backend.timer import FocusTimer  # noqa: E402


class FakeClock:
    """Callable clock for the timer whose time only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def test_db(tmp_path: Path) -> Generator[sqlite3.Connection]:
    """
    A fixture that creates a temporary, isolated database for a single test function.
    - It uses pytest's `tmp_path` fixture to create a DB in a temporary directory.
    - It initializes the schema directly.
    - It yields a connection.
    - It guarantees the connection is closed and the temporary file is cleaned up.
    """
    db_path = tmp_path / "test_function.sqlite"

    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = DELETE")  # Important for test isolation

    conn.executescript(SCHEMA)
    conn.commit()

    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def berlin_tz(monkeypatch):
    """Runs the test with the process-local timezone set to Central European Time."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    # POSIX rule string, so no tz database is needed.
    monkeypatch.setenv("TZ", "CET-1CEST,M3.5.0,M10.5.0/3")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 3, 14, 9, 0, 0, tzinfo=UTC))


@pytest.fixture
def timer(test_db, clock) -> Generator[FocusTimer]:
    """A manually ticked timer whose completed sessions land in `test_db`."""
    focus_timer = FocusTimer(
        lambda new_session: sessions.create_session(test_db, new_session),
        session_minutes=1,
        clock=clock,
    )
    yield focus_timer
    focus_timer.close()


@pytest.fixture
def client(test_db, timer):
    """
    Provides a TestClient with the database and timer dependencies overridden.
    All API calls in a test using this fixture share the `test_db` connection
    and the manually driven `timer`.
    """
    from fastapi.testclient import TestClient

    from backend.main import app, get_db, get_timer

    def override_get_db():
        # The test_db fixture is responsible for closing the connection.
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_timer] = lambda: timer

    yield TestClient(app)

    app.dependency_overrides.clear()
