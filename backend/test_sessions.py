import sqlite3
from datetime import UTC, date, datetime, timedelta

import pytest

from backend import sessions
from backend.dates import local_day
from backend.errors import StorageError, ValidationError
from backend.models import SessionCreate, Subject

NOW = datetime(2025, 5, 20, 12, 0, 0, tzinfo=UTC)


def _totals(conn) -> list[tuple]:
    rows = conn.execute(
        "SELECT date, subject, total_duration FROM daily_time_tracking ORDER BY date, subject"
    ).fetchall()
    return [tuple(r) for r in rows]


def test_create_session_stores_row(test_db):
    session = sessions.create_session(
        test_db, SessionCreate(task_name="Titration lab", subject="Chemistry", duration=1500), NOW
    )
    assert session.id is not None
    assert session.subject is Subject.CHEMISTRY
    assert session.timestamp == NOW

    row = test_db.execute(
        "SELECT task_name, subject, duration, timestamp FROM pomodoro_sessions"
    ).fetchone()
    assert tuple(row) == ("Titration lab", "Chemistry", 1500, "2025-05-20T12:00:00Z")


def test_same_day_and_subject_accumulate(test_db):
    for duration in (30, 40):
        sessions.create_session(
            test_db, SessionCreate(task_name="Poetry", subject="English", duration=duration), NOW
        )

    day = local_day(NOW).isoformat()
    assert _totals(test_db) == [(day, "English", 70)]
    assert test_db.execute("SELECT COUNT(*) FROM pomodoro_sessions").fetchone()[0] == 2


def test_different_subjects_and_days_get_their_own_rows(test_db):
    tomorrow = NOW + timedelta(days=1)
    sessions.create_session(test_db, SessionCreate(task_name="a", subject="PE", duration=10), NOW)
    sessions.create_session(test_db, SessionCreate(task_name="b", subject="Maths", duration=20), NOW)
    sessions.create_session(
        test_db, SessionCreate(task_name="c", subject="PE", duration=30), tomorrow
    )

    today, next_day = local_day(NOW).isoformat(), local_day(tomorrow).isoformat()
    assert _totals(test_db) == [(today, "Maths", 20), (today, "PE", 10), (next_day, "PE", 30)]


@pytest.mark.parametrize(
    "new_session",
    [
        SessionCreate(task_name="Sketching", subject="Art", duration=60),
        SessionCreate(task_name="", subject="PE", duration=60),
        SessionCreate(task_name="Sprints", subject="PE", duration=-5),
    ],
)
def test_invalid_sessions_write_nothing(test_db, new_session):
    with pytest.raises(ValidationError):
        sessions.create_session(test_db, new_session, NOW)
    assert test_db.execute("SELECT COUNT(*) FROM pomodoro_sessions").fetchone()[0] == 0
    assert _totals(test_db) == []


def test_failed_total_write_rolls_back_session(test_db):
    test_db.executescript(
        """
        CREATE TRIGGER fail_totals BEFORE INSERT ON daily_time_tracking
        BEGIN SELECT RAISE(ABORT, 'totals unavailable'); END;
        """
    )
    with pytest.raises(StorageError):
        sessions.create_session(
            test_db, SessionCreate(task_name="Kinematics", subject="Physics", duration=90), NOW
        )
    assert test_db.execute("SELECT COUNT(*) FROM pomodoro_sessions").fetchone()[0] == 0


def test_list_sessions_storage_error(test_db):
    test_db.execute("DROP TABLE pomodoro_sessions")
    with pytest.raises(StorageError):
        sessions.list_sessions(test_db)


def test_list_sessions_orders_ties_by_id(test_db):
    first = sessions.create_session(
        test_db, SessionCreate(task_name="first", subject="PE", duration=1), NOW
    )
    second = sessions.create_session(
        test_db, SessionCreate(task_name="second", subject="PE", duration=1), NOW
    )
    assert [s.id for s in sessions.list_sessions(test_db)] == [second.id, first.id]


def test_monthly_totals_range(test_db):
    test_db.executemany(
        "INSERT INTO daily_time_tracking (date, subject, total_duration) VALUES (?, ?, ?)",
        [
            ("2024-02-29", "Maths", 1),
            ("2024-02-01", "PE", 2),
            ("2024-03-01", "PE", 3),
            ("2024-01-31", "PE", 4),
        ],
    )
    test_db.commit()
    totals = sessions.monthly_totals(test_db, date(2024, 2, 15))
    assert [(t.date, t.total_duration) for t in totals] == [
        (date(2024, 2, 1), 2),
        (date(2024, 2, 29), 1),
    ]


def test_daily_total_key_is_unique(test_db):
    test_db.execute(
        "INSERT INTO daily_time_tracking (date, subject, total_duration) "
        "VALUES ('2025-01-01', 'PE', 1)"
    )
    with pytest.raises(sqlite3.IntegrityError):
        test_db.execute(
            "INSERT INTO daily_time_tracking (date, subject, total_duration) "
            "VALUES ('2025-01-01', 'PE', 2)"
        )


def test_reconcile_rebuilds_totals_from_sessions(test_db):
    for duration in (30, 40):
        sessions.create_session(
            test_db, SessionCreate(task_name="Essay", subject="English", duration=duration), NOW
        )
    sessions.create_session(test_db, SessionCreate(task_name="Run", subject="PE", duration=5), NOW)

    # Drift the cache away from the raw rows, then rebuild it.
    test_db.execute("UPDATE daily_time_tracking SET total_duration = 0")
    test_db.execute(
        "INSERT INTO daily_time_tracking (date, subject, total_duration) "
        "VALUES ('1999-01-01', 'PE', 7)"
    )
    test_db.commit()

    assert sessions.reconcile_daily_totals(test_db) == 2
    day = local_day(NOW).isoformat()
    assert _totals(test_db) == [(day, "English", 70), (day, "PE", 5)]
