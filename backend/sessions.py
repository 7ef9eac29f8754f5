"""
Persistence for focus sessions and the per-day, per-subject totals derived from them.

Every session insert and its daily-total increment run in one transaction, and
the increment is a single upsert statement, so the cached total always equals
the sum of the matching session rows.
"""
import logging
import sqlite3
from collections import defaultdict
from datetime import UTC, date, datetime

from backend.dates import local_day, month_bounds, utc_iso
from backend.errors import StorageError, ValidationError
from backend.models import DailySubjectTotal, SessionCreate, Subject, WorkSession, parse_subject

logger = logging.getLogger(__name__)

UPSERT_DAILY_TOTAL = """
INSERT INTO daily_time_tracking (date, subject, total_duration)
VALUES (?, ?, ?)
ON CONFLICT(date, subject) DO UPDATE SET
    total_duration = total_duration + excluded.total_duration;
"""


def validate_new_session(new: SessionCreate) -> Subject:
    """Raises ValidationError for an empty task, a negative duration or an unknown subject."""
    if not new.task_name.strip():
        raise ValidationError("taskName must not be empty")
    if new.duration < 0:
        raise ValidationError(f"duration must be >= 0, got {new.duration}")
    return parse_subject(new.subject)


def _session_from_row(row: sqlite3.Row) -> WorkSession:
    return WorkSession(
        id=row["id"],
        task_name=row["task_name"],
        subject=row["subject"],
        duration=row["duration"],
        timestamp=row["timestamp"],
    )


def list_sessions(conn: sqlite3.Connection) -> list[WorkSession]:
    """All sessions, most recent first."""
    conn.row_factory = sqlite3.Row
    try:
        rows = conn.execute(
            """
            SELECT id, task_name, subject, duration, timestamp
            FROM   pomodoro_sessions
            ORDER  BY timestamp DESC, id DESC
            """
        ).fetchall()
    except sqlite3.Error as e:
        raise StorageError("Failed to read pomodoro sessions") from e
    return [_session_from_row(row) for row in rows]


def create_session(
    conn: sqlite3.Connection, new: SessionCreate, now: datetime | None = None
) -> WorkSession:
    """
    Records a finished session and adds its duration to today's total for
    its subject.

    Args:
        conn: Open connection; the two writes are committed together.
        new: Task name, subject and duration in seconds.
        now: Insertion instant (timezone-aware). Defaults to the current time.

    Returns:
        The stored WorkSession.

    Raises:
        ValidationError: Before anything is written.
        StorageError: If either write fails; neither is kept.
    """
    subject = validate_new_session(new)
    now = now or datetime.now(UTC)
    timestamp = utc_iso(now)
    day = local_day(now).isoformat()

    try:
        with conn:
            cur = conn.execute(
                "INSERT INTO pomodoro_sessions (task_name, subject, duration, timestamp) "
                "VALUES (?, ?, ?, ?)",
                (new.task_name, subject.value, new.duration, timestamp),
            )
            session_id = cur.lastrowid
            conn.execute(UPSERT_DAILY_TOTAL, (day, subject.value, new.duration))
    except sqlite3.Error as e:
        logger.error(f"Error creating pomodoro session: {e}")
        raise StorageError("Failed to create pomodoro session") from e

    logger.info(
        f"Created pomodoro session {session_id}: {new.task_name}, "
        f"subject: {subject.value}, duration: {new.duration}s"
    )
    return WorkSession(
        id=session_id,
        task_name=new.task_name,
        subject=subject,
        duration=new.duration,
        timestamp=timestamp,
    )


def monthly_totals(conn: sqlite3.Connection, day: date) -> list[DailySubjectTotal]:
    """Daily per-subject totals for every date in the month containing `day`."""
    start, end = month_bounds(day)
    conn.row_factory = sqlite3.Row
    try:
        rows = conn.execute(
            """
            SELECT id, date, subject, total_duration
            FROM   daily_time_tracking
            WHERE  date BETWEEN ? AND ?   -- both inclusive
            ORDER  BY date, subject
            """,
            (start.isoformat(), end.isoformat()),
        ).fetchall()
    except sqlite3.Error as e:
        raise StorageError("Failed to read monthly time tracking") from e
    return [
        DailySubjectTotal(
            id=row["id"],
            date=row["date"],
            subject=row["subject"],
            total_duration=row["total_duration"],
        )
        for row in rows
    ]


def reconcile_daily_totals(conn: sqlite3.Connection) -> int:
    """
    Rebuilds daily_time_tracking from the raw session rows. Returns the
    number of (date, subject) rows written.
    """
    totals: dict[tuple[str, str], int] = defaultdict(int)
    for session in list_sessions(conn):
        totals[(local_day(session.timestamp).isoformat(), session.subject.value)] += (
            session.duration
        )

    try:
        with conn:
            conn.execute("DELETE FROM daily_time_tracking")
            conn.executemany(
                "INSERT INTO daily_time_tracking (date, subject, total_duration) "
                "VALUES (?, ?, ?)",
                [(day, subject, total) for (day, subject), total in sorted(totals.items())],
            )
    except sqlite3.Error as e:
        raise StorageError("Failed to rebuild daily time tracking") from e

    logger.info(f"Rebuilt {len(totals)} daily time tracking rows from sessions")
    return len(totals)
