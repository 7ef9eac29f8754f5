"""
Habits and their per-day completion marks.
"""
import logging
import sqlite3
from datetime import date

from backend.errors import NotFoundError, StorageError, ValidationError
from backend.models import Habit, HabitCreate, HabitEntry

logger = logging.getLogger(__name__)

TOGGLE_ENTRY = """
INSERT INTO habit_entries (habit_id, date, completed)
VALUES (?, ?, 1)
ON CONFLICT(habit_id, date) DO UPDATE SET
    completed = NOT completed;
"""


def _entry_from_row(row: sqlite3.Row) -> HabitEntry:
    return HabitEntry(
        id=row["id"],
        habit_id=row["habit_id"],
        date=row["date"],
        completed=bool(row["completed"]),
    )


def list_habits(conn: sqlite3.Connection) -> list[Habit]:
    """All habits in creation order, each with its entries sorted by date."""
    conn.row_factory = sqlite3.Row
    try:
        habit_rows = conn.execute(
            "SELECT id, name, emoji, created_at FROM habits ORDER BY id"
        ).fetchall()
        entry_rows = conn.execute(
            "SELECT id, habit_id, date, completed FROM habit_entries ORDER BY habit_id, date"
        ).fetchall()
    except sqlite3.Error as e:
        raise StorageError("Failed to fetch habits") from e

    entries: dict[int, list[HabitEntry]] = {}
    for row in entry_rows:
        entries.setdefault(row["habit_id"], []).append(_entry_from_row(row))

    return [
        Habit(
            id=row["id"],
            name=row["name"],
            emoji=row["emoji"],
            created_at=row["created_at"],
            entries=entries.get(row["id"], []),
        )
        for row in habit_rows
    ]


def create_habit(conn: sqlite3.Connection, new: HabitCreate) -> Habit:
    if not new.name.strip():
        raise ValidationError("name must not be empty")
    if not new.emoji.strip():
        raise ValidationError("emoji must not be empty")

    conn.row_factory = sqlite3.Row
    try:
        with conn:
            cur = conn.execute(
                "INSERT INTO habits (name, emoji) VALUES (?, ?)", (new.name, new.emoji)
            )
            row = conn.execute(
                "SELECT id, name, emoji, created_at FROM habits WHERE id = ?", (cur.lastrowid,)
            ).fetchone()
    except sqlite3.Error as e:
        raise StorageError("Failed to create habit") from e

    logger.info(f"Created habit {row['id']}: {new.emoji} {new.name}")
    return Habit(id=row["id"], name=row["name"], emoji=row["emoji"], created_at=row["created_at"])


def toggle_entry(conn: sqlite3.Connection, habit_id: int, day: date) -> HabitEntry:
    """
    Marks `day` as done for the habit if it has no entry yet, otherwise flips
    the existing entry's `completed` flag.
    """
    conn.row_factory = sqlite3.Row
    try:
        with conn:
            if conn.execute("SELECT 1 FROM habits WHERE id = ?", (habit_id,)).fetchone() is None:
                raise NotFoundError(f"Habit {habit_id} not found")
            conn.execute(TOGGLE_ENTRY, (habit_id, day.isoformat()))
            row = conn.execute(
                "SELECT id, habit_id, date, completed FROM habit_entries "
                "WHERE habit_id = ? AND date = ?",
                (habit_id, day.isoformat()),
            ).fetchone()
    except sqlite3.Error as e:
        raise StorageError("Failed to toggle habit entry") from e
    return _entry_from_row(row)


def delete_habit(conn: sqlite3.Connection, habit_id: int) -> None:
    """Deletes the habit; its entries go with it through ON DELETE CASCADE."""
    try:
        with conn:
            cur = conn.execute("DELETE FROM habits WHERE id = ?", (habit_id,))
    except sqlite3.Error as e:
        raise StorageError("Failed to delete habit") from e
    if cur.rowcount == 0:
        raise NotFoundError(f"Habit {habit_id} not found")
    logger.info(f"Deleted habit {habit_id}")
