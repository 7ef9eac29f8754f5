"""
Centralized database schema and initialization.
"""
from backend.db import create_connection

SCHEMA = """
CREATE TABLE IF NOT EXISTS pomodoro_sessions (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    task_name   TEXT NOT NULL,
    subject     TEXT NOT NULL,
    duration    INTEGER NOT NULL CHECK (duration >= 0),   -- seconds
    timestamp   TEXT NOT NULL
                 DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))   -- ISO-8601 in UTC
);

CREATE INDEX IF NOT EXISTS idx_sessions_timestamp ON pomodoro_sessions(timestamp);

CREATE TABLE IF NOT EXISTS daily_time_tracking (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    date            TEXT NOT NULL,          -- YYYY-MM-DD, server local day
    subject         TEXT NOT NULL,
    total_duration  INTEGER NOT NULL CHECK (total_duration >= 0),
    UNIQUE (date, subject)
);

CREATE TABLE IF NOT EXISTS habits (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT NOT NULL,
    emoji       TEXT NOT NULL,
    created_at  TEXT NOT NULL
                 DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE TABLE IF NOT EXISTS habit_entries (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    habit_id    INTEGER NOT NULL,
    date        TEXT NOT NULL,              -- YYYY-MM-DD
    completed   INTEGER NOT NULL DEFAULT 0,
    UNIQUE (habit_id, date),
    FOREIGN KEY (habit_id) REFERENCES habits(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_habit_entries_habit_id ON habit_entries(habit_id);
"""


def init_database():
    """Initializes the database using the centralized schema."""
    with create_connection() as conn:
        conn.executescript(SCHEMA)
        conn.commit()
