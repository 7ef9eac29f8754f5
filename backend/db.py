import os
import sqlite3
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Overridden per deployment, or by fixtures during testing.
DB_PATH = os.environ.get("DB_PATH")

# Seconds sqlite waits on a locked database before failing the statement.
DB_TIMEOUT = float(os.environ.get("DB_TIMEOUT", "5"))

# In a test environment, DB_PATH can be None initially, as fixtures will provide it.
# In a non-test environment, we enforce that it must be set.
if not DB_PATH and os.environ.get("PYTEST_RUNNING") != "true":
    raise ValueError("FATAL: DB_PATH environment variable is not set. Application cannot start.")


def create_connection() -> sqlite3.Connection:
    """Creates a database connection with foreign keys enabled."""
    if not DB_PATH:
        raise RuntimeError("DB_PATH was not set. Ensure a test fixture or environment provides it.")

    db_file = Path(DB_PATH)
    db_file.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(DB_PATH, timeout=DB_TIMEOUT, check_same_thread=False)
    # Habit entries rely on ON DELETE CASCADE.
    conn.execute("PRAGMA foreign_keys = ON")

    # Commits go straight to the main DB file, so a killed server loses nothing.
    conn.execute("PRAGMA journal_mode = DELETE")

    return conn


def get_db():
    """
    FastAPI dependency that yields a db connection.
    """
    conn = create_connection()
    try:
        yield conn
    finally:
        conn.close()
