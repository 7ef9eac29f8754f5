# %%
# ruff: noqa
import sys
from pathlib import Path

# Add project root to path so the `backend` package can be imported
project_root = Path(__file__).resolve().parents[2]
sys.path.append(str(project_root))

from backend.db import create_connection
from backend.schema import init_database
from backend.sessions import reconcile_daily_totals

init_database()

# %%
# Rebuild daily_time_tracking from pomodoro_sessions. Run after restoring a
# backup or editing session rows by hand.
conn = create_connection()
try:
    rows = reconcile_daily_totals(conn)
finally:
    conn.close()

print(f"{rows=}")
