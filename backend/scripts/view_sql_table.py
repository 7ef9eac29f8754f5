# %%
# ruff: noqa
import sys
from pathlib import Path

# Add project root to path so the `backend` package can be imported
project_root = Path(__file__).resolve().parents[2]
sys.path.append(str(project_root))

import polars as pl
from backend.db import create_connection

pl.Config.set_tbl_rows(100)

df = pl.read_database(
    query="SELECT * FROM pomodoro_sessions ORDER BY timestamp DESC",
    connection=create_connection(),
)
print(df.head(10).write_csv(line_terminator="\\n"))

# %%
# Cached daily totals next to the sum of the raw sessions they summarize.
# Any row left after the filter means the cache has drifted; run
# reconcile_daily_totals.py.
df = pl.read_database(
    query="""
    SELECT t.date, t.subject, t.total_duration,
           (SELECT COALESCE(SUM(s.duration), 0)
            FROM   pomodoro_sessions s
            WHERE  date(s.timestamp, 'localtime') = t.date
              AND  s.subject = t.subject) AS recomputed
    FROM   daily_time_tracking t
    ORDER  BY t.date, t.subject
    """,
    connection=create_connection(),
)
df.filter(pl.col("total_duration") != pl.col("recomputed"))

# %%
import polars as pl
from backend.db import create_connection

df = pl.read_database(
    query="SELECT h.name, h.emoji, e.date, e.completed FROM habits h "
    "LEFT JOIN habit_entries e ON e.habit_id = h.id ORDER BY h.id, e.date",
    connection=create_connection(),
)
df
