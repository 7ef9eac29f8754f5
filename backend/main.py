import asyncio
import logging
import os
import sqlite3
from contextlib import asynccontextmanager
from datetime import date
from enum import Enum

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend import habits, sessions
from backend.dates import parse_iso_date
from backend.db import create_connection, get_db
from backend.errors import NotFoundError, StorageError, TimerStateError, ValidationError
from backend.middleware import RequestLoggingMiddleware
from backend.models import (
    SUBJECTS,
    DailySubjectTotal,
    Habit,
    HabitCreate,
    HabitEntry,
    HabitToggle,
    SessionCreate,
    SessionSummary,
    TimerConfig,
    TimerStatus,
    WorkSession,
)
from backend.schema import init_database
from backend.stats import summarize_sessions
from backend.timer import AsyncTicker, FocusTimer, parse_session_minutes

# -------------------------------------------------
# Config
# -------------------------------------------------
# DB_PATH and DB_TIMEOUT live in db.py

# Comma-separated list of frontend origins,
# e.g. "http://localhost:5173,https://focus.example.com"
origins_str = os.environ.get("CORS_ORIGINS", "http://localhost:5173")
allowed_origins = [origin.strip() for origin in origins_str.split(",")]

DEFAULT_SESSION_MINUTES = parse_session_minutes(os.environ.get("DEFAULT_SESSION_MINUTES", "25"))

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _store_session(new_session: SessionCreate) -> WorkSession:
    conn = create_connection()
    try:
        return sessions.create_session(conn, new_session)
    finally:
        conn.close()


async def record_completed_session(new_session: SessionCreate) -> WorkSession:
    """Sink for the server-side timer: stores the session on a worker thread."""
    return await asyncio.to_thread(_store_session, new_session)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the database and the single-user timer; release the timer on shutdown."""
    logger.info("Running startup tasks...")
    init_database()
    app.state.timer = FocusTimer(
        record_completed_session,
        session_minutes=DEFAULT_SESSION_MINUTES,
        ticker_factory=AsyncTicker,
    )
    logger.info("Startup tasks complete.")
    yield
    app.state.timer.close()
    if app.state.timer.pending_write is not None:
        await app.state.timer.pending_write


app = FastAPI(lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and parameters are client errors: answer 400, not 422."""
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


def get_timer(request: Request) -> FocusTimer:
    """FastAPI dependency returning the process-wide timer."""
    return request.app.state.timer


# -------------------------------------------------
# Meta
# -------------------------------------------------


@app.get("/", summary="Health check")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/subjects", response_model=list[str], summary="List the allowed subjects")
def get_subjects():
    return SUBJECTS


# -------------------------------------------------
# Pomodoro sessions
# -------------------------------------------------


@app.get(
    "/api/pomodoro-sessions",
    response_model=list[WorkSession],
    summary="Get all recorded focus sessions, newest first",
)
def get_pomodoro_sessions(conn: sqlite3.Connection = Depends(get_db)):  # noqa: B008
    try:
        result = sessions.list_sessions(conn)
    except StorageError as e:
        logger.error(f"Error fetching pomodoro sessions: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch pomodoro sessions") from e
    logger.info(f"Retrieved {len(result)} pomodoro sessions")
    return result


@app.post(
    "/api/pomodoro-sessions",
    response_model=WorkSession,
    status_code=201,
    summary="Record a completed focus session",
)
def create_pomodoro_session(
    new_session: SessionCreate, conn: sqlite3.Connection = Depends(get_db)  # noqa: B008
):
    """
    Stores the session with the current time as its timestamp and adds its
    duration to today's total for the subject, in one transaction.
    """
    try:
        return sessions.create_session(conn, new_session)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except StorageError as e:
        logger.error(f"Error creating pomodoro session: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create pomodoro session") from e


@app.get(
    "/api/pomodoro-sessions/summary",
    response_model=SessionSummary,
    summary="Today's total and per-month history",
)
def get_pomodoro_summary(conn: sqlite3.Connection = Depends(get_db)):  # noqa: B008
    try:
        return summarize_sessions(sessions.list_sessions(conn))
    except StorageError as e:
        logger.error(f"Error summarizing pomodoro sessions: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch pomodoro sessions") from e


@app.get(
    "/api/time-tracking/monthly",
    response_model=list[DailySubjectTotal],
    summary="Daily per-subject totals for one month",
    description="""
Returns every `(date, subject)` total whose date falls within the month of
`month`, first and last day inclusive.

`month` may be a plain date (`2025-02-10`) or a full ISO-8601 datetime
(`2025-02-01T00:00:00.000Z`). It defaults to today.
""",
)
def get_monthly_time_tracking(
    month: str | None = Query(None, description="Any ISO date inside the wanted month"),
    conn: sqlite3.Connection = Depends(get_db),  # noqa: B008
):
    try:
        day = parse_iso_date(month) if month else date.today()
        return sessions.monthly_totals(conn, day)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except StorageError as e:
        logger.error(f"Error fetching monthly summary: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch monthly summary") from e


# -------------------------------------------------
# Habits
# -------------------------------------------------


@app.get("/api/habits", response_model=list[Habit], summary="Get all habits with their entries")
def get_habits(conn: sqlite3.Connection = Depends(get_db)):  # noqa: B008
    try:
        return habits.list_habits(conn)
    except StorageError as e:
        logger.error(f"Error fetching habits: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch habits") from e


@app.post("/api/habits", response_model=Habit, status_code=201, summary="Create a habit")
def create_habit(new_habit: HabitCreate, conn: sqlite3.Connection = Depends(get_db)):  # noqa: B008
    try:
        return habits.create_habit(conn, new_habit)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except StorageError as e:
        logger.error(f"Error creating habit: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create habit") from e


@app.post(
    "/api/habits/{habit_id}/toggle",
    response_model=HabitEntry,
    summary="Toggle a habit's completion for one day",
)
def toggle_habit(
    habit_id: int, toggle: HabitToggle, conn: sqlite3.Connection = Depends(get_db)  # noqa: B008
):
    """Creates a completed entry for the day, or flips the existing one."""
    try:
        return habits.toggle_entry(conn, habit_id, parse_iso_date(toggle.date))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail="Habit not found") from e
    except StorageError as e:
        logger.error(f"Error toggling habit entry: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to toggle habit entry") from e


@app.delete("/api/habits/{habit_id}", status_code=204, summary="Delete a habit and its entries")
def delete_habit(habit_id: int, conn: sqlite3.Connection = Depends(get_db)):  # noqa: B008
    try:
        habits.delete_habit(conn, habit_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail="Habit not found") from e
    except StorageError as e:
        logger.error(f"Error deleting habit: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to delete habit") from e
    return Response(status_code=204)


# -------------------------------------------------
# Timer
# -------------------------------------------------
# The handlers are async so that they run on the event loop, the same thread
# that drives AsyncTicker. Commands and ticks are therefore applied one at a time.


class TimerAction(str, Enum):
    START = "start"
    PAUSE = "pause"
    TOGGLE = "toggle"
    RESET = "reset"
    COMPLETE = "complete"


@app.get("/api/timer", response_model=TimerStatus, summary="Current timer state")
async def get_timer_status(timer: FocusTimer = Depends(get_timer)):  # noqa: B008
    return timer.status()


@app.put("/api/timer", response_model=TimerStatus, summary="Set task, subject or length")
async def configure_timer(
    config: TimerConfig, timer: FocusTimer = Depends(get_timer)  # noqa: B008
):
    """Only allowed while the timer is not running (409 otherwise)."""
    try:
        if config.subject is not None:
            timer.set_subject(config.subject)
        if config.session_minutes is not None:
            timer.set_session_length(config.session_minutes)
        if config.task_name is not None:
            timer.set_task(config.task_name)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except TimerStateError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return timer.status()


@app.post(
    "/api/timer/{action}",
    response_model=TimerStatus,
    summary="Start, pause, toggle, reset or complete the timer",
)
async def control_timer(
    action: TimerAction, timer: FocusTimer = Depends(get_timer)  # noqa: B008
):
    """
    `start` is ignored without a task name, `pause` and `complete` are ignored
    unless running. `complete` records the session; a failed write is reported
    in `lastError` while the timer still resets.
    """
    getattr(timer, action.value)()
    return timer.status()


# -------------------------------------------------
# Run directly (dev only)
# -------------------------------------------------
if __name__ == "__main__":
    import uvicorn

    uvicorn.run("backend.main:app", host="127.0.0.1", port=4545, reload=True)
