"""
Countdown controller for a single focus session.

The machine is driven by discrete events (start, pause, tick, complete, reset)
applied one at a time in arrival order. Ticking is an explicit resource: a
ticker is acquired on start() and released on every transition out of RUNNING,
so no stray callback can decrement or complete a finished run.
"""
import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol

from backend.errors import TimerStateError
from backend.models import SessionCreate, Subject, TimerStatus, WorkSession, parse_subject

logger = logging.getLogger(__name__)

DEFAULT_SESSION_MINUTES = 25


class TimerState(str, Enum):
    IDLE = "idle"
    CONFIGURED_IDLE = "configured_idle"
    RUNNING = "running"
    COMPLETED = "completed"


class Ticker(Protocol):
    def cancel(self) -> None: ...


class AsyncTicker:
    """Calls `callback` every `interval` seconds on the running event loop until cancelled."""

    def __init__(self, callback: Callable[[], Any], interval: float = 1.0):
        self._callback = callback
        self._interval = interval
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self):
        while True:
            await asyncio.sleep(self._interval)
            self._callback()

    def cancel(self) -> None:
        self._task.cancel()

    @property
    def done(self) -> bool:
        return self._task.done()


def parse_session_minutes(value: Any) -> int:
    """Coerce user input to a non-negative whole number of minutes. Garbage becomes 0."""
    try:
        minutes = int(value)
    except (TypeError, ValueError):
        return 0
    return max(minutes, 0)


class FocusTimer:
    """
    Args:
        on_complete: Sink for the session produced by complete(). Its return
            value is kept as `last_session`; an exception is logged and kept as
            `last_error` but never undoes the reset. A coroutine sink is
            scheduled on the running loop as `pending_write` and complete()
            returns without waiting for it.
        session_minutes: Initial configured length.
        clock: Returns the current timezone-aware time.
        ticker_factory: Called with `self.tick` on start() to begin automatic
            ticking. When None, the owner calls tick() itself.
    """

    def __init__(
        self,
        on_complete: Callable[[SessionCreate], Any] | None = None,
        *,
        session_minutes: int = DEFAULT_SESSION_MINUTES,
        clock: Callable[[], datetime] | None = None,
        ticker_factory: Callable[[Callable[[], None]], Ticker] | None = None,
    ):
        self._on_complete = on_complete
        self._clock = clock or (lambda: datetime.now(UTC))
        self._ticker_factory = ticker_factory
        self._ticker: Ticker | None = None

        self.session_minutes = parse_session_minutes(session_minutes)
        self.remaining_seconds = self.session_minutes * 60
        self.task_name = ""
        self.subject = Subject.PE
        self.started_at: datetime | None = None
        self.state = TimerState.IDLE

        self.last_session: WorkSession | None = None
        self.last_error: str | None = None
        self.pending_write: asyncio.Future | None = None

    @property
    def is_running(self) -> bool:
        return self.state == TimerState.RUNNING

    @property
    def total_seconds(self) -> int:
        return self.session_minutes * 60

    # -------------------------------------------------
    # Configuration (only while stopped)
    # -------------------------------------------------

    def _require_stopped(self, action: str):
        if self.is_running:
            raise TimerStateError(f"Cannot {action} while the timer is running")

    def _idle_state(self) -> TimerState:
        return TimerState.CONFIGURED_IDLE if self.task_name.strip() else TimerState.IDLE

    def set_session_length(self, minutes: Any):
        self._require_stopped("change the session length")
        self.session_minutes = parse_session_minutes(minutes)
        self.remaining_seconds = self.total_seconds

    def set_task(self, name: str):
        self._require_stopped("change the task")
        self.task_name = name
        self.state = self._idle_state()

    def set_subject(self, subject: str | Subject):
        self._require_stopped("change the subject")
        self.subject = parse_subject(subject)

    # -------------------------------------------------
    # Transitions
    # -------------------------------------------------

    def start(self) -> bool:
        """Begins counting down. Returns False (and changes nothing) if it cannot start."""
        if self.is_running:
            return False
        if not self.task_name.strip():
            logger.info("Timer start ignored: no task name entered")
            return False
        if self.remaining_seconds <= 0:
            logger.info("Timer start ignored: session length is zero")
            return False

        self.state = TimerState.RUNNING
        self.started_at = self._clock()
        if self._ticker_factory is not None:
            self._ticker = self._ticker_factory(self.tick)
        logger.info(
            f"Timer started: {self.task_name} ({self.subject.value}), "
            f"{self.remaining_seconds}s left"
        )
        return True

    def tick(self):
        """One elapsed second. Completes the run when the countdown reaches zero."""
        if not self.is_running:
            return
        self.remaining_seconds = max(self.remaining_seconds - 1, 0)
        if self.remaining_seconds == 0:
            self.complete()

    def pause(self) -> bool:
        """Stops counting without recording a session."""
        if not self.is_running:
            return False
        self._release_ticker()
        self.started_at = None
        self.state = self._idle_state()
        logger.info(f"Timer paused with {self.remaining_seconds}s left")
        return True

    def toggle(self) -> bool:
        return self.pause() if self.is_running else self.start()

    def complete(self) -> SessionCreate | None:
        """
        Ends the run and hands a session of the wall-clock elapsed time to the
        sink. Returns the emitted request, or None when not running.
        """
        if not self.is_running:
            return None

        self.state = TimerState.COMPLETED
        self._release_ticker()
        elapsed = max(round((self._clock() - self.started_at).total_seconds()), 0)
        request = SessionCreate(
            task_name=self.task_name, subject=self.subject.value, duration=elapsed
        )

        self.remaining_seconds = self.total_seconds
        self.task_name = ""
        self.started_at = None

        self._emit(request)
        self.state = TimerState.IDLE
        return request

    def reset(self):
        """Stops counting and restores the full length. Nothing is recorded."""
        self._release_ticker()
        self.remaining_seconds = self.total_seconds
        self.started_at = None
        self.state = self._idle_state()

    def close(self):
        """Teardown: releases the ticker so nothing outlives the owner."""
        self.reset()

    # -------------------------------------------------
    # Internals
    # -------------------------------------------------

    def _release_ticker(self):
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    def _emit(self, request: SessionCreate):
        if self._on_complete is None:
            return
        try:
            result = self._on_complete(request)
        except Exception as e:
            self._record_failure(request, e)
            return
        if inspect.isawaitable(result):
            # The run is already reset; the write finishes in the background.
            self.pending_write = asyncio.ensure_future(self._await_sink(request, result))
            return
        self.last_session = result
        self.last_error = None

    async def _await_sink(self, request: SessionCreate, result: Awaitable[WorkSession | None]):
        try:
            self.last_session = await result
            self.last_error = None
        except Exception as e:
            self._record_failure(request, e)

    def _record_failure(self, request: SessionCreate, error: Exception):
        logger.error(
            f"Failed to record completed session '{request.task_name}': {error}", exc_info=error
        )
        self.last_error = str(error)

    def status(self) -> TimerStatus:
        total = self.total_seconds
        progress = (total - self.remaining_seconds) / total * 100 if total else 0.0
        return TimerStatus(
            state=self.state.value,
            task_name=self.task_name,
            subject=self.subject,
            session_minutes=self.session_minutes,
            remaining_seconds=self.remaining_seconds,
            progress=progress,
            started_at=self.started_at,
            last_error=self.last_error,
        )
