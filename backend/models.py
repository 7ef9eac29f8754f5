"""
Pydantic models for the JSON API. Field names are snake_case in Python and
camelCase on the wire (taskName, totalDuration, habitId, ...).
"""
from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from backend.errors import ValidationError


class Subject(str, Enum):
    PE = "PE"
    ENGLISH = "English"
    CHEMISTRY = "Chemistry"
    MATHS = "Maths"
    PHYSICS = "Physics"


SUBJECTS = [s.value for s in Subject]


def parse_subject(value: str | Subject) -> Subject:
    """Map user input onto the closed subject set or raise ValidationError."""
    try:
        return Subject(value)
    except ValueError as e:
        raise ValidationError(
            f"Unknown subject '{value}'. Expected one of: {', '.join(SUBJECTS)}"
        ) from e


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------- focus sessions ----------------


class SessionCreate(ApiModel):
    task_name: str
    subject: str
    duration: int  # seconds


class WorkSession(ApiModel):
    id: int
    task_name: str
    subject: Subject
    duration: int
    timestamp: datetime  # UTC


class DailySubjectTotal(ApiModel):
    id: int
    date: date
    subject: Subject
    total_duration: int


class MonthSummary(ApiModel):
    month: str  # YYYY-MM
    total_duration: int
    formatted: str
    sessions: list[WorkSession]


class SessionSummary(ApiModel):
    today_total: int
    today_formatted: str
    months: list[MonthSummary]


# ---------------- habits ----------------


class HabitCreate(ApiModel):
    name: str
    emoji: str


class HabitToggle(ApiModel):
    date: str  # YYYY-MM-DD or full ISO-8601


class HabitEntry(ApiModel):
    id: int
    habit_id: int
    date: date
    completed: bool


class Habit(ApiModel):
    id: int
    name: str
    emoji: str
    created_at: datetime
    entries: list[HabitEntry] = []


# ---------------- timer ----------------


class TimerConfig(ApiModel):
    task_name: str | None = None
    subject: str | None = None
    session_minutes: int | str | None = None


class TimerStatus(ApiModel):
    state: str
    task_name: str
    subject: Subject
    session_minutes: int
    remaining_seconds: int
    progress: float  # percent of the configured length already elapsed
    started_at: datetime | None
    last_error: str | None
