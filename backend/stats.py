"""
Pure helpers over lists of WorkSession: duration text, today's total and the
month grouping used by the history view.
"""
from collections.abc import Iterable
from datetime import datetime

from backend.errors import ValidationError
from backend.models import MonthSummary, SessionSummary, WorkSession


def format_duration(seconds: int) -> str:
    """
    '1h 1m 1s' when there is at least one full hour, otherwise '1m 5s'.
    Negative input is rejected.
    """
    if seconds < 0:
        raise ValidationError(f"Duration must be >= 0, got {seconds}")
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    return f"{minutes}m {secs}s"


def _local(ts: datetime) -> datetime:
    return ts.astimezone()


def total_for_today(sessions: Iterable[WorkSession], now: datetime | None = None) -> int:
    """Sum of durations for sessions stamped at or after local midnight of today."""
    now = _local(now) if now else datetime.now().astimezone()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return sum(s.duration for s in sessions if _local(s.timestamp) >= midnight)


def group_by_month(sessions: Iterable[WorkSession]) -> dict[str, list[WorkSession]]:
    """Partition by local 'YYYY-MM' of the timestamp, keeping input order within a month."""
    groups: dict[str, list[WorkSession]] = {}
    for session in sessions:
        key = _local(session.timestamp).strftime("%Y-%m")
        groups.setdefault(key, []).append(session)
    return groups


def summarize_sessions(
    sessions: list[WorkSession], now: datetime | None = None
) -> SessionSummary:
    """Today's total plus per-month groups, newest month first."""
    today_total = total_for_today(sessions, now)
    months = []
    for month, month_sessions in sorted(group_by_month(sessions).items(), reverse=True):
        total = sum(s.duration for s in month_sessions)
        months.append(
            MonthSummary(
                month=month,
                total_duration=total,
                formatted=format_duration(total),
                sessions=month_sessions,
            )
        )
    return SessionSummary(
        today_total=today_total,
        today_formatted=format_duration(today_total),
        months=months,
    )
