import calendar
from datetime import UTC, date, datetime

from backend.errors import ValidationError


def utc_iso(dt: datetime) -> str:
    """
    Snap a timezone-aware datetime to ISO-8601 UTC with second precision,
    e.g. '2025-06-12T09:00:00Z'. Raises if dt is naive.
    """
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        raise ValueError("Datetime must be timezone-aware (RFC3339/ISO-8601)")
    return dt.astimezone(UTC).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def local_day(dt: datetime) -> date:
    """Calendar day of dt in the server's local timezone (naive input is taken as local)."""
    return dt.astimezone().date()


def parse_iso_date(value: str) -> date:
    """
    Accepts a plain 'YYYY-MM-DD' or a full ISO-8601 datetime such as the output
    of JavaScript's Date.toISOString() ('2025-02-01T00:00:00.000Z'). A datetime
    with an offset is taken to the server's local day, like `local_day`.
    """
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as e:
        raise ValidationError(f"Invalid ISO date: '{value}'") from e
    if parsed.tzinfo is None:
        return parsed.date()
    return local_day(parsed)


def month_bounds(day: date) -> tuple[date, date]:
    """First and last day (both inclusive) of the month containing `day`."""
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)
