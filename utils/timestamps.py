from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Fixed-width UTC ISO string; textual order matches chronological order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def day_bounds(value: datetime, offset_days: int = 0) -> tuple[str, str]:
    """Start (inclusive) and end (exclusive) ISO strings of the UTC day containing value."""
    day_start = to_utc(value).replace(hour=0, minute=0, second=0, microsecond=0)
    day_start += timedelta(days=offset_days)
    return to_iso(day_start), to_iso(day_start + timedelta(days=1))


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
