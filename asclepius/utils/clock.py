from datetime import date, datetime, time, timezone
from typing import Optional, Union

UTC = timezone.utc


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Mongo hands back naive datetimes unless the client is tz_aware."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_datetime(value: Union[date, datetime, str]) -> datetime:
    """
    Normalise a due date / timestamp input.
    Accepts a date (midnight UTC), a datetime, or an ISO string ("2026-10-19"
    or "2026-10-19T08:30:00Z").
    """
    if isinstance(value, str):
        s = value.strip()
        if "T" not in s:
            value = datetime.strptime(s, "%Y-%m-%d").date()
        else:
            value = datetime.fromisoformat(s.replace("Z", "+00:00"))
    if isinstance(value, datetime):
        return as_utc(value)
    return datetime.combine(value, time.min, tzinfo=UTC)


def epoch_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def day_key(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%d")
