"""Wall-clock helpers; every timestamp the service writes is UTC."""
from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hours_from_now(hours: int, now: datetime | None = None) -> datetime:
    return (now or utcnow()) + timedelta(hours=hours)

