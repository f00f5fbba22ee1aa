from datetime import date, datetime, time, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite hands them back without tzinfo)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_due_date(raw: str) -> datetime:
    """Parse a ``YYYY-MM-DD`` due date as the last second of that day, UTC."""
    try:
        day = date.fromisoformat(raw.strip())
    except ValueError:
        raise ValueError("Invalid date format. Use YYYY-MM-DD") from None
    return datetime.combine(day, time(23, 59, 59), tzinfo=timezone.utc)
