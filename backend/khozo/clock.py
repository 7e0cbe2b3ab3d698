"""UTC time helpers.

SQLite hands timezone-aware columns back as naive datetimes; every comparison
against "now" goes through as_utc() so both backends behave the same.
"""

from datetime import UTC, datetime


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
