"""
UTC time helpers.

MySQL DATETIME and SQLite both hand timestamps back without tzinfo, so every
value read from the database goes through ensure_utc before it is compared
with utcnow().
"""
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
