from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Always use UTC for comparison"""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Ensure a datetime read back from storage is timezone-aware UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
