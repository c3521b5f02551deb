"""Datetime utilities for consistent timezone handling across the application."""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Get current UTC time - standardized across the application.

    Returns:
        Current datetime in UTC timezone.
    """
    return datetime.now(timezone.utc)


def from_unix(value: Optional[int | float]) -> Optional[datetime]:
    """Convert a provider epoch-seconds timestamp into an aware UTC datetime.

    Returns None for a missing value so optional provider fields stay optional.
    """
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (as stored by TIMESTAMP WITHOUT TIME ZONE columns) as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
