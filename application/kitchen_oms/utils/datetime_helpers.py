"""
Utility functions for date and time handling.
"""

from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo
IST = ZoneInfo("Asia/Kolkata")


def get_ist_now() -> datetime:
    """Current datetime in IST timezone."""
    return datetime.now(IST)


def as_ist(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a stored datetime to IST.

    SQLite hands back naive values; those were written as IST so the zone is
    re-attached rather than converted.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=IST)
    return dt.astimezone(IST)
