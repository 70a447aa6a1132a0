"""
Standardized Date/Time Handling Utilities

RULES:
- All stored timestamps are timezone-aware UTC (use now_utc() / to_utc())
- Streak days are calendar dates in GAMIFICATION_TIMEZONE, never the
  caller's locale (use today_canonical())
- Never mix naive and aware datetimes
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from reading_journey.config import GAMIFICATION_TIMEZONE

logger = logging.getLogger(__name__)

UTC = ZoneInfo("UTC")


def canonical_timezone() -> ZoneInfo:
    """Zone that defines "today" for every user"""
    return ZoneInfo(GAMIFICATION_TIMEZONE)


def now_utc() -> datetime:
    """
    Get current datetime in UTC (timezone-aware)

    Returns:
        Current datetime in UTC with timezone info
    """
    return datetime.now(UTC)


def to_utc(dt: datetime) -> datetime:
    """
    Convert datetime to UTC for storage

    Naive datetimes are taken to be in the canonical timezone.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=canonical_timezone())
        logger.debug(f"Interpreted naive datetime in {GAMIFICATION_TIMEZONE}: {dt}")
    return dt.astimezone(UTC)


def today_canonical(now: Optional[datetime] = None) -> date:
    """
    Calendar date of `now` (default: current time) in the canonical timezone

    Args:
        now: Instant to convert; naive values are treated as UTC
    """
    if now is None:
        now = now_utc()
    elif now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return now.astimezone(canonical_timezone()).date()


def previous_day(day: date) -> date:
    return day - timedelta(days=1)
