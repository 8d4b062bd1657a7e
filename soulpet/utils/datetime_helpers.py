"""
Standardized Date/Time Handling Utilities

Reset windows for recurring challenges are identified by a period key:
- daily: local calendar date, e.g. "2026-10-19" (resets at local midnight)
- weekly: ISO year-week, e.g. "2026-W43" (resets Monday 00:00 local time)

CRITICAL RULES:
- Always store datetimes as UTC (use to_utc())
- Period keys are computed in the configured local timezone
- Naive datetimes are treated as UTC
"""

import logging
from datetime import datetime, date, timedelta
from typing import Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from soulpet.exceptions import ConfigurationError
from soulpet.models.pet import ResetPeriod

logger = logging.getLogger(__name__)

# Default timezone if none is configured
DEFAULT_TIMEZONE = "UTC"

UTC = ZoneInfo("UTC")


def resolve_timezone(tz: Union[str, ZoneInfo, None]) -> ZoneInfo:
    """
    Resolve a timezone name to a ZoneInfo

    Raises:
        ConfigurationError: If the timezone name is unknown
    """
    if isinstance(tz, ZoneInfo):
        return tz
    try:
        return ZoneInfo(tz or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigurationError(f"Unknown timezone '{tz}'", config_key="PET_TIMEZONE", cause=e)


def now_utc() -> datetime:
    """
    Get current datetime in UTC (timezone-aware)

    Returns:
        Current datetime in UTC with timezone info
    """
    return datetime.now(UTC)


def to_utc(dt: datetime) -> datetime:
    """Convert datetime to UTC for storage (naive values are assumed UTC)"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_local(dt: datetime, tz: Union[str, ZoneInfo, None] = DEFAULT_TIMEZONE) -> datetime:
    """
    Convert datetime to the given local timezone

    Args:
        dt: Datetime (assumed UTC if naive)
        tz: Timezone name or ZoneInfo

    Returns:
        Datetime in the local timezone
    """
    if dt.tzinfo is None:
        logger.debug(f"Received naive datetime, assuming UTC: {dt}")
    return to_utc(dt).astimezone(resolve_timezone(tz))


def daily_key(day: date) -> str:
    """Period key of a calendar day"""
    return day.isoformat()


def weekly_key(day: date) -> str:
    """Period key of the ISO week containing day"""
    iso_year, iso_week, _ = day.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def period_key_of(
    period: ResetPeriod,
    now: datetime,
    tz: Union[str, ZoneInfo, None] = DEFAULT_TIMEZONE
) -> str:
    """
    Canonical identifier of the reset window instance containing now

    Args:
        period: daily or weekly
        now: Moment to key (assumed UTC if naive)
        tz: Local timezone the window boundaries are computed in

    Returns:
        "YYYY-MM-DD" for daily, "YYYY-Www" for weekly

    Example:
        >>> period_key_of(ResetPeriod.WEEKLY, datetime(2026, 1, 1, tzinfo=UTC))
        '2026-W01'
    """
    local_day = to_local(now, tz).date()
    period = ResetPeriod(period)
    if period is ResetPeriod.DAILY:
        return daily_key(local_day)
    return weekly_key(local_day)


def period_start(
    period: ResetPeriod,
    now: datetime,
    tz: Union[str, ZoneInfo, None] = DEFAULT_TIMEZONE
) -> datetime:
    """Start (local midnight, returned in UTC) of the window containing now"""
    local = to_local(now, tz)
    start_day = local.date()
    if ResetPeriod(period) is ResetPeriod.WEEKLY:
        start_day -= timedelta(days=start_day.weekday())
    start = datetime(start_day.year, start_day.month, start_day.day, tzinfo=local.tzinfo)
    return to_utc(start)
