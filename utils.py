"""
Utility helpers for studio-local time handling.

Class dates and times are wall-clock values with no timezone attached; the
configured studio timezone only decides what "now" is.
"""
import uuid
from datetime import date, datetime, timedelta
from typing import Optional, Tuple

import pytz

from settings import settings

UTC = pytz.UTC

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def generate_id(prefix: str) -> str:
    """Generate a prefixed UUID."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def studio_tz():
    return pytz.timezone(settings.timezone)


def now_local() -> datetime:
    """Current studio wall-clock time as a naive datetime"""
    return datetime.now(studio_tz()).replace(tzinfo=None)


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


def week_bounds(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Monday 00:00:00 and the following Sunday 23:59:59.999 of the week containing `now`.

    Sunday belongs to the week that started six days earlier.
    """
    today = (now or now_local()).replace(hour=0, minute=0, second=0, microsecond=0)
    day_of_week = today.isoweekday() % 7  # Sunday = 0, Monday = 1, ..., Saturday = 6
    if day_of_week == 0:
        monday = today - timedelta(days=6)
    else:
        monday = today - timedelta(days=day_of_week - 1)
    sunday = (monday + timedelta(days=6)).replace(hour=23, minute=59, second=59, microsecond=999000)
    return monday, sunday


def parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def weekday_name(value) -> str:
    return WEEKDAYS[parse_date(value).weekday()]


def class_label(cls: dict, instructor_name: str) -> str:
    """e.g. "Mon Oct 19, 09:00 (Asha) - 3 spots" """
    day = parse_date(cls["date"])
    spots_left = cls["capacity"] - cls["booked_slots"]
    return f"{day.strftime('%a %b')} {day.day}, {cls['start_time']} ({instructor_name}) - {spots_left} spots"

