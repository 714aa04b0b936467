"""
Timezone utility functions for Four Sigma

Every game date is a UTC calendar date. Nothing here consults the server's
local timezone.
"""

from datetime import date, datetime, time, timedelta

import pytz

# Indexed by date.weekday() (Monday == 0)
WEEKDAY_LABELS = ["M", "T", "W", "Th", "F", "S", "Su"]


def get_utc_time():
    """Get current time in UTC"""
    return datetime.now(pytz.UTC)


def convert_to_utc(dt):
    """Convert a datetime to UTC; naive datetimes are taken to be UTC already"""
    if dt is None:
        return None

    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)

    return dt.astimezone(pytz.UTC)


def utc_date(dt=None):
    """UTC calendar date of a timestamp (now if omitted)"""
    if dt is None:
        dt = get_utc_time()
    return convert_to_utc(dt).date()


def utc_day_bounds(day):
    """Half-open [start, end) UTC datetimes covering a calendar date"""
    start = pytz.UTC.localize(datetime.combine(day, time.min))
    return start, start + timedelta(days=1)


def parse_date(value):
    """Parse a YYYY-MM-DD string into a date"""
    if isinstance(value, date):
        return value
    return datetime.strptime(value, "%Y-%m-%d").date()


def weekday_label(day):
    return WEEKDAY_LABELS[day.weekday()]
