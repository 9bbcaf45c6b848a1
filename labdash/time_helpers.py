# labdash/time_helpers.py
from datetime import datetime, date
from zoneinfo import ZoneInfo
from flask import current_app

DEFAULT_TZ = "UTC"


def app_tz():
    return current_app.config.get("APP_TZ", ZoneInfo(DEFAULT_TZ))


def now_local():
    return datetime.now(app_tz())


def to_naive_utc(dt):
    """Aware datetimes are stored naive in UTC, like ``datetime.utcnow`` defaults."""
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(ZoneInfo("UTC")).replace(tzinfo=None)


def parse_date(value):
    """Parse ``YYYY-MM-DD`` (or the date part of a full ISO timestamp) into a date.

    Empty values give None; anything else unparseable raises ValueError.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    if len(s) > 10 and s[10] in "T ":
        # keep the calendar day as written, no timezone shift
        s = s[:10]
    return datetime.strptime(s, "%Y-%m-%d").date()


def parse_datetime(value):
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    s = str(value).strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return datetime.fromisoformat(s)


def format_date_for_input(value):
    """Format a date/datetime as the ``YYYY-MM-DD`` value of a date input.

    Uses the value's own calendar day; an aware datetime is not shifted to
    UTC first, so parsing the result gives back the same day.
    """
    if value is None:
        return ""
    if isinstance(value, datetime):
        value = value.date()
    return value.strftime("%Y-%m-%d")
