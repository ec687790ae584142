import os
from datetime import datetime
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "UTC"


def fest_timezone() -> ZoneInfo:
    return ZoneInfo(os.environ.get("APP_TIMEZONE") or DEFAULT_TIMEZONE)


def now_tz() -> datetime:
    return datetime.now(fest_timezone())


def as_fest_time(dt: datetime) -> datetime:
    """Naive values coming back from the database are read as fest-local time."""
    tz = fest_timezone()
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def has_started(event_date: datetime) -> bool:
    return as_fest_time(event_date) < now_tz()
