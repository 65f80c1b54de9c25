import calendar
from datetime import datetime, time, timezone
from typing import Tuple


def utcnow() -> datetime:
    # MongoDB hands datetimes back as naive UTC; keep everything in that form.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def month_range(value: datetime) -> Tuple[datetime, datetime]:
    last_day = calendar.monthrange(value.year, value.month)[1]
    start = datetime(value.year, value.month, 1)
    end = datetime.combine(start.replace(day=last_day), time.max)
    return start, end


def year_range(year: int) -> Tuple[datetime, datetime]:
    return datetime(year, 1, 1), datetime.combine(datetime(year, 12, 31), time.max)


def day_range(value: datetime) -> Tuple[datetime, datetime]:
    start = datetime(value.year, value.month, value.day)
    return start, datetime.combine(start, time.max)
