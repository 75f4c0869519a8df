from datetime import date, datetime, timedelta
from typing import Generator, List, Optional, Union

DateLike = Union[date, datetime, str]

FULL_WEEK = 7
WORK_WEEK = 5


def to_date(value: DateLike) -> date:
    """Accept a date, a datetime or an ISO string (a time suffix is ignored)"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.split("T")[0])


def get_monday(value: Optional[DateLike] = None) -> date:
    """Monday of the week containing the given day (today by default)"""
    day = to_date(value) if value is not None else date.today()
    return day - timedelta(days=day.weekday())


def iter_week_days(week_start: DateLike, days: int = FULL_WEEK) -> Generator[date, None, None]:
    monday = get_monday(week_start)
    for offset in range(days):
        yield monday + timedelta(days=offset)


def week_dates(week_start: DateLike, days: int = FULL_WEEK) -> List[str]:
    """ISO dates of the week starting at the Monday of week_start"""
    if days not in (FULL_WEEK, WORK_WEEK):
        raise ValueError(f"A week has {FULL_WEEK} or {WORK_WEEK} days, got {days}")
    return [day.isoformat() for day in iter_week_days(week_start, days)]


def shift_week(week_start: DateLike, weeks: int) -> date:
    return get_monday(week_start) + timedelta(weeks=weeks)
