"""Term week arithmetic and ``HH:MM`` helpers.

Weeks are 1-based and anchored on the term start date: week 1 covers
``[term_start, term_start + 7 days)``. Weekdays follow ``date.weekday()``
(0 = Monday ... 6 = Sunday). Nothing here converts timezones; callers pass
dates that are already local to the school.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo


def date_for_week(term_start: date, week_number: int, weekday: int) -> date:
    if int(week_number) < 1:
        raise ValueError('week_number must be >= 1')
    if int(weekday) < 0 or int(weekday) > 6:
        raise ValueError('weekday must be between 0 and 6')
    offset = (int(weekday) - term_start.weekday()) % 7
    return term_start + timedelta(days=(int(week_number) - 1) * 7 + offset)


def week_for_date(term_start: date, target: date) -> int:
    return (target - term_start).days // 7 + 1


def week_start(term_start: date, week_number: int) -> date:
    return term_start + timedelta(days=(int(week_number) - 1) * 7)


def parse_hhmm(value: str) -> time:
    hh, mm = str(value).split(':', 1)
    hour = int(hh)
    minute = int(mm)
    if hour < 0 or hour > 23 or minute < 0 or minute > 59:
        raise ValueError('time must be HH:MM')
    return time(hour=hour, minute=minute)


def to_minutes(value: str) -> int:
    parsed = parse_hhmm(value)
    return parsed.hour * 60 + parsed.minute


def format_minutes(total_minutes: int) -> str:
    hours, minutes = divmod(int(total_minutes), 60)
    return f'{hours:02d}:{minutes:02d}'


def add_minutes(value: str, minutes: int) -> str:
    return format_minutes(to_minutes(value) + int(minutes))


def ranges_overlap(start_a: str, end_a: str, start_b: str, end_b: str) -> bool:
    # Half-open ranges: touching ends do not overlap.
    return to_minutes(start_a) < to_minutes(end_b) and to_minutes(start_b) < to_minutes(end_a)


def combine_local(day: date, hhmm: str, tz: ZoneInfo | None = None) -> datetime:
    return datetime.combine(day, parse_hhmm(hhmm), tzinfo=tz)
