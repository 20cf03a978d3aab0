"""Date ranges behind the listing tabs (tonight, tomorrow, weekend, week)."""

from __future__ import annotations

from datetime import datetime, time, timedelta
from enum import Enum


class DateFilter(str, Enum):
    TONIGHT = "tonight"
    TOMORROW = "tomorrow"
    WEEKEND = "weekend"
    WEEK = "week"


def start_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min, tzinfo=value.tzinfo)


def end_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.max, tzinfo=value.tzinfo)


def get_date_range(date_filter: DateFilter | None, now: datetime) -> tuple[datetime, datetime]:
    """Return ``(start, end)`` for a listing tab; no tab means the coming week."""
    today = start_of_day(now)

    if date_filter is DateFilter.TONIGHT:
        return now, end_of_day(now)

    if date_filter is DateFilter.TOMORROW:
        tomorrow = today + timedelta(days=1)
        return tomorrow, end_of_day(tomorrow)

    if date_filter is DateFilter.WEEKEND:
        # Saturday is 5, Sunday is 6; on either day the weekend starts today.
        weekday = today.weekday()
        saturday = today + timedelta(days=0 if weekday >= 5 else 5 - weekday)
        if weekday == 6:
            return today, end_of_day(today)
        return saturday, end_of_day(saturday + timedelta(days=1))

    return now, end_of_day(today + timedelta(days=7))
