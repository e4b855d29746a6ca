"""Calendar helpers for registry windows and credit periods."""

import calendar
from datetime import date, timedelta
from typing import Optional, Tuple


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last day of a calendar month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def add_months(day: date, months: int) -> date:
    """Shift ``day`` by whole months, clamping to the end of shorter months."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def shift_years(day: date, years: int) -> date:
    """Same calendar day ``years`` later (28 Feb when the 29th does not exist)."""
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        return day.replace(year=day.year + years, day=28)


def anniversary_window(years: int, months_ahead: int, today: Optional[date] = None) -> Tuple[date, date]:
    """
    Creation-date window of companies celebrating ``years`` years in the
    calendar month that falls ``months_ahead`` months from ``today``.
    """
    target = add_months(today or date.today(), months_ahead)
    return month_bounds(target.year - years, target.month)


def period_bounds(period: str, today: Optional[date] = None) -> Tuple[date, date]:
    """Current credit period: the calendar month, or just today for daily plans."""
    today = today or date.today()
    if period == "daily":
        return today, today
    return month_bounds(today.year, today.month)


def days_ago(days: int, today: Optional[date] = None) -> date:
    return (today or date.today()) - timedelta(days=days)
