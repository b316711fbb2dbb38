"""Calendar helpers: intervals, birthdays, financial years, report dates."""

import math
from datetime import date, timedelta
from typing import List

EPOCH = date(1970, 1, 1)

# Financial years end on 31 March
FINANCIAL_YEAR_END_MONTH = 3
FINANCIAL_YEAR_END_DAY = 31


def day_interval(start: date, stop: date) -> int:
    """Whole days from start to stop (negative if stop precedes start)."""
    return (stop - start).days


def days_after(day: date, n: int) -> date:
    """Date n days after the given date."""
    return day + timedelta(days=int(n))


def days_since_epoch(day: date) -> int:
    return (day - EPOCH).days


def years_after(day: date, n: int) -> date:
    """Same calendar day n years later, with 29 February mapped to the 28th."""
    try:
        return day.replace(year=day.year + n)
    except ValueError:
        return day.replace(year=day.year + n, day=28)


def years_before(day: date, n: int) -> date:
    return years_after(day, -n)


def years_between(start: date, stop: date) -> int:
    """Complete years elapsed between two dates (an age in years)."""
    years = stop.year - start.year
    if (stop.month, stop.day) < (start.month, start.day):
        years -= 1
    return years


def day_of_year(day: date) -> int:
    """Zero-based offset of the date within its calendar year."""
    return (day - date(day.year, 1, 1)).days


def financial_year_end(day: date) -> date:
    """The 31 March on or after the given date."""
    year_end = date(day.year, FINANCIAL_YEAR_END_MONTH, FINANCIAL_YEAR_END_DAY)
    if day > year_end:
        year_end = date(day.year + 1, FINANCIAL_YEAR_END_MONTH, FINANCIAL_YEAR_END_DAY)
    return year_end


def financial_year(day: date) -> int:
    """Financial year label: the calendar year in which it ends."""
    return financial_year_end(day).year


def day_seq(beginning: date, end: date, interval: int = 7) -> List[date]:
    """Dates from beginning (inclusive) to end (exclusive) every interval days.

    Raises:
        ValueError: If the interval is not positive.
    """
    if interval <= 0:
        raise ValueError(f"interval must be positive, got {interval}")
    dates = []
    current = beginning
    while current < end:
        dates.append(current)
        current = current + timedelta(days=interval)
    return dates


def round_half_up(x: float) -> int:
    """Round to the nearest integer with halves rounded up."""
    return int(math.floor(x + 0.5))
