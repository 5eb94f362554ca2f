"""
Consecutive-month streak detection for frequency achievements

A month qualifies when its approved hours meet the per-month minimum.
The streak is the longest run of qualifying months, each exactly one
calendar month before the previously accepted qualifying month.
"""

from datetime import date
from typing import Iterable

from volunteer_achievements.models.achievement import MonthlyHours


def months_between(later: date, earlier: date) -> int:
    """Whole calendar months from `earlier` to `later`"""
    return (later.year - earlier.year) * 12 + (later.month - earlier.month)


def max_consecutive_months(monthly_hours: Iterable[MonthlyHours], min_hours_per_month: float) -> int:
    """
    Longest run of consecutive qualifying months

    Args:
        monthly_hours: Approved hours per month, most recent month first
        min_hours_per_month: Hours a month needs to qualify

    Returns:
        Maximum run length seen across the whole list

    A qualifying month that is not adjacent to the last accepted
    qualifying month restarts the run at 1. A non-qualifying month
    resets the run to 0 but does not move the last accepted month.
    """
    consecutive = 0
    best = 0
    last_month = None

    for entry in monthly_hours:
        if entry.hours >= min_hours_per_month:
            if last_month is None or months_between(last_month, entry.month) == 1:
                consecutive += 1
            else:
                consecutive = 1
            best = max(best, consecutive)
            last_month = entry.month
        else:
            consecutive = 0

    return best
