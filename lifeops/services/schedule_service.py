"""
Schedule Calculator
Computes the next due date of an obligation from its schedule.

Month and year arithmetic uses `dateutil.relativedelta`, which clamps to the
end of shorter months (Jan 31 + 1 month = Feb 28/29, Feb 29 + 1 year = Feb 28).
"""
from datetime import date, datetime, time
from typing import Union

from dateutil.relativedelta import relativedelta

from lifeops.models.schedule import (
    EveryNMonths,
    FixedDate,
    ScheduleSpec,
    UnknownScheduleError,
    Yearly,
)

NOON = time(12, 0)


def as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def at_noon(value: Union[date, datetime]) -> datetime:
    """Carry a calendar date at noon so timezone shifts never move it to another day."""
    if isinstance(value, datetime):
        return value.replace(hour=12, minute=0, second=0, microsecond=0)
    return datetime.combine(value, NOON)


def yearly_date(year: int, month: int, day: int) -> date:
    """(year, month, day) clamped to the month's last day, so Feb 29 becomes Feb 28 in non-leap years."""
    return date(year, month, 1) + relativedelta(day=day)


def next_due_date(
    schedule: ScheduleSpec,
    current_due_date: datetime,
    today: Union[date, datetime],
) -> datetime:
    """
    Return the due date of the occurrence after `current_due_date`.

    Recurring schedules always return a date strictly after `today`.
    `FixedDate` returns `current_due_date` unchanged.
    """
    today = as_date(today)

    if isinstance(schedule, FixedDate):
        return current_due_date

    if isinstance(schedule, EveryNMonths):
        # Step from the original anchor so the day-of-month survives short months
        steps = 1
        candidate = current_due_date + relativedelta(months=schedule.months)
        while as_date(candidate) <= today:
            steps += 1
            candidate = current_due_date + relativedelta(months=schedule.months * steps)
        return at_noon(candidate)

    if isinstance(schedule, Yearly):
        candidate = yearly_date(today.year, schedule.month, schedule.day)
        if candidate <= today:
            candidate = yearly_date(today.year + 1, schedule.month, schedule.day)
        return at_noon(candidate)

    raise UnknownScheduleError(f"Unknown schedule kind: {schedule!r}")
