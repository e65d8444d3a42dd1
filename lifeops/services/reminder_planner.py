"""
Reminder Planner
Decides when a single-task reminder should fire and how urgent it is.

All day arithmetic is done on the user's local calendar: "today" is the
start of the day containing `now` in the user's timezone, and a task's due
day is the calendar date of its due date.
"""
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional, Tuple

from lifeops.models.reminders import (
    DigestDecision,
    ReminderDecision,
    ReminderKind,
    ReminderPreferences,
    TimeOfDay,
)
from lifeops.models.tasks import Task
from lifeops.services.schedule_service import as_date

DIGEST_LOOKAHEAD_DAYS = 7


def to_local(now: datetime, prefs: ReminderPreferences) -> datetime:
    """`now` in the user's timezone. Naive values are taken as local wall-clock time."""
    if now.tzinfo is None:
        return now.replace(tzinfo=prefs.tzinfo)
    return now.astimezone(prefs.tzinfo)


def days_between(start: date, end: date) -> int:
    return (end - start).days


def days_until_due(task: Task, today: date) -> int:
    return days_between(today, as_date(task.due_date))


def slot_on(day: date, slot: TimeOfDay, prefs: ReminderPreferences) -> datetime:
    return datetime.combine(day, time(slot.hour, slot.minute), tzinfo=prefs.tzinfo)


def next_daily_slot(local_now: datetime, slot: TimeOfDay, prefs: ReminderPreferences) -> datetime:
    """Today's slot if it is still ahead of `local_now`, otherwise tomorrow's."""
    candidate = slot_on(local_now.date(), slot, prefs)
    if candidate <= local_now:
        candidate = slot_on(local_now.date() + timedelta(days=1), slot, prefs)
    return candidate


def classify(days: int) -> ReminderKind:
    if days < 0:
        return ReminderKind.OVERDUE
    if days == 0:
        return ReminderKind.DUE_TODAY
    return ReminderKind.DUE_SOON


def plan(task: Task, prefs: ReminderPreferences, now: datetime) -> Optional[ReminderDecision]:
    """
    Plan the next reminder for a pending task.

    Returns None when the task is completed, reminders are off, overdue
    reminders are off for an overdue task, or the reminder would fire at or
    before `now`.

    Inside the reminder window (overdue, or due within `days_before` days) the
    reminder fires at the next daily slot, and its kind reflects the task's
    urgency on the day it fires. Further out, a single reminder is scheduled
    `days_before` days ahead of the due date.
    """
    if task.completed_at is not None or not prefs.enabled:
        return None

    local_now = to_local(now, prefs)
    today = local_now.date()
    days = days_until_due(task, today)

    if days < 0 and not prefs.overdue_reminders:
        return None

    if days <= prefs.days_before:
        fire_at = next_daily_slot(local_now, prefs.reminder_time, prefs)
        days_at_fire = days_until_due(task, fire_at.date())
        kind = classify(days_at_fire)
        if kind is ReminderKind.OVERDUE and not prefs.overdue_reminders:
            return None
    else:
        fire_day = as_date(task.due_date) - timedelta(days=prefs.days_before)
        fire_at = slot_on(fire_day, prefs.reminder_time, prefs)
        days_at_fire = prefs.days_before
        kind = ReminderKind.SCHEDULED

    if fire_at <= local_now:
        return None

    return ReminderDecision(fire_at=fire_at, kind=kind, days_until_due=days_at_fire)


def plan_for_day(task: Task, prefs: ReminderPreferences, day: date) -> Optional[ReminderDecision]:
    """
    The reminder that fires on the user's local `day`, if any.

    Unlike `plan`, the result does not depend on the time of day, so every
    dispatch run on the same day sees the same decision whether or not its
    slot has already passed. The kind is the task's urgency on `day`.
    """
    if task.completed_at is not None or not prefs.enabled:
        return None

    days = days_until_due(task, day)
    if days > prefs.days_before:
        return None

    kind = classify(days)
    if kind is ReminderKind.OVERDUE and not prefs.overdue_reminders:
        return None

    return ReminderDecision(
        fire_at=slot_on(day, prefs.reminder_time, prefs),
        kind=kind,
        days_until_due=days,
    )


def plan_digest(
    tasks: Iterable[Task],
    prefs: ReminderPreferences,
    now: datetime,
) -> Optional[DigestDecision]:
    """Daily summary of overdue and upcoming pending tasks, fired tomorrow at `digest_time`."""
    if not prefs.enabled or not prefs.daily_digest:
        return None

    local_now = to_local(now, prefs)
    today = local_now.date()

    overdue_count = 0
    upcoming_count = 0
    for task in tasks:
        if task.completed_at is not None:
            continue
        days = days_until_due(task, today)
        if days < 0:
            overdue_count += 1
        elif days <= DIGEST_LOOKAHEAD_DAYS:
            upcoming_count += 1

    if overdue_count == 0 and upcoming_count == 0:
        return None

    return DigestDecision(
        fire_at=slot_on(today + timedelta(days=1), prefs.digest_time, prefs),
        overdue_count=overdue_count,
        upcoming_count=upcoming_count,
    )


def plan_local_notifications(
    tasks: Iterable[Task],
    prefs: ReminderPreferences,
    now: datetime,
) -> List[Tuple[Task, ReminderDecision]]:
    """
    Per-task reminders for a device that schedules its own notifications.

    The device keeps one scheduled notification per task id, which stands in
    for the ledger on this path.
    """
    planned: List[Tuple[Task, ReminderDecision]] = []
    for task in tasks:
        decision = plan(task, prefs, now)
        if decision is not None:
            planned.append((task, decision))
    planned.sort(key=lambda item: item[1].fire_at)
    return planned
