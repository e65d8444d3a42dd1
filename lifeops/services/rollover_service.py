"""
Rollover Advancer
Moves a completed obligation to its next occurrence once the completed
occurrence's due date has passed. Applied on every read of a task list.
"""
from datetime import date, datetime
from typing import Union

from lifeops.models.schedule import FixedDate
from lifeops.models.tasks import Task
from lifeops.services.schedule_service import as_date, at_noon, next_due_date


def needs_rollover(task: Task, today: Union[date, datetime]) -> bool:
    if task.completed_at is None:
        # Pending tasks stay put however overdue they are
        return False
    if isinstance(task.schedule, FixedDate):
        return False
    return as_date(task.due_date) < as_date(today)


def advance_if_needed(task: Task, today: Union[date, datetime]) -> Task:
    """
    Return the task as it should be read on `today`.

    The due date and the completion flag change together in a single copy;
    a task that needs no rollover is returned as is. Calling this again with
    the same `today` is a no-op.
    """
    if not needs_rollover(task, today):
        return task

    return task.model_copy(
        update={
            "due_date": next_due_date(task.schedule, task.due_date, today),
            "completed_at": None,
        }
    )


def complete_task(task: Task, now: datetime) -> Task:
    """Mark the current occurrence done. The due date only moves on a later rollover."""
    return task.model_copy(
        update={
            "completed_at": at_noon(now),
            "completion_count": task.completion_count + 1,
        }
    )


def uncomplete_task(task: Task) -> Task:
    """Undo a completion. The completion count is never decremented."""
    if task.completed_at is None:
        return task
    return task.model_copy(update={"completed_at": None})
