"""
Task Service
Reads task lists with rollover applied at the read boundary, and records
completions.
"""
from datetime import date, datetime
from typing import List, Optional, Union
import logging

from lifeops.models.schedule import ScheduleError
from lifeops.models.tasks import Task
from lifeops.services.rollover_service import advance_if_needed, complete_task, uncomplete_task

logger = logging.getLogger(__name__)


class TaskNotFoundError(LookupError):
    pass


class TaskService:
    """Task reads and completion writes on top of a task store."""

    def __init__(self, store):
        self.store = store

    async def list_tasks(self, user_id: str, today: Union[date, datetime]) -> List[Task]:
        """
        Return the user's tasks as of `today`.

        Completed tasks whose occurrence has passed are advanced and written
        back before anything else reads their due date.
        """
        tasks = await self.store.list_tasks_for_user(user_id)
        result: List[Task] = []
        for task in tasks:
            try:
                advanced = advance_if_needed(task, today)
            except ScheduleError as exc:
                # Left as stored; a completed task is never planned, so it gets no reminder
                logger.warning(f"Cannot roll task {task.id} over: {exc}")
                result.append(task)
                continue
            if advanced is not task:
                saved = await self.store.save_rollover(task, advanced)
                if saved:
                    logger.info(
                        f"Rolled task {task.id} over from {task.due_date.date()} to {advanced.due_date.date()}"
                    )
                else:
                    # Another reader advanced it first; re-read the stored state
                    stored = await self.store.get_task(task.id)
                    advanced = advance_if_needed(stored, today) if stored else advanced
            result.append(advanced)
        return result

    async def _get_task(self, task_id: str) -> Task:
        task: Optional[Task] = await self.store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(f"Task {task_id} not found")
        return task

    async def complete(self, task_id: str, now: datetime) -> Task:
        task = advance_if_needed(await self._get_task(task_id), now)
        completed = complete_task(task, now)
        await self.store.save_task(completed)
        return completed

    async def uncomplete(self, task_id: str) -> Task:
        task = await self._get_task(task_id)
        reopened = uncomplete_task(task)
        if reopened is not task:
            await self.store.save_task(reopened)
        return reopened
