"""
Task stores.
Read a user's tasks (own and household-shared) and write rollovers back.
"""
import logging
from typing import Dict, List, Optional

from pydantic import ValidationError

from lifeops.models.schedule import ScheduleError
from lifeops.models.tasks import Task, task_from_document, task_to_document

logger = logging.getLogger(__name__)


class InMemoryTaskStore:
    """Dictionary-backed store used by tests and local runs."""

    def __init__(self, tasks: Optional[List[Task]] = None, household_members: Optional[Dict[str, str]] = None):
        self._tasks: Dict[str, Task] = {task.id: task for task in tasks or []}
        # user_id -> household_id
        self._household_members: Dict[str, str] = dict(household_members or {})

    async def list_tasks_for_user(self, user_id: str) -> List[Task]:
        household_id = self._household_members.get(user_id)
        tasks = [
            task
            for task in self._tasks.values()
            if task.user_id == user_id or (household_id and task.household_id == household_id)
        ]
        return sorted(tasks, key=lambda t: t.due_date)

    async def get_task(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    async def save_task(self, task: Task) -> None:
        self._tasks[task.id] = task

    async def save_rollover(self, before: Task, after: Task) -> bool:
        """Apply a rollover only if the stored task still matches `before`."""
        current = self._tasks.get(before.id)
        if current is None:
            return False
        if current.due_date != before.due_date or current.completed_at != before.completed_at:
            return False
        self._tasks[before.id] = current.model_copy(
            update={"due_date": after.due_date, "completed_at": after.completed_at}
        )
        return True


class MongoTaskStore:
    """Store backed by the tasks and household_members collections."""

    def __init__(self, tasks_collection=None, members_collection=None):
        if tasks_collection is None or members_collection is None:
            from lifeops.db import get_collection
            tasks_collection = tasks_collection or get_collection("tasks")
            members_collection = members_collection or get_collection("household_members")
        self.tasks_collection = tasks_collection
        self.members_collection = members_collection

    async def list_tasks_for_user(self, user_id: str) -> List[Task]:
        membership = await self.members_collection.find_one({"user_id": user_id})
        if membership:
            query = {"$or": [{"user_id": user_id}, {"household_id": membership["household_id"]}]}
        else:
            query = {"user_id": user_id}

        cursor = self.tasks_collection.find(query).sort("due_date", 1)
        docs = await cursor.to_list(length=None)

        tasks: List[Task] = []
        for doc in docs:
            try:
                tasks.append(task_from_document(doc))
            except (ScheduleError, ValidationError) as exc:
                logger.warning(f"Skipping unreadable task {doc.get('_id')}: {exc}")
        return tasks

    async def get_task(self, task_id: str) -> Optional[Task]:
        doc = await self.tasks_collection.find_one({"_id": task_id})
        return task_from_document(doc) if doc else None

    async def save_task(self, task: Task) -> None:
        doc = task_to_document(task)
        await self.tasks_collection.replace_one({"_id": task.id}, doc, upsert=True)

    async def save_rollover(self, before: Task, after: Task) -> bool:
        """
        Write the advanced due date and cleared completion in one update.

        The filter matches the pre-rollover state, so when two readers race
        only one of them advances the occurrence.
        """
        result = await self.tasks_collection.update_one(
            {
                "_id": before.id,
                "due_date": before.due_date,
                "completed_at": before.completed_at,
            },
            {"$set": {"due_date": after.due_date, "completed_at": after.completed_at}},
        )
        return result.modified_count == 1
