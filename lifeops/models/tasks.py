"""Task (obligation) model and its Mongo document mapping."""
from datetime import datetime
from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, Field

from lifeops.models.schedule import ScheduleSpec, schedule_from_storage, schedule_to_storage

TaskCategory = Literal["FINANCE", "LEGAL", "HOME", "HEALTH", "DIGITAL", "OTHER"]


class Task(BaseModel):
    """A recurring or one-time obligation tracked for a user."""
    id: str = Field(alias="_id")
    user_id: str
    title: str
    category: TaskCategory = "OTHER"
    schedule: ScheduleSpec
    due_date: datetime = Field(..., description="Due date of the current occurrence, carried at noon")
    completed_at: Optional[datetime] = Field(
        default=None, description="Set when the current occurrence is done; None while pending"
    )
    completion_count: int = Field(default=0, ge=0)
    household_id: Optional[str] = None
    notes: Optional[str] = None
    cost: Optional[float] = None

    class Config:
        populate_by_name = True
        from_attributes = True
        frozen = True
        json_encoders = {
            datetime: lambda v: v.isoformat(),
        }

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None


def task_from_document(doc: Dict[str, Any]) -> Task:
    """
    Build a Task from a tasks-collection document.

    Raises ScheduleError on a bad schedule and ValidationError on bad or
    missing fields.
    """
    schedule = schedule_from_storage(doc.get("schedule_type"), doc.get("schedule_value"))
    return Task(
        id=str(doc["_id"]),
        user_id=str(doc["user_id"]) if doc.get("user_id") is not None else None,
        title=doc.get("title"),
        category=doc.get("category", "OTHER"),
        schedule=schedule,
        due_date=doc.get("due_date"),
        completed_at=doc.get("completed_at"),
        completion_count=doc.get("completion_count", 0),
        household_id=doc.get("household_id"),
        notes=doc.get("notes"),
        cost=doc.get("cost"),
    )


def task_to_document(task: Task) -> Dict[str, Any]:
    schedule_type, schedule_value = schedule_to_storage(task.schedule)
    return {
        "_id": task.id,
        "user_id": task.user_id,
        "title": task.title,
        "category": task.category,
        "schedule_type": schedule_type,
        "schedule_value": schedule_value,
        "due_date": task.due_date,
        "completed_at": task.completed_at,
        "completion_count": task.completion_count,
        "household_id": task.household_id,
        "notes": task.notes,
        "cost": task.cost,
    }
