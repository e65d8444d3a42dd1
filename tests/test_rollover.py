"""Tests for the completion/rollover state machine and advance-on-read listing."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from factories import make_task
from lifeops.models.schedule import EveryNMonths, FixedDate, Yearly
from lifeops.services.rollover_service import (
    advance_if_needed,
    complete_task,
    needs_rollover,
    uncomplete_task,
)
from lifeops.services.task_service import TaskNotFoundError, TaskService
from lifeops.services.task_store import InMemoryTaskStore, MongoTaskStore

COMPLETED = datetime(2025, 1, 5, 12, 0)

# =============================================================================
# ADVANCE IF NEEDED
# =============================================================================


class TestAdvanceIfNeeded:
    """Transitions between pending and completed-for-current-occurrence."""

    def test_pending_task_never_moves(self) -> None:
        task = make_task(due=datetime(2024, 1, 10, 12, 0))
        assert advance_if_needed(task, date(2025, 6, 1)) is task

    def test_completed_fixed_date_is_terminal(self, fixed_schedule: FixedDate) -> None:
        task = make_task(schedule=fixed_schedule, due=datetime(2025, 1, 5, 12, 0), completed_at=COMPLETED)
        for today in (date(2025, 1, 6), date(2026, 1, 1), date(2030, 12, 31)):
            result = advance_if_needed(task, today)
            assert result is task
            assert result.completed_at == COMPLETED
            assert result.due_date == datetime(2025, 1, 5, 12, 0)

    def test_completed_within_grace_period_stays_completed(self, monthly_schedule: EveryNMonths) -> None:
        task = make_task(schedule=monthly_schedule, due=datetime(2025, 1, 10, 12, 0), completed_at=COMPLETED)
        assert advance_if_needed(task, date(2025, 1, 10)) is task
        assert not needs_rollover(task, date(2025, 1, 10))

    def test_completed_past_due_rolls_over(self, monthly_schedule: EveryNMonths) -> None:
        task = make_task(schedule=monthly_schedule, due=datetime(2025, 1, 10, 12, 0), completed_at=COMPLETED)
        result = advance_if_needed(task, date(2025, 1, 11))
        assert result.due_date == datetime(2025, 2, 10, 12, 0)
        assert result.completed_at is None
        # The stored task itself is untouched
        assert task.completed_at == COMPLETED

    def test_rollover_keeps_completion_count(self, monthly_schedule: EveryNMonths) -> None:
        task = make_task(
            schedule=monthly_schedule,
            due=datetime(2025, 1, 10, 12, 0),
            completed_at=COMPLETED,
            completion_count=4,
        )
        assert advance_if_needed(task, date(2025, 1, 11)).completion_count == 4

    def test_yearly_rollover_lands_after_today(self) -> None:
        task = make_task(schedule=Yearly(month=3, day=1), due=datetime(2023, 3, 1, 12, 0), completed_at=COMPLETED)
        result = advance_if_needed(task, date(2025, 6, 1))
        assert result.due_date == datetime(2026, 3, 1, 12, 0)

    @pytest.mark.parametrize("today", [date(2025, 1, 11), date(2025, 3, 20), date(2026, 1, 1)])
    def test_idempotent(self, monthly_schedule: EveryNMonths, today: date) -> None:
        task = make_task(schedule=monthly_schedule, due=datetime(2025, 1, 10, 12, 0), completed_at=COMPLETED)
        once = advance_if_needed(task, today)
        twice = advance_if_needed(once, today)
        assert twice == once


class TestCompletion:

    def test_complete_sets_noon_and_counts(self) -> None:
        task = make_task(completion_count=2)
        done = complete_task(task, datetime(2025, 6, 8, 18, 45))
        assert done.completed_at == datetime(2025, 6, 8, 12, 0)
        assert done.completion_count == 3
        assert done.due_date == task.due_date

    def test_uncomplete_clears_flag_only(self) -> None:
        task = make_task(completed_at=COMPLETED, completion_count=3)
        reopened = uncomplete_task(task)
        assert reopened.completed_at is None
        assert reopened.completion_count == 3

    def test_uncomplete_pending_is_noop(self) -> None:
        task = make_task()
        assert uncomplete_task(task) is task


# =============================================================================
# TASK SERVICE (ADVANCE ON READ)
# =============================================================================


class TestTaskService:

    async def test_list_tasks_writes_rollover_back(self, monthly_schedule: EveryNMonths) -> None:
        task = make_task(schedule=monthly_schedule, due=datetime(2025, 1, 10, 12, 0), completed_at=COMPLETED)
        store = InMemoryTaskStore([task])
        service = TaskService(store)

        listed = await service.list_tasks("user-1", date(2025, 1, 20))

        assert listed[0].due_date == datetime(2025, 2, 10, 12, 0)
        assert listed[0].completed_at is None
        stored = await store.get_task(task.id)
        assert stored.due_date == datetime(2025, 2, 10, 12, 0)
        assert stored.completed_at is None

    async def test_list_tasks_twice_advances_once(self, monthly_schedule: EveryNMonths) -> None:
        task = make_task(schedule=monthly_schedule, due=datetime(2025, 1, 10, 12, 0), completed_at=COMPLETED)
        store = InMemoryTaskStore([task])
        service = TaskService(store)

        await service.list_tasks("user-1", date(2025, 1, 20))
        listed = await service.list_tasks("user-1", date(2025, 1, 20))

        assert listed[0].due_date == datetime(2025, 2, 10, 12, 0)

    async def test_lost_rollover_race_rereads_store(self, monthly_schedule: EveryNMonths) -> None:
        stale = make_task(schedule=monthly_schedule, due=datetime(2025, 1, 10, 12, 0), completed_at=COMPLETED)
        store = InMemoryTaskStore([stale.model_copy(update={"due_date": datetime(2025, 2, 10, 12, 0), "completed_at": None})])

        async def stale_listing(user_id: str):
            return [stale]

        store.list_tasks_for_user = stale_listing
        listed = await TaskService(store).list_tasks("user-1", date(2025, 1, 20))

        assert listed[0].due_date == datetime(2025, 2, 10, 12, 0)
        assert (await store.get_task(stale.id)).due_date == datetime(2025, 2, 10, 12, 0)

    async def test_household_tasks_are_listed(self) -> None:
        own = make_task("own")
        shared = make_task("shared", user_id="user-2", household_id="house-1")
        other = make_task("other", user_id="user-3")
        store = InMemoryTaskStore([own, shared, other], household_members={"user-1": "house-1"})

        listed = await TaskService(store).list_tasks("user-1", date(2025, 6, 1))

        assert {task.id for task in listed} == {"own", "shared"}

    async def test_complete_and_uncomplete(self) -> None:
        store = InMemoryTaskStore([make_task()])
        service = TaskService(store)

        done = await service.complete("task-1", datetime(2025, 6, 9, 8, 0))
        assert done.completion_count == 1
        assert (await store.get_task("task-1")).completed_at == datetime(2025, 6, 9, 12, 0)

        reopened = await service.uncomplete("task-1")
        assert reopened.completed_at is None
        assert reopened.completion_count == 1

    async def test_complete_unknown_task(self) -> None:
        with pytest.raises(TaskNotFoundError):
            await TaskService(InMemoryTaskStore()).complete("missing", datetime(2025, 6, 9))


# =============================================================================
# MONGO TASK STORE
# =============================================================================


class FakeCursor:

    def __init__(self, docs):
        self.docs = docs

    def sort(self, field, direction):
        self.docs = sorted(self.docs, key=lambda doc: doc.get(field) or datetime.min, reverse=direction < 0)
        return self

    async def to_list(self, length=None):
        return list(self.docs)


class FakeTasksCollection:

    def __init__(self, docs):
        self.docs = docs

    def find(self, query):
        return FakeCursor([doc for doc in self.docs if doc.get("user_id") == query.get("user_id")])


class FakeMembersCollection:

    async def find_one(self, query):
        return None


def task_doc(task_id: str, **overrides):
    doc = {
        "_id": task_id,
        "user_id": "user-1",
        "title": "Boiler service",
        "category": "HOME",
        "schedule_type": "EVERY_N_MONTHS",
        "schedule_value": 12,
        "due_date": datetime(2025, 6, 10, 12, 0),
        "completed_at": None,
        "completion_count": 0,
    }
    doc.update(overrides)
    return doc


class TestMongoTaskStore:

    async def test_malformed_rows_are_skipped(self) -> None:
        docs = [
            task_doc("good"),
            task_doc("bad-category", category="TRAVEL"),
            task_doc("no-title", title=None),
            task_doc("negative-count", completion_count=-1),
            task_doc("bad-schedule", schedule_type="WEEKLY"),
        ]
        del docs[2]["title"]
        store = MongoTaskStore(FakeTasksCollection(docs), FakeMembersCollection())

        listed = await TaskService(store).list_tasks("user-1", date(2025, 6, 1))

        assert [task.id for task in listed] == ["good"]
