"""
Batch Reminder Dispatcher
Sweeps every eligible user, works out which of today's reminders have
reached their fire time, sends them and records them in the ledger.

Re-running is safe: anything already in the ledger for the same
(task, kind, due-date snapshot) is skipped. Anything that failed to send, or
whose run never happened, stays out of the ledger and goes out on the next
run the same local day.
"""
import asyncio
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from lifeops.config import settings
from lifeops.models.reminders import (
    DispatchResult,
    LedgerKey,
    ReminderChannelName,
    ReminderUser,
)
from lifeops.services.reminder_messages import ReminderItem, ReminderMessage, render_reminder
from lifeops.services.reminder_planner import plan_for_day, to_local
from lifeops.services.task_service import TaskService
from lifeops.services.user_store import is_reminder_candidate

logger = logging.getLogger(__name__)


class ReminderDispatcher:
    """
    Dispatches reminders for a batch of users.

    A reminder is due once its `fire_at` on the user's current local day is
    at or before `now` and it is not in the ledger yet. Users are processed
    concurrently, at most `max_workers` at a time; every channel call is
    bounded by `delivery_timeout` seconds and a timeout counts as a failed send.
    """

    def __init__(
        self,
        task_store,
        ledger,
        channels: Dict[ReminderChannelName, object],
        delivery_timeout: Optional[float] = None,
        max_workers: Optional[int] = None,
    ):
        self.task_service = TaskService(task_store)
        self.ledger = ledger
        self.channels = channels
        self.delivery_timeout = delivery_timeout or settings.delivery_timeout_seconds
        self.max_workers = max(1, max_workers or settings.dispatch_max_workers)

    async def dispatch(
        self,
        users: Iterable[ReminderUser],
        now: datetime,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> DispatchResult:
        """
        Run one dispatch tick.

        Setting `cancel_event` stops new user batches and new deliveries from
        starting; deliveries already in flight complete and are recorded.
        """
        semaphore = asyncio.Semaphore(self.max_workers)

        async def run(user: ReminderUser) -> Optional[Tuple[int, int]]:
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    return None
                try:
                    return await self._dispatch_user(user, now, cancel_event)
                except Exception:
                    logger.exception(f"Reminder dispatch failed for user {user.id}")
                    return (0, 0)

        eligible = [user for user in users if self._is_eligible(user)]
        outcomes = await asyncio.gather(*(run(user) for user in eligible))

        result = DispatchResult(cancelled=bool(cancel_event is not None and cancel_event.is_set()))
        for outcome in outcomes:
            if outcome is None:
                continue
            result.users_processed += 1
            result.sent += outcome[0]
            result.skipped += outcome[1]

        logger.info(
            f"Reminder dispatch: users={result.users_processed} sent={result.sent} "
            f"skipped={result.skipped} cancelled={result.cancelled}"
        )
        return result

    def _is_eligible(self, user: ReminderUser) -> bool:
        if not is_reminder_candidate(user):
            return False
        return any(name in self.channels for name, _ in user.channel_addresses())

    async def _dispatch_user(
        self,
        user: ReminderUser,
        now: datetime,
        cancel_event: Optional[asyncio.Event],
    ) -> Tuple[int, int]:
        prefs = user.preferences
        local_now = to_local(now, prefs)

        tasks = await self.task_service.list_tasks(user.id, local_now.date())

        skipped = 0
        due: List[Tuple[LedgerKey, ReminderItem]] = []
        for task in tasks:
            decision = plan_for_day(task, prefs, local_now.date())
            if decision is None or decision.fire_at > local_now:
                continue

            key = LedgerKey(task_id=task.id, kind=decision.kind, due_date_snapshot=task.due_date)
            if await self.ledger.has_delivered(key):
                skipped += 1
                continue

            due.append(
                (
                    key,
                    ReminderItem(
                        task_id=task.id,
                        title=task.title,
                        category=task.category,
                        due_date=task.due_date,
                        days_until_due=decision.days_until_due,
                        kind=decision.kind,
                    ),
                )
            )

        if not due:
            return 0, skipped

        if cancel_event is not None and cancel_event.is_set():
            return 0, skipped + len(due)

        message = render_reminder([item for _, item in due], user_name=user.name)
        targets = [
            (self.channels[name], address)
            for name, address in user.channel_addresses()
            if name in self.channels
        ]
        results = await asyncio.gather(
            *(self._deliver(channel, address, message) for channel, address in targets)
        )

        if not any(results):
            logger.warning(f"No channel delivered {len(due)} reminder(s) for user {user.id}; retrying next tick")
            return 0, skipped + len(due)

        for key, _ in due:
            if not await self.ledger.record(key, user.id, now):
                logger.debug(f"Reminder for task {key.task_id} was recorded by another dispatch run")
        return len(due), skipped

    async def _deliver(self, channel, address: str, message: ReminderMessage) -> bool:
        try:
            return await asyncio.wait_for(channel.send(address, message), timeout=self.delivery_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{channel.name.value} delivery to {address} timed out after {self.delivery_timeout}s")
            return False
        except Exception:
            logger.exception(f"{channel.name.value} delivery to {address} failed")
            return False
