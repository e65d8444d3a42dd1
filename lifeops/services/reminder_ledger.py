"""
Reminder Ledger
Append-only record of delivered reminders, keyed by (task, kind, due-date snapshot).

The snapshot is the due date the reminder was computed against, so a rollover
or an edited due date starts a fresh occurrence with no ledger history.
Concurrent writers on the same key resolve first-writer-wins.
"""
import asyncio
import logging
from datetime import datetime
from typing import Dict, Optional

from pymongo.errors import DuplicateKeyError

from lifeops.models.reminders import LedgerKey, ReminderLedgerEntry

logger = logging.getLogger(__name__)


class InMemoryReminderLedger:
    """Process-local ledger for tests and single-process runs."""

    def __init__(self):
        self._entries: Dict[LedgerKey, ReminderLedgerEntry] = {}
        self._lock = asyncio.Lock()

    async def has_delivered(self, key: LedgerKey) -> bool:
        return key in self._entries

    async def record(self, key: LedgerKey, user_id: str, delivered_at: datetime) -> bool:
        """Append an entry. Returns False if the key was already recorded."""
        async with self._lock:
            if key in self._entries:
                logger.debug(f"Ledger entry already present for {key.task_id}/{key.kind.value}")
                return False
            self._entries[key] = ReminderLedgerEntry(key=key, user_id=user_id, delivered_at=delivered_at)
            return True

    async def get_entry(self, key: LedgerKey) -> Optional[ReminderLedgerEntry]:
        return self._entries.get(key)

    def __len__(self) -> int:
        return len(self._entries)


class MongoReminderLedger:
    """Ledger backed by the task_reminders collection and its unique compound index."""

    def __init__(self, collection=None):
        if collection is None:
            from lifeops.db import get_collection
            collection = get_collection("task_reminders")
        self.collection = collection

    @staticmethod
    def _key_filter(key: LedgerKey) -> dict:
        return {
            "task_id": key.task_id,
            "reminder_kind": key.kind.value,
            "due_date_snapshot": key.due_date_snapshot,
        }

    async def has_delivered(self, key: LedgerKey) -> bool:
        doc = await self.collection.find_one(self._key_filter(key), projection={"_id": 1})
        return doc is not None

    async def record(self, key: LedgerKey, user_id: str, delivered_at: datetime) -> bool:
        """Insert an entry. A duplicate key means another writer got there first."""
        doc = {**self._key_filter(key), "user_id": user_id, "delivered_at": delivered_at}
        try:
            await self.collection.insert_one(doc)
            return True
        except DuplicateKeyError:
            logger.debug(f"Ledger write lost race for {key.task_id}/{key.kind.value}")
            return False

    async def get_entry(self, key: LedgerKey) -> Optional[ReminderLedgerEntry]:
        doc = await self.collection.find_one(self._key_filter(key))
        if not doc:
            return None
        return ReminderLedgerEntry(key=key, user_id=doc["user_id"], delivered_at=doc["delivered_at"])
