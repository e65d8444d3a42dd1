"""
User stores.
Provide the users a dispatch tick should consider, with their reminder preferences.
"""
import logging
from typing import Dict, List, Optional

from pydantic import ValidationError

from lifeops.models.reminders import ReminderUser

logger = logging.getLogger(__name__)


def is_reminder_candidate(user: ReminderUser) -> bool:
    return user.entitled and user.preferences.enabled and bool(user.channel_addresses())


class InMemoryUserStore:

    def __init__(self, users: Optional[List[ReminderUser]] = None):
        self._users: Dict[str, ReminderUser] = {user.id: user for user in users or []}

    async def list_reminder_users(self) -> List[ReminderUser]:
        return [user for user in self._users.values() if is_reminder_candidate(user)]

    async def get_user(self, user_id: str) -> Optional[ReminderUser]:
        return self._users.get(user_id)

    async def save_user(self, user: ReminderUser) -> None:
        self._users[user.id] = user


class MongoUserStore:

    def __init__(self, collection=None):
        if collection is None:
            from lifeops.db import get_collection
            collection = get_collection("users")
        self.collection = collection

    async def list_reminder_users(self) -> List[ReminderUser]:
        """Entitled users with reminders switched on and at least one channel flag set."""
        cursor = self.collection.find(
            {
                "entitled": True,
                "preferences.enabled": {"$ne": False},
                "$or": [
                    {"email_reminders": True},
                    {"sms_reminders": True},
                    {"push_reminders": True},
                ],
            }
        )
        docs = await cursor.to_list(length=None)

        users: List[ReminderUser] = []
        for doc in docs:
            try:
                user = ReminderUser(**{**doc, "_id": str(doc["_id"])})
            except ValidationError as exc:
                logger.warning(f"Skipping user {doc.get('_id')} with invalid reminder settings: {exc}")
                continue
            if is_reminder_candidate(user):
                users.append(user)
        return users

    async def get_user(self, user_id: str) -> Optional[ReminderUser]:
        doc = await self.collection.find_one({"_id": user_id})
        if not doc:
            return None
        return ReminderUser(**{**doc, "_id": str(doc["_id"])})
