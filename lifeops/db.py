# lifeops/db.py
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase, AsyncIOMotorCollection

from lifeops.config import settings

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


def get_client() -> AsyncIOMotorClient:
    """
    Returns a singleton AsyncIOMotorClient. Creates it if not already created.
    """
    global _client
    if _client is None:
        if not settings.mongo_uri:
            raise RuntimeError("MONGO_URI not set in environment")
        _client = AsyncIOMotorClient(settings.mongo_uri)
    return _client


def get_database() -> AsyncIOMotorDatabase:
    """
    Returns the configured database object.
    """
    global _db
    if _db is None:
        if not settings.mongo_db_name:
            raise RuntimeError("MONGO_DB_NAME not set in environment")
        _db = get_client()[settings.mongo_db_name]
    return _db


def get_collection(name: str) -> AsyncIOMotorCollection:
    """
    Convenience to get a collection from the configured DB.
    Usage: tasks = get_collection('tasks'); await tasks.find_one({...})
    """
    return get_database()[name]


def close_client() -> None:
    """
    Close the motor client - call this on application shutdown.
    """
    global _client, _db
    if _client is not None:
        _client.close()
        _client = None
        _db = None


async def create_indexes() -> None:
    users = get_collection("users")
    await users.create_index("email", unique=True)
    await users.create_index([("entitled", 1), ("preferences.enabled", 1)])

    tasks = get_collection("tasks")
    await tasks.create_index("user_id")
    await tasks.create_index("household_id")
    await tasks.create_index([("user_id", 1), ("due_date", 1)])

    household_members = get_collection("household_members")
    await household_members.create_index("user_id")

    # First writer wins: one ledger row per occurrence and reminder kind
    task_reminders = get_collection("task_reminders")
    await task_reminders.create_index(
        [("task_id", 1), ("reminder_kind", 1), ("due_date_snapshot", 1)],
        unique=True,
    )
    await task_reminders.create_index("user_id")
