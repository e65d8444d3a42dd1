"""Tests for the cron endpoint and the user stores behind it."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from factories import make_prefs, make_task, make_user
from lifeops.config import settings
from lifeops.main import app
from lifeops.models.reminders import ReminderChannelName
from lifeops.routes import cron
from lifeops.services.dispatch_service import ReminderDispatcher
from lifeops.services.reminder_ledger import InMemoryReminderLedger
from lifeops.services.task_store import InMemoryTaskStore
from lifeops.services.user_store import InMemoryUserStore, MongoUserStore

SECRET = "cron-secret"
NOW = datetime(2025, 6, 7, 9, 30, tzinfo=timezone.utc)


class RecordingChannel:

    def __init__(self, name):
        self.name = name
        self.sent = []

    async def send(self, address, message):
        self.sent.append(address)
        return True


class FakeCursor:

    def __init__(self, docs):
        self.docs = docs

    async def to_list(self, length=None):
        return list(self.docs)


class FakeUsersCollection:

    def __init__(self, docs):
        self.docs = docs
        self.queries = []

    def find(self, query):
        self.queries.append(query)
        return FakeCursor(self.docs)


@pytest.fixture
def channel():
    return RecordingChannel(ReminderChannelName.EMAIL)


@pytest.fixture
def client(monkeypatch, channel):
    monkeypatch.setattr(settings, "cron_secret", SECRET)
    user_store = InMemoryUserStore([make_user(), make_user("user-2", entitled=False)])
    dispatcher = ReminderDispatcher(
        task_store=InMemoryTaskStore([make_task(), make_task("task-2", user_id="user-2")]),
        ledger=InMemoryReminderLedger(),
        channels={channel.name: channel},
    )
    app.dependency_overrides[cron.get_user_store] = lambda: user_store
    app.dependency_overrides[cron.get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[cron.get_now] = lambda: NOW
    yield TestClient(app)
    app.dependency_overrides.clear()


# =============================================================================
# CRON ENDPOINT
# =============================================================================


class TestSendRemindersEndpoint:

    def test_missing_secret_is_rejected(self, client, channel) -> None:
        response = client.post("/api/cron/send-reminders")
        assert response.status_code == 401
        assert channel.sent == []

    def test_wrong_secret_is_rejected(self, client) -> None:
        response = client.post("/api/cron/send-reminders", headers={"x-cron-secret": "nope"})
        assert response.status_code == 401

    def test_unset_secret_rejects_everything(self, client, monkeypatch) -> None:
        monkeypatch.setattr(settings, "cron_secret", None)
        response = client.post("/api/cron/send-reminders", headers={"x-cron-secret": ""})
        assert response.status_code == 401

    def test_runs_dispatch(self, client, channel) -> None:
        response = client.post("/api/cron/send-reminders", headers={"x-cron-secret": SECRET})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"] == {"sent": 1, "skipped": 0, "users_processed": 1, "cancelled": False}
        assert channel.sent == ["user-1@example.com"]

    def test_get_is_an_alias_and_reruns_are_safe(self, client, channel) -> None:
        client.post("/api/cron/send-reminders", headers={"x-cron-secret": SECRET})
        response = client.get("/api/cron/send-reminders", headers={"x-cron-secret": SECRET})

        assert response.status_code == 200
        assert response.json()["data"]["sent"] == 0
        assert response.json()["data"]["skipped"] == 1
        assert len(channel.sent) == 1

    def test_store_failure_is_a_server_error(self, client) -> None:
        class BrokenStore:
            async def list_reminder_users(self):
                raise RuntimeError("connection reset")

        app.dependency_overrides[cron.get_user_store] = lambda: BrokenStore()
        response = client.post("/api/cron/send-reminders", headers={"x-cron-secret": SECRET})
        assert response.status_code == 500
        assert response.json()["detail"] == "Internal server error"


# =============================================================================
# USER STORES
# =============================================================================


class TestUserStores:

    async def test_in_memory_filters_candidates(self) -> None:
        store = InMemoryUserStore(
            [
                make_user("a"),
                make_user("b", entitled=False),
                make_user("c", preferences=make_prefs(enabled=False)),
                make_user("d", email_reminders=False),
            ]
        )
        assert [user.id for user in await store.list_reminder_users()] == ["a"]

    async def test_mongo_store_skips_invalid_users(self) -> None:
        collection = FakeUsersCollection(
            [
                {"_id": "u1", "email": "u1@example.com", "entitled": True, "email_reminders": True},
                {"_id": "u2", "email": "u2@example.com", "entitled": True, "email_reminders": True,
                 "preferences": {"timezone": "Mars/Olympus_Mons"}},
                {"_id": "u3", "entitled": True, "email_reminders": True},
            ]
        )

        users = await MongoUserStore(collection=collection).list_reminder_users()

        assert [user.id for user in users] == ["u1"]
        assert users[0].preferences.days_before == 1
        assert collection.queries[0]["entitled"] is True
