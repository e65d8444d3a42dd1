"""
Cron API Routes
Entry point for the scheduled reminder sweep.
"""
import logging
import secrets
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from lifeops.config import settings
from lifeops.services.channels import build_channels
from lifeops.services.dispatch_service import ReminderDispatcher
from lifeops.services.reminder_ledger import MongoReminderLedger
from lifeops.services.task_store import MongoTaskStore
from lifeops.services.user_store import MongoUserStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"])


def verify_cron_secret(x_cron_secret: Optional[str] = Header(default=None)) -> None:
    expected = settings.cron_secret
    if not expected or not x_cron_secret or not secrets.compare_digest(x_cron_secret, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def get_user_store():
    return MongoUserStore()


def get_dispatcher() -> ReminderDispatcher:
    return ReminderDispatcher(
        task_store=MongoTaskStore(),
        ledger=MongoReminderLedger(),
        channels=build_channels(settings),
    )


def get_now() -> datetime:
    return datetime.now(timezone.utc)


async def _send_reminders(user_store, dispatcher: ReminderDispatcher, now: datetime) -> JSONResponse:
    try:
        users = await user_store.list_reminder_users()
        result = await dispatcher.dispatch(users, now)
    except Exception as exc:
        logger.exception(f"Cron job error: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        ) from exc

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=jsonable_encoder({"success": True, "data": result}),
    )


@router.post("/send-reminders", dependencies=[Depends(verify_cron_secret)])
async def send_reminders(
    user_store=Depends(get_user_store),
    dispatcher: ReminderDispatcher = Depends(get_dispatcher),
    now: datetime = Depends(get_now),
):
    """Run one reminder dispatch tick for every eligible user."""
    return await _send_reminders(user_store, dispatcher, now)


@router.get("/send-reminders", dependencies=[Depends(verify_cron_secret)])
async def send_reminders_get(
    user_store=Depends(get_user_store),
    dispatcher: ReminderDispatcher = Depends(get_dispatcher),
    now: datetime = Depends(get_now),
):
    """Same as POST, for schedulers that can only issue GET requests."""
    return await _send_reminders(user_store, dispatcher, now)
