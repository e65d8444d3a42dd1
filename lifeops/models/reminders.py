"""Reminder models: user preferences, planner decisions and ledger entries."""
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, EmailStr, Field, field_validator


class ReminderKind(str, Enum):
    OVERDUE = "overdue"
    DUE_TODAY = "due-today"
    DUE_SOON = "due-soon"
    SCHEDULED = "scheduled"


class ReminderChannelName(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"


class TimeOfDay(BaseModel):
    hour: int = Field(..., ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)

    class Config:
        frozen = True


class ReminderPreferences(BaseModel):
    """Per-user reminder settings. Read-only to the scheduler."""
    enabled: bool = True
    reminder_time: TimeOfDay = Field(default_factory=lambda: TimeOfDay(hour=9, minute=0))
    days_before: int = Field(default=1, ge=0, description="Days before the due date to start reminding")
    overdue_reminders: bool = True
    daily_digest: bool = False
    digest_time: TimeOfDay = Field(default_factory=lambda: TimeOfDay(hour=8, minute=0))
    timezone: str = Field(default="UTC", description="IANA timezone used for the user's local day")

    class Config:
        populate_by_name = True
        from_attributes = True
        frozen = True

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class ReminderUser(BaseModel):
    """A user as seen by the dispatcher: addresses, channel flags and preferences."""
    id: str = Field(alias="_id")
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    phone_number: Optional[str] = None
    push_token: Optional[str] = None
    entitled: bool = Field(default=False, description="Plan gate for reminders, trusted as given")
    email_reminders: bool = False
    sms_reminders: bool = False
    push_reminders: bool = False
    preferences: ReminderPreferences = Field(default_factory=ReminderPreferences)

    class Config:
        populate_by_name = True
        from_attributes = True

    def channel_addresses(self) -> List[Tuple[ReminderChannelName, str]]:
        """(channel, address) pairs the user has switched on and filled in."""
        addresses: List[Tuple[ReminderChannelName, str]] = []
        if self.email_reminders and self.email:
            addresses.append((ReminderChannelName.EMAIL, str(self.email)))
        if self.sms_reminders and self.phone_number:
            addresses.append((ReminderChannelName.SMS, self.phone_number))
        if self.push_reminders and self.push_token:
            addresses.append((ReminderChannelName.PUSH, self.push_token))
        return addresses


class ReminderDecision(BaseModel):
    """When to fire a single-task reminder and how urgent it is."""
    fire_at: datetime
    kind: ReminderKind
    days_until_due: int

    class Config:
        frozen = True


class DigestDecision(BaseModel):
    fire_at: datetime
    overdue_count: int
    upcoming_count: int

    class Config:
        frozen = True


class LedgerKey(BaseModel):
    """Dedup key: one delivered reminder per task, kind and due-date snapshot."""
    task_id: str
    kind: ReminderKind
    due_date_snapshot: datetime

    class Config:
        frozen = True


class ReminderLedgerEntry(BaseModel):
    key: LedgerKey
    user_id: str
    delivered_at: datetime

    class Config:
        frozen = True


class DispatchResult(BaseModel):
    sent: int = 0
    skipped: int = 0
    users_processed: int = 0
    cancelled: bool = False
