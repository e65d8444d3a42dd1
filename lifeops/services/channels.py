"""
Outbound channel adapters.
Each adapter sends an already-rendered reminder to one address and reports
success as a bool. Timeouts are enforced by the dispatcher.
"""
import asyncio
import logging
from typing import Dict, Optional

import httpx

from lifeops.config import Settings, settings as default_settings
from lifeops.models.reminders import ReminderChannelName
from lifeops.services.email_service import send_email
from lifeops.services.reminder_messages import ReminderMessage

logger = logging.getLogger(__name__)


class EmailChannel:
    name = ReminderChannelName.EMAIL

    async def send(self, address: str, message: ReminderMessage) -> bool:
        try:
            # smtplib blocks; keep it off the event loop
            await asyncio.to_thread(send_email, address, message.subject, message.html, message.text)
            return True
        except RuntimeError as exc:
            logger.warning(f"Email to {address} failed: {exc}")
            return False


class SmsChannel:
    """Sends SMS through the Twilio REST API."""
    name = ReminderChannelName.SMS

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self.client = client
        self.url = (
            f"https://api.twilio.com/2010-04-01/Accounts/{settings.twilio_account_sid}/Messages.json"
        )

    async def send(self, address: str, message: ReminderMessage) -> bool:
        data = {"From": self.settings.twilio_phone_number, "To": address, "Body": message.sms_text}
        auth = (self.settings.twilio_account_sid, self.settings.twilio_auth_token)
        try:
            if self.client is not None:
                response = await self.client.post(self.url, data=data, auth=auth)
            else:
                async with httpx.AsyncClient(timeout=self.settings.delivery_timeout_seconds) as client:
                    response = await client.post(self.url, data=data, auth=auth)
        except httpx.HTTPError as exc:
            logger.warning(f"SMS to {address} failed: {exc}")
            return False

        if response.status_code >= 400:
            logger.warning(f"SMS API error: {response.status_code} {response.text}")
            return False
        return True


class PushChannel:
    """Sends push notifications through the Expo push API."""
    name = ReminderChannelName.PUSH

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self.client = client

    async def send(self, address: str, message: ReminderMessage) -> bool:
        payload = {
            "to": address,
            "title": message.subject,
            "body": message.push_text,
            "sound": "default",
            "channelId": "task-reminders",
            "data": {"type": "task-reminder"},
        }
        headers = {"Accept": "application/json"}
        if self.settings.expo_access_token:
            headers["Authorization"] = f"Bearer {self.settings.expo_access_token}"

        try:
            if self.client is not None:
                response = await self.client.post(self.settings.expo_push_url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.settings.delivery_timeout_seconds) as client:
                    response = await client.post(self.settings.expo_push_url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning(f"Push to {address} failed: {exc}")
            return False

        if response.status_code >= 400:
            logger.warning(f"Push API error: {response.status_code}")
            return False

        # Expo reports per-ticket errors inside a 200 response
        try:
            ticket = response.json().get("data", {})
        except ValueError:
            ticket = {}
        if isinstance(ticket, list):
            ticket = ticket[0] if ticket else {}
        if ticket.get("status") == "error":
            logger.warning(f"Push ticket error for {address}: {ticket.get('message')}")
            return False
        return True


class LoggingChannel:
    """Development stand-in that logs the message instead of sending it."""

    def __init__(self, name: ReminderChannelName):
        self.name = name

    async def send(self, address: str, message: ReminderMessage) -> bool:
        body = message.sms_text if self.name is ReminderChannelName.SMS else message.text
        logger.info(f"[{self.name.value} fallback] to={address} subject={message.subject!r}\n{body}")
        return True


def build_channels(settings: Settings = default_settings) -> Dict[ReminderChannelName, object]:
    """
    Adapters for every configured transport.

    With `debug` on, unconfigured transports fall back to LoggingChannel;
    otherwise they are left out and users on them get no reminder.
    """
    channels: Dict[ReminderChannelName, object] = {}

    if settings.smtp_configured:
        channels[ReminderChannelName.EMAIL] = EmailChannel()
    if settings.twilio_configured:
        channels[ReminderChannelName.SMS] = SmsChannel(settings)
    channels[ReminderChannelName.PUSH] = PushChannel(settings)

    if settings.debug:
        for name in ReminderChannelName:
            channels.setdefault(name, LoggingChannel(name))
    return channels
