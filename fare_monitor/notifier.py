from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Protocol

import requests
from telegram import Bot
from telegram.error import TelegramError

from .config import Settings

logger = logging.getLogger(__name__)

TWILIO_API = "https://api.twilio.com/2010-04-01"


class ChannelError(RuntimeError):
    """Delivery through a notification channel failed."""


class AlertChannel(Protocol):
    name: str

    async def send(self, message: str) -> None:
        """Deliver *message*; raise :class:`ChannelError` on failure."""
        ...


class SmsChannel:
    """Text messages through the Twilio REST API."""

    name = "sms"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        phone_from: str,
        phone_to: str,
        *,
        timeout: float = 15.0,
    ) -> None:
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.phone_from = phone_from
        self.phone_to = phone_to
        self.timeout = timeout

    def _post(self, message: str) -> None:
        url = f"{TWILIO_API}/Accounts/{self.account_sid}/Messages.json"
        try:
            resp = requests.post(
                url,
                data={
                    "From": self.phone_from,
                    "To": self.phone_to,
                    "Body": message,
                },
                auth=(self.account_sid, self.auth_token),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ChannelError(
                f"failed to send SMS to {self.phone_to} from "
                f"{self.phone_from}: {exc}"
            ) from exc
        if resp.status_code not in (200, 201):
            raise ChannelError(
                f"failed to send SMS to {self.phone_to} from "
                f"{self.phone_from}: HTTP {resp.status_code} – "
                f"{resp.text[:120]}"
            )

    async def send(self, message: str) -> None:
        await asyncio.to_thread(self._post, message)


class TelegramChannel:
    """Messages from a Telegram bot to a single chat."""

    name = "telegram"

    def __init__(self, token: str, chat_id: str, bot: Bot | None = None) -> None:
        self.chat_id = chat_id
        self.bot = bot or Bot(token=token)

    async def send(self, message: str) -> None:
        try:
            await self.bot.send_message(chat_id=self.chat_id, text=message)
        except TelegramError as exc:
            raise ChannelError(
                f"failed to send Telegram message to {self.chat_id}: {exc}"
            ) from exc


def build_channels(settings: Settings) -> List[AlertChannel]:
    """Return every channel whose credentials are fully configured."""
    channels: List[AlertChannel] = []
    if settings.twilio_configured:
        channels.append(
            SmsChannel(
                settings.twilio_account_sid,  # type: ignore[arg-type]
                settings.twilio_auth_token,  # type: ignore[arg-type]
                settings.twilio_phone_from,  # type: ignore[arg-type]
                settings.twilio_phone_to,  # type: ignore[arg-type]
                timeout=settings.request_timeout_s,
            )
        )
    if settings.telegram_configured:
        channels.append(
            TelegramChannel(
                settings.telegram_token,  # type: ignore[arg-type]
                settings.telegram_chat_id,  # type: ignore[arg-type]
            )
        )
    return channels


class AlertDispatcher:
    """Fan a message out to every enabled channel.

    Channels are independent: one failing (or raising anything at all)
    is logged and does not affect the others or the caller.
    """

    def __init__(self, channels: Iterable[AlertChannel] = ()) -> None:
        self.channels = list(channels)

    @property
    def enabled(self) -> bool:
        return bool(self.channels)

    async def _send_one(self, channel: AlertChannel, message: str) -> bool:
        try:
            await channel.send(message)
        except Exception as exc:
            logger.error("Alert via %s failed: %s", channel.name, exc)
            return False
        logger.info("Alert sent via %s", channel.name)
        return True

    async def dispatch(self, message: str) -> None:
        if not self.channels:
            logger.debug("No alert channels enabled, dropping: %s", message)
            return
        await asyncio.gather(
            *(self._send_one(ch, message) for ch in self.channels)
        )


__all__ = [
    "ChannelError",
    "AlertChannel",
    "SmsChannel",
    "TelegramChannel",
    "build_channels",
    "AlertDispatcher",
]
