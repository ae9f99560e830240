"""In-process transport for tests and local development."""

from __future__ import annotations

import asyncio
import uuid
from collections import Counter

from pydantic import BaseModel

from shopnotify.core.types import NotificationChannel
from shopnotify.transport.base import TransportResult


class SentMessage(BaseModel):
    channel: NotificationChannel
    to: str
    content: str
    media_url: str | None = None


class MockTransport:
    """Records every call and succeeds unless told otherwise.

    ``fail`` makes a channel return a rejection, ``raise_on`` makes it
    raise, and ``delay`` holds every call open for that many seconds.
    """

    def __init__(
        self,
        fail: set[NotificationChannel] | None = None,
        raise_on: set[NotificationChannel] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.fail = set(fail or ())
        self.raise_on = set(raise_on or ())
        self.delay = delay
        self.sent: list[SentMessage] = []

    async def send_sms(self, to: str, message: str) -> TransportResult:
        return await self._deliver(NotificationChannel.SMS, to, message)

    async def send_whatsapp_business(
        self, to: str, message: str, media_url: str | None = None
    ) -> TransportResult:
        return await self._deliver(NotificationChannel.WHATSAPP, to, message, media_url)

    async def send_whatsapp_cloud_otp(
        self, to: str, otp_code: str, language: str | None = None
    ) -> TransportResult:
        return await self._deliver(NotificationChannel.WHATSAPP_CLOUD, to, otp_code)

    async def close(self) -> None:
        pass

    def call_count(self, channel: NotificationChannel | None = None) -> int:
        if channel is None:
            return len(self.sent)
        return Counter(m.channel for m in self.sent)[channel]

    def reset(self) -> None:
        self.sent.clear()

    async def _deliver(
        self,
        channel: NotificationChannel,
        to: str,
        content: str,
        media_url: str | None = None,
    ) -> TransportResult:
        self.sent.append(SentMessage(channel=channel, to=to, content=content, media_url=media_url))
        if self.delay:
            await asyncio.sleep(self.delay)
        if channel in self.raise_on:
            raise ConnectionError(f"{channel.value} transport unreachable")
        if channel in self.fail:
            return TransportResult(success=False, error=f"{channel.value} rejected")
        return TransportResult(success=True, message_id=f"mock-{uuid.uuid4().hex[:12]}")
