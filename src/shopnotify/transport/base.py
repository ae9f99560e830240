"""Transport protocol shared by every channel provider."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pydantic import BaseModel


class TransportResult(BaseModel):
    """Outcome of a single provider call."""

    success: bool
    message_id: str | None = None
    group_id: str | None = None
    error: str | None = None


@runtime_checkable
class ChannelTransport(Protocol):
    """Send primitives the dispatcher relies on.

    Implementations report provider rejections as ``success=False``; they
    may still raise on network faults, which the dispatcher absorbs.
    """

    async def send_sms(self, to: str, message: str) -> TransportResult: ...

    async def send_whatsapp_business(
        self, to: str, message: str, media_url: str | None = None
    ) -> TransportResult: ...

    async def send_whatsapp_cloud_otp(
        self, to: str, otp_code: str, language: str | None = None
    ) -> TransportResult: ...

    async def close(self) -> None: ...
