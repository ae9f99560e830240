"""Notification dispatch: recipient selection, channel fan-out and failover."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from shopnotify.core.config import StoreConfig
from shopnotify.core.types import (
    LogStatus,
    NotificationChannel,
    NotificationTrigger,
    RecipientType,
    recipient_type_for,
)
from shopnotify.notifications.errors import (
    ConfigurationError,
    NotificationError,
    RecipientNotFoundError,
)
from shopnotify.notifications.models import (
    NotificationContext,
    NotificationLogEntry,
    NotificationSettings,
    SendResult,
)
from shopnotify.notifications.rendering import render
from shopnotify.notifications.variables import VariableResolver
from shopnotify.repositories import resolve
from shopnotify.repositories.protocols import CommerceRepository, NotificationRepository
from shopnotify.transport.base import ChannelTransport, TransportResult

logger = logging.getLogger(__name__)

_OTP_PATTERN = re.compile(r"(\d{6})")
DEFAULT_OTP = "000000"

# Dual mode always fans out over these two, in this order.
DUAL_CHANNELS: tuple[NotificationChannel, ...] = (
    NotificationChannel.SMS,
    NotificationChannel.WHATSAPP,
)

OTP_MESSAGE = (
    "Votre code de vérification {store_name} est: {code}\n\n"
    "Ce code expire dans 10 minutes.\n\n"
    "Ne partagez jamais ce code."
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Envelope:
    """Everything fixed for one send before a channel is picked."""

    trigger: NotificationTrigger
    recipient: str
    variables: dict[str, Any]
    context: NotificationContext
    recipient_name: str = field(init=False)

    def __post_init__(self) -> None:
        self.recipient_name = (
            self.variables.get("customer_name")
            or self.variables.get("billing_first_name")
            or "Admin"
        )


class NotificationDispatcher:
    """Sends one trigger to one recipient over the configured channels.

    Settings are read from the store on every call so admin changes apply
    to the next send. Every outcome, success or failure, is written to the
    notification log before ``send`` returns, and no transport error ever
    escapes to the caller.
    """

    def __init__(
        self,
        store: NotificationRepository,
        commerce: CommerceRepository,
        transport: ChannelTransport,
        resolver: VariableResolver | None = None,
        *,
        store_config: StoreConfig | None = None,
        timeout_seconds: float = 15.0,
        otp_language: str = "fr",
    ) -> None:
        self._store = store
        self._commerce = commerce
        self._transport = transport
        self._store_config = store_config or StoreConfig()
        self._resolver = resolver or VariableResolver(commerce, self._store_config)
        self._timeout = timeout_seconds
        self._otp_language = otp_language

    @property
    def transport(self) -> ChannelTransport:
        return self._transport

    # -- public API ----------------------------------------------------------

    async def send(
        self,
        trigger: NotificationTrigger,
        recipient_type: RecipientType | None = None,
        context: NotificationContext | None = None,
        *,
        send_both: bool = False,
    ) -> SendResult:
        """Send *trigger* in dual (``send_both``) or failover mode."""
        recipient_type = recipient_type or recipient_type_for(trigger)
        context = context or NotificationContext()

        try:
            settings = await self._load_settings()
            recipient = await self._resolve_recipient(settings, recipient_type, context)
        except NotificationError as exc:
            logger.warning("Not sending %s: %s", trigger.value, exc)
            return SendResult(success=False, error=str(exc))

        variables = await self._resolver.resolve(trigger, context)
        envelope = _Envelope(
            trigger=trigger, recipient=recipient, variables=variables, context=context
        )

        if send_both:
            return await self._send_dual(settings, envelope)
        return await self._send_failover(settings, envelope)

    async def send_via_channel(
        self,
        channel: NotificationChannel,
        phone: str,
        content: str,
        media_url: str | None = None,
    ) -> TransportResult:
        """Deliver already-rendered content over one channel.

        Transport exceptions and timeouts come back as failed results.
        WhatsApp Cloud only carries OTP templates, so the first six-digit
        run in *content* is sent as the code.
        """
        try:
            return await asyncio.wait_for(
                self._call_transport(channel, phone, content, media_url),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("%s send to %s timed out after %.1fs", channel.value, phone, self._timeout)
            return TransportResult(success=False, error="Transport timed out")
        except Exception as exc:
            logger.warning("%s send to %s raised: %s", channel.value, phone, exc)
            return TransportResult(success=False, error=str(exc) or type(exc).__name__)

    async def send_invoice_pdf(
        self, order_id: str, invoice_url: str, *, paid: bool = False
    ) -> SendResult:
        """Send the invoice PDF itself as a WhatsApp attachment.

        Complements the INVOICE_CREATED / INVOICE_PAID text notifications.
        """
        trigger = NotificationTrigger.INVOICE_PAID if paid else NotificationTrigger.INVOICE_CREATED
        order = await resolve(self._commerce.get_order(order_id))
        if order is None:
            logger.error("Invoice PDF: order %s not found", order_id)
            return SendResult(success=False, error="Order not found")

        phone = order.user.contact_phone
        settings = await resolve(self._store.get_settings())
        if settings is not None and settings.test_mode and settings.test_phone_number:
            phone = settings.test_phone_number
        if not phone:
            logger.error("Invoice PDF: no customer phone for order %s", order_id)
            return SendResult(success=False, error="Recipient phone number not found")

        invoice_number = order.invoice.invoice_number if order.invoice else order.order_number
        label = "Facture PAYEE" if paid else "Facture"
        message = f"{label} #{invoice_number} - {self._store_config.name}"

        result = await self.send_via_channel(
            NotificationChannel.WHATSAPP, phone, message, media_url=invoice_url
        )
        logger.info(
            "Invoice PDF %s for order %s: whatsapp=%s", trigger.value, order.order_number, result.success
        )
        await self._log(
            NotificationLogEntry(
                trigger=trigger,
                channel=NotificationChannel.WHATSAPP,
                recipient_phone=phone,
                recipient_name=order.user.name or "Client",
                content=f"[PDF] {message}",
                status=LogStatus.SENT if result.success else LogStatus.FAILED,
                provider_id=result.message_id,
                error_message=None if result.success else result.error,
                order_id=order_id,
                sent_at=_utcnow() if result.success else None,
            )
        )
        return SendResult(
            success=result.success,
            channel=NotificationChannel.WHATSAPP,
            message_id=result.message_id,
            error=result.error,
        )

    async def send_otp(self, phone: str, code: str) -> SendResult:
        """Send a verification code over SMS and WhatsApp, then WhatsApp Cloud."""
        message = OTP_MESSAGE.format(store_name=self._store_config.name, code=code)
        sms, whatsapp = await asyncio.gather(
            self.send_via_channel(NotificationChannel.SMS, phone, message),
            self.send_via_channel(NotificationChannel.WHATSAPP, phone, message),
        )
        if sms.success or whatsapp.success:
            winner = NotificationChannel.SMS if sms.success else NotificationChannel.WHATSAPP
            return SendResult(
                success=True,
                channel=winner,
                channels={"sms": sms.success, "whatsapp": whatsapp.success},
                message_id=sms.message_id if sms.success else whatsapp.message_id,
            )

        cloud = await self.send_via_channel(NotificationChannel.WHATSAPP_CLOUD, phone, code)
        if cloud.success:
            return SendResult(
                success=True,
                channel=NotificationChannel.WHATSAPP_CLOUD,
                message_id=cloud.message_id,
            )
        logger.warning("OTP to %s failed on every channel", phone)
        return SendResult(success=False, error="All channels failed")

    # -- modes ---------------------------------------------------------------

    async def _send_dual(self, settings: NotificationSettings, envelope: _Envelope) -> SendResult:
        channels = [c for c in DUAL_CHANNELS if settings.is_channel_enabled(c)]
        outcomes = await asyncio.gather(*(self._attempt_logged(c, envelope) for c in channels))
        by_channel = {c.value.lower(): ok for c, ok in zip(channels, outcomes)}
        success = any(outcomes)
        logger.info(
            "Dual notification %s to %s: %s",
            envelope.trigger.value,
            envelope.recipient,
            ", ".join(f"{name}={ok}" for name, ok in by_channel.items()) or "no channel enabled",
        )
        return SendResult(
            success=success,
            channels=by_channel,
            error=None if success else "All notification channels failed",
        )

    async def _attempt_logged(self, channel: NotificationChannel, envelope: _Envelope) -> bool:
        try:
            content = await self._render(channel, envelope.trigger, envelope.variables)
        except Exception as exc:
            logger.exception(
                "Template lookup failed for %s - %s", envelope.trigger.value, channel.value
            )
            failure = TransportResult(success=False, error=f"Template lookup failed: {exc}")
            await self._log(self._entry(envelope, channel, "", failure))
            return False
        if content is None:
            return False
        result = await self.send_via_channel(channel, envelope.recipient, content)
        if not result.success:
            logger.warning(
                "%s failed for %s: recipient=%s", channel.value, envelope.trigger.value, envelope.recipient
            )
        await self._log(self._entry(envelope, channel, content, result))
        return result.success

    async def _send_failover(self, settings: NotificationSettings, envelope: _Envelope) -> SendResult:
        last_channel: NotificationChannel | None = None
        last_content: str | None = None
        order = settings.channel_priority()

        for channel in order:
            if not settings.is_channel_enabled(channel):
                continue
            try:
                content = await self._render(channel, envelope.trigger, envelope.variables)
            except Exception:
                logger.exception(
                    "Template lookup failed for %s - %s, trying next channel",
                    envelope.trigger.value,
                    channel.value,
                )
                continue
            if content is None:
                continue
            last_channel, last_content = channel, content
            result = await self.send_via_channel(channel, envelope.recipient, content)
            if result.success:
                await self._log(self._entry(envelope, channel, content, result))
                return SendResult(success=True, channel=channel, message_id=result.message_id)
            logger.info("%s failed for %s, trying next channel", channel.value, envelope.trigger.value)

        await self._log(
            NotificationLogEntry(
                trigger=envelope.trigger,
                channel=last_channel or (order[0] if order else NotificationChannel.SMS),
                recipient_phone=envelope.recipient,
                recipient_name=envelope.recipient_name,
                content=last_content or "Failed to send",
                status=LogStatus.FAILED,
                error_message="All channels failed",
                order_id=envelope.context.order_id,
                user_id=envelope.context.user_id,
            )
        )
        logger.warning("All channels failed for %s to %s", envelope.trigger.value, envelope.recipient)
        return SendResult(success=False, error="All notification channels failed")

    # -- helpers -------------------------------------------------------------

    async def _load_settings(self) -> NotificationSettings:
        settings = await resolve(self._store.get_settings())
        if settings is None:
            raise ConfigurationError("Notification settings not found")
        return settings

    async def _resolve_recipient(
        self,
        settings: NotificationSettings,
        recipient_type: RecipientType,
        context: NotificationContext,
    ) -> str:
        if settings.test_mode and settings.test_phone_number:
            return settings.test_phone_number
        if recipient_type == RecipientType.ADMIN:
            recipient = settings.admin_recipient
        else:
            recipient = await self._customer_phone(context)
        if not recipient:
            raise RecipientNotFoundError("Recipient phone number not found")
        return recipient

    async def _customer_phone(self, context: NotificationContext) -> str | None:
        overrides = context.overrides
        phone = overrides.recipient_phone or overrides.billing_phone
        if not phone and context.order_id:
            order = await resolve(self._commerce.get_order(context.order_id))
            if order is not None:
                address_phone = order.shipping_address.phone if order.shipping_address else None
                phone = order.user.contact_phone or address_phone
        if not phone and context.user_id:
            user = await resolve(self._commerce.get_user(context.user_id))
            if user is not None:
                phone = user.contact_phone
        return phone

    async def _render(
        self,
        channel: NotificationChannel,
        trigger: NotificationTrigger,
        variables: dict[str, Any],
    ) -> str | None:
        template = await resolve(self._store.get_template(trigger, channel))
        if template is None or not template.enabled:
            logger.debug("Template not found or disabled for %s - %s", trigger.value, channel.value)
            return None
        return render(template.content, variables)

    async def _call_transport(
        self,
        channel: NotificationChannel,
        phone: str,
        content: str,
        media_url: str | None,
    ) -> TransportResult:
        if channel == NotificationChannel.SMS:
            return await self._transport.send_sms(phone, content)
        if channel == NotificationChannel.WHATSAPP:
            return await self._transport.send_whatsapp_business(phone, content, media_url)
        if channel == NotificationChannel.WHATSAPP_CLOUD:
            match = _OTP_PATTERN.search(content)
            code = match.group(1) if match else DEFAULT_OTP
            return await self._transport.send_whatsapp_cloud_otp(phone, code, self._otp_language)
        return TransportResult(success=False, error=f"No transport for {channel.value}")

    @staticmethod
    def _entry(
        envelope: _Envelope,
        channel: NotificationChannel,
        content: str,
        result: TransportResult,
    ) -> NotificationLogEntry:
        return NotificationLogEntry(
            trigger=envelope.trigger,
            channel=channel,
            recipient_phone=envelope.recipient,
            recipient_name=envelope.recipient_name,
            content=content,
            status=LogStatus.SENT if result.success else LogStatus.FAILED,
            provider_id=result.message_id,
            error_message=None if result.success else (result.error or "Failed to send"),
            order_id=envelope.context.order_id,
            user_id=envelope.context.user_id,
            sent_at=_utcnow() if result.success else None,
        )

    async def _log(self, entry: NotificationLogEntry) -> None:
        try:
            await resolve(self._store.add_log(entry))
        except Exception:
            logger.exception("Failed to write notification log for %s", entry.trigger.value)
