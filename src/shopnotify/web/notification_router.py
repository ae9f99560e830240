"""FastAPI router for the notification admin endpoints."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ValidationError

from shopnotify.core.types import (
    PAYMENT_REMINDER_TRIGGERS,
    LogStatus,
    NotificationChannel,
    NotificationTrigger,
    RecipientType,
    ScheduledStatus,
)
from shopnotify.notifications.models import (
    LogFilter,
    NotificationContext,
    NotificationLogEntry,
    NotificationSettings,
    PaymentFollowUpSettings,
)
from shopnotify.notifications.rendering import format_date, render
from shopnotify.repositories import resolve
from shopnotify.transport.base import TransportResult

# Spaces, dashes and parentheses people type into phone numbers.
_PHONE_NOISE = re.compile(r"[\s\-()]")

router = APIRouter()


class QuickSendRequest(BaseModel):
    phone: str
    message: str
    channel: NotificationChannel = NotificationChannel.SMS
    # Manual messages have no trigger of their own; the log files them under this one.
    trigger: NotificationTrigger = NotificationTrigger.CUSTOMER_NOTE


class TriggerRequest(BaseModel):
    trigger: NotificationTrigger
    recipient_type: RecipientType | None = None
    context: NotificationContext = NotificationContext()
    send_both: bool = True


class TemplateUpdateRequest(BaseModel):
    content: str | None = None
    enabled: bool | None = None
    name: str | None = None
    description: str | None = None


class TemplateTestRequest(BaseModel):
    phone: str


def _sample_variables(request: Request, phone: str) -> dict[str, Any]:
    """Stand-in values used when an admin test-sends a template."""
    store = request.app.state.settings.store
    return {
        "customer_name": "Test Client",
        "billing_first_name": "Test",
        "billing_last_name": "Client",
        "billing_phone": phone,
        "billing_email": "test@example.com",
        "order_number": "ORD-TEST-001",
        "order_id": "test-order-id",
        "order_date": format_date(datetime.now(timezone.utc)),
        "order_status": "PROCESSING",
        "order_total": "50000 CFA",
        "order_subtotal": "45000 CFA",
        "order_tax": "2500 CFA",
        "order_shipping": "2500 CFA",
        "order_discount": "0 CFA",
        "order_product": "Vin Rouge Bordeaux 2020",
        "order_product_with_qty": "Vin Rouge Bordeaux 2020 (2x)",
        "order_items_count": 2,
        "payment_method": "Orange Money",
        "payment_reference": "PAY-TEST-001",
        "payment_status": "COMPLETED",
        "tracking_number": "TRACK-TEST-001",
        "product_name": "Vin Rouge Bordeaux 2020",
        "product_quantity": 2,
        "low_stock_quantity": 5,
        "store_name": store.name,
        "store_url": store.url,
        "store_phone": store.phone,
        "store_whatsapp": store.whatsapp,
        "store_address": store.address,
    }


def _get_store(request: Request):
    store = getattr(request.app.state, "notification_store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Notification store not available")
    return store


def _get_dispatcher(request: Request):
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise HTTPException(status_code=503, detail="Notification dispatcher not available")
    return dispatcher


def _get_scheduler(request: Request):
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Notification scheduler not available")
    return scheduler


async def _log_manual_send(
    store,
    trigger: NotificationTrigger,
    channel: NotificationChannel,
    phone: str,
    content: str,
    result: TransportResult,
) -> None:
    await resolve(
        store.add_log(
            NotificationLogEntry(
                trigger=trigger,
                channel=channel,
                recipient_phone=phone,
                content=content,
                status=LogStatus.SENT if result.success else LogStatus.FAILED,
                provider_id=result.message_id,
                error_message=result.error,
                sent_at=datetime.now(timezone.utc) if result.success else None,
            )
        )
    )


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@router.get("/api/notifications/settings")
async def get_settings(request: Request) -> dict[str, Any]:
    store = _get_store(request)
    settings = await resolve(store.get_settings())
    if settings is None:
        raise HTTPException(status_code=404, detail="Notification settings not configured")
    return settings.model_dump(mode="json")


@router.put("/api/notifications/settings")
async def update_settings(body: dict[str, Any], request: Request) -> dict[str, Any]:
    """Partially update the settings record, creating it if needed."""
    store = _get_store(request)
    current = await resolve(store.get_settings()) or NotificationSettings()
    merged = current.model_dump()
    merged.update(body)
    merged["updated_at"] = datetime.now(timezone.utc)
    try:
        settings = NotificationSettings(**merged)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors(include_url=False))
    await resolve(store.save_settings(settings))
    return settings.model_dump(mode="json")


@router.get("/api/notifications/follow-up")
async def get_follow_up(request: Request) -> dict[str, Any]:
    store = _get_store(request)
    follow_up = await resolve(store.get_follow_up_settings()) or PaymentFollowUpSettings()
    return follow_up.model_dump(mode="json")


@router.put("/api/notifications/follow-up")
async def update_follow_up(body: dict[str, Any], request: Request) -> dict[str, Any]:
    store = _get_store(request)
    current = await resolve(store.get_follow_up_settings()) or PaymentFollowUpSettings()
    merged = current.model_dump()
    merged.update(body)
    try:
        follow_up = PaymentFollowUpSettings(**merged)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors(include_url=False))
    await resolve(store.save_follow_up_settings(follow_up))
    return follow_up.model_dump(mode="json")


@router.get("/api/notifications/follow-up/stats")
async def follow_up_stats(request: Request) -> dict[str, int]:
    """Counts of payment reminders by state."""
    store = _get_store(request)
    return {
        status.value: await resolve(store.count_scheduled(status, PAYMENT_REMINDER_TRIGGERS))
        for status in (ScheduledStatus.PENDING, ScheduledStatus.SENT, ScheduledStatus.CANCELLED)
    }


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


@router.get("/api/notifications/templates")
async def list_templates(request: Request) -> list[dict[str, Any]]:
    store = _get_store(request)
    templates = await resolve(store.list_templates())
    return [t.model_dump(mode="json") for t in templates]


@router.put("/api/notifications/templates/{template_id}")
async def update_template(
    template_id: str, body: TemplateUpdateRequest, request: Request
) -> dict[str, Any]:
    store = _get_store(request)
    template = await resolve(store.get_template_by_id(template_id))
    if template is None:
        raise HTTPException(status_code=404, detail=f"Template {template_id!r} not found")
    updates = body.model_dump(exclude_none=True)
    updates["updated_at"] = datetime.now(timezone.utc)
    template = template.model_copy(update=updates)
    await resolve(store.save_template(template))
    return template.model_dump(mode="json")


@router.post("/api/notifications/templates/{template_id}/test")
async def send_test_template(
    template_id: str, body: TemplateTestRequest, request: Request
) -> dict[str, Any]:
    """Render a template with sample data and send it to *phone*."""
    store = _get_store(request)
    dispatcher = _get_dispatcher(request)
    template = await resolve(store.get_template_by_id(template_id))
    if template is None:
        raise HTTPException(status_code=404, detail=f"Template {template_id!r} not found")

    content = render(template.content, _sample_variables(request, body.phone))
    # Cloud templates cannot carry free text, so test them as WhatsApp Business.
    channel = (
        NotificationChannel.WHATSAPP
        if template.channel == NotificationChannel.WHATSAPP_CLOUD
        else template.channel
    )
    result = await dispatcher.send_via_channel(channel, body.phone, content)
    await _log_manual_send(store, template.trigger, template.channel, body.phone, content, result)
    return {"success": result.success, "content": content, "error": result.error}


# ---------------------------------------------------------------------------
# Sending
# ---------------------------------------------------------------------------


@router.post("/api/notifications/send")
async def quick_send(body: QuickSendRequest, request: Request) -> dict[str, Any]:
    """Send a free-text message, bypassing templates. Every attempt is logged."""
    store = _get_store(request)
    dispatcher = _get_dispatcher(request)
    if body.channel == NotificationChannel.EMAIL:
        raise HTTPException(status_code=400, detail="Email delivery is not supported")
    if body.channel == NotificationChannel.WHATSAPP_CLOUD:
        raise HTTPException(
            status_code=400,
            detail="WhatsApp Cloud only carries approved templates; use WHATSAPP or SMS",
        )
    phone = _PHONE_NOISE.sub("", body.phone)
    result = await dispatcher.send_via_channel(body.channel, phone, body.message)
    await _log_manual_send(store, body.trigger, body.channel, phone, body.message, result)
    return result.model_dump(mode="json")


@router.post("/api/notifications/trigger")
async def send_trigger(body: TriggerRequest, request: Request) -> dict[str, Any]:
    """Run a trigger through the full dispatch pipeline."""
    dispatcher = _get_dispatcher(request)
    result = await dispatcher.send(
        body.trigger, body.recipient_type, body.context, send_both=body.send_both
    )
    return result.model_dump(mode="json")


# ---------------------------------------------------------------------------
# Log and stats
# ---------------------------------------------------------------------------


@router.get("/api/notifications/logs")
async def list_logs(
    request: Request,
    trigger: NotificationTrigger | None = None,
    channel: NotificationChannel | None = None,
    status: LogStatus | None = None,
    order_id: str | None = None,
    user_id: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> dict[str, Any]:
    store = _get_store(request)
    if page < 1 or limit < 1:
        raise HTTPException(status_code=400, detail="page and limit must be positive")
    filters = LogFilter(
        trigger=trigger, channel=channel, status=status, order_id=order_id, user_id=user_id
    )
    entries = await resolve(store.list_logs(filters, offset=(page - 1) * limit, limit=limit))
    stats = await resolve(store.log_stats(filters))
    return {
        "logs": [e.model_dump(mode="json") for e in entries],
        "page": page,
        "limit": limit,
        "total": stats.total,
    }


@router.get("/api/notifications/stats")
async def log_stats(request: Request, period: int = 7) -> dict[str, Any]:
    """Delivery totals over the last *period* days."""
    store = _get_store(request)
    since = datetime.now(timezone.utc) - timedelta(days=period)
    stats = await resolve(store.log_stats(LogFilter(since=since)))
    return {
        "period_days": period,
        "total": stats.total,
        "sent": stats.sent,
        "failed": stats.failed,
        "pending": stats.pending,
        "success_rate": stats.success_rate,
        "by_channel": stats.by_channel,
        "by_trigger": stats.by_trigger,
    }


# ---------------------------------------------------------------------------
# Scheduled notifications
# ---------------------------------------------------------------------------


@router.get("/api/notifications/scheduled")
async def list_scheduled(
    request: Request,
    order_id: str | None = None,
    status: ScheduledStatus | None = None,
) -> list[dict[str, Any]]:
    store = _get_store(request)
    entries = await resolve(store.list_scheduled(order_id=order_id, status=status))
    return [e.model_dump(mode="json") for e in entries]


@router.post("/api/notifications/scheduled/process")
async def process_scheduled(request: Request) -> dict[str, Any]:
    """Run one scheduler pass now."""
    scheduler = _get_scheduler(request)
    report = await scheduler.process_due()
    return report.model_dump()
