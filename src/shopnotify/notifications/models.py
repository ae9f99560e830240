"""Notification data models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from shopnotify.core.types import (
    LogStatus,
    NotificationChannel,
    NotificationTrigger,
    RecipientType,
    ScheduledStatus,
)


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


DEFAULT_FAILOVER_ORDER: tuple[NotificationChannel, ...] = (
    NotificationChannel.WHATSAPP,
    NotificationChannel.SMS,
)


class NotificationTemplate(BaseModel):
    id: str = Field(default_factory=_new_id)
    trigger: NotificationTrigger
    channel: NotificationChannel
    content: str
    name: str = ""
    description: str = ""
    recipient_type: RecipientType = RecipientType.CUSTOMER
    enabled: bool = True
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class NotificationSettings(BaseModel):
    """Admin-editable delivery settings. One record per installation."""

    id: str = "default"
    sms_enabled: bool = True
    whatsapp_enabled: bool = True
    email_enabled: bool = False
    admin_phones: list[str] = Field(default_factory=list)
    admin_whatsapp: str | None = None
    failover_enabled: bool = False
    failover_order: list[NotificationChannel] = Field(
        default_factory=lambda: list(DEFAULT_FAILOVER_ORDER)
    )
    test_mode: bool = False
    test_phone_number: str | None = None
    updated_at: datetime = Field(default_factory=_utcnow)

    def is_channel_enabled(self, channel: NotificationChannel) -> bool:
        """Whether a channel may be used at all. Email has no transport."""
        if channel == NotificationChannel.SMS:
            return self.sms_enabled
        if channel == NotificationChannel.WHATSAPP:
            return self.whatsapp_enabled
        if channel == NotificationChannel.WHATSAPP_CLOUD:
            return True
        return False

    def channel_priority(self) -> list[NotificationChannel]:
        """Channels to try, in order, when sending in failover mode."""
        if self.failover_enabled and self.failover_order:
            return list(self.failover_order)
        return list(DEFAULT_FAILOVER_ORDER)

    @property
    def admin_recipient(self) -> str | None:
        if self.admin_phones and self.admin_phones[0]:
            return self.admin_phones[0]
        return self.admin_whatsapp or None


class PaymentFollowUpSettings(BaseModel):
    """Delays (in hours) and switches for the three unpaid-order reminders."""

    id: str = "default"
    enabled: bool = True
    reminder1_delay: int = Field(default=24, ge=1, le=168)
    reminder2_delay: int = Field(default=72, ge=1, le=336)
    reminder3_delay: int = Field(default=120, ge=1, le=504)
    reminder1_enabled: bool = True
    reminder2_enabled: bool = True
    reminder3_enabled: bool = True

    def enabled_reminders(self) -> list[tuple[int, int]]:
        """Return ``(reminder_number, delay_hours)`` for each enabled reminder."""
        reminders = [
            (1, self.reminder1_delay, self.reminder1_enabled),
            (2, self.reminder2_delay, self.reminder2_enabled),
            (3, self.reminder3_delay, self.reminder3_enabled),
        ]
        return [(number, delay) for number, delay, on in reminders if on]


class NotificationLogEntry(BaseModel):
    """One delivery attempt. Never modified once written."""

    id: str = Field(default_factory=_new_id)
    trigger: NotificationTrigger
    channel: NotificationChannel
    recipient_phone: str | None = None
    recipient_name: str | None = None
    content: str = ""
    status: LogStatus = LogStatus.PENDING
    provider_id: str | None = None
    error_message: str | None = None
    order_id: str | None = None
    user_id: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    sent_at: datetime | None = None

    model_config = {"frozen": True}


class ScheduledNotification(BaseModel):
    id: str = Field(default_factory=_new_id)
    trigger: NotificationTrigger
    order_id: str
    scheduled_for: datetime
    status: ScheduledStatus = ScheduledStatus.PENDING
    attempts: int = 0
    reminder_number: int | None = None
    error_message: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    claimed_at: datetime | None = None
    sent_at: datetime | None = None
    cancelled_at: datetime | None = None


# ---------------------------------------------------------------------------
# Send context
# ---------------------------------------------------------------------------


class VariableOverrides(BaseModel):
    """Values a caller supplies directly instead of having them looked up.

    Used for sends that have no backing order, such as invoices created by
    an admin outside the checkout flow.
    """

    customer_name: str | None = None
    order_number: str | None = None
    invoice_number: str | None = None
    order_total: str | None = None
    order_date: str | None = None
    invoice_url: str | None = None
    billing_phone: str | None = None
    recipient_phone: str | None = None


class LoyaltyValues(BaseModel):
    points_earned: int = 0
    points_balance: int = 0
    points_value: int = 0


class CartValues(BaseModel):
    items_count: int = 0
    items_list: str = ""
    total: str = ""


class DailyReportValues(BaseModel):
    total_revenue: str = "0"
    orders_count: int = 0
    pending_orders: int = 0
    processing_orders: int = 0
    delivered_orders: int = 0
    cancelled_orders: int = 0
    new_customers: int = 0
    total_customers: int = 0
    products_sold: int = 0
    low_stock_products: int = 0


class NotificationContext(BaseModel):
    """Everything a send needs to build its variables.

    Entity ids are looked up according to the trigger's entity kind; the
    value groups carry the raw figures for triggers with no backing entity.
    """

    order_id: str | None = None
    user_id: str | None = None
    product_id: str | None = None
    review_id: str | None = None
    note_content: str | None = None
    tracking_number: str | None = None
    reset_code: str | None = None
    loyalty: LoyaltyValues | None = None
    cart: CartValues | None = None
    report: DailyReportValues | None = None
    overrides: VariableOverrides = Field(default_factory=VariableOverrides)


# ---------------------------------------------------------------------------
# Results, filters and stats
# ---------------------------------------------------------------------------


class SendResult(BaseModel):
    success: bool
    channel: NotificationChannel | None = None
    channels: dict[str, bool] | None = None
    message_id: str | None = None
    error: str | None = None


class LogFilter(BaseModel):
    trigger: NotificationTrigger | None = None
    channel: NotificationChannel | None = None
    status: LogStatus | None = None
    order_id: str | None = None
    user_id: str | None = None
    since: datetime | None = None

    def matches(self, entry: NotificationLogEntry) -> bool:
        checks: list[tuple[Any, Any]] = [
            (self.trigger, entry.trigger),
            (self.channel, entry.channel),
            (self.status, entry.status),
            (self.order_id, entry.order_id),
            (self.user_id, entry.user_id),
        ]
        if any(wanted is not None and wanted != actual for wanted, actual in checks):
            return False
        return self.since is None or entry.created_at >= self.since


class LogStats(BaseModel):
    total: int = 0
    sent: int = 0
    failed: int = 0
    pending: int = 0
    by_channel: dict[str, int] = Field(default_factory=dict)
    by_trigger: dict[str, int] = Field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        attempted = self.sent + self.failed
        if attempted == 0:
            return 0.0
        return round(self.sent / attempted * 100, 2)


class ProcessReport(BaseModel):
    """Outcome counts for one scheduler pass."""

    due: int = 0
    sent: int = 0
    cancelled: int = 0
    retried: int = 0
    failed: int = 0
    skipped: int = 0
    recovered: int = 0
