"""Core type definitions shared across all shopnotify modules."""

from __future__ import annotations

from enum import StrEnum


class NotificationTrigger(StrEnum):
    """Business events that can cause a notification to be sent."""

    # Customer-facing
    ORDER_PLACED = "ORDER_PLACED"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    ORDER_SHIPPED = "ORDER_SHIPPED"
    ORDER_DELIVERED = "ORDER_DELIVERED"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    ORDER_REFUNDED = "ORDER_REFUNDED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    CUSTOMER_NOTE = "CUSTOMER_NOTE"
    NEW_ACCOUNT = "NEW_ACCOUNT"
    PASSWORD_RESET = "PASSWORD_RESET"
    LOYALTY_POINTS_EARNED = "LOYALTY_POINTS_EARNED"
    ABANDONED_CART = "ABANDONED_CART"
    BACK_IN_STOCK = "BACK_IN_STOCK"
    INVOICE_CREATED = "INVOICE_CREATED"
    INVOICE_PAID = "INVOICE_PAID"
    REVIEW_REQUEST = "REVIEW_REQUEST"
    PAYMENT_REMINDER_1 = "PAYMENT_REMINDER_1"
    PAYMENT_REMINDER_2 = "PAYMENT_REMINDER_2"
    PAYMENT_REMINDER_3 = "PAYMENT_REMINDER_3"

    # Admin-facing
    NEW_ORDER_ADMIN = "NEW_ORDER_ADMIN"
    PAYMENT_RECEIVED_ADMIN = "PAYMENT_RECEIVED_ADMIN"
    LOW_STOCK_ADMIN = "LOW_STOCK_ADMIN"
    OUT_OF_STOCK_ADMIN = "OUT_OF_STOCK_ADMIN"
    NEW_CUSTOMER_ADMIN = "NEW_CUSTOMER_ADMIN"
    NEW_REVIEW_ADMIN = "NEW_REVIEW_ADMIN"
    DAILY_REPORT_ADMIN = "DAILY_REPORT_ADMIN"


class NotificationChannel(StrEnum):
    SMS = "SMS"
    WHATSAPP = "WHATSAPP"
    WHATSAPP_CLOUD = "WHATSAPP_CLOUD"
    EMAIL = "EMAIL"


class RecipientType(StrEnum):
    CUSTOMER = "customer"
    ADMIN = "admin"


class LogStatus(StrEnum):
    SENT = "sent"
    FAILED = "failed"
    PENDING = "pending"


class ScheduledStatus(StrEnum):
    """Lifecycle of a scheduled notification.

    ``processing`` is the claimed, in-flight state held only while a
    scheduler pass is dispatching the entry.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    CANCELLED = "cancelled"
    FAILED = "failed"


class OrderStatus(StrEnum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentStatus(StrEnum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class EntityKind(StrEnum):
    """Which stored entity a trigger needs to resolve its variables."""

    ORDER = "order"
    USER = "user"
    PRODUCT = "product"
    REVIEW = "review"
    NONE = "none"


# Every trigger must appear here; test_types checks exhaustiveness.
TRIGGER_ENTITY: dict[NotificationTrigger, EntityKind] = {
    NotificationTrigger.ORDER_PLACED: EntityKind.ORDER,
    NotificationTrigger.PAYMENT_RECEIVED: EntityKind.ORDER,
    NotificationTrigger.ORDER_SHIPPED: EntityKind.ORDER,
    NotificationTrigger.ORDER_DELIVERED: EntityKind.ORDER,
    NotificationTrigger.ORDER_CANCELLED: EntityKind.ORDER,
    NotificationTrigger.ORDER_REFUNDED: EntityKind.ORDER,
    NotificationTrigger.PAYMENT_FAILED: EntityKind.ORDER,
    NotificationTrigger.CUSTOMER_NOTE: EntityKind.ORDER,
    NotificationTrigger.INVOICE_CREATED: EntityKind.ORDER,
    NotificationTrigger.INVOICE_PAID: EntityKind.ORDER,
    NotificationTrigger.REVIEW_REQUEST: EntityKind.ORDER,
    NotificationTrigger.PAYMENT_REMINDER_1: EntityKind.ORDER,
    NotificationTrigger.PAYMENT_REMINDER_2: EntityKind.ORDER,
    NotificationTrigger.PAYMENT_REMINDER_3: EntityKind.ORDER,
    NotificationTrigger.NEW_ORDER_ADMIN: EntityKind.ORDER,
    NotificationTrigger.PAYMENT_RECEIVED_ADMIN: EntityKind.ORDER,
    NotificationTrigger.NEW_ACCOUNT: EntityKind.USER,
    NotificationTrigger.NEW_CUSTOMER_ADMIN: EntityKind.USER,
    NotificationTrigger.LOW_STOCK_ADMIN: EntityKind.PRODUCT,
    NotificationTrigger.OUT_OF_STOCK_ADMIN: EntityKind.PRODUCT,
    NotificationTrigger.BACK_IN_STOCK: EntityKind.PRODUCT,
    NotificationTrigger.NEW_REVIEW_ADMIN: EntityKind.REVIEW,
    NotificationTrigger.PASSWORD_RESET: EntityKind.NONE,
    NotificationTrigger.LOYALTY_POINTS_EARNED: EntityKind.NONE,
    NotificationTrigger.ABANDONED_CART: EntityKind.NONE,
    NotificationTrigger.DAILY_REPORT_ADMIN: EntityKind.NONE,
}

ADMIN_TRIGGERS: frozenset[NotificationTrigger] = frozenset(
    t for t in NotificationTrigger if t.value.endswith("_ADMIN")
)

PAYMENT_REMINDER_TRIGGERS: tuple[NotificationTrigger, ...] = (
    NotificationTrigger.PAYMENT_REMINDER_1,
    NotificationTrigger.PAYMENT_REMINDER_2,
    NotificationTrigger.PAYMENT_REMINDER_3,
)

# Channels with a working transport behind them.
DELIVERABLE_CHANNELS: frozenset[NotificationChannel] = frozenset(
    {
        NotificationChannel.SMS,
        NotificationChannel.WHATSAPP,
        NotificationChannel.WHATSAPP_CLOUD,
    }
)


def recipient_type_for(trigger: NotificationTrigger) -> RecipientType:
    """Return who a trigger's templates are written for."""
    if trigger in ADMIN_TRIGGERS:
        return RecipientType.ADMIN
    return RecipientType.CUSTOMER
