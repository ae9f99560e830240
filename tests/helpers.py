"""Builders for the records the notification tests stage."""

from __future__ import annotations

from datetime import datetime, timezone

from shopnotify.commerce.models import (
    Address,
    Customer,
    Invoice,
    Order,
    OrderItem,
    Payment,
    Product,
)
from shopnotify.core.types import (
    NotificationChannel,
    NotificationTrigger,
    OrderStatus,
    PaymentStatus,
)
from shopnotify.notifications.models import (
    NotificationSettings,
    NotificationTemplate,
    PaymentFollowUpSettings,
)
from shopnotify.notifications.store import NotificationStore

CUSTOMER_PHONE = "+2250709999999"
ADMIN_PHONE = "+2250556791431"
TEST_PHONE = "+2250100000000"

WINE = Product(id="prod-wine", name="Vin Rouge Bordeaux 2020", price=22500, stock=12)


def make_customer(**overrides) -> Customer:
    fields = {
        "id": "user-jean",
        "name": "Jean Dupont",
        "email": "jean@example.com",
        "phone": CUSTOMER_PHONE,
        "city": "Abidjan",
        "country": "Côte d'Ivoire",
        "created_at": datetime(2026, 1, 5, tzinfo=timezone.utc),
    }
    fields.update(overrides)
    return Customer(**fields)


def make_order(**overrides) -> Order:
    fields = {
        "id": "order-1",
        "order_number": "ORD-1001",
        "user": make_customer(),
        "shipping_address": Address(
            address_line1="Rue des Jardins 12", city="Abidjan", country="Côte d'Ivoire"
        ),
        "items": [OrderItem(product=WINE, quantity=2, price=22500)],
        "payment": Payment(reference="PAY-42", status=PaymentStatus.PENDING),
        "status": OrderStatus.PENDING,
        "payment_status": PaymentStatus.PENDING,
        "payment_method": "Orange Money",
        "subtotal": 45000,
        "shipping_cost": 2500,
        "total": 47500,
        "created_at": datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc),
    }
    fields.update(overrides)
    return Order(**fields)


def shipped_order(**overrides) -> Order:
    fields = {
        "status": OrderStatus.SHIPPED,
        "payment_status": PaymentStatus.COMPLETED,
        "tracking_number": "TRK123",
        "invoice": Invoice(invoice_number="INV-2026-0007"),
    }
    fields.update(overrides)
    return make_order(**fields)


def make_settings(**overrides) -> NotificationSettings:
    fields = {
        "sms_enabled": True,
        "whatsapp_enabled": True,
        "admin_phones": [ADMIN_PHONE],
    }
    fields.update(overrides)
    return NotificationSettings(**fields)


def template(
    trigger: NotificationTrigger,
    channel: NotificationChannel,
    content: str,
    enabled: bool = True,
) -> NotificationTemplate:
    return NotificationTemplate(trigger=trigger, channel=channel, content=content, enabled=enabled)


def both_channels(trigger: NotificationTrigger, content: str) -> list[NotificationTemplate]:
    """The same content as an SMS and a WhatsApp template."""
    return [
        template(trigger, NotificationChannel.SMS, f"SMS {content}"),
        template(trigger, NotificationChannel.WHATSAPP, f"WA {content}"),
    ]


def make_store(
    settings: NotificationSettings | None = None,
    templates: list[NotificationTemplate] | None = None,
    follow_up: PaymentFollowUpSettings | None = None,
) -> NotificationStore:
    store = NotificationStore()
    store.save_settings(settings or make_settings())
    store.save_follow_up_settings(follow_up or PaymentFollowUpSettings())
    for t in templates or []:
        store.save_template(t)
    return store


DEFAULT_TEMPLATES: list[NotificationTemplate] = [
    *both_channels(NotificationTrigger.ORDER_PLACED, "{customer_name} {order_number} {order_total}"),
    *both_channels(
        NotificationTrigger.ORDER_SHIPPED, "{customer_name} {order_number} suivi {tracking_number}"
    ),
    *both_channels(NotificationTrigger.ORDER_CANCELLED, "{order_number} annulée"),
    *both_channels(NotificationTrigger.ORDER_DELIVERED, "{order_number} livrée"),
    *both_channels(NotificationTrigger.PAYMENT_RECEIVED, "{order_number} payée {invoice_url}"),
    *both_channels(NotificationTrigger.INVOICE_CREATED, "{customer_name} {invoice_number} {invoice_url}"),
    *both_channels(NotificationTrigger.PAYMENT_REMINDER_1, "rappel 1 {order_number}"),
    *both_channels(NotificationTrigger.PAYMENT_REMINDER_2, "rappel 2 {order_number}"),
    *both_channels(NotificationTrigger.PAYMENT_REMINDER_3, "rappel 3 {order_number}"),
    *both_channels(NotificationTrigger.REVIEW_REQUEST, "avis {order_number}"),
    *both_channels(NotificationTrigger.NEW_ORDER_ADMIN, "nouvelle commande {order_number}"),
    *both_channels(NotificationTrigger.PAYMENT_RECEIVED_ADMIN, "paiement {order_number}"),
    *both_channels(NotificationTrigger.DAILY_REPORT_ADMIN, "{orders_count} commandes {total_revenue}"),
    *both_channels(NotificationTrigger.PASSWORD_RESET, "code {reset_code}"),
]
