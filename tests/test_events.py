"""Tests for the business event hooks."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from helpers import ADMIN_PHONE, CUSTOMER_PHONE, WINE, make_customer, make_order

from shopnotify.commerce.models import Product
from shopnotify.core.types import (
    NotificationChannel,
    NotificationTrigger,
    OrderStatus,
    PaymentStatus,
    ScheduledStatus,
)


class TestCustomerEvents:
    async def test_order_placed_sends_both_channels(self, events, transport, store):
        result = await events.order_placed("order-1")
        assert result.success
        assert result.channels == {"sms": True, "whatsapp": True}
        assert {m.to for m in transport.sent} == {CUSTOMER_PHONE}
        assert store.log_count == 2

    async def test_order_shipped_passes_tracking(self, events, transport):
        await events.order_shipped("order-1", tracking_number="TRK-777")
        assert all("TRK-777" in m.content for m in transport.sent)

    async def test_standalone_invoice(self, events, transport, commerce):
        result = await events.standalone_invoice(
            "FAC-12", "https://cave.test/f/12.pdf", "Awa Koné", "+2250102030405", "15000 CFA"
        )
        assert result.success
        assert commerce.lookups == 0
        assert {m.to for m in transport.sent} == {"+2250102030405"}
        assert all("FAC-12" in m.content and "Awa Koné" in m.content for m in transport.sent)

    async def test_invoice_created_uses_order_number_without_invoice(self, events, transport):
        await events.invoice_created("order-1", "https://cave.test/i.pdf")
        assert all("ORD-1001" in m.content for m in transport.sent)

    async def test_password_reset(self, events, transport):
        result = await events.password_reset("+2250505050505", "987654", "Awa")
        assert result.success
        assert {m.to for m in transport.sent} == {"+2250505050505"}
        assert all("987654" in m.content for m in transport.sent)

    async def test_missing_template_reports_failure_without_raising(self, events, transport):
        result = await events.back_in_stock(WINE.id, "user-jean")
        assert result.success is False
        assert transport.call_count() == 0

    async def test_exception_is_swallowed(self, events, dispatcher):
        async def boom(*args, **kwargs):
            raise RuntimeError("db down")

        dispatcher.send = boom
        result = await events.order_placed("order-1")
        assert result.success is False
        assert result.error == "db down"


class TestAdminEvents:
    async def test_new_order_admin(self, events, transport):
        await events.new_order_admin("order-1")
        assert {m.to for m in transport.sent} == {ADMIN_PHONE}

    async def test_daily_report(self, events, commerce, transport):
        now = datetime(2026, 3, 14, 20, 0, tzinfo=timezone.utc)
        commerce.add_order(
            make_order(
                id="order-2",
                order_number="ORD-1002",
                user=make_customer(id="user-2", created_at=now - timedelta(hours=2)),
                status=OrderStatus.DELIVERED,
                total=10000,
                created_at=now - timedelta(hours=1),
            )
        )
        commerce.add_product(Product(id="p-low", name="Rhum", stock=1))

        report = await events.build_daily_report(now)

        assert report.orders_count == 2
        assert report.total_revenue == "57500 CFA"
        assert report.pending_orders == 1
        assert report.delivered_orders == 1
        assert report.products_sold == 4
        assert report.new_customers == 1
        assert report.total_customers == 2
        assert report.low_stock_products == 1

        result = await events.daily_report(now)
        assert result.success
        assert all(m.to == ADMIN_PHONE for m in transport.sent)
        assert all("2 commandes 57500 CFA" in m.content for m in transport.sent)


class TestLifecycle:
    async def test_order_created_notifies_and_schedules(self, events, store, transport):
        await events.on_order_created("order-1")
        recipients = [m.to for m in transport.sent]
        assert recipients.count(CUSTOMER_PHONE) == 2
        assert recipients.count(ADMIN_PHONE) == 2
        assert len(store.list_scheduled(order_id="order-1", status=ScheduledStatus.PENDING)) == 3

    async def test_payment_confirmed_cancels_reminders(self, events, store, commerce):
        await events.on_order_created("order-1")
        commerce.set_order_status("order-1", payment_status=PaymentStatus.COMPLETED)

        await events.on_payment_confirmed("order-1", invoice_url="https://cave.test/i.pdf")

        statuses = {e.status for e in store.list_scheduled(order_id="order-1")}
        assert statuses == {ScheduledStatus.CANCELLED}
        triggers = {e.trigger for e in store.list_logs()}
        assert NotificationTrigger.PAYMENT_RECEIVED in triggers
        assert NotificationTrigger.PAYMENT_RECEIVED_ADMIN in triggers

    async def test_order_cancelled(self, events, store, transport):
        await events.on_order_created("order-1")
        transport.reset()
        await events.on_order_cancelled("order-1")
        assert {e.status for e in store.list_scheduled()} == {ScheduledStatus.CANCELLED}
        assert all("annulée" in m.content for m in transport.sent)

    async def test_order_delivered_schedules_review(self, events, store):
        await events.on_order_delivered("order-1")
        pending = store.list_scheduled(order_id="order-1", status=ScheduledStatus.PENDING)
        assert [e.trigger for e in pending] == [NotificationTrigger.REVIEW_REQUEST]

    async def test_scheduling_failure_does_not_break_order_creation(self, events, scheduler, transport):
        async def boom(order_id, **kwargs):
            raise RuntimeError("queue down")

        scheduler.schedule_payment_reminders = boom
        await events.on_order_created("order-1")
        assert transport.call_count(NotificationChannel.SMS) == 2
