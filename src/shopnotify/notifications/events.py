"""Business event hooks.

One coroutine per storefront event. Each sends in dual mode and never
raises: a notification problem must not fail the order, payment or
account operation that triggered it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from shopnotify.core.types import NotificationTrigger, OrderStatus, RecipientType
from shopnotify.notifications.dispatcher import NotificationDispatcher
from shopnotify.notifications.models import (
    CartValues,
    DailyReportValues,
    LoyaltyValues,
    NotificationContext,
    SendResult,
    VariableOverrides,
)
from shopnotify.notifications.rendering import format_amount
from shopnotify.notifications.scheduler import ReminderScheduler
from shopnotify.repositories import resolve
from shopnotify.repositories.protocols import CommerceRepository

logger = logging.getLogger(__name__)

# One loyalty point is worth this many CFA.
POINT_VALUE_CFA = 10


class NotificationEvents:
    """Maps storefront events onto dispatcher sends and scheduler calls."""

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        scheduler: ReminderScheduler,
        commerce: CommerceRepository,
    ) -> None:
        self._dispatcher = dispatcher
        self._scheduler = scheduler
        self._commerce = commerce

    async def _notify(
        self,
        trigger: NotificationTrigger,
        context: NotificationContext,
        recipient_type: RecipientType = RecipientType.CUSTOMER,
    ) -> SendResult:
        try:
            return await self._dispatcher.send(trigger, recipient_type, context, send_both=True)
        except Exception as exc:
            logger.exception("Error sending %s notification", trigger.value)
            return SendResult(success=False, error=str(exc))

    # -- orders --------------------------------------------------------------

    async def order_placed(self, order_id: str, invoice_url: str | None = None) -> SendResult:
        return await self._notify(
            NotificationTrigger.ORDER_PLACED,
            NotificationContext(order_id=order_id, overrides=VariableOverrides(invoice_url=invoice_url)),
        )

    async def payment_received(self, order_id: str, invoice_url: str | None = None) -> SendResult:
        return await self._notify(
            NotificationTrigger.PAYMENT_RECEIVED,
            NotificationContext(order_id=order_id, overrides=VariableOverrides(invoice_url=invoice_url)),
        )

    async def order_shipped(self, order_id: str, tracking_number: str | None = None) -> SendResult:
        return await self._notify(
            NotificationTrigger.ORDER_SHIPPED,
            NotificationContext(order_id=order_id, tracking_number=tracking_number),
        )

    async def order_delivered(self, order_id: str) -> SendResult:
        return await self._notify(
            NotificationTrigger.ORDER_DELIVERED, NotificationContext(order_id=order_id)
        )

    async def order_cancelled(self, order_id: str) -> SendResult:
        return await self._notify(
            NotificationTrigger.ORDER_CANCELLED, NotificationContext(order_id=order_id)
        )

    async def order_refunded(self, order_id: str) -> SendResult:
        return await self._notify(
            NotificationTrigger.ORDER_REFUNDED, NotificationContext(order_id=order_id)
        )

    async def payment_failed(self, order_id: str) -> SendResult:
        return await self._notify(
            NotificationTrigger.PAYMENT_FAILED, NotificationContext(order_id=order_id)
        )

    async def customer_note(self, order_id: str, note_content: str) -> SendResult:
        return await self._notify(
            NotificationTrigger.CUSTOMER_NOTE,
            NotificationContext(order_id=order_id, note_content=note_content),
        )

    async def invoice_created(self, order_id: str, invoice_url: str) -> SendResult:
        return await self._notify(
            NotificationTrigger.INVOICE_CREATED, await self._invoice_context(order_id, invoice_url)
        )

    async def invoice_paid(self, order_id: str, invoice_url: str) -> SendResult:
        return await self._notify(
            NotificationTrigger.INVOICE_PAID, await self._invoice_context(order_id, invoice_url)
        )

    async def standalone_invoice(
        self,
        invoice_number: str,
        invoice_url: str,
        customer_name: str,
        phone: str,
        total: str,
        *,
        paid: bool = False,
    ) -> SendResult:
        """Invoice raised by an admin with no order behind it."""
        trigger = NotificationTrigger.INVOICE_PAID if paid else NotificationTrigger.INVOICE_CREATED
        overrides = VariableOverrides(
            customer_name=customer_name,
            invoice_number=invoice_number,
            order_number=invoice_number,
            order_total=total,
            invoice_url=invoice_url,
            billing_phone=phone,
        )
        return await self._notify(trigger, NotificationContext(overrides=overrides))

    async def invoice_pdf(self, order_id: str, invoice_url: str, *, paid: bool = False) -> SendResult:
        try:
            return await self._dispatcher.send_invoice_pdf(order_id, invoice_url, paid=paid)
        except Exception as exc:
            logger.exception("Error sending invoice PDF for order %s", order_id)
            return SendResult(success=False, error=str(exc))

    async def review_request(self, order_id: str) -> SendResult:
        return await self._notify(
            NotificationTrigger.REVIEW_REQUEST, NotificationContext(order_id=order_id)
        )

    async def _invoice_context(self, order_id: str, invoice_url: str) -> NotificationContext:
        order = await resolve(self._commerce.get_order(order_id))
        invoice_number = None
        if order is not None:
            invoice_number = order.invoice.invoice_number if order.invoice else order.order_number
        return NotificationContext(
            order_id=order_id,
            overrides=VariableOverrides(invoice_number=invoice_number, invoice_url=invoice_url),
        )

    # -- accounts and catalogue ----------------------------------------------

    async def new_account(self, user_id: str) -> SendResult:
        return await self._notify(NotificationTrigger.NEW_ACCOUNT, NotificationContext(user_id=user_id))

    async def password_reset(self, phone: str, reset_code: str, customer_name: str) -> SendResult:
        return await self._notify(
            NotificationTrigger.PASSWORD_RESET,
            NotificationContext(
                reset_code=reset_code,
                overrides=VariableOverrides(customer_name=customer_name, recipient_phone=phone),
            ),
        )

    async def loyalty_points_earned(
        self, user_id: str, points_earned: int, points_balance: int, order_number: str
    ) -> SendResult:
        return await self._notify(
            NotificationTrigger.LOYALTY_POINTS_EARNED,
            NotificationContext(
                user_id=user_id,
                loyalty=LoyaltyValues(
                    points_earned=points_earned,
                    points_balance=points_balance,
                    points_value=points_balance * POINT_VALUE_CFA,
                ),
                overrides=VariableOverrides(order_number=order_number),
            ),
        )

    async def abandoned_cart(
        self,
        phone: str,
        customer_name: str,
        items_count: int,
        items_list: str,
        cart_total: str,
    ) -> SendResult:
        return await self._notify(
            NotificationTrigger.ABANDONED_CART,
            NotificationContext(
                cart=CartValues(items_count=items_count, items_list=items_list, total=cart_total),
                overrides=VariableOverrides(customer_name=customer_name, recipient_phone=phone),
            ),
        )

    async def back_in_stock(self, product_id: str, user_id: str) -> SendResult:
        return await self._notify(
            NotificationTrigger.BACK_IN_STOCK,
            NotificationContext(product_id=product_id, user_id=user_id),
        )

    # -- admin alerts --------------------------------------------------------

    async def new_order_admin(self, order_id: str) -> SendResult:
        return await self._notify(
            NotificationTrigger.NEW_ORDER_ADMIN, NotificationContext(order_id=order_id), RecipientType.ADMIN
        )

    async def payment_received_admin(self, order_id: str) -> SendResult:
        return await self._notify(
            NotificationTrigger.PAYMENT_RECEIVED_ADMIN,
            NotificationContext(order_id=order_id),
            RecipientType.ADMIN,
        )

    async def low_stock(self, product_id: str) -> SendResult:
        return await self._notify(
            NotificationTrigger.LOW_STOCK_ADMIN, NotificationContext(product_id=product_id), RecipientType.ADMIN
        )

    async def out_of_stock(self, product_id: str) -> SendResult:
        return await self._notify(
            NotificationTrigger.OUT_OF_STOCK_ADMIN,
            NotificationContext(product_id=product_id),
            RecipientType.ADMIN,
        )

    async def new_customer_admin(self, user_id: str) -> SendResult:
        return await self._notify(
            NotificationTrigger.NEW_CUSTOMER_ADMIN, NotificationContext(user_id=user_id), RecipientType.ADMIN
        )

    async def new_review_admin(self, review_id: str) -> SendResult:
        return await self._notify(
            NotificationTrigger.NEW_REVIEW_ADMIN, NotificationContext(review_id=review_id), RecipientType.ADMIN
        )

    async def daily_report(self, now: datetime | None = None) -> SendResult:
        """Summarise today's activity for the admin."""
        try:
            report = await self.build_daily_report(now)
        except Exception as exc:
            logger.exception("Error building daily sales report")
            return SendResult(success=False, error=str(exc))
        return await self._notify(
            NotificationTrigger.DAILY_REPORT_ADMIN, NotificationContext(report=report), RecipientType.ADMIN
        )

    async def build_daily_report(self, now: datetime | None = None) -> DailyReportValues:
        now = now or datetime.now(timezone.utc)
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)

        orders = await resolve(self._commerce.list_orders_since(start_of_day))
        new_customers = await resolve(self._commerce.count_customers(since=start_of_day))
        total_customers = await resolve(self._commerce.count_customers())
        low_stock = await resolve(self._commerce.count_low_stock_products())

        def count(status: OrderStatus) -> int:
            return sum(1 for o in orders if o.status == status)

        return DailyReportValues(
            total_revenue=format_amount(sum(o.total for o in orders)),
            orders_count=len(orders),
            pending_orders=count(OrderStatus.PENDING),
            processing_orders=count(OrderStatus.PROCESSING),
            delivered_orders=count(OrderStatus.DELIVERED),
            cancelled_orders=count(OrderStatus.CANCELLED),
            new_customers=new_customers,
            total_customers=total_customers,
            products_sold=sum(item.quantity for o in orders for item in o.items),
            low_stock_products=low_stock,
        )

    # -- lifecycle -----------------------------------------------------------

    async def on_order_created(self, order_id: str) -> None:
        """New order: customer and admin notices, then payment reminders."""
        await self.order_placed(order_id)
        await self.new_order_admin(order_id)
        try:
            await self._scheduler.schedule_payment_reminders(order_id)
        except Exception:
            logger.exception("Error scheduling payment reminders for order %s", order_id)

    async def on_payment_confirmed(self, order_id: str, invoice_url: str | None = None) -> None:
        try:
            await self._scheduler.cancel_payment_reminders(order_id)
        except Exception:
            logger.exception("Error cancelling payment reminders for order %s", order_id)
        await self.payment_received(order_id, invoice_url)
        await self.payment_received_admin(order_id)

    async def on_order_cancelled(self, order_id: str) -> None:
        try:
            await self._scheduler.cancel_pending(order_id)
        except Exception:
            logger.exception("Error cancelling scheduled notifications for order %s", order_id)
        await self.order_cancelled(order_id)

    async def on_order_delivered(self, order_id: str) -> None:
        await self.order_delivered(order_id)
        try:
            await self._scheduler.schedule_review_request(order_id)
        except Exception:
            logger.exception("Error scheduling review request for order %s", order_id)
