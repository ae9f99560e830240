"""Builds the flat variable mapping a template is rendered against."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from shopnotify.commerce.models import Customer, Order
from shopnotify.core.config import StoreConfig
from shopnotify.core.types import TRIGGER_ENTITY, EntityKind, NotificationTrigger
from shopnotify.notifications.models import (
    CartValues,
    DailyReportValues,
    LoyaltyValues,
    NotificationContext,
)
from shopnotify.notifications.rendering import format_amount, format_date
from shopnotify.repositories import resolve
from shopnotify.repositories.protocols import CommerceRepository

logger = logging.getLogger(__name__)

DELIVERY_ESTIMATE = "Sous 24-48h"
DEFAULT_CUSTOMER_NAME = "Client"


def _split_name(name: str | None) -> tuple[str, str]:
    parts = (name or "").split(" ")
    return parts[0] or DEFAULT_CUSTOMER_NAME, " ".join(parts[1:])


class VariableResolver:
    """Resolves a trigger and its context into template variables.

    Store identity is always present. Entity-bound triggers look up their
    order, user, product or review; a lookup miss leaves the derived
    variables out rather than failing, so the template still renders with
    its placeholders intact.
    """

    def __init__(self, commerce: CommerceRepository, store: StoreConfig | None = None) -> None:
        self._commerce = commerce
        self._store = store or StoreConfig()

    async def resolve(
        self, trigger: NotificationTrigger, context: NotificationContext
    ) -> dict[str, Any]:
        variables: dict[str, Any] = {
            "store_name": self._store.name,
            "store_url": self._store.url,
            "store_phone": self._store.phone,
            "store_whatsapp": self._store.whatsapp,
            "store_address": self._store.address,
        }

        kind = TRIGGER_ENTITY[trigger]
        if kind == EntityKind.ORDER and context.order_id:
            await self._order_variables(variables, context)
        elif kind == EntityKind.PRODUCT and context.product_id:
            await self._product_variables(variables, context.product_id)
        elif kind == EntityKind.USER and context.user_id:
            await self._user_variables(variables, trigger, context.user_id)
        elif kind == EntityKind.REVIEW and context.review_id:
            await self._review_variables(variables, context.review_id)
        elif kind == EntityKind.NONE:
            self._raw_variables(variables, trigger, context)

        self._apply_overrides(variables, context)
        return variables

    # -- entity-bound triggers -------------------------------------------------

    async def _order_variables(self, variables: dict[str, Any], context: NotificationContext) -> None:
        order: Order | None = await resolve(self._commerce.get_order(context.order_id))
        if order is None:
            logger.debug("Order %s not found, rendering without order variables", context.order_id)
            return

        variables.update(self._customer_fields(order.user))
        address = order.shipping_address
        if address is not None:
            variables["billing_address"] = address.address_line1
            variables["billing_city"] = address.city
            variables["billing_country"] = address.country

        variables.update(
            order_number=order.order_number,
            order_id=order.id,
            order_date=format_date(order.created_at),
            order_status=order.status.value,
            order_total=format_amount(order.total),
            order_subtotal=format_amount(order.subtotal),
            order_tax=format_amount(order.tax),
            order_shipping=format_amount(order.shipping_cost),
            order_discount=format_amount(order.discount),
            order_product=", ".join(item.product.name for item in order.items),
            order_product_with_qty=", ".join(
                f"{item.product.name} ({item.quantity}x)" for item in order.items
            ),
            order_items_count=len(order.items),
        )

        if order.payment is not None:
            variables["payment_method"] = order.payment_method
            variables["payment_reference"] = order.payment.reference
            variables["payment_status"] = order.payment.status.value

        tracking = order.tracking_number or context.tracking_number
        if tracking:
            variables["tracking_number"] = tracking
        variables["delivery_date"] = DELIVERY_ESTIMATE

        if context.note_content:
            variables["note_content"] = context.note_content

        if order.invoice is not None:
            variables["invoice_number"] = order.invoice.invoice_number
        if context.overrides.invoice_number:
            variables["invoice_number"] = context.overrides.invoice_number

        variables["recipientPhone"] = order.user.contact_phone

    async def _product_variables(self, variables: dict[str, Any], product_id: str) -> None:
        product = await resolve(self._commerce.get_product(product_id))
        if product is None:
            logger.debug("Product %s not found", product_id)
            return
        variables.update(
            product_name=product.name,
            product_price=format_amount(product.price),
            product_stock=product.stock,
            low_stock_quantity=product.stock,
            low_stock_threshold=product.low_stock_threshold,
            product_quantity=product.stock,
        )

    async def _user_variables(
        self, variables: dict[str, Any], trigger: NotificationTrigger, user_id: str
    ) -> None:
        user = await resolve(self._commerce.get_user(user_id))
        if user is None:
            logger.debug("User %s not found", user_id)
            return
        variables.update(self._customer_fields(user))
        variables["billing_city"] = user.city or ""
        variables["billing_country"] = user.country or ""
        variables["registration_date"] = format_date(user.created_at)
        variables["recipientPhone"] = user.contact_phone

        if trigger == NotificationTrigger.NEW_CUSTOMER_ADMIN:
            variables["total_customers"] = await resolve(self._commerce.count_customers())

    async def _review_variables(self, variables: dict[str, Any], review_id: str) -> None:
        review = await resolve(self._commerce.get_review(review_id))
        if review is None:
            logger.debug("Review %s not found", review_id)
            return
        variables.update(
            customer_name=review.user.name or DEFAULT_CUSTOMER_NAME,
            product_name=review.product.name,
            rating=review.rating,
            review_comment=review.comment or "",
            verified_purchase="Oui" if review.verified else "Non",
        )

    @staticmethod
    def _customer_fields(user: Customer) -> dict[str, Any]:
        first, last = _split_name(user.name)
        return {
            "customer_name": user.name or DEFAULT_CUSTOMER_NAME,
            "billing_first_name": first,
            "billing_last_name": last,
            "billing_phone": user.phone,
            "billing_email": user.email or "",
        }

    # -- raw-value triggers ----------------------------------------------------

    @staticmethod
    def _raw_variables(
        variables: dict[str, Any], trigger: NotificationTrigger, context: NotificationContext
    ) -> None:
        overrides = context.overrides
        if trigger == NotificationTrigger.LOYALTY_POINTS_EARNED:
            loyalty = context.loyalty or LoyaltyValues()
            variables.update(loyalty.model_dump())
            variables["order_number"] = overrides.order_number or ""
        elif trigger == NotificationTrigger.ABANDONED_CART:
            cart = context.cart or CartValues()
            variables.update(
                cart_items_count=cart.items_count,
                cart_items_list=cart.items_list,
                cart_total=cart.total,
                customer_name=overrides.customer_name or DEFAULT_CUSTOMER_NAME,
                recipientPhone=overrides.recipient_phone or "",
            )
        elif trigger == NotificationTrigger.PASSWORD_RESET:
            variables.update(
                reset_code=context.reset_code or "",
                customer_name=overrides.customer_name or DEFAULT_CUSTOMER_NAME,
                recipientPhone=overrides.recipient_phone or "",
            )
        elif trigger == NotificationTrigger.DAILY_REPORT_ADMIN:
            variables["report_date"] = format_date(datetime.now(timezone.utc))
            variables.update((context.report or DailyReportValues()).model_dump())

    @staticmethod
    def _apply_overrides(variables: dict[str, Any], context: NotificationContext) -> None:
        """Fill caller-supplied values wherever a lookup left a gap."""
        overrides = context.overrides
        fill_ins = {
            "customer_name": overrides.customer_name,
            "order_number": overrides.order_number,
            "invoice_number": overrides.invoice_number,
            "order_total": overrides.order_total,
            "order_date": overrides.order_date,
            "billing_phone": overrides.billing_phone,
            "recipientPhone": overrides.recipient_phone,
        }
        for name, value in fill_ins.items():
            if value and not variables.get(name):
                variables[name] = value
        if overrides.invoice_url:
            variables["invoice_url"] = overrides.invoice_url
