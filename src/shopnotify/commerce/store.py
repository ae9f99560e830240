"""In-memory storefront records for tests and local runs."""

from __future__ import annotations

from datetime import datetime

from shopnotify.commerce.models import Customer, Order, OrderState, Product, Review
from shopnotify.core.types import OrderStatus, PaymentStatus


class CommerceStore:
    """Dictionary-backed implementation of ``CommerceRepository``.

    The shop application owns these records; this store also exposes the
    ``add_*`` and ``set_order_status`` writers so tests can stage state.
    """

    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}
        self._users: dict[str, Customer] = {}
        self._products: dict[str, Product] = {}
        self._reviews: dict[str, Review] = {}
        self.lookups = 0

    # -- writers ---------------------------------------------------------------

    def add_user(self, user: Customer) -> Customer:
        self._users[user.id] = user
        return user

    def add_order(self, order: Order) -> Order:
        self._orders[order.id] = order
        self.add_user(order.user)
        for item in order.items:
            self._products.setdefault(item.product.id, item.product)
        return order

    def add_product(self, product: Product) -> Product:
        self._products[product.id] = product
        return product

    def add_review(self, review: Review) -> Review:
        self._reviews[review.id] = review
        return review

    def set_order_status(
        self,
        order_id: str,
        status: OrderStatus | None = None,
        payment_status: PaymentStatus | None = None,
    ) -> None:
        order = self._orders[order_id]
        updates = {}
        if status is not None:
            updates["status"] = status
        if payment_status is not None:
            updates["payment_status"] = payment_status
        self._orders[order_id] = order.model_copy(update=updates)

    # -- lookups ---------------------------------------------------------------

    def get_order(self, order_id: str) -> Order | None:
        self.lookups += 1
        order = self._orders.get(order_id)
        return order.model_copy(deep=True) if order else None

    def get_order_state(self, order_id: str) -> OrderState | None:
        order = self._orders.get(order_id)
        if order is None:
            return None
        return OrderState(
            order_id=order.id, status=order.status, payment_status=order.payment_status
        )

    def get_user(self, user_id: str) -> Customer | None:
        self.lookups += 1
        user = self._users.get(user_id)
        return user.model_copy() if user else None

    def get_product(self, product_id: str) -> Product | None:
        self.lookups += 1
        product = self._products.get(product_id)
        return product.model_copy() if product else None

    def get_review(self, review_id: str) -> Review | None:
        self.lookups += 1
        review = self._reviews.get(review_id)
        return review.model_copy(deep=True) if review else None

    def list_orders_since(self, since: datetime) -> list[Order]:
        return [
            o.model_copy(deep=True)
            for o in sorted(self._orders.values(), key=lambda o: o.created_at)
            if o.created_at >= since
        ]

    def count_customers(self, since: datetime | None = None) -> int:
        return sum(
            1
            for u in self._users.values()
            if u.role == "CUSTOMER" and (since is None or u.created_at >= since)
        )

    def count_low_stock_products(self) -> int:
        return sum(1 for p in self._products.values() if p.stock <= p.low_stock_threshold)
