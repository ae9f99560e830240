"""Read-only PostgreSQL access to the storefront tables."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from shopnotify.commerce.models import (
    Address,
    Customer,
    Invoice,
    Order,
    OrderItem,
    OrderState,
    Payment,
    Product,
    Review,
)
from shopnotify.core.types import OrderStatus, PaymentStatus
from shopnotify.db.engine import DatabaseManager
from shopnotify.db.models import (
    OrderItemRow,
    OrderRow,
    ProductRow,
    ReviewRow,
    UserRow,
)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _order_query():
    return select(OrderRow).options(
        selectinload(OrderRow.user),
        selectinload(OrderRow.shipping_address),
        selectinload(OrderRow.items).selectinload(OrderItemRow.product),
        selectinload(OrderRow.payment),
        selectinload(OrderRow.invoice),
    )


class PostgresCommerceRepository:
    """Loads orders, customers, products and reviews with their relations."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def get_order(self, order_id: str) -> Order | None:
        async with self._db.session() as db:
            result = await db.execute(_order_query().where(OrderRow.id == order_id))
            row = result.scalar_one_or_none()
            return self._row_to_order(row) if row else None

    async def get_order_state(self, order_id: str) -> OrderState | None:
        async with self._db.session() as db:
            result = await db.execute(
                select(OrderRow.status, OrderRow.payment_status).where(OrderRow.id == order_id)
            )
            found = result.one_or_none()
            if found is None:
                return None
            return OrderState(
                order_id=order_id,
                status=OrderStatus(found.status),
                payment_status=PaymentStatus(found.payment_status),
            )

    async def get_user(self, user_id: str) -> Customer | None:
        async with self._db.session() as db:
            row = await db.get(UserRow, user_id)
            return self._row_to_customer(row) if row else None

    async def get_product(self, product_id: str) -> Product | None:
        async with self._db.session() as db:
            row = await db.get(ProductRow, product_id)
            return self._row_to_product(row) if row else None

    async def get_review(self, review_id: str) -> Review | None:
        async with self._db.session() as db:
            result = await db.execute(
                select(ReviewRow)
                .options(selectinload(ReviewRow.user), selectinload(ReviewRow.product))
                .where(ReviewRow.id == review_id)
            )
            row = result.scalar_one_or_none()
            if row is None:
                return None
            return Review(
                id=row.id,
                user=self._row_to_customer(row.user),
                product=self._row_to_product(row.product),
                rating=row.rating,
                comment=row.comment,
                verified=row.verified,
                created_at=_aware(row.created_at),
            )

    async def list_orders_since(self, since: datetime) -> list[Order]:
        async with self._db.session() as db:
            result = await db.execute(
                _order_query().where(OrderRow.created_at >= since).order_by(OrderRow.created_at)
            )
            return [self._row_to_order(r) for r in result.scalars().all()]

    async def count_customers(self, since: datetime | None = None) -> int:
        stmt = select(func.count()).select_from(UserRow).where(UserRow.role == "CUSTOMER")
        if since is not None:
            stmt = stmt.where(UserRow.created_at >= since)
        async with self._db.session() as db:
            result = await db.execute(stmt)
            return result.scalar_one()

    async def count_low_stock_products(self) -> int:
        async with self._db.session() as db:
            result = await db.execute(
                select(func.count())
                .select_from(ProductRow)
                .where(ProductRow.stock <= ProductRow.low_stock_threshold)
            )
            return result.scalar_one()

    # -- row conversion ------------------------------------------------------

    @staticmethod
    def _row_to_customer(row: UserRow) -> Customer:
        return Customer(
            id=row.id,
            name=row.name,
            email=row.email,
            phone=row.phone,
            whatsapp_number=row.whatsapp_number,
            city=row.city,
            country=row.country,
            role=row.role,
            created_at=_aware(row.created_at),
        )

    @staticmethod
    def _row_to_product(row: ProductRow) -> Product:
        return Product(
            id=row.id,
            name=row.name,
            price=row.price,
            stock=row.stock,
            low_stock_threshold=row.low_stock_threshold,
        )

    @classmethod
    def _row_to_order(cls, row: OrderRow) -> Order:
        address = row.shipping_address
        return Order(
            id=row.id,
            order_number=row.order_number,
            user=cls._row_to_customer(row.user),
            shipping_address=Address(
                id=address.id,
                address_line1=address.address_line1,
                city=address.city,
                country=address.country,
                phone=address.phone,
            )
            if address
            else None,
            items=[
                OrderItem(
                    product=cls._row_to_product(item.product),
                    quantity=item.quantity,
                    price=item.price,
                )
                for item in row.items
            ],
            payment=Payment(reference=row.payment.reference, status=PaymentStatus(row.payment.status))
            if row.payment
            else None,
            invoice=Invoice(invoice_number=row.invoice.invoice_number) if row.invoice else None,
            status=OrderStatus(row.status),
            payment_status=PaymentStatus(row.payment_status),
            payment_method=row.payment_method,
            subtotal=row.subtotal,
            tax=row.tax,
            shipping_cost=row.shipping_cost,
            discount=row.discount,
            total=row.total,
            tracking_number=row.tracking_number,
            created_at=_aware(row.created_at),
        )
