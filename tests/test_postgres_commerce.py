"""Tests for PostgresCommerceRepository with SQLite async."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from shopnotify.core.types import OrderStatus, PaymentStatus
from shopnotify.db.engine import DatabaseManager
from shopnotify.db.models import (
    AddressRow,
    InvoiceRow,
    OrderItemRow,
    OrderRow,
    PaymentRow,
    ProductRow,
    ReviewRow,
    UserRow,
)
from shopnotify.repositories.postgres.commerce import PostgresCommerceRepository

NOW = datetime(2026, 3, 14, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
async def repo():
    db = DatabaseManager("sqlite+aiosqlite:///:memory:")
    await db.create_all()
    async with db.session() as session:
        session.add_all(
            [
                UserRow(id="u1", name="Jean Dupont", phone="+2250709999999", created_at=NOW - timedelta(days=30)),
                UserRow(id="u2", name="Awa", whatsapp_number="+2250102030405", created_at=NOW),
                UserRow(id="admin", name="Admin", role="ADMIN", created_at=NOW),
                AddressRow(id="a1", user_id="u1", address_line1="Rue 12", city="Abidjan", country="CI"),
                ProductRow(id="p1", name="Vin Rouge", price=22500, stock=12),
                ProductRow(id="p2", name="Rhum", price=15000, stock=3),
                OrderRow(
                    id="o1",
                    order_number="ORD-1001",
                    user_id="u1",
                    shipping_address_id="a1",
                    status="SHIPPED",
                    payment_status="COMPLETED",
                    payment_method="Orange Money",
                    total=47500,
                    tracking_number="TRK123",
                    created_at=NOW,
                ),
                OrderItemRow(order_id="o1", product_id="p1", quantity=2, price=22500),
                PaymentRow(id="pay1", order_id="o1", reference="PAY-42", status="COMPLETED"),
                InvoiceRow(id="inv1", order_id="o1", invoice_number="INV-7"),
                OrderRow(
                    id="o2",
                    order_number="ORD-1000",
                    user_id="u2",
                    total=10000,
                    created_at=NOW - timedelta(days=2),
                ),
                ReviewRow(id="r1", user_id="u2", product_id="p1", rating=4, comment="Bon", created_at=NOW),
            ]
        )
        await session.commit()
    yield PostgresCommerceRepository(db)
    await db.close()


class TestOrders:
    async def test_get_order_with_relations(self, repo):
        order = await repo.get_order("o1")
        assert order.order_number == "ORD-1001"
        assert order.user.name == "Jean Dupont"
        assert order.shipping_address.city == "Abidjan"
        assert order.items[0].product.name == "Vin Rouge"
        assert order.items[0].quantity == 2
        assert order.payment.reference == "PAY-42"
        assert order.invoice.invoice_number == "INV-7"
        assert order.status == OrderStatus.SHIPPED
        assert order.created_at == NOW

    async def test_order_without_optional_relations(self, repo):
        order = await repo.get_order("o2")
        assert order.shipping_address is None
        assert order.payment is None
        assert order.invoice is None
        assert order.items == []
        assert order.user.contact_phone == "+2250102030405"

    async def test_missing_order(self, repo):
        assert await repo.get_order("nope") is None
        assert await repo.get_order_state("nope") is None

    async def test_order_state(self, repo):
        state = await repo.get_order_state("o1")
        assert state.payment_status == PaymentStatus.COMPLETED
        assert state.settled is True
        assert (await repo.get_order_state("o2")).settled is False

    async def test_list_orders_since(self, repo):
        orders = await repo.list_orders_since(NOW - timedelta(hours=1))
        assert [o.id for o in orders] == ["o1"]


class TestOtherEntities:
    async def test_user_and_product(self, repo):
        assert (await repo.get_user("u1")).phone == "+2250709999999"
        assert (await repo.get_product("p2")).stock == 3
        assert await repo.get_user("nope") is None

    async def test_review(self, repo):
        review = await repo.get_review("r1")
        assert review.user.name == "Awa"
        assert review.product.name == "Vin Rouge"
        assert review.rating == 4

    async def test_counts(self, repo):
        assert await repo.count_customers() == 2
        assert await repo.count_customers(since=NOW - timedelta(hours=1)) == 1
        assert await repo.count_low_stock_products() == 1
