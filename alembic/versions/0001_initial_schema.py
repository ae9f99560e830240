"""Initial schema: notification templates, settings, log and scheduled queue.

The storefront tables (users, orders, products, reviews and friends) belong
to the shop application and are not managed here.

Revision ID: 0001
Revises:
Create Date: 2026-10-17

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _json() -> sa.types.TypeEngine:
    return sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    # -- Templates --
    op.create_table(
        "notification_templates",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("trigger", sa.String(48), nullable=False),
        sa.Column("channel", sa.String(16), nullable=False),
        sa.Column("name", sa.String(256), server_default=""),
        sa.Column("description", sa.Text, server_default=""),
        sa.Column("recipient_type", sa.String(16), server_default="customer"),
        sa.Column("content", sa.Text, server_default=""),
        sa.Column("enabled", sa.Boolean, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "trigger", "channel", name="uq_notification_templates_trigger_channel"
        ),
    )

    # -- Settings --
    op.create_table(
        "notification_settings",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("sms_enabled", sa.Boolean, server_default=sa.true()),
        sa.Column("whatsapp_enabled", sa.Boolean, server_default=sa.true()),
        sa.Column("email_enabled", sa.Boolean, server_default=sa.false()),
        sa.Column("admin_phones", _json(), nullable=False),
        sa.Column("admin_whatsapp", sa.String(32), nullable=True),
        sa.Column("failover_enabled", sa.Boolean, server_default=sa.false()),
        sa.Column("failover_order", _json(), nullable=False),
        sa.Column("test_mode", sa.Boolean, server_default=sa.false()),
        sa.Column("test_phone_number", sa.String(32), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "payment_follow_up_settings",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("enabled", sa.Boolean, server_default=sa.true()),
        sa.Column("reminder1_delay", sa.Integer, server_default="24"),
        sa.Column("reminder2_delay", sa.Integer, server_default="72"),
        sa.Column("reminder3_delay", sa.Integer, server_default="120"),
        sa.Column("reminder1_enabled", sa.Boolean, server_default=sa.true()),
        sa.Column("reminder2_enabled", sa.Boolean, server_default=sa.true()),
        sa.Column("reminder3_enabled", sa.Boolean, server_default=sa.true()),
    )

    # -- Delivery log --
    op.create_table(
        "notification_logs",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("trigger", sa.String(48), nullable=False),
        sa.Column("channel", sa.String(16), nullable=False),
        sa.Column("recipient_phone", sa.String(32), nullable=True),
        sa.Column("recipient_name", sa.String(256), nullable=True),
        sa.Column("content", sa.Text, server_default=""),
        sa.Column("status", sa.String(16), server_default="pending"),
        sa.Column("provider_id", sa.String(128), nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("order_id", sa.String(64), nullable=True),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_notification_logs_created_at", "notification_logs", ["created_at"])
    op.create_index("ix_notification_logs_order_id", "notification_logs", ["order_id"])

    # -- Scheduled notifications --
    op.create_table(
        "scheduled_notifications",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("trigger", sa.String(48), nullable=False),
        sa.Column("order_id", sa.String(64), nullable=False),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(16), server_default="pending"),
        sa.Column("attempts", sa.Integer, server_default="0"),
        sa.Column("reminder_number", sa.Integer, nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_scheduled_notifications_due", "scheduled_notifications", ["status", "scheduled_for"]
    )
    op.create_index(
        "ix_scheduled_notifications_order_id", "scheduled_notifications", ["order_id"]
    )


def downgrade() -> None:
    op.drop_table("scheduled_notifications")
    op.drop_table("notification_logs")
    op.drop_table("payment_follow_up_settings")
    op.drop_table("notification_settings")
    op.drop_table("notification_templates")
