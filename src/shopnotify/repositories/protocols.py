"""Protocol definitions for the storage the notification engine relies on.

Each protocol mirrors the public methods of the corresponding in-memory
store exactly, so both the synchronous in-memory stores and the async
SQLAlchemy repositories satisfy the same interface. Return types are
written for the in-memory flavour; the async repositories return
coroutines resolving to the same values.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, Sequence, runtime_checkable

from shopnotify.commerce.models import Customer, Order, OrderState, Product, Review
from shopnotify.core.types import NotificationChannel, NotificationTrigger, ScheduledStatus
from shopnotify.notifications.models import (
    LogFilter,
    LogStats,
    NotificationLogEntry,
    NotificationSettings,
    NotificationTemplate,
    PaymentFollowUpSettings,
    ScheduledNotification,
)


@runtime_checkable
class NotificationRepository(Protocol):
    """Templates, settings, the delivery log and the scheduled queue."""

    # -- settings ------------------------------------------------------------

    def get_settings(self) -> NotificationSettings | None: ...

    def save_settings(self, settings: NotificationSettings) -> NotificationSettings: ...

    def get_follow_up_settings(self) -> PaymentFollowUpSettings | None: ...

    def save_follow_up_settings(
        self, settings: PaymentFollowUpSettings
    ) -> PaymentFollowUpSettings: ...

    # -- templates -----------------------------------------------------------

    def get_template(
        self, trigger: NotificationTrigger, channel: NotificationChannel
    ) -> NotificationTemplate | None: ...

    def get_template_by_id(self, template_id: str) -> NotificationTemplate | None: ...

    def save_template(self, template: NotificationTemplate) -> NotificationTemplate: ...

    def list_templates(self) -> list[NotificationTemplate]: ...

    # -- log -----------------------------------------------------------------

    def add_log(self, entry: NotificationLogEntry) -> NotificationLogEntry: ...

    def list_logs(
        self,
        filters: LogFilter | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[NotificationLogEntry]: ...

    def log_stats(self, filters: LogFilter | None = None) -> LogStats: ...

    # -- scheduled notifications ---------------------------------------------

    def add_scheduled(
        self, entries: Sequence[ScheduledNotification]
    ) -> list[ScheduledNotification]: ...

    def get_scheduled(self, entry_id: str) -> ScheduledNotification | None: ...

    def list_scheduled(
        self,
        order_id: str | None = None,
        status: ScheduledStatus | None = None,
    ) -> list[ScheduledNotification]: ...

    def list_due_scheduled(self, now: datetime) -> list[ScheduledNotification]: ...

    def list_stale_claims(self, claimed_before: datetime) -> list[ScheduledNotification]: ...

    def transition_scheduled(
        self,
        entry_id: str,
        expected: ScheduledStatus,
        status: ScheduledStatus,
        *,
        at: datetime | None = None,
        attempts: int | None = None,
        error_message: str | None = None,
    ) -> bool: ...

    def cancel_scheduled(
        self,
        order_id: str,
        triggers: Sequence[NotificationTrigger] | None = None,
        at: datetime | None = None,
    ) -> int: ...

    def count_scheduled(
        self,
        status: ScheduledStatus,
        triggers: Sequence[NotificationTrigger] | None = None,
    ) -> int: ...


@runtime_checkable
class CommerceRepository(Protocol):
    """Read-only lookups against the storefront's own records."""

    def get_order(self, order_id: str) -> Order | None: ...

    def get_order_state(self, order_id: str) -> OrderState | None: ...

    def get_user(self, user_id: str) -> Customer | None: ...

    def get_product(self, product_id: str) -> Product | None: ...

    def get_review(self, review_id: str) -> Review | None: ...

    def list_orders_since(self, since: datetime) -> list[Order]: ...

    def count_customers(self, since: datetime | None = None) -> int: ...

    def count_low_stock_products(self) -> int: ...
