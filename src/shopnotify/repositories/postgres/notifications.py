"""PostgreSQL notification repository."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import func, or_, select, update

from shopnotify.core.types import (
    LogStatus,
    NotificationChannel,
    NotificationTrigger,
    RecipientType,
    ScheduledStatus,
)
from shopnotify.db.engine import DatabaseManager
from shopnotify.db.models import (
    NotificationLogRow,
    NotificationSettingsRow,
    NotificationTemplateRow,
    PaymentFollowUpSettingsRow,
    ScheduledNotificationRow,
)
from shopnotify.notifications.models import (
    LogFilter,
    LogStats,
    NotificationLogEntry,
    NotificationSettings,
    NotificationTemplate,
    PaymentFollowUpSettings,
    ScheduledNotification,
)


def _aware(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything here is stored as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PostgresNotificationRepository:
    """Postgres-backed templates, settings, delivery log and scheduled queue."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    # -- settings ------------------------------------------------------------

    async def get_settings(self) -> NotificationSettings | None:
        async with self._db.session() as db:
            row = await db.get(NotificationSettingsRow, "default")
            return self._row_to_settings(row) if row else None

    async def save_settings(self, settings: NotificationSettings) -> NotificationSettings:
        values = settings.model_dump(exclude={"id"})
        values["failover_order"] = [c.value for c in settings.failover_order]
        async with self._db.transaction() as db:
            row = await db.get(NotificationSettingsRow, settings.id)
            if row is None:
                db.add(NotificationSettingsRow(id=settings.id, **values))
            else:
                for key, value in values.items():
                    setattr(row, key, value)
        return settings

    async def get_follow_up_settings(self) -> PaymentFollowUpSettings | None:
        async with self._db.session() as db:
            row = await db.get(PaymentFollowUpSettingsRow, "default")
            if row is None:
                return None
            return PaymentFollowUpSettings(
                id=row.id,
                enabled=row.enabled,
                reminder1_delay=row.reminder1_delay,
                reminder2_delay=row.reminder2_delay,
                reminder3_delay=row.reminder3_delay,
                reminder1_enabled=row.reminder1_enabled,
                reminder2_enabled=row.reminder2_enabled,
                reminder3_enabled=row.reminder3_enabled,
            )

    async def save_follow_up_settings(
        self, settings: PaymentFollowUpSettings
    ) -> PaymentFollowUpSettings:
        values = settings.model_dump(exclude={"id"})
        async with self._db.transaction() as db:
            row = await db.get(PaymentFollowUpSettingsRow, settings.id)
            if row is None:
                db.add(PaymentFollowUpSettingsRow(id=settings.id, **values))
            else:
                for key, value in values.items():
                    setattr(row, key, value)
        return settings

    # -- templates -----------------------------------------------------------

    async def get_template(
        self, trigger: NotificationTrigger, channel: NotificationChannel
    ) -> NotificationTemplate | None:
        async with self._db.session() as db:
            result = await db.execute(
                select(NotificationTemplateRow).where(
                    NotificationTemplateRow.trigger == trigger.value,
                    NotificationTemplateRow.channel == channel.value,
                )
            )
            row = result.scalar_one_or_none()
            return self._row_to_template(row) if row else None

    async def get_template_by_id(self, template_id: str) -> NotificationTemplate | None:
        async with self._db.session() as db:
            row = await db.get(NotificationTemplateRow, template_id)
            return self._row_to_template(row) if row else None

    async def save_template(self, template: NotificationTemplate) -> NotificationTemplate:
        async with self._db.transaction() as db:
            result = await db.execute(
                select(NotificationTemplateRow).where(
                    NotificationTemplateRow.trigger == template.trigger.value,
                    NotificationTemplateRow.channel == template.channel.value,
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                db.add(
                    NotificationTemplateRow(
                        id=template.id,
                        trigger=template.trigger.value,
                        channel=template.channel.value,
                        name=template.name,
                        description=template.description,
                        recipient_type=template.recipient_type.value,
                        content=template.content,
                        enabled=template.enabled,
                        created_at=template.created_at,
                        updated_at=template.updated_at,
                    )
                )
            else:
                row.name = template.name
                row.description = template.description
                row.recipient_type = template.recipient_type.value
                row.content = template.content
                row.enabled = template.enabled
                row.updated_at = template.updated_at
        return template

    async def list_templates(self) -> list[NotificationTemplate]:
        async with self._db.session() as db:
            result = await db.execute(
                select(NotificationTemplateRow).order_by(
                    NotificationTemplateRow.trigger, NotificationTemplateRow.channel
                )
            )
            return [self._row_to_template(r) for r in result.scalars().all()]

    # -- log -----------------------------------------------------------------

    async def add_log(self, entry: NotificationLogEntry) -> NotificationLogEntry:
        async with self._db.transaction() as db:
            db.add(
                NotificationLogRow(
                    id=entry.id,
                    trigger=entry.trigger.value,
                    channel=entry.channel.value,
                    recipient_phone=entry.recipient_phone,
                    recipient_name=entry.recipient_name,
                    content=entry.content,
                    status=entry.status.value,
                    provider_id=entry.provider_id,
                    error_message=entry.error_message,
                    order_id=entry.order_id,
                    user_id=entry.user_id,
                    created_at=entry.created_at,
                    sent_at=entry.sent_at,
                )
            )
        return entry

    async def list_logs(
        self,
        filters: LogFilter | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[NotificationLogEntry]:
        stmt = self._filtered(select(NotificationLogRow), filters).order_by(
            NotificationLogRow.created_at.desc()
        )
        stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._db.session() as db:
            result = await db.execute(stmt)
            return [self._row_to_log(r) for r in result.scalars().all()]

    async def log_stats(self, filters: LogFilter | None = None) -> LogStats:
        async with self._db.session() as db:
            stats = LogStats()
            for column, target in (
                (NotificationLogRow.status, None),
                (NotificationLogRow.channel, stats.by_channel),
                (NotificationLogRow.trigger, stats.by_trigger),
            ):
                stmt = self._filtered(select(column, func.count()), filters).group_by(column)
                result = await db.execute(stmt)
                for key, count in result.all():
                    if target is not None:
                        target[key] = count
                        continue
                    stats.total += count
                    if key == LogStatus.SENT:
                        stats.sent = count
                    elif key == LogStatus.FAILED:
                        stats.failed = count
                    elif key == LogStatus.PENDING:
                        stats.pending = count
            return stats

    @staticmethod
    def _filtered(stmt, filters: LogFilter | None):
        if filters is None:
            return stmt
        if filters.trigger is not None:
            stmt = stmt.where(NotificationLogRow.trigger == filters.trigger.value)
        if filters.channel is not None:
            stmt = stmt.where(NotificationLogRow.channel == filters.channel.value)
        if filters.status is not None:
            stmt = stmt.where(NotificationLogRow.status == filters.status.value)
        if filters.order_id is not None:
            stmt = stmt.where(NotificationLogRow.order_id == filters.order_id)
        if filters.user_id is not None:
            stmt = stmt.where(NotificationLogRow.user_id == filters.user_id)
        if filters.since is not None:
            stmt = stmt.where(NotificationLogRow.created_at >= filters.since)
        return stmt

    # -- scheduled notifications ---------------------------------------------

    async def add_scheduled(
        self, entries: Sequence[ScheduledNotification]
    ) -> list[ScheduledNotification]:
        async with self._db.transaction() as db:
            for entry in entries:
                db.add(
                    ScheduledNotificationRow(
                        id=entry.id,
                        trigger=entry.trigger.value,
                        order_id=entry.order_id,
                        scheduled_for=entry.scheduled_for,
                        status=entry.status.value,
                        attempts=entry.attempts,
                        reminder_number=entry.reminder_number,
                        error_message=entry.error_message,
                        created_at=entry.created_at,
                        claimed_at=entry.claimed_at,
                        sent_at=entry.sent_at,
                        cancelled_at=entry.cancelled_at,
                    )
                )
        return list(entries)

    async def get_scheduled(self, entry_id: str) -> ScheduledNotification | None:
        async with self._db.session() as db:
            row = await db.get(ScheduledNotificationRow, entry_id)
            return self._row_to_scheduled(row) if row else None

    async def list_scheduled(
        self,
        order_id: str | None = None,
        status: ScheduledStatus | None = None,
    ) -> list[ScheduledNotification]:
        stmt = select(ScheduledNotificationRow).order_by(ScheduledNotificationRow.scheduled_for)
        if order_id is not None:
            stmt = stmt.where(ScheduledNotificationRow.order_id == order_id)
        if status is not None:
            stmt = stmt.where(ScheduledNotificationRow.status == status.value)
        async with self._db.session() as db:
            result = await db.execute(stmt)
            return [self._row_to_scheduled(r) for r in result.scalars().all()]

    async def list_due_scheduled(self, now: datetime) -> list[ScheduledNotification]:
        async with self._db.session() as db:
            result = await db.execute(
                select(ScheduledNotificationRow)
                .where(
                    ScheduledNotificationRow.status == ScheduledStatus.PENDING.value,
                    ScheduledNotificationRow.scheduled_for <= now,
                )
                .order_by(ScheduledNotificationRow.scheduled_for)
            )
            return [self._row_to_scheduled(r) for r in result.scalars().all()]

    async def list_stale_claims(self, claimed_before: datetime) -> list[ScheduledNotification]:
        async with self._db.session() as db:
            result = await db.execute(
                select(ScheduledNotificationRow)
                .where(
                    ScheduledNotificationRow.status == ScheduledStatus.PROCESSING.value,
                    or_(
                        ScheduledNotificationRow.claimed_at.is_(None),
                        ScheduledNotificationRow.claimed_at <= claimed_before,
                    ),
                )
                .order_by(ScheduledNotificationRow.scheduled_for)
            )
            return [self._row_to_scheduled(r) for r in result.scalars().all()]

    async def transition_scheduled(
        self,
        entry_id: str,
        expected: ScheduledStatus,
        status: ScheduledStatus,
        *,
        at: datetime | None = None,
        attempts: int | None = None,
        error_message: str | None = None,
    ) -> bool:
        """Conditional update; only one concurrent caller can win."""
        values: dict = {"status": status.value}
        at = at or datetime.now(timezone.utc)
        if status == ScheduledStatus.PROCESSING:
            values["claimed_at"] = at
        elif status == ScheduledStatus.SENT:
            values["sent_at"] = at
        elif status == ScheduledStatus.CANCELLED:
            values["cancelled_at"] = at
        if attempts is not None:
            values["attempts"] = attempts
        if error_message is not None:
            values["error_message"] = error_message
        async with self._db.transaction() as db:
            result = await db.execute(
                update(ScheduledNotificationRow)
                .where(
                    ScheduledNotificationRow.id == entry_id,
                    ScheduledNotificationRow.status == expected.value,
                )
                .values(**values)
            )
            return result.rowcount == 1

    async def cancel_scheduled(
        self,
        order_id: str,
        triggers: Sequence[NotificationTrigger] | None = None,
        at: datetime | None = None,
    ) -> int:
        stmt = update(ScheduledNotificationRow).where(
            ScheduledNotificationRow.order_id == order_id,
            ScheduledNotificationRow.status == ScheduledStatus.PENDING.value,
        )
        if triggers is not None:
            stmt = stmt.where(ScheduledNotificationRow.trigger.in_([t.value for t in triggers]))
        stmt = stmt.values(
            status=ScheduledStatus.CANCELLED.value,
            cancelled_at=at or datetime.now(timezone.utc),
        )
        async with self._db.transaction() as db:
            result = await db.execute(stmt)
            return result.rowcount

    async def count_scheduled(
        self,
        status: ScheduledStatus,
        triggers: Sequence[NotificationTrigger] | None = None,
    ) -> int:
        stmt = (
            select(func.count())
            .select_from(ScheduledNotificationRow)
            .where(ScheduledNotificationRow.status == status.value)
        )
        if triggers is not None:
            stmt = stmt.where(ScheduledNotificationRow.trigger.in_([t.value for t in triggers]))
        async with self._db.session() as db:
            result = await db.execute(stmt)
            return result.scalar_one()

    # -- row conversion ------------------------------------------------------

    @staticmethod
    def _row_to_settings(row: NotificationSettingsRow) -> NotificationSettings:
        return NotificationSettings(
            id=row.id,
            sms_enabled=row.sms_enabled,
            whatsapp_enabled=row.whatsapp_enabled,
            email_enabled=row.email_enabled,
            admin_phones=list(row.admin_phones or []),
            admin_whatsapp=row.admin_whatsapp,
            failover_enabled=row.failover_enabled,
            failover_order=[NotificationChannel(c) for c in row.failover_order or []],
            test_mode=row.test_mode,
            test_phone_number=row.test_phone_number,
            updated_at=_aware(row.updated_at),
        )

    @staticmethod
    def _row_to_template(row: NotificationTemplateRow) -> NotificationTemplate:
        return NotificationTemplate(
            id=row.id,
            trigger=NotificationTrigger(row.trigger),
            channel=NotificationChannel(row.channel),
            content=row.content,
            name=row.name,
            description=row.description,
            recipient_type=RecipientType(row.recipient_type),
            enabled=row.enabled,
            created_at=_aware(row.created_at),
            updated_at=_aware(row.updated_at),
        )

    @staticmethod
    def _row_to_log(row: NotificationLogRow) -> NotificationLogEntry:
        return NotificationLogEntry(
            id=row.id,
            trigger=NotificationTrigger(row.trigger),
            channel=NotificationChannel(row.channel),
            recipient_phone=row.recipient_phone,
            recipient_name=row.recipient_name,
            content=row.content,
            status=LogStatus(row.status),
            provider_id=row.provider_id,
            error_message=row.error_message,
            order_id=row.order_id,
            user_id=row.user_id,
            created_at=_aware(row.created_at),
            sent_at=_aware(row.sent_at),
        )

    @staticmethod
    def _row_to_scheduled(row: ScheduledNotificationRow) -> ScheduledNotification:
        return ScheduledNotification(
            id=row.id,
            trigger=NotificationTrigger(row.trigger),
            order_id=row.order_id,
            scheduled_for=_aware(row.scheduled_for),
            status=ScheduledStatus(row.status),
            attempts=row.attempts,
            reminder_number=row.reminder_number,
            error_message=row.error_message,
            created_at=_aware(row.created_at),
            claimed_at=_aware(row.claimed_at),
            sent_at=_aware(row.sent_at),
            cancelled_at=_aware(row.cancelled_at),
        )
