"""Tests for PostgresNotificationRepository with SQLite async."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from helpers import make_settings, template

from shopnotify.core.types import (
    LogStatus,
    NotificationChannel,
    NotificationTrigger,
    ScheduledStatus,
)
from shopnotify.db.engine import DatabaseManager
from shopnotify.notifications.models import (
    LogFilter,
    NotificationLogEntry,
    PaymentFollowUpSettings,
    ScheduledNotification,
)
from shopnotify.repositories.postgres.notifications import PostgresNotificationRepository

NOW = datetime(2026, 3, 14, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
async def repo():
    db = DatabaseManager("sqlite+aiosqlite:///:memory:")
    await db.create_all()
    yield PostgresNotificationRepository(db)
    await db.close()


def _log(**overrides) -> NotificationLogEntry:
    fields = {
        "trigger": NotificationTrigger.ORDER_PLACED,
        "channel": NotificationChannel.SMS,
        "recipient_phone": "+2250709999999",
        "content": "Bonjour",
        "status": LogStatus.SENT,
        "order_id": "order-1",
    }
    fields.update(overrides)
    return NotificationLogEntry(**fields)


def _scheduled(**overrides) -> ScheduledNotification:
    fields = {
        "trigger": NotificationTrigger.PAYMENT_REMINDER_1,
        "order_id": "order-1",
        "scheduled_for": NOW,
        "reminder_number": 1,
    }
    fields.update(overrides)
    return ScheduledNotification(**fields)


class TestSettings:
    async def test_missing(self, repo):
        assert await repo.get_settings() is None
        assert await repo.get_follow_up_settings() is None

    async def test_round_trip_and_update(self, repo):
        await repo.save_settings(
            make_settings(failover_enabled=True, failover_order=[NotificationChannel.SMS])
        )
        found = await repo.get_settings()
        assert found.admin_phones == ["+2250556791431"]
        assert found.failover_order == [NotificationChannel.SMS]

        await repo.save_settings(make_settings(test_mode=True, test_phone_number="+2250100000000"))
        found = await repo.get_settings()
        assert found.test_mode is True
        assert found.test_phone_number == "+2250100000000"

    async def test_follow_up(self, repo):
        await repo.save_follow_up_settings(PaymentFollowUpSettings(reminder2_delay=48))
        await repo.save_follow_up_settings(
            PaymentFollowUpSettings(reminder2_delay=48, reminder3_enabled=False)
        )
        found = await repo.get_follow_up_settings()
        assert found.enabled_reminders() == [(1, 24), (2, 48)]


class TestTemplates:
    async def test_lookup_by_trigger_and_channel(self, repo):
        t = template(NotificationTrigger.ORDER_PLACED, NotificationChannel.SMS, "Merci {customer_name}")
        await repo.save_template(t)
        found = await repo.get_template(NotificationTrigger.ORDER_PLACED, NotificationChannel.SMS)
        assert found.content == "Merci {customer_name}"
        assert found.id == t.id
        assert await repo.get_template(
            NotificationTrigger.ORDER_PLACED, NotificationChannel.WHATSAPP
        ) is None

    async def test_save_updates_existing_pair(self, repo):
        t = template(NotificationTrigger.ORDER_PLACED, NotificationChannel.SMS, "v1")
        await repo.save_template(t)
        await repo.save_template(t.model_copy(update={"content": "v2", "enabled": False}))
        templates = await repo.list_templates()
        assert len(templates) == 1
        assert templates[0].content == "v2"
        assert templates[0].enabled is False
        assert (await repo.get_template_by_id(t.id)).content == "v2"


class TestLog:
    async def test_filters_and_paging(self, repo):
        for i in range(3):
            await repo.add_log(_log(created_at=NOW + timedelta(minutes=i)))
        await repo.add_log(
            _log(channel=NotificationChannel.WHATSAPP, status=LogStatus.FAILED, order_id="order-2")
        )

        assert len(await repo.list_logs()) == 4
        assert len(await repo.list_logs(LogFilter(order_id="order-1"))) == 3
        assert len(await repo.list_logs(LogFilter(status=LogStatus.FAILED))) == 1
        page = await repo.list_logs(LogFilter(order_id="order-1"), offset=1, limit=1)
        assert page[0].created_at == NOW + timedelta(minutes=1)

    async def test_stats(self, repo):
        await repo.add_log(_log())
        await repo.add_log(_log(channel=NotificationChannel.WHATSAPP))
        await repo.add_log(_log(status=LogStatus.FAILED))

        stats = await repo.log_stats()

        assert stats.total == 3
        assert stats.sent == 2
        assert stats.failed == 1
        assert stats.by_channel == {"SMS": 2, "WHATSAPP": 1}
        assert stats.by_trigger == {"ORDER_PLACED": 3}
        assert stats.success_rate == pytest.approx(66.67)

    async def test_since_filter(self, repo):
        await repo.add_log(_log(created_at=NOW - timedelta(days=30)))
        await repo.add_log(_log(created_at=NOW))
        stats = await repo.log_stats(LogFilter(since=NOW - timedelta(days=7)))
        assert stats.total == 1


class TestScheduled:
    async def test_due_query(self, repo):
        await repo.add_scheduled(
            [_scheduled(), _scheduled(scheduled_for=NOW + timedelta(days=2), reminder_number=2)]
        )
        due = await repo.list_due_scheduled(NOW + timedelta(hours=1))
        assert [e.reminder_number for e in due] == [1]
        assert due[0].scheduled_for == NOW

    async def test_transition_is_conditional(self, repo):
        entry = _scheduled()
        await repo.add_scheduled([entry])

        assert await repo.transition_scheduled(
            entry.id, ScheduledStatus.PENDING, ScheduledStatus.PROCESSING
        )
        assert not await repo.transition_scheduled(
            entry.id, ScheduledStatus.PENDING, ScheduledStatus.PROCESSING
        )
        assert await repo.transition_scheduled(
            entry.id, ScheduledStatus.PROCESSING, ScheduledStatus.SENT, at=NOW
        )
        found = await repo.get_scheduled(entry.id)
        assert found.status == ScheduledStatus.SENT
        assert found.sent_at == NOW

    async def test_transition_records_attempts(self, repo):
        entry = _scheduled()
        await repo.add_scheduled([entry])
        await repo.transition_scheduled(entry.id, ScheduledStatus.PENDING, ScheduledStatus.PROCESSING)
        await repo.transition_scheduled(
            entry.id,
            ScheduledStatus.PROCESSING,
            ScheduledStatus.PENDING,
            attempts=1,
            error_message="timeout",
        )
        found = await repo.get_scheduled(entry.id)
        assert found.attempts == 1
        assert found.error_message == "timeout"

    async def test_stale_claims(self, repo):
        old, fresh, waiting = _scheduled(), _scheduled(reminder_number=2), _scheduled(reminder_number=3)
        await repo.add_scheduled([old, fresh, waiting])
        await repo.transition_scheduled(
            old.id, ScheduledStatus.PENDING, ScheduledStatus.PROCESSING, at=NOW
        )
        await repo.transition_scheduled(
            fresh.id, ScheduledStatus.PENDING, ScheduledStatus.PROCESSING, at=NOW + timedelta(hours=1)
        )

        stale = await repo.list_stale_claims(NOW + timedelta(minutes=15))

        assert [e.id for e in stale] == [old.id]
        assert stale[0].claimed_at == NOW

    async def test_cancel_and_count(self, repo):
        await repo.add_scheduled(
            [
                _scheduled(),
                _scheduled(trigger=NotificationTrigger.PAYMENT_REMINDER_2, reminder_number=2),
                _scheduled(trigger=NotificationTrigger.REVIEW_REQUEST, reminder_number=None),
                _scheduled(order_id="order-2"),
            ]
        )

        count = await repo.cancel_scheduled(
            "order-1",
            [NotificationTrigger.PAYMENT_REMINDER_1, NotificationTrigger.PAYMENT_REMINDER_2],
            NOW,
        )

        assert count == 2
        assert await repo.count_scheduled(ScheduledStatus.CANCELLED) == 2
        assert await repo.count_scheduled(ScheduledStatus.PENDING) == 2
        assert await repo.count_scheduled(
            ScheduledStatus.PENDING, [NotificationTrigger.REVIEW_REQUEST]
        ) == 1
        pending = await repo.list_scheduled(order_id="order-1", status=ScheduledStatus.PENDING)
        assert [e.trigger for e in pending] == [NotificationTrigger.REVIEW_REQUEST]
        assert await repo.cancel_scheduled("order-1", None, NOW) == 1
