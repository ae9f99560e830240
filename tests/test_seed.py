"""Tests for loading and applying the default templates file."""

from __future__ import annotations

import pytest

from shopnotify.core.types import NotificationChannel, NotificationTrigger, RecipientType
from shopnotify.notifications.models import NotificationSettings
from shopnotify.notifications.rendering import placeholders
from shopnotify.notifications.seed import DEFAULT_TEMPLATES_PATH, apply_seed, load_seed
from shopnotify.notifications.store import NotificationStore


@pytest.fixture(scope="module")
def seed():
    return load_seed()


class TestDefaultFile:
    def test_file_exists(self):
        assert DEFAULT_TEMPLATES_PATH.exists()

    def test_every_trigger_has_sms_and_whatsapp(self, seed):
        pairs = {(t.trigger, t.channel) for t in seed.templates}
        for trigger in NotificationTrigger:
            assert (trigger, NotificationChannel.SMS) in pairs
            assert (trigger, NotificationChannel.WHATSAPP) in pairs

    def test_settings_and_follow_up(self, seed):
        assert seed.settings.sms_enabled is True
        assert seed.settings.email_enabled is False
        assert seed.settings.failover_order == [NotificationChannel.WHATSAPP, NotificationChannel.SMS]
        assert [d for _, d in seed.follow_up.enabled_reminders()] == [24, 72, 120]

    def test_admin_templates_are_marked_admin(self, seed):
        for t in seed.templates:
            expected = (
                RecipientType.ADMIN if t.trigger.value.endswith("_ADMIN") else RecipientType.CUSTOMER
            )
            assert t.recipient_type == expected

    def test_shipped_templates_reference_tracking(self, seed):
        shipped = [t for t in seed.templates if t.trigger == NotificationTrigger.ORDER_SHIPPED]
        assert all("tracking_number" in placeholders(t.content) for t in shipped)

    def test_content_is_stripped(self, seed):
        assert all(t.content == t.content.strip() for t in seed.templates)


def test_missing_file(tmp_path):
    seed = load_seed(tmp_path / "nope.yml")
    assert seed.templates == []
    assert seed.settings is None


def test_custom_file(tmp_path):
    path = tmp_path / "templates.yml"
    path.write_text(
        "settings:\n"
        "  admin_phones: ['+2250000000001']\n"
        "templates:\n"
        "  LOW_STOCK_ADMIN:\n"
        "    name: Stock bas\n"
        "    enabled: false\n"
        "    channels:\n"
        "      SMS: |\n"
        "        Stock bas: {product_name}\n"
    )
    seed = load_seed(path)
    assert seed.settings.admin_phones == ["+2250000000001"]
    assert seed.follow_up is None
    [t] = seed.templates
    assert t.content == "Stock bas: {product_name}"
    assert t.name == "Stock bas - SMS"
    assert t.enabled is False
    assert t.recipient_type == RecipientType.ADMIN


def test_unknown_trigger_rejected(tmp_path):
    path = tmp_path / "templates.yml"
    path.write_text("templates:\n  NOT_A_TRIGGER:\n    channels:\n      SMS: x\n")
    with pytest.raises(ValueError):
        load_seed(path)


async def test_apply_seed_keeps_existing_records(seed):
    store = NotificationStore()
    store.save_settings(NotificationSettings(test_mode=True))
    first = await apply_seed(store, seed)
    assert first == len(seed.templates)
    assert store.get_settings().test_mode is True
    assert store.get_follow_up_settings() is not None

    assert await apply_seed(store, seed) == 0


def test_review_alert_ships_disabled(seed):
    review = [t for t in seed.templates if t.trigger == NotificationTrigger.NEW_REVIEW_ADMIN]
    assert review and not any(t.enabled for t in review)
