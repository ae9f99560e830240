"""API tests for the notification admin endpoints."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from helpers import CUSTOMER_PHONE, make_order

from shopnotify.commerce.store import CommerceStore
from shopnotify.core.config import Settings
from shopnotify.core.types import NotificationChannel, NotificationTrigger
from shopnotify.notifications.models import ScheduledNotification
from shopnotify.transport.mock import MockTransport
from shopnotify.web.app import create_app


@pytest.fixture
def transport() -> MockTransport:
    return MockTransport()


@pytest.fixture
def app(transport):
    commerce = CommerceStore()
    commerce.add_order(make_order())
    return create_app(settings=Settings(), transport=transport, commerce_store=commerce)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


def _template_id(client: TestClient, trigger: str, channel: str) -> str:
    templates = client.get("/api/notifications/templates").json()
    return next(t["id"] for t in templates if t["trigger"] == trigger and t["channel"] == channel)


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        resp = client.get("/api/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["storage"] == "memory"
        assert data["transport"] == "MockTransport"


class TestSettingsAPI:
    def test_get_seeded_settings(self, client: TestClient) -> None:
        resp = client.get("/api/notifications/settings")
        assert resp.status_code == 200
        data = resp.json()
        assert data["sms_enabled"] is True
        assert data["failover_order"] == ["WHATSAPP", "SMS"]

    def test_partial_update(self, client: TestClient) -> None:
        resp = client.put("/api/notifications/settings", json={"whatsapp_enabled": False})
        assert resp.status_code == 200
        data = client.get("/api/notifications/settings").json()
        assert data["whatsapp_enabled"] is False
        assert data["sms_enabled"] is True

    def test_invalid_update(self, client: TestClient) -> None:
        resp = client.put("/api/notifications/settings", json={"failover_order": ["FAX"]})
        assert resp.status_code == 400

    def test_follow_up(self, client: TestClient) -> None:
        resp = client.put("/api/notifications/follow-up", json={"reminder1_delay": 12})
        assert resp.status_code == 200
        data = client.get("/api/notifications/follow-up").json()
        assert data["reminder1_delay"] == 12
        assert data["reminder2_delay"] == 72

    def test_follow_up_out_of_range(self, client: TestClient) -> None:
        resp = client.put("/api/notifications/follow-up", json={"reminder1_delay": 0})
        assert resp.status_code == 400

    def test_follow_up_stats(self, app, client: TestClient) -> None:
        now = datetime.now(timezone.utc)
        app.state.notification_store.add_scheduled(
            [
                ScheduledNotification(
                    trigger=NotificationTrigger.PAYMENT_REMINDER_1,
                    order_id="order-1",
                    scheduled_for=now + timedelta(hours=1),
                ),
                ScheduledNotification(
                    trigger=NotificationTrigger.REVIEW_REQUEST,
                    order_id="order-1",
                    scheduled_for=now + timedelta(hours=1),
                ),
            ]
        )
        resp = client.get("/api/notifications/follow-up/stats")
        assert resp.json() == {"pending": 1, "sent": 0, "cancelled": 0}


class TestTemplatesAPI:
    def test_list_seeded_templates(self, client: TestClient) -> None:
        templates = client.get("/api/notifications/templates").json()
        assert len(templates) == 52

    def test_update_template(self, client: TestClient) -> None:
        template_id = _template_id(client, "ORDER_PLACED", "SMS")
        resp = client.put(
            f"/api/notifications/templates/{template_id}",
            json={"content": "Merci {customer_name}!"},
        )
        assert resp.status_code == 200
        assert resp.json()["content"] == "Merci {customer_name}!"
        assert resp.json()["enabled"] is True

    def test_update_missing_template(self, client: TestClient) -> None:
        resp = client.put("/api/notifications/templates/nope", json={"enabled": False})
        assert resp.status_code == 404

    def test_send_test_template(self, client: TestClient, transport: MockTransport) -> None:
        template_id = _template_id(client, "ORDER_PLACED", "SMS")
        resp = client.post(
            f"/api/notifications/templates/{template_id}/test",
            json={"phone": "+2250700000000"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert "Test Client" in data["content"]
        assert "ORD-TEST-001" in data["content"]
        assert transport.sent[0].to == "+2250700000000"
        logs = client.get("/api/notifications/logs").json()
        assert logs["total"] == 1

    def test_send_test_missing_template(self, client: TestClient) -> None:
        resp = client.post("/api/notifications/templates/nope/test", json={"phone": "+225"})
        assert resp.status_code == 404


class TestSendAPI:
    def test_quick_send(self, client: TestClient, transport: MockTransport) -> None:
        resp = client.post(
            "/api/notifications/send",
            json={"phone": "+2250700000000", "message": "Bonjour", "channel": "WHATSAPP"},
        )
        assert resp.status_code == 200
        assert resp.json()["success"] is True
        assert transport.sent[0].content == "Bonjour"

    def test_quick_send_email_rejected(self, client: TestClient) -> None:
        resp = client.post(
            "/api/notifications/send",
            json={"phone": "a@b.c", "message": "x", "channel": "EMAIL"},
        )
        assert resp.status_code == 400

    def test_quick_send_whatsapp_cloud_rejected(
        self, client: TestClient, transport: MockTransport
    ) -> None:
        resp = client.post(
            "/api/notifications/send",
            json={"phone": "+2250700000000", "message": "x", "channel": "WHATSAPP_CLOUD"},
        )
        assert resp.status_code == 400
        assert "approved templates" in resp.json()["detail"]
        assert transport.call_count() == 0
        assert client.get("/api/notifications/logs").json()["total"] == 0

    def test_quick_send_is_logged(self, client: TestClient, transport: MockTransport) -> None:
        client.post(
            "/api/notifications/send",
            json={"phone": "+225 07-00 (00) 00 00", "message": "Bonjour", "channel": "SMS"},
        )
        assert transport.sent[0].to == "+2250700000000"
        data = client.get("/api/notifications/logs?trigger=CUSTOMER_NOTE").json()
        assert data["total"] == 1
        entry = data["logs"][0]
        assert entry["status"] == "sent"
        assert entry["channel"] == "SMS"
        assert entry["recipient_phone"] == "+2250700000000"
        assert entry["content"] == "Bonjour"

    def test_failed_quick_send_is_logged(
        self, client: TestClient, transport: MockTransport
    ) -> None:
        transport.fail.add(NotificationChannel.SMS)
        resp = client.post(
            "/api/notifications/send",
            json={"phone": "+2250700000000", "message": "Bonjour", "channel": "SMS"},
        )
        assert resp.json()["success"] is False
        entry = client.get("/api/notifications/logs?status=failed").json()["logs"][0]
        assert entry["error_message"] == "SMS rejected"
        assert entry["sent_at"] is None

    def test_trigger(self, client: TestClient, transport: MockTransport) -> None:
        resp = client.post(
            "/api/notifications/trigger",
            json={"trigger": "ORDER_PLACED", "context": {"order_id": "order-1"}},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["channels"] == {"sms": True, "whatsapp": True}
        assert {m.to for m in transport.sent} == {CUSTOMER_PHONE}

    def test_trigger_test_mode(self, client: TestClient, transport: MockTransport) -> None:
        client.put(
            "/api/notifications/settings",
            json={"test_mode": True, "test_phone_number": "+2250100000000"},
        )
        client.post(
            "/api/notifications/trigger",
            json={"trigger": "ORDER_PLACED", "context": {"order_id": "order-1"}},
        )
        assert {m.to for m in transport.sent} == {"+2250100000000"}

    def test_unknown_trigger(self, client: TestClient) -> None:
        resp = client.post("/api/notifications/trigger", json={"trigger": "NOPE"})
        assert resp.status_code == 422


class TestLogsAPI:
    def _send(self, client: TestClient) -> None:
        client.post(
            "/api/notifications/trigger",
            json={"trigger": "ORDER_PLACED", "context": {"order_id": "order-1"}},
        )

    def test_logs_filter_and_page(self, client: TestClient) -> None:
        self._send(client)
        data = client.get("/api/notifications/logs?channel=SMS").json()
        assert data["total"] == 1
        assert data["logs"][0]["recipient_phone"] == CUSTOMER_PHONE
        page = client.get("/api/notifications/logs?page=2&limit=1").json()
        assert len(page["logs"]) == 1
        assert page["total"] == 2

    def test_logs_bad_page(self, client: TestClient) -> None:
        assert client.get("/api/notifications/logs?page=0").status_code == 400

    def test_stats(self, client: TestClient) -> None:
        self._send(client)
        data = client.get("/api/notifications/stats?period=7").json()
        assert data["sent"] == 2
        assert data["success_rate"] == 100.0
        assert data["by_channel"] == {"SMS": 1, "WHATSAPP": 1}
        assert data["by_trigger"] == {"ORDER_PLACED": 2}


class TestScheduledAPI:
    def test_list_and_process(self, app, client: TestClient, transport: MockTransport) -> None:
        app.state.notification_store.add_scheduled(
            [
                ScheduledNotification(
                    trigger=NotificationTrigger.PAYMENT_REMINDER_1,
                    order_id="order-1",
                    scheduled_for=datetime.now(timezone.utc) - timedelta(minutes=1),
                    reminder_number=1,
                )
            ]
        )
        listed = client.get("/api/notifications/scheduled?order_id=order-1").json()
        assert len(listed) == 1
        assert listed[0]["status"] == "pending"

        report = client.post("/api/notifications/scheduled/process").json()
        assert report["sent"] == 1
        assert transport.call_count() == 2

        sent = client.get("/api/notifications/scheduled?status=sent").json()
        assert len(sent) == 1
