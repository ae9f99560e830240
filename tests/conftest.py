"""Shared test fixtures."""

from __future__ import annotations

import pytest

from helpers import DEFAULT_TEMPLATES, make_order, make_store

from shopnotify.commerce.store import CommerceStore
from shopnotify.notifications.dispatcher import NotificationDispatcher
from shopnotify.notifications.events import NotificationEvents
from shopnotify.notifications.scheduler import ReminderScheduler
from shopnotify.notifications.store import NotificationStore
from shopnotify.transport.mock import MockTransport


@pytest.fixture
def store() -> NotificationStore:
    return make_store(templates=DEFAULT_TEMPLATES)


@pytest.fixture
def commerce() -> CommerceStore:
    commerce = CommerceStore()
    commerce.add_order(make_order())
    return commerce


@pytest.fixture
def transport() -> MockTransport:
    return MockTransport()


@pytest.fixture
def dispatcher(store, commerce, transport) -> NotificationDispatcher:
    return NotificationDispatcher(store, commerce, transport, timeout_seconds=0.5)


@pytest.fixture
def scheduler(store, commerce, dispatcher) -> ReminderScheduler:
    return ReminderScheduler(store, commerce, dispatcher, max_attempts=3)


@pytest.fixture
def events(dispatcher, scheduler, commerce) -> NotificationEvents:
    return NotificationEvents(dispatcher, scheduler, commerce)
