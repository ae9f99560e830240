"""FastAPI application for the shopnotify notification engine.

Wires the stores, transport, dispatcher, scheduler and event hooks onto
``app.state`` and exposes the notification admin API plus a health check.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from datetime import timedelta
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from shopnotify.commerce.store import CommerceStore
from shopnotify.core.config import Settings
from shopnotify.db.engine import DatabaseManager
from shopnotify.notifications.dispatcher import NotificationDispatcher
from shopnotify.notifications.events import NotificationEvents
from shopnotify.notifications.scheduler import ReminderScheduler
from shopnotify.notifications.seed import apply_seed, load_seed
from shopnotify.notifications.store import NotificationStore
from shopnotify.notifications.variables import VariableResolver
from shopnotify.transport.base import ChannelTransport
from shopnotify.transport.mock import MockTransport
from shopnotify.transport.smsing import SMSingClient
from shopnotify.web.notification_router import router as notification_router


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str
    storage: str
    transport: str
    version: str = "0.1.0"


def build_transport(settings: Settings) -> ChannelTransport:
    """Select the channel transport named by ``notification.transport``."""
    name = settings.notification.transport.lower()
    if name == "smsing":
        return SMSingClient(settings.smsing)
    if name == "mock":
        return MockTransport()
    raise ValueError(f"Unknown notification transport: {settings.notification.transport!r}")


def create_app(
    settings: Settings | None = None,
    transport: ChannelTransport | None = None,
    notification_store: Any = None,
    commerce_store: Any = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Uses the factory pattern so tests can create isolated app instances
    with mock dependencies.

    Args:
        settings: Application settings. Defaults to Settings().
        transport: Optional pre-built channel transport.
        notification_store: Optional pre-built notification repository.
        commerce_store: Optional pre-built commerce repository.

    Returns:
        A configured FastAPI instance.
    """
    if settings is None:
        settings = Settings()

    logging.basicConfig(level=settings.log_level)

    seed = load_seed(settings.notification.templates_path)
    db_manager: DatabaseManager | None = None

    if settings.db.database_url:
        from shopnotify.repositories.postgres.commerce import PostgresCommerceRepository
        from shopnotify.repositories.postgres.notifications import (
            PostgresNotificationRepository,
        )

        db_manager = DatabaseManager.from_config(settings.db)
        if notification_store is None:
            notification_store = PostgresNotificationRepository(db_manager)
        if commerce_store is None:
            commerce_store = PostgresCommerceRepository(db_manager)
        storage = "postgres"
    else:
        if notification_store is None:
            notification_store = NotificationStore(seed=seed)
        if commerce_store is None:
            commerce_store = CommerceStore()
        storage = "memory"

    if transport is None:
        transport = build_transport(settings)

    resolver = VariableResolver(commerce_store, settings.store)
    dispatcher = NotificationDispatcher(
        notification_store,
        commerce_store,
        transport,
        resolver,
        store_config=settings.store,
        timeout_seconds=settings.smsing.timeout_seconds,
        otp_language=settings.smsing.otp_language,
    )
    scheduler = ReminderScheduler(
        notification_store,
        commerce_store,
        dispatcher,
        max_attempts=settings.scheduler.max_attempts,
        review_request_delay=timedelta(hours=settings.scheduler.review_request_delay_hours),
        claim_timeout=timedelta(minutes=settings.scheduler.claim_timeout_minutes),
    )
    events = NotificationEvents(dispatcher, scheduler, commerce_store)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if db_manager is not None:
            await apply_seed(notification_store, seed)

        loop_task: asyncio.Task | None = None
        if settings.scheduler.enabled:
            loop_task = asyncio.create_task(
                scheduler.run_forever(settings.scheduler.interval_seconds)
            )
        try:
            yield
        finally:
            if loop_task is not None:
                loop_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await loop_task
            await transport.close()
            if db_manager is not None:
                await db_manager.close()

    app = FastAPI(
        title="shopnotify",
        description="Multi-channel order notification engine",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Store on app state for access in route handlers
    app.state.settings = settings
    app.state.notification_store = notification_store
    app.state.commerce_store = commerce_store
    app.state.transport = transport
    app.state.resolver = resolver
    app.state.dispatcher = dispatcher
    app.state.scheduler = scheduler
    app.state.events = events
    if db_manager is not None:
        app.state.db_manager = db_manager

    app.include_router(notification_router)

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            service="shopnotify",
            storage=storage,
            transport=type(transport).__name__,
        )

    return app
