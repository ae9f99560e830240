"""Delayed notifications: payment reminders and review requests."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Sequence

from shopnotify.core.types import (
    PAYMENT_REMINDER_TRIGGERS,
    NotificationTrigger,
    PaymentStatus,
    RecipientType,
    ScheduledStatus,
)
from shopnotify.notifications.dispatcher import NotificationDispatcher
from shopnotify.notifications.models import (
    NotificationContext,
    ProcessReport,
    ScheduledNotification,
)
from shopnotify.repositories import resolve
from shopnotify.repositories.protocols import CommerceRepository, NotificationRepository

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReminderScheduler:
    """Creates, cancels and delivers scheduled notifications.

    ``process_due`` is safe to run from several workers at once: each due
    entry is claimed with a conditional ``pending -> processing`` update
    and only the caller that wins the claim sends it.
    """

    def __init__(
        self,
        store: NotificationRepository,
        commerce: CommerceRepository,
        dispatcher: NotificationDispatcher,
        *,
        max_attempts: int = 3,
        review_request_delay: timedelta = timedelta(hours=24),
        claim_timeout: timedelta = timedelta(minutes=15),
    ) -> None:
        self._store = store
        self._commerce = commerce
        self._dispatcher = dispatcher
        self._max_attempts = max_attempts
        self._review_delay = review_request_delay
        self._claim_timeout = claim_timeout

    # -- scheduling ----------------------------------------------------------

    async def schedule(
        self,
        trigger: NotificationTrigger,
        order_id: str,
        delay: timedelta,
        *,
        reminder_number: int | None = None,
        now: datetime | None = None,
    ) -> ScheduledNotification:
        entry = ScheduledNotification(
            trigger=trigger,
            order_id=order_id,
            scheduled_for=(now or _utcnow()) + delay,
            reminder_number=reminder_number,
        )
        await resolve(self._store.add_scheduled([entry]))
        logger.info(
            "Scheduled %s for order %s at %s", trigger.value, order_id, entry.scheduled_for.isoformat()
        )
        return entry

    async def schedule_payment_reminders(
        self, order_id: str, *, now: datetime | None = None
    ) -> list[ScheduledNotification]:
        """Queue the enabled unpaid-order reminders for a new order.

        Nothing is queued when follow-up is switched off or the order is
        already paid.
        """
        follow_up = await resolve(self._store.get_follow_up_settings())
        if follow_up is None or not follow_up.enabled:
            logger.info("Payment follow-up reminders are disabled")
            return []

        state = await resolve(self._commerce.get_order_state(order_id))
        if state is not None and state.payment_status == PaymentStatus.COMPLETED:
            return []

        now = now or _utcnow()
        entries = [
            ScheduledNotification(
                trigger=PAYMENT_REMINDER_TRIGGERS[number - 1],
                order_id=order_id,
                scheduled_for=now + timedelta(hours=delay),
                reminder_number=number,
            )
            for number, delay in follow_up.enabled_reminders()
        ]
        if entries:
            await resolve(self._store.add_scheduled(entries))
            logger.info("Scheduled %d payment reminders for order %s", len(entries), order_id)
        return entries

    async def schedule_review_request(
        self, order_id: str, *, now: datetime | None = None
    ) -> ScheduledNotification:
        return await self.schedule(
            NotificationTrigger.REVIEW_REQUEST, order_id, self._review_delay, now=now
        )

    async def cancel_pending(
        self,
        order_id: str,
        triggers: Sequence[NotificationTrigger] | None = None,
        *,
        now: datetime | None = None,
    ) -> int:
        """Cancel every pending entry for an order, optionally only *triggers*."""
        count = await resolve(
            self._store.cancel_scheduled(order_id, triggers, now or _utcnow())
        )
        if count:
            logger.info("Cancelled %d scheduled notifications for order %s", count, order_id)
        return count

    async def cancel_payment_reminders(self, order_id: str) -> int:
        return await self.cancel_pending(order_id, PAYMENT_REMINDER_TRIGGERS)

    # -- processing ----------------------------------------------------------

    async def process_due(self, now: datetime | None = None) -> ProcessReport:
        """Deliver every pending entry whose time has come.

        Entries a previous pass claimed but never finished (the worker was
        cancelled or died) are first handed back as failed attempts once
        their claim is older than ``claim_timeout``.
        """
        now = now or _utcnow()
        report = ProcessReport()
        await self._recover_stale_claims(now, report)

        due = await resolve(self._store.list_due_scheduled(now))
        report.due = len(due)

        for entry in due:
            claimed = await resolve(
                self._store.transition_scheduled(
                    entry.id, ScheduledStatus.PENDING, ScheduledStatus.PROCESSING, at=now
                )
            )
            if not claimed:
                report.skipped += 1
                continue
            try:
                await self._process_claimed(entry, now, report)
            except asyncio.CancelledError:
                await self._record_failure(entry, now, "Interrupted before delivery finished", report)
                raise

        if report.due or report.recovered:
            logger.info(
                "Processed %d due notifications: sent=%d cancelled=%d retried=%d failed=%d "
                "skipped=%d recovered=%d",
                report.due,
                report.sent,
                report.cancelled,
                report.retried,
                report.failed,
                report.skipped,
                report.recovered,
            )
        return report

    async def _recover_stale_claims(self, now: datetime, report: ProcessReport) -> None:
        stale = await resolve(self._store.list_stale_claims(now - self._claim_timeout))
        for entry in stale:
            logger.warning(
                "Recovering %s for order %s, claimed at %s and never finished",
                entry.trigger.value,
                entry.order_id,
                entry.claimed_at.isoformat() if entry.claimed_at else "unknown",
            )
            if await self._record_failure(entry, now, "Claim expired before delivery finished", report):
                report.recovered += 1

    async def _process_claimed(
        self, entry: ScheduledNotification, now: datetime, report: ProcessReport
    ) -> None:
        state = await resolve(self._commerce.get_order_state(entry.order_id))
        if state is None or state.settled:
            await resolve(
                self._store.transition_scheduled(
                    entry.id,
                    ScheduledStatus.PROCESSING,
                    ScheduledStatus.CANCELLED,
                    at=now,
                    error_message="order not found" if state is None else None,
                )
            )
            report.cancelled += 1
            return

        try:
            result = await self._dispatcher.send(
                entry.trigger,
                RecipientType.CUSTOMER,
                NotificationContext(order_id=entry.order_id),
                send_both=True,
            )
            error = None if result.success else (result.error or "Send failed")
        except Exception as exc:
            logger.exception("Scheduled %s for order %s raised", entry.trigger.value, entry.order_id)
            error = str(exc) or type(exc).__name__

        if error is None:
            await resolve(
                self._store.transition_scheduled(
                    entry.id, ScheduledStatus.PROCESSING, ScheduledStatus.SENT, at=_utcnow()
                )
            )
            report.sent += 1
            logger.info("Sent scheduled %s for order %s", entry.trigger.value, entry.order_id)
            return

        await self._record_failure(entry, now, error, report)

    async def _record_failure(
        self, entry: ScheduledNotification, now: datetime, error: str, report: ProcessReport
    ) -> bool:
        """Release a claimed entry for another attempt, or fail it for good.

        Returns False when the entry was no longer ``processing``.
        """
        attempts = entry.attempts + 1
        next_status = (
            ScheduledStatus.PENDING if attempts < self._max_attempts else ScheduledStatus.FAILED
        )
        moved = await resolve(
            self._store.transition_scheduled(
                entry.id,
                ScheduledStatus.PROCESSING,
                next_status,
                at=now,
                attempts=attempts,
                error_message=error,
            )
        )
        if not moved:
            return False
        if next_status == ScheduledStatus.FAILED:
            report.failed += 1
            logger.error(
                "Giving up on %s for order %s after %d attempts: %s",
                entry.trigger.value,
                entry.order_id,
                attempts,
                error,
            )
        else:
            report.retried += 1
            logger.warning(
                "Scheduled %s for order %s failed (attempt %d/%d): %s",
                entry.trigger.value,
                entry.order_id,
                attempts,
                self._max_attempts,
                error,
            )
        return True

    async def run_forever(self, interval_seconds: float) -> None:
        """Call ``process_due`` every *interval_seconds* until cancelled."""
        logger.info("Scheduled notification loop started (every %ss)", interval_seconds)
        while True:
            try:
                await self.process_due()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Scheduled notification pass failed")
            await asyncio.sleep(interval_seconds)
