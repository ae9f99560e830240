"""In-memory notification store."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from typing import Sequence

from shopnotify.core.types import (
    LogStatus,
    NotificationChannel,
    NotificationTrigger,
    ScheduledStatus,
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
from shopnotify.notifications.seed import SeedData


class NotificationStore:
    """In-memory store for templates, settings, logs and scheduled entries.

    Records are copied on the way in and out so callers never share state
    with the store, the same as they would with a database.
    """

    def __init__(self, seed: SeedData | None = None) -> None:
        self._settings: NotificationSettings | None = None
        self._follow_up: PaymentFollowUpSettings | None = None
        self._templates: dict[tuple[NotificationTrigger, NotificationChannel], NotificationTemplate] = {}
        self._logs: list[NotificationLogEntry] = []
        self._scheduled: dict[str, ScheduledNotification] = {}
        if seed is not None:
            self._apply_seed(seed)

    def _apply_seed(self, seed: SeedData) -> None:
        if seed.settings is not None:
            self._settings = seed.settings.model_copy(deep=True)
        if seed.follow_up is not None:
            self._follow_up = seed.follow_up.model_copy()
        for template in seed.templates:
            self.save_template(template)

    # -- settings ------------------------------------------------------------

    def get_settings(self) -> NotificationSettings | None:
        return self._settings.model_copy(deep=True) if self._settings else None

    def save_settings(self, settings: NotificationSettings) -> NotificationSettings:
        self._settings = settings.model_copy(deep=True)
        return settings

    def get_follow_up_settings(self) -> PaymentFollowUpSettings | None:
        return self._follow_up.model_copy() if self._follow_up else None

    def save_follow_up_settings(
        self, settings: PaymentFollowUpSettings
    ) -> PaymentFollowUpSettings:
        self._follow_up = settings.model_copy()
        return settings

    # -- templates -----------------------------------------------------------

    def get_template(
        self, trigger: NotificationTrigger, channel: NotificationChannel
    ) -> NotificationTemplate | None:
        template = self._templates.get((trigger, channel))
        return template.model_copy() if template else None

    def get_template_by_id(self, template_id: str) -> NotificationTemplate | None:
        for template in self._templates.values():
            if template.id == template_id:
                return template.model_copy()
        return None

    def save_template(self, template: NotificationTemplate) -> NotificationTemplate:
        self._templates[(template.trigger, template.channel)] = template.model_copy()
        return template

    def list_templates(self) -> list[NotificationTemplate]:
        return [
            t.model_copy()
            for t in sorted(self._templates.values(), key=lambda t: (t.trigger, t.channel))
        ]

    # -- log -----------------------------------------------------------------

    def add_log(self, entry: NotificationLogEntry) -> NotificationLogEntry:
        self._logs.append(entry)
        return entry

    def list_logs(
        self,
        filters: LogFilter | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[NotificationLogEntry]:
        filters = filters or LogFilter()
        matching = [e for e in reversed(self._logs) if filters.matches(e)]
        end = None if limit is None else offset + limit
        return matching[offset:end]

    def log_stats(self, filters: LogFilter | None = None) -> LogStats:
        entries = self.list_logs(filters)
        statuses = Counter(e.status for e in entries)
        return LogStats(
            total=len(entries),
            sent=statuses[LogStatus.SENT],
            failed=statuses[LogStatus.FAILED],
            pending=statuses[LogStatus.PENDING],
            by_channel=dict(Counter(e.channel.value for e in entries)),
            by_trigger=dict(Counter(e.trigger.value for e in entries)),
        )

    @property
    def log_count(self) -> int:
        return len(self._logs)

    # -- scheduled notifications ---------------------------------------------

    def add_scheduled(
        self, entries: Sequence[ScheduledNotification]
    ) -> list[ScheduledNotification]:
        for entry in entries:
            self._scheduled[entry.id] = entry.model_copy()
        return list(entries)

    def get_scheduled(self, entry_id: str) -> ScheduledNotification | None:
        entry = self._scheduled.get(entry_id)
        return entry.model_copy() if entry else None

    def list_scheduled(
        self,
        order_id: str | None = None,
        status: ScheduledStatus | None = None,
    ) -> list[ScheduledNotification]:
        return [
            e.model_copy()
            for e in sorted(self._scheduled.values(), key=lambda e: e.scheduled_for)
            if (order_id is None or e.order_id == order_id)
            and (status is None or e.status == status)
        ]

    def list_due_scheduled(self, now: datetime) -> list[ScheduledNotification]:
        return [
            e
            for e in self.list_scheduled(status=ScheduledStatus.PENDING)
            if e.scheduled_for <= now
        ]

    def list_stale_claims(self, claimed_before: datetime) -> list[ScheduledNotification]:
        """Entries left in ``processing`` by a pass that never finished them."""
        return [
            e
            for e in self.list_scheduled(status=ScheduledStatus.PROCESSING)
            if e.claimed_at is None or e.claimed_at <= claimed_before
        ]

    def transition_scheduled(
        self,
        entry_id: str,
        expected: ScheduledStatus,
        status: ScheduledStatus,
        *,
        at: datetime | None = None,
        attempts: int | None = None,
        error_message: str | None = None,
    ) -> bool:
        """Move an entry to *status* only if it is currently *expected*."""
        entry = self._scheduled.get(entry_id)
        if entry is None or entry.status != expected:
            return False
        updates: dict = {"status": status}
        at = at or datetime.now(timezone.utc)
        if status == ScheduledStatus.PROCESSING:
            updates["claimed_at"] = at
        elif status == ScheduledStatus.SENT:
            updates["sent_at"] = at
        elif status == ScheduledStatus.CANCELLED:
            updates["cancelled_at"] = at
        if attempts is not None:
            updates["attempts"] = attempts
        if error_message is not None:
            updates["error_message"] = error_message
        self._scheduled[entry_id] = entry.model_copy(update=updates)
        return True

    def cancel_scheduled(
        self,
        order_id: str,
        triggers: Sequence[NotificationTrigger] | None = None,
        at: datetime | None = None,
    ) -> int:
        count = 0
        for entry in list(self._scheduled.values()):
            if entry.order_id != order_id:
                continue
            if triggers is not None and entry.trigger not in triggers:
                continue
            if self.transition_scheduled(
                entry.id, ScheduledStatus.PENDING, ScheduledStatus.CANCELLED, at=at
            ):
                count += 1
        return count

    def count_scheduled(
        self,
        status: ScheduledStatus,
        triggers: Sequence[NotificationTrigger] | None = None,
    ) -> int:
        return sum(
            1
            for e in self._scheduled.values()
            if e.status == status and (triggers is None or e.trigger in triggers)
        )
