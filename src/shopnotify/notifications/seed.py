"""Default templates and settings loaded from YAML."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from shopnotify.core.types import NotificationChannel, NotificationTrigger, recipient_type_for
from shopnotify.notifications.models import (
    NotificationSettings,
    NotificationTemplate,
    PaymentFollowUpSettings,
)
from shopnotify.repositories import resolve

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATES_PATH = Path(__file__).resolve().parents[3] / "config" / "notification_templates.yml"


class SeedData(BaseModel):
    settings: NotificationSettings | None = None
    follow_up: PaymentFollowUpSettings | None = None
    templates: list[NotificationTemplate] = Field(default_factory=list)


def load_seed(path: str | Path | None = None) -> SeedData:
    """Parse a templates file. A missing file yields an empty seed."""
    path = Path(path) if path else DEFAULT_TEMPLATES_PATH
    if not path.exists():
        logger.warning("Notification templates file %s not found", path)
        return SeedData()
    with open(path) as fh:
        data = yaml.safe_load(fh) or {}

    seed = SeedData()
    if "settings" in data:
        seed.settings = NotificationSettings(**(data["settings"] or {}))
    if "follow_up" in data:
        seed.follow_up = PaymentFollowUpSettings(**(data["follow_up"] or {}))

    for trigger_name, tmpl_data in (data.get("templates") or {}).items():
        trigger = NotificationTrigger(trigger_name)
        seed.templates.extend(_parse_trigger_templates(trigger, tmpl_data))
    return seed


def _parse_trigger_templates(
    trigger: NotificationTrigger, tmpl_data: dict[str, Any]
) -> list[NotificationTemplate]:
    recipient_type = tmpl_data.get("recipient_type", recipient_type_for(trigger))
    templates = []
    for channel_name, content in (tmpl_data.get("channels") or {}).items():
        channel = NotificationChannel(channel_name)
        templates.append(
            NotificationTemplate(
                trigger=trigger,
                channel=channel,
                content=content.strip(),
                name=f"{tmpl_data.get('name', trigger.value)} - {channel.value}",
                description=tmpl_data.get("description", ""),
                recipient_type=recipient_type,
                enabled=tmpl_data.get("enabled", True),
            )
        )
    return templates


async def apply_seed(store: Any, seed: SeedData) -> int:
    """Insert seed records the store does not already have.

    Existing templates and settings are left alone so admin edits survive
    a re-seed. Returns the number of templates inserted.
    """
    if seed.settings is not None and await resolve(store.get_settings()) is None:
        await resolve(store.save_settings(seed.settings))
    if seed.follow_up is not None and await resolve(store.get_follow_up_settings()) is None:
        await resolve(store.save_follow_up_settings(seed.follow_up))

    inserted = 0
    for template in seed.templates:
        existing = await resolve(store.get_template(template.trigger, template.channel))
        if existing is None:
            await resolve(store.save_template(template))
            inserted += 1
    if inserted:
        logger.info("Seeded %d notification templates", inserted)
    return inserted
