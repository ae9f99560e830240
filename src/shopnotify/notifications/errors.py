"""Errors raised while preparing a notification send.

Only failures that make a send impossible are exceptions. A missing
template, a transport failure or an entity that cannot be found are
ordinary outcomes and are reported through results and the log.
"""

from __future__ import annotations


class NotificationError(Exception):
    """Base class for notification errors."""


class ConfigurationError(NotificationError):
    """The notification settings record does not exist."""


class RecipientNotFoundError(NotificationError):
    """No phone number could be determined for the recipient."""
