"""Database layer for shopnotify, SQLAlchemy 2.0 async."""

from __future__ import annotations

from shopnotify.db.base import Base
from shopnotify.db.engine import DatabaseManager

__all__ = ["Base", "DatabaseManager"]
