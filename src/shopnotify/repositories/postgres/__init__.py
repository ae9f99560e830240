"""SQLAlchemy async repositories (PostgreSQL in production, SQLite in tests)."""

from shopnotify.repositories.postgres.commerce import PostgresCommerceRepository
from shopnotify.repositories.postgres.notifications import PostgresNotificationRepository

__all__ = ["PostgresCommerceRepository", "PostgresNotificationRepository"]
