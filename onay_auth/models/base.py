"""
Declarative base & shared mixins for all models.

Every table gets an auto-incrementing integer primary key; ids are
embedded in tokens and admin URLs, so they stay small and numeric.
Timestamps are stored timezone-aware and always written in UTC.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base — all models inherit from this."""
    pass


class IntegerPrimaryKeyMixin:
    """Adds a serial integer `id` primary key."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)


class CreatedAtMixin:
    """Adds an immutable created_at (UTC)."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
