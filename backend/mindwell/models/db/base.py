"""Re-export Base and provide common column helpers for ORM models."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from mindwell.database import Base

__all__ = ["Base", "TimestampMixin", "JSONDocument", "new_id", "utcnow"]

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


def new_id() -> str:
    """Return a fresh string identifier."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    """Mixin that adds ``created_at`` and ``updated_at`` columns.

    ``updated_at`` is refreshed on every ORM UPDATE via ``onupdate``; bulk
    UPDATE statements set it explicitly.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
