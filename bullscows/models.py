"""
SQLAlchemy ORM models for durable storage.

Tables:
- storage_entries: one row per logical key (session, level, identity,
  score_table, pending_sync, ...). The value is the versioned JSON document.

Why JSON?
- Documents are small and validated by pydantic on the way out;
  SQLite and MySQL (5.7+/8.0+) both support a JSON column.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import String, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StorageEntry(Base):
    __tablename__ = "storage_entries"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_utcnow)
