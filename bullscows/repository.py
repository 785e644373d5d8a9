"""
DB-backed key-value store that mirrors the in-memory InMemoryStore API.

Public methods:
- get(key) -> document | None
- set(key, value) -> None
- delete(key) -> None

Why: lets the game switch from memory to a database without touching the
controller, ledger or backlog.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import sessionmaker

from .models import StorageEntry


class SQLStore:
    """Each call opens its own short session so the store can live for the whole process."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get(self, key: str) -> Optional[Any]:
        with self._session_factory() as db:
            entry = db.get(StorageEntry, key)
            if entry is None:
                return None
            return entry.value

    def set(self, key: str, value: Any) -> None:
        with self._session_factory() as db:
            entry = db.get(StorageEntry, key)
            now = datetime.now(timezone.utc)
            if entry is None:
                db.add(StorageEntry(key=key, value=value, updated_at=now))
            else:
                entry.value = value
                entry.updated_at = now
            db.commit()

    def delete(self, key: str) -> None:
        with self._session_factory() as db:
            db.execute(delete(StorageEntry).where(StorageEntry.key == key))
            db.commit()

    def keys(self) -> list:
        with self._session_factory() as db:
            return sorted(db.execute(select(StorageEntry.key)).scalars().all())
