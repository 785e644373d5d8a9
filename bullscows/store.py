"""
Key-value storage for everything the game persists (session, scores, queue...).
Values are JSON-compatible documents. Two backends share this API:
- InMemoryStore (here): a dict behind a lock, used in tests and when STORAGE_BACKEND=memory
- SQLStore (repository.py): one row per key
"""

from copy import deepcopy
from threading import RLock
from typing import Any, Dict, Optional, Protocol


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Any]:
        """Return the stored document, or None when the key is absent."""

    def set(self, key: str, value: Any) -> None:
        """Create or replace the document stored under key."""

    def delete(self, key: str) -> None:
        """Remove key; missing keys are ignored."""


class InMemoryStore:
    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}
        self._lock = RLock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            # copies so callers never mutate what is "on disk"
            return deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = deepcopy(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list:
        with self._lock:
            return sorted(self._data)
