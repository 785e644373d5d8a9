"""
Persistence adapter.

Every stored value is a versioned document:
    {"schema": 1, "data": ...}
A missing key, another schema number or a shape that does not validate is
treated as absent: the caller reinitializes that piece of state. Nothing
read from storage is allowed to crash the game.

If the backend itself fails (database gone, disk full) the DocumentStore keeps
going from an in-memory copy and reports `degraded=True`.
"""

from __future__ import annotations

from typing import Any, List, Optional

import structlog
from pydantic import BaseModel, ValidationError, model_validator
from sqlalchemy.exc import SQLAlchemyError

from .engine import InvalidGuess, score_guess, validate_guess
from .schemas import HistoryEntry
from .session import GameSession
from .store import InMemoryStore, KeyValueStore

logger = structlog.get_logger()

SCHEMA_VERSION = 1

# Logical storage keys
SESSION_KEY = "session"
LEVEL_KEY = "level"
IDENTITY_KEY = "identity"
SCORE_TABLE_KEY = "score_table"
PENDING_SYNC_KEY = "pending_sync"
LAST_SYNC_KEY = "last_sync"
COMMITTED_ROUND_KEY = "committed_round_id"
REMOTE_SCORES_KEY = "remote_scores"

STORAGE_ERRORS = (SQLAlchemyError, OSError)


class DocumentStore:
    """Versioned documents on top of a KeyValueStore, with an in-memory fallback."""

    def __init__(self, backend: KeyValueStore):
        self._backend = backend
        self._mirror = InMemoryStore()
        self.degraded = False

    def load(self, key: str) -> Optional[Any]:
        raw = self._read(key)
        if raw is None:
            return None
        if not isinstance(raw, dict) or raw.get("schema") != SCHEMA_VERSION or "data" not in raw:
            logger.warning("storage_corruption", key=key, reason="schema mismatch")
            return None
        return raw["data"]

    def save(self, key: str, data: Any) -> None:
        document = {"schema": SCHEMA_VERSION, "data": data}
        self._mirror.set(key, document)
        if self.degraded:
            return
        try:
            self._backend.set(key, document)
        except STORAGE_ERRORS as exc:
            self._degrade(key, exc)

    def discard(self, key: str) -> None:
        self._mirror.delete(key)
        if self.degraded:
            return
        try:
            self._backend.delete(key)
        except STORAGE_ERRORS as exc:
            self._degrade(key, exc)

    def _read(self, key: str) -> Optional[Any]:
        if self.degraded:
            return self._mirror.get(key)
        try:
            raw = self._backend.get(key)
        except STORAGE_ERRORS as exc:
            self._degrade(key, exc)
            return self._mirror.get(key)
        # served from here once the backend fails
        if raw is not None:
            self._mirror.set(key, raw)
        return raw

    def _degrade(self, key: str, exc: Exception) -> None:
        logger.error("storage_unavailable", key=key, error=str(exc))
        self.degraded = True


class SessionSnapshot(BaseModel):
    """The stored form of a GameSession. Validation rejects anything internally inconsistent."""

    round_id: str
    secret: str
    level: int
    started_at: int
    attempt_count: int
    history: List[HistoryEntry]
    won_at: Optional[int] = None
    elapsed_display: Optional[str] = None

    @model_validator(mode="after")
    def check_consistency(self) -> "SessionSnapshot":
        secret = self.secret
        if not self.round_id:
            raise ValueError("round_id is empty")
        if len(secret) != self.level or not secret.isdigit() or not secret.isascii():
            raise ValueError("secret does not match its level")
        if secret[0] == "0" or len(set(secret)) != len(secret):
            raise ValueError("secret is not a valid secret")
        if self.attempt_count != len(self.history):
            raise ValueError("attempt_count does not match history")

        for index, entry in enumerate(self.history, start=1):
            if entry.attempt != index:
                raise ValueError("history is out of order")
            try:
                validate_guess(entry.guess, secret)
            except InvalidGuess as exc:
                raise ValueError(f"history guess is not a valid guess: {exc.kind}") from exc
            if score_guess(secret, entry.guess) != (entry.bulls, entry.cows):
                raise ValueError("history outcome does not match the secret")
            if entry.guess == secret and index != len(self.history):
                raise ValueError("guesses recorded after the win")

        won_in_history = bool(self.history) and self.history[-1].guess == secret
        if (self.won_at is not None) != won_in_history:
            raise ValueError("won_at does not match history")
        if (self.won_at is None) != (self.elapsed_display is None):
            raise ValueError("elapsed_display without a win")
        return self

    @classmethod
    def from_session(cls, session: GameSession) -> "SessionSnapshot":
        return cls(
            round_id=session.round_id,
            secret=session.secret,
            level=session.level,
            started_at=session.started_at,
            attempt_count=session.attempt_count,
            history=list(session.history),
            won_at=session.won_at,
            elapsed_display=session.elapsed_display,
        )

    def to_session(self) -> GameSession:
        return GameSession(
            round_id=self.round_id,
            secret=self.secret,
            level=self.level,
            started_at=self.started_at,
            attempt_count=self.attempt_count,
            history=list(self.history),
            won_at=self.won_at,
            elapsed_display=self.elapsed_display,
        )


def save_session(documents: DocumentStore, session: GameSession) -> None:
    documents.save(SESSION_KEY, SessionSnapshot.from_session(session).model_dump(mode="json"))


def load_session(documents: DocumentStore) -> Optional[GameSession]:
    """Return the saved session, or None when there is none or it cannot be trusted."""
    data = documents.load(SESSION_KEY)
    if data is None:
        return None
    try:
        return SessionSnapshot.model_validate(data).to_session()
    except ValidationError as exc:
        logger.warning("storage_corruption", key=SESSION_KEY, errors=exc.error_count())
        return None
