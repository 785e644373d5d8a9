"""
Game controller
Owns the one live GameSession and every transition on it:
- submit_guess: validate, score, record, detect the win
- change_level / reset: throw the round away and start a new one
- commit_pending_score: retry a score that waited for an identity

Transitions run one at a time under a lock, and the session is written to
storage before the lock is released, so a rapid double submit can never
lose an update.
"""

from dataclasses import dataclass
from threading import RLock
from time import time
from typing import Callable, Iterable, Optional, Tuple

import structlog

from .engine import InvalidGuess, Outcome, evaluate, format_elapsed
from .ledger import ScoreDraft, ScoreLedger
from .persistence import (
    COMMITTED_ROUND_KEY,
    LEVEL_KEY,
    DocumentStore,
    load_session,
    save_session,
)
from .schemas import HistoryEntry, ScoreRecord, SessionView
from .secret import generate_secret
from .session import GameSession, new_round_id
from .sync import SyncBacklog

logger = structlog.get_logger()


@dataclass(frozen=True)
class GuessResult:
    accepted: bool
    round_id: str
    attempt_count: int
    error_kind: Optional[str] = None
    message: Optional[str] = None
    outcome: Optional[Outcome] = None
    elapsed_display: Optional[str] = None
    score_status: Optional[str] = None  # "committed" | "already_committed" | "no_identity"
    record: Optional[ScoreRecord] = None

    @property
    def is_win(self) -> Optional[bool]:
        return self.outcome.is_win if self.outcome else None


@dataclass(frozen=True)
class LevelChangeResult:
    applied: bool
    needs_confirmation: bool


class GameController:
    def __init__(
        self,
        documents: DocumentStore,
        ledger: ScoreLedger,
        backlog: SyncBacklog,
        levels: Iterable[int] = (3, 4, 5),
        default_level: int = 4,
        clock: Callable[[], float] = time,
    ) -> None:
        self._documents = documents
        self._ledger = ledger
        self._backlog = backlog
        self._levels = tuple(levels)
        self._default_level = default_level
        self._clock = clock
        self._lock = RLock()
        self.session = self._load_or_start()

    # --- Lifecycle ---

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _load_or_start(self) -> GameSession:
        session = load_session(self._documents)
        if session is not None and session.level in self._levels:
            logger.info("session_restored", round_id=session.round_id, attempts=session.attempt_count)
            return session
        return self._start_round(self._preferred_level())

    def _preferred_level(self) -> int:
        level = self._documents.load(LEVEL_KEY)
        if isinstance(level, int) and level in self._levels:
            return level
        self._documents.save(LEVEL_KEY, self._default_level)
        return self._default_level

    def _start_round(self, level: int) -> GameSession:
        now = self._now_ms()
        session = GameSession(
            round_id=new_round_id(now),
            secret=generate_secret(level),
            level=level,
            started_at=now,
        )
        self.session = session
        save_session(self._documents, session)
        logger.info("round_started", round_id=session.round_id, level=level)
        return session

    # --- Transitions ---

    def submit_guess(self, raw: str, round_id: Optional[str] = None) -> GuessResult:
        with self._lock:
            session = self.session

            if round_id is not None and round_id != session.round_id:
                return self._reject("StaleRound", "That round is over; a new one has started.")
            if session.status == "won":
                return self._reject("RoundOver", "You already found the number. Start a new round.")

            guess = raw.strip()
            try:
                outcome = evaluate(guess, session.secret, session.prior_guesses())
            except InvalidGuess as exc:
                logger.debug("guess_rejected", round_id=session.round_id, kind=exc.kind)
                return self._reject(exc.kind, exc.message)

            session.attempt_count += 1
            session.history.append(
                HistoryEntry(
                    attempt=session.attempt_count,
                    guess=guess,
                    bulls=outcome.bulls,
                    cows=outcome.cows,
                )
            )
            if outcome.is_win:
                now = self._now_ms()
                session.won_at = now
                session.elapsed_display = format_elapsed(now - session.started_at)
            save_session(self._documents, session)

            score_status = None
            record = None
            if outcome.is_win:
                logger.info(
                    "round_won",
                    round_id=session.round_id,
                    attempts=session.attempt_count,
                    elapsed=session.elapsed_display,
                )
                score_status, record = self._commit_score()

            return GuessResult(
                accepted=True,
                round_id=session.round_id,
                attempt_count=session.attempt_count,
                outcome=outcome,
                elapsed_display=session.elapsed_display,
                score_status=score_status,
                record=record,
            )

    def change_level(self, new_level: int, confirmed: bool = False) -> LevelChangeResult:
        if new_level not in self._levels:
            raise ValueError(f"Level must be one of {self._levels}, got {new_level}.")
        with self._lock:
            session = self.session
            if new_level != session.level and session.attempt_count > 0 and not confirmed:
                return LevelChangeResult(applied=False, needs_confirmation=True)
            self._documents.save(LEVEL_KEY, new_level)
            self._start_round(new_level)
            return LevelChangeResult(applied=True, needs_confirmation=False)

    def reset(self) -> GameSession:
        """Start a new round at the current level ("play again")."""
        with self._lock:
            return self._start_round(self.session.level)

    def commit_pending_score(self, round_id: Optional[str] = None) -> Tuple[Optional[str], Optional[ScoreRecord]]:
        """Retry the score of a won round, e.g. once the player picked a name."""
        with self._lock:
            session = self.session
            if round_id is not None and round_id != session.round_id:
                return (None, None)
            if session.status != "won":
                return (None, None)
            return self._commit_score()

    # --- Helpers ---

    def _commit_score(self) -> Tuple[str, Optional[ScoreRecord]]:
        session = self.session
        # one commit per round, even across reloads
        if self._documents.load(COMMITTED_ROUND_KEY) == session.round_id:
            return ("already_committed", None)

        result = self._ledger.commit(
            ScoreDraft(
                level=session.level,
                attempts=session.attempt_count,
                elapsed_display=session.elapsed_display or format_elapsed(0),
                timestamp=session.won_at if session.won_at is not None else self._now_ms(),
                round_id=session.round_id,
            )
        )
        if not result.ok:
            return ("no_identity", None)

        self._documents.save(COMMITTED_ROUND_KEY, session.round_id)
        self._backlog.enqueue(result.record)
        return ("committed", result.record)

    def _reject(self, kind: str, message: str) -> GuessResult:
        return GuessResult(
            accepted=False,
            round_id=self.session.round_id,
            attempt_count=self.session.attempt_count,
            error_kind=kind,
            message=message,
        )

    def score_pending(self) -> bool:
        session = self.session
        return session.status == "won" and self._documents.load(COMMITTED_ROUND_KEY) != session.round_id

    def state(self) -> SessionView:
        with self._lock:
            session = self.session
            return SessionView(
                round_id=session.round_id,
                level=session.level,
                status=session.status,
                attempt_count=session.attempt_count,
                started_at=session.started_at,
                history=list(session.history),
                elapsed_display=session.elapsed_display,
                secret=session.secret if session.status == "won" else None,
                score_pending=self.score_pending(),
                degraded=self._documents.degraded,
            )
