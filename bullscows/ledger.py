"""
Score ledger: the local table of best rounds, partitioned by level.

- one record per round: a second commit for the same round_id overwrites the first
- records without a round_id fall back to "same player, level and attempts,
  less than 5 seconds apart" to catch double submits
- after each write every level is sorted (fewest attempts, then most recent)
  and cut to the best N
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from threading import RLock
from typing import Iterable, List, Optional

import structlog
from pydantic import ValidationError

from .identity import IdentityStore
from .persistence import SCORE_TABLE_KEY, DocumentStore
from .schemas import LevelStats, PlayerStats, ScoreRecord

logger = structlog.get_logger()

DUPLICATE_WINDOW_MS = 5000


@dataclass(frozen=True)
class ScoreDraft:
    """What the game knows about a won round; the ledger adds the identity."""

    level: int
    attempts: int
    elapsed_display: str
    timestamp: int  # epoch ms
    round_id: str


@dataclass(frozen=True)
class CommitResult:
    ok: bool
    error: Optional[str] = None  # "NoIdentity"
    record: Optional[ScoreRecord] = None
    replaced: bool = False


def date_label(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%d/%m/%Y")


def rank_key(record: ScoreRecord):
    # fewest attempts first; on a tie the most recent round wins
    return (record.attempts, -record.timestamp)


def is_same_round(a: ScoreRecord, b: ScoreRecord, window_ms: int = DUPLICATE_WINDOW_MS) -> bool:
    if a.round_id and b.round_id:
        return a.round_id == b.round_id
    return (
        a.player_id == b.player_id
        and a.level == b.level
        and a.attempts == b.attempts
        and abs(a.timestamp - b.timestamp) < window_ms
    )


def parse_records(data, source: str) -> List[ScoreRecord]:
    """Validate stored records one by one; broken entries are dropped, not fatal."""
    if data is None:
        return []
    if not isinstance(data, list):
        logger.warning("storage_corruption", key=source, reason="not a list")
        return []
    records = []
    for item in data:
        try:
            records.append(ScoreRecord.model_validate(item))
        except ValidationError:
            logger.warning("storage_corruption", key=source, reason="invalid score record")
    return records


class ScoreLedger:
    def __init__(
        self,
        documents: DocumentStore,
        identities: IdentityStore,
        levels: Iterable[int] = (3, 4, 5),
        max_per_level: int = 10,
    ):
        self._documents = documents
        self._identities = identities
        self._levels = tuple(sorted(levels))
        self._max_per_level = max_per_level
        self._lock = RLock()

    # --- Writes ---

    def commit(self, draft: ScoreDraft) -> CommitResult:
        identity = self._identities.resolve()
        if identity is None:
            logger.info("score_blocked_no_identity", round_id=draft.round_id)
            return CommitResult(ok=False, error="NoIdentity")

        record = ScoreRecord(
            level=draft.level,
            attempts=draft.attempts,
            elapsed_display=draft.elapsed_display,
            date_label=date_label(draft.timestamp),
            timestamp=draft.timestamp,
            player_display_name=identity.display_name,
            player_id=identity.player_id,
            round_id=draft.round_id,
        )

        with self._lock:
            records = self._load()
            replaced = False
            for index, existing in enumerate(records):
                if is_same_round(existing, record):
                    records[index] = record
                    replaced = True
                    break
            if not replaced:
                records.append(record)
            self._save(self._rank_and_trim(records))

        logger.info(
            "score_committed",
            round_id=record.round_id,
            level=record.level,
            attempts=record.attempts,
            replaced=replaced,
        )
        return CommitResult(ok=True, record=record, replaced=replaced)

    def clear(self) -> None:
        with self._lock:
            self._save([])
        logger.info("scores_cleared")

    # --- Reads ---

    def query(self, level: Optional[int] = None, player_id: Optional[str] = None) -> List[ScoreRecord]:
        records = self._load()
        if level is not None:
            records = [r for r in records if r.level == level]
        if player_id is not None:
            records = [r for r in records if r.player_id == player_id]
        return sorted(records, key=rank_key)

    def player_stats(self, player_id: Optional[str]) -> PlayerStats:
        if player_id is None:
            return PlayerStats()
        records = self.query(player_id=player_id)
        stats = PlayerStats(
            player_id=player_id,
            total_games=len(records),
            best_attempts=min((r.attempts for r in records), default=0),
        )
        for level in self._levels:
            attempts = [r.attempts for r in records if r.level == level]
            if attempts:
                stats.by_level[level] = LevelStats(count=len(attempts), best=min(attempts))
        return stats

    # --- Helpers ---

    def _rank_and_trim(self, records: List[ScoreRecord]) -> List[ScoreRecord]:
        kept: List[ScoreRecord] = []
        for level in self._levels:
            level_records = sorted((r for r in records if r.level == level), key=rank_key)
            kept.extend(level_records[: self._max_per_level])
        return kept

    def _load(self) -> List[ScoreRecord]:
        return parse_records(self._documents.load(SCORE_TABLE_KEY), SCORE_TABLE_KEY)

    def _save(self, records: List[ScoreRecord]) -> None:
        self._documents.save(SCORE_TABLE_KEY, [r.model_dump(mode="json") for r in records])
