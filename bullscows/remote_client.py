"""
- HTTP client for the remote score store, with clear failure semantics
The store is one JSON document:
    {"scores": [...], "last_update": "...", "total_games": 12}
GET returns it together with a revision (ETag header, or a "revision" field).
PUT replaces it and must send that revision back in If-Match, so two writers
racing each other cannot silently drop a score. A stale revision (409/412)
means: fetch again, re-apply, retry a bounded number of times.

Nothing here raises into the game: every failure comes back as False/None and
the record simply stays in the sync backlog.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Tuple

import requests
import structlog

from .ledger import is_same_round, parse_records
from .schemas import ScoreRecord

logger = structlog.get_logger()

# Remote writes may arrive late after a retry; be more lenient than locally
REMOTE_DUPLICATE_WINDOW_MS = 10_000
CONFLICT_STATUSES = (409, 412)


class ScoreTransport(Protocol):
    def submit(self, record: ScoreRecord) -> bool:
        """Store one record remotely. True once the remote store has it."""

    def fetch(self) -> Optional[List[ScoreRecord]]:
        """All remote records, or None when the store cannot be reached."""

    def is_available(self) -> bool:
        """Cheap reachability probe."""


class RemoteConflict(Exception):
    """The document changed between our read and our write."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class HttpScoreStore:
    def __init__(
        self,
        url: str,
        session: Optional[requests.Session] = None,
        timeout: float = 3.0,
        max_retries: int = 3,
    ):
        self._url = url
        # credentials (if any) are configured on the session by whoever builds it
        self._session = session or requests.Session()
        self._timeout = timeout
        self._max_retries = max_retries

    # --- ScoreTransport ---

    def submit(self, record: ScoreRecord) -> bool:
        payload = record.model_dump(mode="json")
        attempt = 0
        while attempt < self._max_retries:
            attempt += 1
            try:
                document, revision = self._get_document()
                scores = list(document.get("scores") or [])
                if self._already_stored(scores, record):
                    logger.info("remote_score_already_present", round_id=record.round_id)
                    return True

                now = _now_iso()
                scores.append({**payload, "synced_at": now})
                updated = dict(document)
                updated["scores"] = scores
                updated["last_update"] = now
                updated["total_games"] = int(document.get("total_games") or 0) + 1
                self._put_document(updated, revision)
                logger.info("remote_score_written", round_id=record.round_id, attempt=attempt)
                return True
            except RemoteConflict:
                logger.info("remote_conflict", round_id=record.round_id, attempt=attempt)
            except (requests.RequestException, ValueError) as exc:
                # ValueError covers a body that is not JSON
                logger.warning("remote_submit_failed", round_id=record.round_id, error=str(exc))
                return False

        logger.warning("remote_conflict_retries_exhausted", round_id=record.round_id)
        return False

    def fetch(self) -> Optional[List[ScoreRecord]]:
        try:
            document, _ = self._get_document()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("remote_fetch_failed", error=str(exc))
            return None
        return parse_records(document.get("scores") or [], "remote")

    def is_available(self) -> bool:
        try:
            response = self._session.head(self._url, timeout=self._timeout)
        except requests.RequestException:
            return False
        # 404 still means the store answered; the document is created on first write
        return response.ok or response.status_code == 404

    # --- HTTP helpers ---

    def _get_document(self) -> Tuple[Dict[str, Any], Optional[str]]:
        response = self._session.get(self._url, timeout=self._timeout)
        if response.status_code == 404:
            return {}, None
        response.raise_for_status()
        document = response.json()
        if not isinstance(document, dict):
            raise ValueError("remote score document is not an object")
        revision = response.headers.get("ETag") or document.get("revision")
        return document, revision

    def _put_document(self, document: Dict[str, Any], revision: Optional[str]) -> None:
        if revision is not None:
            headers = {"If-Match": str(revision)}
        else:
            # creating: refuse if somebody created it in the meantime
            headers = {"If-None-Match": "*"}
        response = self._session.put(self._url, json=document, headers=headers, timeout=self._timeout)
        if response.status_code in CONFLICT_STATUSES:
            raise RemoteConflict(response.status_code)
        response.raise_for_status()

    @staticmethod
    def _already_stored(scores: List[Any], record: ScoreRecord) -> bool:
        for existing in parse_records(scores, "remote"):
            if is_same_round(existing, record, window_ms=REMOTE_DUPLICATE_WINDOW_MS):
                return True
        return False
