"""
Sync backlog: committed scores waiting to reach the remote score store.

The queue is durable (it lives in the document store) and bounded: past
`max_pending` entries the oldest are dropped. A record leaves the queue only
once the transport acknowledged it. Network calls never run while the queue
lock is held.
"""

from __future__ import annotations

from threading import RLock
from time import time
from typing import Callable, List, Optional

import structlog

from .ledger import is_same_round, parse_records, rank_key
from .persistence import LAST_SYNC_KEY, PENDING_SYNC_KEY, REMOTE_SCORES_KEY, DocumentStore
from .remote_client import ScoreTransport
from .schemas import ScoreRecord, SyncReport, SyncStatus

logger = structlog.get_logger()


class SyncBacklog:
    def __init__(
        self,
        documents: DocumentStore,
        transport: Optional[ScoreTransport] = None,
        max_pending: int = 50,
        clock: Callable[[], float] = time,
    ):
        self._documents = documents
        self._transport = transport
        self._max_pending = max_pending
        self._clock = clock
        self._lock = RLock()
        self.available = False

    @property
    def configured(self) -> bool:
        return self._transport is not None

    # --- Queue ---

    def pending(self) -> List[ScoreRecord]:
        return parse_records(self._documents.load(PENDING_SYNC_KEY), PENDING_SYNC_KEY)

    def enqueue(self, record: ScoreRecord) -> None:
        with self._lock:
            queue = [r for r in self.pending() if not is_same_round(r, record)]
            queue.append(record)
            dropped = len(queue) - self._max_pending
            if dropped > 0:
                logger.warning("sync_backlog_full", dropped=dropped)
                queue = queue[dropped:]
            self._save_queue(queue)
        logger.info("score_queued", round_id=record.round_id, pending=len(queue))

    def _remove(self, record: ScoreRecord) -> None:
        with self._lock:
            queue = [r for r in self.pending() if not is_same_round(r, record)]
            self._save_queue(queue)

    def _save_queue(self, queue: List[ScoreRecord]) -> None:
        self._documents.save(PENDING_SYNC_KEY, [r.model_dump(mode="json") for r in queue])

    # --- Sending ---

    def deliver(self, record: ScoreRecord) -> bool:
        """Try to send one queued record right away (fire-and-forget from the game's side)."""
        if self._transport is None:
            return False
        if self._transport.submit(record):
            self.available = True
            self._remove(record)
            return True
        self.available = False
        return False

    def flush(self) -> SyncReport:
        """Try every pending record once. Failures stay queued."""
        queue = self.pending()
        report = SyncReport(pending=len(queue))
        if self._transport is None or not queue:
            return report

        for record in queue:
            if self.deliver(record):
                report.sent += 1
            else:
                report.failed += 1
        report.pending = len(self.pending())
        logger.info("sync_flushed", sent=report.sent, failed=report.failed, pending=report.pending)
        return report

    def refresh(self) -> bool:
        """Pull every remote record into the local cache."""
        if self._transport is None:
            return False
        records = self._transport.fetch()
        if records is None:
            self.available = False
            return False
        self.available = True
        self._documents.save(REMOTE_SCORES_KEY, [r.model_dump(mode="json") for r in records])
        self._documents.save(LAST_SYNC_KEY, int(self._clock() * 1000))
        logger.info("remote_scores_refreshed", count=len(records))
        return True

    def sync_now(self) -> SyncReport:
        """Manual sync: refresh the cache, then push what is pending."""
        self.refresh()
        return self.flush()

    def tick(self) -> Optional[SyncReport]:
        """Timer entry point. Returns the flush report when something was attempted."""
        if self._transport is None:
            return None
        was_available = self.available
        self.available = self._transport.is_available()
        if not self.available:
            if was_available:
                logger.info("remote_store_offline")
            return None
        if not was_available:
            logger.info("remote_store_online")
            self.refresh()
        if not self.pending():
            return None
        return self.flush()

    # --- Reads ---

    def remote_scores(self, level: Optional[int] = None) -> List[ScoreRecord]:
        records = parse_records(self._documents.load(REMOTE_SCORES_KEY), REMOTE_SCORES_KEY)
        if level is not None:
            records = [r for r in records if r.level == level]
        return sorted(records, key=rank_key)

    def last_sync(self) -> Optional[int]:
        value = self._documents.load(LAST_SYNC_KEY)
        return value if isinstance(value, int) else None

    def status(self) -> SyncStatus:
        pending = self.pending()
        return SyncStatus(
            configured=self.configured,
            available=self.available,
            pending=len(pending),
            cached=len(self.remote_scores()),
            last_sync=self.last_sync(),
            pending_records=pending,
        )
