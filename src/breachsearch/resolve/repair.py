"""Asynchronous read repair: push fallback-only records back into the index."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Deque, List

from breachsearch.config import AppConfig
from breachsearch.index.base import SearchIndex
from breachsearch.index.shards import shard_name
from breachsearch.models import CanonicalRecord, IndexDocument, utcnow

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class RepairStats:
    submitted: int = 0
    succeeded: int = 0
    retried: int = 0
    failed: int = 0
    dropped: int = 0

    def increment(self, status: str) -> None:
        if status == "submitted":
            self.submitted += 1
        elif status == "succeeded":
            self.succeeded += 1
        elif status == "retried":
            self.retried += 1
        elif status == "dropped":
            self.dropped += 1
        else:
            self.failed += 1


def to_index_document(record: CanonicalRecord, now: datetime | None = None) -> IndexDocument:
    """Project ``record`` for indexing, copying derived fields into metadata."""
    metadata = dict(record.metadata or {})
    metadata["domain"] = record.domain
    metadata["isEmail"] = record.is_email
    metadata["username"] = record.username
    metadata["emailDomain"] = record.email_domain
    return IndexDocument(
        id=record.id,
        login=record.login,
        password=record.password,
        url=record.url,
        timestamp=record.timestamp or now or utcnow(),
        metadata=metadata,
    )


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Delay after failed ``attempt`` (1-indexed): base, 2*base, 4*base, ..."""
    return base_delay * (2 ** (max(attempt, 1) - 1))


class SyncRepairer:
    """Bounded worker pool that re-indexes records with retry and backoff.

    ``repair`` only enqueues. When the queue is full the oldest pending record is
    dropped; repair is best effort and the next fallback hit re-queues it.
    """

    def __init__(
        self,
        index: SearchIndex,
        *,
        prefix: str = "breaches",
        max_attempts: int = 3,
        base_delay: float = 1.0,
        workers: int = 4,
        queue_size: int = 1000,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if workers < 1 or queue_size < 1:
            raise ValueError("workers and queue_size must be >= 1")
        self.index = index
        self.prefix = prefix
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.workers = workers
        self.queue_size = queue_size
        self.stats = RepairStats()
        self._sleep = sleep
        self._clock = clock
        self._queue: Deque[CanonicalRecord] = deque()
        self._cond = threading.Condition()
        self._threads: List[threading.Thread] = []
        self._in_flight = 0
        self._closed = False

    @classmethod
    def from_config(cls, index: SearchIndex, config: AppConfig) -> "SyncRepairer":
        return cls(
            index,
            prefix=config.index_prefix,
            max_attempts=config.repair_max_attempts,
            base_delay=config.repair_base_delay,
            workers=config.repair_workers,
            queue_size=config.repair_queue_size,
        )

    @property
    def pending(self) -> int:
        with self._cond:
            return len(self._queue) + self._in_flight

    def repair(self, record: CanonicalRecord) -> None:
        """Schedule ``record`` for re-indexing and return immediately."""
        with self._cond:
            if self._closed:
                LOGGER.warning("Repairer is closed; not re-indexing %s", record.id)
                self.stats.increment("dropped")
                return
            if len(self._queue) >= self.queue_size:
                oldest = self._queue.popleft()
                self.stats.increment("dropped")
                LOGGER.warning("Repair queue full (%d); dropped oldest record %s", self.queue_size, oldest.id)
            self._queue.append(record)
            self.stats.increment("submitted")
            self._start_workers()
            self._cond.notify_all()

    def repair_now(self, record: CanonicalRecord) -> bool:
        """Re-index ``record`` on the calling thread, retrying with backoff."""
        document = to_index_document(record, self._clock())
        shard = shard_name(self.prefix, document.timestamp)

        for attempt in range(1, self.max_attempts + 1):
            try:
                self.index.upsert(document, shard)
            except Exception as exc:
                if attempt >= self.max_attempts:
                    LOGGER.error(
                        "Giving up on re-indexing %s into %s after %d attempts: %s",
                        record.id,
                        shard,
                        attempt,
                        exc,
                    )
                    self._count("failed")
                    return False
                delay = backoff_delay(attempt, self.base_delay)
                LOGGER.warning(
                    "Re-index attempt %d/%d for %s failed: %s; retrying in %.2fs",
                    attempt,
                    self.max_attempts,
                    record.id,
                    exc,
                    delay,
                )
                self._count("retried")
                self._sleep(delay)
                continue

            LOGGER.debug("Re-indexed %s into %s", record.id, shard)
            self._count("succeeded")
            return True
        return False

    def drain(self, timeout: float | None = None) -> bool:
        """Block until every queued repair finished. False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: not self._queue and self._in_flight == 0, timeout)

    def close(self, *, wait: bool = True, timeout: float | None = None) -> None:
        if wait:
            self.drain(timeout)
        with self._cond:
            self._closed = True
            self._cond.notify_all()
        for thread in self._threads:
            thread.join(timeout)

    def _count(self, status: str) -> None:
        with self._cond:
            self.stats.increment(status)

    def _start_workers(self) -> None:
        while len(self._threads) < self.workers:
            thread = threading.Thread(
                target=self._run, name=f"breachsearch-repair-{len(self._threads)}", daemon=True
            )
            self._threads.append(thread)
            thread.start()

    def _run(self) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._queue or self._closed)
                if not self._queue:
                    return
                record = self._queue.popleft()
                self._in_flight += 1
            try:
                self.repair_now(record)
            except Exception:
                LOGGER.exception("Unexpected error while re-indexing %s", record.id)
            finally:
                with self._cond:
                    self._in_flight -= 1
                    self._cond.notify_all()
