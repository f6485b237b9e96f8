"""Shared fixtures: an in-memory search index and a temporary source store."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Dict, List

import pytest

from breachsearch.models import CanonicalRecord, IndexDocument, Page
from breachsearch.source.storage import SQLiteRecordStore


class FakeIndex:
    """Search index double that records calls and stores upserts per shard."""

    def __init__(self, hits: List[IndexDocument] | None = None, *, fail_times: int = 0) -> None:
        self.hits = list(hits or [])
        self.fail_times = fail_times
        self.healthy = True
        self.suggestions: List[str] = []
        self.documents: Dict[str, Dict[str, IndexDocument]] = {}
        self.upserts: List[tuple[str, str]] = []
        self.queries: List[tuple] = []
        self.block: threading.Event | None = None
        self.started = threading.Event()
        self._lock = threading.Lock()

    def query(self, structured, shards, request) -> Page[IndexDocument]:
        self.queries.append((structured, list(shards), request))
        return Page(items=list(self.hits), total=len(self.hits), page=request.page, size=request.size)

    def is_healthy(self) -> bool:
        return self.healthy

    def upsert(self, document: IndexDocument, shard: str) -> None:
        self.started.set()
        if self.block is not None:
            self.block.wait(5)
        with self._lock:
            if self.fail_times > 0:
                self.fail_times -= 1
                raise ConnectionError("index unavailable")
            self.documents.setdefault(shard, {})[document.id] = document
            self.upserts.append((shard, document.id))

    def suggest_logins(self, prefix, shards, limit=10) -> List[str]:
        return self.suggestions[:limit]


def make_record(
    login: str = "alice@example.com",
    password: str = "hunter22",
    url: str = "https://mail.example.com/login",
    **kwargs,
) -> CanonicalRecord:
    kwargs.setdefault("timestamp", datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))
    return CanonicalRecord(login=login, password=password, url=url, **kwargs)


@pytest.fixture
def fake_index() -> FakeIndex:
    return FakeIndex()


@pytest.fixture
def store(tmp_path):
    """Create a temporary source store for testing."""
    record_store = SQLiteRecordStore(tmp_path / "records.db")
    yield record_store
    record_store.close()
