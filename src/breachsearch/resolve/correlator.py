"""Resolve index hits back to canonical records."""

from __future__ import annotations

import logging
from typing import Iterable, List, Protocol

from breachsearch.models import CanonicalRecord, IndexDocument

LOGGER = logging.getLogger(__name__)


class RecordLookup(Protocol):
    def find_by_ids(self, ids: Iterable[str]) -> List[CanonicalRecord]:
        ...


class ResultCorrelator:
    """Replaces index payloads with source-store records sharing the same id.

    Index documents may be stale, so their text is never returned to callers.
    """

    def __init__(self, store: RecordLookup) -> None:
        self.store = store

    def correlate(self, hits: Iterable[IndexDocument]) -> List[CanonicalRecord]:
        ids = list(dict.fromkeys(hit.id for hit in hits if hit.id))
        if not ids:
            return []

        records = self.store.find_by_ids(set(ids))
        by_id = {record.id: record for record in records}

        missing = [record_id for record_id in ids if record_id not in by_id]
        if missing:
            LOGGER.warning(
                "%d index hits have no canonical record and were skipped: %s",
                len(missing),
                ", ".join(missing[:10]),
            )
        return [by_id[record_id] for record_id in ids if record_id in by_id]
