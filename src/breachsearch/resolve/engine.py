"""Dual-store query resolution: index first, source store as fallback."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, List, Mapping, Protocol, Sequence

from breachsearch.errors import SearchUnavailableError
from breachsearch.index.base import SearchIndex
from breachsearch.index.shards import shard_set, shards_between, wildcard_pattern
from breachsearch.masking import mask
from breachsearch.models import (
    CallerContext,
    CanonicalRecord,
    IndexDocument,
    Page,
    ResolvedResult,
    SourceStoreTag,
    utcnow,
)
from breachsearch.query import (
    LOGIN,
    SearchQuery,
    StructuredQuery,
    build_structured_query,
    parse_search_query,
    prefix as prefix_clause,
)
from breachsearch.resolve.correlator import ResultCorrelator
from breachsearch.resolve.repair import SyncRepairer

LOGGER = logging.getLogger(__name__)

# Longer shard lists overflow the search request line; the timestamp clause still bounds results.
MAX_EXPLICIT_SHARDS = 120


class SourceStore(Protocol):
    def find_by_ids(self, ids: Any) -> List[CanonicalRecord]:
        ...

    def search(
        self,
        structured: StructuredQuery,
        *,
        offset: int = 0,
        limit: int = 20,
        sort_by: str = "timestamp",
        descending: bool = True,
    ) -> List[CanonicalRecord]:
        ...

    def count(self, structured: StructuredQuery | None = None) -> int:
        ...


@dataclass(slots=True)
class Resolution:
    """Results plus which store answered. ``source_store`` is None when nothing matched."""

    results: List[ResolvedResult] = field(default_factory=list)
    source_store: SourceStoreTag | None = None
    total: int = 0
    page: int = 0
    size: int = 0
    shards: List[str] = field(default_factory=list)


class ResolutionEngine:
    """Answers searches from exactly one store per request.

    The index is tried first. Its hits are re-read from the source store, so
    callers only see canonical values. When the index yields nothing (empty or
    degraded, which look the same) the source store is searched directly and
    every record found there is queued for read repair.
    """

    def __init__(
        self,
        index: SearchIndex,
        store: SourceStore,
        *,
        repairer: SyncRepairer | None = None,
        correlator: ResultCorrelator | None = None,
        shard_prefix: str = "breaches",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.index = index
        self.store = store
        self.repairer = repairer
        self.correlator = correlator or ResultCorrelator(store)
        self.shard_prefix = shard_prefix
        self._clock = clock

    def resolve(
        self, query: SearchQuery | Mapping[str, Any], caller: CallerContext | None = None
    ) -> List[ResolvedResult]:
        return self.resolve_page(query, caller).results

    def resolve_page(
        self, query: SearchQuery | Mapping[str, Any], caller: CallerContext | None = None
    ) -> Resolution:
        request = parse_search_query(query)
        caller = caller or CallerContext()
        structured = build_structured_query(request)
        shards = self.select_shards(request)

        hits = self._query_index(structured, shards, request)
        if not hits.is_empty:
            records = self._correlate(hits)
            if records is not None:
                LOGGER.debug("Resolved %d of %d index hits for %r", len(records), len(hits), request.query)
                return Resolution(
                    results=[mask(record, caller.plan_tier, source_store="index") for record in records],
                    source_store="index",
                    total=hits.total,
                    page=request.page,
                    size=request.size,
                    shards=shards,
                )

        LOGGER.info("No index hits for %r over %d shard(s); searching source store", request.query, len(shards))
        try:
            records = self.store.search(
                structured,
                offset=request.offset,
                limit=request.size,
                sort_by=request.sort_by,
                descending=request.descending,
            )
            total = self.store.count(structured) if records else 0
        except Exception as exc:
            LOGGER.error("Source store fallback failed for %r: %s", request.query, exc)
            raise SearchUnavailableError("Search index and source store are both unavailable") from exc

        if not records:
            LOGGER.info("No results for %r in either store", request.query)
            return Resolution(page=request.page, size=request.size, shards=shards)

        self._schedule_repair(records)
        return Resolution(
            results=[mask(record, caller.plan_tier, source_store="fallback") for record in records],
            source_store="fallback",
            total=total,
            page=request.page,
            size=request.size,
            shards=shards,
        )

    def select_shards(self, request: SearchQuery) -> List[str]:
        """Explicit date ranges win over the months-back window.

        Windows wider than ``MAX_EXPLICIT_SHARDS`` months use the wildcard pattern.
        """
        now = self._clock()
        if request.date_from is not None:
            shards = shards_between(self.shard_prefix, request.date_from, request.date_to or now)
        else:
            shards = shard_set(self.shard_prefix, request.months_back, now=now)
        if len(shards) > MAX_EXPLICIT_SHARDS:
            return [wildcard_pattern(self.shard_prefix)]
        return shards

    def suggest(self, text: str, limit: int = 10) -> List[str]:
        """Login autocomplete over all shards, falling back to the source store."""
        text = (text or "").strip()
        if not text:
            return []
        suggestions = self.index.suggest_logins(text, [wildcard_pattern(self.shard_prefix)], limit)
        if suggestions:
            return suggestions
        try:
            records = self.store.search(
                StructuredQuery((prefix_clause(LOGIN, text),)),
                limit=limit * 5,
                sort_by="login",
                descending=False,
            )
        except Exception as exc:
            raise SearchUnavailableError("Suggestions are unavailable") from exc
        return list(dict.fromkeys(record.login for record in records))[:limit]

    def _query_index(
        self, structured: StructuredQuery, shards: List[str], request: SearchQuery
    ) -> Page[IndexDocument]:
        try:
            return self.index.query(structured, shards, request)
        except Exception as exc:
            LOGGER.warning("Search index raised on %d shard(s): %s", len(shards), exc)
            return Page(items=[], total=0, page=request.page, size=request.size)

    def _correlate(self, hits: Page[IndexDocument]) -> List[CanonicalRecord] | None:
        try:
            return self.correlator.correlate(hits.items)
        except Exception as exc:
            LOGGER.warning("Could not correlate %d index hits: %s", len(hits), exc)
            return None

    def _schedule_repair(self, records: Sequence[CanonicalRecord]) -> None:
        if self.repairer is None:
            return
        for record in records:
            self.repairer.repair(record)
        LOGGER.debug("Queued %d record(s) for re-indexing", len(records))
