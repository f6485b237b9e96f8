"""Engine-agnostic capability interface for the search index.

An index backend is a pair: a :class:`QueryBuilder` that renders a
:class:`~breachsearch.query.StructuredQuery` in the engine's native form, and a
:class:`SearchIndex` that executes it over a set of shards.
"""

from __future__ import annotations

from typing import Any, List, Protocol, Sequence, runtime_checkable

from breachsearch.models import IndexDocument, Page
from breachsearch.query import SearchQuery, StructuredQuery


class QueryBuilder(Protocol):
    def build(self, structured: StructuredQuery) -> Any:
        ...

    def sort(self, sort_by: str, descending: bool) -> Any:
        ...


@runtime_checkable
class SearchIndex(Protocol):
    """Multi-shard executor. Read methods must not raise."""

    def query(
        self, structured: StructuredQuery, shards: Sequence[str], request: SearchQuery
    ) -> Page[IndexDocument]:
        ...

    def is_healthy(self) -> bool:
        ...

    def upsert(self, document: IndexDocument, shard: str) -> None:
        ...

    def suggest_logins(self, prefix: str, shards: Sequence[str], limit: int = 10) -> List[str]:
        ...
