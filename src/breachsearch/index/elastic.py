"""Elasticsearch search index over monthly breach shards."""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Sequence

from elasticsearch import BadRequestError, Elasticsearch

from breachsearch.config import AppConfig
from breachsearch.models import IndexDocument, Page
from breachsearch.query import Clause, ClauseKind, SearchQuery, StructuredQuery

LOGGER = logging.getLogger(__name__)

# Exact/substring matching runs against keyword (sub)fields.
KEYWORD_FIELDS = {
    "login": "login",
    "password": "password.keyword",
    "url": "url.keyword",
    "metadata.domain": "metadata.domain",
}

SORT_FIELDS = {
    "timestamp": ("timestamp", "date"),
    "login": ("login", "keyword"),
    "url": ("url.keyword", "keyword"),
}

SHARD_SETTINGS: Dict[str, Any] = {
    "number_of_shards": 1,
    "number_of_replicas": 0,
}

SHARD_MAPPINGS: Dict[str, Any] = {
    "properties": {
        "id": {"type": "keyword"},
        "login": {"type": "keyword"},
        "password": {
            "type": "text",
            "fields": {"keyword": {"type": "keyword", "ignore_above": 512}},
        },
        "url": {
            "type": "text",
            "fields": {"keyword": {"type": "keyword", "ignore_above": 2048}},
        },
        "timestamp": {"type": "date"},
        "metadata": {
            "type": "object",
            "properties": {
                "domain": {"type": "keyword"},
                "emailDomain": {"type": "keyword"},
                "username": {"type": "keyword"},
                "isEmail": {"type": "boolean"},
            },
        },
    }
}


def escape_wildcard(value: str) -> str:
    """Escape characters that are special inside a wildcard pattern."""
    return value.replace("\\", "\\\\").replace("*", "\\*").replace("?", "\\?")


def _body(response: Any) -> Dict[str, Any]:
    return getattr(response, "body", response) or {}


class ElasticQueryBuilder:
    """Renders structured queries as Elasticsearch query DSL."""

    def build(self, structured: StructuredQuery) -> Dict[str, Any]:
        if not structured:
            return {"match_all": {}}
        return {"bool": {"must": [self._clause(clause) for clause in structured.clauses]}}

    def sort(self, sort_by: str, descending: bool) -> List[Dict[str, Any]]:
        field, unmapped_type = SORT_FIELDS.get(sort_by, SORT_FIELDS["timestamp"])
        order = "desc" if descending else "asc"
        return [{field: {"order": order, "unmapped_type": unmapped_type}}]

    def _clause(self, clause: Clause) -> Dict[str, Any]:
        if clause.kind is ClauseKind.RANGE:
            bounds: Dict[str, str] = {}
            if clause.gte is not None:
                bounds["gte"] = clause.gte.isoformat()
            if clause.lte is not None:
                bounds["lte"] = clause.lte.isoformat()
            return {"range": {clause.fields[0]: bounds}}

        queries = [self._field_query(clause.kind, field, clause.value or "") for field in clause.fields]
        if len(queries) == 1:
            return queries[0]
        return {"bool": {"should": queries, "minimum_should_match": 1}}

    def _field_query(self, kind: ClauseKind, field: str, value: str) -> Dict[str, Any]:
        target = KEYWORD_FIELDS.get(field, field)
        if kind is ClauseKind.TERM:
            return {"term": {target: {"value": value, "case_insensitive": True}}}
        if kind is ClauseKind.CONTAINS:
            pattern = f"*{escape_wildcard(value)}*"
            return {"wildcard": {target: {"value": pattern, "case_insensitive": True}}}
        if kind is ClauseKind.PREFIX:
            return {"prefix": {target: {"value": value, "case_insensitive": True}}}
        if kind is ClauseKind.WILDCARD:
            return {"wildcard": {target: {"value": value, "case_insensitive": True}}}
        raise ValueError(f"Unsupported clause kind: {kind}")


class ElasticsearchIndexClient:
    """Multi-shard search client that degrades to empty results instead of raising.

    Read failures are reported through :attr:`last_error` and the log; write
    failures (``upsert``) propagate so the repairer can retry them.
    """

    def __init__(
        self,
        client: Elasticsearch,
        *,
        builder: ElasticQueryBuilder | None = None,
        request_timeout: float = 5.0,
        health_timeout: float = 1.0,
    ) -> None:
        self.client = client
        self.builder = builder or ElasticQueryBuilder()
        self.request_timeout = request_timeout
        self.health_timeout = health_timeout
        self.last_error: str | None = None
        self._known_shards: set[str] = set()
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: AppConfig) -> "ElasticsearchIndexClient":
        basic_auth = None
        if config.elasticsearch_username:
            basic_auth = (config.elasticsearch_username, config.elasticsearch_password or "")
        client = Elasticsearch(
            config.elasticsearch_url,
            basic_auth=basic_auth,
            request_timeout=config.request_timeout,
            max_retries=0,
            retry_on_timeout=False,
        )
        return cls(
            client,
            request_timeout=config.request_timeout,
            health_timeout=config.health_timeout,
        )

    def close(self) -> None:
        self.client.close()

    def query(
        self, structured: StructuredQuery, shards: Sequence[str], request: SearchQuery
    ) -> Page[IndexDocument]:
        empty: Page[IndexDocument] = Page(items=[], total=0, page=request.page, size=request.size)
        if not shards:
            return empty

        index = ",".join(shards)
        try:
            response = self.client.options(request_timeout=self.request_timeout).search(
                index=index,
                query=self.builder.build(structured),
                sort=self.builder.sort(request.sort_by, request.descending),
                from_=request.offset,
                size=request.size,
                track_total_hits=True,
                ignore_unavailable=True,
                allow_no_indices=True,
            )
        except Exception as exc:
            self._record_failure(f"search on {index} failed: {exc}")
            return empty

        body = _body(response)
        shard_info = body.get("_shards") or {}
        failed = int(shard_info.get("failed") or 0)
        total_shards = int(shard_info.get("total") or 0)
        if failed:
            if total_shards and failed >= total_shards:
                self._record_failure(f"all {total_shards} shards failed for {index}")
                return empty
            LOGGER.warning(
                "%d of %d shards failed for %s; using partial results", failed, total_shards, index
            )

        hits = body.get("hits") or {}
        documents = [IndexDocument.from_hit(hit) for hit in hits.get("hits") or []]
        total = hits.get("total", 0)
        total_count = int(total.get("value", 0)) if isinstance(total, dict) else int(total or 0)
        self.last_error = None
        LOGGER.debug("Index returned %d of %d hits from %s", len(documents), total_count, index)
        return Page(items=documents, total=total_count, page=request.page, size=request.size)

    def is_healthy(self) -> bool:
        try:
            response = self.client.options(request_timeout=self.health_timeout).cluster.health()
        except Exception as exc:
            self._record_failure(f"health check failed: {exc}")
            return False
        status = _body(response).get("status")
        if status not in ("green", "yellow"):
            self._record_failure(f"cluster status is {status}")
            return False
        return True

    def ensure_shard(self, shard: str) -> None:
        """Create ``shard`` with the breach mapping unless it already exists."""
        if shard in self._known_shards:
            return
        with self._lock:
            if shard in self._known_shards:
                return
            if not self.client.indices.exists(index=shard):
                try:
                    self.client.indices.create(
                        index=shard, settings=SHARD_SETTINGS, mappings=SHARD_MAPPINGS
                    )
                    LOGGER.info("Created shard %s", shard)
                except BadRequestError as exc:
                    # Another worker created it first
                    if exc.error != "resource_already_exists_exception":
                        raise
            self._known_shards.add(shard)

    def upsert(self, document: IndexDocument, shard: str) -> None:
        self.ensure_shard(shard)
        self.client.options(request_timeout=self.request_timeout).index(
            index=shard, id=document.id, document=document.to_source()
        )

    def suggest_logins(self, prefix: str, shards: Sequence[str], limit: int = 10) -> List[str]:
        """Distinct logins starting with ``prefix`` (autocomplete)."""
        if not prefix or not shards:
            return []
        try:
            response = self.client.options(request_timeout=self.request_timeout).search(
                index=",".join(shards),
                query={"prefix": {"login": {"value": prefix, "case_insensitive": True}}},
                collapse={"field": "login"},
                source=["login"],
                size=limit,
                ignore_unavailable=True,
                allow_no_indices=True,
            )
        except Exception as exc:
            self._record_failure(f"suggestions for {prefix!r} failed: {exc}")
            return []

        suggestions: List[str] = []
        for hit in (_body(response).get("hits") or {}).get("hits") or []:
            login = (hit.get("_source") or {}).get("login")
            if login and login not in suggestions:
                suggestions.append(login)
        return suggestions[:limit]

    def _record_failure(self, message: str) -> None:
        self.last_error = message
        LOGGER.warning("Search index degraded: %s", message)
