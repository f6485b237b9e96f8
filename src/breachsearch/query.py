"""Search requests and the engine-agnostic structured query model.

A :class:`SearchQuery` is what callers send. :func:`build_structured_query`
turns it into a :class:`StructuredQuery`: a conjunction of clauses that each
store translates into its own native form (Elasticsearch DSL for the index,
SQL for the source store). Because both stores execute the same clauses, a
fallback search keeps the semantics of the index search it replaces.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Mapping

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from breachsearch.errors import InvalidQueryError
from breachsearch.utils.text import (
    email_domain,
    email_local_part,
    extract_domain,
    has_wildcards,
    is_domain,
    is_email,
    looks_like_url,
)

LOGIN = "login"
PASSWORD = "password"
URL = "url"
DOMAIN = "metadata.domain"
TIMESTAMP = "timestamp"

SORT_FIELDS = ("timestamp", "login", "url")


class SearchMode(str, Enum):
    AUTO = "AUTO"
    EXACT = "EXACT"
    PARTIAL = "PARTIAL"
    DOMAIN_ONLY = "DOMAIN_ONLY"
    USERNAME_ONLY = "USERNAME_ONLY"
    WILDCARD = "WILDCARD"


class SearchQuery(BaseModel):
    """Validated caller request: query text, mode, paging and lookback window."""

    model_config = ConfigDict(frozen=True)

    query: str
    mode: SearchMode = SearchMode.AUTO
    page: int = Field(0, ge=0)
    size: int = Field(20, ge=1, le=100)
    months_back: int = Field(36, validation_alias=AliasChoices("months_back", "monthsBack"))
    sort_by: Literal["timestamp", "login", "url"] = Field(
        "timestamp", validation_alias=AliasChoices("sort_by", "sortBy")
    )
    sort_direction: Literal["asc", "desc"] = Field(
        "desc", validation_alias=AliasChoices("sort_direction", "sortDirection")
    )
    domain: str | None = None
    date_from: datetime | None = Field(None, validation_alias=AliasChoices("date_from", "dateFrom"))
    date_to: datetime | None = Field(None, validation_alias=AliasChoices("date_to", "dateTo"))

    @field_validator("query")
    @classmethod
    def _query_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Search query cannot be empty")
        return value

    @field_validator("mode", mode="before")
    @classmethod
    def _normalize_mode(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("sort_direction", "sort_by", mode="before")
    @classmethod
    def _lowercase(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("domain")
    @classmethod
    def _normalize_domain(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip().lower()
        return value or None

    @field_validator("date_from", "date_to")
    @classmethod
    def _aware(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def _check_range(self) -> "SearchQuery":
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self

    @property
    def offset(self) -> int:
        return self.page * self.size

    @property
    def descending(self) -> bool:
        return self.sort_direction == "desc"


def parse_search_query(data: SearchQuery | Mapping[str, Any]) -> SearchQuery:
    """Validate caller input, raising :class:`InvalidQueryError` on rejection."""
    if isinstance(data, SearchQuery):
        return data
    try:
        return SearchQuery.model_validate(dict(data))
    except ValidationError as exc:
        messages = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'query'}: {err['msg']}" for err in exc.errors()
        )
        raise InvalidQueryError(
            f"Invalid search request: {messages}",
            errors=exc.errors(include_url=False, include_context=False),
        ) from exc


class ClauseKind(str, Enum):
    TERM = "term"
    CONTAINS = "contains"
    PREFIX = "prefix"
    WILDCARD = "wildcard"
    RANGE = "range"


@dataclass(frozen=True, slots=True)
class Clause:
    """One condition. A clause over several fields matches when any field does."""

    kind: ClauseKind
    fields: tuple[str, ...]
    value: str | None = None
    gte: datetime | None = None
    lte: datetime | None = None


@dataclass(frozen=True, slots=True)
class StructuredQuery:
    """Conjunction (AND) of clauses.

    OR/NOT across clauses are not modelled yet; add a ``should``/``must_not``
    list here and teach both translators about it.
    """

    clauses: tuple[Clause, ...] = ()

    def and_(self, *clauses: Clause) -> "StructuredQuery":
        return StructuredQuery(self.clauses + tuple(clauses))

    def __bool__(self) -> bool:
        return bool(self.clauses)


def _fields(field: str | tuple[str, ...]) -> tuple[str, ...]:
    return (field,) if isinstance(field, str) else tuple(field)


def term(field: str | tuple[str, ...], value: str) -> Clause:
    return Clause(ClauseKind.TERM, _fields(field), value)


def contains(field: str | tuple[str, ...], value: str) -> Clause:
    return Clause(ClauseKind.CONTAINS, _fields(field), value)


def prefix(field: str | tuple[str, ...], value: str) -> Clause:
    return Clause(ClauseKind.PREFIX, _fields(field), value)


def wildcard(field: str | tuple[str, ...], pattern: str) -> Clause:
    return Clause(ClauseKind.WILDCARD, _fields(field), pattern)


def time_range(gte: datetime | None = None, lte: datetime | None = None) -> Clause:
    return Clause(ClauseKind.RANGE, (TIMESTAMP,), gte=gte, lte=lte)


def _auto_clause(text: str) -> Clause:
    if is_email(text):
        return term(LOGIN, text.lower())
    if has_wildcards(text):
        return wildcard(URL, text)
    if is_domain(text):
        return contains((URL, DOMAIN), text.lower())
    if looks_like_url(text):
        return contains(URL, text)
    return contains((LOGIN, URL), text)


def build_structured_query(query: SearchQuery) -> StructuredQuery:
    """Map a search request onto structured clauses, filters included."""
    text = query.query
    mode = query.mode

    if mode is SearchMode.EXACT:
        primary = term(LOGIN, text)
    elif mode is SearchMode.PARTIAL:
        primary = contains((LOGIN, URL, PASSWORD), text)
    elif mode is SearchMode.DOMAIN_ONLY:
        domain = email_domain(text) or extract_domain(text) or text.lower()
        primary = contains((URL, DOMAIN), domain)
    elif mode is SearchMode.USERNAME_ONLY:
        primary = prefix(LOGIN, email_local_part(text) or text)
    elif mode is SearchMode.WILDCARD:
        primary = wildcard(URL, text if has_wildcards(text) else f"*{text}*")
    else:
        primary = _auto_clause(text)

    structured = StructuredQuery((primary,))
    if query.domain:
        structured = structured.and_(contains((URL, DOMAIN), query.domain))
    if query.date_from or query.date_to:
        structured = structured.and_(time_range(query.date_from, query.date_to))
    return structured
