"""Tests for search request validation and structured query building."""

from datetime import datetime, timezone

import pytest

from breachsearch.errors import InvalidQueryError
from breachsearch.query import (
    DOMAIN,
    LOGIN,
    PASSWORD,
    TIMESTAMP,
    URL,
    ClauseKind,
    SearchMode,
    SearchQuery,
    build_structured_query,
    parse_search_query,
)


def _primary(text, mode=SearchMode.AUTO, **extra):
    structured = build_structured_query(parse_search_query({"query": text, "mode": mode, **extra}))
    return structured.clauses[0]


class TestParseSearchQuery:
    """Test request validation."""

    def test_defaults(self):
        request = parse_search_query({"query": "  alice  "})
        assert request.query == "alice"
        assert request.mode is SearchMode.AUTO
        assert request.page == 0
        assert request.size == 20
        assert request.months_back == 36
        assert request.sort_by == "timestamp"
        assert request.descending is True

    @pytest.mark.parametrize(
        "payload",
        [
            {"query": ""},
            {"query": "   "},
            {"query": "alice", "size": 0},
            {"query": "alice", "size": 101},
            {"query": "alice", "page": -1},
            {"query": "alice", "mode": "FUZZY"},
            {"query": "alice", "sort_by": "password"},
            {},
        ],
    )
    def test_rejects_invalid(self, payload):
        with pytest.raises(InvalidQueryError) as excinfo:
            parse_search_query(payload)
        assert excinfo.value.errors

    def test_invalid_query_is_value_error(self):
        with pytest.raises(ValueError):
            parse_search_query({"query": ""})

    def test_aliases_and_normalization(self):
        request = parse_search_query(
            {
                "query": "alice",
                "mode": "partial",
                "monthsBack": 0,
                "sortBy": "LOGIN",
                "sortDirection": "ASC",
                "domain": " Example.COM ",
                "page": 2,
                "size": 10,
            }
        )
        assert request.mode is SearchMode.PARTIAL
        assert request.months_back == 0
        assert request.sort_by == "login"
        assert request.descending is False
        assert request.domain == "example.com"
        assert request.offset == 20

    def test_date_range_order(self):
        with pytest.raises(InvalidQueryError):
            parse_search_query({"query": "alice", "date_from": "2024-05-01", "date_to": "2024-01-01"})

    def test_naive_dates_become_utc(self):
        request = parse_search_query({"query": "alice", "dateFrom": "2024-01-01T00:00:00"})
        assert request.date_from == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_passes_models_through(self):
        request = SearchQuery(query="alice")
        assert parse_search_query(request) is request


class TestAutoMode:
    def test_email_is_exact_login(self):
        clause = _primary("Alice@Example.com")
        assert clause.kind is ClauseKind.TERM
        assert clause.fields == (LOGIN,)
        assert clause.value == "alice@example.com"

    def test_wildcards_match_url(self):
        clause = _primary("*.example.com")
        assert clause.kind is ClauseKind.WILDCARD
        assert clause.fields == (URL,)
        assert clause.value == "*.example.com"

    def test_domain(self):
        clause = _primary("Example.com")
        assert clause.kind is ClauseKind.CONTAINS
        assert clause.fields == (URL, DOMAIN)
        assert clause.value == "example.com"

    def test_url(self):
        clause = _primary("https://example.com/login")
        assert clause.kind is ClauseKind.CONTAINS
        assert clause.fields == (URL,)

    def test_free_text(self):
        clause = _primary("alice")
        assert clause.kind is ClauseKind.CONTAINS
        assert clause.fields == (LOGIN, URL)
        assert clause.value == "alice"


class TestExplicitModes:
    def test_exact(self):
        clause = _primary("alice", SearchMode.EXACT)
        assert (clause.kind, clause.fields, clause.value) == (ClauseKind.TERM, (LOGIN,), "alice")

    def test_partial_includes_password(self):
        clause = _primary("hunter", SearchMode.PARTIAL)
        assert clause.kind is ClauseKind.CONTAINS
        assert clause.fields == (LOGIN, URL, PASSWORD)

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("bob@Corp.io", "corp.io"),
            ("https://www.Example.com/x", "example.com"),
            ("Example.org", "example.org"),
        ],
    )
    def test_domain_only(self, text, expected):
        clause = _primary(text, SearchMode.DOMAIN_ONLY)
        assert clause.fields == (URL, DOMAIN)
        assert clause.value == expected

    def test_username_only(self):
        clause = _primary("alice@example.com", SearchMode.USERNAME_ONLY)
        assert (clause.kind, clause.value) == (ClauseKind.PREFIX, "alice")
        assert _primary("bob", SearchMode.USERNAME_ONLY).value == "bob"

    def test_wildcard_wraps_plain_text(self):
        assert _primary("example", SearchMode.WILDCARD).value == "*example*"
        assert _primary("ex*le", SearchMode.WILDCARD).value == "ex*le"


class TestFilters:
    def test_domain_filter_adds_clause(self):
        structured = build_structured_query(parse_search_query({"query": "alice", "domain": "corp.io"}))
        assert len(structured.clauses) == 2
        assert structured.clauses[1].fields == (URL, DOMAIN)
        assert structured.clauses[1].value == "corp.io"

    def test_date_filter_adds_range(self):
        structured = build_structured_query(
            parse_search_query({"query": "alice", "date_from": "2024-01-01T00:00:00Z"})
        )
        clause = structured.clauses[-1]
        assert clause.kind is ClauseKind.RANGE
        assert clause.fields == (TIMESTAMP,)
        assert clause.gte == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert clause.lte is None
