"""Tests for breachsearch data models."""

from datetime import datetime, timezone

import pytest

from breachsearch.models import (
    CallerContext,
    CanonicalRecord,
    IndexDocument,
    Page,
    PlanTier,
    parse_timestamp,
)
from breachsearch.utils.ids import compute_record_id


class TestPlanTier:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("Free", PlanTier.FREE),
            ("BASIC", PlanTier.BASIC),
            ("professional", PlanTier.PROFESSIONAL),
            (PlanTier.ENTERPRISE, PlanTier.ENTERPRISE),
            ("platinum", PlanTier.FREE),
            (None, PlanTier.FREE),
        ],
    )
    def test_parse(self, value, expected):
        assert PlanTier.parse(value) is expected

    def test_caller_context_parses_tier(self):
        assert CallerContext(plan_tier="Basic").plan_tier is PlanTier.BASIC
        assert CallerContext().plan_tier is PlanTier.FREE


class TestCanonicalRecord:
    def test_derived_fields(self):
        record = CanonicalRecord(login="Alice@Example.com", password="pw", url="https://www.shop.io/login")

        assert record.id == compute_record_id("Alice@Example.com", "pw", "https://www.shop.io/login")
        assert record.domain == "shop.io"
        assert record.is_email
        assert record.username == "Alice"
        assert record.email_domain == "example.com"

    def test_plain_username(self):
        record = CanonicalRecord(login="carol", password="pw", url="")
        assert not record.is_email
        assert record.username == "carol"
        assert record.email_domain is None
        assert record.domain is None

    def test_explicit_values_kept(self):
        record = CanonicalRecord(login="a", password="b", url="https://x.io", id="fixed", domain="other.io")
        assert record.id == "fixed"
        assert record.domain == "other.io"


class TestIndexDocument:
    def test_from_hit(self):
        hit = {
            "_id": "doc-1",
            "_source": {
                "login": "alice",
                "password": "pw",
                "url": "https://x.io",
                "timestamp": "2024-03-01T00:00:00Z",
                "metadata": {"domain": "x.io"},
            },
        }

        document = IndexDocument.from_hit(hit)

        assert document.id == "doc-1"
        assert document.timestamp == datetime(2024, 3, 1, tzinfo=timezone.utc)
        assert document.metadata == {"domain": "x.io"}

    def test_from_hit_tolerates_odd_metadata(self):
        document = IndexDocument.from_hit({"_id": "d", "_source": {"metadata": "legacy"}})
        assert document.metadata == {"raw": "legacy"}
        assert document.login == ""

    def test_to_source(self):
        document = IndexDocument(
            id="a", login="b", password="c", url="d", timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc)
        )
        source = document.to_source()
        assert source["timestamp"] == "2024-01-01T00:00:00+00:00"
        assert source["metadata"] == {}


class TestParseTimestamp:
    def test_iso_with_z(self):
        assert parse_timestamp("2024-03-01T12:00:00Z") == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)

    def test_epoch_millis(self):
        assert parse_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_naive_becomes_utc(self):
        assert parse_timestamp(datetime(2024, 1, 1)).tzinfo is timezone.utc

    @pytest.mark.parametrize("value", [None, "", "not a date"])
    def test_unparseable(self, value):
        assert parse_timestamp(value) is None


def test_page():
    page = Page(items=[1, 2], total=10)
    assert len(page) == 2
    assert not page.is_empty
    assert Page().is_empty
