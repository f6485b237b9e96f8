"""Tests for JSON Lines ingestion."""

import json
from unittest.mock import MagicMock

from breachsearch.ingestion.loader import import_records, iter_jsonl, parse_record


def _write(path, lines):
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def test_parse_record():
    record = parse_record(
        {
            "login": " alice@example.com ",
            "password": "pw",
            "url": "https://x.io",
            "timestamp": "2024-03-01T00:00:00Z",
            "source": "combo-2024",
            "metadata": {"browser": "firefox"},
        }
    )
    assert record.login == "alice@example.com"
    assert record.source_tag == "combo-2024"
    assert record.metadata == {"browser": "firefox"}
    assert record.timestamp.year == 2024


def test_parse_record_requires_triple():
    assert parse_record({"login": "a", "password": "b"}) is None
    assert parse_record({"login": "a", "password": "", "url": "c"}) is None
    assert parse_record({"login": 1, "password": "b", "url": "c"}) is None


def test_iter_jsonl_marks_bad_lines(tmp_path):
    path = _write(tmp_path / "dump.jsonl", ['{"login": "a"}', "not json", "", "[1, 2]"])
    assert list(iter_jsonl(path)) == [{"login": "a"}, None, None]


def test_import_records(store, tmp_path):
    good = {"login": "alice@example.com", "password": "pw", "url": "https://x.io"}
    path = _write(
        tmp_path / "dump.jsonl",
        [json.dumps(good), json.dumps(good), json.dumps({"login": "bob"}), "{broken"],
    )

    stats = import_records(store, [path])

    assert (stats.inserted, stats.updated, stats.skipped, stats.failed) == (1, 1, 2, 0)
    assert stats.processed_files == [path]
    assert store.count() == 1


def test_import_counts_store_failures(tmp_path):
    writer = MagicMock()
    writer.upsert.side_effect = RuntimeError("disk full")
    path = _write(tmp_path / "dump.jsonl", [json.dumps({"login": "a", "password": "b", "url": "c"})])

    stats = import_records(writer, [path])

    assert stats.failed == 1
    assert stats.inserted == 0
