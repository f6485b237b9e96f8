"""Loading canonical records from JSON Lines exports."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Protocol

from breachsearch.models import CanonicalRecord, parse_timestamp

LOGGER = logging.getLogger(__name__)

REQUIRED_FIELDS = ("login", "password", "url")


class RecordWriter(Protocol):
    def upsert(self, record: CanonicalRecord) -> str:
        ...


@dataclass(slots=True)
class ImportStats:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    processed_files: list[Path] = field(default_factory=list)

    def increment(self, status: str) -> None:
        if status == "inserted":
            self.inserted += 1
        elif status == "updated":
            self.updated += 1
        elif status == "skipped":
            self.skipped += 1
        else:
            self.failed += 1


def parse_record(payload: Dict[str, Any]) -> CanonicalRecord | None:
    """Build a record from one export line; None when a triple field is missing."""
    values = {name: payload.get(name) for name in REQUIRED_FIELDS}
    if not all(isinstance(value, str) and value.strip() for value in values.values()):
        return None
    metadata = payload.get("metadata")
    return CanonicalRecord(
        login=values["login"].strip(),
        password=values["password"],
        url=values["url"].strip(),
        metadata=metadata if isinstance(metadata, dict) else {},
        timestamp=parse_timestamp(payload.get("timestamp")),
        source_tag=payload.get("source_tag") or payload.get("source"),
    )


def iter_jsonl(path: Path) -> Iterator[Dict[str, Any] | None]:
    """Yield decoded objects per line, None for lines that are not JSON objects."""
    with path.open("r", encoding="utf-8") as handle:
        for line_no, line in enumerate(handle, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                payload = json.loads(line)
            except json.JSONDecodeError as exc:
                LOGGER.warning("%s:%d is not valid JSON: %s", path, line_no, exc)
                yield None
                continue
            yield payload if isinstance(payload, dict) else None


def import_records(store: RecordWriter, paths: Iterable[Path]) -> ImportStats:
    """Upsert every record found in ``paths`` into ``store``."""
    stats = ImportStats()
    for path in paths:
        LOGGER.info("Importing: %s", path)
        for payload in iter_jsonl(path):
            record = parse_record(payload) if payload is not None else None
            if record is None:
                stats.increment("skipped")
                continue
            try:
                stats.increment(store.upsert(record))
            except Exception as exc:
                LOGGER.error("Failed to import record %s from %s: %s", record.id, path, exc)
                stats.increment("failed")
        stats.processed_files.append(path)
    return stats
