"""SQLite source store for canonical breach records."""

from __future__ import annotations

import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Sequence

from breachsearch.models import CanonicalRecord, parse_timestamp, utcnow
from breachsearch.query import Clause, ClauseKind, StructuredQuery

COLUMN_FOR_FIELD = {
    "id": "id",
    "login": "login",
    "password": "password",
    "url": "url",
    "timestamp": "timestamp",
    "metadata.domain": "domain",
}

SORT_COLUMNS = {
    "timestamp": "COALESCE(timestamp, created_at)",
    "login": "login COLLATE NOCASE",
    "url": "url COLLATE NOCASE",
}


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _wildcard_to_like(pattern: str) -> str:
    return _escape_like(pattern).replace("*", "%").replace("?", "_")


def _column(field: str) -> str:
    if field in COLUMN_FOR_FIELD:
        return COLUMN_FOR_FIELD[field]
    if field.startswith("metadata."):
        key = field.split(".", 1)[1]
        if not key.replace("_", "").isalnum():
            raise ValueError(f"Unsupported metadata field: {field}")
        return f"json_extract(metadata, '$.{key}')"
    raise ValueError(f"Unsupported field: {field}")


def _format_ts(value: datetime | None) -> str | None:
    if value is None:
        return None
    # Stored as UTC ISO strings so lexical order matches time order
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


class SQLiteRecordStore:
    """Durable store of canonical records, keyed by content-derived id."""

    def __init__(self, db_path: Path, *, timeout: float = 5.0) -> None:
        self.db_path = Path(db_path)
        self._conn = sqlite3.connect(self.db_path, timeout=timeout, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._lock = threading.RLock()
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                    id TEXT PRIMARY KEY,
                    login TEXT NOT NULL,
                    password TEXT NOT NULL,
                    url TEXT NOT NULL,
                    domain TEXT,
                    timestamp TEXT,
                    metadata TEXT,
                    source_tag TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE(login, password, url)
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_records_login ON records(login COLLATE NOCASE)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_records_domain ON records(domain)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_records_timestamp ON records(timestamp)")

    def upsert(self, record: CanonicalRecord) -> str:
        """Insert or update ``record``.

        Returns:
            'inserted' for a new triple, 'updated' when the id already existed.
        """
        now = utcnow()
        with self.transaction() as conn:
            existing = conn.execute(
                "SELECT created_at FROM records WHERE id = ?", (record.id,)
            ).fetchone()
            created_at = existing["created_at"] if existing else _format_ts(record.created_at or now)
            conn.execute(
                """
                INSERT INTO records(
                    id, login, password, url, domain, timestamp, metadata,
                    source_tag, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    login = excluded.login,
                    password = excluded.password,
                    url = excluded.url,
                    domain = excluded.domain,
                    timestamp = excluded.timestamp,
                    metadata = excluded.metadata,
                    source_tag = excluded.source_tag,
                    updated_at = excluded.updated_at
                """,
                (
                    record.id,
                    record.login,
                    record.password,
                    record.url,
                    record.domain,
                    _format_ts(record.timestamp),
                    json.dumps(record.metadata or {}, ensure_ascii=True, default=str),
                    record.source_tag,
                    created_at,
                    _format_ts(now),
                ),
            )
        record.created_at = parse_timestamp(created_at)
        record.updated_at = now
        return "updated" if existing else "inserted"

    def get(self, record_id: str) -> CanonicalRecord | None:
        records = self.find_by_ids([record_id])
        return records[0] if records else None

    def find_by_ids(self, ids: Iterable[str]) -> List[CanonicalRecord]:
        """Fetch records for ``ids`` in one query. Result order is unspecified."""
        unique = list(dict.fromkeys(i for i in ids if i))
        if not unique:
            return []
        placeholders = ",".join("?" for _ in unique)
        with self._lock:
            rows = self._conn.execute(
                f"SELECT * FROM records WHERE id IN ({placeholders})", unique
            ).fetchall()
        return [self._to_record(row) for row in rows]

    def exists(self, login: str, password: str, url: str) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT 1 FROM records WHERE login = ? AND password = ? AND url = ?",
                (login, password, url),
            ).fetchone()
        return row is not None

    def search(
        self,
        structured: StructuredQuery,
        *,
        offset: int = 0,
        limit: int = 20,
        sort_by: str = "timestamp",
        descending: bool = True,
    ) -> List[CanonicalRecord]:
        """Run ``structured`` natively: case-insensitive LIKE, equality and ranges."""
        where, params = self._where(structured)
        order = SORT_COLUMNS.get(sort_by, SORT_COLUMNS["timestamp"])
        direction = "DESC" if descending else "ASC"
        sql = f"SELECT * FROM records{where} ORDER BY {order} {direction}, id LIMIT ? OFFSET ?"
        with self._lock:
            rows = self._conn.execute(sql, [*params, limit, offset]).fetchall()
        return [self._to_record(row) for row in rows]

    def count(self, structured: StructuredQuery | None = None) -> int:
        where, params = self._where(structured or StructuredQuery())
        with self._lock:
            row = self._conn.execute(f"SELECT COUNT(*) FROM records{where}", params).fetchone()
        return int(row[0])

    def iter_records(self, batch_size: int = 500) -> Iterator[CanonicalRecord]:
        """Yield every record ordered by id, fetching ``batch_size`` rows at a time."""
        last_id = ""
        while True:
            with self._lock:
                rows = self._conn.execute(
                    "SELECT * FROM records WHERE id > ? ORDER BY id LIMIT ?", (last_id, batch_size)
                ).fetchall()
            if not rows:
                return
            for row in rows:
                yield self._to_record(row)
            last_id = rows[-1]["id"]

    def _where(self, structured: StructuredQuery) -> tuple[str, List[Any]]:
        conditions: List[str] = []
        params: List[Any] = []
        for clause in structured.clauses:
            sql, clause_params = self._clause(clause)
            conditions.append(sql)
            params.extend(clause_params)
        if not conditions:
            return "", []
        return " WHERE " + " AND ".join(conditions), params

    def _clause(self, clause: Clause) -> tuple[str, Sequence[Any]]:
        if clause.kind is ClauseKind.RANGE:
            column = _column(clause.fields[0])
            parts: List[str] = []
            params: List[Any] = []
            if clause.gte is not None:
                parts.append(f"{column} >= ?")
                params.append(_format_ts(clause.gte))
            if clause.lte is not None:
                parts.append(f"{column} <= ?")
                params.append(_format_ts(clause.lte))
            return ("(" + " AND ".join(parts) + ")" if parts else "1 = 1"), params

        value = clause.value or ""
        if clause.kind is ClauseKind.TERM:
            template, arg = "lower({col}) = lower(?)", value
        elif clause.kind is ClauseKind.CONTAINS:
            template, arg = "lower({col}) LIKE lower(?) ESCAPE '\\'", f"%{_escape_like(value)}%"
        elif clause.kind is ClauseKind.PREFIX:
            template, arg = "lower({col}) LIKE lower(?) ESCAPE '\\'", f"{_escape_like(value)}%"
        elif clause.kind is ClauseKind.WILDCARD:
            template, arg = "lower({col}) LIKE lower(?) ESCAPE '\\'", _wildcard_to_like(value)
        else:
            raise ValueError(f"Unsupported clause kind: {clause.kind}")

        alternatives = [template.format(col=_column(field)) for field in clause.fields]
        return "(" + " OR ".join(alternatives) + ")", [arg] * len(alternatives)

    @staticmethod
    def _to_record(row: sqlite3.Row) -> CanonicalRecord:
        metadata = json.loads(row["metadata"]) if row["metadata"] else {}
        return CanonicalRecord(
            id=row["id"],
            login=row["login"],
            password=row["password"],
            url=row["url"],
            domain=row["domain"],
            metadata=metadata,
            timestamp=parse_timestamp(row["timestamp"]),
            source_tag=row["source_tag"],
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
        )
