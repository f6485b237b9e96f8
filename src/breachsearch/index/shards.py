"""Time-sharded index naming: ``<prefix>-<YYYY-MM>``."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List


def _clean_prefix(prefix: str) -> str:
    return prefix.rstrip("-")


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _utc(when: datetime) -> datetime:
    return when.astimezone(timezone.utc) if when.tzinfo else when


def shard_name(prefix: str, when: datetime) -> str:
    """Name of the shard holding documents from ``when``'s UTC calendar month."""
    when = _utc(when)
    return f"{_clean_prefix(prefix)}-{when.year:04d}-{when.month:02d}"


def wildcard_pattern(prefix: str) -> str:
    """Pattern matching every shard ever created under ``prefix``."""
    return f"{_clean_prefix(prefix)}-*"


def shard_set(prefix: str, months_back: int, now: datetime | None = None) -> List[str]:
    """Shards covering the last ``months_back`` months, most recent first.

    ``months_back <= 0`` means all time and yields the wildcard pattern, never an
    empty list.
    """
    if months_back <= 0:
        return [wildcard_pattern(prefix)]
    now = _utc(now or datetime.now(timezone.utc))
    names: List[str] = []
    for delta in range(months_back):
        year, month = _shift_month(now.year, now.month, -delta)
        names.append(f"{_clean_prefix(prefix)}-{year:04d}-{month:02d}")
    return names


def shards_between(prefix: str, start: datetime, end: datetime) -> List[str]:
    """Shards whose month intersects ``[start, end]``, most recent first."""
    start, end = _utc(start), _utc(end)
    if start > end:
        start, end = end, start
    span = (end.year - start.year) * 12 + (end.month - start.month) + 1
    return shard_set(prefix, span, now=end)
