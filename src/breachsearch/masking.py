"""Plan-tier masking of sensitive record fields."""

from __future__ import annotations

from typing import Any, Dict, Tuple

from breachsearch.models import CanonicalRecord, PlanTier, ResolvedResult, SourceStoreTag

SHOW_START = 2
SHOW_END = 2
MIN_MASK = 4
SENSITIVE_METADATA_KEYS = frozenset({"pwd", "pass", "passwd", "secret", "key"})


def mask_partially(value: str, show_start: int = SHOW_START, show_end: int = SHOW_END) -> str:
    """Keep the outer characters and star out the middle.

    Values too short to hide anything are masked completely.
    """
    if len(value) <= show_start + show_end:
        return "*" * max(MIN_MASK, len(value))
    hidden = max(MIN_MASK, len(value) - show_start - show_end)
    return value[:show_start] + "*" * hidden + value[len(value) - show_end :]


def can_view_full_passwords(tier: PlanTier | str | None) -> bool:
    return PlanTier.parse(tier) is not PlanTier.FREE


def mask_password(value: str | None, tier: PlanTier | str | None) -> str:
    if not value:
        return ""
    if can_view_full_passwords(tier):
        return value
    return mask_partially(value)


def masking_description(tier: PlanTier | str | None) -> str:
    if can_view_full_passwords(tier):
        return "Full password visibility included in your plan."
    return "Passwords partially hidden. Upgrade to view full passwords."


def _mask_metadata(metadata: Dict[str, Any], tier: PlanTier) -> Tuple[Dict[str, Any], bool]:
    masked = dict(metadata)
    changed = False
    for key, value in metadata.items():
        if key.lower() in SENSITIVE_METADATA_KEYS and isinstance(value, str) and value:
            masked[key] = mask_password(value, tier)
            changed = changed or masked[key] != value
    return masked, changed


def mask(
    record: CanonicalRecord, tier: PlanTier | str | None, *, source_store: SourceStoreTag = "index"
) -> ResolvedResult:
    """Project a canonical record into the caller-visible result for ``tier``."""
    tier = PlanTier.parse(tier)
    password = mask_password(record.password, tier)
    metadata, metadata_masked = _mask_metadata(record.metadata or {}, tier)
    return ResolvedResult(
        id=record.id,
        login=record.login,
        password=password,
        url=record.url,
        domain=record.domain,
        metadata=metadata,
        timestamp=record.timestamp,
        created_at=record.created_at,
        updated_at=record.updated_at,
        source_tag=record.source_tag,
        masking_applied=password != (record.password or "") or metadata_masked,
        source_store=source_store,
    )
