"""Core breachsearch data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Generic, List, Literal, TypeVar

from breachsearch.utils.ids import compute_record_id
from breachsearch.utils.text import derive_domain, email_domain, email_local_part, is_email

T = TypeVar("T")

SourceStoreTag = Literal["index", "fallback"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PlanTier(str, Enum):
    """Caller entitlement level, lowest first."""

    FREE = "Free"
    BASIC = "Basic"
    PROFESSIONAL = "Professional"
    ENTERPRISE = "Enterprise"

    @classmethod
    def parse(cls, value: "PlanTier | str | None") -> "PlanTier":
        """Accept enum members, names or display names; anything else is FREE."""
        if isinstance(value, PlanTier):
            return value
        if not value:
            return cls.FREE
        normalized = str(value).strip().lower()
        for tier in cls:
            if normalized in (tier.name.lower(), tier.value.lower()):
                return tier
        return cls.FREE


@dataclass(slots=True)
class CallerContext:
    plan_tier: PlanTier = PlanTier.FREE
    user_id: str | None = None

    def __post_init__(self) -> None:
        self.plan_tier = PlanTier.parse(self.plan_tier)


@dataclass(slots=True)
class CanonicalRecord:
    """Source-of-truth breach entry owned by the source store."""

    login: str
    password: str
    url: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime | None = None
    source_tag: str | None = None
    id: str = ""
    domain: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.id:
            self.id = compute_record_id(self.login, self.password, self.url)
        if self.domain is None:
            self.domain = derive_domain(self.url, self.login)

    @property
    def is_email(self) -> bool:
        return is_email(self.login)

    @property
    def username(self) -> str:
        return email_local_part(self.login) or self.login

    @property
    def email_domain(self) -> str | None:
        return email_domain(self.login)


@dataclass(slots=True)
class IndexDocument:
    """Search projection of a canonical record. Never shown to callers."""

    id: str
    login: str
    password: str
    url: str
    timestamp: datetime | None = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_source(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "login": self.login,
            "password": self.password,
            "url": self.url,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "metadata": self.metadata,
        }

    @classmethod
    def from_hit(cls, hit: Dict[str, Any]) -> "IndexDocument":
        source = hit.get("_source") or {}
        metadata = source.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {"raw": metadata} if metadata else {}
        return cls(
            id=str(source.get("id") or hit.get("_id", "")),
            login=source.get("login") or "",
            password=source.get("password") or "",
            url=source.get("url") or "",
            timestamp=parse_timestamp(source.get("timestamp")),
            metadata=metadata,
        )


@dataclass(slots=True)
class ResolvedResult:
    """Caller-visible record: canonical values after masking."""

    id: str
    login: str
    password: str
    url: str
    domain: str | None
    metadata: Dict[str, Any]
    timestamp: datetime | None
    created_at: datetime | None
    updated_at: datetime | None
    source_tag: str | None
    masking_applied: bool
    source_store: SourceStoreTag


@dataclass(slots=True)
class Page(Generic[T]):
    items: List[T] = field(default_factory=list)
    total: int = 0
    page: int = 0
    size: int = 0

    def __len__(self) -> int:
        return len(self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items


def parse_timestamp(value: Any) -> datetime | None:
    """Parse ISO strings and epoch millis into aware datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
