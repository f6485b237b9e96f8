"""Application configuration defaults."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "BREACHSEARCH_"


def _get_default_db_path() -> Path:
    """Get the default source store path based on execution context."""
    user_db = Path.home() / ".breachsearch" / "records.db"

    # When running from a checkout, prefer local data/ if it exists
    local_db = Path("data/breachsearch.db")
    if local_db.exists():
        return local_db

    return user_db


@dataclass(slots=True)
class AppConfig:
    db_path: Path | None = None
    elasticsearch_url: str = "http://localhost:9200"
    elasticsearch_username: str | None = None
    elasticsearch_password: str | None = None
    index_prefix: str = "breaches"
    request_timeout: float = 5.0
    health_timeout: float = 1.0
    store_timeout: float = 5.0
    default_months_back: int = 36
    repair_max_attempts: int = 3
    repair_base_delay: float = 1.0
    repair_workers: int = 4
    repair_queue_size: int = 1000

    def __post_init__(self) -> None:
        if self.db_path is None:
            self.db_path = _get_default_db_path()
        else:
            self.db_path = Path(self.db_path)

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if self.db_path is None:
            self.db_path = _get_default_db_path()
        if Path(self.db_path).is_absolute() or base_dir is None:
            return Path(self.db_path)
        return base_dir / self.db_path

    @classmethod
    def from_env(cls, **overrides: object) -> "AppConfig":
        """Build a config from ``BREACHSEARCH_*`` variables, then explicit overrides.

        Overrides whose value is ``None`` are ignored so CLI options can be passed through.
        """
        values = EnvOverrides().model_dump(exclude_none=True)
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)


class EnvOverrides(BaseSettings):
    """``BREACHSEARCH_*`` environment variables; unset ones keep the AppConfig default."""

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, env_ignore_empty=True, extra="ignore")

    db_path: Path | None = None
    elasticsearch_url: str | None = None
    elasticsearch_username: str | None = None
    elasticsearch_password: str | None = None
    index_prefix: str | None = None
    request_timeout: float | None = None
    health_timeout: float | None = None
    store_timeout: float | None = None
    default_months_back: int | None = None
    repair_max_attempts: int | None = None
    repair_base_delay: float | None = None
    repair_workers: int | None = None
    repair_queue_size: int | None = None
