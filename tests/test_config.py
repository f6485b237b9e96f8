"""Tests for application configuration."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from breachsearch.config import AppConfig, _get_default_db_path


class TestDefaultDbPath:
    def test_prefers_local_data_dir(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        (tmp_path / "data").mkdir()
        (tmp_path / "data" / "breachsearch.db").touch()

        assert _get_default_db_path() == Path("data/breachsearch.db")

    def test_falls_back_to_home(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))

        assert _get_default_db_path() == tmp_path / "home" / ".breachsearch" / "records.db"


class TestAppConfig:
    def test_defaults(self) -> None:
        config = AppConfig(db_path=Path("x.db"))
        assert config.elasticsearch_url == "http://localhost:9200"
        assert config.index_prefix == "breaches"
        assert config.default_months_back == 36
        assert config.repair_max_attempts == 3
        assert config.health_timeout == 1.0

    def test_resolve_db_path(self, tmp_path: Path) -> None:
        assert AppConfig(db_path=Path("rel.db")).resolve_db_path(tmp_path) == tmp_path / "rel.db"
        absolute = tmp_path / "abs.db"
        assert AppConfig(db_path=absolute).resolve_db_path(Path("/elsewhere")) == absolute

    def test_from_env(self, monkeypatch) -> None:
        environ = {
            "BREACHSEARCH_ELASTICSEARCH_URL": "http://es:9200",
            "BREACHSEARCH_REQUEST_TIMEOUT": "2.5",
            "BREACHSEARCH_REPAIR_WORKERS": "8",
            "BREACHSEARCH_DB_PATH": "/tmp/records.db",
            "BREACHSEARCH_INDEX_PREFIX": "",
        }
        for name, value in environ.items():
            monkeypatch.setenv(name, value)

        config = AppConfig.from_env()

        assert config.elasticsearch_url == "http://es:9200"
        assert config.request_timeout == 2.5
        assert config.repair_workers == 8
        assert config.db_path == Path("/tmp/records.db")
        assert config.index_prefix == "breaches"

    def test_overrides_win_unless_none(self, monkeypatch) -> None:
        monkeypatch.setenv("BREACHSEARCH_INDEX_PREFIX", "leaks")

        assert AppConfig.from_env(index_prefix="dumps").index_prefix == "dumps"
        assert AppConfig.from_env(index_prefix=None).index_prefix == "leaks"

    def test_invalid_env_value_rejected(self, monkeypatch) -> None:
        monkeypatch.setenv("BREACHSEARCH_REPAIR_WORKERS", "many")

        with pytest.raises(ValidationError):
            AppConfig.from_env()
