"""Unit tests for configuration defaults and overrides."""

from __future__ import annotations

import platformdirs
import pytest
from pydantic import ValidationError

from docsrs_mcp.config import _DEFAULT_DATA_DIR, _DEFAULT_DB_PATH, CacheSettings, Settings


class TestPlatformDefaults:
    """Verify config defaults use platformdirs instead of hardcoded Unix paths."""

    def test_default_data_dir_matches_platformdirs(self) -> None:
        assert platformdirs.user_data_dir("docsrs-mcp") == _DEFAULT_DATA_DIR

    def test_default_db_path_under_data_dir(self) -> None:
        assert _DEFAULT_DB_PATH.startswith(_DEFAULT_DATA_DIR)
        assert _DEFAULT_DB_PATH.endswith("cache.db")


class TestDefaults:
    def test_fetch_and_cache_defaults(self) -> None:
        settings = Settings()
        assert settings.cache.ttl_ms == 3_600_000
        assert settings.cache.max_size == 100
        assert settings.fetcher.request_timeout_ms == 30_000
        assert settings.fetcher.base_url == "https://docs.rs"

    def test_storage_path_defaults_to_db_path(self) -> None:
        assert CacheSettings().storage_path == _DEFAULT_DB_PATH

    def test_in_memory_has_no_storage_path(self) -> None:
        assert CacheSettings(in_memory=True).storage_path is None


class TestOverrides:
    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DOCSRS_MCP__CACHE__MAX_SIZE", "500")
        monkeypatch.setenv("DOCSRS_MCP__FETCHER__REQUEST_TIMEOUT_MS", "5000")
        settings = Settings()
        assert settings.cache.max_size == 500
        assert settings.fetcher.request_timeout_ms == 5000

    def test_non_positive_ttl_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CacheSettings(ttl_ms=0)

    def test_zero_max_size_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CacheSettings(max_size=0)
