"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (DOCSRS_MCP__CACHE__MAX_SIZE=500)
  2. docsrs-mcp.yaml        (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; every field has a default.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from docsrs_mcp.transport import DEFAULT_USER_AGENT
from docsrs_mcp.urls import DOCS_RS_BASE_URL

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("docsrs-mcp")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "cache.db")


def _find_config_file() -> str | None:
    """Return the path of the first docsrs-mcp.yaml found, or None."""
    candidates = [
        Path("docsrs-mcp.yaml"),
        Path(platformdirs.user_config_dir("docsrs-mcp")) / "docsrs-mcp.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class FetcherSettings(BaseModel):
    base_url: str = DOCS_RS_BASE_URL
    request_timeout_ms: int = Field(default=30_000, gt=0)
    user_agent: str = DEFAULT_USER_AGENT


class CacheSettings(BaseModel):
    ttl_ms: int = Field(default=3_600_000, gt=0)
    max_size: int = Field(default=100, ge=1)
    db_path: str = _DEFAULT_DB_PATH
    # Skip the database file entirely; entries live for the process lifetime.
    in_memory: bool = False
    cleanup_on_startup: bool = True

    @property
    def storage_path(self) -> str | None:
        return None if self.in_memory else self.db_path


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: DOCSRS_MCP__FETCHER__REQUEST_TIMEOUT_MS=5000
        env_prefix="DOCSRS_MCP__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    fetcher: FetcherSettings = FetcherSettings()
    cache: CacheSettings = CacheSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
