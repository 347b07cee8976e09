"""
Unified settings management for wallet-sync components.

This module provides a centralized configuration system using pydantic-settings
that supports:
1. TOML configuration file (~/.wallet-sync/config.toml)
2. Environment variables
3. CLI arguments (via typer, handled by the CLI)

Priority (highest to lowest):
1. CLI arguments
2. Environment variables
3. Config file
4. Default values

Usage:
    from synccore.settings import get_settings

    settings = get_settings()
    print(settings.indexer.url)
    print(settings.utxo.rollback_max_attempts)

Environment Variable Naming:
    - Use uppercase with double underscore for nested settings
    - Examples: INDEXER__URL, UTXO__ROLLBACK_MAX_ATTEMPTS, LOGGING__LEVEL
    - Maps to TOML sections: INDEXER__URL -> [indexer] url
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from synccore.paths import DATA_DIR_ENV, DEFAULT_DATA_DIR_NAME, get_default_data_dir

CONFIG_FILE_ENV = "WALLET_SYNC_CONFIG_FILE"

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


class ConfigFileError(Exception):
    """Config file exists but cannot be parsed."""


class IndexerSettings(BaseModel):
    """Chain indexer connection settings."""

    url: str = Field(
        default="http://localhost:8082/",
        description="Base URL of the chain indexer API (trailing slash is added if missing)",
    )
    timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="HTTP timeout in seconds for indexer requests",
    )
    max_addresses_per_request: int = Field(
        default=50,
        ge=1,
        description="Maximum addresses per filterUsed request",
    )
    utxo_page_size: int = Field(
        default=10,
        ge=1,
        description="Page size for utxoAtPoint requests",
    )
    diff_limit: int = Field(
        default=10,
        ge=1,
        description="Maximum diff items per utxoDiffSincePoint request",
    )

    @field_validator("url")
    @classmethod
    def ensure_trailing_slash(cls, v: str) -> str:
        return v if v.endswith("/") else f"{v}/"


class UtxoSyncSettings(BaseModel):
    """UTXO reconciliation settings."""

    address_batch_size: int = Field(
        default=50,
        ge=1,
        description="Addresses per UTXO/diff request (larger sets are split into batches)",
    )
    rollback_max_attempts: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum attempts when the indexer keeps reporting rollbacks",
    )
    rollback_base_delay: float = Field(
        default=0.5,
        ge=0.0,
        description=(
            "Delay in seconds before the second attempt after a rollback. "
            "Subsequent attempts double this delay (exponential backoff)."
        ),
    )
    rollback_max_delay: float = Field(
        default=30.0,
        ge=0.0,
        description="Upper bound in seconds for a single backoff delay",
    )


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="INFO",
        description="Log level: TRACE, DEBUG, INFO, WARNING, ERROR",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {v}")
        return level


class SyncSettings(BaseSettings):
    """
    Main wallet-sync settings class.

    Loads configuration from multiple sources with the following priority:
    1. CLI arguments (passed to the constructor)
    2. Environment variables
    3. TOML config file (~/.wallet-sync/config.toml)
    4. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    data_dir: Path | None = Field(
        default=None,
        description="Data directory (defaults to ~/.wallet-sync)",
    )

    indexer: IndexerSettings = Field(default_factory=IndexerSettings)
    utxo: UtxoSyncSettings = Field(default_factory=UtxoSyncSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """
        Customize settings sources and their priority.

        Priority (highest to lowest):
        1. init_settings (CLI arguments passed to constructor)
        2. env_settings (environment variables with __ delimiter)
        3. toml_settings (config.toml file)
        4. defaults (in field definitions)
        """
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls),
        )

    def get_data_dir(self) -> Path:
        """Get the data directory, using default if not set."""
        if self.data_dir is not None:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            return self.data_dir
        return get_default_data_dir()


class TomlConfigSettingsSource(PydanticBaseSettingsSource):
    """
    Settings source that reads from a TOML config file.

    The file is expected at $WALLET_SYNC_CONFIG_FILE, or
    $WALLET_SYNC_DATA_DIR/config.toml, or ~/.wallet-sync/config.toml.
    """

    def __init__(self, settings_cls: type[BaseSettings]) -> None:
        super().__init__(settings_cls)
        self._config: dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        config_path = get_config_path()

        if not config_path.exists():
            logger.debug(f"Config file not found at {config_path}, using defaults")
            return

        try:
            with open(config_path, "rb") as f:
                self._config = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            logger.error(f"Invalid TOML syntax in config file {config_path}: {e}")
            raise ConfigFileError(f"Invalid TOML in {config_path}: {e}") from e

        logger.debug(f"Loaded config from {config_path}")

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        value = self._config.get(field_name)
        return value, field_name, value is not None

    def __call__(self) -> dict[str, Any]:
        return self._config


def get_config_path() -> Path:
    """Get the path to the config file."""
    env_path = os.environ.get(CONFIG_FILE_ENV)
    if env_path:
        return Path(env_path)

    data_dir_env = os.environ.get(DATA_DIR_ENV)
    data_dir = Path(data_dir_env) if data_dir_env else Path.home() / DEFAULT_DATA_DIR_NAME
    return data_dir / "config.toml"


def _format_toml_value(value: Any) -> str | None:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, str):
        return f'"{value}"'
    if value is None:
        return None
    return str(value)


def generate_config_template() -> str:
    """
    Generate a config file template with all settings commented out.

    Users see every available setting with its default and description and
    only uncomment what they want to change.
    """
    lines: list[str] = [
        "# wallet-sync configuration",
        "#",
        "# Settings are commented out by default - uncomment to override.",
        "#",
        "# Priority (highest to lowest):",
        "#   1. CLI arguments",
        "#   2. Environment variables",
        "#   3. This config file",
        "#   4. Built-in defaults",
        "#",
        "# Environment variables use uppercase with double underscore for nesting:",
        "#   INDEXER__URL=http://localhost:8082/",
        "#",
        "",
        "# Data directory for wallet-sync files",
        "# Defaults to ~/.wallet-sync or $WALLET_SYNC_DATA_DIR",
        "# data_dir = ",
        "",
    ]

    def add_section(title: str, model_cls: type[BaseModel], prefix: str) -> None:
        lines.append(f"# {'=' * 60}")
        lines.append(f"# {title}")
        lines.append(f"# {'=' * 60}")
        lines.append(f"[{prefix}]")
        lines.append("")

        for field_name, field_info in model_cls.model_fields.items():
            if field_info.description:
                lines.append(f"# {field_info.description}")
            value_str = _format_toml_value(field_info.default)
            if value_str is None:
                lines.append(f"# {field_name} = ")
            else:
                lines.append(f"# {field_name} = {value_str}")
            lines.append("")

    add_section("Indexer Settings", IndexerSettings, "indexer")
    add_section("UTXO Sync Settings", UtxoSyncSettings, "utxo")
    add_section("Logging Settings", LoggingSettings, "logging")

    return "\n".join(lines)


def ensure_config_file(data_dir: Path | None = None) -> Path:
    """
    Ensure the config file exists, creating a template if it doesn't.

    Args:
        data_dir: Optional data directory path. Uses default if not provided.

    Returns:
        Path to the config file.
    """
    if data_dir is None:
        data_dir = get_default_data_dir()

    config_path = data_dir / "config.toml"

    if not config_path.exists():
        logger.info(f"Creating config file template at {config_path}")
        data_dir.mkdir(parents=True, exist_ok=True)
        config_path.write_text(generate_config_template())

    return config_path


_settings: SyncSettings | None = None


def get_settings(**overrides: Any) -> SyncSettings:
    """
    Get the wallet-sync settings instance.

    On first call, loads settings from all sources. Subsequent calls
    return the cached instance unless reset_settings() is called.

    Args:
        **overrides: Optional settings overrides (highest priority)
    """
    global _settings
    if _settings is None or overrides:
        _settings = SyncSettings(**overrides)
    return _settings


def reset_settings() -> None:
    """Reset the global settings instance (useful for testing)."""
    global _settings
    _settings = None


__all__ = [
    "ConfigFileError",
    "IndexerSettings",
    "LoggingSettings",
    "SyncSettings",
    "UtxoSyncSettings",
    "ensure_config_file",
    "generate_config_template",
    "get_config_path",
    "get_settings",
    "reset_settings",
]
