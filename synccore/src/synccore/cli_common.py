"""
Common CLI components for wallet-sync.

Resolver functions take CLI arguments plus settings and return the values the
command should use. Priority is always: CLI argument > settings (env + config
file) > defaults. Keeping this here avoids a typer dependency in synccore.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from synccore.settings import SyncSettings, get_settings, reset_settings


@dataclass
class ResolvedIndexerSettings:
    """Resolved indexer connection settings ready for use."""

    url: str
    timeout: float
    max_addresses_per_request: int
    utxo_page_size: int
    diff_limit: int
    data_dir: Path


def setup_logging(level: str = "INFO") -> None:
    """
    Configure loguru logging with consistent format.

    Args:
        level: Log level (TRACE, DEBUG, INFO, WARNING, ERROR)
    """
    logger.remove()
    logger.add(
        sys.stderr,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        level=level.upper(),
        colorize=True,
    )


def setup_cli(log_level: str | None = None) -> SyncSettings:
    """
    Common CLI setup: reset settings cache, configure logging, return settings.

    Log level priority: CLI argument > settings (env/config) > default "INFO"
    """
    reset_settings()
    settings = get_settings()

    effective_log_level = log_level if log_level is not None else settings.logging.level
    setup_logging(effective_log_level)

    return settings


def resolve_indexer_settings(
    settings: SyncSettings,
    *,
    indexer_url: str | None = None,
    data_dir: Path | None = None,
) -> ResolvedIndexerSettings:
    """
    Resolve indexer settings with priority: CLI > Settings (env + config) > Defaults.

    Args:
        settings: SyncSettings instance
        indexer_url: CLI override for the indexer base URL
        data_dir: CLI override for the data directory
    """
    url = indexer_url if indexer_url is not None else settings.indexer.url
    if not url.endswith("/"):
        url = f"{url}/"

    if data_dir is not None:
        data_dir.mkdir(parents=True, exist_ok=True)
        resolved_data_dir = data_dir
    else:
        resolved_data_dir = settings.get_data_dir()

    return ResolvedIndexerSettings(
        url=url,
        timeout=settings.indexer.timeout,
        max_addresses_per_request=settings.indexer.max_addresses_per_request,
        utxo_page_size=settings.indexer.utxo_page_size,
        diff_limit=settings.indexer.diff_limit,
        data_dir=resolved_data_dir,
    )
