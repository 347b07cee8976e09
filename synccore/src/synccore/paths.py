"""
Shared path utilities for wallet-sync data directories.

Layout under the data directory:
    config.toml
    accounts.json        (address discovery records)
    utxo/safe-point.json (settled UTXO snapshot)
    utxo/diff.json       (diffs to best block)
"""

from __future__ import annotations

import os
from pathlib import Path

DATA_DIR_ENV = "WALLET_SYNC_DATA_DIR"
DEFAULT_DATA_DIR_NAME = ".wallet-sync"


def get_default_data_dir() -> Path:
    """
    Get the default wallet-sync data directory.

    Returns ~/.wallet-sync or $WALLET_SYNC_DATA_DIR if set.
    Creates the directory if it doesn't exist.
    """
    env_path = os.getenv(DATA_DIR_ENV)
    data_dir = Path(env_path) if env_path else Path.home() / DEFAULT_DATA_DIR_NAME

    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_utxo_state_dir(data_dir: Path | None = None) -> Path:
    """
    Get the directory holding the UTXO safe point and diffs.

    Args:
        data_dir: Optional data directory (defaults to get_default_data_dir())

    Returns:
        Path to the utxo/ subdirectory (created if missing)
    """
    if data_dir is None:
        data_dir = get_default_data_dir()

    state_dir = data_dir / "utxo"
    state_dir.mkdir(parents=True, exist_ok=True)
    return state_dir


def get_accounts_path(data_dir: Path | None = None) -> Path:
    """Get the path to the persisted address records file."""
    if data_dir is None:
        data_dir = get_default_data_dir()
    return data_dir / "accounts.json"
