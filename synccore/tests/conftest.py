"""
Pytest configuration and fixtures for synccore tests.
"""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest

from synccore.settings import reset_settings


@pytest.fixture(autouse=True)
def isolated_data_dir(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[Path, None, None]:
    """Point the data directory at a temp dir so no user config is read."""
    data_dir = tmp_path / ".wallet-sync"
    monkeypatch.setenv("WALLET_SYNC_DATA_DIR", str(data_dir))
    monkeypatch.delenv("WALLET_SYNC_CONFIG_FILE", raising=False)
    reset_settings()
    yield data_dir
    reset_settings()
