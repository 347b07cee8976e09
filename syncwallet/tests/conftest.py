"""
Pytest configuration and fixtures for syncwallet tests.
"""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest

from synccore.settings import reset_settings
from syncwallet.utxo.storage import InMemoryUtxoStorage


@pytest.fixture(autouse=True)
def wallet_sync_home(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[Path, None, None]:
    """Keep every test away from the real ~/.wallet-sync."""
    data_dir = tmp_path / ".wallet-sync"
    monkeypatch.setenv("WALLET_SYNC_DATA_DIR", str(data_dir))
    monkeypatch.delenv("WALLET_SYNC_CONFIG_FILE", raising=False)
    reset_settings()
    yield data_dir
    reset_settings()


@pytest.fixture
def memory_storage() -> InMemoryUtxoStorage:
    return InMemoryUtxoStorage()


@pytest.fixture
def address() -> str:
    return "addr_test1qz2fxv2umyhttkxyxp8x0dlpdt3k6cwng5pxj3jhsydzer3n0d3vllmyqwsx5wktcd8cc3s"
