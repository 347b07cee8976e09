"""
Tests for the sync-wallet CLI.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Generator
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from _syncwallet_test_helpers import diff_to_best_block, random_utxo
from loguru import logger
from typer.testing import CliRunner

from syncwallet.cli import app
from syncwallet.utxo.indexer import IndexerError
from syncwallet.utxo.service import RollbackRetryExhaustedError, UtxoService
from syncwallet.utxo.storage import JsonUtxoStorage

runner = CliRunner()


@pytest.fixture(autouse=True)
def drop_cli_log_sink() -> Generator[None, None, None]:
    yield
    logger.remove()


@pytest.fixture
def seeded_data_dir(tmp_path: Path, address: str) -> Path:
    data_dir = tmp_path / "data"
    storage = JsonUtxoStorage(data_dir / "utxo")
    kept = random_utxo(address, amount=700)
    spent = random_utxo(address, amount=300)
    received = random_utxo(address, amount=50)

    async def seed() -> None:
        await storage.replace_utxo_at_safe_point([kept, spent], "safe")
        await storage.append_utxo_diff_to_best_block(
            diff_to_best_block("best", spent=[spent.utxo_id], new=[received])
        )

    asyncio.run(seed())
    return data_dir


def _write_addresses(path: Path, addresses: list[str]) -> Path:
    path.write_text(json.dumps(addresses))
    return path


class TestInitConfig:
    def test_creates_template(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["init-config", "--data-dir", str(tmp_path)])

        assert result.exit_code == 0
        assert "Config file created at" in result.output
        assert (tmp_path / "config.toml").exists()


class TestLocalState:
    def test_balance(self, seeded_data_dir: Path) -> None:
        result = runner.invoke(
            app, ["balance", "--data-dir", str(seeded_data_dir), "--log-level", "ERROR"]
        )

        assert result.exit_code == 0
        assert "Balance: 750 (2 UTXOs)" in result.output

    def test_utxos_json(self, seeded_data_dir: Path) -> None:
        result = runner.invoke(
            app, ["utxos", "--json", "--data-dir", str(seeded_data_dir), "-l", "ERROR"]
        )

        assert result.exit_code == 0
        amounts = sorted(u["amount"] for u in json.loads(result.output))
        assert amounts == [50, 700]

    def test_utxos_table(self, seeded_data_dir: Path) -> None:
        result = runner.invoke(app, ["utxos", "--data-dir", str(seeded_data_dir), "-l", "ERROR"])

        assert result.exit_code == 0
        assert "Amount" in result.output
        assert "700" in result.output

    def test_empty_state(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["utxos", "--data-dir", str(tmp_path), "-l", "ERROR"])

        assert result.exit_code == 0
        assert "No UTXOs found." in result.output


class TestSync:
    def test_missing_addresses_file(self, tmp_path: Path) -> None:
        result = runner.invoke(
            app, ["sync", "-a", str(tmp_path / "nope.json"), "-l", "ERROR"]
        )

        assert result.exit_code == 1

    def test_malformed_addresses_file(self, tmp_path: Path) -> None:
        path = tmp_path / "addresses.json"
        path.write_text('{"not": "a list"}')

        result = runner.invoke(app, ["sync", "-a", str(path), "-l", "ERROR"])

        assert result.exit_code == 1

    def test_sync_reports_balance(self, tmp_path: Path, address: str) -> None:
        path = _write_addresses(tmp_path / "addresses.json", [address])
        service = AsyncMock(spec=UtxoService)
        service.get_available_utxos.return_value = [random_utxo(address, amount=1234)]

        with patch("syncwallet.cli.utxo_cmd.create_utxo_service", return_value=service) as create:
            result = runner.invoke(
                app,
                ["sync", "-a", str(path), "--indexer-url", "http://indexer.test", "-l", "ERROR"],
            )

        assert result.exit_code == 0
        assert "Synced 1 addresses: 1 UTXOs, balance 1234" in result.output
        assert create.call_args.kwargs["indexer_url"] == "http://indexer.test/"
        service.sync_utxo_state.assert_awaited_once_with([address])
        service.close.assert_awaited_once()

    def test_sync_exhausted_exits_nonzero(self, tmp_path: Path, address: str) -> None:
        path = _write_addresses(tmp_path / "addresses.json", [address])
        service = AsyncMock(spec=UtxoService)
        service.sync_utxo_state.side_effect = RollbackRetryExhaustedError("best block retry", 10)

        with patch("syncwallet.cli.utxo_cmd.create_utxo_service", return_value=service):
            result = runner.invoke(app, ["sync", "-a", str(path), "-l", "ERROR"])

        assert result.exit_code == 1
        service.close.assert_awaited_once()

    def test_sync_unknown_indexer_error_exits_nonzero(self, tmp_path: Path, address: str) -> None:
        path = _write_addresses(tmp_path / "addresses.json", [address])
        service = AsyncMock(spec=UtxoService)
        service.sync_utxo_state.side_effect = IndexerError(400, "SOMETHING_ELSE", "v2/tipStatus")

        with patch("syncwallet.cli.utxo_cmd.create_utxo_service", return_value=service):
            result = runner.invoke(app, ["sync", "-a", str(path), "-l", "ERROR"])

        assert result.exit_code == 1
        assert not isinstance(result.exception, IndexerError)
        service.close.assert_awaited_once()
