"""
Tests for UTXO state stores.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from _syncwallet_test_helpers import diff_to_best_block, random_hash, random_utxo

from syncwallet.utxo.models import Asset, Utxo, UtxoAtSafePoint
from syncwallet.utxo.storage import InMemoryUtxoStorage, JsonUtxoStorage, UtxoStorage


@pytest.fixture(params=["memory", "json"])
def storage(request: pytest.FixtureRequest, tmp_path: Path) -> UtxoStorage:
    if request.param == "memory":
        return InMemoryUtxoStorage()
    return JsonUtxoStorage(tmp_path / "utxo")


class TestStorageContract:
    @pytest.mark.asyncio
    async def test_empty_state(self, storage: UtxoStorage) -> None:
        assert await storage.get_utxo_at_safe_point() is None
        assert await storage.get_utxo_diff_to_best_block() == []

    @pytest.mark.asyncio
    async def test_replace_safe_point(self, storage: UtxoStorage, address: str) -> None:
        utxos = [random_utxo(address) for _ in range(2)]
        await storage.replace_utxo_at_safe_point([random_utxo(address)], "old")
        await storage.replace_utxo_at_safe_point(utxos, "new")

        assert await storage.get_utxo_at_safe_point() == UtxoAtSafePoint(
            last_safe_block_hash="new", utxos=utxos
        )

    @pytest.mark.asyncio
    async def test_append_keeps_order_and_is_idempotent(
        self, storage: UtxoStorage, address: str
    ) -> None:
        first = diff_to_best_block(random_hash(), new=[random_utxo(address)])
        second = diff_to_best_block(random_hash(), spent=["tx:0"])

        await storage.append_utxo_diff_to_best_block(first)
        await storage.append_utxo_diff_to_best_block(second)
        await storage.append_utxo_diff_to_best_block(
            diff_to_best_block(first.last_best_block_hash, spent=["other:1"])
        )

        assert await storage.get_utxo_diff_to_best_block() == [first, second]

    @pytest.mark.asyncio
    async def test_remove_diff(self, storage: UtxoStorage) -> None:
        diffs = [diff_to_best_block(random_hash()) for _ in range(3)]
        for diff in diffs:
            await storage.append_utxo_diff_to_best_block(diff)

        await storage.remove_diff_with_best_block(diffs[1].last_best_block_hash)
        await storage.remove_diff_with_best_block("unknown")

        assert await storage.get_utxo_diff_to_best_block() == [diffs[0], diffs[2]]

    @pytest.mark.asyncio
    async def test_clear(self, storage: UtxoStorage, address: str) -> None:
        await storage.replace_utxo_at_safe_point([random_utxo(address)], "safe")
        await storage.append_utxo_diff_to_best_block(diff_to_best_block("best"))

        await storage.clear_utxo_state()

        assert await storage.get_utxo_at_safe_point() is None
        assert await storage.get_utxo_diff_to_best_block() == []


class TestJsonUtxoStorage:
    @pytest.mark.asyncio
    async def test_survives_reopen(self, tmp_path: Path, address: str) -> None:
        utxo = Utxo(
            utxo_id="aa:0",
            tx_hash="aa",
            tx_index=0,
            receiver=address,
            amount=45_000_000_000_000_000,
            assets=[Asset(asset_id="p.n", policy_id="p", name="n", amount=10**20)],
            block_num=7,
        )
        diff = diff_to_best_block("best", spent=["bb:1"], new=[utxo])
        store = JsonUtxoStorage(tmp_path)
        await store.replace_utxo_at_safe_point([utxo], "safe")
        await store.append_utxo_diff_to_best_block(diff)

        reopened = JsonUtxoStorage(tmp_path)

        safe_point = await reopened.get_utxo_at_safe_point()
        assert safe_point is not None
        assert safe_point.utxos == [utxo]
        assert await reopened.get_utxo_diff_to_best_block() == [diff]

    @pytest.mark.asyncio
    async def test_file_layout(self, tmp_path: Path) -> None:
        store = JsonUtxoStorage(tmp_path / "utxo")
        await store.replace_utxo_at_safe_point([], "safe")
        await store.append_utxo_diff_to_best_block(diff_to_best_block("best"))

        assert (tmp_path / "utxo" / "safe-point.json").exists()
        assert (tmp_path / "utxo" / "diff.json").exists()
        assert not list((tmp_path / "utxo").glob("*.tmp"))

        await store.clear_utxo_state()

        assert not (tmp_path / "utxo" / "safe-point.json").exists()
        assert not (tmp_path / "utxo" / "diff.json").exists()

    @pytest.mark.asyncio
    async def test_remove_without_diff_file(self, tmp_path: Path) -> None:
        store = JsonUtxoStorage(tmp_path)

        await store.remove_diff_with_best_block("best")

        assert not (tmp_path / "diff.json").exists()
