"""
UTXO state persistence.

The store holds one safe point and an ordered list of diffs to the best block.
Appending a diff whose ``last_best_block_hash`` is already stored is a no-op.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from loguru import logger
from pydantic import TypeAdapter

from syncwallet.utxo.models import Utxo, UtxoAtSafePoint, UtxoDiffToBestBlock

SAFE_POINT_FILENAME = "safe-point.json"
DIFF_FILENAME = "diff.json"

_diff_list_adapter = TypeAdapter(list[UtxoDiffToBestBlock])


class UtxoStorage(ABC):
    @abstractmethod
    async def get_utxo_at_safe_point(self) -> UtxoAtSafePoint | None:
        pass

    @abstractmethod
    async def get_utxo_diff_to_best_block(self) -> list[UtxoDiffToBestBlock]:
        pass

    @abstractmethod
    async def replace_utxo_at_safe_point(self, utxos: list[Utxo], safe_block_hash: str) -> None:
        pass

    @abstractmethod
    async def clear_utxo_state(self) -> None:
        pass

    @abstractmethod
    async def append_utxo_diff_to_best_block(self, diff: UtxoDiffToBestBlock) -> None:
        pass

    @abstractmethod
    async def remove_diff_with_best_block(self, block_hash: str) -> None:
        pass


class InMemoryUtxoStorage(UtxoStorage):
    """Process-local store. State is lost when the process exits."""

    def __init__(self) -> None:
        self.safe_point: UtxoAtSafePoint | None = None
        self.diffs: list[UtxoDiffToBestBlock] = []

    async def get_utxo_at_safe_point(self) -> UtxoAtSafePoint | None:
        return self.safe_point

    async def get_utxo_diff_to_best_block(self) -> list[UtxoDiffToBestBlock]:
        return list(self.diffs)

    async def replace_utxo_at_safe_point(self, utxos: list[Utxo], safe_block_hash: str) -> None:
        self.safe_point = UtxoAtSafePoint(last_safe_block_hash=safe_block_hash, utxos=list(utxos))

    async def clear_utxo_state(self) -> None:
        self.safe_point = None
        self.diffs = []

    async def append_utxo_diff_to_best_block(self, diff: UtxoDiffToBestBlock) -> None:
        if any(d.last_best_block_hash == diff.last_best_block_hash for d in self.diffs):
            return
        self.diffs.append(diff)

    async def remove_diff_with_best_block(self, block_hash: str) -> None:
        self.diffs = [d for d in self.diffs if d.last_best_block_hash != block_hash]


class JsonUtxoStorage(UtxoStorage):
    """
    Store backed by two JSON files in ``state_dir``.

    Files are written atomically (temp file, then rename), so a crash leaves
    either the previous or the new content on disk.
    """

    def __init__(self, state_dir: Path):
        self.state_dir = state_dir
        self.safe_point_path = state_dir / SAFE_POINT_FILENAME
        self.diff_path = state_dir / DIFF_FILENAME

    def _write(self, path: Path, content: str) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        try:
            tmp_path.write_text(content, encoding="utf-8")
            tmp_path.replace(path)
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")
            tmp_path.unlink(missing_ok=True)
            raise

    def _read_diffs(self) -> list[UtxoDiffToBestBlock]:
        if not self.diff_path.exists():
            return []
        return _diff_list_adapter.validate_json(self.diff_path.read_bytes())

    def _write_diffs(self, diffs: list[UtxoDiffToBestBlock]) -> None:
        self._write(self.diff_path, _diff_list_adapter.dump_json(diffs, indent=2).decode())

    async def get_utxo_at_safe_point(self) -> UtxoAtSafePoint | None:
        if not self.safe_point_path.exists():
            return None
        return UtxoAtSafePoint.model_validate_json(self.safe_point_path.read_bytes())

    async def get_utxo_diff_to_best_block(self) -> list[UtxoDiffToBestBlock]:
        return self._read_diffs()

    async def replace_utxo_at_safe_point(self, utxos: list[Utxo], safe_block_hash: str) -> None:
        safe_point = UtxoAtSafePoint(last_safe_block_hash=safe_block_hash, utxos=list(utxos))
        self._write(self.safe_point_path, safe_point.model_dump_json(indent=2))
        logger.debug(f"Saved safe point {safe_block_hash} with {len(utxos)} UTXOs")

    async def clear_utxo_state(self) -> None:
        self.safe_point_path.unlink(missing_ok=True)
        self.diff_path.unlink(missing_ok=True)
        logger.debug(f"Cleared UTXO state in {self.state_dir}")

    async def append_utxo_diff_to_best_block(self, diff: UtxoDiffToBestBlock) -> None:
        diffs = self._read_diffs()
        if any(d.last_best_block_hash == diff.last_best_block_hash for d in diffs):
            logger.debug(f"Diff for {diff.last_best_block_hash} already stored")
            return
        diffs.append(diff)
        self._write_diffs(diffs)

    async def remove_diff_with_best_block(self, block_hash: str) -> None:
        if not self.diff_path.exists():
            logger.debug(f"No diff file, nothing to remove for {block_hash}")
            return
        diffs = self._read_diffs()
        self._write_diffs([d for d in diffs if d.last_best_block_hash != block_hash])
