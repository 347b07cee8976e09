"""
UTXO reconciliation engine.

Keeps a settled UTXO snapshot (the safe point) plus an ordered list of diffs
up to the best block, and reconciles both against the indexer. Two rollback
classes are recovered from:

- BESTBLOCK_ROLLBACK: the best block moved while a diff was being fetched.
  The best block is re-read and the diff request repeated.
- SAFEBLOCK_ROLLBACK: a reference point the engine relies on is gone. All
  local state is cleared and the sync restarts from a fresh safe point.

Both retry loops are bounded by a RetryPolicy.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, assert_never

from loguru import logger

from synccore.retry import RetryPolicy
from syncwallet.utxo.api import BatchedUtxoApi, UtxoApi
from syncwallet.utxo.indexer import IndexerUtxoApi
from syncwallet.utxo.models import (
    TipStatusReference,
    Utxo,
    UtxoApiResult,
    UtxoAtPointRequest,
    UtxoAtSafePoint,
    UtxoDiff,
    UtxoDiffInput,
    UtxoDiffOutput,
    UtxoDiffSincePointRequest,
    UtxoDiffToBestBlock,
)
from syncwallet.utxo.storage import UtxoStorage

if TYPE_CHECKING:
    from synccore.settings import SyncSettings


class RollbackRetryExhaustedError(Exception):
    """The indexer kept reporting rollbacks past the retry budget."""

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(f"{operation}: still rolling back after {attempts} attempts")


@dataclass
class _RemoteState:
    safe_point: UtxoAtSafePoint
    local_diffs: list[UtxoDiffToBestBlock]
    tip_status: TipStatusReference
    diff: UtxoDiff
    best_block: str


def apply_diffs(utxos: list[Utxo], diffs: list[UtxoDiffToBestBlock]) -> list[Utxo]:
    """
    Apply diffs in order to a UTXO set.

    For each diff, spent ids are removed first, then new UTXOs are added
    (replacing any UTXO with the same id).
    """
    by_id = {utxo.utxo_id: utxo for utxo in utxos}
    for diff in diffs:
        for spent_id in diff.spent_utxo_ids:
            by_id.pop(spent_id, None)
        for utxo in diff.new_utxos:
            by_id[utxo.utxo_id] = utxo
    return list(by_id.values())


def build_diff_to_best_block(diff: UtxoDiff, best_block: str) -> UtxoDiffToBestBlock:
    """Partition raw diff items into spent ids and new UTXOs keyed by ``best_block``."""
    spent_utxo_ids: list[str] = []
    new_utxos: list[Utxo] = []
    for item in diff.diff_items:
        match item:
            case UtxoDiffInput():
                spent_utxo_ids.append(item.id)
            case UtxoDiffOutput():
                new_utxos.append(item.utxo)
            case _:
                assert_never(item)
    return UtxoDiffToBestBlock(
        last_best_block_hash=best_block,
        spent_utxo_ids=spent_utxo_ids,
        new_utxos=new_utxos,
    )


class UtxoService:
    """
    Reconciles local UTXO state with the indexer.

    Concurrent ``sync_utxo_state`` calls on one instance are serialized.
    """

    def __init__(
        self,
        api: UtxoApi,
        storage: UtxoStorage,
        retry_policy: RetryPolicy | None = None,
    ):
        self.api = api
        self.storage = storage
        self.retry_policy = retry_policy or RetryPolicy()
        self._lock = asyncio.Lock()

    async def get_available_utxos(self) -> list[Utxo]:
        """Safe UTXOs with every stored diff applied. Makes no network calls."""
        safe_point = await self.storage.get_utxo_at_safe_point()
        safe_utxos = safe_point.utxos if safe_point is not None else []
        diffs = await self.storage.get_utxo_diff_to_best_block()
        return apply_diffs(safe_utxos, diffs)

    async def sync_utxo_state(self, addresses: list[str]) -> None:
        """
        Bring the stored UTXO state up to the indexer's best block.

        Raises:
            RollbackRetryExhaustedError: if rollbacks persist past the retry budget
            ProtocolViolationError: if the indexer breaks the response contract
        """
        async with self._lock:
            logger.info(f"Syncing UTXO state for {len(addresses)} addresses")
            state = await self._sync_safe_state_and_get_diff(addresses)
            new_diff = build_diff_to_best_block(state.diff, state.best_block)

            await self._reconcile_local_diffs(state)

            await self.storage.append_utxo_diff_to_best_block(new_diff)
            logger.info(
                f"UTXO state synced to {state.best_block}: "
                f"{len(new_diff.spent_utxo_ids)} spent, {len(new_diff.new_utxos)} new"
            )

    async def close(self) -> None:
        await self.api.close()

    async def _reconcile_local_diffs(self, state: _RemoteState) -> None:
        local_diffs = state.local_diffs
        if not local_diffs:
            return

        last_found_best = state.tip_status.last_found_best_block
        last_found_safe = state.tip_status.last_found_safe_block

        best_index = next(
            (i for i, d in enumerate(local_diffs) if d.last_best_block_hash == last_found_best),
            None,
        )
        # No match means every local diff was reverted and the reference
        # point is the safe block itself.
        valid = local_diffs[: best_index + 1] if best_index is not None else []

        for stale in local_diffs[len(valid) :]:
            logger.warning(f"Dropping invalidated diff for block {stale.last_best_block_hash}")
            await self.storage.remove_diff_with_best_block(stale.last_best_block_hash)

        if best_index is None:
            return

        safe_index = next(
            (i for i, d in enumerate(valid) if d.last_best_block_hash == last_found_safe),
            None,
        )
        if safe_index is not None:
            await self._merge_diffs_into_safe_set(
                state.safe_point.utxos, valid[: safe_index + 1], last_found_safe
            )

    async def _merge_diffs_into_safe_set(
        self,
        safe_utxos: list[Utxo],
        diffs_to_merge: list[UtxoDiffToBestBlock],
        safe_block_hash: str,
    ) -> None:
        merged = apply_diffs(safe_utxos, diffs_to_merge)
        for diff in diffs_to_merge:
            await self.storage.remove_diff_with_best_block(diff.last_best_block_hash)
        await self.storage.replace_utxo_at_safe_point(merged, safe_block_hash)
        logger.info(
            f"Merged {len(diffs_to_merge)} diff(s) into safe point {safe_block_hash} "
            f"({len(merged)} UTXOs)"
        )

    async def _sync_safe_state_and_get_diff(self, addresses: list[str]) -> _RemoteState:
        policy = self.retry_policy
        for attempt in range(1, policy.max_attempts + 1):
            await policy.wait(attempt, "safe point restart")

            safe_point = await self._get_utxo_safe_point(addresses)
            local_diffs = await self.storage.get_utxo_diff_to_best_block()
            reference_blocks = [safe_point.last_safe_block_hash] + [
                d.last_best_block_hash for d in local_diffs
            ]

            tip_response = await self.api.get_tip_status_with_reference(reference_blocks)
            if tip_response.result == UtxoApiResult.SAFEBLOCK_ROLLBACK:
                logger.warning("Safe block rolled back (tip status), clearing UTXO state")
                await self.storage.clear_utxo_state()
                continue
            tip_status = tip_response.unwrap()

            fetched = await self._get_utxo_diff_since_point(
                addresses, tip_status.last_found_best_block
            )
            if fetched is None:
                logger.warning("Safe block rolled back (diff), clearing UTXO state")
                await self.storage.clear_utxo_state()
                continue

            diff, best_block = fetched
            return _RemoteState(
                safe_point=safe_point,
                local_diffs=local_diffs,
                tip_status=tip_status,
                diff=diff,
                best_block=best_block,
            )

        raise RollbackRetryExhaustedError("safe point restart", policy.max_attempts)

    async def _get_utxo_diff_since_point(
        self, addresses: list[str], after_best_block: str
    ) -> tuple[UtxoDiff, str] | None:
        """Fetch the diff up to the current best block, or None on SAFEBLOCK_ROLLBACK."""
        policy = self.retry_policy
        for attempt in range(1, policy.max_attempts + 1):
            await policy.wait(attempt, "best block retry")

            best_block = await self.api.get_best_block()
            response = await self.api.get_utxo_diff_since_point(
                UtxoDiffSincePointRequest(
                    addresses=addresses,
                    until_block_hash=best_block,
                    after_best_block=after_best_block,
                )
            )
            if response.result == UtxoApiResult.BESTBLOCK_ROLLBACK:
                logger.warning(f"Best block {best_block} rolled back, refetching")
                continue
            if response.result == UtxoApiResult.SAFEBLOCK_ROLLBACK:
                return None
            return response.unwrap(), best_block

        raise RollbackRetryExhaustedError("best block retry", policy.max_attempts)

    async def _get_utxo_safe_point(self, addresses: list[str]) -> UtxoAtSafePoint:
        local = await self.storage.get_utxo_at_safe_point()
        if local is not None:
            return local

        safe_block, utxos = await self._get_utxo_at_safe_point_from_api(addresses)
        await self.storage.replace_utxo_at_safe_point(utxos, safe_block)
        logger.info(f"Fetched safe point {safe_block} with {len(utxos)} UTXOs")
        return UtxoAtSafePoint(last_safe_block_hash=safe_block, utxos=utxos)

    async def _get_utxo_at_safe_point_from_api(
        self, addresses: list[str]
    ) -> tuple[str, list[Utxo]]:
        policy = self.retry_policy
        for attempt in range(1, policy.max_attempts + 1):
            await policy.wait(attempt, "fresh safe block")

            safe_block = await self.api.get_safe_block()
            response = await self.api.get_utxo_at_point(
                UtxoAtPointRequest(addresses=addresses, reference_block_hash=safe_block)
            )
            if response.result == UtxoApiResult.SAFEBLOCK_ROLLBACK:
                logger.warning(f"Safe block {safe_block} unreachable, fetching a fresh one")
                continue
            return safe_block, response.unwrap()

        raise RollbackRetryExhaustedError("fresh safe block", policy.max_attempts)


def create_utxo_service(
    storage: UtxoStorage,
    settings: SyncSettings,
    indexer_url: str | None = None,
) -> UtxoService:
    """
    Wire a UtxoService to the configured indexer with address batching.

    Args:
        storage: UTXO state store
        settings: SyncSettings instance
        indexer_url: Overrides settings.indexer.url when given
    """
    indexer = IndexerUtxoApi(
        indexer_url or settings.indexer.url,
        timeout=settings.indexer.timeout,
        utxo_page_size=settings.indexer.utxo_page_size,
        diff_limit=settings.indexer.diff_limit,
    )
    api = BatchedUtxoApi(indexer, batch_size=settings.utxo.address_batch_size)
    return UtxoService(api, storage, RetryPolicy.from_settings(settings.utxo))
