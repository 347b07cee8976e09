"""
UTXO API contract and the address-batching decorator.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from loguru import logger

from synccore.batching import chunk, flatten
from syncwallet.utxo.models import (
    TipStatusReference,
    Utxo,
    UtxoApiResponse,
    UtxoAtPointRequest,
    UtxoDiff,
    UtxoDiffSincePointRequest,
)

DEFAULT_ADDRESS_BATCH_SIZE = 50


class UtxoApi(ABC):
    """
    Remote indexer operations needed by the UTXO reconciliation engine.

    Rollbacks are reported through ``UtxoApiResponse.result``, never raised.
    Transport failures propagate as exceptions.
    """

    @abstractmethod
    async def get_safe_block(self) -> str:
        pass

    @abstractmethod
    async def get_best_block(self) -> str:
        pass

    @abstractmethod
    async def get_tip_status_with_reference(
        self, best_blocks: list[str]
    ) -> UtxoApiResponse[TipStatusReference]:
        pass

    @abstractmethod
    async def get_utxo_at_point(self, req: UtxoAtPointRequest) -> UtxoApiResponse[list[Utxo]]:
        pass

    @abstractmethod
    async def get_utxo_diff_since_point(
        self, req: UtxoDiffSincePointRequest
    ) -> UtxoApiResponse[UtxoDiff]:
        pass

    async def close(self) -> None:
        pass


class BatchedUtxoApi(UtxoApi):
    """
    Splits large address sets into fixed-size batches.

    Batches run sequentially. Results are concatenated in batch order; the
    first batch reporting a rollback short-circuits the whole call.
    """

    def __init__(self, base: UtxoApi, batch_size: int = DEFAULT_ADDRESS_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.base = base
        self.batch_size = batch_size

    async def get_safe_block(self) -> str:
        return await self.base.get_safe_block()

    async def get_best_block(self) -> str:
        return await self.base.get_best_block()

    async def get_tip_status_with_reference(
        self, best_blocks: list[str]
    ) -> UtxoApiResponse[TipStatusReference]:
        return await self.base.get_tip_status_with_reference(best_blocks)

    async def get_utxo_at_point(self, req: UtxoAtPointRequest) -> UtxoApiResponse[list[Utxo]]:
        batches = chunk(req.addresses, self.batch_size)
        results: list[list[Utxo]] = []
        for i, addresses in enumerate(batches, start=1):
            logger.debug(f"utxoAtPoint batch {i}/{len(batches)} ({len(addresses)} addresses)")
            response = await self.base.get_utxo_at_point(
                UtxoAtPointRequest(
                    addresses=addresses,
                    reference_block_hash=req.reference_block_hash,
                )
            )
            if not response.is_success:
                return UtxoApiResponse[list[Utxo]].rollback(response.result)
            results.append(response.unwrap())
        return UtxoApiResponse[list[Utxo]].success(flatten(results))

    async def get_utxo_diff_since_point(
        self, req: UtxoDiffSincePointRequest
    ) -> UtxoApiResponse[UtxoDiff]:
        batches = chunk(req.addresses, self.batch_size)
        diffs: list[UtxoDiff] = []
        for i, addresses in enumerate(batches, start=1):
            logger.debug(
                f"utxoDiffSincePoint batch {i}/{len(batches)} ({len(addresses)} addresses)"
            )
            response = await self.base.get_utxo_diff_since_point(
                UtxoDiffSincePointRequest(
                    addresses=addresses,
                    until_block_hash=req.until_block_hash,
                    after_best_block=req.after_best_block,
                )
            )
            if not response.is_success:
                return UtxoApiResponse[UtxoDiff].rollback(response.result)
            diffs.append(response.unwrap())
        return UtxoApiResponse[UtxoDiff].success(
            UtxoDiff(diff_items=flatten([d.diff_items for d in diffs]))
        )

    async def close(self) -> None:
        await self.base.close()
