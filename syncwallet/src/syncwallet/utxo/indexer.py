"""
httpx client for the chain indexer's UTXO endpoints.

Endpoints (relative to the base URL):
    GET  v2/tipStatus                  -> {safeBlock, bestBlock}
    POST v2/tipStatus                  -> {reference: {lastFoundSafeBlock, lastFoundBestBlock}}
    POST v2/txs/utxoAtPoint            -> paged list of UTXOs
    POST v2/txs/utxoDiffSincePoint     -> {lastDiffPointSelected, diffItems}

The indexer signals rollbacks as HTTP errors with a JSON body such as
``{"error": {...}, "response": "REFERENCE_POINT_BLOCK_NOT_FOUND"}``. Those are
translated into UtxoApiResult values; anything else is raised.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from syncwallet.utxo.api import UtxoApi
from syncwallet.utxo.models import (
    TipStatusReference,
    Utxo,
    UtxoApiResponse,
    UtxoApiResult,
    UtxoAtPointRequest,
    UtxoDiff,
    UtxoDiffInput,
    UtxoDiffItem,
    UtxoDiffOutput,
    UtxoDiffSincePointRequest,
)

REFERENCE_POINT_BLOCK_NOT_FOUND = "REFERENCE_POINT_BLOCK_NOT_FOUND"
REFERENCE_BESTBLOCK_NOT_FOUND = "REFERENCE_BESTBLOCK_NOT_FOUND"

SAFE_POINT_ERRORS = {REFERENCE_POINT_BLOCK_NOT_FOUND: UtxoApiResult.SAFEBLOCK_ROLLBACK}
DIFF_ERRORS = {
    REFERENCE_POINT_BLOCK_NOT_FOUND: UtxoApiResult.SAFEBLOCK_ROLLBACK,
    REFERENCE_BESTBLOCK_NOT_FOUND: UtxoApiResult.BESTBLOCK_ROLLBACK,
}


class IndexerError(Exception):
    """The indexer answered with an error payload the client does not handle."""

    def __init__(self, status_code: int, code: str, path: str):
        self.status_code = status_code
        self.code = code
        self.path = path
        super().__init__(f"Indexer error {code} (HTTP {status_code}) on {path}")


class _RollbackSignal(Exception):
    def __init__(self, result: UtxoApiResult):
        self.result = result
        super().__init__(result.value)


def _error_code(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict) or not body.get("error") or not body.get("response"):
        return None
    return str(body["response"])


def parse_diff_item(item: dict[str, Any]) -> UtxoDiffItem:
    """Convert a raw utxoDiffSincePoint item into an input or output variant."""
    if item["type"] == "input":
        return UtxoDiffInput(id=item["id"], amount=item["amount"])
    return UtxoDiffOutput(
        id=item["id"],
        amount=item["amount"],
        utxo=Utxo(
            utxo_id=item["id"],
            tx_hash=item["tx_hash"],
            tx_index=item["tx_index"],
            receiver=item["receiver"],
            amount=item["amount"],
            assets=item.get("assets") or [],
            block_num=item["block_num"],
        ),
    )


class IndexerUtxoApi(UtxoApi):
    """UtxoApi backed by the indexer's v2 HTTP API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        utxo_page_size: int = 10,
        diff_limit: int = 10,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self.utxo_page_size = utxo_page_size
        self.diff_limit = diff_limit
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def _post(
        self,
        path: str,
        payload: dict[str, Any],
        handled: dict[str, UtxoApiResult] | None = None,
    ) -> Any:
        response = await self.client.post(f"{self.base_url}{path}", json=payload)
        if response.is_error:
            code = _error_code(response)
            if code is not None:
                if handled and code in handled:
                    logger.warning(f"Indexer reported {code} on {path}")
                    raise _RollbackSignal(handled[code])
                logger.error(f"Indexer error {code} on {path} (HTTP {response.status_code})")
                raise IndexerError(response.status_code, code, path)
            response.raise_for_status()
        return response.json()

    async def _get_tip_status(self) -> dict[str, Any]:
        response = await self.client.get(f"{self.base_url}v2/tipStatus")
        response.raise_for_status()
        return response.json()

    async def get_safe_block(self) -> str:
        data = await self._get_tip_status()
        return data["safeBlock"]

    async def get_best_block(self) -> str:
        data = await self._get_tip_status()
        return data["bestBlock"]

    async def get_tip_status_with_reference(
        self, best_blocks: list[str]
    ) -> UtxoApiResponse[TipStatusReference]:
        try:
            data = await self._post(
                "v2/tipStatus",
                {"reference": {"bestBlocks": best_blocks}},
                SAFE_POINT_ERRORS,
            )
        except _RollbackSignal as signal:
            return UtxoApiResponse[TipStatusReference].rollback(signal.result)

        reference = data["reference"]
        return UtxoApiResponse[TipStatusReference].success(
            TipStatusReference(
                last_found_best_block=reference["lastFoundBestBlock"],
                last_found_safe_block=reference["lastFoundSafeBlock"],
            )
        )

    async def get_utxo_at_point(self, req: UtxoAtPointRequest) -> UtxoApiResponse[list[Utxo]]:
        utxos: list[Utxo] = []
        page = 1
        try:
            while True:
                items = await self._post(
                    "v2/txs/utxoAtPoint",
                    {
                        "addresses": req.addresses,
                        "referenceBlockHash": req.reference_block_hash,
                        "page": page,
                        "pageSize": self.utxo_page_size,
                    },
                    SAFE_POINT_ERRORS,
                )
                if not items:
                    break
                utxos.extend(Utxo.model_validate(item) for item in items)
                logger.debug(f"utxoAtPoint page {page}: {len(items)} UTXOs")
                page += 1
        except _RollbackSignal as signal:
            return UtxoApiResponse[list[Utxo]].rollback(signal.result)

        return UtxoApiResponse[list[Utxo]].success(utxos)

    async def get_utxo_diff_since_point(
        self, req: UtxoDiffSincePointRequest
    ) -> UtxoApiResponse[UtxoDiff]:
        items: list[UtxoDiffItem] = []
        after_point: dict[str, Any] = {"blockHash": req.after_best_block}
        try:
            while True:
                data = await self._post(
                    "v2/txs/utxoDiffSincePoint",
                    {
                        "addresses": req.addresses,
                        "untilBlockHash": req.until_block_hash,
                        "afterPoint": after_point,
                        "diffLimit": self.diff_limit,
                    },
                    DIFF_ERRORS,
                )
                page_items = data.get("diffItems") or []
                if not page_items:
                    break
                items.extend(parse_diff_item(item) for item in page_items)
                after_point = data["lastDiffPointSelected"]
        except _RollbackSignal as signal:
            return UtxoApiResponse[UtxoDiff].rollback(signal.result)

        logger.debug(f"utxoDiffSincePoint returned {len(items)} diff items")
        return UtxoApiResponse[UtxoDiff].success(UtxoDiff(diff_items=items))

    async def close(self) -> None:
        await self.client.aclose()
