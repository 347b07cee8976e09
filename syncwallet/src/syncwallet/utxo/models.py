"""
UTXO data models.

Terminology:

safe block:
    A block considered settled. The chance of a rollback invalidating it is
    treated as negligible, so UTXOs fetched at this point are durable until
    the indexer proves otherwise.

best block:
    The current tip of the chain.

last_found_best_block:
    The most recent local checkpoint the indexer still recognizes. Given local
    diffs for blocks [A, B, C], a value of B means the diff for C was built on
    an invalidated chain and must be dropped.

last_found_safe_block:
    The most recent local checkpoint that is now settled. Given local diffs for
    blocks [A, B, C], a value of B means A and B can be merged into the safe set.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Generic, Literal, TypeVar

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class ProtocolViolationError(Exception):
    """The UTXO API answered in a way its contract does not allow."""


class UtxoApiResult(str, Enum):
    SUCCESS = "SUCCESS"
    BESTBLOCK_ROLLBACK = "BESTBLOCK_ROLLBACK"
    SAFEBLOCK_ROLLBACK = "SAFEBLOCK_ROLLBACK"


class Asset(BaseModel):
    """Native asset carried by an output."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    asset_id: str = Field(alias="assetId")
    policy_id: str = Field(alias="policyId")
    name: str
    amount: int


class Utxo(BaseModel):
    """Unspent output. Identity is ``utxo_id`` (``tx_hash:tx_index``)."""

    model_config = ConfigDict(frozen=True)

    utxo_id: str
    tx_hash: str
    tx_index: int = Field(ge=0)
    receiver: str
    amount: int
    assets: list[Asset] = Field(default_factory=list)
    block_num: int


class UtxoDiffInput(BaseModel):
    """A spend of an existing UTXO."""

    model_config = ConfigDict(frozen=True)

    type: Literal["input"] = "input"
    id: str
    amount: int


class UtxoDiffOutput(BaseModel):
    """Creation of a new UTXO."""

    model_config = ConfigDict(frozen=True)

    type: Literal["output"] = "output"
    id: str
    amount: int
    utxo: Utxo


UtxoDiffItem = Annotated[UtxoDiffInput | UtxoDiffOutput, Field(discriminator="type")]


class UtxoDiff(BaseModel):
    diff_items: list[UtxoDiffItem] = Field(default_factory=list)


class UtxoAtSafePoint(BaseModel):
    """Settled UTXO snapshot."""

    last_safe_block_hash: str
    utxos: list[Utxo] = Field(default_factory=list)


class UtxoDiffToBestBlock(BaseModel):
    """Spends and creations between the previous checkpoint and ``last_best_block_hash``."""

    last_best_block_hash: str
    spent_utxo_ids: list[str] = Field(default_factory=list)
    new_utxos: list[Utxo] = Field(default_factory=list)


class TipStatusReference(BaseModel):
    last_found_best_block: str
    last_found_safe_block: str


class UtxoAtPointRequest(BaseModel):
    addresses: list[str]
    reference_block_hash: str


class UtxoDiffSincePointRequest(BaseModel):
    addresses: list[str]
    until_block_hash: str
    after_best_block: str


class UtxoApiResponse(BaseModel, Generic[T]):
    """
    Result of a UTXO API call.

    ``value`` is present if and only if ``result`` is SUCCESS. Rollback
    results are not errors: the engine recovers from them.
    """

    result: UtxoApiResult
    value: T | None = None

    @classmethod
    def success(cls, value: T) -> UtxoApiResponse[T]:
        return cls(result=UtxoApiResult.SUCCESS, value=value)

    @classmethod
    def rollback(cls, result: UtxoApiResult) -> UtxoApiResponse[T]:
        if result == UtxoApiResult.SUCCESS:
            raise ValueError("rollback() requires a rollback result")
        return cls(result=result)

    @property
    def is_success(self) -> bool:
        return self.result == UtxoApiResult.SUCCESS

    def unwrap(self) -> T:
        """
        Return the value of a SUCCESS response.

        Raises:
            ProtocolViolationError: if the response is not SUCCESS or carries no value
        """
        if self.result != UtxoApiResult.SUCCESS:
            raise ProtocolViolationError(f"Cannot unwrap a {self.result.value} response")
        if self.value is None:
            logger.error("UTXO API returned SUCCESS without a value")
            raise ProtocolViolationError("value should be defined when result is SUCCESS")
        return self.value
