"""
UTXO reconciliation: models, API contract, storage and the sync engine.
"""

from syncwallet.utxo.api import BatchedUtxoApi, UtxoApi
from syncwallet.utxo.indexer import IndexerError, IndexerUtxoApi
from syncwallet.utxo.models import (
    Asset,
    ProtocolViolationError,
    TipStatusReference,
    Utxo,
    UtxoApiResponse,
    UtxoApiResult,
    UtxoAtPointRequest,
    UtxoAtSafePoint,
    UtxoDiff,
    UtxoDiffInput,
    UtxoDiffItem,
    UtxoDiffOutput,
    UtxoDiffSincePointRequest,
    UtxoDiffToBestBlock,
)
from syncwallet.utxo.service import (
    RollbackRetryExhaustedError,
    UtxoService,
    create_utxo_service,
)
from syncwallet.utxo.storage import InMemoryUtxoStorage, JsonUtxoStorage, UtxoStorage

__all__ = [
    "Asset",
    "BatchedUtxoApi",
    "IndexerError",
    "IndexerUtxoApi",
    "InMemoryUtxoStorage",
    "JsonUtxoStorage",
    "ProtocolViolationError",
    "RollbackRetryExhaustedError",
    "TipStatusReference",
    "Utxo",
    "UtxoApi",
    "UtxoApiResponse",
    "UtxoApiResult",
    "UtxoAtPointRequest",
    "UtxoAtSafePoint",
    "UtxoDiff",
    "UtxoDiffInput",
    "UtxoDiffItem",
    "UtxoDiffOutput",
    "UtxoDiffSincePointRequest",
    "UtxoDiffToBestBlock",
    "UtxoService",
    "UtxoStorage",
    "create_utxo_service",
]
