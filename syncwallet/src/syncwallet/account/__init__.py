"""
Address discovery: models, usage API, storage and the discovery engine.
"""

from syncwallet.account.api import AccountApi, IndexerAccountApi
from syncwallet.account.models import (
    CONFIRMED_FIRST_BLOCK,
    AccountApiConfig,
    AccountApiResponse,
    AccountApiResult,
    AddressDeriver,
    AddressesUsedRequest,
    AddressPath,
    AddressRecord,
    ChainMetadata,
    ChainProtocol,
    QueryUsedBy,
)
from syncwallet.account.service import AccountService, AccountServiceNotInitializedError
from syncwallet.account.storage import AccountStorage, JsonAccountStorage

__all__ = [
    "CONFIRMED_FIRST_BLOCK",
    "AccountApi",
    "AccountApiConfig",
    "AccountApiResponse",
    "AccountApiResult",
    "AccountService",
    "AccountServiceNotInitializedError",
    "AccountStorage",
    "AddressDeriver",
    "AddressPath",
    "AddressRecord",
    "AddressesUsedRequest",
    "ChainMetadata",
    "ChainProtocol",
    "IndexerAccountApi",
    "JsonAccountStorage",
    "QueryUsedBy",
]
