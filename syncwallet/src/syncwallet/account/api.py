"""
Address usage API.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import httpx
from loguru import logger

from synccore.batching import chunk, flatten
from syncwallet.account.models import (
    AccountApiConfig,
    AccountApiResponse,
    AccountApiResult,
    AddressesUsedRequest,
)


class AccountApi(ABC):
    @abstractmethod
    async def get_addresses_used(self, req: AddressesUsedRequest) -> AccountApiResponse:
        """Return the subset of ``req.addresses`` the indexer has seen on chain."""

    async def close(self) -> None:
        pass


class IndexerAccountApi(AccountApi):
    """
    AccountApi backed by ``POST v2/addresses/filterUsed``.

    Requests are split into chunks of ``max_addresses_per_request`` and sent
    one after the other.
    """

    def __init__(self, config: AccountApiConfig, client: httpx.AsyncClient | None = None):
        self.config = config
        self.client = client or httpx.AsyncClient(timeout=config.timeout)

    async def get_addresses_used(self, req: AddressesUsedRequest) -> AccountApiResponse:
        url = f"{self.config.url}v2/addresses/filterUsed"
        results: list[list[str]] = []
        for addresses in chunk(req.addresses, self.config.max_addresses_per_request):
            response = await self.client.post(url, json={"addresses": addresses})
            response.raise_for_status()
            results.append(response.json() or [])

        used = flatten(results)
        logger.debug(f"filterUsed: {len(used)} of {len(req.addresses)} addresses used")
        return AccountApiResponse(result=AccountApiResult.SUCCESS, data=used)

    async def close(self) -> None:
        await self.client.aclose()
