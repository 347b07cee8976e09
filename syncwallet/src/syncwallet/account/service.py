"""
Address discovery engine.

For every account and chain the service keeps a buffer of derived addresses
so that at least ``gap_limit`` unused addresses follow the highest used one.
Usage is reconciled against the indexer and the buffer is extended until
neither step changes anything.

Records live in a single list; ``address -> slot`` and ``hash -> slot`` maps
give O(1) lookup, and per (account, chain) metadata maps address indices to
slots.
"""

from __future__ import annotations

import asyncio

from loguru import logger

from syncwallet.account.api import AccountApi, IndexerAccountApi
from syncwallet.account.models import (
    CONFIRMED_FIRST_BLOCK,
    AccountApiConfig,
    AccountApiResult,
    AddressesUsedRequest,
    AddressPath,
    AddressRecord,
    ChainMetadata,
    ChainProtocol,
)
from syncwallet.account.storage import AccountStorage


class AccountServiceNotInitializedError(RuntimeError):
    """An operation was called before initialize() completed."""


class AccountService:
    def __init__(
        self,
        api: AccountApi,
        storage: AccountStorage,
        chain_protocols: dict[int, ChainProtocol],
    ):
        self.api = api
        self.storage = storage
        self.chain_protocols = chain_protocols

        self._records: list[AddressRecord] = []
        self._index_by_address: dict[str, int] = {}
        self._index_by_hash: dict[str, int] = {}
        self._metadata: dict[tuple[int, int], ChainMetadata] = {}

        self._last_write = 0
        self._last_write_saved = 0
        self._initialized = False
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(
        cls,
        api_config: AccountApiConfig,
        storage: AccountStorage,
        chain_protocols: dict[int, ChainProtocol],
    ) -> AccountService:
        return cls(IndexerAccountApi(api_config), storage, chain_protocols)

    @property
    def accounts(self) -> list[int]:
        """Known accounts, in registration order."""
        return list(dict.fromkeys(account for account, _ in self._metadata))

    @property
    def initialized(self) -> bool:
        return self._initialized

    def chain_metadata(self, account: int, chain: int) -> ChainMetadata | None:
        return self._metadata.get((account, chain))

    def _check_initialized(self) -> None:
        if not self._initialized:
            raise AccountServiceNotInitializedError("AccountService must be initialized first")

    def _add_account(self, account: int) -> None:
        for chain in self.chain_protocols:
            self._metadata.setdefault((account, chain), ChainMetadata())

    def _save_metadata(self, record: AddressRecord, slot: int) -> None:
        self._add_account(record.account)
        metadata = self._metadata.setdefault((record.account, record.chain), ChainMetadata())
        if record.is_used and record.address_index > metadata.highest_address_index_used:
            metadata.highest_address_index_used = record.address_index
        metadata.addresses[record.address_index] = slot

    def _lookup(self, address_or_hash: str) -> int | None:
        slot = self._index_by_address.get(address_or_hash)
        if slot is None:
            slot = self._index_by_hash.get(address_or_hash)
        return slot

    def _save_record(self, record: AddressRecord, hydrating: bool = False) -> None:
        slot = self._index_by_address.get(record.address)
        if slot is None:
            slot = self._index_by_hash.get(record.hash)

        if slot is None:
            self._records.append(record)
            slot = len(self._records) - 1
            if record.address:
                self._index_by_address[record.address] = slot
            if record.hash:
                self._index_by_hash[record.hash] = slot
            stored = record
        else:
            stored = self._records[slot]
            # usage never goes back to unconfirmed
            if record.is_used and not stored.is_used:
                stored.first_block = record.first_block

        self._save_metadata(stored, slot)
        if not hydrating:
            self._last_write += 1

    async def _fill_account(self, account: int) -> bool:
        """Derive a new buffer for every chain that fell below the gap limit."""
        derived = False
        for chain, protocol in self.chain_protocols.items():
            metadata = self._metadata.get((account, chain))
            if metadata is None:
                continue
            buffered = len(metadata.addresses)
            free = buffered - (metadata.highest_address_index_used + 1 + protocol.gap_limit)
            if buffered and free >= 0:
                continue

            logger.debug(
                f"Account {account} chain {chain}: deriving {protocol.buffer_size} "
                f"addresses from index {buffered}"
            )
            for offset in range(protocol.buffer_size):
                path = AddressPath(account=account, chain=chain, address_index=buffered + offset)
                self._save_record(await protocol.derive(path))
            derived = True
        return derived

    async def _update_used_addresses(self, account: int) -> bool:
        """Query usage for unconfirmed addresses. Returns True if any became used."""
        unsettled: list[str] = []
        for chain, protocol in self.chain_protocols.items():
            metadata = self._metadata.get((account, chain))
            if metadata is None:
                continue
            for slot in metadata.addresses.values():
                record = self._records[slot]
                if record.is_used:
                    continue
                identifier = protocol.identifier(record)
                if identifier:
                    unsettled.append(identifier)

        if not unsettled:
            return False

        response = await self.api.get_addresses_used(AddressesUsedRequest(addresses=unsettled))
        if response.result != AccountApiResult.SUCCESS or not response.data:
            return False

        updated = False
        for address_or_hash in response.data:
            slot = self._lookup(address_or_hash)
            if slot is None:
                logger.warning(f"Indexer reported unknown address {address_or_hash}")
                continue
            record = self._records[slot]
            if record.is_used:
                continue
            record.first_block = CONFIRMED_FIRST_BLOCK
            self._save_record(record)
            updated = True

        if updated:
            logger.info(f"Account {account}: new used addresses found")
        return updated

    async def _synchronize(self, account: int) -> None:
        # run until neither usage nor refill changes anything
        while True:
            updated = await self._update_used_addresses(account)
            derived = await self._fill_account(account)
            if not updated and not derived:
                break

    async def initialize(self) -> None:
        """Load stored records and bring every known account up to date."""
        async with self._lock:
            if self._initialized:
                logger.warning("AccountService already initialized")
                return

            records = await self.storage.read_accounts()
            for record in records:
                self._save_record(record, hydrating=True)
            logger.info(f"Loaded {len(records)} address records")

            for account in self.accounts:
                await self._synchronize(account)
            self._initialized = True

    async def create(self, account: int) -> None:
        """Register an account, derive its first buffers and sync usage."""
        self._check_initialized()
        async with self._lock:
            self._add_account(account)
            await self._fill_account(account)
            await self._synchronize(account)

    async def synchronize(self, account: int) -> None:
        """Reconcile usage and refill buffers until nothing changes."""
        self._check_initialized()
        async with self._lock:
            await self._synchronize(account)

    def address(self, address_or_hash: str) -> AddressRecord | None:
        self._check_initialized()
        slot = self._lookup(address_or_hash)
        return self._records[slot] if slot is not None else None

    def addresses(self, account: int, chain: int) -> list[AddressRecord]:
        """Addresses of a chain up to the gap limit past the highest used one."""
        self._check_initialized()
        metadata = self._metadata.get((account, chain))
        protocol = self.chain_protocols.get(chain)
        if metadata is None or protocol is None:
            return []

        visible = metadata.highest_address_index_used + 1 + protocol.gap_limit
        indices = sorted(metadata.addresses)[:visible]
        return [self._records[metadata.addresses[i]] for i in indices]

    async def save(self) -> bool:
        """Persist records if anything changed since the last save."""
        self._check_initialized()
        async with self._lock:
            if self._last_write_saved == self._last_write:
                return False
            pending = self._last_write
            saved = await self.storage.save_accounts(list(self._records))
            if saved:
                self._last_write_saved = pending
            return saved

    async def close(self) -> None:
        await self.api.close()
