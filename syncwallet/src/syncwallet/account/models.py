"""
Address discovery data models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from synccore.settings import IndexerSettings

# first_block value written when the indexer reports an address as used
CONFIRMED_FIRST_BLOCK = 1


class QueryUsedBy(str, Enum):
    """Which identifier is sent to the indexer to check usage."""

    NONE = "none"
    HASH = "hash"
    ADDRESS = "address"


class AddressPath(BaseModel):
    """Position of an address: account, chain (derivation branch), index."""

    model_config = ConfigDict(frozen=True)

    account: int = Field(ge=0)
    chain: int = Field(ge=0)
    address_index: int = Field(ge=0)


class AddressRecord(BaseModel):
    """
    A derived address and its usage state.

    ``first_block == 0`` means the address is not known to be used yet. Any
    other value means it has been seen on chain.
    """

    account: int = Field(ge=0)
    chain: int = Field(ge=0)
    address_index: int = Field(ge=0)
    address: str
    hash: str
    first_block: int = 0

    @property
    def is_used(self) -> bool:
        return self.first_block != 0

    @property
    def path(self) -> AddressPath:
        return AddressPath(
            account=self.account, chain=self.chain, address_index=self.address_index
        )


class AddressDeriver(Protocol):
    """Derives the address record at a path. Key derivation lives with the caller."""

    async def __call__(self, path: AddressPath) -> AddressRecord: ...


@dataclass(frozen=True)
class ChainProtocol:
    """
    Per-chain discovery rules.

    Attributes:
        gap_limit: Unused addresses exposed past the highest used index
        buffer_size: Addresses derived per fill
        query_used_by: Identifier sent to the indexer, or NONE to skip usage checks
        derive: Derivation capability for this chain
    """

    gap_limit: int
    buffer_size: int
    query_used_by: QueryUsedBy
    derive: AddressDeriver

    def __post_init__(self) -> None:
        if self.gap_limit < 1:
            raise ValueError(f"gap_limit must be >= 1, got {self.gap_limit}")
        if self.buffer_size < self.gap_limit:
            raise ValueError(
                f"buffer_size ({self.buffer_size}) must be >= gap_limit ({self.gap_limit})"
            )

    def identifier(self, record: AddressRecord) -> str | None:
        """The value to query usage by, or None if this chain is not queried."""
        if self.query_used_by == QueryUsedBy.ADDRESS:
            return record.address
        if self.query_used_by == QueryUsedBy.HASH:
            return record.hash
        return None


@dataclass
class ChainMetadata:
    """Discovery state for one (account, chain) pair."""

    highest_address_index_used: int = -1
    # address_index -> slot in the record list
    addresses: dict[int, int] = field(default_factory=dict)


class AccountApiResult(str, Enum):
    SUCCESS = "SUCCESS"


class AccountApiResponse(BaseModel):
    result: AccountApiResult
    data: list[str] | None = None


class AddressesUsedRequest(BaseModel):
    addresses: list[str]


class AccountApiConfig(BaseModel):
    """Connection settings for the address usage endpoint."""

    model_config = ConfigDict(frozen=True)

    url: str
    max_addresses_per_request: int = Field(default=50, ge=1)
    timeout: float = Field(default=30.0, gt=0.0)

    @field_validator("url")
    @classmethod
    def ensure_trailing_slash(cls, v: str) -> str:
        return v if v.endswith("/") else f"{v}/"

    @classmethod
    def from_settings(cls, settings: IndexerSettings) -> AccountApiConfig:
        return cls(
            url=settings.url,
            max_addresses_per_request=settings.max_addresses_per_request,
            timeout=settings.timeout,
        )
