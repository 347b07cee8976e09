"""
Address record persistence.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from loguru import logger
from pydantic import TypeAdapter

from syncwallet.account.models import AddressRecord

_records_adapter = TypeAdapter(list[AddressRecord])


class AccountStorage(ABC):
    @abstractmethod
    async def read_accounts(self) -> list[AddressRecord]:
        pass

    @abstractmethod
    async def save_accounts(self, records: list[AddressRecord]) -> bool:
        """Persist the full record list. Returns True on success."""


class JsonAccountStorage(AccountStorage):
    """Stores address records as a JSON list, written atomically."""

    def __init__(self, path: Path):
        self.path = path

    async def read_accounts(self) -> list[AddressRecord]:
        if not self.path.exists():
            logger.debug(f"No address records at {self.path}")
            return []
        records = _records_adapter.validate_json(self.path.read_bytes())
        logger.debug(f"Loaded {len(records)} address records from {self.path}")
        return records

    async def save_accounts(self, records: list[AddressRecord]) -> bool:
        tmp_path = self.path.with_suffix(".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(_records_adapter.dump_json(records, indent=2))
            tmp_path.replace(self.path)
        except OSError as e:
            logger.error(f"Failed to save address records to {self.path}: {e}")
            tmp_path.unlink(missing_ok=True)
            return False
        logger.debug(f"Saved {len(records)} address records to {self.path}")
        return True
