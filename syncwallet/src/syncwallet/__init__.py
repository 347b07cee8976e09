"""
Wallet state sync against a chain indexer: UTXO reconciliation and address discovery.
"""

from syncwallet.account.service import AccountService
from syncwallet.utxo.service import UtxoService

__all__ = ["AccountService", "UtxoService"]
