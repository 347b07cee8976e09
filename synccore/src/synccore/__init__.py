"""
synccore - Shared building blocks for wallet-sync components

Provides settings, logging setup, retry policy and list batching helpers.
"""

__version__ = "0.3.0"

from synccore.batching import chunk, flatten
from synccore.retry import RetryPolicy

__all__ = [
    "RetryPolicy",
    "chunk",
    "flatten",
]
