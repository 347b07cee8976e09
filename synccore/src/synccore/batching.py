"""
List batching helpers shared by the indexer clients and the sync engines.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import TypeVar

T = TypeVar("T")


def chunk(items: Sequence[T], size: int) -> list[list[T]]:
    """
    Split a sequence into consecutive batches of at most ``size`` items.

    Args:
        items: Items to split
        size: Maximum batch size (must be positive)

    Returns:
        List of batches, in input order. Empty input yields no batches.
    """
    if size <= 0:
        raise ValueError(f"Batch size must be positive, got {size}")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def flatten(batches: Iterable[Iterable[T]]) -> list[T]:
    """Concatenate batches into a single list."""
    return [item for batch in batches for item in batch]
