"""
tiers.py - Balance-tier bucket counting

Counts how many addresses hold a non-zero amount and how many reach each
tier threshold (0.1, 1, 10, 100, 1000 native units by default). Amounts
exceed 64 bits, so the arrays use object dtype over Python ints.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Sequence, Tuple

import numpy as np

from .core import BalanceMap


@dataclass(frozen=True, slots=True)
class TierCounts:
    """Bucket counters; each tier counts addresses at or above its bound."""
    non_zero: int = 0
    b01: int = 0
    b1: int = 0
    b10: int = 0
    b100: int = 0
    b1k: int = 0

    def as_tuple(self) -> Tuple[int, int, int, int, int, int]:
        return (self.non_zero, self.b01, self.b1, self.b10, self.b100, self.b1k)

    @classmethod
    def from_tuple(cls, values: Sequence[int]) -> TierCounts:
        return cls(*values)

    def to_dict(self) -> Dict[str, int]:
        return {
            "nonZero": self.non_zero,
            "b01EGLD": self.b01,
            "b1EGLD": self.b1,
            "b10EGLD": self.b10,
            "b100EGLD": self.b100,
            "b1KEGLD": self.b1k,
        }


def count_tiers(balances: Iterable[int], thresholds: Sequence[int]) -> TierCounts:
    """
    Bucket balances into tier counters.

    Args:
        balances: Amounts in base units
        thresholds: Five ascending, positive lower bounds

    Returns:
        TierCounts with non_zero >= b01 >= ... >= b1k
    """
    values = np.array(list(balances), dtype=object)
    if values.size == 0:
        return TierCounts()

    non_zero = int(np.count_nonzero(values > 0))
    tiers = [int(np.count_nonzero(values >= bound)) for bound in thresholds]
    return TierCounts(non_zero, *tiers)


def combine_balances(wallets: Mapping[str, int], staked: Mapping[str, int]) -> BalanceMap:
    """Add staked amounts to wallet balances over the union of addresses."""
    combined = dict(wallets)
    for address, amount in staked.items():
        combined[address] = combined.get(address, 0) + amount
    return combined
