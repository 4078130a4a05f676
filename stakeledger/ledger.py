"""
ledger.py - Address -> staked amount ledger

BalanceLedger is the single mutable structure the replay writes to. It
enforces the two ledger invariants in one place:
    - an entry whose amount reaches exactly zero is removed
    - no entry is ever stored with a negative amount

Every transition handler goes through credit()/debit()/prune(); none of
them touch the underlying dict directly.
"""

from __future__ import annotations
from typing import Dict, ItemsView, Iterator, KeysView, Mapping, Optional

from .core import BalanceMap, LedgerDriftError


class BalanceLedger:
    """
    Named address -> amount map with zero-removal and non-negative invariants.

    Thread Safety:
        Not thread-safe. The replay engine is the single owner.

    Example:
        ledger = BalanceLedger("stakingUsers")
        ledger.credit("erd1alice", 500)
        ledger.debit("erd1alice", 500)
        assert "erd1alice" not in ledger
    """

    def __init__(self, name: str, initial: Optional[Mapping[str, int]] = None):
        self.name = name
        self._balances: Dict[str, int] = {}
        for address, amount in (initial or {}).items():
            if amount < 0:
                raise ValueError(f"{name}: negative initial amount {amount} for {address}")
            if amount:
                self._balances[address] = amount

    # ========================================================================
    # READ
    # ========================================================================

    def get(self, address: str) -> int:
        """Current amount for address (0 if absent)."""
        return self._balances.get(address, 0)

    def __contains__(self, address: object) -> bool:
        return address in self._balances

    def __len__(self) -> int:
        return len(self._balances)

    def __iter__(self) -> Iterator[str]:
        return iter(self._balances)

    def keys(self) -> KeysView[str]:
        return self._balances.keys()

    def items(self) -> ItemsView[str, int]:
        return self._balances.items()

    def total(self) -> int:
        return sum(self._balances.values())

    def snapshot(self) -> BalanceMap:
        """Independent copy of the current address -> amount map."""
        return dict(self._balances)

    def copy(self) -> BalanceLedger:
        cloned = BalanceLedger.__new__(BalanceLedger)
        cloned.name = self.name
        cloned._balances = dict(self._balances)
        return cloned

    # ========================================================================
    # WRITE
    # ========================================================================

    def credit(self, address: str, amount: int, must_exist: bool = False) -> int:
        """
        Add amount to address, creating the entry if needed.

        Args:
            address: Ledger key
            amount: Non-negative amount to add
            must_exist: Refuse to create a new entry

        Returns:
            The new amount

        Raises:
            LedgerDriftError: If must_exist and the entry is absent
        """
        if amount < 0:
            raise ValueError(f"{self.name}: credit amount must be non-negative, got {amount}")
        if must_exist and address not in self._balances:
            raise LedgerDriftError(f"{self.name}: no entry for {address} to credit")

        new_amount = self._balances.get(address, 0) + amount
        self._store(address, new_amount)
        return new_amount

    def debit(self, address: str, amount: int) -> int:
        """
        Subtract amount from address.

        The entry is removed when it reaches zero. A debit larger than the
        current amount removes the entry and raises, so no negative amount
        is ever stored.

        Returns:
            The new amount

        Raises:
            LedgerDriftError: If the entry is absent (nothing changes) or the
                debit overdraws it (entry removed)
        """
        if amount < 0:
            raise ValueError(f"{self.name}: debit amount must be non-negative, got {amount}")
        if address not in self._balances:
            raise LedgerDriftError(f"{self.name}: no entry for {address} to debit {amount}")

        current = self._balances[address]
        new_amount = current - amount
        if new_amount < 0:
            del self._balances[address]
            raise LedgerDriftError(
                f"{self.name}: debit of {amount} overdraws {address} (balance {current}); entry removed"
            )
        self._store(address, new_amount)
        return new_amount

    def prune(self, address: str) -> bool:
        """
        Remove address if its amount is zero.

        Returns:
            True if an entry was removed

        Raises:
            LedgerDriftError: If the entry is absent
        """
        if address not in self._balances:
            raise LedgerDriftError(f"{self.name}: no entry for {address} to prune")
        if self._balances[address] == 0:
            del self._balances[address]
            return True
        return False

    def _store(self, address: str, amount: int) -> None:
        if amount == 0:
            self._balances.pop(address, None)
        else:
            self._balances[address] = amount

    def __repr__(self) -> str:
        return f"BalanceLedger({self.name!r}, {len(self)} entries, total={self.total()})"


def merge_ledgers(*ledgers: BalanceLedger) -> BalanceMap:
    """Sum several ledgers into one address -> amount map."""
    merged: BalanceMap = {}
    for ledger in ledgers:
        for address, amount in ledger.items():
            merged[address] = merged.get(address, 0) + amount
    return merged
