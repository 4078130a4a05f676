"""
snapshots.py - Contract balance oracle

BalanceSnapshotFetcher answers "what was this address's on-chain balance
at the end of the window" from the accounts-history index, falling back to
the last value it saw when the window holds no new record. It also looks up
the system reward transaction paid to the legacy delegation contract.
"""

from __future__ import annotations
import logging
from typing import Dict

from .core import BalanceMap, FetchError, SearchIndex, hits_of, parse_amount
from .queries import latest_account_balance, reward_transaction

logger = logging.getLogger(__name__)


class BalanceSnapshotFetcher:
    """
    Latest-balance lookups with a lazily seeded per-address cache.

    Args:
        index: Search index collaborator
        accounts_index: Name of the accounts-history index
        transactions_index: Name of the transactions index
    """

    def __init__(self, index: SearchIndex, accounts_index: str, transactions_index: str):
        self.index = index
        self.accounts_index = accounts_index
        self.transactions_index = transactions_index
        self._cache: Dict[str, int] = {}

    def get_balance(self, address: str, window_start: int, window_end: int) -> int:
        """
        Most recent balance of address within the window.

        Returns the cached value (0 if never seen) when the window holds no
        balance-history record for the address.
        """
        page = self.index.search(
            latest_account_balance(window_start, window_end, address),
            self.accounts_index,
        )
        hits = hits_of(page)
        if not hits:
            logger.debug("no balance record for %s in [%d, %d); using cache", address, window_start, window_end)
            return self._cache.get(address, 0)

        balance = parse_amount(hits[0].get("balance"))
        self._cache[address] = balance
        return balance

    def reward_value(self, window_start: int, window_end: int, receiver: str, sentinel_sender: str) -> int:
        """
        Value of the system reward transaction paid to receiver in the window.

        Raises:
            FetchError: If the window holds no reward transaction
        """
        page = self.index.search(
            reward_transaction(window_start, window_end, receiver, sentinel_sender),
            self.transactions_index,
        )
        hits = hits_of(page)
        if not hits:
            raise FetchError(f"No reward transaction to {receiver} in [{window_start}, {window_end})")
        return parse_amount(hits[0].get("value"))

    def cached(self) -> BalanceMap:
        return dict(self._cache)
