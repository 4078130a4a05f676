"""
accounts.py - Wallet balance tiers per epoch

Drains the accounts-history index window by window, keeping the most recent
balance of every address seen so far. Each epoch's staked checkpoint is
added on top of the wallet balances before bucketing, so an address counts
by what it holds plus what it has staked.
"""

from __future__ import annotations
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .address import is_smart_contract_address
from .checkpoint import CheckpointStore
from .core import SearchIndex, epoch_window, hits_of, parse_amount
from .driver import run_epochs
from .queries import transactions_by_timestamp
from .reconciliation import ReconciliationCorrector
from .stats import AccountsEpochStats
from .tiers import combine_balances, count_tiers

logger = logging.getLogger(__name__)


class AccountsProcessor:
    """
    Balance-tier aggregation over wallet history and staked checkpoints.

    State (latest balance per address, contract count) accumulates across
    epochs, so epochs must be processed in order.
    """

    def __init__(
        self,
        index: SearchIndex,
        accounts_index: str,
        checkpoints: CheckpointStore,
        tier_thresholds: Sequence[int],
        corrector: ReconciliationCorrector,
        genesis_time: int,
    ):
        self.index = index
        self.accounts_index = accounts_index
        self.checkpoints = checkpoints
        self.tier_thresholds = tuple(tier_thresholds)
        self.corrector = corrector
        self.genesis_time = genesis_time
        # address -> (timestamp, balance)
        self.accounts: Dict[str, Tuple[int, int]] = {}
        self.total_contracts = 0

    def run(self, end_epoch: int) -> List[AccountsEpochStats]:
        return run_epochs(
            end_epoch,
            self.process_epoch,
            lambda epoch, error: AccountsEpochStats(epoch=epoch),
            "accounts history",
        )

    def process_epoch(self, epoch: int) -> AccountsEpochStats:
        start, end = epoch_window(self.genesis_time, epoch)
        self.index.scroll_all(transactions_by_timestamp(start, end), self.accounts_index, self._on_page)

        staked = self.checkpoints.get(epoch)
        if staked is None:
            logger.warning("epoch %d: no staked balance checkpoint, counting wallet balances only", epoch)
            staked = {}

        balances = combine_balances(self.wallet_balances(), staked)
        counts = count_tiers(balances.values(), self.tier_thresholds)
        return AccountsEpochStats(
            epoch=epoch,
            total_addresses=len(self.accounts),
            total_contract_addresses=self.total_contracts,
            tiers=self.corrector.apply(epoch, counts),
        )

    def wallet_balances(self) -> Dict[str, int]:
        return {address: balance for address, (_, balance) in self.accounts.items()}

    def _on_page(self, page: Mapping[str, Any]) -> None:
        for source in hits_of(page):
            self.observe(source.get("address", ""), int(source.get("timestamp", 0) or 0), source.get("balance"))

    def observe(self, address: str, timestamp: int, balance: Optional[str]) -> None:
        """Record a balance-history entry; older entries never override newer ones."""
        if not address:
            return
        known = self.accounts.get(address)
        if known is None and is_smart_contract_address(address):
            self.total_contracts += 1
        if known is not None and known[0] > timestamp:
            return
        self.accounts[address] = (timestamp, parse_amount(balance))
