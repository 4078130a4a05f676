"""
stats.py - Per-epoch output records and report writing

Three record kinds, one per statistics run:
- EpochStats: staked totals and user counts from the replay
- AccountsEpochStats: wallet balance tiers
- TransactionsEpochStats: daily activity counters

Amounts are serialized as decimal strings; reports are JSON arrays ordered
by epoch.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
import json
from pathlib import Path
from typing import Any, Dict, Iterable, Protocol

from .tiers import TierCounts


class EpochRecord(Protocol):
    epoch: int

    def to_dict(self) -> Dict[str, Any]:
        ...


@dataclass(frozen=True, slots=True)
class EpochStats:
    """Stake statistics of one epoch."""
    epoch: int
    complete: bool = True
    total_staked: int = 0
    legacy_delegation: int = 0
    legacy_delegation_users: int = 0
    staking: int = 0
    staking_users: int = 0
    total_unique_users: int = 0
    delegation_manager_users: int = 0
    delegation_manager_staked: int = 0
    active_legacy_delegation: int = 0
    claimed_rewards: int = 0
    accumulated_unjail: int = 0
    accumulated_reward_delegation: int = 0
    balance_tiers: TierCounts = field(default_factory=TierCounts)

    def as_incomplete(self, epoch: int) -> EpochStats:
        """Copy carried forward to an epoch that failed."""
        return replace(self, epoch=epoch, complete=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "epoch": self.epoch,
            "complete": self.complete,
            "totalStaked": str(self.total_staked),
            "legacyDelegation": str(self.legacy_delegation),
            "legacyDelegationUsers": self.legacy_delegation_users,
            "staking": str(self.staking),
            "stakingUsers": self.staking_users,
            "totalUniqueUsers": self.total_unique_users,
            "delegationManagerUsers": self.delegation_manager_users,
            "delegationManagerStaked": str(self.delegation_manager_staked),
            "activeLegacyDelegation": str(self.active_legacy_delegation),
            "claimedRewards": str(self.claimed_rewards),
            "accumulatedUnJail": str(self.accumulated_unjail),
            "accumulatedRewardDelegation": str(self.accumulated_reward_delegation),
            "balanceTiers": self.balance_tiers.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class AccountsEpochStats:
    epoch: int
    total_addresses: int = 0
    total_contract_addresses: int = 0
    tiers: TierCounts = field(default_factory=TierCounts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "epoch": self.epoch,
            "totalAddresses": self.total_addresses,
            "totalContractAddresses": self.total_contract_addresses,
            **self.tiers.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class TransactionsEpochStats:
    epoch: int
    daily_transactions: int = 0
    daily_contract_calls: int = 0
    daily_active_accounts: int = 0
    daily_active_contract_accounts: int = 0
    daily_new_addresses: int = 0
    daily_new_contract_addresses: int = 0
    top_active_accounts: Dict[str, int] = field(default_factory=dict)
    top_active_contracts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "epoch": self.epoch,
            "dailyTransactions": self.daily_transactions,
            "dailyContractCalls": self.daily_contract_calls,
            "dailyActiveAccounts": self.daily_active_accounts,
            "dailyActiveContractAccounts": self.daily_active_contract_accounts,
            "dailyNewAddresses": self.daily_new_addresses,
            "dailyNewContractAddresses": self.daily_new_contract_addresses,
            "topActiveAccounts": dict(self.top_active_accounts),
            "topActiveContracts": dict(self.top_active_contracts),
        }


def report_json(records: Iterable[EpochRecord]) -> str:
    return json.dumps([record.to_dict() for record in records], indent=1)


def write_report(records: Iterable[EpochRecord], path: Path | str) -> Path:
    """Write records as a JSON array, creating parent folders as needed."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report_json(records), encoding="utf-8")
    return path
