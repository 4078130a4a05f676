"""
replay.py - Transaction replay engine

ReplayState holds everything the replay accumulates across epochs: the
three ledgers, the running accumulators and the discovered delegation
manager contracts. TransactionReplayEngine mutates it, one epoch and one
contract domain at a time.

Per domain:
1. Query the transactions received by the domain's contract(s) in the window
2. Drain every page in index order
3. Filter, then dispatch each transaction to the first matching handler
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any, Callable, List, Mapping, Set, Tuple

from .address import encode_address
from .config import StakeConfig
from .core import (
    Anomaly, BalanceMap, DecodeError, DiscoveryError, FetchError,
    RestGateway, SearchIndex, Transaction, epoch_window, hits_of,
)
from .genesis import GenesisSeed
from .handlers import (
    LEGACY_HANDLERS, MANAGER_CREATOR_HANDLERS, MANAGER_HANDLERS,
    STAKING_HANDLERS, STAKING_IGNORED_PREFIXES,
    DispatchTable, HandlerContext, dispatch,
)
from .ledger import BalanceLedger, merge_ledgers
from .queries import transactions_to_address
from .rest_client import query_vm_values

logger = logging.getLogger(__name__)

GET_ALL_CONTRACT_ADDRESSES = "getAllContractAddresses"


class ContractDomain(Enum):
    DELEGATION_LEGACY = "delegationLegacy"
    STAKING = "staking"
    DELEGATION_MANAGER = "delegationManager"


@dataclass(frozen=True, slots=True)
class Savepoint:
    """ReplayState as of an epoch start; anomalies are kept as a count only."""
    delegation_legacy: BalanceLedger
    staking: BalanceLedger
    delegation_manager: BalanceLedger
    claimed_rewards: int
    accumulated_unjail: int
    accumulated_reward_delegation: int
    manager_contracts: Tuple[str, ...]
    anomaly_count: int


@dataclass
class ReplayState:
    """
    Mutable replay state carried from epoch to epoch.

    Attributes:
        delegation_legacy: delegationLegacyUsers ledger
        staking: stakingUsers ledger
        delegation_manager: delegatorDelegationManager ledger
        claimed_rewards: Sum of legacy reward claims paid out
        accumulated_unjail: Sum of unJail fees paid to the staking contract
        accumulated_reward_delegation: Sum of system rewards paid to the legacy contract
        manager_contracts: Delegation manager contracts discovered last
        anomalies: Skipped replay steps, in order
    """
    delegation_legacy: BalanceLedger = field(default_factory=lambda: BalanceLedger("delegationLegacyUsers"))
    staking: BalanceLedger = field(default_factory=lambda: BalanceLedger("stakingUsers"))
    delegation_manager: BalanceLedger = field(default_factory=lambda: BalanceLedger("delegatorDelegationManager"))
    claimed_rewards: int = 0
    accumulated_unjail: int = 0
    accumulated_reward_delegation: int = 0
    manager_contracts: Tuple[str, ...] = ()
    anomalies: List[Anomaly] = field(default_factory=list)

    @classmethod
    def from_genesis(cls, seed: GenesisSeed) -> ReplayState:
        return cls(
            delegation_legacy=BalanceLedger("delegationLegacyUsers", seed.delegation_legacy),
            staking=BalanceLedger("stakingUsers", seed.staking),
        )

    def clone(self) -> ReplayState:
        """Independent deep copy."""
        return ReplayState(
            delegation_legacy=self.delegation_legacy.copy(),
            staking=self.staking.copy(),
            delegation_manager=self.delegation_manager.copy(),
            claimed_rewards=self.claimed_rewards,
            accumulated_unjail=self.accumulated_unjail,
            accumulated_reward_delegation=self.accumulated_reward_delegation,
            manager_contracts=self.manager_contracts,
            anomalies=list(self.anomalies),
        )

    def savepoint(self) -> Savepoint:
        """Capture what restore() needs to roll a failed epoch back."""
        return Savepoint(
            delegation_legacy=self.delegation_legacy.copy(),
            staking=self.staking.copy(),
            delegation_manager=self.delegation_manager.copy(),
            claimed_rewards=self.claimed_rewards,
            accumulated_unjail=self.accumulated_unjail,
            accumulated_reward_delegation=self.accumulated_reward_delegation,
            manager_contracts=self.manager_contracts,
            anomaly_count=len(self.anomalies),
        )

    def restore(self, saved: Savepoint) -> None:
        """
        Reset every field to saved (in place).

        Anomalies are append-only, so restoring truncates them back to the
        saved length.
        """
        self.delegation_legacy = saved.delegation_legacy.copy()
        self.staking = saved.staking.copy()
        self.delegation_manager = saved.delegation_manager.copy()
        self.claimed_rewards = saved.claimed_rewards
        self.accumulated_unjail = saved.accumulated_unjail
        self.accumulated_reward_delegation = saved.accumulated_reward_delegation
        self.manager_contracts = saved.manager_contracts
        del self.anomalies[saved.anomaly_count:]

    def unique_users(self) -> Set[str]:
        return set(self.delegation_legacy.keys()) | set(self.staking.keys())

    def merged_balances(self) -> BalanceMap:
        """Legacy + staking ledgers summed per address (the checkpoint content)."""
        return merge_ledgers(self.delegation_legacy, self.staking)

    def record_anomaly(self, epoch: int, kind: str, address: str, detail: str = "") -> Anomaly:
        anomaly = Anomaly(epoch=epoch, kind=kind, address=address, detail=detail)
        self.anomalies.append(anomaly)
        logger.warning("epoch %d: %s skipped for %s: %s", epoch, kind, address, detail)
        return anomaly


# Transaction filter applied before dispatch.
Accept = Callable[[Transaction], bool]


class TransactionReplayEngine:
    """
    Replays contract transactions from the search index into a ReplayState.

    Args:
        index: Search index collaborator
        gateway: REST gateway, used for delegation manager discovery
        config: Contract addresses, index names and replay settings
        state: State to mutate
        genesis_time: Unix time of epoch 0
    """

    def __init__(
        self,
        index: SearchIndex,
        gateway: RestGateway,
        config: StakeConfig,
        state: ReplayState,
        genesis_time: int,
    ):
        self.index = index
        self.gateway = gateway
        self.config = config
        self.state = state
        self.genesis_time = genesis_time

    @property
    def contracts(self):
        return self.config.contracts

    def replay_epoch(self, epoch: int, domain: ContractDomain) -> int:
        """
        Replay one contract domain for one epoch.

        Returns:
            Number of transactions dispatched to a handler

        Raises:
            FetchError: If a page cannot be fetched (the epoch is incomplete)
            DiscoveryError: If the delegation manager contracts cannot be listed
        """
        window = epoch_window(self.genesis_time, epoch)
        ctx = HandlerContext(epoch=epoch, staking_address=self.contracts.staking)

        if domain is ContractDomain.DELEGATION_LEGACY:
            sentinel = self.config.replay.sentinel_sender
            return self._replay_address(
                window, self.contracts.delegation_legacy, LEGACY_HANDLERS, ctx,
                accept=lambda tx: tx.succeeded and tx.sender != sentinel,
            )

        if domain is ContractDomain.STAKING:
            return self._replay_address(
                window, self.contracts.staking, STAKING_HANDLERS, ctx,
                accept=lambda tx: tx.succeeded and not tx.data.startswith(STAKING_IGNORED_PREFIXES),
            )

        if epoch < self.config.replay.manager_discovery_epoch:
            return 0

        self.state.manager_contracts = self.discover_manager_contracts()
        dispatched = self._replay_address(
            window, self.contracts.delegation_manager, MANAGER_CREATOR_HANDLERS, ctx,
            accept=lambda tx: tx.succeeded,
        )
        for contract in self.state.manager_contracts:
            dispatched += self._replay_address(
                window, contract, MANAGER_HANDLERS, ctx,
                accept=lambda tx: tx.succeeded,
            )
        return dispatched

    def discover_manager_contracts(self) -> Tuple[str, ...]:
        """
        Ask the delegation manager for every delegation contract it created.

        Raises:
            DiscoveryError: If the query fails or returns a malformed key
        """
        manager = self.contracts.delegation_manager
        try:
            keys = query_vm_values(self.gateway, manager, GET_ALL_CONTRACT_ADDRESSES, manager)
            contracts = tuple(encode_address(key) for key in keys)
        except (FetchError, DecodeError) as exc:
            raise DiscoveryError(f"Cannot list delegation manager contracts: {exc}") from exc
        logger.info("discovered %d delegation manager contracts", len(contracts))
        return contracts

    def _replay_address(
        self,
        window: Tuple[int, int],
        address: str,
        table: DispatchTable,
        ctx: HandlerContext,
        accept: Accept,
    ) -> int:
        query = transactions_to_address(window[0], window[1], address)
        counter = [0]

        def on_page(page: Mapping[str, Any]) -> None:
            for source in hits_of(page):
                if self._apply(source, table, ctx, accept):
                    counter[0] += 1

        self.index.scroll_all(query, self.config.indices.transactions, on_page)
        logger.debug("epoch %d: %d transactions dispatched for %s", ctx.epoch, counter[0], address)
        return counter[0]

    def _apply(self, source: Mapping[str, Any], table: DispatchTable, ctx: HandlerContext, accept: Accept) -> bool:
        try:
            tx = Transaction.from_source(source)
        except DecodeError as exc:
            self.state.record_anomaly(ctx.epoch, "decode", source.get("sender", ""), str(exc))
            return False

        if not accept(tx):
            return False
        handler = dispatch(table, tx)
        if handler is None:
            return False

        try:
            handler(tx, self.state, ctx)
        except DecodeError as exc:
            self.state.record_anomaly(ctx.epoch, handler.__name__, tx.sender, str(exc))
            return False
        return True
