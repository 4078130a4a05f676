"""
driver.py - Epoch driver

Walks epochs 0..end_epoch-1 in order. For each epoch the driver:
1. Reads the legacy and staking contract balances at the window end
2. Reads the system reward paid to the legacy contract (not at epoch 0)
3. Replays the legacy, staking and delegation manager domains
4. Assembles EpochStats from the state and the contract balances
5. Writes the merged legacy + staking ledger as the epoch checkpoint

A run refuses to start over existing checkpoints. A failed epoch is logged
and skipped; the output always holds exactly end_epoch records.
"""

from __future__ import annotations
import logging
from typing import Callable, List, Optional, TypeVar

from .checkpoint import CheckpointStore
from .config import StakeConfig
from .core import CheckpointError, DiscoveryError, StakeLedgerError, epoch_window
from .reconciliation import ReconciliationCorrector
from .replay import ContractDomain, ReplayState, Savepoint, TransactionReplayEngine
from .snapshots import BalanceSnapshotFetcher
from .stats import EpochStats
from .tiers import count_tiers

logger = logging.getLogger(__name__)

R = TypeVar("R")


def run_epochs(
    end_epoch: int,
    process: Callable[[int], R],
    on_failure: Callable[[int, StakeLedgerError], R],
    label: str,
) -> List[R]:
    """
    Run process for every epoch in order, replacing failures by on_failure.

    Only StakeLedgerError is treated as an epoch failure; anything else is a
    bug and propagates.
    """
    if end_epoch < 0:
        raise ValueError(f"end_epoch must be non-negative, got {end_epoch}")

    results: List[R] = []
    for epoch in range(end_epoch):
        logger.info("processing %s epoch %d", label, epoch)
        try:
            results.append(process(epoch))
        except StakeLedgerError as exc:
            logger.warning("cannot process %s for epoch %d: %s", label, epoch, exc)
            results.append(on_failure(epoch, exc))
    return results


class EpochDriver:
    """
    Drives the stake replay and aggregates EpochStats.

    Args:
        engine: Replay engine (owns the ReplayState)
        snapshots: Contract balance oracle
        checkpoints: Store receiving the per-epoch merged ledger
        config: Run configuration
        corrector: Bucket corrections (built from config if not provided)
    """

    def __init__(
        self,
        engine: TransactionReplayEngine,
        snapshots: BalanceSnapshotFetcher,
        checkpoints: CheckpointStore,
        config: StakeConfig,
        corrector: Optional[ReconciliationCorrector] = None,
    ):
        self.engine = engine
        self.snapshots = snapshots
        self.checkpoints = checkpoints
        self.config = config
        self.corrector = corrector or ReconciliationCorrector(config.reconciliation)
        self._last: Optional[EpochStats] = None
        self._saved: Optional[Savepoint] = None

    @property
    def state(self) -> ReplayState:
        return self.engine.state

    def run(self, end_epoch: int) -> List[EpochStats]:
        """
        Replay epochs 0..end_epoch-1.

        Raises:
            CheckpointError: If any of those epochs already has a checkpoint;
                nothing is replayed in that case
        """
        written = [epoch for epoch in range(max(end_epoch, 0)) if self.checkpoints.get(epoch) is not None]
        if written:
            raise CheckpointError(
                f"checkpoints already exist for epochs {written[0]}..{written[-1]} ({len(written)} files); "
                "use an empty checkpoint folder"
            )
        return run_epochs(end_epoch, self._guarded_epoch, self._failed_epoch, "stake info")

    def _guarded_epoch(self, epoch: int) -> EpochStats:
        if self.config.replay.rollback_failed_epochs:
            self._saved = self.state.savepoint()
        stats = self.process_epoch(epoch)
        self._last = stats
        return stats

    def _failed_epoch(self, epoch: int, error: StakeLedgerError) -> EpochStats:
        if self._saved is not None:
            self.state.restore(self._saved)
            logger.info("epoch %d rolled back", epoch)
        if self._last is None:
            return EpochStats(epoch=epoch, complete=False)
        return self._last.as_incomplete(epoch)

    def process_epoch(self, epoch: int) -> EpochStats:
        """
        Replay one epoch and build its statistics.

        Raises:
            StakeLedgerError: Any fetch, replay or checkpoint failure
        """
        start, end = epoch_window(self.engine.genesis_time, epoch)
        contracts = self.config.contracts
        replay = self.config.replay

        legacy_balance = self.snapshots.get_balance(contracts.delegation_legacy, start, end)
        staking_balance = self.snapshots.get_balance(contracts.staking, start, end)
        reward = 0
        if epoch > 0:
            reward = self.snapshots.reward_value(start, end, contracts.delegation_legacy, replay.sentinel_sender)

        self.engine.replay_epoch(epoch, ContractDomain.DELEGATION_LEGACY)
        self.engine.replay_epoch(epoch, ContractDomain.STAKING)
        try:
            self.engine.replay_epoch(epoch, ContractDomain.DELEGATION_MANAGER)
        except DiscoveryError as exc:
            logger.warning("epoch %d: delegation manager domain skipped: %s", epoch, exc)

        state = self.state
        state.accumulated_reward_delegation += reward

        legacy_no_rewards = legacy_balance - state.accumulated_reward_delegation + state.claimed_rewards
        staking_no_jail = staking_balance - state.accumulated_unjail
        merged = state.merged_balances()
        tiers = self.corrector.apply(epoch, count_tiers(merged.values(), self.config.tier_thresholds))

        stats = EpochStats(
            epoch=epoch,
            total_staked=legacy_no_rewards + staking_no_jail,
            legacy_delegation=legacy_no_rewards,
            legacy_delegation_users=len(state.delegation_legacy),
            staking=staking_no_jail,
            staking_users=len(state.staking),
            total_unique_users=len(state.unique_users()),
            delegation_manager_users=len(state.delegation_manager),
            delegation_manager_staked=state.delegation_manager.total(),
            active_legacy_delegation=replay.legacy_delegation_baseline + legacy_no_rewards,
            claimed_rewards=state.claimed_rewards,
            accumulated_unjail=state.accumulated_unjail,
            accumulated_reward_delegation=state.accumulated_reward_delegation,
            balance_tiers=tiers,
        )

        self.checkpoints.put(epoch, merged)
        return stats
