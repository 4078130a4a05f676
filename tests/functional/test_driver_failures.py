"""
test_driver_failures.py - EpochDriver behaviour when an epoch fails

Covers:
- skipped epochs keep the output length and carry prior figures
- rollback of partial effects (default) and the opt-out
- discovery failures only skip the delegation manager domain
- write-once checkpoints and refusal to rerun over existing ones
"""

import pytest

from stakeledger import (
    BalanceSnapshotFetcher, EpochDriver, EpochStats, FetchError, ReplayState,
    StakeConfig, TransactionReplayEngine, run_epochs, CheckpointError, FileCheckpointStore,
    MemoryCheckpointStore,
)

from tests.fake_index import GENESIS_TIME, epoch_time, tx_source, vm_values_response

SENTINEL = "4294967295"


def add_rewards(index, legacy, epochs):
    for epoch in epochs:
        index.add("transactions", tx_source(SENTINEL, legacy, value="0", timestamp=epoch_time(epoch, 50)))


def fail_staking_scan_at(index, staking, epoch):
    """Make the staking-contract scan of one epoch raise FetchError."""
    drain = index.scroll_all
    window_start = epoch_time(epoch, 0)

    def flaky(query, name, handler):
        must = query["query"].get("bool", {}).get("must", [])
        receivers = [clause["match"].get("receiver") for clause in must if "match" in clause]
        starts = [clause["range"]["timestamp"]["gte"] for clause in must if "range" in clause]
        if staking in receivers and window_start in starts:
            raise FetchError("staking scan timed out")
        drain(query, name, handler)

    index.scroll_all = flaky


def make_driver(index, gateway, config, checkpoints):
    engine = TransactionReplayEngine(index, gateway, config, ReplayState(), GENESIS_TIME)
    snapshots = BalanceSnapshotFetcher(index, config.indices.accounts_history, config.indices.transactions)
    return EpochDriver(engine, snapshots, checkpoints, config)


@pytest.fixture
def scenario(index, gateway, contracts):
    """Legacy stakes at epochs 0, 1 and 2; the staking scan of epoch 1 fails."""
    gateway.responses["/vm-values/query"] = vm_values_response([])
    legacy = contracts.delegation_legacy
    add_rewards(index, legacy, range(1, 3))
    index.add(
        "transactions",
        tx_source("erd1alice", legacy, "stake", "10", timestamp=epoch_time(0)),
        tx_source("erd1alice", legacy, "stake", "20", timestamp=epoch_time(1)),
        tx_source("erd1bob", legacy, "stake", "5", timestamp=epoch_time(2)),
    )
    fail_staking_scan_at(index, contracts.staking, 1)
    return index


class TestRollback:

    def test_failed_epoch_rolled_back(self, scenario, gateway, config, checkpoints):
        driver = make_driver(scenario, gateway, config, checkpoints)
        records = driver.run(3)

        assert [r.epoch for r in records] == [0, 1, 2]
        assert [r.complete for r in records] == [True, False, True]
        assert driver.state.delegation_legacy.snapshot() == {"erd1alice": 10, "erd1bob": 5}
        assert checkpoints.epochs() == [0, 2]

    def test_failed_epoch_carries_prior_figures(self, scenario, gateway, config, checkpoints):
        records = make_driver(scenario, gateway, config, checkpoints).run(3)
        assert records[1].legacy_delegation_users == records[0].legacy_delegation_users
        assert records[1].to_dict()["complete"] is False
        assert records[1].to_dict()["epoch"] == 1

    def test_partial_effects_kept_without_rollback(self, scenario, gateway, checkpoints):
        config = StakeConfig.from_dict({
            "general": {"genesis_time": GENESIS_TIME},
            "replay": {"manager_discovery_epoch": 2, "rollback_failed_epochs": False},
        })
        driver = make_driver(scenario, gateway, config, checkpoints)
        driver.run(3)
        assert driver.state.delegation_legacy.snapshot() == {"erd1alice": 30, "erd1bob": 5}

    def test_first_epoch_failure_publishes_empty_record(self, index, gateway, config, checkpoints, contracts):
        fail_staking_scan_at(index, contracts.staking, 0)
        records = make_driver(index, gateway, config, checkpoints).run(1)
        assert records == [EpochStats(epoch=0, complete=False)]


class TestFailureScope:

    def test_missing_reward_fails_epoch(self, index, gateway, config, checkpoints):
        records = make_driver(index, gateway, config, checkpoints).run(2)
        assert [r.complete for r in records] == [True, False]

    def test_discovery_failure_keeps_epoch(self, index, gateway, config, checkpoints, contracts):
        add_rewards(index, contracts.delegation_legacy, range(1, 4))
        records = make_driver(index, gateway, config, checkpoints).run(4)
        assert all(r.complete for r in records)
        assert checkpoints.epochs() == [0, 1, 2, 3]

    def test_existing_checkpoint_refuses_run(self, index, gateway, config, checkpoints):
        checkpoints.put(0, {"erd1stale": 1})
        driver = make_driver(index, gateway, config, checkpoints)
        with pytest.raises(CheckpointError, match="already exist"):
            driver.run(1)
        assert checkpoints.get(0) == {"erd1stale": 1}
        assert index.requests == []

    def test_checkpoint_written_during_epoch_fails_it(self, index, gateway, config):
        class RacingStore(MemoryCheckpointStore):
            def get(self, epoch):
                return None

        store = RacingStore()
        store.put(0, {"erd1stale": 1})
        records = make_driver(index, gateway, config, store).run(1)
        assert records[0].complete is False

    def test_second_run_over_same_folder_refused(self, tmp_path, index, gateway, config, contracts):
        legacy = contracts.delegation_legacy
        add_rewards(index, legacy, range(1, 4))
        index.add("transactions", tx_source("erd1alice", legacy, "stake", "200", timestamp=epoch_time(2)))
        folder = tmp_path / "balances"

        first = make_driver(index, gateway, config, FileCheckpointStore(folder)).run(3)
        assert all(r.complete for r in first)

        second = make_driver(index, gateway, config, FileCheckpointStore(folder))
        with pytest.raises(CheckpointError):
            second.run(4)
        assert FileCheckpointStore(folder).get(2) == {"erd1alice": 200}
        assert not FileCheckpointStore(folder).path_for(3).exists()

    def test_end_epoch_zero(self, driver):
        assert driver.run(0) == []


class TestRunEpochs:

    def test_non_stake_errors_propagate(self):
        def broken(epoch):
            raise KeyError("bug")

        with pytest.raises(KeyError):
            run_epochs(2, broken, lambda epoch, error: None, "test")

    def test_failures_replaced(self):
        def process(epoch):
            if epoch == 1:
                raise CheckpointError("exists")
            return epoch * 10

        assert run_epochs(3, process, lambda epoch, error: -epoch, "test") == [0, -1, 20]

    def test_negative_end_epoch(self):
        with pytest.raises(ValueError):
            run_epochs(-1, lambda epoch: epoch, lambda epoch, error: None, "test")
