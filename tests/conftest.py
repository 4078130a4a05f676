"""
conftest.py - Shared pytest fixtures for stakeledger tests

Provides:
- A configuration pinned to a known genesis time
- Fake index / gateway collaborators
- A replay state, engine and driver wired over the fakes
- Genesis folders written to tmp_path
"""

import json

import pytest

from stakeledger import (
    DENOMINATION,
    BalanceSnapshotFetcher,
    EpochDriver,
    MemoryCheckpointStore,
    ReplayState,
    StakeConfig,
    TransactionReplayEngine,
    Transaction,
)

from tests.fake_index import (
    GENESIS_TIME, FakeRestGateway, FakeSearchIndex, tx_source,
)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def make_tx(sender: str, data: str = "", value: int = 0, receiver: str = "erd1contract", **kwargs) -> Transaction:
    """Decoded Transaction built through the index document path."""
    return Transaction.from_source(tx_source(sender, receiver, data, str(value), **kwargs))


def write_genesis(folder, accounts, node_owners):
    """Write genesis.json / nodesSetup.json into folder."""
    (folder / "genesis.json").write_text(json.dumps([
        {"address": address, "delegation": {"value": str(value)}}
        for address, value in accounts
    ]))
    (folder / "nodesSetup.json").write_text(json.dumps({
        "initialNodes": [{"address": owner, "pubkey": f"key{i}"} for i, owner in enumerate(node_owners)]
    }))
    return folder


# =============================================================================
# CONFIGURATION
# =============================================================================

@pytest.fixture
def config():
    """Mainnet defaults with a fixed genesis time and a small discovery epoch."""
    return StakeConfig.from_dict({
        "general": {"genesis_time": GENESIS_TIME},
        "replay": {"manager_discovery_epoch": 2},
        "reconciliation": {"start_epoch": 2},
    })


@pytest.fixture
def contracts(config):
    return config.contracts


# =============================================================================
# COLLABORATORS
# =============================================================================

@pytest.fixture
def index():
    return FakeSearchIndex(page_size=2)


@pytest.fixture
def gateway():
    return FakeRestGateway()


@pytest.fixture
def checkpoints():
    return MemoryCheckpointStore()


# =============================================================================
# REPLAY
# =============================================================================

@pytest.fixture
def state():
    return ReplayState()


@pytest.fixture
def engine(index, gateway, config, state):
    return TransactionReplayEngine(index, gateway, config, state, genesis_time=GENESIS_TIME)


@pytest.fixture
def driver(engine, index, checkpoints, config):
    snapshots = BalanceSnapshotFetcher(index, config.indices.accounts_history, config.indices.transactions)
    return EpochDriver(engine, snapshots, checkpoints, config)


@pytest.fixture
def genesis_folder(tmp_path):
    """One legacy depositor, two nodes owned by one address and one by another."""
    return write_genesis(
        tmp_path,
        accounts=[("erd1alice", 1000), ("erd1bob", 0), ("erd1carol", 250 * DENOMINATION)],
        node_owners=["erd1node1", "erd1node1", "erd1node2"],
    )
