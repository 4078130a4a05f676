"""
stakeledger - Stake ledger replay and network statistics

Rebuilds, epoch by epoch, the staked balances of every participant of a
proof-of-stake network by replaying the transactions recorded in a search
index, and derives per-epoch statistics from them.

Usage:
    from stakeledger import (
        StakeConfig, ElasticSearchClient, RestClient, load_genesis,
        ReplayState, TransactionReplayEngine, BalanceSnapshotFetcher,
        FileCheckpointStore, EpochDriver, write_report,
    )

    config = StakeConfig.from_file("config/config.yaml")
    index = ElasticSearchClient(config.general.elastic_database_address)
    gateway = RestClient(config.general.api_url)

    seed = load_genesis("genesis", config.replay.genesis_unit_stake)
    state = ReplayState.from_genesis(seed)
    engine = TransactionReplayEngine(index, gateway, config, state, genesis_time=1596117600)
    snapshots = BalanceSnapshotFetcher(index, "accountshistory", "transactions")

    driver = EpochDriver(engine, snapshots, FileCheckpointStore("balances"), config)
    write_report(driver.run(end_epoch=265), "reports/stakeInfo.json")
"""

# Core types
from .core import (
    SECONDS_IN_A_DAY,
    DENOMINATION,
    METACHAIN_SHARD_ID,
    STATUS_SUCCESS,
    STATUS_FAIL,
    BalanceMap,
    StakeLedgerError,
    FetchError,
    DecodeError,
    LedgerDriftError,
    DiscoveryError,
    GenesisLoadError,
    CheckpointError,
    ConfigError,
    SmartContractResult,
    Transaction,
    Anomaly,
    SearchIndex,
    RestGateway,
    epoch_window,
    parse_amount,
    decode_hex_argument,
    decode_payload,
    encode_payload,
    hits_of,
)

# Configuration
from .config import (
    StakeConfig,
    GeneralConfig,
    IndexConfig,
    ContractsConfig,
    ReplayConfig,
    ReconciliationConfig,
    TIER_NAMES,
    DEFAULT_TIER_THRESHOLDS,
)

# Addresses
from .address import encode_address, decode_address, is_smart_contract_address

# Transport
from .search_client import ElasticSearchClient
from .rest_client import RestClient, query_vm_values, fetch_genesis_time

# Ledgers and genesis
from .ledger import BalanceLedger, merge_ledgers
from .genesis import GenesisSeed, load_genesis, genesis_known_addresses

# Checkpoints, tiers, corrections
from .checkpoint import CheckpointStore, FileCheckpointStore, MemoryCheckpointStore
from .tiers import TierCounts, count_tiers, combine_balances
from .reconciliation import ReconciliationCorrector

# Replay
from .snapshots import BalanceSnapshotFetcher
from .handlers import (
    HandlerContext,
    dispatch,
    LEGACY_HANDLERS,
    STAKING_HANDLERS,
    MANAGER_HANDLERS,
    MANAGER_CREATOR_HANDLERS,
)
from .replay import ContractDomain, ReplayState, Savepoint, TransactionReplayEngine

# Statistics
from .stats import EpochStats, AccountsEpochStats, TransactionsEpochStats, report_json, write_report
from .driver import EpochDriver, run_epochs
from .accounts import AccountsProcessor
from .transactions import TransactionStatsProcessor, unwrap_relayed


__all__ = [
    # Constants
    'SECONDS_IN_A_DAY',
    'DENOMINATION',
    'METACHAIN_SHARD_ID',
    'STATUS_SUCCESS',
    'STATUS_FAIL',
    'BalanceMap',
    # Exceptions
    'StakeLedgerError',
    'FetchError',
    'DecodeError',
    'LedgerDriftError',
    'DiscoveryError',
    'GenesisLoadError',
    'CheckpointError',
    'ConfigError',
    # Records
    'SmartContractResult',
    'Transaction',
    'Anomaly',
    # Protocols
    'SearchIndex',
    'RestGateway',
    'CheckpointStore',
    # Helpers
    'epoch_window',
    'parse_amount',
    'decode_hex_argument',
    'decode_payload',
    'encode_payload',
    'hits_of',
    'encode_address',
    'decode_address',
    'is_smart_contract_address',
    # Configuration
    'StakeConfig',
    'GeneralConfig',
    'IndexConfig',
    'ContractsConfig',
    'ReplayConfig',
    'ReconciliationConfig',
    'TIER_NAMES',
    'DEFAULT_TIER_THRESHOLDS',
    # Transport
    'ElasticSearchClient',
    'RestClient',
    'query_vm_values',
    'fetch_genesis_time',
    # Ledgers and genesis
    'BalanceLedger',
    'merge_ledgers',
    'GenesisSeed',
    'load_genesis',
    'genesis_known_addresses',
    # Checkpoints, tiers, corrections
    'FileCheckpointStore',
    'MemoryCheckpointStore',
    'TierCounts',
    'count_tiers',
    'combine_balances',
    'ReconciliationCorrector',
    # Replay
    'BalanceSnapshotFetcher',
    'HandlerContext',
    'dispatch',
    'LEGACY_HANDLERS',
    'STAKING_HANDLERS',
    'MANAGER_HANDLERS',
    'MANAGER_CREATOR_HANDLERS',
    'ContractDomain',
    'ReplayState',
    'Savepoint',
    'TransactionReplayEngine',
    # Statistics
    'EpochStats',
    'AccountsEpochStats',
    'TransactionsEpochStats',
    'report_json',
    'write_report',
    'EpochDriver',
    'run_epochs',
    'AccountsProcessor',
    'TransactionStatsProcessor',
    'unwrap_relayed',
]

__version__ = '1.0.0'
