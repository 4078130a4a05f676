"""
cli.py - stakeledger-stats command line entry point

Usage:
    stakeledger-stats --config config/config.yaml --stats stake --end-epoch 265
    stakeledger-stats --stats accounts --end-epoch 265 --checkpoint-folder balances
    stakeledger-stats --stats transactions --end-epoch 260 --output-file reports/txs.json

The stake run must precede the accounts run: it writes the per-epoch
checkpoints the accounts run adds to the wallet balances.
"""

from __future__ import annotations
import argparse
import logging
from pathlib import Path
from typing import List, Optional

from .checkpoint import FileCheckpointStore
from .config import StakeConfig
from .core import StakeLedgerError
from .driver import EpochDriver
from .accounts import AccountsProcessor
from .genesis import genesis_known_addresses, load_genesis
from .reconciliation import ReconciliationCorrector
from .replay import ReplayState, TransactionReplayEngine
from .rest_client import RestClient, fetch_genesis_time
from .search_client import ElasticSearchClient
from .snapshots import BalanceSnapshotFetcher
from .stats import write_report
from .transactions import TransactionStatsProcessor

logger = logging.getLogger(__name__)

STATS_KINDS = ("transactions", "accounts", "stake")
DEFAULT_OUTPUT = {
    "transactions": "reports/transactions.json",
    "accounts": "reports/accounts.json",
    "stake": "reports/stakeInfo.json",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stakeledger-stats",
        description="Replay staking history from the search index and write per-epoch statistics.",
    )
    parser.add_argument("--config", default="config/config.yaml", help="YAML configuration file")
    parser.add_argument("--path-genesis-folder", default="genesis",
                        help="Folder holding genesis.json and nodesSetup.json")
    parser.add_argument("--end-epoch", type=int, required=True, help="Process epochs 0..END_EPOCH-1")
    parser.add_argument("--stats", choices=STATS_KINDS, default="stake", help="Statistics to compute")
    parser.add_argument("--output-file", default=None, help="Report path (default depends on --stats)")
    parser.add_argument("--checkpoint-folder", default=None,
                        help="Per-epoch staked balance checkpoints (overrides the config)")
    return parser


def run(args: argparse.Namespace, config: StakeConfig) -> Path:
    """Build the collaborators for args.stats, run it and write the report."""
    general = config.general
    index = ElasticSearchClient(
        general.elastic_database_address,
        username=general.username,
        password=general.password,
        timeout=general.request_timeout,
    )
    gateway = RestClient(general.api_url, timeout=general.request_timeout)
    genesis_time = general.genesis_time or fetch_genesis_time(gateway)
    checkpoints = FileCheckpointStore(args.checkpoint_folder or config.checkpoint_folder)
    corrector = ReconciliationCorrector(config.reconciliation)
    logger.info("reconciliation constants version %s", corrector.version)

    if args.stats == "stake":
        seed = load_genesis(args.path_genesis_folder, config.replay.genesis_unit_stake)
        engine = TransactionReplayEngine(index, gateway, config, ReplayState.from_genesis(seed), genesis_time)
        snapshots = BalanceSnapshotFetcher(index, config.indices.accounts_history, config.indices.transactions)
        records = EpochDriver(engine, snapshots, checkpoints, config, corrector).run(args.end_epoch)
    elif args.stats == "accounts":
        processor = AccountsProcessor(
            index, config.indices.accounts_history, checkpoints,
            config.tier_thresholds, corrector, genesis_time,
        )
        records = processor.run(args.end_epoch)
    else:
        seed = load_genesis(args.path_genesis_folder, config.replay.genesis_unit_stake)
        known = genesis_known_addresses(seed, (config.contracts.staking, config.contracts.delegation_legacy))
        processor = TransactionStatsProcessor(
            index, config.indices.transactions, known, genesis_time, config.replay.sentinel_sender,
        )
        records = processor.run(args.end_epoch)

    output = write_report(records, args.output_file or DEFAULT_OUTPUT[args.stats])
    logger.info("wrote %d %s records to %s", len(records), args.stats, output)
    return output


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = StakeConfig.from_file(args.config)
    except StakeLedgerError as exc:
        logging.basicConfig(level=logging.ERROR)
        logger.error("%s", exc)
        return 1

    logging.basicConfig(
        level=config.general.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        run(args, config)
    except StakeLedgerError as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
