"""
test_cli.py - stakeledger-stats end to end over fake transports

The HTTP clients built by the CLI are replaced with the in-memory fakes.
"""

import json

import pytest
import yaml

from stakeledger import cli
from stakeledger.config import DEFAULT_DELEGATION_LEGACY_ADDRESS

from tests.conftest import write_genesis
from tests.fake_index import (
    GENESIS_TIME, FakeRestGateway, FakeSearchIndex, balance_source, epoch_time, make_address, tx_source,
)

ALICE = make_address(1)


@pytest.fixture
def fakes(monkeypatch):
    index = FakeSearchIndex()
    gateway = FakeRestGateway({"/network/config": {"data": {"config": {"erd_start_time": GENESIS_TIME}}}})
    monkeypatch.setattr(cli, "ElasticSearchClient", lambda *args, **kwargs: index)
    monkeypatch.setattr(cli, "RestClient", lambda *args, **kwargs: gateway)
    return index, gateway


@pytest.fixture
def workspace(tmp_path):
    genesis = tmp_path / "genesis"
    genesis.mkdir()
    write_genesis(genesis, accounts=[(ALICE, 1000)], node_owners=[ALICE])
    config = tmp_path / "config.yaml"
    config.write_text(yaml.safe_dump({
        "general": {"log_level": "warning"},
        "replay": {"genesis_unit_stake": 2500},
        "checkpoint_folder": str(tmp_path / "balances"),
    }))
    return tmp_path


def run_cli(workspace, stats, end_epoch=2):
    output = workspace / f"{stats}.json"
    code = cli.main([
        "--config", str(workspace / "config.yaml"),
        "--path-genesis-folder", str(workspace / "genesis"),
        "--end-epoch", str(end_epoch),
        "--stats", stats,
        "--output-file", str(output),
    ])
    return code, output


class TestStakeRun:

    def test_writes_report_and_checkpoints(self, fakes, workspace):
        index, gateway = fakes
        index.add("transactions", tx_source("4294967295", DEFAULT_DELEGATION_LEGACY_ADDRESS,
                                            value="0", timestamp=epoch_time(1, 50)))
        code, output = run_cli(workspace, "stake")

        assert code == 0
        report = json.loads(output.read_text())
        assert [record["epoch"] for record in report] == [0, 1]
        assert report[0]["totalUniqueUsers"] == 1
        assert report[0]["complete"] is True
        assert (workspace / "balances" / "epoch1.json").exists()
        # genesis time came from the gateway
        assert gateway.calls[0] == ("GET", "/network/config", None)

    def test_rerun_over_existing_checkpoints_exit_code(self, fakes, workspace):
        index, _ = fakes
        index.add("transactions", tx_source("4294967295", DEFAULT_DELEGATION_LEGACY_ADDRESS,
                                            value="0", timestamp=epoch_time(1, 50)))
        first, output = run_cli(workspace, "stake")
        report = output.read_text()

        second, _ = run_cli(workspace, "stake")
        assert (first, second) == (0, 1)
        assert output.read_text() == report

    def test_accounts_run_reads_checkpoints(self, fakes, workspace):
        index, _ = fakes
        index.add("transactions", tx_source("4294967295", DEFAULT_DELEGATION_LEGACY_ADDRESS,
                                            value="0", timestamp=epoch_time(1, 50)))
        index.add("accountshistory", balance_source(ALICE, str(10 ** 18), epoch_time(0)))
        run_cli(workspace, "stake")

        code, output = run_cli(workspace, "accounts")
        assert code == 0
        report = json.loads(output.read_text())
        assert report[0]["totalAddresses"] == 1
        assert report[0]["b1EGLD"] == 1
        assert report[0]["nonZero"] == 1


class TestOtherRuns:

    def test_transactions_run(self, fakes, workspace):
        index, _ = fakes
        index.add("transactions", tx_source(ALICE, make_address(2), value="1", timestamp=epoch_time(0)))
        code, output = run_cli(workspace, "transactions", end_epoch=1)
        assert code == 0
        report = json.loads(output.read_text())
        assert report == [{
            "epoch": 0,
            "dailyTransactions": 1,
            "dailyContractCalls": 0,
            "dailyActiveAccounts": 1,
            "dailyActiveContractAccounts": 0,
            "dailyNewAddresses": 1,
            "dailyNewContractAddresses": 0,
            "topActiveAccounts": {ALICE: 1},
            "topActiveContracts": {},
        }]

    def test_bad_config_exit_code(self, fakes, tmp_path):
        (tmp_path / "config.yaml").write_text("tiers: [1, 2]")
        code, _ = run_cli(tmp_path, "stake")
        assert code == 1

    def test_missing_genesis_exit_code(self, fakes, workspace):
        (workspace / "genesis" / "nodesSetup.json").unlink()
        code, output = run_cli(workspace, "stake")
        assert code == 1
        assert not output.exists()

    def test_parser_defaults(self):
        args = cli.build_parser().parse_args(["--end-epoch", "5"])
        assert args.stats == "stake"
        assert args.end_epoch == 5
        assert args.checkpoint_folder is None
