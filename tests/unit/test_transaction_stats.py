"""
test_transaction_stats.py - Unit tests for TransactionStatsProcessor
"""

import base64
import json

import pytest

from stakeledger import DecodeError, TransactionStatsProcessor, decode_address, unwrap_relayed

from tests.fake_index import GENESIS_TIME, epoch_time, make_address, tx_source

ALICE, BOB, CAROL, DAVE, ERIN = (make_address(i) for i in range(1, 6))
CONTRACT = make_address(10, contract=True)
CONTRACT2 = make_address(11, contract=True)
SENTINEL = "4294967295"


def relayed_payload(sender: str, receiver: str) -> str:
    inner = {
        "nonce": 3,
        "value": "0",
        "sender": base64.b64encode(decode_address(sender)).decode("ascii"),
        "receiver": base64.b64encode(decode_address(receiver)).decode("ascii"),
        "gasLimit": 50000,
    }
    return "relayedTx@" + json.dumps(inner).encode("utf-8").hex()


@pytest.fixture
def processor(index):
    return TransactionStatsProcessor(index, "transactions", {ALICE}, GENESIS_TIME, SENTINEL)


class TestUnwrapRelayed:

    def test_inner_addresses(self):
        assert unwrap_relayed(relayed_payload(ERIN, CONTRACT2)) == (ERIN, CONTRACT2)

    @pytest.mark.parametrize("data", [
        "relayedTx",
        "relayedTx@zz",
        "relayedTx@" + b"{}".hex(),
        "relayedTx@" + b"not json".hex(),
        "claimRewards@00",
    ])
    def test_malformed(self, data):
        with pytest.raises(DecodeError):
            unwrap_relayed(data)


class TestProcessEpoch:

    def test_daily_counters(self, index, processor):
        index.add(
            "transactions",
            tx_source(ALICE, BOB, value="10", timestamp=epoch_time(0, 1)),
            tx_source(BOB, CONTRACT, "stake", timestamp=epoch_time(0, 2)),
            tx_source(SENTINEL, ALICE, value="3", timestamp=epoch_time(0, 3)),
            tx_source(CAROL, DAVE, relayed_payload(ERIN, CONTRACT2), timestamp=epoch_time(0, 4)),
        )
        stats = processor.process_epoch(0)
        assert stats.daily_transactions == 4
        assert stats.daily_contract_calls == 2
        assert stats.daily_active_accounts == 4
        assert stats.daily_active_contract_accounts == 2
        assert stats.daily_new_addresses == 5
        assert stats.daily_new_contract_addresses == 2
        assert SENTINEL not in stats.top_active_accounts

    def test_failed_relayed_inner_not_counted(self, index, processor):
        index.add("transactions", tx_source(
            CAROL, DAVE, relayed_payload(ERIN, CONTRACT2), status="fail", timestamp=epoch_time(0)))
        stats = processor.process_epoch(0)
        assert stats.daily_contract_calls == 0
        assert ERIN not in stats.top_active_accounts

    def test_known_addresses_persist_across_epochs(self, index, processor):
        index.add(
            "transactions",
            tx_source(ALICE, BOB, timestamp=epoch_time(0)),
            tx_source(ALICE, BOB, timestamp=epoch_time(1)),
        )
        assert processor.process_epoch(0).daily_new_addresses == 1
        second = processor.process_epoch(1)
        assert second.daily_new_addresses == 0
        assert second.daily_transactions == 1

    def test_top_active_limited_to_ten(self, index, processor):
        senders = [make_address(100 + i) for i in range(12)]
        for rank, sender in enumerate(senders):
            for n in range(rank + 1):
                index.add("transactions", tx_source(sender, CONTRACT, "ping", timestamp=epoch_time(0, n)))
        stats = processor.process_epoch(0)
        assert stats.daily_active_accounts == 12
        assert len(stats.top_active_accounts) == 10
        assert stats.top_active_accounts[senders[-1]] == 12
        assert senders[0] not in stats.top_active_accounts
        assert stats.top_active_contracts == {CONTRACT: sum(range(1, 13))}

    def test_malformed_payload_still_counted(self, index, processor):
        broken = tx_source(ALICE, BOB, timestamp=epoch_time(0))
        broken["data"] = "%%%"
        index.add("transactions", broken)
        assert processor.process_epoch(0).daily_transactions == 1

    def test_run_returns_one_record_per_epoch(self, processor):
        records = processor.run(3)
        assert [r.to_dict()["epoch"] for r in records] == [0, 1, 2]
