"""
transactions.py - Daily transaction and account activity

Per epoch window, counts transactions, smart-contract calls, active and
new addresses. Relayed transactions carry an inner transaction whose
sender and receiver are attributed as well.

The set of known addresses starts from genesis and grows across epochs, so
"new" means first seen since genesis.
"""

from __future__ import annotations
import base64
import binascii
from collections import Counter
import json
import logging
from typing import Any, Dict, Iterable, List, Mapping, Set, Tuple

from .address import encode_address, is_smart_contract_address
from .core import (
    STATUS_FAIL, DecodeError, SearchIndex, Transaction, epoch_window, hits_of,
)
from .driver import run_epochs
from .queries import transactions_by_timestamp
from .stats import TransactionsEpochStats

logger = logging.getLogger(__name__)

RELAYED_TX_PREFIX = "relayedTx"
TOP_ACTIVE = 10


def unwrap_relayed(data: str) -> Tuple[str, str]:
    """
    Return the (sender, receiver) addresses of a relayed inner transaction.

    The payload is "relayedTx@<hex(json)>"; the inner transaction holds its
    sender and receiver public keys base64-encoded.

    Raises:
        DecodeError: If any layer of the payload is malformed
    """
    parts = data.split("@")
    if len(parts) < 2 or parts[0] != RELAYED_TX_PREFIX:
        raise DecodeError(f"Not a relayed transaction: '{data}'")
    try:
        inner = json.loads(bytes.fromhex(parts[1]).decode("utf-8"))
        sender = base64.b64decode(inner["sender"], validate=True)
        receiver = base64.b64decode(inner["receiver"], validate=True)
    except (ValueError, KeyError, TypeError, binascii.Error) as exc:
        raise DecodeError(f"Malformed relayed transaction: {exc}") from exc
    return encode_address(sender), encode_address(receiver)


class TransactionStatsProcessor:
    """Counts daily activity from every transaction in each epoch window."""

    def __init__(
        self,
        index: SearchIndex,
        transactions_index: str,
        known_addresses: Iterable[str],
        genesis_time: int,
        sentinel_sender: str,
    ):
        self.index = index
        self.transactions_index = transactions_index
        self.addresses: Set[str] = set(known_addresses)
        self.genesis_time = genesis_time
        self.sentinel_sender = sentinel_sender
        self._reset()

    def _reset(self) -> None:
        self._transactions = 0
        self._contract_calls = 0
        self._new_addresses = 0
        self._new_contracts = 0
        self._active_accounts: Counter = Counter()
        self._active_contracts: Counter = Counter()

    def run(self, end_epoch: int) -> List[TransactionsEpochStats]:
        return run_epochs(
            end_epoch,
            self.process_epoch,
            lambda epoch, error: TransactionsEpochStats(epoch=epoch),
            "transactions",
        )

    def process_epoch(self, epoch: int) -> TransactionsEpochStats:
        start, end = epoch_window(self.genesis_time, epoch)
        self._reset()
        self.index.scroll_all(transactions_by_timestamp(start, end), self.transactions_index, self._on_page)
        return TransactionsEpochStats(
            epoch=epoch,
            daily_transactions=self._transactions,
            daily_contract_calls=self._contract_calls,
            daily_active_accounts=len(self._active_accounts),
            daily_active_contract_accounts=len(self._active_contracts),
            daily_new_addresses=self._new_addresses,
            daily_new_contract_addresses=self._new_contracts,
            top_active_accounts=dict(self._active_accounts.most_common(TOP_ACTIVE)),
            top_active_contracts=dict(self._active_contracts.most_common(TOP_ACTIVE)),
        )

    def _on_page(self, page: Mapping[str, Any]) -> None:
        for source in hits_of(page):
            tx = self._decode(source)
            self.count(tx)
            self.count_relayed(tx)

    @staticmethod
    def _decode(source: Mapping[str, Any]) -> Transaction:
        try:
            return Transaction.from_source(source)
        except DecodeError as exc:
            logger.debug("counting transaction without payload: %s", exc)
            stripped: Dict[str, Any] = {**source, "data": None, "scResults": None}
            return Transaction.from_source(stripped)

    def count(self, tx: Transaction) -> None:
        """Attribute one outer transaction."""
        system = tx.sender == self.sentinel_sender
        if not system:
            self._active_accounts[tx.sender] += 1

        to_contract = is_smart_contract_address(tx.receiver)
        if to_contract:
            self._active_contracts[tx.receiver] += 1
            self._contract_calls += 1
        self._transactions += 1

        if system:
            return
        if tx.sender not in self.addresses:
            self.addresses.add(tx.sender)
            self._new_addresses += 1
        self._see_receiver(tx.receiver, to_contract)

    def count_relayed(self, tx: Transaction) -> None:
        """Attribute the inner transaction of a successful relayed transaction."""
        if tx.status == STATUS_FAIL or not tx.data.startswith(RELAYED_TX_PREFIX):
            return
        try:
            sender, receiver = unwrap_relayed(tx.data)
        except DecodeError as exc:
            logger.debug("skipping relayed payload from %s: %s", tx.sender, exc)
            return

        self._active_accounts[sender] += 1
        to_contract = is_smart_contract_address(receiver)
        if to_contract:
            self._active_contracts[receiver] += 1
            self._contract_calls += 1
        self._see_receiver(receiver, to_contract)

    def _see_receiver(self, receiver: str, to_contract: bool) -> None:
        if receiver in self.addresses:
            return
        self.addresses.add(receiver)
        self._new_addresses += 1
        if to_contract:
            self._new_contracts += 1
