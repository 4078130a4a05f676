"""
queries.py - Search query bodies

Every builder takes a half-open epoch window [start, end) and sends it as an
inclusive [start, end - 1] timestamp range, so a document stamped exactly on
an epoch boundary belongs to the later epoch only. Transaction scans sort
ascending so replay follows index order; latest-balance lookups sort
descending with size 1.
"""

from __future__ import annotations
from typing import Any, Dict, List

Query = Dict[str, Any]


def _timestamp_range(start: int, end: int) -> Query:
    return {"range": {"timestamp": {"gte": start, "lte": end - 1}}}


def _match(field: str, value: str) -> Query:
    return {"match": {field: value}}


def _must(clauses: List[Query]) -> Query:
    return {"bool": {"must": clauses}}


def transactions_by_timestamp(start: int, end: int) -> Query:
    """All documents in the window."""
    return {"query": _timestamp_range(start, end)}


def transactions_to_address(start: int, end: int, address: str) -> Query:
    """Transactions received by address in the window, oldest first."""
    return {
        "query": _must([
            _timestamp_range(start, end),
            _match("receiver", address),
        ]),
        "sort": [{"timestamp": {"order": "asc"}}],
    }


def latest_account_balance(start: int, end: int, address: str) -> Query:
    """Most recent balance-history record of address in the window."""
    return {
        "query": _must([
            _timestamp_range(start, end),
            _match("address", address),
        ]),
        "sort": [{"timestamp": {"order": "desc"}}],
        "size": 1,
    }


def reward_transaction(start: int, end: int, receiver: str, sentinel_sender: str) -> Query:
    """Successful system reward transaction paid to receiver in the window."""
    return {
        "query": _must([
            _timestamp_range(start, end),
            _match("receiver", receiver),
            _match("sender", sentinel_sender),
            _match("status", "success"),
        ]),
    }
