"""
Core types and pure functions for the stake-ledger replay system.

This module provides the foundational pieces shared by every other module:
1. Constants: epoch length, reserved sender, base-unit denomination
2. Exceptions: StakeLedgerError and the per-failure-kind subclasses
3. Immutable records: SmartContractResult, Transaction, Anomaly
4. Pure helpers: epoch windows, amount parsing, payload decoding
5. Protocols: SearchIndex and RestGateway, the two transport collaborators

Nothing in this module performs I/O.
"""

from __future__ import annotations
from dataclasses import dataclass
import base64
import binascii
from typing import (
    Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple,
    runtime_checkable,
)


# ============================================================================
# CONSTANTS
# ============================================================================

SECONDS_IN_A_DAY = 24 * 3600

# Smallest denomination: 1 native token = 10^18 base units.
DENOMINATION = 10 ** 18

# Shard id the protocol uses as sender for system-generated transactions
# (reward distribution). Stored as a decimal string in the index.
METACHAIN_SHARD_ID = "4294967295"

STATUS_SUCCESS = "success"
STATUS_FAIL = "fail"

# Address -> amount in base units.
BalanceMap = Dict[str, int]

# Callback invoked with each decoded page of a scrolled search.
PageHandler = Callable[[Dict[str, Any]], None]


# ============================================================================
# EXCEPTIONS
# ============================================================================

class StakeLedgerError(Exception):
    """Base exception for all stake-ledger errors."""
    pass


class FetchError(StakeLedgerError):
    """Raised when the search index or REST gateway cannot serve a request."""
    pass


class DecodeError(StakeLedgerError):
    """Raised when a payload (hex argument, base64 data, JSON) is malformed."""
    pass


class LedgerDriftError(StakeLedgerError):
    """Raised when a ledger entry is missing or a debit would make it negative."""
    pass


class DiscoveryError(StakeLedgerError):
    """Raised when the delegation-manager contract list cannot be obtained."""
    pass


class GenesisLoadError(StakeLedgerError):
    """Raised when the genesis account or node files are missing or malformed."""
    pass


class CheckpointError(StakeLedgerError):
    """Raised on checkpoint store misuse (overwrite, unreadable snapshot)."""
    pass


class ConfigError(StakeLedgerError):
    """Raised when the configuration file holds an invalid value."""
    pass


# ============================================================================
# RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class SmartContractResult:
    """
    System-generated follow-up transfer attached to a transaction.

    Attributes:
        nonce: SCR nonce; the refund/payout of a call carries nonce 0
        sender: Address that emitted the result
        receiver: Address that received the value
        value: Raw decimal value string as stored in the index ("" if none)
        data: Decoded memo (e.g. "delegation rewards claim")
    """
    nonce: int
    sender: str
    receiver: str
    value: str
    data: str = ""

    @property
    def amount(self) -> int:
        return parse_amount(self.value)

    @property
    def has_value(self) -> bool:
        return self.value != ""

    @classmethod
    def from_source(cls, source: Mapping[str, Any]) -> SmartContractResult:
        return cls(
            nonce=int(source.get("nonce", 0) or 0),
            sender=source.get("sender", ""),
            receiver=source.get("receiver", ""),
            value=source.get("value", "") or "",
            data=decode_payload(source.get("data")),
        )


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    A transaction document as replayed from the search index.

    The payload is the decoded method-call string, optionally carrying
    '@'-delimited hex arguments (e.g. "unStake@00c8").
    """
    sender: str
    receiver: str
    data: str
    value: str
    status: str
    scrs: Tuple[SmartContractResult, ...] = ()
    nonce: int = 0
    timestamp: int = 0

    @property
    def amount(self) -> int:
        return parse_amount(self.value)

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_SUCCESS

    @property
    def method(self) -> str:
        """Method name: the payload up to the first '@'."""
        return self.data.split("@", 1)[0]

    @property
    def arguments(self) -> List[str]:
        """Raw hex arguments following the method name."""
        return self.data.split("@")[1:]

    def find_scr(self, predicate: Callable[[SmartContractResult], bool]) -> Optional[SmartContractResult]:
        """Return the first nonce-0, valued SCR matching predicate, or None."""
        for scr in self.scrs:
            if scr.nonce == 0 and scr.has_value and predicate(scr):
                return scr
        return None

    @classmethod
    def from_source(cls, source: Mapping[str, Any]) -> Transaction:
        """
        Build a Transaction from an index `_source` document.

        Raises:
            DecodeError: If the payload or an SCR payload is not valid base64
        """
        scrs = tuple(
            SmartContractResult.from_source(scr)
            for scr in (source.get("scResults") or [])
        )
        return cls(
            sender=source.get("sender", ""),
            receiver=source.get("receiver", ""),
            data=decode_payload(source.get("data")),
            value=source.get("value", "") or "",
            status=source.get("status", ""),
            scrs=scrs,
            nonce=int(source.get("nonce", 0) or 0),
            timestamp=int(source.get("timestamp", 0) or 0),
        )


@dataclass(frozen=True, slots=True)
class Anomaly:
    """A replay step that was skipped because the ledger and log disagree."""
    epoch: int
    kind: str
    address: str
    detail: str = ""


# ============================================================================
# PURE HELPERS
# ============================================================================

def epoch_window(genesis_time: int, epoch: int) -> Tuple[int, int]:
    """
    Return the (start, end) unix-second bounds of an epoch.

    Epoch N covers [genesis + N*86400, genesis + (N+1)*86400).
    """
    if epoch < 0:
        raise ValueError(f"Epoch must be non-negative, got {epoch}")
    start = genesis_time + epoch * SECONDS_IN_A_DAY
    return start, start + SECONDS_IN_A_DAY


def parse_amount(value: Any) -> int:
    """
    Parse a base-10 amount string into an int.

    Empty or non-numeric strings parse as 0, matching how the index
    represents missing values.
    """
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip(), 10)
    except ValueError:
        return 0


def decode_hex_argument(argument: str) -> int:
    """
    Decode a big-endian hex call argument into an unsigned int.

    Raises:
        DecodeError: If the argument is empty or not hex
    """
    if not argument:
        raise DecodeError("Empty hex argument")
    try:
        raw = bytes.fromhex(argument)
    except ValueError as exc:
        raise DecodeError(f"Invalid hex argument '{argument}'") from exc
    return int.from_bytes(raw, "big")


def decode_payload(data: Any) -> str:
    """
    Decode a base64 payload field from an index document into text.

    Raises:
        DecodeError: If the field is not valid base64 or not UTF-8
    """
    if not data:
        return ""
    try:
        return base64.b64decode(data, validate=True).decode("utf-8")
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Invalid payload '{data}'") from exc


def encode_payload(text: str) -> str:
    """Inverse of decode_payload."""
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class SearchIndex(Protocol):
    """
    Read-only interface to the transaction/account-history search index.

    Implementations raise FetchError on any transport failure.
    """

    def search(self, query: Dict[str, Any], index: str) -> Dict[str, Any]:
        """Run a single search and return the decoded response body."""
        ...

    def scroll_all(self, query: Dict[str, Any], index: str, handler: PageHandler) -> None:
        """Drain every page of a search, calling handler once per page in order."""
        ...


@runtime_checkable
class RestGateway(Protocol):
    """Interface to the network REST gateway."""

    def get(self, path: str) -> Dict[str, Any]:
        ...

    def post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        ...


def hits_of(page: Mapping[str, Any]) -> List[Mapping[str, Any]]:
    """Return the `_source` documents of a search response page."""
    hits = page.get("hits", {}).get("hits", [])
    return [hit.get("_source", {}) for hit in hits]
