"""
genesis.py - Initial ledgers from the genesis files

Reads the two genesis files once:
- genesis.json: [{"address": ..., "delegation": {"value": ...}}, ...]
- nodesSetup.json: {"initialNodes": [{"address": ...}, ...]}

and builds the legacy-delegation and staking seeds the engine starts from.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import json
from types import MappingProxyType
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Set

from .core import BalanceMap, GenesisLoadError

GENESIS_FILE = "genesis.json"
NODES_SETUP_FILE = "nodesSetup.json"


@dataclass(frozen=True)
class GenesisSeed:
    """
    Immutable genesis snapshot.

    Attributes:
        delegation_legacy: Depositors with a non-zero legacy delegation
        staking: Node owners, credited unit_stake per owned node
        addresses: Every address known at genesis (accounts and node owners)
    """
    delegation_legacy: Mapping[str, int] = field(default_factory=dict)
    staking: Mapping[str, int] = field(default_factory=dict)
    addresses: FrozenSet[str] = frozenset()


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise GenesisLoadError(f"Cannot read {path}: {exc}") from exc
    except ValueError as exc:
        raise GenesisLoadError(f"Malformed JSON in {path}: {exc}") from exc


def _read_accounts(folder: Path) -> List[Dict[str, Any]]:
    accounts = _read_json(folder / GENESIS_FILE)
    if not isinstance(accounts, list):
        raise GenesisLoadError(f"{GENESIS_FILE} must hold a list of accounts")
    for account in accounts:
        if not isinstance(account, dict) or not account.get("address"):
            raise GenesisLoadError(f"{GENESIS_FILE}: account without address: {account!r}")
    return accounts


def _delegation_value(account: Dict[str, Any]) -> int:
    delegation = account.get("delegation") or {}
    if not isinstance(delegation, dict):
        raise GenesisLoadError(f"{GENESIS_FILE}: malformed delegation for {account['address']}: {delegation!r}")
    raw = delegation.get("value", "0")
    try:
        value = int(str(raw), 10)
    except ValueError as exc:
        raise GenesisLoadError(f"{GENESIS_FILE}: malformed delegation value {raw!r} for {account['address']}") from exc
    if value < 0:
        raise GenesisLoadError(f"{GENESIS_FILE}: negative delegation value {value} for {account['address']}")
    return value


def _read_node_owners(folder: Path) -> List[str]:
    setup = _read_json(folder / NODES_SETUP_FILE)
    if not isinstance(setup, dict) or not isinstance(setup.get("initialNodes"), list):
        raise GenesisLoadError(f"{NODES_SETUP_FILE} must hold an 'initialNodes' list")
    owners = []
    for node in setup["initialNodes"]:
        if not isinstance(node, dict) or not node.get("address"):
            raise GenesisLoadError(f"{NODES_SETUP_FILE}: node without address: {node!r}")
        owners.append(node["address"])
    return owners


def load_genesis(folder: Path | str, unit_stake: int) -> GenesisSeed:
    """
    Load the genesis seed from folder.

    Args:
        folder: Directory holding genesis.json and nodesSetup.json
        unit_stake: Stake credited per initial node

    Raises:
        GenesisLoadError: If either file is missing or malformed
    """
    folder = Path(folder)
    accounts = _read_accounts(folder)
    owners = _read_node_owners(folder)

    legacy: BalanceMap = {}
    for account in accounts:
        value = _delegation_value(account)
        if value != 0:
            legacy[account["address"]] = value

    staking: BalanceMap = {}
    for owner in owners:
        staking[owner] = staking.get(owner, 0) + unit_stake

    addresses = {account["address"] for account in accounts} | set(owners)
    return GenesisSeed(
        delegation_legacy=MappingProxyType(legacy),
        staking=MappingProxyType(staking),
        addresses=frozenset(addresses),
    )


def genesis_known_addresses(seed: GenesisSeed, system_addresses: Iterable[str] = ()) -> Set[str]:
    """Addresses that never count as new: genesis accounts plus the system contracts."""
    return set(seed.addresses) | set(system_addresses)
