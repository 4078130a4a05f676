"""
config.py - Configuration for the stake-ledger replay

All addresses, thresholds and correction constants the engine needs are
collected here and passed into the components at construction time.

The on-disk form is a YAML file; every key is optional and falls back to the
mainnet defaults below:

    general:
      elastic_database_address: http://localhost:9200
      api_url: https://gateway.elrond.com
      genesis_time: 1596117600
    contracts:
      delegation_legacy: erd1qqq...
    replay:
      manager_discovery_epoch: 239
    reconciliation:
      start_epoch: 239
      corrections: {non_zero: 0, b01: 0, b1: 0, b10: 0, b100: 0, b1k: 0}
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from .core import ConfigError, DENOMINATION, METACHAIN_SHARD_ID


DEFAULT_DELEGATION_LEGACY_ADDRESS = "erd1qqqqqqqqqqqqqpgqxwakt2g7u9atsnr03gqcgmhcv38pt7mkd94q6shuwt"
DEFAULT_STAKING_ADDRESS = "erd1qqqqqqqqqqqqqqqpqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqplllst77y4l"
DEFAULT_DELEGATION_MANAGER_ADDRESS = "erd1qqqqqqqqqqqqqqqpqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqylllslmq6y6"

# Tier names in bucket order, paired with their default lower bound.
TIER_NAMES = ("b01", "b1", "b10", "b100", "b1k")
DEFAULT_TIER_THRESHOLDS = (
    DENOMINATION // 10,
    DENOMINATION,
    10 * DENOMINATION,
    100 * DENOMINATION,
    1000 * DENOMINATION,
)


def _as_int(value: Any, name: str) -> int:
    try:
        return int(str(value), 10)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{name}' must be an integer, got {value!r}") from exc


def _as_non_negative(value: Any, name: str) -> int:
    parsed = _as_int(value, name)
    if parsed < 0:
        raise ConfigError(f"'{name}' must be non-negative, got {parsed}")
    return parsed


# ============================================================================
# SECTIONS
# ============================================================================

@dataclass(frozen=True, slots=True)
class GeneralConfig:
    """Transport endpoints and process-level settings."""
    elastic_database_address: str = "http://localhost:9200"
    username: str = ""
    password: str = ""
    api_url: str = "https://gateway.elrond.com"
    genesis_time: Optional[int] = None
    log_level: str = "INFO"
    request_timeout: float = 300.0


@dataclass(frozen=True, slots=True)
class IndexConfig:
    transactions: str = "transactions"
    accounts_history: str = "accountshistory"


@dataclass(frozen=True, slots=True)
class ContractsConfig:
    delegation_legacy: str = DEFAULT_DELEGATION_LEGACY_ADDRESS
    staking: str = DEFAULT_STAKING_ADDRESS
    delegation_manager: str = DEFAULT_DELEGATION_MANAGER_ADDRESS


@dataclass(frozen=True, slots=True)
class ReplayConfig:
    """
    Replay behaviour.

    Attributes:
        manager_discovery_epoch: First epoch at which delegation-manager
            contracts are discovered and replayed
        genesis_unit_stake: Stake credited per initial validating node
        sentinel_sender: Reserved sender id of system transactions
        legacy_delegation_baseline: External baseline added to the computed
            legacy no-rewards balance to form the active legacy figure
        rollback_failed_epochs: Restore the pre-epoch replay state when an
            epoch fails instead of keeping its partial effects
    """
    manager_discovery_epoch: int = 239
    genesis_unit_stake: int = 2500 * DENOMINATION
    sentinel_sender: str = METACHAIN_SHARD_ID
    legacy_delegation_baseline: int = 0
    rollback_failed_epochs: bool = True


@dataclass(frozen=True, slots=True)
class ReconciliationConfig:
    """
    Point corrections subtracted from the bucket counters from start_epoch on.

    The values compensate for an externally verified event the replay cannot
    observe. They are opaque and versioned; regenerate them only from the
    source that produced them.
    """
    start_epoch: int = 239
    version: str = "unset"
    non_zero: int = 0
    b01: int = 0
    b1: int = 0
    b10: int = 0
    b100: int = 0
    b1k: int = 0

    def as_tuple(self) -> Tuple[int, int, int, int, int, int]:
        return (self.non_zero, self.b01, self.b1, self.b10, self.b100, self.b1k)


# ============================================================================
# ROOT CONFIG
# ============================================================================

@dataclass(frozen=True, slots=True)
class StakeConfig:
    """Complete configuration of a statistics run."""
    general: GeneralConfig = field(default_factory=GeneralConfig)
    indices: IndexConfig = field(default_factory=IndexConfig)
    contracts: ContractsConfig = field(default_factory=ContractsConfig)
    replay: ReplayConfig = field(default_factory=ReplayConfig)
    tier_thresholds: Tuple[int, ...] = DEFAULT_TIER_THRESHOLDS
    reconciliation: ReconciliationConfig = field(default_factory=ReconciliationConfig)
    checkpoint_folder: Path = Path("balances")

    @classmethod
    def from_file(cls, path: Path | str) -> StakeConfig:
        """
        Load configuration from a YAML file.

        Raises:
            ConfigError: If the file cannot be read or holds invalid values
        """
        try:
            data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Cannot load config {path}: {exc}") from exc
        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StakeConfig:
        general = data.get("general", {}) or {}
        indices = data.get("indices", {}) or {}
        contracts = data.get("contracts", {}) or {}
        replay = data.get("replay", {}) or {}
        reconciliation = data.get("reconciliation", {}) or {}
        corrections = reconciliation.get("corrections", {}) or {}
        tiers = data.get("tiers")
        general_defaults = GeneralConfig()
        index_defaults = IndexConfig()

        genesis_time = general.get("genesis_time")
        if genesis_time is not None:
            genesis_time = _as_non_negative(genesis_time, "general.genesis_time")

        if tiers is None:
            thresholds = DEFAULT_TIER_THRESHOLDS
        else:
            thresholds = tuple(_as_non_negative(t, "tiers") for t in tiers)
            if len(thresholds) != len(TIER_NAMES):
                raise ConfigError(f"'tiers' needs {len(TIER_NAMES)} thresholds, got {len(thresholds)}")
            if any(low >= high for low, high in zip(thresholds, thresholds[1:])):
                raise ConfigError("'tiers' thresholds must be strictly ascending")
            if thresholds[0] == 0:
                raise ConfigError("'tiers' thresholds must be positive")

        return cls(
            general=GeneralConfig(
                elastic_database_address=general.get("elastic_database_address", general_defaults.elastic_database_address),
                username=general.get("username", "") or "",
                password=general.get("password", "") or "",
                api_url=general.get("api_url", general_defaults.api_url),
                genesis_time=genesis_time,
                log_level=str(general.get("log_level", "INFO")).upper(),
                request_timeout=float(general.get("request_timeout", general_defaults.request_timeout)),
            ),
            indices=IndexConfig(
                transactions=indices.get("transactions", index_defaults.transactions),
                accounts_history=indices.get("accounts_history", index_defaults.accounts_history),
            ),
            contracts=ContractsConfig(
                delegation_legacy=contracts.get("delegation_legacy", DEFAULT_DELEGATION_LEGACY_ADDRESS),
                staking=contracts.get("staking", DEFAULT_STAKING_ADDRESS),
                delegation_manager=contracts.get("delegation_manager", DEFAULT_DELEGATION_MANAGER_ADDRESS),
            ),
            replay=ReplayConfig(
                manager_discovery_epoch=_as_non_negative(
                    replay.get("manager_discovery_epoch", 239), "replay.manager_discovery_epoch"),
                genesis_unit_stake=_as_non_negative(
                    replay.get("genesis_unit_stake", 2500 * DENOMINATION), "replay.genesis_unit_stake"),
                sentinel_sender=str(replay.get("sentinel_sender", METACHAIN_SHARD_ID)),
                legacy_delegation_baseline=_as_int(
                    replay.get("legacy_delegation_baseline", 0), "replay.legacy_delegation_baseline"),
                rollback_failed_epochs=bool(replay.get("rollback_failed_epochs", True)),
            ),
            tier_thresholds=thresholds,
            reconciliation=ReconciliationConfig(
                start_epoch=_as_non_negative(reconciliation.get("start_epoch", 239), "reconciliation.start_epoch"),
                version=str(reconciliation.get("version", "unset")),
                **{
                    name: _as_non_negative(corrections.get(name, 0), f"reconciliation.corrections.{name}")
                    for name in ("non_zero",) + TIER_NAMES
                },
            ),
            checkpoint_folder=Path(data.get("checkpoint_folder", "balances")),
        )

    def tier_table(self) -> Dict[str, int]:
        """Tier name -> lower bound."""
        return dict(zip(TIER_NAMES, self.tier_thresholds))
