"""
handlers.py - Transaction transition handlers

Plain functions that apply one replayed transaction to the replay state.
Each contract domain has an ordered dispatch table of (matcher, handler)
pairs; the first matcher accepting the payload wins.

Ledger misses and overdraws never propagate out of a handler: they are
recorded as anomalies on the state and the step is skipped. Malformed
payloads raise DecodeError, which the engine records per transaction.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional, Tuple

from .core import DecodeError, LedgerDriftError, Transaction, decode_hex_argument
from .ledger import BalanceLedger

if TYPE_CHECKING:
    from .replay import ReplayState

logger = logging.getLogger(__name__)

CLAIM_REWARDS_MEMO = "delegation rewards claim"
CREATE_DELEGATION_CONTRACT_PREFIX = "createNewDelegationContract@"

# Staking-contract calls that never reach a handler.
STAKING_IGNORED_PREFIXES = ("changeRewardAddress", "unStake")


@dataclass(frozen=True, slots=True)
class HandlerContext:
    """Per-epoch facts a handler may need besides the transaction."""
    epoch: int
    staking_address: str


Handler = Callable[[Transaction, "ReplayState", HandlerContext], None]
Matcher = Callable[[str], bool]
DispatchTable = Tuple[Tuple[Matcher, Handler], ...]


def equals(method: str) -> Matcher:
    return lambda data: data == method


def startswith(prefix: str) -> Matcher:
    return lambda data: data.startswith(prefix)


def dispatch(table: DispatchTable, tx: Transaction) -> Optional[Handler]:
    """First handler whose matcher accepts the payload, or None."""
    for matcher, handler in table:
        if matcher(tx.data):
            return handler
    return None


# ============================================================================
# LEDGER HELPERS
# ============================================================================

def _credit(
    state: ReplayState,
    ledger: BalanceLedger,
    tx: Transaction,
    amount: int,
    ctx: HandlerContext,
    kind: str,
    must_exist: bool = False,
) -> None:
    try:
        ledger.credit(tx.sender, amount, must_exist=must_exist)
    except LedgerDriftError as exc:
        state.record_anomaly(ctx.epoch, kind, tx.sender, str(exc))


def _debit(
    state: ReplayState,
    ledger: BalanceLedger,
    tx: Transaction,
    amount: int,
    ctx: HandlerContext,
    kind: str,
) -> None:
    try:
        ledger.debit(tx.sender, amount)
    except LedgerDriftError as exc:
        state.record_anomaly(ctx.epoch, kind, tx.sender, str(exc))


# ============================================================================
# LEGACY DELEGATION CONTRACT
# ============================================================================

def handle_legacy_stake(tx: Transaction, state: ReplayState, ctx: HandlerContext) -> None:
    """Deposit into the legacy pool."""
    _credit(state, state.delegation_legacy, tx, tx.amount, ctx, "legacy_stake")


def handle_legacy_unstake(tx: Transaction, state: ReplayState, ctx: HandlerContext) -> None:
    """
    Withdraw the hex-encoded amount from the sender's legacy deposit.

    An overdraw removes the entry and is recorded, so the ledger never holds
    a negative amount.
    """
    arguments = tx.arguments
    if not arguments:
        raise DecodeError(f"'{tx.data}' carries no amount")
    amount = decode_hex_argument(arguments[0])
    _debit(state, state.delegation_legacy, tx, amount, ctx, "legacy_unstake")


def handle_legacy_unbond(tx: Transaction, state: ReplayState, ctx: HandlerContext) -> None:
    """Drop a zeroed legacy entry. An untracked sender is recorded and skipped."""
    if tx.sender not in state.delegation_legacy:
        state.record_anomaly(ctx.epoch, "legacy_unbond", tx.sender, "delegationLegacyUsers: no entry to unbond")
        return
    state.delegation_legacy.prune(tx.sender)


def handle_claim_rewards(tx: Transaction, state: ReplayState, ctx: HandlerContext) -> None:
    scr = tx.find_scr(lambda result: result.data == CLAIM_REWARDS_MEMO)
    if scr is not None:
        state.claimed_rewards += scr.amount


LEGACY_HANDLERS: DispatchTable = (
    (equals("stake"), handle_legacy_stake),
    (startswith("unStake"), handle_legacy_unstake),
    (equals("unBond"), handle_legacy_unbond),
    (equals("claimRewards"), handle_claim_rewards),
)


# ============================================================================
# STAKING CONTRACT
# ============================================================================

def handle_unjail(tx: Transaction, state: ReplayState, ctx: HandlerContext) -> None:
    state.accumulated_unjail += tx.amount


def handle_staking_stake(tx: Transaction, state: ReplayState, ctx: HandlerContext) -> None:
    _credit(state, state.staking, tx, tx.amount, ctx, "staking_stake")


def handle_staking_unbond(tx: Transaction, state: ReplayState, ctx: HandlerContext) -> None:
    """Debit the amount the contract paid back to the sender."""
    scr = tx.find_scr(lambda result: result.receiver == tx.sender)
    if scr is None:
        logger.debug("epoch %d: '%s' from %s returned no value", ctx.epoch, tx.method, tx.sender)
        return
    _debit(state, state.staking, tx, scr.amount, ctx, "staking_unbond")


STAKING_HANDLERS: DispatchTable = (
    (startswith("unJail"), handle_unjail),
    (startswith("stake"), handle_staking_stake),
    (startswith("unBond"), handle_staking_unbond),
    (equals("claim"), handle_staking_unbond),
)


# ============================================================================
# DELEGATION MANAGER CONTRACTS
# ============================================================================
# delegate/withdraw/reDelegateRewards move the same amount in stakingUsers
# and delegatorDelegationManager; each ledger is updated independently so a
# miss in one does not skip the other.

def handle_manager_delegate(tx: Transaction, state: ReplayState, ctx: HandlerContext) -> None:
    for ledger in (state.staking, state.delegation_manager):
        _credit(state, ledger, tx, tx.amount, ctx, "manager_delegate")


def handle_manager_withdraw(tx: Transaction, state: ReplayState, ctx: HandlerContext) -> None:
    scr = tx.find_scr(lambda result: result.receiver == tx.sender)
    if scr is None:
        logger.debug("epoch %d: withdraw from %s returned no value", ctx.epoch, tx.sender)
        return
    for ledger in (state.staking, state.delegation_manager):
        _debit(state, ledger, tx, scr.amount, ctx, "manager_withdraw")


def handle_manager_redelegate(tx: Transaction, state: ReplayState, ctx: HandlerContext) -> None:
    """Rewards restaked through the staking contract; the delegator must already be known."""
    scr = tx.find_scr(lambda result: result.receiver == ctx.staking_address)
    if scr is None:
        logger.debug("epoch %d: reDelegateRewards from %s restaked nothing", ctx.epoch, tx.sender)
        return
    for ledger in (state.staking, state.delegation_manager):
        _credit(state, ledger, tx, scr.amount, ctx, "manager_redelegate", must_exist=True)


MANAGER_HANDLERS: DispatchTable = (
    (equals("delegate"), handle_manager_delegate),
    (equals("withdraw"), handle_manager_withdraw),
    (equals("reDelegateRewards"), handle_manager_redelegate),
)

# Calls to the manager itself: creating a delegation contract stakes the call value.
MANAGER_CREATOR_HANDLERS: DispatchTable = (
    (startswith(CREATE_DELEGATION_CONTRACT_PREFIX), handle_manager_delegate),
)
