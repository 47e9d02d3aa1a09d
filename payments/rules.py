"""
rules.py - Transaction Resolution Rules

Pure functions that compute what a transaction does to a client:

    (ClientState, transaction) -> ClientUpdate

No function here mutates state. The engine applies the returned update in
one step. A rule that finds nothing to do returns an IGNORED update; domain
problems (unknown transaction, locked account, ...) are never exceptions.

Retroactive backfill:
    A withdrawal that fails because an open dispute holds part of the funds
    is kept as RejectedActivity together with a snapshot of the open
    disputes. When one of those disputes is resolved, compute_backfill()
    pays the deferred withdrawals it can afford, in rejection order.
"""

from __future__ import annotations
from typing import Callable, Dict, Optional, Tuple

from .core import (
    Chargeback, ClientState, ClientUpdate, Deposit, Dispute,
    LedgerError, MonetaryAmount, RejectedActivity, Resolve, Transaction,
    TransactionHistory, TransactionId, TransactionKind, TransactionOutcome,
    Withdrawal, ZERO,
)


def _disputable_deposit(history: TransactionHistory, tx: TransactionId) -> Optional[Deposit]:
    """Return the recorded deposit for `tx`, or None if absent or a withdrawal."""
    activity = history.account_activity.get(tx)
    if isinstance(activity, Deposit):
        return activity
    return None


# ============================================================================
# ACCOUNT ACTIVITY
# ============================================================================

def compute_deposit(state: ClientState, deposit: Deposit) -> ClientUpdate:
    """Credit available and total funds and record the deposit."""
    if state.is_locked:
        return ClientUpdate.ignored(deposit.client, "account locked")
    return ClientUpdate(
        client=deposit.client,
        outcome=TransactionOutcome.APPLIED,
        available=deposit.amount,
        total=deposit.amount,
        record=(deposit,),
    )


def compute_withdrawal(state: ClientState, withdrawal: Withdrawal) -> ClientUpdate:
    """
    Debit available and total funds, defer, or drop the withdrawal.

    - Dropped when no future resolve could make it payable: available funds
      are short and nothing is disputed, or total funds are short.
    - Deferred when available funds are short but a dispute is open; the
      open disputes are snapshotted for compute_backfill().
    - Applied otherwise.
    """
    if state.is_locked:
        return ClientUpdate.ignored(withdrawal.client, "account locked")

    amount = withdrawal.amount
    disputed = state.history.disputed_txs
    short = state.available < amount

    if (short and not disputed) or state.total < amount:
        return ClientUpdate.ignored(withdrawal.client, "insufficient funds")

    if short:
        rejected = RejectedActivity(
            activity=withdrawal,
            disputed_transaction_snapshot=frozenset(disputed),
        )
        return ClientUpdate(
            client=withdrawal.client,
            outcome=TransactionOutcome.DEFERRED,
            rejected=rejected,
            reason="insufficient available funds while disputes are open",
        )

    return ClientUpdate(
        client=withdrawal.client,
        outcome=TransactionOutcome.APPLIED,
        available=-amount,
        total=-amount,
        record=(withdrawal,),
    )


# ============================================================================
# DISPUTE MANAGEMENT
# ============================================================================

def compute_dispute(state: ClientState, dispute: Dispute) -> ClientUpdate:
    """Move a deposit's amount from available to held funds."""
    if state.is_locked:
        return ClientUpdate.ignored(dispute.client, "account locked")
    if dispute.tx in state.history.disputed_txs:
        return ClientUpdate.ignored(dispute.client, "transaction already disputed")
    # Withdrawals already left the account and cannot be held back.
    deposit = _disputable_deposit(state.history, dispute.tx)
    if deposit is None:
        return ClientUpdate.ignored(dispute.client, "no disputable deposit")
    return ClientUpdate(
        client=dispute.client,
        outcome=TransactionOutcome.APPLIED,
        available=-deposit.amount,
        held=deposit.amount,
        open_dispute=dispute.tx,
    )


def compute_backfill(
    history: TransactionHistory,
    resolved_tx: TransactionId,
    available: MonetaryAmount,
) -> Tuple[Withdrawal, ...]:
    """
    Select deferred withdrawals that a resolve makes payable.

    Walks rejected_txs once, in rejection order. A withdrawal is paid when
    `resolved_tx` was under dispute at the time it was rejected and its
    amount fits in what is still available. Paid amounts reduce the
    available funds seen by later entries.

    Args:
        history: Client history before the resolve is applied
        resolved_tx: The deposit whose dispute was just resolved
        available: Available funds after releasing the resolved deposit

    Returns:
        The withdrawals to pay, in order.
    """
    remaining = available
    paid = []
    for rejected in history.rejected_txs:
        if resolved_tx not in rejected.disputed_transaction_snapshot:
            continue
        amount = rejected.activity.amount
        if amount <= remaining:
            remaining = remaining - amount
            paid.append(rejected.activity)
    return tuple(paid)


def compute_resolve(state: ClientState, resolve: Resolve) -> ClientUpdate:
    """Release a disputed deposit back to available funds, then backfill."""
    if state.is_locked:
        return ClientUpdate.ignored(resolve.client, "account locked")
    if resolve.tx not in state.history.disputed_txs:
        return ClientUpdate.ignored(resolve.client, "transaction not disputed")
    deposit = _disputable_deposit(state.history, resolve.tx)
    if deposit is None:
        return ClientUpdate.ignored(resolve.client, "no disputable deposit")

    released = state.available + deposit.amount
    paid = compute_backfill(state.history, resolve.tx, released)
    paid_total = sum((w.amount for w in paid), ZERO)

    return ClientUpdate(
        client=resolve.client,
        outcome=TransactionOutcome.APPLIED,
        available=deposit.amount - paid_total,
        held=-deposit.amount,
        total=-paid_total,
        record=paid,
        close_dispute=resolve.tx,
        backfilled=tuple(w.tx for w in paid),
    )


def compute_chargeback(state: ClientState, chargeback: Chargeback) -> ClientUpdate:
    """Remove a disputed deposit's held funds and lock the account."""
    if state.is_locked:
        return ClientUpdate.ignored(chargeback.client, "account locked")
    if chargeback.tx not in state.history.disputed_txs:
        return ClientUpdate.ignored(chargeback.client, "transaction not disputed")
    deposit = _disputable_deposit(state.history, chargeback.tx)
    if deposit is None:
        return ClientUpdate.ignored(chargeback.client, "no disputable deposit")
    # Available funds were already reduced when the dispute opened.
    return ClientUpdate(
        client=chargeback.client,
        outcome=TransactionOutcome.APPLIED,
        held=-deposit.amount,
        total=-deposit.amount,
        lock=True,
    )


# ============================================================================
# RULE REGISTRY
# ============================================================================

Rule = Callable[[ClientState, Transaction], ClientUpdate]

DEFAULT_RULES: Dict[TransactionKind, Rule] = {
    TransactionKind.DEPOSIT: compute_deposit,
    TransactionKind.WITHDRAWAL: compute_withdrawal,
    TransactionKind.DISPUTE: compute_dispute,
    TransactionKind.RESOLVE: compute_resolve,
    TransactionKind.CHARGEBACK: compute_chargeback,
}


def resolve_transaction(state: ClientState, transaction: Transaction) -> ClientUpdate:
    """
    Compute the update for any transaction kind.

    Raises:
        LedgerError: If the object is not one of the five transaction records.
    """
    rule = DEFAULT_RULES.get(getattr(transaction, "kind", None))
    if rule is None:
        raise LedgerError(f"Unsupported transaction: {transaction!r}")
    return rule(state, transaction)
