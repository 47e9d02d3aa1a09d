"""
engine.py - Transaction Replay Engine

PaymentsEngine is the only object that mutates client state. It folds an
ordered transaction stream, left to right, into a mapping of client id to
ClientState:

    1. Look up the client's state (default state on first reference)
    2. Ask the pure rule for a ClientUpdate
    3. Apply the update in one step
    4. Check total == available + held
    5. Log the outcome

build_ledger() wraps a fresh engine per call and is the public entry point.

Thread Safety:
    Not thread-safe. Transactions must be applied in input order because
    dispute and backfill eligibility depend on it.
"""

from __future__ import annotations
from collections import Counter
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union
import sys

from .core import (
    ClientId, ClientLedger, ClientState, ClientUpdate, InvariantViolation,
    Ledger, LedgerError, Transaction, TransactionOutcome,
)
from .rules import resolve_transaction


class PaymentsEngine:
    """
    Sequential fold of transactions into per-client state.

    Example:
        engine = PaymentsEngine()
        engine.apply(Deposit(1, 1, "5.0"))
        engine.apply(Withdrawal(1, 2, "3.0"))
        engine.ledger().get(1).available   # MonetaryAmount(2.0)
    """

    def __init__(
        self,
        initial_state: Optional[Mapping[ClientId, ClientState]] = None,
        verbose: bool = False,
        check_invariants: bool = True,
        record_outcomes: bool = True,
    ):
        """
        Create an engine.

        Args:
            initial_state: Starting client states. Copied; never mutated.
            verbose: Print a diagnostic line to stderr for every transaction
                     that is not applied, and for every backfill
            check_invariants: Raise InvariantViolation if a transition leaves
                              total != available + held
            record_outcomes: Keep every (transaction, update) pair in
                             outcome_log. summary() counts either way
        """
        self.accounts: Dict[ClientId, ClientState] = {}
        for client, state in (initial_state or {}).items():
            if not isinstance(client, ClientId):
                client = ClientId(client)
            self.accounts[client] = state.copy()
        self.verbose = verbose
        self.check_invariants = check_invariants
        self.record_outcomes = record_outcomes
        self.outcome_log: List[Tuple[Transaction, ClientUpdate]] = []
        self._outcome_counts: Counter = Counter()

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_state(self, client: Union[ClientId, int]) -> ClientState:
        """
        Return the live state of a client.

        Returns a fresh default state (not stored) for unknown clients.
        """
        if not isinstance(client, ClientId):
            client = ClientId(client)
        state = self.accounts.get(client)
        return state if state is not None else ClientState()

    def clients(self) -> List[ClientId]:
        """Clients seen so far, sorted by id."""
        return sorted(self.accounts)

    def ledger(self) -> Ledger:
        """Project every client state into a public ledger row."""
        return Ledger(rows=tuple(
            ClientLedger.from_state(client, self.accounts[client])
            for client in self.clients()
        ))

    def summary(self) -> Dict[str, int]:
        """Count of transactions per outcome."""
        return {outcome.value: self._outcome_counts[outcome] for outcome in TransactionOutcome}

    # ========================================================================
    # TRANSACTION PROCESSING (Mutating)
    # ========================================================================

    def apply(self, transaction: Transaction) -> TransactionOutcome:
        """
        Apply a single transaction to its client.

        Domain problems (locked account, unknown transaction, insufficient
        funds) are IGNORED outcomes, not exceptions.

        Returns:
            The TransactionOutcome of the update

        Raises:
            LedgerError: If `transaction` is not a supported record
            PrecisionExceeded: If a balance would need more than 50 digits
            InvariantViolation: If check_invariants is on and the transition
                                breaks total == available + held
        """
        client = getattr(transaction, "client", None)
        if not isinstance(client, ClientId):
            raise LedgerError(f"Unsupported transaction: {transaction!r}")
        state = self.accounts.get(client)
        if state is None:
            state = ClientState()
            self.accounts[client] = state

        update = resolve_transaction(state, transaction)
        if not update.is_noop():
            self._apply_update(state, update)
            if self.check_invariants and not state.check_invariant():
                raise InvariantViolation(
                    f"Client {client}: total {state.total.value} != "
                    f"available {state.available.value} + held {state.held.value} "
                    f"after {transaction!r}"
                )

        self._outcome_counts[update.outcome] += 1
        if self.record_outcomes:
            self.outcome_log.append((transaction, update))
        if self.verbose:
            self._print_outcome(transaction, update)
        return update.outcome

    def apply_all(self, transactions: Iterable[Transaction]) -> None:
        """Apply transactions in iteration order."""
        for transaction in transactions:
            self.apply(transaction)

    def _apply_update(self, state: ClientState, update: ClientUpdate) -> None:
        """Write a ClientUpdate into the client's state."""
        history = state.history

        # All three sums first: PrecisionExceeded must leave the state untouched.
        available = state.available + update.available
        held = state.held + update.held
        total = state.total + update.total
        state.available, state.held, state.total = available, held, total

        for activity in update.record:
            if activity.tx in update.backfilled:
                # Never shadow an earlier record that reused the same id.
                history.account_activity.setdefault(activity.tx, activity)
            else:
                history.account_activity[activity.tx] = activity
        if update.open_dispute is not None:
            history.disputed_txs.add(update.open_dispute)
        if update.close_dispute is not None:
            history.disputed_txs.discard(update.close_dispute)
        if update.rejected is not None:
            history.rejected_txs.append(update.rejected)
        for tx in update.backfilled:
            for index, rejected in enumerate(history.rejected_txs):
                if rejected.activity.tx == tx:
                    del history.rejected_txs[index]
                    break
        if update.lock:
            state.is_locked = True

    def _print_outcome(self, transaction: Transaction, update: ClientUpdate) -> None:
        if update.outcome == TransactionOutcome.IGNORED:
            print(f"✗ IGNORED: {transaction!r}: {update.reason}", file=sys.stderr)
        elif update.outcome == TransactionOutcome.DEFERRED:
            print(f"⚠️  DEFERRED: {transaction!r}: {update.reason}", file=sys.stderr)
        for activity in update.record:
            if activity.tx in update.backfilled:
                print(f"✓ BACKFILLED: {activity!r} after {transaction!r}", file=sys.stderr)


def build_ledger(
    initial_state: Optional[Mapping[ClientId, ClientState]] = None,
    transactions: Iterable[Transaction] = (),
    verbose: bool = False,
) -> Ledger:
    """
    Replay a transaction stream and return the final ledger.

    Pure with respect to its inputs: the same stream always produces the
    same ledger, and `initial_state` is not modified.

    Args:
        initial_state: Starting client states (default: no clients)
        transactions: Ordered, finite transaction stream
        verbose: Print diagnostics for transactions that are not applied

    Returns:
        One ClientLedger row per client in the initial state or the stream
    """
    engine = PaymentsEngine(initial_state, verbose=verbose, record_outcomes=False)
    engine.apply_all(transactions)
    return engine.ledger()
