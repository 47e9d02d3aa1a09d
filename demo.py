#!/usr/bin/env python3
"""
demo.py - Walkthrough: Disputes and Retroactive Backfill

Each step replays a short transaction stream and prints the resulting
balances. Press Enter to advance.

WHAT YOU'LL SEE:
  1: Deposits and withdrawals
  2: A withdrawal that can never succeed is dropped
  3: Dispute and resolve
  4: Chargeback locks the account
  5: A deferred withdrawal is backfilled when its dispute resolves
  6: A withdrawal rejected before a dispute stays rejected

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from typing import List
import sys

from payments import (
    PaymentsEngine, Transaction, encode_ledger,
    Deposit, Withdrawal, Dispute, Resolve, Chargeback,
)


QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def replay(transactions: List[Transaction]) -> PaymentsEngine:
    """Apply each transaction, echoing its outcome, then print the ledger."""
    engine = PaymentsEngine()
    for tx in transactions:
        outcome = engine.apply(tx)
        print(f">>> {tx!r:<55} {outcome.value}")
    print()
    print(encode_ledger(engine.ledger()), end="")
    return engine


def step_01_deposit_withdraw():
    step_header(1, "Deposits and Withdrawals",
        "Deposits add to available and total; withdrawals take them away.")
    replay([
        Deposit(1, 1, "5.0"),
        Withdrawal(1, 2, "3.0"),
    ])
    wait_for_enter()


def step_02_dropped_withdrawal():
    step_header(2, "Unrecoverable Withdrawal",
        "With no dispute open, a short withdrawal has no effect at all.")
    replay([
        Deposit(1, 1, "10.0"),
        Withdrawal(1, 2, "20.0"),
    ])
    wait_for_enter()


def step_03_dispute_resolve():
    step_header(3, "Dispute and Resolve",
        "A dispute moves the deposit into held funds; a resolve moves it back.")
    replay([
        Deposit(1, 1, "5.0"),
        Dispute(1, 1),
        Resolve(1, 1),
    ])
    wait_for_enter()


def step_04_chargeback():
    step_header(4, "Chargeback",
        "A chargeback removes held funds and locks the account for good.")
    replay([
        Deposit(1, 1, "5.0"),
        Dispute(1, 1),
        Chargeback(1, 1),
        Deposit(1, 2, "100.0"),
    ])
    wait_for_enter()


def step_05_backfill():
    step_header(5, "Retroactive Backfill",
        "A withdrawal blocked by an open dispute is paid once that dispute resolves.")
    engine = replay([
        Deposit(1, 1, "250.0"),
        Deposit(1, 2, "10.0"),
        Dispute(1, 2),
        Withdrawal(1, 3, "255.0"),
        Resolve(1, 2),
    ])
    print(f"\nRejected withdrawals left: {len(engine.get_state(1).history.rejected_txs)}")
    wait_for_enter()


def step_06_causality():
    step_header(6, "Causality",
        "Only disputes open at rejection time can release a deferred withdrawal.")
    engine = replay([
        Deposit(1, 1, "200.0"),
        Deposit(1, 2, "50.0"),
        Dispute(1, 2),
        Withdrawal(1, 3, "220.0"),
        Dispute(1, 1),
        Resolve(1, 1),
    ])
    print(f"\nOutcome counts: {engine.summary()}")


def main():
    print("Payments ledger walkthrough")
    step_01_deposit_withdraw()
    step_02_dropped_withdrawal()
    step_03_dispute_resolve()
    step_04_chargeback()
    step_05_backfill()
    step_06_causality()


if __name__ == "__main__":
    main()
