"""
conftest.py - Shared pytest fixtures for payments tests

Provides:
- Client state builders (balances with optional disputes/rejections)
- A replay helper returning the final row for one client
- A CSV writer for end-to-end tests
"""

import pytest
from decimal import Decimal
from typing import Iterable, Optional

from payments import (
    ClientId, ClientState, MonetaryAmount, TransactionHistory,
    build_ledger,
)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def amount(value) -> MonetaryAmount:
    return MonetaryAmount(Decimal(str(value)))


def make_state(
    available="0",
    held="0",
    total: Optional[str] = None,
    is_locked: bool = False,
    history: Optional[TransactionHistory] = None,
) -> ClientState:
    """Build a ClientState; total defaults to available + held."""
    avail = amount(available)
    hold = amount(held)
    return ClientState(
        available=avail,
        held=hold,
        total=amount(total) if total is not None else avail + hold,
        is_locked=is_locked,
        history=history or TransactionHistory(),
    )


def row_values(row):
    """(available, held, total, locked) rendered the way the CSV renders them."""
    return (
        row.available.to_fixed(),
        row.held.to_fixed(),
        row.total.to_fixed(),
        row.locked,
    )


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def state_factory():
    """Factory fixture wrapping make_state."""
    return make_state


@pytest.fixture
def replay():
    """
    Replay transactions and return the rendered row of one client.

    Usage:
        replay([Deposit(1, 1, "5.0")])             -> ("5.0000", "0.0000", "5.0000", False)
        replay(txs, client=2, initial={...})
    """
    def _replay(transactions: Iterable, client: int = 1, initial=None):
        ledger = build_ledger(initial_state=initial, transactions=list(transactions))
        row = ledger.get(ClientId(client))
        assert row is not None, f"client {client} missing from ledger"
        return row_values(row)
    return _replay


@pytest.fixture
def csv_file(tmp_path):
    """Write CSV text to a temporary file and return its path."""
    counter = {"n": 0}

    def _write(text: str):
        counter["n"] += 1
        path = tmp_path / f"transactions_{counter['n']}.csv"
        path.write_text(text)
        return path
    return _write
