"""
payments - Transaction Replay Ledger

Replays an ordered stream of deposits, withdrawals, disputes, resolves and
chargebacks into final per-client balances.

Usage:
    from payments import build_ledger, Deposit, Withdrawal, Dispute, Resolve

    ledger = build_ledger(transactions=[
        Deposit(1, 1, "250.0"),
        Deposit(1, 2, "10.0"),
        Dispute(1, 2),
        Withdrawal(1, 3, "255.0"),   # deferred: 250 available, dispute open
        Resolve(1, 2),               # releases 10, then pays the withdrawal
    ])
    row = ledger.get(1)
    row.available.to_fixed()         # "5.0000"

From the command line:
    python -m payments transactions.csv
"""

# Core types
from .core import (
    MonetaryAmount,
    ClientId,
    TransactionId,
    TransactionKind,
    TransactionOutcome,
    Deposit,
    Withdrawal,
    Dispute,
    Resolve,
    Chargeback,
    AccountActivity,
    DisputeAction,
    Transaction,
    RejectedActivity,
    TransactionHistory,
    ClientState,
    ClientUpdate,
    ClientLedger,
    Ledger,
    LedgerError,
    InputDecodeError,
    InvariantViolation,
    PrecisionExceeded,
    ZERO,
    OUTPUT_DECIMAL_PLACES,
    CLIENT_ID_MAX,
    TRANSACTION_ID_MAX,
    AMOUNT_MAX,
    AMOUNT_MAX_SCALE,
)

# Resolution rules
from .rules import (
    compute_deposit,
    compute_withdrawal,
    compute_dispute,
    compute_resolve,
    compute_chargeback,
    compute_backfill,
    resolve_transaction,
    DEFAULT_RULES,
)

# Engine
from .engine import PaymentsEngine, build_ledger

# CSV input/output
from .codec import (
    decode_row,
    read_transactions,
    load_transactions,
    write_ledger,
    encode_ledger,
)

from .cli import process_payments, main

__all__ = [
    # Core
    'MonetaryAmount', 'ClientId', 'TransactionId',
    'TransactionKind', 'TransactionOutcome',
    'Deposit', 'Withdrawal', 'Dispute', 'Resolve', 'Chargeback',
    'AccountActivity', 'DisputeAction', 'Transaction',
    'RejectedActivity', 'TransactionHistory', 'ClientState', 'ClientUpdate',
    'ClientLedger', 'Ledger',
    'LedgerError', 'InputDecodeError', 'InvariantViolation', 'PrecisionExceeded',
    'ZERO', 'OUTPUT_DECIMAL_PLACES', 'CLIENT_ID_MAX', 'TRANSACTION_ID_MAX',
    'AMOUNT_MAX', 'AMOUNT_MAX_SCALE',
    # Rules
    'compute_deposit', 'compute_withdrawal', 'compute_dispute',
    'compute_resolve', 'compute_chargeback', 'compute_backfill',
    'resolve_transaction', 'DEFAULT_RULES',
    # Engine
    'PaymentsEngine', 'build_ledger',
    # Codec
    'decode_row', 'read_transactions', 'load_transactions',
    'write_ledger', 'encode_ledger',
    # CLI
    'process_payments', 'main',
]
