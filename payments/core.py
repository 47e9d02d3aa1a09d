"""
Core types for the payments ledger.

This module provides the foundational data structures for transaction replay:
1. Monetary primitives: MonetaryAmount, ClientId, TransactionId
2. Immutable transaction records: Deposit, Withdrawal, Dispute, Resolve, Chargeback
3. Per-client state: TransactionHistory, RejectedActivity, ClientState
4. Transition description: ClientUpdate (what a rule wants to change)
5. Public result: ClientLedger rows collected into a Ledger
6. Exceptions: LedgerError and domain-specific error types

Records are frozen. ClientState and TransactionHistory are mutable, but only
the engine mutates them, and only by applying a ClientUpdate.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from decimal import (
    Context, Decimal, Inexact, InvalidOperation, ROUND_HALF_EVEN, getcontext,
)
from enum import Enum
from typing import (
    ClassVar, Dict, FrozenSet, Iterator, List, Optional, Set, Tuple, Union,
)


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Balances are accumulated with Decimal arithmetic. The global context is
# configured once at import so every run adds and subtracts identically.
#
# PRECONDITION: No other code should modify the global Decimal context.
#
_LEDGER_DECIMAL_CONTEXT = getcontext()
_LEDGER_DECIMAL_CONTEXT.prec = 50
_LEDGER_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN

# Balance arithmetic runs in a copy that traps Inexact, so a sum that would
# need rounding raises instead of silently losing digits.
_EXACT_CONTEXT = _LEDGER_DECIMAL_CONTEXT.copy()
_EXACT_CONTEXT.traps[Inexact] = True


# ============================================================================
# CONSTANTS
# ============================================================================

# Fractional digits used when rendering amounts.
OUTPUT_DECIMAL_PLACES = 4

# Identifier ranges (unsigned 16-bit clients, unsigned 32-bit transactions).
CLIENT_ID_MAX = 2 ** 16 - 1
TRANSACTION_ID_MAX = 2 ** 32 - 1

# Amount range: a 96-bit unsigned coefficient with at most 28 fractional
# digits, i.e. at most 28-29 significant digits.
AMOUNT_COEFFICIENT_MAX = 2 ** 96 - 1
AMOUNT_MAX_SCALE = 28
AMOUNT_MAX = Decimal(AMOUNT_COEFFICIENT_MAX)


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class InputDecodeError(LedgerError):
    """Raised when an input record cannot be decoded into a valid transaction."""

    def __init__(self, message: str, line: Optional[int] = None):
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


class InvariantViolation(LedgerError):
    """Raised when a client's total no longer equals available + held."""
    pass


class PrecisionExceeded(LedgerError):
    """Raised when a balance can no longer be represented exactly."""
    pass


# ============================================================================
# MONETARY PRIMITIVES
# ============================================================================

def _to_decimal(value: Union[Decimal, int, float, str]) -> Decimal:
    """
    Convert a raw amount into a finite Decimal.

    Floats go through str() so 5.0 becomes Decimal("5.0") rather than the
    exact binary expansion.

    Raises:
        ValueError: If the value is not a finite decimal number, or lies
            outside the amount range (|value| <= AMOUNT_MAX, at most
            AMOUNT_MAX_SCALE fractional digits).
    """
    if isinstance(value, bool):
        raise ValueError(f"Amount must be numeric, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"Amount is not a decimal number: {value!r}") from None
    else:
        raise ValueError(f"Amount must be Decimal, int, float or str, got {type(value)}")
    if not result.is_finite():
        raise ValueError(f"Amount must be finite, got {value!r}")
    _check_amount_range(result)
    return result


def _check_amount_range(value: Decimal) -> None:
    _, digits, exponent = value.as_tuple()
    if abs(value) > AMOUNT_MAX:
        raise ValueError(f"Amount {value} exceeds the maximum of {AMOUNT_MAX}")
    if exponent < 0:
        if -exponent > AMOUNT_MAX_SCALE:
            raise ValueError(
                f"Amount {value} has more than {AMOUNT_MAX_SCALE} fractional digits"
            )
        coefficient = int("".join(map(str, digits)))
        if coefficient > AMOUNT_COEFFICIENT_MAX:
            raise ValueError(f"Amount {value} has too many significant digits")


@dataclass(frozen=True, slots=True, order=True)
class MonetaryAmount:
    """
    A fixed-precision decimal amount of money.

    Addition and subtraction are exact; rounding happens only when the
    amount is rendered with to_fixed().

    Attributes:
        value: The underlying finite Decimal.
    """
    value: Decimal

    def __post_init__(self):
        object.__setattr__(self, 'value', _to_decimal(self.value))

    @classmethod
    def zero(cls) -> MonetaryAmount:
        return cls(Decimal("0"))

    @classmethod
    def _exact(cls, value: Decimal) -> MonetaryAmount:
        # Results of balance arithmetic may leave the input range; only
        # exactness is enforced here.
        amount = object.__new__(cls)
        object.__setattr__(amount, 'value', value)
        return amount

    def __add__(self, other: MonetaryAmount) -> MonetaryAmount:
        if not isinstance(other, MonetaryAmount):
            return NotImplemented
        try:
            return MonetaryAmount._exact(_EXACT_CONTEXT.add(self.value, other.value))
        except Inexact:
            raise PrecisionExceeded(
                f"{self.value} + {other.value} needs more than {_EXACT_CONTEXT.prec} digits"
            ) from None

    def __sub__(self, other: MonetaryAmount) -> MonetaryAmount:
        if not isinstance(other, MonetaryAmount):
            return NotImplemented
        try:
            return MonetaryAmount._exact(_EXACT_CONTEXT.subtract(self.value, other.value))
        except Inexact:
            raise PrecisionExceeded(
                f"{self.value} - {other.value} needs more than {_EXACT_CONTEXT.prec} digits"
            ) from None

    def __neg__(self) -> MonetaryAmount:
        return MonetaryAmount._exact(self.value.copy_negate())

    def is_zero(self) -> bool:
        return self.value == 0

    def to_fixed(self, places: int = OUTPUT_DECIMAL_PLACES) -> str:
        """Render with exactly `places` fractional digits, e.g. "1.5000"."""
        quantizer = Decimal(10) ** -places
        # Enough digits for the integer part plus `places`, however large.
        digits = max(self.value.adjusted(), 0) + places + 2
        context = Context(prec=max(digits, _LEDGER_DECIMAL_CONTEXT.prec))
        rounded = self.value.quantize(quantizer, rounding=ROUND_HALF_EVEN, context=context)
        if rounded.is_zero():
            rounded = abs(rounded)  # no "-0.0000"
        return format(rounded, 'f')

    def __repr__(self) -> str:
        return f"MonetaryAmount({self.value})"

    def __str__(self) -> str:
        return self.to_fixed()


ZERO = MonetaryAmount(Decimal("0"))


def _check_id(value: int, upper: int, label: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{label} must be int, got {type(value)}")
    if not 0 <= value <= upper:
        raise ValueError(f"{label} {value} outside 0..{upper}")


@dataclass(frozen=True, slots=True, order=True)
class ClientId:
    """Opaque client identifier (unsigned 16-bit range)."""
    value: int

    def __post_init__(self):
        _check_id(self.value, CLIENT_ID_MAX, "ClientId")

    def __repr__(self) -> str:
        return f"ClientId({self.value})"

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True, slots=True, order=True)
class TransactionId:
    """Opaque transaction identifier (unsigned 32-bit range)."""
    value: int

    def __post_init__(self):
        _check_id(self.value, TRANSACTION_ID_MAX, "TransactionId")

    def __repr__(self) -> str:
        return f"TransactionId({self.value})"

    def __str__(self) -> str:
        return str(self.value)


def _coerce(instance, name: str, cls) -> None:
    """Wrap a raw field value in its primitive type on a frozen record."""
    value = getattr(instance, name)
    if not isinstance(value, cls):
        object.__setattr__(instance, name, cls(value))


# ============================================================================
# ENUMS
# ============================================================================

class TransactionKind(Enum):
    """The five transaction kinds accepted by the ledger."""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"


class TransactionOutcome(Enum):
    """
    What happened when a transaction was applied to a client.

    APPLIED: Balances and/or history changed.
    DEFERRED: Withdrawal could not be paid while a dispute is open; it was
              stored as rejected activity and may be backfilled by a resolve.
    IGNORED: Silent no-op (locked account, unknown or ineligible target,
             unrecoverable insufficient funds).
    """
    APPLIED = "applied"
    DEFERRED = "deferred"
    IGNORED = "ignored"


# ============================================================================
# TRANSACTION RECORDS
# ============================================================================
#
# Raw ints/strings/floats are accepted for convenience and wrapped in the
# primitive types in __post_init__. Dispute-type records have no amount
# field, so an amount on a dispute cannot be represented.
#

@dataclass(frozen=True, slots=True)
class Deposit:
    """Credit `amount` to the client's available and total funds."""
    client: ClientId
    tx: TransactionId
    amount: MonetaryAmount
    kind: ClassVar[TransactionKind] = TransactionKind.DEPOSIT

    def __post_init__(self):
        _coerce(self, 'client', ClientId)
        _coerce(self, 'tx', TransactionId)
        _coerce(self, 'amount', MonetaryAmount)

    def __repr__(self) -> str:
        return f"Deposit(client={self.client}, tx={self.tx}, amount={self.amount.value})"


@dataclass(frozen=True, slots=True)
class Withdrawal:
    """
    Debit `amount` from the client's available and total funds.

    May be deferred as rejected activity when available funds are short
    only because of an open dispute.
    """
    client: ClientId
    tx: TransactionId
    amount: MonetaryAmount
    kind: ClassVar[TransactionKind] = TransactionKind.WITHDRAWAL

    def __post_init__(self):
        _coerce(self, 'client', ClientId)
        _coerce(self, 'tx', TransactionId)
        _coerce(self, 'amount', MonetaryAmount)

    def __repr__(self) -> str:
        return f"Withdrawal(client={self.client}, tx={self.tx}, amount={self.amount.value})"


@dataclass(frozen=True, slots=True)
class Dispute:
    """Claim that deposit `tx` should be reversed; holds its amount."""
    client: ClientId
    tx: TransactionId
    kind: ClassVar[TransactionKind] = TransactionKind.DISPUTE

    def __post_init__(self):
        _coerce(self, 'client', ClientId)
        _coerce(self, 'tx', TransactionId)

    def __repr__(self) -> str:
        return f"Dispute(client={self.client}, tx={self.tx})"


@dataclass(frozen=True, slots=True)
class Resolve:
    """Dispute on `tx` found invalid; held funds are released."""
    client: ClientId
    tx: TransactionId
    kind: ClassVar[TransactionKind] = TransactionKind.RESOLVE

    def __post_init__(self):
        _coerce(self, 'client', ClientId)
        _coerce(self, 'tx', TransactionId)

    def __repr__(self) -> str:
        return f"Resolve(client={self.client}, tx={self.tx})"


@dataclass(frozen=True, slots=True)
class Chargeback:
    """Dispute on `tx` upheld; held funds are removed and the account locked."""
    client: ClientId
    tx: TransactionId
    kind: ClassVar[TransactionKind] = TransactionKind.CHARGEBACK

    def __post_init__(self):
        _coerce(self, 'client', ClientId)
        _coerce(self, 'tx', TransactionId)

    def __repr__(self) -> str:
        return f"Chargeback(client={self.client}, tx={self.tx})"


# Completed money movements, looked up by transaction id.
AccountActivity = Union[Deposit, Withdrawal]

# Transactions that reference an earlier deposit by id.
DisputeAction = Union[Dispute, Resolve, Chargeback]

Transaction = Union[Deposit, Withdrawal, Dispute, Resolve, Chargeback]


# ============================================================================
# CLIENT STATE
# ============================================================================

@dataclass(frozen=True, slots=True)
class RejectedActivity:
    """
    A withdrawal that could not be paid while disputes were open.

    Attributes:
        activity: The rejected withdrawal.
        disputed_transaction_snapshot: Transaction ids under dispute at the
            moment of rejection. Only resolving one of these can backfill
            the withdrawal.
    """
    activity: Withdrawal
    disputed_transaction_snapshot: FrozenSet[TransactionId]


@dataclass(slots=True)
class TransactionHistory:
    """
    Record of a client's earlier transactions.

    Attributes:
        account_activity: Applied deposits and withdrawals by transaction id.
        disputed_txs: Transaction ids with an open dispute.
        rejected_txs: Deferred withdrawals in the order they were rejected.
    """
    account_activity: Dict[TransactionId, AccountActivity] = field(default_factory=dict)
    disputed_txs: Set[TransactionId] = field(default_factory=set)
    rejected_txs: List[RejectedActivity] = field(default_factory=list)

    def copy(self) -> TransactionHistory:
        # Entries are immutable; copying the containers is enough.
        return TransactionHistory(
            account_activity=dict(self.account_activity),
            disputed_txs=set(self.disputed_txs),
            rejected_txs=list(self.rejected_txs),
        )


@dataclass(slots=True)
class ClientState:
    """
    Balances and history of a single client.

    The default instance is the state of a client never seen before:
    all balances zero, unlocked, empty history.
    """
    available: MonetaryAmount = ZERO
    held: MonetaryAmount = ZERO
    total: MonetaryAmount = ZERO
    is_locked: bool = False
    history: TransactionHistory = field(default_factory=TransactionHistory)

    def copy(self) -> ClientState:
        return ClientState(
            available=self.available,
            held=self.held,
            total=self.total,
            is_locked=self.is_locked,
            history=self.history.copy(),
        )

    def check_invariant(self) -> bool:
        """Return True if total == available + held."""
        return self.total == self.available + self.held


# ============================================================================
# CLIENT UPDATE
# ============================================================================

@dataclass(frozen=True, slots=True)
class ClientUpdate:
    """
    Description of one state transition for one client - represents INTENT.

    Produced by the pure resolution rules and applied atomically by the
    engine. Balance fields are deltas, not new values.

    Attributes:
        client: Client the update applies to
        outcome: APPLIED, DEFERRED or IGNORED
        available: Change to available funds
        held: Change to held funds
        total: Change to total funds
        record: Activities to add to account_activity
        open_dispute: Transaction id to add to disputed_txs
        close_dispute: Transaction id to remove from disputed_txs
        rejected: Rejected withdrawal to append to rejected_txs
        backfilled: Withdrawal ids to remove from rejected_txs
        lock: Lock the account
        reason: Why the transaction was not applied (empty when APPLIED)
    """
    client: ClientId
    outcome: TransactionOutcome
    available: MonetaryAmount = ZERO
    held: MonetaryAmount = ZERO
    total: MonetaryAmount = ZERO
    record: Tuple[AccountActivity, ...] = ()
    open_dispute: Optional[TransactionId] = None
    close_dispute: Optional[TransactionId] = None
    rejected: Optional[RejectedActivity] = None
    backfilled: Tuple[TransactionId, ...] = ()
    lock: bool = False
    reason: str = ""

    @classmethod
    def ignored(cls, client: ClientId, reason: str) -> ClientUpdate:
        return cls(client=client, outcome=TransactionOutcome.IGNORED, reason=reason)

    def is_noop(self) -> bool:
        return self.outcome == TransactionOutcome.IGNORED

    def __repr__(self) -> str:
        parts = [f"client={self.client}", self.outcome.value]
        for name in ("available", "held", "total"):
            delta = getattr(self, name)
            if not delta.is_zero():
                parts.append(f"{name}{delta.value:+}")
        if self.backfilled:
            parts.append(f"backfilled={[tx.value for tx in self.backfilled]}")
        if self.lock:
            parts.append("lock")
        if self.reason:
            parts.append(f"reason={self.reason!r}")
        return f"ClientUpdate({', '.join(parts)})"


# ============================================================================
# PUBLIC LEDGER
# ============================================================================

@dataclass(frozen=True, slots=True)
class ClientLedger:
    """A client's externally visible balances."""
    client: ClientId
    available: MonetaryAmount
    held: MonetaryAmount
    total: MonetaryAmount
    locked: bool

    @classmethod
    def from_state(cls, client: ClientId, state: ClientState) -> ClientLedger:
        return cls(
            client=client,
            available=state.available,
            held=state.held,
            total=state.total,
            locked=state.is_locked,
        )


@dataclass(frozen=True, slots=True)
class Ledger:
    """
    Final balances, one row per client.

    Row order carries no meaning. Rows are kept sorted by client id so that
    rendering the same ledger twice produces identical output.
    """
    rows: Tuple[ClientLedger, ...] = ()

    def __iter__(self) -> Iterator[ClientLedger]:
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    def get(self, client: Union[ClientId, int]) -> Optional[ClientLedger]:
        """Return the row for a client, or None if the client never appeared."""
        if not isinstance(client, ClientId):
            client = ClientId(client)
        for row in self.rows:
            if row.client == client:
                return row
        return None

    def as_dict(self) -> Dict[ClientId, ClientLedger]:
        return {row.client: row for row in self.rows}
