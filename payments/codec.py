"""
codec.py - CSV input and output

Input rows look like:

    type,       client, tx, amount
    deposit,    1,      1,  1.0
    dispute,    1,      1,

Whitespace around headers and values is ignored and `type` is matched
case-insensitively. Deposits and withdrawals need an amount; disputes,
resolves and chargebacks must not have one.

Decoding is all-or-nothing: the first malformed row raises InputDecodeError
and no transactions are returned, so a partial ledger is never produced.

Output rows look like:

    client,available,held,total,locked
    1,1.5000,0.0000,1.5000,false
"""

from __future__ import annotations
from os import PathLike
from typing import List, Mapping, Optional, TextIO, Union
import csv
import io

from .core import (
    Chargeback, ClientId, Deposit, Dispute, InputDecodeError, Ledger,
    MonetaryAmount, Resolve, Transaction, TransactionId, TransactionKind,
    Withdrawal,
)


INPUT_FIELDS = ("type", "client", "tx", "amount")
OUTPUT_FIELDS = ("client", "available", "held", "total", "locked")

_AMOUNT_KINDS = {
    TransactionKind.DEPOSIT: Deposit,
    TransactionKind.WITHDRAWAL: Withdrawal,
}

_DISPUTE_KINDS = {
    TransactionKind.DISPUTE: Dispute,
    TransactionKind.RESOLVE: Resolve,
    TransactionKind.CHARGEBACK: Chargeback,
}


# ============================================================================
# DECODING
# ============================================================================

def _field(row: Mapping[str, Optional[str]], name: str) -> str:
    value = row.get(name)
    return value.strip() if value else ""


def _parse_id(text: str, cls, label: str, line: Optional[int]):
    if not text:
        raise InputDecodeError(f"missing {label}", line)
    try:
        return cls(int(text))
    except ValueError as exc:
        raise InputDecodeError(f"invalid {label} {text!r}: {exc}", line) from None


def decode_row(row: Mapping[str, Optional[str]], line: Optional[int] = None) -> Transaction:
    """
    Decode one CSV row (keys already stripped) into a transaction record.

    Args:
        row: Mapping from column name to raw cell text
        line: Line number used in error messages

    Raises:
        InputDecodeError: If the row does not describe a valid transaction
    """
    if None in row:
        raise InputDecodeError("too many fields", line)

    type_text = _field(row, "type").lower()
    try:
        kind = TransactionKind(type_text)
    except ValueError:
        raise InputDecodeError(f"unknown transaction type {type_text!r}", line) from None

    client = _parse_id(_field(row, "client"), ClientId, "client", line)
    tx = _parse_id(_field(row, "tx"), TransactionId, "tx", line)
    amount_text = _field(row, "amount")

    if kind in _AMOUNT_KINDS:
        if not amount_text:
            raise InputDecodeError(f"{kind.value} requires an amount", line)
        try:
            amount = MonetaryAmount(amount_text)
        except ValueError as exc:
            raise InputDecodeError(str(exc), line) from None
        return _AMOUNT_KINDS[kind](client, tx, amount)

    if amount_text:
        raise InputDecodeError(f"{kind.value} must not have an amount", line)
    return _DISPUTE_KINDS[kind](client, tx)


def read_transactions(stream: TextIO) -> List[Transaction]:
    """
    Decode every row of a CSV stream.

    Raises:
        InputDecodeError: On a missing/invalid header, any malformed row,
            CSV the reader cannot parse, or bytes that are not valid text
    """
    reader = csv.reader(stream, skipinitialspace=True)
    try:
        return _decode_rows(reader)
    except csv.Error as exc:
        raise InputDecodeError(f"malformed CSV: {exc}", reader.line_num) from None
    except UnicodeDecodeError as exc:
        # Decoding is buffered, so the failing line is not known.
        raise InputDecodeError(
            f"input is not valid {exc.encoding} text: {exc.reason} at byte {exc.start}"
        ) from None


def _decode_rows(reader) -> List[Transaction]:
    header = next(reader, None)
    if header is None:
        raise InputDecodeError("empty input, expected header " + ",".join(INPUT_FIELDS), 1)
    columns = [name.strip().lower() for name in header]
    missing = [name for name in INPUT_FIELDS[:3] if name not in columns]
    if missing:
        raise InputDecodeError(f"header missing column(s): {', '.join(missing)}", 1)

    transactions: List[Transaction] = []
    for values in reader:
        if not values or all(not v.strip() for v in values):
            continue
        row = dict(zip(columns, values))
        extra = [v for v in values[len(columns):] if v.strip()]
        if extra:
            row[None] = extra
        transactions.append(decode_row(row, reader.line_num))
    return transactions


def load_transactions(path: Union[str, PathLike]) -> List[Transaction]:
    """Read and decode a CSV file."""
    with open(path, newline="", encoding="utf-8-sig") as stream:
        return read_transactions(stream)


# ============================================================================
# ENCODING
# ============================================================================

def write_ledger(ledger: Ledger, stream: TextIO) -> None:
    """Write the ledger as CSV, amounts with 4 fractional digits."""
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(OUTPUT_FIELDS)
    for row in ledger:
        writer.writerow([
            str(row.client),
            row.available.to_fixed(),
            row.held.to_fixed(),
            row.total.to_fixed(),
            "true" if row.locked else "false",
        ])


def encode_ledger(ledger: Ledger) -> str:
    """Render the ledger as CSV text."""
    buffer = io.StringIO()
    write_ledger(ledger, buffer)
    return buffer.getvalue()
