"""
cli.py - Command line entry point

    payments transactions.csv > accounts.csv
    python -m payments transactions.csv --verbose

Exit status 0 on success, 1 if the input cannot be read or decoded (nothing
is written to stdout in that case), 2 on invalid arguments.
"""

from __future__ import annotations
from os import PathLike
from typing import List, Optional, Union
import argparse
import sys

from .codec import encode_ledger, load_transactions
from .core import LedgerError
from .engine import build_ledger


def process_payments(csv_path: Union[str, PathLike], verbose: bool = False) -> str:
    """
    Load a CSV transaction file, replay it, and return the ledger as CSV.

    Raises:
        InputDecodeError: If the file is not valid CSV text or any row is malformed
        PrecisionExceeded: If a balance can no longer be held exactly
        OSError: If the file cannot be read
    """
    transactions = load_transactions(csv_path)
    ledger = build_ledger(transactions=transactions, verbose=verbose)
    return encode_ledger(ledger)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="payments",
        description="Replay a CSV transaction stream and print final client balances as CSV",
    )
    parser.add_argument("csv_path", help="Input CSV with columns type,client,tx,amount")
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Report ignored, deferred and backfilled transactions on stderr",
    )
    args = parser.parse_args(argv)

    try:
        result = process_payments(args.csv_path, verbose=args.verbose)
    except (LedgerError, OSError) as exc:
        print(f"an error occurred: {exc}", file=sys.stderr)
        return 1

    sys.stdout.write(result)
    return 0
