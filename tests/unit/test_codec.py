"""
test_codec.py - Unit tests for CSV decoding and encoding
"""

import csv
import io

import pytest

from payments import (
    Chargeback, ClientId, ClientLedger, Deposit, Dispute, InputDecodeError,
    Ledger, Resolve, Withdrawal, ZERO,
    decode_row, encode_ledger, load_transactions, read_transactions,
)

from conftest import amount


def read(text):
    return read_transactions(io.StringIO(text))


class TestDecodeRow:
    """Tests for decode_row on already-split rows."""

    def test_deposit(self):
        row = {"type": "deposit", "client": "1", "tx": "2", "amount": "1.5"}
        assert decode_row(row) == Deposit(1, 2, "1.5")

    def test_dispute_without_amount(self):
        row = {"type": "dispute", "client": "1", "tx": "2", "amount": ""}
        assert decode_row(row) == Dispute(1, 2)

    def test_dispute_with_missing_amount_column(self):
        assert decode_row({"type": "resolve", "client": "1", "tx": "2"}) == Resolve(1, 2)

    def test_type_is_case_insensitive(self):
        row = {"type": " Chargeback ", "client": "3", "tx": "4"}
        assert decode_row(row) == Chargeback(3, 4)

    def test_unknown_type(self):
        with pytest.raises(InputDecodeError, match="unknown transaction type 'transfer'"):
            decode_row({"type": "transfer", "client": "1", "tx": "1", "amount": "1"})

    def test_missing_amount(self):
        with pytest.raises(InputDecodeError, match="withdrawal requires an amount"):
            decode_row({"type": "withdrawal", "client": "1", "tx": "1", "amount": ""})

    def test_amount_on_dispute_rejected(self):
        with pytest.raises(InputDecodeError, match="dispute must not have an amount"):
            decode_row({"type": "dispute", "client": "1", "tx": "1", "amount": "5"})

    @pytest.mark.parametrize("field,value", [
        ("client", ""),
        ("client", "abc"),
        ("client", "65536"),
        ("client", "-1"),
        ("tx", "4294967296"),
        ("tx", "1.5"),
    ])
    def test_invalid_ids(self, field, value):
        row = {"type": "deposit", "client": "1", "tx": "1", "amount": "1"}
        row[field] = value
        with pytest.raises(InputDecodeError, match=field):
            decode_row(row)

    def test_invalid_amount(self):
        with pytest.raises(InputDecodeError):
            decode_row({"type": "deposit", "client": "1", "tx": "1", "amount": "1,0"})

    def test_amount_out_of_range(self):
        with pytest.raises(InputDecodeError, match="exceeds the maximum"):
            decode_row({"type": "deposit", "client": "1", "tx": "1", "amount": "1e60"})

    def test_line_number_in_message(self):
        with pytest.raises(InputDecodeError) as exc_info:
            decode_row({"type": "oops", "client": "1", "tx": "1"}, line=12)
        assert exc_info.value.line == 12
        assert str(exc_info.value).startswith("line 12: ")


class TestReadTransactions:
    """Tests for read_transactions on whole CSV streams."""

    def test_reads_all_kinds(self):
        text = (
            "type,client,tx,amount\n"
            "deposit,1,1,1.0\n"
            "withdrawal,1,2,0.5\n"
            "dispute,1,1,\n"
            "resolve,1,1,\n"
            "chargeback,1,1,\n"
        )
        assert read(text) == [
            Deposit(1, 1, "1.0"),
            Withdrawal(1, 2, "0.5"),
            Dispute(1, 1),
            Resolve(1, 1),
            Chargeback(1, 1),
        ]

    def test_whitespace_is_ignored(self):
        text = "type, client, tx, amount\n deposit,  1, 2,  3.25 \n"
        assert read(text) == [Deposit(1, 2, "3.25")]

    def test_dispute_rows_may_omit_trailing_comma(self):
        text = "type,client,tx,amount\ndeposit,1,1,1.0\ndispute,1,1\n"
        assert read(text)[1] == Dispute(1, 1)

    def test_blank_lines_skipped(self):
        text = "type,client,tx,amount\n\ndeposit,1,1,1.0\n\n"
        assert read(text) == [Deposit(1, 1, "1.0")]

    def test_header_only(self):
        assert read("type,client,tx,amount\n") == []

    def test_header_case_insensitive(self):
        assert read("Type,Client,TX,Amount\ndeposit,1,1,2\n") == [Deposit(1, 1, "2")]

    def test_empty_input_rejected(self):
        with pytest.raises(InputDecodeError, match="line 1: empty input"):
            read("")

    def test_header_missing_column(self):
        with pytest.raises(InputDecodeError, match="tx"):
            read("type,client,amount\ndeposit,1,1.0\n")

    def test_extra_empty_field_tolerated(self):
        assert read("type,client,tx,amount\ndeposit,1,1,1.0,\n") == [Deposit(1, 1, "1.0")]

    def test_extra_value_rejected(self):
        with pytest.raises(InputDecodeError, match="too many fields"):
            read("type,client,tx,amount\ndeposit,1,1,1.0,7\n")

    def test_error_reports_line(self):
        text = "type,client,tx,amount\ndeposit,1,1,1.0\ndeposit,1,2,\n"
        with pytest.raises(InputDecodeError) as exc_info:
            read(text)
        assert exc_info.value.line == 3

    def test_oversized_field_rejected(self):
        """A field past the csv module's size limit is a decode error with its line."""
        text = 'type,client,tx,amount\ndeposit,1,1,"' + "9" * 200000 + '"\n'
        with pytest.raises(InputDecodeError, match="malformed CSV") as exc_info:
            read(text)
        assert exc_info.value.line == 2

    def test_load_from_path(self, csv_file):
        path = csv_file("type,client,tx,amount\nwithdrawal,2,9,4\n")
        assert load_transactions(path) == [Withdrawal(2, 9, "4")]

    def test_load_invalid_utf8(self, tmp_path):
        path = tmp_path / "latin1.csv"
        path.write_bytes(b"type,client,tx,amount\ndeposit,1,1,\xff\n")
        with pytest.raises(InputDecodeError, match="not valid"):
            load_transactions(path)

    def test_load_skips_byte_order_mark(self, tmp_path):
        path = tmp_path / "bom.csv"
        path.write_bytes(b"\xef\xbb\xbftype,client,tx,amount\ndeposit,1,1,1.0\n")
        assert load_transactions(path) == [Deposit(1, 1, "1.0")]

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            load_transactions(tmp_path / "missing.csv")


class TestEncodeLedger:
    """Tests for encode_ledger."""

    def test_header_only_for_empty_ledger(self):
        assert encode_ledger(Ledger()) == "client,available,held,total,locked\n"

    def test_rows_use_four_decimals(self):
        ledger = Ledger(rows=(
            ClientLedger(ClientId(1), amount("1.5"), ZERO, amount("1.5"), False),
            ClientLedger(ClientId(2), amount("-50"), ZERO, amount("-50"), True),
        ))
        assert encode_ledger(ledger) == (
            "client,available,held,total,locked\n"
            "1,1.5000,0.0000,1.5000,false\n"
            "2,-50.0000,0.0000,-50.0000,true\n"
        )

    def test_encoded_output_is_readable_as_csv(self):
        ledger = Ledger(rows=(ClientLedger(ClientId(7), amount("2"), amount("1"), amount("3"), False),))
        rows = list(csv.DictReader(io.StringIO(encode_ledger(ledger))))
        assert rows == [{"client": "7", "available": "2.0000", "held": "1.0000",
                         "total": "3.0000", "locked": "false"}]
