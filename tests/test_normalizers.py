from datetime import date

import pytest

from finance_pipeline.errors import FormatError
from finance_pipeline.ingest.parser import parse_csv
from finance_pipeline.models import CategoryRule
from finance_pipeline.normalizers import (
    normalize_row,
    normalize_rows,
    parse_amount_cents,
    parse_date,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("20240115", date(2024, 1, 15)),
        ("15/01/2024", date(2024, 1, 15)),
        ("5-1-2024", date(2024, 1, 5)),
        ("2024-01-15", date(2024, 1, 15)),
        ("2024-01-15T10:30:00", date(2024, 1, 15)),
        (20240115, date(2024, 1, 15)),
        ("", None),
        (None, None),
    ],
)
def test_parse_date_formats(raw, expected):
    assert parse_date(raw) == expected


@pytest.mark.parametrize("raw", ["20240230", "20241301", "31/02/2024", "2024-02-30", "yesterday"])
def test_parse_date_rejects_invalid(raw):
    with pytest.raises(FormatError):
        parse_date(raw)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("-12,50", -1250),
        ("12.50", 1250),
        ("1.234,56", 123456),
        ("1,234.56", 123456),
        ("€ 1.000,00", 100000),
        ("(5,00)", -500),
        ("+0,10", 10),
        ("0,005", 1),
        (1999, 1999),
        (19.99, 1999),
        (0.1 + 0.2, 30),
        # A lone separator is the decimal point, even before three digits
        ("1.234", 123),
        ("1.234,00", 123400),
    ],
)
def test_parse_amount_cents(raw, expected):
    assert parse_amount_cents(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "abc",
        "12,50,00x",
        None,
        True,
        "NaN",
        "1e30",
        "123456789012345678901234567890",
        1e300,
        float("inf"),
    ],
)
def test_parse_amount_cents_rejects(raw):
    with pytest.raises(FormatError):
        parse_amount_cents(raw)


def test_normalize_row_defaults_and_debit_sign():
    row = {
        "date": "20240123",
        "description": "  Albert   Heijn ",
        "amount": "23,45",
        "debit_credit": "Debit",
        "tag": "",
    }
    out = normalize_row(row)
    tx = out.canonical
    assert tx.date == date(2024, 1, 23)
    assert tx.amount == -2345
    assert tx.description == "Albert Heijn"
    assert tx.category == "Other"
    assert tx.tag is None
    assert out.issues == ()
    assert tx.id.startswith("tx_")


def test_normalize_row_swallows_field_errors_and_flags_them():
    out = normalize_row({"date": "20240230", "amount": "twelve", "description": "x"})
    assert out.canonical.amount == 0
    assert out.canonical.date is None
    assert len(out.issues) == 2
    assert out.flagged


def test_normalize_row_uses_first_matching_rule_when_category_missing():
    rules = [
        CategoryRule(match="heijn", category="Groceries & household"),
        CategoryRule(match="albert", category="Shopping"),
    ]
    out = normalize_row({"date": "20240101", "amount": "-1", "description": "Albert Heijn"}, rules=rules)
    assert out.canonical.category == "Groceries & household"

    kept = normalize_row(
        {"date": "20240101", "amount": "-1", "description": "Albert Heijn", "category": "Bank"},
        rules=rules,
    )
    assert kept.canonical.category == "Bank"


def test_normalize_row_keeps_source_id_and_strips_hash_from_tag():
    out = normalize_row({"id": "abc-1", "date": "2024-01-01", "amount": 500, "tag": "#Savings"})
    assert out.canonical.id == "abc-1"
    assert out.canonical.amount == 500
    assert out.canonical.tag == "Savings"


def test_out_of_range_amount_is_flagged_not_fatal():
    rows = parse_csv("Date;Name / Description;Amount (EUR)\n20240101;ok;5,00\n20240102;bad;1e30\n")
    out = normalize_rows(rows)
    assert [r.canonical.amount for r in out] == [500, 0]
    assert not out[0].flagged
    assert out[1].flagged
    assert "out of range" in out[1].issues[0]
