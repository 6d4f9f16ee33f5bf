"""Public API for the ``finance_pipeline`` package.

A stable import surface over the pipeline stages plus two conveniences that
chain them for in-memory use (no store involved).
"""

from __future__ import annotations

from collections.abc import Sequence

from .categorize import apply_category_rules, assign_tag, auto_tag, detect_flow_tag
from .identity import compute_transaction_id, merge_transactions
from .ingest.parser import parse_csv, parse_json, parse_text
from .models import CategoryRule, NormalizedRow, PeriodStats, Transaction
from .normalizers import normalize_row, normalize_rows, parse_amount_cents, parse_date
from .reports import compare_periods, compute_period_stats
from .workflows.import_flow import import_file, import_text, review_untagged


def load_transactions(
    text: str,
    filename: str,
    *,
    rules: Sequence[CategoryRule] = (),
    tag: bool = True,
) -> list[Transaction]:
    """Parse and normalize ``text``; auto-tag unless ``tag`` is false.

    Duplicate ids inside the file are collapsed (first occurrence wins).
    """

    rows: list[NormalizedRow] = normalize_rows(parse_text(text, filename), rules=rules)
    txs = [r.canonical for r in rows]
    if tag:
        txs, _ = auto_tag(txs)
    return list(merge_transactions((), txs).transactions)


def report(text: str, filename: str) -> PeriodStats:
    """Total-period stats for a single file."""

    return compute_period_stats(load_transactions(text, filename))


__all__ = [
    "parse_csv",
    "parse_json",
    "parse_text",
    "parse_date",
    "parse_amount_cents",
    "normalize_row",
    "normalize_rows",
    "compute_transaction_id",
    "merge_transactions",
    "detect_flow_tag",
    "apply_category_rules",
    "assign_tag",
    "auto_tag",
    "compute_period_stats",
    "compare_periods",
    "import_text",
    "import_file",
    "review_untagged",
    "load_transactions",
    "report",
]
