"""End-to-end: import a bank export, review, export, and re-import.

Drives the public workflow functions against the JSON directory backend the
CLI uses, with a scripted tag selector instead of the terminal prompt.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from pathlib import Path

from finance_pipeline.export import export_transactions
from finance_pipeline.models import Transaction
from finance_pipeline.reports import compute_period_stats
from finance_pipeline.storage import JsonDirectoryStore
from finance_pipeline.store import TransactionStore
from finance_pipeline.workflows.import_flow import import_file, import_text, review_untagged
from tests.helpers.samples import BANK_CSV, BANK_JSON


def test_import_review_export_reimport(tmp_path: Path) -> None:
    csv_path = tmp_path / "bank.csv"
    csv_path.write_text("\ufeff" + BANK_CSV, encoding="utf-8")

    store = TransactionStore(JsonDirectoryStore(tmp_path / "store"))
    progress: list[str] = []
    result = import_file(csv_path, store, on_progress=progress.append)
    assert (result.rows, result.added, result.auto_tagged) == (5, 5, 2)
    assert result.flagged == ()
    assert progress and "Imported 5 new transaction(s)" in progress[-1]

    json_result = import_text(BANK_JSON, "bank.json", store)
    assert (json_result.added, json_result.total) == (2, 7)
    assert store.get("bank-1").tag == "Dining"
    assert store.get("bank-2").tag == "Investments"

    # A fresh store over the same directory sees the persisted state
    reopened = TransactionStore(JsonDirectoryStore(tmp_path / "store"))
    reopened.load()
    assert len(reopened) == 7
    assert reopened.get_last_upload().filename == "bank.json"

    asked: list[str] = []

    def selector(tx: Transaction, tags: Sequence[str]) -> str | None:
        asked.append(tx.description)
        assert "Groceries" in tags
        if tx.description.startswith("Albert Heijn"):
            return "Groceries"
        if tx.description.startswith("Salary"):
            return "Salary"
        return None

    chosen = review_untagged(reopened, selector=selector)
    assert asked == ["Albert Heijn 1234", "Salary ACME BV", "DEGIRO trading fee"]
    assert sorted(chosen.values()) == ["Groceries", "Salary"]
    assert "Salary" in reopened.get_custom_tags()

    stats = compute_period_stats(reopened.transactions, date(2024, 1, 23), date(2024, 2, 22))
    assert stats.summary.net_amount == 197455

    path = export_transactions(reopened.transactions, tmp_path / "out", today=date(2024, 3, 5))

    fresh = TransactionStore(JsonDirectoryStore(tmp_path / "fresh"))
    again = import_file(path, fresh)
    assert (again.added, again.duplicates) == (7, 0)
    assert again.flagged == ()
    assert [(t.id, t.amount, t.tag) for t in fresh.transactions] == [
        (t.id, t.amount, t.tag) for t in reopened.transactions
    ]
    assert import_file(csv_path, fresh).added == 0
