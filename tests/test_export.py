import json
from datetime import date
from pathlib import Path

import pytest

from finance_pipeline.api import load_transactions
from finance_pipeline.export import export_report, export_transactions
from finance_pipeline.reports import compare_periods, compute_period_stats
from tests.helpers.samples import SIMPLE_CSV


def test_export_transactions_writes_dated_file_that_reimports(tmp_path: Path):
    txs = load_transactions(SIMPLE_CSV, "simple.csv")
    path = export_transactions(txs, tmp_path / "out", today=date(2024, 3, 5))

    assert path.name == "tagged-transactions-2024-03-05.json"
    assert not list(path.parent.glob("*.tmp"))
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data[0]["date"] == "2024-01-15"
    assert data[0]["amount"] == -90000
    assert data[0]["tag"] == "Housing"

    again = load_transactions(path.read_text(encoding="utf-8"), path.name)
    assert [(t.id, t.amount, t.tag, t.date) for t in again] == [
        (t.id, t.amount, t.tag, t.date) for t in txs
    ]


def test_export_report_with_comparison(tmp_path: Path):
    txs = load_transactions(SIMPLE_CSV, "simple.csv")
    current = compute_period_stats(txs, date(2024, 1, 23), date(2024, 2, 22))
    previous = compute_period_stats(txs, date(2023, 12, 23), date(2024, 1, 22))

    path = export_report(
        current,
        tmp_path,
        today=date(2024, 3, 5),
        include_transactions=False,
        comparison=compare_periods(current, previous),
    )

    assert path.name == "period-report-2024-03-05.json"
    data = json.loads(path.read_text(encoding="utf-8"))
    assert "transactions" not in data["report"]
    assert data["report"]["summary"]["totalIncome"] == 210000
    assert data["comparison"]["income"]["previous"] == 200000.0
    assert data["comparison"]["income"]["changePercent"] == pytest.approx(5.0)


def test_failed_export_leaves_no_temp_file(tmp_path: Path):
    txs = load_transactions(SIMPLE_CSV, "simple.csv")
    # The target name is taken by a directory, so the final rename fails
    (tmp_path / "tagged-transactions-2024-03-05.json").mkdir()
    with pytest.raises(OSError):
        export_transactions(txs, tmp_path, today=date(2024, 3, 5))
    assert not list(tmp_path.glob("*.tmp"))
