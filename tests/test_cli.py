import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from finance_pipeline.cli import app, format_cents
from tests.helpers.samples import BANK_CSV

runner = CliRunner()


@pytest.fixture()
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    (tmp_path / "bank.csv").write_text(BANK_CSV, encoding="utf-8")
    return tmp_path


def _run(workspace: Path, *args: str):
    return runner.invoke(app, ["--data-dir", str(workspace / "store"), *args])


def test_format_cents():
    assert format_cents(-123456) == "-€1,234.56"
    assert format_cents(5) == "€0.05"


def test_import_twice_is_idempotent(workspace: Path):
    first = _run(workspace, "import", "bank.csv")
    assert first.exit_code == 0, first.output
    assert "bank.csv: added=5 duplicates=0 total=5 auto_tagged=2" in first.stdout

    second = _run(workspace, "import", "bank.csv")
    assert second.exit_code == 0, second.output
    assert "added=0 duplicates=5 total=5" in second.stdout
    assert (workspace / "store" / "transactions.json").is_file()


def test_import_missing_file_fails(workspace: Path):
    result = _run(workspace, "import", "nope.csv")
    assert result.exit_code == 1


def test_report_json(workspace: Path):
    assert _run(workspace, "import", "bank.csv").exit_code == 0
    result = _run(workspace, "report", "--json")
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    summary = data["summary"]
    assert summary["totalIncome"] == 250000
    assert summary["totalExpenses"] == 2545
    assert summary["totalSavings"] == 50000
    assert summary["totalInvestments"] == 30000
    assert summary["netAmount"] == 197455
    assert summary["savingsRate"] == pytest.approx(20.0)
    assert "transactions" not in data


def test_report_for_period_text(workspace: Path):
    assert _run(workspace, "import", "bank.csv").exit_code == 0
    result = _run(workspace, "report", "--period", "2024-01")
    assert result.exit_code == 0, result.output
    assert "January 2024 - February 2024" in result.stdout
    assert "€2,500.00" in result.stdout


def test_tag_and_clear(workspace: Path):
    assert _run(workspace, "import", "bank.csv").exit_code == 0
    stored = json.loads((workspace / "store" / "transactions.json").read_text(encoding="utf-8"))
    untagged = next(row["id"] for row in stored if row["tag"] is None)

    tagged = _run(workspace, "tag", untagged, "Groceries")
    assert tagged.exit_code == 0, tagged.output
    assert tagged.stdout.strip().endswith("Groceries")

    assert _run(workspace, "tag", "tx_missing", "Groceries").exit_code == 1
    assert _run(workspace, "tag", untagged, "bad<tag>").exit_code == 1

    refused = _run(workspace, "clear")
    assert refused.exit_code == 1
    cleared = _run(workspace, "clear", "--yes")
    assert cleared.exit_code == 0
    assert "Cleared 5 transaction(s)." in cleared.stdout


def test_rules_add_and_list(workspace: Path):
    assert _run(workspace, "rules", "add", "albert heijn", "Groceries").exit_code == 0
    assert _run(workspace, "rules", "add", "([", "Broken").exit_code == 1
    listed = _run(workspace, "rules", "list")
    assert listed.exit_code == 0
    assert listed.stdout.splitlines() == ["1\talbert heijn\tGroceries"]


def test_compare_json(workspace: Path):
    assert _run(workspace, "import", "bank.csv").exit_code == 0
    result = _run(workspace, "compare", "--json")
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["current"]["name"] == "January 2024 - February 2024"
    assert data["income"]["previous"] == 0.0
    assert data["income"]["changePercent"] == 0.0


def test_export_transactions(workspace: Path):
    assert _run(workspace, "import", "bank.csv").exit_code == 0
    result = _run(workspace, "export", "transactions", "--out-dir", str(workspace / "out"))
    assert result.exit_code == 0, result.output
    path = Path(result.stdout.strip())
    assert path.name.startswith("tagged-transactions-")
    assert len(json.loads(path.read_text(encoding="utf-8"))) == 5


def test_report_by_tag(workspace: Path):
    assert _run(workspace, "import", "bank.csv").exit_code == 0
    result = _run(workspace, "report", "--by-tag", "--json")
    assert result.exit_code == 0, result.output
    rows = {r["tag"]: (r["count"], r["amount"]) for r in json.loads(result.stdout)}
    assert rows["Savings"] == (1, 50000)
    assert rows["Investments"] == (1, 30000)
    assert rows["Untagged"] == (3, 252545)

    text = _run(workspace, "report", "--by-tag")
    assert text.exit_code == 0
    assert "Savings" in text.stdout and "€500.00" in text.stdout
