"""JSON exports of tagged transactions and period reports.

Transactions are written in the same shape the store persists (ISO dates,
integer cents, ``tag`` as ``null`` when unset). The parser reads integer
amounts as cents and keeps ``id`` verbatim, so an export re-imports without
changes.
"""

from __future__ import annotations

import contextlib
import json
import os
from collections.abc import Iterable, Sequence
from datetime import date
from pathlib import Path

from .logging_setup import get_logger
from .models import TRANSACTIONS_ADAPTER, PeriodComparison, PeriodStats, Transaction

_logger = get_logger("finance_pipeline.export")

TRANSACTIONS_EXPORT_PREFIX = "tagged-transactions"
REPORT_EXPORT_PREFIX = "period-report"


def export_filename(prefix: str, today: date | None = None) -> str:
    """``<prefix>-YYYY-MM-DD.json`` for ``today`` (defaults to the local date)."""

    return f"{prefix}-{(today or date.today()).isoformat()}.json"


def dumps_transactions(transactions: Iterable[Transaction]) -> str:
    data = TRANSACTIONS_ADAPTER.dump_python(list(transactions), mode="json")
    return json.dumps(data, ensure_ascii=False, indent=2)


def dumps_report(
    stats: PeriodStats | Sequence[PeriodStats],
    *,
    include_transactions: bool = True,
    comparison: PeriodComparison | None = None,
) -> str:
    """Serialize one or several :class:`PeriodStats` with camelCase keys."""

    exclude = None if include_transactions else {"transactions"}
    if isinstance(stats, PeriodStats):
        payload: object = stats.model_dump(mode="json", by_alias=True, exclude=exclude)
    else:
        payload = [s.model_dump(mode="json", by_alias=True, exclude=exclude) for s in stats]
    if comparison is not None:
        payload = {
            "report": payload,
            "comparison": comparison.model_dump(mode="json", by_alias=True),
        }
    return json.dumps(payload, ensure_ascii=False, indent=2)


def _write_atomic(path: Path, text: str) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path)
    except Exception:
        with contextlib.suppress(OSError):
            tmp.unlink()
        raise


def export_transactions(
    transactions: Iterable[Transaction],
    out_dir: str | os.PathLike[str],
    *,
    today: date | None = None,
) -> Path:
    """Write ``tagged-transactions-YYYY-MM-DD.json`` and return its path."""

    txs = list(transactions)
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    path = out / export_filename(TRANSACTIONS_EXPORT_PREFIX, today)
    _write_atomic(path, dumps_transactions(txs))
    _logger.info("export:transactions; count=%d path=%s", len(txs), path)
    return path


def export_report(
    stats: PeriodStats | Sequence[PeriodStats],
    out_dir: str | os.PathLike[str],
    *,
    today: date | None = None,
    include_transactions: bool = True,
    comparison: PeriodComparison | None = None,
) -> Path:
    """Write ``period-report-YYYY-MM-DD.json`` and return its path."""

    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    path = out / export_filename(REPORT_EXPORT_PREFIX, today)
    _write_atomic(
        path,
        dumps_report(stats, include_transactions=include_transactions, comparison=comparison),
    )
    _logger.info("export:report; path=%s", path)
    return path


__all__ = [
    "TRANSACTIONS_EXPORT_PREFIX",
    "REPORT_EXPORT_PREFIX",
    "export_filename",
    "dumps_transactions",
    "dumps_report",
    "export_transactions",
    "export_report",
]
