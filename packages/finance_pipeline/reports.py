"""Period aggregation and comparison.

Classification inside a period
------------------------------
- Transactions tagged Savings, Investments or Transfers (any casing) add their
  absolute amount to the matching total and are excluded from income and
  expenses.
- Otherwise a positive amount is income and a negative amount is an expense
  (absolute value). Zero-amount rows only count towards ``totalTransactions``.
- ``netAmount = totalIncome - totalExpenses - totalSavings``. Investments and
  transfers move money that was already earned and stay out of the net.
- ``savingsRate = totalSavings / totalIncome * 100`` and ``0.0`` without
  income.

Billing-cycle periods
---------------------
Monthly reports follow a salary cycle: a period starts on day ``start_day``
(default 23) of a month and ends the day before the same day of the next
month. ``FP_PERIOD_START_DAY`` overrides the default; ``1`` gives calendar
months. Periods are keyed ``YYYY-MM`` by the month they start in.
"""

from __future__ import annotations

import calendar
import os
import re
from collections.abc import Iterable, Sequence
from datetime import date, timedelta

from .logging_setup import get_logger
from .models import (
    MetricChange,
    Period,
    PeriodComparison,
    PeriodStats,
    PeriodSummary,
    TagTotal,
    Transaction,
)
from .tags import flow_tag

_logger = get_logger("finance_pipeline.reports")

DEFAULT_PERIOD_START_DAY = 23
TOTAL_PERIOD_NAME = "Total (All Periods)"
UNTAGGED_LABEL = "Untagged"

_PERIOD_KEY_RE = re.compile(r"^(\d{4})-(\d{2})$")


# ---------------------------------------------------------------------------
# Periods
# ---------------------------------------------------------------------------


def period_start_day() -> int:
    """Return the configured cycle start day (1..28)."""

    raw = os.getenv("FP_PERIOD_START_DAY")
    if raw and raw.strip():
        try:
            day = int(raw)
        except ValueError:
            day = 0
        if 1 <= day <= 28:
            return day
        _logger.warning(
            "reports:bad_start_day; value=%r using=%d", raw, DEFAULT_PERIOD_START_DAY
        )
    return DEFAULT_PERIOD_START_DAY


def _resolve_start_day(start_day: int | None) -> int:
    day = period_start_day() if start_day is None else start_day
    if not 1 <= day <= 28:
        raise ValueError(f"start_day must be between 1 and 28, got {day}")
    return day


def _next_month(year: int, month: int) -> tuple[int, int]:
    return (year + 1, 1) if month == 12 else (year, month + 1)


def _prev_month(year: int, month: int) -> tuple[int, int]:
    return (year - 1, 12) if month == 1 else (year, month - 1)


def period_name(start: date, end: date) -> str:
    first = f"{calendar.month_name[start.month]} {start.year}"
    if (start.year, start.month) == (end.year, end.month):
        return first
    return f"{first} - {calendar.month_name[end.month]} {end.year}"


def period_bounds(year: int, month: int, *, start_day: int | None = None) -> Period:
    """Return the period starting in ``year``/``month``."""

    day = _resolve_start_day(start_day)
    start = date(year, month, day)
    ny, nm = _next_month(year, month)
    end = date(ny, nm, day) - timedelta(days=1)
    return Period(start=start, end=end, name=period_name(start, end))


def period_for_date(d: date, *, start_day: int | None = None) -> Period:
    """Return the period containing ``d``."""

    day = _resolve_start_day(start_day)
    if d.day >= day:
        return period_bounds(d.year, d.month, start_day=day)
    py, pm = _prev_month(d.year, d.month)
    return period_bounds(py, pm, start_day=day)


def previous_period(period: Period, *, start_day: int | None = None) -> Period:
    if period.start is None:
        raise ValueError("the total period has no predecessor")
    py, pm = _prev_month(period.start.year, period.start.month)
    return period_bounds(py, pm, start_day=start_day)


def period_key(period: Period) -> str:
    if period.start is None:
        return "total"
    return f"{period.start.year:04d}-{period.start.month:02d}"


def parse_period_key(key: str, *, start_day: int | None = None) -> Period:
    """Parse ``YYYY-MM`` into the period that starts in that month."""

    m = _PERIOD_KEY_RE.match(key.strip())
    if not m:
        raise ValueError(f"invalid period {key!r}; expected YYYY-MM")
    year, month = int(m.group(1)), int(m.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"invalid period {key!r}; month must be 01..12")
    return period_bounds(year, month, start_day=start_day)


def total_period() -> Period:
    return Period(start=None, end=None, name=TOTAL_PERIOD_NAME)


def filter_period(
    transactions: Iterable[Transaction],
    start: date | None = None,
    end: date | None = None,
) -> list[Transaction]:
    """Transactions dated within ``[start, end]`` (inclusive).

    With both bounds ``None`` every transaction is returned, undated ones
    included. With any bound set, undated transactions are excluded.
    """

    if start is None and end is None:
        return list(transactions)
    out: list[Transaction] = []
    for tx in transactions:
        if tx.date is None:
            continue
        if start is not None and tx.date < start:
            continue
        if end is not None and tx.date > end:
            continue
        out.append(tx)
    return out


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


def summarize(transactions: Iterable[Transaction]) -> PeriodSummary:
    income = expenses = savings = investments = transfers = 0
    n_income = n_expense = n_savings = n_investment = n_transfer = 0
    n_total = 0

    for tx in transactions:
        n_total += 1
        flow = flow_tag(tx.tag)
        if flow == "Savings":
            savings += abs(tx.amount)
            n_savings += 1
        elif flow == "Investments":
            investments += abs(tx.amount)
            n_investment += 1
        elif flow == "Transfers":
            transfers += abs(tx.amount)
            n_transfer += 1
        elif tx.amount > 0:
            income += tx.amount
            n_income += 1
        elif tx.amount < 0:
            expenses += -tx.amount
            n_expense += 1

    rate = (savings / income * 100.0) if income else 0.0
    return PeriodSummary(
        total_income=income,
        total_expenses=expenses,
        total_savings=savings,
        total_investments=investments,
        total_transfers=transfers,
        net_amount=income - expenses - savings,
        savings_rate=rate,
        income_count=n_income,
        expense_count=n_expense,
        savings_count=n_savings,
        investment_count=n_investment,
        transfer_count=n_transfer,
        total_transactions=n_total,
    )


def compute_period_stats(
    transactions: Iterable[Transaction],
    start: date | None = None,
    end: date | None = None,
    *,
    name: str | None = None,
) -> PeriodStats:
    """Compute :class:`PeriodStats` over ``[start, end]``.

    Both bounds ``None`` selects the total period.
    """

    if start is not None and end is not None and start > end:
        raise ValueError(f"period start {start} is after end {end}")
    selected = filter_period(transactions, start, end)
    if name is None:
        if start is None and end is None:
            name = TOTAL_PERIOD_NAME
        elif start is not None and end is not None:
            name = period_name(start, end)
        else:
            name = f"{start or '…'} - {end or '…'}"
    period = Period(start=start, end=end, name=name)
    return PeriodStats(period=period, transactions=tuple(selected), summary=summarize(selected))


def stats_for_period(transactions: Iterable[Transaction], period: Period) -> PeriodStats:
    return compute_period_stats(transactions, period.start, period.end, name=period.name)


def available_periods(
    transactions: Iterable[Transaction],
    *,
    start_day: int | None = None,
) -> list[Period]:
    """Periods that contain at least one dated transaction, newest first."""

    day = _resolve_start_day(start_day)
    by_key: dict[date, Period] = {}
    for tx in transactions:
        if tx.date is None:
            continue
        p = period_for_date(tx.date, start_day=day)
        assert p.start is not None
        by_key.setdefault(p.start, p)
    return [by_key[k] for k in sorted(by_key, reverse=True)]


def period_reports(
    transactions: Sequence[Transaction],
    *,
    start_day: int | None = None,
) -> list[PeriodStats]:
    """Stats for every period with data (newest first)."""

    return [
        stats_for_period(transactions, p)
        for p in available_periods(transactions, start_day=start_day)
    ]


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------


def _change(current: float, previous: float) -> MetricChange:
    delta = current - previous
    pct = (delta / abs(previous) * 100.0) if previous else 0.0
    return MetricChange(
        current=float(current),
        previous=float(previous),
        change=float(delta),
        change_percent=float(pct),
    )


def compare_periods(current: PeriodStats, previous: PeriodStats) -> PeriodComparison:
    """Per-metric change between two periods.

    ``changePercent`` is ``change / |previous| * 100`` and ``0`` when the
    previous value is ``0``.
    """

    c, p = current.summary, previous.summary
    return PeriodComparison(
        current=current.period,
        previous=previous.period,
        income=_change(c.total_income, p.total_income),
        expenses=_change(c.total_expenses, p.total_expenses),
        savings=_change(c.total_savings, p.total_savings),
        investments=_change(c.total_investments, p.total_investments),
        transfers=_change(c.total_transfers, p.total_transfers),
        net=_change(c.net_amount, p.net_amount),
        savings_rate=_change(c.savings_rate, p.savings_rate),
    )


def tag_breakdown(transactions: Iterable[Transaction]) -> list[TagTotal]:
    """Count and absolute cents per tag, largest amount first."""

    counts: dict[str, int] = {}
    amounts: dict[str, int] = {}
    for tx in transactions:
        label = flow_tag(tx.tag) or tx.tag or UNTAGGED_LABEL
        counts[label] = counts.get(label, 0) + 1
        amounts[label] = amounts.get(label, 0) + abs(tx.amount)
    rows = [TagTotal(tag=t, count=counts[t], amount=amounts[t]) for t in counts]
    return sorted(rows, key=lambda r: (-r.amount, r.tag))


__all__ = [
    "DEFAULT_PERIOD_START_DAY",
    "TOTAL_PERIOD_NAME",
    "period_start_day",
    "period_name",
    "period_bounds",
    "period_for_date",
    "previous_period",
    "period_key",
    "parse_period_key",
    "total_period",
    "filter_period",
    "summarize",
    "compute_period_stats",
    "stats_for_period",
    "available_periods",
    "period_reports",
    "compare_periods",
    "tag_breakdown",
]
