"""Field parsers and the row normalizer.

``parse_date`` and ``parse_amount_cents`` are strict: they raise
:class:`~finance_pipeline.errors.FormatError` on input they cannot interpret.
``normalize_row`` is forgiving: it absorbs those errors per field, applies a
safe default (no date, 0 cents) and records the problem in
``NormalizedRow.issues`` so a single bad row never aborts an import.

Amounts
-------
- Strings and floats are euros. A comma is read as the decimal separator
  (``"-12,50"``); when both ``,`` and ``.`` appear the last one is the
  decimal separator and the other groups thousands.
- JSON integers are already cents. This is the shape written by exports, so
  re-importing an export reproduces amounts exactly.
- Conversion uses ``Decimal`` and rounds half up to whole cents.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from .categorize import apply_category_rules
from .errors import FormatError
from .identity import compute_transaction_id
from .logging_setup import get_logger
from .models import CategoryRule, NormalizedRow, Transaction
from .tags import normalize_tag_name

_logger = get_logger("finance_pipeline.normalizers")

DEFAULT_CATEGORY = "Other"

_YYYYMMDD_RE = re.compile(r"^\d{8}$")
_DMY_RE = re.compile(r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})$")
_ISO_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_CURRENCY_RE = re.compile(r"(€|EUR|eur)")

_DEBIT_MARKERS = {"debit", "af", "d"}
_CREDIT_MARKERS = {"credit", "bij", "c"}


# ---------------------------------------------------------------------------
# Field parsers
# ---------------------------------------------------------------------------


def parse_date(value: Any) -> date | None:
    """Parse a source date into a calendar date.

    Accepts ``YYYYMMDD``, ``dd/mm/yyyy`` (also ``-`` or ``.`` separated) and
    ISO ``YYYY-MM-DD`` optionally followed by a time part. Blank input yields
    ``None``.

    Raises
    ------
    FormatError
        For unrecognized formats or impossible calendar dates such as
        ``20240230``.
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, bool):
        raise FormatError("date", value, "not a date")
    s = str(value).strip()
    if not s:
        return None
    # Drop any time component ("2024-01-15T10:00:00", "2024-01-15 10:00")
    first = s.split()[0].split("T", 1)[0]

    try:
        if _YYYYMMDD_RE.match(first):
            return datetime.strptime(first, "%Y%m%d").date()
        m = _DMY_RE.match(first)
        if m:
            day, month, year = (int(g) for g in m.groups())
            return date(year, month, day)
        if _ISO_RE.match(first):
            return date.fromisoformat(first)
    except ValueError as e:
        raise FormatError("date", value, "not a valid calendar date") from e
    raise FormatError("date", value, "unrecognized date format")


def _decimal_from_text(raw: str) -> Decimal:
    """Read a euro amount written with either European or US separators.

    A lone separator is always the decimal point, so ``1.234`` is 1.234 euros,
    not one thousand two hundred thirty-four. Exports with grouping but no
    decimals are ambiguous and must carry a decimal part to parse as
    thousands (``1.234,00``).
    """

    s = _CURRENCY_RE.sub("", raw).replace("\u00a0", "").replace(" ", "").strip()
    negative = False
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:]
            changed = True
        elif s.startswith("-"):
            negative = not negative
            s = s[1:]
            changed = True
        if len(s) >= 2 and s.startswith("(") and s.endswith(")"):
            negative = True
            s = s[1:-1]
            changed = True
        if not changed:
            break

    if "," in s and "." in s:
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif s.count(",") == 1:
        s = s.replace(",", ".")
    elif s.count(",") > 1 or s.count(".") > 1:
        # Grouping separators only ("1.234.567" or "1,234,567")
        s = s.replace(",", "").replace(".", "")

    if not s:
        raise FormatError("amount", raw, "empty")
    try:
        d = Decimal(s)
    except InvalidOperation as e:
        raise FormatError("amount", raw, "not a number") from e
    return -d if negative else d


def _to_cents(d: Decimal, raw: Any) -> int:
    if not d.is_finite():
        raise FormatError("amount", raw, "not a finite number")
    try:
        return int((d * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation as e:
        raise FormatError("amount", raw, "out of range") from e


def parse_amount_cents(value: Any) -> int:
    """Return ``value`` as signed integer cents.

    Raises
    ------
    FormatError
        When the value is missing or cannot be read as a number.
    """

    if value is None or isinstance(value, bool):
        raise FormatError("amount", value, "missing")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return _to_cents(Decimal(repr(value)), value)
    if isinstance(value, Decimal):
        return _to_cents(value, value)
    s = str(value).strip()
    if not s:
        raise FormatError("amount", value, "missing")
    return _to_cents(_decimal_from_text(s), value)


# ---------------------------------------------------------------------------
# Row normalization
# ---------------------------------------------------------------------------


def _text(value: Any) -> str:
    if value is None or isinstance(value, Mapping | list):
        return ""
    return " ".join(str(value).split())


def _apply_debit_credit(amount: int, marker: str) -> int:
    m = marker.strip().lower()
    if m in _DEBIT_MARKERS:
        return -abs(amount)
    if m in _CREDIT_MARKERS:
        return abs(amount)
    return amount


def normalize_row(
    row: Mapping[str, Any],
    *,
    rules: Sequence[CategoryRule] = (),
) -> NormalizedRow:
    """Map one parsed row to a canonical :class:`Transaction`.

    Defaults: ``tag`` is ``None`` unless the source carries one; ``category``
    comes from the row, else from the first matching rule, else ``"Other"``.
    """

    issues: list[str] = []

    try:
        tx_date = parse_date(row.get("date"))
        if tx_date is None:
            issues.append("date: missing")
    except FormatError as e:
        tx_date = None
        issues.append(f"date: {e}")

    try:
        amount = parse_amount_cents(row.get("amount"))
    except FormatError as e:
        amount = 0
        issues.append(f"amount: {e}")

    debit_credit = _text(row.get("debit_credit"))
    if debit_credit:
        amount = _apply_debit_credit(amount, debit_credit)

    description = _text(row.get("description"))
    counterparty = _text(row.get("counterparty"))
    category = _text(row.get("category"))
    if not category:
        category = apply_category_rules(description, rules) or DEFAULT_CATEGORY
    tag = normalize_tag_name(_text(row.get("tag"))) or None

    external_id = _text(row.get("id")) or None
    tx_id = compute_transaction_id(
        date=tx_date,
        amount=amount,
        description=description,
        counterparty=counterparty,
        external_id=external_id,
    )

    canonical = Transaction(
        id=tx_id,
        date=tx_date,
        amount=amount,
        description=description,
        counterparty=counterparty,
        account=_text(row.get("account")),
        category=category,
        subcategory=_text(row.get("subcategory")),
        debit_credit=debit_credit,
        tag=tag,
    )

    if issues:
        _logger.warning(
            "normalize:flagged; id=%s issues=%s", tx_id, "; ".join(issues)
        )
    return NormalizedRow(raw=dict(row), canonical=canonical, issues=tuple(issues))


def normalize_rows(
    rows: Iterable[Mapping[str, Any]],
    *,
    rules: Sequence[CategoryRule] = (),
) -> list[NormalizedRow]:
    out = [normalize_row(r, rules=rules) for r in rows]
    flagged = sum(1 for r in out if r.issues)
    _logger.info("normalize:done; rows=%d flagged=%d", len(out), flagged)
    return out


__all__ = [
    "DEFAULT_CATEGORY",
    "parse_date",
    "parse_amount_cents",
    "normalize_row",
    "normalize_rows",
]
