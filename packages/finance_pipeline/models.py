"""Data models for ``finance_pipeline``.

The canonical record is :class:`Transaction`: a frozen pydantic model holding
a calendar date, a signed integer amount in euro cents (positive = credit),
free-text description fields and an optional user-facing tag. All derived
records (period statistics, comparisons, upload metadata) live here too so the
JSON shape written to storage and exports is defined in one place.

Notes
-----
- Models are strict: values are not coerced from strings in Python mode.
  Persisted JSON is read back with ``model_validate_json`` / ``TypeAdapter``
  which accepts ISO date strings.
- Report-facing models serialize with camelCase keys (``totalIncome``,
  ``savingsRate``), matching the dashboard the data was designed for. Use
  ``model_dump(by_alias=True)``.
"""

from __future__ import annotations

import datetime as dt
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

# A raw row as produced by the parser: canonical column names mapped to the
# cell value (strings for CSV; any JSON value for JSON input).
type RawRow = dict[str, Any]


class Transaction(BaseModel):
    """A single normalized bank transaction.

    ``id`` is either the source-provided identifier or a content hash (see
    :func:`finance_pipeline.identity.compute_transaction_id`). ``tag`` is the
    only field that changes after import; use ``model_copy(update=...)`` or
    ``TransactionStore.update_tag``.
    """

    model_config = ConfigDict(strict=True, extra="forbid", frozen=True, str_strip_whitespace=True)

    id: str
    date: dt.date | None = None
    amount: int = 0
    description: str = ""
    counterparty: str = ""
    account: str = ""
    category: str = ""
    subcategory: str = ""
    debit_credit: str = ""
    tag: str | None = None

    @field_validator("id")
    @classmethod
    def _id_non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("id must be non-empty")
        return v

    @field_validator("tag")
    @classmethod
    def _blank_tag_is_none(cls, v: str | None) -> str | None:
        return v or None

    def with_tag(self, tag: str | None) -> Transaction:
        return self.model_copy(update={"tag": tag or None})


TRANSACTIONS_ADAPTER: TypeAdapter[list[Transaction]] = TypeAdapter(list[Transaction])


class CategoryRule(BaseModel):
    """A user-defined ``match`` pattern mapped to a category.

    ``match`` is a case-insensitive regular expression; plain words are valid
    patterns and behave like substring checks.
    """

    model_config = ConfigDict(strict=True, extra="forbid", frozen=True, str_strip_whitespace=True)

    match: str
    category: str

    @field_validator("match")
    @classmethod
    def _valid_pattern(cls, v: str) -> str:
        if not v:
            raise ValueError("match pattern must be non-empty")
        try:
            re.compile(v, re.IGNORECASE)
        except re.error as e:
            raise ValueError(f"invalid match pattern {v!r}: {e}") from e
        return v

    @field_validator("category")
    @classmethod
    def _category_non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("category must be non-empty")
        return v

    def matches(self, text: str) -> bool:
        return re.search(self.match, text or "", re.IGNORECASE) is not None


CATEGORY_RULES_ADAPTER: TypeAdapter[list[CategoryRule]] = TypeAdapter(list[CategoryRule])


@dataclass(frozen=True, slots=True)
class NormalizedRow:
    """Normalizer output: the raw row, its canonical record, and any issues.

    ``issues`` lists field-level problems that were absorbed (e.g. an amount
    that could not be parsed and defaulted to 0). A non-empty tuple means the
    row was imported but should be reviewed.
    """

    raw: Mapping[str, Any]
    canonical: Transaction
    issues: tuple[str, ...] = ()

    @property
    def flagged(self) -> bool:
        return bool(self.issues)


@dataclass(frozen=True, slots=True)
class MergeResult:
    added: int
    duplicates: int
    total: int
    transactions: tuple[Transaction, ...] = field(default=(), repr=False)


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        strict=True,
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class UploadInfo(_CamelModel):
    filename: str
    transaction_count: int
    timestamp: datetime


class Period(_CamelModel):
    """A reporting window; both bounds ``None`` means "all time"."""

    start: date | None = None
    end: date | None = None
    name: str

    @property
    def is_total(self) -> bool:
        return self.start is None and self.end is None

    def contains(self, d: date | None) -> bool:
        if self.is_total:
            return True
        if d is None:
            return False
        if self.start is not None and d < self.start:
            return False
        if self.end is not None and d > self.end:
            return False
        return True


class PeriodSummary(_CamelModel):
    total_income: int = 0
    total_expenses: int = 0
    total_savings: int = 0
    total_investments: int = 0
    total_transfers: int = 0
    net_amount: int = 0
    savings_rate: float = 0.0
    income_count: int = 0
    expense_count: int = 0
    savings_count: int = 0
    investment_count: int = 0
    transfer_count: int = 0
    total_transactions: int = 0


class PeriodStats(_CamelModel):
    period: Period
    transactions: tuple[Transaction, ...] = ()
    summary: PeriodSummary


class MetricChange(_CamelModel):
    current: float
    previous: float
    change: float
    change_percent: float


class PeriodComparison(_CamelModel):
    current: Period
    previous: Period
    income: MetricChange
    expenses: MetricChange
    savings: MetricChange
    investments: MetricChange
    transfers: MetricChange
    net: MetricChange
    savings_rate: MetricChange


class TagTotal(_CamelModel):
    tag: str
    count: int
    amount: int


__all__ = [
    "RawRow",
    "Transaction",
    "TRANSACTIONS_ADAPTER",
    "CategoryRule",
    "CATEGORY_RULES_ADAPTER",
    "NormalizedRow",
    "MergeResult",
    "UploadInfo",
    "Period",
    "PeriodSummary",
    "PeriodStats",
    "MetricChange",
    "PeriodComparison",
    "TagTotal",
]
