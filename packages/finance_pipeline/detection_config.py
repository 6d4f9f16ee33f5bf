"""Rule groups for the built-in financial-flow detectors.

Each group lists, in the order they are tried:

- ``subcategories``: exact (case-insensitive) matches on the transaction's
  subcategory;
- ``keywords``: case-insensitive substrings of the description;
- ``account_patterns``: regular expressions searched in the description and
  the counterparty.

The investments group also carries ``fee_keywords``. A description containing
any of them is never detected as an investment.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, field_validator


class RuleGroup(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid", frozen=True)

    keywords: tuple[str, ...] = ()
    account_patterns: tuple[str, ...] = ()
    subcategories: tuple[str, ...] = ()
    fee_keywords: tuple[str, ...] = ()

    @field_validator("keywords", "subcategories", "fee_keywords")
    @classmethod
    def _lower(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(s.strip().lower() for s in v if s.strip())

    @field_validator("account_patterns")
    @classmethod
    def _compilable(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        for p in v:
            try:
                re.compile(p, re.IGNORECASE)
            except re.error as e:
                raise ValueError(f"invalid account pattern {p!r}: {e}") from e
        return v

    def has_fee_keyword(self, description: str) -> bool:
        text = description.lower()
        return any(k in text for k in self.fee_keywords)

    def matches(self, *, description: str, counterparty: str, subcategory: str) -> bool:
        """Three-tier check: subcategory, then keyword, then account pattern."""

        sub = subcategory.strip().lower()
        if sub and sub in self.subcategories:
            return True
        text = description.lower()
        if any(k in text for k in self.keywords):
            return True
        for p in self.account_patterns:
            if re.search(p, description, re.IGNORECASE) or re.search(
                p, counterparty, re.IGNORECASE
            ):
                return True
        return False


class DetectionConfig(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid", frozen=True)

    investments: RuleGroup
    savings: RuleGroup
    transfers: RuleGroup


INVESTMENT_FEE_KEYWORDS: tuple[str, ...] = (
    "fee",
    "commission",
    "charge",
    "cost",
    "expense",
    "management fee",
    "transaction fee",
    "custody fee",
    "rebalancing fee",
    "trading fee",
    "brokerage fee",
    "service charge",
    "maintenance fee",
    "account fee",
    "monthly fee",
    "annual fee",
    "withdrawal fee",
    "deposit fee",
    "transfer fee",
    "processing fee",
    "handling fee",
    "custody",
    "administration",
    "platform fee",
    "exchange fee",
)

DETECTION_CONFIG = DetectionConfig(
    investments=RuleGroup(
        keywords=("flatex", "degiro"),
        account_patterns=(r"degiro", r"flatex"),
        subcategories=(
            "investment",
            "investment account",
            "stock market",
            "crypto",
            "etf",
            "mutual funds",
        ),
        fee_keywords=INVESTMENT_FEE_KEYWORDS,
    ),
    savings=RuleGroup(
        keywords=("savings", "bunq"),
        account_patterns=(r"bunq", r"savings account"),
        subcategories=("savings", "savings account", "emergency fund", "goal savings"),
    ),
    transfers=RuleGroup(
        keywords=("transfer",),
        account_patterns=(
            r"transfer to own account",
            r"internal transfer",
            r"between own accounts",
        ),
        subcategories=("internal transfer", "account transfer", "between accounts"),
    ),
)


__all__ = ["RuleGroup", "DetectionConfig", "DETECTION_CONFIG", "INVESTMENT_FEE_KEYWORDS"]
