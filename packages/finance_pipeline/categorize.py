"""Automatic tagging: flow detection, user rules and category mapping.

Order of precedence for a transaction's tag:

1. an existing tag (manual or from a previous run) is kept as-is;
2. the flow detectors (:func:`detect_flow_tag`);
3. the category/subcategory mapping (:data:`DEFAULT_TAG_MAPPING`);
4. otherwise the transaction stays untagged for manual review.

User-defined :class:`~finance_pipeline.models.CategoryRule` lists set the
*category* of a transaction (see :func:`apply_category_rules`); they run
independently of the flow detectors.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from .detection_config import DETECTION_CONFIG, DetectionConfig
from .logging_setup import get_logger
from .models import CategoryRule, Transaction
from .tags import flow_tag

_logger = get_logger("finance_pipeline.categorize")

# Bank category -> subcategory -> tag. Lookups are case-insensitive.
DEFAULT_TAG_MAPPING: dict[str, dict[str, str]] = {
    "Fixed expenses": {
        "Housing costs": "Housing",
        "Daycare": "Other",
        "Insurance": "Utilities",
        "Utilities": "Utilities",
        "Loans": "Other",
        "Other": "Other",
    },
    "Free time": {
        "Activities & events": "Entertainment",
        "Sport": "Health",
        "Hobbies": "Entertainment",
        "Holidays": "Entertainment",
        "Books & magazines": "Entertainment",
        "Games": "Entertainment",
        "Music": "Entertainment",
        "Movies": "Entertainment",
        "Lottery": "Entertainment",
        "Other": "Entertainment",
    },
    "Groceries & household": {
        "Groceries": "Groceries",
        "House & garden": "Groceries",
        "Pets": "Groceries",
        "Other": "Groceries",
    },
    "Health & Wellness": {
        "Medical expenses": "Health",
        "Pharmacy & drugstore": "Health",
        "Wellness": "Health",
        "Beauty & hair care": "Health",
        "Other": "Health",
    },
    "Other": {
        "Cash withdrawal": "Other",
        "Credit card": "Other",
        "Transfers": "Other",
        "Charity": "Other",
        "Education": "Other",
        "Fines": "Other",
        "Taxes": "Other",
        "Other": "Other",
    },
    "Restaurants & bars": {
        "Bars": "Dining",
        "Coffee bars": "Dining",
        "Snacks": "Dining",
        "Lunch": "Dining",
        "Restaurants": "Dining",
        "Other": "Dining",
    },
    "Shopping": {
        "Clothes": "Shopping",
        "Accessories": "Shopping",
        "Software & electronics": "Shopping",
        "Online shopping": "Shopping",
        "Gifts": "Shopping",
        "Other": "Shopping",
    },
    "Transport & travel": {
        "Car": "Transport",
        "Fuel": "Transport",
        "Parking": "Transport",
        "Public transport": "Transport",
        "Flight tickets": "Transport",
        "Taxi": "Transport",
        "Bicycle": "Transport",
        "Other": "Transport",
    },
}


def detect_flow_tag(
    tx: Transaction,
    config: DetectionConfig = DETECTION_CONFIG,
) -> str | None:
    """Return ``"Investments"``, ``"Savings"``, ``"Transfers"`` or ``None``.

    Evaluated in strict priority order:

    1. an existing flow tag (any casing) is returned capitalized;
    2. investments, unless the description carries a fee keyword;
    3. savings;
    4. transfers.

    Each group is tried as subcategory exact match, then description keyword,
    then account pattern against description or counterparty.
    """

    sticky = flow_tag(tx.tag)
    if sticky is not None:
        return sticky

    fields = {
        "description": tx.description,
        "counterparty": tx.counterparty,
        "subcategory": tx.subcategory,
    }
    inv = config.investments
    if not inv.has_fee_keyword(tx.description) and inv.matches(**fields):
        return "Investments"
    if config.savings.matches(**fields):
        return "Savings"
    if config.transfers.matches(**fields):
        return "Transfers"
    return None


def apply_category_rules(description: str, rules: Iterable[CategoryRule]) -> str | None:
    """Return the category of the first rule whose pattern matches."""

    for rule in rules:
        if rule.matches(description):
            return rule.category
    return None


def map_category_to_tag(
    category: str,
    subcategory: str,
    mapping: Mapping[str, Mapping[str, str]] = DEFAULT_TAG_MAPPING,
    *,
    category_only: bool = True,
) -> str | None:
    """Look up the tag for a bank category/subcategory pair.

    With ``category_only`` a category with an unknown subcategory falls back
    to the first entry listed for that category.
    """

    if not category:
        return None
    by_cat = {k.lower(): v for k, v in mapping.items()}
    subs = by_cat.get(category.strip().lower())
    if not subs:
        return None
    by_sub = {k.lower(): v for k, v in subs.items()}
    tag = by_sub.get(subcategory.strip().lower()) if subcategory else None
    if tag is None and category_only:
        tag = next(iter(subs.values()), None)
    return tag


def assign_tag(
    tx: Transaction,
    *,
    config: DetectionConfig = DETECTION_CONFIG,
    mapping: Mapping[str, Mapping[str, str]] | None = DEFAULT_TAG_MAPPING,
    fallback_category: str = "Other",
) -> str | None:
    """Return the tag ``tx`` should carry after automatic tagging.

    An existing tag is returned unchanged. The category-only mapping fallback
    is not applied to ``fallback_category`` since the normalizer assigns that
    category to rows that had none.
    """

    if tx.tag:
        return flow_tag(tx.tag) or tx.tag
    detected = detect_flow_tag(tx, config)
    if detected is not None:
        return detected
    if mapping:
        return map_category_to_tag(
            tx.category,
            tx.subcategory,
            mapping,
            category_only=tx.category.strip().lower() != fallback_category.lower(),
        )
    return None


def auto_tag(
    transactions: Sequence[Transaction],
    *,
    config: DetectionConfig = DETECTION_CONFIG,
    mapping: Mapping[str, Mapping[str, str]] | None = DEFAULT_TAG_MAPPING,
) -> tuple[list[Transaction], int]:
    """Tag untagged transactions; returns ``(transactions, n_tagged)``.

    Already-tagged transactions are returned untouched.
    """

    out: list[Transaction] = []
    n_tagged = 0
    for tx in transactions:
        if tx.tag:
            out.append(tx)
            continue
        tag = assign_tag(tx, config=config, mapping=mapping)
        if tag:
            n_tagged += 1
            out.append(tx.with_tag(tag))
        else:
            out.append(tx)
    _logger.info(
        "auto_tag:done; transactions=%d tagged=%d untagged=%d",
        len(out),
        n_tagged,
        sum(1 for t in out if not t.tag),
    )
    return out, n_tagged


__all__ = [
    "DEFAULT_TAG_MAPPING",
    "detect_flow_tag",
    "apply_category_rules",
    "map_category_to_tag",
    "assign_tag",
    "auto_tag",
]
