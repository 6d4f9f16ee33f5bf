"""Column-name tables for supported bank export formats.

``HEADER_MAP`` maps CSV header cells (as written by the European bank export
and a few common spellings) to canonical field names. Lookup is exact first,
then case-insensitive. Headers not in the table pass through unchanged.

``JSON_NESTED_FIELDS`` lists nested bank-API paths that are flattened into
canonical fields when the canonical field is absent.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

HEADER_MAP: dict[str, str] = {
    "Date": "date",
    "Name / Description": "description",
    "Description": "description",
    "Account": "account",
    "Counterparty": "counterparty",
    "Code": "code",
    "Debit/credit": "debit_credit",
    "Amount (EUR)": "amount",
    "Amount": "amount",
    "Transaction type": "transaction_type",
    "Notifications": "notifications",
    "Resulting balance": "balance",
    "Category": "category",
    "Subcategory": "subcategory",
    "Tag": "tag",
    "ID": "id",
}

_HEADER_MAP_LOWER = {k.lower(): v for k, v in HEADER_MAP.items()}

# (canonical field, path into the JSON object)
JSON_NESTED_FIELDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("date", ("executionDate",)),
    ("description", ("subject",)),
    ("counterparty", ("counterAccount", "name")),
    ("account", ("counterAccount", "accountNumber")),
    ("transaction_type", ("type", "description")),
    ("category", ("category", "description")),
    ("subcategory", ("subCategory", "description")),
)

# Canonical columns shown by default in tabular views.
DEFAULT_VISIBLE_COLUMNS: tuple[str, ...] = (
    "date",
    "description",
    "amount",
    "category",
    "subcategory",
    "tag",
)


def map_header(header: str) -> str:
    """Return the canonical field for ``header`` or ``header`` itself."""

    if header in HEADER_MAP:
        return HEADER_MAP[header]
    return _HEADER_MAP_LOWER.get(header.lower(), header)


def _dig(obj: Mapping[str, Any], path: tuple[str, ...]) -> Any:
    cur: Any = obj
    for key in path:
        if not isinstance(cur, Mapping):
            return None
        cur = cur.get(key)
    return cur


def flatten_json_record(obj: Mapping[str, Any]) -> dict[str, Any]:
    """Flatten a bank-API shaped object into canonical field names.

    Canonical keys already present win. Nested ``{"description": ...}``
    objects under canonical keys (``category``, ``type``) are unwrapped, and
    an ``amount`` object ``{"value", "currency"}`` is split into ``amount``
    and ``currency``.
    """

    out: dict[str, Any] = {}
    for key, value in obj.items():
        if isinstance(value, Mapping) and key != "amount":
            continue
        out[key] = value

    amount = obj.get("amount")
    if isinstance(amount, Mapping):
        out["amount"] = amount.get("value")
        if amount.get("currency") is not None:
            out.setdefault("currency", amount.get("currency"))

    for field, path in JSON_NESTED_FIELDS:
        if out.get(field) not in (None, ""):
            continue
        value = _dig(obj, path)
        if value is not None and not isinstance(value, Mapping):
            out[field] = value

    # The bank API labels the payee via counterAccount; use it as description
    # when no subject was given.
    if out.get("description") in (None, "") and out.get("counterparty"):
        out["description"] = out["counterparty"]
    return out


__all__ = [
    "HEADER_MAP",
    "JSON_NESTED_FIELDS",
    "DEFAULT_VISIBLE_COLUMNS",
    "map_header",
    "flatten_json_record",
]
