"""Transaction identity and append-only merging.

Identity
--------
A transaction keeps the identifier its source supplied (JSON exports and bank
APIs). Otherwise the id is a SHA-256 over a canonical JSON payload of the
calendar date, the amount in cents, and the trimmed, lowercased description
and counterparty. The payload is independent of row position and import order,
so re-importing the same file yields the same ids.

Two genuinely distinct transactions sharing all four fields (two identical
coffees on one day) receive the same id and collapse into one on merge. This
is an accepted limitation: any tie-breaker based on row position would break
idempotent re-import.

Merging
-------
:func:`merge_transactions` never overwrites, reorders or removes existing
records. An incoming record whose id is already present (persisted, or seen
earlier in the same batch) is counted as a duplicate and dropped.
"""

from __future__ import annotations

import datetime as dt
import hashlib
import json
from collections import Counter
from collections.abc import Iterable, Sequence

from .models import MergeResult, Transaction

_ID_PREFIX = "tx_"


def _norm(value: str | None) -> str:
    return " ".join((value or "").split()).lower()


def compute_transaction_id(
    *,
    date: dt.date | None,
    amount: int,
    description: str | None,
    counterparty: str | None,
    external_id: str | None = None,
) -> str:
    """Return the stable identifier for a transaction.

    Parameters
    ----------
    date, amount, description, counterparty:
        Canonical field values; text is whitespace-collapsed and lowercased
        before hashing.
    external_id:
        Source-provided identifier. When non-blank it is returned verbatim.
    """

    if external_id is not None and external_id.strip():
        return external_id.strip()

    payload = {
        "date": date.isoformat() if date else None,
        "amount": int(amount),
        "description": _norm(description),
        "counterparty": _norm(counterparty),
    }
    s = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return _ID_PREFIX + hashlib.sha256(s.encode("utf-8")).hexdigest()


def merge_transactions(
    existing: Sequence[Transaction],
    incoming: Iterable[Transaction],
) -> MergeResult:
    """Append unseen ``incoming`` transactions to ``existing``.

    Returns
    -------
    MergeResult
        ``added`` is the number appended, ``duplicates`` the number dropped,
        ``total`` the size of the merged collection and ``transactions`` the
        merged collection itself (existing order first, then new records in
        input order).
    """

    seen = {tx.id for tx in existing}
    added: list[Transaction] = []
    duplicates = 0
    for tx in incoming:
        if tx.id in seen:
            duplicates += 1
            continue
        seen.add(tx.id)
        added.append(tx)

    merged = (*existing, *added)
    return MergeResult(
        added=len(added),
        duplicates=duplicates,
        total=len(merged),
        transactions=merged,
    )


def new_transactions(result: MergeResult) -> tuple[Transaction, ...]:
    """The records appended by a merge, in input order."""

    if result.added == 0:
        return ()
    return result.transactions[-result.added :]


def find_duplicate_ids(transactions: Iterable[Transaction]) -> list[str]:
    """Ids that occur more than once in ``transactions``, in first-seen order."""

    counts = Counter(tx.id for tx in transactions)
    return [tx_id for tx_id, n in counts.items() if n > 1]


__all__ = [
    "compute_transaction_id",
    "merge_transactions",
    "new_transactions",
    "find_duplicate_ids",
]
