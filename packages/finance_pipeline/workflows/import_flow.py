"""Workflow orchestrators: import, bulk auto-tagging and interactive review.

These functions compose the parser, normalizer, categorizer and store behind
single calls that the CLI (and library users) can invoke. Keeping them out of
``api.py`` keeps that module a thin re-export surface.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from os import PathLike
from pathlib import Path

from ..categorize import DEFAULT_TAG_MAPPING, auto_tag
from ..detection_config import DETECTION_CONFIG, DetectionConfig
from ..ingest.parser import parse_text
from ..logging_setup import get_logger
from ..models import CategoryRule, Transaction, UploadInfo
from ..normalizers import normalize_rows
from ..store import TransactionStore

_logger = get_logger("finance_pipeline.workflows.import_flow")

TagSelector = Callable[[Transaction, Sequence[str]], str | None]


@dataclass(frozen=True, slots=True)
class ImportResult:
    filename: str
    rows: int
    added: int
    duplicates: int
    total: int
    auto_tagged: int
    flagged: tuple[str, ...] = ()


def import_text(
    text: str,
    filename: str,
    store: TransactionStore,
    *,
    rules: Sequence[CategoryRule] | None = None,
    config: DetectionConfig = DETECTION_CONFIG,
    mapping: Mapping[str, Mapping[str, str]] | None = DEFAULT_TAG_MAPPING,
    on_progress: Callable[[str], None] | None = None,
) -> ImportResult:
    """End-to-end: parse, normalize, auto-tag, merge into ``store``.

    Parameters
    ----------
    text, filename:
        Raw file content and its name (the extension selects CSV or JSON).
    store:
        Destination store. Re-importing the same content adds nothing.
    rules:
        Category rules; defaults to the rules saved in ``store``.
    on_progress:
        Optional callable receiving short status lines (e.g., ``print``).

    Returns
    -------
    ImportResult
        Counts for the merge plus the ids of rows imported with field-level
        problems (``flagged``).

    Raises
    ------
    ParseError
        When the file as a whole cannot be read; nothing is merged.
    StorageError
        When persisting fails. The store keeps the merged collection in memory.
    """

    rows = parse_text(text, filename)
    active_rules = list(rules) if rules is not None else store.get_category_rules()
    normalized = normalize_rows(rows, rules=active_rules)
    flagged = tuple(r.canonical.id for r in normalized if r.issues)
    if on_progress and flagged:
        on_progress(f"{len(flagged)} row(s) imported with problems; review their dates/amounts.")

    tagged, n_tagged = auto_tag(
        [r.canonical for r in normalized], config=config, mapping=mapping
    )
    result = store.merge_transactions(tagged)
    store.set_last_upload(
        UploadInfo(
            filename=filename,
            transaction_count=len(rows),
            timestamp=datetime.now(UTC),
        )
    )

    _logger.info(
        "import:done; filename=%s rows=%d added=%d duplicates=%d flagged=%d",
        filename,
        len(rows),
        result.added,
        result.duplicates,
        len(flagged),
    )
    if on_progress:
        on_progress(
            f"Imported {result.added} new transaction(s), skipped {result.duplicates} "
            f"duplicate(s); {result.total} in total."
        )
    return ImportResult(
        filename=filename,
        rows=len(rows),
        added=result.added,
        duplicates=result.duplicates,
        total=result.total,
        auto_tagged=n_tagged,
        flagged=flagged,
    )


def import_file(
    path: str | PathLike[str],
    store: TransactionStore,
    **kwargs,
) -> ImportResult:
    """Read ``path`` as UTF-8 (a leading BOM is tolerated) and import it."""

    p = Path(path)
    text = p.read_text(encoding="utf-8-sig")
    return import_text(text, p.name, store, **kwargs)


def categorize_stored(
    store: TransactionStore,
    *,
    config: DetectionConfig = DETECTION_CONFIG,
    mapping: Mapping[str, Mapping[str, str]] | None = DEFAULT_TAG_MAPPING,
) -> int:
    """Auto-tag untagged stored transactions; returns how many were tagged."""

    tagged, n_tagged = auto_tag(list(store.transactions), config=config, mapping=mapping)
    if n_tagged:
        updates = {
            new.id: new.tag
            for old, new in zip(store.transactions, tagged, strict=True)
            if new.tag != old.tag
        }
        store.update_tags(updates)
    return n_tagged


def _default_selector(tx: Transaction, tags: Sequence[str]) -> str | None:
    from ..term_ui import select_tag

    amount = f"{tx.amount / 100:,.2f}"
    print(f"\n{tx.date or '????-??-??'}  {amount:>12}  {tx.description}")
    if tx.counterparty and tx.counterparty != tx.description:
        print(f"    counterparty: {tx.counterparty}")
    if tx.category or tx.subcategory:
        print(f"    category: {tx.category} / {tx.subcategory}")
    return select_tag(tags, default=None)


def review_untagged(
    store: TransactionStore,
    *,
    selector: TagSelector | None = None,
    tags: Sequence[str] | None = None,
    limit: int | None = None,
) -> dict[str, str]:
    """Ask for a tag for each untagged transaction and persist the answers.

    ``selector`` receives the transaction and the tag vocabulary and returns a
    tag, or ``None`` to skip. Answers are written with a single store update.
    Returns the mapping of transaction id to chosen tag.
    """

    pick = selector or _default_selector
    vocab = list(tags) if tags is not None else store.tag_vocabulary()
    pending = [tx for tx in store.transactions if not tx.tag]
    if limit is not None:
        pending = pending[:limit]

    chosen: dict[str, str] = {}
    for tx in pending:
        tag = pick(tx, vocab)
        if tag:
            chosen[tx.id] = tag
            if tag.lower() not in {v.lower() for v in vocab}:
                vocab.append(store.add_custom_tag(tag))
    if chosen:
        store.update_tags(chosen)
    _logger.info("review:done; reviewed=%d tagged=%d", len(pending), len(chosen))
    return chosen


__all__ = [
    "ImportResult",
    "TagSelector",
    "import_text",
    "import_file",
    "categorize_stored",
    "review_untagged",
]
