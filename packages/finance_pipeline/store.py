"""Transaction store over a key-value backend.

:class:`TransactionStore` owns the in-memory transaction collection and keeps
it in sync with one storage slot. Mutations go through explicit methods and
notify subscribers with a :class:`StoreEvent`; there is no implicit
reactivity.

Persistence is best-effort: when a write fails the in-memory collection keeps
the new state, the failure is logged, and the
:class:`~finance_pipeline.errors.StorageError` is raised to the caller.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Literal

from pydantic import ValidationError

from .errors import StorageError
from .identity import find_duplicate_ids, merge_transactions, new_transactions
from .ingest.columns import DEFAULT_VISIBLE_COLUMNS
from .logging_setup import get_logger
from .models import (
    CATEGORY_RULES_ADAPTER,
    TRANSACTIONS_ADAPTER,
    CategoryRule,
    MergeResult,
    Transaction,
    UploadInfo,
)
from .storage import KeyValueStore
from .tags import DEFAULT_TAGS, flow_tag, merge_vocabulary, normalize_tag_name, validate_tag_name

_logger = get_logger("finance_pipeline.store")

TRANSACTIONS_KEY = "transactions"
VISIBLE_COLUMNS_KEY = "visible_columns"
CATEGORY_RULES_KEY = "category_rules"
LAST_UPLOAD_KEY = "last_upload"
TAGS_KEY = "tags"

EventKind = Literal["set", "merge", "tag", "clear"]


@dataclass(frozen=True, slots=True)
class StoreEvent:
    kind: EventKind
    transactions: tuple[Transaction, ...]
    added: tuple[Transaction, ...] = ()
    tx_ids: tuple[str, ...] = ()


Listener = Callable[[StoreEvent], None]


def _canonical_tag(tag: str | None) -> str | None:
    if tag is None or not tag.strip():
        return None
    v = validate_tag_name(tag)
    if not v.ok:
        raise ValueError(f"invalid tag {tag!r}: {v.reason}")
    name = normalize_tag_name(tag)
    return flow_tag(name) or name


class TransactionStore:
    """In-memory transaction collection mirrored to a key-value backend."""

    def __init__(self, storage: KeyValueStore) -> None:
        self.storage = storage
        self._transactions: tuple[Transaction, ...] = ()
        self._listeners: list[Listener] = []

    # ---- Reading ----------------------------------------------------------

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        return self._transactions

    def __len__(self) -> int:
        return len(self._transactions)

    def get(self, tx_id: str) -> Transaction | None:
        for tx in self._transactions:
            if tx.id == tx_id:
                return tx
        return None

    def _read_transactions(self) -> list[Transaction]:
        raw = self.storage.get(TRANSACTIONS_KEY)
        if not raw:
            return []
        try:
            return TRANSACTIONS_ADAPTER.validate_json(raw)
        except ValidationError as e:
            raise StorageError(
                f"stored transactions are corrupt: {e.error_count()} validation error(s)",
                key=TRANSACTIONS_KEY,
            ) from e

    def load(self) -> tuple[Transaction, ...]:
        """Replace the in-memory collection with the persisted one."""

        txs = self._read_transactions()
        dupes = find_duplicate_ids(txs)
        if dupes:
            _logger.warning(
                "store:load_duplicates; count=%d first=%s", len(dupes), dupes[0]
            )
        self._transactions = tuple(txs)
        _logger.debug("store:load; transactions=%d", len(txs))
        return self._transactions

    # ---- Subscriptions ----------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unsubscribes it."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self, event: StoreEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    # ---- Writing ----------------------------------------------------------

    def _write(self, key: str, value: str) -> None:
        try:
            self.storage.set(key, value)
        except StorageError:
            _logger.error("store:write_failed; key=%s bytes=%d", key, len(value), exc_info=True)
            raise

    def _commit(self, event: StoreEvent) -> None:
        self._transactions = event.transactions
        try:
            self._write(
                TRANSACTIONS_KEY,
                TRANSACTIONS_ADAPTER.dump_json(list(event.transactions)).decode("utf-8"),
            )
        finally:
            self._emit(event)

    def set_transactions(self, transactions: Iterable[Transaction]) -> None:
        txs = tuple(transactions)
        self._commit(StoreEvent("set", txs))

    def merge_transactions(self, incoming: Iterable[Transaction]) -> MergeResult:
        """Append unseen transactions and persist the result in one write.

        The persisted collection is re-read first so back-to-back imports do
        not lose each other's records. In-memory records that never reached
        storage (after a failed write) are kept as well.
        """

        persisted = self._read_transactions()
        known = {tx.id for tx in persisted}
        pending = [tx for tx in self._transactions if tx.id not in known]
        result = merge_transactions([*persisted, *pending], incoming)
        added = new_transactions(result)
        _logger.info(
            "store:merge; added=%d duplicates=%d total=%d",
            result.added,
            result.duplicates,
            result.total,
        )
        self._commit(StoreEvent("merge", result.transactions, added=added))
        return result

    def update_tag(self, tx_id: str, tag: str | None) -> Transaction:
        """Set or clear (``None``/blank) the tag of one transaction."""

        return self.update_tags({tx_id: tag})[0]

    def update_tags(self, updates: Mapping[str, str | None]) -> list[Transaction]:
        """Apply several tag changes with a single write.

        Raises
        ------
        KeyError
            When any id is unknown; nothing is changed.
        ValueError
            When a tag name is invalid; nothing is changed.
        """

        known = {tx.id for tx in self._transactions}
        missing = [i for i in updates if i not in known]
        if missing:
            raise KeyError(f"unknown transaction id(s): {', '.join(missing)}")
        resolved = {i: _canonical_tag(t) for i, t in updates.items()}

        changed: list[Transaction] = []
        out: list[Transaction] = []
        for tx in self._transactions:
            if tx.id in resolved:
                tx = tx.with_tag(resolved[tx.id])
                changed.append(tx)
            out.append(tx)
        self._commit(StoreEvent("tag", tuple(out), tx_ids=tuple(resolved)))
        return changed

    def clear_all(self) -> None:
        """Delete every transaction and the last-upload record immediately."""

        self._transactions = ()
        try:
            self.storage.delete(TRANSACTIONS_KEY)
            self.storage.delete(LAST_UPLOAD_KEY)
        except StorageError:
            _logger.error("store:clear_failed", exc_info=True)
            raise
        finally:
            self._emit(StoreEvent("clear", ()))
        _logger.info("store:cleared")

    # ---- Auxiliary slots --------------------------------------------------

    def get_visible_columns(self) -> list[str]:
        raw = self.storage.get(VISIBLE_COLUMNS_KEY)
        if raw:
            try:
                cols = json.loads(raw)
            except json.JSONDecodeError:
                _logger.warning("store:bad_visible_columns; using defaults", exc_info=True)
            else:
                if isinstance(cols, list) and cols and all(isinstance(c, str) for c in cols):
                    return cols
        return list(DEFAULT_VISIBLE_COLUMNS)

    def set_visible_columns(self, columns: Sequence[str]) -> None:
        cols = [c.strip() for c in columns if c and c.strip()]
        if not cols:
            raise ValueError("at least one visible column is required")
        self._write(VISIBLE_COLUMNS_KEY, json.dumps(cols))

    def get_category_rules(self) -> list[CategoryRule]:
        raw = self.storage.get(CATEGORY_RULES_KEY)
        if not raw:
            return []
        try:
            return CATEGORY_RULES_ADAPTER.validate_json(raw)
        except ValidationError as e:
            raise StorageError(
                f"stored category rules are corrupt: {e.error_count()} validation error(s)",
                key=CATEGORY_RULES_KEY,
            ) from e

    def set_category_rules(self, rules: Sequence[CategoryRule]) -> None:
        self._write(CATEGORY_RULES_KEY, CATEGORY_RULES_ADAPTER.dump_json(list(rules)).decode())

    def get_last_upload(self) -> UploadInfo | None:
        raw = self.storage.get(LAST_UPLOAD_KEY)
        if not raw:
            return None
        try:
            return UploadInfo.model_validate_json(raw)
        except ValidationError:
            _logger.warning("store:bad_last_upload; ignoring", exc_info=True)
            return None

    def set_last_upload(self, info: UploadInfo) -> None:
        self._write(LAST_UPLOAD_KEY, info.model_dump_json(by_alias=True))

    def get_custom_tags(self) -> list[str]:
        raw = self.storage.get(TAGS_KEY)
        if not raw:
            return []
        try:
            tags = json.loads(raw)
        except json.JSONDecodeError:
            _logger.warning("store:bad_tags; ignoring", exc_info=True)
            return []
        return [t for t in tags if isinstance(t, str)] if isinstance(tags, list) else []

    def add_custom_tag(self, name: str) -> str:
        tag = _canonical_tag(name)
        if tag is None:
            raise ValueError("tag cannot be empty")
        tags = merge_vocabulary(self.get_custom_tags(), [tag])
        self._write(TAGS_KEY, json.dumps(tags))
        return tag

    def tag_vocabulary(self) -> list[str]:
        """Default tags, then custom tags, then any tag seen on a transaction."""

        return merge_vocabulary(
            DEFAULT_TAGS,
            self.get_custom_tags(),
            (tx.tag for tx in self._transactions),
        )


__all__ = [
    "TransactionStore",
    "StoreEvent",
    "TRANSACTIONS_KEY",
    "VISIBLE_COLUMNS_KEY",
    "CATEGORY_RULES_KEY",
    "LAST_UPLOAD_KEY",
    "TAGS_KEY",
]
