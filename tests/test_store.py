import json
from datetime import date, datetime, timezone

import pytest

from finance_pipeline.errors import StorageError
from finance_pipeline.models import CategoryRule, Transaction, UploadInfo
from finance_pipeline.storage import KeyValueStore, MemoryStore
from finance_pipeline.store import (
    LAST_UPLOAD_KEY,
    TRANSACTIONS_KEY,
    StoreEvent,
    TransactionStore,
)


def _tx(tx_id: str, amount: int = -100, *, tag: str | None = None) -> Transaction:
    return Transaction(id=tx_id, date=date(2024, 1, 25), amount=amount, tag=tag)


class _FailingStore(MemoryStore):
    def set(self, key: str, value: str) -> None:
        raise StorageError("disk full", key=key)


def test_memory_store_satisfies_protocol():
    assert isinstance(MemoryStore(), KeyValueStore)


def test_merge_is_idempotent_and_persists():
    backend = MemoryStore()
    store = TransactionStore(backend)

    first = store.merge_transactions([_tx("a"), _tx("b")])
    assert (first.added, first.duplicates, first.total) == (2, 0, 2)

    again = store.merge_transactions([_tx("b"), _tx("a"), _tx("c")])
    assert (again.added, again.duplicates, again.total) == (1, 2, 3)
    assert [t.id for t in store.transactions] == ["a", "b", "c"]

    reopened = TransactionStore(backend)
    assert [t.id for t in reopened.load()] == ["a", "b", "c"]


def test_merge_never_overwrites_existing_tag():
    store = TransactionStore(MemoryStore())
    store.merge_transactions([_tx("a", tag="Dining")])
    store.merge_transactions([_tx("a", tag="Groceries")])
    assert store.get("a").tag == "Dining"


def test_merge_sees_writes_from_another_store_instance():
    backend = MemoryStore()
    one, two = TransactionStore(backend), TransactionStore(backend)
    one.merge_transactions([_tx("a")])
    two.merge_transactions([_tx("b")])
    assert [t.id for t in two.transactions] == ["a", "b"]


def test_update_tag_sets_clears_and_canonicalizes():
    store = TransactionStore(MemoryStore())
    store.merge_transactions([_tx("a"), _tx("b")])

    updated = store.update_tag("a", "#savings")
    assert updated.tag == "Savings"
    assert store.get("a").tag == "Savings"
    assert store.get("b").tag is None

    assert store.update_tag("a", "  ").tag is None

    changed = store.update_tags({"a": "Dining", "b": "Groceries"})
    assert [t.tag for t in changed] == ["Dining", "Groceries"]
    persisted = json.loads(store.storage.get(TRANSACTIONS_KEY))
    assert [row["tag"] for row in persisted] == ["Dining", "Groceries"]


def test_update_tag_rejects_unknown_id_and_bad_name_without_changes():
    store = TransactionStore(MemoryStore())
    store.merge_transactions([_tx("a")])

    with pytest.raises(KeyError):
        store.update_tags({"a": "Dining", "missing": "Dining"})
    assert store.get("a").tag is None

    with pytest.raises(ValueError):
        store.update_tag("a", "no <html> please")
    assert store.get("a").tag is None


def test_subscribe_and_unsubscribe():
    store = TransactionStore(MemoryStore())
    events: list[StoreEvent] = []
    unsubscribe = store.subscribe(events.append)

    store.merge_transactions([_tx("a")])
    store.update_tag("a", "Dining")
    unsubscribe()
    store.clear_all()

    assert [e.kind for e in events] == ["merge", "tag"]
    assert [t.id for t in events[0].added] == ["a"]
    assert events[1].tx_ids == ("a",)


def test_failed_write_keeps_memory_and_raises():
    store = TransactionStore(_FailingStore())
    events: list[StoreEvent] = []
    store.subscribe(events.append)

    with pytest.raises(StorageError):
        store.merge_transactions([_tx("a")])
    assert [t.id for t in store.transactions] == ["a"]
    assert [e.kind for e in events] == ["merge"]


def test_clear_all_removes_transactions_and_last_upload_only():
    backend = MemoryStore()
    store = TransactionStore(backend)
    store.merge_transactions([_tx("a")])
    store.set_last_upload(
        UploadInfo(
            filename="bank.csv",
            transaction_count=1,
            timestamp=datetime(2024, 2, 1, 12, 0, tzinfo=timezone.utc),
        )
    )
    store.set_visible_columns(["date", "amount"])

    store.clear_all()

    assert store.transactions == ()
    assert backend.get(TRANSACTIONS_KEY) is None
    assert backend.get(LAST_UPLOAD_KEY) is None
    assert store.get_visible_columns() == ["date", "amount"]


def test_visible_columns_defaults_and_validation():
    store = TransactionStore(MemoryStore({"visible_columns": "not json"}))
    defaults = store.get_visible_columns()
    assert "date" in defaults and "amount" in defaults
    with pytest.raises(ValueError):
        store.set_visible_columns(["", "  "])


def test_category_rules_and_last_upload_round_trip():
    store = TransactionStore(MemoryStore())
    assert store.get_category_rules() == []
    assert store.get_last_upload() is None

    rules = [CategoryRule(match="shell|bp", category="Fuel")]
    store.set_category_rules(rules)
    assert store.get_category_rules() == rules

    info = UploadInfo(
        filename="bank.csv",
        transaction_count=5,
        timestamp=datetime(2024, 2, 1, 12, 0, tzinfo=timezone.utc),
    )
    store.set_last_upload(info)
    raw = json.loads(store.storage.get(LAST_UPLOAD_KEY))
    assert raw["transactionCount"] == 5
    assert store.get_last_upload() == info


def test_corrupt_transactions_slot_raises_storage_error():
    store = TransactionStore(MemoryStore({TRANSACTIONS_KEY: '[{"amount": 1}]'}))
    with pytest.raises(StorageError):
        store.load()


def test_tag_vocabulary_merges_defaults_custom_and_seen():
    store = TransactionStore(MemoryStore())
    store.merge_transactions([_tx("a", tag="Coffee")])
    assert store.add_custom_tag("  #Gifts ") == "Gifts"
    vocab = store.tag_vocabulary()
    assert vocab[0] == "Groceries"
    assert vocab.index("Gifts") < vocab.index("Coffee")
    assert "Savings" in vocab
