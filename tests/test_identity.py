from datetime import date

from finance_pipeline.identity import (
    compute_transaction_id,
    find_duplicate_ids,
    merge_transactions,
    new_transactions,
)
from finance_pipeline.ingest.parser import parse_csv
from finance_pipeline.models import Transaction
from finance_pipeline.normalizers import normalize_rows
from tests.helpers.samples import BANK_CSV


def _tx(tx_id: str, **kw) -> Transaction:
    return Transaction(id=tx_id, **kw)


def test_id_is_deterministic_and_ignores_case_and_spacing():
    a = compute_transaction_id(
        date=date(2024, 1, 5), amount=-350, description="Coffee  Bar", counterparty="NL01"
    )
    b = compute_transaction_id(
        date=date(2024, 1, 5), amount=-350, description=" coffee bar ", counterparty="nl01"
    )
    assert a == b


def test_id_changes_with_any_identity_field():
    base = dict(date=date(2024, 1, 5), amount=-350, description="Coffee", counterparty="")
    ref = compute_transaction_id(**base)
    assert compute_transaction_id(**{**base, "amount": -351}) != ref
    assert compute_transaction_id(**{**base, "date": date(2024, 1, 6)}) != ref
    assert compute_transaction_id(**{**base, "description": "Tea"}) != ref
    assert compute_transaction_id(**{**base, "counterparty": "X"}) != ref


def test_external_id_is_used_verbatim():
    assert (
        compute_transaction_id(
            date=None, amount=0, description="", counterparty="", external_id=" src-42 "
        )
        == "src-42"
    )


def test_ids_do_not_depend_on_row_order():
    rows = parse_csv(BANK_CSV)
    forward = [r.canonical.id for r in normalize_rows(rows)]
    backward = [r.canonical.id for r in normalize_rows(list(reversed(rows)))]
    assert sorted(forward) == sorted(backward)
    assert len(set(forward)) == 5


def test_merge_is_append_only_and_drops_known_ids():
    existing = [_tx("a", amount=1), _tx("b", amount=2)]
    incoming = [_tx("b", amount=999, description="changed"), _tx("c", amount=3), _tx("c", amount=3)]
    result = merge_transactions(existing, incoming)
    assert (result.added, result.duplicates, result.total) == (1, 2, 3)
    assert [t.id for t in result.transactions] == ["a", "b", "c"]
    # The persisted record wins over the incoming one
    assert result.transactions[1].amount == 2
    assert [t.id for t in new_transactions(result)] == ["c"]


def test_reimporting_same_batch_is_a_no_op():
    txs = [r.canonical for r in normalize_rows(parse_csv(BANK_CSV))]
    first = merge_transactions([], txs)
    second = merge_transactions(first.transactions, txs)
    assert first.added == 5
    assert (second.added, second.duplicates, second.total) == (0, 5, 5)
    assert second.transactions == first.transactions
    assert new_transactions(second) == ()


def test_find_duplicate_ids():
    assert find_duplicate_ids([_tx("a"), _tx("b"), _tx("a")]) == ["a"]
    assert find_duplicate_ids([]) == []
