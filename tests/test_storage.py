import json
from datetime import date, datetime
from decimal import Decimal

from budget_engine.models import (
    BudgetCategoryRecord,
    CategoryKind,
    Frequency,
    RecurringTemplate,
    TemplateState,
    TransactionKind,
    TransactionRecord,
)
from budget_engine.storage import (
    Snapshot,
    apply_updates,
    load_snapshot,
    save_snapshot,
    transactions_in_range,
)


def _snapshot():
    return Snapshot(
        transactions=[
            TransactionRecord('t1', Decimal('15.49'), date(2024, 3, 12), TransactionKind.EXPENSE,
                              CategoryKind.SUBSCRIPTIONS, account='card', description='Netflix.com'),
            TransactionRecord('t2', Decimal('3000.00'), date(2024, 3, 1), TransactionKind.INCOME,
                              notes='March pay'),
        ],
        categories=[
            BudgetCategoryRecord('subs', CategoryKind.SUBSCRIPTIONS, Decimal('40'), Decimal('15.49')),
        ],
        templates=[
            RecurringTemplate(
                id='rent',
                name='Rent',
                amount=Decimal('1200.00'),
                kind=TransactionKind.EXPENSE,
                frequency=Frequency.MONTHLY,
                start_date=date(2024, 1, 1),
                next_due_date=date(2024, 4, 1),
                end_date=date(2024, 12, 31),
                state=TemplateState.PAUSED,
                auto_pay=False,
                generated_ids=('a', 'b', 'c'),
                updated_at=datetime(2024, 3, 1, 8, 30),
                category=CategoryKind.HOUSING,
                last_processed_date=date(2024, 3, 1),
            ),
        ],
    )


def test_snapshot_round_trip(tmp_path):
    path = tmp_path / 'snapshot.json'
    save_snapshot(_snapshot(), path)

    assert load_snapshot(path) == _snapshot()

    payload = json.loads(path.read_text())
    assert payload['version'] == 1
    assert payload['transactions'][0]['amount'] == '15.49'


def test_missing_snapshot_is_empty(tmp_path):
    assert load_snapshot(tmp_path / 'missing.json') == Snapshot()


def test_corrupt_snapshot_is_empty(tmp_path):
    path = tmp_path / 'snapshot.json'
    path.write_text('{not json')
    assert load_snapshot(path) == Snapshot()


def test_invalid_rows_are_skipped(tmp_path):
    path = tmp_path / 'snapshot.json'
    path.write_text(json.dumps({
        'transactions': [
            {'id': 'ok', 'amount': '10', 'date': '2024-01-01', 'kind': 'expense'},
            {'id': 'no-amount', 'date': '2024-01-01', 'kind': 'expense'},
            {'id': 'bad-amount', 'amount': 'ten', 'date': '2024-01-01', 'kind': 'expense'},
            {'id': 'bad-kind', 'amount': '10', 'date': '2024-01-01', 'kind': 'transfer'},
        ],
        'categories': [{'id': 'pets', 'kind': 'pets'}],
    }))

    snapshot = load_snapshot(path)
    assert [txn.id for txn in snapshot.transactions] == ['ok']
    assert snapshot.categories == []


def test_apply_updates_ignores_known_transactions():
    snapshot = _snapshot()
    new = TransactionRecord('t3', Decimal('1200'), date(2024, 4, 1), TransactionKind.EXPENSE, template_id='rent')
    category = BudgetCategoryRecord('subs', CategoryKind.SUBSCRIPTIONS, Decimal('40'), Decimal('31.48'))
    extra = BudgetCategoryRecord('housing', CategoryKind.HOUSING, Decimal('1200'))

    updated = apply_updates(
        snapshot,
        transactions=[snapshot.transactions[0], new, new],
        categories=[category, extra],
    )

    assert [txn.id for txn in updated.transactions] == ['t1', 't2', 't3']
    assert [item.spent_amount for item in updated.categories] == [Decimal('31.48'), Decimal('0')]
    assert updated.templates == snapshot.templates
    assert len(snapshot.transactions) == 2


def test_transactions_in_range():
    transactions = _snapshot().transactions
    assert [txn.id for txn in transactions_in_range(transactions, start=date(2024, 3, 2))] == ['t1']
    assert [txn.id for txn in transactions_in_range(transactions, end=date(2024, 3, 1))] == ['t2']
    assert len(transactions_in_range(transactions)) == 2
