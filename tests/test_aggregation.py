from datetime import date
from decimal import Decimal
import random

import pandas as pd

from budget_engine.aggregation import aggregate, history_months, monthly_total, transactions_frame
from budget_engine.models import CategoryKind, TransactionKind, TransactionRecord

JUNE = pd.Period('2024-06', freq='M')
MAY = pd.Period('2024-05', freq='M')


def _txn(txn_id, amount, on, category=CategoryKind.GROCERIES, kind=TransactionKind.EXPENSE):
    return TransactionRecord(id=txn_id, amount=Decimal(amount), date=on, kind=kind, category=category)


def _sample():
    return [
        _txn('g1', '12.50', date(2024, 6, 3)),
        _txn('g2', '7.25', date(2024, 6, 20)),
        _txn('g3', '40.00', date(2024, 5, 2)),
        _txn('d1', '30.00', date(2024, 6, 5), CategoryKind.DINING),
        _txn('s1', '3000.00', date(2024, 6, 1), None, TransactionKind.INCOME),
        _txn('r1', '5.00', date(2024, 6, 8), CategoryKind.GROCERIES, TransactionKind.INCOME),
    ]


def test_category_month_totals_sum_expenses():
    result = aggregate(_sample(), date(2024, 6, 30))

    assert result.total_for(CategoryKind.GROCERIES, JUNE) == Decimal('19.75')
    assert result.total_for(CategoryKind.GROCERIES, MAY) == Decimal('40.00')
    assert result.total_for(CategoryKind.DINING, JUNE) == Decimal('30.00')
    assert result.total_for(CategoryKind.GROCERIES, JUNE, TransactionKind.INCOME) == Decimal('5.00')


def test_totals_do_not_depend_on_order():
    records = _sample()
    shuffled = list(records)
    random.Random(7).shuffle(shuffled)

    forward = aggregate(records, date(2024, 6, 30))
    backward = aggregate(list(reversed(records)), date(2024, 6, 30))
    mixed = aggregate(shuffled, date(2024, 6, 30))

    assert forward.expense_totals == backward.expense_totals == mixed.expense_totals
    assert forward.expense_history == mixed.expense_history


def test_history_fills_missing_months_with_zero():
    result = aggregate(_sample(), date(2024, 6, 30))
    history = result.history_for(CategoryKind.GROCERIES)

    assert len(history) == 6
    assert history == [Decimal('0')] * 4 + [Decimal('40.00'), Decimal('19.75')]
    assert [str(month) for month in result.months] == [
        '2024-01', '2024-02', '2024-03', '2024-04', '2024-05', '2024-06',
    ]


def test_history_window_is_configurable():
    result = aggregate(_sample(), date(2024, 6, 30), history_window=2)
    assert result.history_for(CategoryKind.GROCERIES) == [Decimal('40.00'), Decimal('19.75')]
    assert len(history_months(date(2024, 6, 30), 12)) == 12


def test_future_transactions_are_ignored():
    records = _sample() + [_txn('late', '99.00', date(2024, 7, 1))]
    result = aggregate(records, date(2024, 6, 30))
    assert result.total_for(CategoryKind.GROCERIES, pd.Period('2024-07', freq='M')) == Decimal('0')
    assert result.history_for(CategoryKind.GROCERIES)[-1] == Decimal('19.75')


def test_uncategorized_only_counts_toward_kind_totals():
    result = aggregate(_sample(), date(2024, 6, 30))
    assert result.kind_history[TransactionKind.INCOME][-1] == Decimal('3005.00')
    assert all(category is not None for category, _ in result.income_totals)
    assert result.kind_history[TransactionKind.EXPENSE][-1] == Decimal('49.75')


def test_requested_categories_get_zero_history():
    result = aggregate(_sample(), date(2024, 6, 30), categories=[CategoryKind.HOUSING])
    assert result.expense_history[CategoryKind.HOUSING] == [Decimal('0')] * 6
    assert result.history_for(CategoryKind.TRANSPORT) == [Decimal('0')] * 6


def test_empty_input_yields_empty_totals():
    result = aggregate([], date(2024, 6, 30))
    assert result.expense_totals == {}
    assert result.months_with_data == 0
    assert result.kind_history[TransactionKind.EXPENSE] == [Decimal('0')] * 6


def test_aggregate_is_pure():
    records = _sample()
    before = list(records)
    first = aggregate(records, date(2024, 6, 30))
    second = aggregate(records, date(2024, 6, 30))

    assert records == before
    assert first.expense_totals == second.expense_totals
    assert first.kind_history == second.kind_history


def test_months_with_data_counts_any_kind():
    result = aggregate(_sample(), date(2024, 6, 30))
    assert result.months_with_data == 2


def test_to_frame_and_transactions_frame():
    result = aggregate(_sample(), date(2024, 6, 30))
    frame = result.to_frame()
    assert list(frame.index) == ['Groceries', 'Dining']
    assert frame.loc['Groceries', '2024-06'] == Decimal('19.75')

    df = transactions_frame(_sample())
    assert len(df) == 6
    assert set(df['Month'].astype(str)) == {'2024-05', '2024-06'}


def test_monthly_total_matches_aggregate():
    records = _sample()
    result = aggregate(records, date(2024, 6, 30))
    assert monthly_total(records, JUNE, category=CategoryKind.GROCERIES) == result.total_for(
        CategoryKind.GROCERIES, JUNE
    )


def test_month_with_offsetting_rows_still_has_data():
    records = [
        _txn('buy', '50.00', date(2024, 5, 4)),
        _txn('refund', '-50.00', date(2024, 5, 9)),
        _txn('g1', '12.50', date(2024, 6, 3)),
    ]
    result = aggregate(records, date(2024, 6, 30))

    assert result.total_for(CategoryKind.GROCERIES, MAY) == Decimal('0')
    assert result.months_with_data == 2
