from datetime import date
from decimal import Decimal

import pytest

from budget_engine.aggregation import month_of, monthly_total
from budget_engine.budgets import budget_performance, recalculate_budgets, validate_category
from budget_engine.errors import InvalidConfigurationError
from budget_engine.models import BudgetCategoryRecord, CategoryKind, TransactionKind, TransactionRecord


def _txn(txn_id, amount, on, category, kind=TransactionKind.EXPENSE):
    return TransactionRecord(id=txn_id, amount=Decimal(amount), date=on, kind=kind, category=category)


def _transactions():
    return [
        _txn('g1', '20.00', date(2024, 6, 2), CategoryKind.GROCERIES),
        _txn('g2', '30.00', date(2024, 6, 18), CategoryKind.GROCERIES),
        _txn('g3', '100.00', date(2024, 5, 30), CategoryKind.GROCERIES),
        _txn('g4', '5.00', date(2024, 6, 9), CategoryKind.GROCERIES, TransactionKind.INCOME),
        _txn('h1', '75.00', date(2024, 6, 1), CategoryKind.HOUSING),
    ]


def _categories():
    return [
        BudgetCategoryRecord(id='groceries', kind=CategoryKind.GROCERIES, budget_amount=Decimal('400'),
                             spent_amount=Decimal('999')),
        BudgetCategoryRecord(id='dining', kind=CategoryKind.DINING, budget_amount=Decimal('100')),
        BudgetCategoryRecord(id='housing', kind=CategoryKind.HOUSING, budget_amount=Decimal('1000'),
                             spent_amount=Decimal('50'), is_active=False),
    ]


def test_recalculate_sets_current_month_expenses():
    updated = {category.id: category for category in recalculate_budgets(_categories(), _transactions(), date(2024, 6, 30))}

    assert updated['groceries'].spent_amount == Decimal('50.00')
    assert updated['dining'].spent_amount == Decimal('0')
    assert updated['housing'].spent_amount == Decimal('50')


def test_spent_matches_matching_transactions():
    transactions = _transactions()
    as_of = date(2024, 6, 15)
    for category in recalculate_budgets(_categories(), transactions, as_of):
        if not category.is_active:
            continue
        expected = monthly_total(transactions, month_of(as_of), category=category.kind)
        assert category.spent_amount == expected


def test_recalculate_returns_new_records():
    categories = _categories()
    updated = recalculate_budgets(categories, _transactions(), date(2024, 6, 30))

    assert categories[0].spent_amount == Decimal('999')
    assert updated[0] is not categories[0]
    assert updated[2] is categories[2]
    assert [category.id for category in updated] == ['groceries', 'dining', 'housing']


def test_derived_budget_properties():
    category = BudgetCategoryRecord(id='x', kind=CategoryKind.DINING, budget_amount=Decimal('80'),
                                    spent_amount=Decimal('100'))
    assert category.remaining_amount == Decimal('-20')
    assert category.percentage_used == Decimal('125.00')
    assert category.is_over_budget

    unbudgeted = BudgetCategoryRecord(id='y', kind=CategoryKind.OTHER, spent_amount=Decimal('10'))
    assert unbudgeted.percentage_used == Decimal('0')


@pytest.mark.parametrize('amount', [Decimal('-1'), Decimal('NaN'), Decimal('Infinity')])
def test_validate_category_rejects_bad_budgets(amount):
    category = BudgetCategoryRecord(id='bad', kind=CategoryKind.SHOPPING, budget_amount=amount)
    with pytest.raises(InvalidConfigurationError):
        validate_category(category)


def test_validate_category_rejects_unknown_kind():
    category = BudgetCategoryRecord(id='bad', kind='pets', budget_amount=Decimal('10'))
    with pytest.raises(ValueError):
        validate_category(category)


def test_budget_performance_lists_active_categories():
    updated = recalculate_budgets(_categories(), _transactions(), date(2024, 6, 30))
    frame = budget_performance(updated)

    assert list(frame.columns) == ['Category', 'Budget', 'Spent', 'Remaining', 'Percent Used', 'Status']
    assert list(frame['Category']) == ['Groceries', 'Dining']
    groceries = frame.iloc[0]
    assert groceries['Remaining'] == Decimal('350.00')
    assert groceries['Percent Used'] == Decimal('12.50')
    assert groceries['Status'] == 'Under Budget'
