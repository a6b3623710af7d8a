"""Budget category recalculation and performance snapshots."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Sequence

import pandas as pd

from .aggregation import aggregate, month_of
from .errors import InvalidConfigurationError
from .models import BudgetCategoryRecord, CategoryKind, TransactionRecord

logger = logging.getLogger(__name__)


def validate_category(category: BudgetCategoryRecord) -> BudgetCategoryRecord:
    """Reject categories the engine cannot budget for.

    Raises:
        InvalidConfigurationError: unknown kind, or a negative or non-finite
            budget amount.
    """
    if not isinstance(category.kind, CategoryKind):
        raise InvalidConfigurationError(f"Unknown category kind: {category.kind!r}")
    amount = category.budget_amount
    if not isinstance(amount, Decimal) or not amount.is_finite():
        raise InvalidConfigurationError(
            f"Budget amount for {category.kind.value} must be a finite Decimal"
        )
    if amount < 0:
        raise InvalidConfigurationError(
            f"Budget amount for {category.kind.value} cannot be negative"
        )
    return category


def recalculate_budgets(
    categories: Sequence[BudgetCategoryRecord],
    transactions: Iterable[TransactionRecord],
    as_of: date,
) -> List[BudgetCategoryRecord]:
    """Return ``categories`` with ``spent_amount`` recomputed for the month of ``as_of``.

    Active categories get the expense total of their kind for the current
    month (zero when nothing matches).  Inactive categories come back
    unchanged.  This is the only code path that sets ``spent_amount``.
    """
    active_kinds = [category.kind for category in categories if category.is_active]
    summary = aggregate(transactions, as_of, history_window=1, categories=active_kinds)
    current = month_of(as_of)

    updated: List[BudgetCategoryRecord] = []
    for category in categories:
        if not category.is_active:
            updated.append(category)
            continue
        spent = summary.total_for(category.kind, current)
        if spent != category.spent_amount:
            logger.debug(
                "Spent amount for %s changed from %s to %s",
                category.kind.value,
                category.spent_amount,
                spent,
            )
        updated.append(replace(category, spent_amount=spent))
    return updated


def budget_performance(categories: Iterable[BudgetCategoryRecord]) -> pd.DataFrame:
    """Create a DataFrame of budget vs spent for active categories.

    Returns:
        DataFrame with columns: Category, Budget, Spent, Remaining,
        Percent Used, Status
    """
    rows = []
    for category in sorted(categories, key=lambda item: item.kind.order):
        if not category.is_active:
            continue
        rows.append({
            'Category': category.kind.label,
            'Budget': category.budget_amount,
            'Spent': category.spent_amount,
            'Remaining': category.remaining_amount,
            'Percent Used': category.percentage_used,
            'Status': 'Over Budget' if category.is_over_budget else 'Under Budget',
        })
    return pd.DataFrame(
        rows,
        columns=['Category', 'Budget', 'Spent', 'Remaining', 'Percent Used', 'Status'],
    )
