"""Transaction aggregation by category and calendar month.

The aggregator is the leaf of every computation pass: budget recalculation,
trend analysis and forecasting all consume its output.  It is a pure
function of its inputs; records are read, never modified.

Amounts stay :class:`~decimal.Decimal` inside the pandas frames (object
columns), so sums are exact and independent of transaction order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import pandas as pd

from .models import ZERO, CategoryKind, TransactionKind, TransactionRecord

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_WINDOW = 6

TRANSACTION_COLUMNS = [
    'id',
    'Transaction Date',
    'Amount',
    'Kind',
    'Category',
    'Account',
    'Description',
    'Template',
]

MonthKey = Tuple[CategoryKind, pd.Period]


def _decimal_sum(values: Iterable[Decimal]) -> Decimal:
    return sum(values, ZERO)


def month_of(value: date) -> pd.Period:
    """Return the calendar month containing ``value``."""
    return pd.Period(value, freq='M')


def history_months(as_of: date, history_window: int = DEFAULT_HISTORY_WINDOW) -> List[pd.Period]:
    """Months of the history window, oldest first, ending with the month of ``as_of``."""
    if history_window < 1:
        return []
    return list(pd.period_range(end=month_of(as_of), periods=history_window, freq='M'))


def transactions_frame(transactions: Iterable[TransactionRecord]) -> pd.DataFrame:
    """Return a DataFrame view of ``transactions`` with a ``Month`` period column."""
    rows = [
        {
            'id': txn.id,
            'Transaction Date': txn.date,
            'Amount': txn.amount,
            'Kind': txn.kind.value,
            'Category': txn.category.value if txn.category is not None else None,
            'Account': txn.account,
            'Description': txn.description,
            'Template': txn.template_id,
        }
        for txn in transactions
    ]
    df = pd.DataFrame(rows, columns=TRANSACTION_COLUMNS)
    if df.empty:
        df['Month'] = pd.Series(dtype='period[M]')
        return df
    df['Month'] = pd.to_datetime(df['Transaction Date']).dt.to_period('M')
    return df


@dataclass
class MonthlyAggregate:
    """Per-category, per-month totals for one reference date."""

    as_of: date
    months: List[pd.Period]
    expense_totals: Dict[MonthKey, Decimal] = field(default_factory=dict)
    income_totals: Dict[MonthKey, Decimal] = field(default_factory=dict)
    expense_history: Dict[CategoryKind, List[Decimal]] = field(default_factory=dict)
    income_history: Dict[CategoryKind, List[Decimal]] = field(default_factory=dict)
    kind_history: Dict[TransactionKind, List[Decimal]] = field(default_factory=dict)
    transaction_months: Set[pd.Period] = field(default_factory=set)

    def totals(self, kind: TransactionKind = TransactionKind.EXPENSE) -> Dict[MonthKey, Decimal]:
        return self.expense_totals if kind is TransactionKind.EXPENSE else self.income_totals

    def total_for(
        self,
        category: CategoryKind,
        month: pd.Period,
        kind: TransactionKind = TransactionKind.EXPENSE,
    ) -> Decimal:
        return self.totals(kind).get((category, month), ZERO)

    def history_for(
        self,
        category: CategoryKind,
        kind: TransactionKind = TransactionKind.EXPENSE,
    ) -> List[Decimal]:
        """Ordered window totals for ``category``; all zeros when it has no history."""
        source = self.expense_history if kind is TransactionKind.EXPENSE else self.income_history
        history = source.get(category)
        if history is None:
            return [ZERO for _ in self.months]
        return list(history)

    @property
    def months_with_data(self) -> int:
        """Number of window months that contain any transaction, even if they net to zero."""
        return sum(1 for month in self.months if month in self.transaction_months)

    def to_frame(self, kind: TransactionKind = TransactionKind.EXPENSE) -> pd.DataFrame:
        """Return window history as a Category x Month frame (Decimal cells)."""
        source = self.expense_history if kind is TransactionKind.EXPENSE else self.income_history
        columns = [str(month) for month in self.months]
        ordered = sorted(source, key=lambda category: category.order)
        frame = pd.DataFrame(
            [source[category] for category in ordered],
            index=[category.label for category in ordered],
            columns=columns,
        )
        frame.index.name = 'Category'
        return frame


def aggregate(
    transactions: Iterable[TransactionRecord],
    as_of: date,
    history_window: int = DEFAULT_HISTORY_WINDOW,
    categories: Sequence[CategoryKind] = (),
) -> MonthlyAggregate:
    """Group ``transactions`` into per-category monthly totals.

    Args:
        transactions: Records to aggregate.  Records dated after the month of
            ``as_of`` are ignored.
        as_of: Reference date; its month is the last month of the window.
        history_window: Number of months in each history sequence.
        categories: Categories that must appear in the history maps even when
            they have no transactions (their sequences are all zero).

    Returns:
        A :class:`MonthlyAggregate`.  Uncategorized transactions only count
        toward ``kind_history``.
    """
    months = history_months(as_of, history_window)
    result = MonthlyAggregate(as_of=as_of, months=months)

    df = transactions_frame(transactions)
    current = month_of(as_of)
    if not df.empty:
        df = df[df['Month'] <= current]
        result.transaction_months = set(df['Month'])

    for kind in TransactionKind:
        scoped = df[df['Kind'] == kind.value] if not df.empty else df
        totals = _category_month_totals(scoped)
        history = _window_history(totals, months, categories)
        if kind is TransactionKind.EXPENSE:
            result.expense_totals = totals
            result.expense_history = history
        else:
            result.income_totals = totals
            result.income_history = history
        result.kind_history[kind] = _kind_window(scoped, months)

    logger.debug(
        "Aggregated %d rows into %d expense and %d income buckets for %s",
        len(df),
        len(result.expense_totals),
        len(result.income_totals),
        current,
    )
    return result


def _category_month_totals(scoped: pd.DataFrame) -> Dict[MonthKey, Decimal]:
    if scoped.empty:
        return {}
    categorized = scoped.dropna(subset=['Category'])
    if categorized.empty:
        return {}
    grouped = categorized.groupby(['Category', 'Month'], sort=False)['Amount'].agg(_decimal_sum)
    return {
        (CategoryKind(category), month): Decimal(total)
        for (category, month), total in grouped.items()
    }


def _window_history(
    totals: Dict[MonthKey, Decimal],
    months: List[pd.Period],
    categories: Sequence[CategoryKind],
) -> Dict[CategoryKind, List[Decimal]]:
    window = set(months)
    seen = {category for category, month in totals if month in window}
    seen.update(categories)
    return {
        category: [totals.get((category, month), ZERO) for month in months]
        for category in sorted(seen, key=lambda kind: kind.order)
    }


def _kind_window(scoped: pd.DataFrame, months: List[pd.Period]) -> List[Decimal]:
    if scoped.empty:
        return [ZERO for _ in months]
    by_month = scoped.groupby('Month', sort=False)['Amount'].agg(_decimal_sum)
    return [Decimal(by_month.get(month, ZERO)) for month in months]


def monthly_total(
    transactions: Iterable[TransactionRecord],
    month: pd.Period,
    kind: TransactionKind = TransactionKind.EXPENSE,
    category: Optional[CategoryKind] = None,
) -> Decimal:
    """Sum ``kind`` transactions in ``month``, optionally for one category."""
    return _decimal_sum(
        txn.amount
        for txn in transactions
        if txn.kind is kind
        and month_of(txn.date) == month
        and (category is None or txn.category is category)
    )
