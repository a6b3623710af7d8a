"""Domain records shared by every part of the engine.

Records are frozen dataclasses.  Components never mutate a record in place;
they return an updated copy (``dataclasses.replace``) that the caller hands to
its persistence layer.  All money is held as :class:`decimal.Decimal`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import List, Optional, Tuple

import pandas as pd

from .errors import EngineIssue

ZERO = Decimal('0')
CENT = Decimal('0.01')
HUNDRED = Decimal('100')


def quantize_money(value: Decimal) -> Decimal:
    """Round ``value`` to whole cents."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class TransactionKind(Enum):
    INCOME = 'income'
    EXPENSE = 'expense'


class CategoryKind(Enum):
    HOUSING = 'housing'
    UTILITIES = 'utilities'
    GROCERIES = 'groceries'
    TRANSPORT = 'transport'
    HEALTHCARE = 'healthcare'
    ENTERTAINMENT = 'entertainment'
    DINING = 'dining'
    SHOPPING = 'shopping'
    PERSONAL = 'personal'
    SAVINGS = 'savings'
    CHILDCARE = 'childcare'
    SUBSCRIPTIONS = 'subscriptions'
    OTHER = 'other'

    @property
    def order(self) -> int:
        """Stable position in declaration order, used to break ties."""
        return _CATEGORY_ORDER[self]

    @property
    def label(self) -> str:
        return self.value.title()


_CATEGORY_ORDER = {kind: index for index, kind in enumerate(CategoryKind)}


class Frequency(Enum):
    WEEKLY = 'weekly'
    BIWEEKLY = 'biweekly'
    MONTHLY = 'monthly'
    QUARTERLY = 'quarterly'
    YEARLY = 'yearly'


class TemplateState(Enum):
    ACTIVE = 'active'
    PAUSED = 'paused'
    ENDED = 'ended'


class Trend(Enum):
    INCREASING = 'increasing'
    DECREASING = 'decreasing'
    STABLE = 'stable'
    INSUFFICIENT = 'insufficient'


class Confidence(Enum):
    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'


class BudgetPeriod(Enum):
    MONTHLY = 'monthly'


@dataclass(frozen=True)
class TransactionRecord:
    id: str
    amount: Decimal
    date: date
    kind: TransactionKind
    category: Optional[CategoryKind] = None
    account: Optional[str] = None
    description: str = ''
    notes: str = ''
    template_id: Optional[str] = None

    @property
    def is_generated(self) -> bool:
        return self.template_id is not None


@dataclass(frozen=True)
class BudgetCategoryRecord:
    id: str
    kind: CategoryKind
    budget_amount: Decimal = ZERO
    # Derived: only budgets.recalculate_budgets writes this.
    spent_amount: Decimal = ZERO
    period: BudgetPeriod = BudgetPeriod.MONTHLY
    is_active: bool = True

    @property
    def remaining_amount(self) -> Decimal:
        return self.budget_amount - self.spent_amount

    @property
    def percentage_used(self) -> Decimal:
        if self.budget_amount <= 0:
            return ZERO
        return quantize_money(self.spent_amount / self.budget_amount * HUNDRED)

    @property
    def is_over_budget(self) -> bool:
        return self.spent_amount > self.budget_amount


@dataclass(frozen=True)
class RecurringTemplate:
    id: str
    name: str
    amount: Decimal
    kind: TransactionKind
    frequency: Frequency
    start_date: date
    next_due_date: date
    end_date: Optional[date] = None
    state: TemplateState = TemplateState.ACTIVE
    auto_pay: bool = True
    generated_ids: Tuple[str, ...] = ()
    updated_at: Optional[datetime] = None
    category: Optional[CategoryKind] = None
    account: Optional[str] = None
    notes: str = ''
    last_processed_date: Optional[date] = None

    @property
    def is_active(self) -> bool:
        return self.state is TemplateState.ACTIVE

    def is_overdue(self, as_of: date) -> bool:
        return self.is_active and self.next_due_date < as_of

    def days_until_due(self, as_of: date) -> int:
        return (self.next_due_date - as_of).days

    @property
    def monthly_equivalent(self) -> Decimal:
        """Approximate monthly cost: weekly x4, biweekly x2, quarterly /3, yearly /12."""
        if self.frequency is Frequency.WEEKLY:
            return self.amount * 4
        if self.frequency is Frequency.BIWEEKLY:
            return self.amount * 2
        if self.frequency is Frequency.QUARTERLY:
            return quantize_money(self.amount / 3)
        if self.frequency is Frequency.YEARLY:
            return quantize_money(self.amount / 12)
        return self.amount


@dataclass(frozen=True)
class CategoryForecast:
    category: CategoryKind
    average_spend: Decimal
    predicted_spend: Decimal
    budget_amount: Decimal
    trend: Trend
    confidence: Confidence
    predicted_utilisation: Decimal
    overspend_amount: Decimal
    months_of_data: int = 0
    recurring_amount: Decimal = ZERO

    @property
    def is_at_risk(self) -> bool:
        return self.budget_amount > 0 and self.predicted_spend > self.budget_amount


@dataclass
class ForecastSummary:
    forecast_month: pd.Period
    predicted_income: Decimal = ZERO
    predicted_expenses: Decimal = ZERO
    predicted_net: Decimal = ZERO
    predicted_savings_rate: Decimal = ZERO
    confidence: Confidence = Confidence.LOW
    category_forecasts: List[CategoryForecast] = field(default_factory=list)
    issues: List[EngineIssue] = field(default_factory=list)
