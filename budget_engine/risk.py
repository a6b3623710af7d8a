"""Overspend risk classification of category forecasts."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, List

from .models import HUNDRED, ZERO, CategoryForecast, quantize_money


def is_at_risk(predicted_spend: Decimal, budget_amount: Decimal) -> bool:
    """A category is at risk when its forecast exceeds a non-zero budget."""
    return budget_amount > 0 and predicted_spend > budget_amount


def overspend_amount(predicted_spend: Decimal, budget_amount: Decimal) -> Decimal:
    return max(predicted_spend - budget_amount, ZERO)


def predicted_utilisation(predicted_spend: Decimal, budget_amount: Decimal) -> Decimal:
    """Forecast as a percentage of budget; 0 when no budget is set."""
    if budget_amount <= 0:
        return ZERO
    return quantize_money(predicted_spend / budget_amount * HUNDRED)


def at_risk_categories(forecasts: Iterable[CategoryForecast]) -> List[CategoryForecast]:
    """Return the at-risk forecasts, largest overspend first.

    Ties are broken by the category's enumeration order.  Categories without
    a budget are never ranked.
    """
    flagged = [item for item in forecasts if is_at_risk(item.predicted_spend, item.budget_amount)]
    return sorted(flagged, key=lambda item: (-item.overspend_amount, item.category.order))


def total_predicted_overspend(forecasts: Iterable[CategoryForecast]) -> Decimal:
    return sum((item.overspend_amount for item in at_risk_categories(forecasts)), ZERO)
