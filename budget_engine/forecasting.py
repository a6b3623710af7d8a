"""Next-period spend forecasting per budget category.

The prediction is a recency-weighted average of the category's monthly
totals, nudged up or down when the trend analyzer sees a clear direction.
Confidence comes from how many months carry data and how much they vary.
Everything is computed with :class:`~decimal.Decimal`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from .aggregation import aggregate, month_of
from .budgets import validate_category
from .config import DEFAULT_SETTINGS, ForecastSettings
from .errors import EngineIssue, InvalidConfigurationError
from .models import (
    HUNDRED,
    ZERO,
    BudgetCategoryRecord,
    CategoryForecast,
    CategoryKind,
    Confidence,
    ForecastSummary,
    RecurringTemplate,
    TransactionKind,
    TransactionRecord,
    Trend,
    quantize_money,
)
from .recurring import recurring_monthly_amounts
from .risk import overspend_amount, predicted_utilisation
from .trends import analyze_trend, mean, non_zero_months, relative_change

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CategoryHistory:
    """Input of :func:`forecast` for one category."""

    category: CategoryKind
    monthly_totals: Sequence[Decimal]
    budget_amount: Decimal = ZERO
    recurring_amount: Decimal = ZERO


def weighted_average(totals: Sequence[Decimal], decay: Decimal = DEFAULT_SETTINGS.decay) -> Decimal:
    """Average ``totals`` with weight ``decay ** age``; the newest month has age 0."""
    if not totals:
        return ZERO
    last = len(totals) - 1
    weights = [decay ** (last - index) for index in range(len(totals))]
    weighted = sum((value * weight for value, weight in zip(totals, weights)), ZERO)
    return weighted / sum(weights, ZERO)


def coefficient_of_variation(totals: Sequence[Decimal]) -> Optional[Decimal]:
    """Population standard deviation over the absolute mean; ``None`` for a zero mean."""
    average = mean(totals)
    if average == 0:
        return None
    variance = sum(((value - average) ** 2 for value in totals), ZERO) / len(totals)
    return variance.sqrt() / abs(average)


def classify_confidence(
    totals: Sequence[Decimal],
    settings: ForecastSettings = DEFAULT_SETTINGS,
) -> Confidence:
    months = non_zero_months(totals)
    cv = coefficient_of_variation(totals)
    if cv is None or months < 2:
        return Confidence.LOW
    if cv >= settings.high_variance_cv:
        return Confidence.LOW
    if months >= 3 and cv < settings.low_variance_cv:
        return Confidence.HIGH
    return Confidence.MEDIUM


def _trend_factor(totals: Sequence[Decimal], trend: Trend, cap: Decimal) -> Decimal:
    if trend not in (Trend.INCREASING, Trend.DECREASING):
        return ZERO
    change = relative_change(totals)
    bump = cap if change is None else min(abs(change) / 2, cap)
    return bump if trend is Trend.INCREASING else -bump


def predict_spend(
    totals: Sequence[Decimal],
    trend: Trend,
    settings: ForecastSettings = DEFAULT_SETTINGS,
) -> Tuple[Decimal, Confidence]:
    """Return ``(predicted_spend, confidence)`` for one category's monthly totals."""
    if not totals or mean(totals) == 0:
        return ZERO, Confidence.LOW

    base = weighted_average(totals, settings.decay)
    base = base * (1 + _trend_factor(totals, trend, settings.extrapolation_cap))
    predicted = max(quantize_money(base), ZERO)
    return predicted, classify_confidence(totals, settings)


def _blend_recurring(predicted: Decimal, recurring: Decimal, has_history: bool, share: Decimal) -> Decimal:
    # Known recurring charges set a floor under the forecast.
    if recurring <= 0:
        return predicted
    if not has_history:
        return quantize_money(recurring)
    blended = predicted * (1 - share) + recurring * share
    return quantize_money(max(blended, recurring))


def forecast(
    history: CategoryHistory,
    settings: ForecastSettings = DEFAULT_SETTINGS,
) -> CategoryForecast:
    """Forecast next-period spend for one category and classify its risk."""
    totals = list(history.monthly_totals)
    trend = analyze_trend(totals, settings.trend_threshold)
    predicted, confidence = predict_spend(totals, trend, settings)
    predicted = _blend_recurring(
        predicted,
        history.recurring_amount,
        has_history=mean(totals) != 0,
        share=settings.recurring_blend,
    )
    budget = history.budget_amount

    logger.debug(
        "Forecast for %s: %s (%s, %s confidence)",
        history.category.value,
        predicted,
        trend.value,
        confidence.value,
    )
    return CategoryForecast(
        category=history.category,
        average_spend=quantize_money(mean(totals)),
        predicted_spend=predicted,
        budget_amount=budget,
        trend=trend,
        confidence=confidence,
        predicted_utilisation=predicted_utilisation(predicted, budget),
        overspend_amount=overspend_amount(predicted, budget),
        months_of_data=non_zero_months(totals),
        recurring_amount=history.recurring_amount,
    )


def overall_confidence(months_with_data: int) -> Confidence:
    if months_with_data >= 6:
        return Confidence.HIGH
    if months_with_data >= 3:
        return Confidence.MEDIUM
    return Confidence.LOW


def generate_forecast(
    transactions: Iterable[TransactionRecord],
    categories: Sequence[BudgetCategoryRecord],
    as_of: date,
    templates: Iterable[RecurringTemplate] = (),
    settings: Optional[ForecastSettings] = None,
) -> ForecastSummary:
    """Forecast the month after ``as_of`` for every active budget category.

    Categories that fail validation are skipped and listed in
    ``ForecastSummary.issues``; the remaining categories are still forecast.
    """
    settings = settings or DEFAULT_SETTINGS
    issues: List[EngineIssue] = []
    valid: List[BudgetCategoryRecord] = []
    for category in categories:
        if not category.is_active:
            continue
        try:
            valid.append(validate_category(category))
        except InvalidConfigurationError as exc:
            logger.warning("Skipping category %s: %s", category.id, exc)
            issues.append(EngineIssue(category.id, 'invalid_category', str(exc)))

    summary = aggregate(
        transactions,
        as_of,
        settings.history_window,
        categories=[category.kind for category in valid],
    )
    recurring: Dict[CategoryKind, Decimal] = recurring_monthly_amounts(templates)

    forecasts = [
        forecast(
            CategoryHistory(
                category=category.kind,
                monthly_totals=summary.history_for(category.kind),
                budget_amount=category.budget_amount,
                recurring_amount=recurring.get(category.kind, ZERO),
            ),
            settings,
        )
        for category in valid
    ]
    forecasts.sort(key=lambda item: (-item.predicted_utilisation, item.category.order))

    income_history = summary.kind_history.get(TransactionKind.INCOME, [])
    predicted_income = max(quantize_money(weighted_average(income_history, settings.decay)), ZERO)
    predicted_expenses = sum((item.predicted_spend for item in forecasts), ZERO)
    predicted_net = predicted_income - predicted_expenses
    savings_rate = (
        quantize_money(predicted_net / predicted_income * HUNDRED)
        if predicted_income > 0
        else ZERO
    )

    result = ForecastSummary(
        forecast_month=month_of(as_of) + 1,
        predicted_income=predicted_income,
        predicted_expenses=predicted_expenses,
        predicted_net=predicted_net,
        predicted_savings_rate=savings_rate,
        confidence=overall_confidence(summary.months_with_data),
        category_forecasts=forecasts,
        issues=issues,
    )
    logger.info(
        "Forecast for %s: %d categories, %d skipped",
        result.forecast_month,
        len(forecasts),
        len(issues),
    )
    return result


def forecast_frame(forecasts: Iterable[CategoryForecast]) -> pd.DataFrame:
    """Tabulate forecasts for display.

    Returns:
        DataFrame with columns: Category, Average, Predicted, Budget,
        Utilisation %, Overspend, Trend, Confidence, At Risk
    """
    rows = [
        {
            'Category': item.category.label,
            'Average': item.average_spend,
            'Predicted': item.predicted_spend,
            'Budget': item.budget_amount,
            'Utilisation %': item.predicted_utilisation,
            'Overspend': item.overspend_amount,
            'Trend': item.trend.value,
            'Confidence': item.confidence.value,
            'At Risk': item.is_at_risk,
        }
        for item in forecasts
    ]
    return pd.DataFrame(
        rows,
        columns=[
            'Category', 'Average', 'Predicted', 'Budget', 'Utilisation %',
            'Overspend', 'Trend', 'Confidence', 'At Risk',
        ],
    )
