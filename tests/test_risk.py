from decimal import Decimal

from budget_engine.models import CategoryForecast, CategoryKind, Confidence, Trend
from budget_engine.risk import (
    at_risk_categories,
    is_at_risk,
    overspend_amount,
    predicted_utilisation,
    total_predicted_overspend,
)


def _forecast(category, predicted, budget):
    predicted, budget = Decimal(predicted), Decimal(budget)
    return CategoryForecast(
        category=category,
        average_spend=predicted,
        predicted_spend=predicted,
        budget_amount=budget,
        trend=Trend.STABLE,
        confidence=Confidence.HIGH,
        predicted_utilisation=predicted_utilisation(predicted, budget),
        overspend_amount=overspend_amount(predicted, budget),
    )


def test_forecast_over_budget_is_at_risk():
    assert is_at_risk(Decimal('250'), Decimal('200'))
    assert overspend_amount(Decimal('250'), Decimal('200')) == Decimal('50')
    assert predicted_utilisation(Decimal('250'), Decimal('200')) == Decimal('125.00')


def test_forecast_at_or_under_budget_is_not_at_risk():
    assert not is_at_risk(Decimal('200'), Decimal('200'))
    assert overspend_amount(Decimal('150'), Decimal('200')) == Decimal('0')


def test_unbudgeted_category_is_never_at_risk():
    item = _forecast(CategoryKind.OTHER, '500', '0')
    assert not item.is_at_risk
    assert item.predicted_utilisation == Decimal('0')
    assert at_risk_categories([item]) == []


def test_at_risk_ranked_by_overspend_then_category_order():
    forecasts = [
        _forecast(CategoryKind.DINING, '150', '100'),
        _forecast(CategoryKind.GROCERIES, '450', '400'),
        _forecast(CategoryKind.HOUSING, '1300', '1200'),
        _forecast(CategoryKind.TRANSPORT, '80', '100'),
    ]
    ranked = at_risk_categories(forecasts)

    assert [item.category for item in ranked] == [
        CategoryKind.HOUSING,
        CategoryKind.GROCERIES,
        CategoryKind.DINING,
    ]
    assert total_predicted_overspend(forecasts) == Decimal('200')
