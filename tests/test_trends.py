from decimal import Decimal

from budget_engine.models import Trend
from budget_engine.trends import analyze_trend, relative_change, split_halves


def _d(*values):
    return [Decimal(str(value)) for value in values]


def test_rising_recent_half_is_increasing():
    assert analyze_trend(_d(100, 100, 100, 150)) is Trend.INCREASING


def test_flat_history_is_stable():
    assert analyze_trend(_d(100, 100, 100, 100)) is Trend.STABLE


def test_single_month_is_insufficient():
    assert analyze_trend(_d(50)) is Trend.INSUFFICIENT
    assert analyze_trend(_d(0, 0, 0, 50)) is Trend.INSUFFICIENT
    assert analyze_trend([]) is Trend.INSUFFICIENT


def test_falling_recent_half_is_decreasing():
    assert analyze_trend(_d(200, 200, 120, 100)) is Trend.DECREASING


def test_threshold_controls_sensitivity():
    totals = _d(100, 100, 105, 105)
    assert analyze_trend(totals) is Trend.STABLE
    assert analyze_trend(totals, Decimal('0.01')) is Trend.INCREASING


def test_split_halves_gives_recent_the_extra_month():
    older, recent = split_halves(_d(1, 2, 3))
    assert older == _d(1)
    assert recent == _d(2, 3)


def test_relative_change():
    assert relative_change(_d(100, 100, 150, 150)) == Decimal('0.5')
    assert relative_change(_d(0, 0, 100, 100)) is None
