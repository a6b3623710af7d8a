"""Two-window trend classification of monthly spend."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional, Sequence, Tuple

from .models import ZERO, Trend

DEFAULT_TREND_THRESHOLD = Decimal('0.10')


def split_halves(totals: Sequence[Decimal]) -> Tuple[Sequence[Decimal], Sequence[Decimal]]:
    """Split ``totals`` into (older, recent); recent holds the last ceil(n/2) entries."""
    recent_size = (len(totals) + 1) // 2
    cut = len(totals) - recent_size
    return totals[:cut], totals[cut:]


def mean(values: Sequence[Decimal]) -> Decimal:
    if not values:
        return ZERO
    return sum(values, ZERO) / len(values)


def non_zero_months(totals: Sequence[Decimal]) -> int:
    return sum(1 for value in totals if value != 0)


def relative_change(totals: Sequence[Decimal]) -> Optional[Decimal]:
    """Relative change of the recent-half mean over the older-half mean.

    Returns ``None`` when the older mean is zero (the change is unbounded).
    """
    older, recent = split_halves(totals)
    older_mean = mean(older)
    if older_mean == 0:
        return None
    return (mean(recent) - older_mean) / older_mean


def analyze_trend(
    totals: Sequence[Decimal],
    threshold: Decimal = DEFAULT_TREND_THRESHOLD,
) -> Trend:
    """Classify the direction of ``totals`` (most recent last).

    Example:
        >>> analyze_trend([Decimal(100), Decimal(100), Decimal(100), Decimal(150)])
        <Trend.INCREASING: 'increasing'>
    """
    if non_zero_months(totals) < 2:
        return Trend.INSUFFICIENT

    older, recent = split_halves(totals)
    older_mean = mean(older)
    recent_mean = mean(recent)

    if recent_mean > older_mean * (1 + threshold):
        return Trend.INCREASING
    if recent_mean < older_mean * (1 - threshold):
        return Trend.DECREASING
    return Trend.STABLE
