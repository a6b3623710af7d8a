"""Helpers for detecting recurring payments like subscriptions or rent.

Detection looks at expense history that was entered by hand (not generated
from a template) and suggests templates for vendors that repeat.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from .models import (
    ZERO,
    CategoryKind,
    Frequency,
    RecurringTemplate,
    TransactionKind,
    TransactionRecord,
    quantize_money,
)
from .recurring import advance_due_date, create_template

VARIABLE_AMOUNT_TOLERANCE = Decimal('0.05')
MIN_OCCURRENCES = 2

# Inclusive upper bound of the average gap (days) for each frequency.
FREQUENCY_GAP_LIMITS = [
    (10, Frequency.WEEKLY),
    (21, Frequency.BIWEEKLY),
    (45, Frequency.MONTHLY),
    (120, Frequency.QUARTERLY),
]


@dataclass
class FrequencyStats:
    avg_days: int
    median_days: float
    std_days: float
    samples: int


@dataclass
class DetectionResult:
    vendor: str
    matching_transactions: List[TransactionRecord]
    suggested_frequency: Frequency
    suggested_amount: Decimal
    average_amount: Decimal
    is_variable_amount: bool
    category: Optional[CategoryKind] = None
    stats: Optional[FrequencyStats] = None

    @property
    def occurrences(self) -> int:
        return len(self.matching_transactions)


def normalize_vendor(value: Any) -> str:
    """Normalize description text so recurring detection groups similar vendors."""
    if not isinstance(value, str):
        return ''
    text = value.upper().replace('*', ' ')
    text = re.sub(r'\b(POS|PPD|WEB|ACH|CCD|DEBIT CARD|CREDIT CARD|PMT|PYMT|PAYMENT)\b\s*', '', text)
    text = re.sub(r'\s+#?\d{2,}$', '', text)
    text = re.sub(r'\s+', ' ', text).strip()
    return text


def frequency_stats(dates: Sequence[date]) -> FrequencyStats:
    ordered = pd.Series(pd.to_datetime(list(dates))).sort_values()
    diffs = ordered.diff().dt.days.dropna()
    if diffs.empty:
        return FrequencyStats(0, 0.0, 0.0, 0)
    # Whole days, truncated like the average gap the suggestion is based on.
    avg = int(diffs.sum()) // len(diffs)
    median = float(np.median(diffs.to_numpy()))
    std = float(np.std(diffs.to_numpy())) if len(diffs) > 1 else 0.0
    return FrequencyStats(avg, round(median, 1), round(std, 1), len(diffs))


def infer_frequency(stats: FrequencyStats) -> Frequency:
    if stats.samples == 0:
        return Frequency.MONTHLY
    for limit, frequency in FREQUENCY_GAP_LIMITS:
        if stats.avg_days <= limit:
            return frequency
    return Frequency.YEARLY


def is_variable_amount(amounts: Sequence[Decimal]) -> bool:
    low, high = min(amounts), max(amounts)
    if low > 0:
        return (high - low) / low > VARIABLE_AMOUNT_TOLERANCE
    return high != low


def _mode_category(transactions: Sequence[TransactionRecord]) -> Optional[CategoryKind]:
    categories = pd.Series([txn.category for txn in transactions if txn.category is not None], dtype=object)
    if categories.empty:
        return None
    counts = categories.value_counts(sort=False)
    top = counts.max()
    # Earliest enumeration order wins a tie.
    return min((kind for kind, count in counts.items() if count == top), key=lambda kind: kind.order)


def detect_recurring(
    transactions: Iterable[TransactionRecord],
    templates: Iterable[RecurringTemplate] = (),
) -> List[DetectionResult]:
    """Identify vendors paid repeatedly that have no active template yet.

    Results are ordered by occurrence count (descending), then vendor name.
    """
    existing = {normalize_vendor(template.name) for template in templates if template.is_active}
    candidates = [
        txn
        for txn in transactions
        if txn.kind is TransactionKind.EXPENSE and not txn.is_generated
    ]
    if not candidates:
        return []

    working = pd.DataFrame({
        'Vendor': [normalize_vendor(txn.description) for txn in candidates],
        'Transaction Date': [txn.date for txn in candidates],
        'Record': candidates,
    })
    working = working[working['Vendor'] != '']
    working = working[~working['Vendor'].isin(existing)]
    if working.empty:
        return []

    results: List[DetectionResult] = []
    grouped = working.sort_values('Transaction Date', kind='stable').groupby('Vendor', sort=True)
    for vendor, group in grouped:
        if len(group) < MIN_OCCURRENCES:
            continue
        records: List[TransactionRecord] = list(group['Record'])
        amounts = [txn.amount for txn in records]
        stats = frequency_stats([txn.date for txn in records])
        results.append(DetectionResult(
            vendor=records[-1].description,
            matching_transactions=records,
            suggested_frequency=infer_frequency(stats),
            suggested_amount=records[-1].amount,
            average_amount=quantize_money(sum(amounts, ZERO) / len(amounts)),
            is_variable_amount=is_variable_amount(amounts),
            category=_mode_category(records),
            stats=stats,
        ))

    results.sort(key=lambda item: (-item.occurrences, normalize_vendor(item.vendor)))
    return results


def detection_frame(results: Iterable[DetectionResult]) -> pd.DataFrame:
    """Tabulate detection results for review."""
    rows = [
        {
            'Vendor': item.vendor,
            'Occurrences': item.occurrences,
            'Frequency': item.suggested_frequency.value,
            'Avg Gap (days)': item.stats.avg_days if item.stats else 0,
            'Suggested Amount': item.suggested_amount,
            'Average Amount': item.average_amount,
            'Variable Amount': item.is_variable_amount,
            'Category': item.category.label if item.category else '',
        }
        for item in results
    ]
    return pd.DataFrame(
        rows,
        columns=[
            'Vendor', 'Occurrences', 'Frequency', 'Avg Gap (days)',
            'Suggested Amount', 'Average Amount', 'Variable Amount', 'Category',
        ],
    )


def template_from_detection(
    result: DetectionResult,
    start_date: Optional[date] = None,
    **kwargs: Any,
) -> RecurringTemplate:
    """Create a template from a detection result.

    The first occurrence defaults to the one after the latest matching
    transaction, so history is not generated twice.
    """
    last = result.matching_transactions[-1]
    first_due = start_date or advance_due_date(last.date, result.suggested_frequency)
    kwargs.setdefault('category', result.category)
    kwargs.setdefault('account', last.account)
    return create_template(
        result.vendor,
        result.suggested_amount,
        result.suggested_frequency,
        first_due,
        kind=TransactionKind.EXPENSE,
        **kwargs,
    )
