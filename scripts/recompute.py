#!/usr/bin/env python3
"""Run one recomputation pass over the JSON snapshot and print the results."""

from __future__ import annotations

import argparse
import sys
from datetime import date
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from budget_engine.budgets import budget_performance
from budget_engine.config import SNAPSHOT_PATH, ForecastSettings, configure_logging
from budget_engine.detection import detect_recurring, detection_frame
from budget_engine.forecasting import forecast_frame
from budget_engine.pipeline import recompute
from budget_engine.recurring import upcoming_templates
from budget_engine.storage import load_snapshot, save_snapshot


def main(snapshot_path: Path, as_of: date, write: bool = False) -> int:
    snapshot = load_snapshot(snapshot_path)
    if not snapshot.transactions and not snapshot.templates:
        print(f"Snapshot is empty: {snapshot_path}")
        return 1

    settings = ForecastSettings.from_env()
    result = recompute(snapshot, as_of, settings)
    summary = result.forecast

    print(f"Generated {len(result.new_transactions)} recurring transactions")
    for template in result.awaiting_confirmation:
        print(f"  awaiting confirmation: {template.name} (last due {template.last_processed_date})")

    print("\nBudgets this month:")
    print(budget_performance(result.categories).to_string(index=False))

    print(f"\nForecast for {summary.forecast_month} ({summary.confidence.value} confidence)")
    print(f"  income {summary.predicted_income}  expenses {summary.predicted_expenses}"
          f"  net {summary.predicted_net}  savings rate {summary.predicted_savings_rate}%")
    print(forecast_frame(summary.category_forecasts).to_string(index=False))

    at_risk = result.at_risk
    if at_risk:
        print("\nAt risk:")
        print(forecast_frame(at_risk)[['Category', 'Predicted', 'Budget', 'Overspend']].to_string(index=False))
    else:
        print("\nNo categories are predicted to overspend.")

    if result.issues:
        print("\nIssues:")
        for issue in result.issues:
            print(f"  - {issue}")

    updated = result.apply(snapshot)
    upcoming = upcoming_templates(updated.templates, as_of, settings.upcoming_days)
    if upcoming:
        print(f"\nDue in the next {settings.upcoming_days} days:")
        for template in upcoming:
            print(f"  {template.next_due_date}  {template.name}  {template.amount}")

    suggestions = detect_recurring(updated.transactions, updated.templates)
    if suggestions:
        print("\nPossible recurring payments without a template:")
        print(detection_frame(suggestions).to_string(index=False))

    if write:
        save_snapshot(updated, snapshot_path)
        print(f"\nSnapshot written to {snapshot_path}")
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Recompute budgets, forecasts and recurring transactions.')
    parser.add_argument('--snapshot', type=Path, default=SNAPSHOT_PATH, help='Snapshot JSON file')
    parser.add_argument('--as-of', type=date.fromisoformat, default=date.today(), help='Reference date (YYYY-MM-DD)')
    parser.add_argument('--write', action='store_true', help='Save the updated snapshot')
    parser.add_argument('--log-level', default=None, help='Logging level')
    args = parser.parse_args()
    configure_logging(args.log_level)
    raise SystemExit(main(args.snapshot, args.as_of, write=args.write))
