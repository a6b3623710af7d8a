"""One recomputation pass over a snapshot.

Order within a pass: recurring generation first (so new occurrences are
counted), then aggregation, budget recalculation and forecasting.  A
template or category that cannot be processed is reported as an
:class:`~budget_engine.errors.EngineIssue` and the pass carries on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, List, Optional

from .budgets import recalculate_budgets
from .config import DEFAULT_SETTINGS, ForecastSettings
from .errors import EngineIssue, InvalidConfigurationError, ScheduleOverflowError
from .forecasting import generate_forecast
from .models import (
    BudgetCategoryRecord,
    CategoryForecast,
    ForecastSummary,
    RecurringTemplate,
    TransactionRecord,
)
from .recurring import process_overdue, validate_template
from .risk import at_risk_categories
from .storage import Snapshot, apply_updates

logger = logging.getLogger(__name__)


@dataclass
class ScheduleRun:
    templates: List[RecurringTemplate] = field(default_factory=list)
    transactions: List[TransactionRecord] = field(default_factory=list)
    awaiting_confirmation: List[RecurringTemplate] = field(default_factory=list)
    issues: List[EngineIssue] = field(default_factory=list)


@dataclass
class RecomputeResult:
    as_of: date
    categories: List[BudgetCategoryRecord]
    forecast: ForecastSummary
    templates: List[RecurringTemplate] = field(default_factory=list)
    new_transactions: List[TransactionRecord] = field(default_factory=list)
    awaiting_confirmation: List[RecurringTemplate] = field(default_factory=list)
    issues: List[EngineIssue] = field(default_factory=list)

    @property
    def at_risk(self) -> List[CategoryForecast]:
        return at_risk_categories(self.forecast.category_forecasts)

    def apply(self, snapshot: Snapshot) -> Snapshot:
        """Write this pass's changes over ``snapshot``."""
        return apply_updates(
            snapshot,
            transactions=self.new_transactions,
            categories=self.categories,
            templates=self.templates,
        )


def run_scheduler(
    templates: Iterable[RecurringTemplate],
    as_of: date,
    settings: ForecastSettings = DEFAULT_SETTINGS,
    now: Optional[datetime] = None,
) -> ScheduleRun:
    """Process every due template.

    Auto-pay only affects reporting: templates without it are generated like
    the rest and also listed in ``awaiting_confirmation`` so the user can
    confirm the new occurrences.
    ``templates`` in the result holds only templates that changed.
    """
    run = ScheduleRun()
    for template in templates:
        try:
            validate_template(template)
        except InvalidConfigurationError as exc:
            logger.warning("Skipping template %s: %s", template.id, exc)
            run.issues.append(EngineIssue(template.id, 'invalid_template', str(exc)))
            continue

        if not template.is_active or template.next_due_date > as_of:
            continue

        try:
            result = process_overdue(template, as_of, settings=settings, now=now)
        except ScheduleOverflowError as exc:
            run.issues.append(EngineIssue(template.id, 'schedule_overflow', str(exc)))
            continue

        if result.template is not template:
            run.templates.append(result.template)
        run.transactions.extend(result.transactions)
        if result.transactions and not template.auto_pay:
            run.awaiting_confirmation.append(result.template)

    logger.info(
        "Scheduler generated %d transactions from %d templates",
        len(run.transactions),
        len(run.templates),
    )
    return run


def recompute(
    snapshot: Snapshot,
    as_of: date,
    settings: Optional[ForecastSettings] = None,
    now: Optional[datetime] = None,
) -> RecomputeResult:
    """Run scheduling, budget recalculation and forecasting for ``as_of``.

    The snapshot is not modified; call :meth:`RecomputeResult.apply` to get
    the updated snapshot.
    """
    settings = settings or DEFAULT_SETTINGS
    schedule = run_scheduler(snapshot.templates, as_of, settings, now)

    known = {txn.id for txn in snapshot.transactions}
    new_transactions = [txn for txn in schedule.transactions if txn.id not in known]
    transactions = list(snapshot.transactions) + new_transactions

    changed = {template.id: template for template in schedule.templates}
    templates = [changed.get(template.id, template) for template in snapshot.templates]

    categories = recalculate_budgets(snapshot.categories, transactions, as_of)
    summary = generate_forecast(transactions, categories, as_of, templates, settings)

    issues = schedule.issues + summary.issues
    if issues:
        logger.warning("Recompute for %s finished with %d issues", as_of, len(issues))

    return RecomputeResult(
        as_of=as_of,
        categories=categories,
        forecast=summary,
        templates=schedule.templates,
        new_transactions=new_transactions,
        awaiting_confirmation=schedule.awaiting_confirmation,
        issues=issues,
    )
