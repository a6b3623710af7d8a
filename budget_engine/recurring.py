"""Recurring transaction templates: due dates, lifecycle and generation.

A template is ``active``, ``paused`` or ``ended``.  Pausing and resuming are
explicit user actions; ``ended`` is reached only through the end date and is
terminal.  :func:`process_overdue` materializes every occurrence that has
come due, advancing ``next_due_date`` past the reference date so a second
call with the same date is a no-op.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, NamedTuple, Optional

from dateutil.relativedelta import relativedelta

from .config import DEFAULT_SETTINGS, ForecastSettings
from .errors import InvalidConfigurationError, InvalidTransitionError, ScheduleOverflowError
from .models import (
    ZERO,
    CategoryKind,
    Frequency,
    RecurringTemplate,
    TemplateState,
    TransactionKind,
    TransactionRecord,
)

logger = logging.getLogger(__name__)

FREQUENCY_STEPS: Dict[Frequency, relativedelta] = {
    Frequency.WEEKLY: relativedelta(days=7),
    Frequency.BIWEEKLY: relativedelta(days=14),
    Frequency.MONTHLY: relativedelta(months=1),
    Frequency.QUARTERLY: relativedelta(months=3),
    Frequency.YEARLY: relativedelta(years=1),
}

# Upper bound of occurrences in one calendar year, used for the catch-up cap.
PERIODS_PER_YEAR: Dict[Frequency, int] = {
    Frequency.WEEKLY: 53,
    Frequency.BIWEEKLY: 27,
    Frequency.MONTHLY: 12,
    Frequency.QUARTERLY: 4,
    Frequency.YEARLY: 1,
}

OCCURRENCE_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_DNS, 'recurring.budget-engine')


class ScheduleResult(NamedTuple):
    template: RecurringTemplate
    transactions: List[TransactionRecord]


def advance_due_date(current: date, frequency: Frequency) -> date:
    """Return the occurrence after ``current``.

    Month and year steps keep the day of month and clamp to the last valid
    day of a shorter month (Jan 31 -> Feb 28/29, Feb 29 -> Feb 28 next year).
    """
    return current + FREQUENCY_STEPS[frequency]


def occurrence_id(template_id: str, due: date) -> str:
    """Deterministic transaction id for one occurrence of a template."""
    return str(uuid.uuid5(OCCURRENCE_NAMESPACE, f'{template_id}:{due.isoformat()}'))


def max_catchup_periods(frequency: Frequency, settings: ForecastSettings = DEFAULT_SETTINGS) -> int:
    return PERIODS_PER_YEAR[frequency] * settings.max_catchup_years


def validate_template(template: RecurringTemplate) -> RecurringTemplate:
    """Reject templates the scheduler cannot run.

    Raises:
        InvalidConfigurationError: unknown frequency or kind, a negative or
            non-finite amount, or an end date before the start date.
    """
    if not isinstance(template.frequency, Frequency):
        raise InvalidConfigurationError(f"Unknown frequency: {template.frequency!r}")
    if not isinstance(template.kind, TransactionKind):
        raise InvalidConfigurationError(f"Unknown transaction kind: {template.kind!r}")
    if not isinstance(template.state, TemplateState):
        raise InvalidConfigurationError(f"Unknown template state: {template.state!r}")
    amount = template.amount
    if not isinstance(amount, Decimal) or not amount.is_finite():
        raise InvalidConfigurationError(f"Template {template.name!r} amount must be a finite Decimal")
    if amount < 0:
        raise InvalidConfigurationError(f"Template {template.name!r} amount cannot be negative")
    if template.end_date is not None and template.end_date < template.start_date:
        raise InvalidConfigurationError(f"Template {template.name!r} ends before it starts")
    if template.next_due_date < template.start_date:
        raise InvalidConfigurationError(f"Template {template.name!r} is due before its start date")
    return template


def create_template(
    name: str,
    amount: Decimal,
    frequency: Frequency,
    start_date: date,
    *,
    kind: TransactionKind = TransactionKind.EXPENSE,
    end_date: Optional[date] = None,
    auto_pay: bool = True,
    category: Optional[CategoryKind] = None,
    account: Optional[str] = None,
    notes: str = '',
    template_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> RecurringTemplate:
    """Build a validated template whose first occurrence is ``start_date``."""
    template = RecurringTemplate(
        id=template_id or str(uuid.uuid4()),
        name=name,
        amount=amount,
        kind=kind,
        frequency=frequency,
        start_date=start_date,
        next_due_date=start_date,
        end_date=end_date,
        auto_pay=auto_pay,
        updated_at=now or datetime.now(),
        category=category,
        account=account,
        notes=notes,
    )
    return validate_template(template)


def _past_end(template: RecurringTemplate, due: date) -> bool:
    return template.end_date is not None and due > template.end_date


def pending_occurrences(template: RecurringTemplate, as_of: date, limit: int) -> int:
    """Count occurrences due by ``as_of``; counting stops at ``limit + 1``."""
    if not template.is_active:
        return 0
    count = 0
    due = template.next_due_date
    while due <= as_of and not _past_end(template, due) and count <= limit:
        count += 1
        due = advance_due_date(due, template.frequency)
    return count


def _occurrence(template: RecurringTemplate, due: date) -> TransactionRecord:
    return TransactionRecord(
        id=occurrence_id(template.id, due),
        amount=template.amount,
        date=due,
        kind=template.kind,
        category=template.category,
        account=template.account,
        description=template.name,
        notes=template.notes,
        template_id=template.id,
    )


def process_overdue(
    template: RecurringTemplate,
    as_of: date,
    max_periods: Optional[int] = None,
    settings: ForecastSettings = DEFAULT_SETTINGS,
    now: Optional[datetime] = None,
) -> ScheduleResult:
    """Generate every occurrence of ``template`` due on or before ``as_of``.

    Args:
        template: Template to process.  Only active templates generate.
        as_of: Reference date.
        max_periods: Iteration cap.  Defaults to ``max_catchup_years`` worth
            of periods for the template's frequency; pass a larger value to
            bulk-generate a long backlog deliberately.
        settings: Source of the default cap.
        now: Timestamp recorded in ``updated_at`` when the template changes.

    Returns:
        ``ScheduleResult(template, transactions)``.  When nothing is due the
        input template is returned as is with an empty list.

    Raises:
        ScheduleOverflowError: more occurrences are due than the cap allows.
            Nothing is generated in that case.
    """
    if not template.is_active or template.next_due_date > as_of:
        return ScheduleResult(template, [])

    limit = max_periods if max_periods is not None else max_catchup_periods(template.frequency, settings)
    pending = pending_occurrences(template, as_of, limit)
    if pending > limit:
        logger.warning(
            "Template %s (%s) has more than %d overdue occurrences; nothing generated",
            template.id,
            template.name,
            limit,
        )
        raise ScheduleOverflowError(template.id, pending, limit)

    state = template.state
    due = template.next_due_date
    last_processed = template.last_processed_date
    generated: List[TransactionRecord] = []

    while state is TemplateState.ACTIVE and due <= as_of:
        if _past_end(template, due):
            state = TemplateState.ENDED
            break
        generated.append(_occurrence(template, due))
        last_processed = due
        due = advance_due_date(due, template.frequency)
        if _past_end(template, due):
            state = TemplateState.ENDED

    if state is TemplateState.ENDED:
        logger.info("Template %s (%s) reached its end date", template.id, template.name)
    logger.debug("Generated %d occurrences for template %s", len(generated), template.id)

    updated = replace(
        template,
        next_due_date=due,
        state=state,
        generated_ids=template.generated_ids + tuple(txn.id for txn in generated),
        last_processed_date=last_processed,
        updated_at=now or datetime.now(),
    )
    return ScheduleResult(updated, generated)


def skip_ahead(
    template: RecurringTemplate,
    as_of: date,
    now: Optional[datetime] = None,
) -> RecurringTemplate:
    """Move ``next_due_date`` past ``as_of`` without generating anything.

    Used to recover from a schedule overflow when the backlog should be
    dropped.  A template whose next occurrence lands beyond its end date
    ends.
    """
    if not template.is_active or template.next_due_date > as_of:
        return template
    due = template.next_due_date
    while due <= as_of:
        due = advance_due_date(due, template.frequency)
    state = TemplateState.ENDED if _past_end(template, due) else template.state
    logger.info("Skipped template %s ahead to %s", template.id, due)
    return replace(template, next_due_date=due, state=state, updated_at=now or datetime.now())


def pause(template: RecurringTemplate, now: Optional[datetime] = None) -> RecurringTemplate:
    """Stop generation; ``next_due_date`` is left untouched."""
    if template.state is TemplateState.ENDED:
        raise InvalidTransitionError(f"Template {template.id} has ended and cannot be paused")
    if template.state is TemplateState.PAUSED:
        return template
    return replace(template, state=TemplateState.PAUSED, updated_at=now or datetime.now())


def resume(template: RecurringTemplate, now: Optional[datetime] = None) -> RecurringTemplate:
    """Reactivate a paused template.

    Missed periods are not generated here; call :func:`process_overdue`
    afterwards to catch up.
    """
    if template.state is TemplateState.ENDED:
        raise InvalidTransitionError(f"Template {template.id} has ended and cannot be resumed")
    if template.state is TemplateState.ACTIVE:
        return template
    return replace(template, state=TemplateState.ACTIVE, updated_at=now or datetime.now())


def due_templates(templates: Iterable[RecurringTemplate], as_of: date) -> List[RecurringTemplate]:
    """Active templates with an occurrence due on or before ``as_of``."""
    return sorted(
        (item for item in templates if item.is_active and item.next_due_date <= as_of),
        key=lambda item: item.next_due_date,
    )


def overdue_templates(templates: Iterable[RecurringTemplate], as_of: date) -> List[RecurringTemplate]:
    """Active templates whose next occurrence is strictly before ``as_of``."""
    return sorted(
        (item for item in templates if item.is_overdue(as_of)),
        key=lambda item: item.next_due_date,
    )


def upcoming_templates(
    templates: Iterable[RecurringTemplate],
    as_of: date,
    within_days: int = DEFAULT_SETTINGS.upcoming_days,
) -> List[RecurringTemplate]:
    """Active templates due between ``as_of`` and ``within_days`` later, soonest first."""
    horizon = as_of + timedelta(days=within_days)
    return sorted(
        (item for item in templates if item.is_active and as_of <= item.next_due_date <= horizon),
        key=lambda item: item.next_due_date,
    )


def recurring_monthly_amounts(templates: Iterable[RecurringTemplate]) -> Dict[CategoryKind, Decimal]:
    """Monthly equivalent of active, categorized expense templates per category."""
    totals: Dict[CategoryKind, Decimal] = {}
    for template in templates:
        if not template.is_active or template.kind is not TransactionKind.EXPENSE:
            continue
        if template.category is None:
            continue
        totals[template.category] = totals.get(template.category, ZERO) + template.monthly_equivalent
    return totals
