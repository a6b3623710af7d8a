"""JSON snapshot persistence for transactions, categories and templates.

This is a reference implementation of the persistence collaborator: the
engine itself only needs consistent in-memory snapshots.  Amounts are
written as strings so Decimals survive a round trip unchanged.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .config import SNAPSHOT_PATH
from .models import (
    BudgetCategoryRecord,
    BudgetPeriod,
    CategoryKind,
    Frequency,
    RecurringTemplate,
    TemplateState,
    TransactionKind,
    TransactionRecord,
)

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


@dataclass
class Snapshot:
    transactions: List[TransactionRecord] = field(default_factory=list)
    categories: List[BudgetCategoryRecord] = field(default_factory=list)
    templates: List[RecurringTemplate] = field(default_factory=list)


def _optional_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _enum_or_none(enum_cls, value):
    return enum_cls(value) if value is not None else None


def transaction_to_dict(txn: TransactionRecord) -> Dict[str, Any]:
    return {
        'id': txn.id,
        'amount': str(txn.amount),
        'date': txn.date.isoformat(),
        'kind': txn.kind.value,
        'category': txn.category.value if txn.category else None,
        'account': txn.account,
        'description': txn.description,
        'notes': txn.notes,
        'template_id': txn.template_id,
    }


def transaction_from_dict(data: Dict[str, Any]) -> TransactionRecord:
    return TransactionRecord(
        id=data['id'],
        amount=Decimal(data['amount']),
        date=date.fromisoformat(data['date']),
        kind=TransactionKind(data['kind']),
        category=_enum_or_none(CategoryKind, data.get('category')),
        account=data.get('account'),
        description=data.get('description', ''),
        notes=data.get('notes', ''),
        template_id=data.get('template_id'),
    )


def category_to_dict(category: BudgetCategoryRecord) -> Dict[str, Any]:
    return {
        'id': category.id,
        'kind': category.kind.value,
        'budget_amount': str(category.budget_amount),
        'spent_amount': str(category.spent_amount),
        'period': category.period.value,
        'is_active': category.is_active,
    }


def category_from_dict(data: Dict[str, Any]) -> BudgetCategoryRecord:
    return BudgetCategoryRecord(
        id=data['id'],
        kind=CategoryKind(data['kind']),
        budget_amount=Decimal(data.get('budget_amount', '0')),
        spent_amount=Decimal(data.get('spent_amount', '0')),
        period=BudgetPeriod(data.get('period', BudgetPeriod.MONTHLY.value)),
        is_active=bool(data.get('is_active', True)),
    )


def template_to_dict(template: RecurringTemplate) -> Dict[str, Any]:
    return {
        'id': template.id,
        'name': template.name,
        'amount': str(template.amount),
        'kind': template.kind.value,
        'frequency': template.frequency.value,
        'start_date': template.start_date.isoformat(),
        'end_date': template.end_date.isoformat() if template.end_date else None,
        'next_due_date': template.next_due_date.isoformat(),
        'state': template.state.value,
        'auto_pay': template.auto_pay,
        'generated_ids': list(template.generated_ids),
        'updated_at': template.updated_at.isoformat() if template.updated_at else None,
        'category': template.category.value if template.category else None,
        'account': template.account,
        'notes': template.notes,
        'last_processed_date': (
            template.last_processed_date.isoformat() if template.last_processed_date else None
        ),
    }


def template_from_dict(data: Dict[str, Any]) -> RecurringTemplate:
    updated_at = data.get('updated_at')
    return RecurringTemplate(
        id=data['id'],
        name=data['name'],
        amount=Decimal(data['amount']),
        kind=TransactionKind(data['kind']),
        frequency=Frequency(data['frequency']),
        start_date=date.fromisoformat(data['start_date']),
        next_due_date=date.fromisoformat(data['next_due_date']),
        end_date=_optional_date(data.get('end_date')),
        state=TemplateState(data.get('state', TemplateState.ACTIVE.value)),
        auto_pay=bool(data.get('auto_pay', True)),
        generated_ids=tuple(data.get('generated_ids') or ()),
        updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        category=_enum_or_none(CategoryKind, data.get('category')),
        account=data.get('account'),
        notes=data.get('notes', ''),
        last_processed_date=_optional_date(data.get('last_processed_date')),
    )


def _load_records(entries: Any, loader, label: str) -> list:
    records = []
    if not isinstance(entries, list):
        return records
    for entry in entries:
        try:
            records.append(loader(entry))
        except (KeyError, TypeError, ValueError, InvalidOperation) as exc:
            # Skip invalid rows; the rest of the snapshot is still usable.
            logger.warning("Skipping invalid %s %r: %s", label, _entry_id(entry), exc)
    return records


def _entry_id(entry: Any) -> Any:
    return entry.get('id') if isinstance(entry, dict) else None


def load_snapshot(path: Path | None = None) -> Snapshot:
    """Load a snapshot; a missing or unreadable file yields an empty one."""
    target = path or SNAPSHOT_PATH
    if not target.exists():
        return Snapshot()
    try:
        with target.open('r', encoding='utf-8') as handle:
            data = json.load(handle)
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Could not read snapshot %s: %s", target, exc)
        return Snapshot()
    if not isinstance(data, dict):
        return Snapshot()
    return Snapshot(
        transactions=_load_records(data.get('transactions'), transaction_from_dict, 'transaction'),
        categories=_load_records(data.get('categories'), category_from_dict, 'category'),
        templates=_load_records(data.get('templates'), template_from_dict, 'template'),
    )


def save_snapshot(snapshot: Snapshot, path: Path | None = None) -> None:
    target = path or SNAPSHOT_PATH
    target.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        'version': SNAPSHOT_VERSION,
        'transactions': [transaction_to_dict(txn) for txn in snapshot.transactions],
        'categories': [category_to_dict(category) for category in snapshot.categories],
        'templates': [template_to_dict(template) for template in snapshot.templates],
    }
    with target.open('w', encoding='utf-8') as handle:
        json.dump(payload, handle, indent=2, sort_keys=True)
    logger.debug("Saved snapshot with %d transactions to %s", len(snapshot.transactions), target)


def transactions_in_range(
    transactions: Iterable[TransactionRecord],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[TransactionRecord]:
    """Transactions dated within ``[start, end]``; either bound may be open."""
    return [
        txn
        for txn in transactions
        if (start is None or txn.date >= start) and (end is None or txn.date <= end)
    ]


def merge_records(existing: Iterable[Any], updates: Iterable[Any]) -> List[Any]:
    """Replace records by id, appending ones that are new; order is preserved."""
    by_id = {record.id: record for record in updates}
    merged = []
    for record in existing:
        merged.append(by_id.pop(record.id, record))
    merged.extend(by_id.values())
    return merged


def apply_updates(
    snapshot: Snapshot,
    *,
    transactions: Iterable[TransactionRecord] = (),
    categories: Iterable[BudgetCategoryRecord] = (),
    templates: Iterable[RecurringTemplate] = (),
) -> Snapshot:
    """Return a new snapshot with the given records written over it.

    New transactions whose id is already stored are ignored, which makes
    replaying the same generation result harmless.
    """
    known = {txn.id for txn in snapshot.transactions}
    new_transactions = []
    for txn in transactions:
        if txn.id not in known:
            known.add(txn.id)
            new_transactions.append(txn)
    return replace(
        snapshot,
        transactions=list(snapshot.transactions) + new_transactions,
        categories=merge_records(snapshot.categories, categories),
        templates=merge_records(snapshot.templates, templates),
    )
