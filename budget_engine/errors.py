"""Exceptions and issue records raised or reported by the engine."""

from __future__ import annotations

from dataclasses import dataclass


class BudgetEngineError(Exception):
    """Base class for all engine errors."""


class InvalidConfigurationError(BudgetEngineError, ValueError):
    """A category, template or setting carries a value the engine cannot use."""


class InvalidTransitionError(BudgetEngineError):
    """A template lifecycle change was requested from a state that forbids it."""


class ScheduleOverflowError(BudgetEngineError):
    """Catch-up generation for a template would exceed the iteration cap.

    Nothing is generated when this is raised.  ``pending`` is a lower bound on
    the number of overdue occurrences (the count stops one past ``limit``).
    """

    def __init__(self, template_id: str, pending: int, limit: int):
        self.template_id = template_id
        self.pending = pending
        self.limit = limit
        super().__init__(
            f"Template {template_id} has more than {limit} overdue occurrences"
        )


@dataclass(frozen=True)
class EngineIssue:
    """A skipped item reported back to the caller instead of aborting a pass."""

    subject: str
    code: str
    message: str

    def __str__(self) -> str:
        return f"{self.subject}: {self.code} ({self.message})"
