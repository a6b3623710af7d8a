"""Configuration management for the budget engine.

This module centralizes paths, forecasting constants and logging setup.
Every value can be overridden through a ``BUDGET_ENGINE_*`` environment
variable.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, Mapping, Optional

from .errors import InvalidConfigurationError

# Base project root - assumes this file is in budget_engine/
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Data directories
DATA_DIR = Path(os.getenv("BUDGET_ENGINE_DATA_DIR", _PROJECT_ROOT / "data"))

# Snapshot file used by the reference JSON store
SNAPSHOT_PATH = Path(
    os.getenv("BUDGET_ENGINE_SNAPSHOT", DATA_DIR / "snapshot.json")
).resolve()

LOG_LEVEL = os.getenv("BUDGET_ENGINE_LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_ENV_PREFIX = "BUDGET_ENGINE_"


@dataclass(frozen=True)
class ForecastSettings:
    """Tunable constants of the forecasting and scheduling heuristics.

    The defaults are starting points; override them per deployment.
    """

    history_window: int = 6
    decay: Decimal = Decimal("0.7")
    trend_threshold: Decimal = Decimal("0.10")
    extrapolation_cap: Decimal = Decimal("0.25")
    low_variance_cv: Decimal = Decimal("0.25")
    high_variance_cv: Decimal = Decimal("0.60")
    recurring_blend: Decimal = Decimal("0.30")
    max_catchup_years: int = 10
    upcoming_days: int = 7

    def __post_init__(self) -> None:
        if self.history_window < 1:
            raise InvalidConfigurationError("history_window must be at least 1")
        if not Decimal("0") < self.decay < Decimal("1"):
            raise InvalidConfigurationError("decay must be between 0 and 1")
        if not Decimal("0") <= self.trend_threshold < Decimal("1"):
            raise InvalidConfigurationError("trend_threshold must be in [0, 1)")
        if self.extrapolation_cap < 0:
            raise InvalidConfigurationError("extrapolation_cap cannot be negative")
        if self.low_variance_cv > self.high_variance_cv:
            raise InvalidConfigurationError(
                "low_variance_cv cannot exceed high_variance_cv"
            )
        if not Decimal("0") <= self.recurring_blend <= Decimal("1"):
            raise InvalidConfigurationError("recurring_blend must be in [0, 1]")
        if self.max_catchup_years < 1:
            raise InvalidConfigurationError("max_catchup_years must be at least 1")
        if self.upcoming_days < 0:
            raise InvalidConfigurationError("upcoming_days cannot be negative")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ForecastSettings":
        """Build settings from ``BUDGET_ENGINE_<FIELD>`` environment variables."""
        source = os.environ if environ is None else environ
        overrides: Dict[str, object] = {}
        for item in fields(cls):
            raw = source.get(_ENV_PREFIX + item.name.upper())
            if raw is None or not raw.strip():
                continue
            overrides[item.name] = _coerce(item.name, raw.strip(), item.type)
        return cls(**overrides)


def _coerce(name: str, raw: str, annotation: object) -> object:
    try:
        if annotation in (int, "int"):
            return int(raw)
        value = Decimal(raw)
    except (ValueError, InvalidOperation) as exc:
        raise InvalidConfigurationError(f"Invalid value for {name}: {raw!r}") from exc
    if not value.is_finite():
        raise InvalidConfigurationError(f"Invalid value for {name}: {raw!r}")
    return value


DEFAULT_SETTINGS = ForecastSettings()


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for scripts; library code only creates loggers."""
    logging.basicConfig(level=(level or LOG_LEVEL).upper(), format=LOG_FORMAT)
