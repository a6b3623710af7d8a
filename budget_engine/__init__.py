"""Top-level package for the budget engine.

The engine turns transaction history into per-category spend forecasts and
materializes recurring transactions from templates.  The primary modules
are:

* ``aggregation`` - per-category monthly totals
* ``budgets`` - current-period spent amounts per budget category
* ``trends`` / ``forecasting`` / ``risk`` - next-month forecasts and overspend risk
* ``recurring`` - recurring template scheduling
* ``pipeline`` - a full recomputation pass over a snapshot

To run a pass over the JSON snapshot from the command line you can execute:

```bash
python scripts/recompute.py --as-of 2024-06-30
```
"""

from .aggregation import aggregate
from .budgets import recalculate_budgets
from .forecasting import CategoryHistory, forecast, generate_forecast
from .recurring import advance_due_date, process_overdue
from .risk import at_risk_categories

__all__ = [
    "aggregate",
    "recalculate_budgets",
    "CategoryHistory",
    "forecast",
    "generate_forecast",
    "at_risk_categories",
    "advance_due_date",
    "process_overdue",
]
