"""Top-level package for the Household Budget app.

This file makes the directory a Python package and exposes
convenient names.  The primary modules are:

* ``patterns`` – expand and detect repeating monthly amounts
* ``aggregation`` – monthly totals, running balance and category rollup
* ``csv_import`` – read, validate and import budget CSV files
* ``transfer`` – carry rows and balance from one budget year to another
* ``db`` – SQLite storage for budgets, categories, entries and settings
* ``visualization`` – functions that generate Plotly figures
* ``dashboard`` – a Streamlit app that ties everything together

To run the dashboard from the command line you can execute:

```bash
streamlit run household_budget/dashboard.py
```

or ``python run_dashboard.py`` from the project root.
"""

from . import aggregation  # noqa: F401  # re-exported for convenience
from . import csv_import  # noqa: F401  # re-exported for convenience
from . import db  # noqa: F401  # re-exported for convenience
from . import patterns  # noqa: F401  # re-exported for convenience
from . import transfer  # noqa: F401  # re-exported for convenience
from . import visualization  # noqa: F401  # re-exported for convenience

__all__ = ["aggregation", "csv_import", "db", "patterns", "transfer", "visualization"]
