"""Top-level package for FinTrack.

The primary modules are:

* ``aggregation`` – budget status, category rankings and spending insights
* ``recurring`` – recurring expense definitions and their booking
* ``db`` – SQLite stores for transactions, recurring definitions and settings
* ``tracker`` – per-user session tying the stores to the engines
* ``dashboard`` – a Streamlit app that ties everything together

To run the dashboard from the command line you can execute:

```bash
streamlit run fintrack/dashboard.py
```
"""

from . import aggregation  # noqa: F401  # re-exported for convenience
from . import recurring  # noqa: F401  # re-exported for convenience
from .errors import AuthError, FinTrackError, NotFoundError, StorageError, ValidationError  # noqa: F401
from .tracker import BudgetTracker  # noqa: F401

__all__ = [
    "aggregation",
    "recurring",
    "BudgetTracker",
    "FinTrackError",
    "ValidationError",
    "NotFoundError",
    "AuthError",
    "StorageError",
]
