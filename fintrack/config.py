"""Configuration management for FinTrack.

This module centralizes configuration values including paths,
defaults, and environment variable overrides.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

# Base project root - assumes this file is in fintrack/
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Data directories
DATA_DIR = Path(os.getenv("FINTRACK_DATA_DIR", _PROJECT_ROOT / "data"))

# Database
DB_PATH = Path(
    os.getenv("FINTRACK_DB_PATH", DATA_DIR / "fintrack.db")
).resolve()

LOG_LEVEL = os.getenv("FINTRACK_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Category tags offered by the entry form; any other string is accepted as-is.
DEFAULT_CATEGORIES = [
    'Food',
    'Transport',
    'Shopping',
    'Groceries',
    'Bills',
    'Entertainment',
    'Gas',
    'Other',
]

# Categories offered when setting up a recurring bill or subscription.
RECURRING_CATEGORIES = [
    'Rent',
    'Bills',
    'Utilities',
    'Subscriptions',
    'Insurance',
    'Loan Payment',
    'Other',
]

DATE_FILTERS = ('all', 'today', 'week', 'month')
DASHBOARD_TOP_CATEGORIES = 4


def ensure_data_directories() -> None:
    """Create all required data directories if they don't exist."""
    for directory in [DATA_DIR, DB_PATH.parent]:
        directory.mkdir(parents=True, exist_ok=True)


def default_user_id() -> Optional[str]:
    """User id the Streamlit app signs in as, or ``None`` when unset."""
    value = os.getenv("FINTRACK_USER_ID", "").strip()
    return value or None


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for entry points (the Streamlit app)."""
    logging.basicConfig(level=(level or LOG_LEVEL), format=LOG_FORMAT)
