"""SQLite-backed stores for transactions, recurring definitions and settings.

Each store is scoped by an explicit ``user_id``.  Reads without a user
return empty results; writes without a user raise :class:`AuthError`.
Any ``sqlite3`` failure surfaces as :class:`StorageError` with the
original exception chained.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Union

from .config import DB_PATH, ensure_data_directories
from .dates import iso_now
from .errors import AuthError, NotFoundError, StorageError
from .models import EDITABLE_TRANSACTION_FIELDS, RecurringDefinition

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    amount REAL,
    description TEXT,
    category TEXT,
    type TEXT,
    transaction_date TEXT,
    created_at TEXT,
    updated_at TEXT
);

CREATE INDEX IF NOT EXISTS ix_txn_user ON transactions (user_id);
CREATE INDEX IF NOT EXISTS ix_txn_date ON transactions (transaction_date);

CREATE TABLE IF NOT EXISTS recurring_collections (
    user_id TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS user_settings (
    user_id TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    updated_at TEXT
);
"""

# Document field name -> column name
_TRANSACTION_COLUMNS = {
    'amount': 'amount',
    'description': 'description',
    'category': 'category',
    'type': 'type',
    'date': 'transaction_date',
}

_SELECT_TRANSACTIONS = (
    "SELECT id, amount, description, category, type, transaction_date, user_id, created_at, updated_at "
    "FROM transactions WHERE user_id = ? ORDER BY transaction_date DESC, id DESC"
)

PathLike = Union[str, Path]


@contextmanager
def connect(db_path: Optional[PathLike] = None) -> Iterator[sqlite3.Connection]:
    target = Path(db_path) if db_path else DB_PATH
    if db_path is None:
        ensure_data_directories()
    target.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(target))
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: Optional[PathLike] = None) -> None:
    with connect(db_path) as conn:
        conn.executescript(SCHEMA_SQL)
        conn.commit()


@contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        logger.error("Error %s: %s", action, exc)
        raise StorageError(f"Failed {action}: {exc}") from exc


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise AuthError()
    return user_id


def _row_to_record(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        'id': str(row['id']),
        'amount': row['amount'],
        'description': row['description'],
        'category': row['category'],
        'type': row['type'],
        'date': row['transaction_date'],
        'userId': row['user_id'],
        'createdAt': row['created_at'],
        'updatedAt': row['updated_at'],
    }


class _SqliteStore:
    """Shared connection handling; the schema is created on first use."""

    def __init__(self, db_path: Optional[PathLike] = None):
        self.db_path = db_path
        with _storage_errors('initialising database'):
            init_db(db_path)

    def _connect(self):
        return connect(self.db_path)


class TransactionStore(_SqliteStore):
    """CRUD over expense transactions owned by a user."""

    def create(self, user_id: Optional[str], record: Mapping[str, Any]) -> str:
        owner = _require_user(user_id)
        now = iso_now()
        values = [record.get(field) for field in _TRANSACTION_COLUMNS]
        with _storage_errors('adding transaction'), self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO transactions (amount, description, category, type, transaction_date, "
                "user_id, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (*values, owner, now),
            )
            conn.commit()
            new_id = str(cur.lastrowid)
        logger.debug("Added transaction %s for user %s", new_id, owner)
        return new_id

    def list_for_user(self, user_id: Optional[str]) -> List[Dict[str, Any]]:
        if not user_id:
            return []
        with _storage_errors('fetching transactions'), self._connect() as conn:
            rows = conn.execute(_SELECT_TRANSACTIONS, (user_id,)).fetchall()
        return [_row_to_record(row) for row in rows]

    def get(self, user_id: Optional[str], transaction_id: str) -> Optional[Dict[str, Any]]:
        if not user_id:
            return None
        with _storage_errors('fetching transaction'), self._connect() as conn:
            row = conn.execute(
                "SELECT id, amount, description, category, type, transaction_date, user_id, "
                "created_at, updated_at FROM transactions WHERE id = ? AND user_id = ?",
                (transaction_id, user_id),
            ).fetchone()
        return _row_to_record(row) if row else None

    def update(self, user_id: Optional[str], transaction_id: str, fields: Mapping[str, Any]) -> None:
        owner = _require_user(user_id)
        updates = {key: value for key, value in fields.items() if key in EDITABLE_TRANSACTION_FIELDS}
        assignments = [f"{_TRANSACTION_COLUMNS[key]} = ?" for key in updates]
        assignments.append("updated_at = ?")
        params: List[Any] = list(updates.values()) + [iso_now(), transaction_id, owner]
        with _storage_errors('updating transaction'), self._connect() as conn:
            cur = conn.execute(
                f"UPDATE transactions SET {', '.join(assignments)} WHERE id = ? AND user_id = ?",
                params,
            )
            conn.commit()
            changed = cur.rowcount
        if not changed:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        logger.debug("Updated transaction %s (%s)", transaction_id, ', '.join(updates) or 'timestamp')

    def delete(self, user_id: Optional[str], transaction_id: str) -> None:
        owner = _require_user(user_id)
        with _storage_errors('deleting transaction'), self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM transactions WHERE id = ? AND user_id = ?",
                (transaction_id, owner),
            )
            conn.commit()
            changed = cur.rowcount
        if not changed:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        logger.debug("Deleted transaction %s", transaction_id)


class _DocumentStore(_SqliteStore):
    """One JSON document per user, overwritten as a whole."""

    table = ''

    def _load(self, user_id: str) -> Optional[Any]:
        with _storage_errors(f'loading {self.table}'), self._connect() as conn:
            row = conn.execute(
                f"SELECT payload FROM {self.table} WHERE user_id = ?", (user_id,)
            ).fetchone()
        if row is None:
            return None
        try:
            return json.loads(row['payload'])
        except json.JSONDecodeError:
            logger.warning("Discarding unreadable %s document for user %s", self.table, user_id)
            return None

    def _save(self, user_id: str, payload: Any) -> str:
        now = iso_now()
        with _storage_errors(f'saving {self.table}'), self._connect() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO {self.table} (user_id, payload, updated_at) VALUES (?, ?, ?)",
                (user_id, json.dumps(payload, sort_keys=True), now),
            )
            conn.commit()
        return now


class RecurringStore(_DocumentStore):
    """Holds each user's recurring definitions as a single aggregate document."""

    table = 'recurring_collections'

    def get_all(self, user_id: Optional[str]) -> List[RecurringDefinition]:
        if not user_id:
            return []
        data = self._load(user_id)
        if not isinstance(data, dict):
            return []
        entries = data.get('transactions') or []
        if not isinstance(entries, list):
            return []
        return [RecurringDefinition.from_record(entry) for entry in entries if isinstance(entry, dict)]

    def replace_all(self, user_id: Optional[str], definitions: Sequence[RecurringDefinition]) -> None:
        owner = _require_user(user_id)
        self._save(owner, {'transactions': [definition.to_record() for definition in definitions]})
        logger.debug("Saved %d recurring definitions for user %s", len(definitions), owner)


class SettingsStore(_DocumentStore):
    """Per-user settings document (monthly budget, category budgets)."""

    table = 'user_settings'

    def get(self, user_id: Optional[str]) -> Dict[str, Any]:
        if not user_id:
            return {}
        data = self._load(user_id)
        return data if isinstance(data, dict) else {}

    def merge(self, user_id: Optional[str], fields: Mapping[str, Any]) -> Dict[str, Any]:
        """Update only the given fields, keeping everything else in the document."""
        owner = _require_user(user_id)
        merged = self.get(owner)
        for key, value in fields.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = {**merged[key], **value}
            else:
                merged[key] = value
        merged['updatedAt'] = iso_now()
        self._save(owner, merged)
        logger.debug("Merged settings %s for user %s", ', '.join(fields), owner)
        return merged
