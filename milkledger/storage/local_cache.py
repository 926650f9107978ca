"""SQLite-backed key/value cache holding the ledger and the access key."""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from ..errors import ValidationError
from ..ledger import LedgerEntry, LedgerPersistence

logger = logging.getLogger(__name__)

LEDGER_KEY = "ledger"
ACCESS_KEY_KEY = "access_key"

# Schema for the key/value cache
CACHE_SCHEMA = """
CREATE TABLE IF NOT EXISTS cache (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class LocalCache(LedgerPersistence):
    """Persistent key/value store for the current device.

    Holds the serialized full ledger under ``ledger`` and the remote access
    key under ``access_key``. Writes are last-writer-wins.
    """

    def __init__(self, db_path: str | Path):
        """Initialize the cache.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self.db_path = db_path if db_path == ":memory:" else Path(db_path).expanduser()
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Initialize database connection and schema."""
        if self._conn is not None:
            return
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(CACHE_SCHEMA)
        self._conn.commit()

        logger.info(f"LocalCache connected to {self.db_path}")

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def _ensure_connected(self) -> sqlite3.Connection:
        """Ensure database connection exists."""
        if self._conn is None:
            self.connect()
        return self._conn

    # ==================== Key/value access ====================

    def get(self, key: str) -> str | None:
        conn = self._ensure_connected()
        row = conn.execute("SELECT value FROM cache WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        conn = self._ensure_connected()
        conn.execute(
            """
            INSERT INTO cache (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, value, datetime.now().isoformat()),
        )
        conn.commit()

    def delete(self, key: str) -> bool:
        conn = self._ensure_connected()
        cursor = conn.execute("DELETE FROM cache WHERE key = ?", (key,))
        conn.commit()
        return cursor.rowcount > 0

    # ==================== Ledger persistence ====================

    def load(self) -> list[LedgerEntry]:
        """Load the cached ledger.

        A missing or corrupt value yields an empty ledger; corruption is
        logged rather than raised so startup can continue.
        """
        raw = self.get(LEDGER_KEY)
        if not raw:
            return []
        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValidationError("Cached ledger is not a list")
            return [LedgerEntry.from_dict(item) for item in data]
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring corrupt cached ledger: {e}")
            return []

    def save(self, entries: list[LedgerEntry]) -> None:
        self.set(LEDGER_KEY, json.dumps([entry.to_dict() for entry in entries]))

    # ==================== Access key ====================

    def load_access_key(self) -> str | None:
        return self.get(ACCESS_KEY_KEY)

    def save_access_key(self, access_key: str) -> None:
        self.set(ACCESS_KEY_KEY, access_key)
