"""
Key/value byte storage for application state.
Uses SQLite with a single table; an in-memory variant backs tests.
"""

import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Optional

from config.logging_config import get_logger
from config import settings

logger = get_logger(__name__)


class KeyValueStorage(ABC):
    """Stores opaque byte blobs under string keys."""

    @abstractmethod
    def store(self, key: str, data: bytes) -> None:
        """Write data under key, replacing any previous value."""

    @abstractmethod
    def load(self, key: str) -> Optional[bytes]:
        """Return the bytes stored under key, or None when absent."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove key; True if something was removed."""


class MemoryKeyValueStorage(KeyValueStorage):
    """Dictionary-backed storage; contents are lost with the process."""

    def __init__(self, initial: Optional[Dict[str, bytes]] = None):
        self.data: Dict[str, bytes] = dict(initial or {})

    def store(self, key: str, data: bytes) -> None:
        self.data[key] = bytes(data)

    def load(self, key: str) -> Optional[bytes]:
        return self.data.get(key)

    def delete(self, key: str) -> bool:
        return self.data.pop(key, None) is not None


class SqliteKeyValueStorage(KeyValueStorage):
    """
    Thread-safe SQLite key/value storage.
    """

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS kv_store (
        key TEXT PRIMARY KEY,
        value BLOB NOT NULL,
        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
    );
    """

    def __init__(self, db_path: str = None):
        """
        Initialize storage.

        Args:
            db_path: Path to SQLite database (default from settings)
        """
        self.db_path = db_path or str(settings.DB_PATH)
        self.lock = threading.Lock()

        logger.info(f"SqliteKeyValueStorage initialized: {self.db_path}")
        self._initialize_database()

    def _initialize_database(self) -> None:
        """Create database schema if it doesn't exist."""
        try:
            with self._get_connection() as conn:
                conn.executescript(self.SCHEMA)
                conn.commit()
            logger.debug("Key/value schema initialized")

        except Exception as e:
            logger.error(f"Failed to initialize database: {e}", exc_info=True)
            raise

    @contextmanager
    def _get_connection(self):
        """
        Get database connection (context manager).

        Yields:
            SQLite connection
        """
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row  # Access columns by name
        try:
            yield conn
        finally:
            conn.close()

    def store(self, key: str, data: bytes) -> None:
        """
        Write a value.

        Args:
            key: Storage key
            data: Bytes to store
        """
        with self.lock:
            with self._get_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO kv_store (key, value, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, sqlite3.Binary(data))
                )
                conn.commit()

        logger.debug(f"Stored {len(data)} bytes under {key!r}")

    def load(self, key: str) -> Optional[bytes]:
        """
        Read a value.

        Args:
            key: Storage key

        Returns:
            Stored bytes or None if the key is absent
        """
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?",
                (key,)
            ).fetchone()

            if row is None:
                return None
            return bytes(row['value'])

    def delete(self, key: str) -> bool:
        with self.lock:
            with self._get_connection() as conn:
                cursor = conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
                conn.commit()

                success = cursor.rowcount > 0
                if success:
                    logger.info(f"Deleted key {key!r}")
                return success
