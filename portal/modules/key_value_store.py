"""
Key/Value Store Module - School Portal

Local durable key/value storage used by the local Record Store backend and by
the session slot. Values are opaque strings; callers JSON-encode and decode
them. The SQLite implementation enforces a byte quota and fails closed with
StorageError when a write would exceed it.

Features:
- SQLite-backed persistent store (file path or ``:memory:``)
- Byte quota enforcement
- Single shared connection guarded by a lock
- Transaction rollback on failure
"""

import os
import sqlite3
import logging
import threading
from contextlib import contextmanager
from typing import List, Optional

from .exceptions import StorageError


class KeyValueStore:
    """Interface of the local durable key/value store."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class SQLiteKeyValueStore(KeyValueStore):
    """
    Key/value store persisted in a single SQLite table.
    """

    def __init__(self, db_path, quota_bytes: Optional[int] = None):
        """
        Initialize the store and create its table if needed.

        Args:
            db_path (str): Path to the SQLite database file, or ':memory:'
            quota_bytes (int): Maximum total size of keys and values, None for no limit
        """
        self.db_path = str(db_path)
        self.quota_bytes = quota_bytes
        self.logger = logging.getLogger(__name__)
        self._lock = threading.RLock()
        self._connection = None

        if self.db_path != ':memory:':
            directory = os.path.dirname(self.db_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

        self.initialize_database()

    @contextmanager
    def get_connection(self):
        """
        Context manager yielding the shared connection under the store lock.

        Raises:
            StorageError: If SQLite reports an error
        """
        with self._lock:
            if self._connection is None:
                self._connection = sqlite3.connect(
                    self.db_path,
                    check_same_thread=False,
                    timeout=30.0
                )

            try:
                yield self._connection
            except sqlite3.Error as e:
                self._connection.rollback()
                self.logger.error(f"Key/value store operation failed: {str(e)}")
                raise StorageError() from e
            except Exception:
                self._connection.rollback()
                raise

    def initialize_database(self):
        """Create the storage table. Safe to call repeatedly."""
        with self.get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.commit()

    def get(self, key: str) -> Optional[str]:
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
            return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        """
        Store a value, replacing any previous one.

        Raises:
            StorageError: If the write would exceed the quota
        """
        with self.get_connection() as conn:
            if self.quota_bytes is not None:
                used = self._usage_excluding(conn, key)
                needed = _size(key) + _size(value)
                if used + needed > self.quota_bytes:
                    self.logger.error(
                        f"Storage quota exceeded writing '{key}': "
                        f"{used + needed} > {self.quota_bytes} bytes"
                    )
                    raise StorageError('Storage is full. Remove some items and try again.')

            conn.execute("""
                INSERT INTO kv_store (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                               updated_at = CURRENT_TIMESTAMP
            """, (key, value))
            conn.commit()

    def remove(self, key: str) -> None:
        with self.get_connection() as conn:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()

    def keys(self) -> List[str]:
        with self.get_connection() as conn:
            return [row[0] for row in conn.execute("SELECT key FROM kv_store ORDER BY key")]

    def usage_bytes(self) -> int:
        with self.get_connection() as conn:
            return self._usage_excluding(conn, None)

    def _usage_excluding(self, conn, key: Optional[str]) -> int:
        total = 0
        for stored_key, stored_value in conn.execute("SELECT key, value FROM kv_store"):
            if stored_key != key:
                total += _size(stored_key) + _size(stored_value)
        return total

    def close(self):
        """Close the database connection."""
        with self._lock:
            if self._connection is not None:
                try:
                    self._connection.close()
                except sqlite3.Error as e:
                    self.logger.error(f"Error closing connection: {str(e)}")
                self._connection = None


def _size(text: str) -> int:
    return len(text.encode('utf-8'))
