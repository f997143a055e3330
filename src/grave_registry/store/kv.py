"""SQLite-backed key/value namespace used as the registry's persistence substrate."""

from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional

from ..errors import PersistenceFailure
from ..logging import get_logger

LOG = get_logger("store-kv")

TABLE_NAME = "kv"

SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
  key         TEXT PRIMARY KEY,
  value       TEXT NOT NULL,
  updated_at  TEXT DEFAULT (datetime('now'))
);
"""

_UPSERT_SQL = f"""
INSERT INTO {TABLE_NAME} (key, value) VALUES (?, ?)
ON CONFLICT(key) DO UPDATE SET
    value=excluded.value,
    updated_at=datetime('now');
"""


class Transaction:
    """Reads and writes bound to one open write transaction."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def get(self, key: str) -> Optional[str]:
        row = self._conn.execute(f"SELECT value FROM {TABLE_NAME} WHERE key=?", (key,)).fetchone()
        return None if row is None else str(row[0])

    def set(self, key: str, value: str) -> None:
        self._conn.execute(_UPSERT_SQL, (key, value))


class KeyValueStore:
    """String blobs keyed by name, stored in a single SQLite table.

    - Ensures the schema on construction.
    - `transaction()` groups several reads/writes into one atomic commit.
    - Every sqlite3 error surfaces as PersistenceFailure.
    """

    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
        self.db_path = db_path
        self._ensure_schema()
        LOG.info(f"Key/value store ready at {self.db_path}")

    def _connect(self) -> sqlite3.Connection:
        # Autocommit mode; transactions are opened explicitly.
        return sqlite3.connect(self.db_path, isolation_level=None, timeout=10)

    def _ensure_schema(self) -> None:
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"cannot open {self.db_path}: {exc}") from exc
        try:
            try:
                conn.execute("PRAGMA journal_mode=WAL;")
                conn.execute("PRAGMA synchronous=FULL;")
            except sqlite3.Error as exc:
                LOG.debug(f"Journal pragmas not applied: {exc}")
            conn.executescript(SCHEMA_SQL)
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"cannot create schema in {self.db_path}: {exc}") from exc
        finally:
            conn.close()

    def get(self, key: str) -> Optional[str]:
        try:
            conn = self._connect()
            try:
                return Transaction(conn).get(key)
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"read of {key!r} failed: {exc}") from exc

    def set(self, key: str, value: str) -> None:
        with self.transaction() as txn:
            txn.set(key, value)

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """Open an immediate write transaction; commit on success, roll back on error."""
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"cannot open {self.db_path}: {exc}") from exc
        try:
            try:
                conn.execute("BEGIN IMMEDIATE;")
            except sqlite3.Error as exc:
                raise PersistenceFailure(f"cannot begin transaction: {exc}") from exc
            try:
                yield Transaction(conn)
                conn.execute("COMMIT;")
            except sqlite3.Error as exc:
                if conn.in_transaction:
                    conn.execute("ROLLBACK;")
                raise PersistenceFailure(f"write failed: {exc}") from exc
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK;")
                raise
        finally:
            conn.close()
