"""
Persistence store: durable whole-record key/value storage on SQLite.

Each key holds one JSON document. There is no partial access: callers read a
whole record, modify it and write the whole record back. A failed or corrupt
read degrades to "absent"; a failed write raises PersistenceError.

Schema versioning ensures automatic migration when schema changes.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
from typing import Any, Optional

from models.errors import PersistenceError

# Schema version - increment when schema changes
EXPECTED_SCHEMA_VERSION = 1

SESSIONS_KEY = "object_counter.sessions"
SETTINGS_KEY = "object_counter.settings"


class PersistenceStore:
    """
    Key/value store for the session collection and the settings record.

    Tables:
    - schema_meta: tracks schema version
    - kv_records: one JSON document per key

    A single connection is shared across threads and guarded by a lock.
    Writes are last-write-wins; SessionRepository adds the serialization
    needed around read-modify-write cycles.
    """

    def __init__(self, database_path: str):
        """
        Initialize the store.

        Args:
            database_path: Path to the SQLite database file, or ":memory:".
        """
        self.database_path = database_path
        self.conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

        if database_path != ":memory:":
            db_dir = os.path.dirname(database_path)
            if db_dir:
                os.makedirs(db_dir, exist_ok=True)

        logging.info(f"Persistence store initialized at {database_path}")

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self.conn is None:
            self.conn = sqlite3.connect(self.database_path, check_same_thread=False)
        return self.conn

    def _get_schema_version(self) -> Optional[int]:
        """Get current schema version from database."""
        try:
            cursor = self._get_connection().cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_meta'"
            )
            if cursor.fetchone() is None:
                return None

            cursor.execute("SELECT schema_version FROM schema_meta LIMIT 1")
            row = cursor.fetchone()
            return row[0] if row else None
        except sqlite3.Error:
            return None

    def _create_schema(self) -> None:
        cursor = self._get_connection().cursor()
        cursor.execute("DROP TABLE IF EXISTS kv_records")
        cursor.execute("DROP TABLE IF EXISTS schema_meta")

        cursor.execute("""
            CREATE TABLE schema_meta (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                schema_version INTEGER NOT NULL,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        cursor.execute("""
            CREATE TABLE kv_records (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        cursor.execute(
            "INSERT INTO schema_meta (id, schema_version) VALUES (1, ?)",
            (EXPECTED_SCHEMA_VERSION,)
        )

        self._get_connection().commit()
        logging.info(f"Created schema version {EXPECTED_SCHEMA_VERSION}")

    def initialize(self) -> None:
        """
        Initialize the database schema.

        If schema_meta is missing or version doesn't match EXPECTED_SCHEMA_VERSION,
        drops the old tables and creates a fresh schema.
        """
        with self._lock:
            try:
                current_version = self._get_schema_version()

                if current_version != EXPECTED_SCHEMA_VERSION:
                    if current_version is not None:
                        logging.warning(
                            f"Schema version mismatch: found {current_version}, "
                            f"expected {EXPECTED_SCHEMA_VERSION}. Recreating store."
                        )
                    else:
                        logging.info("No schema found, creating fresh store.")
                    self._create_schema()
                else:
                    logging.info(f"Schema version {current_version} is current")

            except sqlite3.Error as e:
                logging.error(f"Store initialization error: {e}")
                raise PersistenceError(f"Could not initialize store: {e}") from e

    # -------------------------------------------------------------------------
    # Record access
    # -------------------------------------------------------------------------

    def load(self, key: str) -> Optional[Any]:
        """
        Load the record stored under `key`.

        Returns:
            The decoded JSON value, or None when the key is absent, unreadable
            or holds a corrupt value.
        """
        with self._lock:
            try:
                cursor = self._get_connection().cursor()
                cursor.execute("SELECT value FROM kv_records WHERE key = ?", (key,))
                row = cursor.fetchone()
            except sqlite3.Error as e:
                logging.error(f"Error loading record {key}: {e}")
                return None

        if row is None:
            return None

        try:
            return json.loads(row[0])
        except (TypeError, ValueError) as e:
            logging.warning(f"Corrupt record under {key}, treating as absent: {e}")
            return None

    def save(self, key: str, value: Any) -> None:
        """
        Replace the record stored under `key`.

        Raises:
            PersistenceError: if the value cannot be serialized or written.
        """
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot serialize record {key}: {e}") from e

        with self._lock:
            try:
                conn = self._get_connection()
                conn.execute(
                    """
                    INSERT INTO kv_records (key, value, updated_at)
                    VALUES (?, ?, datetime('now'))
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, payload),
                )
                conn.commit()
            except sqlite3.Error as e:
                logging.error(f"Error saving record {key}: {e}")
                raise PersistenceError(f"Could not save record {key}: {e}") from e

        logging.debug(f"Saved record {key} ({len(payload)} bytes)")

    def delete(self, key: str) -> None:
        """Remove the record stored under `key`, if any."""
        with self._lock:
            try:
                conn = self._get_connection()
                conn.execute("DELETE FROM kv_records WHERE key = ?", (key,))
                conn.commit()
            except sqlite3.Error as e:
                logging.error(f"Error deleting record {key}: {e}")
                raise PersistenceError(f"Could not delete record {key}: {e}") from e

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self.conn is not None:
                self.conn.close()
                self.conn = None
                logging.info("Persistence store connection closed")
