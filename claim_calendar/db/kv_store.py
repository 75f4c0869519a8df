import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Optional

logger = logging.getLogger(__name__)


class SQLiteKeyValueStore:
    """Small persistent key-value store for client-side state"""

    def __init__(self, data_dir_path: Path | None = None):
        self.data_dir_path = Path(data_dir_path or "/data")
        self.database_dir_path = self.data_dir_path / "db"
        self.database_path = self.database_dir_path / "claim-calendar.db"
        self._ensure_directory()
        self._initialize_database()

    def _ensure_directory(self) -> None:
        """Ensure all required directories exist"""
        os.makedirs(self.database_dir_path, exist_ok=True)

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self.database_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _initialize_database(self) -> None:
        with self._get_connection() as connection:
            cursor = connection.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
            );
            """)
            connection.commit()

    def get(self, key: str) -> Optional[str]:
        with self._get_connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                SELECT value
                FROM kv_store
                WHERE key = ?
                """,
                (key,),
            )
            row = cursor.fetchone()
            return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        with self._get_connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                INSERT INTO kv_store (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP
                """,
                (key, value),
            )
            connection.commit()

    def delete(self, key: str) -> None:
        with self._get_connection() as connection:
            cursor = connection.cursor()
            cursor.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            connection.commit()

    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Stored value for {key} is not valid JSON, ignoring it")
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value))
