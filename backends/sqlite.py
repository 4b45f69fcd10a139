# backends/sqlite.py
import json
import os
import sqlite3
from typing import Any, Dict, List, Optional

from catalog.batch_store import now_utc_iso
from catalog.errors import StoreUnavailable
from catalog.logger import get_logger

from .base import DocumentStore

logger = get_logger(__name__)


class SQLiteStore(DocumentStore):
    """Documents as JSON text in a single SQLite table."""

    name = "sqlite"

    def __init__(self, db_path: str):
        self.db_path = db_path

    def _connect(self):
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        return sqlite3.connect(self.db_path)

    def _execute(self, sql: str, params: tuple = (), fetch: bool = False):
        try:
            con = self._connect()
            try:
                with con:
                    cur = con.execute(sql, params)
                    return cur.fetchall() if fetch else None
            finally:
                con.close()
        except sqlite3.OperationalError as e:
            # Locked or unreachable database files are worth retrying
            raise StoreUnavailable(f"sqlite {self.db_path}: {e}") from e

    def ensure(self) -> None:
        self._execute(
            """
            CREATE TABLE IF NOT EXISTS documents (
                collection TEXT,
                key TEXT,
                value TEXT,
                updated_at TEXT,
                PRIMARY KEY (collection, key)
            )
        """
        )
        logger.debug("SQLite document table ready at %s", self.db_path)

    def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        rows = self._execute(
            "SELECT value FROM documents WHERE collection=? AND key=?",
            (collection, key),
            fetch=True,
        )
        if not rows:
            return None
        return json.loads(rows[0][0])

    def put(self, collection: str, key: str, value: Dict[str, Any]) -> None:
        self._execute(
            """
            INSERT INTO documents (collection, key, value, updated_at)
            VALUES (?,?,?,?)
            ON CONFLICT(collection, key) DO UPDATE SET
                value=excluded.value,
                updated_at=excluded.updated_at
        """,
            (collection, key, json.dumps(value), now_utc_iso()),
        )

    def delete(self, collection: str, key: str) -> None:
        self._execute(
            "DELETE FROM documents WHERE collection=? AND key=?",
            (collection, key),
        )

    def keys(self, collection: str) -> List[str]:
        rows = self._execute(
            "SELECT key FROM documents WHERE collection=? ORDER BY key",
            (collection,),
            fetch=True,
        )
        return [r[0] for r in rows]
