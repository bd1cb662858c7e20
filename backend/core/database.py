"""
SQLite document store: connection handling and JSON document helpers.
"""
import sqlite3
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, List, Dict, Any
from contextlib import contextmanager

from .config import DB_PATH, SCHEMA_PATH


# Key columns kept alongside the JSON body, per table
DOCUMENT_TABLES: Dict[str, tuple] = {
    "users": ("email",),
    "courses": ("educator_id", "status", "slug"),
    "enrollments": ("user_id", "course_id", "status"),
    "watch_history": ("user_id", "course_id", "chapter_id", "lecture_id"),
}


def _casefold(value):
    return value.casefold() if isinstance(value, str) else value


class Database:
    """Database manager for SQLite operations."""

    def __init__(self, db_path: Path = DB_PATH):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.ensure_tables()

    @contextmanager
    def get_connection(self):
        """Context manager for database connections."""
        conn = self.get_connection_raw()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def get_connection_raw(self):
        """Get a raw connection (for operations that need manual commit)."""
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        # SQLite's lower() folds ASCII only
        conn.create_function("casefold", 1, _casefold, deterministic=True)
        return conn

    @contextmanager
    def connection(self, conn: Optional[sqlite3.Connection] = None):
        """Reuse the caller's connection (inside a transaction) or open a new one."""
        if conn is not None:
            yield conn
        else:
            with self.get_connection() as own:
                yield own

    def ensure_tables(self):
        """Create all tables if they don't exist."""
        schema = SCHEMA_PATH.read_text(encoding="utf-8")
        with self.get_connection() as conn:
            conn.executescript(schema)

    def execute(self, query: str, params: Optional[tuple] = None) -> List[sqlite3.Row]:
        """Execute a SELECT query and return results."""
        with self.get_connection() as conn:
            cursor = conn.execute(query, params or ())
            return cursor.fetchall()

    def execute_one(self, query: str, params: Optional[tuple] = None) -> Optional[sqlite3.Row]:
        """Execute a SELECT query and return first result."""
        results = self.execute(query, params)
        return results[0] if results else None

    # ------------------------------------------------------------------
    # Document helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _columns(table: str) -> tuple:
        if table not in DOCUMENT_TABLES:
            raise ValueError(f"Unknown document table: {table}")
        return DOCUMENT_TABLES[table]

    def save_document(
        self,
        table: str,
        doc_id: str,
        data: Dict[str, Any],
        conn: Optional[sqlite3.Connection] = None,
    ) -> None:
        """
        Insert or replace a document by id.

        Key columns are copied out of ``data``. Unique indexes other than the
        primary key still apply, so a duplicate (user, course) enrollment or a
        reused email raises ``sqlite3.IntegrityError``.
        """
        columns = self._columns(table)
        now = datetime.now(timezone.utc).isoformat()
        created_at = data.get("created_at") or now
        key_values = tuple(data.get(column) for column in columns)

        column_list = ", ".join(("id",) + columns + ("data", "created_at", "updated_at"))
        placeholders = ", ".join("?" for _ in range(len(columns) + 4))
        updates = ", ".join(
            f"{column} = excluded.{column}" for column in columns + ("data", "updated_at")
        )

        with self.connection(conn) as c:
            c.execute(
                f"INSERT INTO {table} ({column_list}) VALUES ({placeholders}) "
                f"ON CONFLICT(id) DO UPDATE SET {updates}",
                (doc_id,) + key_values + (json.dumps(data), created_at, now),
            )

    def set_document_field(
        self,
        table: str,
        doc_id: str,
        path: str,
        value: Any,
        conn: Optional[sqlite3.Connection] = None,
    ) -> None:
        """Overwrite one JSON path in place, leaving the rest of the document untouched."""
        self._columns(table)
        with self.connection(conn) as c:
            c.execute(f"UPDATE {table} SET data = json_set(data, ?, ?) WHERE id = ?", (path, value, doc_id))

    def get_document(
        self,
        table: str,
        doc_id: str,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[Dict[str, Any]]:
        """Load a document by id."""
        return self.find_one(table, "id = ?", (doc_id,), conn=conn)

    def find_one(
        self,
        table: str,
        where: str,
        params: tuple = (),
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[Dict[str, Any]]:
        self._columns(table)
        with self.connection(conn) as c:
            row = c.execute(f"SELECT data FROM {table} WHERE {where} LIMIT 1", params).fetchone()
        return json.loads(row["data"]) if row else None

    def find_documents(
        self,
        table: str,
        where: str = "1 = 1",
        params: tuple = (),
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Query documents; ``where`` and ``order_by`` are trusted SQL fragments."""
        self._columns(table)
        query = f"SELECT data FROM {table} WHERE {where}"
        if order_by:
            query += f" ORDER BY {order_by}"
        if limit is not None:
            query += " LIMIT ? OFFSET ?"
            params = tuple(params) + (limit, offset)
        return [json.loads(row["data"]) for row in self.execute(query, tuple(params))]

    def count_documents(self, table: str, where: str = "1 = 1", params: tuple = ()) -> int:
        self._columns(table)
        row = self.execute_one(f"SELECT COUNT(*) AS count FROM {table} WHERE {where}", tuple(params))
        return row["count"] if row else 0


# Global database instance
db = Database()
