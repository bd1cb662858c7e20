"""
Database transaction management with rollback and compensation support.
"""
import logging
import sqlite3
from typing import Callable, List, Optional
from contextlib import contextmanager

from core.database import Database, db

logger = logging.getLogger(__name__)


class Transaction:
    """An open transaction: the shared connection plus its compensation handlers."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.compensation_handlers: List[Callable[[], None]] = []

    def register_compensation(self, handler: Callable[[], None]):
        """
        Register a compensation handler for external operations.

        Compensation handlers execute on rollback to undo
        non-database operations (e.g., delete an uploaded asset).
        """
        self.compensation_handlers.append(handler)

    def compensate(self):
        """Execute all registered compensation handlers in reverse order."""
        for handler in reversed(self.compensation_handlers):
            try:
                handler()
            except Exception as e:
                # Log but don't re-raise (rollback already happened)
                logger.warning(f"Compensation handler failed: {e}")


class TransactionManager:
    """Runs multi-document writes atomically on one SQLite connection."""

    def __init__(self, database: Optional[Database] = None):
        self.database = database or db

    @contextmanager
    def transaction(self):
        """
        Context manager for database transactions.

        Usage:
            with TransactionManager(database).transaction() as tx:
                database.save_document("enrollments", ..., conn=tx.conn)
                database.save_document("courses", ..., conn=tx.conn)
                # If an exception is raised, all writes are rolled back

        The write lock is taken immediately so that concurrent
        read-modify-write cycles on the same documents serialize.
        """
        conn = self.database.get_connection_raw()
        conn.isolation_level = None
        tx = Transaction(conn)

        try:
            conn.execute("BEGIN IMMEDIATE")
            yield tx
            conn.execute("COMMIT")
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            tx.compensate()
            raise
        finally:
            conn.close()
