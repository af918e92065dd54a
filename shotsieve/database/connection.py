"""
Database connection management with thread safety.

Provides ConnectionManager, which owns the single SQLite connection used by
every repository and wraps multi-statement writes in transactions.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from ..exceptions import PersistenceFailure


logger = logging.getLogger(__name__)

MEMORY_DB = ':memory:'


class ConnectionManager:
    """
    Owns one SQLite connection shared by all repositories.

    Provides:
    - Re-entrant lock so the HTTP thread can read while a scan writes
    - WAL mode for better read/write concurrency
    - Transaction management (BEGIN/COMMIT/ROLLBACK); nested transactions
      join the outermost one
    """

    def __init__(self, db_path: str):
        """
        Open the connection.

        Args:
            db_path: Path to SQLite database file, or ":memory:"
        """
        self.db_path = db_path
        self._lock = threading.RLock()
        self._depth = 0
        self._ensure_directory()

        self._conn = sqlite3.connect(
            self.db_path,
            timeout=30.0,
            # Transactions are issued explicitly
            isolation_level=None,
            check_same_thread=False,
        )
        self._conn.row_factory = sqlite3.Row
        if self.db_path != MEMORY_DB:
            self._conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_directory(self):
        """Ensure the directory for the database file exists."""
        if self.db_path == MEMORY_DB:
            return
        db_path = Path(self.db_path).resolve()
        db_dir = db_path.parent

        if db_dir and db_dir != db_path:
            db_dir.mkdir(parents=True, exist_ok=True)

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for reads.

        Holds the lock without opening a transaction, so reads see the last
        committed state (or the caller's own uncommitted writes when nested
        inside transaction()). sqlite3 errors are re-raised as
        PersistenceFailure.
        """
        with self._lock:
            try:
                yield self._conn
            except sqlite3.Error as e:
                raise PersistenceFailure(str(e)) from e

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for atomic writes.

        The outermost call issues BEGIN and COMMIT, or ROLLBACK if anything
        raises. Inner calls simply join it. sqlite3 errors are re-raised as
        PersistenceFailure.

        Example:
            with conn_mgr.transaction() as conn:
                conn.execute("UPDATE assets SET ...")
                conn.execute("INSERT INTO dup_members ...")
        """
        with self._lock:
            if self._depth > 0:
                self._depth += 1
                try:
                    yield self._conn
                finally:
                    self._depth -= 1
                return

            try:
                self._conn.execute("BEGIN")
            except sqlite3.Error as e:
                raise PersistenceFailure(f"Could not begin transaction: {e}") from e

            self._depth = 1
            try:
                yield self._conn
            except BaseException as e:
                self._depth = 0
                try:
                    self._conn.execute("ROLLBACK")
                except sqlite3.Error as rollback_err:
                    logger.error(f"Rollback failed: {rollback_err}")
                if isinstance(e, sqlite3.Error):
                    raise PersistenceFailure(str(e)) from e
                raise
            else:
                self._depth = 0
                try:
                    self._conn.execute("COMMIT")
                except sqlite3.Error as e:
                    self._conn.execute("ROLLBACK")
                    raise PersistenceFailure(f"Commit failed: {e}") from e

    def close(self):
        """Close the underlying connection."""
        with self._lock:
            self._conn.close()


__all__ = ['ConnectionManager', 'MEMORY_DB']
