"""
ScanDatabase facade class for coordinating database operations.

Owns the single ConnectionManager and hands it to every repository, so the
whole process shares one explicitly constructed handle.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from ..config import DB_FILE, GLOBAL_ALGO_VERSION, SCHEMA_VERSION
from .assets import AssetRepository
from .connection import ConnectionManager
from .faces import FaceRepository
from .groups import DupGroupRepository
from .maintenance import MaintenanceOperations
from .meta import MetaRepository
from .migrations import run_migrations


logger = logging.getLogger(__name__)


class ScanDatabase:
    """
    SQLite-backed store for scan state.

    Construct once at startup and pass to the scan engine and API.

    Usage:
        db = ScanDatabase("/path/to/scanner.db")

        with db.transaction():
            db.assets.mark_done(asset_id, signals, version)
            db.meta.set_scan_cursor(taken_at, asset_id)
    """

    SCHEMA_VERSION = SCHEMA_VERSION

    def __init__(self, db_path: Optional[str] = None, algo_version: int = GLOBAL_ALGO_VERSION):
        """
        Open the database and apply pending migrations.

        Args:
            db_path: Path to SQLite database file. Uses default if None.
            algo_version: Minimum global algorithm version to record

        Raises:
            MigrationFailure: If the schema cannot be brought up to date
        """
        self.db_path = db_path or DB_FILE

        self._conn_mgr = ConnectionManager(self.db_path)
        try:
            applied = run_migrations(self._conn_mgr)
        except Exception:
            self._conn_mgr.close()
            raise
        if applied:
            logger.info(f"Applied {applied} migration(s) to {self.db_path}")

        self.assets = AssetRepository(self._conn_mgr)
        self.groups = DupGroupRepository(self._conn_mgr)
        self.meta = MetaRepository(self._conn_mgr)
        self.faces = FaceRepository(self._conn_mgr)
        self._maintenance = MaintenanceOperations(self._conn_mgr)

        self.meta.ensure_global_algo_version(algo_version)

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        """Group several repository calls into one atomic unit of work."""
        with self._conn_mgr.transaction():
            yield

    def get_stats(self) -> dict:
        """Get database statistics."""
        return self._maintenance.get_stats()

    def vacuum(self):
        """Compact the database file."""
        self._maintenance.vacuum()

    def close(self):
        self._conn_mgr.close()

    def __enter__(self) -> ScanDatabase:
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


__all__ = ['ScanDatabase']
