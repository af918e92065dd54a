"""
Maintenance operations for the scanner database.

Provides statistics and vacuum operations.
"""

from __future__ import annotations

import os
import logging

from ..models import format_size
from .connection import ConnectionManager, MEMORY_DB


logger = logging.getLogger(__name__)


class MaintenanceOperations:
    """
    Handles maintenance operations for the scanner database.

    Provides statistics reporting and database compaction.
    """

    def __init__(self, connection_manager: ConnectionManager):
        self.conn_mgr = connection_manager

    def _db_size(self) -> int:
        path = self.conn_mgr.db_path
        if path == MEMORY_DB or not os.path.exists(path):
            return 0
        return os.path.getsize(path)

    def get_stats(self) -> dict:
        """
        Get database statistics.

        Returns:
            Dictionary with:
                - total_assets: Number of known assets
                - total_groups: Number of duplicate groups
                - total_members: Number of group memberships
                - db_size_bytes / db_size_formatted: Database size on disk
                - db_path: Path to database file
        """
        try:
            with self.conn_mgr.connection() as conn:
                assets = conn.execute("SELECT COUNT(*) AS cnt FROM assets").fetchone()['cnt']
                groups = conn.execute("SELECT COUNT(*) AS cnt FROM dup_groups").fetchone()['cnt']
                members = conn.execute("SELECT COUNT(*) AS cnt FROM dup_members").fetchone()['cnt']
        except Exception as e:
            logger.warning(f"Failed to get database stats: {e}")
            assets = groups = members = 0

        db_size = self._db_size()
        return {
            'total_assets': assets,
            'total_groups': groups,
            'total_members': members,
            'db_size_bytes': db_size,
            'db_size_formatted': format_size(db_size),
            'db_path': self.conn_mgr.db_path,
        }

    def vacuum(self):
        """Compact the database file."""
        try:
            # VACUUM must run outside a transaction
            with self.conn_mgr.connection() as conn:
                if self.conn_mgr.in_transaction:
                    logger.debug("Skipping vacuum inside a transaction")
                    return
                conn.execute("VACUUM")
        except Exception as e:
            logger.debug(f"Failed to vacuum database: {e}")


__all__ = ['MaintenanceOperations']
