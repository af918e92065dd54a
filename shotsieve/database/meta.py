"""
Meta repository - key/value storage for scanner state.

Holds the schema version, the global analysis algorithm version and the
incremental scan cursor.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..models import ScanCursor
from .connection import ConnectionManager
from . import schema


logger = logging.getLogger(__name__)


class MetaRepository:
    """Repository for the ``meta`` table."""

    def __init__(self, connection_manager: ConnectionManager):
        self.conn_mgr = connection_manager

    def get(self, key: str) -> Optional[str]:
        with self.conn_mgr.connection() as conn:
            row = conn.execute("SELECT value FROM meta WHERE key = ?", (key,)).fetchone()
        return row['value'] if row else None

    def set(self, key: str, value: str) -> None:
        with self.conn_mgr.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?)", (key, value)
            )

    def get_schema_version(self) -> int:
        value = self.get(schema.META_SCHEMA_VERSION)
        return int(value) if value else 0

    def get_global_algo_version(self) -> int:
        """Current global analysis version (1 if never recorded)."""
        value = self.get(schema.META_GLOBAL_ALGO_VERSION)
        return int(value) if value else 1

    def ensure_global_algo_version(self, minimum: int) -> int:
        """
        Raise the stored algorithm version to at least ``minimum``.

        Returns:
            The effective global version
        """
        with self.conn_mgr.transaction():
            current = self.get_global_algo_version()
            if current < minimum:
                logger.info(f"Global algorithm version {current} -> {minimum}")
                self.set(schema.META_GLOBAL_ALGO_VERSION, str(minimum))
                return minimum
            return current

    def bump_global_algo_version(self) -> int:
        """Increment the global algorithm version and return the new value."""
        with self.conn_mgr.transaction():
            version = self.get_global_algo_version() + 1
            self.set(schema.META_GLOBAL_ALGO_VERSION, str(version))
        logger.info(f"Global algorithm version bumped to {version}")
        return version

    def get_scan_cursor(self) -> ScanCursor:
        """Get the cursor for incremental scanning."""
        with self.conn_mgr.connection():
            taken_at = self.get(schema.META_CURSOR_TAKEN_AT)
            asset_id = self.get(schema.META_CURSOR_ASSET_ID)
        return ScanCursor(
            taken_at=int(taken_at) if taken_at else None,
            asset_id=asset_id,
        )

    def set_scan_cursor(self, taken_at: Optional[int], asset_id: str) -> None:
        """Record the last processed asset; a missing capture time is stored as 0."""
        with self.conn_mgr.transaction():
            self.set(schema.META_CURSOR_TAKEN_AT, str(taken_at or 0))
            self.set(schema.META_CURSOR_ASSET_ID, asset_id)

    def reset_scan_cursor(self) -> None:
        """Clear the cursor so the next scan starts from the beginning."""
        with self.conn_mgr.transaction() as conn:
            conn.execute(
                "DELETE FROM meta WHERE key IN (?, ?)",
                (schema.META_CURSOR_TAKEN_AT, schema.META_CURSOR_ASSET_ID),
            )


__all__ = ['MetaRepository']
