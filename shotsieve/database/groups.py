"""
Duplicate group repository.

Stores near-duplicate clusters (``dup_groups``) and their membership
(``dup_members``). Membership is looked up by asset through the
``idx_dup_members_asset`` index.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..models import DuplicateGroup, DuplicateMember
from .connection import ConnectionManager
from .utils import now_ms, row_to_group, row_to_member


logger = logging.getLogger(__name__)


class DupGroupRepository:
    """Repository for ``dup_groups`` and ``dup_members``."""

    def __init__(self, connection_manager: ConnectionManager):
        self.conn_mgr = connection_manager

    def create_group(self, group_id: str, representative_asset_id: str) -> None:
        """Create an empty group seeded by representative_asset_id."""
        with self.conn_mgr.transaction() as conn:
            conn.execute("""
                INSERT INTO dup_groups (group_id, representative_asset_id, best_asset_id, created_at)
                VALUES (?, ?, NULL, ?)
            """, (group_id, representative_asset_id, now_ms()))

    def add_member(self, group_id: str, asset_id: str, distance: int) -> None:
        """Insert a member, or update its distance if already present."""
        with self.conn_mgr.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO dup_members (group_id, asset_id, distance) VALUES (?, ?, ?)",
                (group_id, asset_id, distance),
            )

    def remove_member(self, group_id: str, asset_id: str) -> None:
        with self.conn_mgr.transaction() as conn:
            conn.execute(
                "DELETE FROM dup_members WHERE group_id = ? AND asset_id = ?",
                (group_id, asset_id),
            )

    def get_group_by_id(self, group_id: str, with_members: bool = True) -> Optional[DuplicateGroup]:
        """Return the group (with its members by default), or None."""
        with self.conn_mgr.connection() as conn:
            row = conn.execute(
                "SELECT * FROM dup_groups WHERE group_id = ?", (group_id,)
            ).fetchone()
        if row is None:
            return None
        group = row_to_group(row)
        if with_members:
            group.members = self.get_group_members(group_id)
        return group

    def find_group_by_asset_id(self, asset_id: str) -> Optional[str]:
        """Return the id of the group containing asset_id, or None."""
        with self.conn_mgr.connection() as conn:
            row = conn.execute(
                "SELECT group_id FROM dup_members WHERE asset_id = ? LIMIT 1", (asset_id,)
            ).fetchone()
        return row['group_id'] if row else None

    def get_group_members(self, group_id: str) -> list[DuplicateMember]:
        """Members ordered by distance, then by admission order."""
        with self.conn_mgr.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM dup_members WHERE group_id = ? ORDER BY distance ASC, rowid ASC",
                (group_id,),
            ).fetchall()
        return [row_to_member(row) for row in rows]

    def count_members(self, group_id: str) -> int:
        with self.conn_mgr.connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS cnt FROM dup_members WHERE group_id = ?", (group_id,)
            ).fetchone()
        return row['cnt']

    def update_best_asset(self, group_id: str, best_asset_id: Optional[str]) -> None:
        with self.conn_mgr.transaction() as conn:
            conn.execute(
                "UPDATE dup_groups SET best_asset_id = ? WHERE group_id = ?",
                (best_asset_id, group_id),
            )

    def update_representative(self, group_id: str, asset_id: str) -> None:
        with self.conn_mgr.transaction() as conn:
            conn.execute(
                "UPDATE dup_groups SET representative_asset_id = ? WHERE group_id = ?",
                (asset_id, group_id),
            )

    def get_all_groups(self, with_members: bool = False) -> list[DuplicateGroup]:
        """All groups, newest first."""
        with self.conn_mgr.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM dup_groups ORDER BY created_at DESC, group_id ASC"
            ).fetchall()
        groups = [row_to_group(row) for row in rows]
        if with_members:
            for group in groups:
                group.members = self.get_group_members(group.group_id)
        return groups

    def delete_group(self, group_id: str) -> None:
        """Delete a group and its members."""
        with self.conn_mgr.transaction() as conn:
            conn.execute("DELETE FROM dup_members WHERE group_id = ?", (group_id,))
            conn.execute("DELETE FROM dup_groups WHERE group_id = ?", (group_id,))

    def merge_groups(self, target_group_id: str, source_group_id: str) -> int:
        """
        Move all members of the source group into the target and delete the source.

        Returns:
            Number of members moved
        """
        with self.conn_mgr.transaction() as conn:
            result = conn.execute(
                "UPDATE OR IGNORE dup_members SET group_id = ? WHERE group_id = ?",
                (target_group_id, source_group_id),
            )
            moved = result.rowcount
            # Rows left behind were already members of the target
            conn.execute("DELETE FROM dup_members WHERE group_id = ?", (source_group_id,))
            conn.execute("DELETE FROM dup_groups WHERE group_id = ?", (source_group_id,))
        return moved

    def delete_all(self) -> None:
        """Delete ALL groups and members."""
        with self.conn_mgr.transaction() as conn:
            conn.execute("DELETE FROM dup_members")
            conn.execute("DELETE FROM dup_groups")


__all__ = ['DupGroupRepository']
