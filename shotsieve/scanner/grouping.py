"""
Duplicate group management.

Turns the match list of a newly analyzed asset into group membership:
- join the first existing group found among the matches (closest first)
- otherwise seed a new group with the closest match at distance 0
- a re-analyzed asset without matches leaves the group it was in
- re-elect the group's best shot after every membership change

When the matches span two different groups the first one wins and the
groups are left as they are; ``merge_groups`` exists for explicit cleanup.
"""

from __future__ import annotations

import logging
import secrets
import string
import time
from typing import TYPE_CHECKING, Optional

from ..models import SimilarityMatch
from .best_shot import select_best_shot

if TYPE_CHECKING:
    from ..database import ScanDatabase


logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_group_id() -> str:
    """Unique group id of the form ``grp_<epoch ms>_<6 random chars>``."""
    suffix = ''.join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"grp_{int(time.time() * 1000)}_{suffix}"


class DuplicateGroupManager:
    """
    Maintains duplicate groups in the database.

    All mutations of one call run in a single transaction, joining the
    caller's transaction when there is one.
    """

    def __init__(self, db: ScanDatabase):
        self.db = db

    def assign(self, asset_id: str, matches: list[SimilarityMatch]) -> Optional[str]:
        """
        Add a newly analyzed asset to the group implied by its matches.

        Args:
            asset_id: The asset that was just analyzed
            matches: Its matches, closest first

        Returns:
            The group id the asset now belongs to, or None without matches
        """
        groups = self.db.groups
        with self.db.transaction():
            # A re-analyzed asset may still sit in an older group
            previous_group_id = groups.find_group_by_asset_id(asset_id)

            if not matches:
                if previous_group_id:
                    self._detach(previous_group_id, asset_id)
                return None

            target_group_id = None
            for match in matches:
                target_group_id = groups.find_group_by_asset_id(match.asset_id)
                if target_group_id:
                    break

            if not target_group_id:
                closest = matches[0]
                target_group_id = generate_group_id()
                groups.create_group(target_group_id, closest.asset_id)
                groups.add_member(target_group_id, closest.asset_id, 0)
                logger.debug(f"Created group {target_group_id} seeded by {closest.asset_id}")

            if previous_group_id and previous_group_id != target_group_id:
                self._detach(previous_group_id, asset_id)

            groups.add_member(target_group_id, asset_id, matches[0].distance)
            select_best_shot(self.db, target_group_id)

        return target_group_id

    def _detach(self, group_id: str, asset_id: str) -> None:
        """
        Remove a member; a group left with a single member is dissolved.

        A surviving group whose representative left is re-seeded by its new
        best shot.
        """
        groups = self.db.groups
        groups.remove_member(group_id, asset_id)
        if groups.count_members(group_id) < 2:
            groups.delete_group(group_id)
            logger.debug(f"Dissolved group {group_id}")
            return

        best_asset_id = select_best_shot(self.db, group_id)
        group = groups.get_group_by_id(group_id, with_members=False)
        if group and group.representative_asset_id == asset_id and best_asset_id:
            groups.update_representative(group_id, best_asset_id)

    def remove_assets(self, asset_ids: list[str]) -> int:
        """
        Forget assets deleted from the library.

        Detaches them from their groups and deletes their records.

        Returns:
            Number of asset records deleted
        """
        with self.db.transaction():
            for asset_id in asset_ids:
                group_id = self.db.groups.find_group_by_asset_id(asset_id)
                if group_id:
                    self._detach(group_id, asset_id)
            removed = self.db.assets.delete_many(asset_ids)
            self.db.faces.delete_for_assets(asset_ids)
        return removed

    def merge_groups(self, target_group_id: str, source_group_id: str) -> int:
        """
        Move every member of source into target, delete source, re-elect.

        Returns:
            Number of members moved
        """
        if target_group_id == source_group_id:
            return 0
        with self.db.transaction():
            moved = self.db.groups.merge_groups(target_group_id, source_group_id)
            select_best_shot(self.db, target_group_id)
        logger.info(f"Merged group {source_group_id} into {target_group_id} ({moved} members moved)")
        return moved

    def delete_all(self) -> None:
        """Drop all duplicate state."""
        self.db.groups.delete_all()
        logger.info("Deleted all duplicate groups")


__all__ = ['DuplicateGroupManager', 'generate_group_id']
