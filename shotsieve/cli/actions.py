"""
Duplicate deletion for the CLI interface.

Deletes every member of every duplicate group except its elected best shot,
through the media library provider, then forgets the deleted assets.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from ..database import ScanDatabase
from ..scanner import DuplicateGroupManager, MediaLibraryProvider


def collect_duplicates(db: ScanDatabase) -> list[str]:
    """Asset ids of every group member that is not its group's best shot."""
    duplicates = []
    for group in db.groups.get_all_groups(with_members=True):
        if not group.best_asset_id:
            # No election yet; never delete from an unscored group
            continue
        duplicates.extend(group.duplicates)
    return duplicates


def _file_size(path: Optional[str]) -> int:
    if not path:
        return 0
    try:
        return os.path.getsize(path)
    except OSError:
        return 0


def delete_duplicates(
    db: ScanDatabase,
    library: MediaLibraryProvider,
    dry_run: bool = True,
    logger: Optional[logging.Logger] = None
) -> dict:
    """
    Delete duplicates, keeping each group's best shot.

    Args:
        db: Scanner database holding the groups
        library: Provider that owns the files
        dry_run: If True, only report what would be deleted
        logger: Optional logger instance

    Returns:
        Statistics dictionary with keys:
        - processed: Number of assets deleted (or that would be)
        - errors: Number of assets that could not be deleted
        - space_saved: Total bytes freed (or that would be)
        - error_details: List of dictionaries with 'asset_id' and 'error' keys
    """
    stats = {
        'processed': 0,
        'errors': 0,
        'space_saved': 0,
        'error_details': [],
    }

    to_delete = []
    for asset_id in collect_duplicates(db):
        info = library.get_asset_info(asset_id)
        if info is None:
            stats['errors'] += 1
            stats['error_details'].append({
                'asset_id': asset_id,
                'error': 'Asset not found (may have been deleted)'
            })
            if logger:
                logger.warning(f"Not found: {asset_id}")
            continue

        size = _file_size(info.local_path)
        if dry_run:
            if logger:
                logger.info(f"[DRY RUN] Would delete: {asset_id}")
            stats['processed'] += 1
            stats['space_saved'] += size
            continue

        to_delete.append((asset_id, size))

    if dry_run or not to_delete:
        return stats

    deleted = 0
    removed_ids = []
    for asset_id, size in to_delete:
        if library.delete_assets([asset_id]) == 1:
            deleted += 1
            removed_ids.append(asset_id)
            stats['space_saved'] += size
            if logger:
                logger.info(f"Deleted: {asset_id}")
        else:
            stats['errors'] += 1
            stats['error_details'].append({'asset_id': asset_id, 'error': 'Delete failed'})

    stats['processed'] = deleted
    if removed_ids:
        DuplicateGroupManager(db).remove_assets(removed_ids)

    return stats


__all__ = ['collect_duplicates', 'delete_duplicates']
