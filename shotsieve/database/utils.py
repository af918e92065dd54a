"""
Shared utilities for database operations.

Provides row conversion helpers and the millisecond clock used for every
timestamp column.
"""

from __future__ import annotations

import sqlite3
import time

from ..models import AssetRecord, AssetStatus, DuplicateGroup, DuplicateMember


# SQLite has a limit of 999 variables, we use 500 for safety
CHUNK_SIZE = 500


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def row_to_asset(row: sqlite3.Row) -> AssetRecord:
    """
    Convert an ``assets`` row to an AssetRecord.

    Args:
        row: sqlite3.Row from a SELECT * on assets

    Returns:
        AssetRecord object
    """
    return AssetRecord(
        asset_id=row['asset_id'],
        taken_at=row['taken_at'],
        width=row['width'],
        height=row['height'],
        file_signature=row['file_signature'],
        algo_version=row['algo_version'],
        blur_score=row['blur_score'],
        mean_luma=row['mean_luma'],
        phash=row['phash'],
        labels_json=row['labels_json'],
        status=AssetStatus(row['status'] if row['status'] is not None else 0),
        error_message=row['error_message'],
        updated_at=row['updated_at'],
        face_count=row['face_count'] or 0,
    )


def row_to_group(row: sqlite3.Row) -> DuplicateGroup:
    """Convert a ``dup_groups`` row to a DuplicateGroup without members."""
    return DuplicateGroup(
        group_id=row['group_id'],
        representative_asset_id=row['representative_asset_id'],
        best_asset_id=row['best_asset_id'],
        created_at=row['created_at'],
    )


def row_to_member(row: sqlite3.Row) -> DuplicateMember:
    """Convert a ``dup_members`` row to a DuplicateMember."""
    return DuplicateMember(
        group_id=row['group_id'],
        asset_id=row['asset_id'],
        distance=row['distance'],
    )


__all__ = [
    'CHUNK_SIZE',
    'now_ms',
    'row_to_asset',
    'row_to_group',
    'row_to_member',
]
