"""
Asset repository.

CRUD and queue operations on the ``assets`` table: insertion of newly seen
library assets, cursor-ordered pending batches, result recording and the
lazy invalidation rules (signature drift, algorithm version).
"""

from __future__ import annotations

import logging
from typing import Optional

from ..models import AssetRecord, AssetStatus, ImageSignals, ScanCursor
from .connection import ConnectionManager
from .utils import CHUNK_SIZE, now_ms, row_to_asset


logger = logging.getLogger(__name__)

# Pending queue order; NULL capture times sort as 0
_ORDER_KEY = "COALESCE(taken_at, 0)"


class AssetRepository:
    """
    Repository for the ``assets`` table.

    Every method runs in its own transaction unless the caller already holds
    one, in which case it joins the caller's unit of work.
    """

    def __init__(self, connection_manager: ConnectionManager):
        self.conn_mgr = connection_manager

    def upsert(self, asset: AssetRecord) -> None:
        """
        Insert an asset, or merge non-null fields into the existing row.

        Args:
            asset: Record to store; None fields keep the stored value
        """
        now = now_ms()
        with self.conn_mgr.transaction() as conn:
            conn.execute("""
                INSERT INTO assets (
                    asset_id, taken_at, width, height, file_signature,
                    algo_version, blur_score, mean_luma, phash, labels_json,
                    status, error_message, updated_at, face_count
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(asset_id) DO UPDATE SET
                    taken_at = COALESCE(excluded.taken_at, taken_at),
                    width = COALESCE(excluded.width, width),
                    height = COALESCE(excluded.height, height),
                    file_signature = COALESCE(excluded.file_signature, file_signature),
                    algo_version = COALESCE(excluded.algo_version, algo_version),
                    blur_score = COALESCE(excluded.blur_score, blur_score),
                    mean_luma = COALESCE(excluded.mean_luma, mean_luma),
                    phash = COALESCE(excluded.phash, phash),
                    labels_json = COALESCE(excluded.labels_json, labels_json),
                    status = COALESCE(excluded.status, status),
                    error_message = COALESCE(excluded.error_message, error_message),
                    updated_at = excluded.updated_at
            """, (
                asset.asset_id, asset.taken_at, asset.width, asset.height,
                asset.file_signature, asset.algo_version, asset.blur_score,
                asset.mean_luma, asset.phash, asset.labels_json,
                int(asset.status), asset.error_message, now, asset.face_count,
            ))

    def insert_if_missing(self, asset: AssetRecord) -> bool:
        """
        Insert a newly observed asset; existing rows are left untouched.

        Returns:
            True if the asset was inserted
        """
        with self.conn_mgr.transaction() as conn:
            result = conn.execute("""
                INSERT OR IGNORE INTO assets (
                    asset_id, taken_at, width, height, file_signature, status, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                asset.asset_id, asset.taken_at, asset.width, asset.height,
                asset.file_signature, int(asset.status), now_ms(),
            ))
            return result.rowcount == 1

    def get_by_id(self, asset_id: str) -> Optional[AssetRecord]:
        """Return the asset, or None if unknown."""
        with self.conn_mgr.connection() as conn:
            row = conn.execute(
                "SELECT * FROM assets WHERE asset_id = ?", (asset_id,)
            ).fetchone()
        return row_to_asset(row) if row else None

    def get_by_ids(self, asset_ids: list[str]) -> dict[str, AssetRecord]:
        """
        Fetch several assets at once.

        Returns:
            Dict mapping asset_id to AssetRecord (unknown ids are absent)
        """
        results: dict[str, AssetRecord] = {}
        with self.conn_mgr.connection() as conn:
            for i in range(0, len(asset_ids), CHUNK_SIZE):
                chunk = asset_ids[i:i + CHUNK_SIZE]
                placeholders = ','.join('?' * len(chunk))
                rows = conn.execute(
                    f"SELECT * FROM assets WHERE asset_id IN ({placeholders})", chunk
                ).fetchall()
                for row in rows:
                    results[row['asset_id']] = row_to_asset(row)
        return results

    def get_pending_batch(self, cursor: ScanCursor, limit: int) -> list[AssetRecord]:
        """
        Get the next PENDING assets strictly after the cursor.

        Ordered by (taken_at ascending, asset_id ascending).

        Args:
            cursor: Last processed position (start of queue if empty)
            limit: Maximum number of assets to return
        """
        with self.conn_mgr.connection() as conn:
            if cursor.is_start:
                rows = conn.execute(f"""
                    SELECT * FROM assets
                    WHERE status = ?
                    ORDER BY {_ORDER_KEY} ASC, asset_id ASC
                    LIMIT ?
                """, (int(AssetStatus.PENDING), limit)).fetchall()
            else:
                taken_at, asset_id = cursor.as_key()
                rows = conn.execute(f"""
                    SELECT * FROM assets
                    WHERE status = ?
                      AND ({_ORDER_KEY} > ? OR ({_ORDER_KEY} = ? AND asset_id > ?))
                    ORDER BY {_ORDER_KEY} ASC, asset_id ASC
                    LIMIT ?
                """, (int(AssetStatus.PENDING), taken_at, taken_at, asset_id, limit)).fetchall()
        return [row_to_asset(row) for row in rows]

    def mark_done(self, asset_id: str, signals: ImageSignals, algo_version: int) -> None:
        """Record analysis results and clear any previous error."""
        with self.conn_mgr.transaction() as conn:
            conn.execute("""
                UPDATE assets SET
                    status = ?, blur_score = ?, mean_luma = ?, phash = ?,
                    algo_version = ?, error_message = NULL, updated_at = ?
                WHERE asset_id = ?
            """, (
                int(AssetStatus.DONE), signals.blur_score, signals.mean_luma,
                signals.phash, algo_version, now_ms(), asset_id,
            ))

    def set_enrichment(self, asset_id: str, labels_json: Optional[str], face_count: int) -> None:
        """Store enrichment results for an analyzed asset."""
        with self.conn_mgr.transaction() as conn:
            conn.execute(
                "UPDATE assets SET face_count = ?, labels_json = ? WHERE asset_id = ?",
                (face_count, labels_json, asset_id),
            )

    def mark_error(self, asset_id: str, error_message: str) -> None:
        with self.conn_mgr.transaction() as conn:
            conn.execute(
                "UPDATE assets SET status = ?, error_message = ?, updated_at = ? WHERE asset_id = ?",
                (int(AssetStatus.ERROR), error_message, now_ms(), asset_id),
            )

    def reset_outdated_assets(self, current_algo_version: int) -> int:
        """
        Revert DONE assets analyzed by an older algorithm to PENDING.

        Returns:
            Number of assets reverted
        """
        with self.conn_mgr.transaction() as conn:
            result = conn.execute("""
                UPDATE assets SET status = ?, updated_at = ?
                WHERE status = ? AND (algo_version IS NULL OR algo_version < ?)
            """, (int(AssetStatus.PENDING), now_ms(), int(AssetStatus.DONE), current_algo_version))
            return result.rowcount

    def reset_if_signature_changed(self, asset_id: str, new_signature: str) -> bool:
        """
        Revert an asset to PENDING when its file signature no longer matches.

        Returns:
            True if the asset was reset
        """
        with self.conn_mgr.transaction() as conn:
            row = conn.execute(
                "SELECT file_signature FROM assets WHERE asset_id = ?", (asset_id,)
            ).fetchone()
            if row is None or row['file_signature'] == new_signature:
                return False

            conn.execute(
                "UPDATE assets SET status = ?, file_signature = ?, updated_at = ? WHERE asset_id = ?",
                (int(AssetStatus.PENDING), new_signature, now_ms(), asset_id),
            )
            logger.debug(f"Signature changed for {asset_id}, reverted to pending")
            return True

    def get_recent_done_assets(
        self,
        taken_at: int,
        window_seconds: int,
        limit: int,
        exclude_asset_id: Optional[str] = None,
    ) -> list[AssetRecord]:
        """
        DONE assets captured within +/- window_seconds of taken_at.

        Args:
            taken_at: Center of the window (epoch milliseconds)
            window_seconds: Half-width of the window
            limit: Maximum number of candidates
            exclude_asset_id: Asset to leave out (normally the target itself)

        Returns:
            Candidates, most recent capture time first
        """
        min_time = taken_at - window_seconds * 1000
        max_time = taken_at + window_seconds * 1000
        with self.conn_mgr.connection() as conn:
            rows = conn.execute("""
                SELECT * FROM assets
                WHERE status = ? AND taken_at BETWEEN ? AND ?
                  AND asset_id != ?
                ORDER BY taken_at DESC, asset_id DESC
                LIMIT ?
            """, (int(AssetStatus.DONE), min_time, max_time, exclude_asset_id or '', limit)).fetchall()
        return [row_to_asset(row) for row in rows]

    def get_status_counts(self) -> dict[str, int]:
        """Count assets per status."""
        with self.conn_mgr.connection() as conn:
            row = conn.execute("""
                SELECT
                    SUM(CASE WHEN status = 0 THEN 1 ELSE 0 END) AS pending,
                    SUM(CASE WHEN status = 1 THEN 1 ELSE 0 END) AS done,
                    SUM(CASE WHEN status = 2 THEN 1 ELSE 0 END) AS error
                FROM assets
            """).fetchone()
        return {
            'pending': row['pending'] or 0,
            'done': row['done'] or 0,
            'error': row['error'] or 0,
        }

    def get_people_assets(self, limit: int = 100) -> list[AssetRecord]:
        """Most recent assets in which enrichment counted faces."""
        with self.conn_mgr.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM assets WHERE face_count > 0 ORDER BY taken_at DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [row_to_asset(row) for row in rows]

    def get_labeled_assets(self, limit: int = 5000) -> list[AssetRecord]:
        """All DONE assets, labeled or not, most recent first."""
        with self.conn_mgr.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM assets WHERE status = ? ORDER BY taken_at DESC LIMIT ?",
                (int(AssetStatus.DONE), limit),
            ).fetchall()
        return [row_to_asset(row) for row in rows]

    def iter_done_assets(self) -> list[AssetRecord]:
        """Every DONE asset in capture order."""
        with self.conn_mgr.connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM assets WHERE status = ? ORDER BY {_ORDER_KEY} ASC, asset_id ASC",
                (int(AssetStatus.DONE),),
            ).fetchall()
        return [row_to_asset(row) for row in rows]

    def delete_many(self, asset_ids: list[str]) -> int:
        """
        Delete asset records (used after the files were deleted from the library).

        Returns:
            Number of records deleted
        """
        deleted = 0
        with self.conn_mgr.transaction() as conn:
            for i in range(0, len(asset_ids), CHUNK_SIZE):
                chunk = asset_ids[i:i + CHUNK_SIZE]
                placeholders = ','.join('?' * len(chunk))
                result = conn.execute(f"DELETE FROM assets WHERE asset_id IN ({placeholders})", chunk)
                deleted += result.rowcount
        return deleted

    def reset_all(self) -> int:
        """
        Revert every asset to PENDING for a forced rescan.

        Clears labels, face counts and error messages.

        Returns:
            Number of assets reset
        """
        with self.conn_mgr.transaction() as conn:
            result = conn.execute("""
                UPDATE assets SET
                    status = ?,
                    face_count = 0,
                    labels_json = NULL,
                    error_message = NULL,
                    updated_at = ?
            """, (int(AssetStatus.PENDING), now_ms()))
            return result.rowcount


__all__ = ['AssetRepository']
