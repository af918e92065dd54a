"""
Face repository.

Stores face instances reported by the optional enrichment capability. Face
clustering is not performed, so instances are recorded without a face group.
"""

from __future__ import annotations

import json
import uuid

from ..models import BoundingBox, DetectedFace
from .connection import ConnectionManager


class FaceRepository:
    """Repository for ``face_instances`` and ``face_groups``."""

    def __init__(self, connection_manager: ConnectionManager):
        self.conn_mgr = connection_manager

    def record_faces(self, asset_id: str, faces: list[DetectedFace]) -> int:
        """
        Replace the recorded faces of an asset.

        Returns:
            Number of face instances stored
        """
        with self.conn_mgr.transaction() as conn:
            conn.execute("DELETE FROM face_instances WHERE asset_id = ?", (asset_id,))
            for face in faces:
                box = face.bounding_box
                conn.execute("""
                    INSERT INTO face_instances (instance_id, face_id, asset_id, bounding_box, confidence)
                    VALUES (?, NULL, ?, ?, ?)
                """, (
                    uuid.uuid4().hex,
                    asset_id,
                    json.dumps({'x': box.x, 'y': box.y, 'width': box.width, 'height': box.height}),
                    face.confidence,
                ))
        return len(faces)

    def get_faces_by_asset(self, asset_id: str) -> list[DetectedFace]:
        with self.conn_mgr.connection() as conn:
            rows = conn.execute(
                "SELECT bounding_box, confidence FROM face_instances WHERE asset_id = ?",
                (asset_id,),
            ).fetchall()
        faces = []
        for row in rows:
            box = json.loads(row['bounding_box'])
            faces.append(DetectedFace(
                bounding_box=BoundingBox(box['x'], box['y'], box['width'], box['height']),
                confidence=row['confidence'],
            ))
        return faces

    def get_statistics(self) -> dict[str, int]:
        """Count recorded face instances and the assets they appear in."""
        with self.conn_mgr.connection() as conn:
            row = conn.execute("""
                SELECT COUNT(*) AS total_faces, COUNT(DISTINCT asset_id) AS total_assets
                FROM face_instances
            """).fetchone()
        return {'total_faces': row['total_faces'], 'total_assets': row['total_assets']}

    def delete_for_assets(self, asset_ids: list[str]) -> None:
        with self.conn_mgr.transaction() as conn:
            conn.executemany(
                "DELETE FROM face_instances WHERE asset_id = ?",
                [(asset_id,) for asset_id in asset_ids],
            )

    def delete_all(self) -> None:
        with self.conn_mgr.transaction() as conn:
            conn.execute("DELETE FROM face_instances")
            conn.execute("DELETE FROM face_groups")


__all__ = ['FaceRepository']
