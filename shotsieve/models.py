"""
Data models for ShotSieve.

Contains dataclasses for asset records, duplicate groups, scan progress,
tuning configuration and enrichment results, plus the versioned label
serialization used for the ``labels_json`` column.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional

from . import config
from .exceptions import LabelDecodeError


# Current version of the label envelope written to labels_json
LABELS_FORMAT_VERSION = 1


def format_size(size_bytes: float) -> str:
    """Format file size in human-readable form."""
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size_bytes < 1024:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024
    return f"{size_bytes:.1f} TB"


class AssetStatus(IntEnum):
    """Analysis status, stored as an integer in ``assets.status``."""
    PENDING = 0
    DONE = 1
    ERROR = 2


@dataclass
class AssetRecord:
    """
    One photo known to the engine.

    Attributes:
        asset_id: Stable identifier from the media library
        taken_at: Capture time in epoch milliseconds (None if unknown)
        width: Pixel width (None if unknown)
        height: Pixel height (None if unknown)
        file_signature: "<mtime_ms>_<size>" used to detect external edits
        algo_version: Analysis version that produced the signals
        blur_score: Laplacian variance sharpness (higher = sharper)
        mean_luma: Mean luminance of the grayscale sample (0-255)
        phash: 64-bit difference hash as 16 hex digits
        labels_json: Serialized label envelope, see encode_labels()
        status: PENDING, DONE or ERROR
        error_message: Failure text when status is ERROR
        updated_at: Last write time in epoch milliseconds
        face_count: Faces counted by enrichment
    """
    asset_id: str
    taken_at: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    file_signature: Optional[str] = None
    algo_version: Optional[int] = None
    blur_score: Optional[float] = None
    mean_luma: Optional[float] = None
    phash: Optional[str] = None
    labels_json: Optional[str] = None
    status: AssetStatus = AssetStatus.PENDING
    error_message: Optional[str] = None
    updated_at: Optional[int] = None
    face_count: int = 0

    @property
    def pixel_count(self) -> int:
        """Return width * height, or 0 when either is unknown."""
        if not self.width or not self.height:
            return 0
        return self.width * self.height

    @property
    def labels(self) -> list[ImageLabel]:
        """Decoded labels (empty when none were stored)."""
        return decode_labels(self.labels_json)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'asset_id': self.asset_id,
            'taken_at': self.taken_at,
            'width': self.width,
            'height': self.height,
            'algo_version': self.algo_version,
            'blur_score': self.blur_score,
            'mean_luma': self.mean_luma,
            'phash': self.phash,
            'labels': [label.to_dict() for label in self.labels],
            'status': self.status.name,
            'error_message': self.error_message,
            'updated_at': self.updated_at,
            'face_count': self.face_count,
        }


@dataclass
class DuplicateMember:
    """
    Membership of an asset in a duplicate group.

    ``distance`` is the Hamming distance to the match partner that caused
    admission, not a distance to any group centroid.
    """
    group_id: str
    asset_id: str
    distance: int


@dataclass
class DuplicateGroup:
    """
    A cluster of near-identical assets.

    Attributes:
        group_id: Unique identifier
        representative_asset_id: Asset that seeded the group, or its best shot once the seed left
        best_asset_id: Currently elected best shot
        created_at: Creation time in epoch milliseconds
        members: Members ordered by admission distance
    """
    group_id: str
    representative_asset_id: Optional[str] = None
    best_asset_id: Optional[str] = None
    created_at: Optional[int] = None
    members: list[DuplicateMember] = field(default_factory=list)

    @property
    def member_ids(self) -> list[str]:
        return [m.asset_id for m in self.members]

    @property
    def duplicates(self) -> list[str]:
        """Member ids other than the elected best shot."""
        return [m.asset_id for m in self.members if m.asset_id != self.best_asset_id]

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'group_id': self.group_id,
            'representative_asset_id': self.representative_asset_id,
            'best_asset_id': self.best_asset_id,
            'created_at': self.created_at,
            'member_count': len(self.members),
            'members': [
                {'asset_id': m.asset_id, 'distance': m.distance}
                for m in self.members
            ],
        }


@dataclass(frozen=True)
class ScanCursor:
    """Last fully processed (taken_at, asset_id) pair; both None at the start."""
    taken_at: Optional[int] = None
    asset_id: Optional[str] = None

    @property
    def is_start(self) -> bool:
        return self.taken_at is None or self.asset_id is None

    def as_key(self) -> tuple[int, str]:
        """Sort key comparable with (COALESCE(taken_at, 0), asset_id)."""
        return (self.taken_at or 0, self.asset_id or '')


@dataclass
class ScanProgress:
    """Snapshot published after every batch and returned by get_status()."""
    total_pending: int = 0
    total_done: int = 0
    total_error: int = 0
    current_batch: int = 0
    is_running: bool = False

    def to_dict(self) -> dict:
        return {
            'totalPending': self.total_pending,
            'totalDone': self.total_done,
            'totalError': self.total_error,
            'currentBatch': self.current_batch,
            'isRunning': self.is_running,
        }


@dataclass
class BlurConfig:
    """Thresholds for blur classification."""
    base_threshold: float = config.BLUR_BASE_THRESHOLD
    dark_multiplier: float = config.BLUR_DARK_MULTIPLIER
    dark_threshold: float = config.BLUR_DARK_THRESHOLD
    bright_multiplier: float = config.BLUR_BRIGHT_MULTIPLIER
    bright_threshold: float = config.BLUR_BRIGHT_THRESHOLD


@dataclass
class SimilarityConfig:
    """Candidate window and distance threshold for similarity matching."""
    time_window_seconds: int = config.SIMILARITY_WINDOW_SECONDS
    max_compare_count: int = config.SIMILARITY_MAX_CANDIDATES
    similar_threshold: int = config.SIMILARITY_THRESHOLD


@dataclass(frozen=True)
class BlurResult:
    is_blurry: bool
    adjusted_threshold: float


@dataclass(frozen=True)
class SimilarityMatch:
    asset_id: str
    distance: int


@dataclass(frozen=True)
class ImageSignals:
    """Signals derived from one grayscale sample."""
    blur_score: float
    mean_luma: float
    phash: str


@dataclass(frozen=True)
class BoundingBox:
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class DetectedFace:
    bounding_box: BoundingBox
    confidence: float


@dataclass(frozen=True)
class ImageLabel:
    text: str
    confidence: float

    def to_dict(self) -> dict:
        return {'text': self.text, 'confidence': self.confidence}


@dataclass(frozen=True)
class LibraryAsset:
    """Asset metadata as reported by a media library provider."""
    asset_id: str
    taken_at: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    local_path: Optional[str] = None


@dataclass
class AssetPage:
    """One page of library enumeration."""
    assets: list[LibraryAsset] = field(default_factory=list)
    end_cursor: Optional[str] = None
    has_next_page: bool = False


def encode_labels(labels: list[ImageLabel]) -> Optional[str]:
    """
    Serialize labels into the versioned envelope stored in labels_json.

    Returns:
        JSON string, or None when there are no labels
    """
    if not labels:
        return None
    return json.dumps({
        'version': LABELS_FORMAT_VERSION,
        'labels': [label.to_dict() for label in labels],
    })


def _parse_label_list(items) -> list[ImageLabel]:
    if not isinstance(items, list):
        raise LabelDecodeError(f"Expected a list of labels, got {type(items).__name__}")
    labels = []
    for item in items:
        try:
            labels.append(ImageLabel(text=str(item['text']), confidence=float(item['confidence'])))
        except (KeyError, TypeError, ValueError) as e:
            raise LabelDecodeError(f"Malformed label entry {item!r}: {e}") from e
    return labels


def decode_labels(blob: Optional[str]) -> list[ImageLabel]:
    """
    Decode a labels_json value.

    Version 0 is the legacy bare JSON list of ``{text, confidence}`` objects;
    version 1 wraps that list in ``{"version": 1, "labels": [...]}``.

    Raises:
        LabelDecodeError: If the blob is not valid JSON or uses an unknown version
    """
    if not blob:
        return []
    try:
        data = json.loads(blob)
    except json.JSONDecodeError as e:
        raise LabelDecodeError(f"labels_json is not valid JSON: {e}") from e

    if isinstance(data, list):
        return _parse_label_list(data)

    if not isinstance(data, dict):
        raise LabelDecodeError(f"Unsupported labels_json payload: {type(data).__name__}")

    version = data.get('version')
    if version == 1:
        return _parse_label_list(data.get('labels'))
    raise LabelDecodeError(f"Unknown labels_json version: {version!r}")
