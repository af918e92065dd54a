"""
Similarity matching over a bounded time window.

Only DONE assets captured within the configured window around the target
are compared, and at most ``max_compare_count`` of them (most recent
first), which keeps matching O(1) per analyzed asset instead of O(n).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from ..models import SimilarityConfig, SimilarityMatch
from .signals import hamming_distance64

if TYPE_CHECKING:
    from ..database import ScanDatabase


logger = logging.getLogger(__name__)


def are_similar(hash_a: str, hash_b: str, config: Optional[SimilarityConfig] = None) -> bool:
    """True when the Hamming distance is strictly below the threshold."""
    config = config or SimilarityConfig()
    return hamming_distance64(hash_a, hash_b) < config.similar_threshold


def find_matches(
    db: ScanDatabase,
    target_hash: str,
    target_taken_at: Optional[int],
    config: Optional[SimilarityConfig] = None,
    exclude_asset_id: Optional[str] = None,
) -> list[SimilarityMatch]:
    """
    Find perceptually close recent photos.

    Args:
        db: Database to read candidates from
        target_hash: 64-bit hex dHash of the target
        target_taken_at: Capture time of the target in epoch ms (no matching when None)
        config: Window, candidate cap and threshold
        exclude_asset_id: The target's own id, never reported as its own match

    Returns:
        Matches sorted by ascending distance (closest first)
    """
    config = config or SimilarityConfig()
    if target_taken_at is None:
        return []

    candidates = db.assets.get_recent_done_assets(
        target_taken_at,
        config.time_window_seconds,
        config.max_compare_count,
        exclude_asset_id=exclude_asset_id,
    )

    matches = []
    for candidate in candidates:
        if not candidate.phash:
            continue
        try:
            distance = hamming_distance64(target_hash, candidate.phash)
        except ValueError as e:
            logger.warning(f"Skipping candidate {candidate.asset_id} with bad hash: {e}")
            continue
        if distance < config.similar_threshold:
            matches.append(SimilarityMatch(asset_id=candidate.asset_id, distance=distance))

    # Stable sort keeps most-recent-first order among equal distances
    matches.sort(key=lambda m: m.distance)
    return matches


__all__ = ['are_similar', 'find_matches']
