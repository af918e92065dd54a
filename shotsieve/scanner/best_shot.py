"""
Best shot election for duplicate groups.

Each member is scored as the sum of:
- resolution: log10(width * height) * 10 (0 when dimensions are unknown)
- sharpness: min(blur_score, 500) / 5, so at most 100
- lighting: max(0, 40 - |mean_luma - 140|), rewarding mid-tones

The highest score wins; ties go to the first member in group order.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from ..config import DEFAULT_LUMA, LIGHTING_SPAN, LUMA_TARGET, SHARPNESS_CAP
from ..models import AssetRecord

if TYPE_CHECKING:
    from ..database import ScanDatabase


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoredAsset:
    """Score of one group member with its breakdown."""
    asset_id: str
    score: float
    resolution: float
    sharpness: float
    lighting: float

    def to_dict(self) -> dict:
        return {
            'asset_id': self.asset_id,
            'score': round(self.score, 2),
            'breakdown': {
                'resolution': round(self.resolution, 2),
                'sharpness': round(self.sharpness, 2),
                'lighting': round(self.lighting, 2),
            },
        }


def calculate_score(asset: AssetRecord) -> ScoredAsset:
    """Score an analyzed asset for best shot election."""
    pixels = asset.pixel_count
    resolution = math.log10(pixels) * 10 if pixels > 0 else 0.0

    sharpness = min(asset.blur_score or 0.0, SHARPNESS_CAP) / 5

    luma = asset.mean_luma if asset.mean_luma is not None else DEFAULT_LUMA
    lighting = max(0.0, LIGHTING_SPAN - abs(luma - LUMA_TARGET))

    return ScoredAsset(
        asset_id=asset.asset_id,
        score=resolution + sharpness + lighting,
        resolution=resolution,
        sharpness=sharpness,
        lighting=lighting,
    )


def rank_assets(assets: list[AssetRecord]) -> list[ScoredAsset]:
    """Scores in input order."""
    return [calculate_score(asset) for asset in assets]


def pick_best(assets: list[AssetRecord]) -> Optional[ScoredAsset]:
    """Highest-scoring asset; the first one wins a tie."""
    best: Optional[ScoredAsset] = None
    for scored in rank_assets(assets):
        if best is None or scored.score > best.score:
            best = scored
    return best


def select_best_shot(db: ScanDatabase, group_id: str) -> Optional[str]:
    """
    Score every member of a group and store the winner as its best asset.

    Args:
        db: Database holding the group
        group_id: Group to re-elect

    Returns:
        The elected asset id, or None if the group has no known members
    """
    members = db.groups.get_group_members(group_id)
    if not members:
        return None

    records = db.assets.get_by_ids([m.asset_id for m in members])
    assets = [records[m.asset_id] for m in members if m.asset_id in records]

    best = pick_best(assets)
    if best is None:
        return None

    db.groups.update_best_asset(group_id, best.asset_id)
    logger.debug(f"Group {group_id}: best shot {best.asset_id} (score {best.score:.1f})")
    return best.asset_id


def recalculate_all_best_shots(db: ScanDatabase) -> int:
    """
    Re-elect the best shot of every group.

    Returns:
        Number of groups processed
    """
    count = 0
    with db.transaction():
        for group in db.groups.get_all_groups():
            select_best_shot(db, group.group_id)
            count += 1
    logger.info(f"Recalculated best shots for {count} groups")
    return count


__all__ = [
    'ScoredAsset',
    'calculate_score',
    'rank_assets',
    'pick_best',
    'select_best_shot',
    'recalculate_all_best_shots',
]
