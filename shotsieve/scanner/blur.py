"""
Blur classification with luminance-adaptive thresholds.

Low light legitimately reduces apparent sharpness, so the threshold is
dampened for dark images (and symmetrically for very bright ones) before
comparing it against the Laplacian variance.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from ..models import AssetRecord, BlurConfig, BlurResult

if TYPE_CHECKING:
    from ..database import ScanDatabase


def adjusted_threshold(mean_luma: float, config: BlurConfig) -> float:
    """Effective sharpness threshold for an image of the given luminance."""
    threshold = config.base_threshold
    if mean_luma < config.dark_threshold:
        threshold *= config.dark_multiplier
    elif mean_luma > config.bright_threshold:
        threshold *= config.bright_multiplier
    return threshold


def classify(sharpness: float, mean_luma: float, config: Optional[BlurConfig] = None) -> BlurResult:
    """
    Decide whether an image is blurry.

    Args:
        sharpness: Laplacian variance of the grayscale sample
        mean_luma: Mean luminance of the sample (0-255)
        config: Thresholds (defaults when None)

    Returns:
        BlurResult with the verdict and the threshold that was applied

    Example:
        >>> classify(50, 30, BlurConfig()).adjusted_threshold
        70.0
    """
    config = config or BlurConfig()
    threshold = adjusted_threshold(mean_luma, config)
    return BlurResult(is_blurry=sharpness < threshold, adjusted_threshold=threshold)


def is_blurry_asset(asset: AssetRecord, config: Optional[BlurConfig] = None) -> bool:
    """Classify an analyzed asset; assets without signals are never blurry."""
    if asset.blur_score is None or asset.mean_luma is None:
        return False
    return classify(asset.blur_score, asset.mean_luma, config).is_blurry


def list_blurry(db: ScanDatabase, config: Optional[BlurConfig] = None) -> list[AssetRecord]:
    """
    All analyzed assets currently classified as blurry.

    Classification happens at read time so tuning the thresholds never
    requires re-analysis.
    """
    return [asset for asset in db.assets.iter_done_assets() if is_blurry_asset(asset, config)]


__all__ = ['adjusted_threshold', 'classify', 'is_blurry_asset', 'list_blurry']
