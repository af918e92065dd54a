"""
Unit tests for luminance-adaptive blur classification.
"""

import pytest

from shotsieve.models import BlurConfig
from shotsieve.scanner import classify, is_blurry_asset, list_blurry
from shotsieve.scanner.blur import adjusted_threshold
from shotsieve.models import AssetRecord


class TestClassify:
    """Test the blur classifier."""

    def test_dark_image_threshold_dampened(self):
        """sharpness 50 at luma 30: threshold 100 * 0.7 = 70, so blurry."""
        config = BlurConfig(base_threshold=100, dark_multiplier=0.7, dark_threshold=40)
        result = classify(50, 30, config)
        assert result.adjusted_threshold == pytest.approx(70.0)
        assert result.is_blurry is True

    def test_normal_luma_uses_base(self):
        result = classify(120, 128)
        assert result.adjusted_threshold == pytest.approx(100.0)
        assert result.is_blurry is False

    def test_bright_image_threshold_dampened(self):
        result = classify(80, 230)
        assert result.adjusted_threshold == pytest.approx(70.0)
        assert result.is_blurry is False

    def test_boundaries_are_exclusive(self):
        """Luma exactly at the dark/bright thresholds gets no dampening."""
        config = BlurConfig()
        assert adjusted_threshold(40, config) == pytest.approx(100.0)
        assert adjusted_threshold(220, config) == pytest.approx(100.0)

    def test_sharpness_equal_to_threshold_is_sharp(self):
        assert classify(100, 128).is_blurry is False

    def test_deterministic(self):
        assert classify(42.5, 10) == classify(42.5, 10)

    def test_custom_base_threshold(self):
        result = classify(150, 128, BlurConfig(base_threshold=200))
        assert result.is_blurry is True


class TestBlurryAssets:
    """Test classification of stored assets."""

    def test_asset_without_signals_not_blurry(self):
        assert is_blurry_asset(AssetRecord(asset_id='a')) is False

    def test_asset_classification(self):
        asset = AssetRecord(asset_id='a', blur_score=60.0, mean_luma=128.0)
        assert is_blurry_asset(asset) is True

    def test_list_blurry(self, db, add_done_asset):
        """Only DONE assets under their adjusted threshold are listed."""
        add_done_asset('sharp', blur_score=300.0, mean_luma=128.0)
        add_done_asset('soft', blur_score=60.0, mean_luma=128.0)
        add_done_asset('dark_ok', blur_score=75.0, mean_luma=20.0)
        add_done_asset('dark_soft', blur_score=65.0, mean_luma=20.0)

        ids = {asset.asset_id for asset in list_blurry(db)}
        assert ids == {'soft', 'dark_soft'}

    def test_list_blurry_respects_config(self, db, add_done_asset):
        add_done_asset('medium', blur_score=150.0, mean_luma=128.0)
        assert list_blurry(db) == []
        assert [a.asset_id for a in list_blurry(db, BlurConfig(base_threshold=200))] == ['medium']
