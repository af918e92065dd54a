"""
Unit tests for best shot scoring and election.
"""

import math

import pytest

from shotsieve.models import AssetRecord
from shotsieve.scanner import calculate_score, select_best_shot, recalculate_all_best_shots
from shotsieve.scanner.best_shot import pick_best


def _asset(asset_id, width=4000, height=3000, blur_score=250.0, mean_luma=140.0):
    return AssetRecord(
        asset_id=asset_id,
        width=width,
        height=height,
        blur_score=blur_score,
        mean_luma=mean_luma,
    )


class TestCalculateScore:
    """Test the three score components."""

    def test_components(self):
        scored = calculate_score(_asset('a', blur_score=250.0, mean_luma=150.0))
        assert scored.resolution == pytest.approx(math.log10(12_000_000) * 10)
        assert scored.sharpness == pytest.approx(50.0)
        assert scored.lighting == pytest.approx(30.0)
        assert scored.score == pytest.approx(scored.resolution + 80.0)

    def test_sharpness_capped(self):
        """Sharpness contributes at most 100."""
        assert calculate_score(_asset('a', blur_score=5000.0)).sharpness == pytest.approx(100.0)

    def test_lighting_floor(self):
        assert calculate_score(_asset('a', mean_luma=250.0)).lighting == 0.0

    def test_missing_values(self):
        """Unknown size scores 0, missing blur 0, missing luma counts as 128."""
        scored = calculate_score(AssetRecord(asset_id='bare'))
        assert scored.resolution == 0.0
        assert scored.sharpness == 0.0
        assert scored.lighting == pytest.approx(28.0)

    def test_to_dict(self):
        data = calculate_score(_asset('a')).to_dict()
        assert data['asset_id'] == 'a'
        assert set(data['breakdown']) == {'resolution', 'sharpness', 'lighting'}


class TestPickBest:
    """Test election among candidates."""

    def test_highest_score_wins(self):
        assets = [_asset('small', width=640, height=480), _asset('big')]
        assert pick_best(assets).asset_id == 'big'

    def test_sharpness_beats_slight_resolution_gain(self):
        assets = [
            _asset('bigger_soft', width=4032, height=3024, blur_score=40.0),
            _asset('crisp', blur_score=450.0),
        ]
        assert pick_best(assets).asset_id == 'crisp'

    def test_tie_keeps_first(self):
        assert pick_best([_asset('first'), _asset('second')]).asset_id == 'first'

    def test_empty(self):
        assert pick_best([]) is None


class TestSelectBestShot:
    """Test election stored in the database."""

    def test_stores_winner(self, db, add_done_asset):
        add_done_asset('dim', mean_luma=30.0)
        add_done_asset('lit', mean_luma=140.0)
        db.groups.create_group('g1', 'dim')
        db.groups.add_member('g1', 'dim', 0)
        db.groups.add_member('g1', 'lit', 5)

        assert select_best_shot(db, 'g1') == 'lit'
        assert db.groups.get_group_by_id('g1').best_asset_id == 'lit'

    def test_empty_group(self, db):
        db.groups.create_group('g1', 'nobody')
        assert select_best_shot(db, 'g1') is None

    def test_recalculate_all(self, db, add_done_asset):
        add_done_asset('a', blur_score=10.0)
        add_done_asset('b', blur_score=300.0)
        db.groups.create_group('g1', 'a')
        db.groups.add_member('g1', 'a', 0)
        db.groups.add_member('g1', 'b', 2)
        db.groups.update_best_asset('g1', 'a')

        assert recalculate_all_best_shots(db) == 1
        assert db.groups.get_group_by_id('g1').best_asset_id == 'b'
