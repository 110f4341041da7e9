"""
Unit Tests for Risk Thresholds

Tests both level scales at their boundaries.
"""

import pytest

from workguard.domains.compliance.thresholds import ALLOCATION_SCALE, FLEET_SCALE
from workguard.models import RiskLevel


class TestAllocationScale:
    """Test the unbounded location-scoped scale."""

    @pytest.mark.parametrize("score,level", [
        (0, RiskLevel.LOW),
        (50, RiskLevel.LOW),
        (51, RiskLevel.MEDIUM),
        (100, RiskLevel.MEDIUM),
        (101, RiskLevel.HIGH),
        (150, RiskLevel.HIGH),
        (151, RiskLevel.CRITICAL),
        (10000, RiskLevel.CRITICAL),
    ])
    def test_boundaries(self, score, level):
        assert ALLOCATION_SCALE.level_for(score) == level

    def test_critical_band_is_unbounded(self):
        threshold = ALLOCATION_SCALE.threshold_for(RiskLevel.CRITICAL)
        assert threshold.max_score is None
        assert threshold.score_range == "151+"

    def test_high_band_recommends_rotation(self):
        threshold = ALLOCATION_SCALE.threshold_for(RiskLevel.HIGH)
        assert threshold.action_required == "Rotate to a different worker"


class TestFleetScale:
    """Test the 0-100 composite scale."""

    @pytest.mark.parametrize("score,level", [
        (0, RiskLevel.LOW),
        (29, RiskLevel.LOW),
        (30, RiskLevel.MEDIUM),
        (49, RiskLevel.MEDIUM),
        (50, RiskLevel.HIGH),
        (69, RiskLevel.HIGH),
        (70, RiskLevel.CRITICAL),
        (100, RiskLevel.CRITICAL),
    ])
    def test_boundaries(self, score, level):
        assert FLEET_SCALE.level_for(score) == level

    @pytest.mark.parametrize("score", [-1, 101])
    def test_out_of_range_scores_rejected(self, score):
        with pytest.raises(ValueError):
            FLEET_SCALE.classify(score)

    def test_scales_disagree_on_the_same_score(self):
        assert FLEET_SCALE.level_for(70) == RiskLevel.CRITICAL
        assert ALLOCATION_SCALE.level_for(70) == RiskLevel.MEDIUM

    def test_threshold_to_dict(self):
        data = FLEET_SCALE.threshold_for(RiskLevel.HIGH).to_dict()
        assert data['level'] == 'high'
        assert data['scoreRange'] == '50-69'
