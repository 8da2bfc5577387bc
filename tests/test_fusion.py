"""
Tests for probability fusion, calibration and display rounding.
Run with: pytest tests/test_fusion.py -v
"""

from dataclasses import replace

import pytest

from propedge.core.fusion import DEFAULT_WEIGHTS, FusionWeights, fuse, round_half_up


class TestFuse:
    def test_all_neutral_inputs(self):
        result = fuse(0.5, 0.5)
        assert result.base_probability == pytest.approx(0.5)
        assert result.final_confidence == 50.0

    def test_weighted_blend(self):
        # 0.6·0.8 + 0.2·0.6 + 0.12·0.5 + 0.08·0.5 = 0.70
        result = fuse(0.8, 0.6)
        assert result.fused_probability == pytest.approx(0.70)
        assert result.final_confidence == 70.0

    def test_unit_calibration_is_a_no_op(self):
        result = fuse(0.73, 0.61, calibration_factor=1.0)
        assert result.calibrated_probability == result.fused_probability

    def test_calibration_scales(self):
        assert fuse(0.8, 0.6, calibration_factor=0.9).final_confidence == 63.0

    def test_sharp_signal_is_clamped(self):
        assert fuse(0.5, 0.5, sharp_signal=2.0).final_confidence == 56.0
        assert fuse(0.5, 0.5, sharp_signal=-2.0).final_confidence == 44.0

    def test_non_finite_sharp_signal_is_ignored(self):
        assert fuse(0.5, 0.5, sharp_signal=float("nan")).final_confidence == 50.0

    def test_adjustment_delta_added_after_blend(self):
        result = fuse(0.5, 0.5, adjustment_delta=-0.05)
        assert result.base_probability == pytest.approx(0.5)
        assert result.final_confidence == 45.0

    def test_fused_probability_is_clamped(self):
        result = fuse(0.999, 0.999, adjustment_delta=0.5, calibration_factor=1.5)
        assert result.fused_probability == 1.0
        assert result.calibrated_probability == 1.0
        assert result.final_confidence == 100.0

    def test_custom_weights(self):
        weights = FusionWeights(model=1.0, market=0.0, sharp=0.0, neutral=0.0)
        assert fuse(0.66, 0.1, weights=weights).final_confidence == 66.0


class TestFusionWeights:
    def test_defaults_sum_to_one(self):
        w = DEFAULT_WEIGHTS
        assert w.model + w.market + w.sharp + w.neutral == pytest.approx(1.0)

    def test_unbalanced_weights_raise(self):
        with pytest.raises(ValueError, match="sum to 1.0"):
            replace(DEFAULT_WEIGHTS, model=0.7)

    def test_negative_weight_raises(self):
        with pytest.raises(ValueError):
            FusionWeights(model=-0.1, market=0.9, sharp=0.12, neutral=0.08)


class TestRoundHalfUp:
    @pytest.mark.parametrize(
        "value,expected",
        [(67.45, 67.5), (64.95, 65.0), (69.94, 69.9), (70.05, 70.1), (50.0, 50.0)],
    )
    def test_rounds_half_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_non_finite_is_zero(self):
        assert round_half_up(float("nan")) == 0.0
