"""
Tests for the statistical model (props and game lines).
Run with: pytest tests/test_models.py -v
"""

import math

import pytest
from scipy.stats import norm, poisson

from propedge.core.category_config import SPORT_PROFILES, get_category
from propedge.core.interfaces import FeatureSet
from propedge.core.models import MARKET_ML, MARKET_SPREAD, MARKET_TOTAL, StatisticalModel


def _features(mean, variance=16.0, matchup=1.0, workload=1.0):
    return FeatureSet(
        long_avg=mean,
        medium_avg=mean,
        short_avg=mean,
        weighted_mean=mean,
        variance=variance,
        matchup_factor=matchup,
        workload_factor=workload,
    )


@pytest.fixture
def model():
    return StatisticalModel()


class TestPropModel:
    def test_poisson_category(self, model):
        cfg = get_category("MLB", "strikeouts")
        result = model.evaluate_prop(_features(6.0), 6.5, cfg)
        assert result.distribution == "poisson"
        assert result.probability == pytest.approx(1.0 - poisson.cdf(6, 6.0), abs=1e-9)
        assert result.std_dev == pytest.approx(math.sqrt(6.0))

    def test_poisson_lambda_floor(self, model):
        cfg = get_category("NBA", "steals")
        result = model.evaluate_prop(_features(0.0), 0.5, cfg)
        assert result.expected_value == 0.1
        assert result.std_dev == pytest.approx(math.sqrt(0.1))
        assert 0.001 <= result.probability <= 0.999

    def test_normal_half_point_under_mean_is_a_coin_flip(self, model):
        cfg = get_category("NBA", "points")
        result = model.evaluate_prop(_features(25.0, variance=16.0), 24.5, cfg)
        assert result.distribution == "normal"
        assert result.probability == 0.5
        assert result.std_dev == 4.0

    def test_expected_value_includes_factors(self, model):
        cfg = get_category("NBA", "points")
        result = model.evaluate_prop(_features(20.0, matchup=1.1, workload=0.9), 15.5, cfg)
        assert result.expected_value == pytest.approx(19.8)
        assert result.probability > 0.5

    def test_probability_is_clamped(self, model):
        cfg = get_category("NBA", "points")
        result = model.evaluate_prop(_features(60.0, variance=9.0), 10.5, cfg)
        assert result.probability == 0.999


class TestGameModel:
    def setup_method(self):
        self.nba = SPORT_PROFILES["NBA"]
        self.home = _features(110.0, variance=100.0)
        self.away = _features(110.0, variance=100.0)

    def test_moneyline_uses_home_advantage(self, model):
        result = model.evaluate_game(self.home, self.away, MARKET_ML, None, self.nba)
        assert result.expected_value == pytest.approx(2.5)
        assert result.std_dev == pytest.approx(math.sqrt(200.0))
        assert result.probability == pytest.approx(norm.cdf(2.5 / math.sqrt(200.0)), abs=1e-6)

    def test_spread_matching_margin_is_a_coin_flip(self, model):
        result = model.evaluate_game(self.home, self.away, MARKET_SPREAD, -2.5, self.nba)
        assert result.probability == 0.5

    def test_total(self, model):
        result = model.evaluate_game(self.home, self.away, MARKET_TOTAL, 219.5, self.nba)
        assert result.expected_value == 220.0
        assert result.probability == 0.5

    def test_market_is_case_insensitive(self, model):
        result = model.evaluate_game(self.home, self.away, "ml", None, self.nba)
        assert result.probability > 0.5

    def test_unknown_market(self, model):
        with pytest.raises(ValueError, match="Unknown game market"):
            model.evaluate_game(self.home, self.away, "PARLAY", None, self.nba)

    def test_spread_and_total_need_a_line(self, model):
        with pytest.raises(ValueError):
            model.evaluate_game(self.home, self.away, MARKET_SPREAD, None, self.nba)
        with pytest.raises(ValueError):
            model.evaluate_game(self.home, self.away, MARKET_TOTAL, None, self.nba)
