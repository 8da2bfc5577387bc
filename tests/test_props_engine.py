"""
Tests for the player-prop engine, end to end on synthetic and fake data.
Run with: pytest tests/test_props_engine.py -v
"""

import math
from dataclasses import replace
from unittest.mock import patch

import pytest

from propedge.config import EngineConfig
from propedge.core.decision import Decision
from propedge.core.interfaces import TIME_KEY_SEASON, StatsProvider
from propedge.props_engine import PlayerPropsEngine

SEEDED = EngineConfig(synthetic_seed=11)

BASE = {
    "sport": "NBA",
    "player": "Jalen Brunson",
    "opponent": "Boston Celtics",
    "prop": "Over 6.5 Assists",
    "odds": {"over": 1.87, "under": 1.95},
    "startTime": "2025-01-05T19:30:00-05:00",
    "workload": "AUTO",
}


class SeasonOnlyProvider(StatsProvider):
    """Returns ``rows`` for every season lookup and nothing else."""

    provider_name = "fake"

    def __init__(self, rows):
        self.rows = rows

    async def fetch_rows(self, category, time_key):
        return self.rows if time_key.kind == TIME_KEY_SEASON else []


@pytest.fixture
def engine():
    return PlayerPropsEngine(config=SEEDED)


class TestValidation:
    @pytest.mark.asyncio
    async def test_empty_payload(self, engine):
        result = await engine.evaluate_prop({})
        assert result["decision"] == "ERROR"
        assert result["flags"] == ["MISSING_SPORT", "MISSING_PLAYER", "MISSING_PROP"]
        assert result["message"].startswith("Missing required data")
        assert result["final_confidence"] == 0.0
        assert result["suggested_stake"] == 0.0

    @pytest.mark.asyncio
    async def test_non_mapping_payload(self, engine):
        result = await engine.evaluate_prop("junk")
        assert result["decision"] == "ERROR"

    @pytest.mark.asyncio
    async def test_unsupported_sport(self, engine):
        result = await engine.evaluate_prop({**BASE, "sport": "NHL"})
        assert result["flags"] == ["UNSUPPORTED_SPORT"]

    @pytest.mark.asyncio
    async def test_unsupported_prop(self, engine):
        result = await engine.evaluate_prop({**BASE, "prop": "Turnovers 2.5"})
        assert result["flags"] == ["UNSUPPORTED_PROP"]

    @pytest.mark.asyncio
    async def test_missing_line(self, engine):
        result = await engine.evaluate_prop({**BASE, "prop": "Rebounds"})
        assert result["flags"] == ["MISSING_LINE"]
        assert result["player"] == "Jalen Brunson"


class TestEvaluation:
    @pytest.mark.asyncio
    async def test_happy_path(self, engine):
        result = await engine.evaluate_prop(BASE)
        assert result["decision"] in {d.value for d in Decision if d is not Decision.ERROR}
        assert 0.0 <= result["final_confidence"] <= 100.0
        assert result["stat"] == "assists"
        assert result["line"] == 6.5
        assert result["side"] == "OVER"
        assert result["suggestion"] in ("OVER", "UNDER")
        assert "MARKET_NEUTRAL" not in result["flags"]
        assert "MISSING_OPPONENT" not in result["flags"]
        assert result["raw_numbers"]["market_probability"] == pytest.approx(
            (1 / 1.87) / (1 / 1.87 + 1 / 1.95), abs=1e-3
        )
        assert result["meta"]["data_source"] == "synthetic"
        assert result["meta"]["provider"] == "fallback"
        assert result["top_drivers"]

    @pytest.mark.asyncio
    async def test_soft_flags(self, engine):
        payload = {k: v for k, v in BASE.items() if k not in ("odds", "opponent")}
        payload["startTime"] = "next tuesday"
        result = await engine.evaluate_prop(payload)
        assert result["decision"] != "ERROR"
        assert {"MARKET_NEUTRAL", "MISSING_OPPONENT", "INVALID_START_TIME"} <= set(result["flags"])
        assert result["raw_numbers"]["market_probability"] == 0.5

    @pytest.mark.asyncio
    async def test_seeded_results_are_reproducible(self, engine):
        first = await engine.evaluate_prop(BASE)
        second = await engine.evaluate_prop(BASE)
        assert first["final_confidence"] == second["final_confidence"]
        assert first["raw_numbers"] == second["raw_numbers"]

    @pytest.mark.asyncio
    async def test_under_mirrors_over(self, engine):
        over = await engine.evaluate_prop(BASE)
        under = await engine.evaluate_prop({**BASE, "side": "UNDER"})
        assert under["side"] == "UNDER"
        total = over["raw_numbers"]["model_probability"] + under["raw_numbers"]["model_probability"]
        assert total == pytest.approx(1.0, abs=1e-3)
        market = over["raw_numbers"]["market_probability"] + under["raw_numbers"]["market_probability"]
        assert market == pytest.approx(1.0, abs=1e-3)

    @pytest.mark.asyncio
    async def test_side_parsed_from_prop_text(self, engine):
        result = await engine.evaluate_prop({**BASE, "prop": "Under 6.5 Assists"})
        assert result["side"] == "UNDER"

    @pytest.mark.asyncio
    async def test_poisson_std_is_root_lambda(self, engine):
        result = await engine.evaluate_prop(
            {**BASE, "sport": "MLB", "player": "Gerrit Cole", "prop": "Strikeouts 6.5"}
        )
        raw = result["raw_numbers"]
        assert raw["std_dev"] == pytest.approx(math.sqrt(raw["expected_value"]), abs=0.02)

    @pytest.mark.asyncio
    async def test_name_inflation(self, engine):
        result = await engine.evaluate_prop(
            {**BASE, "sport": "MLB", "player": "Aaron Judge", "prop": "Total Bases 1.5"}
        )
        assert "NAME_INFLATION" in result["flags"]

    @pytest.mark.asyncio
    async def test_hook_trap_from_season_average(self):
        provider = SeasonOnlyProvider([{"Name": "Angel Reese", "Rebounds": 64, "Games": 10}])
        engine = PlayerPropsEngine(provider, SEEDED)
        result = await engine.evaluate_prop({
            "sport": "WNBA",
            "player": "Angel Reese",
            "prop": "Over 6.5 Rebounds",
            "startTime": "2025-07-01",
        })
        assert result["raw_numbers"]["expected_value"] == 6.4
        assert result["raw_numbers"]["season_avg"] == 6.4
        assert {"HOOK", "HOOK_TRAP"} <= set(result["flags"])
        assert result["meta"]["data_source"] == "season"
        assert result["meta"]["matched_name"] == "Angel Reese"
        assert result["meta"]["used_endpoints"] == ["WNBA:player-stats:season-2025"]

    @pytest.mark.asyncio
    async def test_calibration_factor_applied(self):
        plain = await PlayerPropsEngine(config=SEEDED).evaluate_prop(BASE)
        scaled = await PlayerPropsEngine(config=replace(SEEDED, calibration_factor=0.5)).evaluate_prop(BASE)
        assert scaled["raw_numbers"]["fused_probability"] == pytest.approx(
            plain["raw_numbers"]["fused_probability"] * 0.5, abs=2e-3
        )

    @pytest.mark.asyncio
    async def test_internal_error(self, engine):
        with patch.object(engine.model, "evaluate_prop", side_effect=RuntimeError("boom")):
            result = await engine.evaluate_prop(BASE)
        assert result["decision"] == "ERROR"
        assert result["flags"] == ["INTERNAL_ERROR"]
        assert result["message"] == "Analysis failed"
        assert result["player"] == "Jalen Brunson"
