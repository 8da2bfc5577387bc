"""
Tests for the per-sport / per-stat registry and prop-text parsing.
Run with: pytest tests/test_category_config.py -v
"""

from dataclasses import replace
from datetime import date

import pytest

from propedge.core.category_config import (
    CATEGORIES,
    SPORT_PROFILES,
    UnknownCategoryError,
    _CATEGORY_ROWS,
    _validate_registry,
    get_category,
    get_sport_profile,
    match_category,
    nfl_week_for,
    parse_line,
    parse_prop,
    parse_side,
    team_category,
)
from propedge.core.interfaces import TIME_KEY_DATE, TIME_KEY_WEEK


class TestRegistryLookup:
    def test_exact_lookup_is_case_insensitive(self):
        cfg = get_category("nba", "Rebounds")
        assert cfg.key == ("NBA", "rebounds")

    def test_unknown_category_raises(self):
        with pytest.raises(UnknownCategoryError):
            get_category("NBA", "turnovers")
        with pytest.raises(KeyError):
            get_category("NHL", "goals")

    def test_unknown_sport_profile_raises(self):
        with pytest.raises(UnknownCategoryError):
            get_sport_profile("CFL")

    def test_every_sport_has_one_team_category(self):
        assert team_category("NBA").stat == "team_points"
        assert team_category("MLB").stat_fields == ("Runs",)
        assert team_category("NFL").stat_fields == ("Score",)

    def test_every_row_has_sane_bounds(self):
        for cfg in CATEGORIES.values():
            assert 0 < cfg.std_floor <= cfg.std_cap
            lo, hi = cfg.baseline_range
            assert 0 < lo < hi

    def test_poisson_categories(self):
        assert get_category("MLB", "strikeouts").is_poisson
        assert get_category("NBA", "steals").is_poisson
        assert not get_category("NBA", "points").is_poisson


class TestRegistryValidation:
    def test_cap_below_floor_fails(self):
        bad = replace(get_category("NBA", "points"), std_cap=1.0)
        with pytest.raises(ValueError, match="std_floor"):
            _validate_registry((bad,) + _CATEGORY_ROWS[1:])

    def test_duplicate_alias_fails(self):
        points = get_category("NBA", "points")
        clash = replace(points, stat="points_alt")
        with pytest.raises(ValueError, match="already used"):
            _validate_registry((points, clash))

    def test_empty_baseline_fails(self):
        bad = replace(get_category("NBA", "points"), baseline_range=(10.0, 10.0))
        with pytest.raises(ValueError, match="baseline"):
            _validate_registry((bad,))

    def test_shipped_table_is_valid(self):
        assert _validate_registry(_CATEGORY_ROWS) == CATEGORIES


class TestCategoryConfig:
    def test_stat_value_sums_fields(self):
        pra = get_category("NBA", "pra")
        assert pra.stat_value({"Points": 25, "Rebounds": 8, "Assists": 6}) == 39.0

    def test_stat_value_missing_field(self):
        pra = get_category("NBA", "pra")
        assert pra.stat_value({"Points": 25, "Rebounds": 8}) is None

    def test_season_per_game(self):
        pts = get_category("WNBA", "points")
        assert pts.season_per_game({"Points": 270, "Games": 10}) == 27.0
        assert pts.season_per_game({"Points": 270, "Games": 0}) is None

    def test_bound_std(self):
        pts = get_category("NBA", "points")
        assert pts.bound_std(100.0) == pts.std_cap
        assert pts.bound_std(0.0) == pts.std_floor
        assert pts.bound_std(5.0) == 5.0


class TestPropParsing:
    @pytest.mark.parametrize(
        "sport,text,stat",
        [
            ("NBA", "Over 6.5 Rebounds", "rebounds"),
            ("NBA", "Pts+Reb+Ast 35.5", "pra"),
            ("NBA", "Points 24.5", "points"),
            ("MLB", "Pitcher Strikeouts 6.5", "strikeouts"),
            ("MLB", "Hits Allowed 5.5", "hits_allowed"),
            ("MLB", "Hits 1.5", "hits"),
            ("NFL", "Passing Yards 265.5", "passing_yards"),
            ("WNBA", "Assists 7.5", "assists"),
        ],
    )
    def test_match_category(self, sport, text, stat):
        assert match_category(sport, text).stat == stat

    def test_unmatched_prop(self):
        assert match_category("NBA", "Turnovers 2.5") is None

    def test_team_categories_not_matched_from_prop_text(self):
        assert match_category("NBA", "Team Points 110.5").scope == "player"

    def test_parse_line(self):
        assert parse_line("Rebounds 6.5") == 6.5
        assert parse_line("Over 25 points") == 25.0
        assert parse_line("Rebounds") is None

    def test_parse_side(self):
        assert parse_side("Under 6.5 Rebounds") == "UNDER"
        assert parse_side("Assists u6.5") == "UNDER"
        assert parse_side("Over 6.5 Rebounds") == "OVER"
        assert parse_side("Rebounds 6.5") == "OVER"

    def test_parse_prop(self):
        cfg, line, side = parse_prop("NBA", "Under 6.5 Rebounds")
        assert (cfg.stat, line, side) == ("rebounds", 6.5, "UNDER")

    @pytest.mark.parametrize(
        "text", ["3PM 2.5", "3pt 2.5", "Under 2.5 3PM", "3-Pointers 2.5", "Over 2.5 3-Pointers Made"]
    )
    def test_digits_in_stat_name_are_not_the_line(self, text):
        cfg, line, _ = parse_prop("NBA", text)
        assert cfg.stat == "threes"
        assert line == 2.5


class TestSportProfiles:
    def test_nba_season_spans_new_year(self):
        nba = SPORT_PROFILES["NBA"]
        assert nba.season_for(date(2024, 11, 1)) == 2025
        assert nba.season_for(date(2025, 3, 1)) == 2025

    def test_nfl_playoffs_belong_to_previous_season(self):
        assert SPORT_PROFILES["NFL"].season_for(date(2025, 1, 12)) == 2024

    def test_nfl_week(self):
        # 2024 opener: Thursday 5 September
        assert nfl_week_for(date(2024, 9, 4), 2024) == 0
        assert nfl_week_for(date(2024, 9, 5), 2024) == 1
        assert nfl_week_for(date(2024, 9, 12), 2024) == 2
        assert nfl_week_for(date(2025, 1, 5), 2024) == 18

    def test_nfl_scan_starts_the_week_before(self):
        keys = SPORT_PROFILES["NFL"].recent_time_keys(date(2024, 10, 20))
        assert [k.week for k in keys] == [6, 5, 4, 3, 2, 1]
        assert all(k.kind == TIME_KEY_WEEK for k in keys)

    def test_nfl_week_one_has_no_history(self):
        assert SPORT_PROFILES["NFL"].recent_time_keys(date(2024, 9, 8)) == []

    def test_daily_scan_excludes_event_day(self):
        keys = SPORT_PROFILES["NBA"].recent_time_keys(date(2025, 1, 10))
        assert len(keys) == 45
        assert keys[0].kind == TIME_KEY_DATE
        assert keys[0].day == date(2025, 1, 9)
        assert keys[0].label == "2025-01-09"

    def test_wnba_is_season_only(self):
        wnba = SPORT_PROFILES["WNBA"]
        assert wnba.recent_time_keys(date(2025, 7, 1)) == []
        assert wnba.season_time_key(date(2025, 7, 1)).label == "season-2025"
