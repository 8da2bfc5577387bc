"""
Tests for the SportsDataIO provider.  All HTTP is mocked.
Run with: pytest tests/test_sports_data.py -v
"""

from datetime import date
from unittest.mock import MagicMock, patch

import pytest
import requests

from propedge.core.category_config import get_category
from propedge.core.interfaces import NullStatsProvider, TimeKey
from propedge.services.sports_data import (
    ODDS,
    REQUEST_TIMEOUT_SEC,
    SportsDataProvider,
    build_provider,
    endpoint_path,
)

DAY = TimeKey.on_date(date(2025, 1, 5), 2025)


def _response(body):
    resp = MagicMock()
    resp.json.return_value = body
    return resp


@pytest.fixture
def provider():
    return SportsDataProvider("test-key", rate_limit_sec=0.0)


class TestEndpointPath:
    def test_daily_player_stats(self):
        assert endpoint_path("nba", "player", DAY) == "/v3/nba/stats/json/PlayerGameStatsByDate/2025-01-05"

    def test_nfl_week(self):
        wk = TimeKey.for_week(2024, 7)
        assert endpoint_path("NFL", "player", wk) == "/v3/nfl/stats/json/PlayerGameStatsByWeek/2024REG/7"
        assert endpoint_path("NFL", ODDS, wk) == "/v3/nfl/odds/json/GameOddsByWeek/2024REG/7"

    def test_season(self):
        assert endpoint_path("MLB", "team", TimeKey.for_season(2024)) == "/v3/mlb/scores/json/TeamSeasonStats/2024"

    def test_wnba_has_no_game_logs(self):
        assert endpoint_path("WNBA", "player", DAY) is None
        assert endpoint_path("WNBA", "player", TimeKey.for_season(2025)) is not None


class TestSportsDataProvider:
    @pytest.mark.asyncio
    async def test_fetch_rows(self, provider):
        rows = [{"Name": "Jalen Brunson", "Points": 31}, "junk", 7]
        with patch("propedge.services.sports_data.requests.get", return_value=_response(rows)) as mock_get:
            result = await provider.fetch_rows(get_category("NBA", "points"), DAY)

        assert result == [{"Name": "Jalen Brunson", "Points": 31}]
        args, kwargs = mock_get.call_args
        assert args[0] == "https://api.sportsdata.io/v3/nba/stats/json/PlayerGameStatsByDate/2025-01-05"
        assert kwargs["params"] == {"key": "test-key"}
        assert kwargs["timeout"] == REQUEST_TIMEOUT_SEC

    @pytest.mark.asyncio
    async def test_no_key_never_calls_upstream(self):
        provider = SportsDataProvider(None, rate_limit_sec=0.0)
        with patch("propedge.services.sports_data.requests.get") as mock_get:
            assert await provider.fetch_rows(get_category("NBA", "points"), DAY) == []
        mock_get.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_endpoint_returns_empty(self, provider):
        with patch("propedge.services.sports_data.requests.get") as mock_get:
            assert await provider.fetch_rows(get_category("WNBA", "points"), DAY) == []
        mock_get.assert_not_called()

    @pytest.mark.asyncio
    async def test_timeout_returns_empty(self, provider):
        with patch(
            "propedge.services.sports_data.requests.get",
            side_effect=requests.exceptions.Timeout("slow"),
        ):
            assert await provider.fetch_rows(get_category("NBA", "points"), DAY) == []

    @pytest.mark.asyncio
    async def test_http_error_returns_empty(self, provider):
        resp = _response([])
        resp.raise_for_status.side_effect = requests.exceptions.HTTPError("401 Unauthorized")
        with patch("propedge.services.sports_data.requests.get", return_value=resp):
            assert await provider.fetch_rows(get_category("NBA", "points"), DAY) == []

    @pytest.mark.asyncio
    async def test_bad_json_returns_empty(self, provider):
        resp = MagicMock()
        resp.json.side_effect = ValueError("Expecting value")
        with patch("propedge.services.sports_data.requests.get", return_value=resp):
            assert await provider.fetch_rows(get_category("NBA", "points"), DAY) == []

    @pytest.mark.asyncio
    async def test_non_list_body_returns_empty(self, provider):
        body = {"Message": "Invalid key"}
        with patch("propedge.services.sports_data.requests.get", return_value=_response(body)):
            assert await provider.fetch_rows(get_category("NBA", "points"), DAY) == []

    @pytest.mark.asyncio
    async def test_fetch_game_odds(self, provider):
        odds = [{"HomeTeamName": "KC", "AwayTeamName": "BUF", "PregameOdds": []}]
        with patch("propedge.services.sports_data.requests.get", return_value=_response(odds)) as mock_get:
            result = await provider.fetch_game_odds("NFL", TimeKey.for_week(2024, 11))
        assert result == odds
        assert mock_get.call_args[0][0].endswith("/v3/nfl/odds/json/GameOddsByWeek/2024REG/11")

    def test_endpoint_label(self, provider):
        pts = get_category("NBA", "points")
        assert provider.endpoint_label(pts, DAY) == "NBA:player-stats:2025-01-05"
        assert provider.endpoint_label(pts, TimeKey.for_season(2025)) == "NBA:player-season:season-2025"
        team = get_category("NFL", "team_points")
        assert provider.endpoint_label(team, TimeKey.for_week(2024, 5)) == "NFL:team-stats:week-5"


class TestBuildProvider:
    def test_without_key(self):
        assert isinstance(build_provider(None), NullStatsProvider)
        assert isinstance(build_provider(""), NullStatsProvider)

    def test_with_key(self):
        provider = build_provider("abc", rate_limit_sec=0.5, log_requests=True)
        assert isinstance(provider, SportsDataProvider)
        assert provider.rate_limit_sec == 0.5
        assert provider.log_requests is True
        assert provider.provider_name == "sportsdata"
