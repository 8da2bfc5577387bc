"""
SportsDataIO integration for player and team statistics.
https://sportsdata.io/

Endpoint table
--------------
Each sport maps a (scope, time-key kind) pair to a path template:

  NBA / MLB:  game-level stats by date, season aggregates by season,
              pre-game odds by date.
  NFL:        game-level stats by week ({season}REG/{week}), season
              aggregates, odds by week.
  WNBA:       season aggregates only; odds by date.

Failure policy
--------------
Every fetch is total: a missing API key, an HTTP error, a timeout or a
non-list JSON body is logged and returned as ``[]``.  The engines treat an
empty list as "no data" and fall back to synthetic baselines.

Requests are blocking (``requests``) and run in a worker thread via
``asyncio.to_thread``.  A per-client lock spaces them at least
``rate_limit_sec`` apart.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import requests

from propedge.core.category_config import SCOPE_TEAM, CategoryConfig, normalize_sport
from propedge.core.interfaces import (
    TIME_KEY_DATE,
    TIME_KEY_SEASON,
    TIME_KEY_WEEK,
    NullStatsProvider,
    StatsProvider,
    TimeKey,
)

logger = logging.getLogger(__name__)

BASE_URL = "https://api.sportsdata.io"
REQUEST_TIMEOUT_SEC = 10

ODDS = "odds"

# (sport, scope | "odds", time-key kind) -> path template
ENDPOINTS: Dict[tuple, str] = {
    # NBA
    ("NBA", "player", TIME_KEY_DATE): "/v3/nba/stats/json/PlayerGameStatsByDate/{date}",
    ("NBA", "team", TIME_KEY_DATE): "/v3/nba/scores/json/TeamGameStatsByDate/{date}",
    ("NBA", "player", TIME_KEY_SEASON): "/v3/nba/stats/json/PlayerSeasonStats/{season}",
    ("NBA", "team", TIME_KEY_SEASON): "/v3/nba/scores/json/TeamSeasonStats/{season}",
    ("NBA", ODDS, TIME_KEY_DATE): "/v3/nba/odds/json/GameOddsByDate/{date}",
    # MLB
    ("MLB", "player", TIME_KEY_DATE): "/v3/mlb/stats/json/PlayerGameStatsByDate/{date}",
    ("MLB", "team", TIME_KEY_DATE): "/v3/mlb/scores/json/TeamGameStatsByDate/{date}",
    ("MLB", "player", TIME_KEY_SEASON): "/v3/mlb/stats/json/PlayerSeasonStats/{season}",
    ("MLB", "team", TIME_KEY_SEASON): "/v3/mlb/scores/json/TeamSeasonStats/{season}",
    ("MLB", ODDS, TIME_KEY_DATE): "/v3/mlb/odds/json/GameOddsByDate/{date}",
    # NFL (regular season)
    ("NFL", "player", TIME_KEY_WEEK): "/v3/nfl/stats/json/PlayerGameStatsByWeek/{season}REG/{week}",
    ("NFL", "team", TIME_KEY_WEEK): "/v3/nfl/scores/json/TeamGameStats/{season}REG/{week}",
    ("NFL", "player", TIME_KEY_SEASON): "/v3/nfl/stats/json/PlayerSeasonStats/{season}REG",
    ("NFL", "team", TIME_KEY_SEASON): "/v3/nfl/scores/json/TeamSeasonStats/{season}REG",
    ("NFL", ODDS, TIME_KEY_WEEK): "/v3/nfl/odds/json/GameOddsByWeek/{season}REG/{week}",
    # WNBA (season aggregates only)
    ("WNBA", "player", TIME_KEY_SEASON): "/v3/wnba/stats/json/PlayerSeasonStats/{season}",
    ("WNBA", "team", TIME_KEY_SEASON): "/v3/wnba/scores/json/TeamSeasonStats/{season}",
    ("WNBA", ODDS, TIME_KEY_DATE): "/v3/wnba/odds/json/GameOddsByDate/{date}",
}


def endpoint_path(sport: str, scope: str, time_key: TimeKey) -> Optional[str]:
    """Concrete path for one lookup, or ``None`` when the sport lacks it."""
    template = ENDPOINTS.get((normalize_sport(sport), scope, time_key.kind))
    if template is None:
        return None
    return template.format(
        date=time_key.day.isoformat() if time_key.day else "",
        season=time_key.season,
        week=time_key.week,
    )


class SportsDataProvider(StatsProvider):
    """StatsProvider backed by the SportsDataIO REST API."""

    provider_name = "sportsdata"

    def __init__(
        self,
        api_key: Optional[str],
        *,
        rate_limit_sec: float = 1.0,
        log_requests: bool = False,
        base_url: str = BASE_URL,
    ):
        self.api_key = api_key or ""
        self.rate_limit_sec = max(0.0, rate_limit_sec)
        self.log_requests = log_requests
        self.base_url = base_url.rstrip("/")
        self._lock = asyncio.Lock()
        self._last_request = 0.0

    async def _throttle(self) -> None:
        async with self._lock:
            wait = self._last_request + self.rate_limit_sec - time.monotonic()
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_request = time.monotonic()

    def _get(self, path: str) -> List[Dict[str, Any]]:
        """Blocking GET; runs inside a worker thread."""
        url = f"{self.base_url}{path}"
        try:
            response = requests.get(
                url,
                params={"key": self.api_key},
                headers={"Accept": "application/json"},
                timeout=REQUEST_TIMEOUT_SEC,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            logger.warning("SportsDataIO error on %s: %s", path, e)
            return []
        except ValueError as e:
            logger.warning("SportsDataIO returned non-JSON body on %s: %s", path, e)
            return []

        if not isinstance(data, list):
            logger.warning("SportsDataIO returned %s on %s; expected a list", type(data).__name__, path)
            return []
        if self.log_requests:
            logger.info("[SportsDataIO] GET %s -> %d rows", path, len(data))
        return [row for row in data if isinstance(row, dict)]

    async def _fetch(self, path: Optional[str]) -> List[Dict[str, Any]]:
        if not self.api_key or path is None:
            return []
        await self._throttle()
        return await asyncio.to_thread(self._get, path)

    async def fetch_rows(
        self,
        category: CategoryConfig,
        time_key: TimeKey,
    ) -> List[Dict[str, Any]]:
        return await self._fetch(endpoint_path(category.sport, category.scope, time_key))

    async def fetch_game_odds(
        self,
        sport: str,
        time_key: TimeKey,
    ) -> List[Dict[str, Any]]:
        return await self._fetch(endpoint_path(sport, ODDS, time_key))

    def endpoint_label(
        self,
        category: CategoryConfig,
        time_key: TimeKey,
    ) -> str:
        kind = "season" if time_key.kind == TIME_KEY_SEASON else "stats"
        scope = "team" if category.scope == SCOPE_TEAM else "player"
        return f"{category.sport}:{scope}-{kind}:{time_key.label}"


def build_provider(
    api_key: Optional[str],
    *,
    rate_limit_sec: float = 1.0,
    log_requests: bool = False,
) -> StatsProvider:
    """SportsDataProvider when a key is configured, otherwise the null provider."""
    if not api_key:
        logger.info("SPORTSDATA_API_KEY not set; using synthetic baselines")
        return NullStatsProvider()
    return SportsDataProvider(api_key, rate_limit_sec=rate_limit_sec, log_requests=log_requests)
