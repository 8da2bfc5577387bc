"""
Game-line evaluation engine: moneyline, spread and total.

Both teams are aggregated with the sport's team-scoring category, priced as
an independent-Normal margin (ML/SPREAD) or sum (TOTAL), then run through
the same house / fusion / decision tail as props.

Market source, in order:
    1. Two prices on the request (home/away, or over/under for totals).
    2. The provider's pre-game odds row matching both teams.  Spread and
       total prices fall back to neutral 0.5 when the row has none.
    3. Nothing matched -> neutral 0.5 and the NO_MARKET flag.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Tuple

from propedge.base_engine import (
    GENERIC_ERROR_MESSAGE,
    INTERNAL_ERROR,
    BaseEngine,
    context_notes_from,
    first_present,
    parse_event_date,
    sharp_signal_from,
    text_or_none,
)
from propedge.core.category_config import (
    CADENCE_WEEKLY,
    SPORT_PROFILES,
    SportProfile,
    nfl_week_for,
    normalize_sport,
    team_category,
)
from propedge.core.interfaces import TimeKey
from propedge.core.models import GAME_MARKETS, MARKET_ML, MARKET_SPREAD, MARKET_TOTAL
from propedge.core.odds_math import (
    NEUTRAL_MARKET,
    MarketResult,
    market_from_american,
    market_probability,
)

logger = logging.getLogger(__name__)

SIDE_HOME = "HOME"
SIDE_AWAY = "AWAY"
SIDE_OVER = "OVER"
SIDE_UNDER = "UNDER"

_SIDES = {
    MARKET_ML: (SIDE_HOME, SIDE_AWAY),
    MARKET_SPREAD: (SIDE_HOME, SIDE_AWAY),
    MARKET_TOTAL: (SIDE_OVER, SIDE_UNDER),
}


def _num(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def odds_time_key(profile: SportProfile, event_date) -> TimeKey:
    season = profile.season_for(event_date)
    if profile.cadence == CADENCE_WEEKLY:
        return TimeKey.for_week(season, max(1, nfl_week_for(event_date, season)))
    return TimeKey.on_date(event_date, season)


class GameLinesEngine(BaseEngine):
    """Evaluates one game line per call.  Safe to share across requests."""

    engine_name = "GameLinesEngine"

    async def evaluate_game(self, payload: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        if not isinstance(payload, Mapping):
            payload = {}
        home = text_or_none(first_present(payload, "home_team", "homeTeam"))
        away = text_or_none(first_present(payload, "away_team", "awayTeam"))
        try:
            return await self._evaluate(payload, home, away)
        except Exception:
            logger.exception("Game analysis failed for %s @ %s", away, home)
            return self.error_payload(
                [INTERNAL_ERROR],
                GENERIC_ERROR_MESSAGE,
                home_team=home,
                away_team=away,
                market=payload.get("market"),
                side=None,
            )

    # ------------------------------------------------------------------ #
    #  Market lookup                                                       #
    # ------------------------------------------------------------------ #

    def _team_matches(self, team: str, row: Mapping[str, Any], fields: Tuple[str, ...]) -> bool:
        for f in fields:
            value = row.get(f)
            if value in (None, ""):
                continue
            value = str(value)
            if self.matcher.matches(team, value) or self.matcher.matches(value, team):
                return True
        return False

    async def _provider_odds(
        self,
        sport: str,
        profile: SportProfile,
        event_date,
        home: str,
        away: str,
        used_endpoints: List[str],
    ) -> Optional[Dict[str, Any]]:
        time_key = odds_time_key(profile, event_date)
        used_endpoints.append(f"{sport}:game-odds:{time_key.label}")
        rows = await self.provider.fetch_game_odds(sport, time_key)
        for row in rows:
            if self._team_matches(home, row, ("HomeTeamName", "HomeTeam")) and self._team_matches(
                away, row, ("AwayTeamName", "AwayTeam")
            ):
                pregame = row.get("PregameOdds")
                if isinstance(pregame, list) and pregame and isinstance(pregame[0], dict):
                    return pregame[0]
                return {}
        return None

    @staticmethod
    def _lines_from(odds: Mapping[str, Any]) -> Dict[str, Optional[float]]:
        spread = _num(odds.get("HomePointSpread"))
        if spread is None:
            spread = _num(odds.get("Spread"))
        return {
            "spread": spread,
            "total": _num(odds.get("OverUnder")),
            "moneyline_home": _num(odds.get("HomeMoneyLine")),
            "moneyline_away": _num(odds.get("AwayMoneyLine")),
        }

    @staticmethod
    def _market_from_row(market: str, odds: Mapping[str, Any]) -> MarketResult:
        if market == MARKET_ML:
            return market_from_american(odds.get("HomeMoneyLine"), odds.get("AwayMoneyLine"))
        if market == MARKET_SPREAD:
            return market_from_american(
                odds.get("HomePointSpreadPayout"), odds.get("AwayPointSpreadPayout")
            )
        return market_from_american(odds.get("OverPayout"), odds.get("UnderPayout"))

    # ------------------------------------------------------------------ #
    #  Pipeline                                                            #
    # ------------------------------------------------------------------ #

    async def _evaluate(
        self,
        payload: Mapping[str, Any],
        home: Optional[str],
        away: Optional[str],
    ) -> Dict[str, Any]:
        fatal: List[str] = []
        flags: List[str] = []

        sport = normalize_sport(payload.get("sport"))
        market = str(payload.get("market") or MARKET_SPREAD).strip().upper()
        if not sport:
            fatal.append("MISSING_SPORT")
        elif sport not in SPORT_PROFILES:
            fatal.append("UNSUPPORTED_SPORT")
        if not home:
            fatal.append("MISSING_HOME_TEAM")
        if not away:
            fatal.append("MISSING_AWAY_TEAM")
        if market not in GAME_MARKETS:
            fatal.append("UNSUPPORTED_MARKET")

        identity = dict(home_team=home, away_team=away, market=market, side=None)
        if fatal:
            logger.info("Game request rejected: %s", ", ".join(fatal))
            return self.error_payload(fatal, "Missing required data: " + ", ".join(fatal), **identity)

        profile = SPORT_PROFILES[sport]
        category = team_category(sport)
        first_side, second_side = _SIDES[market]
        side = str(payload.get("side") or "").strip().upper() or first_side
        if side not in (first_side, second_side):
            flags.append("INVALID_SIDE")
            side = first_side

        event_date, ok = parse_event_date(first_present(payload, "start_time", "startTime"))
        if not ok:
            flags.append("INVALID_START_TIME")

        # Market
        used_endpoints: List[str] = []
        line = _num(payload.get("line"))
        odds = payload.get("odds") if isinstance(payload.get("odds"), Mapping) else {}
        if market == MARKET_TOTAL:
            first_price, second_price = odds.get("over"), odds.get("under")
        else:
            first_price, second_price = odds.get("home"), odds.get("away")

        lines: Dict[str, Optional[float]] = {}
        if first_price is not None or second_price is not None:
            market_result = market_probability(
                first_price, second_price, first_present(payload, "odds_format", "oddsFormat")
            )
        else:
            row_odds = await self._provider_odds(sport, profile, event_date, home, away, used_endpoints)
            if row_odds is None:
                flags.append("NO_MARKET")
                market_result = NEUTRAL_MARKET
            else:
                lines = self._lines_from(row_odds)
                market_result = self._market_from_row(market, row_odds)
                if line is None and market == MARKET_SPREAD:
                    line = lines["spread"]
                elif line is None and market == MARKET_TOTAL:
                    line = lines["total"]
        if market_result.is_neutral and "NO_MARKET" not in flags:
            flags.append("MARKET_NEUTRAL")

        if market != MARKET_ML and line is None:
            return self.error_payload(["MISSING_LINE"], "Missing required data: MISSING_LINE", **identity)

        # Features
        rng = self.new_rng()
        home_agg = self.new_aggregator(rng)
        away_agg = self.new_aggregator(rng)
        home_fs = await home_agg.build(home, category, event_date, opponent=away)
        away_fs = await away_agg.build(away, category, event_date, opponent=home)
        used_endpoints.extend(home_agg.used_endpoints)
        used_endpoints.extend(away_agg.used_endpoints)

        stat = self.model.evaluate_game(home_fs, away_fs, market, line, profile)
        if market == MARKET_TOTAL:
            suggestion = SIDE_OVER if stat.probability > 0.5 else SIDE_UNDER
        else:
            suggestion = SIDE_HOME if stat.probability > 0.5 else SIDE_AWAY

        if side == second_side:
            model_p = 1.0 - stat.probability
            market_p = market_result.other_side
        else:
            model_p = stat.probability
            market_p = market_result.market_probability

        threshold = None
        if market == MARKET_SPREAD:
            threshold = -line
        elif market == MARKET_TOTAL:
            threshold = line

        subject = home if side == SIDE_HOME else away if side == SIDE_AWAY else f"{away} @ {home}"
        adjustment = self.house.apply(
            model_p,
            subject=subject,
            line=line,
            threshold=threshold,
            expected_value=stat.expected_value,
            std_dev=stat.std_dev,
            category=category,
            market_probability=None if market_result.is_neutral else market_p,
            context_notes=context_notes_from(payload),
            high_variance_std=category.high_variance_std * math.sqrt(2.0),
        )
        flags.extend(adjustment.flags)

        sharp = sharp_signal_from(payload)
        fusion, result = self.score(
            model_p,
            market_p,
            sharp_signal=sharp,
            adjustment_delta=adjustment.delta,
            flags=flags,
        )

        label = "Total" if market == MARKET_TOTAL else "Margin"
        drivers = [
            f"{label} ≈ {stat.expected_value:.2f}, std ≈ {stat.std_dev:.2f}",
            f"Model p={model_p:.3f}, Market p={market_p:.3f}",
            f"Line={line if line is not None else 'N/A'}",
        ]
        drivers.extend(adjustment.notes)
        drivers.extend(home_agg.notes)
        drivers.extend(away_agg.notes)

        sources = {home_agg.data_source, away_agg.data_source}
        data_source = sources.pop() if len(sources) == 1 else f"{home_agg.data_source}/{away_agg.data_source}"

        return {
            "home_team": home,
            "away_team": away,
            "market": market,
            "line": line,
            "side": side,
            "suggestion": suggestion,
            "decision": result.decision.value,
            "final_confidence": result.final_confidence,
            "suggested_stake": result.suggested_stake,
            "top_drivers": drivers,
            "flags": list(result.flags),
            "lines": lines,
            "raw_numbers": {
                "expected_value": round(stat.expected_value, 2),
                "std_dev": round(stat.std_dev, 2),
                "model_probability": round(model_p, 3),
                "market_probability": round(market_p, 3),
                "edge": round(model_p - market_p, 3),
                "vig": round(market_result.vig, 3),
                "sharp_signal": sharp,
                "adjustment_delta": round(adjustment.delta, 3),
                "fused_probability": round(fusion.calibrated_probability, 3),
            },
            "meta": self.meta(
                data_source=data_source,
                used_endpoints=used_endpoints,
                matched_name={"home": home_agg.matched_name, "away": away_agg.matched_name},
                sample_size={"home": home_fs.sample_size, "away": away_fs.sample_size},
                provider=self.provider.provider_name,
            ),
        }
