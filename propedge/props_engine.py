"""
Player-prop evaluation engine.

Request -> validation -> FeatureAggregator -> StatisticalModel -> market
extraction -> HouseAdjustments -> fusion -> decision.

Validation failures never raise: fatal ones become an ERROR response
listing the flags, non-fatal ones (missing opponent, bad start time,
unusable odds) ride along in ``flags``.  Any unexpected fault inside the
pipeline is logged with a traceback and returned as ERROR with the generic
message "Analysis failed".
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from propedge.base_engine import (
    GENERIC_ERROR_MESSAGE,
    INTERNAL_ERROR,
    BaseEngine,
    context_notes_from,
    first_present,
    parse_event_date,
    round_or_none,
    sharp_signal_from,
    text_or_none,
)
from propedge.core.category_config import SPORT_PROFILES, normalize_sport, parse_prop
from propedge.core.interfaces import EvaluationRequest
from propedge.core.odds_math import market_probability

logger = logging.getLogger(__name__)

SIDE_OVER = "OVER"
SIDE_UNDER = "UNDER"


class PlayerPropsEngine(BaseEngine):
    """Evaluates one player prop per call.  Safe to share across requests."""

    engine_name = "PlayerPropsEngine"

    async def evaluate_prop(self, payload: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        if not isinstance(payload, Mapping):
            payload = {}
        try:
            request = self._parse(payload)
            if isinstance(request, dict):
                return request
            return await self._evaluate(request, payload)
        except Exception:
            logger.exception("Prop analysis failed for %r", payload.get("player"))
            return self.error_payload(
                [INTERNAL_ERROR],
                GENERIC_ERROR_MESSAGE,
                player=payload.get("player"),
                prop=payload.get("prop"),
                side=None,
            )

    # ------------------------------------------------------------------ #
    #  Validation                                                          #
    # ------------------------------------------------------------------ #

    def _parse(self, payload: Mapping[str, Any]):
        """EvaluationRequest, or an ERROR response dict when a fatal check fails."""
        fatal: List[str] = []
        flags: List[str] = []

        sport = normalize_sport(payload.get("sport"))
        player = text_or_none(payload.get("player"))
        prop = text_or_none(payload.get("prop"))

        if not sport:
            fatal.append("MISSING_SPORT")
        elif sport not in SPORT_PROFILES:
            fatal.append("UNSUPPORTED_SPORT")
        if not player:
            fatal.append("MISSING_PLAYER")
        if not prop:
            fatal.append("MISSING_PROP")

        category = line = None
        side = SIDE_OVER
        if prop and sport in SPORT_PROFILES:
            category, line, side = parse_prop(sport, prop)
            if category is None:
                fatal.append("UNSUPPORTED_PROP")
            if line is None:
                fatal.append("MISSING_LINE")

        if fatal:
            logger.info("Prop request rejected: %s", ", ".join(fatal))
            return self.error_payload(
                fatal,
                "Missing required data: " + ", ".join(fatal),
                player=player,
                prop=prop,
                side=None,
            )

        requested_side = str(payload.get("side") or "").strip().upper()
        if requested_side in (SIDE_OVER, SIDE_UNDER):
            side = requested_side

        opponent = text_or_none(payload.get("opponent"))
        if not opponent:
            flags.append("MISSING_OPPONENT")

        event_date, ok = parse_event_date(first_present(payload, "start_time", "startTime"))
        if not ok:
            flags.append("INVALID_START_TIME")

        odds = payload.get("odds") if isinstance(payload.get("odds"), Mapping) else {}
        return EvaluationRequest(
            sport=sport,
            category=category,
            subject=player,
            event_date=event_date,
            line=line,
            side=side,
            first_price=odds.get("over"),
            second_price=odds.get("under"),
            odds_format=first_present(payload, "odds_format", "oddsFormat") or odds.get("format"),
            opponent=opponent,
            workload=first_present(payload, "workload"),
            context_notes=context_notes_from(payload),
            sharp_signal=sharp_signal_from(payload),
            flags=flags,
        )

    # ------------------------------------------------------------------ #
    #  Pipeline                                                            #
    # ------------------------------------------------------------------ #

    async def _evaluate(self, req: EvaluationRequest, payload: Mapping[str, Any]) -> Dict[str, Any]:
        category = req.category
        aggregator = self.new_aggregator()
        features = await aggregator.build(
            req.subject,
            category,
            req.event_date,
            opponent=req.opponent,
            workload=req.workload,
        )

        stat = self.model.evaluate_prop(features, req.line, category)
        market = market_probability(req.first_price, req.second_price, req.odds_format)

        flags = list(req.flags)
        if market.is_neutral:
            flags.append("MARKET_NEUTRAL")

        suggestion = SIDE_OVER if stat.probability > 0.5 else SIDE_UNDER
        if req.side == SIDE_UNDER:
            model_p = 1.0 - stat.probability
            market_p = market.other_side
        else:
            model_p = stat.probability
            market_p = market.market_probability

        adjustment = self.house.apply(
            model_p,
            subject=req.subject,
            line=req.line,
            threshold=req.line,
            expected_value=stat.expected_value,
            std_dev=stat.std_dev,
            category=category,
            market_probability=None if market.is_neutral else market_p,
            workload=req.workload,
            context_notes=req.context_notes,
        )
        flags.extend(adjustment.flags)

        fusion, result = self.score(
            model_p,
            market_p,
            sharp_signal=req.sharp_signal,
            adjustment_delta=adjustment.delta,
            flags=flags,
        )

        side_lc = req.side.lower()
        drivers = [
            f"Model mean ≈ {stat.expected_value:.2f}, std ≈ {stat.std_dev:.2f} ({stat.distribution})",
            f"P_model_{side_lc}={model_p:.3f}, P_market_{side_lc}={market_p:.3f}",
            f"Data: {features.data_source} ({features.sample_size} games)",
        ]
        drivers.extend(adjustment.notes)
        drivers.extend(aggregator.notes)

        return {
            "player": req.subject,
            "prop": payload.get("prop"),
            "stat": category.stat,
            "line": req.line,
            "side": req.side,
            "suggestion": suggestion,
            "decision": result.decision.value,
            "final_confidence": result.final_confidence,
            "suggested_stake": result.suggested_stake,
            "top_drivers": drivers,
            "flags": list(result.flags),
            "raw_numbers": {
                "expected_value": round(stat.expected_value, 2),
                "std_dev": round(stat.std_dev, 2),
                "model_probability": round(model_p, 3),
                "market_probability": round(market_p, 3),
                "vig": round(market.vig, 3),
                "sharp_signal": req.sharp_signal,
                "adjustment_delta": round(adjustment.delta, 3),
                "fused_probability": round(fusion.calibrated_probability, 3),
                "season_avg": round_or_none(features.season_avg, 2),
                "matchup_factor": round(features.matchup_factor, 3),
                "workload_factor": round(features.workload_factor, 3),
            },
            "meta": self.meta(
                data_source=aggregator.data_source,
                used_endpoints=list(aggregator.used_endpoints),
                matched_name=aggregator.matched_name,
                sample_size=features.sample_size,
                provider=self.provider.provider_name,
            ),
        }
