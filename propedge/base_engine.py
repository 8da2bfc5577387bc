"""
Shared scaffolding for the prop and game-line engines.

An engine holds read-only configuration plus the shared data collaborator.
Everything request-scoped (the feature aggregator and its trace) is built
inside each evaluation.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np

from propedge import __version__
from propedge.config import EngineConfig
from propedge.core.decision import DecisionResult
from propedge.core.fusion import FusionResult, fuse
from propedge.core.interfaces import NameMatcher, NullStatsProvider, StatsProvider
from propedge.core.models import StatisticalModel
from propedge.services.features import FeatureAggregator
from propedge.services.house_adjustments import HouseAdjustments
from propedge.services.name_matching import build_matcher

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Analysis failed"
INTERNAL_ERROR = "INTERNAL_ERROR"


def first_present(payload: Mapping[str, Any], *keys: str) -> Any:
    """First non-empty value among ``keys`` (snake_case and camelCase aliases)."""
    for key in keys:
        value = payload.get(key)
        if value not in (None, ""):
            return value
    return None


def text_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_event_date(value: Any) -> Tuple[date, bool]:
    """Event date from an ISO timestamp; ``(today, False)`` when unparseable.

    A missing value is not an error: the event is assumed to be today.
    """
    today = datetime.now(timezone.utc).date()
    if value in (None, ""):
        return today, True
    if isinstance(value, datetime):
        return value.date(), True
    if isinstance(value, date):
        return value, True
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date(), True
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10]), True
    except ValueError:
        return today, False


def round_or_none(value: Optional[float], digits: int) -> Optional[float]:
    return None if value is None else round(float(value), digits)


class BaseEngine:
    """Config, collaborators and the fusion/decision tail shared by both engines."""

    engine_name = "BaseEngine"

    def __init__(
        self,
        provider: Optional[StatsProvider] = None,
        config: Optional[EngineConfig] = None,
        matcher: Optional[NameMatcher] = None,
    ):
        self.config = config or EngineConfig()
        self.provider = provider if provider is not None else NullStatsProvider()
        self.matcher = matcher or build_matcher(self.config.name_matcher, self.config.fuzzy_threshold)
        self.model = StatisticalModel()
        self.house = HouseAdjustments(self.config)

    def new_rng(self) -> np.random.Generator:
        return np.random.default_rng(self.config.synthetic_seed)

    def new_aggregator(self, rng: Optional[np.random.Generator] = None) -> FeatureAggregator:
        return FeatureAggregator(self.provider, self.matcher, self.config, rng=rng or self.new_rng())

    def score(
        self,
        model_probability: float,
        market_probability: float,
        *,
        sharp_signal: float,
        adjustment_delta: float,
        flags: Iterable[str],
    ) -> Tuple[FusionResult, DecisionResult]:
        fusion = fuse(
            model_probability,
            market_probability,
            sharp_signal=sharp_signal,
            adjustment_delta=adjustment_delta,
            weights=self.config.fusion,
            calibration_factor=self.config.calibration_factor,
        )
        result = DecisionResult.from_confidence(
            fusion.final_confidence, self.config.thresholds, flags
        )
        return fusion, result

    def meta(self, **extra: Any) -> Dict[str, Any]:
        out: Dict[str, Any] = {"engine": self.engine_name, "version": __version__}
        out.update(extra)
        return out

    def error_payload(
        self,
        flags: List[str],
        message: str,
        **identity: Any,
    ) -> Dict[str, Any]:
        """ERROR-shaped response carrying whatever identity fields are known."""
        result = DecisionResult.error(flags, message)
        out: Dict[str, Any] = dict(identity)
        out.update(
            suggestion=None,
            decision=result.decision.value,
            final_confidence=result.final_confidence,
            suggested_stake=result.suggested_stake,
            top_drivers=[],
            flags=list(result.flags),
            errors=list(result.flags),
            message=result.message,
            raw_numbers={},
            meta=self.meta(),
        )
        return out


def sharp_signal_from(payload: Mapping[str, Any]) -> float:
    raw = first_present(payload, "sharp_signal", "sharpSignal")
    if raw is None or isinstance(raw, bool):
        return 0.0
    try:
        return float(raw)
    except (TypeError, ValueError):
        return 0.0


def context_notes_from(payload: Mapping[str, Any]) -> str:
    """Join the free-text context fields the forms send."""
    parts = [
        first_present(payload, "venue"),
        first_present(payload, "injury_notes", "injuryNotes"),
        first_present(payload, "additional", "additional_notes", "additionalNotes"),
        first_present(payload, "context", "context_notes", "contextNotes"),
    ]
    return " ".join(str(p) for p in parts if p)
