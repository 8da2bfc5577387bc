"""
Feature aggregation: recent game logs and season averages -> FeatureSet.

One FeatureAggregator is built per evaluation.  It owns the request-scoped
trace (used endpoints, matched name, data source, notes) so concurrent
evaluations never share mutable state.

Pipeline
--------
1. Backward scan from the event date (days for NBA/MLB, weeks for NFL),
   stopping once ``config.sample_quota`` observations are collected.
2. Season aggregate lookup; per-game season average blended 60/40 with the
   recent mean, or used alone when no game logs matched.
3. Recency-weighted long / medium / short windows (decay 0.85 per game).
4. Variance from the sample (ddof=1) or from the category variance ratio,
   bounded to the category floor/cap.
5. Matchup and workload multipliers.
6. Nothing found at all -> synthetic baseline from the category range.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

import numpy as np

from propedge.config import EngineConfig
from propedge.core.category_config import CategoryConfig, get_sport_profile
from propedge.core.interfaces import FeatureSet, NameMatcher, NullStatsProvider, StatsProvider
from propedge.core.stats import clamp
from propedge.services.name_matching import SubstringNameMatcher

logger = logging.getLogger(__name__)

DATA_SOURCE_SPORTSDATA = "sportsdata"
DATA_SOURCE_SEASON = "season"
DATA_SOURCE_SYNTHETIC = "synthetic"

RECENCY_DECAY = 0.85
MEDIUM_WINDOW = 5
SHORT_WINDOW = 3

# long / medium / short blend
WINDOW_WEIGHTS = (0.25, 0.35, 0.40)

MATCHUP_BOUNDS = (0.85, 1.15)
WORKLOAD_BOUNDS = (0.70, 1.20)

_NUMBER_RE = re.compile(r"(\d+(?:\.\d+)?)")
_OPPONENT_FIELDS = ("Opponent", "OpponentName", "GlobalOpponentID")


def parse_workload(workload: Any) -> Optional[float]:
    """Numeric workload from free text ("34 min", "95 pitches"); AUTO -> None."""
    if workload is None:
        return None
    if isinstance(workload, (int, float)) and not isinstance(workload, bool):
        value = float(workload)
    else:
        text = str(workload).strip()
        if not text or text.upper() == "AUTO":
            return None
        m = _NUMBER_RE.search(text)
        if not m:
            return None
        value = float(m.group(1))
    return value if math.isfinite(value) and value > 0 else None


def recency_weighted_mean(values: List[float], decay: float = RECENCY_DECAY) -> float:
    """Mean of ``values`` (most recent first) with weights ``decay**i``."""
    arr = np.asarray(values, dtype=float)
    weights = decay ** np.arange(len(arr))
    return float(np.average(arr, weights=weights))


@dataclass
class _Observation:
    value: float
    vs_opponent: bool


class FeatureAggregator:
    """Request-scoped FeatureSet builder."""

    def __init__(
        self,
        provider: Optional[StatsProvider],
        matcher: Optional[NameMatcher],
        config: EngineConfig,
        rng: Optional[np.random.Generator] = None,
    ):
        self.provider = provider
        self.matcher = matcher or SubstringNameMatcher()
        self.config = config
        self.rng = rng if rng is not None else np.random.default_rng(config.synthetic_seed)

        self.used_endpoints: List[str] = []
        self.matched_name: Optional[str] = None
        self.data_source: str = DATA_SOURCE_SYNTHETIC
        self.notes: List[str] = []

    @property
    def has_provider(self) -> bool:
        return self.provider is not None and not isinstance(self.provider, NullStatsProvider)

    # ------------------------------------------------------------------ #
    #  Public                                                              #
    # ------------------------------------------------------------------ #

    async def build(
        self,
        subject: str,
        category: CategoryConfig,
        event_date: date,
        *,
        opponent: Optional[str] = None,
        workload: Any = None,
    ) -> FeatureSet:
        workload_factor = self._workload_factor(workload, category)

        if not self.has_provider:
            self.notes.append("No data provider configured; synthetic baseline used")
            return self._synthetic(subject, category, workload_factor)

        observations = await self._scan_recent(subject, category, event_date, opponent)
        season_avg = await self._season_average(subject, category, event_date)

        if not observations and season_avg is None:
            self.notes.append(f"No stats found for {subject}; synthetic baseline used")
            return self._synthetic(subject, category, workload_factor)

        if observations:
            values = [o.value for o in observations]
            long_avg = recency_weighted_mean(values)
            medium_avg = recency_weighted_mean(values[:MEDIUM_WINDOW])
            short_avg = recency_weighted_mean(values[:SHORT_WINDOW])
            w_long, w_medium, w_short = WINDOW_WEIGHTS
            recent = w_long * long_avg + w_medium * medium_avg + w_short * short_avg
            if season_avg is not None:
                rw = self.config.recent_weight
                weighted_mean = rw * recent + (1.0 - rw) * season_avg
            else:
                weighted_mean = recent
            self.data_source = DATA_SOURCE_SPORTSDATA
        else:
            values = []
            long_avg = medium_avg = short_avg = weighted_mean = season_avg
            self.data_source = DATA_SOURCE_SEASON

        std = self._bounded_std(values, weighted_mean, category)
        return FeatureSet(
            long_avg=long_avg,
            medium_avg=medium_avg,
            short_avg=short_avg,
            weighted_mean=weighted_mean,
            variance=std * std,
            matchup_factor=self._matchup_factor(observations),
            workload_factor=workload_factor,
            season_avg=season_avg,
            sample_size=len(observations),
            data_source=self.data_source,
            matched_name=self.matched_name,
        )

    # ------------------------------------------------------------------ #
    #  Upstream lookups                                                    #
    # ------------------------------------------------------------------ #

    def _match_row(self, subject: str, rows: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        for row in rows:
            name = self.matcher.find_name(subject, row)
            if name is not None:
                if self.matched_name is None:
                    self.matched_name = name
                return row
        return None

    def _is_vs_opponent(self, opponent: Optional[str], row: Mapping[str, Any]) -> bool:
        if not opponent:
            return False
        for f in _OPPONENT_FIELDS:
            value = row.get(f)
            if value in (None, ""):
                continue
            value = str(value)
            if self.matcher.matches(opponent, value) or self.matcher.matches(value, opponent):
                return True
        return False

    async def _scan_recent(
        self,
        subject: str,
        category: CategoryConfig,
        event_date: date,
        opponent: Optional[str],
    ) -> List[_Observation]:
        profile = get_sport_profile(category.sport)
        quota = self.config.sample_quota
        observations: List[_Observation] = []

        for time_key in profile.recent_time_keys(event_date):
            if len(observations) >= quota:
                break
            self.used_endpoints.append(self.provider.endpoint_label(category, time_key))
            rows = await self.provider.fetch_rows(category, time_key)
            row = self._match_row(subject, rows)
            if row is None:
                continue
            value = category.stat_value(row)
            if value is None:
                continue
            observations.append(_Observation(value, self._is_vs_opponent(opponent, row)))

        return observations

    async def _season_average(
        self,
        subject: str,
        category: CategoryConfig,
        event_date: date,
    ) -> Optional[float]:
        time_key = get_sport_profile(category.sport).season_time_key(event_date)
        self.used_endpoints.append(self.provider.endpoint_label(category, time_key))
        rows = await self.provider.fetch_rows(category, time_key)
        row = self._match_row(subject, rows)
        if row is None:
            return None
        return category.season_per_game(row)

    # ------------------------------------------------------------------ #
    #  Derived quantities                                                  #
    # ------------------------------------------------------------------ #

    def _bounded_std(self, values: List[float], mean: float, category: CategoryConfig) -> float:
        if len(values) >= 3:
            std = math.sqrt(float(np.var(np.asarray(values, dtype=float), ddof=1)))
        else:
            std = abs(mean) * category.variance_ratio
        return category.bound_std(std)

    def _matchup_factor(self, observations: List[_Observation]) -> float:
        vs = [o.value for o in observations if o.vs_opponent]
        if not vs:
            return 1.0
        overall = float(np.mean([o.value for o in observations]))
        if overall <= 0:
            return 1.0
        lo, hi = MATCHUP_BOUNDS
        return clamp(float(np.mean(vs)) / overall, lo, hi)

    def _workload_factor(self, workload: Any, category: CategoryConfig) -> float:
        value = parse_workload(workload)
        if value is None or category.typical_workload is None:
            return 1.0
        lo, hi = WORKLOAD_BOUNDS
        return clamp(value / category.typical_workload, lo, hi)

    def _synthetic(self, subject: str, category: CategoryConfig, workload_factor: float) -> FeatureSet:
        lo, hi = category.baseline_range
        mean = float(self.rng.uniform(lo, hi))
        std = category.bound_std(mean * category.variance_ratio)
        self.data_source = DATA_SOURCE_SYNTHETIC
        logger.info(
            "Synthetic baseline for %s (%s/%s): mean=%.2f std=%.2f",
            subject, category.sport, category.stat, mean, std,
        )
        return FeatureSet(
            long_avg=mean,
            medium_avg=mean,
            short_avg=mean,
            weighted_mean=mean,
            variance=std * std,
            workload_factor=workload_factor,
            sample_size=0,
            data_source=DATA_SOURCE_SYNTHETIC,
            matched_name=self.matched_name,
        )
