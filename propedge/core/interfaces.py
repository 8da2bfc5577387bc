"""Data-transfer objects and collaborator interfaces for the engine pipeline.

This module defines the contracts between the pipeline stages and the two
replaceable collaborators:

* :class:`StatsProvider` — the data-fetch collaborator.  One polymorphic
  ``fetch_rows(category, time_key)`` replaces the per-sport method zoo the
  engines would otherwise have to probe for.
* :class:`NameMatcher` — best-effort identity resolution between a request's
  subject name and an upstream row.  Substring matching is the default;
  exact-key lookup can be swapped in without touching the modelling stages.

Design choices
--------------
* Both collaborators are ABCs rather than ``typing.Protocol`` so engine
  constructors can ``isinstance``-check what they were handed.
* The DTOs are frozen: every stage returns a new object and never mutates
  the output of an earlier stage.
* :class:`NullStatsProvider` is the safe stand-in when no API key is
  configured; it always returns no rows, which routes the aggregator to its
  synthetic fallback.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple

if TYPE_CHECKING:
    from propedge.core.category_config import CategoryConfig


# ---------------------------------------------------------------------------
# Time keys
# ---------------------------------------------------------------------------

TIME_KEY_DATE = "date"
TIME_KEY_WEEK = "week"
TIME_KEY_SEASON = "season"


@dataclass(frozen=True, slots=True)
class TimeKey:
    """Address of one upstream lookup: a calendar day, a week, or a season.

    Attributes:
        kind: ``"date"``, ``"week"`` or ``"season"``.
        season: Season year in the data provider's convention.
        day: Calendar day for ``"date"`` keys.
        week: Week number for ``"week"`` keys.
    """

    kind: str
    season: int
    day: Optional[date] = None
    week: Optional[int] = None

    @classmethod
    def on_date(cls, day: date, season: int) -> TimeKey:
        return cls(kind=TIME_KEY_DATE, season=season, day=day)

    @classmethod
    def for_week(cls, season: int, week: int) -> TimeKey:
        return cls(kind=TIME_KEY_WEEK, season=season, week=week)

    @classmethod
    def for_season(cls, season: int) -> TimeKey:
        return cls(kind=TIME_KEY_SEASON, season=season)

    @property
    def label(self) -> str:
        """Short form used in the endpoint-usage trace."""
        if self.kind == TIME_KEY_DATE and self.day is not None:
            return self.day.isoformat()
        if self.kind == TIME_KEY_WEEK:
            return f"week-{self.week}"
        return f"season-{self.season}"


# ---------------------------------------------------------------------------
# Pipeline DTOs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FeatureSet:
    """Recency-weighted view of a subject's recent production.

    Attributes:
        long_avg: Recency-weighted mean over every collected game (≤ quota).
        medium_avg: Recency-weighted mean over the five most recent games.
        short_avg: Recency-weighted mean over the three most recent games.
        weighted_mean: Blended expectation fed to the statistical model
            (window blend, then 60/40 with the season average if present).
        variance: Outcome variance, always ``≥ std_floor²`` for the category.
        matchup_factor: Multiplier from games against the same opponent.
        workload_factor: Multiplier from the requested workload (minutes,
            pitch count) relative to the category's typical workload.
        season_avg: Per-game season average when season data was available.
        sample_size: Number of game-level observations collected.
        data_source: ``"sportsdata"``, ``"season"`` or ``"synthetic"``.
        matched_name: Upstream name the subject resolved to, if any.
    """

    long_avg: float
    medium_avg: float
    short_avg: float
    weighted_mean: float
    variance: float
    matchup_factor: float = 1.0
    workload_factor: float = 1.0
    season_avg: Optional[float] = None
    sample_size: int = 0
    data_source: str = "synthetic"
    matched_name: Optional[str] = None

    @property
    def std(self) -> float:
        return math.sqrt(self.variance)

    @property
    def expected_value(self) -> float:
        return self.weighted_mean * self.matchup_factor * self.workload_factor


@dataclass(frozen=True, slots=True)
class StatisticalResult:
    """Model probability that the over/home side wins.

    ``probability`` is always clamped to ``[0.001, 0.999]``.
    """

    probability: float
    expected_value: float
    std_dev: float
    line: Optional[float]
    distribution: str = "normal"


@dataclass(frozen=True)
class AdjustmentResult:
    """Output of the house adjustment layer.

    ``flags`` only ever grows from one step to the next; ``delta`` is the
    net change relative to the probability the layer was handed.
    """

    adjusted_probability: float
    flags: Tuple[str, ...] = ()
    delta: float = 0.0
    notes: Tuple[str, ...] = ()


@dataclass
class EvaluationRequest:
    """Normalised request shared by the prop and game-line engines."""

    sport: str
    category: CategoryConfig
    subject: str
    event_date: date
    line: Optional[float]
    side: str
    first_price: Any = None
    second_price: Any = None
    odds_format: Optional[str] = None
    opponent: Optional[str] = None
    workload: Optional[str] = None
    context_notes: str = ""
    sharp_signal: float = 0.0
    flags: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Collaborator interfaces
# ---------------------------------------------------------------------------


class StatsProvider(ABC):
    """Contract for the data-fetch collaborator.

    Implementations must be **total**: any transport, timeout, or decoding
    failure is logged and surfaced as an empty list, never raised into the
    engine.  Rows are plain dicts carrying at least one name field and one
    or more numeric stat fields.
    """

    #: Identifier recorded in the response ``meta.data_source``.
    provider_name: str = "StatsProvider"

    @abstractmethod
    async def fetch_rows(
        self,
        category: CategoryConfig,
        time_key: TimeKey,
    ) -> List[Dict[str, Any]]:
        """Per-subject stat rows for ``category`` at ``time_key``.

        Game-level rows for ``"date"``/``"week"`` keys, season-aggregate rows
        (including a ``Games`` count) for ``"season"`` keys.
        """

    async def fetch_game_odds(
        self,
        sport: str,
        time_key: TimeKey,
    ) -> List[Dict[str, Any]]:
        """Pre-game odds rows for ``sport``.  Default: none available."""
        return []

    def endpoint_label(
        self,
        category: CategoryConfig,
        time_key: TimeKey,
    ) -> str:
        """Trace label for one lookup, e.g. ``NBA:player-stats:2025-01-05``."""
        return f"{category.sport}:{category.scope}-stats:{time_key.label}"


class NullStatsProvider(StatsProvider):
    """Provider that never has data.  Routes every request to the fallback."""

    provider_name = "fallback"

    async def fetch_rows(
        self,
        category: CategoryConfig,
        time_key: TimeKey,
    ) -> List[Dict[str, Any]]:
        return []


class NameMatcher(ABC):
    """Resolve a free-text subject name against an upstream row."""

    #: Row fields inspected for a name, in priority order.
    name_fields: Tuple[str, ...] = (
        "Name",
        "PlayerName",
        "FullName",
        "TeamName",
        "Team",
        "GlobalTeamName",
    )

    def candidate_names(self, row: Mapping[str, Any]) -> List[str]:
        """All non-empty name strings carried by ``row``."""
        names = [
            str(row[f]).strip()
            for f in self.name_fields
            if row.get(f) not in (None, "")
        ]
        first, last = row.get("FirstName"), row.get("LastName")
        if first and last:
            names.append(f"{first} {last}")
        return [n for n in names if n]

    def find_name(self, subject: str, row: Mapping[str, Any]) -> Optional[str]:
        """Return the row name that matched ``subject``, or ``None``."""
        for candidate in self.candidate_names(row):
            if self.matches(subject, candidate):
                return candidate
        return None

    @abstractmethod
    def matches(self, subject: str, candidate: str) -> bool:
        """True when ``candidate`` refers to the same subject."""
