"""Outcome-category registry — every per-sport and per-stat constant in one place.

This module is the **registry** for the numeric bounds that differ between
stat types.  Passing yards and rebounds live on scales two orders of
magnitude apart, so variance floors, caps, synthetic baselines and the
high-variance trigger are all keyed by ``(sport, stat)``.  Nowhere else in
the codebase should these be hard-coded.

Architecture
------------
* :class:`SportProfile` — cadence of the upstream data (daily or weekly),
  the backward-scan window, season conventions and home advantage.
* :class:`CategoryConfig` — one row per stat market: which upstream fields
  to sum, which distribution to price with, and its numeric bounds.

Both tables are validated by :func:`_validate_registry` at import time.  An
inconsistent row (a cap below its floor, an empty baseline range, an alias
claimed by two stats) raises ``ValueError`` before the app serves a single
request.  Looking up an unknown key raises :class:`UnknownCategoryError`
instead of silently borrowing another category's bounds.

Typical usage::

    from propedge.core.category_config import get_category, match_category

    cfg = get_category("NBA", "rebounds")
    cfg = match_category("MLB", "Strikeouts 6.5")
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Final, List, Mapping, Optional, Tuple

from propedge.core.interfaces import TimeKey

# ---------------------------------------------------------------------------
# Identifiers
# ---------------------------------------------------------------------------

SPORT_NBA: Final[str] = "NBA"
SPORT_WNBA: Final[str] = "WNBA"
SPORT_MLB: Final[str] = "MLB"
SPORT_NFL: Final[str] = "NFL"

CADENCE_DAILY: Final[str] = "daily"
CADENCE_WEEKLY: Final[str] = "weekly"

SCOPE_PLAYER: Final[str] = "player"
SCOPE_TEAM: Final[str] = "team"

DIST_NORMAL: Final[str] = "normal"
DIST_POISSON: Final[str] = "poisson"

#: Regular-season week count used to clamp NFL week arithmetic.
NFL_REGULAR_SEASON_WEEKS: Final[int] = 18


class UnknownCategoryError(KeyError):
    """Raised when a (sport, stat) pair has no registry entry."""


# ---------------------------------------------------------------------------
# Sport profiles
# ---------------------------------------------------------------------------


def _nfl_opener(season: int) -> date:
    """Thursday after Labor Day (first Monday of September)."""
    sept_first = date(season, 9, 1)
    labor_day = sept_first + timedelta(days=(7 - sept_first.weekday()) % 7)
    return labor_day + timedelta(days=3)


def nfl_week_for(day: date, season: int) -> int:
    """Regular-season week containing ``day`` (0 before the opener)."""
    delta = (day - _nfl_opener(season)).days
    if delta < 0:
        return 0
    return min(delta // 7 + 1, NFL_REGULAR_SEASON_WEEKS)


@dataclass(frozen=True)
class SportProfile:
    """Per-sport data conventions.

    Attributes:
        sport: Upper-case sport identifier used in requests and endpoints.
        sport_name: Human-readable name for logging.
        cadence: ``"daily"`` (one lookup per calendar day) or ``"weekly"``.
        lookback_steps: Maximum backward steps (days or weeks) to scan.
        scans_recent: False when the provider exposes season aggregates
            only (WNBA), which skips the game-log scan entirely.
        home_advantage: Expected home margin boost in the sport's scoring
            unit.  Used by the game-line model.
        outdoor: True when weather notes are meaningful.
    """

    sport: str
    sport_name: str
    cadence: str
    lookback_steps: int
    scans_recent: bool
    home_advantage: float
    outdoor: bool

    def season_for(self, day: date) -> int:
        """Season year in the provider's convention for an event on ``day``."""
        if self.sport == SPORT_NBA:
            # 2024-25 is season 2025
            return day.year + 1 if day.month >= 10 else day.year
        if self.sport == SPORT_NFL:
            # January/February games belong to the previous season
            return day.year if day.month >= 3 else day.year - 1
        return day.year

    def recent_time_keys(self, event_day: date) -> List[TimeKey]:
        """Backward-scan keys, most recent first, excluding the event itself."""
        if not self.scans_recent:
            return []
        season = self.season_for(event_day)
        if self.cadence == CADENCE_WEEKLY:
            current = nfl_week_for(event_day, season)
            first = max(1, current - self.lookback_steps)
            return [TimeKey.for_week(season, wk) for wk in range(current - 1, first - 1, -1)]
        keys = []
        for step in range(1, self.lookback_steps + 1):
            day = event_day - timedelta(days=step)
            keys.append(TimeKey.on_date(day, self.season_for(day)))
        return keys

    def season_time_key(self, event_day: date) -> TimeKey:
        return TimeKey.for_season(self.season_for(event_day))


SPORT_PROFILES: Dict[str, SportProfile] = {
    SPORT_NBA: SportProfile(
        sport=SPORT_NBA, sport_name="NBA", cadence=CADENCE_DAILY,
        lookback_steps=45, scans_recent=True, home_advantage=2.5, outdoor=False,
    ),
    SPORT_WNBA: SportProfile(
        sport=SPORT_WNBA, sport_name="WNBA", cadence=CADENCE_DAILY,
        lookback_steps=0, scans_recent=False, home_advantage=2.0, outdoor=False,
    ),
    SPORT_MLB: SportProfile(
        sport=SPORT_MLB, sport_name="MLB", cadence=CADENCE_DAILY,
        lookback_steps=45, scans_recent=True, home_advantage=0.15, outdoor=True,
    ),
    SPORT_NFL: SportProfile(
        sport=SPORT_NFL, sport_name="NFL", cadence=CADENCE_WEEKLY,
        lookback_steps=6, scans_recent=True, home_advantage=1.5, outdoor=True,
    ),
}


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


def _num(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class CategoryConfig:
    """Immutable bounds and parsing rules for one stat market.

    Attributes:
        sport: Sport identifier (key into :data:`SPORT_PROFILES`).
        stat: Short stat key, e.g. ``"rebounds"``.
        label: Display label used in drivers text.
        scope: ``"player"`` or ``"team"``.
        aliases: Lower-case phrases that identify the stat in free prop text.
        stat_fields: Upstream row fields summed to produce the stat value
            (``points + rebounds + assists`` for PRA).
        distribution: ``"normal"`` or ``"poisson"``.
        baseline_range: ``(lo, hi)`` uniform range for the synthetic fallback.
        std_floor: Minimum standard deviation; keeps distributions non-degenerate.
        std_cap: Maximum standard deviation.
        variance_ratio: ``std ≈ mean × ratio`` when fewer than three games exist.
        high_variance_std: Standard deviation above which the house layer
            applies its variance penalty.
        typical_workload: Reference workload (minutes, pitches, snaps) for
            the workload factor; ``None`` disables it.
        ev_adjustment: Additive shift applied to the expected value.
    """

    sport: str
    stat: str
    label: str
    scope: str
    aliases: Tuple[str, ...]
    stat_fields: Tuple[str, ...]
    distribution: str
    baseline_range: Tuple[float, float]
    std_floor: float
    std_cap: float
    variance_ratio: float
    high_variance_std: float
    typical_workload: Optional[float] = None
    ev_adjustment: float = 0.0

    @property
    def key(self) -> Tuple[str, str]:
        return (self.sport, self.stat)

    @property
    def is_poisson(self) -> bool:
        return self.distribution == DIST_POISSON

    def stat_value(self, row: Mapping[str, Any]) -> Optional[float]:
        """Sum of ``stat_fields`` in ``row``; ``None`` if any field is missing."""
        total = 0.0
        for f in self.stat_fields:
            v = _num(row.get(f))
            if v is None:
                return None
            total += v
        return total

    def season_per_game(self, row: Mapping[str, Any]) -> Optional[float]:
        """Per-game average from a season-aggregate row (needs ``Games > 0``)."""
        games = _num(row.get("Games"))
        total = self.stat_value(row)
        if total is None or not games or games <= 0:
            return None
        return total / games

    def bound_std(self, std: float) -> float:
        """Clamp a standard deviation into ``[std_floor, std_cap]``."""
        return max(self.std_floor, min(self.std_cap, std))


def _cat(sport: str, stat: str, label: str, aliases, fields, dist, baseline,
         floor, cap, high_var, *, scope: str = SCOPE_PLAYER, ratio: float = 0.25,
         workload: Optional[float] = None) -> CategoryConfig:
    return CategoryConfig(
        sport=sport, stat=stat, label=label, scope=scope,
        aliases=tuple(aliases), stat_fields=tuple(fields), distribution=dist,
        baseline_range=baseline, std_floor=floor, std_cap=cap,
        variance_ratio=ratio, high_variance_std=high_var,
        typical_workload=workload,
    )


_CATEGORY_ROWS: Tuple[CategoryConfig, ...] = (
    # --- NBA ----------------------------------------------------------------
    _cat(SPORT_NBA, "pra", "Pts+Reb+Ast",
         ("pra", "pts+reb+ast", "points+rebounds+assists", "points rebounds assists"),
         ("Points", "Rebounds", "Assists"), DIST_NORMAL, (15.0, 45.0), 4.0, 12.0, 10.0,
         workload=32.0),
    _cat(SPORT_NBA, "points", "Points", ("points", "pts"), ("Points",),
         DIST_NORMAL, (8.0, 30.0), 3.0, 9.0, 7.5, workload=32.0),
    _cat(SPORT_NBA, "rebounds", "Rebounds", ("rebounds", "rebs", "reb", "boards"),
         ("Rebounds",), DIST_NORMAL, (3.0, 13.0), 1.2, 4.0, 3.4, workload=32.0),
    _cat(SPORT_NBA, "assists", "Assists", ("assists", "asts", "ast", "dimes"),
         ("Assists",), DIST_NORMAL, (2.0, 10.0), 1.0, 3.5, 3.0, workload=32.0),
    _cat(SPORT_NBA, "threes", "3-Pointers Made",
         ("threes", "3pm", "3-pointers", "three pointers", "3pt"),
         ("ThreePointersMade",), DIST_POISSON, (0.5, 4.5), 0.8, 2.0, 1.8),
    _cat(SPORT_NBA, "steals", "Steals", ("steals", "stl"), ("Steals",),
         DIST_POISSON, (0.5, 2.5), 0.5, 1.5, 1.4),
    _cat(SPORT_NBA, "blocks", "Blocks", ("blocks", "blk", "blocked shots"),
         ("BlockedShots",), DIST_POISSON, (0.3, 2.5), 0.5, 1.5, 1.4),
    _cat(SPORT_NBA, "team_points", "Team Points", ("team points",), ("Points",),
         DIST_NORMAL, (104.0, 122.0), 8.0, 16.0, 14.0, scope=SCOPE_TEAM, ratio=0.10),

    # --- WNBA (season aggregates only) ---------------------------------------
    _cat(SPORT_WNBA, "pra", "Pts+Reb+Ast",
         ("pra", "pts+reb+ast", "points+rebounds+assists", "points rebounds assists"),
         ("Points", "Rebounds", "Assists"), DIST_NORMAL, (10.0, 35.0), 3.5, 10.0, 8.5,
         workload=30.0),
    _cat(SPORT_WNBA, "points", "Points", ("points", "pts"), ("Points",),
         DIST_NORMAL, (6.0, 24.0), 2.5, 8.0, 6.5, workload=30.0),
    _cat(SPORT_WNBA, "rebounds", "Rebounds", ("rebounds", "rebs", "reb", "boards"),
         ("Rebounds",), DIST_NORMAL, (2.5, 10.0), 1.0, 3.5, 3.0, workload=30.0),
    _cat(SPORT_WNBA, "assists", "Assists", ("assists", "asts", "ast", "dimes"),
         ("Assists",), DIST_NORMAL, (1.5, 8.0), 0.9, 3.0, 2.6, workload=30.0),
    _cat(SPORT_WNBA, "threes", "3-Pointers Made",
         ("threes", "3pm", "3-pointers", "three pointers", "3pt"),
         ("ThreePointersMade",), DIST_POISSON, (0.4, 3.5), 0.7, 1.8, 1.6),
    _cat(SPORT_WNBA, "team_points", "Team Points", ("team points",), ("Points",),
         DIST_NORMAL, (74.0, 90.0), 7.0, 14.0, 12.0, scope=SCOPE_TEAM, ratio=0.10),

    # --- MLB ----------------------------------------------------------------
    _cat(SPORT_MLB, "strikeouts", "Strikeouts",
         ("pitcher strikeouts", "strikeouts", "strikeout", "ks", "k's"),
         ("PitchingStrikeouts",), DIST_POISSON, (3.0, 9.0), 1.2, 3.5, 3.0,
         workload=95.0),
    _cat(SPORT_MLB, "total_bases", "Total Bases", ("total bases", "tb"),
         ("TotalBases",), DIST_POISSON, (0.8, 2.6), 0.8, 2.2, 2.0),
    _cat(SPORT_MLB, "hits_allowed", "Hits Allowed", ("hits allowed",),
         ("PitchingHits",), DIST_POISSON, (3.5, 7.5), 1.3, 3.2, 2.8, workload=95.0),
    _cat(SPORT_MLB, "hits", "Hits", ("hits",), ("Hits",),
         DIST_POISSON, (0.4, 1.8), 0.5, 1.5, 1.3),
    _cat(SPORT_MLB, "rbis", "RBIs", ("rbis", "rbi", "runs batted in"),
         ("RunsBattedIn",), DIST_POISSON, (0.2, 1.4), 0.4, 1.4, 1.2),
    _cat(SPORT_MLB, "team_runs", "Team Runs", ("team runs",), ("Runs",),
         DIST_NORMAL, (3.2, 6.0), 1.8, 3.8, 3.4, scope=SCOPE_TEAM, ratio=0.55),

    # --- NFL ----------------------------------------------------------------
    _cat(SPORT_NFL, "passing_yards", "Passing Yards",
         ("passing yards", "pass yards", "pass yds", "passing yds"),
         ("PassingYards",), DIST_NORMAL, (180.0, 320.0), 35.0, 90.0, 75.0),
    _cat(SPORT_NFL, "rushing_yards", "Rushing Yards",
         ("rushing yards", "rush yards", "rush yds", "rushing yds"),
         ("RushingYards",), DIST_NORMAL, (30.0, 110.0), 15.0, 45.0, 38.0),
    _cat(SPORT_NFL, "receiving_yards", "Receiving Yards",
         ("receiving yards", "rec yards", "rec yds", "receiving yds"),
         ("ReceivingYards",), DIST_NORMAL, (25.0, 95.0), 15.0, 45.0, 38.0),
    _cat(SPORT_NFL, "receptions", "Receptions", ("receptions", "catches", "recs"),
         ("Receptions",), DIST_NORMAL, (2.0, 8.0), 1.2, 3.5, 3.0),
    _cat(SPORT_NFL, "passing_tds", "Passing TDs",
         ("passing touchdowns", "passing tds", "pass tds", "passing td"),
         ("PassingTouchdowns",), DIST_POISSON, (0.8, 2.6), 0.6, 1.6, 1.5),
    _cat(SPORT_NFL, "team_points", "Team Points", ("team points",), ("Score",),
         DIST_NORMAL, (17.0, 30.0), 7.0, 14.0, 12.0, scope=SCOPE_TEAM, ratio=0.35),
)


def _validate_registry(rows: Tuple[CategoryConfig, ...]) -> Dict[Tuple[str, str], CategoryConfig]:
    """Check every row for internal consistency and index it by key.

    Raises:
        ValueError: On the first inconsistent row.
    """
    index: Dict[Tuple[str, str], CategoryConfig] = {}
    aliases_seen: Dict[Tuple[str, str], str] = {}
    team_rows: Dict[str, int] = {}

    for cfg in rows:
        where = f"{cfg.sport}/{cfg.stat}"
        if cfg.sport not in SPORT_PROFILES:
            raise ValueError(f"{where}: sport has no SportProfile.")
        if cfg.key in index:
            raise ValueError(f"{where}: duplicate category key.")
        if cfg.distribution not in (DIST_NORMAL, DIST_POISSON):
            raise ValueError(f"{where}: unknown distribution {cfg.distribution!r}.")
        if cfg.scope not in (SCOPE_PLAYER, SCOPE_TEAM):
            raise ValueError(f"{where}: unknown scope {cfg.scope!r}.")
        if not cfg.stat_fields:
            raise ValueError(f"{where}: no stat fields.")
        if not (0.0 < cfg.std_floor <= cfg.std_cap):
            raise ValueError(
                f"{where}: need 0 < std_floor ({cfg.std_floor}) ≤ std_cap ({cfg.std_cap})."
            )
        lo, hi = cfg.baseline_range
        if not (0.0 < lo < hi):
            raise ValueError(f"{where}: baseline range {cfg.baseline_range} is empty.")
        if cfg.variance_ratio <= 0.0 or cfg.high_variance_std <= 0.0:
            raise ValueError(f"{where}: variance ratio and threshold must be positive.")
        if cfg.typical_workload is not None and cfg.typical_workload <= 0.0:
            raise ValueError(f"{where}: typical workload must be positive.")
        for alias in cfg.aliases:
            owner = aliases_seen.get((cfg.sport, alias))
            if owner is not None:
                raise ValueError(f"{where}: alias {alias!r} already used by {owner}.")
            aliases_seen[(cfg.sport, alias)] = cfg.stat
        if cfg.scope == SCOPE_TEAM:
            team_rows[cfg.sport] = team_rows.get(cfg.sport, 0) + 1
        index[cfg.key] = cfg

    for sport in SPORT_PROFILES:
        if team_rows.get(sport) != 1:
            raise ValueError(f"{sport}: exactly one team category is required.")
    return index


CATEGORIES: Dict[Tuple[str, str], CategoryConfig] = _validate_registry(_CATEGORY_ROWS)


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


def normalize_sport(sport: Any) -> str:
    return str(sport or "").strip().upper()


def get_sport_profile(sport: str) -> SportProfile:
    try:
        return SPORT_PROFILES[normalize_sport(sport)]
    except KeyError:
        raise UnknownCategoryError(f"Unsupported sport {sport!r}") from None


def get_category(sport: str, stat: str) -> CategoryConfig:
    """Exact lookup by key.

    Raises:
        UnknownCategoryError: If ``(sport, stat)`` is not registered.
    """
    key = (normalize_sport(sport), str(stat or "").strip().lower())
    try:
        return CATEGORIES[key]
    except KeyError:
        raise UnknownCategoryError(f"No category registered for {key!r}") from None


def team_category(sport: str) -> CategoryConfig:
    """The single team-scoring category for ``sport``."""
    profile = get_sport_profile(sport)
    for cfg in CATEGORIES.values():
        if cfg.sport == profile.sport and cfg.scope == SCOPE_TEAM:
            return cfg
    raise UnknownCategoryError(f"No team category for {sport!r}")


def _alias_pattern(alias: str) -> re.Pattern:
    return re.compile(r"(?<![a-z0-9])" + re.escape(alias) + r"(?![a-z0-9])")


def _find_category(sport: str, text: str) -> Tuple[Optional[CategoryConfig], Optional[re.Match]]:
    sport = normalize_sport(sport)
    candidates = sorted(
        (
            (alias, cfg)
            for cfg in CATEGORIES.values()
            if cfg.sport == sport and cfg.scope == SCOPE_PLAYER
            for alias in cfg.aliases
        ),
        key=lambda pair: len(pair[0]),
        reverse=True,
    )
    for alias, cfg in candidates:
        m = _alias_pattern(alias).search(text)
        if m:
            return cfg, m
    return None, None


def match_category(sport: str, prop_text: str) -> Optional[CategoryConfig]:
    """Identify the player stat named in free prop text.

    Aliases are tried longest first so ``"hits allowed"`` wins over
    ``"hits"`` and ``"pts+reb+ast"`` over ``"pts"``.
    """
    return _find_category(sport, str(prop_text or "").lower())[0]


_LINE_RE = re.compile(r"(\d+(?:\.\d+)?)")


def parse_line(prop_text: Any) -> Optional[float]:
    """First number in the prop text: ``"Rebounds 6.5"`` → 6.5."""
    m = _LINE_RE.search(str(prop_text or ""))
    return float(m.group(1)) if m else None


def parse_side(prop_text: Any, default: str = "OVER") -> str:
    """``"UNDER"`` when the text names the under (``u``/``under``), else ``default``."""
    text = str(prop_text or "").lower()
    if re.search(r"(?<![a-z])(under|u)(?![a-z])", text):
        return "UNDER"
    if re.search(r"(?<![a-z])(over|o)(?![a-z])", text):
        return "OVER"
    return default


def parse_prop(
    sport: str, prop_text: Any
) -> Tuple[Optional[CategoryConfig], Optional[float], str]:
    """Split free prop text into ``(category, line, side)``.

    ``parse_prop("NBA", "Over 6.5 Rebounds")`` → ``(rebounds cfg, 6.5, "OVER")``.
    Missing pieces come back as ``None``; the caller decides which are fatal.
    The matched stat name is cut out before the line is read, so digits
    inside an alias (``"3PM 2.5"``) never become the line.
    """
    text = str(prop_text or "")
    category, m = _find_category(sport, text.lower())
    remainder = text[: m.start()] + " " + text[m.end():] if m else text
    return category, parse_line(remainder), parse_side(remainder)
