"""
Pydantic request schemas for the PropEdge API.

Request bodies are deliberately permissive: every field is optional and
unknown fields are kept.  Missing or malformed inputs are reported by the
engines as flags on an ERROR response instead of a 422, so the form always
gets a result it can render.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

_PERMISSIVE = ConfigDict(extra="allow", populate_by_name=True)


# ---------------------------------------------------------------------------
# Analysis requests
# ---------------------------------------------------------------------------

class OddsPair(BaseModel):
    """Two-sided price.  Props send over/under, game lines home/away."""

    model_config = _PERMISSIVE

    over: Optional[Any] = None
    under: Optional[Any] = None
    home: Optional[Any] = None
    away: Optional[Any] = None
    format: Optional[str] = None


class PropRequest(BaseModel):
    """Payload for POST /api/analyze-prop."""

    model_config = ConfigDict(
        extra="allow",
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "sport": "NBA",
                "player": "Jalen Brunson",
                "opponent": "Boston Celtics",
                "prop": "Over 6.5 Assists",
                "odds": {"over": 1.87, "under": 1.95},
                "startTime": "2025-01-05T19:30:00-05:00",
                "workload": "AUTO",
            }
        },
    )

    sport: Optional[str] = None
    player: Optional[str] = None
    opponent: Optional[str] = None
    prop: Optional[str] = None
    side: Optional[str] = None
    odds: Optional[OddsPair] = None
    odds_format: Optional[str] = Field(None, alias="oddsFormat")
    start_time: Optional[str] = Field(None, alias="startTime")
    venue: Optional[str] = None
    workload: Optional[Union[str, float]] = None
    injury_notes: Optional[str] = Field(None, alias="injuryNotes")
    additional: Optional[str] = None
    sharp_signal: Optional[float] = Field(None, alias="sharpSignal")

    @field_validator("sharp_signal", mode="before")
    @classmethod
    def drop_unparseable_sharp(cls, v: Any) -> Any:
        if v in (None, ""):
            return None
        try:
            return float(v)
        except (TypeError, ValueError):
            return None


class GameRequest(BaseModel):
    """Payload for POST /api/analyze-game."""

    model_config = ConfigDict(
        extra="allow",
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "sport": "NFL",
                "homeTeam": "Kansas City Chiefs",
                "awayTeam": "Buffalo Bills",
                "market": "SPREAD",
                "side": "HOME",
                "line": -2.5,
                "odds": {"home": -110, "away": -110},
                "startTime": "2025-01-26T18:30:00-05:00",
            }
        },
    )

    sport: Optional[str] = None
    home_team: Optional[str] = Field(None, alias="homeTeam")
    away_team: Optional[str] = Field(None, alias="awayTeam")
    market: Optional[str] = None
    side: Optional[str] = None
    line: Optional[Any] = None
    odds: Optional[OddsPair] = None
    odds_format: Optional[str] = Field(None, alias="oddsFormat")
    start_time: Optional[str] = Field(None, alias="startTime")
    venue: Optional[str] = None
    additional: Optional[str] = None
    sharp_signal: Optional[float] = Field(None, alias="sharpSignal")

    @field_validator("sharp_signal", mode="before")
    @classmethod
    def drop_unparseable_sharp(cls, v: Any) -> Any:
        if v in (None, ""):
            return None
        try:
            return float(v)
        except (TypeError, ValueError):
            return None


class BatchRequest(BaseModel):
    """Payload for POST /api/analyze-batch.

    Items are passed through untyped so a single malformed entry comes back
    as an ERROR item at its index instead of rejecting the whole batch.
    """

    model_config = _PERMISSIVE

    props: List[Any] = Field(default_factory=list)
    games: List[Any] = Field(default_factory=list)


class AnalyticsEvent(BaseModel):
    """Payload for POST /api/analytics: a result plus the request that produced it."""

    model_config = _PERMISSIVE

    result: Optional[Dict[str, Any]] = None
    request: Optional[Dict[str, Any]] = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status: str
    data_provider: str
    smart_overlays: bool
    calibration_factor: float
