"""Engine configuration — every runtime tunable in one frozen object.

:class:`EngineConfig` bundles fusion weights, decision thresholds and the
house-adjustment toggles.  It is built once (normally via
:meth:`EngineConfig.from_env`) and threaded through engine constructors; no
module reads environment variables at request time.

Typical usage::

    from propedge.config import EngineConfig

    cfg = EngineConfig.from_env()

    # Override a single value for a test or an A/B run:
    from dataclasses import replace
    cfg = replace(cfg, smart_overlays=True, calibration_factor=0.97)

Environment variables
---------------------
``SMART_OVERLAYS``        ``ON`` enables the optional nudge layer.
``CALIBRATION_FACTOR``    Final multiplicative calibration (default 1.0).
``NAME_INFLATION_LIST``   Comma-separated high-profile surnames.
``SAMPLE_QUOTA``          Games collected before the backward scan stops.
``NAME_MATCHER``          ``substring`` (default) or ``fuzzy``.
``SYNTHETIC_SEED``        Seed for the synthetic-baseline generator.
``BATCH_CONCURRENCY``     Max in-flight evaluations per batch.
``SPORTSDATA_API_KEY``    SportsDataIO key; unset routes to the fallback.
``SPORTSDATA_RATE_LIMIT_SEC``  Minimum spacing between upstream requests.
``LOG_SPORTSDATA``        Any non-empty value logs every upstream fetch.
``CALIBRATION_LOG_PATH``  JSON-lines file for calibration events; unset logs only.
``CORS_ORIGINS``          Comma-separated allowed origins (default ``*``).
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, field
from typing import Final, Mapping, Optional, Tuple

from dotenv import load_dotenv

from propedge.core.decision import DecisionThresholds
from propedge.core.fusion import FusionWeights

logger = logging.getLogger(__name__)

#: Default high-profile names whose props the market tends to shade.
DEFAULT_NAME_INFLATION: Final[Tuple[str, ...]] = (
    "mahomes",
    "ionescu",
    "judge",
    "ohtani",
    "wilson",
)

NAME_MATCHER_SUBSTRING: Final[str] = "substring"
NAME_MATCHER_FUZZY: Final[str] = "fuzzy"

_TRUTHY = {"on", "true", "1", "yes"}


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw in (None, ""):
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", key, raw)
        return default
    if not math.isfinite(value):
        logger.warning("Ignoring non-finite %s=%r", key, raw)
        return default
    return value


def _env_int(env: Mapping[str, str], key: str, default: Optional[int]) -> Optional[int]:
    raw = env.get(key)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", key, raw)
        return default


@dataclass(frozen=True)
class EngineConfig:
    """Immutable engine configuration.

    Attributes:
        fusion: Validated fusion weights.
        thresholds: Decision ladder.
        calibration_factor: Multiplier applied to the fused probability.
        smart_overlays: Enables projection-gap, workload and context nudges.
        name_inflation_enabled / hook_enabled / variance_penalty_enabled:
            Per-step toggles for the house layer.
        name_inflation_names: Lower-case surnames matched against the subject.
        name_inflation_penalty: Probability deducted for a high-profile name.
        hook_penalty: Deducted when a .5 line sits within ``hook_band`` of EV.
        hook_band: Distance from the line treated as a hook trap.
        variance_penalty: Deducted when std exceeds the category threshold.
        sample_quota: Game observations collected before the scan stops.
        recent_weight: Weight on the recent mean when season data exists.
        name_matcher: ``"substring"`` or ``"fuzzy"``.
        fuzzy_threshold: rapidfuzz score cutoff for the fuzzy matcher.
        synthetic_seed: Seed for the synthetic fallback; ``None`` is unseeded.
        batch_concurrency: Semaphore bound for batch fan-out.
        sportsdata_api_key: Upstream key, ``None`` disables fetching.
        sportsdata_rate_limit_sec: Minimum seconds between upstream requests.
        log_sportsdata: Log every upstream fetch at INFO.
        calibration_log_path: Append target for calibration events.
        cors_origins: Origins the API accepts cross-site requests from.
    """

    fusion: FusionWeights = field(default_factory=FusionWeights)
    thresholds: DecisionThresholds = field(default_factory=DecisionThresholds)
    calibration_factor: float = 1.0

    smart_overlays: bool = False
    name_inflation_enabled: bool = True
    hook_enabled: bool = True
    variance_penalty_enabled: bool = True
    name_inflation_names: Tuple[str, ...] = DEFAULT_NAME_INFLATION
    name_inflation_penalty: float = 0.03
    hook_penalty: float = 0.05
    hook_band: float = 0.3
    variance_penalty: float = 0.05

    sample_quota: int = 10
    recent_weight: float = 0.60
    name_matcher: str = NAME_MATCHER_SUBSTRING
    fuzzy_threshold: float = 88.0
    synthetic_seed: Optional[int] = None
    batch_concurrency: int = 8

    sportsdata_api_key: Optional[str] = None
    sportsdata_rate_limit_sec: float = 1.0
    log_sportsdata: bool = False

    calibration_log_path: Optional[str] = None
    cors_origins: Tuple[str, ...] = ("*",)

    def __post_init__(self) -> None:
        if not math.isfinite(self.calibration_factor) or self.calibration_factor <= 0:
            raise ValueError(
                f"calibration_factor must be a positive finite number, got {self.calibration_factor!r}."
            )
        if self.sample_quota < 1:
            raise ValueError(f"sample_quota must be ≥ 1, got {self.sample_quota!r}.")
        if not (0.0 <= self.recent_weight <= 1.0):
            raise ValueError(f"recent_weight must be in [0, 1], got {self.recent_weight!r}.")
        if self.batch_concurrency < 1:
            raise ValueError(f"batch_concurrency must be ≥ 1, got {self.batch_concurrency!r}.")
        if self.name_matcher not in (NAME_MATCHER_SUBSTRING, NAME_MATCHER_FUZZY):
            raise ValueError(f"Unknown name matcher {self.name_matcher!r}.")

    # ------------------------------------------------------------------ #
    #  Named constructors                                                  #
    # ------------------------------------------------------------------ #

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> EngineConfig:
        """Build from environment variables (after loading a ``.env`` file).

        Pass ``env`` to read from a plain mapping instead of ``os.environ``.
        """
        if env is None:
            load_dotenv()
            env = os.environ

        names_raw = env.get("NAME_INFLATION_LIST")
        if names_raw:
            names = tuple(n.strip().lower() for n in names_raw.split(",") if n.strip())
        else:
            names = DEFAULT_NAME_INFLATION

        origins = tuple(o.strip() for o in (env.get("CORS_ORIGINS") or "").split(",") if o.strip())

        matcher = (env.get("NAME_MATCHER") or NAME_MATCHER_SUBSTRING).strip().lower()
        if matcher not in (NAME_MATCHER_SUBSTRING, NAME_MATCHER_FUZZY):
            logger.warning("Unknown NAME_MATCHER=%r; using substring", matcher)
            matcher = NAME_MATCHER_SUBSTRING

        return cls(
            calibration_factor=_env_float(env, "CALIBRATION_FACTOR", 1.0),
            smart_overlays=(env.get("SMART_OVERLAYS") or "").strip().lower() in _TRUTHY,
            name_inflation_names=names,
            sample_quota=max(1, _env_int(env, "SAMPLE_QUOTA", 10) or 10),
            name_matcher=matcher,
            synthetic_seed=_env_int(env, "SYNTHETIC_SEED", None),
            batch_concurrency=max(1, _env_int(env, "BATCH_CONCURRENCY", 8) or 8),
            sportsdata_api_key=env.get("SPORTSDATA_API_KEY") or None,
            sportsdata_rate_limit_sec=max(0.0, _env_float(env, "SPORTSDATA_RATE_LIMIT_SEC", 1.0)),
            log_sportsdata=bool(env.get("LOG_SPORTSDATA")),
            calibration_log_path=env.get("CALIBRATION_LOG_PATH") or None,
            cors_origins=origins or ("*",),
        )
