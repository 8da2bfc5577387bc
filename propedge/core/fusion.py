"""Probability fusion and calibration.

Blends the four signals the pipeline produces into one probability and a
display confidence:

    base       = w_model·model + w_market·market + w_sharp·(0.5 + sharp) + w_neutral·0.5
    fused      = clamp₀₁(base + adjustment_delta)
    calibrated = clamp₀₁(fused × calibration_factor)
    confidence = round_half_up(calibrated × 100, 1)

The sharp term is a placeholder signal today (``sharp_signal`` defaults to
0, contributing a neutral 0.5); the neutral term is a fixed pull toward a
coin flip that keeps a single overconfident input from dominating.

Design decisions
----------------
* Weights are a validated :class:`FusionWeights` object.  A set that does
  not sum to 1 raises at construction, never at request time.
* ``calibration_factor = 1.0`` is an exact no-op: ``x * 1.0 == x`` in IEEE
  arithmetic, and clamping an in-range value returns it unchanged.
* Rounding is half-up on the decimal representation, so 67.45 displays as
  67.5 and crosses the STRONG_LEAN threshold the way a reader expects.

Run tests with::

    pytest tests/test_fusion.py -v
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Final

from propedge.core.stats import NEUTRAL_PROBABILITY, clamp

#: Tolerance on the weight sum.
_WEIGHT_SUM_TOLERANCE: Final[float] = 1e-9

#: Bound on the placeholder sharp-money signal.
MAX_SHARP_SIGNAL: Final[float] = 0.5


def round_half_up(value: float, digits: int = 1) -> float:
    """Round half away from zero on the shortest decimal repr of ``value``.

    Examples::

        round_half_up(67.45)  → 67.5   (built-in round gives 67.5 or 67.4)
        round_half_up(64.95)  → 65.0
    """
    if not math.isfinite(value):
        return 0.0
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class FusionWeights:
    """Fusion weights; must be non-negative and sum to 1.

    Override a single weight via :func:`dataclasses.replace` and rebalance
    another, or construction fails.
    """

    model: float = 0.60
    market: float = 0.20
    sharp: float = 0.12
    neutral: float = 0.08

    def __post_init__(self) -> None:
        values = (self.model, self.market, self.sharp, self.neutral)
        if any(not math.isfinite(v) or v < 0.0 for v in values):
            raise ValueError(f"Fusion weights must be finite and ≥ 0, got {values!r}.")
        total = sum(values)
        if abs(total - 1.0) > _WEIGHT_SUM_TOLERANCE:
            raise ValueError(f"Fusion weights must sum to 1.0, got {total!r}.")


DEFAULT_WEIGHTS: Final[FusionWeights] = FusionWeights()


@dataclass(frozen=True, slots=True)
class FusionResult:
    """Every intermediate of one fusion, for diagnostics."""

    base_probability: float
    fused_probability: float
    calibrated_probability: float
    final_confidence: float


def fuse(
    model_probability: float,
    market_probability: float,
    *,
    sharp_signal: float = 0.0,
    adjustment_delta: float = 0.0,
    weights: FusionWeights = DEFAULT_WEIGHTS,
    calibration_factor: float = 1.0,
) -> FusionResult:
    """Fuse model, market, sharp and neutral signals.

    Args:
        model_probability: Statistical model probability for the evaluated side.
        market_probability: Vig-free market probability for the same side.
        sharp_signal: Sharp-money lean in ``[−0.5, 0.5]``; clamped.
        adjustment_delta: Net house-adjustment delta added after blending.
        weights: Validated fusion weights.
        calibration_factor: Final multiplicative calibration.

    Returns:
        :class:`FusionResult` with every probability in ``[0, 1]``.
    """
    sharp = clamp(sharp_signal, -MAX_SHARP_SIGNAL, MAX_SHARP_SIGNAL) if math.isfinite(sharp_signal) else 0.0
    base = (
        weights.model * model_probability
        + weights.market * market_probability
        + weights.sharp * (NEUTRAL_PROBABILITY + sharp)
        + weights.neutral * NEUTRAL_PROBABILITY
    )
    fused = clamp(base + adjustment_delta, 0.0, 1.0)
    calibrated = clamp(fused * calibration_factor, 0.0, 1.0)
    return FusionResult(
        base_probability=base,
        fused_probability=fused,
        calibrated_probability=calibrated,
        final_confidence=round_half_up(calibrated * 100.0, 1),
    )
