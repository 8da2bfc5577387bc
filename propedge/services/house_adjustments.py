"""
House adjustment layer: bounded heuristic corrections before fusion.

Steps run in a fixed order.  Each appends a flag when it fires and the
probability is re-clamped to [0.001, 0.999] after every step:

    1. NAME_INFLATION      high-profile subject, market shades the over
    2. HOOK / HOOK_TRAP    .5 line; trap when EV sits within the band
    3. HIGH_VARIANCE       std above the category threshold
    4. Smart overlays (config.smart_overlays only), each |delta| <= 0.03:
         PROJECTION_GAP, WORKLOAD_GUARDRAIL, CONTEXT_WEATHER,
         CONTEXT_INJURY, CONTEXT_PACE

Penalties always reduce confidence in the side being evaluated; the
engines orient the probability before calling :meth:`HouseAdjustments.apply`.
"""

from __future__ import annotations

import logging
import re
from typing import Any, List, Optional

from propedge.config import EngineConfig
from propedge.core.category_config import SCOPE_PLAYER, CategoryConfig, get_sport_profile
from propedge.core.interfaces import AdjustmentResult
from propedge.core.stats import clamp, clamp_probability
from propedge.services.features import parse_workload

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Overlay sizes
# ---------------------------------------------------------------------------

PROJECTION_GAP_THRESHOLD = 0.08
PROJECTION_GAP_NUDGE = 0.02

WORKLOAD_AUTO_NUDGE = -0.01
WORKLOAD_LOW_NUDGE = -0.02
WORKLOAD_LOW_RATIO = 0.80

# Context keywords and their nudges.  The sum is capped at +/- CONTEXT_CAP.
CONTEXT_RULES = (
    ("CONTEXT_WEATHER", re.compile(r"\b(wind|windy|rain|snow|storm)\b"), -0.02),
    ("CONTEXT_INJURY", re.compile(r"\b(questionable|doubtful|limited|gtd)\b"), -0.03),
    ("CONTEXT_PACE", re.compile(r"\b(pace|up-?tempo|fast)\b"), 0.01),
)
CONTEXT_CAP = 0.03
MAX_OVERLAY = 0.03


def is_hook(line: Optional[float]) -> bool:
    """True for a line whose fractional part is exactly .5 (6.5, -4.5)."""
    return line is not None and abs(line) % 1 == 0.5


class HouseAdjustments:
    """Applies the ordered adjustment steps configured in ``EngineConfig``."""

    def __init__(self, config: EngineConfig):
        self.config = config
        self._name_pattern = self._compile_names(config.name_inflation_names)

    @staticmethod
    def _compile_names(names) -> Optional[re.Pattern]:
        names = [re.escape(n.strip().lower()) for n in names if n and n.strip()]
        if not names:
            return None
        return re.compile(r"\b(" + "|".join(names) + r")\b")

    def apply(
        self,
        probability: float,
        *,
        subject: str,
        line: Optional[float],
        threshold: Optional[float],
        expected_value: float,
        std_dev: float,
        category: CategoryConfig,
        market_probability: Optional[float] = None,
        workload: Any = None,
        context_notes: str = "",
        high_variance_std: Optional[float] = None,
    ) -> AdjustmentResult:
        cfg = self.config
        variance_limit = high_variance_std if high_variance_std is not None else category.high_variance_std
        start = clamp_probability(probability)
        p = start
        flags: List[str] = []
        notes: List[str] = []

        # 1) Name inflation
        if cfg.name_inflation_enabled and self._name_pattern is not None:
            if self._name_pattern.search(str(subject or "").lower()):
                p = clamp_probability(p - cfg.name_inflation_penalty)
                flags.append("NAME_INFLATION")
                notes.append(f"High-profile name penalty -{cfg.name_inflation_penalty:.2f}")

        # 2) Hook
        if cfg.hook_enabled and is_hook(line):
            flags.append("HOOK")
            if threshold is not None and abs(expected_value - threshold) <= cfg.hook_band:
                p = clamp_probability(p - cfg.hook_penalty)
                flags.append("HOOK_TRAP")
                notes.append(
                    f"Projection {expected_value:.2f} within {cfg.hook_band} of hook "
                    f"{threshold:g}: -{cfg.hook_penalty:.2f}"
                )

        # 3) Variance
        if cfg.variance_penalty_enabled and std_dev > variance_limit:
            p = clamp_probability(p - cfg.variance_penalty)
            flags.append("HIGH_VARIANCE")
            notes.append(f"Std {std_dev:.2f} above {variance_limit:g}: -{cfg.variance_penalty:.2f}")

        # 4) Smart overlays
        if cfg.smart_overlays:
            p = self._projection_gap(p, start, market_probability, flags, notes)
            if category.scope == SCOPE_PLAYER:
                p = self._workload_guardrail(p, workload, category, flags, notes)
            p = self._context(p, context_notes, category, flags, notes)

        return AdjustmentResult(
            adjusted_probability=p,
            flags=tuple(flags),
            delta=p - start,
            notes=tuple(notes),
        )

    # ------------------------------------------------------------------ #
    #  Overlays                                                            #
    # ------------------------------------------------------------------ #

    def _projection_gap(self, p, model_p, market_p, flags, notes):
        if market_p is None:
            return p
        gap = model_p - market_p
        if abs(gap) <= PROJECTION_GAP_THRESHOLD:
            return p
        nudge = PROJECTION_GAP_NUDGE if gap > 0 else -PROJECTION_GAP_NUDGE
        flags.append("PROJECTION_GAP")
        notes.append(f"Model/market gap {gap:+.3f}: {nudge:+.2f}")
        return clamp_probability(p + nudge)

    def _workload_guardrail(self, p, workload, category, flags, notes):
        value = parse_workload(workload)
        if value is None:
            nudge = WORKLOAD_AUTO_NUDGE
            notes.append(f"Workload not supplied: {nudge:+.2f}")
        elif category.typical_workload and value < WORKLOAD_LOW_RATIO * category.typical_workload:
            nudge = WORKLOAD_LOW_NUDGE
            notes.append(
                f"Workload {value:g} below {WORKLOAD_LOW_RATIO:.0%} of typical "
                f"{category.typical_workload:g}: {nudge:+.2f}"
            )
        else:
            return p
        flags.append("WORKLOAD_GUARDRAIL")
        return clamp_probability(p + nudge)

    def _context(self, p, context_notes, category, flags, notes):
        text = str(context_notes or "").lower()
        if not text:
            return p
        outdoor = get_sport_profile(category.sport).outdoor
        total = 0.0
        for flag, pattern, nudge in CONTEXT_RULES:
            if flag == "CONTEXT_WEATHER" and not outdoor:
                continue
            if pattern.search(text):
                flags.append(flag)
                total += nudge
        if total == 0.0:
            return p
        total = clamp(total, -CONTEXT_CAP, CONTEXT_CAP)
        notes.append(f"Context notes: {total:+.2f}")
        return clamp_probability(p + total)
