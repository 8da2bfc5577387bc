"""Statistical probability model — FeatureSet in, over/home probability out.

Pure arithmetic on top of :mod:`propedge.core.stats`.  The model never sees
odds or request text; it answers one question: *given these features, how
likely is the over (or the home side) to win?*

Two entry points:

1. :meth:`StatisticalModel.evaluate_prop` — one player stat against a line.
   Low-count categories (strikeouts, steals, total bases) are priced as
   Poisson with ``λ = max(0.1, EV)``; everything else as Normal with the
   continuity-corrected exceedance.
2. :meth:`StatisticalModel.evaluate_game` — two team FeatureSets priced as
   an independent-Normal margin (ML/SPREAD) or sum (TOTAL).

Run tests with::

    pytest tests/test_models.py -v
"""

from __future__ import annotations

import math
from typing import Final, Optional

from propedge.core.category_config import CategoryConfig, SportProfile, DIST_NORMAL, DIST_POISSON
from propedge.core.interfaces import FeatureSet, StatisticalResult
from propedge.core.stats import (
    clamp_probability,
    normal_cdf,
    probability_over_normal,
    probability_over_poisson,
)

#: Poisson rate floor; keeps the CDF defined for near-zero projections.
MIN_POISSON_LAMBDA: Final[float] = 0.1

MARKET_ML: Final[str] = "ML"
MARKET_SPREAD: Final[str] = "SPREAD"
MARKET_TOTAL: Final[str] = "TOTAL"
GAME_MARKETS: Final[tuple] = (MARKET_ML, MARKET_SPREAD, MARKET_TOTAL)


class StatisticalModel:
    """Stateless pricing of FeatureSets.  Safe to share across requests."""

    def evaluate_prop(
        self,
        features: FeatureSet,
        line: float,
        category: CategoryConfig,
    ) -> StatisticalResult:
        """P(stat > line) for one player prop.

        Args:
            features: Output of the feature aggregator.
            line: Posted line, e.g. 6.5.
            category: Registry row; decides Normal vs Poisson and the
                additive EV shift.

        Returns:
            :class:`StatisticalResult` with probability in ``[0.001, 0.999]``.
        """
        ev = features.expected_value + category.ev_adjustment

        if category.is_poisson:
            lam = max(MIN_POISSON_LAMBDA, ev)
            p = probability_over_poisson(lam, line)
            return StatisticalResult(
                probability=clamp_probability(p),
                expected_value=lam,
                std_dev=math.sqrt(lam),
                line=line,
                distribution=DIST_POISSON,
            )

        std = features.std
        p = probability_over_normal(ev, std, line)
        return StatisticalResult(
            probability=clamp_probability(p),
            expected_value=ev,
            std_dev=std,
            line=line,
            distribution=DIST_NORMAL,
        )

    def evaluate_game(
        self,
        home: FeatureSet,
        away: FeatureSet,
        market: str,
        line: Optional[float],
        profile: SportProfile,
    ) -> StatisticalResult:
        """P(home side wins the market) for a game line.

        ``margin = home EV − away EV + home advantage`` and
        ``std = √(var_home + var_away)``.

        * ``ML``     — P(margin > 0).
        * ``SPREAD`` — ``line`` is the home spread (−4.5 = home favoured by
          4.5); P(margin + line > 0).
        * ``TOTAL``  — P(home EV + away EV clears ``line``), continuity
          corrected.  "Home side" here means the over.

        Raises:
            ValueError: If ``market`` is unknown, or SPREAD/TOTAL has no line.
        """
        market = (market or "").upper()
        if market not in GAME_MARKETS:
            raise ValueError(f"Unknown game market {market!r}")

        std = math.sqrt(home.variance + away.variance)
        home_ev = home.expected_value
        away_ev = away.expected_value

        if market == MARKET_TOTAL:
            if line is None:
                raise ValueError("TOTAL requires a line")
            total = home_ev + away_ev
            return StatisticalResult(
                probability=clamp_probability(probability_over_normal(total, std, line)),
                expected_value=total,
                std_dev=std,
                line=line,
            )

        margin = home_ev - away_ev + profile.home_advantage
        if market == MARKET_ML:
            p = 1.0 - normal_cdf(0.0, margin, std)
        else:
            if line is None:
                raise ValueError("SPREAD requires a line")
            p = 1.0 - normal_cdf(-line, margin, std)

        return StatisticalResult(
            probability=clamp_probability(p),
            expected_value=margin,
            std_dev=std,
            line=line,
        )
