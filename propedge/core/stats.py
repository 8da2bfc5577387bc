"""Statistical primitives — normal and Poisson tail probabilities.

Every function here is **pure** and **total**: no I/O, no logging, and no
exceptions for degenerate input.  A non-finite mean, a zero standard
deviation or a negative Poisson rate all resolve to the neutral 0.5 so the
fusion layer downstream never has to special-case NaN.

Two exceedance helpers are exposed on top of the CDFs:

1. :func:`probability_over_normal` — continuous stats (points, yards).  A
   half-unit continuity correction treats the stat as effectively discrete.
2. :func:`probability_over_poisson` — low-count stats (strikeouts, steals)
   where the line almost always ends in .5.

Run tests with::

    pytest tests/test_stats.py -v
"""

from __future__ import annotations

import math
from typing import Final

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Abramowitz & Stegun 7.1.26 coefficients (max abs error ≈ 1.5e-7).
_AS_P: Final[float] = 0.3275911
_AS_A1: Final[float] = 0.254829592
_AS_A2: Final[float] = -0.284496736
_AS_A3: Final[float] = 1.421413741
_AS_A4: Final[float] = -1.453152027
_AS_A5: Final[float] = 1.061405429

_SQRT2: Final[float] = math.sqrt(2.0)

#: Probability clamp used by every stage that feeds fusion.
MIN_PROBABILITY: Final[float] = 0.001
MAX_PROBABILITY: Final[float] = 0.999

#: Neutral answer for degenerate inputs.
NEUTRAL_PROBABILITY: Final[float] = 0.5


def _finite(*values: float) -> bool:
    try:
        return all(math.isfinite(float(v)) for v in values)
    except (TypeError, ValueError):
        return False


# ---------------------------------------------------------------------------
# Clamping
# ---------------------------------------------------------------------------


def clamp(value: float, lo: float, hi: float) -> float:
    """Clamp ``value`` into ``[lo, hi]``; non-finite values map to ``lo``."""
    if not _finite(value):
        return lo
    return max(lo, min(hi, float(value)))


def clamp_probability(value: float) -> float:
    """Clamp to ``[0.001, 0.999]`` — never exactly 0 or 1."""
    if not _finite(value):
        return NEUTRAL_PROBABILITY
    return clamp(value, MIN_PROBABILITY, MAX_PROBABILITY)


# ---------------------------------------------------------------------------
# Normal distribution
# ---------------------------------------------------------------------------


def erf(x: float) -> float:
    """Error function via the Abramowitz–Stegun rational approximation.

    Note ``erf(0)`` evaluates to ~1e-9 rather than 0; :func:`normal_cdf`
    short-circuits the zero case so the CDF is exactly 0.5 at the mean.
    """
    sign = -1.0 if x < 0 else 1.0
    x = abs(x)
    t = 1.0 / (1.0 + _AS_P * x)
    poly = ((((_AS_A5 * t + _AS_A4) * t + _AS_A3) * t + _AS_A2) * t + _AS_A1) * t
    return sign * (1.0 - poly * math.exp(-x * x))


def normal_cdf(x: float, mean: float, std: float) -> float:
    """P(X ≤ x) for X ~ Normal(mean, std²).

    Args:
        x: Evaluation point.
        mean: Distribution mean.
        std: Standard deviation.  Must be positive.

    Returns:
        CDF value in ``[0, 1]``.  Exactly 0.5 when ``std ≤ 0`` or any input
        is non-finite.
        Just off the mean the result carries the ~1e-9 offset of :func:`erf`
        at zero, about 5e-10 either side of 0.5; it is still non-decreasing
        across the mean.

    Examples::

        normal_cdf(10.0, 10.0, 3.0)  → 0.5
        normal_cdf(13.0, 10.0, 3.0)  → 0.8413
        normal_cdf(10.0, 10.0, 0.0)  → 0.5   (degenerate guard)
    """
    if not _finite(x, mean, std) or std <= 0:
        return NEUTRAL_PROBABILITY
    z = (x - mean) / (std * _SQRT2)
    if z == 0.0:
        return NEUTRAL_PROBABILITY
    return 0.5 * (1.0 + erf(z))


def probability_over_normal(mean: float, std: float, line: float) -> float:
    """P(stat clears ``line``) under a Normal model with continuity correction.

    The ``+0.5`` shift treats the modelled quantity as integer-valued: on a
    6.5 line the bet needs 7 or more, i.e. the continuous mass above 7.0.
    """
    if not _finite(mean, std, line):
        return NEUTRAL_PROBABILITY
    return 1.0 - normal_cdf(line + 0.5, mean, std)


# ---------------------------------------------------------------------------
# Poisson distribution
# ---------------------------------------------------------------------------


def poisson_cdf(lam: float, k: float) -> float:
    """P(X ≤ k) for X ~ Poisson(lam), summed iteratively from 0 to floor(k).

    Returns 0.5 for a non-finite or non-positive rate or a non-finite ``k``.
    A negative ``k`` has no mass below it and returns 0.0.
    """
    if not _finite(lam, k) or lam <= 0:
        return NEUTRAL_PROBABILITY
    upper = math.floor(k)
    if upper < 0:
        return 0.0

    term = math.exp(-lam)
    total = 0.0
    for i in range(upper + 1):
        total += term
        term *= lam / (i + 1)
    return min(total, 1.0)


def probability_over_poisson(lam: float, line: float) -> float:
    """P(count clears ``line``) = 1 − P(X ≤ ceil(line) − 1).

    On a 6.5 strikeout line this is P(K ≥ 7); on a whole-number line of 6
    it is P(K ≥ 6).
    """
    if not _finite(lam, line):
        return NEUTRAL_PROBABILITY
    return 1.0 - poisson_cdf(lam, math.ceil(line) - 1)
