"""Market probability extraction — the single source of truth for odds math.

Every function here is **pure**: no I/O, no logging, no side effects.
Import from this module; never reimplement implied-probability arithmetic in
the engines.

Two entry points cover the two price formats the engines receive:

1. :func:`market_from_decimal` — European prices (prop forms send these).
2. :func:`market_from_american` — US moneylines (game feeds send these).

Both remove the vig by *proportional normalisation*: each side's implied
probability is divided by the two-sided sum, so the pair sums to exactly 1.
The over/home side is always the one reported.

Design decisions
----------------
* Extraction never raises.  A missing price, a zero, a NaN, or an American
  price inside ``(-100, 100)`` yields the neutral ``MarketResult(0.5, 0.0)``
  and the caller tags the evaluation ``MARKET_NEUTRAL``.  The market is a
  secondary signal; losing it must not void the evaluation.

Run tests with::

    pytest tests/test_odds_math.py -v
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Final, Optional

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

#: American-odds magnitude floor.  |odds| < 100 is not a representable price.
_MIN_AMERICAN_MAGNITUDE: Final[float] = 100.0

ODDS_FORMAT_DECIMAL: Final[str] = "decimal"
ODDS_FORMAT_AMERICAN: Final[str] = "american"


@dataclass(frozen=True, slots=True)
class MarketResult:
    """Vig-free market view of a two-sided price.

    Attributes:
        market_probability: Over/home side probability after vig removal,
            in ``[0, 1]``.
        vig: Bookmaker margin, ``sum(implied) − 1``, floored at 0.
        is_neutral: True when the prices were unusable and the neutral
            0.5 was substituted.
    """

    market_probability: float
    vig: float
    is_neutral: bool = False

    @property
    def other_side(self) -> float:
        """Probability of the under/away side."""
        return 1.0 - self.market_probability


NEUTRAL_MARKET: Final[MarketResult] = MarketResult(0.5, 0.0, is_neutral=True)


def _as_float(value: object) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


# ---------------------------------------------------------------------------
# Implied probability
# ---------------------------------------------------------------------------


def implied_from_decimal(price: object) -> Optional[float]:
    """Raw (vig-inclusive) implied probability of a decimal price.

    Returns ``None`` for a missing, non-finite or non-positive price.

    Examples::

        implied_from_decimal(2.0)   → 0.5
        implied_from_decimal(1.8)   → 0.5556
        implied_from_decimal(0)     → None
    """
    p = _as_float(price)
    if p is None or p <= 0:
        return None
    return 1.0 / p


def implied_from_american(price: object) -> Optional[float]:
    """Raw (vig-inclusive) implied probability of an American price.

    ``+150 → 100 / 250 = 0.40``; ``−150 → 150 / 250 = 0.60``.

    Returns ``None`` when the price is missing, non-finite, or inside the
    unrepresentable band ``(−100, 100)`` (which includes zero).
    """
    p = _as_float(price)
    if p is None or abs(p) < _MIN_AMERICAN_MAGNITUDE:
        return None
    if p > 0:
        return 100.0 / (p + 100.0)
    return abs(p) / (abs(p) + 100.0)


# ---------------------------------------------------------------------------
# Vig removal
# ---------------------------------------------------------------------------


def _normalise(first: Optional[float], second: Optional[float]) -> MarketResult:
    if first is None or second is None:
        return NEUTRAL_MARKET
    total = first + second
    if not math.isfinite(total) or total <= 0:
        return NEUTRAL_MARKET
    return MarketResult(
        market_probability=first / total,
        vig=max(0.0, total - 1.0),
    )


def market_from_decimal(over: object, under: object) -> MarketResult:
    """Vig-free over-side probability from two decimal prices.

    Examples::

        market_from_decimal(1.91, 1.91)  → MarketResult(0.5, vig≈0.047)
        market_from_decimal(2.0, 1.8)    → MarketResult(0.4737, vig≈0.056)
        market_from_decimal(None, 1.8)   → MarketResult(0.5, 0.0, neutral)
    """
    return _normalise(implied_from_decimal(over), implied_from_decimal(under))


def market_from_american(home: object, away: object) -> MarketResult:
    """Vig-free home-side probability from two American prices.

    Works for any favourite/underdog combination::

        market_from_american(-110, -110)  → 0.5
        market_from_american(-150, +130)  → 0.5798
    """
    return _normalise(implied_from_american(home), implied_from_american(away))


def detect_odds_format(first: object, second: object) -> str:
    """Guess the price format of a two-sided quote.

    Any price with magnitude ≥ 100 can only be American; decimal prices
    never reach three digits in a two-outcome market.
    """
    for value in (first, second):
        p = _as_float(value)
        if p is not None and abs(p) >= _MIN_AMERICAN_MAGNITUDE:
            return ODDS_FORMAT_AMERICAN
    return ODDS_FORMAT_DECIMAL


def market_probability(
    first: object,
    second: object,
    odds_format: Optional[str] = None,
) -> MarketResult:
    """Dispatch to the decimal or American extractor.

    Args:
        first: Over/home price.
        second: Under/away price.
        odds_format: ``"decimal"``, ``"american"`` or ``None`` to detect.
    """
    fmt = (odds_format or "").lower() or detect_odds_format(first, second)
    if fmt == ODDS_FORMAT_AMERICAN:
        return market_from_american(first, second)
    return market_from_decimal(first, second)
