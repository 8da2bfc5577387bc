"""Decision and stake policy — confidence in, recommendation out.

All functions here are **pure**: no I/O, no logging.  Import from this
module; never re-derive the threshold ladder in the engines.

The ladder (inclusive lower bounds)::

    confidence ≥ 70.0   → LOCK         2.0 units if ≥ 75.0, else 1.0
    confidence ≥ 67.5   → STRONG_LEAN  0.5 units
    confidence ≥ 65.0   → LEAN         0.25 units
    otherwise           → PASS         0 units

``ERROR`` is the terminal state for an evaluation that could not be run; it
is only ever produced through :meth:`DecisionResult.error`.

Run tests with::

    pytest tests/test_decision.py -v
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple


class Decision(str, Enum):
    PASS = "PASS"
    LEAN = "LEAN"
    STRONG_LEAN = "STRONG_LEAN"
    LOCK = "LOCK"
    ERROR = "ERROR"


@dataclass(frozen=True)
class DecisionThresholds:
    """Confidence cut-offs (percent) and stakes (units).

    Attributes:
        lock: Lower bound for LOCK.
        max_lock: Lower bound for the larger LOCK stake.
        strong_lean: Lower bound for STRONG_LEAN.
        lean: Lower bound for LEAN.
        max_lock_stake / lock_stake / strong_lean_stake / lean_stake:
            Units staked at each rung.
    """

    lock: float = 70.0
    max_lock: float = 75.0
    strong_lean: float = 67.5
    lean: float = 65.0
    max_lock_stake: float = 2.0
    lock_stake: float = 1.0
    strong_lean_stake: float = 0.5
    lean_stake: float = 0.25

    def __post_init__(self) -> None:
        if not (self.lean <= self.strong_lean <= self.lock <= self.max_lock):
            raise ValueError(
                "Thresholds must satisfy lean ≤ strong_lean ≤ lock ≤ max_lock, got "
                f"{self.lean}, {self.strong_lean}, {self.lock}, {self.max_lock}."
            )
        stakes = (self.lean_stake, self.strong_lean_stake, self.lock_stake, self.max_lock_stake)
        if any(s < 0 for s in stakes):
            raise ValueError(f"Stakes must be ≥ 0, got {stakes!r}.")


DEFAULT_THRESHOLDS = DecisionThresholds()


def decide(
    final_confidence: float,
    thresholds: DecisionThresholds = DEFAULT_THRESHOLDS,
) -> Tuple[Decision, float]:
    """Map a confidence percentage to ``(decision, stake_units)``.

    Examples::

        decide(75.0)  → (LOCK, 2.0)
        decide(70.0)  → (LOCK, 1.0)
        decide(67.5)  → (STRONG_LEAN, 0.5)
        decide(65.0)  → (LEAN, 0.25)
        decide(64.9)  → (PASS, 0.0)
    """
    t = thresholds
    if final_confidence >= t.lock:
        stake = t.max_lock_stake if final_confidence >= t.max_lock else t.lock_stake
        return Decision.LOCK, stake
    if final_confidence >= t.strong_lean:
        return Decision.STRONG_LEAN, t.strong_lean_stake
    if final_confidence >= t.lean:
        return Decision.LEAN, t.lean_stake
    return Decision.PASS, 0.0


@dataclass(frozen=True)
class DecisionResult:
    """Terminal output of one evaluation."""

    final_confidence: float
    decision: Decision
    suggested_stake: float
    flags: Tuple[str, ...] = ()
    message: Optional[str] = None

    @classmethod
    def from_confidence(
        cls,
        final_confidence: float,
        thresholds: DecisionThresholds = DEFAULT_THRESHOLDS,
        flags: Iterable[str] = (),
    ) -> DecisionResult:
        decision, stake = decide(final_confidence, thresholds)
        return cls(final_confidence, decision, stake, tuple(flags))

    @classmethod
    def error(cls, flags: Iterable[str], message: Optional[str] = None) -> DecisionResult:
        """ERROR terminal state: zero confidence, zero stake."""
        return cls(0.0, Decision.ERROR, 0.0, tuple(flags), message)

    @property
    def is_error(self) -> bool:
        return self.decision is Decision.ERROR

    def to_dict(self) -> Dict[str, object]:
        return {
            "decision": self.decision.value,
            "final_confidence": self.final_confidence,
            "suggested_stake": self.suggested_stake,
            "flags": list(self.flags),
            "message": self.message,
        }
