"""
Identity resolution between request subjects and upstream row names.

Two strategies:

* SubstringNameMatcher: case-insensitive substring, then all-tokens match.
  "LeBron" finds "LeBron James"; "james lebron" finds it too.
* FuzzyNameMatcher: rapidfuzz token_sort_ratio above a cutoff, with the
  substring guard below so "Michigan" never claims "Central Michigan".
"""

from __future__ import annotations

import logging
import re

from rapidfuzz import fuzz

from propedge.config import NAME_MATCHER_FUZZY, NAME_MATCHER_SUBSTRING
from propedge.core.interfaces import NameMatcher

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9 ]+")
_SPACES = re.compile(r"\s+")

# Suffixes dropped before comparison ("Jr.", "III").
_SUFFIXES = frozenset({"jr", "sr", "ii", "iii", "iv"})


def normalize_name(name: str) -> str:
    """Lower-case, strip punctuation and generational suffixes."""
    text = _NON_ALNUM.sub(" ", str(name or "").lower().replace("'", ""))
    tokens = [t for t in _SPACES.split(text.strip()) if t and t not in _SUFFIXES]
    return " ".join(tokens)


class SubstringNameMatcher(NameMatcher):
    """Default matcher: substring or all-tokens containment."""

    def matches(self, subject: str, candidate: str) -> bool:
        s = normalize_name(subject)
        c = normalize_name(candidate)
        if not s or not c:
            return False
        if s in c:
            return True
        return set(s.split()) <= set(c.split())


class FuzzyNameMatcher(NameMatcher):
    """rapidfuzz token_sort_ratio matcher for misspelled or reordered names."""

    def __init__(self, threshold: float = 88.0):
        self.threshold = threshold

    def _is_dangerous_substring_match(self, s: str, c: str) -> bool:
        # One name buried inside a much longer one.
        return (s in c or c in s) and s != c and fuzz.ratio(s, c) < 75

    def matches(self, subject: str, candidate: str) -> bool:
        s = normalize_name(subject)
        c = normalize_name(candidate)
        if not s or not c:
            return False
        if s == c:
            return True
        score = fuzz.token_sort_ratio(s, c)
        if score < self.threshold:
            return False
        if self._is_dangerous_substring_match(s, c):
            logger.warning("Substring guard blocked fuzzy match '%s' → '%s'", subject, candidate)
            return False
        logger.debug("Fuzzy matched '%s' to '%s' with score %.1f", subject, candidate, score)
        return True


def build_matcher(kind: str = NAME_MATCHER_SUBSTRING, threshold: float = 88.0) -> NameMatcher:
    """Matcher for ``config.name_matcher``."""
    if kind == NAME_MATCHER_FUZZY:
        return FuzzyNameMatcher(threshold)
    return SubstringNameMatcher()
