"""Core mathematics and configuration for the PropEdge engine.

This package contains pure, sport-agnostic building blocks:

- ``stats``           — erf / normal CDF / Poisson CDF and exceedance probabilities
- ``odds_math``       — implied probability, vig removal, odds conversion
- ``category_config`` — per-sport and per-stat constants (variance bounds, baselines)
- ``models``          — statistical probability model for props and game lines
- ``fusion``          — weighted fusion and global calibration
- ``decision``        — confidence ladder and stake sizing
- ``interfaces``      — DTOs and ABCs for the data-fetch collaborator

Nothing in this package imports from ``propedge.services``.
All modules are side-effect-free and unit-testable in isolation.
"""
