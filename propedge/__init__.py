"""PropEdge Analyzer: probability fusion and decision engine for player props
and game lines."""

__version__ = "1.0.0"
