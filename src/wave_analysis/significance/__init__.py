"""Composite significance filtering.

Each strategy is a pure function ``(points, slow_average, config) -> points``
that scores every point, keeps the significant ones and records the score in
the point's tag.

Key Components:
- continuous_weight_filter: distance, channel geometry and peak significance
  blended with market-state adaptive weights
- fractal_filter: box-counting dimension and recursive self-similarity
- n_structure_filter: N-pattern, channel, wave strength, time-gap and
  wave-height constraints
- ma_trend_filter: deviation from an adaptive moving-average threshold

Example:
    >>> from wave_analysis.significance import continuous_weight_filter
    >>> kept = continuous_weight_filter(points, averages[150])
"""

from .common import MarketState, classify_market_state, exponential_smooth, soft_shrink
from .continuous_weight import continuous_weight_filter, continuous_weights
from .fractal import FractalStructure, fractal_dimension, fractal_filter, identify_structures
from .ma_trend import ma_trend_filter
from .n_structure import NStructure, find_local_n_structure, n_structure_filter, n_structure_weights

__all__ = [
    # Strategies
    "continuous_weight_filter",
    "fractal_filter",
    "n_structure_filter",
    "ma_trend_filter",
    # Scores
    "continuous_weights",
    "n_structure_weights",
    "fractal_dimension",
    "identify_structures",
    "find_local_n_structure",
    # Shared helpers
    "MarketState",
    "classify_market_state",
    "exponential_smooth",
    "soft_shrink",
    # Data structures
    "FractalStructure",
    "NStructure",
]
