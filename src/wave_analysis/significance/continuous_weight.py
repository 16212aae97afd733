"""Continuous-weight significance filtering."""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from ..bar_source import AverageSeries
from ..constants import METHOD_CONTINUOUS_WEIGHT
from ..types import WavePoint
from ..wave_config import SignificanceConfig
from .common import (
    NEUTRAL_WEIGHT,
    MarketState,
    classify_market_state,
    distance_score,
    exponential_smooth,
    geometry_score,
    local_channel,
    normalize_weight,
    peak_significance,
    reference_values,
    soft_shrink,
)

logger = logging.getLogger(__name__)

# (distance, geometry, significance) shares per market state
STATE_WEIGHTS: Dict[MarketState, Tuple[float, float, float]] = {
    MarketState.TRENDING: (0.5, 0.2, 0.3),
    MarketState.VOLATILE: (0.3, 0.2, 0.5),
    MarketState.RANGING: (0.2, 0.5, 0.3),
}


def component_weights(
    points: Sequence[WavePoint],
    refs: Sequence[Optional[float]],
    i: int,
    config: SignificanceConfig,
) -> Tuple[float, float, float]:
    if not config.adaptive_weights:
        return config.distance_weight, config.geometry_weight, config.significance_weight
    return STATE_WEIGHTS[classify_market_state(points, refs, i)]


def raw_weights(
    points: Sequence[WavePoint],
    refs: Sequence[Optional[float]],
    config: SignificanceConfig,
) -> List[float]:
    """Unnormalised composite weight per point; NEUTRAL_WEIGHT without a reference."""
    weights = []
    for i, point in enumerate(points):
        ref = refs[i]
        if ref is None:
            weights.append(NEUTRAL_WEIGHT)
            continue
        w_distance, w_geometry, w_significance = component_weights(points, refs, i, config)
        weights.append(
            w_distance * distance_score(point.price, ref)
            + w_geometry * geometry_score(point.price, local_channel(points, refs, i))
            + w_significance * peak_significance(points, i)
        )
    return weights


def continuous_weights(
    points: Sequence[WavePoint],
    slow_average: Optional[AverageSeries],
    config: SignificanceConfig = None,
) -> List[float]:
    """
    Smoothed SignificanceScore per point.

    Raw composite weights are sigmoid-normalised with a recency ramp and
    passed through an exponential filter.
    """
    config = config or SignificanceConfig()
    refs = reference_values(points, slow_average)
    raw = raw_weights(points, refs, config)
    n = len(points)
    normalized = [normalize_weight(w, i, n) for i, w in enumerate(raw)]
    return exponential_smooth(normalized, config.alpha)


def continuous_weight_filter(
    points: Sequence[WavePoint],
    slow_average: Optional[AverageSeries],
    config: SignificanceConfig = None,
) -> Tuple[WavePoint, ...]:
    """
    Filter and soften points by their continuous significance weight.

    Args:
        points: Wave points in time order.
        slow_average: Slow moving average aligned with the bars.
        config: Significance parameters (defaults if not provided).

    Returns:
        Retained points, each pulled toward the average by
        ``(1 - weight) * shrink_factor``.
    """
    config = config or SignificanceConfig()
    if not points:
        return ()
    refs = reference_values(points, slow_average)
    weights = continuous_weights(points, slow_average, config)
    result = soft_shrink(points, weights, refs, config.shrink_factor, config.min_weight,
                         METHOD_CONTINUOUS_WEIGHT)
    logger.debug(f"Continuous-weight filter: {len(points)} -> {len(result)} points")
    return result
