"""MA-trend significance filtering."""

import logging
from typing import Optional, Sequence, Tuple

from ..bar_source import AverageSeries, present_values
from ..constants import METHOD_MA_TREND
from ..types import WavePoint
from ..wave_config import SignificanceConfig
from .common import is_turning_point, reference_values, trend_strength, window_bounds

logger = logging.getLogger(__name__)


def adaptive_threshold(slow_average: Optional[AverageSeries], config: SignificanceConfig) -> float:
    """Base significance threshold scaled up by the average's trend strength."""
    threshold = config.ma_significance_threshold
    if config.ma_adaptive_threshold:
        threshold *= 1.0 + trend_strength(present_values(slow_average)) * config.ma_trend_multiplier
    return threshold


def side_consistent(points: Sequence[WavePoint], refs: Sequence[Optional[float]], i: int, reach: int = 5) -> bool:
    """More than 60% of the neighbours within ``reach`` sit on one side of the average."""
    above = below = 0
    for j in range(max(0, i - reach), min(len(points), i + reach + 1)):
        if j == i or refs[j] is None:
            continue
        if points[j].price < refs[j]:
            below += 1
        else:
            above += 1
    total = above + below
    if total == 0:
        return False
    return above / total > 0.6 or below / total > 0.6


def local_amplitude(points: Sequence[WavePoint], i: int, window: int = 10) -> float:
    """Relative price range in the local window."""
    start, end = window_bounds(i, len(points), window)
    end = max(end, min(len(points), start + 1))
    prices = [p.price for p in points[start:end]]
    low = min(prices)
    if low <= 0:
        return 0.0
    return (max(prices) - low) / low


def ma_trend_filter(
    points: Sequence[WavePoint],
    slow_average: Optional[AverageSeries],
    config: SignificanceConfig = None,
) -> Tuple[WavePoint, ...]:
    """
    Keep points that stand out from the moving-average trend.

    A point survives when its relative deviation from the average reaches
    the adaptive threshold, its neighbours agree on a side of the average,
    it is a turning point (sequence ends always qualify), and its local
    amplitude exceeds the threshold. Points without a source bar pass
    through; points whose average value is absent are dropped.
    """
    config = config or SignificanceConfig()
    if not points:
        return ()

    refs = reference_values(points, slow_average)
    threshold = adaptive_threshold(slow_average, config)
    last = len(points) - 1
    kept = []
    for i, point in enumerate(points):
        if point.source_index is None:
            kept.append(point)
            continue
        ref = refs[i]
        if ref is None or ref <= 0:
            continue
        deviation = abs(point.price - ref) / ref
        if deviation < threshold:
            continue
        if not side_consistent(points, refs, i):
            continue
        if 0 < i < last and not is_turning_point(points, i):
            continue
        if local_amplitude(points, i) <= threshold:
            continue
        kept.append(point.tagged(method=METHOD_MA_TREND, score=min(1.0, deviation / threshold / 3)))

    logger.debug(f"MA-trend filter (threshold {threshold:.4f}): {len(points)} -> {len(kept)} points")
    return tuple(kept)
