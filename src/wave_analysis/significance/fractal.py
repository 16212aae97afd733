"""
Fractal filtering.

Segments of the point sequence are scored for self-similarity (how well
equal-length sub-segments correlate in shape) and golden-ratio conformity
of consecutive swing amplitudes. Segments scoring above the threshold are
recorded as structures with a level-dependent weight; points covered by
enough weighted structure survive.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..bar_source import AverageSeries
from ..constants import GOLDEN_RATIO, METHOD_FRACTAL
from ..types import WavePoint
from ..wave_config import SignificanceConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FractalStructure:
    """A self-similar segment [start_index, end_index] at a recursion level."""
    start_index: int
    end_index: int
    level: int
    score: float


def box_count(points: Sequence[WavePoint], scale: float) -> int:
    """
    Number of occupied grid cells.

    The cell size is the larger of the time and price ranges divided by
    ``scale``; a degenerate range occupies no cells.
    """
    if not points:
        return 0
    times = np.array([p.timestamp for p in points], dtype=float)
    prices = np.array([p.price for p in points], dtype=float)
    box_size = max(times.max() - times.min(), prices.max() - prices.min()) / scale
    if box_size <= 0:
        return 0
    cells = zip(
        np.floor((times - times.min()) / box_size).astype(int),
        np.floor((prices - prices.min()) / box_size).astype(int),
    )
    return len(set(cells))


def fractal_dimension(points: Sequence[WavePoint], scales: Sequence[float] = (1, 2, 4, 8, 16)) -> float:
    """
    Box-counting dimension estimate.

    Negative slope of log(count) against log(scale). Returns 1.0 when fewer
    than 3 points are given or any scale occupies no cells.
    """
    if len(points) < 3:
        return 1.0
    counts = [box_count(points, s) for s in scales]
    if min(counts) <= 0:
        return 1.0
    x = np.log(np.asarray(scales, dtype=float))
    y = np.log(np.asarray(counts, dtype=float))
    x_centered = x - x.mean()
    denominator = float(np.sum(x_centered ** 2))
    if denominator == 0:
        return 1.0
    return -float(np.sum(x_centered * (y - y.mean()))) / denominator


def shape_similarity(windows: np.ndarray) -> float:
    """
    Mean absolute Pearson correlation over all pairs of equal-length rows.

    Constant rows correlate as 0.
    """
    if len(windows) < 2 or windows.shape[1] < 2:
        return 0.0
    centered = windows - windows.mean(axis=1, keepdims=True)
    norms = np.sqrt(np.sum(centered ** 2, axis=1))
    denom = np.outer(norms, norms)
    with np.errstate(invalid="ignore", divide="ignore"):
        corr = np.where(denom > 0, (centered @ centered.T) / denom, 0.0)
    upper = np.triu_indices(len(windows), k=1)
    return float(np.mean(np.abs(corr[upper])))


def _sub_segments(prices: np.ndarray, scale: int) -> np.ndarray:
    step = max(1, scale // 2)
    starts = range(0, len(prices) - scale + 1, step)
    return np.array([prices[s:s + scale] for s in starts], dtype=float)


def self_similarity(prices: np.ndarray) -> float:
    """Scale-weighted sum of sub-segment shape similarity for scales 2..n//2."""
    total = 0.0
    for scale in range(2, len(prices) // 2 + 1):
        windows = _sub_segments(prices, scale)
        if len(windows) >= 2:
            total += shape_similarity(windows) / scale
    return total


def golden_ratio_score(prices: Sequence[float]) -> float:
    """
    Mean conformity of consecutive swing ratios to the golden ratio.

    Each interior point contributes exp(-d) where d is the smaller relative
    deviation of its two signed amplitude ratios from 1.618. A flat swing
    contributes 0.
    """
    if len(prices) < 3:
        return 0.0
    score = 0.0
    for prev, current, following in zip(prices, prices[1:], prices[2:]):
        rise = current - prev
        fall = following - current
        if rise == 0 or fall == 0:
            continue
        deviation1 = abs(rise / abs(fall) - GOLDEN_RATIO) / GOLDEN_RATIO
        deviation2 = abs(fall / abs(rise) - GOLDEN_RATIO) / GOLDEN_RATIO
        score += math.exp(-min(deviation1, deviation2))
    return score / (len(prices) - 2)


def fractal_score(segment: Sequence[WavePoint]) -> float:
    """Average of self-similarity and golden-ratio conformity."""
    if len(segment) < 3:
        return 0.0
    prices = np.array([p.price for p in segment], dtype=float)
    return (self_similarity(prices) + golden_ratio_score(prices)) / 2.0


def identify_structures(
    points: Sequence[WavePoint],
    threshold: float = 0.618,
    min_level: int = 2,
) -> List[FractalStructure]:
    """
    Recursively bisect the sequence and record self-similar segments.

    Segments shorter than 4 points are ignored; segments longer than 7
    points are split at their midpoint (the midpoint belongs to both halves).
    """
    structures: List[FractalStructure] = []
    stack = [(0, len(points) - 1, min_level)]
    while stack:
        start, end, level = stack.pop()
        if end - start < 3:
            continue
        score = fractal_score(points[start:end + 1])
        if score >= threshold and level >= 2:
            structures.append(FractalStructure(start, end, level, score))
        if end - start > 6:
            mid = (start + end) // 2
            stack.append((mid, end, level + 1))
            stack.append((start, mid, level + 1))
    return structures


def importance_scores(
    n: int,
    structures: Sequence[FractalStructure],
    scale_factor: float = 1.5,
) -> np.ndarray:
    """Sum of ``score * scale_factor ** level`` over structures covering each point."""
    scores = np.zeros(n)
    for s in structures:
        scores[s.start_index:min(n, s.end_index + 1)] += s.score * scale_factor ** s.level
    return scores


def fractal_filter(
    points: Sequence[WavePoint],
    slow_average: Optional[AverageSeries] = None,
    config: SignificanceConfig = None,
) -> Tuple[WavePoint, ...]:
    """
    Keep points covered by important self-similar structure.

    Args:
        points: Wave points in time order.
        slow_average: Unused; accepted so every significance strategy
            shares one call shape.
        config: Significance parameters (defaults if not provided).

    Returns:
        Points whose importance reaches ``importance_ratio`` of the
        maximum, plus the first and last point. Inputs with fewer than 5
        points, or without any structure, are returned unchanged.
    """
    config = config or SignificanceConfig()
    points = tuple(points)
    if len(points) < 5:
        return points

    dimension = fractal_dimension(points, config.box_scales)
    structures = identify_structures(points, config.fractal_threshold, config.fractal_min_level)
    logger.info(f"Fractal dimension {dimension:.3f}, {len(structures)} structures")
    if not structures:
        return points

    scores = importance_scores(len(points), structures, config.fractal_scale_factor)
    peak = float(scores.max())
    threshold = peak * config.importance_ratio
    last = len(points) - 1
    kept = tuple(
        point.tagged(method=METHOD_FRACTAL, score=float(scores[i]) / peak if peak > 0 else 0.0)
        for i, point in enumerate(points)
        if scores[i] >= threshold or i == 0 or i == last
    )
    logger.debug(f"Fractal filter: {len(points)} -> {len(kept)} points")
    return kept
