"""
N-structure significance filtering.

Scores each point on five structural signals and combines them into one
weight:

- local "N" pattern (peak-trough-peak for highs, trough-peak-trough for lows)
  completeness, symmetry and strength;
- channel fit around the slow average;
- wave amplitude, slope change and strength relative to neighbouring waves;
- time gap to the nearest turning point against 3x the local average period;
- wave amplitude against 3x the local central amplitude.

The last two are soft constraints: exceeding the limit lowers the score
gradually instead of rejecting the point.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..bar_source import AverageSeries
from ..constants import METHOD_N_STRUCTURE
from ..types import PointKind, WavePoint
from ..wave_config import SignificanceConfig
from .common import (
    NEUTRAL_WEIGHT,
    TIME_NORMALIZER,
    channel_fit_score,
    distance_score,
    exponential_smooth,
    is_local_peak,
    is_local_trough,
    local_channel,
    nearest_turning_points,
    normalize_weight,
    reference_values,
    soft_shrink,
    window_bounds,
)

logger = logging.getLogger(__name__)

DEFAULT_PERIOD = 1000.0
ADJACENT_SEARCH = 10


@dataclass(frozen=True)
class NStructure:
    """Three-leg pattern around a point.

    For a rising N ``first`` and ``last`` are peaks and ``middle`` a trough;
    for a falling N the roles are reversed.
    """
    rising: bool
    first: WavePoint
    middle: WavePoint
    last: WavePoint

    @property
    def completeness(self) -> float:
        if self.rising:
            prices_ok = self.first.price > self.middle.price and self.last.price > self.middle.price
        else:
            prices_ok = self.first.price < self.middle.price and self.last.price < self.middle.price
        times_ok = self.first.timestamp < self.middle.timestamp < self.last.timestamp
        return 1.0 if prices_ok and times_ok else 0.5

    @property
    def symmetry(self) -> float:
        first_interval = float(self.middle.timestamp - self.first.timestamp)
        second_interval = float(self.last.timestamp - self.middle.timestamp)
        time_sum = first_interval + second_interval
        time_symmetry = 1.0 - abs(first_interval - second_interval) / time_sum if time_sum > 0 else 1.0

        first_amplitude = abs(self.first.price - self.middle.price)
        second_amplitude = abs(self.last.price - self.middle.price)
        price_sum = first_amplitude + second_amplitude
        price_symmetry = 1.0 - abs(first_amplitude - second_amplitude) / price_sum if price_sum > 0 else 1.0
        return (time_symmetry + price_symmetry) / 2.0

    @property
    def strength(self) -> float:
        if self.rising:
            move = self.last.price - self.first.price
            base = max(0.00001, min(self.first.price, self.last.price))
        else:
            move = self.first.price - self.last.price
            base = max(0.00001, max(self.first.price, self.last.price))
        span = float(self.last.timestamp - self.first.timestamp)
        return (move / base) * 0.7 + min(1.0, span / TIME_NORMALIZER) * 0.3

    @property
    def score(self) -> float:
        return self.completeness * 0.4 + self.symmetry * 0.3 + self.strength * 0.3


def find_local_n_structure(points: Sequence[WavePoint], i: int, window: int = 20) -> Optional[NStructure]:
    """
    Look for an N pattern among the local peaks and troughs around point i.

    A HIGH needs two peaks with the first trough between them; a LOW needs
    two troughs with the first peak between them.
    """
    start, end = window_bounds(i, len(points), window)
    local = points[start:end]
    peaks = [local[j] for j in range(len(local)) if is_local_peak(local, j)]
    troughs = [local[j] for j in range(len(local)) if is_local_trough(local, j)]

    point = points[i]
    if point.kind is PointKind.HIGH and len(peaks) >= 2 and troughs:
        first, middle, last = peaks[0], troughs[0], peaks[1]
        if first.timestamp < middle.timestamp < last.timestamp:
            return NStructure(True, first, middle, last)
    if point.kind is PointKind.LOW and len(troughs) >= 2 and peaks:
        first, middle, last = troughs[0], peaks[0], troughs[1]
        if first.timestamp < middle.timestamp < last.timestamp:
            return NStructure(False, first, middle, last)
    return None


def n_structure_scores(points: Sequence[WavePoint]) -> List[float]:
    scores = []
    for i in range(len(points)):
        structure = find_local_n_structure(points, i)
        scores.append(structure.score if structure else 0.0)
    return scores


def channel_scores(points: Sequence[WavePoint], refs: Sequence[Optional[float]]) -> List[float]:
    """Distance from the average blended with fit to the local channel."""
    scores = []
    for i, point in enumerate(points):
        ref = refs[i]
        if ref is None:
            scores.append(NEUTRAL_WEIGHT)
            continue
        fit = channel_fit_score(point.price, local_channel(points, refs, i))
        scores.append(distance_score(point.price, ref) * 0.6 + fit * 0.4)
    return scores


def wave_amplitude(points: Sequence[WavePoint], i: int) -> float:
    """Largest move to an adjacent turning point, relative to price, capped at 1."""
    price = points[i].price
    moves = [
        abs(price - points[j].price)
        for j in nearest_turning_points(points, i, ADJACENT_SEARCH)
        if j is not None
    ]
    if not moves or price == 0:
        return 0.0
    return min(1.0, max(moves) / price)


def wave_slope(points: Sequence[WavePoint], i: int) -> float:
    if i <= 0 or i >= len(points) - 1:
        return 0.0
    prev, point, following = points[i - 1], points[i], points[i + 1]
    left_dt = point.timestamp - prev.timestamp
    right_dt = following.timestamp - point.timestamp
    if left_dt == 0 or right_dt == 0:
        return 0.0
    change = abs((point.price - prev.price) / left_dt - (following.price - point.price) / right_dt)
    return min(1.0, change * 1000)


def _wave_strengths(points: Sequence[WavePoint]) -> List[float]:
    """Price change per unit time across the wave bounding each point."""
    strengths = []
    for i in range(len(points)):
        before, after = nearest_turning_points(points, i)
        start = i if before is None else before
        end = i if after is None else after
        if start == end:
            strengths.append(0.0)
            continue
        span = float(points[end].timestamp - points[start].timestamp)
        strengths.append(abs(points[end].price - points[start].price) / (span + 1))
    return strengths


def _strength_change(strengths: Sequence[float], i: int, window: int = 20) -> float:
    n = len(strengths)
    start = max(0, i - min(window, n))
    end = min(n, i + min(window, n))
    local = strengths[start:max(start, end - 1)]
    average = float(np.mean(local)) if local else 0.0
    if average == 0:
        return 0.0
    return min(1.0, 2.0 - abs(strengths[i] / average))


def wave_strength_scores(points: Sequence[WavePoint], refs: Sequence[Optional[float]]) -> List[float]:
    strengths = _wave_strengths(points)
    scores = []
    for i in range(len(points)):
        if refs[i] is None:
            scores.append(NEUTRAL_WEIGHT)
            continue
        scores.append(
            wave_amplitude(points, i) * 0.4
            + wave_slope(points, i) * 0.3
            + _strength_change(strengths, i) * 0.3
        )
    return scores


def time_interval(points: Sequence[WavePoint], i: int) -> float:
    """Smallest time gap to an adjacent turning point, 0 when there is none."""
    gaps = [
        float(abs(points[i].timestamp - points[j].timestamp))
        for j in nearest_turning_points(points, i, ADJACENT_SEARCH)
        if j is not None
    ]
    return min(gaps) if gaps else 0.0


def time_interval_scores(points: Sequence[WavePoint], window: int = 20) -> List[float]:
    """Soft constraint: gap to the nearest turning point <= 3x the local average period."""
    n = len(points)
    intervals = [time_interval(points, i) for i in range(n)]
    scores = []
    for i in range(n):
        start = max(0, i - min(window, n))
        end = min(n, i + min(window, n))
        periods = [v for v in intervals[start:max(start, end - 1)] if v > 0]
        average = float(np.mean(periods)) if periods else DEFAULT_PERIOD
        ratio = intervals[i] / (average * 3.0)
        scores.append(1.0 if ratio <= 1.0 else max(0.0, 1.0 - (ratio - 1.0)))
    return scores


def central_amplitude(
    points: Sequence[WavePoint],
    refs: Sequence[Optional[float]],
    i: int,
    window: int = 20,
) -> float:
    """Mean of the local price range and the local average range."""
    start, end = window_bounds(i, len(points), window)
    local_refs = [r for r in refs[start:end] if r is not None]
    if not local_refs:
        return 0.0
    prices = [p.price for p in points[start:end]]
    return ((max(prices) - min(prices)) + (max(local_refs) - min(local_refs))) / 2.0


def wave_height_scores(points: Sequence[WavePoint], refs: Sequence[Optional[float]]) -> List[float]:
    """Soft constraint: wave amplitude <= 3x the local central amplitude."""
    scores = []
    for i in range(len(points)):
        if refs[i] is None:
            scores.append(NEUTRAL_WEIGHT)
            continue
        central = central_amplitude(points, refs, i)
        ratio = wave_amplitude(points, i) / (central * 3.0) if central > 0 else 1.0
        scores.append(1.0 if ratio <= 1.0 else max(0.0, 1.0 - (ratio - 1.0) * 0.5))
    return scores


def n_structure_weights(
    points: Sequence[WavePoint],
    slow_average: Optional[AverageSeries],
    config: SignificanceConfig = None,
) -> List[float]:
    """Smoothed composite weight per point."""
    config = config or SignificanceConfig()
    refs = reference_values(points, slow_average)
    components = zip(
        n_structure_scores(points),
        channel_scores(points, refs),
        wave_strength_scores(points, refs),
        time_interval_scores(points),
        wave_height_scores(points, refs),
    )
    n = len(points)
    combined = [
        normalize_weight(sum(w * s for w, s in zip(config.n_structure_weights, scores)), i, n)
        for i, scores in enumerate(components)
    ]
    return exponential_smooth(combined, config.alpha)


def n_structure_filter(
    points: Sequence[WavePoint],
    slow_average: Optional[AverageSeries],
    config: SignificanceConfig = None,
) -> Tuple[WavePoint, ...]:
    """
    Filter and soften points by their N-structure weight.

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
    weights = n_structure_weights(points, slow_average, config)
    result = soft_shrink(points, weights, refs, config.shrink_factor, config.min_weight,
                         METHOD_N_STRUCTURE)
    logger.debug(f"N-structure filter: {len(points)} -> {len(result)} points")
    return result
