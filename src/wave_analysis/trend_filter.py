"""
Trend Filter

Uses the slow moving average to classify the prevailing trend, re-detects
pivots directly from bars, keeps the pivots whose distance from the average
is consistent with that trend, and derives trend lines, a smooth-trend
skeleton and an overview curve from the accepted set.
"""

import logging
from dataclasses import dataclass, field
from functools import reduce
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .bar_source import AverageSeries, average_at
from .constants import METHOD_AVERAGE_SIDE, METHOD_TREND_FILTER
from .curve_fitting import moving_average_curve
from .types import Bar, PointKind, PointTag, TrendDirection, TrendLine, WavePoint
from .wave_config import TrendFilterConfig

logger = logging.getLogger(__name__)

_PIVOT_TAG = PointTag(method=METHOD_TREND_FILTER)


@dataclass(frozen=True)
class SmoothTrend:
    """Near-average path through accepted points."""
    points: Tuple[WavePoint, ...]
    average_distance: float


@dataclass(frozen=True)
class TrendFilterResult:
    """
    Output of the trend filter.

    Attributes:
        high_points: Accepted pivot highs.
        low_points: Accepted pivot lows.
        trend_lines: Lines through >= 3 direction-consistent points per kind.
        pivots: Every pivot detected before filtering.
        direction: Classified slow-average trend.
        smooth_trend: Near-average skeleton, None when too few points.
        fitted_curve: Moving-average overview curve over accepted points.
    """
    high_points: Tuple[WavePoint, ...] = ()
    low_points: Tuple[WavePoint, ...] = ()
    trend_lines: Tuple[TrendLine, ...] = ()
    pivots: Tuple[WavePoint, ...] = ()
    direction: TrendDirection = TrendDirection.HORIZONTAL
    smooth_trend: Optional[SmoothTrend] = None
    fitted_curve: Tuple[WavePoint, ...] = field(default=())

    @property
    def total_filtered(self) -> int:
        return len(self.high_points) + len(self.low_points)

    @property
    def filtering_rate(self) -> float:
        """Fraction of pivots that survived filtering."""
        if not self.pivots:
            return 0.0
        return self.total_filtered / len(self.pivots)


def classify_trend(slow_average: AverageSeries, config: TrendFilterConfig = None) -> TrendDirection:
    """
    Classify the trend from the regression slope of recent average values.

    The last ``slope_window`` entries are considered; absent values are
    skipped and fewer than ``min_slope_samples`` present values (or fewer
    than ``slope_window`` entries overall) mean HORIZONTAL.
    """
    config = config or TrendFilterConfig()
    n = len(slow_average) if slow_average is not None else 0
    if n < config.slope_window:
        return TrendDirection.HORIZONTAL

    samples = [
        (i, value)
        for i in range(n - config.slope_window, n)
        for value in [average_at(slow_average, i)]
        if value is not None
    ]
    if len(samples) < config.min_slope_samples:
        return TrendDirection.HORIZONTAL

    x = np.array([s[0] for s in samples], dtype=float)
    y = np.array([s[1] for s in samples], dtype=float)
    x_centered = x - x.mean()
    denominator = float(np.sum(x_centered ** 2))
    if denominator == 0:
        return TrendDirection.HORIZONTAL
    slope = float(np.sum(x_centered * (y - y.mean()))) / denominator

    if slope > config.slope_threshold:
        return TrendDirection.UPWARD
    if slope < -config.slope_threshold:
        return TrendDirection.DOWNWARD
    return TrendDirection.HORIZONTAL


def _strict_extremes(values: np.ndarray, lookback: int, highest: bool) -> np.ndarray:
    """Indices whose value strictly beats every other value within +/- lookback."""
    width = 2 * lookback + 1
    if len(values) < width:
        return np.array([], dtype=int)
    windows = np.lib.stride_tricks.sliding_window_view(values, width)
    center = windows[:, lookback]
    others = np.delete(windows, lookback, axis=1)
    if highest:
        mask = center > others.max(axis=1)
    else:
        mask = center < others.min(axis=1)
    return np.nonzero(mask)[0] + lookback


def detect_pivots(bars: Sequence[Bar], lookback: int = 5) -> List[WavePoint]:
    """
    Pivot highs and lows detected directly from bars.

    A bar is a pivot high iff its high is strictly greater than every other
    high within ``lookback`` bars on either side; symmetric for lows.

    Returns:
        Pivots sorted by bar index (HIGH first at equal index).
    """
    if not bars:
        return []
    highs = np.array([b.high for b in bars], dtype=float)
    lows = np.array([b.low for b in bars], dtype=float)

    pivots = [
        WavePoint(bars[i].timestamp, bars[i].high, PointKind.HIGH, int(i), _PIVOT_TAG)
        for i in _strict_extremes(highs, lookback, highest=True)
    ]
    pivots.extend(
        WavePoint(bars[i].timestamp, bars[i].low, PointKind.LOW, int(i), _PIVOT_TAG)
        for i in _strict_extremes(lows, lookback, highest=False)
    )
    pivots.sort(key=lambda p: (p.source_index, p.kind is not PointKind.HIGH))
    return pivots


def relative_distance(price: float, average: float) -> float:
    return abs(price - average) / average


def accept_pivot(
    kind: PointKind,
    price: float,
    average: Optional[float],
    direction: TrendDirection,
    near_threshold: float,
    config: TrendFilterConfig = None,
) -> bool:
    """
    Decide whether a pivot is consistent with the trend.

    The base rule accepts a relative distance inside
    ``[near_threshold, far_threshold]``. In an upward trend highs above the
    average are always accepted and lows are accepted below the average or
    within ``near_relaxation * near_threshold``; downward mirrors this.
    """
    config = config or TrendFilterConfig()
    if average is None or average <= 0:
        return False

    distance = relative_distance(price, average)
    in_band = near_threshold <= distance <= config.far_threshold
    relaxed = distance <= near_threshold * config.near_relaxation

    if direction is TrendDirection.UPWARD:
        if kind is PointKind.HIGH:
            return price > average or in_band
        return price < average or relaxed or in_band
    if direction is TrendDirection.DOWNWARD:
        if kind is PointKind.HIGH:
            return price > average or relaxed or in_band
        return price < average or in_band
    return in_band


def _stronger(candidate: WavePoint, incumbent: WavePoint) -> bool:
    return abs(candidate.price) > abs(incumbent.price)


def _gap_step(min_gap: int):
    def step(acc: Tuple[WavePoint, ...], point: WavePoint) -> Tuple[WavePoint, ...]:
        if not acc or point.source_index - acc[-1].source_index >= min_gap:
            return acc + (point,)
        if _stronger(point, acc[-1]):
            return acc[:-1] + (point,)
        return acc
    return step


def enforce_min_gap(points: Sequence[WavePoint], min_gap: int = 3) -> Tuple[WavePoint, ...]:
    """
    Drop the weaker of any two consecutive points closer than ``min_gap`` bars.

    The point with the larger absolute price is the stronger one for both
    kinds; on equal strength the earlier point survives.
    """
    ordered = sorted(points, key=lambda p: p.source_index)
    return reduce(_gap_step(min_gap), ordered, ())


def _continues_run(run: Sequence[WavePoint], candidate: WavePoint, kind: PointKind) -> bool:
    if len(run) < 2:
        return True
    last, second_last = run[-1].price, run[-2].price
    if kind is PointKind.HIGH:
        return (last > second_last) == (candidate.price > last)
    return (last < second_last) == (candidate.price < last)


def _trend_line(run: Sequence[WavePoint], kind: PointKind) -> TrendLine:
    start, end = run[0], run[-1]
    span = end.source_index - start.source_index
    slope = (end.price - start.price) / span if span else 0.0

    x = np.array([p.source_index for p in run], dtype=float)
    y = np.array([p.price for p in run], dtype=float)
    predicted = start.price + slope * (x - start.source_index)
    ss_tot = float(np.sum((y - y.mean()) ** 2))
    ss_res = float(np.sum((y - predicted) ** 2))
    strength = 1.0 if ss_tot == 0 else min(1.0, max(0.0, 1.0 - ss_res / ss_tot))

    return TrendLine(
        start_index=start.source_index,
        end_index=end.source_index,
        start_value=start.price,
        end_value=end.price,
        slope=slope,
        strength=strength,
        kind=kind,
        point_indices=tuple(int(p.source_index) for p in run),
    )


def build_trend_lines(points: Sequence[WavePoint], kind: PointKind) -> List[TrendLine]:
    """
    Trend lines through direction-consistent runs of one kind.

    From every start point, later points are appended in time order when
    they preserve the run's pairwise up/down direction; points that break
    it are skipped. A run of at least 3 points becomes a TrendLine.
    """
    ordered = sorted((p for p in points if p.kind is kind), key=lambda p: p.source_index)
    lines = []
    for i in range(len(ordered) - 2):
        run = reduce(
            lambda acc, p: acc + (p,) if _continues_run(acc, p, kind) else acc,
            ordered[i + 1:],
            (ordered[i],),
        )
        if len(run) >= 3:
            lines.append(_trend_line(run, kind))
    return lines


def smooth_trend_skeleton(
    points: Sequence[WavePoint],
    slow_average: AverageSeries,
    config: TrendFilterConfig = None,
) -> Optional[SmoothTrend]:
    """
    Points lying within the loose near-average band, in index order.

    Returns None when fewer than 2 points qualify.
    """
    config = config or TrendFilterConfig()
    kept = []
    distances = []
    for point in sorted(points, key=lambda p: p.source_index):
        average = average_at(slow_average, point.source_index)
        if average is None or average <= 0:
            continue
        distance = relative_distance(point.price, average)
        if config.smooth_band_low <= distance <= config.smooth_band_high:
            kept.append(point)
            distances.append(distance)
    if len(kept) < 2:
        return None
    return SmoothTrend(tuple(kept), float(np.mean(distances)))


def dynamic_near_threshold(
    bars: Sequence[Bar],
    slow_average: AverageSeries,
    lookback: int = 20,
    default: float = 0.005,
) -> float:
    """
    Volatility-adaptive near threshold.

    Mean relative excursion of recent highs and lows from the average,
    scaled by 0.3 and clamped to [0.002, 0.02].
    """
    if len(bars) < lookback:
        return default
    excursions = []
    for i in range(len(bars) - lookback, len(bars)):
        average = average_at(slow_average, i)
        if average is None or average <= 0:
            continue
        bar = bars[i]
        excursions.append((abs(bar.high - average) + abs(bar.low - average)) / 2 / average)
    if not excursions:
        return default
    return min(0.02, max(0.002, float(np.mean(excursions)) * 0.3))


def filter_by_trend(
    bars: Sequence[Bar],
    zigzag: Sequence[WavePoint],
    slow_average: Optional[AverageSeries],
    config: TrendFilterConfig = None,
) -> TrendFilterResult:
    """
    Filter pivots by consistency with the slow-average trend.

    Args:
        bars: Ordered bar sequence.
        zigzag: Current zigzag; an empty one yields an empty result.
        slow_average: Slow moving average aligned with bars.
        config: Trend filter parameters (defaults if not provided).

    Returns:
        TrendFilterResult; all fields empty for degenerate inputs.
    """
    config = config or TrendFilterConfig()
    if not zigzag or not bars or slow_average is None or len(slow_average) == 0:
        logger.debug("Trend filter skipped: empty zigzag, bars or slow average")
        return TrendFilterResult()

    direction = classify_trend(slow_average, config)
    near = config.near_threshold
    if config.adaptive_near_threshold:
        near = dynamic_near_threshold(bars, slow_average, default=config.near_threshold)

    pivots = detect_pivots(bars, config.pivot_lookback)
    accepted = [
        p for p in pivots
        if accept_pivot(p.kind, p.price, average_at(slow_average, p.source_index), direction, near, config)
    ]
    highs = enforce_min_gap([p for p in accepted if p.is_high], config.min_gap_bars)
    lows = enforce_min_gap([p for p in accepted if p.is_low], config.min_gap_bars)

    lines = build_trend_lines(highs, PointKind.HIGH) + build_trend_lines(lows, PointKind.LOW)
    combined = sorted(highs + lows, key=lambda p: p.source_index)
    smooth = smooth_trend_skeleton(combined, slow_average, config)
    fitted = moving_average_curve(combined, config.fitted_window, config.fitted_blend)

    result = TrendFilterResult(
        high_points=highs,
        low_points=lows,
        trend_lines=tuple(lines),
        pivots=tuple(pivots),
        direction=direction,
        smooth_trend=smooth,
        fitted_curve=tuple(fitted),
    )
    logger.info(
        f"Trend filter ({direction.value}): {len(pivots)} pivots -> "
        f"{len(highs)} highs, {len(lows)} lows, {len(lines)} trend lines"
    )
    return result


def filter_by_average_side(
    zigzag: Sequence[WavePoint],
    average: Optional[AverageSeries],
) -> Tuple[WavePoint, ...]:
    """
    Keep the most extreme point of each same-side group.

    Consecutive points on the same side of the average form a group; the
    highest point of an above group and the lowest of a below group
    survive. Points without an average value are skipped.
    """
    groups: List[Tuple[bool, List[WavePoint]]] = []
    for point in zigzag:
        value = average_at(average, point.source_index)
        if value is None:
            continue
        above = point.price > value
        if groups and groups[-1][0] == above:
            groups[-1][1].append(point)
        else:
            groups.append((above, [point]))

    kept = []
    for above, members in groups:
        if above:
            best = max(members, key=lambda p: p.price)
        else:
            best = min(members, key=lambda p: p.price)
        kept.append(best.tagged(method=METHOD_AVERAGE_SIDE))
    return tuple(kept)
