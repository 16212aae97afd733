"""
Scoring helpers shared by the composite significance strategies.

Every helper works on a point sequence plus a list of reference average
values aligned with it (``refs[i]`` is the slow average at
``points[i].source_index``, or None when absent). Local windows are
half-open ``[i - half, i + half)`` ranges over point positions.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..bar_source import AverageSeries, average_at
from ..types import PointKind, WavePoint

NEUTRAL_WEIGHT = 0.5
TIME_NORMALIZER = 1000.0   # Time gap treated as fully isolated / fully developed


class MarketState(Enum):
    """Local market regime used to adapt component weights."""
    TRENDING = "trending"
    RANGING = "ranging"
    VOLATILE = "volatile"


@dataclass(frozen=True)
class Channel:
    """Local price/average envelope around a point."""
    lower: float
    upper: float
    margin: float = 0.0

    @property
    def center(self) -> float:
        return (self.lower + self.upper) / 2

    @property
    def width(self) -> float:
        return self.upper - self.lower


def reference_values(points: Sequence[WavePoint], average: Optional[AverageSeries]) -> List[Optional[float]]:
    """Slow-average value at each point's source bar, None when unknown."""
    return [average_at(average, p.source_index) for p in points]


def sigmoid(x: float) -> float:
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


def window_bounds(i: int, n: int, window: int) -> Tuple[int, int]:
    """Half-open window of ``window`` positions centred on i, clipped to [0, n)."""
    half = min(window, n) // 2
    return max(0, i - half), min(n, i + half)


def distance_score(price: float, reference: float) -> float:
    """Sigmoid of the relative distance from the reference, centred at 2%."""
    if reference == 0:
        return 0.0
    distance = abs(price - reference) / reference
    return sigmoid(10 * (distance - 0.02))


def local_channel(
    points: Sequence[WavePoint],
    refs: Sequence[Optional[float]],
    i: int,
    window: int = 20,
) -> Optional[Channel]:
    """
    Envelope of the reference average widened by 10% of the local price range.

    Returns None when no reference value exists in the window.
    """
    start, end = window_bounds(i, len(points), window)
    end = max(end, min(len(points), start + 1))
    local_refs = [r for r in refs[start:end] if r is not None]
    if not local_refs:
        return None
    prices = [p.price for p in points[start:end]]
    width = 0.1 * (max(prices) - min(prices))
    return Channel(min(local_refs) - width, max(local_refs) + width, width)


def geometry_score(price: float, channel: Optional[Channel]) -> float:
    """
    Channel geometry score.

    Outside the channel the score grows with the relative breakout; inside
    it grows with the relative distance to the nearer boundary.
    """
    if channel is None or channel.lower <= 0 or channel.upper <= 0:
        return 0.0
    if price < channel.lower:
        return min(1.0, (channel.lower - price) / channel.lower * 5)
    if price > channel.upper:
        return min(1.0, (price - channel.upper) / channel.upper * 5)
    nearest = min((price - channel.lower) / channel.lower, (channel.upper - price) / channel.upper)
    return min(1.0, nearest * 10)


def channel_fit_score(price: float, channel: Optional[Channel]) -> float:
    """Logistic falloff of the distance from the channel centre in margins."""
    if channel is None:
        return NEUTRAL_WEIGHT
    if channel.margin <= 0:
        return 1.0 if price == channel.center else 0.0
    normalized = abs(price - channel.center) / channel.margin
    return 1.0 - sigmoid(5 * (normalized - 1))


def is_local_peak(points: Sequence[WavePoint], i: int) -> bool:
    """Interior point strictly above both neighbours."""
    if i <= 0 or i >= len(points) - 1:
        return False
    return points[i].price > points[i - 1].price and points[i].price > points[i + 1].price


def is_local_trough(points: Sequence[WavePoint], i: int) -> bool:
    """Interior point strictly below both neighbours."""
    if i <= 0 or i >= len(points) - 1:
        return False
    return points[i].price < points[i - 1].price and points[i].price < points[i + 1].price


def is_turning_point(points: Sequence[WavePoint], i: int) -> bool:
    """Interior HIGH above both neighbours or LOW below both."""
    kind = points[i].kind
    if kind is PointKind.HIGH:
        return is_local_peak(points, i)
    if kind is PointKind.LOW:
        return is_local_trough(points, i)
    return False


def nearest_turning_points(
    points: Sequence[WavePoint],
    i: int,
    max_distance: Optional[int] = None,
) -> Tuple[Optional[int], Optional[int]]:
    """Positions of the nearest turning point before and after i."""
    n = len(points)
    limit = n if max_distance is None else max_distance
    before = next(
        (j for j in range(i - 1, max(-1, i - limit - 1), -1) if is_turning_point(points, j)),
        None,
    )
    after = next(
        (j for j in range(i + 1, min(n, i + limit + 1)) if is_turning_point(points, j)),
        None,
    )
    return before, after


def peak_strength(points: Sequence[WavePoint], i: int, window: int = 10) -> float:
    """Z-score of the price within the local window, divided by 3 and capped at 1."""
    start, end = window_bounds(i, len(points), window)
    end = max(end, min(len(points), start + 1))
    prices = np.array([p.price for p in points[start:end]], dtype=float)
    std = float(np.std(prices))
    if std == 0:
        return 0.0
    return min(1.0, abs(points[i].price - float(np.mean(prices))) / std / 3)


def slope_between(a: WavePoint, b: WavePoint) -> float:
    dt = b.timestamp - a.timestamp
    if dt == 0:
        return 0.0
    return (b.price - a.price) / dt


def peak_sharpness(points: Sequence[WavePoint], i: int) -> float:
    """Change of slope across the point, scaled by 1000 and capped at 1."""
    if i <= 0 or i >= len(points) - 1:
        return 0.0
    change = abs(slope_between(points[i - 1], points[i]) - slope_between(points[i], points[i + 1]))
    return min(1.0, change * 1000)


def peak_isolation(points: Sequence[WavePoint], i: int) -> float:
    """
    Time isolation from the nearest turning point on each side.

    Each side contributes min(1, gap / 1000); a side without a turning
    point contributes 1.
    """
    isolation = 1.0
    for j in nearest_turning_points(points, i):
        if j is not None:
            gap = abs(points[i].timestamp - points[j].timestamp)
            isolation *= min(1.0, gap / TIME_NORMALIZER)
    return isolation


def peak_significance(points: Sequence[WavePoint], i: int) -> float:
    """Blend of z-score strength, slope-change sharpness and time isolation."""
    return (
        0.4 * peak_strength(points, i)
        + 0.3 * peak_sharpness(points, i)
        + 0.3 * peak_isolation(points, i)
    )


def trend_strength(values: Sequence[float]) -> float:
    """Standard deviation of first differences."""
    if len(values) < 2:
        return 0.0
    return float(np.std(np.diff(np.asarray(values, dtype=float))))


def volatility(prices: Sequence[float]) -> float:
    """Standard deviation of relative price changes."""
    prices = np.asarray(prices, dtype=float)
    if len(prices) < 2 or np.any(prices[:-1] == 0):
        return 0.0
    return float(np.std(np.diff(prices) / prices[:-1]))


def classify_market_state(
    points: Sequence[WavePoint],
    refs: Sequence[Optional[float]],
    i: int,
    window: int = 50,
) -> MarketState:
    """
    Classify the regime around point i.

    TRENDING when the local average moves unevenly enough (std of its
    differences above 0.5), VOLATILE when relative price changes have a std
    above 2%, otherwise RANGING.
    """
    start, end = window_bounds(i, len(points), window)
    local_refs = [r for r in refs[start:end] if r is not None]
    if trend_strength(local_refs) > 0.5:
        return MarketState.TRENDING
    if volatility([p.price for p in points[start:end]]) > 0.02:
        return MarketState.VOLATILE
    return MarketState.RANGING


def normalize_weight(weight: float, index: int, total: int) -> float:
    """Sigmoid normalisation with a mild linear decay toward the end."""
    ramp = 1.0 - (index / total) * 0.2 if total else 1.0
    return sigmoid(5 * (weight - 0.5)) * ramp


def exponential_smooth(weights: Sequence[float], alpha: float) -> List[float]:
    """First-order exponential filter seeded with the first weight."""
    smoothed: List[float] = []
    for w in weights:
        smoothed.append(w if not smoothed else alpha * w + (1 - alpha) * smoothed[-1])
    return smoothed


def soft_shrink(
    points: Sequence[WavePoint],
    weights: Sequence[float],
    refs: Sequence[Optional[float]],
    shrink_factor: float,
    min_weight: float,
    method: str,
) -> Tuple[WavePoint, ...]:
    """
    Soften prices toward the reference average by weight.

    Points without a reference pass through unchanged with a neutral
    score. Points below
    ``min_weight`` are dropped; the rest move ``(1 - w) * shrink_factor``
    of the way to the reference. Each survivor's tag records the method
    and its weight as the significance score.
    """
    result = []
    for point, weight, ref in zip(points, weights, refs):
        score = min(1.0, max(0.0, weight))
        if ref is None:
            result.append(point.tagged(method=method, score=NEUTRAL_WEIGHT))
            continue
        if weight < min_weight:
            continue
        shrink = (1 - weight) * shrink_factor
        price = point.price * (1 - shrink) + ref * shrink
        result.append(point.with_price(price).tagged(method=method, score=score))
    return tuple(result)
