"""
Curve Generator

Geometric post-processing of a wave-point sequence: interpolation
(corner-cutting, Catmull-Rom spline, linear subdivision) and smoothing
(geometric, statistical, hybrid). Every function is total: inputs below the
algorithm's minimum size come back unchanged.

Generated samples are INTERPOLATED with no source index. Smoothed points
keep their kind and source index.
"""

import logging
import math
from typing import List, Sequence, Tuple

import numpy as np

from .types import PointKind, WavePoint, to_timestamp

logger = logging.getLogger(__name__)


def _sample(timestamp: float, price: float) -> WavePoint:
    return WavePoint(to_timestamp(timestamp), price, PointKind.INTERPOLATED)


def _lerp(p1: WavePoint, p2: WavePoint, t: float) -> WavePoint:
    return _sample(
        p1.timestamp + (p2.timestamp - p1.timestamp) * t,
        p1.price + (p2.price - p1.price) * t,
    )


def filter_small_waves(points: Sequence[WavePoint], min_price_change: float = 0.0001) -> Tuple[WavePoint, ...]:
    """
    Drop interior points that barely move.

    An interior point survives when its price differs by at least
    ``min_price_change`` from the last kept point or from the next point.
    The first and last points are always kept.
    """
    points = tuple(points)
    if len(points) < 3:
        return points
    kept = [points[0]]
    for current, following in zip(points[1:-1], points[2:]):
        if (abs(current.price - kept[-1].price) >= min_price_change
                or abs(following.price - current.price) >= min_price_change):
            kept.append(current)
    kept.append(points[-1])
    return tuple(kept)


def _chaikin_pass(points: Sequence[WavePoint]) -> List[WavePoint]:
    refined = [points[0]]
    for i, (p1, p2) in enumerate(zip(points, points[1:])):
        # The first pair's 25% cut is absorbed by the preserved first endpoint.
        if i > 0:
            refined.append(_lerp(p1, p2, 0.25))
        refined.append(_lerp(p1, p2, 0.75))
    refined.append(points[-1])
    return refined


def chaikin(points: Sequence[WavePoint], iterations: int = 2) -> Tuple[WavePoint, ...]:
    """
    Chaikin corner-cutting subdivision.

    Each pass replaces every pair (p1, p2) with its 25% and 75% cuts while
    keeping both endpoints exactly, so ``n`` points become ``2n - 1`` and
    ``k`` passes yield ``n + (n - 1) * (2**k - 1)`` points.

    Args:
        points: Control points in time order.
        iterations: Number of passes (0 returns the input).

    Returns:
        Refined points.
    """
    points = tuple(points)
    if len(points) < 2:
        return points
    current = list(points)
    for _ in range(iterations):
        current = _chaikin_pass(current)
    logger.debug(f"Chaikin: {len(points)} -> {len(current)} points ({iterations} iterations)")
    return tuple(current)


def _catmull_rom(p0: WavePoint, p1: WavePoint, p2: WavePoint, p3: WavePoint, t: float) -> WavePoint:
    t2 = t * t
    t3 = t2 * t

    def blend(a: float, b: float, c: float, d: float) -> float:
        return 0.5 * (
            2 * b
            + (-a + c) * t
            + (2 * a - 5 * b + 4 * c - d) * t2
            + (-a + 3 * b - 3 * c + d) * t3
        )

    return _sample(
        blend(p0.timestamp, p1.timestamp, p2.timestamp, p3.timestamp),
        blend(p0.price, p1.price, p2.price, p3.price),
    )


def catmull_rom(points: Sequence[WavePoint], segments_per_interval: int = 8) -> Tuple[WavePoint, ...]:
    """
    Catmull-Rom spline through the points.

    The first and last points stand in for the missing exterior control
    points. Each segment contributes ``segments_per_interval`` samples, the
    last of which is the segment's end point itself.
    """
    points = tuple(points)
    if len(points) < 2 or segments_per_interval < 1:
        return points
    curve = [points[0]]
    last = len(points) - 1
    for i in range(last):
        p0 = points[i - 1] if i > 0 else points[i]
        p1, p2 = points[i], points[i + 1]
        p3 = points[i + 2] if i + 2 <= last else points[i + 1]
        for j in range(1, segments_per_interval):
            curve.append(_catmull_rom(p0, p1, p2, p3, j / segments_per_interval))
        curve.append(p2)
    return tuple(curve)


def linear(points: Sequence[WavePoint], segments_per_interval: int = 5) -> Tuple[WavePoint, ...]:
    """
    Linear subdivision with ``segments_per_interval`` steps per segment.

    ``segments_per_interval == 1`` is the identity.
    """
    points = tuple(points)
    if len(points) < 2 or segments_per_interval < 1:
        return points
    curve = []
    for p1, p2 in zip(points, points[1:]):
        curve.append(p1)
        curve.extend(_lerp(p1, p2, j / segments_per_interval) for j in range(1, segments_per_interval))
    curve.append(points[-1])
    return tuple(curve)


def _distance(point: WavePoint, center_time: float, center_price: float) -> float:
    return math.hypot(point.timestamp - center_time, point.price - center_price)


def geometric_smoothing(points: Sequence[WavePoint], factor: float = 0.3) -> Tuple[WavePoint, ...]:
    """
    Pull each interior point toward the centroid of itself and its neighbours.

    The pull is ``factor * clamp(d(point, c) / d(prev, c), 0.1, 1.0)`` in
    both time and price, where ``c`` is the centroid. Endpoints are kept.
    """
    points = tuple(points)
    if len(points) < 3:
        return points
    smoothed = [points[0]]
    for prev, current, following in zip(points, points[1:], points[2:]):
        center_time = (prev.timestamp + current.timestamp + following.timestamp) / 3
        center_price = (prev.price + current.price + following.price) / 3
        reference = _distance(prev, center_time, center_price)
        ratio = _distance(current, center_time, center_price) / reference if reference > 0 else 1.0
        pull = factor * min(1.0, max(0.1, ratio))
        smoothed.append(
            WavePoint(
                timestamp=to_timestamp(current.timestamp * (1 - pull) + center_time * pull),
                price=current.price * (1 - pull) + center_price * pull,
                kind=current.kind,
                source_index=current.source_index,
                tag=current.tag,
            )
        )
    smoothed.append(points[-1])
    return tuple(smoothed)


def statistical_smoothing(points: Sequence[WavePoint], window_size: int = 5) -> Tuple[WavePoint, ...]:
    """
    Pull each point toward its sliding-window mean.

    The pull is ``0.3 * clamp(|price - mean| / (std + 1e-4), 0, 1)``.
    A window of 1 is the identity; fewer points than the window return the
    input unchanged.
    """
    points = tuple(points)
    if window_size <= 1 or len(points) < window_size:
        return points
    prices = np.array([p.price for p in points], dtype=float)
    n = len(points)
    half = window_size // 2
    smoothed = []
    for i, point in enumerate(points):
        window = prices[min(max(i - half, 0), n - 1):min(i + half + 1, n)]
        mean = float(window.mean())
        strength = min(1.0, abs(point.price - mean) / (float(window.std()) + 0.0001))
        smoothed.append(point.with_price(point.price * (1 - strength * 0.3) + mean * strength * 0.3))
    return tuple(smoothed)


def hybrid_smoothing(
    points: Sequence[WavePoint],
    geometric_weight: float = 0.6,
    statistical_weight: float = 0.4,
    factor: float = 0.3,
    window_size: int = 5,
) -> Tuple[WavePoint, ...]:
    """Weighted blend of geometric and statistical smoothing at matching indices."""
    points = tuple(points)
    if len(points) < 3:
        return points
    geometric = geometric_smoothing(points, factor)
    statistical = statistical_smoothing(points, window_size)
    return tuple(
        original.with_price(g.price * geometric_weight + s.price * statistical_weight)
        for original, g, s in zip(points, geometric, statistical)
    )
