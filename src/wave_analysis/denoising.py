"""
Denoising Engine

Suppresses spurious local extrema. Candidate extrema are scored against a
reference curve (the better of a quadratic least-squares fit and a tri-cube
local regression); only candidates whose residual is an outlier by the
median absolute deviation survive. Large time gaps between survivors are
bridged with interpolated points.
"""

import logging
from typing import List, Sequence, Tuple

import numpy as np

from .constants import METHOD_DENOISED, METHOD_INTERPOLATED
from .curve_fitting import (
    FittedCurve,
    SingularMatrixError,
    fit_local_regression,
    fit_polynomial,
    median_absolute_deviation,
    rms_error,
)
from .types import PointKind, PointTag, WavePoint, to_timestamp
from .wave_config import DenoiseConfig

logger = logging.getLogger(__name__)

_GAP_TAG = PointTag(method=METHOD_INTERPOLATED)


def extract_candidates(points: Sequence[WavePoint]) -> List[WavePoint]:
    """
    Interior points strictly more extreme than both neighbours.

    A HIGH must be above both neighbours and a LOW below both; interpolated
    points never qualify.
    """
    candidates = []
    for i in range(1, len(points) - 1):
        prev_price = points[i - 1].price
        next_price = points[i + 1].price
        point = points[i]
        if point.kind is PointKind.HIGH and point.price > prev_price and point.price > next_price:
            candidates.append(point)
        elif point.kind is PointKind.LOW and point.price < prev_price and point.price < next_price:
            candidates.append(point)
    return candidates


def fit_reference_curve(candidates: Sequence[WavePoint], config: DenoiseConfig = None) -> FittedCurve:
    """
    Fit both reference curves and return the one with the lower RMS error.

    The polynomial wins ties.
    """
    config = config or DenoiseConfig()
    x = np.array([p.timestamp for p in candidates], dtype=float)
    y = np.array([p.price for p in candidates], dtype=float)

    polynomial = fit_polynomial(x, y, config.polynomial_degree)
    local = fit_local_regression(x, y, config.loess_bandwidth)
    poly_error = rms_error(polynomial, x, y)
    local_error = rms_error(local, x, y)
    logger.debug(f"Reference fit RMSE: polynomial={poly_error:.6g}, local={local_error:.6g}")

    if not np.isfinite(poly_error) and not np.isfinite(local_error):
        raise SingularMatrixError("Both reference curves produced non-finite errors")
    if not np.isfinite(local_error) or poly_error <= local_error:
        return polynomial
    return local


def compute_residuals(candidates: Sequence[WavePoint], curve: FittedCurve) -> np.ndarray:
    """Absolute distance of each candidate from the curve."""
    x = np.array([p.timestamp for p in candidates], dtype=float)
    y = np.array([p.price for p in candidates], dtype=float)
    residuals = np.abs(y - curve.evaluate(x))
    if not np.all(np.isfinite(residuals)):
        raise FloatingPointError("Non-finite residual")
    return residuals


def select_significant(
    candidates: Sequence[WavePoint],
    residuals: Sequence[float],
    multiplier: float,
) -> List[WavePoint]:
    """
    Candidates whose residual exceeds ``multiplier`` times the MAD.

    Args:
        candidates: Candidate points.
        residuals: Residual per candidate.
        multiplier: MAD multiplier; larger values never select more points.

    Returns:
        Significant candidates sorted by timestamp.
    """
    threshold = multiplier * median_absolute_deviation(residuals)
    kept = [p for p, r in zip(candidates, residuals) if r > threshold]
    return sorted(kept, key=lambda p: p.timestamp)


def fill_gaps(points: Sequence[WavePoint], max_gap: int = 1000, step: int = 500) -> List[WavePoint]:
    """
    Insert evenly spaced interpolated points across large time gaps.

    A gap wider than ``max_gap`` is split into ``round(gap / step)`` equal
    parts; the inserted points are INTERPOLATED with no source index.
    """
    if len(points) < 2:
        return list(points)

    filled = [points[0]]
    for current, following in zip(points, points[1:]):
        gap = following.timestamp - current.timestamp
        if gap > max_gap:
            steps = to_timestamp(gap / step)
            for i in range(1, steps):
                ratio = i / steps
                filled.append(
                    WavePoint(
                        timestamp=to_timestamp(current.timestamp + gap * ratio),
                        price=current.price + (following.price - current.price) * ratio,
                        kind=PointKind.INTERPOLATED,
                        tag=_GAP_TAG,
                    )
                )
        filled.append(following)
    return filled


def denoise(points: Sequence[WavePoint], config: DenoiseConfig = None) -> Tuple[WavePoint, ...]:
    """
    Keep only structurally significant turning points.

    Args:
        points: Wave points in time order.
        config: Denoising parameters (defaults if not provided).

    Returns:
        Significant points with large gaps filled. The input is returned
        unchanged when it is too short, has fewer than 3 candidates, yields
        no significant candidate, or a numeric failure occurs.
    """
    config = config or DenoiseConfig()
    points = tuple(points)
    if len(points) < config.window_size:
        logger.debug(f"Denoise skipped: {len(points)} points < window {config.window_size}")
        return points

    candidates = extract_candidates(points)
    if len(candidates) < 3:
        logger.debug(f"Denoise skipped: only {len(candidates)} candidates")
        return points

    try:
        curve = fit_reference_curve(candidates, config)
        residuals = compute_residuals(candidates, curve)
        significant = select_significant(candidates, residuals, config.outlier_threshold)
        if not significant:
            logger.info("Denoise found no significant points; keeping input")
            return points
        denoised = [p.tagged(method=METHOD_DENOISED) for p in significant]
        result = tuple(fill_gaps(denoised, config.max_gap, config.gap_step))
    except (ArithmeticError, ValueError) as e:
        logger.error(f"Denoising failed, returning input unchanged: {e}")
        return points

    logger.info(
        f"Denoised {len(points)} points: {len(candidates)} candidates, "
        f"{len(significant)} significant, {len(result)} after gap fill"
    )
    return result
