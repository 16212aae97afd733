"""
Curve fitting primitives.

Polynomial least squares is solved through the normal equations with
Gaussian elimination and partial pivoting. Timestamps are shifted to the
first sample and scaled to [0, 1] before the Vandermonde matrix is built,
so higher powers of ~1e9 never enter the system.

Local regression is a tri-cube weighted local average (LOESS of degree 0)
evaluated at every sample and linearly interpolated between samples.
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple, Union

import numpy as np

from .types import WavePoint

logger = logging.getLogger(__name__)

_PIVOT_EPSILON = 1e-12


class SingularMatrixError(ArithmeticError):
    """Raised when a linear system has no unique finite solution."""


@dataclass(frozen=True)
class PolynomialCurve:
    """
    Polynomial in a normalised abscissa.

    Attributes:
        coefficients: Coefficients from the constant term upward. Trailing
            zeros pad a degree-reduced fit to the requested length.
        x_offset: Value subtracted from x before evaluation.
        x_scale: Divisor applied after the offset.
    """
    coefficients: Tuple[float, ...]
    x_offset: float = 0.0
    x_scale: float = 1.0

    @property
    def degree(self) -> int:
        nonzero = [i for i, c in enumerate(self.coefficients) if c != 0.0]
        return nonzero[-1] if nonzero else 0

    def evaluate(self, x):
        t = (np.asarray(x, dtype=float) - self.x_offset) / self.x_scale
        return np.polynomial.polynomial.polyval(t, self.coefficients)


@dataclass(frozen=True)
class LocalRegressionCurve:
    """
    Tri-cube weighted local average.

    Attributes:
        bandwidth: Absolute kernel half-width in x units.
        samples: Fitted (x, y) pairs in ascending x.
    """
    bandwidth: float
    samples: Tuple[Tuple[float, float], ...]

    def evaluate(self, x):
        xs = np.array([s[0] for s in self.samples], dtype=float)
        ys = np.array([s[1] for s in self.samples], dtype=float)
        # Outside the sampled range the nearest end value is held.
        return np.interp(np.asarray(x, dtype=float), xs, ys)


FittedCurve = Union[PolynomialCurve, LocalRegressionCurve]


@dataclass(frozen=True)
class CubicCurveResult:
    """Sliding cubic overview curve and its overall goodness of fit."""
    points: Tuple[WavePoint, ...]
    r_squared: float


def solve_linear_system(a, b) -> np.ndarray:
    """
    Solve ``a @ x = b`` by Gaussian elimination with partial pivoting.

    Raises:
        SingularMatrixError: If a pivot vanishes or the solution is not finite.
    """
    m = np.array(a, dtype=float)
    v = np.array(b, dtype=float)
    n = len(v)
    if m.shape != (n, n):
        raise ValueError(f"Expected a {n}x{n} matrix, got {m.shape}")

    scale = max(float(np.max(np.abs(m))), 1.0) if n else 1.0
    for col in range(n):
        pivot = col + int(np.argmax(np.abs(m[col:, col])))
        if abs(m[pivot, col]) <= _PIVOT_EPSILON * scale:
            raise SingularMatrixError(f"Singular matrix at column {col}")
        if pivot != col:
            m[[col, pivot]] = m[[pivot, col]]
            v[[col, pivot]] = v[[pivot, col]]
        for row in range(col + 1, n):
            factor = m[row, col] / m[col, col]
            m[row, col:] -= factor * m[col, col:]
            v[row] -= factor * v[col]

    x = np.zeros(n)
    for row in range(n - 1, -1, -1):
        x[row] = (v[row] - np.dot(m[row, row + 1:], x[row + 1:])) / m[row, row]

    if not np.all(np.isfinite(x)):
        raise SingularMatrixError("Non-finite solution")
    return x


def polynomial_least_squares(t, y, degree: int) -> np.ndarray:
    """
    Least-squares polynomial coefficients via the normal equations.

    Args:
        t: Abscissa (already normalised by the caller).
        y: Ordinates.
        degree: Polynomial degree.

    Returns:
        Coefficients from the constant term upward.

    Raises:
        SingularMatrixError: If the normal equations are singular.
    """
    vander = np.vander(np.asarray(t, dtype=float), degree + 1, increasing=True)
    y = np.asarray(y, dtype=float)
    return solve_linear_system(vander.T @ vander, vander.T @ y)


def fit_polynomial(x: Sequence[float], y: Sequence[float], degree: int) -> PolynomialCurve:
    """
    Degree-adaptive polynomial fit.

    With fewer than ``degree + 1`` samples the degree drops to 1 (or 0 for a
    single sample). A singular system retries at successively lower degrees.

    Args:
        x: Abscissa, typically timestamps or bar indices.
        y: Ordinates.
        degree: Requested degree.

    Returns:
        PolynomialCurve whose coefficients are padded to ``degree + 1``.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    n = len(x)
    if n == 0:
        return PolynomialCurve(tuple([0.0] * (degree + 1)))

    offset = float(x[0])
    span = float(np.max(np.abs(x - offset)))
    scale = span if span > 0 else 1.0
    t = (x - offset) / scale

    effective = degree if n >= degree + 1 else min(1, n - 1)
    if span == 0:
        effective = 0

    for current in range(effective, -1, -1):
        try:
            coefficients = polynomial_least_squares(t, y, current)
        except SingularMatrixError as e:
            logger.debug(f"Degree {current} fit failed ({e}); trying lower order")
            continue
        padded = list(coefficients) + [0.0] * (degree + 1 - len(coefficients))
        return PolynomialCurve(tuple(float(c) for c in padded), offset, scale)

    # Unreachable for n >= 1: the degree-0 system is [[n]].
    raise SingularMatrixError("No polynomial fit possible")


def tricube_weight(u):
    """Tri-cube kernel (1 - |u|^3)^3, zero for |u| >= 1."""
    u = np.abs(np.asarray(u, dtype=float))
    return np.where(u < 1.0, (1.0 - u ** 3) ** 3, 0.0)


def fit_local_regression(
    x: Sequence[float],
    y: Sequence[float],
    bandwidth_fraction: float = 0.3,
) -> LocalRegressionCurve:
    """
    Tri-cube weighted local average at every sample.

    Args:
        x: Ascending abscissa.
        y: Ordinates.
        bandwidth_fraction: Kernel half-width as a fraction of the x span.

    Returns:
        LocalRegressionCurve sampled at x.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if len(x) == 0:
        return LocalRegressionCurve(0.0, ())

    bandwidth = bandwidth_fraction * float(x[-1] - x[0])
    if bandwidth <= 0:
        fitted = np.full(len(y), float(np.mean(y)))
    else:
        weights = tricube_weight(np.abs(x[:, None] - x[None, :]) / bandwidth)
        totals = weights.sum(axis=1)
        with np.errstate(invalid="ignore", divide="ignore"):
            fitted = np.where(totals > 0, (weights @ y) / totals, 0.0)

    samples = tuple((float(a), float(b)) for a, b in zip(x, fitted))
    return LocalRegressionCurve(bandwidth, samples)


def rms_error(curve: FittedCurve, x: Sequence[float], y: Sequence[float]) -> float:
    y = np.asarray(y, dtype=float)
    if len(y) == 0:
        return 0.0
    residuals = y - curve.evaluate(x)
    return float(np.sqrt(np.mean(residuals ** 2)))


def median_absolute_deviation(values: Sequence[float]) -> float:
    """Median of absolute deviations from the median."""
    values = np.asarray(values, dtype=float)
    if len(values) == 0:
        return 0.0
    return float(np.median(np.abs(values - np.median(values))))


def r_squared(actual: Sequence[float], predicted: Sequence[float]) -> float:
    """
    Coefficient of determination.

    A constant series scores 1.0 when predicted exactly, otherwise 0.0.
    """
    actual = np.asarray(actual, dtype=float)
    predicted = np.asarray(predicted, dtype=float)
    if len(actual) == 0:
        return 0.0
    ss_res = float(np.sum((actual - predicted) ** 2))
    ss_tot = float(np.sum((actual - np.mean(actual)) ** 2))
    if ss_tot == 0:
        return 1.0 if ss_res == 0 else 0.0
    return 1.0 - ss_res / ss_tot


def moving_average_curve(
    points: Sequence[WavePoint],
    window: int = 20,
    blend: float = 0.3,
) -> List[WavePoint]:
    """
    Centered moving-average overview curve.

    Each point's price becomes ``avg * (1 - blend) + price * blend`` where
    ``avg`` is the mean over a window of ``window`` points, shifted inward
    at both ends so it always holds exactly ``window`` points.

    Returns:
        Points in time order, or an empty list when fewer than ``window``
        points are supplied.
    """
    if window <= 0 or len(points) < window:
        return []

    ordered = sorted(points, key=lambda p: p.timestamp)
    prices = np.array([p.price for p in ordered], dtype=float)
    n = len(ordered)
    curve = []
    for i, point in enumerate(ordered):
        start = min(max(i - window // 2, 0), n - window)
        avg = float(np.mean(prices[start:start + window]))
        curve.append(point.with_price(avg * (1 - blend) + point.price * blend))
    return curve


def sliding_cubic_curve(points: Sequence[WavePoint], window: int = 7) -> CubicCurveResult:
    """
    Fit a cubic around every point and evaluate it at that point.

    The support of point ``i`` spans ``[i - window + 1, i + window)``
    clamped to the sequence. Supports with fewer than 4 points keep the raw
    price. The x axis is the point's bar index when known, else its position.

    Returns:
        CubicCurveResult with the fitted points and the overall R^2.
    """
    n = len(points)
    if n == 0:
        return CubicCurveResult((), 0.0)

    xs = np.array(
        [p.source_index if p.source_index is not None else i for i, p in enumerate(points)],
        dtype=float,
    )
    prices = np.array([p.price for p in points], dtype=float)

    fitted = []
    for i, point in enumerate(points):
        start = max(0, i - window + 1)
        end = min(n, i + window)
        if end - start < 4:
            fitted.append(point)
            continue
        curve = fit_polynomial(xs[start:end], prices[start:end], 3)
        fitted.append(point.with_price(float(curve.evaluate(xs[i]))))

    score = r_squared(prices, [p.price for p in fitted])
    return CubicCurveResult(tuple(fitted), score)
