"""
Shared test utilities for wave analysis tests.

These are plain utility functions, not pytest fixtures.
"""

import math
from typing import List, Optional, Sequence

from wave_analysis.types import Bar, PointKind, WavePoint

START = 1700000000
STEP = 60


def sinusoid_bars(
    count: int,
    period: int = 20,
    amplitude: float = 10.0,
    base: float = 100.0,
    spread: float = 0.5,
) -> List[Bar]:
    """
    Bars whose close follows a sine wave.

    High and low sit ``spread`` above and below the close.
    """
    bars = []
    for i in range(count):
        close = base + amplitude * math.sin(2 * math.pi * i / period)
        bars.append(
            Bar(
                index=i,
                timestamp=START + i * STEP,
                open=close,
                high=close + spread,
                low=close - spread,
                close=close,
            )
        )
    return bars


def rising_average(count: int, start: float = 50.0, step: float = 0.01) -> List[Optional[float]]:
    """Monotonically rising average series."""
    return [start + step * i for i in range(count)]


def point(
    timestamp: int,
    price: float,
    kind: PointKind = PointKind.HIGH,
    source_index: Optional[int] = None,
) -> WavePoint:
    return WavePoint(timestamp, price, kind, source_index)


def alternating_points(
    prices: Sequence[float],
    first: PointKind = PointKind.LOW,
    step: int = STEP,
    with_index: bool = True,
) -> List[WavePoint]:
    """
    Alternating HIGH/LOW points at regular timestamps.

    Point i gets timestamp ``START + i * step`` and, when ``with_index``,
    source index i.
    """
    other = PointKind.HIGH if first is PointKind.LOW else PointKind.LOW
    return [
        WavePoint(
            START + i * step,
            price,
            first if i % 2 == 0 else other,
            i if with_index else None,
        )
        for i, price in enumerate(prices)
    ]


def assert_alternating(points: Sequence[WavePoint]) -> None:
    """No two consecutive points share a kind."""
    for a, b in zip(points, points[1:]):
        assert a.kind is not b.kind, f"Consecutive {a.kind.value} points at {a.timestamp} and {b.timestamp}"
