"""Core data types for wave-point analysis."""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


class PointKind(Enum):
    """Classification of a wave point."""
    HIGH = "high"
    LOW = "low"
    INTERPOLATED = "interpolated"


class TrendDirection(Enum):
    """Overall direction of the slow moving average."""
    UPWARD = "upward"
    DOWNWARD = "downward"
    HORIZONTAL = "horizontal"


class OverrideAction(Enum):
    """User correction applied to a bar timestamp.

    Values match the persisted key-value records.
    """
    ADD_HIGH = "high"
    ADD_LOW = "low"
    REMOVED = "removed"


@dataclass(frozen=True)
class Bar:
    """Single OHLC bar"""
    index: int
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @property
    def date(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp)


@dataclass(frozen=True)
class PointTag:
    """
    Provenance annotation carried alongside a WavePoint.

    Tags are debug/provenance data only and never take part in point
    equality.

    Attributes:
        source: 'computed' for pipeline output, 'manual' for user overrides.
        method: Name of the stage that produced or last modified the point.
        original_kind: Kind of the point before a stage reclassified it.
        reason: Free-form note (e.g. why a point was kept).
        score: SignificanceScore in [0, 1] when a significance filter ran.
    """
    source: str = "computed"
    method: Optional[str] = None
    original_kind: Optional[PointKind] = None
    reason: Optional[str] = None
    score: Optional[float] = None


MANUAL_TAG = PointTag(source="manual", method="override")


@dataclass(frozen=True)
class WavePoint:
    """
    A turning point (or interpolated sample) on the wave skeleton.

    Attributes:
        timestamp: Unix timestamp of the point.
        price: Price level of the point.
        kind: HIGH, LOW, or INTERPOLATED.
        source_index: Index of the originating Bar, None for purely
            interpolated samples.
        tag: Optional provenance side-channel (excluded from equality).
    """
    timestamp: int
    price: float
    kind: PointKind
    source_index: Optional[int] = None
    tag: Optional[PointTag] = field(default=None, compare=False, repr=False)

    @property
    def is_high(self) -> bool:
        return self.kind is PointKind.HIGH

    @property
    def is_low(self) -> bool:
        return self.kind is PointKind.LOW

    def with_price(self, price: float) -> "WavePoint":
        return replace(self, price=price)

    def tagged(self, **kwargs) -> "WavePoint":
        """Return a copy whose tag has the given fields replaced."""
        base = self.tag or PointTag()
        return replace(self, tag=replace(base, **kwargs))


@dataclass(frozen=True)
class TrendLine:
    """
    Straight segment through >= 3 same-kind filtered points.

    Attributes:
        start_index: Bar index of the first point.
        end_index: Bar index of the last point.
        start_value: Price at the first point.
        end_value: Price at the last point.
        slope: Price change per bar.
        strength: R^2 of the points against the start-to-end line, in [0, 1].
        kind: HIGH or LOW.
        point_indices: Bar indices of every point on the line.
    """
    start_index: int
    end_index: int
    start_value: float
    end_value: float
    slope: float
    strength: float
    kind: PointKind
    point_indices: Tuple[int, ...] = ()

    def value_at(self, index: int) -> float:
        return self.start_value + self.slope * (index - self.start_index)

    @property
    def length(self) -> int:
        return self.end_index - self.start_index

    @property
    def price_range(self) -> float:
        return abs(self.end_value - self.start_value)

    @property
    def direction(self) -> TrendDirection:
        if self.slope > 0:
            return TrendDirection.UPWARD
        if self.slope < 0:
            return TrendDirection.DOWNWARD
        return TrendDirection.HORIZONTAL

    @property
    def strength_level(self) -> str:
        if self.strength >= 0.8:
            return "strong"
        if self.strength >= 0.6:
            return "moderate"
        if self.strength >= 0.4:
            return "weak"
        return "very_weak"


@dataclass(frozen=True)
class NamedCurveVariant:
    """A named output sequence for drawing as a polyline."""
    name: str
    points: Tuple[WavePoint, ...]

    def __len__(self) -> int:
        return len(self.points)


def to_timestamp(value: float) -> int:
    """Round an interpolated time coordinate to an integer timestamp.

    Halves round away from zero.
    """
    if value >= 0:
        return int(math.floor(value + 0.5))
    return -int(math.floor(-value + 0.5))
