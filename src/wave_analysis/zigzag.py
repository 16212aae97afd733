"""
Zigzag extraction.

Bars are split into runs that sit entirely above the fast moving average
(low > MA) or entirely below it (high < MA). Each run of at least
``min_run_length`` bars yields one candidate: the highest high of an above
run or the lowest low of a below run. Candidates are then folded into a
strictly alternating HIGH/LOW sequence.
"""

import logging
from functools import reduce
from typing import Iterator, List, Optional, Sequence, Tuple

from .bar_source import AverageSeries, average_at
from .constants import METHOD_ZIGZAG
from .types import Bar, PointKind, PointTag, WavePoint
from .wave_config import ExtractorConfig

logger = logging.getLogger(__name__)

ZigzagSequence = Tuple[WavePoint, ...]

_ZIGZAG_TAG = PointTag(method=METHOD_ZIGZAG)


def find_runs(flags: Sequence[bool]) -> Iterator[Tuple[int, int]]:
    """
    Yield (start, end) of every maximal run of True values.

    ``end`` is exclusive. A run still open at the end of the sequence is
    yielded as well.
    """
    start = None
    for i, flag in enumerate(flags):
        if flag and start is None:
            start = i
        elif not flag and start is not None:
            yield start, i
            start = None
    if start is not None:
        yield start, len(flags)


def _run_flags(bars: Sequence[Bar], average: AverageSeries) -> Tuple[List[bool], List[bool]]:
    above = []
    below = []
    for i, bar in enumerate(bars):
        ma = average_at(average, i)
        above.append(ma is not None and bar.low > ma)
        below.append(ma is not None and bar.high < ma)
    return above, below


def _run_extreme(bars: Sequence[Bar], start: int, end: int, kind: PointKind) -> WavePoint:
    best = start
    for i in range(start + 1, end):
        if kind is PointKind.HIGH and bars[i].high > bars[best].high:
            best = i
        elif kind is PointKind.LOW and bars[i].low < bars[best].low:
            best = i
    bar = bars[best]
    price = bar.high if kind is PointKind.HIGH else bar.low
    return WavePoint(bar.timestamp, price, kind, source_index=best, tag=_ZIGZAG_TAG)


def find_candidates(
    bars: Sequence[Bar],
    average: AverageSeries,
    min_run_length: int = 3,
) -> List[WavePoint]:
    """
    Collect run extremes on both sides of the average, sorted by bar index.

    Args:
        bars: Ordered bar sequence.
        average: Fast moving average aligned with bars.
        min_run_length: Minimum bars per run.

    Returns:
        Candidate points; at equal index HIGH sorts before LOW.
    """
    above, below = _run_flags(bars, average)
    candidates = []
    for flags, kind in ((above, PointKind.HIGH), (below, PointKind.LOW)):
        for start, end in find_runs(flags):
            if end - start >= min_run_length:
                candidates.append(_run_extreme(bars, start, end, kind))
    candidates.sort(key=lambda p: (p.source_index, p.kind is not PointKind.HIGH))
    return candidates


def _more_extreme(candidate: WavePoint, incumbent: WavePoint) -> bool:
    if candidate.kind is PointKind.HIGH:
        return candidate.price > incumbent.price
    return candidate.price < incumbent.price


def _merge_step(acc: ZigzagSequence, point: WavePoint) -> ZigzagSequence:
    if not acc or acc[-1].kind is not point.kind:
        return acc + (point,)
    if _more_extreme(point, acc[-1]):
        return acc[:-1] + (point,)
    return acc


def merge_alternating(points: Sequence[WavePoint]) -> ZigzagSequence:
    """
    Fold points into a strictly alternating sequence.

    Adjacent points of the same kind collapse into the more extreme one
    (higher HIGH, lower LOW); ties keep the earlier point.
    """
    return reduce(_merge_step, points, ())


def extract_zigzag(
    bars: Sequence[Bar],
    fast_average: Optional[AverageSeries],
    config: ExtractorConfig = None,
) -> ZigzagSequence:
    """
    Detect alternating turning points relative to a fast moving average.

    Args:
        bars: Ordered bar sequence.
        fast_average: Moving average aligned index-for-index with bars.
            Absent values disqualify their bar from any run.
        config: Extractor parameters (defaults if not provided).

    Returns:
        Strictly alternating ZigzagSequence, empty when no run qualifies.
    """
    config = config or ExtractorConfig()
    if not bars:
        return ()
    if fast_average is None or len(fast_average) == 0:
        logger.warning("No fast moving average supplied; zigzag is empty")
        return ()

    candidates = find_candidates(bars, fast_average, config.min_run_length)
    zigzag = merge_alternating(candidates)
    logger.debug(
        f"Zigzag: {len(candidates)} candidates merged to {len(zigzag)} points "
        f"over {len(bars)} bars"
    )
    return zigzag
