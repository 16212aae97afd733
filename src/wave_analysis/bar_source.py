"""
Bar and moving-average source adapters.

Bars and averages are produced by external collaborators; this module holds
the conversions the pipeline needs at its boundary: DataFrame rows to Bar
objects, simple moving averages aligned index-for-index with the bars, and
safe reads of a possibly-absent average value.
"""

import logging
import math
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from .constants import (
    DEFAULT_BAR_SECONDS,
    DEFAULT_START_TIMESTAMP,
    FAST_AVERAGE_PERIOD,
    SLOW_AVERAGE_PERIOD,
)
from .types import Bar

logger = logging.getLogger(__name__)

AverageSeries = Sequence[Optional[float]]
AverageMap = Mapping[int, AverageSeries]


def dataframe_to_bars(df: pd.DataFrame) -> List[Bar]:
    """
    Convert DataFrame with OHLC columns to Bar list.

    Handles various column naming conventions commonly used in market data.

    Args:
        df: DataFrame with OHLC columns. Expects columns like:
            - open/Open, high/High, low/Low, close/Close
            - Optional: volume/Volume
            - Optional: timestamp/time/date/datetime

    Returns:
        List of Bar objects with sequential indices starting at 0.
    """
    bars = []
    col_map = {c.lower(): c for c in df.columns}
    ts_col = next(
        (col_map[name] for name in ("timestamp", "time", "date", "datetime") if name in col_map),
        None,
    )

    for _, row in df.iterrows():
        timestamp = None
        if ts_col is not None:
            ts_value = row[ts_col]
            if isinstance(ts_value, str):
                ts_value = pd.Timestamp(ts_value)
            if isinstance(ts_value, (int, float, np.integer, np.floating)):
                timestamp = float(ts_value)
            elif hasattr(ts_value, "timestamp"):
                timestamp = ts_value.timestamp()

        if timestamp is None:
            timestamp = DEFAULT_START_TIMESTAMP + len(bars) * DEFAULT_BAR_SECONDS

        volume = float(row[col_map["volume"]]) if "volume" in col_map else 0.0

        bars.append(
            Bar(
                index=len(bars),
                timestamp=int(timestamp),
                open=float(row[col_map.get("open", "open")]),
                high=float(row[col_map.get("high", "high")]),
                low=float(row[col_map.get("low", "low")]),
                close=float(row[col_map.get("close", "close")]),
                volume=volume,
            )
        )

    return bars


def simple_moving_average(values: Sequence[float], period: int) -> List[Optional[float]]:
    """
    Trailing simple moving average.

    Args:
        values: Input series.
        period: Window length in samples.

    Returns:
        List aligned with values; None until the window has filled.
    """
    if period <= 0:
        raise ValueError(f"period must be positive, got {period}")
    if len(values) == 0:
        return []
    rolled = pd.Series(values, dtype=float).rolling(window=period, min_periods=period).mean()
    return [None if pd.isna(v) else float(v) for v in rolled]


def compute_moving_averages(
    bars: Sequence[Bar],
    periods: Iterable[int] = (FAST_AVERAGE_PERIOD, SLOW_AVERAGE_PERIOD),
) -> Dict[int, List[Optional[float]]]:
    """
    Compute close-price simple moving averages for several periods.

    Args:
        bars: Ordered bar sequence.
        periods: Average periods to compute.

    Returns:
        Mapping of period to an index-aligned series of float or None.
    """
    closes = [bar.close for bar in bars]
    averages = {period: simple_moving_average(closes, period) for period in periods}
    logger.debug(f"Computed moving averages {sorted(averages)} over {len(closes)} bars")
    return averages


def average_at(series: Optional[AverageSeries], index: Optional[int]) -> Optional[float]:
    """
    Read one moving-average value.

    Out-of-range indices, None, NaN and infinities are all treated as absent.
    """
    if series is None or index is None or index < 0 or index >= len(series):
        return None
    value = series[index]
    if value is None:
        return None
    value = float(value)
    if not math.isfinite(value):
        return None
    return value


def present_values(series: Optional[AverageSeries]) -> List[float]:
    """All present (finite) values of an average series, in order."""
    if series is None:
        return []
    return [v for v in (average_at(series, i) for i in range(len(series))) if v is not None]
