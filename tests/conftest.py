"""
Shared test fixtures and helpers for wave analysis tests.
"""

import pytest

from wave_analysis.bar_source import compute_moving_averages
from wave_analysis.pipeline import WaveInputs
from wave_analysis.types import Bar

from helpers import START, STEP, rising_average, sinusoid_bars


def make_bar(
    index: int,
    open_: float,
    high: float,
    low: float,
    close: float,
    timestamp: int = None,
    volume: float = 0.0,
) -> Bar:
    """Helper to create Bar objects for testing.

    Args:
        index: Bar index in the sequence
        open_: Opening price
        high: High price
        low: Low price
        close: Closing price
        timestamp: Unix timestamp (defaults to START + index * STEP)
        volume: Traded volume

    Returns:
        Bar object for use in pipeline tests
    """
    return Bar(
        index=index,
        timestamp=timestamp or START + index * STEP,
        open=open_,
        high=high,
        low=low,
        close=close,
        volume=volume,
    )


@pytest.fixture
def sine_bars():
    """60 bars of a 20-bar sine wave (amplitude 10 around 100)."""
    return sinusoid_bars(60)


@pytest.fixture
def sine_inputs(sine_bars):
    """Sine bars with the fast average only."""
    return WaveInputs(sine_bars, compute_moving_averages(sine_bars, (10,)))


@pytest.fixture
def trending_inputs():
    """80 sine bars, fast average, and a rising slow average far below price."""
    bars = sinusoid_bars(80, amplitude=5.0)
    averages = compute_moving_averages(bars, (10,))
    averages[150] = rising_average(len(bars))
    return WaveInputs(bars, averages)
