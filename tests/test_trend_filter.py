"""
Tests for the slow-average trend filter.
"""

import pytest

from wave_analysis.bar_source import compute_moving_averages
from wave_analysis.trend_filter import (
    TrendFilterResult,
    accept_pivot,
    build_trend_lines,
    classify_trend,
    detect_pivots,
    dynamic_near_threshold,
    enforce_min_gap,
    filter_by_average_side,
    filter_by_trend,
    smooth_trend_skeleton,
)
from wave_analysis.types import PointKind, TrendDirection, WavePoint
from wave_analysis.wave_config import TrendFilterConfig
from wave_analysis.zigzag import extract_zigzag

from conftest import make_bar
from helpers import rising_average, sinusoid_bars


def indexed(kind, pairs):
    return [WavePoint(1700000000 + i * 60, price, kind, i) for i, price in pairs]


class TestClassifyTrend:
    """Slope regression over the last ten average values."""

    def test_rising(self):
        assert classify_trend(rising_average(30)) is TrendDirection.UPWARD

    def test_falling(self):
        assert classify_trend([100.0 - 0.01 * i for i in range(30)]) is TrendDirection.DOWNWARD

    def test_flat(self):
        assert classify_trend([100.0] * 30) is TrendDirection.HORIZONTAL

    def test_too_short(self):
        assert classify_trend(rising_average(9)) is TrendDirection.HORIZONTAL

    def test_too_few_present_values(self):
        series = [None] * 26 + [1.0, 2.0, 3.0, 4.0]
        assert classify_trend(series) is TrendDirection.HORIZONTAL

    def test_absent_values_skipped(self):
        series = rising_average(30)
        series[-3] = None
        series[-5] = float("nan")
        assert classify_trend(series) is TrendDirection.UPWARD


class TestPivots:
    """Pivot detection directly from bars."""

    def test_sine_pivots(self):
        pivots = detect_pivots(sinusoid_bars(80), lookback=5)
        highs = [p.source_index for p in pivots if p.is_high]
        lows = [p.source_index for p in pivots if p.is_low]
        assert highs == [5, 25, 45, 65]
        assert lows == [15, 35, 55]

    def test_equal_highs_are_not_pivots(self):
        bars = [make_bar(i, 100.0, 101.0, 99.0, 100.0) for i in range(15)]
        assert detect_pivots(bars) == []

    def test_too_few_bars(self):
        assert detect_pivots([make_bar(i, 1.0, 2.0, 0.5, 1.0) for i in range(5)]) == []
        assert detect_pivots([]) == []


class TestAcceptPivot:
    """Distance band with trend-consistent relaxation."""

    def test_horizontal_band(self):
        flat = TrendDirection.HORIZONTAL
        assert accept_pivot(PointKind.HIGH, 101.0, 100.0, flat, 0.005)
        assert not accept_pivot(PointKind.HIGH, 100.2, 100.0, flat, 0.005)
        assert not accept_pivot(PointKind.HIGH, 103.0, 100.0, flat, 0.005)

    def test_upward_high_above_average_always_accepted(self):
        assert accept_pivot(PointKind.HIGH, 150.0, 100.0, TrendDirection.UPWARD, 0.005)

    def test_upward_low_relaxed(self):
        up = TrendDirection.UPWARD
        assert accept_pivot(PointKind.LOW, 90.0, 100.0, up, 0.005)
        assert accept_pivot(PointKind.LOW, 100.6, 100.0, up, 0.005)
        assert not accept_pivot(PointKind.LOW, 105.0, 100.0, up, 0.005)

    def test_downward_mirrors_upward(self):
        down = TrendDirection.DOWNWARD
        assert accept_pivot(PointKind.LOW, 50.0, 100.0, down, 0.005)
        assert accept_pivot(PointKind.HIGH, 99.4, 100.0, down, 0.005)
        assert not accept_pivot(PointKind.HIGH, 95.0, 100.0, down, 0.005)

    @pytest.mark.parametrize("average", [None, 0.0, -5.0])
    def test_absent_average_rejected(self, average):
        assert not accept_pivot(PointKind.HIGH, 101.0, average, TrendDirection.UPWARD, 0.005)


class TestMinGap:
    """Weaker of two close points is dropped."""

    def test_keeps_higher_high(self):
        points = indexed(PointKind.HIGH, [(10, 5.0), (11, 6.0), (20, 4.0)])
        assert [p.source_index for p in enforce_min_gap(points, 3)] == [11, 20]

    def test_keeps_higher_low(self):
        points = indexed(PointKind.LOW, [(10, 5.0), (12, 4.0)])
        assert [p.source_index for p in enforce_min_gap(points, 3)] == [10]

    def test_later_higher_low_replaces_earlier(self):
        points = indexed(PointKind.LOW, [(10, 4.0), (12, 5.0)])
        assert [p.source_index for p in enforce_min_gap(points, 3)] == [12]

    def test_tie_keeps_earlier(self):
        points = indexed(PointKind.HIGH, [(10, 5.0), (11, 5.0)])
        assert [p.source_index for p in enforce_min_gap(points, 3)] == [10]

    def test_far_points_kept(self):
        points = indexed(PointKind.HIGH, [(0, 5.0), (3, 4.0), (6, 3.0)])
        assert len(enforce_min_gap(points, 3)) == 3

    def test_empty(self):
        assert enforce_min_gap([], 3) == ()


class TestTrendLines:
    """Trend lines through direction-consistent runs."""

    def test_straight_run(self):
        lines = build_trend_lines(indexed(PointKind.HIGH, [(0, 1.0), (10, 2.0), (20, 3.0)]), PointKind.HIGH)
        assert len(lines) == 1
        line = lines[0]
        assert (line.start_index, line.end_index) == (0, 20)
        assert line.slope == pytest.approx(0.1)
        assert line.strength == pytest.approx(1.0)
        assert line.point_indices == (0, 10, 20)
        assert line.direction is TrendDirection.UPWARD

    def test_breaking_point_skipped(self):
        points = indexed(PointKind.HIGH, [(0, 1.0), (10, 2.0), (20, 1.5), (30, 3.0)])
        lines = build_trend_lines(points, PointKind.HIGH)
        assert [line.point_indices for line in lines] == [(0, 10, 30)]

    def test_other_kind_ignored(self):
        points = indexed(PointKind.LOW, [(0, 1.0), (10, 2.0), (20, 3.0)])
        assert build_trend_lines(points, PointKind.HIGH) == []

    def test_too_few_points(self):
        assert build_trend_lines(indexed(PointKind.LOW, [(0, 1.0), (5, 0.5)]), PointKind.LOW) == []


class TestSupplementalHelpers:
    """Smooth skeleton, dynamic threshold and average-side filtering."""

    def test_smooth_skeleton_band(self):
        average = [100.0] * 10
        points = indexed(PointKind.HIGH, [(1, 100.5), (3, 101.0), (5, 110.0), (7, 100.05)])
        smooth = smooth_trend_skeleton(points, average)
        assert [p.source_index for p in smooth.points] == [1, 3]
        assert smooth.average_distance == pytest.approx(0.0075)

    def test_smooth_skeleton_needs_two_points(self):
        assert smooth_trend_skeleton(indexed(PointKind.HIGH, [(1, 100.5)]), [100.0] * 5) is None

    def test_dynamic_threshold_default_when_short(self):
        bars = [make_bar(i, 100.0, 101.0, 99.0, 100.0) for i in range(5)]
        assert dynamic_near_threshold(bars, [100.0] * 5) == 0.005

    def test_dynamic_threshold_scaled_and_clamped(self):
        bars = [make_bar(i, 100.0, 101.0, 99.0, 100.0) for i in range(30)]
        assert dynamic_near_threshold(bars, [100.0] * 30) == pytest.approx(0.003)
        wide = [make_bar(i, 100.0, 150.0, 50.0, 100.0) for i in range(30)]
        assert dynamic_near_threshold(wide, [100.0] * 30) == pytest.approx(0.02)
        tight = [make_bar(i, 100.0, 100.1, 99.9, 100.0) for i in range(30)]
        assert dynamic_near_threshold(tight, [100.0] * 30) == pytest.approx(0.002)

    def test_dynamic_threshold_averages_high_and_low_excursions(self):
        bars = [make_bar(i, 100.0, 102.0, 99.5, 100.0) for i in range(30)]
        assert dynamic_near_threshold(bars, [100.0] * 30) == pytest.approx(0.3 * 0.0125)

    def test_average_side_groups(self):
        points = [
            WavePoint(0, 101.0, PointKind.HIGH, 0),
            WavePoint(60, 102.0, PointKind.HIGH, 1),
            WavePoint(120, 98.0, PointKind.LOW, 2),
            WavePoint(180, 99.0, PointKind.LOW, 3),
            WavePoint(240, 103.0, PointKind.HIGH, 4),
        ]
        kept = filter_by_average_side(points, [100.0] * 5)
        assert [p.source_index for p in kept] == [1, 2, 4]
        assert all(p.tag.method == "average_side" for p in kept)

    def test_average_side_skips_absent(self):
        points = [WavePoint(0, 101.0, PointKind.HIGH, 0), WavePoint(60, 98.0, PointKind.LOW, 1)]
        assert filter_by_average_side(points, [None, 100.0]) == (points[1],)
        assert filter_by_average_side([], [100.0]) == ()


class TestFilterByTrend:
    """End-to-end trend filtering."""

    def test_degenerate_inputs(self):
        bars = sinusoid_bars(40)
        zigzag = (WavePoint(bars[5].timestamp, bars[5].high, PointKind.HIGH, 5),)
        assert filter_by_trend(bars, (), rising_average(40)) == TrendFilterResult()
        assert filter_by_trend(bars, zigzag, None) == TrendFilterResult()
        assert filter_by_trend(bars, zigzag, []) == TrendFilterResult()
        assert filter_by_trend([], zigzag, rising_average(40)) == TrendFilterResult()

    def test_empty_result_helpers(self):
        result = TrendFilterResult()
        assert result.total_filtered == 0
        assert result.filtering_rate == 0.0
        assert result.smooth_trend is None

    def test_rising_average_accepts_only_highs_above(self):
        bars = sinusoid_bars(80, amplitude=5.0)
        slow = rising_average(len(bars))
        zigzag = extract_zigzag(bars, compute_moving_averages(bars, (10,))[10])
        assert zigzag

        config = TrendFilterConfig(near_threshold=0.005, far_threshold=0.015, min_gap_bars=3)
        result = filter_by_trend(bars, zigzag, slow, config)

        assert result.direction is TrendDirection.UPWARD
        assert result.low_points == ()
        assert [p.source_index for p in result.high_points] == [5, 25, 45, 65]
        for p in result.high_points:
            assert p.kind is PointKind.HIGH
            assert p.price > slow[p.source_index]
        assert result.total_filtered == 4
        assert result.filtering_rate == pytest.approx(4 / 7)

    def test_trend_lines_from_accepted_highs(self):
        bars = sinusoid_bars(80, amplitude=5.0)
        slow = rising_average(len(bars))
        zigzag = extract_zigzag(bars, compute_moving_averages(bars, (10,))[10])
        result = filter_by_trend(bars, zigzag, slow)
        for line in result.trend_lines:
            assert line.kind is PointKind.HIGH
            assert len(line.point_indices) >= 3

    def test_fitted_curve_empty_with_few_points(self):
        bars = sinusoid_bars(80, amplitude=5.0)
        slow = rising_average(len(bars))
        zigzag = extract_zigzag(bars, compute_moving_averages(bars, (10,))[10])
        assert filter_by_trend(bars, zigzag, slow).fitted_curve == ()
