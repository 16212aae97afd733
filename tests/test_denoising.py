"""
Tests for the denoising engine.
"""

import numpy as np
import pytest

from wave_analysis import denoising
from wave_analysis.curve_fitting import PolynomialCurve, SingularMatrixError
from wave_analysis.denoising import (
    compute_residuals,
    denoise,
    extract_candidates,
    fill_gaps,
    fit_reference_curve,
    select_significant,
)
from wave_analysis.types import PointKind, WavePoint
from wave_analysis.wave_config import DenoiseConfig

from helpers import alternating_points


def spiked_wave(count: int = 12, spike_at: int = 5):
    """Alternating 99/101 wave with one HIGH spiking to 120."""
    prices = [99.0 if i % 2 == 0 else 101.0 for i in range(count)]
    prices[spike_at] = 120.0
    return alternating_points(prices, first=PointKind.LOW, step=100)


class TestCandidates:
    """Candidate extraction."""

    def test_extremes_only(self):
        points = alternating_points([99.0, 101.0, 100.0, 100.5, 98.0, 102.0])
        candidates = extract_candidates(points)
        assert [p.source_index for p in candidates] == [1, 2, 3, 4]

    def test_same_kind_run_is_not_a_candidate(self):
        points = [
            WavePoint(0, 99.0, PointKind.LOW, 0),
            WavePoint(60, 101.0, PointKind.HIGH, 1),
            WavePoint(120, 103.0, PointKind.HIGH, 2),
            WavePoint(180, 100.0, PointKind.LOW, 3),
        ]
        assert [p.source_index for p in extract_candidates(points)] == [2]

    def test_interpolated_never_candidate(self):
        points = [
            WavePoint(0, 99.0, PointKind.LOW, 0),
            WavePoint(60, 110.0, PointKind.INTERPOLATED),
            WavePoint(120, 99.0, PointKind.LOW, 2),
        ]
        assert extract_candidates(points) == []

    def test_endpoints_excluded(self):
        assert extract_candidates(alternating_points([101.0, 99.0])) == []


class TestSignificance:
    """MAD based selection."""

    def test_select_significant(self):
        candidates = [WavePoint(t, 1.0, PointKind.HIGH) for t in (400, 100, 300, 200)]
        residuals = [0.1, 0.2, 0.3, 5.0]
        kept = select_significant(candidates, residuals, 2.5)
        # MAD = 0.1, so residuals above 0.25 survive, sorted by time.
        assert [p.timestamp for p in kept] == [200, 300]

    def test_larger_multiplier_never_selects_more(self):
        rng = np.random.default_rng(3)
        residuals = np.abs(rng.standard_cauchy(200))
        candidates = [WavePoint(i, 1.0, PointKind.HIGH) for i in range(200)]
        counts = [len(select_significant(candidates, residuals, m)) for m in (0.5, 1.0, 2.5, 5.0, 10.0)]
        assert counts == sorted(counts, reverse=True)

    def test_residuals(self):
        candidates = [WavePoint(0, 3.0, PointKind.HIGH), WavePoint(1, 0.0, PointKind.LOW)]
        residuals = compute_residuals(candidates, PolynomialCurve((1.0,)))
        assert residuals == pytest.approx([2.0, 1.0])

    def test_non_finite_residual_raises(self):
        candidates = [WavePoint(0, float("nan"), PointKind.HIGH)]
        with pytest.raises(FloatingPointError):
            compute_residuals(candidates, PolynomialCurve((1.0,)))

    def test_reference_curve_prefers_exact_polynomial(self):
        points = [WavePoint(i * 100, 100.0 + 0.5 * i, PointKind.HIGH) for i in range(6)]
        curve = fit_reference_curve(points)
        assert isinstance(curve, PolynomialCurve)


class TestFillGaps:
    """Gap filling with interpolated points."""

    def test_splits_large_gap(self):
        points = [WavePoint(0, 100.0, PointKind.LOW, 0), WavePoint(2000, 104.0, PointKind.HIGH, 1)]
        filled = fill_gaps(points)
        assert [p.timestamp for p in filled] == [0, 500, 1000, 1500, 2000]
        assert [p.price for p in filled[1:-1]] == pytest.approx([101.0, 102.0, 103.0])
        assert all(p.kind is PointKind.INTERPOLATED and p.source_index is None for p in filled[1:-1])

    def test_gap_at_limit_untouched(self):
        points = [WavePoint(0, 100.0, PointKind.LOW, 0), WavePoint(1000, 104.0, PointKind.HIGH, 1)]
        assert fill_gaps(points) == points

    def test_short_input(self):
        assert fill_gaps([]) == []


class TestDenoise:
    """End-to-end denoising and its failure policy."""

    def test_empty(self):
        assert denoise([]) == ()

    def test_short_input_unchanged(self):
        points = alternating_points([99.0, 101.0, 99.0, 120.0, 99.0])
        assert denoise(points) == tuple(points)

    def test_too_few_candidates_unchanged(self):
        prices = [100.0, 101.0, 102.0, 103.0, 104.0, 105.0, 106.0]
        points = [WavePoint(i * 100, p, PointKind.HIGH, i) for i, p in enumerate(prices)]
        assert denoise(points) == tuple(points)

    def test_spike_survives(self):
        points = spiked_wave()
        result = denoise(points)
        spike = points[5]
        assert spike in result
        assert len(result) <= len(points)
        assert [p.timestamp for p in result] == sorted(p.timestamp for p in result)
        candidates = set(extract_candidates(points))
        for p in result:
            if p.kind is PointKind.INTERPOLATED:
                assert p.tag.method == "gap_fill"
            else:
                assert p in candidates
                assert p.tag.method == "denoised"

    def test_numeric_failure_returns_input(self, monkeypatch):
        def failing_fit(candidates, config=None):
            raise SingularMatrixError("boom")

        monkeypatch.setattr(denoising, "fit_reference_curve", failing_fit)
        points = spiked_wave()
        assert denoise(points) == tuple(points)

    def test_no_significant_points_returns_input(self):
        config = DenoiseConfig(outlier_threshold=1e9)
        points = spiked_wave()
        assert denoise(points, config) == tuple(points)

    def test_does_not_mutate_input(self):
        points = spiked_wave()
        snapshot = list(points)
        denoise(points)
        assert points == snapshot
