"""
Wave Analysis Configuration

Centralized configuration for every stage of the wave-point pipeline.
Each stage owns a frozen dataclass; WaveConfig aggregates them so a single
value can be handed to WavePipeline.
"""

from dataclasses import dataclass, field, asdict, replace
from typing import Any, Tuple

from .constants import BOX_COUNT_SCALES, FAST_AVERAGE_PERIOD, SLOW_AVERAGE_PERIOD


@dataclass(frozen=True)
class ExtractorConfig:
    """
    Parameters for zigzag extraction.

    Attributes:
        fast_period: Moving-average period that bars are compared against.
        min_run_length: Minimum number of consecutive bars on one side of
            the average before the run yields a candidate. Default 3.
    """
    fast_period: int = FAST_AVERAGE_PERIOD
    min_run_length: int = 3


@dataclass(frozen=True)
class DenoiseConfig:
    """
    Parameters for the denoising engine.

    Attributes:
        window_size: Minimum number of input points; smaller inputs pass
            through unchanged. Default 6.
        outlier_threshold: MAD multiplier a residual must exceed for a
            candidate to be significant. Default 2.5.
        polynomial_degree: Degree of the least-squares reference curve.
        loess_bandwidth: Local regression bandwidth as a fraction of the
            candidate time span. Default 0.3.
        max_gap: Time gap above which interpolated points are inserted.
        gap_step: Approximate spacing of inserted points.
    """
    window_size: int = 6
    outlier_threshold: float = 2.5
    polynomial_degree: int = 2
    loess_bandwidth: float = 0.3
    max_gap: int = 1000
    gap_step: int = 500


@dataclass(frozen=True)
class TrendFilterConfig:
    """
    Parameters for the slow-average trend filter.

    Attributes:
        slow_period: Moving-average period used for trend classification.
        near_threshold: Lower bound of the accepted relative distance band.
        far_threshold: Upper bound of the accepted relative distance band.
        min_gap_bars: Minimum bar gap between accepted points of one kind.
        pivot_lookback: Half-width of the pivot detection window.
        slope_window: Number of trailing average values fed to the slope
            regression.
        slope_threshold: Absolute slope per bar separating a trend from
            horizontal.
        min_slope_samples: Minimum present values required in the slope
            window.
        near_relaxation: Multiplier applied to near_threshold for
            counter-trend points in a directional trend.
        smooth_band_low: Lower distance bound of the smooth-trend skeleton.
        smooth_band_high: Upper distance bound of the smooth-trend skeleton.
        fitted_window: Window of the moving-average overview curve.
        fitted_blend: Blend factor of the overview curve toward raw prices.
        adaptive_near_threshold: Derive near_threshold from recent bar
            volatility instead of the fixed value.
    """
    slow_period: int = SLOW_AVERAGE_PERIOD
    near_threshold: float = 0.005
    far_threshold: float = 0.015
    min_gap_bars: int = 3
    pivot_lookback: int = 5
    slope_window: int = 10
    slope_threshold: float = 0.001
    min_slope_samples: int = 5
    near_relaxation: float = 1.5
    smooth_band_low: float = 0.001
    smooth_band_high: float = 0.02
    fitted_window: int = 20
    fitted_blend: float = 0.3
    adaptive_near_threshold: bool = False


@dataclass(frozen=True)
class SignificanceConfig:
    """
    Parameters shared by the composite significance strategies.

    Attributes:
        alpha: Exponential smoothing factor for the weight sequence.
        shrink_factor: Maximum pull of a price toward the reference average.
        min_weight: Points whose smoothed weight falls below this are dropped.
        adaptive_weights: Let the continuous-weight strategy adapt component
            weights to the local market state.
        distance_weight: Continuous-weight share of the distance score.
        geometry_weight: Continuous-weight share of the channel score.
        significance_weight: Continuous-weight share of the peak score.
        n_structure_weights: Shares of (n-structure, channel, wave strength,
            time interval, wave height) in the N-structure strategy.
        fractal_threshold: Minimum segment score recorded as a structure.
        fractal_min_level: Recursion level at which structures are recorded.
        fractal_scale_factor: Base of the level weighting of structures.
        importance_ratio: Fraction of the maximum importance a point needs
            to survive fractal filtering.
        box_scales: Grid scales used by box counting.
        ma_significance_threshold: Base relative deviation for MA-trend
            filtering.
        ma_trend_multiplier: Scaling of the MA-trend threshold by trend
            strength.
        ma_adaptive_threshold: Whether MA-trend filtering scales its
            threshold by trend strength.
    """
    alpha: float = 0.3
    shrink_factor: float = 0.7
    min_weight: float = 0.3
    adaptive_weights: bool = True
    distance_weight: float = 0.4
    geometry_weight: float = 0.3
    significance_weight: float = 0.3
    n_structure_weights: Tuple[float, float, float, float, float] = (0.25, 0.25, 0.2, 0.15, 0.15)
    fractal_threshold: float = 0.618
    fractal_min_level: int = 2
    fractal_scale_factor: float = 1.5
    importance_ratio: float = 0.3
    box_scales: Tuple[int, ...] = BOX_COUNT_SCALES
    ma_significance_threshold: float = 0.02
    ma_trend_multiplier: float = 1.5
    ma_adaptive_threshold: bool = True


@dataclass(frozen=True)
class CurveConfig:
    """
    Parameters for the interpolation and smoothing curves.

    Attributes:
        chaikin_iterations: Corner-cutting iterations.
        catmull_rom_segments: Samples per segment for the spline.
        linear_segments: Samples per segment for linear subdivision.
        geometric_factor: Base pull toward the neighbour centroid.
        statistical_window: Sliding window of statistical smoothing.
        hybrid_geometric_weight: Share of the geometric output in hybrid.
        hybrid_statistical_weight: Share of the statistical output in hybrid.
        min_price_change: Threshold of the small-wave filter.
    """
    chaikin_iterations: int = 2
    catmull_rom_segments: int = 8
    linear_segments: int = 5
    geometric_factor: float = 0.3
    statistical_window: int = 5
    hybrid_geometric_weight: float = 0.6
    hybrid_statistical_weight: float = 0.4
    min_price_change: float = 0.0001


@dataclass(frozen=True)
class WaveConfig:
    """
    All configurable parameters of the wave-point pipeline.

    Example:
        >>> config = WaveConfig.default()
        >>> config.denoise.outlier_threshold
        2.5
        >>> config.with_denoise(outlier_threshold=3.0).denoise.outlier_threshold
        3.0
    """
    extractor: ExtractorConfig = field(default_factory=ExtractorConfig)
    denoise: DenoiseConfig = field(default_factory=DenoiseConfig)
    trend: TrendFilterConfig = field(default_factory=TrendFilterConfig)
    significance: SignificanceConfig = field(default_factory=SignificanceConfig)
    curves: CurveConfig = field(default_factory=CurveConfig)

    @classmethod
    def default(cls) -> "WaveConfig":
        """Create a config with default values."""
        return cls()

    def _with_section(self, name: str, section_cls: type, **kwargs: Any) -> "WaveConfig":
        section = asdict(getattr(self, name))
        section.update(kwargs)
        return replace(self, **{name: section_cls(**section)})

    def with_extractor(self, **kwargs: Any) -> "WaveConfig":
        """Create a new config with modified extractor parameters."""
        return self._with_section("extractor", ExtractorConfig, **kwargs)

    def with_denoise(self, **kwargs: Any) -> "WaveConfig":
        """Create a new config with modified denoising parameters."""
        return self._with_section("denoise", DenoiseConfig, **kwargs)

    def with_trend(self, **kwargs: Any) -> "WaveConfig":
        """Create a new config with modified trend filter parameters."""
        return self._with_section("trend", TrendFilterConfig, **kwargs)

    def with_significance(self, **kwargs: Any) -> "WaveConfig":
        """Create a new config with modified significance parameters."""
        return self._with_section("significance", SignificanceConfig, **kwargs)

    def with_curves(self, **kwargs: Any) -> "WaveConfig":
        """Create a new config with modified curve parameters."""
        return self._with_section("curves", CurveConfig, **kwargs)
