"""Wave-point analysis.

Turns an OHLC bar series plus its moving averages into a zigzag skeleton of
turning points, corrects it with manual overrides, filters it by noise,
trend and composite significance, and renders it through interpolation and
smoothing curves.

Key Components:
- WavePipeline: Builds named curve variants from WaveInputs
- VariantSpec: Typed description of one variant (base filter, denoise,
  fractal, curve)
- extract_zigzag: Alternating turning points relative to the fast average
- apply_overrides: Merges manual corrections into a zigzag
- denoise: MAD outlier selection against a fitted reference curve
- filter_by_trend: Slow-average trend filter with trend lines
- curves: Chaikin, Catmull-Rom, linear, geometric, statistical and hybrid
- WaveConfig: Frozen configuration for every stage

Example:
    >>> from wave_analysis import WaveInputs, WavePipeline, VariantSpec
    >>> from wave_analysis import compute_moving_averages, dataframe_to_bars
    >>>
    >>> bars = dataframe_to_bars(df)
    >>> inputs = WaveInputs(bars, compute_moving_averages(bars))
    >>> pipeline = WavePipeline()
    >>> variant = pipeline.compute_variant(inputs, VariantSpec.from_name("chaikin"))
    >>> trend = pipeline.trend_analysis(inputs)
"""

from .types import (
    Bar,
    NamedCurveVariant,
    OverrideAction,
    PointKind,
    PointTag,
    TrendDirection,
    TrendLine,
    WavePoint,
)
from .wave_config import (
    CurveConfig,
    DenoiseConfig,
    ExtractorConfig,
    SignificanceConfig,
    TrendFilterConfig,
    WaveConfig,
)
from .bar_source import average_at, compute_moving_averages, dataframe_to_bars
from .zigzag import extract_zigzag, merge_alternating
from .overrides import (
    ManualOverride,
    OverrideSummary,
    apply_overrides,
    override_records,
    parse_override_records,
    summarize_overrides,
    with_override,
    with_removal,
)
from .denoising import denoise
from .trend_filter import SmoothTrend, TrendFilterResult, filter_by_average_side, filter_by_trend
from .curves import (
    catmull_rom,
    chaikin,
    filter_small_waves,
    geometric_smoothing,
    hybrid_smoothing,
    linear,
    statistical_smoothing,
)
from .pipeline import (
    BaseFilter,
    CurveKind,
    PipelineCancelled,
    VariantSpec,
    WaveAnalysis,
    WaveInputs,
    WavePipeline,
    all_variant_specs,
)

__all__ = [
    # Pipeline
    "WavePipeline",
    "WaveInputs",
    "WaveAnalysis",
    "VariantSpec",
    "BaseFilter",
    "CurveKind",
    "PipelineCancelled",
    "all_variant_specs",
    # Data structures
    "Bar",
    "WavePoint",
    "PointKind",
    "PointTag",
    "TrendLine",
    "TrendDirection",
    "NamedCurveVariant",
    "OverrideAction",
    "ManualOverride",
    "OverrideSummary",
    "SmoothTrend",
    "TrendFilterResult",
    # Configuration
    "WaveConfig",
    "ExtractorConfig",
    "DenoiseConfig",
    "TrendFilterConfig",
    "SignificanceConfig",
    "CurveConfig",
    # Bar source
    "dataframe_to_bars",
    "compute_moving_averages",
    "average_at",
    # Stages
    "extract_zigzag",
    "merge_alternating",
    "apply_overrides",
    "parse_override_records",
    "override_records",
    "with_override",
    "with_removal",
    "summarize_overrides",
    "denoise",
    "filter_by_trend",
    "filter_by_average_side",
    # Curves
    "filter_small_waves",
    "chaikin",
    "catmull_rom",
    "linear",
    "geometric_smoothing",
    "statistical_smoothing",
    "hybrid_smoothing",
]
