"""
Wave Pipeline

Orchestrates the analysis stages for one named curve variant:

    zigzag -> overrides -> small-wave filter -> [denoise] -> [fractal]
        -> [average-based filter] -> curve

Variants are described by a typed VariantSpec rather than by parsing
method names; ``VariantSpec.name`` still yields the legacy names used by
callers that key drawings by string.

Example:
    >>> pipeline = WavePipeline()
    >>> inputs = WaveInputs(bars, compute_moving_averages(bars))
    >>> variant = pipeline.compute_variant(inputs, VariantSpec.from_name("denoisedChaikin"))
"""

import logging
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Hashable, List, Mapping, Optional, Sequence, Tuple

from . import curves
from .bar_source import AverageMap
from .denoising import denoise
from .overrides import OverrideSet, apply_overrides
from .significance import continuous_weight_filter, fractal_filter, ma_trend_filter, n_structure_filter
from .trend_filter import TrendFilterResult, filter_by_trend
from .types import Bar, NamedCurveVariant, WavePoint
from .wave_config import CurveConfig, WaveConfig
from .zigzag import ZigzagSequence, extract_zigzag

logger = logging.getLogger(__name__)

Points = Tuple[WavePoint, ...]


class BaseFilter(Enum):
    """Point set a variant is built from."""
    ORIGINAL = "original"
    FILTERED = "filtered"
    MA_TREND = "maTrend"
    CONTINUOUS_WEIGHT = "continuousWeight"
    N_STRUCTURE = "nStructure"


class CurveKind(Enum):
    """Curve applied to the final point set."""
    NONE = "none"
    CHAIKIN = "chaikin"
    CATMULL_ROM = "catmullRom"
    LINEAR = "linear"
    GEOMETRIC = "geometric"
    STATISTICAL = "statistical"
    HYBRID = "hybrid"


AVERAGE_FILTERS = (BaseFilter.MA_TREND, BaseFilter.CONTINUOUS_WEIGHT, BaseFilter.N_STRUCTURE)


class PipelineCancelled(Exception):
    """Raised at a stage boundary when the caller's cancel event is set."""
    pass


def _camel_case(tokens: Sequence[str]) -> str:
    head, *rest = tokens
    return head + "".join(t[0].upper() + t[1:] for t in rest)


@dataclass(frozen=True)
class VariantSpec:
    """
    Typed description of one curve variant.

    Attributes:
        base: Point set the curve is built from.
        denoise: Run the denoising engine before the base filter.
        fractal: Run fractal filtering before the base filter.
        curve: Curve applied last.
    """
    base: BaseFilter = BaseFilter.FILTERED
    denoise: bool = False
    fractal: bool = False
    curve: CurveKind = CurveKind.NONE

    def __post_init__(self):
        if self.base is BaseFilter.ORIGINAL and (self.denoise or self.fractal or self.curve is not CurveKind.NONE):
            raise ValueError("The original zigzag takes no further stages")

    @property
    def name(self) -> str:
        """Legacy method name, e.g. 'denoisedFractalChaikin' or 'maTrendCatmullRom'."""
        if self.base is BaseFilter.ORIGINAL:
            return BaseFilter.ORIGINAL.value
        tokens = []
        if self.denoise:
            tokens.append("denoised")
        if self.fractal:
            tokens.append("fractal")
        if self.base is not BaseFilter.FILTERED:
            tokens.append(self.base.value)
        if self.curve is not CurveKind.NONE:
            tokens.append(self.curve.value)
        if not tokens:
            return BaseFilter.FILTERED.value
        return _camel_case(tokens)

    @property
    def needs_slow_average(self) -> bool:
        return self.base in AVERAGE_FILTERS

    @classmethod
    def from_name(cls, name: str) -> "VariantSpec":
        """Look up a legacy method name in the variant table."""
        try:
            return _SPECS_BY_NAME[name]
        except KeyError:
            raise ValueError(f"Unknown curve variant: {name!r}") from None


def all_variant_specs(include_average_filters: bool = True) -> List[VariantSpec]:
    """
    Every selectable variant.

    The original zigzag; the filtered zigzag with every combination of
    denoising, fractal filtering and curve; and, when requested, each
    average-based filter (optionally denoised) with every curve.
    """
    specs = [VariantSpec(BaseFilter.ORIGINAL)]
    for denoised, fractal in ((False, False), (True, False), (False, True), (True, True)):
        specs.extend(VariantSpec(BaseFilter.FILTERED, denoised, fractal, curve) for curve in CurveKind)
    if include_average_filters:
        for base in AVERAGE_FILTERS:
            for denoised in (False, True):
                specs.extend(VariantSpec(base, denoised, False, curve) for curve in CurveKind)
    return specs


_SPECS_BY_NAME: Dict[str, VariantSpec] = {spec.name: spec for spec in all_variant_specs()}


def apply_curve(points: Sequence[WavePoint], kind: CurveKind, config: CurveConfig = None) -> Points:
    """Run the curve generator selected by ``kind`` with parameters from config."""
    config = config or CurveConfig()
    if kind is CurveKind.CHAIKIN:
        return curves.chaikin(points, config.chaikin_iterations)
    if kind is CurveKind.CATMULL_ROM:
        return curves.catmull_rom(points, config.catmull_rom_segments)
    if kind is CurveKind.LINEAR:
        return curves.linear(points, config.linear_segments)
    if kind is CurveKind.GEOMETRIC:
        return curves.geometric_smoothing(points, config.geometric_factor)
    if kind is CurveKind.STATISTICAL:
        return curves.statistical_smoothing(points, config.statistical_window)
    if kind is CurveKind.HYBRID:
        return curves.hybrid_smoothing(
            points,
            config.hybrid_geometric_weight,
            config.hybrid_statistical_weight,
            config.geometric_factor,
            config.statistical_window,
        )
    return tuple(points)


@dataclass(frozen=True)
class WaveInputs:
    """
    Everything one pipeline invocation reads.

    Attributes:
        bars: Ordered bar sequence.
        moving_averages: Period to index-aligned average series.
        overrides: Bar timestamp to manual correction.
    """
    bars: Sequence[Bar]
    moving_averages: AverageMap = field(default_factory=dict)
    overrides: OverrideSet = field(default_factory=dict)


@dataclass(frozen=True)
class WaveAnalysis:
    """Zigzag, one requested variant and the trend analysis of the same inputs."""
    zigzag: ZigzagSequence
    variant: NamedCurveVariant
    trend: TrendFilterResult


class WavePipeline:
    """
    Builds curve variants from bars, moving averages and overrides.

    The pipeline holds configuration only; every call recomputes from its
    inputs, so one instance can serve concurrent callers.
    """

    def __init__(self, config: Optional[WaveConfig] = None):
        self.config = config or WaveConfig.default()

    def zigzag(self, inputs: WaveInputs) -> ZigzagSequence:
        """Extracted zigzag with manual overrides applied."""
        fast = inputs.moving_averages.get(self.config.extractor.fast_period)
        extracted = extract_zigzag(inputs.bars, fast, self.config.extractor)
        return apply_overrides(extracted, inputs.overrides, inputs.bars)

    def compute_variant(
        self,
        inputs: WaveInputs,
        spec: VariantSpec,
        cancel_event: Optional[threading.Event] = None,
    ) -> NamedCurveVariant:
        """
        Compute a single curve variant.

        Args:
            inputs: Bars, moving averages and overrides.
            spec: Variant to build.
            cancel_event: Checked before every stage.

        Returns:
            The named variant; empty when it needs a slow average that is
            not supplied.

        Raises:
            PipelineCancelled: If cancel_event is set before a stage starts.
        """
        return self._compute(inputs, spec, cancel_event, {})

    def compute_variants(
        self,
        inputs: WaveInputs,
        specs: Optional[Sequence[VariantSpec]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Dict[str, NamedCurveVariant]:
        """
        Compute many variants, sharing stage results within this call.

        Args:
            inputs: Bars, moving averages and overrides.
            specs: Variants to build (every selectable variant if None).
            cancel_event: Checked before every stage.

        Returns:
            Variants keyed by legacy method name.
        """
        if specs is None:
            specs = all_variant_specs()
        memo: Dict[Hashable, Points] = {}
        variants = {}
        for spec in specs:
            variants[spec.name] = self._compute(inputs, spec, cancel_event, memo)
        logger.info(f"Computed {len(variants)} variants from {len(memo)} stage results")
        return variants

    def trend_analysis(self, inputs: WaveInputs) -> TrendFilterResult:
        """Trend filter over the current zigzag and slow average."""
        slow = inputs.moving_averages.get(self.config.trend.slow_period)
        return filter_by_trend(inputs.bars, self.zigzag(inputs), slow, self.config.trend)

    def analyze(self, inputs: WaveInputs, spec: VariantSpec) -> WaveAnalysis:
        """Everything a chart needs to draw one variant."""
        return WaveAnalysis(
            zigzag=self.zigzag(inputs),
            variant=self.compute_variant(inputs, spec),
            trend=self.trend_analysis(inputs),
        )

    def submit(
        self,
        executor: Executor,
        inputs: WaveInputs,
        spec: VariantSpec,
        cancel_event: Optional[threading.Event] = None,
    ) -> "Future[NamedCurveVariant]":
        """Run compute_variant on an executor."""
        return executor.submit(self.compute_variant, inputs, spec, cancel_event)

    def _compute(
        self,
        inputs: WaveInputs,
        spec: VariantSpec,
        cancel_event: Optional[threading.Event],
        memo: Dict[Hashable, Points],
    ) -> NamedCurveVariant:
        def stage(key: Hashable, compute: Callable[[], Points]) -> Points:
            if key not in memo:
                if cancel_event is not None and cancel_event.is_set():
                    raise PipelineCancelled(f"Cancelled before stage {key!r} of {spec.name}")
                memo[key] = compute()
            return memo[key]

        zigzag = stage("zigzag", lambda: self.zigzag(inputs))
        if spec.base is BaseFilter.ORIGINAL:
            return NamedCurveVariant(spec.name, zigzag)

        slow = inputs.moving_averages.get(self.config.trend.slow_period)
        if spec.needs_slow_average and slow is None:
            logger.warning(f"Variant {spec.name} needs the {self.config.trend.slow_period}-period average; empty")
            return NamedCurveVariant(spec.name, ())

        significance = self.config.significance
        key: Tuple = ("filtered",)
        points = stage(key, lambda: curves.filter_small_waves(zigzag, self.config.curves.min_price_change))
        if spec.denoise:
            previous = points
            key = key + ("denoised",)
            points = stage(key, lambda: denoise(previous, self.config.denoise))
        if spec.fractal:
            previous = points
            key = key + ("fractal",)
            points = stage(key, lambda: fractal_filter(previous, slow, significance))
        if spec.needs_slow_average:
            previous = points
            strategy = _AVERAGE_STRATEGIES[spec.base]
            key = key + (spec.base,)
            points = stage(key, lambda: strategy(previous, slow, significance))
        if spec.curve is not CurveKind.NONE:
            previous = points
            key = key + (spec.curve,)
            points = stage(key, lambda: apply_curve(previous, spec.curve, self.config.curves))

        logger.debug(f"Variant {spec.name}: {len(zigzag)} zigzag -> {len(points)} points")
        return NamedCurveVariant(spec.name, points)


_AVERAGE_STRATEGIES: Mapping[BaseFilter, Callable] = {
    BaseFilter.MA_TREND: ma_trend_filter,
    BaseFilter.CONTINUOUS_WEIGHT: continuous_weight_filter,
    BaseFilter.N_STRUCTURE: n_structure_filter,
}
