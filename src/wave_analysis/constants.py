"""Centralized constants for wave-point analysis."""

# Moving-average periods consumed by the pipeline.
FAST_AVERAGE_PERIOD = 10    # Zigzag run detection
SLOW_AVERAGE_PERIOD = 150   # Trend classification and significance scoring

# Sequential timestamps used when a bar source carries no time column.
DEFAULT_START_TIMESTAMP = 1700000000
DEFAULT_BAR_SECONDS = 60

# Golden ratio used by the fractal amplitude-ratio conformity score.
GOLDEN_RATIO = 1.618

# Box-counting grid scales for fractal dimension estimation.
BOX_COUNT_SCALES = (1, 2, 4, 8, 16)

# Provenance method names written into PointTag.method.
METHOD_ZIGZAG = "zigzag"
METHOD_DENOISED = "denoised"
METHOD_INTERPOLATED = "gap_fill"
METHOD_FRACTAL = "fractal"
METHOD_MA_TREND = "ma_trend"
METHOD_CONTINUOUS_WEIGHT = "continuous_weight"
METHOD_N_STRUCTURE = "n_structure"
METHOD_TREND_FILTER = "trend_filter"
METHOD_AVERAGE_SIDE = "average_side"
