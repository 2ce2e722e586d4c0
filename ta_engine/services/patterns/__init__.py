"""
Pattern Service

CONTRACT:
    Input:  Series (validated OHLCV)
    Output: PatternBundle

RESPONSIBILITIES:
    - Local extrema (one canonical detector)
    - Support/resistance clusters, triangles, flags
    - Double tops/bottoms, head and shoulders (regular and inverse)
    - Price/RSI divergence, volume anomalies, single-bar candlesticks
"""

from ta_engine.services.patterns.detectors import (
    classify_candle,
    detect_candlesticks,
    detect_divergences,
    detect_double_bottoms,
    detect_double_tops,
    detect_flags,
    detect_head_and_shoulders,
    detect_support_resistance,
    detect_triangles,
    detect_volume_anomalies,
)
from ta_engine.services.patterns.extrema import find_extrema, is_low_at, is_peak_at
from ta_engine.services.patterns.interface import PatternBundle, PatternServiceInterface
from ta_engine.services.patterns.service import (
    PatternService,
    get_pattern_service,
    run_detector,
)

__all__ = [
    "PatternBundle",
    "PatternServiceInterface",
    "PatternService",
    "get_pattern_service",
    "run_detector",
    "find_extrema",
    "is_peak_at",
    "is_low_at",
    "classify_candle",
    "detect_candlesticks",
    "detect_divergences",
    "detect_double_bottoms",
    "detect_double_tops",
    "detect_flags",
    "detect_head_and_shoulders",
    "detect_support_resistance",
    "detect_triangles",
    "detect_volume_anomalies",
]
