"""
Pattern Service Implementation

Runs the detector library over a validated Series with parameters from
EngineSettings. One failing detector never aborts its siblings.
"""

import logging
from typing import Callable, Iterable, Optional

import numpy as np

from ta_engine.core.config import EngineSettings, get_settings
from ta_engine.schemas.indicators import IndicatorBundle
from ta_engine.schemas.market import Series
from ta_engine.schemas.patterns import PatternBase, PatternKind
from ta_engine.schemas.validation import IssueCode, Severity, ValidationIssue
from ta_engine.services.base import InsufficientDataError
from ta_engine.services.indicators.calculations import rsi
from ta_engine.services.patterns.detectors import (
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
from ta_engine.services.patterns.extrema import find_extrema
from ta_engine.services.patterns.interface import PatternBundle, PatternServiceInterface

logger = logging.getLogger(__name__)

Detector = Callable[[Series, EngineSettings, Optional[np.ndarray]], list[PatternBase]]


# =============================================================================
# DETECTOR TABLE
# =============================================================================


DETECTORS: dict[PatternKind, Detector] = {
    PatternKind.SUPPORT_RESISTANCE: lambda s, cfg, _: detect_support_resistance(
        s, cfg.extrema_order, cfg.sr_cluster_threshold, cfg.sr_min_touches
    ),
    PatternKind.TRIANGLE: lambda s, cfg, _: detect_triangles(
        s,
        cfg.triangle_min_points,
        cfg.triangle_max_points,
        cfg.triangle_step,
        cfg.triangle_order,
        cfg.triangle_flat_slope,
        cfg.triangle_symmetry_tolerance,
        cfg.triangle_min_confidence,
    ),
    PatternKind.FLAG: lambda s, cfg, _: detect_flags(
        s,
        cfg.flag_impulse,
        cfg.flag_channel,
        cfg.flag_min_pole,
        cfg.flag_pullback_ratio,
        cfg.flag_max_volatility,
    ),
    PatternKind.DOUBLE_TOP: lambda s, cfg, _: detect_double_tops(
        s, cfg.extrema_order, cfg.double_pattern_threshold
    ),
    PatternKind.DOUBLE_BOTTOM: lambda s, cfg, _: detect_double_bottoms(
        s, cfg.extrema_order, cfg.double_pattern_threshold
    ),
    PatternKind.HEAD_AND_SHOULDERS: lambda s, cfg, _: detect_head_and_shoulders(
        s, cfg.extrema_order, cfg.hs_shoulder_tolerance, cfg.hs_min_head_height
    ),
    PatternKind.DIVERGENCE: lambda s, cfg, line: detect_divergences(
        s,
        line if line is not None else rsi(s.closes, cfg.rsi_period),
        "rsi",
        cfg.extrema_order,
        cfg.divergence_match_window,
        cfg.divergence_min_strength,
    ),
    PatternKind.VOLUME_ANOMALY: lambda s, cfg, _: detect_volume_anomalies(
        s, cfg.volume_window, cfg.volume_threshold
    ),
    PatternKind.CANDLESTICK: lambda s, cfg, _: detect_candlesticks(s),
}

# Detectors the live engine re-runs over a trailing window instead of updating per bar
WINDOWED_KINDS: tuple[PatternKind, ...] = (
    PatternKind.TRIANGLE,
    PatternKind.FLAG,
    PatternKind.DOUBLE_TOP,
    PatternKind.DOUBLE_BOTTOM,
    PatternKind.HEAD_AND_SHOULDERS,
    PatternKind.DIVERGENCE,
)


def min_bars(kind: PatternKind, cfg: EngineSettings) -> int:
    """Shortest series on which a detector can produce anything."""
    pivot_span = 2 * cfg.extrema_order + 1
    if kind == PatternKind.TRIANGLE:
        return cfg.triangle_min_points
    if kind == PatternKind.FLAG:
        return cfg.flag_impulse + cfg.flag_channel
    if kind in (PatternKind.SUPPORT_RESISTANCE, PatternKind.DOUBLE_TOP, PatternKind.DOUBLE_BOTTOM):
        return pivot_span + cfg.extrema_order + 1
    if kind == PatternKind.HEAD_AND_SHOULDERS:
        return pivot_span + 2 * (cfg.extrema_order + 1)
    if kind == PatternKind.DIVERGENCE:
        return cfg.rsi_period + 1 + pivot_span
    if kind == PatternKind.VOLUME_ANOMALY:
        return cfg.volume_window + 1
    return 1


def run_detector(
    kind: PatternKind,
    series: Series,
    cfg: EngineSettings,
    indicator_line: Optional[np.ndarray] = None,
    service_name: str = "PatternService",
) -> list[PatternBase]:
    """Run one detector; raises InsufficientDataError on a short series."""
    required = min_bars(kind, cfg)
    if len(series) < required:
        raise InsufficientDataError(
            service_name,
            f"{kind.value} needs {required} bars, got {len(series)}",
            required=required,
            available=len(series),
        )
    return DETECTORS[kind](series, cfg, indicator_line)


class PatternService(PatternServiceInterface):
    """
    Pattern Service.

    Detects chart patterns on one series.
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = settings or get_settings()

    async def execute(self, input_data: Series) -> PatternBundle:
        return self.detect(input_data)

    def detect(
        self,
        series: Series,
        kinds: Optional[Iterable[PatternKind]] = None,
        indicators: Optional[IndicatorBundle] = None,
    ) -> PatternBundle:
        kinds = list(kinds) if kinds is not None else list(PatternKind)
        bundle = PatternBundle(extrema=find_extrema(series.closes, self.settings.extrema_order))

        rsi_line = None
        if indicators is not None and "rsi" in indicators:
            rsi_line = indicators["rsi"].line()

        for kind in kinds:
            try:
                bundle.patterns[kind] = run_detector(
                    kind, series, self.settings, rsi_line, self.name
                )
            except InsufficientDataError as e:
                logger.debug(f"{series.key}: {e.message}")
                bundle.issues.append(
                    ValidationIssue(
                        code=IssueCode.INSUFFICIENT_DATA,
                        severity=Severity.WARNING,
                        message=e.message,
                        source=kind.value,
                    )
                )
                bundle.patterns[kind] = []
            except Exception as e:
                logger.warning(f"{series.key}: {kind.value} detector failed: {e}")
                bundle.issues.append(
                    ValidationIssue(
                        code=IssueCode.COMPUTATION_FAILED,
                        severity=Severity.WARNING,
                        message=str(e),
                        source=kind.value,
                    )
                )
                bundle.patterns[kind] = []

        logger.debug(
            f"{series.key}: {sum(len(v) for v in bundle.patterns.values())} pattern(s) "
            f"across {len(kinds)} detector(s)"
        )
        return bundle


# Singleton instance
_service_instance: Optional[PatternService] = None


def get_pattern_service() -> PatternService:
    """Get or create pattern service instance."""
    global _service_instance
    if _service_instance is None:
        _service_instance = PatternService()
    return _service_instance
