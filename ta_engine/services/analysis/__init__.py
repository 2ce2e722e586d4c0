"""
Analysis Service

CONTRACT:
    Input:  AnalysisRequest list (raw bars per SeriesKey)
    Output: dict[SeriesKey, AnalysisResult]

RESPONSIBILITIES:
    - Chain validator, indicators, patterns and consensus for one series
    - Fan out across series on worker threads, isolating per-series failures
"""

from ta_engine.services.analysis.interface import (
    AnalysisRequest,
    AnalysisResult,
    AnalysisServiceInterface,
)
from ta_engine.services.analysis.service import AnalysisService, get_analysis_service

__all__ = [
    "AnalysisRequest",
    "AnalysisResult",
    "AnalysisServiceInterface",
    "AnalysisService",
    "get_analysis_service",
]
