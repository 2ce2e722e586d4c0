"""
StockPro Technical Analysis Engine

Validates OHLCV series, computes indicators, detects chart patterns and
scores a weighted consensus, in batch or incrementally from a live feed.
"""

from ta_engine.core.config import EngineSettings, get_settings
from ta_engine.core.logging import setup_logging
from ta_engine.services.analysis import AnalysisRequest, AnalysisResult, AnalysisService
from ta_engine.services.live import LivePatternEngine

__version__ = "0.1.0"

__all__ = [
    "AnalysisRequest",
    "AnalysisResult",
    "AnalysisService",
    "EngineSettings",
    "LivePatternEngine",
    "get_settings",
    "setup_logging",
]
