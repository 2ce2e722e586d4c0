"""
Live Pattern Engine

CONTRACT:
    Input:  seed history, then CandleUpdate / TickUpdate messages per SeriesKey
    Output: LiveSnapshot (immutable, versioned) per SeriesKey

RESPONSIBILITIES:
    - Fold ticks into the open candle
    - Cheap per-bar checks: S/R touches, volume anomalies, candlesticks, extrema
    - Periodic re-run of window detectors over the trailing bars
    - Per-key write serialization with lock-free snapshot reads
"""

from ta_engine.services.live.candles import bucket_start, fold_tick
from ta_engine.services.live.engine import LivePatternEngine
from ta_engine.services.live.feed import LiveUpdate, parse_update
from ta_engine.services.live.state import EnginePhase, LiveEngineState, LiveSnapshot

__all__ = [
    "LivePatternEngine",
    "LiveEngineState",
    "LiveSnapshot",
    "EnginePhase",
    "LiveUpdate",
    "parse_update",
    "fold_tick",
    "bucket_start",
]
