"""
Technical Analysis Engine Schema Contracts

Every value crossing a module boundary is one of these types.
"""

from ta_engine.schemas.market import (
    Bar,
    CandleUpdate,
    Exchange,
    Series,
    SeriesKey,
    TickUpdate,
    Timeframe,
    ensure_utc,
)
from ta_engine.schemas.validation import (
    IssueCode,
    Severity,
    ValidationIssue,
    ValidationReport,
)
from ta_engine.schemas.indicators import (
    IndicatorBundle,
    IndicatorRequest,
    IndicatorSeries,
)
from ta_engine.schemas.patterns import (
    Bias,
    CandlestickPattern,
    CandleType,
    DivergencePattern,
    DivergenceStrength,
    DoubleBottomPattern,
    DoubleTopPattern,
    ExtremaSet,
    FlagPattern,
    HeadAndShouldersPattern,
    LevelType,
    PatternBase,
    PatternKind,
    PatternRecord,
    SupportResistanceLevel,
    TrianglePattern,
    TriangleType,
    VolumeAnomaly,
)
from ta_engine.schemas.consensus import (
    ConsensusResult,
    ConsensusSignal,
    TimeframeConsensus,
)

__all__ = [
    # Market
    "Bar",
    "CandleUpdate",
    "Exchange",
    "Series",
    "SeriesKey",
    "TickUpdate",
    "Timeframe",
    "ensure_utc",
    # Validation
    "IssueCode",
    "Severity",
    "ValidationIssue",
    "ValidationReport",
    # Indicators
    "IndicatorBundle",
    "IndicatorRequest",
    "IndicatorSeries",
    # Patterns
    "Bias",
    "CandlestickPattern",
    "CandleType",
    "DivergencePattern",
    "DivergenceStrength",
    "DoubleBottomPattern",
    "DoubleTopPattern",
    "ExtremaSet",
    "FlagPattern",
    "HeadAndShouldersPattern",
    "LevelType",
    "PatternBase",
    "PatternKind",
    "PatternRecord",
    "SupportResistanceLevel",
    "TrianglePattern",
    "TriangleType",
    "VolumeAnomaly",
    # Consensus
    "ConsensusResult",
    "ConsensusSignal",
    "TimeframeConsensus",
]
