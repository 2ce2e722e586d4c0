"""
CONTRACT 4: Consensus

Weighted bullish/bearish/neutral aggregation of indicator and pattern signals.
Derived on every scoring call; never persisted by the engine.
"""

from typing import Optional
from pydantic import BaseModel, Field

from ta_engine.schemas.patterns import Bias


class ConsensusSignal(BaseModel):
    """One indicator's (or pattern family's) vote."""

    name: str
    bias: Bias
    score: float = Field(..., ge=0, le=100, description="Signal strength")
    weight: float = Field(default=1.0, ge=0)
    description: str = ""


class ConsensusResult(BaseModel):
    """
    Weighted consensus.

    Bucket sums are flat weight sums; `score` only contributes to
    `overall_score`.
    """

    signals: list[ConsensusSignal]
    bullish_weight: float
    bearish_weight: float
    neutral_weight: float
    total_weight: float
    bullish_percentage: float = Field(..., ge=0, le=100)
    bearish_percentage: float = Field(..., ge=0, le=100)
    neutral_percentage: float = Field(..., ge=0, le=100)
    bullish_count: int = 0
    bearish_count: int = 0
    neutral_count: int = 0
    overall_score: float = Field(..., ge=-100, le=100)
    overall_bias: Bias
    confidence: float = Field(..., ge=0, le=1)
    timeframe: Optional[str] = None


class TimeframeConsensus(BaseModel):
    """Per-timeframe results plus one result over the timeframe biases."""

    timeframes: dict[str, ConsensusResult]
    overall: ConsensusResult
