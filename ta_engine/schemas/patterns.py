"""
CONTRACT 3: Pattern Records

Tagged union over every detector's output. Each record carries enough
(index, time, price) geometry for a presentation layer to place overlays
without re-running detection.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS
# =============================================================================


class Bias(str, Enum):
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"


class PatternKind(str, Enum):
    TRIANGLE = "triangle"
    FLAG = "flag"
    SUPPORT_RESISTANCE = "support_resistance"
    DOUBLE_TOP = "double_top"
    DOUBLE_BOTTOM = "double_bottom"
    HEAD_AND_SHOULDERS = "head_and_shoulders"
    DIVERGENCE = "divergence"
    VOLUME_ANOMALY = "volume_anomaly"
    CANDLESTICK = "candlestick"


class TriangleType(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"
    SYMMETRICAL = "symmetrical"


class LevelType(str, Enum):
    SUPPORT = "support"
    RESISTANCE = "resistance"


class DivergenceStrength(str, Enum):
    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"


class CandleType(str, Enum):
    DOJI = "doji"
    HAMMER = "hammer"
    SHOOTING_STAR = "shooting_star"


# =============================================================================
# EXTREMA
# =============================================================================


class ExtremaSet(BaseModel):
    """Peak and low indices for one series at one detection order."""

    model_config = ConfigDict(frozen=True)

    order: int = Field(..., ge=1)
    peak_indices: tuple[int, ...] = ()
    low_indices: tuple[int, ...] = ()


# =============================================================================
# PATTERN RECORDS
# =============================================================================


class PatternBase(BaseModel):
    """Geometry shared by every pattern record."""

    model_config = ConfigDict(frozen=True)

    start_index: int = Field(..., ge=0)
    end_index: int = Field(..., ge=0)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    confidence: float = Field(..., ge=0, le=1)
    bias: Bias = Bias.NEUTRAL

    def shifted(self, offset: int):
        """Copy with indices moved by `offset` (window-relative -> absolute)."""
        if offset == 0:
            return self
        return self.model_copy(
            update={
                "start_index": self.start_index + offset,
                "end_index": self.end_index + offset,
            }
        )


class TrianglePattern(PatternBase):
    kind: Literal[PatternKind.TRIANGLE] = PatternKind.TRIANGLE
    triangle_type: TriangleType
    upper_slope: float = Field(..., description="Peak line slope, fraction of price per bar")
    lower_slope: float = Field(..., description="Low line slope, fraction of price per bar")
    upper_start: float
    upper_end: float
    lower_start: float
    lower_end: float
    breakout_direction: Literal["up", "down", "none"] = "none"


class FlagPattern(PatternBase):
    kind: Literal[PatternKind.FLAG] = PatternKind.FLAG
    pole_start_index: int
    pole_end_index: int
    pole_height: float = Field(..., description="Pole return as a fraction")
    flag_height: float = Field(..., description="Max retracement as a fraction")
    pole_start_price: float
    pole_end_price: float


class SupportResistanceLevel(PatternBase):
    kind: Literal[PatternKind.SUPPORT_RESISTANCE] = PatternKind.SUPPORT_RESISTANCE
    level_type: LevelType
    price: float = Field(..., gt=0, description="Mean price of the clustered extrema")
    strength: int = Field(..., ge=1, description="Touch count, including pruned touches")
    touches: tuple[int, ...] = Field(..., description="Retained touch indices, ascending")

    def with_touch(self, index: int, time: Optional[datetime] = None) -> "SupportResistanceLevel":
        """
        New level with one more touch. Existing touches are never rewritten.

        `strength` counts every touch ever made; `touches` may later be
        trimmed by `pruned` without lowering it.
        """
        if index in self.touches:
            return self
        strength = self.strength + 1
        return self.model_copy(
            update={
                "touches": self.touches + (index,),
                "strength": strength,
                "end_index": max(self.end_index, index),
                "end_time": time if index >= self.end_index else self.end_time,
                "confidence": min(1.0, strength / 5),
            }
        )

    def pruned(self, min_index: int) -> "SupportResistanceLevel":
        """Drop retained touch indices below `min_index`; strength is kept."""
        if not self.touches or self.touches[0] >= min_index:
            return self
        return self.model_copy(
            update={"touches": tuple(i for i in self.touches if i >= min_index)}
        )

    def shifted(self, offset: int):
        if offset == 0:
            return self
        moved = super().shifted(offset)
        return moved.model_copy(update={"touches": tuple(i + offset for i in self.touches)})


class DoubleTopPattern(PatternBase):
    kind: Literal[PatternKind.DOUBLE_TOP] = PatternKind.DOUBLE_TOP
    first_price: float
    second_price: float
    neckline: float


class DoubleBottomPattern(PatternBase):
    kind: Literal[PatternKind.DOUBLE_BOTTOM] = PatternKind.DOUBLE_BOTTOM
    first_price: float
    second_price: float
    neckline: float


class HeadAndShouldersPattern(PatternBase):
    kind: Literal[PatternKind.HEAD_AND_SHOULDERS] = PatternKind.HEAD_AND_SHOULDERS
    inverse: bool = False
    left_shoulder_index: int
    head_index: int
    right_shoulder_index: int
    left_shoulder_price: float
    head_price: float
    right_shoulder_price: float
    neckline: float

    def shifted(self, offset: int):
        if offset == 0:
            return self
        moved = super().shifted(offset)
        return moved.model_copy(
            update={
                "left_shoulder_index": self.left_shoulder_index + offset,
                "head_index": self.head_index + offset,
                "right_shoulder_index": self.right_shoulder_index + offset,
            }
        )


class DivergencePattern(PatternBase):
    kind: Literal[PatternKind.DIVERGENCE] = PatternKind.DIVERGENCE
    indicator: str = "rsi"
    price_start: float
    price_end: float
    indicator_start: float
    indicator_end: float
    strength: DivergenceStrength


class VolumeAnomaly(PatternBase):
    kind: Literal[PatternKind.VOLUME_ANOMALY] = PatternKind.VOLUME_ANOMALY
    anomaly_type: Literal["spike", "dip"]
    volume: int
    average_volume: float
    ratio: float
    price: float


class CandlestickPattern(PatternBase):
    kind: Literal[PatternKind.CANDLESTICK] = PatternKind.CANDLESTICK
    candle_type: CandleType
    open: float
    high: float
    low: float
    close: float


PatternRecord = Annotated[
    Union[
        TrianglePattern,
        FlagPattern,
        SupportResistanceLevel,
        DoubleTopPattern,
        DoubleBottomPattern,
        HeadAndShouldersPattern,
        DivergencePattern,
        VolumeAnomaly,
        CandlestickPattern,
    ],
    Field(discriminator="kind"),
]
