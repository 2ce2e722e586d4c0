"""
CONTRACT 2: Indicator Outputs

IndicatorSeries are numpy-backed and index-aligned with the input Series.
Leading NaN entries mark the warm-up period.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np
from pydantic import BaseModel, Field

from ta_engine.schemas.validation import ValidationIssue


@dataclass(frozen=True, eq=False)
class IndicatorSeries:
    """One indicator: named output lines, each the length of the input."""

    name: str
    params: dict[str, Any]
    lines: dict[str, np.ndarray]

    def __post_init__(self):
        for arr in self.lines.values():
            arr.flags.writeable = False

    def __len__(self) -> int:
        return len(next(iter(self.lines.values()))) if self.lines else 0

    def line(self, name: Optional[str] = None) -> np.ndarray:
        """Named line, or the primary (first) line."""
        if name is None:
            return next(iter(self.lines.values()))
        return self.lines[name]

    def last(self, name: Optional[str] = None) -> Optional[float]:
        """Last non-NaN value of a line."""
        arr = self.line(name)
        valid = arr[~np.isnan(arr)]
        return float(valid[-1]) if len(valid) > 0 else None

    def warmup(self, name: Optional[str] = None) -> int:
        """Number of leading NaN entries."""
        arr = self.line(name)
        valid = np.flatnonzero(~np.isnan(arr))
        return int(valid[0]) if len(valid) else len(arr)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly form; NaN becomes None."""
        return {
            "name": self.name,
            "params": dict(self.params),
            "lines": {
                key: [None if math.isnan(v) else float(v) for v in arr]
                for key, arr in self.lines.items()
            },
        }


class IndicatorRequest(BaseModel):
    """
    Which indicators to compute. Names not listed are skipped.
    Periods default to EngineSettings.
    """

    indicators: list[str] = Field(
        default_factory=lambda: [
            "sma", "ema", "rsi", "macd", "bollinger",
            "stochastic", "atr", "obv", "adx", "volume_sma",
        ]
    )
    sma_periods: Optional[list[int]] = None
    ema_periods: Optional[list[int]] = None
    rsi_period: Optional[int] = None
    macd_fast: Optional[int] = None
    macd_slow: Optional[int] = None
    macd_signal: Optional[int] = None
    bollinger_period: Optional[int] = None
    bollinger_std_dev: Optional[float] = None
    stochastic_period: Optional[int] = None
    stochastic_smoothing: Optional[int] = None
    atr_period: Optional[int] = None
    adx_period: Optional[int] = None
    volume_sma_period: Optional[int] = None


@dataclass
class IndicatorBundle:
    """All computed indicators for one series plus per-indicator issues."""

    indicators: dict[str, IndicatorSeries] = field(default_factory=dict)
    issues: list[ValidationIssue] = field(default_factory=list)

    def __getitem__(self, name: str) -> IndicatorSeries:
        return self.indicators[name]

    def __contains__(self, name: str) -> bool:
        return name in self.indicators

    def get(self, name: str) -> Optional[IndicatorSeries]:
        return self.indicators.get(name)
