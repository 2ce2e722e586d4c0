"""
CONTRACT 1: Market Data

Input contracts for the engine: bars, series and live feed updates.

Bars arrive from collaborators (historical fetch, live feed) and are always
passed through the Series Validator before any computation runs.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import NamedTuple, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS
# =============================================================================


class Exchange(str, Enum):
    NSE = "NSE"
    BSE = "BSE"
    NASDAQ = "NASDAQ"
    NYSE = "NYSE"


class Timeframe(str, Enum):
    M1 = "1m"
    M5 = "5m"
    M15 = "15m"
    M30 = "30m"
    H1 = "1h"
    H4 = "4h"
    D1 = "1d"
    W1 = "1w"

    @property
    def interval(self) -> timedelta:
        """Length of one bar."""
        return _TIMEFRAME_INTERVALS[self]


_TIMEFRAME_INTERVALS = {
    Timeframe.M1: timedelta(minutes=1),
    Timeframe.M5: timedelta(minutes=5),
    Timeframe.M15: timedelta(minutes=15),
    Timeframe.M30: timedelta(minutes=30),
    Timeframe.H1: timedelta(hours=1),
    Timeframe.H4: timedelta(hours=4),
    Timeframe.D1: timedelta(days=1),
    Timeframe.W1: timedelta(weeks=1),
}


# =============================================================================
# BARS
# =============================================================================


class Bar(BaseModel):
    """Single OHLCV observation. Immutable once validated."""

    model_config = ConfigDict(frozen=True)

    time: datetime
    open: float = Field(..., ge=0)
    high: float = Field(..., ge=0)
    low: float = Field(..., ge=0)
    close: float = Field(..., ge=0)
    volume: int = Field(..., ge=0)

    @property
    def body(self) -> float:
        return abs(self.close - self.open)

    @property
    def range(self) -> float:
        return self.high - self.low

    @property
    def upper_shadow(self) -> float:
        return self.high - max(self.open, self.close)

    @property
    def lower_shadow(self) -> float:
        return min(self.open, self.close) - self.low


class SeriesKey(NamedTuple):
    """Identity of a series: (symbol, timeframe, exchange)."""

    symbol: str
    timeframe: Timeframe = Timeframe.D1
    exchange: Exchange = Exchange.NSE

    def __str__(self) -> str:
        return f"{self.exchange.value}:{self.symbol}@{self.timeframe.value}"


@dataclass(frozen=True, eq=False)
class Series:
    """
    Ordered, index-addressable bars for one SeriesKey.

    The numpy views are read-only; the engine borrows a Series for the
    duration of a computation and never mutates it.
    """

    key: SeriesKey
    bars: tuple[Bar, ...]
    times: tuple[datetime, ...] = field(init=False, repr=False)
    opens: np.ndarray = field(init=False, repr=False)
    highs: np.ndarray = field(init=False, repr=False)
    lows: np.ndarray = field(init=False, repr=False)
    closes: np.ndarray = field(init=False, repr=False)
    volumes: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        bars = tuple(self.bars)
        object.__setattr__(self, "bars", bars)
        object.__setattr__(self, "times", tuple(b.time for b in bars))
        for name, attr in (
            ("opens", "open"),
            ("highs", "high"),
            ("lows", "low"),
            ("closes", "close"),
            ("volumes", "volume"),
        ):
            arr = np.array([getattr(b, attr) for b in bars], dtype=float)
            arr.flags.writeable = False
            object.__setattr__(self, name, arr)

    def __len__(self) -> int:
        return len(self.bars)

    def __getitem__(self, index: int) -> Bar:
        return self.bars[index]

    def time_at(self, index: int) -> Optional[datetime]:
        """Timestamp of bar `index`, or None when out of range."""
        if 0 <= index < len(self.bars):
            return self.bars[index].time
        return None

    def tail(self, count: int) -> "Series":
        """Trailing `count` bars as a new Series."""
        return Series(key=self.key, bars=self.bars[-count:] if count else ())


# =============================================================================
# LIVE FEED UPDATES
# =============================================================================


class CandleUpdate(BaseModel):
    """Full-candle update from the live feed."""

    time: datetime
    open: float = Field(..., ge=0)
    high: float = Field(..., ge=0)
    low: float = Field(..., ge=0)
    close: float = Field(..., ge=0)
    volume: int = Field(default=0, ge=0)

    def to_bar(self) -> Bar:
        return Bar(
            time=ensure_utc(self.time),
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            volume=self.volume,
        )


class TickUpdate(BaseModel):
    """Single trade/price tick; folded into the open bar before absorption."""

    price: float = Field(..., gt=0)
    timestamp: datetime
    volume: int = Field(default=0, ge=0)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
