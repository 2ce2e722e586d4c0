"""
Tick Folding

Folds price ticks into the open candle: high/low track extremes, close is
the latest price, volume accumulates. A tick past the candle's bucket
opens a new candle.
"""

from datetime import datetime, timezone
from typing import Optional

from ta_engine.schemas.market import Bar, TickUpdate, Timeframe, ensure_utc
from ta_engine.services.base import LiveEngineError

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def bucket_start(timestamp: datetime, timeframe: Timeframe) -> datetime:
    """Start of the timeframe bucket containing `timestamp` (epoch-aligned, UTC)."""
    ts = ensure_utc(timestamp)
    step = timeframe.interval
    return _EPOCH + ((ts - _EPOCH) // step) * step


def fold_tick(open_bar: Optional[Bar], tick: TickUpdate, timeframe: Timeframe) -> Bar:
    """
    Apply one tick to the open candle.

    Buckets are measured from the open bar's own time, so bars stamped off
    the epoch grid (Monday weeks, exchange-local midnights) keep their
    alignment. Without an open bar the tick opens an epoch-aligned bar.
    Ticks older than the open bar are rejected.
    """
    ts = ensure_utc(tick.timestamp)
    step = timeframe.interval

    if open_bar is None:
        start = bucket_start(ts, timeframe)
    elif ts >= open_bar.time + step:
        start = open_bar.time + ((ts - open_bar.time) // step) * step
    else:
        start = None

    if start is not None:
        return Bar(
            time=start,
            open=tick.price,
            high=tick.price,
            low=tick.price,
            close=tick.price,
            volume=tick.volume,
        )

    if ts < open_bar.time:
        raise LiveEngineError(
            "LivePatternEngine",
            f"Tick at {tick.timestamp.isoformat()} predates open bar {open_bar.time.isoformat()}",
        )

    return Bar(
        time=open_bar.time,
        open=open_bar.open,
        high=max(open_bar.high, tick.price),
        low=min(open_bar.low, tick.price),
        close=tick.price,
        volume=open_bar.volume + tick.volume,
    )
