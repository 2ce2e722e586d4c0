"""
Shared fixtures: synthetic bar and series builders.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Sequence

import numpy as np
import pytest

from ta_engine.core.config import EngineSettings
from ta_engine.schemas.market import Bar, Series, SeriesKey, Timeframe

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)
NOW = datetime(2030, 1, 1, tzinfo=timezone.utc)
KEY = SeriesKey("RELIANCE", Timeframe.D1)


def build_bars(
    closes: Sequence[float],
    volumes: Optional[Sequence[int]] = None,
    start: datetime = BASE_TIME,
    step: timedelta = timedelta(days=1),
    spread: float = 0.5,
) -> list[Bar]:
    """Open at the previous close; high/low pad the body by `spread`."""
    bars = []
    prev = float(closes[0])
    for i, close in enumerate(closes):
        close = float(close)
        bars.append(
            Bar(
                time=start + i * step,
                open=prev,
                high=max(prev, close) + spread,
                low=max(0.0, min(prev, close) - spread),
                close=close,
                volume=int(volumes[i]) if volumes is not None else 1000,
            )
        )
        prev = close
    return bars


def build_series(closes: Sequence[float], key: SeriesKey = KEY, **kwargs) -> Series:
    return Series(key=key, bars=tuple(build_bars(closes, **kwargs)))


def random_walk(n: int = 300, seed: int = 42, start: float = 100.0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return start * np.exp(np.cumsum(rng.normal(0, 0.01, n)))


@pytest.fixture
def key() -> SeriesKey:
    return KEY


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings()


@pytest.fixture
def make_bars() -> Callable[..., list[Bar]]:
    return build_bars


@pytest.fixture
def make_series() -> Callable[..., Series]:
    return build_series


@pytest.fixture
def walk_series() -> Series:
    closes = random_walk()
    rng = np.random.default_rng(7)
    volumes = rng.integers(50_000, 150_000, len(closes))
    return build_series(closes, volumes=volumes)


@pytest.fixture
def oscillating_closes() -> list[float]:
    """Four swings between 100 and 110; peaks at 3, 9, 15, 21 and lows at 6, 12, 18 (order 2)."""
    cycle = [100.0, 103.0, 106.0, 110.0, 106.0, 103.0]
    return cycle * 4 + [100.0]


@pytest.fixture
def double_top_closes() -> Callable[[float, float], list[float]]:
    """Two close peaks at indices 5 and 15, isolated at order 5."""

    def build(first: float, second: float) -> list[float]:
        return (
            [90.0, 91.0, 92.0, 93.0, 94.0, first, 94.0, 93.0, 92.0, 91.0, 90.0]
            + [91.0, 92.0, 93.0, 94.0, second, 94.0, 93.0, 92.0, 91.0, 90.0]
        )

    return build
