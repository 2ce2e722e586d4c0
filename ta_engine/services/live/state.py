"""
Live Engine State

Mutable per-series working state (owned by the engine, touched only under
the series lock) and the immutable snapshot published to readers.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

import numpy as np

from ta_engine.schemas.market import Bar, Series, SeriesKey
from ta_engine.schemas.patterns import ExtremaSet, PatternBase, PatternKind


class EnginePhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    SEEDED = "seeded"
    LIVE = "live"


@dataclass
class LiveEngineState:
    """
    Working state for one SeriesKey.

    `offset` is the absolute index of `bars[0]`; every index stored here is
    absolute (counted from the first seeded bar).
    """

    key: SeriesKey
    buffer_size: int
    volume_window: int
    max_patterns_per_kind: int
    bars: deque = field(init=False)
    offset: int = 0
    peaks: list[int] = field(default_factory=list)
    lows: list[int] = field(default_factory=list)
    patterns: dict[PatternKind, list[PatternBase]] = field(default_factory=dict)
    # Volumes of the `volume_window` closed bars preceding the last bar
    recent_volumes: deque = field(init=False)
    bars_since_refresh: int = 0
    phase: EnginePhase = EnginePhase.UNINITIALIZED
    version: int = 0
    last_updated: Optional[datetime] = None

    def __post_init__(self):
        self.bars = deque(maxlen=self.buffer_size)
        self.recent_volumes = deque(maxlen=self.volume_window)

    @property
    def last_index(self) -> int:
        """Absolute index of the newest bar (-1 when empty)."""
        return self.offset + len(self.bars) - 1

    @property
    def last_bar(self) -> Optional[Bar]:
        return self.bars[-1] if self.bars else None

    def closes(self) -> np.ndarray:
        return np.array([b.close for b in self.bars], dtype=float)

    def window(self, size: int) -> tuple[Series, int]:
        """Trailing `size` bars as a Series plus the absolute index of its first bar."""
        bars = tuple(self.bars)[-size:]
        return Series(key=self.key, bars=bars), self.last_index - len(bars) + 1

    def append(self, bar: Bar) -> None:
        if self.bars:
            self.recent_volumes.append(float(self.bars[-1].volume))
        if len(self.bars) == self.bars.maxlen:
            self.offset += 1
            self.peaks = [i for i in self.peaks if i >= self.offset]
            self.lows = [i for i in self.lows if i >= self.offset]
        self.bars.append(bar)

    def replace_last(self, bar: Bar) -> None:
        self.bars[-1] = bar

    def add_pattern(self, record: PatternBase) -> None:
        records = self.patterns.setdefault(record.kind, [])
        records.append(record)
        records.sort(key=lambda r: (r.start_index, r.end_index))
        del records[: max(0, len(records) - self.max_patterns_per_kind)]

    def drop_patterns_at(self, kind: PatternKind, index: int) -> None:
        records = self.patterns.get(kind, [])
        self.patterns[kind] = [r for r in records if r.start_index != index]

    def replace_patterns_from(
        self, kind: PatternKind, start: int, records: list[PatternBase]
    ) -> None:
        """Swap every record of `kind` starting at or after `start` for `records`."""
        kept = [r for r in self.patterns.get(kind, []) if r.start_index < start]
        merged = sorted(kept + list(records), key=lambda r: (r.start_index, r.end_index))
        self.patterns[kind] = merged[-self.max_patterns_per_kind :] if self.max_patterns_per_kind else []

    def snapshot(self, order: int) -> "LiveSnapshot":
        return LiveSnapshot(
            key=self.key,
            version=self.version,
            phase=self.phase,
            offset=self.offset,
            bars=tuple(self.bars),
            extrema=ExtremaSet(
                order=order, peak_indices=tuple(self.peaks), low_indices=tuple(self.lows)
            ),
            patterns=MappingProxyType(
                {kind: tuple(recs) for kind, recs in self.patterns.items()}
            ),
            last_updated=self.last_updated,
        )


@dataclass(frozen=True)
class LiveSnapshot:
    """Immutable, versioned view of one series' live state."""

    key: SeriesKey
    version: int
    phase: EnginePhase
    offset: int
    bars: tuple[Bar, ...]
    extrema: ExtremaSet
    patterns: Mapping[PatternKind, tuple[PatternBase, ...]]
    last_updated: Optional[datetime] = None

    @property
    def last_index(self) -> int:
        return self.offset + len(self.bars) - 1

    @property
    def last_bar(self) -> Optional[Bar]:
        return self.bars[-1] if self.bars else None

    def of(self, kind: PatternKind) -> tuple[PatternBase, ...]:
        return self.patterns.get(kind, ())

    def latest(self, count: int = 5, kind: Optional[PatternKind] = None) -> list[PatternBase]:
        """The `count` records ending latest, optionally of one kind."""
        if kind is not None:
            records = list(self.of(kind))
        else:
            records = [r for recs in self.patterns.values() for r in recs]
        records.sort(key=lambda r: (r.end_index, r.start_index))
        return records[-count:] if count > 0 else []
