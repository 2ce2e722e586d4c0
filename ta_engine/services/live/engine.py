"""
Live Pattern Engine

Keeps per-series pattern state current as bars stream in.

Cheap checks (support/resistance touches, volume anomalies, candlesticks,
extremum confirmation) run on every bar. Window detectors (triangles,
flags, double tops/bottoms, head and shoulders, divergence) re-run over the
trailing `refresh_window` bars every `refresh_every` new bars.

Writers for one key are serialized by that key's lock; readers only ever
see immutable LiveSnapshot objects.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, AsyncIterable, Iterable, Optional

import numpy as np
from pydantic import ValidationError

from ta_engine.core.config import EngineSettings, get_settings
from ta_engine.schemas.market import Bar, CandleUpdate, SeriesKey, TickUpdate
from ta_engine.schemas.patterns import PatternBase, PatternKind
from ta_engine.schemas.validation import ValidationReport
from ta_engine.services.base import (
    InsufficientDataError,
    LiveEngineError,
    SeriesValidationError,
)
from ta_engine.services.live.candles import fold_tick
from ta_engine.services.live.feed import LiveUpdate, parse_update
from ta_engine.services.live.state import EnginePhase, LiveEngineState, LiveSnapshot
from ta_engine.services.patterns.detectors import classify_candle, volume_anomaly_at
from ta_engine.services.patterns.extrema import is_low_at, is_peak_at
from ta_engine.services.patterns.service import WINDOWED_KINDS, PatternService, run_detector
from ta_engine.services.validation.service import SeriesValidator

logger = logging.getLogger(__name__)


class LivePatternEngine:
    """
    Incremental pattern engine for any number of series.

    The caller owns the instance; there is no module-level engine.
    """

    name = "LivePatternEngine"

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        refresh_every: Optional[int] = None,
        refresh_window: Optional[int] = None,
    ):
        self.settings = settings or get_settings()
        self.refresh_every = refresh_every or self.settings.live_refresh_every
        self.refresh_window = refresh_window or self.settings.live_refresh_window
        self.validator = SeriesValidator(self.settings)
        self.pattern_service = PatternService(self.settings)

        self._states: dict[SeriesKey, LiveEngineState] = {}
        self._snapshots: dict[SeriesKey, LiveSnapshot] = {}
        self._locks: dict[SeriesKey, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: SeriesKey) -> threading.RLock:
        with self._registry_lock:
            return self._locks.setdefault(key, threading.RLock())

    def _publish(self, state: LiveEngineState) -> LiveSnapshot:
        state.version += 1
        state.last_updated = datetime.now(timezone.utc)
        snap = state.snapshot(self.settings.extrema_order)
        self._snapshots[state.key] = snap
        return snap

    # =========================================================================
    # WRITERS
    # =========================================================================

    def seed(
        self, key: SeriesKey, history: Iterable[Any], now: Optional[datetime] = None
    ) -> LiveSnapshot:
        """
        Load history and run every batch detector over it.

        Raises:
            SeriesValidationError: history has fatal validation issues
        """
        outcome = self.validator.validate_or_raise(history, key, now)
        series = outcome.series
        bundle = self.pattern_service.detect(series)

        with self._lock_for(key):
            previous = self._states.get(key)
            state = LiveEngineState(
                key=key,
                buffer_size=self.settings.live_buffer_size,
                volume_window=self.settings.volume_window,
                max_patterns_per_kind=self.settings.live_max_patterns_per_kind,
            )
            if previous is not None:
                state.version = previous.version

            for bar in series.bars:
                state.append(bar)
            state.peaks = [i for i in bundle.extrema.peak_indices if i >= state.offset]
            state.lows = [i for i in bundle.extrema.low_indices if i >= state.offset]
            for kind, records in bundle.patterns.items():
                state.replace_patterns_from(kind, 0, records)
            state.phase = EnginePhase.SEEDED

            self._states[key] = state
            snap = self._publish(state)

        logger.info(
            f"Seeded {key} with {len(series)} bars, "
            f"{sum(len(r) for r in bundle.patterns.values())} pattern(s)"
        )
        for issue in bundle.issues:
            logger.debug(f"{key}: seed issue {issue}")
        return snap

    def absorb(self, key: SeriesKey, bar: Any) -> LiveSnapshot:
        """
        Absorb one completed or revised bar.

        A bar with the last bar's timestamp revises it in place; a newer bar
        is appended; an older bar is rejected.

        Raises:
            SeriesValidationError: malformed bar
            LiveEngineError: unseeded key or out-of-order bar
        """
        parsed, errors = self.validator.validate_bar(bar)
        if errors:
            raise SeriesValidationError(
                self.name,
                f"{key}: rejected bar: {errors[0]}",
                report=ValidationReport(errors=errors),
            )

        with self._lock_for(key):
            state = self._require_state(key)
            last = state.last_bar
            revised = last is not None and parsed.time == last.time
            if revised:
                state.replace_last(parsed)
            elif last is None or parsed.time > last.time:
                state.append(parsed)
            else:
                raise LiveEngineError(
                    self.name,
                    f"{key}: bar at {parsed.time.isoformat()} is older than "
                    f"last bar {last.time.isoformat()}",
                )

            index = state.last_index
            self._touch_levels(state, parsed, index)
            self._check_volume(state, parsed, index)
            self._check_candle(state, parsed, index)
            self._confirm_extremum(state)

            if not revised:
                state.bars_since_refresh += 1
                if state.bars_since_refresh >= self.refresh_every:
                    self._refresh(state)
                    state.bars_since_refresh = 0

            state.phase = EnginePhase.LIVE
            snap = self._publish(state)

        logger.debug(f"{key}: {'revised' if revised else 'appended'} bar {index}")
        return snap

    def apply_update(self, key: SeriesKey, update: LiveUpdate) -> LiveSnapshot:
        """Absorb a candle update, or fold a tick into the open bar and absorb that."""
        if isinstance(update, CandleUpdate):
            return self.absorb(key, update.to_bar())
        if isinstance(update, TickUpdate):
            with self._lock_for(key):
                state = self._require_state(key)
                folded = fold_tick(state.last_bar, update, key.timeframe)
                return self.absorb(key, folded)
        raise LiveEngineError(self.name, f"Unsupported update type {type(update).__name__}")

    async def consume(self, key: SeriesKey, source: AsyncIterable[Any]) -> int:
        """
        Drain a feed into the engine. Malformed or rejected messages are
        logged and skipped. Returns the number of updates applied.
        """
        applied = 0
        async for message in source:
            try:
                self.apply_update(key, parse_update(message))
                applied += 1
            except (ValidationError, SeriesValidationError, LiveEngineError) as e:
                logger.warning(f"{key}: skipped feed message: {e}")
        logger.info(f"{key}: feed drained, {applied} update(s) applied")
        return applied

    def reset(self, key: SeriesKey) -> None:
        """Drop all state for `key`; its phase returns to UNINITIALIZED."""
        with self._lock_for(key):
            self._states.pop(key, None)
            self._snapshots.pop(key, None)
        logger.info(f"Reset {key}")

    # =========================================================================
    # READERS
    # =========================================================================

    def snapshot(self, key: SeriesKey) -> Optional[LiveSnapshot]:
        return self._snapshots.get(key)

    def latest_patterns(
        self, key: SeriesKey, count: int = 5, kind: Optional[PatternKind] = None
    ) -> list[PatternBase]:
        snap = self._snapshots.get(key)
        return snap.latest(count, kind) if snap is not None else []

    def has_state(self, key: SeriesKey) -> bool:
        return key in self._snapshots

    def phase(self, key: SeriesKey) -> EnginePhase:
        snap = self._snapshots.get(key)
        return snap.phase if snap is not None else EnginePhase.UNINITIALIZED

    def keys(self) -> list[SeriesKey]:
        return list(self._snapshots)

    # =========================================================================
    # INCREMENTAL CHECKS
    # =========================================================================

    def _require_state(self, key: SeriesKey) -> LiveEngineState:
        state = self._states.get(key)
        if state is None or state.phase == EnginePhase.UNINITIALIZED:
            raise LiveEngineError(self.name, f"{key} has not been seeded")
        return state

    def _touch_levels(self, state: LiveEngineState, bar: Bar, index: int) -> None:
        tolerance = self.settings.live_touch_tolerance
        levels = state.patterns.get(PatternKind.SUPPORT_RESISTANCE)
        if not levels:
            return
        touched = [
            level.with_touch(index, bar.time)
            if abs(bar.close - level.price) / level.price <= tolerance
            else level
            for level in levels
        ]
        # only indices still in the buffer are kept as touches
        state.patterns[PatternKind.SUPPORT_RESISTANCE] = [
            level.pruned(state.offset) for level in touched
        ]

    def _check_volume(self, state: LiveEngineState, bar: Bar, index: int) -> None:
        state.drop_patterns_at(PatternKind.VOLUME_ANOMALY, index)
        if len(state.recent_volumes) < self.settings.volume_window:
            return
        average = float(np.mean(state.recent_volumes))
        record = volume_anomaly_at(bar, index, average, self.settings.volume_threshold)
        if record is not None:
            state.add_pattern(record)

    def _check_candle(self, state: LiveEngineState, bar: Bar, index: int) -> None:
        state.drop_patterns_at(PatternKind.CANDLESTICK, index)
        record = classify_candle(bar, index)
        if record is not None:
            state.add_pattern(record)

    def _confirm_extremum(self, state: LiveEngineState) -> None:
        """Decide the bar `order` positions back, whose window just closed."""
        order = self.settings.extrema_order
        candidate = state.last_index - order
        local = candidate - state.offset
        if local - order < 0:
            return

        closes = state.closes()
        state.peaks = [i for i in state.peaks if i != candidate]
        state.lows = [i for i in state.lows if i != candidate]
        if is_peak_at(closes, local, order):
            state.peaks.append(candidate)
        elif is_low_at(closes, local, order):
            state.lows.append(candidate)

    def _refresh(self, state: LiveEngineState) -> None:
        """Re-run window detectors over the trailing window, replacing their records there."""
        series, start = state.window(self.refresh_window)
        for kind in WINDOWED_KINDS:
            try:
                records = run_detector(kind, series, self.settings, service_name=self.name)
            except InsufficientDataError:
                continue
            except Exception as e:
                logger.warning(f"{state.key}: {kind.value} refresh failed: {e}")
                continue
            state.replace_patterns_from(kind, start, [r.shifted(start) for r in records])

        logger.info(f"{state.key}: refreshed window detectors over bars {start}..{state.last_index}")
