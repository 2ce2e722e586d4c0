"""
Live pattern engine tests: seeding, absorption, revision, ticks, refresh.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from ta_engine.core.config import EngineSettings
from ta_engine.schemas.market import Bar, CandleUpdate, SeriesKey, TickUpdate, Timeframe
from ta_engine.schemas.patterns import CandleType, LevelType, PatternKind
from ta_engine.services.base import LiveEngineError, SeriesValidationError
from ta_engine.services.live import (
    EnginePhase,
    LivePatternEngine,
    bucket_start,
    fold_tick,
    parse_update,
)

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def day(n: int) -> datetime:
    return T0 + timedelta(days=n)


def live_bar(n: int, close: float, open_: float = 100.0, volume: int = 1000) -> Bar:
    return Bar(
        time=day(n),
        open=open_,
        high=max(open_, close) + 0.5,
        low=min(open_, close) - 0.5,
        close=close,
        volume=volume,
    )


@pytest.fixture
def engine() -> LivePatternEngine:
    return LivePatternEngine(EngineSettings(extrema_order=2, volume_window=4), refresh_every=5)


@pytest.fixture
def seeded(engine, key, make_bars, oscillating_closes) -> LivePatternEngine:
    engine.seed(key, make_bars(oscillating_closes))
    return engine


def levels(snapshot, level_type):
    return [lv for lv in snapshot.of(PatternKind.SUPPORT_RESISTANCE) if lv.level_type == level_type]


# =============================================================================
# SEEDING
# =============================================================================


class TestSeed:

    def test_seed_runs_batch_detectors(self, engine, key, make_bars, oscillating_closes):
        snap = engine.seed(key, make_bars(oscillating_closes))
        assert snap.phase == EnginePhase.SEEDED
        assert snap.version == 1
        assert snap.last_index == 24
        assert snap.extrema.peak_indices == (3, 9, 15, 21)
        assert snap.extrema.low_indices == (6, 12, 18)
        assert levels(snap, LevelType.RESISTANCE)[0].touches == (3, 9, 15, 21)
        assert engine.phase(key) == EnginePhase.SEEDED

    def test_invalid_history_rejected(self, engine, key):
        history = [{"time": day(0), "open": 100, "high": 99, "low": 101, "close": 100, "volume": 1}]
        with pytest.raises(SeriesValidationError):
            engine.seed(key, history)
        assert not engine.has_state(key)

    def test_reseed_keeps_version_monotonic(self, seeded, key, make_bars, oscillating_closes):
        snap = seeded.seed(key, make_bars(oscillating_closes))
        assert snap.version == 2


# =============================================================================
# ABSORB
# =============================================================================


class TestAbsorb:

    def test_unseeded_key(self, engine):
        other = SeriesKey("TCS")
        assert engine.phase(other) == EnginePhase.UNINITIALIZED
        assert engine.snapshot(other) is None
        assert engine.latest_patterns(other) == []
        with pytest.raises(LiveEngineError):
            engine.absorb(other, live_bar(0, 100.0))

    def test_append_touches_resistance(self, seeded, key):
        snap = seeded.absorb(key, live_bar(25, 110.5))
        assert snap.phase == EnginePhase.LIVE
        assert snap.last_index == 25
        resistance = levels(snap, LevelType.RESISTANCE)[0]
        assert resistance.touches == (3, 9, 15, 21, 25)
        assert resistance.price == pytest.approx(110.0)
        assert 25 not in levels(snap, LevelType.SUPPORT)[0].touches

    def test_revision_replaces_last_bar(self, seeded, key):
        seeded.absorb(key, live_bar(25, 110.5))
        snap = seeded.absorb(key, live_bar(25, 100.2))
        assert snap.last_index == 25
        assert snap.last_bar.close == 100.2
        assert 25 in levels(snap, LevelType.SUPPORT)[0].touches
        # touches are never withdrawn
        assert 25 in levels(snap, LevelType.RESISTANCE)[0].touches

    def test_out_of_order_rejected(self, seeded, key):
        with pytest.raises(LiveEngineError):
            seeded.absorb(key, live_bar(10, 100.0))
        assert seeded.snapshot(key).last_index == 24

    def test_malformed_bar_rejected(self, seeded, key):
        bad = {"time": day(25), "open": 100, "high": 90, "low": 95, "close": 100, "volume": 10}
        with pytest.raises(SeriesValidationError):
            seeded.absorb(key, bad)

    def test_volume_spike_and_revision(self, seeded, key):
        snap = seeded.absorb(key, live_bar(25, 103.0, volume=5000))
        spikes = snap.of(PatternKind.VOLUME_ANOMALY)
        assert [(s.start_index, s.anomaly_type) for s in spikes] == [(25, "spike")]
        assert spikes[0].ratio == pytest.approx(5.0)

        snap = seeded.absorb(key, live_bar(25, 103.0, volume=1000))
        assert snap.of(PatternKind.VOLUME_ANOMALY) == ()

    def test_candlestick(self, seeded, key):
        doji = Bar(time=day(25), open=104.0, high=105.0, low=103.0, close=104.05, volume=1000)
        snap = seeded.absorb(key, doji)
        candles = [c for c in snap.of(PatternKind.CANDLESTICK) if c.start_index == 25]
        assert [c.candle_type for c in candles] == [CandleType.DOJI]

    def test_extremum_confirmed_after_order_bars(self, seeded, key):
        # 24 becomes a low once bars 25 and 26 close above it
        seeded.absorb(key, live_bar(25, 103.0))
        snap = seeded.absorb(key, live_bar(26, 106.0, open_=103.0))
        assert 24 in snap.extrema.low_indices

    def test_latest_patterns(self, seeded, key):
        latest = seeded.latest_patterns(key, 1, PatternKind.SUPPORT_RESISTANCE)
        assert len(latest) == 1
        assert latest[0].level_type == LevelType.RESISTANCE


# =============================================================================
# REFRESH, BUFFER, SNAPSHOTS
# =============================================================================


class TestRefreshAndBuffer:

    def test_refresh_cadence(self, seeded, key, monkeypatch):
        calls = []
        original = seeded._refresh

        def spy(state):
            calls.append(state.last_index)
            original(state)

        monkeypatch.setattr(seeded, "_refresh", spy)
        for n in range(25, 35):
            seeded.absorb(key, live_bar(n, 104.0))
            seeded.absorb(key, live_bar(n, 104.5))
        assert calls == [29, 34]

    def test_buffer_is_bounded(self, key, make_bars, oscillating_closes):
        engine = LivePatternEngine(EngineSettings(extrema_order=2, live_buffer_size=30))
        engine.seed(key, make_bars(oscillating_closes))
        for n in range(25, 35):
            snap = engine.absorb(key, live_bar(n, 104.0))

        assert len(snap.bars) == 30
        assert snap.offset == 5
        assert snap.last_index == 34
        assert all(i >= snap.offset for i in snap.extrema.peak_indices + snap.extrema.low_indices)

    def test_snapshots_are_immutable(self, seeded, key):
        before = seeded.snapshot(key)
        after = seeded.absorb(key, live_bar(25, 110.5))

        assert after.version == before.version + 1
        assert before.last_index == 24
        assert levels(before, LevelType.RESISTANCE)[0].touches == (3, 9, 15, 21)
        with pytest.raises(TypeError):
            before.patterns[PatternKind.FLAG] = ()

    def test_level_touches_stay_within_buffer(self, key, make_bars, oscillating_closes):
        engine = LivePatternEngine(
            EngineSettings(extrema_order=2, live_buffer_size=50), refresh_every=1000
        )
        engine.seed(key, make_bars(oscillating_closes))
        for n in range(25, 225):
            snap = engine.absorb(key, live_bar(n, 110.2, open_=110.2))

        assert snap.offset == 175
        resistance = levels(snap, LevelType.RESISTANCE)[0]
        assert resistance.touches == tuple(range(175, 225))
        assert resistance.strength == 204
        assert levels(snap, LevelType.SUPPORT)[0].touches == ()
        for level in snap.of(PatternKind.SUPPORT_RESISTANCE):
            assert len(level.touches) <= 50
            assert all(i >= snap.offset for i in level.touches)

    def test_concurrent_writes_to_one_key(self, seeded, key):
        seeded.absorb(key, live_bar(25, 103.0))
        writes = []
        for n in range(20):
            writes.append(live_bar(25, 110.2, open_=110.0))
            writes.append(TickUpdate(price=110.2, timestamp=day(25) + timedelta(minutes=n + 1), volume=10))

        def write(update):
            if isinstance(update, Bar):
                return seeded.absorb(key, update)
            return seeded.apply_update(key, update)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(write, writes))

        snap = seeded.snapshot(key)
        assert snap.version == 2 + len(writes)
        assert snap.last_index == 25
        assert levels(snap, LevelType.RESISTANCE)[0].touches.count(25) == 1
        for kind in (PatternKind.VOLUME_ANOMALY, PatternKind.CANDLESTICK):
            assert len([p for p in snap.of(kind) if p.start_index == 25]) <= 1

    def test_keys_are_independent(self, engine, make_bars, oscillating_closes):
        keys = [SeriesKey(symbol) for symbol in ("INFY", "TCS", "WIPRO", "HDFC")]
        for k in keys:
            engine.seed(k, make_bars(oscillating_closes))

        def feed(k):
            for n in range(25, 45):
                engine.absorb(k, live_bar(n, 104.0))

        with ThreadPoolExecutor(max_workers=len(keys)) as pool:
            list(pool.map(feed, keys))

        assert sorted(engine.keys()) == sorted(keys)
        for k in keys:
            assert engine.snapshot(k).last_index == 44

    def test_reset(self, seeded, key):
        seeded.reset(key)
        assert seeded.phase(key) == EnginePhase.UNINITIALIZED
        assert not seeded.has_state(key)
        with pytest.raises(LiveEngineError):
            seeded.absorb(key, live_bar(25, 100.0))


# =============================================================================
# TICKS AND FEED
# =============================================================================


class TestTicks:

    def test_bucket_start(self):
        ts = datetime(2024, 3, 4, 10, 7, 30, tzinfo=timezone.utc)
        assert bucket_start(ts, Timeframe.M5) == datetime(2024, 3, 4, 10, 5, tzinfo=timezone.utc)
        assert bucket_start(ts, Timeframe.D1) == datetime(2024, 3, 4, tzinfo=timezone.utc)

    def test_fold_into_open_bar(self):
        ts = datetime(2024, 3, 4, 10, 1, tzinfo=timezone.utc)
        bar = fold_tick(None, TickUpdate(price=100.0, timestamp=ts, volume=10), Timeframe.M5)
        assert (bar.open, bar.high, bar.low, bar.close, bar.volume) == (100.0, 100.0, 100.0, 100.0, 10)

        bar = fold_tick(bar, TickUpdate(price=102.0, timestamp=ts + timedelta(minutes=1), volume=5), Timeframe.M5)
        bar = fold_tick(bar, TickUpdate(price=99.0, timestamp=ts + timedelta(minutes=2), volume=5), Timeframe.M5)
        assert (bar.open, bar.high, bar.low, bar.close, bar.volume) == (100.0, 102.0, 99.0, 99.0, 20)
        assert bar.time == datetime(2024, 3, 4, 10, 0, tzinfo=timezone.utc)

    def test_tick_opens_new_bucket(self):
        ts = datetime(2024, 3, 4, 10, 1, tzinfo=timezone.utc)
        bar = fold_tick(None, TickUpdate(price=100.0, timestamp=ts), Timeframe.M5)
        nxt = fold_tick(bar, TickUpdate(price=101.0, timestamp=ts + timedelta(minutes=5)), Timeframe.M5)
        assert nxt.time == datetime(2024, 3, 4, 10, 5, tzinfo=timezone.utc)
        assert nxt.open == 101.0

    def test_stale_tick_rejected(self):
        ts = datetime(2024, 3, 4, 10, 6, tzinfo=timezone.utc)
        bar = fold_tick(None, TickUpdate(price=100.0, timestamp=ts), Timeframe.M5)
        with pytest.raises(LiveEngineError):
            fold_tick(bar, TickUpdate(price=100.0, timestamp=ts - timedelta(minutes=5)), Timeframe.M5)

    def test_tick_folds_into_monday_week(self):
        monday = Bar(
            time=datetime(2024, 1, 8, tzinfo=timezone.utc),
            open=100.0, high=101.0, low=99.0, close=100.5, volume=100,
        )
        tick = TickUpdate(price=102.0, timestamp=datetime(2024, 1, 9, 5, tzinfo=timezone.utc), volume=5)
        bar = fold_tick(monday, tick, Timeframe.W1)
        assert bar.time == monday.time
        assert (bar.open, bar.high, bar.close, bar.volume) == (100.0, 102.0, 102.0, 105)

    def test_tick_folds_into_offset_daily_bar(self):
        opened = datetime(2024, 1, 2, 18, 30, tzinfo=timezone.utc)
        daily = Bar(time=opened, open=100.0, high=101.0, low=99.0, close=100.5, volume=100)
        tick = TickUpdate(price=98.0, timestamp=datetime(2024, 1, 2, 21, 30, tzinfo=timezone.utc), volume=5)
        bar = fold_tick(daily, tick, Timeframe.D1)
        assert bar.time == opened
        assert (bar.low, bar.close, bar.volume) == (98.0, 98.0, 105)

        later = TickUpdate(price=97.0, timestamp=datetime(2024, 1, 3, 19, tzinfo=timezone.utc))
        assert fold_tick(bar, later, Timeframe.D1).time == opened + timedelta(days=1)

    def test_apply_tick_revises_last_bar(self, seeded, key):
        tick = TickUpdate(price=112.0, timestamp=day(24) + timedelta(hours=3), volume=50)
        snap = seeded.apply_update(key, tick)
        assert snap.last_index == 24
        assert snap.last_bar.close == 112.0
        assert snap.last_bar.high == 112.0
        assert snap.last_bar.volume == 1050

    def test_apply_candle(self, seeded, key):
        update = CandleUpdate(time=day(25), open=100, high=101, low=99.5, close=100.5, volume=10)
        assert seeded.apply_update(key, update).last_index == 25


class TestFeed:

    def test_parse_tick(self):
        update = parse_update({"price": 101.5, "timestamp": "2024-03-04T10:00:00Z", "volume": 3})
        assert isinstance(update, TickUpdate)
        assert update.price == 101.5

    def test_parse_candle_alias(self):
        update = parse_update(
            {"date": "2024-03-04T00:00:00Z", "open": 1, "high": 2, "low": 0.5, "close": 1.5}
        )
        assert isinstance(update, CandleUpdate)
        assert update.volume == 0

    def test_parse_unknown(self):
        with pytest.raises(LiveEngineError):
            parse_update({"foo": 1})
        with pytest.raises(LiveEngineError):
            parse_update([1, 2, 3])

    @pytest.mark.asyncio
    async def test_consume_skips_bad_messages(self, seeded, key):
        messages = [
            {"time": day(25), "open": 100, "high": 101, "low": 99.5, "close": 100.5, "volume": 1000},
            {"foo": 1},
            {"time": day(25), "open": 100, "high": 101, "low": 99.5, "close": "abc"},
            {"price": 101.0, "timestamp": day(25) + timedelta(hours=1)},
            {"time": day(3), "open": 100, "high": 101, "low": 99.5, "close": 100.5},
        ]

        async def source():
            for message in messages:
                yield message

        applied = await seeded.consume(key, source())
        assert applied == 2
        snap = seeded.snapshot(key)
        assert snap.last_index == 25
        assert snap.last_bar.close == 101.0
