"""
Consensus scorer and signal derivation tests.
"""

import pytest

from ta_engine.core.config import EngineSettings
from ta_engine.schemas.consensus import ConsensusSignal
from ta_engine.schemas.indicators import IndicatorBundle
from ta_engine.schemas.market import Series
from ta_engine.schemas.patterns import Bias, CandlestickPattern, CandleType
from ta_engine.services.consensus import ConsensusScorer, derive_signals
from ta_engine.services.consensus.scorer import agreement
from ta_engine.services.indicators import IndicatorService


def vote(name: str, bias: Bias, score: float = 50.0, weight: float = 1.0) -> ConsensusSignal:
    return ConsensusSignal(name=name, bias=bias, score=score, weight=weight)


@pytest.fixture
def scorer() -> ConsensusScorer:
    return ConsensusScorer()


class TestScore:

    def test_weighted_majority(self, scorer):
        result = scorer.score(
            [
                vote("rsi", Bias.BULLISH, 80),
                vote("macd", Bias.BULLISH, 80),
                vote("adx", Bias.BEARISH, 60),
            ]
        )
        assert result.overall_bias == Bias.BULLISH
        assert result.bullish_percentage == pytest.approx(200 / 3)
        assert result.bearish_percentage == pytest.approx(100 / 3)
        assert result.neutral_percentage == 0
        assert result.overall_score == pytest.approx(100 / 3)
        assert (result.bullish_count, result.bearish_count, result.neutral_count) == (2, 1, 0)
        assert 0 < result.confidence < 1

    def test_tie_is_neutral_regardless_of_score(self, scorer):
        result = scorer.score([vote("rsi", Bias.BULLISH, 95), vote("macd", Bias.BEARISH, 5)])
        assert result.overall_bias == Bias.NEUTRAL
        assert result.overall_score == pytest.approx(45.0)

    def test_empty(self, scorer):
        result = scorer.score([])
        assert result.overall_bias == Bias.NEUTRAL
        assert result.total_weight == 0
        assert result.bullish_percentage == 0
        assert result.confidence == 0

    def test_percentages_sum_to_hundred(self, scorer):
        result = scorer.score(
            [
                vote("rsi", Bias.BULLISH, weight=1.5),
                vote("macd", Bias.NEUTRAL, weight=0.25),
                vote("adx", Bias.BEARISH, weight=0.75),
            ]
        )
        total = result.bullish_percentage + result.bearish_percentage + result.neutral_percentage
        assert total == pytest.approx(100.0)

    def test_weight_overrides(self, scorer):
        signals = [
            vote("rsi", Bias.BEARISH),
            vote("macd", Bias.BULLISH),
            vote("sma_trend", Bias.BULLISH),
        ]
        assert scorer.score(signals).overall_bias == Bias.BULLISH

        result = scorer.score(signals, weights={"rsi": 3.0})
        assert result.overall_bias == Bias.BEARISH
        assert result.signals[0].weight == 3.0
        assert signals[0].weight == 1.0

    def test_timeframe_label(self, scorer):
        assert scorer.score([vote("rsi", Bias.BULLISH)], timeframe="1d").timeframe == "1d"


class TestAgreement:

    def test_unanimous(self):
        assert agreement([3.0, 0.0, 0.0]) == pytest.approx(1.0)

    def test_even_split(self):
        assert agreement([1.0, 1.0, 1.0]) == pytest.approx(0.0, abs=1e-9)

    def test_partial(self):
        assert 0 < agreement([2.0, 1.0, 0.0]) < 1

    def test_empty(self):
        assert agreement([0.0, 0.0, 0.0]) == 0.0


class TestTimeframes:

    def test_timeframe_weights(self, scorer):
        result = scorer.score_timeframes(
            {
                "1d": [vote("rsi", Bias.BULLISH, 70)],
                "1h": [vote("rsi", Bias.BEARISH, 70), vote("macd", Bias.BEARISH, 70)],
                "15m": [vote("rsi", Bias.BEARISH, 70)],
            },
            timeframe_weights={"1d": 3.0},
        )
        assert result.timeframes["1d"].overall_bias == Bias.BULLISH
        assert result.timeframes["1h"].overall_bias == Bias.BEARISH
        assert result.timeframes["1h"].timeframe == "1h"
        assert result.overall.overall_bias == Bias.BULLISH
        assert result.overall.bullish_weight == 3.0


class TestDeriveSignals:

    def test_downtrend(self, make_series):
        series = make_series([200.0 - i for i in range(60)])
        indicators = IndicatorService(EngineSettings()).compute(series)
        signals = {s.name: s for s in derive_signals(series, indicators, settings=EngineSettings())}

        assert signals["rsi"].bias == Bias.BULLISH
        assert signals["sma_trend"].bias == Bias.BEARISH
        assert signals["obv"].bias == Bias.BEARISH
        assert "patterns" not in signals

    def test_scores_and_weights(self, walk_series):
        cfg = EngineSettings()
        indicators = IndicatorService(cfg).compute(walk_series)
        signals = derive_signals(walk_series, indicators, settings=cfg)

        assert {s.name for s in signals} <= set(cfg.consensus_weights)
        for s in signals:
            assert 0 <= s.score <= 100
            assert s.weight == cfg.consensus_weights[s.name]

    def test_recent_patterns_vote(self, make_series):
        series = make_series([100.0] * 30)
        hammer = CandlestickPattern(
            start_index=28,
            end_index=28,
            confidence=0.8,
            bias=Bias.BULLISH,
            candle_type=CandleType.HAMMER,
            open=100,
            high=100.5,
            low=98,
            close=100.4,
        )
        stale = hammer.model_copy(update={"start_index": 1, "end_index": 1, "bias": Bias.BEARISH})
        indicators = IndicatorService(EngineSettings()).compute(series)
        signals = {s.name: s for s in derive_signals(series, indicators, [hammer, stale])}

        assert signals["patterns"].bias == Bias.BULLISH
        assert signals["patterns"].score == pytest.approx(80.0)

    def test_empty_series(self, key):
        assert derive_signals(Series(key=key, bars=()), IndicatorBundle()) == []
