"""
Signal Derivation

Turns the latest indicator readings and recent patterns into consensus
votes. Zones follow the usual conventions (RSI 30/70, Stochastic 20/80,
ADX 25 trend threshold).
"""

from typing import Mapping, Optional

import numpy as np

from ta_engine.core.config import EngineSettings, get_settings
from ta_engine.schemas.consensus import ConsensusSignal
from ta_engine.schemas.indicators import IndicatorBundle
from ta_engine.schemas.market import Series
from ta_engine.schemas.patterns import Bias, PatternBase

PATTERN_LOOKBACK = 20
OBV_LOOKBACK = 10


def _signal(name: str, bias: Bias, score: float, weights: Mapping[str, float], description: str):
    return ConsensusSignal(
        name=name,
        bias=bias,
        score=float(min(100.0, max(0.0, score))),
        weight=weights.get(name, 1.0),
        description=description,
    )


def _rsi_signal(indicators: IndicatorBundle, weights) -> Optional[ConsensusSignal]:
    if "rsi" not in indicators:
        return None
    value = indicators["rsi"].last()
    if value is None:
        return None
    if value < 30:
        return _signal("rsi", Bias.BULLISH, 50 + (30 - value) / 30 * 50, weights, f"RSI {value:.1f} oversold")
    if value > 70:
        return _signal("rsi", Bias.BEARISH, 50 + (value - 70) / 30 * 50, weights, f"RSI {value:.1f} overbought")
    return _signal("rsi", Bias.NEUTRAL, 50, weights, f"RSI {value:.1f} neutral")


def _macd_signal(indicators: IndicatorBundle, close: float, weights) -> Optional[ConsensusSignal]:
    if "macd" not in indicators or close <= 0:
        return None
    hist = indicators["macd"].last("histogram")
    if hist is None:
        return None
    # 1% of price on the histogram saturates the score
    score = 50 + abs(hist) / close * 5000
    if hist > 0:
        return _signal("macd", Bias.BULLISH, score, weights, f"MACD histogram {hist:+.3f}")
    if hist < 0:
        return _signal("macd", Bias.BEARISH, score, weights, f"MACD histogram {hist:+.3f}")
    return _signal("macd", Bias.NEUTRAL, 50, weights, "MACD histogram flat")


def _sma_trend_signal(indicators: IndicatorBundle, close: float, weights) -> Optional[ConsensusSignal]:
    # Longest SMA that has a value
    candidates = []
    for name, ind in indicators.indicators.items():
        if name.startswith("sma_") and ind.last() is not None:
            candidates.append((ind.params.get("period", 0), name, ind.last()))
    if not candidates:
        return None
    _, name, sma_value = max(candidates)
    if sma_value <= 0:
        return None
    distance = (close - sma_value) / sma_value
    score = 50 + abs(distance) * 1000
    if distance > 0:
        return _signal("sma_trend", Bias.BULLISH, score, weights, f"Close {distance:+.2%} vs {name}")
    if distance < 0:
        return _signal("sma_trend", Bias.BEARISH, score, weights, f"Close {distance:+.2%} vs {name}")
    return _signal("sma_trend", Bias.NEUTRAL, 50, weights, f"Close at {name}")


def _bollinger_signal(indicators: IndicatorBundle, weights) -> Optional[ConsensusSignal]:
    if "bollinger" not in indicators:
        return None
    pb = indicators["bollinger"].last("percent_b")
    if pb is None:
        return None
    if pb < 0:
        return _signal("bollinger", Bias.BULLISH, 50 + min(50, -pb * 100), weights, f"%B {pb:.2f} below lower band")
    if pb > 1:
        return _signal("bollinger", Bias.BEARISH, 50 + min(50, (pb - 1) * 100), weights, f"%B {pb:.2f} above upper band")
    return _signal("bollinger", Bias.NEUTRAL, 50, weights, f"%B {pb:.2f} inside bands")


def _stochastic_signal(indicators: IndicatorBundle, weights) -> Optional[ConsensusSignal]:
    if "stochastic" not in indicators:
        return None
    k = indicators["stochastic"].last("k")
    if k is None:
        return None
    if k < 20:
        return _signal("stochastic", Bias.BULLISH, 50 + (20 - k) * 2.5, weights, f"%K {k:.1f} oversold")
    if k > 80:
        return _signal("stochastic", Bias.BEARISH, 50 + (k - 80) * 2.5, weights, f"%K {k:.1f} overbought")
    return _signal("stochastic", Bias.NEUTRAL, 50, weights, f"%K {k:.1f} neutral")


def _adx_signal(indicators: IndicatorBundle, weights) -> Optional[ConsensusSignal]:
    if "adx" not in indicators:
        return None
    ind = indicators["adx"]
    adx_val, plus_di, minus_di = ind.last("adx"), ind.last("plus_di"), ind.last("minus_di")
    if adx_val is None or plus_di is None or minus_di is None:
        return None
    if adx_val < 25 or plus_di == minus_di:
        return _signal("adx", Bias.NEUTRAL, adx_val, weights, f"ADX {adx_val:.1f} no trend")
    bias = Bias.BULLISH if plus_di > minus_di else Bias.BEARISH
    return _signal("adx", bias, adx_val * 2, weights, f"ADX {adx_val:.1f}, +DI {plus_di:.1f} / -DI {minus_di:.1f}")


def _obv_signal(indicators: IndicatorBundle, weights) -> Optional[ConsensusSignal]:
    if "obv" not in indicators:
        return None
    line = indicators["obv"].line()
    if len(line) <= OBV_LOOKBACK or np.isnan(line[-1]) or np.isnan(line[-1 - OBV_LOOKBACK]):
        return None
    change = line[-1] - line[-1 - OBV_LOOKBACK]
    if change > 0:
        return _signal("obv", Bias.BULLISH, 60, weights, f"OBV rising over {OBV_LOOKBACK} bars")
    if change < 0:
        return _signal("obv", Bias.BEARISH, 60, weights, f"OBV falling over {OBV_LOOKBACK} bars")
    return _signal("obv", Bias.NEUTRAL, 50, weights, "OBV flat")


def _pattern_signal(
    patterns: list[PatternBase], last_index: int, weights
) -> Optional[ConsensusSignal]:
    recent = [p for p in patterns if p.end_index >= last_index - PATTERN_LOOKBACK]
    if not recent:
        return None
    totals = {Bias.BULLISH: 0.0, Bias.BEARISH: 0.0, Bias.NEUTRAL: 0.0}
    for p in recent:
        totals[p.bias] += p.confidence
    if totals[Bias.BULLISH] > totals[Bias.BEARISH]:
        bias = Bias.BULLISH
    elif totals[Bias.BEARISH] > totals[Bias.BULLISH]:
        bias = Bias.BEARISH
    else:
        bias = Bias.NEUTRAL
    voters = [p.confidence for p in recent if p.bias == bias]
    return _signal(
        "patterns",
        bias,
        100 * sum(voters) / len(voters) if voters else 50,
        weights,
        f"{len(recent)} recent pattern(s)",
    )


def derive_signals(
    series: Series,
    indicators: IndicatorBundle,
    patterns: Optional[list[PatternBase]] = None,
    settings: Optional[EngineSettings] = None,
) -> list[ConsensusSignal]:
    """
    Build one vote per indicator family (plus one for recent patterns).
    Indicators without a value yet are skipped.
    """
    if len(series) == 0:
        return []
    weights = (settings or get_settings()).consensus_weights
    close = float(series.closes[-1])

    candidates = [
        _rsi_signal(indicators, weights),
        _macd_signal(indicators, close, weights),
        _sma_trend_signal(indicators, close, weights),
        _bollinger_signal(indicators, weights),
        _stochastic_signal(indicators, weights),
        _adx_signal(indicators, weights),
        _obv_signal(indicators, weights),
    ]
    if patterns:
        candidates.append(_pattern_signal(patterns, len(series) - 1, weights))

    return [s for s in candidates if s is not None]
