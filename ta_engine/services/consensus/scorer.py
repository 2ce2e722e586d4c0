"""
Consensus Scorer

Aggregates signals into bullish/bearish/neutral buckets.

Bucket sums are flat weight sums: a signal's score never moves it between
buckets. Scores only feed `overall_score`.
"""

import logging
import math
from typing import Mapping, Optional, Sequence

from ta_engine.schemas.consensus import ConsensusResult, ConsensusSignal, TimeframeConsensus
from ta_engine.schemas.patterns import Bias

logger = logging.getLogger(__name__)

_SIGN = {Bias.BULLISH: 1.0, Bias.BEARISH: -1.0, Bias.NEUTRAL: 0.0}


def agreement(weights: Sequence[float]) -> float:
    """1 - normalized Shannon entropy of the bucket distribution (0 when empty)."""
    total = sum(weights)
    if total <= 0:
        return 0.0
    entropy = -sum((w / total) * math.log(w / total) for w in weights if w > 0)
    return max(0.0, 1 - entropy / math.log(len(weights)))


class ConsensusScorer:
    """Weighted bullish/bearish/neutral consensus."""

    name = "ConsensusScorer"

    def score(
        self,
        signals: Sequence[ConsensusSignal],
        weights: Optional[Mapping[str, float]] = None,
        timeframe: Optional[str] = None,
    ) -> ConsensusResult:
        """
        Score one set of signals.

        Args:
            signals: indicator / pattern votes
            weights: name -> weight, overriding each signal's own weight
            timeframe: label carried into the result
        """
        weighted = [
            s.model_copy(update={"weight": weights[s.name]}) if weights and s.name in weights else s
            for s in signals
        ]

        buckets = {Bias.BULLISH: 0.0, Bias.BEARISH: 0.0, Bias.NEUTRAL: 0.0}
        counts = {Bias.BULLISH: 0, Bias.BEARISH: 0, Bias.NEUTRAL: 0}
        signed = 0.0
        for s in weighted:
            buckets[s.bias] += s.weight
            counts[s.bias] += 1
            signed += s.weight * _SIGN[s.bias] * s.score

        total = sum(buckets.values())

        def pct(value: float) -> float:
            return value / total * 100 if total > 0 else 0.0

        if buckets[Bias.BULLISH] > buckets[Bias.BEARISH]:
            bias = Bias.BULLISH
        elif buckets[Bias.BEARISH] > buckets[Bias.BULLISH]:
            bias = Bias.BEARISH
        else:
            bias = Bias.NEUTRAL

        overall = signed / total if total > 0 else 0.0

        result = ConsensusResult(
            signals=list(weighted),
            bullish_weight=buckets[Bias.BULLISH],
            bearish_weight=buckets[Bias.BEARISH],
            neutral_weight=buckets[Bias.NEUTRAL],
            total_weight=total,
            bullish_percentage=pct(buckets[Bias.BULLISH]),
            bearish_percentage=pct(buckets[Bias.BEARISH]),
            neutral_percentage=pct(buckets[Bias.NEUTRAL]),
            bullish_count=counts[Bias.BULLISH],
            bearish_count=counts[Bias.BEARISH],
            neutral_count=counts[Bias.NEUTRAL],
            overall_score=max(-100.0, min(100.0, overall)),
            overall_bias=bias,
            confidence=agreement(list(buckets.values())),
            timeframe=timeframe,
        )
        logger.debug(
            f"Consensus{f' [{timeframe}]' if timeframe else ''}: {bias.value} "
            f"({result.bullish_percentage:.1f}% / {result.bearish_percentage:.1f}% / "
            f"{result.neutral_percentage:.1f}%)"
        )
        return result

    def score_timeframes(
        self,
        signals_by_timeframe: Mapping[str, Sequence[ConsensusSignal]],
        weights: Optional[Mapping[str, float]] = None,
        timeframe_weights: Optional[Mapping[str, float]] = None,
    ) -> TimeframeConsensus:
        """Score each timeframe, then score the timeframe biases against each other."""
        per_timeframe = {
            tf: self.score(signals, weights, timeframe=tf)
            for tf, signals in signals_by_timeframe.items()
        }
        votes = [
            ConsensusSignal(
                name=tf,
                bias=result.overall_bias,
                score=abs(result.overall_score),
                weight=(timeframe_weights or {}).get(tf, 1.0),
                description=f"{tf} consensus",
            )
            for tf, result in per_timeframe.items()
        ]
        return TimeframeConsensus(timeframes=per_timeframe, overall=self.score(votes))


# Singleton instance
_scorer: Optional[ConsensusScorer] = None


def get_consensus_scorer() -> ConsensusScorer:
    """Get or create the consensus scorer singleton."""
    global _scorer
    if _scorer is None:
        _scorer = ConsensusScorer()
    return _scorer
