"""
Consensus Scorer

CONTRACT:
    Input:  ConsensusSignal list (per timeframe, optionally)
    Output: ConsensusResult / TimeframeConsensus

RESPONSIBILITIES:
    - Derive votes from indicator readings and recent patterns
    - Flat-weight bucket sums, signed overall score, agreement confidence
"""

from ta_engine.services.consensus.scorer import (
    ConsensusScorer,
    agreement,
    get_consensus_scorer,
)
from ta_engine.services.consensus.signals import derive_signals

__all__ = [
    "ConsensusScorer",
    "agreement",
    "get_consensus_scorer",
    "derive_signals",
]
