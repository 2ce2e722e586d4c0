"""
Analysis Service Interface

Defines the contract for the batch analysis pipeline.
"""

from abc import abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ta_engine.services.base import BaseService
from ta_engine.services.patterns.interface import PatternBundle
from ta_engine.schemas.consensus import ConsensusResult, ConsensusSignal
from ta_engine.schemas.indicators import IndicatorBundle, IndicatorRequest
from ta_engine.schemas.market import Series, SeriesKey
from ta_engine.schemas.validation import ValidationIssue, ValidationReport


@dataclass
class AnalysisRequest:
    """One series to analyze."""

    key: SeriesKey
    bars: list[Any]
    now: Optional[datetime] = None
    indicators: Optional[IndicatorRequest] = None


@dataclass
class AnalysisResult:
    """Everything the pipeline produced for one series."""

    key: SeriesKey
    series: Series
    report: ValidationReport
    indicators: IndicatorBundle = field(default_factory=IndicatorBundle)
    patterns: PatternBundle = field(default_factory=PatternBundle)
    signals: list[ConsensusSignal] = field(default_factory=list)
    consensus: Optional[ConsensusResult] = None
    issues: list[ValidationIssue] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.error is None and self.report.is_valid

    @property
    def warnings(self) -> list[ValidationIssue]:
        """Validation warnings plus per-indicator, per-detector and consensus issues."""
        return (
            list(self.report.warnings)
            + self.indicators.issues
            + self.patterns.issues
            + self.issues
        )


class AnalysisServiceInterface(BaseService[list[AnalysisRequest], dict[SeriesKey, AnalysisResult]]):
    """
    Analysis Pipeline Contract.

    INPUT: list of AnalysisRequest (raw bars per SeriesKey)

    OUTPUT: dict[SeriesKey, AnalysisResult]
        validator -> indicators -> patterns -> signals -> consensus
    """

    @property
    def name(self) -> str:
        return "AnalysisService"

    @abstractmethod
    def analyze(
        self,
        raw_bars: list[Any],
        key: SeriesKey,
        now: Optional[datetime] = None,
        request: Optional[IndicatorRequest] = None,
    ) -> AnalysisResult:
        """Run the full pipeline for one series, synchronously."""
        pass

    @abstractmethod
    async def analyze_many(
        self, requests: list[AnalysisRequest]
    ) -> dict[SeriesKey, AnalysisResult]:
        """Run the pipeline for many series in parallel worker threads."""
        pass
