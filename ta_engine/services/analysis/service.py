"""
Analysis Service Implementation

Batch pipeline: validate, compute indicators, detect patterns, derive
signals and score consensus. Series are independent, so many can run at
once on worker threads.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

from ta_engine.core.config import EngineSettings, get_settings
from ta_engine.schemas.consensus import ConsensusResult, ConsensusSignal
from ta_engine.schemas.indicators import IndicatorRequest
from ta_engine.schemas.market import Series, SeriesKey
from ta_engine.schemas.validation import IssueCode, Severity, ValidationIssue, ValidationReport
from ta_engine.services.analysis.interface import (
    AnalysisRequest,
    AnalysisResult,
    AnalysisServiceInterface,
)
from ta_engine.services.consensus.scorer import ConsensusScorer
from ta_engine.services.consensus.signals import derive_signals
from ta_engine.services.indicators.service import IndicatorService
from ta_engine.services.patterns.service import PatternService
from ta_engine.services.validation.service import SeriesValidator

logger = logging.getLogger(__name__)


class AnalysisService(AnalysisServiceInterface):
    """
    Analysis Service.

    Stateless; safe to share across threads.
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = settings or get_settings()
        self.validator = SeriesValidator(self.settings)
        self.indicator_service = IndicatorService(self.settings)
        self.pattern_service = PatternService(self.settings)
        self.scorer = ConsensusScorer()

    async def execute(
        self, input_data: list[AnalysisRequest]
    ) -> dict[SeriesKey, AnalysisResult]:
        return await self.analyze_many(input_data)

    def analyze(
        self,
        raw_bars: list[Any],
        key: SeriesKey,
        now: Optional[datetime] = None,
        request: Optional[IndicatorRequest] = None,
    ) -> AnalysisResult:
        outcome = self.validator.validate(raw_bars, key, now)
        if not outcome.is_valid:
            logger.warning(f"{key}: validation failed, skipping analysis")
            return AnalysisResult(key=key, series=outcome.series, report=outcome.report)

        series = outcome.series
        indicators = self.indicator_service.compute(series, request)
        patterns = self.pattern_service.detect(series, indicators=indicators)
        signals: list[ConsensusSignal] = []
        consensus: Optional[ConsensusResult] = None
        issues: list[ValidationIssue] = []
        try:
            signals = derive_signals(series, indicators, patterns.all(), self.settings)
            consensus = self.scorer.score(signals)
        except Exception as e:
            logger.warning(f"{key}: consensus failed: {e}")
            signals = []
            issues.append(
                ValidationIssue(
                    code=IssueCode.COMPUTATION_FAILED,
                    severity=Severity.WARNING,
                    message=str(e),
                    source="consensus",
                )
            )

        logger.info(
            f"{key}: {len(series)} bars, {len(patterns.all())} pattern(s), "
            f"consensus {consensus.overall_bias.value if consensus else 'n/a'}"
        )
        return AnalysisResult(
            key=key,
            series=series,
            report=outcome.report,
            indicators=indicators,
            patterns=patterns,
            signals=signals,
            consensus=consensus,
            issues=issues,
        )

    async def analyze_many(
        self, requests: list[AnalysisRequest]
    ) -> dict[SeriesKey, AnalysisResult]:
        semaphore = asyncio.Semaphore(self.settings.max_parallel_series)

        async def run(req: AnalysisRequest) -> AnalysisResult:
            async with semaphore:
                return await asyncio.to_thread(
                    self.analyze, req.bars, req.key, req.now, req.indicators
                )

        results = await asyncio.gather(*(run(r) for r in requests), return_exceptions=True)

        collected: dict[SeriesKey, AnalysisResult] = {}
        for req, result in zip(requests, results):
            if isinstance(result, Exception):
                logger.error(f"Error analyzing {req.key}: {result}")
                collected[req.key] = AnalysisResult(
                    key=req.key,
                    series=Series(key=req.key, bars=()),
                    report=ValidationReport(),
                    error=str(result),
                )
            else:
                collected[req.key] = result
        return collected


# Singleton instance
_service_instance: Optional[AnalysisService] = None


def get_analysis_service() -> AnalysisService:
    """Get or create analysis service instance."""
    global _service_instance
    if _service_instance is None:
        _service_instance = AnalysisService()
    return _service_instance
