"""
Indicator Service Implementation

Runs the indicator library over a validated Series.
Pure NumPy calculations; every indicator is computed in isolation.
"""

import logging
from typing import Any, Callable, Optional

import numpy as np

from ta_engine.core.config import EngineSettings, get_settings
from ta_engine.schemas.market import Series
from ta_engine.schemas.indicators import IndicatorBundle, IndicatorRequest, IndicatorSeries
from ta_engine.schemas.validation import IssueCode, Severity, ValidationIssue
from ta_engine.services.base import InsufficientDataError
from ta_engine.services.indicators.interface import IndicatorServiceInterface
from ta_engine.services.indicators.calculations import (
    adx,
    atr,
    bollinger_bands,
    ema,
    macd,
    min_length,
    obv,
    rsi,
    sma,
    stochastic,
)

logger = logging.getLogger(__name__)

# Output line names per indicator, in the order the calculation returns them
LINE_NAMES: dict[str, tuple[str, ...]] = {
    "sma": ("sma",),
    "ema": ("ema",),
    "rsi": ("rsi",),
    "macd": ("macd", "signal", "histogram"),
    "bollinger": ("upper", "middle", "lower", "bandwidth", "percent_b"),
    "stochastic": ("k", "d"),
    "atr": ("atr",),
    "obv": ("obv",),
    "adx": ("adx", "plus_di", "minus_di"),
    "volume_sma": ("volume_sma",),
}


class _Job:
    """One indicator to compute: output name, kind, params, calculation."""

    __slots__ = ("name", "kind", "params", "fn")

    def __init__(self, name: str, kind: str, params: dict[str, Any], fn: Callable[[], Any]):
        self.name = name
        self.kind = kind
        self.params = params
        self.fn = fn


class IndicatorService(IndicatorServiceInterface):
    """
    Indicator Service.

    Calculates technical indicators for one series.
    All calculations are deterministic and reproducible.
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = settings or get_settings()

    async def execute(self, input_data: Series) -> IndicatorBundle:
        return self.compute(input_data)

    def compute(
        self, series: Series, request: Optional[IndicatorRequest] = None
    ) -> IndicatorBundle:
        request = request or IndicatorRequest()
        bundle = IndicatorBundle()

        for job in self._plan(series, request):
            try:
                required = min_length(job.kind, **job.params)
                if len(series) < required:
                    raise InsufficientDataError(
                        self.name,
                        f"{job.name} needs {required} bars, got {len(series)}",
                        required=required,
                        available=len(series),
                    )
                lines = job.fn()
                if not isinstance(lines, tuple):
                    lines = (lines,)
                bundle.indicators[job.name] = IndicatorSeries(
                    name=job.name,
                    params=job.params,
                    lines=dict(zip(LINE_NAMES[job.kind], lines)),
                )
            except InsufficientDataError as e:
                logger.warning(f"{series.key}: {e.message}")
                bundle.issues.append(
                    ValidationIssue(
                        code=IssueCode.INSUFFICIENT_DATA,
                        severity=Severity.WARNING,
                        message=e.message,
                        source=job.name,
                    )
                )
                bundle.indicators[job.name] = self._empty(job, len(series))
            except Exception as e:
                logger.warning(f"{series.key}: {job.name} failed: {e}")
                bundle.issues.append(
                    ValidationIssue(
                        code=IssueCode.COMPUTATION_FAILED,
                        severity=Severity.WARNING,
                        message=str(e),
                        source=job.name,
                    )
                )
                bundle.indicators[job.name] = self._empty(job, len(series))

        logger.debug(
            f"{series.key}: computed {len(bundle.indicators)} indicator(s), "
            f"{len(bundle.issues)} issue(s)"
        )
        return bundle

    def _empty(self, job: _Job, length: int) -> IndicatorSeries:
        return IndicatorSeries(
            name=job.name,
            params=job.params,
            lines={line: np.full(length, np.nan) for line in LINE_NAMES[job.kind]},
        )

    def _plan(self, series: Series, request: IndicatorRequest) -> list[_Job]:
        """Expand the request into concrete jobs with resolved parameters."""
        s = self.settings
        h, l, c, v = series.highs, series.lows, series.closes, series.volumes
        jobs: list[_Job] = []

        for kind in request.indicators:
            if kind == "sma":
                for p in request.sma_periods or s.sma_periods:
                    jobs.append(_Job(f"sma_{p}", "sma", {"period": p}, lambda p=p: sma(c, p)))
            elif kind == "ema":
                for p in request.ema_periods or s.ema_periods:
                    jobs.append(_Job(f"ema_{p}", "ema", {"period": p}, lambda p=p: ema(c, p)))
            elif kind == "rsi":
                p = request.rsi_period or s.rsi_period
                jobs.append(_Job("rsi", "rsi", {"period": p}, lambda p=p: rsi(c, p)))
            elif kind == "macd":
                fast = request.macd_fast or s.macd_fast
                slow = request.macd_slow or s.macd_slow
                signal = request.macd_signal or s.macd_signal
                jobs.append(
                    _Job(
                        "macd",
                        "macd",
                        {"fast": fast, "slow": slow, "signal": signal},
                        lambda fast=fast, slow=slow, signal=signal: macd(c, fast, slow, signal),
                    )
                )
            elif kind == "bollinger":
                p = request.bollinger_period or s.bollinger_period
                k = request.bollinger_std_dev or s.bollinger_std_dev
                jobs.append(
                    _Job("bollinger", "bollinger", {"period": p, "std_dev": k},
                         lambda p=p, k=k: bollinger_bands(c, p, k))
                )
            elif kind == "stochastic":
                p = request.stochastic_period or s.stochastic_period
                sm = request.stochastic_smoothing or s.stochastic_smoothing
                jobs.append(
                    _Job("stochastic", "stochastic", {"period": p, "smoothing": sm},
                         lambda p=p, sm=sm: stochastic(h, l, c, p, sm))
                )
            elif kind == "atr":
                p = request.atr_period or s.atr_period
                jobs.append(_Job("atr", "atr", {"period": p}, lambda p=p: atr(h, l, c, p)))
            elif kind == "obv":
                jobs.append(_Job("obv", "obv", {}, lambda: obv(c, v)))
            elif kind == "adx":
                p = request.adx_period or s.adx_period
                jobs.append(_Job("adx", "adx", {"period": p}, lambda p=p: adx(h, l, c, p)))
            elif kind == "volume_sma":
                p = request.volume_sma_period or s.volume_sma_period
                jobs.append(
                    _Job("volume_sma", "volume_sma", {"period": p}, lambda p=p: sma(v, p))
                )
            else:
                logger.warning(f"Unknown indicator requested: {kind}")

        return jobs


# Singleton instance
_service_instance: Optional[IndicatorService] = None


def get_indicator_service() -> IndicatorService:
    """Get or create indicator service instance."""
    global _service_instance
    if _service_instance is None:
        _service_instance = IndicatorService()
    return _service_instance
