"""
Indicator Service Interface

Defines the contract for the indicator calculation layer.
"""

from abc import abstractmethod
from typing import Optional

from ta_engine.services.base import BaseService
from ta_engine.schemas.market import Series
from ta_engine.schemas.indicators import IndicatorBundle, IndicatorRequest


class IndicatorServiceInterface(BaseService[Series, IndicatorBundle]):
    """
    Indicator Service Contract.

    INPUT: Series (validated)

    OUTPUT: IndicatorBundle
        - indicators: name -> IndicatorSeries (e.g. "sma_20", "macd", "adx")
        - issues: per-indicator INSUFFICIENT_DATA / COMPUTATION_FAILED
    """

    @property
    def name(self) -> str:
        return "IndicatorService"

    @abstractmethod
    async def execute(self, input_data: Series) -> IndicatorBundle:
        """Compute the default indicator set."""
        pass

    @abstractmethod
    def compute(
        self, series: Series, request: Optional[IndicatorRequest] = None
    ) -> IndicatorBundle:
        """
        Compute the requested indicators for one series.

        A failing indicator yields an all-NaN IndicatorSeries plus an issue;
        its siblings are unaffected.
        """
        pass
