"""
Pattern Service Interface

Defines the contract for the pattern detection layer.
"""

from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ta_engine.services.base import BaseService
from ta_engine.schemas.market import Series
from ta_engine.schemas.patterns import ExtremaSet, PatternBase, PatternKind
from ta_engine.schemas.indicators import IndicatorBundle
from ta_engine.schemas.validation import ValidationIssue


@dataclass
class PatternBundle:
    """Every detector's output for one series."""

    extrema: Optional[ExtremaSet] = None
    patterns: dict[PatternKind, list[PatternBase]] = field(default_factory=dict)
    issues: list[ValidationIssue] = field(default_factory=list)

    def of(self, kind: PatternKind) -> list[PatternBase]:
        return self.patterns.get(kind, [])

    def all(self) -> list[PatternBase]:
        """All records, ordered by position then kind."""
        records = [r for recs in self.patterns.values() for r in recs]
        return sorted(records, key=lambda r: (r.start_index, r.end_index, r.kind.value))

    def recent(self, count: int = 5) -> list[PatternBase]:
        """The `count` records ending latest."""
        records = sorted(self.all(), key=lambda r: (r.end_index, r.start_index))
        return records[-count:] if count > 0 else []


class PatternServiceInterface(BaseService[Series, PatternBundle]):
    """
    Pattern Service Contract.

    INPUT: Series (validated), optionally an IndicatorBundle for divergence

    OUTPUT: PatternBundle
        - extrema: close-price ExtremaSet at the configured order
        - patterns: PatternKind -> records (ascending start_index)
        - issues: per-detector INSUFFICIENT_DATA / COMPUTATION_FAILED
    """

    @property
    def name(self) -> str:
        return "PatternService"

    @abstractmethod
    async def execute(self, input_data: Series) -> PatternBundle:
        """Run every detector."""
        pass

    @abstractmethod
    def detect(
        self,
        series: Series,
        kinds: Optional[Iterable[PatternKind]] = None,
        indicators: Optional[IndicatorBundle] = None,
    ) -> PatternBundle:
        """Run the requested detectors (default all), isolating failures."""
        pass
