"""
Series Validator Service Interface

Defines the contract for the validation layer.
"""

from abc import abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional

from ta_engine.services.base import BaseService
from ta_engine.schemas.market import Bar, Series, SeriesKey
from ta_engine.schemas.validation import ValidationIssue, ValidationReport


@dataclass
class ValidationRequest:
    """Raw bars for one series, as received from a collaborator."""

    key: SeriesKey
    bars: list[Any] = field(default_factory=list)
    now: Optional[datetime] = None


@dataclass
class ValidationOutcome:
    """Cleaned, time-ordered series plus the report that produced it."""

    series: Series
    report: ValidationReport

    @property
    def is_valid(self) -> bool:
        return self.report.is_valid


class SeriesValidatorInterface(BaseService[ValidationRequest, ValidationOutcome]):
    """
    Series Validator Contract.

    INPUT: raw bars (mappings or objects with time/open/high/low/close/volume)
        - `time` may also be called `timestamp` or `date`
        - ISO-8601 strings, epoch seconds and datetimes are accepted

    OUTPUT: ValidationOutcome
        - series: bars that passed every fatal check, sorted by time
        - report: fatal errors (input positions) and warnings (cleaned positions)
    """

    @property
    def name(self) -> str:
        return "SeriesValidator"

    @abstractmethod
    def validate(
        self, raw_bars: Iterable[Any], key: SeriesKey, now: Optional[datetime] = None
    ) -> ValidationOutcome:
        """Validate and normalize a raw bar sequence."""
        pass

    @abstractmethod
    def validate_or_raise(
        self, raw_bars: Iterable[Any], key: SeriesKey, now: Optional[datetime] = None
    ) -> ValidationOutcome:
        """Like validate(), but raise SeriesValidationError on fatal issues."""
        pass

    @abstractmethod
    def validate_bar(
        self, raw_bar: Any, index: Optional[int] = None
    ) -> tuple[Optional[Bar], list[ValidationIssue]]:
        """Check a single bar (live feed). Returns (bar or None, errors)."""
        pass
