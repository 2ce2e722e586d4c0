"""
Validation report contract.

Errors void a series; warnings are surfaced alongside results.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class IssueCode(str, Enum):
    # Fatal
    EMPTY_SERIES = "EMPTY_SERIES"
    INVALID_TIME = "INVALID_TIME"
    INVALID_NUMBER = "INVALID_NUMBER"
    NEGATIVE_VALUE = "NEGATIVE_VALUE"
    OHLC_INCONSISTENT = "OHLC_INCONSISTENT"
    # Non-fatal
    DUPLICATE_TIMESTAMP = "DUPLICATE_TIMESTAMP"
    TIME_GAP = "TIME_GAP"
    ZERO_VOLUME = "ZERO_VOLUME"
    EXTREME_MOVE = "EXTREME_MOVE"
    FUTURE_TIMESTAMP = "FUTURE_TIMESTAMP"
    # Per indicator / detector
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    COMPUTATION_FAILED = "COMPUTATION_FAILED"


class ValidationIssue(BaseModel):
    """One finding about a bar or the series as a whole."""

    code: IssueCode
    severity: Severity
    message: str
    index: Optional[int] = Field(
        default=None, description="Bar position (cleaned series for warnings, input for errors)"
    )
    source: Optional[str] = Field(
        default=None, description="Indicator/detector name for per-computation issues"
    )

    def __str__(self) -> str:
        where = f" @{self.index}" if self.index is not None else ""
        return f"{self.code.value}{where}: {self.message}"


class ValidationReport(BaseModel):
    """Errors (fatal) and warnings (non-fatal) for one validation run."""

    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def warning_codes(self) -> list[tuple[IssueCode, Optional[int]]]:
        return [(w.code, w.index) for w in self.warnings]
