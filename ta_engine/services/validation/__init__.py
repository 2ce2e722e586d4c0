"""
Series Validator Service

CONTRACT:
    Input:  raw OHLCV bars + SeriesKey
    Output: ValidationOutcome (cleaned Series + ValidationReport)

RESPONSIBILITIES:
    - Parse times and numbers from untrusted input
    - Drop and report bars failing fatal checks
    - Sort by time and flag duplicates, gaps, zero volume, extreme moves
      and future timestamps as warnings
"""

from ta_engine.services.validation.interface import (
    SeriesValidatorInterface,
    ValidationOutcome,
    ValidationRequest,
)
from ta_engine.services.validation.service import SeriesValidator, get_series_validator

__all__ = [
    "SeriesValidatorInterface",
    "SeriesValidator",
    "ValidationOutcome",
    "ValidationRequest",
    "get_series_validator",
]
