"""
Service Layer

Each service is a deterministic, pure-computation stage of the analysis
pipeline: validation -> indicators -> patterns -> consensus. The live
engine keeps per-series incremental state on top of the same detectors.
"""

from ta_engine.services.base import (
    BaseService,
    InsufficientDataError,
    LiveEngineError,
    SeriesValidationError,
    ServiceError,
)

__all__ = [
    "BaseService",
    "InsufficientDataError",
    "LiveEngineError",
    "SeriesValidationError",
    "ServiceError",
]
