"""
Base Service Interface

Every pipeline stage (validator, indicators, patterns, analysis) implements
this contract. Engine errors all derive from ServiceError.
"""

from abc import ABC, abstractmethod
from typing import Generic, Optional, TypeVar

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")


class BaseService(ABC, Generic[InputT, OutputT]):
    """
    Base class for engine services.

    Services are stateless over their input: `execute` takes one typed
    input and returns one typed output.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Service name for logging."""
        pass

    @abstractmethod
    async def execute(self, input_data: InputT) -> OutputT:
        """
        Execute the service's main function.

        Raises:
            ServiceError: If execution fails
        """
        pass

    async def health_check(self) -> bool:
        """Pure computation services are always healthy."""
        return True


class ServiceError(Exception):
    """Base exception for service errors."""

    def __init__(self, service_name: str, message: str, details: dict = None):
        self.service_name = service_name
        self.message = message
        self.details = details or {}
        super().__init__(f"[{service_name}] {message}")


class SeriesValidationError(ServiceError):
    """Series failed validation; `report` holds every fatal issue."""

    def __init__(self, service_name: str, message: str, report=None, details: dict = None):
        self.report = report
        super().__init__(service_name, message, details)


class InsufficientDataError(ServiceError):
    """Series shorter than a computation's minimum length."""

    def __init__(
        self,
        service_name: str,
        message: str,
        required: Optional[int] = None,
        available: Optional[int] = None,
    ):
        self.required = required
        self.available = available
        super().__init__(
            service_name, message, {"required": required, "available": available}
        )


class LiveEngineError(ServiceError):
    """Live update rejected (out-of-order timestamp, unseeded key, malformed feed message)."""
    pass
