"""
Base Service Interface

All services inherit from this base class.
Also defines the error taxonomy shared by the analysis pipeline.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")


class BaseService(ABC, Generic[InputT, OutputT]):
    """
    Base class for all services.

    Each service:
    - Has a defined input type
    - Has a defined output type
    - Can check its health
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

        Args:
            input_data: Validated input conforming to InputT schema

        Returns:
            Output conforming to OutputT schema

        Raises:
            ServiceError: If execution fails
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if service is healthy and can process requests."""
        pass


class ServiceError(Exception):
    """Base exception for service errors."""

    def __init__(self, service_name: str, message: str, details: dict = None):
        self.service_name = service_name
        self.message = message
        self.details = details or {}
        super().__init__(f"[{service_name}] {message}")


# Terminal errors: these cross the pipeline boundary.


class ValidationError(ServiceError):
    """Input validation error. User-correctable, reported verbatim."""
    pass


class ProviderError(ServiceError):
    """Model provider failed with a non-overload error."""
    pass


class ProviderExhaustedError(ProviderError):
    """Every model invocation attempt hit an overload signal."""

    def __init__(
        self,
        service_name: str,
        message: str = "All AI models are currently overloaded. Please try again in a few minutes.",
        details: dict = None,
        retry_after: int = 60,
    ):
        self.retry_after = retry_after
        super().__init__(service_name, message, details)


# Absorbed errors: logged, never raised to the caller of the pipeline.


class DegradedEnrichmentError(ServiceError):
    """Search or refinement failed. Pipeline keeps the unrefined result."""
    pass


class PersistenceError(ServiceError):
    """Training corpus or history write/read failed."""
    pass


class SearchError(ServiceError):
    """A single search provider call failed."""
    pass
