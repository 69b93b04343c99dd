"""OpenTelemetry-specific exceptions for gqlext.

All exceptions inherit from GraphQLExtensionError. None of them is ever
raised out of an extension hook; they surface only from explicit setup
calls (providers, propagation helpers).
"""

from typing import Any

from gqlext.exceptions import GraphQLExtensionError

__all__ = [
    "OTelError",
    "OTelProviderError",
    "OTelContextError",
    "OTelNotInstalledError",
]


class OTelError(GraphQLExtensionError):
    """Base exception for all OpenTelemetry-related errors."""


class OTelProviderError(OTelError):
    """Raised when the tracer provider cannot be initialized or used."""

    def __init__(
        self,
        message: str,
        provider_type: str | None = None,
        original_error: Exception | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize OTelProviderError.

        Args:
            message: Human-readable error message.
            provider_type: The type of provider that failed.
            original_error: The underlying exception that caused this error.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message, details=details, cause=original_error)
        self.provider_type = provider_type
        self.original_error = original_error


class OTelContextError(OTelError):
    """Raised when context propagation (inject/extract) fails."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        propagator: str | None = None,
        original_error: Exception | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize OTelContextError.

        Args:
            message: Human-readable error message.
            operation: The operation that failed (inject/extract).
            propagator: The propagator being used.
            original_error: The underlying exception that caused this error.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message, details=details, cause=original_error)
        self.operation = operation
        self.propagator = propagator
        self.original_error = original_error


class OTelNotInstalledError(OTelError):
    """Raised when an optional OpenTelemetry exporter package is missing."""

    def __init__(
        self,
        feature: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize OTelNotInstalledError.

        Args:
            feature: The feature that requires the missing package.
            details: Optional dictionary with additional error context.
        """
        message = (
            "OpenTelemetry OTLP exporter is not installed. "
            "Install with: pip install gqlext[otlp]"
        )
        if feature:
            message = f"Feature '{feature}' requires an optional package. {message}"
        super().__init__(message, details=details)
        self.feature = feature
