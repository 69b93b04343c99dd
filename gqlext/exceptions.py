"""Exception hierarchy for gqlext.

All exceptions raised by the extension layer inherit from
GraphQLExtensionError so callers can catch any of them at a single point.
Hook failures are never propagated to the execution engine; they are
wrapped in ExtensionError and logged by the runner.

Exception Hierarchy:
    GraphQLExtensionError (base)
    ├── ConfigurationError
    │   ├── InvalidConfigValueError
    │   └── MissingConfigError
    ├── ExtensionError
    └── ContextSlotError

Example:
    >>> try:
    ...     config = OTelConfig.from_env()
    ... except InvalidConfigValueError as e:
    ...     logger.warning(f"Bad tracing configuration: {e}")
"""

from __future__ import annotations

from typing import Any


class GraphQLExtensionError(Exception):
    """Base exception for all gqlext errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
        cause: Optional original exception that caused this error.
    """

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional error context.
            cause: Optional original exception that caused this error.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        """Return string representation with details if present."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"cause={self.cause!r})"
        )

    def with_context(self, **kwargs: Any) -> GraphQLExtensionError:
        """Create a new exception with additional context details.

        The original exception is left untouched.

        Args:
            **kwargs: Additional context to add to details.

        Returns:
            New exception instance with merged details.

        Example:
            >>> e = GraphQLExtensionError("Error", details={"key": "value"})
            >>> e.with_context(event="resolve_start").details
            {'key': 'value', 'event': 'resolve_start'}
        """
        merged_details = {**self.details, **kwargs}
        return GraphQLExtensionError(self.message, details=merged_details, cause=self.cause)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(GraphQLExtensionError):
    """Exception for configuration-related errors.

    Attributes:
        config_key: Optional key that caused the configuration error.
    """

    def __init__(
        self,
        message: str,
        *,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if config_key:
            details["config_key"] = config_key
        super().__init__(message, details=details, cause=cause)
        self.config_key = config_key


class InvalidConfigValueError(ConfigurationError):
    """Exception for invalid configuration values.

    Raised when a configuration value fails validation or cannot be
    parsed into the expected type.

    Attributes:
        config_key: The configuration key with invalid value.
        value: The invalid value that was provided.
        expected: Description of what was expected.
    """

    def __init__(
        self,
        message: str,
        *,
        config_key: str,
        value: Any = None,
        expected: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        details["value"] = value
        if expected:
            details["expected"] = expected
        super().__init__(message, config_key=config_key, details=details, cause=cause)
        self.value = value
        self.expected = expected


class MissingConfigError(ConfigurationError):
    """Exception for a missing required configuration key."""

    def __init__(
        self,
        config_key: str,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            f"Missing required configuration: {config_key}",
            config_key=config_key,
            details=details,
        )


# =============================================================================
# Extension Errors
# =============================================================================


class ExtensionError(GraphQLExtensionError):
    """A hook of an extension instance raised while handling an event.

    The runner builds one of these for every contained failure so the log
    line carries which extension and which lifecycle event failed. It is
    never raised into the execution engine.

    Attributes:
        extension: Class name of the failing extension.
        event: Lifecycle event that was being dispatched.
    """

    def __init__(
        self,
        message: str,
        *,
        extension: str,
        event: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        details["extension"] = extension
        details["event"] = event
        super().__init__(message, details=details, cause=cause)
        self.extension = extension
        self.event = event


class ContextSlotError(GraphQLExtensionError):
    """A context slot was entered while it still held a live context.

    Only raised by a context tree running in strict mode; the default
    behavior is to overwrite the slot and log a warning.

    Attributes:
        slot: The slot key that was entered twice.
    """

    def __init__(
        self,
        message: str,
        *,
        slot: Any,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        details["slot"] = str(slot)
        super().__init__(message, details=details)
        self.slot = slot
