"""Extension hooks for observing GraphQL request execution.

Extensions receive request lifecycle events and per-field resolution
events from the execution engine. Factories create a fresh instance per
request; the ``Extensions`` runner fans every event out to the instances
of one request and contains their failures.

Example:
    >>> from gqlext.extensions import Extensions, ExtensionContext, Logger
    >>> with Extensions.from_factories([Logger()], ExtensionContext()) as extensions:
    ...     extensions.start()
    ...     ...
    ...     extensions.end()
"""

from gqlext.extensions.base import (
    BaseExtension,
    Extension,
    ExtensionContext,
    ExtensionFactory,
)
from gqlext.extensions.logger import Logger, LoggingExtension
from gqlext.extensions.runner import Extensions, LifecycleState, create_extensions
from gqlext.extensions.types import (
    ResolveId,
    ResolveInfo,
    ServerError,
    ValidationResult,
    Variables,
)

__all__ = [
    # Contract
    "Extension",
    "BaseExtension",
    "ExtensionFactory",
    "ExtensionContext",
    # Runner
    "Extensions",
    "LifecycleState",
    "create_extensions",
    # Payloads
    "ResolveId",
    "ResolveInfo",
    "ValidationResult",
    "ServerError",
    "Variables",
    # Logging extension
    "Logger",
    "LoggingExtension",
]
