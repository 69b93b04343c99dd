"""gqlext: observability extensions for GraphQL execution engines.

The execution engine notifies per-request extension instances of lifecycle
events and field resolutions; this package provides the extension
contract, the runner that fans events out, a structured-logging extension,
an OpenTelemetry tracing extension and cache-control aggregation.

Tracing:
    >>> from gqlext import Extensions, ExtensionContext
    >>> from gqlext.opentelemetry import OpenTelemetry, OTelTracerProvider
    >>> provider = OTelTracerProvider()
    >>> with Extensions.from_factories([OpenTelemetry(provider.get_tracer())]) as ext:
    ...     ext.start()
    ...     ...
    ...     ext.end()

Cache Control:
    >>> from gqlext import CacheControl, merge_all
    >>> merge_all([CacheControl(max_age=60), CacheControl(public=False, max_age=30)]).value()
    'max-age=30, private'

Logging:
    >>> from gqlext import get_logger, LogContext
    >>> logger = get_logger(__name__)
    >>> with LogContext(operation_name="GetUser", request_id="r-1"):
    ...     logger.info("Request received")

Public API:
    - Extensions: Extension, BaseExtension, ExtensionFactory, ExtensionContext, Extensions
    - Payloads: ResolveId, ResolveInfo, ValidationResult, ServerError
    - Logging extension: Logger, LoggingExtension
    - Cache control: CacheControl, merge_all, CacheControlAggregator
    - Exceptions: GraphQLExtensionError and subclasses
    - Logging: get_logger, configure_logging, LogContext
    - Configuration: EnvReader
    - Tracing: see ``gqlext.opentelemetry``
"""

__version__ = "0.1.0"

from gqlext.cache_control import CacheControl, CacheControlAggregator, merge_all
from gqlext.config import EnvReader
from gqlext.exceptions import (
    ConfigurationError,
    ContextSlotError,
    ExtensionError,
    GraphQLExtensionError,
    InvalidConfigValueError,
    MissingConfigError,
)
from gqlext.extensions import (
    BaseExtension,
    Extension,
    ExtensionContext,
    ExtensionFactory,
    Extensions,
    LifecycleState,
    Logger,
    LoggingExtension,
    ResolveId,
    ResolveInfo,
    ServerError,
    ValidationResult,
    Variables,
    create_extensions,
)
from gqlext.logging import (
    ExtensionLogger,
    LogContext,
    LogLevel,
    configure_logging,
    get_logger,
)

__all__ = [
    "__version__",
    # Extensions
    "Extension",
    "BaseExtension",
    "ExtensionFactory",
    "ExtensionContext",
    "Extensions",
    "LifecycleState",
    "create_extensions",
    "Logger",
    "LoggingExtension",
    # Payloads
    "ResolveId",
    "ResolveInfo",
    "ValidationResult",
    "ServerError",
    "Variables",
    # Cache control
    "CacheControl",
    "CacheControlAggregator",
    "merge_all",
    # Exceptions
    "GraphQLExtensionError",
    "ConfigurationError",
    "InvalidConfigValueError",
    "MissingConfigError",
    "ExtensionError",
    "ContextSlotError",
    # Logging
    "ExtensionLogger",
    "LogContext",
    "LogLevel",
    "get_logger",
    "configure_logging",
    # Configuration
    "EnvReader",
]
