"""OpenTelemetry tracing for GraphQL requests.

This package traces every request as a tree of spans: one per request
phase (request, parse, validation, execute) and one per field resolution,
nested the way the fields are nested in the query.

Features:
- ``OpenTelemetry`` extension factory, one traced extension per request
- Context tree correlating begin/end events across threads and tasks
- Configurable TracerProvider wrapper (OTLP, console, in-memory exporters)
- GraphQL semantic conventions for span attributes
- W3C trace context propagation to join an upstream trace

Installation:
    pip install gqlext            # console and in-memory exporters
    pip install gqlext[otlp]      # OTLP exporters

Basic Usage:
    from gqlext.opentelemetry import OTelConfig, OpenTelemetry, configure_opentelemetry

    provider = configure_opentelemetry(
        OTelConfig()
        .with_service_name("catalog")
        .with_endpoint("http://collector:4317")
    )
    factories = [OpenTelemetry(provider.get_tracer())]

Joining an upstream trace:
    ctx = ExtensionContext()
    ctx.insert(OpenTelemetryRequestConfig.from_carrier(request.headers))
"""

from __future__ import annotations

import logging

from gqlext.opentelemetry.config import (
    DEFAULT_OTEL_CONFIG,
    DEVELOPMENT_OTEL_CONFIG,
    DISABLED_OTEL_CONFIG,
    PRODUCTION_OTEL_CONFIG,
    TESTING_OTEL_CONFIG,
    BatchConfig,
    OpenTelemetryRequestConfig,
    OTelConfig,
    OTLPExporterConfig,
    ResourceConfig,
)
from gqlext.opentelemetry.context_tree import ContextTree
from gqlext.opentelemetry.exceptions import (
    OTelContextError,
    OTelError,
    OTelNotInstalledError,
    OTelProviderError,
)
from gqlext.opentelemetry.extension import (
    OpenTelemetry,
    OpenTelemetryExtension,
    create_opentelemetry_extension,
)
from gqlext.opentelemetry.propagation import ContextBridge, extract_context, inject_context
from gqlext.opentelemetry.providers import (
    InMemorySpanExporter,
    OTelTracerProvider,
    create_resource,
    create_tracer_provider,
    set_global_tracer_provider,
)
from gqlext.opentelemetry.semantic import EventNames, GraphQLAttributes, SpanNames
from gqlext.opentelemetry.types import (
    ContextCarrier,
    ExporterType,
    FieldSlot,
    OTLPCompression,
    OTLPProtocol,
    Phase,
    SlotKey,
)

logger = logging.getLogger(__name__)

__all__ = [
    # Extension
    "OpenTelemetry",
    "OpenTelemetryExtension",
    "create_opentelemetry_extension",
    "ContextTree",
    # Configuration
    "OTelConfig",
    "OTLPExporterConfig",
    "ResourceConfig",
    "BatchConfig",
    "OpenTelemetryRequestConfig",
    # Preset configurations
    "DEFAULT_OTEL_CONFIG",
    "DEVELOPMENT_OTEL_CONFIG",
    "PRODUCTION_OTEL_CONFIG",
    "TESTING_OTEL_CONFIG",
    "DISABLED_OTEL_CONFIG",
    # Types
    "Phase",
    "FieldSlot",
    "SlotKey",
    "ExporterType",
    "OTLPProtocol",
    "OTLPCompression",
    "ContextCarrier",
    # Exceptions
    "OTelError",
    "OTelProviderError",
    "OTelContextError",
    "OTelNotInstalledError",
    # Semantic conventions
    "GraphQLAttributes",
    "SpanNames",
    "EventNames",
    # Providers
    "OTelTracerProvider",
    "InMemorySpanExporter",
    "create_tracer_provider",
    "create_resource",
    "set_global_tracer_provider",
    # Propagation
    "ContextBridge",
    "inject_context",
    "extract_context",
    # Global setup
    "configure_opentelemetry",
    "get_configured_provider",
    "shutdown_opentelemetry",
]


# Global state for the configured provider
_tracer_provider: OTelTracerProvider | None = None


def configure_opentelemetry(
    config: OTelConfig | None = None,
    set_global: bool = True,
) -> OTelTracerProvider | None:
    """Configure tracing for the process.

    Args:
        config: Tracing configuration. Defaults to DEFAULT_OTEL_CONFIG.
        set_global: Whether to install the provider as the global one.

    Returns:
        The configured provider, or None when tracing is disabled.

    Example:
        provider = configure_opentelemetry(
            OTelConfig().with_service_name("catalog")
        )
    """
    global _tracer_provider

    config = config or DEFAULT_OTEL_CONFIG
    if not config.enabled:
        logger.info("OpenTelemetry is disabled by configuration")
        return None

    if _tracer_provider is not None:
        _tracer_provider.shutdown()

    _tracer_provider = create_tracer_provider(config)
    if set_global:
        set_global_tracer_provider(_tracer_provider)

    logger.info(
        f"OpenTelemetry configured: service={config.resource.service_name}, "
        f"exporter={config.traces_exporter.value}"
    )
    return _tracer_provider


def get_configured_provider() -> OTelTracerProvider | None:
    """Return the provider installed by configure_opentelemetry, if any."""
    return _tracer_provider


def shutdown_opentelemetry() -> None:
    """Flush and shut down the configured provider."""
    global _tracer_provider

    if _tracer_provider is None:
        return
    _tracer_provider.force_flush()
    _tracer_provider.shutdown()
    _tracer_provider = None
