"""OpenTelemetry providers for gqlext.

This module provides a configured TracerProvider and Resource factory
for the tracing extension.
"""

from gqlext.opentelemetry.providers.resource import create_resource, merge_resources
from gqlext.opentelemetry.providers.tracer import (
    InMemorySpanExporter,
    OTelTracerProvider,
    create_tracer_provider,
    get_global_tracer_provider,
    set_global_tracer_provider,
)

__all__ = [
    # Resource
    "create_resource",
    "merge_resources",
    # Tracer provider
    "OTelTracerProvider",
    "InMemorySpanExporter",
    "create_tracer_provider",
    "get_global_tracer_provider",
    "set_global_tracer_provider",
]
