"""OpenTelemetry Tracer provider for gqlext.

This module provides a configurable TracerProvider wrapper whose tracers
are handed to the ``OpenTelemetry`` extension factory.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    SpanExporter,
)
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from gqlext.opentelemetry.config import OTelConfig, OTLPExporterConfig
from gqlext.opentelemetry.exceptions import OTelNotInstalledError, OTelProviderError
from gqlext.opentelemetry.providers.resource import create_resource
from gqlext.opentelemetry.types import ExporterType, OTLPCompression, OTLPProtocol

if TYPE_CHECKING:
    from opentelemetry.trace import Tracer

__all__ = [
    "OTelTracerProvider",
    "InMemorySpanExporter",
    "create_tracer_provider",
    "get_global_tracer_provider",
    "set_global_tracer_provider",
]

logger = logging.getLogger(__name__)


def _create_otlp_span_exporter(config: OTLPExporterConfig) -> SpanExporter:
    """Create an OTLP span exporter based on configuration.

    Raises:
        OTelNotInstalledError: If the exporter package for the configured
            protocol is not installed.
    """
    if config.protocol == OTLPProtocol.GRPC:
        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
                OTLPSpanExporter,
            )
        except ImportError as e:
            raise OTelNotInstalledError(feature="OTLP gRPC trace exporter") from e

        grpc_compression = None
        if config.compression == OTLPCompression.GZIP:
            from grpc import Compression

            grpc_compression = Compression.Gzip

        return OTLPSpanExporter(
            endpoint=config.endpoint,
            insecure=config.insecure,
            headers=tuple(config.headers.items()) if config.headers else None,
            timeout=int(config.timeout_seconds),
            compression=grpc_compression,
        )

    try:
        from opentelemetry.exporter.otlp.proto.http import Compression as HttpCompression
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
            OTLPSpanExporter as HttpOTLPSpanExporter,
        )
    except ImportError as e:
        raise OTelNotInstalledError(feature="OTLP HTTP trace exporter") from e

    http_compression = (
        HttpCompression.Gzip
        if config.compression == OTLPCompression.GZIP
        else HttpCompression.NoCompression
    )
    return HttpOTLPSpanExporter(
        endpoint=config.endpoint,
        headers=config.headers or None,
        timeout=int(config.timeout_seconds),
        compression=http_compression,
    )


class OTelTracerProvider:
    """OpenTelemetry TracerProvider wrapper with configuration support.

    Example:
        config = OTelConfig().with_service_name("catalog")
        provider = OTelTracerProvider(config)

        schema_extensions = [OpenTelemetry(provider.get_tracer("gqlext"))]
        ...
        provider.shutdown()
    """

    def __init__(
        self,
        config: OTelConfig | None = None,
        exporter: SpanExporter | None = None,
    ) -> None:
        """Initialize OTelTracerProvider.

        Args:
            config: Tracing configuration.
            exporter: Custom span exporter. If None, creates based on config.

        Raises:
            OTelNotInstalledError: If the configured OTLP exporter is missing.
            OTelProviderError: If the provider cannot be initialized.
        """
        self._config = config or OTelConfig()
        self._provider: TracerProvider | None = None
        self._processor: Any = None
        self._exporter = exporter
        self._memory_exporter: InMemorySpanExporter | None = None
        self._is_shutdown = False

        if self._config.enabled:
            self._initialize_provider()

    def _initialize_provider(self) -> None:
        try:
            self._provider = TracerProvider(resource=create_resource(self._config.resource))

            exporter_type = self._config.traces_exporter
            if self._exporter is None:
                if exporter_type == ExporterType.OTLP:
                    self._exporter = _create_otlp_span_exporter(self._config.otlp)
                elif exporter_type == ExporterType.CONSOLE:
                    self._exporter = ConsoleSpanExporter()
                elif exporter_type == ExporterType.MEMORY:
                    self._memory_exporter = InMemorySpanExporter()
                    self._exporter = self._memory_exporter
                else:
                    return
            elif isinstance(self._exporter, InMemorySpanExporter):
                self._memory_exporter = self._exporter

            # Batching only pays off when spans leave the process
            if exporter_type == ExporterType.OTLP:
                batch = self._config.batch
                self._processor = BatchSpanProcessor(
                    self._exporter,
                    max_queue_size=batch.max_queue_size,
                    max_export_batch_size=batch.max_export_batch_size,
                    export_timeout_millis=int(batch.export_timeout_seconds * 1000),
                    schedule_delay_millis=int(batch.schedule_delay_seconds * 1000),
                )
            else:
                self._processor = SimpleSpanProcessor(self._exporter)

            self._provider.add_span_processor(self._processor)
        except OTelNotInstalledError:
            raise
        except Exception as e:
            raise OTelProviderError(
                message=f"Failed to initialize TracerProvider: {e}",
                provider_type="tracer",
                original_error=e,
            ) from e

    @property
    def config(self) -> OTelConfig:
        return self._config

    @property
    def provider(self) -> TracerProvider | None:
        """Get the underlying SDK TracerProvider."""
        return self._provider

    @property
    def is_enabled(self) -> bool:
        return self._config.enabled and self._provider is not None

    def get_tracer(
        self,
        name: str | None = None,
        version: str | None = None,
    ) -> Tracer:
        """Get a Tracer instance.

        Args:
            name: Instrumentation scope name; the configured tracer name
                when omitted.
            version: Version of the instrumentation scope.

        Returns:
            Tracer instance, a no-op tracer when tracing is disabled.
        """
        if self._provider is None:
            return trace.NoOpTracer()
        return self._provider.get_tracer(name or self._config.tracer_name, version)

    def get_collected_spans(self) -> list[ReadableSpan]:
        """Get finished spans (in-memory exporter only).

        Raises:
            OTelProviderError: If not using the in-memory exporter.
        """
        if self._memory_exporter is None:
            if self._config.traces_exporter != ExporterType.MEMORY:
                raise OTelProviderError(
                    message="get_collected_spans only available with MEMORY exporter",
                    provider_type="tracer",
                )
            return []
        return list(self._memory_exporter.get_finished_spans())

    def clear_collected_spans(self) -> None:
        if self._memory_exporter is not None:
            self._memory_exporter.clear()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        """Force flush all pending spans."""
        if self._provider is None:
            return True
        try:
            return self._provider.force_flush(timeout_millis)
        except Exception as e:
            logger.warning(f"Failed to force flush spans: {e}")
            return False

    def shutdown(self) -> bool:
        """Shutdown the provider; subsequent calls are no-ops."""
        if self._is_shutdown:
            return True
        self._is_shutdown = True

        if self._provider is None:
            return True
        try:
            self._provider.shutdown()
            return True
        except Exception as e:
            logger.warning(f"Failed to shutdown TracerProvider: {e}")
            return False

    def __enter__(self) -> OTelTracerProvider:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.shutdown()


def create_tracer_provider(
    config: OTelConfig | None = None,
    exporter: SpanExporter | None = None,
) -> OTelTracerProvider:
    """Create a configured OTelTracerProvider.

    Example:
        provider = create_tracer_provider(
            config=OTelConfig().with_service_name("catalog")
        )
    """
    return OTelTracerProvider(config=config, exporter=exporter)


def get_global_tracer_provider() -> trace.TracerProvider:
    """Get the global TracerProvider."""
    return trace.get_tracer_provider()


def set_global_tracer_provider(provider: OTelTracerProvider | TracerProvider) -> None:
    """Set the global TracerProvider.

    A disabled ``OTelTracerProvider`` leaves the global provider untouched.
    """
    if isinstance(provider, OTelTracerProvider):
        if provider.provider is not None:
            trace.set_tracer_provider(provider.provider)
    else:
        trace.set_tracer_provider(provider)
