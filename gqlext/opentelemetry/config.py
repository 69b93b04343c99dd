"""OpenTelemetry configuration for gqlext.

Immutable configuration classes with builder-style ``with_*`` methods,
environment loading and presets. ``OpenTelemetryRequestConfig`` is the
request-scoped counterpart: inserted into the ``ExtensionContext`` it lets
a single request hang its spans under an existing trace.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from opentelemetry import trace

from gqlext.config import EnvReader
from gqlext.exceptions import InvalidConfigValueError
from gqlext.opentelemetry.propagation import DEFAULT_PROPAGATORS, extract_context
from gqlext.opentelemetry.types import (
    ExporterType,
    OTLPCompression,
    OTLPProtocol,
    ResourceAttributes,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from opentelemetry.context import Context
    from opentelemetry.trace import Span

__all__ = [
    # Configuration classes
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
]

DEFAULT_TRACER_NAME = "gqlext"
DEFAULT_ENV_PREFIX = "GQLEXT_OTEL"


@dataclass(frozen=True)
class ResourceConfig:
    """Configuration for the OpenTelemetry Resource.

    A Resource represents the entity producing telemetry data, i.e. the
    GraphQL service.
    """

    service_name: str = "graphql-service"
    """Name of the service producing telemetry."""

    service_version: str = "0.1.0"
    """Version of the service."""

    service_namespace: str | None = None
    """Namespace grouping related services."""

    deployment_environment: str = "development"
    """Deployment environment (development, staging, production)."""

    service_instance_id: str | None = None
    """Unique identifier of the service instance."""

    additional_attributes: ResourceAttributes = field(default_factory=dict)
    """Additional resource attributes."""

    def with_service_name(self, name: str) -> ResourceConfig:
        """Create a new config with updated service name."""
        return replace(self, service_name=name)

    def with_service_version(self, version: str) -> ResourceConfig:
        """Create a new config with updated service version."""
        return replace(self, service_version=version)

    def with_environment(self, environment: str) -> ResourceConfig:
        """Create a new config with updated deployment environment."""
        return replace(self, deployment_environment=environment)

    def with_instance_id(self, instance_id: str) -> ResourceConfig:
        return replace(self, service_instance_id=instance_id)

    def with_attributes(self, **attributes: Any) -> ResourceConfig:
        """Create a new config with additional attributes."""
        return replace(self, additional_attributes={**self.additional_attributes, **attributes})

    def to_attributes(self) -> dict[str, Any]:
        """Convert to OpenTelemetry resource attributes dictionary."""
        attrs: dict[str, Any] = {
            "service.name": self.service_name,
            "service.version": self.service_version,
            "deployment.environment": self.deployment_environment,
        }
        if self.service_namespace:
            attrs["service.namespace"] = self.service_namespace
        if self.service_instance_id:
            attrs["service.instance.id"] = self.service_instance_id
        attrs.update(self.additional_attributes)
        return attrs


@dataclass(frozen=True)
class OTLPExporterConfig:
    """Configuration for the OTLP span exporter."""

    endpoint: str = "http://localhost:4317"
    """OTLP collector endpoint URL."""

    protocol: OTLPProtocol = OTLPProtocol.GRPC
    compression: OTLPCompression = OTLPCompression.GZIP

    headers: dict[str, str] = field(default_factory=dict)
    """Additional headers to include in export requests."""

    timeout_seconds: float = 10.0

    insecure: bool = False
    """Whether to use insecure connection (no TLS)."""

    def with_endpoint(self, endpoint: str) -> OTLPExporterConfig:
        return replace(self, endpoint=endpoint)

    def with_protocol(self, protocol: OTLPProtocol) -> OTLPExporterConfig:
        return replace(self, protocol=protocol)

    def with_compression(self, compression: OTLPCompression) -> OTLPExporterConfig:
        return replace(self, compression=compression)

    def with_headers(self, **headers: str) -> OTLPExporterConfig:
        """Create a new config with additional headers."""
        return replace(self, headers={**self.headers, **headers})

    def with_timeout(self, timeout_seconds: float) -> OTLPExporterConfig:
        return replace(self, timeout_seconds=timeout_seconds)

    def with_insecure(self, insecure: bool = True) -> OTLPExporterConfig:
        return replace(self, insecure=insecure)


@dataclass(frozen=True)
class BatchConfig:
    """Configuration for batching exported spans.

    Only used with the OTLP exporter; console and in-memory exporters
    export synchronously.
    """

    max_queue_size: int = 2048
    """Maximum number of spans to queue before dropping."""

    max_export_batch_size: int = 512
    """Maximum number of spans per export batch."""

    export_timeout_seconds: float = 30.0
    schedule_delay_seconds: float = 5.0

    def with_queue_size(self, size: int) -> BatchConfig:
        return replace(self, max_queue_size=size)

    def with_batch_size(self, size: int) -> BatchConfig:
        return replace(self, max_export_batch_size=size)

    def with_export_timeout(self, timeout_seconds: float) -> BatchConfig:
        return replace(self, export_timeout_seconds=timeout_seconds)

    def with_schedule_delay(self, delay_seconds: float) -> BatchConfig:
        return replace(self, schedule_delay_seconds=delay_seconds)


@dataclass(frozen=True)
class OTelConfig:
    """Main tracing configuration.

    Top-level configuration aggregating the extension switches and the
    provider setup. Use builder methods to customize.

    Example:
        config = OTelConfig().with_service_name("catalog").with_variables(False)
    """

    enabled: bool = True
    """Whether the tracing extension records anything at all."""

    tracer_name: str = DEFAULT_TRACER_NAME
    """Instrumentation scope name of the tracer."""

    include_source: bool = True
    """Whether the query text is recorded on the parse span."""

    include_variables: bool = True
    """Whether request variables are recorded on the parse span."""

    strict_slots: bool = False
    """Raise instead of overwriting when a context slot is entered twice."""

    traces_exporter: ExporterType = ExporterType.OTLP
    resource: ResourceConfig = field(default_factory=ResourceConfig)
    otlp: OTLPExporterConfig = field(default_factory=OTLPExporterConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)

    propagators: tuple[str, ...] = DEFAULT_PROPAGATORS
    """Context propagators used for incoming and outgoing carriers."""

    def with_enabled(self, enabled: bool) -> OTelConfig:
        """Create a new config with updated enabled status."""
        return replace(self, enabled=enabled)

    def with_tracer_name(self, name: str) -> OTelConfig:
        return replace(self, tracer_name=name)

    def with_source(self, include: bool) -> OTelConfig:
        """Create a new config recording (or not) the query text."""
        return replace(self, include_source=include)

    def with_variables(self, include: bool) -> OTelConfig:
        """Create a new config recording (or not) the request variables."""
        return replace(self, include_variables=include)

    def with_strict_slots(self, strict: bool = True) -> OTelConfig:
        return replace(self, strict_slots=strict)

    def with_exporter(self, exporter: ExporterType) -> OTelConfig:
        """Create a new config with updated traces exporter."""
        return replace(self, traces_exporter=exporter)

    def with_resource(self, resource: ResourceConfig) -> OTelConfig:
        return replace(self, resource=resource)

    def with_service_name(self, name: str) -> OTelConfig:
        """Create a new config with updated service name."""
        return self.with_resource(self.resource.with_service_name(name))

    def with_otlp(self, otlp: OTLPExporterConfig) -> OTelConfig:
        return replace(self, otlp=otlp)

    def with_endpoint(self, endpoint: str) -> OTelConfig:
        """Create a new config with updated OTLP endpoint."""
        return self.with_otlp(self.otlp.with_endpoint(endpoint))

    def with_batch(self, batch: BatchConfig) -> OTelConfig:
        return replace(self, batch=batch)

    def with_propagators(self, *propagators: str) -> OTelConfig:
        """Create a new config with updated propagators."""
        return replace(self, propagators=propagators)

    @classmethod
    def from_env(cls, prefix: str = DEFAULT_ENV_PREFIX) -> OTelConfig:
        """Load configuration from environment variables.

        Environment variables (with default prefix ``GQLEXT_OTEL``):
            - {PREFIX}_ENABLED: Enable tracing (true/false)
            - {PREFIX}_TRACER_NAME: Instrumentation scope name
            - {PREFIX}_INCLUDE_SOURCE: Record query text (true/false)
            - {PREFIX}_INCLUDE_VARIABLES: Record variables (true/false)
            - {PREFIX}_STRICT_SLOTS: Fail on duplicate slot entry (true/false)
            - {PREFIX}_EXPORTER: otlp, console, memory or none
            - {PREFIX}_ENDPOINT: OTLP collector endpoint
            - {PREFIX}_SERVICE_NAME: Resource service name
            - {PREFIX}_TIMEOUT: OTLP export timeout in seconds
            - {PREFIX}_BATCH_QUEUE_SIZE: Spans queued before dropping
            - {PREFIX}_BATCH_SIZE: Spans per export batch
            - {PREFIX}_PROPAGATORS: Comma-separated propagator names

        Unset variables keep their defaults.

        Raises:
            InvalidConfigValueError: If a variable holds an unparseable value.
        """
        reader = EnvReader(prefix=prefix)
        defaults = cls()

        exporter = defaults.traces_exporter
        exporter_name = reader.get("EXPORTER")
        if exporter_name is not None:
            try:
                exporter = ExporterType(exporter_name.strip().lower())
            except ValueError as e:
                key = f"{prefix}_EXPORTER"
                raise InvalidConfigValueError(
                    f"Invalid exporter for {key}",
                    config_key=key,
                    value=exporter_name,
                    expected=", ".join(t.value for t in ExporterType),
                    cause=e,
                ) from e

        config = cls(
            enabled=bool(reader.get_bool("ENABLED", defaults.enabled)),
            tracer_name=reader.get("TRACER_NAME") or defaults.tracer_name,
            include_source=bool(reader.get_bool("INCLUDE_SOURCE", defaults.include_source)),
            include_variables=bool(
                reader.get_bool("INCLUDE_VARIABLES", defaults.include_variables)
            ),
            strict_slots=bool(reader.get_bool("STRICT_SLOTS", defaults.strict_slots)),
            traces_exporter=exporter,
        )

        endpoint = reader.get("ENDPOINT")
        if endpoint:
            config = config.with_endpoint(endpoint)
        service_name = reader.get("SERVICE_NAME")
        if service_name:
            config = config.with_service_name(service_name)

        timeout = reader.get_float("TIMEOUT")
        if timeout is not None:
            config = config.with_otlp(config.otlp.with_timeout(timeout))

        batch = config.batch
        queue_size = reader.get_int("BATCH_QUEUE_SIZE")
        if queue_size is not None:
            batch = batch.with_queue_size(queue_size)
        batch_size = reader.get_int("BATCH_SIZE")
        if batch_size is not None:
            batch = batch.with_batch_size(batch_size)
        config = config.with_batch(batch)

        propagators = reader.get_list("PROPAGATORS")
        if propagators:
            config = config.with_propagators(*propagators)
        return config


@dataclass(frozen=True)
class OpenTelemetryRequestConfig:
    """Per-request tracing options stored in the ``ExtensionContext``.

    When ``parent`` holds a context, the request span is skipped and every
    phase span of the request is parented on that context instead. The
    extension never ends a span it did not start.

    Example:
        ctx = ExtensionContext()
        ctx.insert(OpenTelemetryRequestConfig.from_carrier(request.headers))
    """

    parent: Context | None = None

    def with_parent_context(self, parent: Context) -> OpenTelemetryRequestConfig:
        return replace(self, parent=parent)

    @classmethod
    def from_span(cls, span: Span) -> OpenTelemetryRequestConfig:
        """Parent the request on an already started span."""
        return cls(parent=trace.set_span_in_context(span))

    @classmethod
    def from_carrier(
        cls,
        carrier: Mapping[str, Any],
        propagators: tuple[str, ...] = DEFAULT_PROPAGATORS,
    ) -> OpenTelemetryRequestConfig:
        """Parent the request on the trace carried by incoming headers.

        A carrier without valid trace headers yields a config without a
        parent, so the request starts its own span as usual.
        """
        context = extract_context(carrier, propagators)
        if not trace.get_current_span(context).get_span_context().is_valid:
            return cls()
        return cls(parent=context)


# Preset configurations
DEFAULT_OTEL_CONFIG = OTelConfig()
"""Default configuration: OTLP export, source and variables recorded."""

DEVELOPMENT_OTEL_CONFIG = OTelConfig(
    traces_exporter=ExporterType.CONSOLE,
    resource=ResourceConfig(deployment_environment="development"),
)
"""Development configuration with the console exporter for debugging."""

PRODUCTION_OTEL_CONFIG = OTelConfig(
    include_variables=False,
    traces_exporter=ExporterType.OTLP,
    resource=ResourceConfig(deployment_environment="production"),
    otlp=OTLPExporterConfig(
        compression=OTLPCompression.GZIP,
        timeout_seconds=30.0,
    ),
    batch=BatchConfig(
        max_queue_size=4096,
        max_export_batch_size=1024,
    ),
)
"""Production configuration with batched OTLP export; variables are not recorded."""

TESTING_OTEL_CONFIG = OTelConfig(
    strict_slots=True,
    traces_exporter=ExporterType.MEMORY,
    resource=ResourceConfig(deployment_environment="testing"),
)
"""Testing configuration with the in-memory exporter and strict slots."""

DISABLED_OTEL_CONFIG = OTelConfig(
    enabled=False,
    traces_exporter=ExporterType.NONE,
)
"""Disabled configuration for environments without telemetry."""
