"""Tests for OpenTelemetry providers and global setup."""

import pytest
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.util._once import Once

from gqlext.opentelemetry import (
    InMemorySpanExporter,
    OTelConfig,
    OTelProviderError,
    OTelTracerProvider,
    ResourceConfig,
    configure_opentelemetry,
    create_tracer_provider,
    get_configured_provider,
    set_global_tracer_provider,
    shutdown_opentelemetry,
)
from gqlext.opentelemetry.providers import (
    create_resource,
    get_global_tracer_provider,
    merge_resources,
)
from gqlext.opentelemetry.testing import create_test_config
from gqlext.opentelemetry.types import ExporterType, OTLPProtocol


class TestCreateResource:
    """Tests for create_resource."""

    def test_configured_attributes(self):
        """Test configured attributes are present."""
        resource = create_resource(ResourceConfig(service_name="catalog"), detect=False)
        assert resource.attributes["service.name"] == "catalog"
        assert resource.attributes["deployment.environment"] == "development"
        assert "host.name" not in resource.attributes

    def test_detected_attributes(self):
        """Test host and process attributes are detected."""
        resource = create_resource()
        assert "process.pid" in resource.attributes
        assert resource.attributes["service.name"] == "graphql-service"

    def test_configured_wins(self):
        """Test configured attributes override detected ones."""
        config = ResourceConfig().with_attributes(**{"host.name": "api-1"})
        assert create_resource(config).attributes["host.name"] == "api-1"

    def test_merge_resources(self):
        """Test later resources take precedence."""
        merged = merge_resources(
            Resource.create({"service.name": "a", "team": "x"}),
            Resource.create({"service.name": "b"}),
        )
        assert merged.attributes["service.name"] == "b"
        assert merged.attributes["team"] == "x"


class TestOTelTracerProvider:
    """Tests for OTelTracerProvider."""

    def test_memory_exporter_collects(self):
        """Test finished spans are collected in memory."""
        with OTelTracerProvider(create_test_config()) as provider:
            provider.get_tracer().start_span("op").end()
            assert [s.name for s in provider.get_collected_spans()] == ["op"]

            provider.clear_collected_spans()
            assert provider.get_collected_spans() == []

    def test_resource_applied(self):
        """Test spans carry the configured resource."""
        config = create_test_config().with_service_name("catalog")
        with OTelTracerProvider(config) as provider:
            provider.get_tracer().start_span("op").end()
            span = provider.get_collected_spans()[0]
        assert span.resource.attributes["service.name"] == "catalog"

    def test_tracer_name(self):
        """Test the tracer defaults to the configured name."""
        with OTelTracerProvider(create_test_config().with_tracer_name("catalog")) as provider:
            provider.get_tracer().start_span("a").end()
            provider.get_tracer("other", "2.0").start_span("b").end()
            scopes = {s.name: s.instrumentation_scope for s in provider.get_collected_spans()}
        assert scopes["a"].name == "catalog"
        assert (scopes["b"].name, scopes["b"].version) == ("other", "2.0")

    def test_custom_exporter(self):
        """Test a custom in-memory exporter is used for collection."""
        exporter = InMemorySpanExporter()
        config = OTelConfig(traces_exporter=ExporterType.CONSOLE)
        with OTelTracerProvider(config, exporter=exporter) as provider:
            provider.get_tracer().start_span("op").end()
            assert [s.name for s in exporter.get_finished_spans()] == ["op"]
            assert len(provider.get_collected_spans()) == 1

    def test_collect_requires_memory_exporter(self):
        """Test collection is refused for other exporters."""
        with OTelTracerProvider(OTelConfig(traces_exporter=ExporterType.NONE)) as provider:
            with pytest.raises(OTelProviderError) as exc_info:
                provider.get_collected_spans()
        assert exc_info.value.provider_type == "tracer"

    def test_none_exporter_records_nothing(self):
        """Test the NONE exporter installs no processor."""
        with OTelTracerProvider(OTelConfig(traces_exporter=ExporterType.NONE)) as provider:
            assert provider.is_enabled
            span = provider.get_tracer().start_span("op")
            assert span.get_span_context().is_valid
            span.end()

    def test_disabled(self):
        """Test a disabled provider hands out no-op tracers."""
        provider = OTelTracerProvider(OTelConfig(enabled=False))
        assert not provider.is_enabled
        assert provider.provider is None
        assert isinstance(provider.get_tracer(), trace.NoOpTracer)
        assert provider.force_flush() is True
        assert provider.shutdown() is True

    def test_shutdown_idempotent(self):
        """Test shutting down twice is harmless."""
        provider = OTelTracerProvider(create_test_config())
        assert provider.shutdown() is True
        assert provider.shutdown() is True

    def test_otlp_grpc_uses_batching(self):
        """Test OTLP export is batched."""
        pytest.importorskip("opentelemetry.exporter.otlp.proto.grpc")
        config = OTelConfig().with_endpoint("http://localhost:4317")
        provider = OTelTracerProvider(config)
        try:
            assert isinstance(provider._processor, BatchSpanProcessor)
        finally:
            provider.shutdown()

    def test_otlp_http(self):
        """Test the HTTP protocol builds the HTTP exporter."""
        pytest.importorskip("opentelemetry.exporter.otlp.proto.http")
        config = OTelConfig().with_otlp(
            OTelConfig().otlp.with_protocol(OTLPProtocol.HTTP_PROTOBUF)
            .with_endpoint("http://localhost:4318/v1/traces")
        )
        provider = OTelTracerProvider(config)
        try:
            assert type(provider._exporter).__module__.startswith(
                "opentelemetry.exporter.otlp.proto.http"
            )
        finally:
            provider.shutdown()

    def test_create_tracer_provider(self):
        """Test the factory function."""
        provider = create_tracer_provider(create_test_config())
        assert isinstance(provider, OTelTracerProvider)
        provider.shutdown()


class TestConfigureOpenTelemetry:
    """Tests for process-wide setup."""

    def test_configure_and_shutdown(self):
        """Test the configured provider is kept until shutdown."""
        provider = configure_opentelemetry(create_test_config(), set_global=False)
        try:
            assert provider is not None
            assert get_configured_provider() is provider
        finally:
            shutdown_opentelemetry()
        assert get_configured_provider() is None

    def test_reconfigure_replaces(self):
        """Test configuring again shuts down the previous provider."""
        first = configure_opentelemetry(create_test_config(), set_global=False)
        second = configure_opentelemetry(create_test_config(), set_global=False)
        try:
            assert first is not second
            assert get_configured_provider() is second
        finally:
            shutdown_opentelemetry()

    def test_disabled(self):
        """Test a disabled configuration installs nothing."""
        assert configure_opentelemetry(OTelConfig(enabled=False), set_global=False) is None
        assert get_configured_provider() is None

    def test_shutdown_without_configure(self):
        """Test shutdown is a no-op when nothing was configured."""
        shutdown_opentelemetry()
        assert get_configured_provider() is None


class TestGlobalTracerProvider:
    """Tests for installing the global tracer provider."""

    @pytest.fixture(autouse=True)
    def reset_global_provider(self, monkeypatch):
        """Allow each test to install a global provider once."""
        monkeypatch.setattr(trace, "_TRACER_PROVIDER_SET_ONCE", Once())
        monkeypatch.setattr(trace, "_TRACER_PROVIDER", None)

    def test_set_wrapped_provider(self):
        """Test the SDK provider inside OTelTracerProvider is installed."""
        with OTelTracerProvider(create_test_config()) as provider:
            set_global_tracer_provider(provider)
            assert get_global_tracer_provider() is provider.provider

    def test_set_sdk_provider(self):
        """Test a plain SDK provider is installed as is."""
        sdk_provider = TracerProvider()
        try:
            set_global_tracer_provider(sdk_provider)
            assert get_global_tracer_provider() is sdk_provider
        finally:
            sdk_provider.shutdown()

    def test_disabled_provider_ignored(self):
        """Test a disabled provider leaves the global provider unset."""
        set_global_tracer_provider(OTelTracerProvider(OTelConfig(enabled=False)))
        assert isinstance(get_global_tracer_provider(), trace.ProxyTracerProvider)

    def test_configure_sets_global(self):
        """Test configure_opentelemetry installs its provider globally."""
        provider = configure_opentelemetry(create_test_config())
        try:
            assert get_global_tracer_provider() is provider.provider
        finally:
            shutdown_opentelemetry()
