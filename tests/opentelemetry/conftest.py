"""Shared fixtures for the tracing tests."""

from __future__ import annotations

import pytest

from gqlext.opentelemetry import OpenTelemetry, OTelTracerProvider
from gqlext.opentelemetry.testing import create_in_memory_provider, create_test_config


@pytest.fixture
def provider():
    """In-memory tracer provider, shut down after the test."""
    provider = create_in_memory_provider()
    yield provider
    provider.shutdown()


@pytest.fixture
def tracing(provider: OTelTracerProvider) -> OpenTelemetry:
    """Tracing extension factory bound to the in-memory provider."""
    return OpenTelemetry(provider.get_tracer(), create_test_config())
