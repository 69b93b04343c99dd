"""Tests for context propagation helpers."""

import logging

import pytest
from opentelemetry import baggage, trace
from opentelemetry.trace import NonRecordingSpan, SpanContext, TraceFlags

from gqlext.opentelemetry.exceptions import OTelContextError
from gqlext.opentelemetry.propagation import (
    ContextBridge,
    extract_context,
    inject_context,
    span_from_context,
    trace_ids,
)

TRACEPARENT = "00-0af7651916cd43dd8448eb211c80319c-b7ad6b7169203331-01"


def remote_context():
    span = NonRecordingSpan(
        SpanContext(
            trace_id=0x0AF7651916CD43DD8448EB211C80319C,
            span_id=0xB7AD6B7169203331,
            is_remote=True,
            trace_flags=TraceFlags(TraceFlags.SAMPLED),
        )
    )
    return trace.set_span_in_context(span)


class TestContextBridge:
    """Tests for ContextBridge."""

    def test_default_propagators(self):
        """Test W3C trace context and baggage are the default."""
        assert ContextBridge().propagators == ("tracecontext", "baggage")

    def test_inject(self):
        """Test a traceparent header is written."""
        carrier: dict[str, str] = {}
        ContextBridge().inject(carrier, remote_context())
        assert carrier["traceparent"] == TRACEPARENT

    def test_inject_current(self):
        """Test the current context is injected by default."""
        carrier: dict[str, str] = {}
        with trace.use_span(trace.get_current_span(remote_context())):
            ContextBridge().inject(carrier)
        assert carrier["traceparent"] == TRACEPARENT

    def test_extract_case_insensitive(self):
        """Test header names are matched regardless of case."""
        context = ContextBridge().extract({"TraceParent": TRACEPARENT})
        span_context = trace.get_current_span(context).get_span_context()
        assert span_context.trace_id == 0x0AF7651916CD43DD8448EB211C80319C
        assert span_context.is_remote

    def test_baggage(self):
        """Test baggage round-trips through a carrier."""
        carrier: dict[str, str] = {}
        ContextBridge().inject(carrier, baggage.set_baggage("tenant", "acme"))
        extracted = ContextBridge().extract(carrier)
        assert baggage.get_baggage("tenant", extracted) == "acme"

    def test_unknown_propagator_ignored(self, caplog):
        """Test unknown propagator names are skipped with a warning."""
        with caplog.at_level(logging.WARNING, logger="gqlext.opentelemetry.propagation"):
            bridge = ContextBridge(("tracecontext", "jaeger"))
        assert "Unknown propagator: jaeger" in caplog.text

        carrier: dict[str, str] = {}
        bridge.inject(carrier, remote_context())
        assert "traceparent" in carrier

    def test_inject_failure(self):
        """Test carrier failures raise OTelContextError."""

        class ReadOnly(dict):
            def __setitem__(self, key, value):
                raise TypeError("read-only carrier")

        with pytest.raises(OTelContextError) as exc_info:
            ContextBridge().inject(ReadOnly(), remote_context())
        assert exc_info.value.operation == "inject"
        assert isinstance(exc_info.value.original_error, TypeError)


class TestModuleFunctions:
    """Tests for module-level helpers."""

    def test_inject_then_extract(self):
        """Test a context survives a round trip through headers."""
        headers: dict[str, str] = {}
        inject_context(headers, remote_context())
        span = span_from_context(extract_context(headers))
        assert span is not None
        assert span.get_span_context().span_id == 0xB7AD6B7169203331

    def test_extract_empty_carrier(self):
        """Test a carrier without headers carries no span."""
        assert span_from_context(extract_context({})) is None

    def test_span_from_none(self):
        """Test a missing context carries no span."""
        assert span_from_context(None) is None

    def test_trace_ids(self):
        """Test hex ids for log correlation."""
        assert trace_ids(remote_context()) == {
            "trace_id": "0af7651916cd43dd8448eb211c80319c",
            "span_id": "b7ad6b7169203331",
            "sampled": True,
        }

    def test_trace_ids_without_span(self):
        """Test no ids outside a trace."""
        assert trace_ids() == {}
