"""Context propagation between carriers and OpenTelemetry contexts.

Incoming requests usually carry the caller's trace in W3C ``traceparent`` /
``baggage`` headers. Extracting them yields an OpenTelemetry context whose
current span becomes the parent of the request span.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from opentelemetry import context as otel_context
from opentelemetry import trace
from opentelemetry.baggage.propagation import W3CBaggagePropagator
from opentelemetry.propagators.composite import CompositePropagator
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from gqlext.opentelemetry.exceptions import OTelContextError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from opentelemetry.context import Context
    from opentelemetry.trace import Span

    from gqlext.opentelemetry.types import ContextCarrier

__all__ = [
    "DEFAULT_PROPAGATORS",
    "ContextBridge",
    "inject_context",
    "extract_context",
    "span_from_context",
    "trace_ids",
]

logger = logging.getLogger(__name__)

DEFAULT_PROPAGATORS: tuple[str, ...] = ("tracecontext", "baggage")


class ContextBridge:
    """Injects and extracts OpenTelemetry contexts through text carriers.

    Example:
        bridge = ContextBridge()

        # Parent context for an incoming request
        parent = bridge.extract(request.headers)

        # Forward the active trace to a downstream call
        headers = {}
        bridge.inject(headers)
    """

    def __init__(self, propagators: tuple[str, ...] = DEFAULT_PROPAGATORS) -> None:
        """Initialize ContextBridge.

        Args:
            propagators: Propagator names to combine, in order.
                Defaults to W3C Trace Context and Baggage.
        """
        self._propagators = propagators
        self._propagator = CompositePropagator(
            [p for p in (self._get_propagator(name) for name in propagators) if p is not None]
        )

    @property
    def propagators(self) -> tuple[str, ...]:
        return self._propagators

    def _get_propagator(self, name: str) -> Any:
        """Get a propagator by name, or None if it is unknown or not installed."""
        if name == "tracecontext":
            return TraceContextTextMapPropagator()
        if name == "baggage":
            return W3CBaggagePropagator()
        if name in ("b3", "b3multi"):
            try:
                from opentelemetry.propagators.b3 import B3MultiFormat
            except ImportError:
                logger.debug("B3 propagator not installed")
                return None
            return B3MultiFormat()
        logger.warning(f"Unknown propagator: {name}")
        return None

    def inject(
        self,
        carrier: ContextCarrier,
        context: Context | None = None,
    ) -> None:
        """Inject context into a carrier (e.g., HTTP headers).

        Args:
            carrier: Dictionary to inject context into.
            context: OpenTelemetry context to inject. If None, uses current.
        """
        try:
            ctx = context if context is not None else otel_context.get_current()
            self._propagator.inject(carrier, context=ctx)
        except Exception as e:
            raise OTelContextError(
                message="Failed to inject context into carrier",
                operation="inject",
                propagator=str(self._propagators),
                original_error=e,
            ) from e

    def extract(self, carrier: Mapping[str, Any]) -> Context:
        """Extract context from a carrier (e.g., HTTP headers).

        Header names are matched case-insensitively.

        Returns:
            Extracted OpenTelemetry context; an empty context when the
            carrier holds no trace headers.
        """
        normalized = {str(key).lower(): value for key, value in carrier.items()}
        try:
            return self._propagator.extract(normalized)
        except Exception as e:
            raise OTelContextError(
                message="Failed to extract context from carrier",
                operation="extract",
                propagator=str(self._propagators),
                original_error=e,
            ) from e


def inject_context(
    carrier: ContextCarrier,
    context: Context | None = None,
    propagators: tuple[str, ...] = DEFAULT_PROPAGATORS,
) -> None:
    """Inject a context (the current one by default) into a carrier.

    Example:
        headers = {}
        inject_context(headers)
        # headers now contains traceparent, baggage, etc.
    """
    ContextBridge(propagators=propagators).inject(carrier, context)


def extract_context(
    carrier: Mapping[str, Any],
    propagators: tuple[str, ...] = DEFAULT_PROPAGATORS,
) -> Context:
    """Extract an OpenTelemetry context from a carrier.

    Example:
        parent = extract_context(request.headers)
        ctx.insert(OpenTelemetryRequestConfig(parent=parent))
    """
    return ContextBridge(propagators=propagators).extract(carrier)


def span_from_context(context: Context | None) -> Span | None:
    """Return the valid span carried by a context, if any."""
    if context is None:
        return None
    span = trace.get_current_span(context)
    if not span.get_span_context().is_valid:
        return None
    return span


def trace_ids(context: Context | None = None) -> dict[str, Any]:
    """Hex trace/span ids of a context (the current one by default).

    Returns:
        Dictionary with trace_id, span_id, sampled; empty when the context
        carries no valid span.
    """
    ctx = context if context is not None else otel_context.get_current()
    span_context = trace.get_current_span(ctx).get_span_context()
    if not span_context.is_valid:
        return {}
    return {
        "trace_id": format(span_context.trace_id, "032x"),
        "span_id": format(span_context.span_id, "016x"),
        "sampled": bool(span_context.trace_flags.sampled),
    }
