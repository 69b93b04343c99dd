"""OpenTelemetry tracing extension.

One ``OpenTelemetryExtension`` traces one request. It creates a span per
request phase and per field resolution and links them into a single tree:

    request
    ├── parse
    ├── validation
    └── execute
        ├── user
        │   └── user.name
        └── posts
            ├── posts.0.title
            └── posts.1.title

Spans are parked in a ``ContextTree`` between their begin and end events.
A field's span is parented on the span of its enclosing field (looked up by
the parent resolve id) or on the execution span for top-level fields. When
no parent span can be found the field is simply not traced, and neither
are its descendants.

Tracing never interferes with the request: every backend failure is logged
and swallowed, and missing spans are silent no-ops.

Example:
    provider = OTelTracerProvider(OTelConfig().with_service_name("catalog"))
    factories = [OpenTelemetry(provider.get_tracer())]

    with Extensions.from_factories(factories, ExtensionContext()) as extensions:
        extensions.start()
        ...
        extensions.end()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.trace import SpanKind, Status, StatusCode

from gqlext.exceptions import ContextSlotError
from gqlext.extensions.base import BaseExtension
from gqlext.opentelemetry.config import OpenTelemetryRequestConfig, OTelConfig
from gqlext.opentelemetry.context_tree import ContextTree
from gqlext.opentelemetry.semantic.attributes import (
    EventNames,
    SpanNames,
    create_error_attributes,
    create_parse_attributes,
    create_resolve_attributes,
    create_validation_attributes,
)
from gqlext.opentelemetry.types import FieldSlot, Phase

if TYPE_CHECKING:
    from opentelemetry.trace import Tracer, TracerProvider

    from gqlext.extensions.base import Extension, ExtensionContext
    from gqlext.extensions.types import ResolveInfo, ServerError, ValidationResult, Variables
    from gqlext.opentelemetry.providers.tracer import OTelTracerProvider
    from gqlext.opentelemetry.types import SlotKey

__all__ = [
    "OpenTelemetry",
    "OpenTelemetryExtension",
    "create_opentelemetry_extension",
]

logger = logging.getLogger(__name__)


class OpenTelemetryExtension(BaseExtension):
    """Traces one request as a tree of OpenTelemetry spans.

    Created by the ``OpenTelemetry`` factory; not meant to be shared
    between requests.
    """

    def __init__(self, tracer: Tracer, config: OTelConfig | None = None) -> None:
        """Initialize OpenTelemetryExtension.

        Args:
            tracer: Tracer creating the spans.
            config: Tracing configuration.
        """
        self._tracer = tracer
        self._config = config or OTelConfig()
        self._tree = ContextTree(strict=self._config.strict_slots)
        self._external_parent = False

    @property
    def tree(self) -> ContextTree:
        """Live contexts of the request."""
        return self._tree

    # Span helpers

    def _start_span(
        self,
        name: str,
        parent: Context | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> Context | None:
        """Start a server span and return a context carrying it.

        Without ``parent`` the span starts a new trace; the current
        context of the calling thread or task is never consulted.
        """
        if parent is None:
            parent = Context()
        try:
            span = self._tracer.start_span(
                name,
                context=parent,
                kind=SpanKind.SERVER,
                attributes=attributes,
            )
            return trace.set_span_in_context(span, parent)
        except Exception as e:
            logger.warning(f"Failed to start span '{name}': {e}")
            return None

    def _enter(self, key: SlotKey, context: Context | None) -> None:
        if context is None:
            return
        try:
            self._tree.enter(key, context)
        except ContextSlotError:
            span = trace.get_current_span(context)
            span.set_status(Status(StatusCode.ERROR, f"context slot {key} already live"))
            span.end()
            raise

    def _finish(self, key: SlotKey, attributes: dict[str, Any] | None = None) -> None:
        """Exit ``key`` and end its span, unless the span is not ours."""
        if attributes:
            context = self._tree.get(key)
            if context is not None:
                self._set_attributes(context, attributes)

        with self._tree.exiting(key) as context:
            if context is None:
                return
            if key is Phase.REQUEST and self._external_parent:
                return
            try:
                trace.get_current_span(context).end()
            except Exception as e:
                logger.warning(f"Failed to end span for slot {key}: {e}")

    @staticmethod
    def _set_attributes(context: Context, attributes: dict[str, Any]) -> None:
        try:
            trace.get_current_span(context).set_attributes(attributes)
        except Exception as e:
            logger.warning(f"Failed to set span attributes: {e}")

    # Lifecycle events

    def start(self, ctx: ExtensionContext) -> None:
        request_config = ctx.data_opt(OpenTelemetryRequestConfig)
        if request_config is not None and request_config.parent is not None:
            self._external_parent = True
            self._tree.enter(Phase.REQUEST, request_config.parent)
            return
        self._enter(Phase.REQUEST, self._start_span(SpanNames.REQUEST))

    def end(self, ctx: ExtensionContext) -> None:
        self._finish(Phase.REQUEST)

    def parse_start(self, ctx: ExtensionContext, query_source: str, variables: Variables) -> None:
        parent = self._tree.get(Phase.REQUEST)
        if parent is None:
            return
        attributes = create_parse_attributes(
            query_source,
            variables,
            include_source=self._config.include_source,
            include_variables=self._config.include_variables,
        )
        self._enter(Phase.PARSE, self._start_span(SpanNames.PARSE, parent, attributes))

    def parse_end(self, ctx: ExtensionContext, document: Any) -> None:
        self._finish(Phase.PARSE)

    def validation_start(self, ctx: ExtensionContext) -> None:
        parent = self._tree.get(Phase.REQUEST)
        if parent is None:
            return
        self._enter(Phase.VALIDATION, self._start_span(SpanNames.VALIDATION, parent))

    def validation_end(self, ctx: ExtensionContext, result: ValidationResult) -> None:
        self._finish(
            Phase.VALIDATION,
            create_validation_attributes(result.complexity, result.depth),
        )

    def execution_start(self, ctx: ExtensionContext) -> None:
        # Execution is always traced so fields have a parent
        parent = self._tree.get(Phase.REQUEST)
        self._enter(Phase.EXECUTION, self._start_span(SpanNames.EXECUTE, parent))

    def execution_end(self, ctx: ExtensionContext) -> None:
        self._finish(Phase.EXECUTION)

    def resolve_start(self, ctx: ExtensionContext, info: ResolveInfo) -> None:
        resolve_id = info.resolve_id
        parent_key: SlotKey = (
            FieldSlot(resolve_id.parent) if resolve_id.parent else Phase.EXECUTION
        )
        parent = self._tree.get(parent_key)
        if parent is None:
            return
        attributes = create_resolve_attributes(
            resolve_id.current,
            info.parent_type,
            info.return_type,
        )
        self._enter(
            FieldSlot(resolve_id.current),
            self._start_span(info.path, parent, attributes),
        )

    def resolve_end(self, ctx: ExtensionContext, info: ResolveInfo) -> None:
        self._finish(FieldSlot(info.resolve_id.current))

    def error(self, ctx: ExtensionContext, err: ServerError) -> None:
        context = self._tree.get(Phase.EXECUTION)
        if context is None:
            return
        try:
            trace.get_current_span(context).add_event(
                EventNames.ERROR,
                create_error_attributes(err),
            )
        except Exception as e:
            logger.warning(f"Failed to record error event: {e}")

    def close(self) -> None:
        """End every span the request left open.

        Abandoned spans get an error status. An external request parent
        is released without being ended.
        """
        abandoned = self._tree.drain()
        if not abandoned:
            return

        logger.debug(f"Closing {len(abandoned)} abandoned tracing context(s)")
        for key, context in abandoned:
            if key is Phase.REQUEST and self._external_parent:
                continue
            try:
                span = trace.get_current_span(context)
                span.set_status(Status(StatusCode.ERROR, "request scope left before span ended"))
                span.end()
            except Exception as e:
                logger.warning(f"Failed to end abandoned span for slot {key}: {e}")


class OpenTelemetry:
    """Factory creating one ``OpenTelemetryExtension`` per request.

    When the configuration is disabled the factory hands out no-op
    extensions.

    Example:
        schema_extensions = [OpenTelemetry(tracer)]
        schema_extensions = [OpenTelemetry(tracer, PRODUCTION_OTEL_CONFIG)]
    """

    def __init__(self, tracer: Tracer, config: OTelConfig | None = None) -> None:
        self._tracer = tracer
        self._config = config or OTelConfig()

    @property
    def tracer(self) -> Tracer:
        return self._tracer

    @property
    def config(self) -> OTelConfig:
        return self._config

    def create(self) -> Extension:
        if not self._config.enabled:
            return BaseExtension()
        return OpenTelemetryExtension(self._tracer, self._config)


def create_opentelemetry_extension(
    tracer_provider: OTelTracerProvider | TracerProvider | None = None,
    config: OTelConfig | None = None,
) -> OpenTelemetry:
    """Create an ``OpenTelemetry`` factory from a tracer provider.

    Args:
        tracer_provider: ``OTelTracerProvider``, SDK ``TracerProvider`` or
            None for the global provider.
        config: Tracing configuration; its ``tracer_name`` names the tracer.

    Returns:
        Configured extension factory.

    Example:
        factory = create_opentelemetry_extension(
            OTelTracerProvider(TESTING_OTEL_CONFIG),
            TESTING_OTEL_CONFIG,
        )
    """
    config = config or OTelConfig()
    if tracer_provider is None:
        tracer = trace.get_tracer(config.tracer_name)
    else:
        tracer = tracer_provider.get_tracer(config.tracer_name)
    return OpenTelemetry(tracer, config)
