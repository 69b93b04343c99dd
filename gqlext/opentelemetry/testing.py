"""Testing utilities for extensions and the tracing integration.

This module provides a recording extension, payload builders and helpers
for inspecting finished spans collected by an in-memory exporter.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from opentelemetry.sdk.trace import ReadableSpan

from gqlext.extensions.base import BaseExtension, ExtensionContext
from gqlext.extensions.types import ResolveId, ResolveInfo
from gqlext.opentelemetry.config import DISABLED_OTEL_CONFIG, TESTING_OTEL_CONFIG, OTelConfig
from gqlext.opentelemetry.providers.tracer import OTelTracerProvider
from gqlext.opentelemetry.types import ExporterType

__all__ = [
    # Recording extension
    "RecordedCall",
    "RecordingExtension",
    "RecordingFactory",
    # Payload builders
    "make_resolve_info",
    # Test helpers
    "create_test_config",
    "create_disabled_config",
    "create_in_memory_provider",
    "spans_by_name",
    "find_span",
    "parent_of",
    "children_of",
]


@dataclass
class RecordedCall:
    """One hook invocation seen by a RecordingExtension."""

    event: str
    args: tuple[Any, ...] = ()
    thread_id: int = field(default_factory=threading.get_ident)
    timestamp: float = field(default_factory=time.time)


class RecordingExtension(BaseExtension):
    """Extension recording every hook invocation.

    Args:
        fail_on: Events whose hook raises RuntimeError after recording.

    Example:
        recorder = RecordingExtension(fail_on={"parse_start"})
        with Extensions([recorder]) as extensions:
            extensions.start()
        assert recorder.events == ["start", "close"]
    """

    def __init__(self, fail_on: Sequence[str] | set[str] = ()) -> None:
        self.calls: list[RecordedCall] = []
        self.contexts: list[ExtensionContext] = []
        self._fail_on = frozenset(fail_on)
        self._lock = threading.Lock()

    def _record(self, event: str, ctx: ExtensionContext | None, *args: Any) -> None:
        with self._lock:
            self.calls.append(RecordedCall(event, args))
            if ctx is not None:
                self.contexts.append(ctx)
        if event in self._fail_on:
            raise RuntimeError(f"{event} failed")

    @property
    def events(self) -> list[str]:
        """Recorded event names in call order."""
        with self._lock:
            return [call.event for call in self.calls]

    def count(self, event: str) -> int:
        return self.events.count(event)

    def reset(self) -> None:
        with self._lock:
            self.calls.clear()
            self.contexts.clear()

    def start(self, ctx: ExtensionContext) -> None:
        self._record("start", ctx)

    def end(self, ctx: ExtensionContext) -> None:
        self._record("end", ctx)

    def parse_start(self, ctx: ExtensionContext, query_source: str, variables: Any) -> None:
        self._record("parse_start", ctx, query_source, variables)

    def parse_end(self, ctx: ExtensionContext, document: Any) -> None:
        self._record("parse_end", ctx, document)

    def validation_start(self, ctx: ExtensionContext) -> None:
        self._record("validation_start", ctx)

    def validation_end(self, ctx: ExtensionContext, result: Any) -> None:
        self._record("validation_end", ctx, result)

    def execution_start(self, ctx: ExtensionContext) -> None:
        self._record("execution_start", ctx)

    def execution_end(self, ctx: ExtensionContext) -> None:
        self._record("execution_end", ctx)

    def resolve_start(self, ctx: ExtensionContext, info: ResolveInfo) -> None:
        self._record("resolve_start", ctx, info)

    def resolve_end(self, ctx: ExtensionContext, info: ResolveInfo) -> None:
        self._record("resolve_end", ctx, info)

    def error(self, ctx: ExtensionContext, err: Any) -> None:
        self._record("error", ctx, err)

    def close(self) -> None:
        self._record("close", None)


class RecordingFactory:
    """Factory handing out RecordingExtensions and keeping every instance."""

    def __init__(self, fail_on: Sequence[str] | set[str] = ()) -> None:
        self._fail_on = fail_on
        self.instances: list[RecordingExtension] = []

    def create(self) -> RecordingExtension:
        extension = RecordingExtension(fail_on=self._fail_on)
        self.instances.append(extension)
        return extension


def make_resolve_info(
    current: int,
    parent: int | None = None,
    path: str | None = None,
    parent_type: str = "Query",
    return_type: str = "String",
) -> ResolveInfo:
    """Build a ResolveInfo; the path defaults to ``field{current}``."""
    return ResolveInfo(
        resolve_id=ResolveId(current=current, parent=parent),
        path=path or f"field{current}",
        parent_type=parent_type,
        return_type=return_type,
    )


def create_test_config() -> OTelConfig:
    """Create a configuration for testing (in-memory exporter, strict slots)."""
    return TESTING_OTEL_CONFIG


def create_disabled_config() -> OTelConfig:
    return DISABLED_OTEL_CONFIG


def create_in_memory_provider(config: OTelConfig | None = None) -> OTelTracerProvider:
    """Create a provider collecting finished spans in memory.

    The exporter is forced to ``MEMORY`` whatever ``config`` says.
    """
    config = (config or create_test_config()).with_exporter(ExporterType.MEMORY)
    return OTelTracerProvider(config.with_enabled(True))


def spans_by_name(spans: Sequence[ReadableSpan]) -> dict[str, list[ReadableSpan]]:
    """Group finished spans by name."""
    result: dict[str, list[ReadableSpan]] = {}
    for span in spans:
        result.setdefault(span.name, []).append(span)
    return result


def find_span(spans: Sequence[ReadableSpan], name: str) -> ReadableSpan:
    """Return the only span called ``name``.

    Raises:
        AssertionError: If there is not exactly one such span.
    """
    matches = [span for span in spans if span.name == name]
    assert len(matches) == 1, f"expected one span named {name!r}, found {len(matches)}"
    return matches[0]


def parent_of(span: ReadableSpan, spans: Sequence[ReadableSpan]) -> ReadableSpan | None:
    """Return the finished span that is ``span``'s parent, if collected."""
    if span.parent is None:
        return None
    for candidate in spans:
        if candidate.context.span_id == span.parent.span_id:
            return candidate
    return None


def children_of(span: ReadableSpan, spans: Sequence[ReadableSpan]) -> list[ReadableSpan]:
    """Return the finished spans whose parent is ``span``."""
    span_id = span.context.span_id
    return [
        candidate
        for candidate in spans
        if candidate.parent is not None and candidate.parent.span_id == span_id
    ]
