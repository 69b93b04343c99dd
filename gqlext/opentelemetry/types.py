"""OpenTelemetry type definitions for gqlext.

This module defines the context-tree slot keys, exporter enums and the
attribute type aliases used throughout the tracing layer.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Sequence

__all__ = [
    # Slot keys
    "Phase",
    "FieldSlot",
    "SlotKey",
    # Enums
    "OTLPProtocol",
    "OTLPCompression",
    "ExporterType",
    # Type aliases
    "Attributes",
    "AttributeValue",
    "ResourceAttributes",
    "ContextCarrier",
]


class Phase(Enum):
    """Fixed request phases that own a context slot for the whole phase."""

    REQUEST = "request"
    PARSE = "parse"
    VALIDATION = "validation"
    EXECUTION = "execution"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class FieldSlot:
    """Context slot of one field resolution, keyed by its resolve id."""

    resolve_id: int

    def __str__(self) -> str:
        return f"field:{self.resolve_id}"


SlotKey = Phase | FieldSlot
"""Key of a context-tree slot: a fixed phase or a field resolution."""


class OTLPProtocol(Enum):
    """OTLP transport protocol options."""

    GRPC = "grpc"
    """gRPC protocol - recommended for high-throughput scenarios."""

    HTTP_PROTOBUF = "http/protobuf"
    """HTTP with Protocol Buffers encoding."""


class OTLPCompression(Enum):
    """OTLP compression options."""

    NONE = "none"
    GZIP = "gzip"


class ExporterType(Enum):
    """Types of span exporters."""

    OTLP = "otlp"
    """OTLP exporter - sends data to OpenTelemetry collector."""

    CONSOLE = "console"
    """Console exporter - prints to stdout for debugging."""

    MEMORY = "memory"
    """In-memory exporter - stores spans in memory for testing."""

    NONE = "none"
    """No-op exporter - discards all data."""


AttributeValue = str | int | float | bool | Sequence[str] | Sequence[int] | Sequence[float] | Sequence[bool]
"""Valid OpenTelemetry attribute value types."""

Attributes = Mapping[str, AttributeValue]
"""Span attributes mapping."""

ResourceAttributes = Mapping[str, AttributeValue]
"""Resource attributes identifying the entity producing telemetry."""

ContextCarrier = dict[str, Any]
"""Carrier for context propagation (typically HTTP headers)."""
