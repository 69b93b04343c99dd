"""Semantic conventions for GraphQL request telemetry.

This module defines the span names, span attribute keys and event names
recorded by the tracing extension, plus structured builders producing the
attribute dictionaries for each phase.

Keeping every key in one place keeps traces consistent across services,
so dashboards can filter on ``graphql.parentType`` or ``graphql.depth``
regardless of which service emitted the span.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

__all__ = [
    # Attribute namespace classes
    "GraphQLAttributes",
    "SpanNames",
    "EventNames",
    # Structured attribute classes
    "ParseAttributes",
    "ValidationAttributes",
    "ResolveAttributes",
    # Helper functions
    "serialize_variables",
    "create_parse_attributes",
    "create_validation_attributes",
    "create_resolve_attributes",
    "create_error_attributes",
]

logger = logging.getLogger(__name__)


class GraphQLAttributes:
    """Standard attribute names for GraphQL telemetry.

    Example:
        span.set_attribute(GraphQLAttributes.COMPLEXITY, 12)
        span.set_attribute(GraphQLAttributes.PARENT_TYPE, "Query")
    """

    NAMESPACE = "graphql"

    SOURCE = "graphql.source"
    """Query text as received."""

    VARIABLES = "graphql.variables"
    """Request variables serialized as JSON."""

    PARENT_TYPE = "graphql.parentType"
    """Name of the type owning the resolved field."""

    RETURN_TYPE = "graphql.returnType"
    """Declared return type of the resolved field."""

    RESOLVE_ID = "graphql.resolveId"
    """Per-request identifier of a field resolution."""

    ERROR = "graphql.error"
    """Error message, recorded on error events."""

    COMPLEXITY = "graphql.complexity"
    """Computed query complexity."""

    DEPTH = "graphql.depth"
    """Computed query depth."""


class SpanNames:
    """Names of the spans created for each request phase.

    Field resolution spans are named after the response path of the
    field (e.g. ``users.0.name``).
    """

    REQUEST = "request"
    PARSE = "parse"
    VALIDATION = "validation"
    EXECUTE = "execute"


class EventNames:
    """Names of span events."""

    ERROR = "error"


def serialize_variables(variables: Mapping[str, Any]) -> str | None:
    """Serialize variables to a stable JSON string.

    Keys are sorted so equal variable sets yield equal attribute values.
    Values JSON cannot represent fall back to their ``str()``.

    Returns:
        The JSON text, or None if serialization fails.
    """
    try:
        return json.dumps(dict(variables), sort_keys=True, default=str)
    except (TypeError, ValueError) as e:
        logger.debug(f"Dropping unserializable variables attribute: {e}")
        return None


@dataclass(frozen=True)
class ParseAttributes:
    """Structured parse span attributes."""

    source: str | None = None
    variables: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to attribute dictionary."""
        attrs: dict[str, Any] = {}
        if self.source is not None:
            attrs[GraphQLAttributes.SOURCE] = self.source
        if self.variables is not None:
            attrs[GraphQLAttributes.VARIABLES] = self.variables
        return attrs


@dataclass(frozen=True)
class ValidationAttributes:
    """Structured validation span attributes."""

    complexity: int = 0
    depth: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            GraphQLAttributes.COMPLEXITY: self.complexity,
            GraphQLAttributes.DEPTH: self.depth,
        }


@dataclass(frozen=True)
class ResolveAttributes:
    """Structured field resolution span attributes."""

    resolve_id: int
    parent_type: str
    return_type: str

    def to_dict(self) -> dict[str, Any]:
        return {
            GraphQLAttributes.RESOLVE_ID: self.resolve_id,
            GraphQLAttributes.PARENT_TYPE: self.parent_type,
            GraphQLAttributes.RETURN_TYPE: self.return_type,
        }


def create_parse_attributes(
    query_source: str,
    variables: Mapping[str, Any],
    include_source: bool = True,
    include_variables: bool = True,
) -> dict[str, Any]:
    """Create parse span attributes dictionary.

    Args:
        query_source: Query text.
        variables: Request variables.
        include_source: Whether to record the query text.
        include_variables: Whether to record the variables.

    Returns:
        Dictionary of parse attributes. The variables entry is absent when
        excluded or when the variables cannot be serialized.
    """
    return ParseAttributes(
        source=query_source if include_source else None,
        variables=serialize_variables(variables) if include_variables else None,
    ).to_dict()


def create_validation_attributes(complexity: int, depth: int) -> dict[str, Any]:
    """Create validation span attributes dictionary."""
    return ValidationAttributes(complexity=complexity, depth=depth).to_dict()


def create_resolve_attributes(
    resolve_id: int,
    parent_type: str,
    return_type: str,
) -> dict[str, Any]:
    """Create field resolution span attributes dictionary.

    Args:
        resolve_id: Current resolve id of the field.
        parent_type: Name of the owning type.
        return_type: Declared return type.

    Returns:
        Dictionary of resolve attributes.
    """
    return ResolveAttributes(
        resolve_id=resolve_id,
        parent_type=parent_type,
        return_type=return_type,
    ).to_dict()


def create_error_attributes(error: Any) -> dict[str, Any]:
    """Create error event attributes from an error's display text."""
    return {GraphQLAttributes.ERROR: str(error)}
