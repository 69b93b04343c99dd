"""Semantic conventions for GraphQL request telemetry.

This module provides standardized span names and attribute keys for
GraphQL request phases and field resolutions.
"""

from gqlext.opentelemetry.semantic.attributes import (
    EventNames,
    GraphQLAttributes,
    ParseAttributes,
    ResolveAttributes,
    SpanNames,
    ValidationAttributes,
    create_error_attributes,
    create_parse_attributes,
    create_resolve_attributes,
    create_validation_attributes,
    serialize_variables,
)

__all__ = [
    # Main attribute namespace
    "GraphQLAttributes",
    "SpanNames",
    "EventNames",
    # Structured attribute classes
    "ParseAttributes",
    "ValidationAttributes",
    "ResolveAttributes",
    # Factory functions
    "serialize_variables",
    "create_parse_attributes",
    "create_validation_attributes",
    "create_resolve_attributes",
    "create_error_attributes",
]
