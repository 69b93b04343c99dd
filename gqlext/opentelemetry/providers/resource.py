"""OpenTelemetry Resource creation for gqlext.

A Resource identifies the GraphQL service producing the request spans.
"""

from __future__ import annotations

import os
import platform
from typing import Any

from opentelemetry.sdk.resources import Resource

from gqlext.opentelemetry.config import ResourceConfig

__all__ = [
    "create_resource",
    "merge_resources",
]


def create_resource(
    config: ResourceConfig | None = None,
    detect: bool = True,
) -> Resource:
    """Create an OpenTelemetry Resource from configuration.

    Args:
        config: Resource configuration. If None, uses defaults.
        detect: Whether to add host and process attributes.

    Returns:
        OpenTelemetry Resource instance.

    Example:
        resource = create_resource(ResourceConfig(service_name="catalog"))
    """
    config = config or ResourceConfig()
    attributes = _get_auto_detected_attributes() if detect else {}
    # Configured attributes win over detected ones
    attributes.update(config.to_attributes())
    return Resource.create(attributes)


def merge_resources(*resources: Resource) -> Resource:
    """Merge resources; later resources take precedence on conflicting keys."""
    if not resources:
        return Resource.create({})

    result = resources[0]
    for resource in resources[1:]:
        result = result.merge(resource)
    return result


def _get_auto_detected_attributes() -> dict[str, Any]:
    return {
        "host.name": platform.node(),
        "host.arch": platform.machine(),
        "os.type": platform.system().lower(),
        "process.runtime.name": platform.python_implementation(),
        "process.runtime.version": platform.python_version(),
        "process.pid": os.getpid(),
    }
