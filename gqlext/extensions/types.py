"""Event payloads handed to extensions by the execution engine.

All payloads are immutable snapshots; extensions may read them from any
thread without synchronization.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


__all__ = [
    "ResolveId",
    "ResolveInfo",
    "ServerError",
    "ValidationResult",
    "Variables",
]


Variables = Mapping[str, Any]
"""Request variables by name; serializable to JSON."""


@dataclass(frozen=True, slots=True)
class ResolveId:
    """Identity of one field resolution within a request.

    Attributes:
        current: Unique id of this resolution within the request.
        parent: Id of the enclosing resolution; None or 0 for a field
            selected directly under the operation.
    """

    current: int
    parent: int | None = None

    @property
    def is_top_level(self) -> bool:
        """True when the field has no enclosing field resolution."""
        return not self.parent


@dataclass(frozen=True, slots=True)
class ResolveInfo:
    """Descriptor of a field resolution, passed to resolve_start/resolve_end.

    Attributes:
        resolve_id: Resolution identity pair.
        path: Response path of the field, e.g. ``"user.friends.0.name"``.
        parent_type: Name of the type that declares the field.
        return_type: Name of the field's return type, e.g. ``"[User!]!"``.
    """

    resolve_id: ResolveId
    path: str
    parent_type: str
    return_type: str


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Summary computed by the validation phase over the whole document.

    Attributes:
        complexity: Computed complexity score.
        depth: Computed maximum selection depth.
    """

    complexity: int = 0
    depth: int = 0


@dataclass(frozen=True, slots=True)
class ServerError:
    """A query-level error reported through the ``error`` event.

    Attributes:
        message: Human-readable error message.
        path: Response path segments of the failing field, if known.
        locations: (line, column) positions in the query source.
        extensions: Extra error data destined for the response.
    """

    message: str
    path: tuple[str | int, ...] = ()
    locations: tuple[tuple[int, int], ...] = ()
    extensions: Mapping[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message

    @property
    def path_string(self) -> str:
        """Path joined with dots, empty when the error has no path."""
        return ".".join(str(segment) for segment in self.path)
