"""Extension contract for observing request execution.

The execution engine notifies extensions of request lifecycle events
(start, parse, validation, execution, end) and of every field resolution
nested inside execution. Each request gets its own extension instances,
created by the registered factories, so extension state is never shared
between requests.

Event Order:
    start
    parse_start -> parse_end
    validation_start -> validation_end
    execution_start
        (resolve_start -> resolve_end)*   # interleaved across siblings
    execution_end
    end

    ``error`` may be delivered at any point after validation_start.

Custom Extensions:
    >>> class TimingExtension(BaseExtension):
    ...     def execution_start(self, ctx):
    ...         self._started = time.perf_counter()
    ...
    ...     def execution_end(self, ctx):
    ...         ctx.insert(ExecutionTime(time.perf_counter() - self._started))
    >>>
    >>> class Timing:
    ...     def create(self):
    ...         return TimingExtension()
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable


if TYPE_CHECKING:
    from collections.abc import Iterable

    from gqlext.extensions.types import (
        ResolveInfo,
        ServerError,
        ValidationResult,
        Variables,
    )


__all__ = [
    "BaseExtension",
    "Extension",
    "ExtensionContext",
    "ExtensionFactory",
]

T = TypeVar("T")


class ExtensionContext:
    """Request-scoped data shared between the caller and extensions.

    Values are stored by their type, so each type holds at most one value
    per request. Callers use it to hand per-request configuration to
    extensions (for example a parent tracing context).

    Example:
        >>> ctx = ExtensionContext([OpenTelemetryRequestConfig(parent=parent)])
        >>> ctx.data_opt(OpenTelemetryRequestConfig).parent is parent
        True
    """

    def __init__(self, data: Iterable[Any] = ()) -> None:
        self._data: dict[type, Any] = {}
        for value in data:
            self.insert(value)

    def insert(self, value: Any) -> None:
        """Store ``value`` under its type, replacing any previous value."""
        self._data[type(value)] = value

    def data_opt(self, cls: type[T]) -> T | None:
        """Get the value stored for ``cls``, or None."""
        return self._data.get(cls)

    def data(self, cls: type[T]) -> T:
        """Get the value stored for ``cls``.

        Raises:
            KeyError: If no value of that type was supplied.
        """
        try:
            return self._data[cls]
        except KeyError:
            raise KeyError(f"No data of type {cls.__name__} in extension context") from None

    def __contains__(self, cls: object) -> bool:
        return cls in self._data


@runtime_checkable
class Extension(Protocol):
    """Protocol for per-request extension instances.

    Implementations must never let a failure escape into query execution;
    the runner contains anything that does escape, but an extension should
    degrade silently on its own wherever it can.
    """

    @abstractmethod
    def start(self, ctx: ExtensionContext) -> None:
        """Called once when the request begins."""
        ...

    @abstractmethod
    def end(self, ctx: ExtensionContext) -> None:
        """Called once when the request has finished."""
        ...

    @abstractmethod
    def parse_start(self, ctx: ExtensionContext, query_source: str, variables: Variables) -> None:
        """Called before the query document is parsed.

        Args:
            ctx: Request context.
            query_source: Raw query text.
            variables: Request variables.
        """
        ...

    @abstractmethod
    def parse_end(self, ctx: ExtensionContext, document: Any) -> None:
        """Called after the query document was parsed."""
        ...

    @abstractmethod
    def validation_start(self, ctx: ExtensionContext) -> None:
        """Called before the document is validated."""
        ...

    @abstractmethod
    def validation_end(self, ctx: ExtensionContext, result: ValidationResult) -> None:
        """Called after validation with the computed complexity and depth."""
        ...

    @abstractmethod
    def execution_start(self, ctx: ExtensionContext) -> None:
        """Called before the operation is executed."""
        ...

    @abstractmethod
    def execution_end(self, ctx: ExtensionContext) -> None:
        """Called after the operation was executed."""
        ...

    @abstractmethod
    def resolve_start(self, ctx: ExtensionContext, info: ResolveInfo) -> None:
        """Called when a field starts resolving; may run concurrently."""
        ...

    @abstractmethod
    def resolve_end(self, ctx: ExtensionContext, info: ResolveInfo) -> None:
        """Called when a field finished resolving, successfully or not."""
        ...

    @abstractmethod
    def error(self, ctx: ExtensionContext, err: ServerError) -> None:
        """Called for each query-level error."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Release everything the instance still holds.

        Called exactly once when the request scope is left, whether the
        request finished, failed or was cancelled.
        """
        ...


class BaseExtension:
    """Base implementation providing no-op bodies for every event.

    Subclass and override only the events you need.
    """

    def start(self, ctx: ExtensionContext) -> None:
        """No-op implementation."""
        pass

    def end(self, ctx: ExtensionContext) -> None:
        """No-op implementation."""
        pass

    def parse_start(self, ctx: ExtensionContext, query_source: str, variables: Variables) -> None:
        """No-op implementation."""
        pass

    def parse_end(self, ctx: ExtensionContext, document: Any) -> None:
        """No-op implementation."""
        pass

    def validation_start(self, ctx: ExtensionContext) -> None:
        """No-op implementation."""
        pass

    def validation_end(self, ctx: ExtensionContext, result: ValidationResult) -> None:
        """No-op implementation."""
        pass

    def execution_start(self, ctx: ExtensionContext) -> None:
        """No-op implementation."""
        pass

    def execution_end(self, ctx: ExtensionContext) -> None:
        """No-op implementation."""
        pass

    def resolve_start(self, ctx: ExtensionContext, info: ResolveInfo) -> None:
        """No-op implementation."""
        pass

    def resolve_end(self, ctx: ExtensionContext, info: ResolveInfo) -> None:
        """No-op implementation."""
        pass

    def error(self, ctx: ExtensionContext, err: ServerError) -> None:
        """No-op implementation."""
        pass

    def close(self) -> None:
        """No-op implementation."""
        pass


@runtime_checkable
class ExtensionFactory(Protocol):
    """Protocol for factories producing one fresh extension per request."""

    @abstractmethod
    def create(self) -> Extension:
        """Create a new, independently stateful extension instance."""
        ...
