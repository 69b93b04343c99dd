"""Fan-out of lifecycle events to the extension instances of one request.

The engine creates one ``Extensions`` runner per request from the
registered factories and calls its event methods as the request moves
through its lifecycle. The runner forwards every event to every instance,
in registration order, and contains anything an instance raises: a failing
extension is logged and skipped, the remaining extensions still see the
event, and the engine never observes the failure. Events are dispatched
inside a ``LogContext`` carrying the request id and operation name.

The runner is also the request-scoped resource boundary. Leaving the
``with`` / ``async with`` block, whether the request completed, raised, or
was cancelled, closes every instance exactly once so per-request state
(open spans, context slots) is always released.

Example:
    >>> factories = [OpenTelemetry(tracer), Logger()]
    >>> with Extensions.from_factories(factories, ExtensionContext()) as extensions:
    ...     extensions.start()
    ...     extensions.parse_start("{ user { name } }", {})
    ...     ...
    ...     extensions.end()
"""

from __future__ import annotations

import threading
import uuid
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, Self

from gqlext.exceptions import ExtensionError
from gqlext.extensions.base import ExtensionContext
from gqlext.logging import LogContext, get_logger


if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from gqlext.extensions.base import Extension, ExtensionFactory
    from gqlext.extensions.types import (
        ResolveInfo,
        ServerError,
        ValidationResult,
        Variables,
    )


__all__ = [
    "Extensions",
    "LifecycleState",
    "create_extensions",
]

logger = get_logger(__name__)


class LifecycleState(Enum):
    """Request lifecycle state as observed by the runner.

    State transitions:
        IDLE -> STARTED -> PARSING -> PARSED -> VALIDATING -> VALIDATED
             -> EXECUTING -> EXECUTED -> ENDED
        ENDED is reachable from any state (a request may stop early).
    """

    IDLE = auto()
    STARTED = auto()
    PARSING = auto()
    PARSED = auto()
    VALIDATING = auto()
    VALIDATED = auto()
    EXECUTING = auto()
    EXECUTED = auto()
    ENDED = auto()

    @property
    def is_terminal(self) -> bool:
        """Check if no further events are expected."""
        return self == LifecycleState.ENDED


_NON_TERMINAL = frozenset(state for state in LifecycleState if not state.is_terminal)

# event -> (states it may arrive in, state it moves to or None)
_EVENT_RULES: dict[str, tuple[frozenset[LifecycleState], LifecycleState | None]] = {
    "start": (frozenset({LifecycleState.IDLE}), LifecycleState.STARTED),
    "parse_start": (frozenset({LifecycleState.STARTED}), LifecycleState.PARSING),
    "parse_end": (frozenset({LifecycleState.PARSING}), LifecycleState.PARSED),
    "validation_start": (frozenset({LifecycleState.PARSED}), LifecycleState.VALIDATING),
    "validation_end": (frozenset({LifecycleState.VALIDATING}), LifecycleState.VALIDATED),
    "execution_start": (frozenset({LifecycleState.VALIDATED}), LifecycleState.EXECUTING),
    "execution_end": (frozenset({LifecycleState.EXECUTING}), LifecycleState.EXECUTED),
    "resolve_start": (frozenset({LifecycleState.EXECUTING}), None),
    "resolve_end": (frozenset({LifecycleState.EXECUTING}), None),
    "error": (
        frozenset({
            LifecycleState.VALIDATING,
            LifecycleState.VALIDATED,
            LifecycleState.EXECUTING,
            LifecycleState.EXECUTED,
        }),
        None,
    ),
    "end": (_NON_TERMINAL, LifecycleState.ENDED),
}


class Extensions:
    """Runner dispatching lifecycle events to per-request extension instances.

    Thread-safe: ``resolve_start``/``resolve_end``/``error`` may be called
    concurrently from sibling field resolutions.
    """

    def __init__(
        self,
        extensions: Sequence[Extension],
        ctx: ExtensionContext | None = None,
        *,
        request_id: str | None = None,
        operation_name: str | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            extensions: Per-request extension instances, in dispatch order.
            ctx: Request-scoped data; an empty context when omitted.
            request_id: Identifier logged with every event; generated when
                omitted.
            operation_name: GraphQL operation name logged with every event.
        """
        self._extensions: tuple[Extension, ...] = tuple(extensions)
        self._ctx = ctx if ctx is not None else ExtensionContext()
        self._request_id = request_id or uuid.uuid4().hex
        self._operation_name = operation_name
        self._state = LifecycleState.IDLE
        self._closed = False
        self._lock = threading.Lock()

    @classmethod
    def from_factories(
        cls,
        factories: Iterable[ExtensionFactory],
        ctx: ExtensionContext | None = None,
        **kwargs: Any,
    ) -> Extensions:
        """Create a runner with one fresh instance from every factory."""
        return cls([factory.create() for factory in factories], ctx, **kwargs)

    @property
    def instances(self) -> tuple[Extension, ...]:
        """Extension instances in dispatch order."""
        return self._extensions

    @property
    def context(self) -> ExtensionContext:
        """Request-scoped data shared with extensions."""
        return self._ctx

    @property
    def request_id(self) -> str:
        return self._request_id

    @property
    def state(self) -> LifecycleState:
        """Current lifecycle state."""
        with self._lock:
            return self._state

    @property
    def is_empty(self) -> bool:
        """True when no extension is registered for the request."""
        return not self._extensions

    def _advance(self, event: str) -> None:
        allowed, target = _EVENT_RULES[event]
        with self._lock:
            current = self._state
            if target is not None:
                self._state = target

        if current not in allowed:
            logger.warning(
                "Lifecycle event out of order",
                event=event,
                state=current.name,
            )

    def _log_context(self) -> LogContext:
        return LogContext(request_id=self._request_id, operation_name=self._operation_name)

    def _dispatch(self, event: str, *args: Any) -> None:
        with self._log_context():
            self._advance(event)
            for extension in self._extensions:
                try:
                    getattr(extension, event)(self._ctx, *args)
                except Exception as e:
                    error = ExtensionError(
                        f"Extension hook '{event}' failed: {e}",
                        extension=type(extension).__name__,
                        event=event,
                        cause=e,
                    )
                    logger.error(error.message, exc_info=e, **error.details)

    # Lifecycle events

    def start(self) -> None:
        """Dispatch the request start event."""
        self._dispatch("start")

    def end(self) -> None:
        """Dispatch the request end event."""
        self._dispatch("end")

    def parse_start(self, query_source: str, variables: Variables) -> None:
        """Dispatch the parse start event."""
        self._dispatch("parse_start", query_source, variables)

    def parse_end(self, document: Any) -> None:
        """Dispatch the parse end event."""
        self._dispatch("parse_end", document)

    def validation_start(self) -> None:
        """Dispatch the validation start event."""
        self._dispatch("validation_start")

    def validation_end(self, result: ValidationResult) -> None:
        """Dispatch the validation end event."""
        self._dispatch("validation_end", result)

    def execution_start(self) -> None:
        """Dispatch the execution start event."""
        self._dispatch("execution_start")

    def execution_end(self) -> None:
        """Dispatch the execution end event."""
        self._dispatch("execution_end")

    def resolve_start(self, info: ResolveInfo) -> None:
        """Dispatch the start of a field resolution."""
        self._dispatch("resolve_start", info)

    def resolve_end(self, info: ResolveInfo) -> None:
        """Dispatch the end of a field resolution."""
        self._dispatch("resolve_end", info)

    def error(self, err: ServerError) -> None:
        """Dispatch a query-level error."""
        self._dispatch("error", err)

    # Scoped release

    def close(self) -> None:
        """Close every instance; subsequent calls are no-ops."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            state = self._state

        with self._log_context():
            if not state.is_terminal:
                logger.debug("Request scope left before end", state=state.name)

            for extension in self._extensions:
                try:
                    extension.close()
                except Exception as e:
                    logger.error(
                        "Extension close failed",
                        exc_info=e,
                        extension=type(extension).__name__,
                    )

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def create_extensions(
    factories: Iterable[ExtensionFactory],
    ctx: ExtensionContext | None = None,
    **kwargs: Any,
) -> Extensions:
    """Create a per-request runner from the registered factories.

    Example:
        >>> async with create_extensions([OpenTelemetry(tracer)]) as extensions:
        ...     extensions.start()
    """
    return Extensions.from_factories(factories, ctx, **kwargs)
