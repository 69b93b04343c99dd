"""Per-request map from slot keys to live OpenTelemetry contexts.

The tracing extension receives begin/end events rather than a call stack,
so a span's context has to be parked somewhere between the two events and
found again by children that start later. ``ContextTree`` is that parking
lot: ``enter`` stores a context under its slot, ``exit`` removes it again.

Storing a context never makes it current. A begin event and its end event
may arrive on different threads or tasks, and a worker that never sees the
end event must not keep the span attached once the hook returns. The only
activation the tree performs is ``exiting``, which attaches the exited
context on the calling thread or task for the duration of a ``with`` block
and restores the previous context when the block ends.

Missing slots are never an error: ``exit`` and ``get`` simply return None.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING

from opentelemetry import context as otel_context

from gqlext.exceptions import ContextSlotError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from opentelemetry.context import Context

    from gqlext.opentelemetry.types import SlotKey

__all__ = [
    "ContextTree",
]

logger = logging.getLogger(__name__)


class ContextTree:
    """Lock-protected slot map for the contexts of one request.

    The lock only guards the slot map; attaching contexts happens outside
    of it.

    Example:
        tree = ContextTree()
        tree.enter(Phase.EXECUTION, trace.set_span_in_context(span))
        ...
        with tree.exiting(Phase.EXECUTION) as ctx:
            if ctx is not None:
                trace.get_current_span(ctx).end()
    """

    def __init__(self, strict: bool = False) -> None:
        """Initialize the tree.

        Args:
            strict: Raise ContextSlotError when a live slot is entered again
                instead of overwriting it.
        """
        self._strict = strict
        self._slots: dict[SlotKey, Context] = {}
        self._lock = threading.Lock()

    @property
    def strict(self) -> bool:
        return self._strict

    def enter(self, key: SlotKey, context: Context) -> None:
        """Store ``context`` under ``key``.

        Entering a slot that is still live overwrites it; the previous
        context is dropped without being finalized.

        Raises:
            ContextSlotError: If the slot is live and the tree is strict.
        """
        with self._lock:
            live = key in self._slots
            if not (live and self._strict):
                self._slots[key] = context

        if not live:
            return
        if self._strict:
            raise ContextSlotError(f"Context slot {key} entered while still live", slot=key)
        logger.warning(f"Context slot {key} entered while still live, previous context dropped")

    def exit(self, key: SlotKey) -> Context | None:
        """Remove and return the context stored under ``key``.

        Returns:
            The stored context, or None if the slot was never entered or
            has already been exited.
        """
        with self._lock:
            return self._slots.pop(key, None)

    @contextmanager
    def exiting(self, key: SlotKey) -> Iterator[Context | None]:
        """Exit ``key`` and make its context current for the ``with`` block.

        Work done inside the block (setting final attributes, ending the
        span) stays correlated with the exited context. Yields None if the
        slot is not live, leaving the current context untouched.
        """
        context = self.exit(key)
        if context is None:
            yield None
            return

        token = otel_context.attach(context)
        try:
            yield context
        finally:
            otel_context.detach(token)

    def get(self, key: SlotKey) -> Context | None:
        """Return the context stored under ``key`` without removing it."""
        with self._lock:
            return self._slots.get(key)

    def keys(self) -> list[SlotKey]:
        """Live slot keys in entry order."""
        with self._lock:
            return list(self._slots)

    def drain(self) -> list[tuple[SlotKey, Context]]:
        """Remove every live slot.

        Returns:
            The removed (key, context) pairs, most recently entered first.
        """
        with self._lock:
            remaining = list(self._slots.items())
            self._slots.clear()
        remaining.reverse()
        return remaining

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._slots

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)

    def __repr__(self) -> str:
        return f"ContextTree(slots={self.keys()!r}, strict={self._strict})"
