"""Cache-control directives and their response-wide aggregation.

Every field touched during execution may carry its own cache-control
directive. The response is only as cacheable as its least cacheable
field: it is public only if every field is public, and its max-age is the
smallest max-age any field declared. A max-age of 0 means "unset", so it
never lowers another field's max-age.

``merge`` is commutative and associative with ``CacheControl()`` as the
identity, so fields may be merged in whatever order concurrent resolution
completes them.

Example:
    >>> a = CacheControl(max_age=60)
    >>> b = CacheControl(public=False, max_age=30)
    >>> a.merge(b)
    CacheControl(public=False, max_age=30)
    >>> a.merge(b).value()
    'max-age=30, private'
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from functools import reduce
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Iterable


__all__ = [
    "CacheControl",
    "CacheControlAggregator",
    "merge_all",
]


def _pick_nonzero_min(left: int, right: int) -> int:
    if left == 0:
        return right
    if right == 0:
        return left
    return min(left, right)


@dataclass(frozen=True, slots=True)
class CacheControl:
    """Cache-control directive for a field or a whole response.

    Attributes:
        public: Whether the result may be stored by shared caches.
        max_age: Maximum age in seconds; 0 means unset.
    """

    public: bool = True
    max_age: int = 0

    def __post_init__(self) -> None:
        if self.max_age < 0:
            raise ValueError(f"max_age must be non-negative, got {self.max_age}")

    def merge(self, other: CacheControl) -> CacheControl:
        """Combine two directives into the stricter of both."""
        return CacheControl(
            public=self.public and other.public,
            max_age=_pick_nonzero_min(self.max_age, other.max_age),
        )

    def value(self) -> str | None:
        """Render the ``Cache-Control`` header value.

        Returns:
            ``"max-age=N"`` (plus ``", private"`` when not public), or None
            when no max-age is set.
        """
        if self.max_age > 0:
            suffix = "" if self.public else ", private"
            return f"max-age={self.max_age}{suffix}"
        return None

    def with_max_age(self, max_age: int) -> CacheControl:
        """Create a new directive with updated max-age."""
        return CacheControl(public=self.public, max_age=max_age)

    def with_private(self) -> CacheControl:
        """Create a new directive restricted to private caches."""
        return CacheControl(public=False, max_age=self.max_age)


def merge_all(controls: Iterable[CacheControl]) -> CacheControl:
    """Fold directives together starting from the identity element."""
    return reduce(CacheControl.merge, controls, CacheControl())


class CacheControlAggregator:
    """Thread-safe accumulator for directives of concurrently resolved fields.

    Example:
        >>> aggregator = CacheControlAggregator()
        >>> aggregator.add(CacheControl(max_age=60))
        >>> aggregator.add(CacheControl(public=False))
        >>> aggregator.result
        CacheControl(public=False, max_age=60)
    """

    def __init__(self, initial: CacheControl | None = None) -> None:
        self._result = initial or CacheControl()
        self._lock = threading.Lock()

    def add(self, control: CacheControl) -> None:
        """Merge one directive into the running result."""
        with self._lock:
            self._result = self._result.merge(control)

    def extend(self, controls: Iterable[CacheControl]) -> None:
        """Merge several directives into the running result."""
        self.add(merge_all(controls))

    @property
    def result(self) -> CacheControl:
        """The response-wide directive accumulated so far."""
        with self._lock:
            return self._result
