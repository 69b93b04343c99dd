"""Structured logging extension.

Log Levels:
    - DEBUG: Parsed query text and validation complexity/depth
    - INFO: Query errors (with path) and request completion
"""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING, Any

from gqlext.extensions.base import BaseExtension
from gqlext.logging import get_logger


if TYPE_CHECKING:
    from gqlext.extensions.base import ExtensionContext
    from gqlext.extensions.types import ServerError, ValidationResult, Variables
    from gqlext.logging import ExtensionLogger


__all__ = [
    "Logger",
    "LoggingExtension",
]


class LoggingExtension(BaseExtension):
    """Logs the progress of one request.

    Example:
        >>> extensions = Extensions([LoggingExtension()])
        >>> extensions.error(ServerError("boom", path=("user",)))
        # Logs: INFO "Query error" message="boom" path="user" ...
    """

    def __init__(
        self,
        logger_name: str | None = None,
        log_query: bool = True,
        log_variables: bool = False,
    ) -> None:
        """Initialize logging extension.

        Args:
            logger_name: Logger name (default: gqlext.extensions.logger).
            log_query: Whether to log the query text.
            log_variables: Whether to log request variables (masked).
        """
        self._logger: ExtensionLogger = get_logger(logger_name or __name__)
        self._log_query = log_query
        self._log_variables = log_variables
        self._query: str | None = None
        self._started_at: float | None = None
        self._error_count = 0
        self._lock = threading.Lock()

    def start(self, ctx: ExtensionContext) -> None:
        self._started_at = time.perf_counter()

    def parse_start(self, ctx: ExtensionContext, query_source: str, variables: Variables) -> None:
        self._query = query_source
        fields: dict[str, Any] = {}
        if self._log_query:
            fields["query"] = query_source
        if self._log_variables:
            fields["variables"] = dict(variables)
        self._logger.debug("Parsing query", **fields)

    def validation_end(self, ctx: ExtensionContext, result: ValidationResult) -> None:
        self._logger.debug(
            "Query validated",
            complexity=result.complexity,
            depth=result.depth,
        )

    def error(self, ctx: ExtensionContext, err: ServerError) -> None:
        with self._lock:
            self._error_count += 1

        fields: dict[str, Any] = {"error_message": err.message}
        if err.path:
            fields["path"] = err.path_string
        if self._log_query and self._query is not None:
            fields["query"] = self._query
        self._logger.info("Query error", **fields)

    def end(self, ctx: ExtensionContext) -> None:
        fields: dict[str, Any] = {"errors": self.error_count}
        if self._started_at is not None:
            fields["duration_ms"] = round((time.perf_counter() - self._started_at) * 1000, 3)
        self._logger.info("Request finished", **fields)

    @property
    def error_count(self) -> int:
        """Number of errors reported so far."""
        with self._lock:
            return self._error_count


class Logger:
    """Factory creating one LoggingExtension per request."""

    def __init__(
        self,
        logger_name: str | None = None,
        log_query: bool = True,
        log_variables: bool = False,
    ) -> None:
        self._logger_name = logger_name
        self._log_query = log_query
        self._log_variables = log_variables

    def create(self) -> LoggingExtension:
        return LoggingExtension(
            logger_name=self._logger_name,
            log_query=self._log_query,
            log_variables=self._log_variables,
        )
