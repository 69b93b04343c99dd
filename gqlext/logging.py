"""Structured logging for gqlext.

Loggers obtained from ``get_logger`` accept keyword fields that travel
with the record as structured extras. Request-scoped fields (request id,
operation name) live in a ``ContextVar`` set by ``LogContext``; the
``Extensions`` runner opens one around every event it dispatches, so each
line an extension logs carries the request it belongs to, including lines
logged from concurrently running field resolutions.

Records go to the standard ``logging`` module unless ``configure_logging``
installs other handlers, so applications embedding gqlext keep control of
the output.

Example:
    >>> from gqlext.logging import get_logger, LogContext
    >>> logger = get_logger(__name__)
    >>> with LogContext(operation_name="GetUser", request_id="r-1"):
    ...     logger.info("Request finished", errors=0)
"""

from __future__ import annotations

import json
import logging
import re
import sys
from abc import abstractmethod
from collections import deque
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    ClassVar,
    Protocol,
    Self,
    runtime_checkable,
)


if TYPE_CHECKING:
    from collections.abc import Mapping


# =============================================================================
# Levels and masking defaults
# =============================================================================


class LogLevel(Enum):
    """Severity levels; values are the stdlib ``logging`` numbers."""

    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50

    def to_stdlib(self) -> int:
        return self.value

    @classmethod
    def from_string(cls, level: str) -> LogLevel:
        """Parse a level name, falling back to INFO for unknown names."""
        return cls.__members__.get(level.strip().upper(), cls.INFO)


# GraphQL variables routinely carry credentials, so masking is on by default.
DEFAULT_SENSITIVE_PATTERNS: tuple[tuple[str, str], ...] = (
    (r"\b(password|secret|api_key|token)=[^&\s;]+", r"\1=***MASKED***"),
    (r"(://[^:/@\s]+:)[^@\s]+(@)", r"\1***MASKED***\2"),
    (r'("(?:password|secret|token)"\s*:\s*")[^"]+(")', r"\1***MASKED***\2"),
    (r"(Bearer\s+)[A-Za-z0-9._~+/=-]+", r"\1***MASKED***"),
)

DEFAULT_SENSITIVE_KEYS: frozenset[str] = frozenset({
    "password",
    "passwd",
    "secret",
    "token",
    "api_key",
    "apikey",
    "access_token",
    "refresh_token",
    "authorization",
    "cookie",
    "credentials",
})


# =============================================================================
# Request context
# =============================================================================


@dataclass(frozen=True, slots=True)
class LogContextData:
    """Request fields attached to every record logged inside a LogContext."""

    request_id: str | None = None
    operation_name: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def merge(self, other: LogContextData) -> LogContextData:
        """Overlay ``other`` on this context; set fields of ``other`` win."""
        return LogContextData(
            request_id=other.request_id or self.request_id,
            operation_name=other.operation_name or self.operation_name,
            extra={**self.extra, **other.extra},
        )

    def to_dict(self) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        if self.request_id:
            fields["request_id"] = self.request_id
        if self.operation_name:
            fields["operation_name"] = self.operation_name
        fields.update(self.extra)
        return fields


_EMPTY_CONTEXT = LogContextData()
_log_context: ContextVar[LogContextData] = ContextVar("gqlext_log_context", default=_EMPTY_CONTEXT)


def get_current_context() -> LogContextData:
    """Context of the calling thread or task; empty outside any LogContext."""
    return _log_context.get()


class LogContext:
    """Scope adding request fields to log records.

    Scopes nest; an inner scope sees the fields of the outer ones.

    Example:
        >>> with LogContext(request_id="r-1"):
        ...     with LogContext(path="user.name"):
        ...         logger.info("Resolved")  # request_id and path
    """

    def __init__(
        self,
        *,
        request_id: str | None = None,
        operation_name: str | None = None,
        **extra: Any,
    ) -> None:
        self._fields = LogContextData(
            request_id=request_id,
            operation_name=operation_name,
            extra=extra,
        )
        self._token: Any = None

    def __enter__(self) -> Self:
        self._token = _log_context.set(get_current_context().merge(self._fields))
        return self

    def __exit__(self, *args: Any) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None


# =============================================================================
# Records, handlers and formatters
# =============================================================================


@dataclass(slots=True)
class LogRecord:
    """One structured log line."""

    level: LogLevel
    message: str
    logger_name: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    context: LogContextData = _EMPTY_CONTEXT
    extra: dict[str, Any] = field(default_factory=dict)
    exc_info: BaseException | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.name,
            "logger": self.logger_name,
            "message": self.message,
            **self.context.to_dict(),
            **self.extra,
        }
        if self.exc_info is not None:
            data["exception_type"] = type(self.exc_info).__name__
            data["exception"] = str(self.exc_info)
        return data


@runtime_checkable
class LogHandler(Protocol):
    """Destination of log records."""

    @abstractmethod
    def handle(self, record: LogRecord) -> None:
        ...

    @abstractmethod
    def flush(self) -> None:
        ...

    @abstractmethod
    def close(self) -> None:
        ...


@runtime_checkable
class LogFormatter(Protocol):
    """Renders a record as one line of text."""

    @abstractmethod
    def format(self, record: LogRecord) -> str:
        ...


class SensitiveDataMasker:
    """Masks credentials in messages and structured fields.

    Strings are rewritten with regular expressions; mapping values whose
    key is a known secret name are replaced outright.

    Example:
        >>> masker = SensitiveDataMasker()
        >>> masker.mask_string("token=abc123")
        'token=***MASKED***'
        >>> masker.mask_dict({"password": "secret", "name": "test"})
        {'password': '***MASKED***', 'name': 'test'}
    """

    MASK_VALUE: ClassVar[str] = "***MASKED***"

    def __init__(
        self,
        patterns: tuple[tuple[str, str], ...] | None = None,
        sensitive_keys: frozenset[str] | None = None,
        enabled: bool = True,
    ) -> None:
        self.enabled = enabled
        self._keys = sensitive_keys or DEFAULT_SENSITIVE_KEYS
        self._patterns = [
            (re.compile(pattern, re.IGNORECASE), replacement)
            for pattern, replacement in (patterns or DEFAULT_SENSITIVE_PATTERNS)
        ]

    def mask_string(self, value: str) -> str:
        if not self.enabled:
            return value
        for pattern, replacement in self._patterns:
            value = pattern.sub(replacement, value)
        return value

    def mask_value(self, value: Any) -> Any:
        """Mask strings, mappings and sequences; other values pass through."""
        if not self.enabled:
            return value
        if isinstance(value, str):
            return self.mask_string(value)
        if isinstance(value, dict):
            return self.mask_dict(value)
        if isinstance(value, (list, tuple)):
            return type(value)(self.mask_value(item) for item in value)
        return value

    def mask_dict(self, data: Mapping[str, Any]) -> dict[str, Any]:
        if not self.enabled:
            return dict(data)
        return {
            key: self.MASK_VALUE if str(key).lower() in self._keys else self.mask_value(value)
            for key, value in data.items()
        }


_default_masker = SensitiveDataMasker()


def _key_values(fields: Mapping[str, Any]) -> str:
    return " ".join(f"{key}={value}" for key, value in fields.items())


class TextFormatter:
    """Human-readable single-line format.

    Example output:
        2024-01-15T10:30:45.123456+00:00 [INFO] gqlext.extensions.logger: Request finished | request_id=r-1 errors=0
    """

    def __init__(self, include_fields: bool = True) -> None:
        self.include_fields = include_fields

    def format(self, record: LogRecord) -> str:
        line = (
            f"{record.timestamp.isoformat()} [{record.level.name}] "
            f"{record.logger_name}: {record.message}"
        )
        if self.include_fields:
            fields = {**record.context.to_dict(), **record.extra}
            if fields:
                line += " | " + _key_values(fields)
        if record.exc_info is not None:
            line += f" | exception={record.exc_info!r}"
        return line


class JSONFormatter:
    """One JSON object per line, masked before serialization."""

    def __init__(
        self,
        masker: SensitiveDataMasker | None = None,
        indent: int | None = None,
    ) -> None:
        self._masker = masker or _default_masker
        self._indent = indent

    def format(self, record: LogRecord) -> str:
        return json.dumps(self._masker.mask_dict(record.to_dict()), indent=self._indent, default=str)


class StreamHandler:
    """Writes formatted records to a stream, stderr by default."""

    def __init__(
        self,
        stream: Any = None,
        formatter: LogFormatter | None = None,
        level: LogLevel = LogLevel.DEBUG,
    ) -> None:
        self._stream = stream or sys.stderr
        self._formatter = formatter or TextFormatter()
        self._level = level
        self._closed = False

    def handle(self, record: LogRecord) -> None:
        if self._closed or record.level.value < self._level.value:
            return
        try:
            self._stream.write(self._formatter.format(record) + "\n")
        except Exception:
            # Writing a log line must never raise into the caller
            pass

    def flush(self) -> None:
        if self._closed:
            return
        try:
            self._stream.flush()
        except Exception:
            pass

    def close(self) -> None:
        self.flush()
        self._closed = True


class BufferingHandler:
    """Keeps the most recent records in memory.

    Useful for inspecting what a request logged, in tests or in a debug
    endpoint. Once ``capacity`` is reached the oldest record is dropped.
    """

    def __init__(self, capacity: int = 1000) -> None:
        self._buffer: deque[LogRecord] = deque(maxlen=capacity)

    @property
    def records(self) -> list[LogRecord]:
        return list(self._buffer)

    def handle(self, record: LogRecord) -> None:
        self._buffer.append(record)

    def clear(self) -> None:
        self._buffer.clear()

    def flush(self) -> None:
        pass

    def close(self) -> None:
        self._buffer.clear()


class StdlibHandler:
    """Forwards records to the stdlib logger of the same name.

    Context and extra fields are masked and appended to the message as
    ``key=value`` pairs.
    """

    def __init__(
        self,
        stdlib_logger: logging.Logger | None = None,
        masker: SensitiveDataMasker | None = None,
    ) -> None:
        self._logger = stdlib_logger
        self._masker = masker or _default_masker

    def handle(self, record: LogRecord) -> None:
        target = self._logger or logging.getLogger(record.logger_name)
        fields = self._masker.mask_dict({**record.context.to_dict(), **record.extra})
        message = f"{record.message} | {_key_values(fields)}" if fields else record.message
        target.log(record.level.to_stdlib(), message, exc_info=record.exc_info)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass


# =============================================================================
# Loggers
# =============================================================================


class ExtensionLogger:
    """Structured logger used across gqlext.

    Example:
        >>> logger = ExtensionLogger("gqlext.extensions")
        >>> logger.info("Dispatching event", event="parse_start")
    """

    def __init__(
        self,
        name: str,
        level: LogLevel = LogLevel.DEBUG,
        handlers: list[LogHandler] | None = None,
        masker: SensitiveDataMasker | None = None,
    ) -> None:
        self.name = name
        self.level = level
        self._handlers: list[LogHandler] = list(handlers or [])
        self._masker = masker or _default_masker

    def add_handler(self, handler: LogHandler) -> None:
        if handler not in self._handlers:
            self._handlers.append(handler)

    def remove_handler(self, handler: LogHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def is_enabled_for(self, level: LogLevel) -> bool:
        return level.value >= self.level.value

    def _log(
        self,
        level: LogLevel,
        message: str,
        exc_info: BaseException | None = None,
        **fields: Any,
    ) -> None:
        if not self.is_enabled_for(level):
            return

        record = LogRecord(
            level=level,
            message=self._masker.mask_string(message),
            logger_name=self.name,
            context=get_current_context(),
            extra=self._masker.mask_dict(fields),
            exc_info=exc_info,
        )
        for handler in self._handlers:
            try:
                handler.handle(record)
            except Exception:
                # A broken handler must not stop the others
                pass

    def debug(self, message: str, **fields: Any) -> None:
        self._log(LogLevel.DEBUG, message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self._log(LogLevel.INFO, message, **fields)

    def warning(self, message: str, exc_info: BaseException | None = None, **fields: Any) -> None:
        self._log(LogLevel.WARNING, message, exc_info=exc_info, **fields)

    def error(self, message: str, exc_info: BaseException | None = None, **fields: Any) -> None:
        self._log(LogLevel.ERROR, message, exc_info=exc_info, **fields)


class LoggerRegistry:
    """Hands out one ExtensionLogger per name and applies global settings."""

    def __init__(self) -> None:
        self._loggers: dict[str, ExtensionLogger] = {}
        self._handlers: list[LogHandler] = [StdlibHandler()]
        self._level = LogLevel.DEBUG

    def get_logger(self, name: str, level: LogLevel | None = None) -> ExtensionLogger:
        logger = self._loggers.get(name)
        if logger is None:
            logger = ExtensionLogger(name, level or self._level, self._handlers)
            self._loggers[name] = logger
        return logger

    def configure(
        self,
        level: LogLevel = LogLevel.INFO,
        handlers: list[LogHandler] | None = None,
        format: str = "text",
    ) -> None:
        """Apply level and handlers to existing and future loggers.

        Args:
            level: Minimum level.
            handlers: Handlers to install. When omitted, a stderr stream
                handler in the requested format is installed.
            format: 'text' or 'json'.
        """
        if handlers is None:
            formatter: LogFormatter = JSONFormatter() if format == "json" else TextFormatter()
            handlers = [StreamHandler(formatter=formatter, level=level)]

        self._level = level
        self._handlers = list(handlers)
        for logger in self._loggers.values():
            logger.level = level
            logger._handlers = list(handlers)


_registry = LoggerRegistry()


def get_logger(name: str, level: LogLevel | None = None) -> ExtensionLogger:
    """Get a logger by name (typically ``__name__``)."""
    return _registry.get_logger(name, level)


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    handlers: list[LogHandler] | None = None,
    format: str = "text",
) -> None:
    """Configure every gqlext logger.

    Example:
        >>> configure_logging(level="DEBUG", format="json")
    """
    if isinstance(level, str):
        level = LogLevel.from_string(level)
    _registry.configure(level=level, handlers=handlers, format=format)
