"""Environment-based configuration helpers for gqlext.

Configuration Precedence (highest to lowest):
    1. Explicit parameters / builder methods
    2. Environment variables
    3. Default values

Example:
    >>> from gqlext.config import EnvReader
    >>> reader = EnvReader(prefix="GQLEXT_OTEL")
    >>> enabled = reader.get_bool("ENABLED", default=True)
"""

from __future__ import annotations

import os
from collections.abc import Callable
from typing import Any

from gqlext.exceptions import InvalidConfigValueError, MissingConfigError


DEFAULT_ENV_PREFIX = "GQLEXT"


class EnvReader:
    """Typed accessors for prefixed environment variables.

    Example:
        >>> reader = EnvReader(prefix="GQLEXT")
        >>> debug = reader.get_bool("DEBUG", default=False)
    """

    def __init__(self, prefix: str = DEFAULT_ENV_PREFIX) -> None:
        self.prefix = prefix

    def _make_key(self, name: str) -> str:
        if self.prefix:
            return f"{self.prefix}_{name}"
        return name

    def get(self, name: str, default: str | None = None) -> str | None:
        """Get a string environment variable."""
        return os.environ.get(self._make_key(name), default)

    def get_required(self, name: str) -> str:
        """Get a required string environment variable.

        Raises:
            MissingConfigError: If variable is not set.
        """
        key = self._make_key(name)
        value = os.environ.get(key)
        if value is None:
            raise MissingConfigError(key)
        return value

    def _convert(self, name: str, default: Any, convert: Callable[[str], Any], expected: str) -> Any:
        value = self.get(name)
        if value is None:
            return default
        try:
            return convert(value.strip())
        except ValueError as e:
            key = self._make_key(name)
            raise InvalidConfigValueError(
                f"Invalid {expected} value for {key}",
                config_key=key,
                value=value,
                expected=expected,
                cause=e,
            ) from e

    def get_int(self, name: str, default: int | None = None) -> int | None:
        """Get an integer environment variable.

        Raises:
            InvalidConfigValueError: If value cannot be parsed as int.
        """
        return self._convert(name, default, int, "integer")

    def get_float(self, name: str, default: float | None = None) -> float | None:
        return self._convert(name, default, float, "float")

    def get_bool(self, name: str, default: bool | None = None) -> bool | None:
        """Get a boolean environment variable.

        Truthy values: "1", "true", "yes", "on" (case-insensitive)
        Falsy values: "0", "false", "no", "off" (case-insensitive)

        Raises:
            InvalidConfigValueError: If value cannot be parsed as bool.
        """
        value = self.get(name)
        if value is None:
            return default
        lower_value = value.strip().lower()
        if lower_value in ("1", "true", "yes", "on"):
            return True
        if lower_value in ("0", "false", "no", "off"):
            return False
        raise InvalidConfigValueError(
            f"Invalid boolean value for {self._make_key(name)}",
            config_key=self._make_key(name),
            value=value,
            expected="boolean (1/0, true/false, yes/no, on/off)",
        )

    def get_list(
        self,
        name: str,
        separator: str = ",",
        default: list[str] | None = None,
    ) -> list[str] | None:
        """Get a list environment variable (comma-separated by default)."""
        value = self.get(name)
        if value is None:
            return default
        if not value.strip():
            return []
        return [item.strip() for item in value.split(separator)]
