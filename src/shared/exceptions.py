"""
Custom exceptions for mapview.

This module provides domain-specific exceptions for better error handling
and clearer error messages throughout the map binding.

Clean Architecture Note:
- This file belongs to the Shared layer (cross-cutting concerns)
- Can be imported by any layer (domain, infrastructure, mapview)

Propagation policy:
- ConstructionError aborts one mount attempt and is surfaced as an error state
- ReconciliationError, MapRefError, ConfigurationError, GlobalSettingsError and
  PluginLoadError are *reported* through error sinks, never raised into the
  engine's own call stack
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any


class MapViewError(Exception):
    """Base exception for all map binding errors."""

    pass


# Error sinks receive reported (not raised) errors
ErrorSink = Callable[[MapViewError], None]


class ConstructionError(MapViewError):
    """Raised when a map instance cannot be constructed for a mount point.

    Typical causes: the container is unavailable, the engine module is
    missing or does not expose a map constructor, or the constructor raised.
    """

    def __init__(
        self,
        message: str,
        *,
        reason: str | None = None,
        cause: Exception | None = None,
    ):
        """
        Initialize ConstructionError.

        Parameters
        ----------
        message : str
            Error message
        reason : str | None
            Short machine-readable reason (e.g. 'container', 'module', 'constructor')
        cause : Exception | None
            Original exception that caused this error
        """
        self.reason = reason
        self.cause = cause

        full_message = message
        if reason:
            full_message = f"[{reason}] {full_message}"
        if cause:
            full_message = f"{full_message} (caused by: {cause})"

        super().__init__(full_message)


class ReconciliationError(MapViewError):
    """Invalid field access or assignment inside the interception layer.

    Never raised into the engine. The offending read returns None and the
    offending write is dropped.
    """

    def __init__(
        self,
        message: str,
        operation: str,
        property: str | None = None,
        value: Any = None,
    ):
        """
        Initialize ReconciliationError.

        Parameters
        ----------
        message : str
            Error message
        operation : str
            Operation that failed ('get', 'set', 'method', 'clone', 'initialization', ...)
        property : str | None
            Camera attribute or method involved
        value : Any
            Originating value of the failed operation
        """
        self.operation = operation
        self.property = property
        self.value = value

        full_message = f"{message} (operation: {operation})"
        if property:
            full_message = f"{full_message} (property: {property})"

        super().__init__(full_message)


class MapRefError(MapViewError):
    """Raised (and reported) when a forwarded map method fails."""

    def __init__(
        self,
        message: str,
        operation: str,
        method: str | None = None,
        params: tuple | None = None,
    ):
        self.operation = operation
        self.method = method
        self.params = params
        self.value = params

        full_message = f"{message} (operation: {operation})"
        if method:
            full_message = f"{full_message} (method: {method})"

        super().__init__(full_message)


class ConfigurationError(MapViewError):
    """A non-reactive construction option was changed after creation.

    Reported, never applied: the engine instance owns construction options
    from construction onward.
    """

    def __init__(self, message: str, option: str, value: Any = None):
        self.operation = "set_props"
        self.option = option
        self.property = option
        self.value = value

        super().__init__(f"{message} (option: {option})")


class GlobalSettingsError(MapViewError):
    """Raised when an engine-wide setting is invalid or cannot be applied."""

    def __init__(self, message: str, setting: str, value: Any = None):
        self.operation = "set_globals"
        self.setting = setting
        self.property = setting
        self.value = value

        super().__init__(f"{message} (setting: {setting})")


class PluginLoadError(GlobalSettingsError):
    """Best-effort loading of the RTL text shaping plugin failed.

    Never blocks map readiness.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        timeout_seconds: float | None = None,
        *,
        cause: Exception | None = None,
    ):
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.cause = cause

        full_message = message
        if timeout_seconds is not None:
            full_message = f"{full_message} (timeout: {timeout_seconds}s)"
        if cause:
            full_message = f"{full_message} (caused by: {cause})"

        super().__init__(full_message, "rtl_text_plugin", url)
        self.operation = "load_plugin"


class ConfigError(MapViewError):
    """Raised when a configuration or scenario file is invalid or missing."""

    def __init__(
        self,
        message: str,
        config_path: str | None = None,
        field_name: str | None = None,
    ):
        """
        Initialize ConfigError.

        Parameters
        ----------
        message : str
            Error message
        config_path : str | None
            Path to the config file
        field_name : str | None
            Name of the invalid/missing config field
        """
        self.config_path = config_path
        self.field_name = field_name

        full_message = message
        if field_name:
            full_message = f"{full_message} (field: {field_name})"
        if config_path:
            full_message = f"{full_message} (config: {config_path})"

        super().__init__(full_message)


__all__ = [
    "ConfigError",
    "ConfigurationError",
    "ConstructionError",
    "ErrorSink",
    "GlobalSettingsError",
    "MapRefError",
    "MapViewError",
    "PluginLoadError",
    "ReconciliationError",
]
