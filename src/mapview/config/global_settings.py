"""
Engine-wide settings and the RTL text plugin.

Global settings live on the engine module and affect every map it creates.
They are applied init-once per engine module, before any map is constructed:
re-applying the same value is a no-op, and changing an applied value is
reported as a GlobalSettingsError and ignored.

The right-to-left text shaping plugin is loaded best-effort in the background
and raced against a timeout; failures are reported and never block a mount.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any

from src.mapview.config.settings import (
    DEFAULT_RTL_PLUGIN_TIMEOUT,
    DEFAULT_RTL_PLUGIN_URL,
    GLOBAL_SETTING_NAMES,
    validate_global_setting,
)
from src.shared.equality import deep_equal
from src.shared.exceptions import GlobalSettingsError, PluginLoadError

logger = logging.getLogger(__name__)


class GlobalSettingsRegistry:
    """Tracks which engine-wide settings were applied to which engine module."""

    def __init__(self) -> None:
        # id(module) -> (module, applied settings)
        self._applied: dict[int, tuple[Any, dict[str, Any]]] = {}

    def applied(self, module: Any) -> dict[str, Any]:
        """Settings applied to ``module`` so far."""
        entry = self._applied.get(id(module))
        return dict(entry[1]) if entry is not None else {}

    def apply(
        self,
        module: Any,
        props: Mapping[str, Any],
        on_error: Callable[[GlobalSettingsError], None] | None = None,
    ) -> list[str]:
        """
        Apply the global settings present in ``props`` to ``module``.

        Returns
        -------
        list[str]
            Names of the settings written to the module by this call
        """
        if module is None:
            _report(GlobalSettingsError("Invalid engine module", "map_lib", module), on_error)
            return []

        _, applied = self._applied.setdefault(id(module), (module, {}))
        written = []
        for name in GLOBAL_SETTING_NAMES:
            if name not in props:
                continue
            value = props[name]
            if not validate_global_setting(name, value):
                _report(GlobalSettingsError(f"Invalid value for {name}: {value!r}", name, value), on_error)
                continue
            if name in applied:
                if not deep_equal(applied[name], value):
                    _report(
                        GlobalSettingsError(
                            f"{name} was already applied with {applied[name]!r}; "
                            "global settings are applied once per engine module",
                            name,
                            value,
                        ),
                        on_error,
                    )
                continue
            try:
                setattr(module, name, value)
            except Exception as e:
                _report(GlobalSettingsError(f"Failed to set {name}: {e}", name, value), on_error)
                continue
            applied[name] = value
            written.append(name)

        if written:
            logger.debug("[GlobalSettings] Applied %s", ", ".join(written))
        return written

    def reset(self, module: Any = None) -> None:
        """Forget applied settings (for one module, or all)."""
        if module is None:
            self._applied.clear()
        else:
            self._applied.pop(id(module), None)


_registry = GlobalSettingsRegistry()


def get_global_settings_registry() -> GlobalSettingsRegistry:
    return _registry


def apply_global_settings(
    module: Any,
    props: Mapping[str, Any],
    on_error: Callable[[GlobalSettingsError], None] | None = None,
) -> list[str]:
    """Apply engine-wide settings once per engine module."""
    return _registry.apply(module, props, on_error)


def reset_global_settings(module: Any = None) -> None:
    _registry.reset(module)


async def load_rtl_text_plugin(
    module: Any,
    props: Mapping[str, Any],
    on_error: Callable[[GlobalSettingsError], None] | None = None,
    *,
    is_alive: Callable[[], bool] | None = None,
) -> bool:
    """
    Load the right-to-left text plugin if the engine reports it unavailable.

    Parameters
    ----------
    module : EngineModule
        Engine module exposing ``get_rtl_text_plugin_status()`` and
        ``set_rtl_text_plugin(url, callback, lazy)``
    props : Mapping[str, Any]
        ``rtl_text_plugin`` (URL or False), ``rtl_plugin_timeout`` (seconds)
        and ``on_rtl_plugin_error``
    on_error : Callable | None
        Generic error sink
    is_alive : Callable[[], bool] | None
        Liveness check; failures after it turns False are not reported

    Returns
    -------
    bool
        True if the plugin was loaded by this call
    """
    url = props.get("rtl_text_plugin", DEFAULT_RTL_PLUGIN_URL)
    timeout = props.get("rtl_plugin_timeout", DEFAULT_RTL_PLUGIN_TIMEOUT)
    on_plugin_error = props.get("on_rtl_plugin_error")

    if url is False or url is None:
        return False

    get_status = getattr(module, "get_rtl_text_plugin_status", None)
    set_plugin = getattr(module, "set_rtl_text_plugin", None)
    if not callable(get_status) or not callable(set_plugin):
        _report(
            GlobalSettingsError("RTL text plugin methods not available on engine module", "rtl_text_plugin", url),
            on_error,
        )
        return False

    try:
        if get_status() != "unavailable":
            return False

        loop = asyncio.get_running_loop()
        loaded: asyncio.Future[None] = loop.create_future()

        def on_loaded(error: Any = None) -> None:
            if loaded.done():
                return
            if error:
                loaded.set_exception(error if isinstance(error, Exception) else RuntimeError(str(error)))
            else:
                loaded.set_result(None)

        set_plugin(url, on_loaded, True)
        await asyncio.wait_for(loaded, timeout)
        logger.info("[GlobalSettings] RTL text plugin loaded from %s", url)
        return True

    except asyncio.TimeoutError as e:
        error = PluginLoadError("Failed to load RTL text plugin", url, timeout, cause=e)
    except Exception as e:
        error = PluginLoadError(f"Failed to load RTL text plugin: {e}", url, cause=e)

    if is_alive is not None and not is_alive():
        logger.debug("[GlobalSettings] Ignoring RTL plugin failure after unmount")
        return False

    if on_plugin_error is not None:
        try:
            on_plugin_error(error)
        except Exception:
            logger.exception("[GlobalSettings] on_rtl_plugin_error raised")
    _report(error, on_error)
    return False


def _report(error: GlobalSettingsError, on_error: Callable[[GlobalSettingsError], None] | None) -> None:
    logger.warning("[GlobalSettings] %s", error)
    if on_error is None:
        return
    try:
        on_error(error)
    except Exception:
        logger.exception("[GlobalSettings] Error handler raised while reporting: %s", error)


__all__ = [
    "GlobalSettingsRegistry",
    "apply_global_settings",
    "get_global_settings_registry",
    "load_rtl_text_plugin",
    "reset_global_settings",
]
