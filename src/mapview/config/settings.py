"""
Configuration dataclasses for the map binding.

- GlobalSettings: engine-wide settings applied once per engine module
- MapViewConfig: binding configuration (pooling, logging, defaults)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, fields
from typing import Any

from src.shared.exceptions import ConfigError


logger = logging.getLogger(__name__)


DEFAULT_RTL_PLUGIN_URL = (
    "https://api.mapbox.com/mapbox-gl-js/plugins/mapbox-gl-rtl-text/v0.2.3/mapbox-gl-rtl-text.js"
)
DEFAULT_RTL_PLUGIN_TIMEOUT = 10.0  # seconds

# Engine module attributes set by apply_global_settings()
GLOBAL_SETTING_NAMES: tuple[str, ...] = (
    "base_api_url",
    "max_parallel_image_requests",
    "worker_class",
    "worker_count",
    "worker_url",
)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def validate_global_setting(name: str, value: Any) -> bool:
    """Whether ``value`` is acceptable for the engine-wide setting ``name``."""
    if name in ("max_parallel_image_requests", "worker_count"):
        return isinstance(value, int) and not isinstance(value, bool) and value > 0
    if name in ("base_api_url", "worker_url"):
        return isinstance(value, str) and len(value) > 0
    if name == "worker_class":
        return value is not None
    return True


@dataclass
class GlobalSettings:
    """Engine-wide settings.

    Attributes
    ----------
    base_api_url : str | None
        Default API URL for tiles, styles, sprites and glyphs
    max_parallel_image_requests : int | None
        Maximum number of images loaded in parallel
    worker_class : Any
        Worker implementation (takes precedence over ``worker_url``)
    worker_count : int | None
        Number of engine workers
    worker_url : str | None
        Self-hosted worker bundle URL
    rtl_text_plugin : str | bool
        Right-to-left text shaping plugin URL, or False to disable
    rtl_plugin_timeout : float
        Seconds to wait for the plugin before reporting a PluginLoadError
    on_rtl_plugin_error : Callable | None
        Called with the PluginLoadError in addition to the generic error sink
    """

    base_api_url: str | None = None
    max_parallel_image_requests: int | None = None
    worker_class: Any = None
    worker_count: int | None = None
    worker_url: str | None = None
    rtl_text_plugin: str | bool = DEFAULT_RTL_PLUGIN_URL
    rtl_plugin_timeout: float = DEFAULT_RTL_PLUGIN_TIMEOUT
    on_rtl_plugin_error: Callable[[Exception], None] | None = field(
        default=None, repr=False, compare=False
    )

    @classmethod
    def from_props(cls, props: Mapping[str, Any]) -> "GlobalSettings":
        """Pick the global settings out of a property set or config mapping."""
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in props.items() if k in names})

    def to_props(self) -> dict[str, Any]:
        """Settings that were provided, as a property mapping."""
        props: dict[str, Any] = {
            name: getattr(self, name)
            for name in GLOBAL_SETTING_NAMES
            if getattr(self, name) is not None
        }
        props["rtl_text_plugin"] = self.rtl_text_plugin
        props["rtl_plugin_timeout"] = self.rtl_plugin_timeout
        if self.on_rtl_plugin_error is not None:
            props["on_rtl_plugin_error"] = self.on_rtl_plugin_error
        return props

    def to_dict(self) -> dict[str, object]:
        """Serializable settings (callbacks and worker classes omitted)."""
        return {
            name: value
            for name, value in self.to_props().items()
            if name not in ("on_rtl_plugin_error", "worker_class")
        }


@dataclass
class MapViewConfig:
    """Binding configuration.

    Attributes
    ----------
    reuse_maps : bool
        Return unmounted maps to the instance pool instead of destroying them
    pool_size : int | None
        Maximum pooled maps (None = unbounded)
    log_level : str
        Logging level for the CLI
    globals : GlobalSettings
        Engine-wide settings
    initial_props : dict
        Props merged under every mount's own props
    """

    reuse_maps: bool = False
    pool_size: int | None = None
    log_level: str = "INFO"
    globals: GlobalSettings = field(default_factory=GlobalSettings)
    initial_props: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.pool_size is not None and self.pool_size < 1:
            raise ConfigError(f"pool_size must be positive, got {self.pool_size}", field_name="pool_size")
        self.log_level = self.log_level.upper()
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"Unknown log level: {self.log_level}", field_name="log_level")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MapViewConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config fields: {', '.join(unknown)}", field_name=unknown[0])
        values = dict(data)
        globals_data = values.pop("globals", None) or {}
        if not isinstance(globals_data, Mapping):
            raise ConfigError("globals must be a mapping", field_name="globals")
        return cls(globals=GlobalSettings.from_props(globals_data), **values)

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for YAML serialization."""
        return {
            "reuse_maps": self.reuse_maps,
            "pool_size": self.pool_size,
            "log_level": self.log_level,
            "globals": self.globals.to_dict(),
            "initial_props": dict(self.initial_props),
        }


__all__ = [
    "DEFAULT_RTL_PLUGIN_TIMEOUT",
    "DEFAULT_RTL_PLUGIN_URL",
    "GLOBAL_SETTING_NAMES",
    "GlobalSettings",
    "MapViewConfig",
    "validate_global_setting",
]
