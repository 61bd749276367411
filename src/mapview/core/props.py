"""
Declarative prop names and partitioning.

A property set is a plain dict. Keys fall into:
- camera fields: declared into the interception layer
- style fields: style document and style components, diffed by value
- settings: engine constraints forwarded to ``set_<name>``
- handlers: interaction toggles (``enable``/``disable``)
- callbacks: ``on_*`` event callbacks, read at emit time
- mount keys: consumed by the lifecycle manager
- everything else: non-reactive construction options
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from src.mapview.interaction.events import CALLBACK_PROPS


CAMERA_PROPS: frozenset[str] = frozenset(
    {
        "longitude",
        "latitude",
        "zoom",
        "pitch",
        "bearing",
        "padding",
        "elevation",
        "bounds",
        "fit_bounds_options",
        "view_state",
    }
)

STYLE_PROPS: frozenset[str] = frozenset({"map_style", "style_diffing"})

# Applied only once the style is loaded
STYLE_COMPONENTS: tuple[str, ...] = ("light", "fog", "sky", "terrain", "projection")

SETTING_NAMES: tuple[str, ...] = (
    "min_zoom",
    "max_zoom",
    "min_pitch",
    "max_pitch",
    "max_bounds",
    "render_world_copies",
)

HANDLER_NAMES: tuple[str, ...] = (
    "scroll_zoom",
    "box_zoom",
    "drag_rotate",
    "drag_pan",
    "keyboard",
    "double_click_zoom",
    "touch_zoom_rotate",
    "touch_pitch",
)

MOUNT_PROPS: frozenset[str] = frozenset(
    {
        "id",
        "map_lib",
        "reuse_maps",
        "initial_view_state",
        "children",
        "loading",
        "fallback",
        # Engine-wide settings, applied before any instance exists
        "base_api_url",
        "max_parallel_image_requests",
        "worker_class",
        "worker_count",
        "worker_url",
        "rtl_text_plugin",
        "rtl_plugin_timeout",
        "on_rtl_plugin_error",
    }
)

REACTIVE_PROPS: frozenset[str] = (
    CAMERA_PROPS
    | STYLE_PROPS
    | frozenset(STYLE_COMPONENTS)
    | frozenset(SETTING_NAMES)
    | frozenset(HANDLER_NAMES)
    | CALLBACK_PROPS
)


def is_construction_option(name: str) -> bool:
    """Props that are fixed once the engine map is constructed."""
    return name not in REACTIVE_PROPS and name not in MOUNT_PROPS and not name.startswith("on_")


@dataclass
class PropPartition:
    """A property set split by how each key is applied."""

    camera: dict[str, Any] = field(default_factory=dict)
    style: dict[str, Any] = field(default_factory=dict)
    settings: dict[str, Any] = field(default_factory=dict)
    handlers: dict[str, Any] = field(default_factory=dict)
    callbacks: dict[str, Any] = field(default_factory=dict)
    mount: dict[str, Any] = field(default_factory=dict)
    options: dict[str, Any] = field(default_factory=dict)


def partition_props(props: Mapping[str, Any]) -> PropPartition:
    """Split a property set into its reactive and non-reactive groups."""
    part = PropPartition()
    for name, value in props.items():
        if name in CAMERA_PROPS:
            part.camera[name] = value
        elif name in STYLE_PROPS or name in STYLE_COMPONENTS:
            part.style[name] = value
        elif name in SETTING_NAMES:
            part.settings[name] = value
        elif name in HANDLER_NAMES:
            part.handlers[name] = value
        elif name in MOUNT_PROPS:
            part.mount[name] = value
        elif name.startswith("on_"):
            part.callbacks[name] = value
        else:
            part.options[name] = value
    return part


def camera_props_of(props: Mapping[str, Any]) -> dict[str, Any]:
    """Camera values of a property set (``view_state`` entries merged in)."""
    view_state = props.get("view_state")
    if isinstance(view_state, Mapping):
        return {**view_state, **{k: v for k, v in props.items() if k in CAMERA_PROPS and k != "view_state"}}
    return {k: v for k, v in props.items() if k in CAMERA_PROPS}


__all__ = [
    "CAMERA_PROPS",
    "HANDLER_NAMES",
    "MOUNT_PROPS",
    "PropPartition",
    "REACTIVE_PROPS",
    "SETTING_NAMES",
    "STYLE_COMPONENTS",
    "STYLE_PROPS",
    "camera_props_of",
    "is_construction_option",
    "partition_props",
]
