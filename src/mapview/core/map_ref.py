"""
Application-facing handle to a mounted map.

The handle answers camera queries from the committed camera (never from an
in-flight proposed camera) and forwards an explicit allow-list of engine map
methods. Methods that would bypass property diffing (style, layer, source and
constraint setters, ``remove``) are withheld. Failures are reported as
MapRefError through ``on_error`` instead of raised.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from src.domain.camera import CameraView
from src.shared.exceptions import MapRefError

logger = logging.getLogger(__name__)


# Would desynchronize the engine from the declared props if called directly
SKIP_METHODS: frozenset[str] = frozenset(
    {
        "set_max_bounds",
        "set_min_zoom",
        "set_max_zoom",
        "set_min_pitch",
        "set_max_pitch",
        "set_render_world_copies",
        "set_projection",
        "set_style",
        "add_source",
        "remove_source",
        "add_layer",
        "remove_layer",
        "set_layer_zoom_range",
        "set_filter",
        "set_paint_property",
        "set_layout_property",
        "set_light",
        "set_terrain",
        "set_fog",
        "set_sky",
        "remove",
    }
)

# Engine map methods exposed through the handle
FORWARDED_METHODS: frozenset[str] = frozenset(
    {
        # Camera motion (run as engine-driven updates)
        "jump_to",
        "ease_to",
        "fly_to",
        "pan_to",
        "pan_by",
        "zoom_to",
        "zoom_in",
        "zoom_out",
        "rotate_to",
        "reset_north",
        "reset_north_pitch",
        "snap_to_north",
        "fit_bounds",
        "fit_screen_coordinates",
        "set_center",
        "set_zoom",
        "set_bearing",
        "set_pitch",
        "set_padding",
        "stop",
        # Queries
        "camera_for_bounds",
        "is_moving",
        "is_zooming",
        "is_rotating",
        "is_easing",
        "is_style_loaded",
        "is_source_loaded",
        "are_tiles_loaded",
        "loaded",
        "get_container",
        "get_canvas",
        "get_canvas_container",
        "get_style",
        "get_source",
        "get_layer",
        "get_filter",
        "get_paint_property",
        "get_layout_property",
        "get_light",
        "get_fog",
        "get_terrain",
        "get_projection",
        "get_min_zoom",
        "get_max_zoom",
        "get_min_pitch",
        "get_max_pitch",
        "get_max_bounds",
        "get_render_world_copies",
        "query_source_features",
        # Feature state, images, controls, events
        "set_feature_state",
        "remove_feature_state",
        "get_feature_state",
        "has_image",
        "add_image",
        "update_image",
        "remove_image",
        "list_images",
        "add_control",
        "remove_control",
        "has_control",
        "resize",
        "trigger_repaint",
        "on",
        "off",
        "once",
    }
)


class MapRef:
    """
    Handle returned by ``create_map_ref()``.

    Parameters
    ----------
    controller : MapController
        Controller of the mounted map
    on_error : Callable[[MapRefError], None] | None
        Receives errors raised by forwarded calls
    """

    def __init__(self, controller: Any, on_error: Callable[[MapRefError], None] | None = None):
        self._controller = controller
        self._on_error = on_error

    # =========================================================================
    # Committed camera
    # =========================================================================

    def get_map(self) -> Any:
        """The underlying engine map."""
        return self._controller.map

    def get_committed_camera(self) -> CameraView:
        return self._controller.layer.get_committed()

    def get_center(self) -> Any:
        with self._controller.layer.expose_committed() as layer:
            return layer.center

    def get_zoom(self) -> float:
        return self.get_committed_camera().zoom

    def get_bearing(self) -> float:
        return self.get_committed_camera().bearing

    def get_pitch(self) -> float:
        return self.get_committed_camera().pitch

    def get_padding(self) -> dict[str, float]:
        return self.get_committed_camera().padding

    def get_bounds(self) -> Any:
        return self._with_committed("get_bounds", lambda layer: layer.get_bounds())

    # =========================================================================
    # Coordinate queries against the committed camera
    # =========================================================================

    def project(self, lnglat: Any) -> Any:
        return self._with_committed("project", lambda _: self.get_map().project(lnglat), lnglat)

    def unproject(self, point: Any) -> Any:
        return self._with_committed("unproject", lambda _: self.get_map().unproject(point), point)

    def query_rendered_features(self, geometry: Any = None, options: dict | None = None) -> Any:
        return self._with_committed(
            "query_rendered_features",
            lambda _: self.get_map().query_rendered_features(geometry, options),
            geometry,
        )

    def query_terrain_elevation(self, lnglat: Any, options: dict | None = None) -> Any:
        map_instance = self.get_map()
        if not hasattr(map_instance, "query_terrain_elevation"):
            self._report(
                MapRefError(
                    "query_terrain_elevation is not available on this map instance",
                    operation="method_unavailable",
                    method="query_terrain_elevation",
                    params=(lnglat, options),
                )
            )
            return None
        return self._with_committed(
            "query_terrain_elevation",
            lambda _: map_instance.query_terrain_elevation(lnglat, options),
            lnglat,
        )

    # =========================================================================
    # Forwarding
    # =========================================================================

    def __getattr__(self, name: str) -> Any:
        if name in SKIP_METHODS:
            raise AttributeError(f"{name} is managed through map props and not exposed on the map ref")
        if name not in FORWARDED_METHODS:
            raise AttributeError(name)

        method = getattr(self._controller.map, name, None)
        if not callable(method):
            self._report(
                MapRefError(
                    f"Property {name} is not a function",
                    operation="method_binding",
                    method=name,
                )
            )
            return None

        def forwarded(*args: Any, **kwargs: Any) -> Any:
            try:
                with self._controller.engine_update():
                    return method(*args, **kwargs)
            except Exception as e:
                self._report(
                    MapRefError(
                        f"Error executing {name}: {e}",
                        operation="method_execution",
                        method=name,
                        params=args,
                    )
                )
                return None

        forwarded.__name__ = name
        return forwarded

    def __dir__(self) -> list[str]:
        return sorted({*super().__dir__(), *FORWARDED_METHODS})

    # =========================================================================
    # Internals
    # =========================================================================

    def _with_committed(self, operation: str, fn: Callable[[Any], Any], *params: Any) -> Any:
        try:
            with self._controller.layer.expose_committed(raise_errors=True) as layer:
                return fn(layer)
        except Exception as e:
            self._report(
                MapRefError(
                    f"Error during {operation}: {e}",
                    operation="transform_operation",
                    method=operation,
                    params=tuple(p for p in params if p is not None),
                )
            )
            return None

    def _report(self, error: MapRefError) -> None:
        logger.warning("[MapRef] %s", error)
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception:
            logger.exception("[MapRef] Error handler raised while reporting: %s", error)


def create_map_ref(
    controller: Any,
    on_error: Callable[[MapRefError], None] | None = None,
) -> MapRef | None:
    """
    Create the application handle for a controller.

    Returns None (and reports a MapRefError) if the controller has no live
    map or camera layer.
    """
    if controller is None:
        error = MapRefError("Map controller is required", operation="validation")
    elif controller.is_destroyed or controller.map is None:
        error = MapRefError("Map instance is not available", operation="validation")
    elif controller.layer is None:
        error = MapRefError("Camera layer is not available", operation="validation")
    else:
        return MapRef(controller, on_error=on_error)

    logger.warning("[MapRef] %s", error)
    if on_error is not None:
        on_error(error)
    return None


__all__ = ["FORWARDED_METHODS", "MapRef", "SKIP_METHODS", "create_map_ref"]
