"""
Map controller: one engine map plus its interception layer.

The controller owns a constructed engine map, replaces the map's camera with
an InterceptionLayer and keeps the previous property set. Every
``set_props()`` diffs the new set against the previous one and issues only
the engine calls needed for what changed:

1. construction options (reported if changed, never applied)
2. settings (``set_min_zoom``...)
3. camera (bounds resolved first, then declared into the layer)
4. style document (``set_style`` with or without diffing)
5. style components (light, fog, sky, terrain, projection)
6. interaction handlers (``enable``/``disable``)

Engine hooks installed at construction:
- ``render_task_queue.run`` is bracketed as an engine-driven update
- ``fire`` dispatches with the committed camera exposed
- ``_render`` is flagged so redraw requests are not re-entrant
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from src.domain.camera import DeclaredView, is_finite_number
from src.domain.lifecycle import (
    ControllerLifecycleMixin,
    ControllerState,
    LifecycleError,
)
from src.mapview.camera import InterceptionLayer
from src.mapview.core.props import (
    HANDLER_NAMES,
    SETTING_NAMES,
    STYLE_COMPONENTS,
    camera_props_of,
    is_construction_option,
    partition_props,
)
from src.mapview.interaction.events import (
    CAMERA_EVENTS,
    OTHER_EVENTS,
    POINTER_EVENTS,
    MapErrorEvent,
    ViewStateChangeEvent,
    event_phase,
    invoke_callback,
)
from src.shared.equality import deep_equal
from src.shared.exceptions import (
    ConfigurationError,
    ConstructionError,
    ErrorSink,
    MapViewError,
    ReconciliationError,
)

logger = logging.getLogger(__name__)


def _number_or_zero(value: Any) -> float:
    return float(value) if is_finite_number(value) else 0.0


def build_map_options(props: Mapping[str, Any], container: Any) -> dict[str, Any]:
    """Engine constructor options for a property set.

    The initial camera comes from ``initial_view_state`` when given, else from
    the reactive camera props. Interaction handlers and settings are passed
    through so the engine starts in the declared configuration.
    """
    part = partition_props(props)
    options: dict[str, Any] = {**part.options, **part.settings, **part.handlers}
    if "map_style" in props:
        options["style"] = props["map_style"]

    initial = props.get("initial_view_state") or camera_props_of(props)
    if initial.get("bounds") is not None:
        options["bounds"] = initial["bounds"]
        options["fit_bounds_options"] = initial.get("fit_bounds_options") or {}
    else:
        options["center"] = (
            _number_or_zero(initial.get("longitude")),
            _number_or_zero(initial.get("latitude")),
        )
        options["zoom"] = _number_or_zero(initial.get("zoom"))
        options["pitch"] = _number_or_zero(initial.get("pitch"))
        options["bearing"] = _number_or_zero(initial.get("bearing"))

    options["container"] = container
    return options


class MapController(ControllerLifecycleMixin):
    """
    Controller for one engine map instance.

    Use ``MapController.create()`` to construct the engine map; the
    constructor only wires an already-built map.

    Parameters
    ----------
    map_instance : EngineMap
        Constructed engine map
    props : dict[str, Any]
        Property set the map was constructed from
    container : MountPoint
        Mount point the map renders into
    error_sink : ErrorSink | None
        Additional receiver for reported errors (logged in any case)
    """

    def __init__(
        self,
        map_instance: Any,
        props: Mapping[str, Any],
        container: Any,
        error_sink: ErrorSink | None = None,
    ):
        super().__init__()
        self._map = map_instance
        self._container = container
        self._props: dict[str, Any] = dict(props)
        self._error_sink = error_sink

        self._construction_options = {
            name: value for name, value in props.items() if is_construction_option(name)
        }
        # Last applied style components
        self._style_components: dict[str, Any] = {}
        # Resolved bounds cache: ((bounds, fit options), camera values)
        self._bounds_cache: tuple[tuple[Any, Any], dict[str, Any]] | None = None
        self._in_render = False

        try:
            self._layer = InterceptionLayer(
                getattr(map_instance, "transform", None), error_sink=self._report_error
            )
        except ReconciliationError as e:
            raise ConstructionError(
                "Engine map has no usable camera", reason="transform", cause=e
            ) from e
        map_instance.transform = self._layer

        self._install_hooks()
        self._subscribe_events()

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def create(
        cls,
        map_class: Any,
        props: Mapping[str, Any],
        container: Any,
        error_sink: ErrorSink | None = None,
    ) -> "MapController":
        """
        Construct an engine map and its controller.

        Parameters
        ----------
        map_class : Callable[[dict], EngineMap]
            Engine map constructor
        props : Mapping[str, Any]
            Initial property set
        container : MountPoint
            Mount point to render into

        Returns
        -------
        MapController
            Attached controller

        Raises
        ------
        ConstructionError
            If the container is unavailable, the constructor is missing or
            the engine fails to construct
        """
        if container is None:
            raise ConstructionError("Map container is unavailable", reason="container")
        if map_class is None or not callable(map_class):
            raise ConstructionError(
                f"Engine module does not provide a map constructor: {map_class!r}",
                reason="module",
            )

        options = build_map_options(props, container)
        try:
            map_instance = map_class(options)
        except Exception as e:
            raise ConstructionError("Engine failed to construct map", reason="constructor", cause=e) from e

        controller = cls(map_instance, props, container, error_sink=error_sink)
        controller._initialize(props)
        logger.info(
            "[MapController] Map created (controlled=%s)",
            controller._layer.declared.is_controlled,
        )
        return controller

    def _initialize(self, props: Mapping[str, Any]) -> None:
        initial = props.get("initial_view_state")
        if isinstance(initial, Mapping) and initial.get("padding") is not None:
            self._layer.apply_view(DeclaredView(padding=dict(initial["padding"])))
        self._update_view_state(props)
        self._update_style_components(props)
        self._transition_to(ControllerState.ATTACHED)

    def _install_hooks(self) -> None:
        map_instance = self._map
        map_instance.fire = functools.partial(self._fire_event, map_instance.fire)
        map_instance._render = functools.partial(self._render, map_instance._render)
        queue = map_instance.render_task_queue
        queue.run = functools.partial(self._run_render_tasks, queue.run)

    def _subscribe_events(self) -> None:
        map_instance = self._map
        for event_type in CAMERA_EVENTS:
            map_instance.on(event_type, self._on_camera_event)
        for event_type in POINTER_EVENTS:
            map_instance.on(event_type, self._on_pointer_event)
        for event_type in OTHER_EVENTS:
            map_instance.on(event_type, self._on_event)
        map_instance.on("style.load", self._on_style_load)
        map_instance.on("sourcedata", self._on_source_data)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def map(self) -> Any:
        """The engine map (its ``transform`` is the interception layer)."""
        return self._map

    @property
    def layer(self) -> InterceptionLayer:
        return self._layer

    # The camera the engine sees, for overlays that expect ``transform``
    transform = layer

    @property
    def container(self) -> Any:
        return self._container

    @property
    def props(self) -> dict[str, Any]:
        """Property set applied by the last ``set_props()``."""
        return self._props

    # =========================================================================
    # Property updates
    # =========================================================================

    def set_props(self, props: Mapping[str, Any]) -> None:
        """
        Apply a new property set, issuing engine calls only for what changed.

        Raises
        ------
        LifecycleError
            If the controller is not attached
        """
        if self._state is not ControllerState.ATTACHED:
            raise LifecycleError("Cannot set props on a detached map", self._state)

        old_props = self._props
        self._props = dict(props)

        self._check_construction_options(props, old_props)
        settings_changed = self._update_settings(props, old_props)
        view_changed = self._update_view_state(props)
        self._update_style(props, old_props)
        self._update_style_components(props)
        self._update_handlers(props, old_props)

        if (settings_changed or view_changed) and not self._map.is_moving():
            self.redraw()

    def _check_construction_options(
        self, props: Mapping[str, Any], old_props: Mapping[str, Any]
    ) -> None:
        """Report construction options that changed after creation."""
        names = {n for n in (*props, *old_props) if is_construction_option(n)}
        for name in sorted(names):
            value = props.get(name)
            if deep_equal(value, old_props.get(name)):
                continue
            if deep_equal(value, self._construction_options.get(name)):
                continue
            self._report_error(
                ConfigurationError(
                    "Construction option cannot change after the map is created",
                    option=name,
                    value=value,
                )
            )

    def _update_settings(self, props: Mapping[str, Any], old_props: Mapping[str, Any]) -> bool:
        changed = False
        for name in SETTING_NAMES:
            if name in props and not deep_equal(props[name], old_props.get(name)):
                getattr(self._map, f"set_{name}")(props[name])
                changed = True
        return changed

    def _update_view_state(self, props: Mapping[str, Any]) -> bool:
        """Declare camera props into the layer.

        Returns
        -------
        bool
            True if the committed camera changed
        """
        camera = camera_props_of(props)
        bounds = camera.get("bounds")
        if bounds is not None:
            fitted = self._resolve_bounds(bounds, camera.get("fit_bounds_options"))
            if fitted is not None:
                # Bounds take precedence over center and zoom
                camera = {**camera, **fitted}
        return self._layer.set_declared(DeclaredView.from_mapping(camera))

    def _resolve_bounds(self, bounds: Any, options: Any) -> dict[str, Any] | None:
        key = (bounds, options)
        if self._bounds_cache is not None and deep_equal(self._bounds_cache[0], key):
            return self._bounds_cache[1]

        result = self._map.camera_for_bounds(bounds, dict(options or {}))
        if not result:
            self._report_error(
                ReconciliationError(
                    "Cannot fit camera to bounds",
                    operation="fit_bounds",
                    property="bounds",
                    value=bounds,
                )
            )
            return None

        center = result["center"]
        fitted = {"longitude": center.lng, "latitude": center.lat, "zoom": result["zoom"]}
        if result.get("bearing") is not None:
            fitted["bearing"] = result["bearing"]
        self._bounds_cache = (key, fitted)
        return fitted

    def _update_style(self, props: Mapping[str, Any], old_props: Mapping[str, Any]) -> bool:
        style = props.get("map_style")
        if deep_equal(style, old_props.get("map_style")):
            return False
        self._map.set_style(style, {"diff": props.get("style_diffing", True)})
        # A new style document drops the components applied to the old one
        self._style_components = {}
        return True

    def _update_style_components(self, props: Mapping[str, Any]) -> bool:
        pending = {
            name: props.get(name)
            for name in STYLE_COMPONENTS
            if not deep_equal(props.get(name), self._style_components.get(name))
        }
        if not pending or not self._map.is_style_loaded():
            return False

        changed = False
        for name, value in pending.items():
            if name == "terrain" and value and not self._map.get_source(value.get("source")):
                # Applied from the sourcedata listener once the source exists
                continue
            getattr(self._map, f"set_{name}")(value)
            self._style_components[name] = value
            changed = True
        return changed

    def _update_handlers(self, props: Mapping[str, Any], old_props: Mapping[str, Any]) -> bool:
        changed = False
        for name in HANDLER_NAMES:
            value = props.get(name, True)
            if deep_equal(value, old_props.get(name, True)):
                continue
            handler = getattr(self._map, name, None)
            if handler is None:
                continue
            if value:
                if isinstance(value, Mapping):
                    handler.enable(dict(value))
                else:
                    handler.enable()
            else:
                handler.disable()
            changed = True
        return changed

    def redraw(self) -> None:
        """Render synchronously unless a render is already in progress."""
        map_instance = self._map
        if self._in_render or getattr(map_instance, "style", None) is None:
            return
        frame = getattr(map_instance, "_frame", None)
        if frame is not None:
            frame.cancel()
            map_instance._frame = None
        map_instance._render()

    @contextmanager
    def engine_update(self) -> Iterator[InterceptionLayer]:
        """Bracket an engine call that may move the camera."""
        with self._layer.engine_update() as layer:
            yield layer

    # =========================================================================
    # Pooling and teardown
    # =========================================================================

    def recycle(self) -> "MapController":
        """Detach from the mount point, keeping the engine map alive.

        Callbacks of the old mount are dropped so a pooled map never reports
        to an unmounted application.
        """
        self._transition_to(ControllerState.DETACHING)
        self._props = {k: v for k, v in self._props.items() if not k.startswith("on_")}
        logger.debug("[MapController] Recycled")
        return self

    def mark_pooled(self) -> None:
        self._transition_to(ControllerState.POOLED)

    def reattach(self, props: Mapping[str, Any], container: Any) -> None:
        """
        Move a pooled map into a new container and apply new props.

        The engine's DOM nodes are moved, not rebuilt. ``initial_view_state``
        is applied once, then the reactive props are declared on top of it.
        Construction options are not reapplied.

        Raises
        ------
        ConstructionError
            If the container is unavailable
        """
        if container is None:
            raise ConstructionError("Map container is unavailable", reason="container")
        self._transition_to(ControllerState.ATTACHED)

        map_instance = self._map
        old_container = map_instance.get_container()
        if old_container is not container:
            container.class_name = old_container.class_name
            for child in list(old_container.child_nodes):
                container.append_child(child)
        map_instance._container = container
        self._container = container

        # Declared values of the previous mount no longer apply
        self._layer.set_declared(DeclaredView())
        initial = props.get("initial_view_state")
        if isinstance(initial, Mapping) and initial:
            if initial.get("bounds") is not None:
                fit_options = dict(initial.get("fit_bounds_options") or {})
                map_instance.fit_bounds(initial["bounds"], {**fit_options, "duration": 0})
            else:
                self._layer.apply_view(DeclaredView.from_mapping(initial))

        # Diffing against the previous style document would be wrong after a move
        self.set_props({**props, "style_diffing": False})
        map_instance.resize()

        if map_instance.is_style_loaded():
            map_instance.fire("load")
        else:
            map_instance.once("styledata", lambda _event: map_instance.fire("load"))
        logger.info("[MapController] Reattached pooled map")

    def destroy(self) -> None:
        """Remove the engine map. Idempotent."""
        if self.is_destroyed:
            return
        try:
            self._map.remove()
        except Exception as e:
            logger.error(f"[MapController] Error removing map: {e}", exc_info=True)
        self._transition_to(ControllerState.DESTROYED)
        logger.debug("[MapController] Destroyed")

    # =========================================================================
    # Engine hooks
    # =========================================================================

    def _fire_event(self, base_fire: Any, event: Any, *args: Any, **kwargs: Any) -> Any:
        # Listeners and controls observe the committed camera
        with self._layer.expose_committed():
            return base_fire(event, *args, **kwargs)

    def _render(self, base_render: Any, *args: Any, **kwargs: Any) -> Any:
        self._in_render = True
        try:
            return base_render(*args, **kwargs)
        finally:
            self._in_render = False

    def _run_render_tasks(self, base_run: Any, *args: Any, **kwargs: Any) -> Any:
        with self._layer.engine_update():
            return base_run(*args, **kwargs)

    # =========================================================================
    # Event re-emission
    # =========================================================================

    def _on_camera_event(self, event: Any) -> None:
        name = CAMERA_EVENTS[event.type]
        callback = self._props.get(name)
        if callback is None:
            return
        view_state = self._layer.get_proposed() or self._layer.get_committed()
        invoke_callback(
            callback,
            ViewStateChangeEvent(
                type=event.type,
                phase=event_phase(event.type),
                view_state=view_state,
                target=self._map,
                original_event=event,
            ),
            name,
        )

    def _on_pointer_event(self, event: Any) -> None:
        name = POINTER_EVENTS[event.type]
        invoke_callback(self._props.get(name), event, name)

    def _on_event(self, event: Any) -> None:
        name = OTHER_EVENTS[event.type]
        invoke_callback(self._props.get(name), event, name)

    def _on_style_load(self, event: Any) -> None:
        self._style_components = {}
        self._update_style_components(self._props)
        self._update_view_state(self._props)

    def _on_source_data(self, event: Any) -> None:
        self._update_style_components(self._props)

    # =========================================================================
    # Error reporting
    # =========================================================================

    def _report_error(self, error: MapViewError) -> None:
        """Log a reported error and deliver it to the sink and ``on_error``."""
        logger.warning("[MapController] %s", error)
        if self._error_sink is not None:
            try:
                self._error_sink(error)
            except Exception:
                logger.exception("[MapController] Error sink raised while reporting: %s", error)
        invoke_callback(
            self._props.get("on_error"),
            MapErrorEvent(error=error, target=self._map),
            "on_error",
        )

    def __repr__(self) -> str:
        return f"MapController(state={self._state.name}, container={self._container!r})"


__all__ = ["MapController", "build_map_options"]
