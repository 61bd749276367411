"""
Mount/unmount boundary for one map.

MapLifecycle acquires the engine module (asynchronously), applies engine-wide
settings, then either reattaches a pooled controller or constructs a new one.
Unmounting returns the controller to the pool (``reuse_maps``) or destroys it.

Every asynchronous resume point checks a mount generation: results that
arrive after an unmount (or a newer mount) are discarded.
"""

from __future__ import annotations

import asyncio
import importlib
import inspect
import logging
import uuid
from collections.abc import Callable, Mapping
from typing import Any

from src.domain.lifecycle import MOUNT_TRANSITIONS, MountState, check_transition
from src.infrastructure.cache.instance_pool import InstancePool
from src.mapview.config.global_settings import apply_global_settings, load_rtl_text_plugin
from src.mapview.config.settings import GLOBAL_SETTING_NAMES, MapViewConfig
from src.mapview.core.controller import MapController
from src.mapview.core.map_ref import MapRef, create_map_ref
from src.mapview.interaction.events import MapErrorEvent, invoke_callback
from src.shared.equality import deep_equal
from src.shared.exceptions import ConstructionError, MapViewError

logger = logging.getLogger(__name__)


# Props whose change lets a failed mount try again
RETRY_PROPS = ("map_lib", "reuse_maps", "id")

DEFAULT_MAP_ID = "default"

GLOBAL_PROPS = frozenset(
    {*GLOBAL_SETTING_NAMES, "rtl_text_plugin", "rtl_plugin_timeout", "on_rtl_plugin_error"}
)

_default_pool: InstancePool | None = None


def get_default_pool() -> InstancePool:
    """Process-wide pool shared by lifecycles created without one."""
    global _default_pool
    if _default_pool is None:
        _default_pool = InstancePool()
    return _default_pool


class MountedMaps:
    """Maps currently mounted, by id, for lookup from sibling components."""

    def __init__(self) -> None:
        self._maps: dict[str, MapRef] = {}

    def on_map_mount(self, map_ref: MapRef, map_id: str | None = None) -> None:
        self._maps[map_id or DEFAULT_MAP_ID] = map_ref

    def on_map_unmount(self, map_id: str | None = None) -> None:
        self._maps.pop(map_id or DEFAULT_MAP_ID, None)

    def get(self, map_id: str | None = None) -> MapRef | None:
        return self._maps.get(map_id or DEFAULT_MAP_ID)

    def ids(self) -> list[str]:
        return list(self._maps)

    def __contains__(self, map_id: object) -> bool:
        return map_id in self._maps

    def __len__(self) -> int:
        return len(self._maps)


async def resolve_map_lib(map_lib: Any) -> Any:
    """
    Resolve the ``map_lib`` prop to an engine module.

    Accepts a module-like object exposing ``Map``, an import path, an
    awaitable, or a factory returning either.

    Raises
    ------
    ConstructionError
        If nothing usable was provided or the import failed
    """
    if map_lib is None:
        raise ConstructionError("No engine module provided (map_lib)", reason="module")

    try:
        if isinstance(map_lib, str):
            module = importlib.import_module(map_lib)
        elif inspect.isawaitable(map_lib):
            module = await map_lib
        elif hasattr(map_lib, "Map"):
            module = map_lib
        elif callable(map_lib):
            module = map_lib()
            if inspect.isawaitable(module):
                module = await module
        else:
            module = map_lib
    except ConstructionError:
        raise
    except Exception as e:
        raise ConstructionError("Failed to load engine module", reason="module", cause=e) from e

    if not callable(getattr(module, "Map", None)):
        raise ConstructionError(
            f"Engine module does not provide a Map constructor: {module!r}",
            reason="module",
        )
    return module


class MapLifecycle:
    """
    Lifecycle manager for one mount point.

    Parameters
    ----------
    pool : InstancePool | None
        Pool used when ``reuse_maps`` is set (defaults to a shared pool)
    mounted_maps : MountedMaps | None
        Registry notified on mount and unmount
    config : MapViewConfig | None
        Binding configuration (global settings, reuse default, base props)
    """

    def __init__(
        self,
        pool: InstancePool | None = None,
        mounted_maps: MountedMaps | None = None,
        config: MapViewConfig | None = None,
    ):
        self.config = config or MapViewConfig()
        if pool is None and self.config.pool_size is not None:
            pool = InstancePool(max_size=self.config.pool_size)
        self._pool = pool
        self._mounted_maps = mounted_maps

        self._state = MountState.UNMOUNTED
        self._generation = 0
        self._props: dict[str, Any] = {}
        self._container: Any = None
        self._controller: MapController | None = None
        self._map_ref: MapRef | None = None
        self._error: MapViewError | None = None
        self._plugin_task: asyncio.Task | None = None

        # Pool identity when no id prop is given
        self._fallback_key = f"map-{uuid.uuid4().hex[:12]}"

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def state(self) -> MountState:
        return self._state

    @property
    def error(self) -> MapViewError | None:
        """Error of the last failed mount attempt."""
        return self._error

    @property
    def controller(self) -> MapController | None:
        return self._controller

    @property
    def map_ref(self) -> MapRef | None:
        return self._map_ref

    @property
    def plugin_task(self) -> asyncio.Task | None:
        """Background RTL text plugin load, if one was started."""
        return self._plugin_task

    @property
    def pool(self) -> InstancePool:
        if self._pool is None:
            self._pool = get_default_pool()
        return self._pool

    @property
    def pool_key(self) -> str:
        return self._props.get("id") or self._fallback_key

    @property
    def reuse_maps(self) -> bool:
        return bool(self._props.get("reuse_maps", self.config.reuse_maps))

    # =========================================================================
    # Mount boundary
    # =========================================================================

    async def mount(self, props: Mapping[str, Any], container: Any) -> MapRef | None:
        """
        Mount a map into ``container``.

        Returns
        -------
        MapRef | None
            Handle to the mounted map, or None if the mount failed or was
            unmounted before it completed (see ``state`` and ``error``)
        """
        check_transition(MOUNT_TRANSITIONS, self._state, MountState.LOADING)
        self._generation += 1
        self._props = {**self.config.initial_props, **props}
        self._container = container
        return await self._load()

    async def update(self, props: Mapping[str, Any]) -> MapRef | None:
        """Apply a new property set to the mounted map.

        While loading, the props are used once construction happens. A change
        to ``map_lib``, ``reuse_maps`` or ``id`` remounts a mounted map and
        retries a failed mount.
        """
        old_props = self._props
        self._props = {**self.config.initial_props, **props}
        remount = any(not deep_equal(self._props.get(k), old_props.get(k)) for k in RETRY_PROPS)

        if self._state is MountState.FAILED:
            if remount:
                return await self.retry()
            return None

        if self._state is MountState.MOUNTED and remount:
            logger.info("[MapLifecycle] Engine, reuse or id changed; remounting")
            container = self._container
            # Release under the props the map was mounted with
            self._props = old_props
            self.unmount()
            return await self.mount(props, container)

        if self._state is MountState.MOUNTED and self._controller is not None:
            self._controller.set_props(self._props)
        return self._map_ref

    async def retry(self) -> MapRef | None:
        """Try a failed mount again with the current props."""
        if self._state is not MountState.FAILED:
            return self._map_ref
        logger.info("[MapLifecycle] Retrying mount")
        return await self._load()

    def unmount(self) -> None:
        """Release the map: back to the pool with ``reuse_maps``, else destroyed."""
        self._generation += 1

        if self._map_ref is not None and self._mounted_maps is not None:
            self._mounted_maps.on_map_unmount(self._props.get("id"))

        controller = self._controller
        self._controller = None
        self._map_ref = None
        if controller is not None:
            if self.reuse_maps:
                controller.recycle()
                self.pool.store(self.pool_key, controller)
            else:
                controller.destroy()

        if self._state is not MountState.UNMOUNTED:
            self._set_state(MountState.UNMOUNTED)
        self._error = None

    # =========================================================================
    # Loading
    # =========================================================================

    async def _load(self) -> MapRef | None:
        generation = self._generation
        self._set_state(MountState.LOADING)
        self._error = None

        try:
            module = await resolve_map_lib(self._props.get("map_lib"))
        except ConstructionError as e:
            if self._is_current(generation):
                self._fail(e)
            return None

        if not self._is_current(generation):
            logger.debug("[MapLifecycle] Engine module resolved after unmount; discarded")
            return None

        props = self._props
        global_props = {
            **self.config.globals.to_props(),
            **{k: v for k, v in props.items() if k in GLOBAL_PROPS},
        }
        apply_global_settings(module, global_props, on_error=self._report)
        self._start_rtl_plugin(module, global_props, generation)

        try:
            controller = self._acquire_controller(module, props)
        except ConstructionError as e:
            self._fail(e)
            return None

        self._controller = controller
        self._map_ref = create_map_ref(controller, on_error=self._report)
        if self._mounted_maps is not None and self._map_ref is not None:
            self._mounted_maps.on_map_mount(self._map_ref, props.get("id"))
        self._set_state(MountState.MOUNTED)
        return self._map_ref

    def _acquire_controller(self, module: Any, props: dict[str, Any]) -> MapController:
        container = self._container
        try:
            if self.reuse_maps:
                controller = self.pool.reuse(self.pool_key, props, container)
                if controller is not None:
                    logger.info("[MapLifecycle] Reusing pooled map %r", self.pool_key)
                    return controller
            return MapController.create(module.Map, props, container)
        except ConstructionError:
            raise
        except Exception as e:
            raise ConstructionError("Map construction failed", reason="constructor", cause=e) from e

    def _start_rtl_plugin(self, module: Any, props: Mapping[str, Any], generation: int) -> None:
        if props.get("rtl_text_plugin") is False:
            return
        if self._plugin_task is not None and not self._plugin_task.done():
            return
        self._plugin_task = asyncio.get_running_loop().create_task(
            load_rtl_text_plugin(
                module,
                props,
                self._report,
                is_alive=lambda: self._is_current(generation),
            )
        )

    # =========================================================================
    # State and errors
    # =========================================================================

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and self._state is not MountState.UNMOUNTED

    def _set_state(self, new_state: MountState) -> None:
        check_transition(MOUNT_TRANSITIONS, self._state, new_state)
        logger.debug("[MapLifecycle] %s -> %s", self._state.name, new_state.name)
        self._state = new_state

    def _fail(self, error: ConstructionError) -> None:
        logger.error(f"[MapLifecycle] Mount failed: {error}")
        self._error = error
        self._set_state(MountState.FAILED)
        self._notify_error(error)

    def _report(self, error: MapViewError) -> None:
        logger.warning("[MapLifecycle] %s", error)
        self._notify_error(error)

    def _notify_error(self, error: MapViewError) -> None:
        callback: Callable[[Any], Any] | None = self._props.get("on_error")
        invoke_callback(callback, MapErrorEvent(error=error, target=self._map_ref), "on_error")


__all__ = [
    "DEFAULT_MAP_ID",
    "MapLifecycle",
    "MountedMaps",
    "get_default_pool",
    "resolve_map_lib",
]
