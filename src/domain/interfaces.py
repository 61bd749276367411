"""Domain interfaces (protocols) for the wrapped map engine.

This module defines the capabilities consumed from the engine and the
contracts between the binding's own components:
- CameraTransform: the engine's live camera object
- EngineMap: a constructed engine map instance
- EngineModule: the loaded engine library (map constructor + global settings)
- MountPoint: the container a map is attached to
- Poolable: what the instance pool needs from a detached controller

The engine is duck-typed; these protocols document the surface the binding
relies on. They are runtime-checkable.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable


if TYPE_CHECKING:
    from src.domain.lifecycle import ControllerState


@runtime_checkable
class CameraTransform(Protocol):
    """The engine's camera object, mutated in place by the engine.

    Recognized fields: ``center``, ``zoom``, ``pitch``, ``bearing``,
    ``padding``, ``elevation`` and the private aliases the engine writes
    directly (``_center``, ``_zoom``, ``_sea_level_zoom``, ``_pitch``,
    ``_bearing``, ``_padding``).
    ``center`` is the engine coordinate type with ``lng``/``lat`` and is
    rebuilt as ``type(center)(lng, lat)``.
    """

    center: Any
    zoom: float
    pitch: float
    bearing: float
    padding: dict[str, float]

    def clone(self) -> "CameraTransform":
        """Independent copy used as the proposed camera."""
        ...

    def is_padding_equal(self, padding: dict[str, float]) -> bool:
        ...

    def _calc_matrices(self) -> None:
        """Recompute derived matrices from the camera fields."""
        ...

    def _set_zoom(self, zoom: float) -> None:
        """Set zoom bypassing the clamping setter."""
        ...


@runtime_checkable
class EngineMap(Protocol):
    """A constructed engine map.

    The binding replaces ``transform`` with its interception layer and
    brackets ``render_task_queue.run`` (where input handlers and animations
    mutate the camera) as an engine-driven update.
    """

    transform: Any
    render_task_queue: Any

    def on(self, event: str, handler: Callable[[Any], None]) -> Any:
        ...

    def off(self, event: str, handler: Callable[[Any], None]) -> Any:
        ...

    def once(self, event: str, handler: Callable[[Any], None]) -> Any:
        ...

    def fire(self, event: Any, properties: dict | None = None) -> Any:
        ...

    def get_container(self) -> "MountPoint":
        ...

    def is_moving(self) -> bool:
        ...

    def is_style_loaded(self) -> bool:
        ...

    def resize(self) -> Any:
        ...

    def remove(self) -> None:
        ...

    def _render(self, timestamp: float | None = None) -> Any:
        ...


@runtime_checkable
class EngineModule(Protocol):
    """A loaded engine library exposing the ``Map`` constructor."""

    Map: Callable[[dict[str, Any]], EngineMap]


@runtime_checkable
class MountPoint(Protocol):
    """Container element a map renders into."""

    class_name: str
    child_nodes: list[Any]

    def append_child(self, node: Any) -> Any:
        ...

    def remove_child(self, node: Any) -> Any:
        ...


class Poolable(Protocol):
    """Controller surface used by the instance pool."""

    @property
    def state(self) -> "ControllerState":
        ...

    def mark_pooled(self) -> None:
        ...

    def reattach(self, props: dict[str, Any], container: MountPoint) -> None:
        ...

    def destroy(self) -> None:
        ...


__all__ = [
    "CameraTransform",
    "EngineMap",
    "EngineModule",
    "MountPoint",
    "Poolable",
]
