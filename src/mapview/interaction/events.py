"""
Event tables and notification payloads for the map binding.

Engine events are re-emitted to the application through callback props
(``on_move``, ``on_zoom_end``, ``on_click``, ``on_error``...). Camera events
carry a ViewStateChangeEvent whose ``view_state`` is what the camera *tried*
to become (proposed) when a declared value overrode it.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from src.domain.camera import CameraView
from src.shared.exceptions import MapViewError

logger = logging.getLogger(__name__)


class EventPhase(Enum):
    """Phase of a camera gesture."""

    START = "start"
    CONTINUE = "continue"
    END = "end"


# Engine camera event -> callback prop
CAMERA_EVENTS: dict[str, str] = {
    "movestart": "on_move_start",
    "move": "on_move",
    "moveend": "on_move_end",
    "dragstart": "on_drag_start",
    "drag": "on_drag",
    "dragend": "on_drag_end",
    "zoomstart": "on_zoom_start",
    "zoom": "on_zoom",
    "zoomend": "on_zoom_end",
    "rotatestart": "on_rotate_start",
    "rotate": "on_rotate",
    "rotateend": "on_rotate_end",
    "pitchstart": "on_pitch_start",
    "pitch": "on_pitch",
    "pitchend": "on_pitch_end",
}

POINTER_EVENTS: dict[str, str] = {
    "mousedown": "on_mouse_down",
    "mouseup": "on_mouse_up",
    "mouseover": "on_mouse_over",
    "mousemove": "on_mouse_move",
    "click": "on_click",
    "dblclick": "on_dbl_click",
    "mouseenter": "on_mouse_enter",
    "mouseleave": "on_mouse_leave",
    "mouseout": "on_mouse_out",
    "contextmenu": "on_context_menu",
    "touchstart": "on_touch_start",
    "touchend": "on_touch_end",
    "touchmove": "on_touch_move",
    "touchcancel": "on_touch_cancel",
}

OTHER_EVENTS: dict[str, str] = {
    "wheel": "on_wheel",
    "boxzoomstart": "on_box_zoom_start",
    "boxzoomend": "on_box_zoom_end",
    "boxzoomcancel": "on_box_zoom_cancel",
    "resize": "on_resize",
    "load": "on_load",
    "render": "on_render",
    "idle": "on_idle",
    "remove": "on_remove",
    "data": "on_data",
    "styledata": "on_style_data",
    "sourcedata": "on_source_data",
    "error": "on_error",
}

CALLBACK_PROPS: frozenset[str] = frozenset(
    {*CAMERA_EVENTS.values(), *POINTER_EVENTS.values(), *OTHER_EVENTS.values()}
)


def event_phase(event_type: str) -> EventPhase:
    """Phase of a camera event name (``movestart`` -> START)."""
    if event_type.endswith("start"):
        return EventPhase.START
    if event_type.endswith("end"):
        return EventPhase.END
    return EventPhase.CONTINUE


@dataclass
class ViewStateChangeEvent:
    """Camera notification delivered to the application.

    Attributes
    ----------
    type : str
        Engine event name (``move``, ``zoomend``...)
    phase : EventPhase
        Gesture phase derived from the event name
    view_state : CameraView
        Proposed camera if a declared field was overridden, else committed
    target : Any
        Map reference the event belongs to
    original_event : Any
        The engine's own event object
    """

    type: str
    phase: EventPhase
    view_state: CameraView
    target: Any = None
    original_event: Any = None


@dataclass
class MapErrorEvent:
    """Error notification delivered through ``on_error``."""

    error: MapViewError | Exception
    target: Any = None
    type: str = "error"

    @property
    def operation(self) -> str | None:
        return getattr(self.error, "operation", None)


def invoke_callback(callback: Callable[[Any], Any] | None, event: Any, name: str) -> None:
    """Call an application callback, logging (not propagating) its errors.

    Callbacks run inside the engine's event dispatch; an exception escaping
    here would abort the engine's own handler.
    """
    if callback is None:
        return
    try:
        callback(event)
    except Exception as e:
        logger.error(f"Error in callback {name}: {e}", exc_info=True)


__all__ = [
    "CALLBACK_PROPS",
    "CAMERA_EVENTS",
    "EventPhase",
    "MapErrorEvent",
    "OTHER_EVENTS",
    "POINTER_EVENTS",
    "ViewStateChangeEvent",
    "event_phase",
    "invoke_callback",
]
