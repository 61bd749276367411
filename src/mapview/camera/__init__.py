"""Camera interception and reconciliation."""

from src.mapview.camera.interception import InterceptionLayer
from src.mapview.camera.reconcile import WriteDecision, decide_set_zoom, decide_write
from src.mapview.camera.view_state import (
    apply_view_state_to_transform,
    transform_to_view_state,
)


__all__ = [
    "InterceptionLayer",
    "WriteDecision",
    "apply_view_state_to_transform",
    "decide_set_zoom",
    "decide_write",
    "transform_to_view_state",
]
