"""
Reconciliation policy for camera writes.

Pure decision functions: given an attempted write to one camera attribute,
the application's declared view, and whether an engine-driven mutation is in
progress, decide what the committed camera receives and whether the attempt
was overridden (and so must be recorded in the proposed camera).

Write rules:
1. No engine-driven mutation in progress: accepted into committed.
2. Mutation in progress, field undeclared: accepted into committed.
3. Mutation in progress, field declared: committed unchanged, attempt
   recorded in the proposed camera.
4. Center writes are always rebuilt with the declared longitude/latitude
   substituted, through the attempted value's own constructor.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from src.domain.camera import CameraField, DeclaredView, is_finite_number
from src.shared.exceptions import ReconciliationError


# Engine attribute name -> camera field it belongs to
ATTRIBUTE_FIELDS: dict[str, CameraField] = {
    "center": CameraField.CENTER,
    "_center": CameraField.CENTER,
    "zoom": CameraField.ZOOM,
    "_zoom": CameraField.ZOOM,
    "_sea_level_zoom": CameraField.ZOOM,
    "pitch": CameraField.PITCH,
    "_pitch": CameraField.PITCH,
    "bearing": CameraField.BEARING,
    "_bearing": CameraField.BEARING,
    "padding": CameraField.PADDING,
    "_padding": CameraField.PADDING,
    "elevation": CameraField.ELEVATION,
    "_center_altitude": CameraField.ELEVATION,
}

# Non-camera attributes the engine reads and writes freely
PASSTHROUGH_ATTRIBUTES: frozenset[str] = frozenset(
    {
        "width",
        "height",
        "min_zoom",
        "max_zoom",
        "min_pitch",
        "max_pitch",
        "render_world_copies",
        "tile_size",
    }
)

# Derived-state recompute routines. They never change camera fields, so they
# run on both the proposed and the committed camera.
RECOMPUTE_METHODS: frozenset[str] = frozenset(
    {
        "_calc_matrices",
        "_calc_fog_matrices",
        "_update_camera_state",
        "_update_sea_level_zoom",
        "resize",
    }
)


@dataclass(frozen=True)
class WriteDecision:
    """Outcome of one attempted camera write.

    Attributes
    ----------
    commit : bool
        Whether the committed camera receives ``value``
    value : Any
        Value to commit (the attempt itself, or a rewritten center)
    overridden : bool
        The committed outcome differs from the attempt because of a
        declared value
    """

    commit: bool
    value: Any
    overridden: bool


def field_for_attribute(name: str) -> CameraField | None:
    """Camera field controlled by an engine attribute, if any."""
    return ATTRIBUTE_FIELDS.get(name)


def is_recognized_attribute(name: str) -> bool:
    return name in ATTRIBUTE_FIELDS or name in PASSTHROUGH_ATTRIBUTES


def rewrite_center(attempted: Any, declared: DeclaredView) -> Any:
    """Rebuild a center with declared coordinates substituted.

    Uses the attempted value's own type as constructor so the engine keeps
    receiving its native coordinate class.

    Raises
    ------
    ReconciliationError
        If the attempted value is not a coordinate
    """
    try:
        lng = declared.longitude if declared.longitude is not None else attempted.lng
        lat = declared.latitude if declared.latitude is not None else attempted.lat
        return type(attempted)(lng, lat)
    except (AttributeError, TypeError, ValueError) as exc:
        raise ReconciliationError(
            f"Cannot build controlled center value: {exc}",
            operation="set",
            property="center",
            value=attempted,
        ) from exc


def same_coordinates(a: Any, b: Any) -> bool:
    return a.lng == b.lng and a.lat == b.lat


def decide_write(
    attribute: str,
    attempted: Any,
    declared: DeclaredView,
    *,
    in_engine_update: bool,
) -> WriteDecision:
    """Decide the committed outcome of writing ``attempted`` to ``attribute``.

    Raises
    ------
    ReconciliationError
        If a center write cannot be rebuilt
    """
    camera_field = field_for_attribute(attribute)

    if camera_field is CameraField.CENTER and declared.controls_center:
        controlled = rewrite_center(attempted, declared)
        return WriteDecision(
            commit=True,
            value=controlled,
            overridden=not same_coordinates(controlled, attempted),
        )

    if not in_engine_update or camera_field is None or not declared.is_declared(camera_field):
        return WriteDecision(commit=True, value=attempted, overridden=False)

    return WriteDecision(commit=False, value=attempted, overridden=True)


def decide_set_zoom(zoom: Any, declared: DeclaredView, *, in_engine_update: bool) -> WriteDecision:
    """Decision for the low-level zoom setter that bypasses clamping.

    Raises
    ------
    ReconciliationError
        If ``zoom`` is not a finite number
    """
    if not is_finite_number(zoom):
        raise ReconciliationError(
            "Invalid zoom value: must be finite number",
            operation="method",
            property="_set_zoom",
            value=zoom,
        )
    if in_engine_update and declared.zoom is not None:
        return WriteDecision(commit=False, value=zoom, overridden=True)
    return WriteDecision(commit=True, value=zoom, overridden=False)


__all__ = [
    "ATTRIBUTE_FIELDS",
    "PASSTHROUGH_ATTRIBUTES",
    "RECOMPUTE_METHODS",
    "WriteDecision",
    "decide_set_zoom",
    "decide_write",
    "field_for_attribute",
    "is_recognized_attribute",
    "rewrite_center",
    "same_coordinates",
]
