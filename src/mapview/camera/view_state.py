"""Conversions between engine camera objects and camera views."""

from __future__ import annotations

from typing import Any

from src.domain.camera import CameraField, CameraView, DeclaredView


def transform_to_view_state(
    tr: Any,
    declared_fields: frozenset[CameraField] = frozenset(),
) -> CameraView:
    """Snapshot an engine camera object into a CameraView.

    Zoom prefers the sea-level zoom when the engine tracks one (terrain).
    """
    sea_level_zoom = getattr(tr, "_sea_level_zoom", None)
    padding = tr.padding
    return CameraView(
        longitude=tr.center.lng,
        latitude=tr.center.lat,
        zoom=sea_level_zoom if sea_level_zoom is not None else tr.zoom,
        pitch=tr.pitch,
        bearing=tr.bearing,
        padding=dict(padding) if padding else {},
        elevation=getattr(tr, "elevation", None),
        declared_fields=declared_fields,
    )


def apply_view_state_to_transform(tr: Any, view: DeclaredView) -> bool:
    """Write declared values into an engine camera object.

    Only fields that differ from the camera are written, so applying the same
    view twice performs no writes the second time.

    Returns
    -------
    bool
        True if any camera field changed
    """
    changed = False

    if view.zoom is not None and tr.zoom != view.zoom:
        tr.zoom = view.zoom
        changed = True
    if view.bearing is not None and tr.bearing != view.bearing:
        tr.bearing = view.bearing
        changed = True
    if view.pitch is not None and tr.pitch != view.pitch:
        tr.pitch = view.pitch
        changed = True
    if view.padding is not None and not tr.is_padding_equal(view.padding):
        tr.padding = view.padding
        changed = True
    if view.controls_center:
        center = tr.center
        lng = view.longitude if view.longitude is not None else center.lng
        lat = view.latitude if view.latitude is not None else center.lat
        if center.lng != lng or center.lat != lat:
            tr.center = type(center)(lng, lat)
            changed = True
    if view.elevation is not None and getattr(tr, "elevation", None) != view.elevation:
        tr.elevation = view.elevation
        changed = True

    return changed


def view_state_matches(tr: Any, view: DeclaredView) -> bool:
    """True if every declared field already equals the camera value."""
    if view.zoom is not None and tr.zoom != view.zoom:
        return False
    if view.bearing is not None and tr.bearing != view.bearing:
        return False
    if view.pitch is not None and tr.pitch != view.pitch:
        return False
    if view.padding is not None and not tr.is_padding_equal(view.padding):
        return False
    if view.longitude is not None and tr.center.lng != view.longitude:
        return False
    if view.latitude is not None and tr.center.lat != view.latitude:
        return False
    return True


__all__ = [
    "apply_view_state_to_transform",
    "transform_to_view_state",
    "view_state_matches",
]
