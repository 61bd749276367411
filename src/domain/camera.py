"""Camera entities shared by the interception layer and the controller.

- CameraField: the recognized camera fields
- CameraView: immutable snapshot of a camera plus provenance
- DeclaredView: the camera values supplied by the application

A field is *declared* when the application supplies a finite value for it
(``None`` and NaN mean "not declared, the field is free").
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from enum import Enum
from numbers import Real
from typing import Any

import numpy as np


class CameraField(Enum):
    """Recognized camera fields."""

    CENTER = "center"
    ZOOM = "zoom"
    PITCH = "pitch"
    BEARING = "bearing"
    PADDING = "padding"
    ELEVATION = "elevation"


def is_finite_number(value: Any) -> bool:
    """True for real, finite numbers (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return bool(np.isfinite(value))


def _finite_or_none(value: Any) -> float | None:
    return float(value) if is_finite_number(value) else None


@dataclass(frozen=True)
class CameraView:
    """
    Plain snapshot of camera fields.

    Attributes
    ----------
    longitude, latitude : float
        Center of the camera
    zoom, pitch, bearing : float
        Camera zoom level and angles (degrees)
    padding : dict
        Viewport padding in pixels (top/bottom/left/right)
    elevation : float | None
        Altitude of the center point, when the engine reports one
    declared_fields : frozenset[CameraField]
        Fields whose value came from the application at snapshot time;
        every other field was derived by the engine
    """

    longitude: float = 0.0
    latitude: float = 0.0
    zoom: float = 0.0
    pitch: float = 0.0
    bearing: float = 0.0
    padding: dict[str, float] = field(default_factory=dict)
    elevation: float | None = None
    declared_fields: frozenset[CameraField] = field(default_factory=frozenset)

    def is_declared(self, camera_field: CameraField) -> bool:
        """Whether ``camera_field`` was supplied by the application."""
        return camera_field in self.declared_fields

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary (provenance as field names)."""
        data = asdict(self)
        data["declared_fields"] = sorted(f.value for f in self.declared_fields)
        return data


@dataclass(frozen=True)
class DeclaredView:
    """Camera values declared by the application.

    Every attribute is optional; ``None`` means the field is free and the
    engine owns it.
    """

    longitude: float | None = None
    latitude: float | None = None
    zoom: float | None = None
    pitch: float | None = None
    bearing: float | None = None
    padding: dict[str, float] | None = None
    elevation: float | None = None

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any] | None) -> "DeclaredView":
        """Build a declared view from a prop mapping.

        Non-finite numbers are treated as undeclared. Unknown keys are ignored.
        """
        if not values:
            return cls()
        padding = values.get("padding")
        return cls(
            longitude=_finite_or_none(values.get("longitude")),
            latitude=_finite_or_none(values.get("latitude")),
            zoom=_finite_or_none(values.get("zoom")),
            pitch=_finite_or_none(values.get("pitch")),
            bearing=_finite_or_none(values.get("bearing")),
            padding=dict(padding) if isinstance(padding, Mapping) else None,
            elevation=_finite_or_none(values.get("elevation")),
        )

    def is_declared(self, camera_field: CameraField) -> bool:
        """Whether the application supplied a value for ``camera_field``."""
        if camera_field is CameraField.CENTER:
            return self.controls_center
        if camera_field is CameraField.PADDING:
            return self.padding is not None
        return getattr(self, camera_field.value) is not None

    @property
    def controls_center(self) -> bool:
        """Either center coordinate is declared."""
        return self.longitude is not None or self.latitude is not None

    @property
    def is_controlled(self) -> bool:
        """Any of center, zoom, pitch or bearing is declared."""
        return (
            self.controls_center
            or self.zoom is not None
            or self.pitch is not None
            or self.bearing is not None
        )

    def fields(self) -> frozenset[CameraField]:
        """Set of declared fields."""
        return frozenset(f for f in CameraField if self.is_declared(f))


__all__ = ["CameraField", "CameraView", "DeclaredView", "is_finite_number"]
