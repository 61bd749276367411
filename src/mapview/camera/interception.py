"""
Interception layer around the engine's live camera object.

The engine mutates its camera in place from input handlers, animations and
internal subsystems. The layer replaces ``map.transform`` and keeps two
cameras behind one surface:

- committed: what the renderer, overlays and event listeners see. For every
  declared field it always equals the declared value outside a mutation.
- proposed: created lazily during an engine-driven mutation when a write to a
  declared field is overridden. Engine code reads from it so its own math
  (constrained panning, easing) sees consistent intermediate state. It is
  discarded when the mutation ends.

To the engine the layer looks like the raw camera: recognized attributes are
explicit descriptors, and recognized methods are explicit methods or, for the
derived-state recompute routines, dispatched from ``RECOMPUTE_METHODS``.
Anything else is rejected and reported through the error sink instead of
being forwarded.

The controller drives the narrower surface: ``begin_engine_update()``,
``end_engine_update()``, ``set_declared()``, ``get_committed()``,
``get_proposed()`` and the ``expose_committed()`` context.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from functools import partial
from typing import Any

from src.domain.camera import CameraView, DeclaredView
from src.shared.exceptions import ErrorSink, ReconciliationError

from .reconcile import (
    RECOMPUTE_METHODS,
    decide_set_zoom,
    decide_write,
    is_recognized_attribute,
)
from .view_state import (
    apply_view_state_to_transform,
    transform_to_view_state,
    view_state_matches,
)

logger = logging.getLogger(__name__)


def _log_error(error: ReconciliationError) -> None:
    logger.warning("[InterceptionLayer] %s", error)


class _CameraAttribute:
    """Descriptor for one recognized camera attribute.

    Reads resolve against the camera the caller should observe; writes go
    through the reconciliation policy.
    """

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, layer: "InterceptionLayer | None", owner: type | None = None) -> Any:
        if layer is None:
            return self
        try:
            return getattr(layer._read_target(), self.name)
        except Exception as exc:
            layer._report(
                ReconciliationError(
                    f"Error reading camera attribute: {exc}",
                    operation="get",
                    property=self.name,
                )
            )
            return None

    def __set__(self, layer: "InterceptionLayer", value: Any) -> None:
        layer._write(self.name, value)


class InterceptionLayer:
    """Camera adapter enforcing declared camera values.

    Parameters
    ----------
    transform : CameraTransform
        The engine's live camera object. Owned exclusively by the layer from
        here on.
    error_sink : ErrorSink | None
        Receives ReconciliationErrors. Defaults to logging a warning.
    """

    __slots__ = (
        "_committed",
        "_proposed",
        "_declared",
        "_engine_depth",
        "_exposure_depth",
        "_raise_depth",
        "_error_sink",
    )

    # Camera fields (reconciled)
    center = _CameraAttribute()
    _center = _CameraAttribute()
    zoom = _CameraAttribute()
    _zoom = _CameraAttribute()
    _sea_level_zoom = _CameraAttribute()
    pitch = _CameraAttribute()
    _pitch = _CameraAttribute()
    bearing = _CameraAttribute()
    _bearing = _CameraAttribute()
    padding = _CameraAttribute()
    _padding = _CameraAttribute()
    elevation = _CameraAttribute()
    _center_altitude = _CameraAttribute()

    # Engine bookkeeping (passed through)
    width = _CameraAttribute()
    height = _CameraAttribute()
    min_zoom = _CameraAttribute()
    max_zoom = _CameraAttribute()
    min_pitch = _CameraAttribute()
    max_pitch = _CameraAttribute()
    render_world_copies = _CameraAttribute()
    tile_size = _CameraAttribute()

    def __init__(self, transform: Any, error_sink: ErrorSink | None = None):
        sink = error_sink if error_sink is not None else _log_error
        if transform is None or not hasattr(transform, "clone"):
            error = ReconciliationError(
                "Invalid transform object provided",
                operation="initialization",
                property="transform",
                value=transform,
            )
            sink(error)
            raise error

        object.__setattr__(self, "_committed", transform)
        object.__setattr__(self, "_proposed", None)
        object.__setattr__(self, "_declared", DeclaredView())
        object.__setattr__(self, "_engine_depth", 0)
        object.__setattr__(self, "_exposure_depth", 0)
        object.__setattr__(self, "_raise_depth", 0)
        object.__setattr__(self, "_error_sink", sink)

    # =========================================================================
    # Controller surface
    # =========================================================================

    @property
    def in_engine_update(self) -> bool:
        """An engine-driven mutation is in progress."""
        return self._engine_depth > 0

    @property
    def declared(self) -> DeclaredView:
        return self._declared

    def begin_engine_update(self) -> None:
        """Mark the start of an engine-driven mutation (re-entrant)."""
        object.__setattr__(self, "_engine_depth", self._engine_depth + 1)

    def end_engine_update(self) -> None:
        """Mark the end of an engine-driven mutation.

        At the outermost end the proposed camera is discarded and declared
        fields are re-checked against the committed camera.
        """
        if self._engine_depth == 0:
            self._report(
                ReconciliationError(
                    "end_engine_update() without matching begin",
                    operation="end_update",
                )
            )
            return
        object.__setattr__(self, "_engine_depth", self._engine_depth - 1)
        if self._engine_depth > 0:
            return

        object.__setattr__(self, "_proposed", None)
        if not view_state_matches(self._committed, self._declared):
            logger.debug("[InterceptionLayer] Committed camera drifted; re-applying declared view")
            apply_view_state_to_transform(self._committed, self._declared)

    @contextmanager
    def engine_update(self) -> Iterator["InterceptionLayer"]:
        """Context manager bracketing an engine-driven mutation."""
        self.begin_engine_update()
        try:
            yield self
        finally:
            self.end_engine_update()

    @contextmanager
    def expose_committed(self, raise_errors: bool = False) -> Iterator["InterceptionLayer"]:
        """Make every read observe the committed camera.

        Used around event dispatch and rendering so listeners, overlays and
        the renderer never see in-flight proposed state.

        Parameters
        ----------
        raise_errors : bool
            Let failing camera queries raise to the caller instead of being
            reported to the error sink. The map ref uses this so query
            failures reach its own error handler.
        """
        raising = 1 if raise_errors else 0
        object.__setattr__(self, "_exposure_depth", self._exposure_depth + 1)
        object.__setattr__(self, "_raise_depth", self._raise_depth + raising)
        try:
            yield self
        finally:
            object.__setattr__(self, "_exposure_depth", self._exposure_depth - 1)
            object.__setattr__(self, "_raise_depth", self._raise_depth - raising)

    def set_declared(self, view: DeclaredView) -> bool:
        """Replace the declared view and apply it to the committed camera.

        Returns
        -------
        bool
            True if the committed camera changed
        """
        object.__setattr__(self, "_declared", view)
        return self.apply_view(view)

    def apply_view(self, view: DeclaredView) -> bool:
        """Write camera values into the committed camera without declaring them."""
        try:
            return apply_view_state_to_transform(self._committed, view)
        except Exception as exc:
            self._report(
                ReconciliationError(
                    f"Error applying view state: {exc}",
                    operation="set",
                    property="view_state",
                    value=view,
                )
            )
            return False

    def get_committed(self) -> CameraView:
        """Snapshot of the committed camera."""
        return transform_to_view_state(self._committed, self._declared.fields())

    def get_proposed(self) -> CameraView | None:
        """Snapshot of the proposed camera, or None if nothing was overridden."""
        if self._proposed is None:
            return None
        return transform_to_view_state(self._proposed, self._declared.fields())

    # =========================================================================
    # Engine surface: methods
    # =========================================================================

    def _set_zoom(self, zoom: float) -> None:
        """Low-level zoom setter that bypasses the clamping ``zoom`` setter."""
        try:
            decision = decide_set_zoom(zoom, self._declared, in_engine_update=self.in_engine_update)
        except ReconciliationError as error:
            self._report(error)
            return

        try:
            if decision.overridden:
                self._ensure_proposed()
            if self.in_engine_update and self._proposed is not None:
                self._proposed._set_zoom(zoom)
            if decision.commit:
                self._committed._set_zoom(zoom)
        except Exception as exc:
            self._report(
                ReconciliationError(
                    f"Error in _set_zoom: {exc}",
                    operation="method",
                    property="_set_zoom",
                    value=zoom,
                )
            )

    def _translate_camera_constrained(self, *args: Any) -> Any:
        """Constrained panning runs on the proposed camera in controlled mode."""
        if self.in_engine_update and self._declared.is_controlled:
            self._ensure_proposed()
        return self._call_read("_translate_camera_constrained", *args)

    def clone(self) -> Any:
        return self._call_read("clone")

    def get_bounds(self) -> Any:
        return self._call_read("get_bounds")

    def is_padding_equal(self, padding: dict[str, float]) -> Any:
        return self._call_read("is_padding_equal", padding)

    def project(self, lnglat: Any) -> Any:
        return self._call_read("project", lnglat)

    def unproject(self, point: Any) -> Any:
        return self._call_read("unproject", point)

    # =========================================================================
    # Recompute dispatch and rejected surface
    # =========================================================================

    def __getattr__(self, name: str) -> Any:
        # Only reached for names that are not attributes or explicit methods
        if name.startswith("__") and name.endswith("__"):
            raise AttributeError(name)
        if name in RECOMPUTE_METHODS:
            return partial(self._call_both, name)
        self._report(
            ReconciliationError(
                f"Invalid property access: {name}",
                operation="get",
                property=name,
            )
        )
        return None

    def __setattr__(self, name: str, value: Any) -> None:
        if is_recognized_attribute(name):
            object.__setattr__(self, name, value)
            return
        self._report(
            ReconciliationError(
                f"Invalid property assignment: {name}",
                operation="set",
                property=name,
                value=value,
            )
        )

    def __repr__(self) -> str:
        return (
            f"InterceptionLayer(committed={self.get_committed()!r}, "
            f"proposed={self._proposed is not None}, depth={self._engine_depth})"
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _read_target(self) -> Any:
        if (
            self._engine_depth > 0
            and self._proposed is not None
            and self._exposure_depth == 0
        ):
            return self._proposed
        return self._committed

    def _ensure_proposed(self) -> None:
        """Lazily clone committed into proposed on first divergence."""
        if not self.in_engine_update or self._proposed is not None:
            return
        try:
            object.__setattr__(self, "_proposed", self._committed.clone())
        except Exception as exc:
            self._report(
                ReconciliationError(
                    f"Error cloning transform: {exc}",
                    operation="clone",
                    property="transform",
                )
            )

    def _write(self, name: str, value: Any) -> None:
        in_update = self.in_engine_update
        try:
            decision = decide_write(name, value, self._declared, in_engine_update=in_update)
        except ReconciliationError as error:
            # Dropped write: committed keeps its value
            self._report(error)
            return

        if decision.overridden:
            self._ensure_proposed()

        if in_update and self._proposed is not None:
            try:
                setattr(self._proposed, name, value)
            except Exception as exc:
                self._report(
                    ReconciliationError(
                        f"Error setting proposed transform property: {exc}",
                        operation="set",
                        property=name,
                        value=value,
                    )
                )

        if not decision.commit:
            return
        try:
            setattr(self._committed, name, decision.value)
        except Exception as exc:
            self._report(
                ReconciliationError(
                    f"Error setting controlled transform property: {exc}",
                    operation="set",
                    property=name,
                    value=decision.value,
                )
            )

    def _call_both(self, method: str, *args: Any) -> None:
        try:
            if self._proposed is not None:
                getattr(self._proposed, method)(*args)
            getattr(self._committed, method)(*args)
        except Exception as exc:
            self._report(
                ReconciliationError(
                    f"Error in recompute method: {exc}",
                    operation="method",
                    property=method,
                    value=args,
                )
            )

    def _call_read(self, method: str, *args: Any) -> Any:
        try:
            return getattr(self._read_target(), method)(*args)
        except Exception as exc:
            if self._raise_depth > 0:
                raise
            self._report(
                ReconciliationError(
                    f"Error in camera method: {exc}",
                    operation="method",
                    property=method,
                    value=args,
                )
            )
            return None

    def _report(self, error: ReconciliationError) -> None:
        try:
            self._error_sink(error)
        except Exception:
            logger.exception("[InterceptionLayer] Error sink raised while reporting: %s", error)


__all__ = ["InterceptionLayer"]
