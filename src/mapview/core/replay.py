"""
Scenario replay against the simulated engine.

Mounts a map, runs each scenario step and records every view-state
notification. In controlled mode the runner behaves like an application that
accepts every proposal: the last proposed camera of a step is declared back
into the props before the next step.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from src.mapview.config.io import Scenario, ScenarioStep
from src.mapview.core.lifecycle import MapLifecycle
from src.mapview.core.props import CAMERA_PROPS
from src.mapview.interaction.events import CAMERA_EVENTS, ViewStateChangeEvent
from src.mapview.testing.engine import Element, SimulatedEngine

logger = logging.getLogger(__name__)


VIEW_STATE_KEYS = ("longitude", "latitude", "zoom", "pitch", "bearing")


@dataclass
class Notification:
    """One recorded view-state notification."""

    step: int
    type: str
    phase: str
    view_state: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"step": self.step, "type": self.type, "phase": self.phase, **self.view_state}


def to_uncontrolled(props: dict[str, Any]) -> dict[str, Any]:
    """Move camera props into ``initial_view_state``."""
    camera = {k: v for k, v in props.items() if k in CAMERA_PROPS and k != "view_state"}
    rest = {k: v for k, v in props.items() if k not in CAMERA_PROPS}
    if camera:
        rest["initial_view_state"] = {**camera, **(props.get("initial_view_state") or {})}
    return rest


class ScenarioRunner:
    """
    Replays a Scenario through a MapLifecycle.

    Parameters
    ----------
    scenario : Scenario
        Props and steps to replay
    controlled : bool
        Keep camera props declared and feed proposals back (True), or
        start from ``initial_view_state`` and let the engine own the camera
    engine : SimulatedEngine | None
        Engine module to mount on (a new one by default)
    on_notification : Callable[[Notification], None] | None
        Called for every recorded notification
    """

    def __init__(
        self,
        scenario: Scenario,
        *,
        controlled: bool = True,
        engine: SimulatedEngine | None = None,
        on_notification: Callable[[Notification], None] | None = None,
    ):
        self.scenario = scenario
        self.controlled = controlled
        self.engine = engine or SimulatedEngine()
        self.on_notification = on_notification
        self.lifecycle = MapLifecycle(config=scenario.config)
        self.notifications: list[Notification] = []
        self.errors: list[Any] = []

        self._props = dict(scenario.props)
        if not controlled:
            self._props = to_uncontrolled(self._props)
        self._step_index = -1
        self._pending_view: dict[str, Any] | None = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    async def run(self) -> list[Notification]:
        """Mount, replay every step and unmount."""
        container = Element("div", "map-container")
        await self.lifecycle.mount(self._full_props(), container)
        if self.lifecycle.controller is None:
            raise RuntimeError(f"Mount failed: {self.lifecycle.error}")

        for index, step in enumerate(self.scenario.steps):
            self._step_index = index
            await self._run_step(step)
            await self._accept_proposal()

        self.lifecycle.unmount()
        logger.info(
            "[ScenarioRunner] Replayed %d steps, %d notifications",
            len(self.scenario.steps),
            len(self.notifications),
        )
        return self.notifications

    # ------------------------------------------------------------------ #
    # Steps
    # ------------------------------------------------------------------ #
    async def _run_step(self, step: ScenarioStep) -> None:
        params = dict(step.params)
        logger.debug("[ScenarioRunner] Step %d: %s %s", self._step_index, step.action, params)

        if step.action == "set_props":
            self._props.update(params.get("props") or {})
            await self.lifecycle.update(self._full_props())
            return
        if step.action == "unmount":
            self.lifecycle.unmount()
            return
        if step.action == "remount":
            await self.lifecycle.mount(self._full_props(), Element("div", "map-container"))
            return

        controller = self.lifecycle.controller
        if controller is None:
            logger.warning("[ScenarioRunner] Step %d (%s) skipped: no map mounted", self._step_index, step.action)
            return
        map_instance = controller.map

        if step.action == "interact":
            kind = params.pop("kind", "drag")
            map_instance.simulate_interaction(kind, **params)
        elif step.action == "pan":
            map_instance.simulate_pan(params.get("dlng", 0.0), params.get("dlat", 0.0))
        elif step.action == "load_style":
            map_instance.load_style()
        elif step.action == "call":
            method = getattr(self.lifecycle.map_ref, params["method"])
            method(*params.get("args", ()), **params.get("kwargs", {}))
            map_instance.run_until_idle()

    async def _accept_proposal(self) -> None:
        if not self.controlled or self._pending_view is None:
            return
        view, self._pending_view = self._pending_view, None
        self._props.update(view)
        await self.lifecycle.update(self._full_props())

    # ------------------------------------------------------------------ #
    # Callbacks
    # ------------------------------------------------------------------ #
    def _full_props(self) -> dict[str, Any]:
        props = {**self._props, "map_lib": self.engine, "on_error": self._on_error}
        for event_type, name in CAMERA_EVENTS.items():
            props[name] = self._on_view_state_change
        return props

    def _on_view_state_change(self, event: ViewStateChangeEvent) -> None:
        view_state = event.view_state
        values = {key: getattr(view_state, key) for key in VIEW_STATE_KEYS}
        notification = Notification(
            step=self._step_index,
            type=event.type,
            phase=event.phase.value,
            view_state=values,
        )
        self.notifications.append(notification)
        if event.type == "move":
            self._pending_view = values
        if self.on_notification is not None:
            self.on_notification(notification)

    def _on_error(self, event: Any) -> None:
        self.errors.append(event.error)


__all__ = ["Notification", "ScenarioRunner", "to_uncontrolled"]
