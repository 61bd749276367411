"""
Simulated map engine for tests and scenario replay.

Usage
-----
>>> from src.mapview.testing import Element, SimulatedEngine
>>> from src.mapview.core.controller import MapController
>>>
>>> engine = SimulatedEngine()
>>> controller = MapController.create(
...     engine.Map,
...     {"longitude": -122.4, "latitude": 37.8, "zoom": 14},
...     Element(),
... )
>>> controller.map.simulate_interaction("drag", zoom=15)
"""

from src.mapview.testing.engine import (
    Element,
    LngLat,
    MapEvent,
    SimulatedEngine,
    SimulatedMap,
    Transform,
)


__all__ = [
    "Element",
    "LngLat",
    "MapEvent",
    "SimulatedEngine",
    "SimulatedMap",
    "Transform",
]
