"""Pytest configuration and shared fixtures."""

import shutil
import tempfile
from pathlib import Path

import pytest

from src.infrastructure.cache.instance_pool import InstancePool
from src.mapview.config.global_settings import reset_global_settings
from src.mapview.core.controller import MapController
from src.mapview.testing import Element, SimulatedEngine


SF = {"longitude": -122.4, "latitude": 37.8}


class Recorder:
    """Callable that records every event it receives."""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def __len__(self):
        return len(self.events)

    @property
    def last(self):
        return self.events[-1] if self.events else None

    def types(self):
        return [event.type for event in self.events]


@pytest.fixture(autouse=True)
def clean_global_settings():
    """Global settings are init-once per engine module; isolate tests."""
    reset_global_settings()
    yield
    reset_global_settings()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def engine():
    """Simulated engine module."""
    return SimulatedEngine()


@pytest.fixture
def container():
    """Empty mount point."""
    return Element("div", "map-container")


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def make_recorder():
    """Factory for additional recorders."""
    return Recorder


@pytest.fixture
def errors():
    """Error sink collecting reported errors."""
    return Recorder()


@pytest.fixture
def controlled_props():
    return {**SF, "zoom": 14, "map_style": {"version": 8, "layers": []}}


@pytest.fixture
def make_controller(engine, container):
    """Factory creating controllers on the simulated engine."""
    created = []

    def _make(props, target=None, error_sink=None):
        controller = MapController.create(engine.Map, props, target or container, error_sink=error_sink)
        created.append(controller)
        return controller

    yield _make

    for controller in created:
        controller.destroy()


@pytest.fixture
def pool():
    instance_pool = InstancePool()
    yield instance_pool
    instance_pool.clear()
