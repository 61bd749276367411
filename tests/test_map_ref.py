"""Tests for the application-facing map handle."""

import pytest

from src.mapview.core.map_ref import FORWARDED_METHODS, SKIP_METHODS, MapRef, create_map_ref
from src.mapview.testing import LngLat
from src.shared.exceptions import MapRefError

SF = {"longitude": -122.4, "latitude": 37.8}


@pytest.fixture
def controller(make_controller, controlled_props):
    return make_controller(controlled_props)


@pytest.fixture
def map_ref(controller, errors):
    return create_map_ref(controller, on_error=errors)


class TestCommittedQueries:
    """Test that queries answer from the committed camera."""

    def test_getters(self, map_ref):
        assert map_ref.get_zoom() == 14.0
        assert map_ref.get_center() == LngLat(-122.4, 37.8)
        assert map_ref.get_bearing() == 0.0
        assert map_ref.get_pitch() == 0.0
        assert map_ref.get_padding()["top"] == 0.0

    def test_getters_ignore_proposed_camera(self, map_ref, controller):
        with controller.engine_update():
            controller.layer.zoom = 15.0
            controller.layer.center = LngLat(0.0, 0.0)

            assert controller.layer.zoom == 15.0
            assert map_ref.get_zoom() == 14.0
            assert map_ref.get_center() == LngLat(-122.4, 37.8)

    def test_project_uses_committed_camera(self, map_ref, controller):
        with controller.engine_update():
            controller.layer.center = LngLat(10.0, 10.0)

            point = map_ref.project(LngLat(-122.4, 37.8))

        assert point == pytest.approx((256.0, 256.0))

    def test_unproject(self, map_ref):
        lng_lat = map_ref.unproject((256.0, 256.0))

        assert lng_lat.lng == pytest.approx(-122.4)
        assert lng_lat.lat == pytest.approx(37.8)

    def test_get_bounds_contains_center(self, map_ref):
        southwest, northeast = map_ref.get_bounds()

        assert southwest.lng < -122.4 < northeast.lng
        assert southwest.lat < 37.8 < northeast.lat

    def test_query_failure_reported(self, map_ref, errors):
        assert map_ref.unproject("not a point") is None

        assert isinstance(errors.last, MapRefError)
        assert errors.last.operation == "transform_operation"
        assert errors.last.method == "unproject"

    def test_query_failure_reaches_map_ref_only(self, make_controller, controlled_props, make_recorder):
        controller_errors = make_recorder()
        ref_errors = make_recorder()
        controller = make_controller(controlled_props, error_sink=controller_errors)
        map_ref = create_map_ref(controller, on_error=ref_errors)

        assert map_ref.unproject("not a point") is None

        assert isinstance(ref_errors.last, MapRefError)
        assert len(controller_errors) == 0

    def test_query_rendered_features(self, map_ref, controller):
        controller.map.rendered_features.append({"id": 1})

        assert map_ref.query_rendered_features() == [{"id": 1}]

    def test_terrain_elevation_without_terrain(self, map_ref, errors):
        assert map_ref.query_terrain_elevation(LngLat(-122.4, 37.8)) is None
        assert len(errors) == 0


class TestForwarding:
    """Test forwarded engine methods."""

    def test_camera_call_on_controlled_map_is_proposed(self, map_ref, controller, recorder):
        controller.set_props({**controller.props, "on_move": recorder})

        map_ref.jump_to({"zoom": 3})

        assert recorder.last.view_state.zoom == 3.0
        assert controller.layer.get_committed().zoom == 14.0

    def test_camera_call_on_uncontrolled_map_commits(self, make_controller, errors):
        controller = make_controller({"initial_view_state": {**SF, "zoom": 4}})
        map_ref = create_map_ref(controller, on_error=errors)

        map_ref.set_zoom(5)

        assert controller.layer.get_committed().zoom == 5.0

    def test_undeclared_field_commits(self, map_ref, controller):
        map_ref.set_bearing(90)

        assert controller.layer.get_committed().bearing == 90.0

    def test_event_subscription(self, map_ref, controller, recorder):
        map_ref.on("idle", recorder)

        controller.set_props({**controller.props, "zoom": 12})

        assert recorder.types() == ["idle"]

    def test_execution_error_reported(self, map_ref, errors):
        assert map_ref.jump_to() is None

        assert errors.last.operation == "method_execution"
        assert errors.last.method == "jump_to"

    def test_missing_engine_method_reported(self, map_ref, errors):
        assert map_ref.has_image is None

        assert errors.last.operation == "method_binding"

    @pytest.mark.parametrize("name", sorted(SKIP_METHODS))
    def test_skip_methods_not_exposed(self, map_ref, name):
        with pytest.raises(AttributeError):
            getattr(map_ref, name)

    def test_unknown_method_not_exposed(self, map_ref):
        assert not hasattr(map_ref, "_render")

    def test_allow_and_deny_lists_disjoint(self):
        assert not FORWARDED_METHODS & SKIP_METHODS

    def test_dir_lists_forwarded_methods(self, map_ref):
        assert "jump_to" in dir(map_ref)
        assert "set_style" not in dir(map_ref)


class TestCreateMapRef:
    """Test handle creation."""

    def test_creates_handle(self, controller):
        map_ref = create_map_ref(controller)

        assert isinstance(map_ref, MapRef)
        assert map_ref.get_map() is controller.map

    def test_missing_controller(self, errors):
        assert create_map_ref(None, on_error=errors) is None

        assert errors.last.operation == "validation"

    def test_destroyed_controller(self, controller, errors):
        controller.destroy()

        assert create_map_ref(controller, on_error=errors) is None
        assert errors.last.operation == "validation"
