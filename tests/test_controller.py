"""Tests for MapController: reconciliation through the engine and prop diffing."""

import pytest

from src.domain.lifecycle import ControllerState, LifecycleError
from src.mapview.core.controller import MapController, build_map_options
from src.mapview.interaction.events import EventPhase, MapErrorEvent
from src.mapview.testing import Element, LngLat
from src.shared.exceptions import ConfigurationError, ConstructionError, ReconciliationError

SF = {"longitude": -122.4, "latitude": 37.8}
STYLE = {"version": 8, "layers": []}


class TestCreate:
    """Test controller construction."""

    def test_initial_camera_from_props(self, make_controller, controlled_props):
        controller = make_controller(controlled_props)

        committed = controller.layer.get_committed()
        assert committed.longitude == -122.4
        assert committed.latitude == 37.8
        assert committed.zoom == 14.0
        assert controller.state is ControllerState.ATTACHED

    def test_transform_replaced_by_layer(self, make_controller, controlled_props):
        controller = make_controller(controlled_props)

        assert controller.map.transform is controller.layer
        assert controller.transform is controller.layer

    def test_initial_view_state_seeds_uncontrolled_camera(self, make_controller):
        controller = make_controller({"initial_view_state": {**SF, "zoom": 9, "pitch": 30}})

        committed = controller.layer.get_committed()
        assert committed.zoom == 9.0
        assert committed.pitch == 30.0
        assert not controller.layer.declared.is_controlled

    def test_missing_container(self, engine):
        with pytest.raises(ConstructionError) as exc_info:
            MapController.create(engine.Map, SF, None)

        assert exc_info.value.reason == "container"

    def test_missing_constructor(self, container):
        with pytest.raises(ConstructionError) as exc_info:
            MapController.create(None, SF, container)

        assert exc_info.value.reason == "module"

    def test_constructor_failure(self, container):
        def broken_map(options):
            raise RuntimeError("no WebGL")

        with pytest.raises(ConstructionError) as exc_info:
            MapController.create(broken_map, SF, container)

        assert exc_info.value.reason == "constructor"
        assert isinstance(exc_info.value.cause, RuntimeError)

    def test_map_without_camera(self, container):
        class NoCamera:
            def __init__(self, options):
                pass

        with pytest.raises(ConstructionError) as exc_info:
            MapController.create(NoCamera, SF, container)

        assert exc_info.value.reason == "transform"


class TestBuildMapOptions:
    """Test engine constructor options."""

    def test_camera_and_style(self, container):
        options = build_map_options({**SF, "zoom": 3, "map_style": STYLE, "antialias": True}, container)

        assert options["center"] == (-122.4, 37.8)
        assert options["zoom"] == 3.0
        assert options["style"] == STYLE
        assert options["antialias"] is True
        assert options["container"] is container

    def test_bounds(self, container):
        options = build_map_options({"bounds": [-123, 37, -122, 38]}, container)

        assert options["bounds"] == [-123, 37, -122, 38]
        assert options["fit_bounds_options"] == {}
        assert "center" not in options

    def test_callbacks_and_mount_keys_not_passed(self, container):
        options = build_map_options({**SF, "on_move": print, "id": "main", "reuse_maps": True}, container)

        assert "on_move" not in options
        assert "id" not in options
        assert "reuse_maps" not in options


class TestControlledCamera:
    """Test declared values overriding engine-driven camera changes."""

    def test_drag_proposes_but_does_not_commit(self, make_controller, controlled_props, recorder):
        controller = make_controller({**controlled_props, "on_move": recorder})

        controller.map.simulate_interaction("drag", zoom=15)

        assert len(recorder) == 1
        event = recorder.last
        assert event.view_state.zoom == 15.0
        assert event.phase is EventPhase.CONTINUE
        assert event.target is controller.map
        assert controller.layer.get_committed().zoom == 14.0
        assert controller.map.painted[-1]["zoom"] == 14.0

    def test_accepting_proposal_commits(self, make_controller, controlled_props, recorder):
        controller = make_controller({**controlled_props, "on_move": recorder})
        controller.map.simulate_interaction("drag", zoom=15)

        controller.set_props({**controlled_props, "zoom": recorder.last.view_state.zoom, "on_move": recorder})

        assert controller.layer.get_committed().zoom == 15.0
        assert controller.map.painted[-1]["zoom"] == 15.0

    def test_undeclared_field_moves_freely(self, make_controller, controlled_props):
        controller = make_controller(controlled_props)

        controller.map.simulate_interaction("rotate", bearing=45)

        assert controller.layer.get_committed().bearing == 45.0

    def test_controlled_pan(self, make_controller, controlled_props, recorder):
        controller = make_controller({**controlled_props, "on_move": recorder})

        controller.map.simulate_pan(1.0, 0.0)

        assert recorder.last.view_state.longitude == pytest.approx(-121.4)
        assert controller.layer.get_committed().longitude == -122.4

    def test_start_and_end_events(self, make_controller, controlled_props, make_recorder):
        start = make_recorder()
        end = make_recorder()
        controller = make_controller(
            {**controlled_props, "on_zoom_start": start, "on_zoom_end": end}
        )

        controller.map.simulate_interaction("zoom", zoom=16)

        assert start.last.phase is EventPhase.START
        assert end.last.phase is EventPhase.END
        assert end.last.view_state.zoom == 16.0

    def test_listeners_observe_committed_camera(self, make_controller, controlled_props):
        controller = make_controller(controlled_props)
        seen = []
        controller.map.on("move", lambda event: seen.append(controller.map.get_zoom()))

        controller.map.simulate_interaction("drag", zoom=15)

        assert seen == [14.0]

    def test_callback_errors_do_not_break_engine(self, make_controller, controlled_props):
        def failing(event):
            raise ValueError("application bug")

        controller = make_controller({**controlled_props, "on_move": failing})

        controller.map.simulate_interaction("drag", zoom=15)

        assert controller.map.render_count == 1

    def test_callbacks_read_at_emit_time(self, make_controller, controlled_props, make_recorder):
        first = make_recorder()
        second = make_recorder()
        controller = make_controller({**controlled_props, "on_move": first})

        controller.set_props({**controlled_props, "on_move": second})
        controller.map.simulate_interaction("drag", zoom=15)

        assert len(first) == 0
        assert len(second) == 1


class TestUncontrolledCamera:
    """Test maps whose camera is owned by the engine."""

    def test_interaction_commits(self, make_controller, recorder):
        controller = make_controller({"initial_view_state": {**SF, "zoom": 14}, "on_move": recorder})

        controller.map.simulate_interaction("drag", zoom=15)

        assert recorder.last.view_state.zoom == 15.0
        assert controller.layer.get_committed().zoom == 15.0
        assert controller.layer.get_proposed() is None

    def test_ease_to_animates(self, make_controller):
        controller = make_controller({"initial_view_state": {**SF, "zoom": 10}, "map_style": STYLE})

        controller.map.ease_to({"zoom": 12, "duration": 64})
        controller.map.run_until_idle()

        assert controller.layer.get_committed().zoom == 12.0


class TestDiffing:
    """Test that set_props only issues calls for what changed."""

    def test_identical_props_issue_no_calls(self, make_controller, controlled_props):
        props = {**controlled_props, "fog": {"range": [1, 2]}, "max_zoom": 18, "scroll_zoom": False}
        controller = make_controller(props)
        controller.map.load_style()
        map_instance = controller.map
        calls_before = list(map_instance.calls)
        renders_before = map_instance.render_count
        writes_before = len(controller.layer._committed.writes)

        controller.set_props(dict(props))

        assert map_instance.calls == calls_before
        assert map_instance.render_count == renders_before
        assert len(controller.layer._committed.writes) == writes_before

    def test_camera_change_redraws(self, make_controller, controlled_props):
        controller = make_controller(controlled_props)

        controller.set_props({**controlled_props, "zoom": 12})

        assert controller.map.render_count == 1
        assert controller.map.painted[-1]["zoom"] == 12.0

    def test_no_redraw_without_style(self, make_controller):
        controller = make_controller({**SF, "zoom": 3})

        controller.set_props({**SF, "zoom": 4})

        assert controller.map.render_count == 0
        assert controller.layer.get_committed().zoom == 4.0

    def test_settings_applied(self, make_controller, controlled_props):
        controller = make_controller(controlled_props)

        controller.set_props({**controlled_props, "max_zoom": 16, "render_world_copies": False})

        names = controller.map.call_names()
        assert "set_max_zoom" in names
        assert "set_render_world_copies" in names
        assert "set_min_zoom" not in names

    def test_view_state_prop(self, make_controller):
        controller = make_controller({"view_state": {**SF, "zoom": 6}})

        controller.set_props({"view_state": {**SF, "zoom": 7}})

        assert controller.layer.get_committed().zoom == 7.0
        assert controller.layer.declared.zoom == 7.0

    def test_detached_controller_rejects_props(self, make_controller, controlled_props):
        controller = make_controller(controlled_props)
        controller.recycle()

        with pytest.raises(LifecycleError):
            controller.set_props(controlled_props)


class TestConstructionOptions:
    """Test non-reactive construction options."""

    def test_changed_option_reported(self, make_controller, errors):
        controller = make_controller({**SF, "antialias": False}, error_sink=errors)

        controller.set_props({**SF, "antialias": True})

        assert len(errors) == 1
        assert isinstance(errors.last, ConfigurationError)
        assert errors.last.option == "antialias"
        assert "antialias" not in controller.map.call_names()

    def test_unchanged_option_not_reported(self, make_controller, errors):
        controller = make_controller({**SF, "antialias": False}, error_sink=errors)

        controller.set_props({**SF, "antialias": False})

        assert len(errors) == 0

    def test_reverting_option_not_reported(self, make_controller, errors):
        controller = make_controller({**SF, "antialias": False}, error_sink=errors)
        controller.set_props({**SF, "antialias": True})

        controller.set_props({**SF, "antialias": False})

        assert len(errors) == 1

    def test_error_delivered_to_on_error(self, make_controller, recorder):
        controller = make_controller({**SF, "antialias": False, "on_error": recorder})

        controller.set_props({**SF, "antialias": True, "on_error": recorder})

        assert isinstance(recorder.last, MapErrorEvent)
        assert recorder.last.type == "error"
        assert recorder.last.target is controller.map


class TestBounds:
    """Test bounds-declared cameras."""

    BOUNDS = [-123.0, 37.0, -122.0, 38.0]

    def test_bounds_declare_center_and_zoom(self, make_controller):
        controller = make_controller({"bounds": self.BOUNDS})

        committed = controller.layer.get_committed()
        declared = controller.layer.declared
        assert committed.longitude == pytest.approx(-122.5)
        assert declared.longitude == committed.longitude
        assert declared.zoom == committed.zoom

    def test_bounds_resolved_once(self, make_controller, monkeypatch):
        controller = make_controller({"bounds": self.BOUNDS})
        map_instance = controller.map
        calls = []
        original = map_instance.camera_for_bounds

        def counting(bounds, options=None):
            calls.append(bounds)
            return original(bounds, options)

        monkeypatch.setattr(map_instance, "camera_for_bounds", counting)

        controller.set_props({"bounds": list(self.BOUNDS)})
        controller.set_props({"bounds": list(self.BOUNDS)})

        assert calls == []

    def test_unfittable_bounds_reported(self, make_controller, errors):
        controller = make_controller({**SF, "zoom": 5}, error_sink=errors)

        controller.set_props({**SF, "zoom": 5, "bounds": "nowhere"})

        assert isinstance(errors.last, ReconciliationError)
        assert errors.last.operation == "fit_bounds"
        assert controller.layer.get_committed().zoom == 5.0

    def test_bounds_bearing_option(self, make_controller):
        controller = make_controller(
            {"bounds": self.BOUNDS, "fit_bounds_options": {"bearing": 20}}
        )

        assert controller.layer.declared.bearing == 20.0
        assert controller.layer.get_committed().bearing == 20.0


class TestStyle:
    """Test style document and style component updates."""

    def test_style_change_diffs_by_default(self, make_controller, controlled_props):
        controller = make_controller(controlled_props)
        new_style = {"version": 8, "layers": [{"id": "water"}]}

        controller.set_props({**controlled_props, "map_style": new_style})

        assert controller.map.calls[-1] == ("set_style", (new_style, {"diff": True}))

    def test_style_diffing_disabled(self, make_controller, controlled_props):
        controller = make_controller(controlled_props)
        new_style = {"version": 8, "layers": [{"id": "water"}]}

        controller.set_props({**controlled_props, "map_style": new_style, "style_diffing": False})

        assert ("set_style", (new_style, {"diff": False})) in controller.map.calls

    def test_equal_style_document_not_reapplied(self, make_controller, controlled_props):
        controller = make_controller(controlled_props)

        controller.set_props({**controlled_props, "map_style": {"version": 8, "layers": []}})

        assert "set_style" not in controller.map.call_names()

    def test_components_wait_for_style_load(self, make_controller, controlled_props):
        fog = {"range": [0.5, 10]}
        controller = make_controller({**controlled_props, "fog": fog})

        assert "set_fog" not in controller.map.call_names()

        controller.map.load_style()

        assert ("set_fog", (fog,)) in controller.map.calls

    def test_component_update_after_load(self, make_controller, controlled_props):
        controller = make_controller(controlled_props)
        controller.map.load_style()

        controller.set_props({**controlled_props, "projection": "globe"})

        assert ("set_projection", ("globe",)) in controller.map.calls

    def test_terrain_waits_for_source(self, make_controller, controlled_props):
        terrain = {"source": "dem", "exaggeration": 1.5}
        controller = make_controller({**controlled_props, "terrain": terrain})
        controller.map.load_style()

        assert "set_terrain" not in controller.map.call_names()

        controller.map.add_source("dem", {"type": "raster-dem"})

        assert ("set_terrain", (terrain,)) in controller.map.calls

    def test_components_reapplied_after_style_swap(self, make_controller, controlled_props):
        light = {"anchor": "map"}
        props = {**controlled_props, "light": light}
        controller = make_controller(props)
        controller.map.load_style()
        new_style = {"version": 8, "layers": [{"id": "roads"}]}

        controller.set_props({**props, "map_style": new_style, "style_diffing": False})
        controller.map.load_style()

        assert controller.map.call_names().count("set_light") == 2


class TestHandlers:
    """Test interaction handler toggles."""

    def test_disabled_at_construction(self, make_controller):
        controller = make_controller({**SF, "scroll_zoom": False})

        assert not controller.map.scroll_zoom.is_enabled()

    def test_disable_and_reenable(self, make_controller):
        controller = make_controller(dict(SF))

        controller.set_props({**SF, "drag_pan": False})
        controller.set_props(dict(SF))

        names = controller.map.call_names()
        assert names.index("drag_pan.disable") < names.index("drag_pan.enable")
        assert controller.map.drag_pan.is_enabled()

    def test_enable_with_options(self, make_controller):
        controller = make_controller({**SF, "scroll_zoom": False})

        controller.set_props({**SF, "scroll_zoom": {"around": "center"}})

        assert controller.map.scroll_zoom.options == {"around": "center"}


class TestEvents:
    """Test non-camera event re-emission."""

    def test_pointer_event(self, make_controller, controlled_props, recorder):
        controller = make_controller({**controlled_props, "on_click": recorder})

        controller.map.simulate_pointer("click", (256.0, 256.0))

        lng_lat = recorder.last.data["lng_lat"]
        assert isinstance(lng_lat, LngLat)
        assert lng_lat.lng == pytest.approx(-122.4)

    def test_load_event(self, make_controller, controlled_props, recorder):
        controller = make_controller({**controlled_props, "on_load": recorder})

        controller.map.load_style()

        assert recorder.types() == ["load"]


class TestRecycle:
    """Test detaching and reattaching a controller."""

    def test_recycle_drops_callbacks(self, make_controller, controlled_props, recorder):
        controller = make_controller({**controlled_props, "on_move": recorder})

        controller.recycle()

        assert "on_move" not in controller.props
        assert controller.state is ControllerState.DETACHING

    def test_reattach_moves_canvas(self, make_controller, controlled_props, container):
        controller = make_controller(controlled_props)
        canvas_container = controller.map.get_canvas_container()
        controller.recycle()
        controller.mark_pooled()
        target = Element("div", "other")

        controller.reattach({**SF, "zoom": 3, "map_style": STYLE}, target)

        assert canvas_container.parent is target
        assert container.child_nodes == []
        assert controller.map.get_container() is target
        assert controller.layer.get_committed().zoom == 3.0
        assert controller.state is ControllerState.ATTACHED

    def test_destroy_is_idempotent(self, make_controller, controlled_props):
        controller = make_controller(controlled_props)

        controller.destroy()
        controller.destroy()

        assert controller.is_destroyed
        assert controller.map.call_names().count("remove") == 1
