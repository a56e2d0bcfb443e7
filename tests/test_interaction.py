"""Tests for tools, pointer gestures and the keyboard table."""

import pytest

from radar_label.domain import (
    DEFAULT_BBOX_SIZE,
    MIN_BBOX_SIDE,
    BoxAnnotation,
    PointAnnotation,
    Selection,
    Viewport,
)
from radar_label.geometry import transformer_for
from radar_label.interaction import (
    TOOL_BOAT_BOX,
    TOOL_BOAT_POINT,
    TOOL_BUOY_BOX,
    TOOL_PAN,
    TOOL_SELECT,
    InteractionController,
    resize_box_to_handle,
)
from radar_label.store import AnnotationStore


def _drag(c, start, end, steps=1):
    c.pointer_down(*start)
    for i in range(1, steps + 1):
        t = i / steps
        c.pointer_move(start[0] + (end[0] - start[0]) * t, start[1] + (end[1] - start[1]) * t)
    c.pointer_up(*end)


class TestDrawing:
    def test_click_below_threshold_places_default_box(self, controller, store):
        controller.set_tool(TOOL_BOAT_BOX)
        _drag(controller, (50, 50), (54.999, 50))
        (box,) = store.get_frame_annotations(0)
        assert (box.x, box.y, box.w, box.h) == (50, 50, DEFAULT_BBOX_SIZE, DEFAULT_BBOX_SIZE)

    def test_drag_above_threshold_draws_box(self, controller, store):
        controller.set_tool(TOOL_BOAT_BOX)
        _drag(controller, (50, 50), (55.001, 50))
        (box,) = store.get_frame_annotations(0)
        assert box.x == 50 and box.y == 50
        assert box.w == pytest.approx(5.001)
        assert box.h == MIN_BBOX_SIDE

    def test_small_drag_clamps_to_min_side(self, controller, store):
        controller.set_tool(TOOL_BOAT_BOX)
        _drag(controller, (50, 50), (56, 52))
        (box,) = store.get_frame_annotations(0)
        assert (box.w, box.h) == (6, MIN_BBOX_SIDE)

    def test_reverse_drag_normalizes(self, controller, store):
        controller.set_tool(TOOL_BOAT_BOX)
        _drag(controller, (100, 80), (60, 40), steps=3)
        (box,) = store.get_frame_annotations(0)
        assert (box.x, box.y, box.w, box.h) == (60, 40, 40, 40)

    def test_preview_only_while_drawing(self, controller):
        controller.set_tool(TOOL_BOAT_BOX)
        controller.pointer_down(10, 10)
        controller.pointer_move(30, 5)
        assert controller.drag_preview() == (10, 5, 20, 5)
        controller.pointer_up(30, 5)
        assert controller.drag_preview() is None

    def test_point_at_start(self, controller, store):
        controller.set_tool(TOOL_BOAT_POINT)
        _drag(controller, (30, 40), (90, 90))
        (pt,) = store.get_frame_annotations(0)
        assert isinstance(pt, PointAnnotation)
        assert (pt.x, pt.y, pt.label) == (30, 40, "boat")

    def test_buoy_goes_to_global_unrotated(self, controller, store):
        store.commit_rotation(0, 8.0)
        controller.set_tool(TOOL_BUOY_BOX)
        _drag(controller, (20, 20), (20, 20))
        assert store.get_frame_annotations(0) == ()
        (buoy,) = store.get_global_annotations()
        assert (buoy.x, buoy.y, buoy.label) == (20, 20, "buoy")

    def test_boat_in_rotated_space(self, controller, store):
        store.commit_rotation(0, 8.0)
        controller.set_tool(TOOL_BOAT_POINT)
        _drag(controller, (30, 40), (30, 40))
        (pt,) = store.get_frame_annotations(0)
        expected = transformer_for(store.current_frame(), store.project().viewport).screen_to_image(30, 40)
        assert (pt.x, pt.y) == pytest.approx(expected)

    def test_pointer_leave_cancels(self, controller, store):
        controller.set_tool(TOOL_BOAT_BOX)
        controller.pointer_down(10, 10)
        controller.pointer_move(60, 60)
        controller.pointer_leave()
        controller.pointer_up(60, 60)
        assert store.get_frame_annotations(0) == ()
        assert not controller.is_dragging()

    def test_no_frame_ignores_pointer(self):
        store = AnnotationStore()
        c = InteractionController(store)
        c.set_tool(TOOL_BOAT_BOX)
        _drag(c, (0, 0), (50, 50))
        assert store.project().frames == ()


class TestSelectTool:
    @pytest.fixture
    def box(self, store):
        box = BoxAnnotation(id="box", label="boat", x=10, y=10, w=50, h=50)
        store.replace_frame_annotations(0, (box,))
        return box

    def test_click_selects(self, controller, box):
        controller.pointer_down(35, 35)
        controller.pointer_up(35, 35)
        assert controller.selection() == Selection("frame", "box", 0)
        controller.pointer_down(150, 90)
        controller.pointer_up(150, 90)
        assert controller.selection() is None

    def test_drag_moves(self, controller, store, box):
        _drag(controller, (35, 35), (45, 40), steps=4)
        moved = store.find("frame", "box")
        assert (moved.x, moved.y) == pytest.approx((20, 15))
        assert (moved.w, moved.h) == (50, 50)

    def test_move_scales_with_zoom(self, controller, store, box):
        store.commit_viewport(Viewport(zoom=2.0))
        _drag(controller, (70, 70), (90, 70))
        assert store.find("frame", "box").x == pytest.approx(20)

    def test_handle_resizes(self, controller, store, box):
        controller.pointer_down(59, 59)
        controller.pointer_move(80, 90)
        assert store.find("frame", "box") == BoxAnnotation("box", "boat", 10, 10, 70, 80)
        controller.pointer_move(0, 0)
        controller.pointer_up(0, 0)
        assert store.find("frame", "box") == BoxAnnotation("box", "boat", 10, 10, MIN_BBOX_SIDE, MIN_BBOX_SIDE)

    def test_hover(self, controller, box):
        controller.pointer_move(20, 20)
        assert controller.hovered_id() == "box"
        controller.pointer_move(150, 90)
        assert controller.hovered_id() is None

    def test_stale_selection_dropped(self, controller, store, box):
        controller.set_selection(Selection("frame", "box", 0))
        store.replace_frame_annotations(0, ())
        assert controller.selection() is None


class TestResizeBoxToHandle:
    box = BoxAnnotation("b", "boat", 10, 20, 30, 40)

    def test_nw_keeps_opposite_corner(self):
        assert resize_box_to_handle(self.box, "nw", 0, 5) == (0, 5, 40, 55)

    def test_edge_handle_moves_one_side(self):
        assert resize_box_to_handle(self.box, "e", 100, 999) == (10, 20, 90, 40)
        assert resize_box_to_handle(self.box, "n", 999, 50) == (10, 50, 30, 10)

    def test_min_side(self):
        x, y, w, h = resize_box_to_handle(self.box, "sw", 100, -100)
        assert (x, w) == (35, MIN_BBOX_SIDE)
        assert (y, h) == (20, MIN_BBOX_SIDE)


class TestDeletion:
    def test_delete_buoy_leaves_frames(self, controller, store):
        boat = store.create_annotation("point", "boat", 10, 10)
        buoy = store.create_annotation("point", "buoy", 150, 50)
        controller.set_selection(Selection("global", buoy.id))

        assert controller.key_press("Delete") is True

        assert store.get_global_annotations() == ()
        assert store.get_frame_annotations(0) == (boat,)
        assert controller.selection() is None

    def test_backspace_deletes_boat(self, controller, store):
        boat = store.create_annotation("bbox", "boat", 10, 10)
        controller.set_selection(Selection("frame", boat.id))
        controller.key_press("Backspace")
        assert store.get_frame_annotations(0) == ()

    def test_delete_without_selection(self, controller):
        assert controller.delete_selection() is False


class TestKeyboard:
    def test_arrows_pan_by_zoomed_step(self, controller, store):
        store.commit_viewport(Viewport(zoom=2.0))
        controller.key_press("ArrowUp")
        controller.key_press("ArrowLeft")
        vp = store.project().viewport
        assert (vp.pan_x, vp.pan_y) == (20, 20)
        controller.key_press("ArrowDown")
        controller.key_press("ArrowRight")
        controller.key_press("ArrowRight")
        vp = store.project().viewport
        assert (vp.pan_x, vp.pan_y) == (-20, 0)

    def test_frame_navigation(self, controller, store):
        controller.key_press("n")
        assert store.current_index() == 1
        controller.key_press("d")
        assert store.current_index() == 1
        controller.key_press("a")
        assert store.current_index() == 0
        controller.key_press("N", shift=True)
        assert store.current_index() == 0
        controller.key_press("ArrowRight", shift=True)
        assert store.current_index() == 1
        controller.key_press("ArrowLeft", shift=True)
        assert store.current_index() == 0

    def test_navigation_clears_selection(self, controller, store):
        boat = store.create_annotation("point", "boat", 10, 10)
        controller.set_selection(Selection("frame", boat.id))
        controller.key_press("p")
        assert controller.selection() is not None
        controller.key_press("n")
        assert controller.selection() is None

    def test_zoom_and_rotate_keys(self, controller, store):
        controller.key_press("+")
        assert store.project().viewport.zoom == pytest.approx(1.2)
        controller.key_press("_")
        assert store.project().viewport.zoom == pytest.approx(1.0)
        controller.key_press("]")
        controller.key_press("]")
        controller.key_press("[")
        assert store.current_frame().rotation_deg == 0.1

    def test_tool_keys(self, controller):
        tools = []
        controller.tool_changed.connect(tools.append)
        for key in ("1", "2", "3", "4", "Escape"):
            controller.key_press(key)
        assert tools == ["boat_point", "boat_box", "buoy_point", "buoy_box", "select"]

    def test_escape_in_select_clears_selection(self, controller, store):
        boat = store.create_annotation("point", "boat", 10, 10)
        controller.set_selection(Selection("frame", boat.id))
        controller.key_press("Escape")
        assert controller.selection() is None
        assert controller.tool() == TOOL_SELECT

    def test_ctrl_s(self, controller):
        requests = []
        controller.save_requested.connect(lambda: requests.append(True))
        controller.key_press("s")
        assert requests == []
        controller.key_press("s", ctrl=True)
        assert requests == [True]

    def test_unknown_key(self, controller):
        assert controller.key_press("F13") is False

    def test_ignored_without_frames(self):
        c = InteractionController(AnnotationStore())
        assert c.key_press("n") is False
        assert c.key_press("2") is False
        assert c.tool() == TOOL_SELECT

    def test_space_holds_pan(self, controller):
        controller.set_tool(TOOL_BOAT_BOX)
        assert controller.key_press("Space") is True
        assert controller.tool() == TOOL_PAN
        controller.key_press("Space", auto_repeat=True)
        controller.key_release("Space", auto_repeat=True)
        assert controller.tool() == TOOL_PAN
        controller.key_release("Space")
        assert controller.tool() == TOOL_BOAT_BOX

    def test_set_tool_rejects_unknown(self, controller):
        with pytest.raises(ValueError):
            controller.set_tool("lasso")


def test_pan_tool_drags_view(controller, store):
    controller.set_tool(TOOL_PAN)
    controller.pointer_down(0, 0)
    controller.pointer_move(10, 5)
    assert (store.project().viewport.pan_x, store.project().viewport.pan_y) == (10, 5)
    controller.pointer_move(15, 5)
    controller.pointer_up(15, 5)
    assert (store.project().viewport.pan_x, store.project().viewport.pan_y) == (15, 5)
