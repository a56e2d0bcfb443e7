"""Tests for screen-space hit testing of annotations and handles."""

import pytest

from radar_label.domain import HANDLE_NAMES, BoxAnnotation, PointAnnotation, Viewport
from radar_label.geometry import transformer_for
from radar_label.hittest import HitTester, annotation_contains
from radar_label.store import AnnotationStore

from .conftest import make_project


def _store(boats=(), buoys=(), **kwargs):
    store = AnnotationStore(make_project(**kwargs))
    store.replace_frame_annotations(0, boats)
    store.replace_global_annotations(buoys)
    return store


class TestHitTest:
    def test_last_inserted_wins(self):
        a = BoxAnnotation(id="a", label="boat", x=10, y=10, w=50, h=50)
        b = BoxAnnotation(id="b", label="boat", x=30, y=30, w=50, h=50)
        tester = HitTester(_store(boats=(a, b)))

        hit = tester.hit_test(40, 40)
        assert (hit.ann_id, hit.index, hit.space) == ("b", 1, "frame")
        assert tester.hit_test(15, 15).ann_id == "a"

    def test_box_min_inclusive_max_exclusive(self):
        a = BoxAnnotation(id="a", label="boat", x=10, y=10, w=50, h=50)
        tester = HitTester(_store(boats=(a,)))
        assert tester.hit_test(10, 10).ann_id == "a"
        assert tester.hit_test(60, 20) is None
        assert tester.hit_test(20, 60) is None

    def test_point_radius(self):
        p = PointAnnotation(id="p", label="boat", x=100, y=50)
        tester = HitTester(_store(boats=(p,)))
        assert tester.hit_test(109, 50).ann_id == "p"
        assert tester.hit_test(110, 50) is None

    def test_point_radius_is_in_image_units(self):
        p = PointAnnotation(id="p", label="boat", x=100, y=50)
        tester = HitTester(_store(boats=(p,), viewport=Viewport(zoom=2.0)))
        # 18 screen px at zoom 2 is 9 image px
        assert tester.hit_test(218, 100).ann_id == "p"
        assert tester.hit_test(222, 100) is None

    def test_falls_back_to_buoys(self):
        boat = BoxAnnotation(id="boat", label="boat", x=10, y=10, w=20, h=20)
        buoy = PointAnnotation(id="buoy", label="buoy", x=150, y=50)
        tester = HitTester(_store(boats=(boat,), buoys=(buoy,)))
        hit = tester.hit_test(150, 50)
        assert hit.space == "global"
        assert hit.is_global

    def test_boats_before_buoys(self):
        boat = BoxAnnotation(id="boat", label="boat", x=140, y=40, w=20, h=20)
        buoy = PointAnnotation(id="buoy", label="buoy", x=150, y=50)
        tester = HitTester(_store(boats=(boat,), buoys=(buoy,)))
        assert tester.hit_test(150, 50).ann_id == "boat"

    def test_rotation_applies_to_boats_only(self):
        boat = PointAnnotation(id="boat", label="boat", x=10, y=10)
        buoy = PointAnnotation(id="buoy", label="buoy", x=10, y=90)
        store = _store(boats=(boat,), buoys=(buoy,), rotation_deg=10.0)
        tester = HitTester(store)

        frame = store.current_frame()
        sx, sy = transformer_for(frame, store.project().viewport).image_to_screen(10, 10)
        assert (sx, sy) != pytest.approx((10, 10))
        assert tester.hit_test(sx, sy).ann_id == "boat"
        assert tester.hit_test(10, 90).ann_id == "buoy"

    def test_no_frame(self):
        tester = HitTester(AnnotationStore())
        assert tester.hit_test(0, 0) is None
        assert tester.transformer(False) is None


class TestHandles:
    @pytest.fixture
    def box(self):
        return BoxAnnotation(id="a", label="boat", x=10, y=10, w=50, h=50)

    def test_positions(self, box):
        tester = HitTester(_store(boats=(box,)))
        handles = tester.handle_positions(box, False)
        assert tuple(h.name for h in handles) == HANDLE_NAMES
        by_name = {h.name: (h.sx, h.sy) for h in handles}
        assert by_name["nw"] == pytest.approx((10, 10))
        assert by_name["s"] == pytest.approx((35, 60))
        assert by_name["se"] == pytest.approx((60, 60))

    def test_nearest_handle(self, box):
        tester = HitTester(_store(boats=(box,)))
        assert tester.handle_test(61, 61, box, False) == "se"
        assert tester.handle_test(35, 12, box, False) == "n"
        assert tester.handle_test(35, 35, box, False) is None

    def test_threshold_shrinks_with_zoom(self, box):
        tester = HitTester(_store(boats=(box,), viewport=Viewport(zoom=2.0)))
        # nw at (20, 20); limit 1.5 * 8 / 2 = 6
        assert tester.handle_test(25, 20, box, False) == "nw"
        assert tester.handle_test(27, 20, box, False) is None

    def test_points_have_no_handles(self):
        p = PointAnnotation(id="p", label="boat", x=10, y=10)
        tester = HitTester(_store(boats=(p,)))
        assert tester.handle_positions(p, False) == []
        assert tester.handle_test(10, 10, p, False) is None


def test_annotation_contains_rejects_unknown():
    with pytest.raises(TypeError):
        annotation_contains(object(), 0, 0)
