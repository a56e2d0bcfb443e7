"""Tests for the image <-> screen coordinate transform."""

import itertools

import pytest

from radar_label.domain import Frame, Viewport
from radar_label.geometry import CoordinateTransformer, transformer_for


class TestCoordinateTransformer:
    @pytest.mark.parametrize(
        "zoom,pan,rotation",
        [
            (1.0, (0.0, 0.0), 0.0),
            (0.2, (-300.0, 12.5), -10.0),
            (3.7, (41.0, -17.0), 4.3),
            (32.0, (1e4, -1e4), 9.9),
        ],
    )
    def test_round_trip(self, zoom, pan, rotation):
        t = CoordinateTransformer(640, 480, zoom, pan[0], pan[1], rotation)
        for ix, iy in itertools.product([-50.0, 0.0, 123.4, 640.0], [-1.0, 0.0, 240.0, 999.9]):
            sx, sy = t.image_to_screen(ix, iy)
            rx, ry = t.screen_to_image(sx, sy)
            assert abs(rx - ix) < 1e-6
            assert abs(ry - iy) < 1e-6

    def test_image_center_is_rotation_fixed_point(self):
        t = CoordinateTransformer(100, 80, 2.0, 10.0, 20.0, 7.0)
        sx, sy = t.image_to_screen(50, 40)
        assert sx == pytest.approx(110.0)
        assert sy == pytest.approx(100.0)

    def test_quarter_turn(self):
        t = CoordinateTransformer(100, 100, 1.0, 0.0, 0.0, 90.0)
        sx, sy = t.image_to_screen(100, 50)
        assert sx == pytest.approx(50.0)
        assert sy == pytest.approx(100.0)

    def test_unrotated_ignores_angle(self):
        t = CoordinateTransformer(100, 100, 1.0, 0.0, 0.0, 10.0, rotated=False)
        assert t.image_to_screen(0, 0) == (0.0, 0.0)
        assert t.effective_rotation_deg == 0.0

    @pytest.mark.parametrize("zoom", [0.0, -1.0])
    def test_rejects_non_positive_zoom(self, zoom):
        with pytest.raises(ValueError):
            CoordinateTransformer(100, 100, zoom, 0, 0, 0)


def test_transformer_for_spaces():
    frame = Frame("f", "f", 200, 100, rotation_deg=5.0)
    vp = Viewport(zoom=1.5, pan_x=3, pan_y=4)
    boats = transformer_for(frame, vp)
    buoys = transformer_for(frame, vp, rotated=False)
    assert boats.effective_rotation_deg == 5.0
    assert buoys.effective_rotation_deg == 0.0
    assert buoys.image_to_screen(0, 0) == (3.0, 4.0)
    assert boats.image_to_screen(0, 0) != pytest.approx((3.0, 4.0))
