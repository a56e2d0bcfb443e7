# radar_label/geometry.py
from __future__ import annotations

import math
from typing import Tuple

from .domain import Frame, Viewport


class CoordinateTransformer:
    """
    Maps between display (screen) pixels and image pixels.

    image -> screen: rotate about the image center (only when rotated=True),
    then scale by zoom, then translate by pan. screen_to_image is the exact
    inverse, applied in reverse order.

    The same primitive serves both annotation spaces: boats use the frame
    rotation, buoys pass rotated=False so the stored angle is ignored.
    """

    def __init__(
        self,
        img_w: float,
        img_h: float,
        zoom: float,
        pan_x: float,
        pan_y: float,
        rotation_deg: float,
        rotated: bool = True,
    ):
        if not zoom > 0:
            raise ValueError(f"zoom must be > 0, got {zoom}")
        self.img_w = float(img_w)
        self.img_h = float(img_h)
        self.zoom = float(zoom)
        self.pan_x = float(pan_x)
        self.pan_y = float(pan_y)
        self.rotation_deg = float(rotation_deg)
        self.rotated = bool(rotated)

        self._cx = self.img_w / 2.0
        self._cy = self.img_h / 2.0
        angle = math.radians(self.rotation_deg) if self.rotated else 0.0
        self._cos = math.cos(angle)
        self._sin = math.sin(angle)

    @property
    def effective_rotation_deg(self) -> float:
        return self.rotation_deg if self.rotated else 0.0

    def image_to_screen(self, ix: float, iy: float) -> Tuple[float, float]:
        x = ix - self._cx
        y = iy - self._cy
        x, y = x * self._cos - y * self._sin, x * self._sin + y * self._cos
        x += self._cx
        y += self._cy
        return (x * self.zoom + self.pan_x, y * self.zoom + self.pan_y)

    def screen_to_image(self, sx: float, sy: float) -> Tuple[float, float]:
        x = (sx - self.pan_x) / self.zoom
        y = (sy - self.pan_y) / self.zoom
        x -= self._cx
        y -= self._cy
        # inverse rotation: transpose of the rotation matrix
        x, y = x * self._cos + y * self._sin, -x * self._sin + y * self._cos
        return (x + self._cx, y + self._cy)


def transformer_for(frame: Frame, viewport: Viewport, rotated: bool = True) -> CoordinateTransformer:
    """Transformer for the frame-rotated space (boats) or the fixed space (buoys)."""
    return CoordinateTransformer(
        frame.width,
        frame.height,
        viewport.zoom,
        viewport.pan_x,
        viewport.pan_y,
        frame.rotation_deg if rotated else 0.0,
        rotated,
    )


def distance(ax: float, ay: float, bx: float, by: float) -> float:
    return math.hypot(ax - bx, ay - by)
