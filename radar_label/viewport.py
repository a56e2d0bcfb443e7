# radar_label/viewport.py
from __future__ import annotations

import math
from dataclasses import replace

from .domain import (
    KEY_ZOOM_FACTOR,
    ROTATION_STEP,
    WHEEL_ZOOM_FACTOR,
    ZOOM_MAX,
    ZOOM_MIN,
    Viewport,
    clamp,
    clamp_rotation,
    clamp_zoom,
)
from .geometry import CoordinateTransformer
from .store import AnnotationStore


class ViewportController:
    """
    Zoom / pan for the project and rotation for each frame.

    Zoom is clamped to [ZOOM_MIN, ZOOM_MAX], rotation to
    [ROTATION_MIN, ROTATION_MAX]; out-of-range requests are clamped, never
    rejected. Pan is unbounded. Changes are committed to the store.
    """

    def __init__(self, store: AnnotationStore):
        self._store = store

    def viewport(self) -> Viewport:
        return self._store.project().viewport

    # ---------------- Zoom / pan ----------------

    def zoom_by_wheel(self, delta_y: float) -> None:
        """
        Wheel zoom that keeps the image center fixed on screen.
        delta_y > 0 (scroll down) zooms out.
        """
        frame = self._store.current_frame()
        if frame is None or delta_y == 0:
            return
        vp = self.viewport()
        factor = (1.0 / WHEEL_ZOOM_FACTOR) if delta_y > 0 else WHEEL_ZOOM_FACTOR
        new_zoom = clamp_zoom(vp.zoom * factor)

        cx = frame.width / 2.0
        cy = frame.height / 2.0
        old_t = CoordinateTransformer(
            frame.width, frame.height, vp.zoom, vp.pan_x, vp.pan_y, frame.rotation_deg, True
        )
        new_t = CoordinateTransformer(
            frame.width, frame.height, new_zoom, 0.0, 0.0, frame.rotation_deg, True
        )
        old_sx, old_sy = old_t.image_to_screen(cx, cy)
        new_sx, new_sy = new_t.image_to_screen(cx, cy)

        self._store.commit_viewport(Viewport(zoom=new_zoom, pan_x=old_sx - new_sx, pan_y=old_sy - new_sy))

    def zoom_in(self) -> None:
        self.set_zoom(self.viewport().zoom * KEY_ZOOM_FACTOR)

    def zoom_out(self) -> None:
        self.set_zoom(self.viewport().zoom / KEY_ZOOM_FACTOR)

    def set_zoom(self, zoom: float) -> None:
        self._store.commit_viewport(replace(self.viewport(), zoom=clamp_zoom(zoom)))

    def set_log_zoom(self, value: float) -> None:
        """Slider input in natural-log space."""
        lo, hi = math.log(ZOOM_MIN), math.log(ZOOM_MAX)
        self.set_zoom(math.exp(clamp(value, lo, hi)))

    def pan_by(self, dx: float, dy: float) -> None:
        vp = self.viewport()
        self._store.commit_viewport(replace(vp, pan_x=vp.pan_x + dx, pan_y=vp.pan_y + dy))

    def reset(self) -> None:
        self._store.commit_viewport(Viewport(zoom=1.0, pan_x=0.0, pan_y=0.0))

    # ---------------- Rotation ----------------

    def rotation(self) -> float:
        frame = self._store.current_frame()
        return frame.rotation_deg if frame is not None else 0.0

    def set_rotation(self, deg: float) -> None:
        if self._store.current_frame() is None:
            return
        self._store.commit_rotation(self._store.current_index(), clamp_rotation(deg))

    def rotate_by(self, delta: float) -> None:
        self.set_rotation(self.rotation() + delta)

    def rotate_step(self, direction: int) -> None:
        self.rotate_by(ROTATION_STEP * (1 if direction > 0 else -1))
