# radar_label/hittest.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .domain import (
    HANDLE_SIZE,
    POINT_HIT_RADIUS,
    SPACE_FRAME,
    SPACE_GLOBAL,
    Annotation,
    BoxAnnotation,
    PointAnnotation,
    Selection,
    unknown_annotation,
)
from .geometry import CoordinateTransformer, distance, transformer_for
from .store import AnnotationStore


@dataclass(frozen=True)
class HandlePos:
    name: str
    sx: float
    sy: float


def annotation_contains(ann: Annotation, ix: float, iy: float) -> bool:
    """Image-space hit: points within POINT_HIT_RADIUS, boxes min-inclusive / max-exclusive."""
    if isinstance(ann, PointAnnotation):
        return distance(ann.x, ann.y, ix, iy) < POINT_HIT_RADIUS
    if isinstance(ann, BoxAnnotation):
        return ann.x <= ix < ann.x + ann.w and ann.y <= iy < ann.y + ann.h
    raise unknown_annotation(ann)


def box_handle_positions(box: BoxAnnotation, trans: CoordinateTransformer) -> List[HandlePos]:
    sx1, sy1 = trans.image_to_screen(box.x, box.y)
    sx2, sy2 = trans.image_to_screen(box.x + box.w, box.y + box.h)
    mx = (sx1 + sx2) / 2.0
    my = (sy1 + sy2) / 2.0
    return [
        HandlePos("nw", sx1, sy1),
        HandlePos("n", mx, sy1),
        HandlePos("ne", sx2, sy1),
        HandlePos("w", sx1, my),
        HandlePos("e", sx2, my),
        HandlePos("sw", sx1, sy2),
        HandlePos("s", mx, sy2),
        HandlePos("se", sx2, sy2),
    ]


class HitTester:
    """
    Finds the topmost annotation under a screen point.

    Boats are tested first in the frame-rotated space, then buoys in the
    fixed space. Within each list the last inserted annotation wins.
    """

    def __init__(self, store: AnnotationStore):
        self._store = store

    def transformer(self, is_global: bool) -> Optional[CoordinateTransformer]:
        frame = self._store.current_frame()
        if frame is None:
            return None
        return transformer_for(frame, self._store.project().viewport, rotated=not is_global)

    def hit_test(self, sx: float, sy: float) -> Optional[Selection]:
        frame = self._store.current_frame()
        if frame is None:
            return None

        hit = self._scan(frame.annotations, self.transformer(False), sx, sy, SPACE_FRAME)
        if hit is not None:
            return hit
        return self._scan(
            self._store.get_global_annotations(), self.transformer(True), sx, sy, SPACE_GLOBAL
        )

    def handle_positions(self, ann: Annotation, is_global: bool) -> List[HandlePos]:
        if not isinstance(ann, BoxAnnotation):
            return []
        trans = self.transformer(is_global)
        if trans is None:
            return []
        return box_handle_positions(ann, trans)

    def handle_test(self, sx: float, sy: float, ann: Annotation, is_global: bool) -> Optional[str]:
        """Nearest resize handle within 1.5 x (HANDLE_SIZE / zoom), boxes only."""
        handles = self.handle_positions(ann, is_global)
        if not handles:
            return None
        zoom = self._store.project().viewport.zoom
        limit = 1.5 * (HANDLE_SIZE / zoom)

        best: Optional[Tuple[float, str]] = None
        for h in handles:
            d = distance(h.sx, h.sy, sx, sy)
            if d < limit and (best is None or d < best[0]):
                best = (d, h.name)
        return best[1] if best is not None else None

    @staticmethod
    def _scan(
        anns: Sequence[Annotation],
        trans: CoordinateTransformer,
        sx: float,
        sy: float,
        space: str,
    ) -> Optional[Selection]:
        ix, iy = trans.screen_to_image(sx, sy)
        for i in range(len(anns) - 1, -1, -1):
            if annotation_contains(anns[i], ix, iy):
                return Selection(space=space, ann_id=anns[i].id, index=i)
        return None
