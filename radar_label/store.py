# radar_label/store.py
from __future__ import annotations

import uuid
from dataclasses import replace
from typing import Iterable, Optional, Sequence, Tuple

from PyQt5.QtCore import QObject, pyqtSignal

from .domain import (
    DEFAULT_BBOX_SIZE,
    KIND_BBOX,
    KIND_POINT,
    LABELS,
    MIN_BBOX_SIDE,
    SPACE_FRAME,
    SPACE_GLOBAL,
    Annotation,
    BoxAnnotation,
    Frame,
    PointAnnotation,
    Project,
    Viewport,
    clamp_rotation,
    clamp_zoom,
    natural_sort_key,
    space_for_label,
    unknown_annotation,
)


Annotations = Tuple[Annotation, ...]


# -----------------------------
# Pure collection helpers
# -----------------------------

def new_annotation_id(existing: Iterable[Annotation] = ()) -> str:
    taken = {a.id for a in existing}
    while True:
        ann_id = uuid.uuid4().hex[:9]
        if ann_id not in taken:
            return ann_id


def create_annotation(
    kind: str,
    label: str,
    x: float,
    y: float,
    w: Optional[float] = None,
    h: Optional[float] = None,
    existing: Iterable[Annotation] = (),
) -> Annotation:
    """
    Builds a new annotation with a fresh id (unique among `existing`).
    Boxes default to DEFAULT_BBOX_SIZE and are clamped to MIN_BBOX_SIDE.
    """
    if label not in LABELS:
        raise ValueError(f"Unknown label '{label}'")
    ann_id = new_annotation_id(existing)
    if kind == KIND_POINT:
        return PointAnnotation(id=ann_id, label=label, x=float(x), y=float(y))
    if kind == KIND_BBOX:
        w = DEFAULT_BBOX_SIZE if w is None else w
        h = DEFAULT_BBOX_SIZE if h is None else h
        return BoxAnnotation(
            id=ann_id,
            label=label,
            x=float(x),
            y=float(y),
            w=max(float(MIN_BBOX_SIDE), float(w)),
            h=max(float(MIN_BBOX_SIDE), float(h)),
        )
    raise ValueError(f"Unknown annotation kind '{kind}'")


def find_index(anns: Sequence[Annotation], ann_id: str) -> int:
    for i, a in enumerate(anns):
        if a.id == ann_id:
            return i
    return -1


def delete_by_id(anns: Sequence[Annotation], ann_id: str) -> Annotations:
    return tuple(a for a in anns if a.id != ann_id)


def move_by_id(anns: Sequence[Annotation], ann_id: str, dx: float, dy: float) -> Annotations:
    idx = find_index(anns, ann_id)
    if idx < 0:
        return tuple(anns)
    ann = anns[idx]
    if not isinstance(ann, (PointAnnotation, BoxAnnotation)):
        raise unknown_annotation(ann)
    out = list(anns)
    out[idx] = replace(ann, x=ann.x + dx, y=ann.y + dy)
    return tuple(out)


def resize_by_id(anns: Sequence[Annotation], ann_id: str, dw: float, dh: float) -> Annotations:
    """Grow/shrink a box; points are left alone. Sides clamp to MIN_BBOX_SIDE."""
    idx = find_index(anns, ann_id)
    if idx < 0:
        return tuple(anns)
    ann = anns[idx]
    if isinstance(ann, PointAnnotation):
        return tuple(anns)
    if not isinstance(ann, BoxAnnotation):
        raise unknown_annotation(ann)
    out = list(anns)
    out[idx] = replace(
        ann,
        w=max(float(MIN_BBOX_SIDE), ann.w + dw),
        h=max(float(MIN_BBOX_SIDE), ann.h + dh),
    )
    return tuple(out)


def set_box_geometry(
    anns: Sequence[Annotation], ann_id: str, x: float, y: float, w: float, h: float
) -> Annotations:
    idx = find_index(anns, ann_id)
    if idx < 0 or not isinstance(anns[idx], BoxAnnotation):
        return tuple(anns)
    out = list(anns)
    out[idx] = replace(
        anns[idx],
        x=float(x),
        y=float(y),
        w=max(float(MIN_BBOX_SIDE), float(w)),
        h=max(float(MIN_BBOX_SIDE), float(h)),
    )
    return tuple(out)


# -----------------------------
# Store
# -----------------------------

class AnnotationStore(QObject):
    """
    Owns the project document: frames, frame-local boats and global buoys.

    Every commit replaces whole values and emits project_changed(Project),
    which the canvas (redraw), the interaction controller (selection
    revalidation) and the persistence manager (debounced save) listen to.

    move_by_id / delete_by_id / resize_by_id only compute the new collection;
    the caller decides whether to commit it with replace_annotations().
    """
    project_changed = pyqtSignal(object)

    def __init__(self, project: Optional[Project] = None, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._project: Project = project if project is not None else Project()

    # ---------------- Read ----------------

    def project(self) -> Project:
        return self._project

    def current_frame(self) -> Optional[Frame]:
        return self._project.current_frame()

    def current_index(self) -> int:
        return self._project.current_index

    def frame_count(self) -> int:
        return len(self._project.frames)

    def get_frame_annotations(self, frame_index: int) -> Annotations:
        return self._frame_at(frame_index).annotations

    def get_global_annotations(self) -> Annotations:
        return self._project.global_buoys

    def get_annotations(self, space: str) -> Annotations:
        """Current frame's boats or the global buoys."""
        if space == SPACE_GLOBAL:
            return self._project.global_buoys
        frame = self.current_frame()
        return frame.annotations if frame is not None else ()

    # ---------------- Annotation mutations ----------------

    def replace_frame_annotations(self, frame_index: int, anns: Iterable[Annotation]) -> None:
        frame = self._frame_at(frame_index)
        frames = list(self._project.frames)
        frames[frame_index] = replace(frame, annotations=tuple(anns))
        self._commit(replace(self._project, frames=tuple(frames)))

    def replace_global_annotations(self, anns: Iterable[Annotation]) -> None:
        self._commit(replace(self._project, global_buoys=tuple(anns)))

    def replace_annotations(self, space: str, anns: Iterable[Annotation]) -> None:
        if space == SPACE_GLOBAL:
            self.replace_global_annotations(anns)
        elif space == SPACE_FRAME:
            if self.current_frame() is None:
                return
            self.replace_frame_annotations(self._project.current_index, anns)
        else:
            raise ValueError(f"Unknown annotation space '{space}'")

    def create_annotation(
        self,
        kind: str,
        label: str,
        x: float,
        y: float,
        w: Optional[float] = None,
        h: Optional[float] = None,
        space: Optional[str] = None,
    ) -> Annotation:
        """
        Creates an annotation and appends it to its collection (buoys go to
        the global list unless space says otherwise).
        """
        if space is None:
            space = space_for_label(label)
        current = self.get_annotations(space)
        ann = create_annotation(kind, label, x, y, w, h, existing=current)
        self.replace_annotations(space, current + (ann,))
        return ann

    def delete_by_id(self, space: str, ann_id: str) -> Annotations:
        return delete_by_id(self.get_annotations(space), ann_id)

    def move_by_id(self, space: str, ann_id: str, dx: float, dy: float) -> Annotations:
        return move_by_id(self.get_annotations(space), ann_id, dx, dy)

    def resize_by_id(self, space: str, ann_id: str, dw: float, dh: float) -> Annotations:
        return resize_by_id(self.get_annotations(space), ann_id, dw, dh)

    def find(self, space: str, ann_id: str) -> Optional[Annotation]:
        anns = self.get_annotations(space)
        idx = find_index(anns, ann_id)
        return anns[idx] if idx >= 0 else None

    # ---------------- Document mutations ----------------

    def load_images(self, images: Sequence) -> None:
        """Replace all frames with freshly imported images (name/url/width/height)."""
        frames = tuple(
            Frame(name=img.name, url=img.url, width=int(img.width), height=int(img.height))
            for img in images
        )
        self._commit(replace(self._project, frames=frames, current_index=0))

    def load_project(self, project: Project) -> None:
        self._commit(project)

    def go_to_frame(self, index: int) -> bool:
        if not (0 <= index < len(self._project.frames)):
            return False
        if index != self._project.current_index:
            self._commit(replace(self._project, current_index=index))
        return True

    def sort_frames(self) -> None:
        frames = sorted(self._project.frames, key=lambda f: natural_sort_key(f.name))
        self._commit(replace(self._project, frames=tuple(frames), current_index=0))

    def commit_viewport(self, viewport: Viewport) -> None:
        vp = replace(viewport, zoom=clamp_zoom(viewport.zoom))
        if vp == self._project.viewport:
            return
        self._commit(replace(self._project, viewport=vp))

    def commit_rotation(self, frame_index: int, rotation_deg: float) -> None:
        frame = self._frame_at(frame_index)
        deg = clamp_rotation(rotation_deg)
        if deg == frame.rotation_deg:
            return
        frames = list(self._project.frames)
        frames[frame_index] = replace(frame, rotation_deg=deg)
        self._commit(replace(self._project, frames=tuple(frames)))

    # ---------------- Internals ----------------

    def _frame_at(self, frame_index: int) -> Frame:
        if not (0 <= frame_index < len(self._project.frames)):
            raise IndexError(f"Frame index {frame_index} out of range")
        return self._project.frames[frame_index]

    def _commit(self, project: Project) -> None:
        self._project = project
        self.project_changed.emit(project)
