# radar_label/interaction.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from PyQt5.QtCore import QObject, pyqtSignal

from .domain import (
    CLICK_DRAG_THRESHOLD,
    KEY_PAN_STEP,
    KIND_BBOX,
    KIND_POINT,
    LABEL_BOAT,
    LABEL_BUOY,
    MIN_BBOX_SIDE,
    SPACE_FRAME,
    SPACE_GLOBAL,
    BoxAnnotation,
    Project,
    Selection,
)
from .geometry import distance
from .hittest import HitTester
from .store import AnnotationStore, set_box_geometry
from .viewport import ViewportController

logger = logging.getLogger(__name__)


# -----------------------------
# Tools
# -----------------------------

TOOL_SELECT = "select"
TOOL_PAN = "pan"
TOOL_BOAT_POINT = "boat_point"
TOOL_BOAT_BOX = "boat_box"
TOOL_BUOY_POINT = "buoy_point"
TOOL_BUOY_BOX = "buoy_box"

TOOLS = (TOOL_SELECT, TOOL_PAN, TOOL_BOAT_POINT, TOOL_BOAT_BOX, TOOL_BUOY_POINT, TOOL_BUOY_BOX)

# drawing tool -> (annotation kind, label, target space)
DRAW_TOOLS: Dict[str, Tuple[str, str, str]] = {
    TOOL_BOAT_POINT: (KIND_POINT, LABEL_BOAT, SPACE_FRAME),
    TOOL_BOAT_BOX: (KIND_BBOX, LABEL_BOAT, SPACE_FRAME),
    TOOL_BUOY_POINT: (KIND_POINT, LABEL_BUOY, SPACE_GLOBAL),
    TOOL_BUOY_BOX: (KIND_BBOX, LABEL_BUOY, SPACE_GLOBAL),
}

# handle -> box edges it drags
HANDLE_EDGES: Dict[str, Tuple[str, ...]] = {
    "nw": ("w", "n"),
    "n": ("n",),
    "ne": ("e", "n"),
    "w": ("w",),
    "e": ("e",),
    "sw": ("w", "s"),
    "s": ("s",),
    "se": ("e", "s"),
}


def resize_box_to_handle(
    box: BoxAnnotation, handle: str, ix: float, iy: float
) -> Tuple[float, float, float, float]:
    """
    New (x, y, w, h) after dragging `handle` to image point (ix, iy).
    Edges not owned by the handle stay put; sides never go below MIN_BBOX_SIDE.
    """
    left, top = box.x, box.y
    right, bottom = box.x + box.w, box.y + box.h
    edges = HANDLE_EDGES.get(handle, ())
    if "w" in edges:
        left = min(ix, right - MIN_BBOX_SIDE)
    if "e" in edges:
        right = max(ix, left + MIN_BBOX_SIDE)
    if "n" in edges:
        top = min(iy, bottom - MIN_BBOX_SIDE)
    if "s" in edges:
        bottom = max(iy, top + MIN_BBOX_SIDE)
    return (left, top, right - left, bottom - top)


@dataclass
class DragState:
    start_x: float
    start_y: float
    last_x: float
    last_y: float
    current_x: float
    current_y: float
    handle: Optional[str] = None
    hit: Optional[Selection] = None


@dataclass(frozen=True)
class KeyPress:
    key: str
    shift: bool = False
    ctrl: bool = False


KeyHandler = Callable[["InteractionController", KeyPress], None]


# -----------------------------
# Key handlers
# -----------------------------

def _pan_key(dx: int, dy: int) -> KeyHandler:
    def handler(c: "InteractionController", ev: KeyPress) -> None:
        c.pan_by_keyboard(dx, dy)
    return handler


def _arrow_left(c: "InteractionController", ev: KeyPress) -> None:
    if ev.shift:
        c.prev_frame()
    else:
        c.pan_by_keyboard(1, 0)


def _arrow_right(c: "InteractionController", ev: KeyPress) -> None:
    if ev.shift:
        c.next_frame()
    else:
        c.pan_by_keyboard(-1, 0)


def _next_frame(c: "InteractionController", ev: KeyPress) -> None:
    if not (ev.shift or ev.ctrl):
        c.next_frame()


def _prev_frame(c: "InteractionController", ev: KeyPress) -> None:
    if not (ev.shift or ev.ctrl):
        c.prev_frame()


def _zoom_in(c: "InteractionController", ev: KeyPress) -> None:
    c.viewport.zoom_in()


def _zoom_out(c: "InteractionController", ev: KeyPress) -> None:
    c.viewport.zoom_out()


def _rotate(direction: int) -> KeyHandler:
    def handler(c: "InteractionController", ev: KeyPress) -> None:
        c.viewport.rotate_step(direction)
    return handler


def _use_tool(tool: str) -> KeyHandler:
    def handler(c: "InteractionController", ev: KeyPress) -> None:
        c.set_tool(tool)
    return handler


def _escape_select(c: "InteractionController", ev: KeyPress) -> None:
    # already in select: Escape drops the selection instead
    c.clear_selection()


def _delete(c: "InteractionController", ev: KeyPress) -> None:
    c.delete_selection()


def _save(c: "InteractionController", ev: KeyPress) -> None:
    if ev.ctrl:
        c.save_requested.emit()


# (tool, key) -> handler; tool None matches any tool.
KEY_TABLE: Dict[Tuple[Optional[str], str], KeyHandler] = {
    (None, "ArrowUp"): _pan_key(0, 1),
    (None, "ArrowDown"): _pan_key(0, -1),
    (None, "ArrowLeft"): _arrow_left,
    (None, "ArrowRight"): _arrow_right,
    (None, "n"): _next_frame,
    (None, "d"): _next_frame,
    (None, "p"): _prev_frame,
    (None, "a"): _prev_frame,
    (None, "+"): _zoom_in,
    (None, "="): _zoom_in,
    (None, "-"): _zoom_out,
    (None, "_"): _zoom_out,
    (None, "["): _rotate(-1),
    (None, "]"): _rotate(1),
    (None, "1"): _use_tool(TOOL_BOAT_POINT),
    (None, "2"): _use_tool(TOOL_BOAT_BOX),
    (None, "3"): _use_tool(TOOL_BUOY_POINT),
    (None, "4"): _use_tool(TOOL_BUOY_BOX),
    (None, "Escape"): _use_tool(TOOL_SELECT),
    (TOOL_SELECT, "Escape"): _escape_select,
    (None, "Delete"): _delete,
    (None, "Backspace"): _delete,
    (None, "s"): _save,
}

PAN_HOLD_KEY = "Space"


def normalize_key(key: str) -> str:
    return key.lower() if len(key) == 1 else key


# -----------------------------
# Controller
# -----------------------------

class InteractionController(QObject):
    """
    Tool + gesture state machine.

    Owns only transient state (tool, selection, hover, drag). Persistent
    edits are computed with the store's pure helpers and committed as whole
    collection replacements.

    Emits:
      - changed() whenever transient state that affects drawing changes
      - tool_changed(str)
      - status_changed(str)
      - save_requested() on the save key combo
    """
    changed = pyqtSignal()
    tool_changed = pyqtSignal(str)
    status_changed = pyqtSignal(str)
    save_requested = pyqtSignal()

    def __init__(
        self,
        store: AnnotationStore,
        viewport: Optional[ViewportController] = None,
        hit_tester: Optional[HitTester] = None,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self.store = store
        self.viewport = viewport or ViewportController(store)
        self.hit_tester = hit_tester or HitTester(store)

        self._tool: str = TOOL_SELECT
        self._tool_before_pan: Optional[str] = None
        self._selection: Optional[Selection] = None
        self._hovered_id: Optional[str] = None
        self._drag: Optional[DragState] = None

        self.store.project_changed.connect(self._on_project_changed)

    # ---------------- Transient state ----------------

    def tool(self) -> str:
        return self._tool

    def set_tool(self, tool: str) -> None:
        if tool not in TOOLS:
            raise ValueError(f"Unknown tool '{tool}'")
        if tool == self._tool:
            return
        self._drag = None
        self._tool = tool
        self.tool_changed.emit(tool)
        self.changed.emit()

    def selection(self) -> Optional[Selection]:
        return self._selection

    def set_selection(self, sel: Optional[Selection]) -> None:
        if sel == self._selection:
            return
        self._selection = sel
        self.changed.emit()

    def clear_selection(self) -> None:
        self.set_selection(None)

    def hovered_id(self) -> Optional[str]:
        return self._hovered_id

    def is_dragging(self) -> bool:
        return self._drag is not None

    def drag_preview(self) -> Optional[Tuple[float, float, float, float]]:
        """Screen rect (x, y, w, h) of the in-progress draw gesture, if any."""
        d = self._drag
        if d is None or self._tool not in DRAW_TOOLS:
            return None
        x = min(d.start_x, d.current_x)
        y = min(d.start_y, d.current_y)
        return (x, y, abs(d.current_x - d.start_x), abs(d.current_y - d.start_y))

    # ---------------- Pointer events ----------------

    def pointer_down(self, x: float, y: float) -> None:
        if self.store.current_frame() is None:
            return

        if self._tool == TOOL_SELECT:
            hit = self.hit_tester.hit_test(x, y)
            if hit is None:
                self._drag = None
                self.clear_selection()
                return
            ann = self.store.find(hit.space, hit.ann_id)
            handle = None
            if ann is not None:
                handle = self.hit_tester.handle_test(x, y, ann, hit.is_global)
            self.set_selection(hit)
            self._drag = DragState(x, y, x, y, x, y, handle=handle, hit=hit)
            return

        # pan and drawing tools just record the start point
        self._drag = DragState(x, y, x, y, x, y)
        self.changed.emit()

    def pointer_move(self, x: float, y: float) -> None:
        if self.store.current_frame() is None:
            return
        d = self._drag

        if d is None:
            self._update_hover(x, y)
            return

        d.current_x, d.current_y = x, y

        if self._tool == TOOL_PAN:
            self.viewport.pan_by(x - d.last_x, y - d.last_y)
            d.last_x, d.last_y = x, y
            return

        if self._tool == TOOL_SELECT:
            if d.handle and d.hit is not None:
                self._resize_with_handle(d.hit, d.handle, x, y)
            elif self._selection is not None:
                self._move_selection(d.last_x, d.last_y, x, y)
                d.last_x, d.last_y = x, y
            return

        if self._tool in DRAW_TOOLS:
            self.changed.emit()

    def pointer_up(self, x: float, y: float) -> None:
        d = self._drag
        self._drag = None
        if d is None or self.store.current_frame() is None:
            return
        if self._tool in DRAW_TOOLS:
            self._finish_draw(d, x, y)
        self.changed.emit()

    def pointer_leave(self) -> None:
        """Cancels any gesture; nothing partial is committed."""
        had_state = self._drag is not None or self._hovered_id is not None
        self._drag = None
        self._hovered_id = None
        if had_state:
            self.changed.emit()

    # ---------------- Keyboard ----------------

    def key_press(self, key: str, shift: bool = False, ctrl: bool = False, auto_repeat: bool = False) -> bool:
        """Returns True when the key was consumed."""
        if key == PAN_HOLD_KEY:
            if not auto_repeat and self._tool_before_pan is None and self._tool != TOOL_PAN:
                self._tool_before_pan = self._tool
                self.set_tool(TOOL_PAN)
            return True

        if self.store.current_frame() is None:
            return False

        key = normalize_key(key)
        handler = KEY_TABLE.get((self._tool, key)) or KEY_TABLE.get((None, key))
        if handler is None:
            return False
        handler(self, KeyPress(key=key, shift=shift, ctrl=ctrl))
        return True

    def key_release(self, key: str, auto_repeat: bool = False) -> bool:
        if key != PAN_HOLD_KEY or auto_repeat:
            return False
        if self._tool_before_pan is not None:
            previous = self._tool_before_pan
            self._tool_before_pan = None
            self.set_tool(previous)
        return True

    # ---------------- Commands ----------------

    def pan_by_keyboard(self, dx_sign: int, dy_sign: int) -> None:
        step = KEY_PAN_STEP / self.store.project().viewport.zoom
        self.viewport.pan_by(dx_sign * step, dy_sign * step)

    def go_to_frame(self, index: int) -> bool:
        if not self.store.go_to_frame(index):
            return False
        self._drag = None
        self._selection = None
        self._hovered_id = None
        self.changed.emit()
        return True

    def next_frame(self) -> bool:
        return self.go_to_frame(self.store.current_index() + 1)

    def prev_frame(self) -> bool:
        return self.go_to_frame(self.store.current_index() - 1)

    def delete_selection(self) -> bool:
        sel = self._selection
        if sel is None:
            return False
        self.clear_selection()
        if self.store.find(sel.space, sel.ann_id) is None:
            return False
        self.store.replace_annotations(sel.space, self.store.delete_by_id(sel.space, sel.ann_id))
        self.status_changed.emit("Annotation deleted")
        return True

    # ---------------- Internals ----------------

    def _update_hover(self, x: float, y: float) -> None:
        hit = self.hit_tester.hit_test(x, y)
        hovered = hit.ann_id if hit is not None else None
        if hovered != self._hovered_id:
            self._hovered_id = hovered
            self.changed.emit()

    def _move_selection(self, last_x: float, last_y: float, x: float, y: float) -> None:
        sel = self._selection
        if sel is None or self.store.find(sel.space, sel.ann_id) is None:
            return
        # map both ends into the annotation's own space so rotated boats follow the pointer
        trans = self.hit_tester.transformer(sel.is_global)
        ix0, iy0 = trans.screen_to_image(last_x, last_y)
        ix1, iy1 = trans.screen_to_image(x, y)
        moved = self.store.move_by_id(sel.space, sel.ann_id, ix1 - ix0, iy1 - iy0)
        self.store.replace_annotations(sel.space, moved)

    def _resize_with_handle(self, hit: Selection, handle: str, x: float, y: float) -> None:
        ann = self.store.find(hit.space, hit.ann_id)
        if not isinstance(ann, BoxAnnotation):
            return
        trans = self.hit_tester.transformer(hit.is_global)
        ix, iy = trans.screen_to_image(x, y)
        bx, by, bw, bh = resize_box_to_handle(ann, handle, ix, iy)
        anns = set_box_geometry(self.store.get_annotations(hit.space), ann.id, bx, by, bw, bh)
        self.store.replace_annotations(hit.space, anns)

    def _finish_draw(self, d: DragState, x: float, y: float) -> None:
        kind, label, space = DRAW_TOOLS[self._tool]
        trans = self.hit_tester.transformer(space == SPACE_GLOBAL)
        ix, iy = trans.screen_to_image(d.start_x, d.start_y)

        if kind == KIND_POINT:
            self.store.create_annotation(KIND_POINT, label, ix, iy, space=space)
            return

        if distance(d.start_x, d.start_y, x, y) < CLICK_DRAG_THRESHOLD:
            # click-to-place
            self.store.create_annotation(KIND_BBOX, label, ix, iy, space=space)
            return

        ix2, iy2 = trans.screen_to_image(x, y)
        self.store.create_annotation(
            KIND_BBOX,
            label,
            min(ix, ix2),
            min(iy, iy2),
            max(float(MIN_BBOX_SIDE), abs(ix2 - ix)),
            max(float(MIN_BBOX_SIDE), abs(iy2 - iy)),
            space=space,
        )

    def _on_project_changed(self, project: Project) -> None:
        sel = self._selection
        if sel is not None and self.store.find(sel.space, sel.ann_id) is None:
            logger.debug("Dropping stale selection %s/%s", sel.space, sel.ann_id)
            self._selection = None
            self._drag = None
            self.changed.emit()
        if self._hovered_id is not None:
            ids = {a.id for a in self.store.get_annotations(SPACE_FRAME)}
            ids.update(a.id for a in self.store.get_annotations(SPACE_GLOBAL))
            if self._hovered_id not in ids:
                self._hovered_id = None
