# radar_label/widgets/annotation_canvas.py
from __future__ import annotations

from typing import Dict, Optional, Sequence

from PyQt5.QtCore import QByteArray, QPointF, QRectF, Qt
from PyQt5.QtGui import QBrush, QColor, QFont, QPainter, QPen, QPixmap, QPolygonF
from PyQt5.QtWidgets import QWidget

from ..domain import (
    SPACE_FRAME,
    SPACE_GLOBAL,
    Annotation,
    BoxAnnotation,
    PointAnnotation,
    unknown_annotation,
)
from ..geometry import CoordinateTransformer
from ..interaction import TOOL_PAN, TOOL_SELECT, InteractionController


COLOR_BACKGROUND = "#1a1a1a"
COLOR_BOAT = "#22dd22"
COLOR_BUOY = "#00dddd"
COLOR_SELECTED = "#ffaa00"
COLOR_TEXT = "#ffaa00"
COLOR_HUD = "#cccccc"


def load_pixmap(url: str) -> QPixmap:
    """Local path or data URL (projects saved by the web version embed images)."""
    pm = QPixmap()
    if url.startswith("data:") and "," in url:
        header, payload = url.split(",", 1)
        raw = QByteArray(payload.encode("ascii"))
        data = QByteArray.fromBase64(raw) if ";base64" in header else raw
        pm.loadFromData(data)
    else:
        pm.load(url)
    return pm


class AnnotationCanvas(QWidget):
    """
    Draws the current frame with boats (rotated with the frame), buoys
    (fixed), selection handles, the draw preview and a HUD line.

    Pointer input is forwarded to the InteractionController, wheel input to
    its ViewportController. Nothing here mutates the project directly.
    """

    def __init__(self, controller: InteractionController, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self.controller = controller
        self.store = controller.store

        self._pixmaps: Dict[str, QPixmap] = {}

        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.StrongFocus)
        self.setMinimumSize(640, 480)

        self.store.project_changed.connect(lambda _p: self.update())
        self.controller.changed.connect(self.update)
        self.controller.tool_changed.connect(self._on_tool_changed)
        self._on_tool_changed(self.controller.tool())

    # ---------------- Public API ----------------

    def clear_cache(self) -> None:
        self._pixmaps.clear()
        self.update()

    # ---------------- Painting ----------------

    def _pixmap_for(self, url: str) -> QPixmap:
        pm = self._pixmaps.get(url)
        if pm is None:
            pm = load_pixmap(url)
            self._pixmaps[url] = pm
        return pm

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing, True)
        painter.fillRect(self.rect(), QColor(COLOR_BACKGROUND))

        project = self.store.project()
        frame = project.current_frame()
        if frame is None:
            painter.setPen(QPen(QColor(COLOR_HUD), 1))
            painter.drawText(self.rect(), Qt.AlignCenter, "Open an image or a folder to start labeling")
            painter.end()
            return

        vp = project.viewport

        # Frame image in rotated space
        pm = self._pixmap_for(frame.url)
        if not pm.isNull():
            painter.save()
            painter.translate(vp.pan_x, vp.pan_y)
            painter.scale(vp.zoom, vp.zoom)
            painter.translate(frame.width / 2.0, frame.height / 2.0)
            painter.rotate(frame.rotation_deg)
            painter.translate(-frame.width / 2.0, -frame.height / 2.0)
            painter.drawPixmap(0, 0, pm)
            painter.restore()

        hit_tester = self.controller.hit_tester
        self._draw_annotations(painter, frame.annotations, hit_tester.transformer(False), COLOR_BOAT, SPACE_FRAME)
        self._draw_annotations(
            painter, project.global_buoys, hit_tester.transformer(True), COLOR_BUOY, SPACE_GLOBAL
        )

        preview = self.controller.drag_preview()
        if preview is not None:
            pen = QPen(QColor(COLOR_SELECTED), 2)
            pen.setStyle(Qt.DashLine)
            painter.setPen(pen)
            painter.setBrush(Qt.NoBrush)
            painter.drawRect(QRectF(*preview))

        hud = (
            f"Frame {project.current_index + 1}/{project.frame_count()}  "
            f"Zoom {vp.zoom:.2f}x  Pan({vp.pan_x:.0f}, {vp.pan_y:.0f})  "
            f"Rot {frame.rotation_deg:.2f}°"
        )
        painter.setPen(QPen(QColor(COLOR_HUD), 1))
        painter.setFont(QFont("monospace", 9))
        painter.drawText(10, self.height() - 10, hud)

        painter.end()

    def _draw_annotations(
        self,
        painter: QPainter,
        anns: Sequence[Annotation],
        trans: CoordinateTransformer,
        base_color: str,
        space: str,
    ) -> None:
        sel = self.controller.selection()
        hovered = self.controller.hovered_id()

        for ann in anns:
            is_selected = sel is not None and sel.space == space and sel.ann_id == ann.id
            color = QColor(COLOR_SELECTED if (is_selected or hovered == ann.id) else base_color)
            painter.setPen(QPen(color, 2))

            if isinstance(ann, PointAnnotation):
                sx, sy = trans.image_to_screen(ann.x, ann.y)
                painter.setBrush(QBrush(color))
                painter.drawEllipse(QPointF(sx, sy), 5, 5)
                painter.drawLine(QPointF(sx - 8, sy), QPointF(sx + 8, sy))
                painter.drawLine(QPointF(sx, sy - 8), QPointF(sx, sy + 8))
            elif isinstance(ann, BoxAnnotation):
                corners = [
                    (ann.x, ann.y),
                    (ann.x + ann.w, ann.y),
                    (ann.x + ann.w, ann.y + ann.h),
                    (ann.x, ann.y + ann.h),
                ]
                poly = QPolygonF([QPointF(*trans.image_to_screen(x, y)) for x, y in corners])
                painter.setBrush(Qt.NoBrush)
                painter.drawPolygon(poly)
                if is_selected:
                    painter.setPen(Qt.NoPen)
                    painter.setBrush(QBrush(QColor(COLOR_SELECTED)))
                    for h in self.controller.hit_tester.handle_positions(ann, space == SPACE_GLOBAL):
                        painter.drawRect(QRectF(h.sx - 4, h.sy - 4, 8, 8))
            else:
                raise unknown_annotation(ann)

            if is_selected or hovered == ann.id:
                sx, sy = trans.image_to_screen(ann.x, ann.y)
                painter.setPen(QPen(QColor(COLOR_TEXT), 1))
                painter.setFont(QFont("monospace", 9, QFont.Bold))
                painter.drawText(QPointF(sx + 10, sy - 10), f"{ann.label.upper()} {ann.kind.upper()}")

    # ---------------- Input ----------------

    def _on_tool_changed(self, tool: str) -> None:
        if tool == TOOL_PAN:
            self.setCursor(Qt.OpenHandCursor)
        elif tool == TOOL_SELECT:
            self.setCursor(Qt.ArrowCursor)
        else:
            self.setCursor(Qt.CrossCursor)

    def mousePressEvent(self, event):
        if event.button() != Qt.LeftButton:
            return super().mousePressEvent(event)
        self.setFocus()
        self.controller.pointer_down(event.x(), event.y())
        event.accept()

    def mouseMoveEvent(self, event):
        self.controller.pointer_move(event.x(), event.y())
        event.accept()

    def mouseReleaseEvent(self, event):
        if event.button() != Qt.LeftButton:
            return super().mouseReleaseEvent(event)
        self.controller.pointer_up(event.x(), event.y())
        event.accept()

    def leaveEvent(self, event):
        self.controller.pointer_leave()
        return super().leaveEvent(event)

    def wheelEvent(self, event):
        # Qt: positive angleDelta = wheel away from user = zoom in
        dy = event.angleDelta().y()
        if dy:
            self.controller.viewport.zoom_by_wheel(-dy)
        event.accept()
