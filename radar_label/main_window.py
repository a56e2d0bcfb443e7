# radar_label/main_window.py
from __future__ import annotations

import logging
import math
from typing import Optional, Sequence

from PyQt5.QtCore import QEvent, Qt
from PyQt5.QtWidgets import (
    QAbstractSpinBox,
    QApplication,
    QButtonGroup,
    QDoubleSpinBox,
    QFileDialog,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QScrollArea,
    QSlider,
    QSplitter,
    QVBoxLayout,
    QWidget,
)

from .dialogs.frame_order import FrameOrderDialog
from .domain import (
    ROTATION_MAX,
    ROTATION_MIN,
    SPACE_FRAME,
    SPACE_GLOBAL,
    ZOOM_MAX,
    ZOOM_MIN,
    Annotation,
    ImageLoadError,
    Project,
    ProjectFormatError,
    Selection,
    annotation_summary,
)
from .interaction import (
    TOOL_BOAT_BOX,
    TOOL_BOAT_POINT,
    TOOL_BUOY_BOX,
    TOOL_BUOY_POINT,
    TOOL_PAN,
    TOOL_SELECT,
    InteractionController,
)
from .media_import import IMAGE_FILE_FILTER, load_folder, load_image
from .persistence import (
    EXPORT_FILENAME,
    PROJECT_FILENAME,
    BackupStore,
    PersistenceManager,
    SaveReport,
    load_project_file,
)
from .store import AnnotationStore
from .widgets.annotation_canvas import AnnotationCanvas

logger = logging.getLogger(__name__)

JSON_FILE_FILTER = "JSON Files (*.json)"

# Qt key -> host-neutral key name used by the interaction key table
_QT_KEY_NAMES = {
    Qt.Key_Up: "ArrowUp",
    Qt.Key_Down: "ArrowDown",
    Qt.Key_Left: "ArrowLeft",
    Qt.Key_Right: "ArrowRight",
    Qt.Key_Escape: "Escape",
    Qt.Key_Delete: "Delete",
    Qt.Key_Backspace: "Backspace",
    Qt.Key_Space: "Space",
}

_TOOL_BUTTONS = [
    (TOOL_SELECT, "Select (Esc)"),
    (TOOL_PAN, "Pan (Space)"),
    (TOOL_BOAT_POINT, "Boat Point (1)"),
    (TOOL_BOAT_BOX, "Boat Box (2)"),
    (TOOL_BUOY_POINT, "Buoy Point (3)"),
    (TOOL_BUOY_BOX, "Buoy Box (4)"),
]

# zoom slider works on log(zoom) * 100
_ZOOM_SLIDER_SCALE = 100.0
# rotation slider works on degrees * 100
_ROT_SLIDER_SCALE = 100.0


def qt_key_name(event) -> str:
    name = _QT_KEY_NAMES.get(event.key())
    if name:
        return name
    if Qt.Key_A <= event.key() <= Qt.Key_Z:
        # event.text() is a control char when Ctrl is held
        return chr(event.key()).lower()
    return event.text()


class MainWindow(QMainWindow):
    def __init__(self, project_path: Optional[str] = None, backup_dir: Optional[str] = None):
        super().__init__()
        self.setWindowTitle("Radar Label (Boat / Buoy Annotation)")
        self.resize(1500, 950)

        # Editing engine
        self.store = AnnotationStore(parent=self)
        self.controller = InteractionController(self.store, parent=self)
        self.persistence = PersistenceManager(BackupStore(backup_dir), parent=self)

        # Slider/list update guard
        self._syncing = False

        self._build_ui()

        self.store.project_changed.connect(self._on_project_changed)
        self.store.project_changed.connect(self.persistence.schedule_save)
        self.persistence.save_finished.connect(self._on_save_finished)
        self.controller.tool_changed.connect(self._on_tool_changed)
        self.controller.changed.connect(self._sync_list_selection)
        self.controller.status_changed.connect(self._set_status)
        self.controller.save_requested.connect(self._on_save_requested)

        QApplication.instance().installEventFilter(self)

        self._startup(project_path)

    # ---------------- UI ----------------

    def _build_ui(self):
        split = QSplitter(Qt.Horizontal)
        self.setCentralWidget(split)

        side_scroll = QScrollArea()
        side_scroll.setWidgetResizable(True)
        side_scroll.setMinimumWidth(280)
        side = QWidget()
        side_lay = QVBoxLayout(side)
        side_lay.setContentsMargins(6, 6, 6, 6)
        side_lay.setSpacing(6)
        side_scroll.setWidget(side)
        split.addWidget(side_scroll)

        self.canvas = AnnotationCanvas(self.controller)
        split.addWidget(self.canvas)
        split.setStretchFactor(1, 1)

        # ===== File =====
        file_box = QGroupBox("File")
        file_lay = QVBoxLayout(file_box)
        for text, slot in [
            ("Open Image", self._open_image),
            ("Open Folder", self._open_folder),
            ("Load Project", self._load_project),
            ("Choose Save File", self._choose_save_file),
            ("Backup Download", self._backup_download),
        ]:
            btn = QPushButton(text)
            btn.setCursor(Qt.PointingHandCursor)
            btn.clicked.connect(slot)
            file_lay.addWidget(btn)
        side_lay.addWidget(file_box)

        # ===== Tools =====
        tools_box = QGroupBox("Tools")
        tools_lay = QVBoxLayout(tools_box)
        self.tool_group = QButtonGroup(self)
        self.tool_group.setExclusive(True)
        self._tool_buttons = {}
        for tool, text in _TOOL_BUTTONS:
            btn = QPushButton(text)
            btn.setCheckable(True)
            btn.setCursor(Qt.PointingHandCursor)
            btn.clicked.connect(lambda _checked=False, t=tool: self.controller.set_tool(t))
            self.tool_group.addButton(btn)
            tools_lay.addWidget(btn)
            self._tool_buttons[tool] = btn
        self._tool_buttons[self.controller.tool()].setChecked(True)
        side_lay.addWidget(tools_box)

        # ===== View (zoom + rotation) =====
        view_box = QGroupBox("View")
        view_lay = QVBoxLayout(view_box)

        zoom_row = QHBoxLayout()
        self.zoom_slider = QSlider(Qt.Horizontal)
        self.zoom_slider.setRange(
            int(math.floor(math.log(ZOOM_MIN) * _ZOOM_SLIDER_SCALE)),
            int(math.ceil(math.log(ZOOM_MAX) * _ZOOM_SLIDER_SCALE)),
        )
        self.zoom_slider.setSingleStep(5)
        self.zoom_slider.valueChanged.connect(self._on_zoom_slider)
        self.zoom_label = QLabel("1.00x")
        self.btn_zoom_reset = QPushButton("Reset")
        self.btn_zoom_reset.clicked.connect(self.controller.viewport.reset)
        zoom_row.addWidget(QLabel("Zoom:"))
        zoom_row.addWidget(self.zoom_slider, stretch=1)
        zoom_row.addWidget(self.zoom_label)
        zoom_row.addWidget(self.btn_zoom_reset)
        view_lay.addLayout(zoom_row)

        rot_row = QHBoxLayout()
        self.rot_slider = QSlider(Qt.Horizontal)
        self.rot_slider.setRange(int(ROTATION_MIN * _ROT_SLIDER_SCALE), int(ROTATION_MAX * _ROT_SLIDER_SCALE))
        self.rot_slider.valueChanged.connect(self._on_rotation_slider)
        self.rot_spin = QDoubleSpinBox()
        self.rot_spin.setRange(ROTATION_MIN, ROTATION_MAX)
        self.rot_spin.setDecimals(2)
        self.rot_spin.setSingleStep(0.1)
        self.rot_spin.setSuffix("°")
        self.rot_spin.valueChanged.connect(self._on_rotation_spin)
        rot_row.addWidget(QLabel("Rotation:"))
        rot_row.addWidget(self.rot_slider, stretch=1)
        rot_row.addWidget(self.rot_spin)
        view_lay.addLayout(rot_row)
        side_lay.addWidget(view_box)

        # ===== Annotations =====
        self.boats_box = QGroupBox("Boats (0)")
        boats_lay = QVBoxLayout(self.boats_box)
        self.boats_list = QListWidget()
        self.boats_list.itemClicked.connect(lambda it: self._on_list_clicked(it, SPACE_FRAME))
        boats_lay.addWidget(self.boats_list)
        side_lay.addWidget(self.boats_box, stretch=1)

        self.buoys_box = QGroupBox("Global Buoys (0)")
        buoys_lay = QVBoxLayout(self.buoys_box)
        self.buoys_list = QListWidget()
        self.buoys_list.itemClicked.connect(lambda it: self._on_list_clicked(it, SPACE_GLOBAL))
        buoys_lay.addWidget(self.buoys_list)
        side_lay.addWidget(self.buoys_box, stretch=1)

        # ===== Navigation =====
        nav_box = QGroupBox("Navigation")
        nav_lay = QVBoxLayout(nav_box)
        nav_row = QHBoxLayout()
        self.btn_prev = QPushButton("← Prev (P/A)")
        self.btn_prev.clicked.connect(self.controller.prev_frame)
        self.frame_label = QLabel("0 / 0")
        self.frame_label.setAlignment(Qt.AlignCenter)
        self.btn_next = QPushButton("Next (N/D) →")
        self.btn_next.clicked.connect(self.controller.next_frame)
        nav_row.addWidget(self.btn_prev)
        nav_row.addWidget(self.frame_label, stretch=1)
        nav_row.addWidget(self.btn_next)
        nav_lay.addLayout(nav_row)
        self.btn_frame_order = QPushButton("Show Frame Order")
        self.btn_frame_order.clicked.connect(self._show_frame_order)
        nav_lay.addWidget(self.btn_frame_order)
        side_lay.addWidget(nav_box)

        # ===== Status =====
        status_box = QGroupBox("Status")
        status_lay = QVBoxLayout(status_box)
        self.status_label = QLabel("Ready")
        self.status_label.setWordWrap(True)
        self.status_label.setTextInteractionFlags(Qt.TextSelectableByMouse)
        self.last_save_label = QLabel("Last save: never")
        status_lay.addWidget(self.status_label)
        status_lay.addWidget(self.last_save_label)
        side_lay.addWidget(status_box)

    # ---------------- Startup / shutdown ----------------

    def _startup(self, project_path: Optional[str]) -> None:
        if project_path:
            self._load_project_from(project_path)
        else:
            recovered = self.persistence.recover()
            if recovered is not None:
                self.store.load_project(recovered)
                self._set_status("Restored from local backup")
        self._on_project_changed(self.store.project())

    def closeEvent(self, event):
        QApplication.instance().removeEventFilter(self)
        self.persistence.shutdown()
        super().closeEvent(event)

    # ---------------- File actions ----------------

    def _open_image(self):
        path, _ = QFileDialog.getOpenFileName(self, "Open Image", "", IMAGE_FILE_FILTER)
        if not path:
            self._set_status("File selection cancelled")
            return
        try:
            img = load_image(path)
        except ImageLoadError as e:
            logger.error("%s", e)
            QMessageBox.warning(self, "Open Image", str(e))
            self._set_status(f"Failed to load image: {e}")
            return
        self._replace_frames([img])
        self._set_status("Image loaded")

    def _open_folder(self):
        folder = QFileDialog.getExistingDirectory(self, "Open Folder")
        if not folder:
            self._set_status("Folder selection cancelled")
            return
        images = load_folder(folder)
        if not images:
            self._set_status("No compatible images found")
            return
        self._replace_frames(images)
        self._set_status(f"Loaded {len(images)} images")

    def _replace_frames(self, images: Sequence) -> None:
        self.controller.clear_selection()
        self.canvas.clear_cache()
        self.store.load_images(images)

    def _load_project(self):
        path, _ = QFileDialog.getOpenFileName(self, "Load Project", "", JSON_FILE_FILTER)
        if not path:
            self._set_status("Project selection cancelled")
            return
        self._load_project_from(path)

    def _load_project_from(self, path: str) -> None:
        try:
            project = load_project_file(path)
        except (ProjectFormatError, OSError) as e:
            logger.error("Cannot load project %s: %s", path, e)
            QMessageBox.warning(self, "Invalid project file format", str(e))
            self._set_status("Invalid project file format")
            return
        self.controller.clear_selection()
        self.canvas.clear_cache()
        self.store.load_project(project)
        self._set_status(f"Loaded project with {project.frame_count()} frames")

    def _choose_save_file(self):
        path, _ = QFileDialog.getSaveFileName(self, "Choose Save File", PROJECT_FILENAME, JSON_FILE_FILTER)
        if not path:
            self._set_status("Save file selection cancelled")
            return
        self.persistence.choose_target(path)
        self.persistence.schedule_save(self.store.project())
        self._set_status(f"Auto-saving to {self.persistence.target_path()}")

    def _backup_download(self):
        path, _ = QFileDialog.getSaveFileName(self, "Backup Download", EXPORT_FILENAME, JSON_FILE_FILTER)
        if not path:
            return
        try:
            self.persistence.export_project(self.store.project(), path)
        except OSError as e:
            QMessageBox.warning(self, "Backup failed", str(e))
            return
        self._set_status("Backup downloaded")

    def _on_save_requested(self):
        if self.persistence.has_target():
            self._set_status("Saving...")
            self.persistence.save_now(self.store.project())
        else:
            self._backup_download()

    def _on_save_finished(self, report: SaveReport):
        self.last_save_label.setText(f"Last save: {report.saved_at}")
        self._set_status(report.message)

    # ---------------- Sidebar sync ----------------

    def _set_status(self, text: str) -> None:
        self.status_label.setText(text)

    def _on_project_changed(self, project: Project) -> None:
        frame = project.current_frame()
        self._syncing = True
        try:
            vp = project.viewport
            self.zoom_slider.setValue(int(round(math.log(vp.zoom) * _ZOOM_SLIDER_SCALE)))
            self.zoom_label.setText(f"{vp.zoom:.2f}x")

            rot = frame.rotation_deg if frame is not None else 0.0
            self.rot_slider.setValue(int(round(rot * _ROT_SLIDER_SCALE)))
            self.rot_spin.setValue(rot)

            boats = frame.annotations if frame is not None else ()
            self._fill_list(self.boats_list, boats)
            self._fill_list(self.buoys_list, project.global_buoys)
            self.boats_box.setTitle(f"Boats ({len(boats)})")
            self.buoys_box.setTitle(f"Global Buoys ({len(project.global_buoys)})")
        finally:
            self._syncing = False

        n = project.frame_count()
        self.frame_label.setText(f"{project.current_index + 1 if n else 0} / {n}")
        self.btn_prev.setEnabled(n > 0 and project.current_index > 0)
        self.btn_next.setEnabled(n > 0 and project.current_index < n - 1)
        self.btn_frame_order.setEnabled(n > 0)
        self.rot_slider.setEnabled(frame is not None)
        self.rot_spin.setEnabled(frame is not None)
        self._sync_list_selection()

    def _fill_list(self, widget: QListWidget, anns: Sequence[Annotation]) -> bool:
        """Rebuilds the list only when ids or summaries changed (not on move/resize)."""
        rows = [(ann.id, annotation_summary(ann)) for ann in anns]
        shown = [(widget.item(r).data(Qt.UserRole)[0], widget.item(r).text()) for r in range(widget.count())]
        if rows == shown:
            return False
        widget.clear()
        for i, (ann_id, text) in enumerate(rows):
            it = QListWidgetItem(text)
            it.setData(Qt.UserRole, (ann_id, i))
            widget.addItem(it)
        return True

    def _sync_list_selection(self) -> None:
        sel = self.controller.selection()
        for space, widget in ((SPACE_FRAME, self.boats_list), (SPACE_GLOBAL, self.buoys_list)):
            widget.blockSignals(True)
            widget.clearSelection()
            if sel is not None and sel.space == space:
                for row in range(widget.count()):
                    ann_id, _idx = widget.item(row).data(Qt.UserRole)
                    if ann_id == sel.ann_id:
                        widget.setCurrentRow(row)
                        break
            widget.blockSignals(False)

    def _on_list_clicked(self, item: QListWidgetItem, space: str) -> None:
        if item is None:
            return
        ann_id, idx = item.data(Qt.UserRole)
        self.controller.set_selection(Selection(space=space, ann_id=ann_id, index=idx))

    def _on_tool_changed(self, tool: str) -> None:
        btn = self._tool_buttons.get(tool)
        if btn is not None:
            btn.setChecked(True)

    def _on_zoom_slider(self, value: int) -> None:
        if self._syncing:
            return
        self.controller.viewport.set_log_zoom(value / _ZOOM_SLIDER_SCALE)

    def _on_rotation_slider(self, value: int) -> None:
        if self._syncing:
            return
        self.controller.viewport.set_rotation(value / _ROT_SLIDER_SCALE)

    def _on_rotation_spin(self, value: float) -> None:
        if self._syncing:
            return
        self.controller.viewport.set_rotation(value)

    def _show_frame_order(self):
        FrameOrderDialog(self.controller, self).exec_()

    # ---------------- Global keyboard ----------------

    def eventFilter(self, obj, event):
        et = event.type()
        if et not in (QEvent.KeyPress, QEvent.KeyRelease):
            return super().eventFilter(obj, event)
        if not isinstance(obj, QWidget) or obj.window() is not self:
            return super().eventFilter(obj, event)
        # leave typing to text inputs
        if isinstance(QApplication.focusWidget(), (QLineEdit, QAbstractSpinBox)):
            return super().eventFilter(obj, event)

        name = qt_key_name(event)
        if not name:
            return super().eventFilter(obj, event)

        if et == QEvent.KeyPress:
            mods = event.modifiers()
            handled = self.controller.key_press(
                name,
                shift=bool(mods & Qt.ShiftModifier),
                ctrl=bool(mods & (Qt.ControlModifier | Qt.MetaModifier)),
                auto_repeat=event.isAutoRepeat(),
            )
        else:
            handled = self.controller.key_release(name, auto_repeat=event.isAutoRepeat())
        return handled or super().eventFilter(obj, event)
