# radar_label/dialogs/frame_order.py
from __future__ import annotations

from typing import Optional

from PyQt5.QtCore import Qt
from PyQt5.QtGui import QBrush, QColor
from PyQt5.QtWidgets import (
    QAbstractItemView,
    QDialog,
    QDialogButtonBox,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QPushButton,
    QVBoxLayout,
)

from ..interaction import InteractionController


class FrameOrderDialog(QDialog):
    """
    Shows the frame order. Clicking a row jumps to that frame;
    "Sort Alphabetically" natural-sorts the frames by name.
    """

    def __init__(self, controller: InteractionController, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Frame Order")
        self.setModal(True)
        self.resize(520, 480)

        self._controller = controller
        self._store = controller.store

        self._build_ui()
        self._load_frames()

    # ---------------- UI ----------------

    def _build_ui(self):
        layout = QVBoxLayout(self)
        layout.setSpacing(10)

        self.title = QLabel("")
        layout.addWidget(self.title)

        self.btn_sort = QPushButton("Sort Alphabetically")
        self.btn_sort.setCursor(Qt.PointingHandCursor)
        self.btn_sort.clicked.connect(self._on_sort)
        layout.addWidget(self.btn_sort)

        self.list = QListWidget()
        self.list.setSelectionMode(QAbstractItemView.SingleSelection)
        self.list.itemClicked.connect(self._on_item_clicked)
        layout.addWidget(self.list, stretch=1)

        buttons = QDialogButtonBox(QDialogButtonBox.Close)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)

    def _load_frames(self):
        project = self._store.project()
        self.title.setText(f"Frame Order ({project.frame_count()} frames)")
        self.list.clear()
        for i, frame in enumerate(project.frames):
            it = QListWidgetItem(f"{i + 1}. {frame.name}  ({len(frame.annotations)} boats)")
            it.setData(Qt.UserRole, i)
            if i == project.current_index:
                it.setBackground(QBrush(QColor("#00dddd")))
                it.setForeground(QBrush(QColor("#000000")))
            self.list.addItem(it)
        if project.frames:
            self.list.setCurrentRow(project.current_index)

    # ---------------- Actions ----------------

    def _on_sort(self):
        self._store.sort_frames()
        self._controller.clear_selection()
        self._controller.status_changed.emit("Frames sorted alphabetically")
        self._load_frames()

    def _on_item_clicked(self, item: Optional[QListWidgetItem]):
        if item is None:
            return
        idx = item.data(Qt.UserRole)
        if idx is None:
            return
        self._controller.go_to_frame(int(idx))
        self.accept()
