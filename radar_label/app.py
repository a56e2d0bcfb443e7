# radar_label/app.py
from __future__ import annotations

import sys
from typing import Optional

from PyQt5.QtWidgets import QApplication

from .main_window import MainWindow

APP_NAME = "RadarLabel"


def run_app(project_path: Optional[str] = None, backup_dir: Optional[str] = None) -> int:
    app = QApplication(sys.argv)
    # AppDataLocation (default backup directory) is derived from these
    app.setApplicationName(APP_NAME)
    app.setOrganizationName(APP_NAME)

    win = MainWindow(project_path=project_path, backup_dir=backup_dir)
    win.show()

    return app.exec_()
