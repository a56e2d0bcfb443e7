# radar_label/persistence.py
from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from PyQt5.QtCore import QObject, QStandardPaths, QTimer, pyqtSignal

from .domain import SAVE_DEBOUNCE_MS, Project, ProjectFormatError

logger = logging.getLogger(__name__)


# Fixed names
BACKUP_FILENAME = "radar_project_backup.json"
EXPORT_FILENAME = "radar_project_backup.json"
PROJECT_FILENAME = "radar_project.json"

BACKUP_DIR_ENV = "RADAR_LABEL_BACKUP_DIR"


# -----------------------------
# Atomic file helpers
# -----------------------------

def _atomic_write_text(path: str, text: str, encoding: str = "utf-8") -> None:
    d = os.path.dirname(os.path.abspath(path))
    os.makedirs(d, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=".tmp_", dir=d)
    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


def _atomic_write_json(path: str, payload: Dict) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    _atomic_write_text(path, text + "\n")


def _read_json(path: str) -> Dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


# -----------------------------
# Project format
# -----------------------------

def parse_project(data) -> Project:
    """
    Validates and converts a decoded project JSON object.

    Rejected (ProjectFormatError) unless `version` is present and non-null
    and `frames` is a list; malformed frames/annotations reject the whole
    file so nothing is partially loaded.
    """
    if not isinstance(data, dict):
        raise ProjectFormatError("Project file must contain a JSON object")
    if data.get("version") is None:
        raise ProjectFormatError("Project file has no version")
    if not isinstance(data.get("frames"), list):
        raise ProjectFormatError("Project file has no frame list")
    try:
        return Project.from_dict(data)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ProjectFormatError(f"Invalid project file: {e}") from e


def load_project_file(path: str) -> Project:
    try:
        data = _read_json(path)
    except ValueError as e:
        # JSONDecodeError and UnicodeDecodeError
        raise ProjectFormatError(f"Not a UTF-8 JSON file: {e}") from e
    return parse_project(data)


def save_project_file(path: str, project: Project) -> None:
    _atomic_write_json(path, project.to_dict())


# -----------------------------
# Storage tiers
# -----------------------------

def default_backup_dir() -> str:
    env = os.environ.get(BACKUP_DIR_ENV)
    if env:
        return env
    loc = QStandardPaths.writableLocation(QStandardPaths.AppDataLocation)
    return loc or os.path.join(os.path.expanduser("~"), ".radar_label")


class BackupStore:
    """
    Local backup: a single fixed key (file) holding the latest project.
    Written on every save tick, read once at startup.
    """

    def __init__(self, directory: Optional[str] = None):
        self.directory = directory or default_backup_dir()

    @property
    def path(self) -> str:
        return os.path.join(self.directory, BACKUP_FILENAME)

    def write(self, project: Project) -> bool:
        try:
            save_project_file(self.path, project)
            return True
        except OSError as e:
            logger.warning("Backup write failed (%s): %s", self.path, e)
            return False

    def read(self) -> Optional[Dict]:
        if not os.path.exists(self.path):
            return None
        try:
            return _read_json(self.path)
        except (OSError, ValueError) as e:
            logger.warning("Backup unreadable (%s): %s", self.path, e)
            return None


class SaveTarget:
    """
    The chosen save file. Every write fully overwrites it.
    Owned by PersistenceManager only.
    """

    def __init__(self, path: str):
        if not path:
            raise ValueError("SaveTarget path is required")
        self.path = path

    def write(self, project: Project) -> None:
        save_project_file(self.path, project)


@dataclass(frozen=True)
class SaveReport:
    ok: bool
    saved_at: str
    message: str


# -----------------------------
# Manager
# -----------------------------

class PersistenceManager(QObject):
    """
    Debounced, tiered saving of the whole project.

    schedule_save() restarts a single-shot timer, so bursts of edits
    collapse into one write and there is never more than one pending save.
    On each tick the backup is written first (best effort), then the save
    target if one was chosen. Failures are reported, not retried.

    Emits:
      - save_finished(SaveReport)
    """
    save_finished = pyqtSignal(object)

    def __init__(
        self,
        backup: Optional[BackupStore] = None,
        delay_ms: int = SAVE_DEBOUNCE_MS,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self.backup = backup or BackupStore()
        self._target: Optional[SaveTarget] = None
        self._pending: Optional[Project] = None

        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(int(delay_ms))
        self._timer.timeout.connect(self._on_timer)

    # ---------------- Save target ----------------

    def choose_target(self, path: str) -> None:
        self._target = SaveTarget(path)
        logger.info("Save target set to %s", path)

    def release_target(self) -> None:
        self._target = None

    def has_target(self) -> bool:
        return self._target is not None

    def target_path(self) -> Optional[str]:
        return self._target.path if self._target is not None else None

    # ---------------- Saving ----------------

    def schedule_save(self, project: Project) -> None:
        self._pending = project
        self._timer.start()

    def has_pending(self) -> bool:
        return self._timer.isActive()

    def cancel_pending(self) -> None:
        self._timer.stop()
        self._pending = None

    def save_now(self, project: Optional[Project] = None) -> Optional[SaveReport]:
        """Cancels the timer and writes immediately (pending snapshot if none given)."""
        self._timer.stop()
        if project is None:
            project = self._pending
        self._pending = None
        if project is None:
            return None
        return self._write(project)

    def export_project(self, project: Project, path: str) -> None:
        """Manual export; independent of the debounce timer."""
        save_project_file(path, project)
        logger.info("Exported project to %s", path)

    def recover(self) -> Optional[Project]:
        """Startup: the backup becomes the initial project if it holds any frames."""
        data = self.backup.read()
        if not data or not isinstance(data.get("frames"), list) or not data["frames"]:
            return None
        try:
            return parse_project(data)
        except ProjectFormatError as e:
            logger.warning("Ignoring backup: %s", e)
            return None

    def shutdown(self) -> None:
        if self.has_pending():
            self.save_now()
        self.release_target()

    # ---------------- Internals ----------------

    def _on_timer(self) -> None:
        project = self._pending
        self._pending = None
        if project is not None:
            self._write(project)

    def _write(self, project: Project) -> SaveReport:
        self.backup.write(project)
        stamp = datetime.now().strftime("%H:%M:%S")

        if self._target is None:
            report = SaveReport(ok=True, saved_at=stamp, message=f"Saved {stamp} (backup)")
        else:
            try:
                self._target.write(project)
                report = SaveReport(ok=True, saved_at=stamp, message=f"Saved {stamp}")
            except OSError as e:
                logger.error("Save to %s failed: %s", self._target.path, e)
                report = SaveReport(ok=False, saved_at=stamp, message=f"Save failed at {stamp}; backup retained")

        self.save_finished.emit(report)
        return report
