"""
Shared fixtures for radar_label tests.

Qt runs on the offscreen platform so signals, timers and image decoding
work without a display.
"""

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PyQt5.QtWidgets import QApplication

from radar_label.domain import Frame, Project, Viewport
from radar_label.interaction import InteractionController
from radar_label.store import AnnotationStore


@pytest.fixture(scope="session", autouse=True)
def qapp():
    """One QApplication for the whole run."""
    app = QApplication.instance() or QApplication(["radar-label-tests"])
    yield app


def make_project(n_frames=2, width=200, height=100, viewport=None, rotation_deg=0.0):
    frames = tuple(
        Frame(
            name=f"frame{i}.png",
            url=f"/data/frame{i}.png",
            width=width,
            height=height,
            rotation_deg=rotation_deg,
        )
        for i in range(n_frames)
    )
    return Project(viewport=viewport or Viewport(), frames=frames)


@pytest.fixture
def project():
    return make_project()


@pytest.fixture
def store(project):
    return AnnotationStore(project)


@pytest.fixture
def controller(store):
    return InteractionController(store)
