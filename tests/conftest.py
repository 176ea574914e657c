"""
Test fixtures for the image annotation core.

A QGuiApplication is created once per session on the offscreen platform
so that fonts and painting work without a display.
"""

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PySide6.QtCore import QSizeF, Qt
from PySide6.QtGui import QGuiApplication, QImage

from image_annotation.editor.annotation_controller import AnnotationController
from image_annotation.editor.annotations import AnnotationType


@pytest.fixture(scope="session", autouse=True)
def qt_app():
    """Create the Qt application shared by all tests."""
    app = QGuiApplication.instance() or QGuiApplication([])
    yield app


@pytest.fixture
def controller():
    """A rectangle controller whose image size is not loaded yet."""
    ctrl = AnnotationController(AnnotationType.RECTANGLE)
    yield ctrl
    if not ctrl.is_disposed:
        ctrl.dispose()


@pytest.fixture
def ready_controller(controller):
    """A rectangle controller annotating an 800x600 image."""
    controller.set_original_image_size(QSizeF(800, 600))
    return controller


@pytest.fixture
def image_file(tmp_path):
    """A 64x32 PNG file on disk."""
    image = QImage(64, 32, QImage.Format.Format_RGB32)
    image.fill(Qt.GlobalColor.white)
    path = tmp_path / "image.png"
    assert image.save(str(path), "PNG")
    return path


class SignalRecorder:
    """Counts emissions of a Qt signal and keeps their arguments."""

    def __init__(self, signal):
        self.calls = []
        signal.connect(self._record)

    def _record(self, *args):
        self.calls.append(args)

    @property
    def count(self):
        return len(self.calls)


@pytest.fixture
def record():
    """Factory attaching a SignalRecorder to a signal."""
    return SignalRecorder
