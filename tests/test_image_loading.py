"""Tests for image size resolution and the controller's async load."""

import asyncio

import pytest
from PySide6.QtCore import QBuffer, QByteArray, QIODevice, QSize, QSizeF
from PySide6.QtGui import QImage

from image_annotation.editor import annotation_controller
from image_annotation.editor.annotation_controller import ImageLoadInProgressError
from image_annotation.services.image_service import (
    ImageLoadError,
    ImageLoadState,
    read_image_size,
)


def png_bytes(width, height):
    image = QImage(width, height, QImage.Format.Format_RGB32)
    image.fill(0)
    data = QByteArray()
    buffer = QBuffer(data)
    buffer.open(QIODevice.OpenModeFlag.WriteOnly)
    image.save(buffer, "PNG")
    buffer.close()
    return bytes(data.data())


class TestReadImageSize:
    def test_from_path(self, image_file):
        assert read_image_size(image_file) == QSize(64, 32)

    def test_from_str_path(self, image_file):
        assert read_image_size(str(image_file)) == QSize(64, 32)

    def test_from_bytes(self):
        assert read_image_size(png_bytes(10, 20)) == QSize(10, 20)

    def test_from_qimage(self):
        assert read_image_size(QImage(30, 40, QImage.Format.Format_RGB32)) == QSize(30, 40)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ImageLoadError, match="does not exist"):
            read_image_size(tmp_path / "missing.png")

    def test_invalid_bytes(self):
        with pytest.raises(ImageLoadError):
            read_image_size(b"not an image")

    def test_null_qimage(self):
        with pytest.raises(ImageLoadError, match="invalid size"):
            read_image_size(QImage())

    def test_error_describes_bytes_source(self):
        with pytest.raises(ImageLoadError) as excinfo:
            read_image_size(b"abc")
        assert "<3 bytes>" in str(excinfo.value)

    def test_from_bytearray_and_memoryview(self):
        data = png_bytes(10, 20)
        assert read_image_size(bytearray(data)) == QSize(10, 20)
        assert read_image_size(memoryview(data)) == QSize(10, 20)

    def test_unsupported_source_type(self):
        with pytest.raises(ImageLoadError, match="unsupported source type int"):
            read_image_size(42)


class TestControllerLoad:
    def test_load_sets_size_and_ready(self, controller, image_file, record):
        states = record(controller.image_state_changed)

        size = asyncio.run(controller.load_image_size(image_file))

        assert size == QSizeF(64, 32)
        assert controller.original_image_size == QSizeF(64, 32)
        assert controller.aspect_ratio == pytest.approx(2.0)
        assert controller.is_ready
        assert [args[0] for args in states.calls] == [
            ImageLoadState.LOADING,
            ImageLoadState.READY,
        ]

    def test_load_from_bytes(self, controller):
        size = asyncio.run(controller.load_image_size(png_bytes(12, 6)))
        assert size == QSizeF(12, 6)

    def test_failed_load(self, controller):
        result = asyncio.run(controller.load_image_size(b"garbage"))

        assert result is None
        assert controller.image_state == ImageLoadState.FAILED
        assert controller.original_image_size is None
        assert not controller.is_ready

    def test_truncated_bytearray_fails(self, controller):
        result = asyncio.run(controller.load_image_size(bytearray(b"\x89PNG")))

        assert result is None
        assert controller.image_state == ImageLoadState.FAILED

    def test_unexpected_error_marks_load_failed(self, controller, monkeypatch):
        def broken_reader(source):
            raise OSError("device went away")

        monkeypatch.setattr(annotation_controller, "read_image_size", broken_reader)

        with pytest.raises(OSError):
            asyncio.run(controller.load_image_size("image.png"))

        assert controller.image_state == ImageLoadState.FAILED
        assert not controller.is_ready

    def test_second_load_while_pending_is_rejected(self, controller, image_file):
        async def scenario():
            first = asyncio.ensure_future(controller.load_image_size(image_file))
            await asyncio.sleep(0)
            with pytest.raises(ImageLoadInProgressError):
                await controller.load_image_size(image_file)
            return await first

        assert asyncio.run(scenario()) == QSizeF(64, 32)
        assert controller.is_ready

    def test_load_after_completion_is_allowed(self, controller, image_file):
        async def scenario():
            await controller.load_image_size(png_bytes(8, 8))
            return await controller.load_image_size(image_file)

        assert asyncio.run(scenario()) == QSizeF(64, 32)

    def test_dispose_cancels_pending_load(self, controller, image_file):
        async def scenario():
            task = asyncio.ensure_future(controller.load_image_size(image_file))
            await asyncio.sleep(0)
            controller.dispose()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())
        assert controller.is_disposed
        assert controller.original_image_size is None
        assert controller.image_state == ImageLoadState.LOADING
