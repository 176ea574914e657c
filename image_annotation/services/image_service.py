"""
Image size resolution for the annotation core.

Only the dimensions of the annotated image matter to the core: they anchor
font size normalization and the aspect ratio the render boundary lays the
image out with. QImageReader reads the header without decoding pixels
where the format allows it.
"""

import os
from enum import Enum, auto
from typing import Union

from PySide6.QtCore import QBuffer, QByteArray, QIODevice, QSize
from PySide6.QtGui import QImage, QImageReader

from image_annotation.services.logging_service import get_logger

ImageSource = Union[QImage, str, os.PathLike, bytes, bytearray, memoryview]

_ENCODED_TYPES = (bytes, bytearray, memoryview)

_logger = get_logger(__name__)


class ImageLoadState(Enum):
    """Resolution state of the original image size."""
    PENDING = auto()
    LOADING = auto()
    READY = auto()
    FAILED = auto()


class ImageLoadError(RuntimeError):
    """Raised when an image source does not resolve to a positive size."""

    def __init__(self, source: ImageSource, reason: str) -> None:
        super().__init__()
        self.source = source
        self.reason = reason

    def __str__(self) -> str:
        return f"Could not resolve image size of {_describe(self.source)}: {self.reason}"


def _describe(source: ImageSource) -> str:
    if isinstance(source, _ENCODED_TYPES):
        return f"<{len(bytes(source))} bytes>"
    if isinstance(source, QImage):
        return "<QImage>"
    return str(source)


def read_image_size(source: ImageSource) -> QSize:
    """
    Resolve the pixel size of an image source.

    Args:
        source: A QImage, a file path or encoded image bytes.

    Returns:
        The image size in pixels.

    Raises:
        ImageLoadError: If the source type is unsupported, the source
            cannot be read or the image has no area.
    """
    if isinstance(source, QImage):
        size = source.size()
    elif isinstance(source, _ENCODED_TYPES):
        buffer = QBuffer()
        buffer.setData(QByteArray(bytes(source)))
        buffer.open(QIODevice.OpenModeFlag.ReadOnly)
        reader = QImageReader(buffer)
        size = _reader_size(reader, source)
        buffer.close()
    elif isinstance(source, (str, os.PathLike)):
        path = os.fspath(source)
        if not os.path.exists(path):
            raise ImageLoadError(source, "file does not exist")
        size = _reader_size(QImageReader(path), source)
    else:
        raise ImageLoadError(source, f"unsupported source type {type(source).__name__}")

    if size.width() <= 0 or size.height() <= 0:
        raise ImageLoadError(source, f"invalid size {size.width()}x{size.height()}")

    _logger.debug(f"Resolved {_describe(source)} to {size.width()}x{size.height()}")
    return size


def _reader_size(reader: QImageReader, source: ImageSource) -> QSize:
    """Read the size from the header, decoding the image as a fallback."""
    if not reader.canRead():
        raise ImageLoadError(source, reader.errorString())

    size = reader.size()
    if size.isValid():
        return size

    # Some formats do not expose their size without decoding
    image = reader.read()
    if image.isNull():
        raise ImageLoadError(source, reader.errorString())
    return image.size()
