"""
Coordinate conversion between normalized and render space.

Normalized space is the unit square [0, 1] x [0, 1] relative to the original
image; it is what annotations store. Render space is the pixel space of the
image as currently displayed, which changes with resizes and rotations.

All functions are pure. Sizes must have a positive width and height; a
zero-sized render target divides by zero.
"""

from PySide6.QtCore import QPointF, QSizeF


class NormalizationError(ValueError):
    """Raised when a point that must be normalized lies outside [0, 1]."""

    def __init__(self, point: QPointF) -> None:
        super().__init__()
        self.point = point

    def __str__(self) -> str:
        return (
            f"Point ({self.point.x()}, {self.point.y()}) is not normalized: "
            f"both coordinates must lie in [0, 1]"
        )


def is_normalized(point: QPointF) -> bool:
    """Return True if both coordinates of the point lie in [0, 1]."""
    return 0.0 <= point.x() <= 1.0 and 0.0 <= point.y() <= 1.0


def ensure_normalized(point: QPointF) -> QPointF:
    """
    Check that a point is normalized and return a private copy of it.

    Raises:
        NormalizationError: If either coordinate is outside [0, 1].
    """
    if not is_normalized(point):
        raise NormalizationError(point)
    return QPointF(point)


def is_within_render_bounds(point: QPointF, render_size: QSizeF) -> bool:
    """Return True if a render-space point lies inside the rendered image."""
    return (
        0.0 <= point.x() <= render_size.width()
        and 0.0 <= point.y() <= render_size.height()
    )


def to_normalized(point: QPointF, render_size: QSizeF) -> QPointF:
    """Convert a render-space point to normalized space."""
    return QPointF(
        point.x() / render_size.width(),
        point.y() / render_size.height(),
    )


def to_render(normalized_point: QPointF, render_size: QSizeF) -> QPointF:
    """Convert a normalized point to render space."""
    return QPointF(
        normalized_point.x() * render_size.width(),
        normalized_point.y() * render_size.height(),
    )


def normalized_font_size(font_size: float, original_image_size: QSizeF) -> float:
    """Express a pixel font size as a fraction of the original image height."""
    return font_size / original_image_size.height()


def render_font_size(normalized_size: float, render_size: QSizeF) -> float:
    """Scale a normalized font size to the rendered image height."""
    return normalized_size * render_size.height()
