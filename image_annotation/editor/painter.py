"""
Painting of annotations onto a QPainter.

Geometry is converted from normalized to render space here, and each
annotation type is drawn by the function registered for its tag:

- line, polyline: connected segments (a single point is drawn as a dot)
- rectangle: axis-aligned rect spanned by the first and last point
- oval: ellipse inscribed in that rect
- polygon: connected segments, open or closed
- text: string centred on the position at the render font size

AnnotationPainter is the adapter a host canvas uses to paint the
controller's annotations every frame.
"""

from typing import TYPE_CHECKING, Callable, Dict, List, Tuple

from PySide6.QtCore import QPointF, QRectF, QSizeF, Qt
from PySide6.QtGui import QFont, QFontMetricsF, QImage, QPainter, QPen

from image_annotation.editor.annotations import (
    AnnotationBase,
    AnnotationType,
    ShapeAnnotation,
    TextAnnotation,
)
from image_annotation.editor.coordinates import render_font_size, to_render

if TYPE_CHECKING:
    from image_annotation.editor.annotation_controller import AnnotationController


def _shape_pen(annotation: ShapeAnnotation) -> QPen:
    pen = QPen(annotation.color)
    pen.setWidthF(annotation.stroke_width)
    pen.setCapStyle(Qt.PenCapStyle.RoundCap)
    pen.setJoinStyle(Qt.PenJoinStyle.RoundJoin)
    return pen


def _render_points(annotation: ShapeAnnotation, render_size: QSizeF) -> List[QPointF]:
    return [to_render(p, render_size) for p in annotation.normalized_points]


def _bounding_rect(points: List[QPointF]) -> QRectF:
    return QRectF(points[0], points[-1]).normalized()


def _draw_connected(painter: QPainter, annotation: ShapeAnnotation, render_size: QSizeF) -> None:
    points = _render_points(annotation, render_size)
    if not points:
        return
    painter.setPen(_shape_pen(annotation))
    if len(points) == 1:
        painter.drawPoint(points[0])
        return
    for start, end in zip(points, points[1:]):
        painter.drawLine(start, end)


def _draw_rectangle(painter: QPainter, annotation: ShapeAnnotation, render_size: QSizeF) -> None:
    points = _render_points(annotation, render_size)
    if not points:
        return
    painter.setPen(_shape_pen(annotation))
    painter.setBrush(Qt.BrushStyle.NoBrush)
    painter.drawRect(_bounding_rect(points))


def _draw_oval(painter: QPainter, annotation: ShapeAnnotation, render_size: QSizeF) -> None:
    points = _render_points(annotation, render_size)
    if not points:
        return
    painter.setPen(_shape_pen(annotation))
    painter.setBrush(Qt.BrushStyle.NoBrush)
    painter.drawEllipse(_bounding_rect(points))


def text_pixel_size(annotation: TextAnnotation, render_size: QSizeF) -> float:
    """Font size of the text in render pixels, not rounded."""
    return render_font_size(annotation.normalized_font_size, render_size)


def _text_font(annotation: TextAnnotation, render_size: QSizeF) -> Tuple[QFont, float]:
    """
    Font at the nearest whole pixel size, plus the scale that brings it to
    the exact render font size.
    """
    pixel_size = text_pixel_size(annotation, render_size)
    # setPixelSize only takes ints and rejects 0
    base_size = max(1, round(pixel_size))
    font = QFont()
    font.setPixelSize(base_size)
    return font, pixel_size / base_size


def _unscaled_text_rect(annotation: TextAnnotation, font: QFont) -> QRectF:
    metrics = QFontMetricsF(font)
    width = metrics.horizontalAdvance(annotation.text)
    height = metrics.height()
    return QRectF(-width / 2, -height / 2, width, height)


def text_layout_rect(annotation: TextAnnotation, render_size: QSizeF) -> QRectF:
    """
    Rect the text occupies in render space.

    The rect is centred on the render position on both axes and scales
    exactly with the render height, without pixel size rounding.
    """
    font, scale = _text_font(annotation, render_size)
    rect = _unscaled_text_rect(annotation, font)
    center = to_render(annotation.normalized_position, render_size)
    return QRectF(
        center.x() + rect.x() * scale,
        center.y() + rect.y() * scale,
        rect.width() * scale,
        rect.height() * scale,
    )


def _draw_text(painter: QPainter, annotation: TextAnnotation, render_size: QSizeF) -> None:
    font, scale = _text_font(annotation, render_size)
    painter.translate(to_render(annotation.normalized_position, render_size))
    painter.scale(scale, scale)
    painter.setPen(annotation.color)
    painter.setFont(font)
    painter.drawText(
        _unscaled_text_rect(annotation, font),
        Qt.AlignmentFlag.AlignCenter,
        annotation.text,
    )


_RENDERERS: Dict[AnnotationType, Callable] = {
    AnnotationType.LINE: _draw_connected,
    AnnotationType.POLYLINE: _draw_connected,
    AnnotationType.POLYGON: _draw_connected,
    AnnotationType.RECTANGLE: _draw_rectangle,
    AnnotationType.OVAL: _draw_oval,
    AnnotationType.TEXT: _draw_text,
}


def render_annotation(annotation: AnnotationBase, painter: QPainter, render_size: QSizeF) -> None:
    """Draw one annotation with the renderer registered for its type."""
    painter.save()
    try:
        _RENDERERS[annotation.annotation_type](painter, annotation, render_size)
    finally:
        painter.restore()


class AnnotationPainter:
    """
    Paints the annotations of a controller.

    Host canvases call paint() from their paint handler, after drawing the
    image itself, with the size the image is displayed at.
    """

    def __init__(self, controller: "AnnotationController") -> None:
        self._controller = controller

    def paint(self, painter: QPainter, render_size: QSizeF) -> None:
        """Paint every annotation in list order."""
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        for annotation in self._controller.annotations:
            render_annotation(annotation, painter, render_size)

    def render_to_image(self, image: QImage) -> QImage:
        """
        Render the annotations over a copy of an image.

        Used for exporting the annotated image at its own resolution.
        """
        if image.isNull():
            return QImage()

        result = image.convertToFormat(QImage.Format.Format_ARGB32_Premultiplied)
        painter = QPainter(result)
        self.paint(painter, QSizeF(result.size()))
        painter.end()
        return result
