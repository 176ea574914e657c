"""Pixel-level tests for the annotation painter."""

import pytest
from PySide6.QtCore import QPointF, QSizeF, Qt
from PySide6.QtGui import QColor, QFontDatabase, QImage, QPainter

from image_annotation.editor.annotation_controller import AnnotationController
from image_annotation.editor.annotations import AnnotationType, ShapeAnnotation, TextAnnotation
from image_annotation.editor.painter import (
    AnnotationPainter,
    render_annotation,
    text_layout_rect,
    text_pixel_size,
)


def blank_image(width=100, height=100):
    image = QImage(width, height, QImage.Format.Format_ARGB32)
    image.fill(Qt.GlobalColor.transparent)
    return image


def shape(annotation_type, *coords, stroke_width=2.0):
    annotation = ShapeAnnotation(annotation_type, stroke_width=stroke_width)
    for x, y in coords:
        annotation.add(QPointF(x, y))
    return annotation


@pytest.fixture
def require_fonts():
    if not QFontDatabase.families():
        pytest.skip("no fonts available")


def painted(image, x, y):
    return image.pixelColor(x, y).alpha() > 0


def paint_one(annotation, image):
    painter = QPainter(image)
    render_annotation(annotation, painter, QSizeF(image.size()))
    painter.end()
    return image


class TestShapes:
    def test_rectangle_outline(self):
        image = paint_one(shape(AnnotationType.RECTANGLE, (0.2, 0.2), (0.8, 0.6)), blank_image())
        assert painted(image, 50, 20)
        assert painted(image, 20, 40)
        assert painted(image, 80, 40)
        assert not painted(image, 50, 40)
        assert not painted(image, 5, 5)

    def test_rectangle_from_any_corner(self):
        image = paint_one(shape(AnnotationType.RECTANGLE, (0.8, 0.6), (0.2, 0.2)), blank_image())
        assert painted(image, 50, 20)
        assert not painted(image, 50, 40)

    def test_rectangle_uses_annotation_color(self):
        image = paint_one(shape(AnnotationType.RECTANGLE, (0.2, 0.2), (0.8, 0.6)), blank_image())
        color = image.pixelColor(50, 20)
        assert color.red() > 0
        assert color.green() == 0
        assert color.blue() == 0

    def test_oval_outline(self):
        image = paint_one(shape(AnnotationType.OVAL, (0.2, 0.2), (0.8, 0.8)), blank_image())
        assert painted(image, 50, 20)
        assert painted(image, 20, 50)
        assert not painted(image, 50, 50)
        assert not painted(image, 22, 22)

    def test_line(self):
        image = paint_one(shape(AnnotationType.LINE, (0.0, 0.5), (1.0, 0.5)), blank_image())
        assert painted(image, 50, 50)
        assert not painted(image, 50, 10)

    def test_polyline_draws_each_segment(self):
        annotation = shape(AnnotationType.POLYLINE, (0.1, 0.1), (0.9, 0.1), (0.9, 0.9))
        image = paint_one(annotation, blank_image())
        assert painted(image, 50, 10)
        assert painted(image, 90, 50)
        assert not painted(image, 50, 50)

    def test_single_point_is_drawn(self):
        image = paint_one(shape(AnnotationType.LINE, (0.5, 0.5), stroke_width=4.0), blank_image())
        assert painted(image, 50, 50)

    def test_empty_shape_draws_nothing(self):
        image = paint_one(ShapeAnnotation(AnnotationType.RECTANGLE), blank_image())
        assert image == blank_image()

    def test_geometry_scales_with_render_size(self):
        annotation = shape(AnnotationType.RECTANGLE, (0.2, 0.2), (0.8, 0.6))
        image = paint_one(annotation, blank_image(200, 200))
        assert painted(image, 100, 40)
        assert not painted(image, 100, 80)

    def test_render_method_delegates(self):
        annotation = shape(AnnotationType.LINE, (0.0, 0.5), (1.0, 0.5))
        image = blank_image()
        painter = QPainter(image)
        annotation.render(painter, QSizeF(100, 100))
        painter.end()
        assert painted(image, 50, 50)


@pytest.mark.usefixtures("require_fonts")
class TestText:
    def test_layout_is_centred_on_position(self):
        text = TextAnnotation(QPointF(0.5, 0.25), "Hello", 0.1)
        rect = text_layout_rect(text, QSizeF(400, 200))
        assert rect.center().x() == pytest.approx(200.0)
        assert rect.center().y() == pytest.approx(50.0)
        assert rect.width() > 0
        assert rect.height() > 0

    def test_layout_grows_with_render_size(self):
        text = TextAnnotation(QPointF(0.5, 0.5), "Hello", 0.1)
        small = text_layout_rect(text, QSizeF(200, 100))
        large = text_layout_rect(text, QSizeF(800, 400))
        assert large.height() > small.height()

    def test_pixel_size_is_not_rounded(self):
        text = TextAnnotation(QPointF(0.5, 0.5), "Hello", 0.013)
        assert text_pixel_size(text, QSizeF(200, 100)) == pytest.approx(1.3)

    def test_layout_scales_between_whole_pixel_sizes(self):
        text = TextAnnotation(QPointF(0.5, 0.5), "Hello", 0.1)
        base = text_layout_rect(text, QSizeF(200, 100))
        scaled = text_layout_rect(text, QSizeF(208, 104))
        assert scaled.height() == pytest.approx(base.height() * 1.04)
        assert scaled.width() == pytest.approx(base.width() * 1.04)

    def test_text_is_drawn(self):
        text = TextAnnotation(QPointF(0.5, 0.5), "WWW", 0.3)
        image = paint_one(text, blank_image())
        rect = text_layout_rect(text, QSizeF(100, 100)).toRect()
        pixels = [
            painted(image, x, y)
            for x in range(max(0, rect.left()), min(100, rect.right()))
            for y in range(max(0, rect.top()), min(100, rect.bottom()))
        ]
        assert any(pixels)


class TestAnnotationPainter:
    def test_render_to_image_paints_all_annotations(self):
        controller = AnnotationController(AnnotationType.RECTANGLE)
        controller.add(shape(AnnotationType.RECTANGLE, (0.2, 0.2), (0.8, 0.6)))
        controller.add(shape(AnnotationType.LINE, (0.0, 0.9), (1.0, 0.9)))

        source = blank_image()
        result = AnnotationPainter(controller).render_to_image(source)

        assert result.size() == source.size()
        assert painted(result, 50, 20)
        assert painted(result, 50, 90)
        assert not painted(source, 50, 20)
        controller.dispose()

    def test_render_to_null_image(self):
        controller = AnnotationController(AnnotationType.LINE)
        assert AnnotationPainter(controller).render_to_image(QImage()).isNull()
        controller.dispose()

    def test_paint_keeps_background(self):
        controller = AnnotationController(AnnotationType.RECTANGLE)
        controller.add(shape(AnnotationType.RECTANGLE, (0.2, 0.2), (0.8, 0.6)))
        image = QImage(100, 100, QImage.Format.Format_ARGB32)
        image.fill(QColor(0, 0, 255))

        result = AnnotationPainter(controller).render_to_image(image)

        assert result.pixelColor(50, 40) == QColor(0, 0, 255)
        assert result.pixelColor(50, 20).red() > 0
        controller.dispose()
