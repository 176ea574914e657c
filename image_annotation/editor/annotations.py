"""
Annotation models for the image annotation core.

Annotations store their geometry in normalized coordinates (fractions of
the original image size) so they stay correct when the displayed image is
resized. Each annotation knows how to:
- Expose a read-only copy of its geometry
- Accept new points while it is being drawn (shapes only)
- Render itself on a QPainter for a given render size

Annotation Types:
- ShapeAnnotation: Line, polyline, rectangle and oval
- PolygonAnnotation: Closed polygon with validity checks
- DetectedAnnotation: Rectangle seeded from an object detector
- TextAnnotation: Text label centred on a position
"""

from abc import ABC, abstractmethod
from enum import Enum, auto
from typing import Any, Iterable, Mapping, Optional, Tuple
from uuid import uuid4

from PySide6.QtCore import QPointF, QSizeF
from PySide6.QtGui import QColor, QPainter

from image_annotation.editor.coordinates import ensure_normalized
from image_annotation.editor.geometry import is_ring_closed, is_valid_polygon

DEFAULT_SHAPE_COLOR = QColor(255, 0, 0)
DEFAULT_TEXT_COLOR = QColor(0, 0, 0)
DEFAULT_STROKE_WIDTH = 2.0


class AnnotationType(Enum):
    """Enum for annotation types."""
    LINE = auto()
    POLYLINE = auto()
    RECTANGLE = auto()
    POLYGON = auto()
    OVAL = auto()
    TEXT = auto()

    @property
    def is_shape(self) -> bool:
        return self is not AnnotationType.TEXT

    @property
    def is_polygonal(self) -> bool:
        """Polygonal shapes are built vertex by vertex across several taps."""
        return self in (AnnotationType.POLYGON, AnnotationType.POLYLINE)


class AnnotationBase(ABC):
    """
    Base class for all annotations.

    Holds the colour and the type tag. Painting dispatches on the tag, see
    image_annotation.editor.painter.
    """

    def __init__(self, color: QColor) -> None:
        self.id: str = str(uuid4())
        self._color = QColor(color)

    @property
    @abstractmethod
    def annotation_type(self) -> AnnotationType:
        """Return the type of this annotation."""
        pass

    @property
    def color(self) -> QColor:
        return QColor(self._color)

    def render(self, painter: QPainter, render_size: QSizeF) -> None:
        """
        Paint the annotation.

        Args:
            painter: The QPainter to draw with.
            render_size: Size of the displayed image in pixels.
        """
        from image_annotation.editor.painter import render_annotation
        render_annotation(self, painter, render_size)


class ShapeAnnotation(AnnotationBase):
    """
    Shape built from an ordered list of normalized points.

    Lines and polylines use every point. Rectangles and ovals only use the
    first and the last point, which span the bounding rect.
    """

    def __init__(
        self,
        annotation_type: AnnotationType,
        stroke_width: float = DEFAULT_STROKE_WIDTH,
        color: Optional[QColor] = None,
    ) -> None:
        if not annotation_type.is_shape:
            raise ValueError(f"{annotation_type.name} is not a shape annotation type")
        if stroke_width <= 0:
            raise ValueError(f"stroke_width must be greater than 0, got {stroke_width}")

        super().__init__(color if color is not None else DEFAULT_SHAPE_COLOR)
        self._annotation_type = annotation_type
        self._stroke_width = float(stroke_width)
        self._points: list = []

    @property
    def annotation_type(self) -> AnnotationType:
        return self._annotation_type

    @property
    def stroke_width(self) -> float:
        return self._stroke_width

    @property
    def normalized_points(self) -> Tuple[QPointF, ...]:
        """Copies of the stored points, in insertion order."""
        return tuple(QPointF(p) for p in self._points)

    @property
    def first_normalized_point(self) -> Optional[QPointF]:
        return QPointF(self._points[0]) if self._points else None

    @property
    def last_normalized_point(self) -> Optional[QPointF]:
        return QPointF(self._points[-1]) if self._points else None

    def __len__(self) -> int:
        return len(self._points)

    def add(self, point: QPointF) -> None:
        """
        Append a normalized point.

        Raises:
            NormalizationError: If either coordinate is outside [0, 1].
        """
        self._points.append(ensure_normalized(point))

    def __repr__(self) -> str:
        if self._annotation_type in (AnnotationType.RECTANGLE, AnnotationType.OVAL):
            geometry = (
                f"first={_fmt(self.first_normalized_point)}, "
                f"last={_fmt(self.last_normalized_point)}"
            )
        else:
            geometry = f"points=[{', '.join(_fmt(p) for p in self._points)}]"
        return (
            f"{type(self).__name__}({self._annotation_type.name.lower()}, "
            f"stroke_width={self._stroke_width}, color={self._color.name()}, {geometry})"
        )


class PolygonAnnotation(ShapeAnnotation):
    """
    Closed polygon drawn vertex by vertex.

    The ring is closed explicitly with close(), which repeats the first
    point. Open polygons are still rendered while being drawn.
    """

    def __init__(
        self,
        stroke_width: float = DEFAULT_STROKE_WIDTH,
        color: Optional[QColor] = None,
    ) -> None:
        super().__init__(AnnotationType.POLYGON, stroke_width, color)

    @property
    def is_valid(self) -> bool:
        """At least four points, a closed ring and no crossing edges."""
        return is_valid_polygon(self._points)

    @property
    def is_closed(self) -> bool:
        return is_ring_closed(self._points)

    def close(self) -> None:
        """Append a copy of the first point. Does nothing without points."""
        if self._points:
            self.add(self._points[0])

    def __repr__(self) -> str:
        return f"{super().__repr__()[:-1]}, is_valid={self.is_valid})"


class DetectedAnnotation(ShapeAnnotation):
    """
    Rectangle produced by an object detector rather than drawn by hand.

    Corner accessors are the axis-aligned extremes of the stored points.
    """

    def __init__(
        self,
        label: str,
        confidence_score: float,
        normalized_points: Iterable[QPointF],
        stroke_width: float = DEFAULT_STROKE_WIDTH,
        color: Optional[QColor] = None,
    ) -> None:
        if not 0.0 <= confidence_score <= 1.0:
            raise ValueError(
                f"confidence_score must be between 0 and 1, got {confidence_score}"
            )
        super().__init__(AnnotationType.RECTANGLE, stroke_width, color)
        self.label = label
        self.confidence_score = float(confidence_score)
        for point in normalized_points:
            self.add(point)

    @classmethod
    def from_record(
        cls,
        record: Mapping[str, Any],
        stroke_width: float = DEFAULT_STROKE_WIDTH,
        color: Optional[QColor] = None,
    ) -> "DetectedAnnotation":
        """
        Build from a detector record.

        Accepts ``label``, ``confidenceScore`` (or ``confidence_score``) and
        ``normalizedPoints`` (or ``normalized_points``) given as QPointF
        objects or (x, y) pairs.
        """
        score = record.get("confidenceScore", record.get("confidence_score"))
        points = record.get("normalizedPoints", record.get("normalized_points", []))
        return cls(
            label=str(record["label"]),
            confidence_score=float(score),
            normalized_points=[_to_point(p) for p in points],
            stroke_width=stroke_width,
            color=color,
        )

    def _extreme(self, pick_x, pick_y) -> Optional[QPointF]:
        if not self._points:
            return None
        return QPointF(
            pick_x(p.x() for p in self._points),
            pick_y(p.y() for p in self._points),
        )

    @property
    def top_left(self) -> Optional[QPointF]:
        return self._extreme(min, min)

    @property
    def top_right(self) -> Optional[QPointF]:
        return self._extreme(max, min)

    @property
    def bottom_left(self) -> Optional[QPointF]:
        return self._extreme(min, max)

    @property
    def bottom_right(self) -> Optional[QPointF]:
        return self._extreme(max, max)

    def __repr__(self) -> str:
        return (
            f"DetectedAnnotation(label={self.label!r}, "
            f"confidence_score={self.confidence_score}, "
            f"top_left={_fmt(self.top_left)}, bottom_right={_fmt(self.bottom_right)})"
        )


class TextAnnotation(AnnotationBase):
    """
    Text label centred on a normalized position.

    The font size is a fraction of the image height so that the label keeps
    its proportions when the image is displayed at another size.
    """

    def __init__(
        self,
        normalized_position: QPointF,
        text: str,
        normalized_font_size: float,
        color: Optional[QColor] = None,
    ) -> None:
        if normalized_font_size <= 0:
            raise ValueError(
                f"normalized_font_size must be greater than 0, got {normalized_font_size}"
            )
        super().__init__(color if color is not None else DEFAULT_TEXT_COLOR)
        self._position = ensure_normalized(normalized_position)
        self.text = text
        self.normalized_font_size = float(normalized_font_size)

    @property
    def annotation_type(self) -> AnnotationType:
        return AnnotationType.TEXT

    @property
    def normalized_position(self) -> QPointF:
        return QPointF(self._position)

    def __repr__(self) -> str:
        return (
            f"TextAnnotation(text={self.text!r}, position={_fmt(self._position)}, "
            f"normalized_font_size={self.normalized_font_size}, color={self._color.name()})"
        )


def _to_point(value: Any) -> QPointF:
    if isinstance(value, QPointF):
        return value
    x, y = value
    return QPointF(float(x), float(y))


def _fmt(point: Optional[QPointF]) -> str:
    if point is None:
        return "None"
    return f"({point.x():g}, {point.y():g})"
