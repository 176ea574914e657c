"""
State held by an annotation controller.

AnnotationSettings mirrors the style options offered to new annotations;
AnnotationModel is the complete mutable state a controller owns.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List, Optional

from PySide6.QtCore import QSizeF
from PySide6.QtGui import QColor

from image_annotation.editor.annotations import (
    DEFAULT_SHAPE_COLOR,
    DEFAULT_STROKE_WIDTH,
    AnnotationBase,
    AnnotationType,
)
from image_annotation.services.image_service import ImageLoadState

DEFAULT_FONT_SIZE = 16.0


class DrawingState(Enum):
    """State of the annotation slot at the end of the list."""
    NONE = auto()      # Nothing is being drawn
    DRAWING = auto()   # The last annotation accepts more points
    LOCKED = auto()    # The last annotation is finalized


@dataclass
class AnnotationSettings:
    """
    Drawing settings applied to new annotations.

    Stroke width is in render pixels, font size in original-image pixels.
    """
    annotation_type: AnnotationType
    color: QColor = field(default_factory=lambda: QColor(DEFAULT_SHAPE_COLOR))
    stroke_width: float = DEFAULT_STROKE_WIDTH
    font_size: float = DEFAULT_FONT_SIZE

    def clone(self) -> "AnnotationSettings":
        """Create a copy of these settings."""
        return AnnotationSettings(
            annotation_type=self.annotation_type,
            color=QColor(self.color),
            stroke_width=self.stroke_width,
            font_size=self.font_size,
        )


@dataclass
class AnnotationModel:
    """
    Complete state of an annotated image.

    Every annotation lives either in ``annotations`` or in one batch of
    ``redo_stack``, never in both.
    """
    settings: AnnotationSettings
    annotations: List[AnnotationBase] = field(default_factory=list)
    redo_stack: List[List[AnnotationBase]] = field(default_factory=list)
    original_image_size: Optional[QSizeF] = None
    image_state: ImageLoadState = ImageLoadState.PENDING
    drawing_state: DrawingState = DrawingState.NONE
    drawing_polygon: bool = False
    drawing_polyline: bool = False

    def reset_drawing(self) -> None:
        self.drawing_state = DrawingState.NONE
        self.drawing_polygon = False
        self.drawing_polyline = False
