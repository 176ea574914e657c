"""
Gesture routing for host canvases.

A host canvas forwards raw pointer input in render pixels; the router
applies the drawing rules and turns it into controller calls:

- Drag: line, rectangle and oval are drawn with one drag
- Tap: polygon and polyline vertices are added one tap at a time
- Tap: text positions are handed to the host's text entry, which then
  calls submit_text()

Input is ignored until the controller knows the image size, and
positions outside the rendered image are dropped.
"""

from typing import Optional

from PySide6.QtCore import QPointF, QSizeF

from image_annotation.editor.annotation_controller import AnnotationController
from image_annotation.editor.annotations import AnnotationType, TextAnnotation
from image_annotation.editor.coordinates import is_within_render_bounds, to_normalized
from image_annotation.editor.model import DrawingState
from image_annotation.services.logging_service import get_logger


class GestureRouter:
    """
    Translates pointer gestures into annotation controller calls.

    One router serves one canvas; it keeps no state besides whether a
    drag is in progress.
    """

    def __init__(self, controller: AnnotationController) -> None:
        self._logger = get_logger(__name__)
        self._controller = controller
        self._dragging = False

    @property
    def controller(self) -> AnnotationController:
        return self._controller

    @property
    def is_dragging(self) -> bool:
        return self._dragging

    def _normalize(self, pos: QPointF, render_size: QSizeF) -> Optional[QPointF]:
        if not self._controller.is_ready:
            return None
        if render_size.width() <= 0 or render_size.height() <= 0:
            return None
        if not is_within_render_bounds(pos, render_size):
            return None
        return to_normalized(pos, render_size)

    def _is_drag_shape(self) -> bool:
        annotation_type = self._controller.annotation_type
        return annotation_type.is_shape and not annotation_type.is_polygonal

    def on_drag_start(self, pos: QPointF, render_size: QSizeF) -> None:
        """
        Begin a drag.

        Starts a new shape unless the shape being drawn can keep growing,
        which is the case when finalize-on-release is off and the selected
        type has not changed.
        """
        point = self._normalize(pos, render_size)
        if point is None or not self._is_drag_shape():
            return

        controller = self._controller
        current = controller.current_annotation
        continue_current = (
            not controller.finalize_on_release
            and controller.drawing_state == DrawingState.DRAWING
            and current is not None
            and current.annotation_type == controller.annotation_type
        )
        if not continue_current and controller.start_shape() is None:
            return

        self._dragging = True
        controller.extend(point)

    def on_drag_update(self, pos: QPointF, render_size: QSizeF) -> None:
        """Extend the shape being dragged."""
        if not self._dragging:
            return
        if (
            not self._controller.can_edit_current_annotation
            and self._controller.drawing_state != DrawingState.DRAWING
        ):
            return

        point = self._normalize(pos, render_size)
        if point is None:
            return
        self._controller.extend(point)

    def on_drag_end(self) -> None:
        """Finish a drag, locking the shape when the policy asks for it."""
        if not self._dragging:
            return
        self._dragging = False
        self._controller.release()

    def on_tap(self, pos: QPointF, render_size: QSizeF) -> Optional[QPointF]:
        """
        Handle a tap.

        Returns:
            For the text type, the normalized position the host should
            collect text for. None otherwise.
        """
        point = self._normalize(pos, render_size)
        if point is None:
            return None

        controller = self._controller
        annotation_type = controller.annotation_type

        if annotation_type == AnnotationType.TEXT:
            return point

        if annotation_type.is_polygonal:
            drawing_same_type = (
                (annotation_type == AnnotationType.POLYGON and controller.drawing_polygon)
                or (annotation_type == AnnotationType.POLYLINE and controller.drawing_polyline)
            )
            if not drawing_same_type and controller.start_shape() is None:
                return None
            controller.extend(point)

        return None

    def submit_text(self, normalized_position: QPointF, text: str) -> Optional[TextAnnotation]:
        """Add the text collected for a tapped position."""
        annotation = self._controller.add_text(normalized_position, text)
        if annotation is None:
            self._logger.debug("Text annotation was not added")
        return annotation
