"""
Annotation controller.

The AnnotationController is the state machine between a host canvas and
the annotation model. It owns:
- The ordered annotation list and the redo stack
- The drawing session of the last annotation (none, drawing, locked)
- The drawing settings (colour, stroke width, font size, annotation type)
- The annotation limit and finalize-on-release policies
- The original image size, resolved asynchronously

Interactive calls never raise for routine rejections (limit reached,
nothing to undo, out-of-range point); they return False instead so that
UI event handlers can call them blindly.

Signals:
    content_changed: The annotations need to be repainted.
    settings_changed: Settings or undo/redo availability changed.
    image_state_changed: The original image size resolved or failed.
"""

import asyncio
from typing import TYPE_CHECKING, Any, Iterable, List, Mapping, Optional, Tuple, Union

from PySide6.QtCore import QObject, QPointF, QSizeF, Signal
from PySide6.QtGui import QColor

from image_annotation.editor.annotations import (
    AnnotationBase,
    AnnotationType,
    DetectedAnnotation,
    PolygonAnnotation,
    ShapeAnnotation,
    TextAnnotation,
)
from image_annotation.editor.coordinates import is_normalized, normalized_font_size
from image_annotation.editor.model import (
    AnnotationModel,
    AnnotationSettings,
    DrawingState,
)
from image_annotation.services.image_service import (
    ImageLoadError,
    ImageLoadState,
    ImageSource,
    read_image_size,
)
from image_annotation.services.logging_service import get_logger

if TYPE_CHECKING:
    from image_annotation.services.config_service import ConfigService

DetectedRecord = Union[DetectedAnnotation, Mapping[str, Any]]

# Polygons can only be closed once they have this many vertices
MIN_POLYGON_VERTICES = 3


class ImageLoadInProgressError(RuntimeError):
    """Raised when an image size load is requested while one is pending."""


class ControllerDisposedError(RuntimeError):
    """Raised when a disposed controller is used."""


class AnnotationController(QObject):
    """
    Controller managing the annotations drawn over one image.

    Signals:
        content_changed: Emitted when annotations are added, removed or extended.
        settings_changed: Emitted when drawing settings change, and after
            undo, redo and clear since they change what can be undone.
        image_state_changed: Emitted with the new ImageLoadState.
    """

    content_changed = Signal()
    settings_changed = Signal()
    image_state_changed = Signal(object)  # ImageLoadState

    def __init__(
        self,
        annotation_type: AnnotationType,
        color: Optional[QColor] = None,
        stroke_width: Optional[float] = None,
        font_size: Optional[float] = None,
        annotation_limit: Optional[int] = None,
        finalize_on_release: bool = False,
        detected_annotations: Optional[Iterable[DetectedRecord]] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        """
        Initialize the controller.

        Args:
            annotation_type: The initially selected annotation type.
            color: Initial colour for new annotations. Defaults to red.
            stroke_width: Initial stroke width. Must be greater than 0.
            font_size: Initial font size for text. Must be greater than 0.
            annotation_limit: Maximum number of annotations, None for no limit.
            finalize_on_release: Lock single-drag shapes when the drag ends.
            detected_annotations: Detector output added right away.
            parent: Optional parent QObject.

        Raises:
            ValueError: If stroke_width, font_size or annotation_limit is
                not positive.
        """
        super().__init__(parent)
        self._logger = get_logger(__name__)

        if stroke_width is not None and stroke_width <= 0:
            raise ValueError(f"stroke_width must be greater than 0, got {stroke_width}")
        if font_size is not None and font_size <= 0:
            raise ValueError(f"font_size must be greater than 0, got {font_size}")
        if annotation_limit is not None and annotation_limit <= 0:
            raise ValueError(f"annotation_limit must be positive, got {annotation_limit}")

        settings = AnnotationSettings(annotation_type=annotation_type)
        if color is not None:
            settings.color = QColor(color)
        if stroke_width is not None:
            settings.stroke_width = float(stroke_width)
        if font_size is not None:
            settings.font_size = float(font_size)

        self._model = AnnotationModel(settings=settings)
        self._annotation_limit = annotation_limit
        self._finalize_on_release = finalize_on_release
        self._load_task: Optional[asyncio.Future] = None
        self._disposed = False

        if detected_annotations:
            self.add_detected(detected_annotations)

    @classmethod
    def from_config(
        cls,
        config: "ConfigService",
        detected_annotations: Optional[Iterable[DetectedRecord]] = None,
        parent: Optional[QObject] = None,
    ) -> "AnnotationController":
        """Create a controller from the configured defaults."""
        return cls(
            config.annotation_type,
            color=config.color,
            stroke_width=config.stroke_width,
            font_size=config.font_size,
            annotation_limit=config.annotation_limit,
            finalize_on_release=config.finalize_on_release,
            detected_annotations=detected_annotations,
            parent=parent,
        )

    # ─── State Inspection ─────────────────────────────────────────────────

    @property
    def annotations(self) -> Tuple[AnnotationBase, ...]:
        """The annotations in drawing order."""
        return tuple(self._model.annotations)

    @property
    def redo_batches(self) -> Tuple[Tuple[AnnotationBase, ...], ...]:
        """The redo stack, oldest batch first."""
        return tuple(tuple(batch) for batch in self._model.redo_stack)

    @property
    def original_image_size(self) -> Optional[QSizeF]:
        size = self._model.original_image_size
        return QSizeF(size) if size is not None else None

    @property
    def aspect_ratio(self) -> Optional[float]:
        size = self._model.original_image_size
        if size is None:
            return None
        return size.width() / size.height()

    @property
    def image_state(self) -> ImageLoadState:
        return self._model.image_state

    @property
    def is_ready(self) -> bool:
        """Whether the original image size is known and drawing makes sense."""
        return self._model.image_state == ImageLoadState.READY

    @property
    def annotation_limit(self) -> Optional[int]:
        return self._annotation_limit

    @property
    def finalize_on_release(self) -> bool:
        return self._finalize_on_release

    @property
    def can_undo(self) -> bool:
        return bool(self._model.annotations)

    @property
    def can_redo(self) -> bool:
        return bool(self._model.redo_stack)

    @property
    def limit_reached(self) -> bool:
        return (
            self._annotation_limit is not None
            and len(self._model.annotations) >= self._annotation_limit
        )

    @property
    def can_edit_current_annotation(self) -> bool:
        """
        Whether drags may keep extending the current annotation.

        Only false when finalize-on-release is on and the limit is reached.
        """
        return (
            not self._finalize_on_release
            or self._annotation_limit is None
            or len(self._model.annotations) < self._annotation_limit
        )

    @property
    def current_annotation(self) -> Optional[AnnotationBase]:
        """The most recently added annotation, if any."""
        return self._model.annotations[-1] if self._model.annotations else None

    @property
    def drawing_state(self) -> DrawingState:
        return self._model.drawing_state

    @property
    def is_shape_annotation(self) -> bool:
        return isinstance(self.current_annotation, ShapeAnnotation)

    @property
    def is_text_annotation(self) -> bool:
        return isinstance(self.current_annotation, TextAnnotation)

    @property
    def is_polygonal_annotation(self) -> bool:
        """Whether the selected annotation type is drawn vertex by vertex."""
        return self._model.settings.annotation_type.is_polygonal

    @property
    def has_no_annotation(self) -> bool:
        return self.current_annotation is None

    @property
    def drawing_polygon(self) -> bool:
        return self._model.drawing_polygon

    @property
    def drawing_polyline(self) -> bool:
        return self._model.drawing_polyline

    @property
    def poly_drawing_active(self) -> bool:
        """True while a polygon or polyline is under construction."""
        return self._model.drawing_polygon or self._model.drawing_polyline

    @property
    def can_complete_polygon(self) -> bool:
        polygon = self.current_annotation
        return (
            self._model.drawing_polygon
            and isinstance(polygon, PolygonAnnotation)
            and len(polygon) >= MIN_POLYGON_VERTICES
        )

    # ─── Settings ─────────────────────────────────────────────────────────

    @property
    def color(self) -> QColor:
        return QColor(self._model.settings.color)

    @color.setter
    def color(self, value: QColor) -> None:
        if self._model.settings.color == value:
            return
        self._model.settings.color = QColor(value)
        self.settings_changed.emit()

    @property
    def stroke_width(self) -> float:
        return self._model.settings.stroke_width

    @stroke_width.setter
    def stroke_width(self, value: float) -> None:
        if value == self._model.settings.stroke_width or value <= 0:
            return
        self._model.settings.stroke_width = float(value)
        self.settings_changed.emit()

    @property
    def font_size(self) -> float:
        return self._model.settings.font_size

    @font_size.setter
    def font_size(self, value: float) -> None:
        if value == self._model.settings.font_size or value <= 0:
            return
        self._model.settings.font_size = float(value)
        self.settings_changed.emit()

    @property
    def annotation_type(self) -> AnnotationType:
        return self._model.settings.annotation_type

    @annotation_type.setter
    def annotation_type(self, value: AnnotationType) -> None:
        if value == self._model.settings.annotation_type:
            return
        self._model.settings.annotation_type = value
        self.settings_changed.emit()

    @property
    def settings(self) -> AnnotationSettings:
        """A snapshot of the current drawing settings."""
        return self._model.settings.clone()

    # ─── Image Size ───────────────────────────────────────────────────────

    async def load_image_size(self, source: ImageSource) -> Optional[QSizeF]:
        """
        Resolve the size of the image being annotated.

        The image is read in the default executor; the model is only
        touched back on the calling event loop.

        Args:
            source: A QImage, a file path or encoded image bytes.

        Returns:
            The original image size, or None if the image could not be read.

        Raises:
            ImageLoadInProgressError: If a previous load has not finished.
            Exception: Unexpected reader errors propagate after the state
                has moved to FAILED.
        """
        self._ensure_alive()
        if self._load_task is not None and not self._load_task.done():
            raise ImageLoadInProgressError("An image size load is already pending")

        self._logger.info("Loading image size...")
        self._set_image_state(ImageLoadState.LOADING)

        loop = asyncio.get_running_loop()
        self._load_task = loop.run_in_executor(None, read_image_size, source)
        try:
            size = await self._load_task
        except ImageLoadError as e:
            self._logger.error(f"Image size could not be loaded: {e}")
            self._set_image_state(ImageLoadState.FAILED)
            return None
        except Exception:
            self._logger.exception("Unexpected error while loading image size")
            self._set_image_state(ImageLoadState.FAILED)
            raise
        finally:
            self._load_task = None

        self._model.original_image_size = QSizeF(size)
        self._logger.info(f"Image size loaded: {size.width()}x{size.height()}")
        self._set_image_state(ImageLoadState.READY)
        return QSizeF(size)

    def set_original_image_size(self, size: QSizeF) -> None:
        """
        Record an already known image size and mark the controller ready.

        Raises:
            ValueError: If either dimension is not positive.
        """
        self._ensure_alive()
        if size.width() <= 0 or size.height() <= 0:
            raise ValueError(f"Image size must be positive, got {size.width()}x{size.height()}")
        self._model.original_image_size = QSizeF(size)
        self._set_image_state(ImageLoadState.READY)

    def _set_image_state(self, state: ImageLoadState) -> None:
        self._model.image_state = state
        self.image_state_changed.emit(state)

    # ─── Annotation Management ────────────────────────────────────────────

    def add(self, annotation: AnnotationBase) -> bool:
        """
        Append a complete annotation and clear the redo stack.

        Returns:
            False if the annotation limit is reached.
        """
        if not self._append(annotation):
            return False
        self._model.drawing_state = DrawingState.LOCKED
        self.content_changed.emit()
        return True

    def _append(self, annotation: AnnotationBase) -> bool:
        self._ensure_alive()
        if self.limit_reached:
            self._logger.debug(
                f"Annotation limit of {self._annotation_limit} reached, "
                f"{annotation.annotation_type.name.lower()} annotation rejected"
            )
            return False

        self._model.annotations.append(annotation)
        self._model.redo_stack.clear()
        self._model.drawing_polygon = False
        self._model.drawing_polyline = False
        self._logger.info(f"{annotation.annotation_type.name.lower()} annotation added")
        return True

    def start_shape(self, annotation_type: Optional[AnnotationType] = None) -> Optional[ShapeAnnotation]:
        """
        Start drawing a new shape with the current colour and stroke width.

        Args:
            annotation_type: Shape type, defaults to the selected type.

        Returns:
            The new empty shape, or None if the type is text or the limit
            is reached.
        """
        self._ensure_alive()
        shape_type = annotation_type or self._model.settings.annotation_type
        if not shape_type.is_shape:
            self._logger.debug("Text annotations are not drawn as shapes")
            return None

        settings = self._model.settings
        if shape_type == AnnotationType.POLYGON:
            shape: ShapeAnnotation = PolygonAnnotation(settings.stroke_width, settings.color)
        else:
            shape = ShapeAnnotation(shape_type, settings.stroke_width, settings.color)

        if not self._append(shape):
            return None

        self._model.drawing_state = DrawingState.DRAWING
        self._model.drawing_polygon = shape_type == AnnotationType.POLYGON
        self._model.drawing_polyline = shape_type == AnnotationType.POLYLINE
        self.content_changed.emit()
        self.settings_changed.emit()
        return shape

    def extend(self, point: QPointF) -> bool:
        """
        Append a normalized point to the shape being drawn.

        Returns:
            False if no shape is being drawn or the point is out of range.
        """
        self._ensure_alive()
        if self._model.drawing_state != DrawingState.DRAWING:
            self._logger.debug("No shape is being drawn, point ignored")
            return False
        if not is_normalized(point):
            self._logger.debug(f"Point ({point.x()}, {point.y()}) out of range, ignored")
            return False

        shape = self.current_annotation
        if not isinstance(shape, ShapeAnnotation):
            return False
        shape.add(point)
        self.content_changed.emit()
        return True

    def finalize(self) -> bool:
        """Lock the shape being drawn. Returns False if nothing is drawn."""
        self._ensure_alive()
        if self._model.drawing_state != DrawingState.DRAWING:
            return False

        had_poly = self.poly_drawing_active
        self._model.drawing_state = DrawingState.LOCKED
        self._model.drawing_polygon = False
        self._model.drawing_polyline = False
        self._logger.debug(f"{self.current_annotation.annotation_type.name.lower()} annotation finalized")
        if had_poly:
            self.settings_changed.emit()
        return True

    def release(self) -> bool:
        """
        End of a drag gesture.

        Finalizes a single-drag shape under the finalize-on-release policy.
        Polygons and polylines are completed explicitly instead.
        """
        self._ensure_alive()
        if self._model.drawing_state != DrawingState.DRAWING or self.poly_drawing_active:
            return False
        if self._finalize_on_release:
            return self.finalize()
        return False

    def complete_polygon(self) -> bool:
        """Close and lock the polygon being drawn once it has three vertices."""
        if not self.can_complete_polygon:
            return False
        polygon = self.current_annotation
        polygon.close()
        self.finalize()
        self.content_changed.emit()
        return True

    def cancel_polygon(self) -> bool:
        """Discard the polygon being drawn."""
        if not self._model.drawing_polygon:
            return False
        return self.undo_annotation()

    def complete_polyline(self) -> bool:
        """Lock the polyline being drawn."""
        if not self._model.drawing_polyline:
            return False
        return self.finalize()

    def cancel_polyline(self) -> bool:
        """Discard the polyline being drawn."""
        if not self._model.drawing_polyline:
            return False
        return self.undo_annotation()

    def add_text(
        self,
        position: QPointF,
        text: str,
        font_size: Optional[float] = None,
    ) -> Optional[TextAnnotation]:
        """
        Add a text annotation at a normalized position.

        Args:
            position: Normalized centre of the text.
            text: The label. Empty text is ignored.
            font_size: Font size in original-image pixels, defaults to the
                current font size.

        Returns:
            The new annotation, or None if it was rejected.
        """
        self._ensure_alive()
        if not text:
            return None
        if self._model.original_image_size is None:
            self._logger.debug("Image size not loaded, text annotation ignored")
            return None
        if not is_normalized(position):
            self._logger.debug(f"Text position ({position.x()}, {position.y()}) out of range")
            return None

        size = font_size if font_size is not None else self._model.settings.font_size
        if size <= 0:
            return None

        annotation = TextAnnotation(
            normalized_position=position,
            text=text,
            normalized_font_size=normalized_font_size(size, self._model.original_image_size),
            color=self._model.settings.color,
        )
        return annotation if self.add(annotation) else None

    def add_detected(self, records: Iterable[DetectedRecord]) -> List[DetectedAnnotation]:
        """
        Add detector output, one annotation per record, in order.

        Records may be DetectedAnnotation objects or mappings accepted by
        DetectedAnnotation.from_record. Records beyond the annotation limit
        are dropped.

        Returns:
            The annotations that were added.
        """
        self._ensure_alive()
        settings = self._model.settings
        # A malformed record leaves the model untouched
        annotations = [
            record if isinstance(record, DetectedAnnotation)
            else DetectedAnnotation.from_record(record, settings.stroke_width, settings.color)
            for record in records
        ]

        added = []
        for annotation in annotations:
            if not self._append(annotation):
                break
            added.append(annotation)

        if added:
            self._model.drawing_state = DrawingState.LOCKED
            self.content_changed.emit()
        return added

    def undo_annotation(self) -> bool:
        """
        Move the last annotation onto the redo stack.

        Returns:
            False if there is nothing to undo.
        """
        self._ensure_alive()
        if not self.can_undo:
            return False

        last = self._model.annotations.pop()
        self._model.redo_stack.append([last])
        self._model.reset_drawing()

        self._logger.info(f"Undone {last.annotation_type.name.lower()} annotation")
        self.content_changed.emit()
        self.settings_changed.emit()
        return True

    def redo_annotation(self) -> bool:
        """
        Restore the most recently removed batch of annotations.

        Returns:
            False if the redo stack is empty.
        """
        self._ensure_alive()
        if not self.can_redo:
            return False

        batch = self._model.redo_stack.pop()
        self._model.annotations.extend(batch)
        self._model.reset_drawing()

        self._logger.info(f"Redone {len(batch)} annotation(s)")
        self.content_changed.emit()
        self.settings_changed.emit()
        return True

    def clear_annotations(self) -> bool:
        """
        Move every annotation onto the redo stack as one batch.

        Returns:
            False if there are no annotations.
        """
        self._ensure_alive()
        if not self.can_undo:
            return False

        cleared = list(self._model.annotations)
        self._model.redo_stack.append(cleared)
        self._model.annotations.clear()
        self._model.reset_drawing()

        self._logger.info(f"{len(cleared)} annotation(s) have been cleared")
        self.content_changed.emit()
        self.settings_changed.emit()
        return True

    def update_view(self) -> None:
        """Ask listeners to repaint."""
        self.content_changed.emit()

    # ─── Lifecycle ────────────────────────────────────────────────────────

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """
        Release the annotations and stop listening to a pending image load.

        The controller cannot be used afterwards.
        """
        if self._disposed:
            return
        if self._load_task is not None and not self._load_task.done():
            self._load_task.cancel()
        self._load_task = None
        self._model.annotations.clear()
        self._model.redo_stack.clear()
        self._model.reset_drawing()
        self._disposed = True
        self._logger.debug("Controller disposed")

    def _ensure_alive(self) -> None:
        if self._disposed:
            raise ControllerDisposedError("AnnotationController has been disposed")
