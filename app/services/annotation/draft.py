"""
Rectangle drawing state machine

One AnnotationDraftEngine is created per open image. It owns the single
in-progress draft and the ordered list of committed annotations, which may
or may not be persisted yet.

States:
    IDLE     - no gesture in progress
    DRAWING  - pointer is down, draft follows the pointer

A pointer-down while DRAWING cancels the current draft and starts a new one
at the new position.
"""
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, List, Optional
import logging

from app import config
from .models import Annotation, AnnotationId, DEFAULT_COLOR, find_swatch

logger = logging.getLogger(__name__)


class DraftState(str, Enum):
    """Drawing gesture state"""
    IDLE = "idle"
    DRAWING = "drawing"


class PointerTarget(str, Enum):
    """What the pointer was over when it went down"""
    STAGE = "stage"
    IMAGE = "image"
    SHAPE = "shape"


# Targets that may start a new rectangle
DRAWABLE_TARGETS = (PointerTarget.STAGE, PointerTarget.IMAGE)


@dataclass
class Draft:
    """The rectangle currently being dragged out"""
    x: float
    y: float
    width: float = 0.0
    height: float = 0.0
    color: str = DEFAULT_COLOR


class AnnotationDraftEngine:
    """
    Turns pointer gestures into committed rectangle annotations

    Args:
        image_id: Image the annotations belong to
        annotations: Already persisted annotations to start from
        min_size: Both sides must exceed this many display pixels to commit
        selected_color: Initial palette color (defaults to the first entry)
    """

    def __init__(
        self,
        image_id: str,
        annotations: Optional[Iterable[Annotation]] = None,
        min_size: float = config.MIN_ANNOTATION_SIZE,
        selected_color: str = DEFAULT_COLOR,
    ):
        self.image_id = str(image_id)
        self.min_size = min_size
        self._state = DraftState.IDLE
        self._draft: Optional[Draft] = None
        self._committed: List[Annotation] = []
        self._selected_color = DEFAULT_COLOR
        self.select_color(selected_color)
        if annotations:
            self.load_persisted(annotations)

    @property
    def state(self) -> DraftState:
        return self._state

    @property
    def draft(self) -> Optional[Draft]:
        return self._draft

    @property
    def committed(self) -> List[Annotation]:
        """Committed annotations in commit order (copy)"""
        return list(self._committed)

    @property
    def selected_color(self) -> str:
        return self._selected_color

    def select_color(self, hex_value: str) -> str:
        """
        Select the outline color for the next rectangles

        Raises:
            ValueError: If the color is not in the palette
        """
        swatch = find_swatch(hex_value)
        if swatch is None:
            raise ValueError(f"Unknown palette color: {hex_value!r}")
        self._selected_color = swatch.hex
        return self._selected_color

    def pointer_down(self, x: float, y: float, target: PointerTarget = PointerTarget.IMAGE) -> bool:
        """
        Start a draft at the pointer position

        Returns:
            True if a draft was started
        """
        target = PointerTarget(target)
        if target not in DRAWABLE_TARGETS:
            return False

        if self._state is DraftState.DRAWING:
            logger.debug("Pointer down while drawing, restarting draft at (%s, %s)", x, y)

        self._draft = Draft(x=x, y=y, color=self._selected_color)
        self._state = DraftState.DRAWING
        return True

    def pointer_move(self, x: float, y: float) -> Optional[Draft]:
        """Stretch the draft to the pointer position; ignored when idle"""
        if self._state is not DraftState.DRAWING or self._draft is None:
            return None
        self._draft.width = x - self._draft.x
        self._draft.height = y - self._draft.y
        return self._draft

    def pointer_up(self) -> Optional[Annotation]:
        """
        Finish the gesture

        Returns:
            The committed annotation, or None if the draft was too small
            (treated as an accidental click) or no gesture was active
        """
        if self._state is not DraftState.DRAWING:
            return None

        draft = self._draft
        self._draft = None
        self._state = DraftState.IDLE

        if draft is None:
            return None

        annotation = Annotation(
            id=AnnotationId.local(),
            image_id=self.image_id,
            x=draft.x,
            y=draft.y,
            width=draft.width,
            height=draft.height,
            color=draft.color,
            created_at=self._next_timestamp(),
        )
        if not annotation.exceeds(self.min_size):
            return None

        self._committed.append(annotation)
        return annotation

    def cancel(self) -> None:
        """Drop the draft without committing"""
        self._draft = None
        self._state = DraftState.IDLE

    def delete_last(self) -> Optional[Annotation]:
        """Remove the most recently committed annotation, persisted or not"""
        if not self._committed:
            return None
        return self._committed.pop()

    def set_label(self, annotation_id: AnnotationId, label: Optional[str]) -> Annotation:
        """
        Set the text label of a committed annotation

        Raises:
            KeyError: If no committed annotation has this id
        """
        index = self._index_of(annotation_id)
        self._committed[index].label = label or None
        return self._committed[index]

    def load_persisted(self, annotations: Iterable[Annotation]) -> None:
        """
        Replace the committed list with annotations read from storage

        Sorted oldest first when every annotation has a timestamp; otherwise
        the storage order is kept.
        """
        loaded = [a for a in annotations if a.image_id == self.image_id]
        if all(a.created_at is not None for a in loaded):
            loaded.sort(key=lambda a: a.created_at)
        self._committed = loaded

    def mark_persisted(self, local_id: AnnotationId, persisted: Annotation) -> Annotation:
        """
        Swap a committed entry for its stored counterpart, keeping its position

        Raises:
            KeyError: If no committed annotation has local_id
        """
        index = self._index_of(local_id)
        current = self._committed[index]
        if not persisted.id.is_persisted:
            raise ValueError(f"Annotation {persisted.id} has not been persisted")
        # Keep local ordering; storage timestamps may be coarser
        self._committed[index] = replace(persisted, created_at=current.created_at)
        return self._committed[index]

    @property
    def unsaved(self) -> List[Annotation]:
        return [a for a in self._committed if a.id.is_local]

    def _index_of(self, annotation_id: AnnotationId) -> int:
        for i, annotation in enumerate(self._committed):
            if annotation.id == annotation_id:
                return i
        raise KeyError(str(annotation_id))

    def _next_timestamp(self) -> datetime:
        now = datetime.now()
        latest = max((a.created_at for a in self._committed if a.created_at is not None), default=None)
        # Strictly increasing within the session even on coarse clocks
        if latest is not None and now <= latest:
            now = latest + timedelta(microseconds=1)
        return now
