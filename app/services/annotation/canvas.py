"""
Annotation Canvas - Streamlit component for drawing rectangles on images

The frontend draws the image, the committed rectangles and the draft, and
reports raw pointer events. All drawing logic stays in AnnotationDraftEngine:
events are replayed into the engine on each rerun.

Component protocol (value returned by the frontend):
    {
        "events": [{"type": "down"|"move"|"up", "x": 10, "y": 20, "target": "image"}, ...],
        "eventId": "<unique per batch>",
        "viewportWidth": 1440,
    }
"""
import os
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Dict, Iterable, List, Optional
import logging

import requests
import streamlit.components.v1 as components
from PIL import Image, ImageDraw

from app import config
from .draft import AnnotationDraftEngine, Draft, PointerTarget
from .geometry import CoordinateMapper, DisplaySize
from .models import Annotation

logger = logging.getLogger(__name__)

# Declare the custom component
_RELEASE = config.ANNOTATION_CANVAS_RELEASE_MODE

if not _RELEASE:
    _annotation_canvas = components.declare_component(
        "annotation_canvas",
        url="http://localhost:5174",  # Vite dev server
    )
else:
    parent_dir = os.path.dirname(os.path.abspath(__file__))
    build_dir = os.path.join(parent_dir, "../../../frontend/annotation_canvas/build")
    _annotation_canvas = components.declare_component(
        "annotation_canvas",
        path=build_dir
    )


@dataclass
class CanvasResult:
    """Parsed component value"""
    events: List[Dict[str, Any]] = field(default_factory=list)
    event_id: Optional[str] = None
    viewport_width: Optional[int] = None


def fetch_image(url: str, timeout: float = config.REQUEST_TIMEOUT) -> Image.Image:
    """
    Download an image referenced by URL

    Raises:
        requests.RequestException: If the download fails
        PIL.UnidentifiedImageError: If the payload is not an image
    """
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    image = Image.open(BytesIO(response.content))
    image.load()
    return image


def annotation_to_shape(annotation: Annotation) -> Dict[str, Any]:
    """Convert Annotation to the shape format used by the JS component"""
    return {
        "id": annotation.id.value,
        "x": annotation.x,
        "y": annotation.y,
        "width": annotation.width,
        "height": annotation.height,
        "stroke": annotation.color,
        "label": annotation.label,
        "persisted": annotation.is_persisted,
    }


def draft_to_shape(draft: Optional[Draft]) -> Optional[Dict[str, Any]]:
    if draft is None:
        return None
    return {
        "x": draft.x,
        "y": draft.y,
        "width": draft.width,
        "height": draft.height,
        "stroke": draft.color,
    }


def annotation_canvas(
    image_url: str,
    display_size: DisplaySize,
    annotations: List[Annotation],
    draft: Optional[Draft] = None,
    key: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Display the drawing surface for an image

    Args:
        image_url: URL of the image to draw on
        display_size: Scaled size from CoordinateMapper
        annotations: Committed annotations to outline
        draft: Rectangle in progress, if any
        key: Streamlit component key

    Returns:
        Raw component value (see module docstring), or None before the
        first interaction
    """
    return _annotation_canvas(
        imageUrl=image_url,
        width=display_size.width,
        height=display_size.height,
        shapes=[annotation_to_shape(a) for a in annotations],
        draft=draft_to_shape(draft),
        strokeWidth=config.ANNOTATION_STROKE_WIDTH,
        key=key,
        default={"events": [], "eventId": None, "viewportWidth": None},
    )


def parse_canvas_result(result: Optional[Dict[str, Any]]) -> CanvasResult:
    """Parse the raw component value"""
    if not result:
        return CanvasResult()
    viewport_width = result.get("viewportWidth")
    return CanvasResult(
        events=list(result.get("events") or []),
        event_id=result.get("eventId"),
        viewport_width=int(viewport_width) if viewport_width else None,
    )


def apply_pointer_events(engine: AnnotationDraftEngine, events: Iterable[Dict[str, Any]]) -> List[Annotation]:
    """
    Replay pointer events into the draft engine

    Returns:
        Annotations committed while replaying, in order
    """
    committed = []
    for event in events:
        kind = event.get("type")
        if kind == "down":
            try:
                target = PointerTarget(event.get("target", PointerTarget.IMAGE.value))
            except ValueError:
                logger.warning("Ignoring pointer-down on unknown target %r", event.get("target"))
                continue
            engine.pointer_down(float(event["x"]), float(event["y"]), target)
        elif kind == "move":
            engine.pointer_move(float(event["x"]), float(event["y"]))
        elif kind == "up":
            annotation = engine.pointer_up()
            if annotation is not None:
                committed.append(annotation)
        else:
            logger.warning("Ignoring unknown pointer event %r", kind)
    return committed


def render_overlay(
    image: Image.Image,
    mapper: CoordinateMapper,
    annotations: Iterable[Annotation],
    draft: Optional[Draft] = None,
    stroke_width: int = config.ANNOTATION_STROKE_WIDTH,
) -> Image.Image:
    """
    Render the image at display size with rectangle outlines

    Used for the static preview next to the interactive canvas.
    """
    size = mapper.display_size
    canvas = image.convert("RGB").resize((max(1, round(size.width)), max(1, round(size.height))))
    draw = ImageDraw.Draw(canvas)

    shapes = [(a.get_bbox(), a.color) for a in annotations]
    if draft is not None:
        left = min(draft.x, draft.x + draft.width)
        top = min(draft.y, draft.y + draft.height)
        shapes.append(((left, top, abs(draft.width), abs(draft.height)), draft.color))

    for (left, top, width, height), color in shapes:
        draw.rectangle([left, top, left + width, top + height], outline=color, width=stroke_width)
    return canvas
