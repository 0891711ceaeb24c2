"""
Annotation Service

Provides data models, the rectangle drawing engine, save reconciliation and
UI components for annotating catalog images.

Usage:
    from app.services.annotation import AnnotationDraftEngine, AnnotationReconciler, CoordinateMapper

    # Scale an image into the display box
    mapper = CoordinateMapper.for_viewport(2000, 1000, viewport_width=1440)
    mapper.display_size  # DisplaySize(width=1000.0, height=500.0, ratio=0.5)

    # Draw a rectangle
    engine = AnnotationDraftEngine(image_id="1", annotations=store.annotations.get_by_image_id("1"))
    engine.pointer_down(10, 10, PointerTarget.IMAGE)
    engine.pointer_move(110, 60)
    engine.pointer_up()  # Annotation with a local id

    # Save the new ones
    reconciler = AnnotationReconciler(store.annotations)
    report = reconciler.save(engine.committed, persisted, on_persisted=engine.mark_persisted)
    notify_save(report)  # Notification(message, severity)

    # Use annotation canvas (in Streamlit app)
    from app.services.annotation import annotation_canvas
    result = annotation_canvas(image.url, mapper.display_size, engine.committed, engine.draft)
"""
from .models import (
    PALETTE,
    DEFAULT_COLOR,
    UNCATEGORIZED,
    ColorSwatch,
    IdOrigin,
    AnnotationId,
    Category,
    CatalogImage,
    Annotation,
    find_swatch,
    category_name,
    images_in_category,
)
from .geometry import CoordinateMapper, DisplaySize, max_display_box
from .draft import AnnotationDraftEngine, Draft, DraftState, PointerTarget
from .reconciler import AnnotationReconciler, SaveOutcome, SaveReport
from .notifications import MESSAGES, Notification, notify_save, notify_write

# Lazy imports for Streamlit components (avoid loading Streamlit in non-UI contexts)
_canvas_module = None

_CANVAS_NAMES = (
    "annotation_canvas",
    "parse_canvas_result",
    "apply_pointer_events",
    "render_overlay",
    "fetch_image",
)


def __getattr__(name):
    """Lazy load Streamlit canvas components."""
    global _canvas_module
    if name in _CANVAS_NAMES:
        if _canvas_module is None:
            from . import canvas as _canvas_module
        return getattr(_canvas_module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "PALETTE",
    "DEFAULT_COLOR",
    "UNCATEGORIZED",
    "ColorSwatch",
    "IdOrigin",
    "AnnotationId",
    "Category",
    "CatalogImage",
    "Annotation",
    "find_swatch",
    "category_name",
    "images_in_category",
    "CoordinateMapper",
    "DisplaySize",
    "max_display_box",
    "AnnotationDraftEngine",
    "Draft",
    "DraftState",
    "PointerTarget",
    "AnnotationReconciler",
    "SaveOutcome",
    "SaveReport",
    "MESSAGES",
    "Notification",
    "notify_save",
    "notify_write",
    *_CANVAS_NAMES,
]
