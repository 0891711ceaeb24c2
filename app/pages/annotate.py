"""
Annotation Page - Draw rectangles on catalog images

Features:
- Image selection, filtered by category
- Image details (category, upload date, metadata)
- Color palette for new rectangles
- Interactive canvas for drawing rectangles
- Delete last rectangle, save new rectangles
- Text labels for rectangles
"""
from typing import List, Optional
import logging

import requests
import streamlit as st

from app.state import AnnotationState
from app.services.annotation import (
    MESSAGES,
    PALETTE,
    AnnotationDraftEngine,
    AnnotationReconciler,
    CatalogImage,
    Category,
    CoordinateMapper,
    Notification,
    annotation_canvas,
    apply_pointer_events,
    category_name,
    fetch_image,
    images_in_category,
    notify_save,
    notify_write,
    parse_canvas_result,
    render_overlay,
)
from app.services.storage import NotFound, OptimisticGateway, StorageError, WriteStatus

logger = logging.getLogger(__name__)


def get_annotation_state() -> AnnotationState:
    """Get annotation state from session state"""
    return st.session_state.annotation_state


def show_notification(state: AnnotationState):
    """Show the pending notification, if any"""
    notification = state.pop_notification()
    if notification is None:
        return
    getattr(st, notification.severity)(notification.message)


def open_image(store: OptimisticGateway, state: AnnotationState, image: CatalogImage):
    """Load stored annotations and start a drawing engine for an image"""
    state.reset()
    try:
        annotations = store.annotations.get_by_image_id(image.id)
    except StorageError as e:
        logger.error("Could not load annotations for image %s: %s", image.id, e)
        st.error(f"Could not load annotations: {e}")
        annotations = []

    state.current_image_id = image.id
    state.engine = AnnotationDraftEngine(image_id=image.id, annotations=annotations)
    state.persisted = [a for a in state.engine.committed if a.is_persisted]


def render_image_selector(
    store: OptimisticGateway,
    state: AnnotationState,
    images: List[CatalogImage],
    categories: List[Category],
) -> Optional[CatalogImage]:
    """Render image selection in sidebar and return the open image"""
    st.sidebar.header("Image")

    category_options = [None] + [c.id for c in categories]
    category_id = st.sidebar.selectbox(
        "Category",
        category_options,
        format_func=lambda cid: "All categories" if cid is None else category_name(categories, cid),
        key="annotate_category_filter",
    )
    candidates = images_in_category(images, category_id)
    if not candidates:
        st.sidebar.info("No images in this category.")
        return None

    ids = [image.id for image in candidates]
    index = ids.index(state.current_image_id) if state.current_image_id in ids else 0
    selected_id = st.sidebar.selectbox(
        "Select Image",
        ids,
        index=index,
        format_func=lambda iid: next(i.name for i in candidates if i.id == iid),
        key="annotate_image",
    )
    image = next(i for i in candidates if i.id == selected_id)

    if image.id != state.current_image_id or state.engine is None:
        open_image(store, state, image)
    return image


def render_image_details(image: CatalogImage, categories: List[Category]):
    """Render name, category, upload date and metadata"""
    st.subheader(image.name)
    st.caption(
        f"Category: {category_name(categories, image.category_id)} | "
        f"Uploaded: {image.upload_date.strftime('%Y-%m-%d %H:%M')}"
    )
    if image.metadata:
        with st.expander("Metadata"):
            for key, value in image.metadata.items():
                st.markdown(f"**{key}:** {value}")


def render_color_palette(state: AnnotationState):
    """Render one button per palette color"""
    st.markdown("### Color")

    cols = st.columns(len(PALETTE))
    for col, swatch in zip(cols, PALETTE):
        with col:
            if st.button(
                swatch.name,
                type="primary" if swatch.hex == state.engine.selected_color else "secondary",
                use_container_width=True,
                key=f"color_{swatch.name.lower()}",
            ):
                state.engine.select_color(swatch.hex)
                st.rerun()


def delete_last_annotation(store: OptimisticGateway, state: AnnotationState):
    """Remove the newest rectangle, deleting it from storage when it was saved"""
    removed = state.engine.delete_last()
    if removed is None:
        return

    if state.selected_annotation_id == removed.id:
        state.selected_annotation_id = None

    if not removed.is_persisted:
        # Drop the copy kept by a save the backend declined
        store.annotations.drop_local_copy(removed.id.value)
        return

    try:
        result = store.annotations.delete(removed.id.value)
    except NotFound as e:
        state.notify(Notification(str(e), "error"))
        result = None

    if result is None or result.status is not WriteStatus.FAILED:
        state.persisted = [a for a in state.persisted if a.id != removed.id]
    if result is not None:
        state.notify(notify_write(result, MESSAGES["ANNOTATION_DELETED"], MESSAGES["DELETE_FAILED"]))


def save_annotations(store: OptimisticGateway, state: AnnotationState):
    """Save committed rectangles that are not stored yet"""
    reconciler = AnnotationReconciler(store.annotations)
    report = reconciler.save(
        state.engine.committed,
        state.persisted,
        on_persisted=state.engine.mark_persisted,
    )
    state.persisted.extend(annotation for _, annotation in report.persisted)
    state.notify(notify_save(report))


def render_annotation_actions(store: OptimisticGateway, state: AnnotationState):
    """Render Delete Last and Save buttons"""
    pending = AnnotationReconciler.pending(state.engine.committed, state.persisted)

    col1, col2 = st.columns(2)

    with col1:
        if st.button(
            "Delete Last",
            disabled=not state.engine.committed,
            use_container_width=True,
            key="ann_delete_last",
        ):
            delete_last_annotation(store, state)
            st.rerun()

    with col2:
        if st.button(
            f"Save Annotations ({len(pending)})",
            type="primary",
            disabled=not pending,
            use_container_width=True,
            key="ann_save",
        ):
            save_annotations(store, state)
            st.rerun()


def load_image(state: AnnotationState, image: CatalogImage):
    """Download an image once per session"""
    if image.url not in state.image_cache:
        state.image_cache[image.url] = fetch_image(image.url)
    return state.image_cache[image.url]


def render_annotation_canvas(state: AnnotationState, image: CatalogImage):
    """Render the annotation canvas and replay its pointer events"""
    try:
        pil_image = load_image(state, image)
    except (requests.RequestException, OSError) as e:
        logger.warning("Could not load image %s: %s", image.url, e)
        st.error(f"Image not found: {image.url}")
        return

    mapper = CoordinateMapper.for_viewport(*pil_image.size, viewport_width=state.viewport_width)

    result = annotation_canvas(
        image_url=image.url,
        display_size=mapper.display_size,
        annotations=state.engine.committed,
        draft=state.engine.draft,
        key=f"canvas_{image.id}",
    )
    canvas = parse_canvas_result(result)

    if canvas.viewport_width and canvas.viewport_width != state.viewport_width:
        state.viewport_width = canvas.viewport_width
        st.rerun()

    # Skip if we already processed this batch (prevents infinite loop)
    if canvas.event_id and canvas.event_id != state.last_event_id:
        state.last_event_id = canvas.event_id
        apply_pointer_events(state.engine, canvas.events)
        st.rerun()

    with st.expander("Preview"):
        st.image(render_overlay(pil_image, mapper, state.engine.committed, state.engine.draft))


def render_label_sidebar(store: OptimisticGateway, state: AnnotationState):
    """Render the rectangle list and label editor in sidebar"""
    st.sidebar.divider()
    st.sidebar.header("Annotations")

    committed = state.engine.committed
    if not committed:
        st.sidebar.info("No annotations yet. Draw on the image to add one.")
        return

    for i, annotation in enumerate(committed, start=1):
        is_selected = annotation.id == state.selected_annotation_id
        label = annotation.label or f"Rectangle {i}"
        saved = "" if annotation.is_persisted else " (unsaved)"
        if st.sidebar.button(
            f"{'> ' if is_selected else ''}{label}{saved}",
            key=f"annotation_{annotation.id.value}",
            use_container_width=True,
        ):
            state.selected_annotation_id = annotation.id
            st.rerun()

    selected = next((a for a in committed if a.id == state.selected_annotation_id), None)
    if selected is None:
        return

    st.sidebar.divider()
    st.sidebar.subheader("Edit Annotation")
    new_label = st.sidebar.text_input("Label", value=selected.label or "", key=f"label_{selected.id.value}")
    if new_label == (selected.label or ""):
        return

    updated = state.engine.set_label(selected.id, new_label)
    if updated.is_persisted:
        try:
            result = store.annotations.update(updated.id.value, {"label": updated.label})
        except NotFound as e:
            state.notify(Notification(str(e), "error"))
            return
        state.notify(notify_write(result, MESSAGES["ANNOTATION_UPDATED"], MESSAGES["UPDATE_FAILED"]))


def render_annotation_page():
    """Main annotation page render function"""
    state = get_annotation_state()
    store = st.session_state.store

    show_notification(state)

    try:
        images = store.images.get_all()
        categories = store.categories.get_all()
    except StorageError as e:
        st.error(f"Could not load catalog: {e}")
        return

    if not images:
        st.info("No images in the catalog. Add one on the Catalog page.")
        return

    image = render_image_selector(store, state, images, categories)
    if image is None:
        return

    render_image_details(image, categories)

    st.divider()

    render_color_palette(state)
    render_annotation_actions(store, state)

    st.divider()

    render_label_sidebar(store, state)
    render_annotation_canvas(state, image)

