"""
Catalog Page - Manage categories and images

Features:
- Create, rename and delete categories
- Register images by URL with category and metadata
- Filter images by category
- Delete images (their annotations go with them)
"""
from typing import Dict, List, Optional
import logging

import streamlit as st

from app.state import AnnotationState, CatalogState
from app.services.annotation import (
    MESSAGES,
    CatalogImage,
    Category,
    Notification,
    category_name,
    images_in_category,
    notify_write,
)
from app.services.storage import NotFound, OptimisticGateway, StorageError, WriteStatus

logger = logging.getLogger(__name__)


def get_catalog_state() -> CatalogState:
    """Get catalog state from session state"""
    return st.session_state.catalog_state


def show_notification(state: CatalogState):
    """Show the pending notification, if any"""
    notification = state.pop_notification()
    if notification is None:
        return
    getattr(st, notification.severity)(notification.message)


def parse_metadata(text: str) -> Dict[str, str]:
    """
    Parse "key: value" lines into a metadata dict

    Blank lines are skipped.

    Raises:
        ValueError: If a line has no key
    """
    metadata = {}
    for line in (text or "").splitlines():
        if not line.strip():
            continue
        key, sep, value = line.partition(":")
        if not sep or not key.strip():
            raise ValueError(f"Invalid metadata line: {line!r} (expected 'key: value')")
        metadata[key.strip()] = value.strip()
    return metadata


def create_category(store: OptimisticGateway, state: CatalogState, name: str, description: str = ""):
    """Create a category and queue the outcome notification"""
    result = store.categories.create({"name": name.strip(), "description": description.strip() or None})
    state.notify(notify_write(result, MESSAGES["CATEGORY_CREATED"], MESSAGES["CREATE_FAILED"]))
    return result


def update_category(store: OptimisticGateway, state: CatalogState, category: Category, name: str, description: str = ""):
    try:
        result = store.categories.update(category.id, {"name": name.strip(), "description": description.strip() or None})
    except NotFound as e:
        state.notify(Notification(str(e), "error"))
        return None
    state.notify(notify_write(result, MESSAGES["CATEGORY_UPDATED"], MESSAGES["UPDATE_FAILED"]))
    return result


def delete_category(store: OptimisticGateway, state: CatalogState, category: Category):
    """Delete a category; its images become uncategorized"""
    try:
        result = store.categories.delete(category.id)
    except NotFound as e:
        state.notify(Notification(str(e), "error"))
        return None
    if state.category_filter == category.id and result.status is not WriteStatus.FAILED:
        state.category_filter = None
    state.notify(notify_write(result, MESSAGES["CATEGORY_DELETED"], MESSAGES["DELETE_FAILED"]))
    return result


def add_image(
    store: OptimisticGateway,
    state: CatalogState,
    name: str,
    url: str,
    category_id: Optional[str] = None,
    metadata: Optional[Dict[str, str]] = None,
):
    """Register an image by URL"""
    image = CatalogImage(name=name.strip(), url=url.strip(), category_id=category_id, metadata=metadata or {})
    result = store.images.create(image)
    state.notify(notify_write(result, MESSAGES["IMAGE_UPLOADED"], MESSAGES["UPLOAD_FAILED"]))
    return result


def delete_image(
    store: OptimisticGateway,
    state: CatalogState,
    image: CatalogImage,
    annotation_state: Optional[AnnotationState] = None,
):
    """Delete an image and its annotations"""
    try:
        result = store.images.delete(image.id)
    except NotFound as e:
        state.notify(Notification(str(e), "error"))
        return None
    if annotation_state is not None and annotation_state.current_image_id == image.id:
        annotation_state.reset()
    state.notify(notify_write(result, MESSAGES["IMAGE_DELETED"], MESSAGES["DELETE_FAILED"]))
    return result


def render_category_manager(store: OptimisticGateway, state: CatalogState, categories: List[Category]):
    """Render category list and create form"""
    st.subheader("Categories")

    with st.expander("Create New Category", expanded=not categories):
        name = st.text_input("Category Name", key="new_category_name")
        description = st.text_input("Description", key="new_category_description")
        if st.button("Create Category", disabled=not (name or "").strip(), key="create_category"):
            create_category(store, state, name, description)
            st.rerun()

    if not categories:
        st.info("No categories yet.")
        return

    for category in categories:
        with st.expander(category.name):
            if category.description:
                st.caption(category.description)
            new_name = st.text_input("Name", value=category.name, key=f"category_name_{category.id}")
            new_description = st.text_input(
                "Description", value=category.description or "", key=f"category_description_{category.id}"
            )

            col1, col2 = st.columns(2)
            with col1:
                if st.button("Update", disabled=not (new_name or "").strip(), key=f"update_category_{category.id}"):
                    update_category(store, state, category, new_name, new_description)
                    st.rerun()
            with col2:
                if st.button("Delete", type="secondary", key=f"delete_category_{category.id}"):
                    delete_category(store, state, category)
                    st.rerun()


def render_image_form(store: OptimisticGateway, state: CatalogState, categories: List[Category]):
    """Render the add image form"""
    with st.expander("Add Image", expanded=False):
        name = st.text_input("Image Name", key="new_image_name")
        url = st.text_input("Image URL", key="new_image_url")
        category_id = st.selectbox(
            "Category",
            [None] + [c.id for c in categories],
            format_func=lambda cid: category_name(categories, cid),
            key="new_image_category",
        )
        metadata_text = st.text_area("Metadata (one 'key: value' per line)", key="new_image_metadata")

        if st.button("Add Image", disabled=not ((name or "").strip() and (url or "").strip()), key="add_image"):
            try:
                metadata = parse_metadata(metadata_text)
            except ValueError as e:
                st.error(str(e))
                return
            add_image(store, state, name, url, category_id, metadata)
            st.rerun()


def render_image_list(
    store: OptimisticGateway,
    state: CatalogState,
    images: List[CatalogImage],
    categories: List[Category],
):
    """Render images of the selected category"""
    st.subheader("Images")

    filter_options = [None] + [c.id for c in categories]
    selected = st.selectbox(
        "Filter by Category",
        filter_options,
        index=filter_options.index(state.category_filter) if state.category_filter in filter_options else 0,
        format_func=lambda cid: "All categories" if cid is None else category_name(categories, cid),
        key="catalog_category_filter",
    )
    state.category_filter = selected

    shown = images_in_category(images, selected)
    st.caption(f"{len(shown)} image(s)")
    if not shown:
        st.info("No images found.")
        return

    annotation_state = st.session_state.annotation_state
    for image in shown:
        col1, col2, col3 = st.columns([1, 3, 1])
        with col1:
            st.image(image.url, use_container_width=True)
        with col2:
            st.markdown(f"**{image.name}**")
            st.caption(
                f"{category_name(categories, image.category_id)} | "
                f"{image.upload_date.strftime('%Y-%m-%d')}"
            )
        with col3:
            if st.button("Delete", type="secondary", key=f"delete_image_{image.id}"):
                delete_image(store, state, image, annotation_state)
                st.rerun()


def render_catalog_page():
    """Main catalog page render function"""
    state = get_catalog_state()
    store = st.session_state.store

    show_notification(state)

    try:
        categories = store.categories.get_all()
        images = store.images.get_all()
    except StorageError as e:
        logger.error("Could not load catalog: %s", e)
        st.error(f"Could not load catalog: {e}")
        return

    render_category_manager(store, state, categories)

    st.divider()

    render_image_form(store, state, categories)
    render_image_list(store, state, images, categories)
