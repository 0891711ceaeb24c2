"""
Application state management for the image annotator

Contains dataclasses for session state that persists across Streamlit reruns.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from PIL import Image

from app.services.annotation import Annotation, AnnotationDraftEngine, AnnotationId, Notification
from app.services.storage import GatewayFactory


@dataclass
class PageState:
    """State shared by every page"""
    # Shown once on the next rerun, then cleared
    notification: Optional[Notification] = None

    def notify(self, notification: Notification):
        self.notification = notification

    def pop_notification(self) -> Optional[Notification]:
        notification, self.notification = self.notification, None
        return notification


@dataclass
class CatalogState(PageState):
    """Application state for the catalog page"""
    category_filter: Optional[str] = None  # category id, None for all images


@dataclass
class AnnotationState(PageState):
    """Application state for the annotation page"""
    current_image_id: Optional[str] = None
    # Drawing engine for the open image
    engine: Optional[AnnotationDraftEngine] = None
    # Annotations known to be stored for the open image
    persisted: List[Annotation] = field(default_factory=list)
    selected_annotation_id: Optional[AnnotationId] = None
    # Last canvas event batch replayed into the engine
    last_event_id: Optional[str] = None
    viewport_width: Optional[int] = None
    # Downloaded images keyed by URL
    image_cache: Dict[str, Image.Image] = field(default_factory=dict)

    def reset(self):
        """Close the open image"""
        self.current_image_id = None
        self.engine = None
        self.persisted = []
        self.selected_annotation_id = None
        self.last_event_id = None


def init_session_state():
    """Initialize session state if not already done"""
    import streamlit as st

    if "store" not in st.session_state:
        st.session_state.store = GatewayFactory.create_from_config()

    if "catalog_state" not in st.session_state:
        st.session_state.catalog_state = CatalogState()

    if "annotation_state" not in st.session_state:
        st.session_state.annotation_state = AnnotationState()
