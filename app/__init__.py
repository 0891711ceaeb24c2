"""
Image Annotator Application Package

Contains the Streamlit application organized into:
- state.py: Session state management
- main.py: Main entry point with sidebar navigation
- pages/: Individual page modules
- services/annotation: Models, drawing engine, save reconciliation, canvas
- services/storage: Persistence backends
"""
from app.main import main
from app.state import AnnotationState, CatalogState, init_session_state

__all__ = ["main", "AnnotationState", "CatalogState", "init_session_state"]
