"""
Streamlit pages for the image annotator
"""
from .catalog import render_catalog_page
from .annotate import render_annotation_page

__all__ = ["render_catalog_page", "render_annotation_page"]
