"""
Image Annotator - Image catalog with rectangle annotations

Main application entry point with sidebar navigation.
"""
import streamlit as st

from app import config
from app.logging_setup import setup_logging
from app.state import init_session_state
from app.pages.catalog import render_catalog_page
from app.pages.annotate import render_annotation_page

PAGES = ["Catalog", "Annotate"]


def main():
    """Main application entry point"""
    # Page config
    st.set_page_config(
        page_title="Image Annotator",
        page_icon="",
        layout="wide",
    )

    setup_logging(config.LOG_LEVEL)

    # Initialize session state
    init_session_state()

    # Initialize current page if not set
    if "current_page" not in st.session_state:
        st.session_state.current_page = PAGES[0]

    # Sidebar navigation
    st.sidebar.title("Image Annotator")
    page = st.sidebar.radio(
        "Navigation",
        PAGES,
        index=PAGES.index(st.session_state.current_page) if st.session_state.current_page in PAGES else 0,
        label_visibility="collapsed",
    )
    st.session_state.current_page = page
    st.sidebar.caption(f"Storage: {st.session_state.store.name}")
    st.sidebar.divider()

    # Render selected page
    if page == "Catalog":
        render_catalog_page()
    else:
        render_annotation_page()


if __name__ == "__main__":
    main()
