"""
Shared pytest fixtures for page tests
"""
import pytest
from datetime import datetime
from unittest.mock import MagicMock, Mock
from PIL import Image

from app.state import AnnotationState, CatalogState
from app.services.annotation import AnnotationDraftEngine, CatalogImage, Category
from app.services.storage import LocalGateway, MemoryStore, OptimisticGateway


# Constants for test data
TEST_IMAGE_WIDTH = 2000
TEST_IMAGE_HEIGHT = 1000


@pytest.fixture
def mock_streamlit():
    """Mock Streamlit module for UI testing."""
    mock_st = MagicMock()

    # Mock sidebar
    mock_st.sidebar = MagicMock()
    mock_st.sidebar.header = MagicMock()
    mock_st.sidebar.selectbox = MagicMock(side_effect=lambda label, options, **kwargs: options[kwargs.get("index", 0)])
    mock_st.sidebar.info = MagicMock()
    mock_st.sidebar.divider = MagicMock()
    mock_st.sidebar.subheader = MagicMock()
    mock_st.sidebar.button = MagicMock(return_value=False)
    mock_st.sidebar.text_input = MagicMock(side_effect=lambda label, value="", **kwargs: value)

    # Mock main UI elements
    mock_st.info = MagicMock()
    mock_st.success = MagicMock()
    mock_st.error = MagicMock()
    mock_st.warning = MagicMock()
    mock_st.button = MagicMock(return_value=False)
    mock_st.columns = MagicMock(side_effect=lambda spec: [MagicMock() for _ in range(spec if isinstance(spec, int) else len(spec))])
    mock_st.divider = MagicMock()
    mock_st.subheader = MagicMock()
    mock_st.caption = MagicMock()
    mock_st.markdown = MagicMock()
    mock_st.image = MagicMock()
    mock_st.text_input = MagicMock(side_effect=lambda label, value="", **kwargs: value)
    mock_st.text_area = MagicMock(return_value="")
    mock_st.selectbox = MagicMock(side_effect=lambda label, options, **kwargs: options[kwargs.get("index", 0)])
    mock_st.rerun = MagicMock()

    # Mock expander context manager
    mock_expander = MagicMock()
    mock_expander.__enter__ = Mock(return_value=mock_st)
    mock_expander.__exit__ = Mock(return_value=None)
    mock_st.expander = MagicMock(return_value=mock_expander)

    # Mock session state
    mock_st.session_state = MagicMock()

    return mock_st


@pytest.fixture
def press_button():
    """
    Make st.button return True only for the given label.

    Usage:
        press_button(mock_streamlit, "Delete Last")
    """
    def _press(mock_st, label):
        mock_st.button = MagicMock(side_effect=lambda text, *args, **kwargs: text == label)
    return _press


@pytest.fixture
def store():
    """Application store over an in-memory local backend with no data"""
    return OptimisticGateway(LocalGateway(store=MemoryStore()))


@pytest.fixture
def catalog(store):
    """Store with two categories and two images; returns (store, categories, images)"""
    nature = store.categories.create(Category(name="Nature")).entity
    urban = store.categories.create(Category(name="Urban")).entity
    lake = store.images.create(CatalogImage(
        name="Lake",
        url="https://example.com/lake.jpg",
        category_id=nature.id,
        upload_date=datetime(2024, 1, 15, 10, 30),
        metadata={"camera": "Canon"},
    )).entity
    street = store.images.create(CatalogImage(
        name="Street",
        url="https://example.com/street.jpg",
        category_id=urban.id,
    )).entity
    return store, [nature, urban], [lake, street]


@pytest.fixture
def annotation_state_empty():
    """Create empty AnnotationState."""
    return AnnotationState()


@pytest.fixture
def annotation_state_open(catalog):
    """AnnotationState with the first catalog image open."""
    _, _, images = catalog
    state = AnnotationState()
    state.current_image_id = images[0].id
    state.engine = AnnotationDraftEngine(image_id=images[0].id)
    state.image_cache[images[0].url] = Image.new("RGB", (TEST_IMAGE_WIDTH, TEST_IMAGE_HEIGHT), color="white")
    return state


@pytest.fixture
def catalog_state():
    """Create empty CatalogState."""
    return CatalogState()


def draw_rectangles(engine, count):
    """Commit count rectangles on an engine."""
    committed = []
    for i in range(count):
        engine.pointer_down(10 + i * 20, 10)
        engine.pointer_move(25 + i * 20, 30)
        committed.append(engine.pointer_up())
    return committed


# Helper functions for verifying UI components by label


def find_button_by_label(mock_st, label):
    """
    Find button call by its label in mock Streamlit button calls.

    Args:
        mock_st: Mock streamlit object
        label: Button label to search for

    Returns:
        Call args if found, or None if not found
    """
    if not mock_st.button.called:
        return None

    for call in mock_st.button.call_args_list:
        if call[0][0] == label:  # First positional arg is the label
            return call
    return None


def get_button_kwarg(button_call, key, default=None):
    """Extract button keyword argument from button call args."""
    if not button_call:
        return default
    return button_call[1].get(key, default)


def is_button_disabled(button_call):
    """Check if button call has disabled=True."""
    return get_button_kwarg(button_call, "disabled", default=False)


def is_button_primary(button_call):
    """Check if button call has type='primary'."""
    return get_button_kwarg(button_call, "type") == "primary"

