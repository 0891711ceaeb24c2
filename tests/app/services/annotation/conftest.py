"""
Shared pytest fixtures for annotation tests
"""
import pytest
from datetime import datetime
from PIL import Image

from app.services.annotation import (
    Annotation,
    AnnotationDraftEngine,
    AnnotationId,
    CatalogImage,
    Category,
    PointerTarget,
)
from app.services.storage import LocalGateway, OptimisticGateway


@pytest.fixture
def sample_categories():
    """Create sample categories"""
    return [
        Category(id="1", name="Nature", description="Natural landscapes"),
        Category(id="2", name="Architecture"),
    ]


@pytest.fixture
def sample_catalog_image():
    """Create a sample CatalogImage"""
    return CatalogImage(
        id="10",
        name="Mountain",
        url="https://example.com/mountain.jpg",
        category_id="1",
        upload_date=datetime(2024, 1, 15, 10, 30),
        metadata={"size": "2.5MB", "resolution": "1920x1080"},
    )


@pytest.fixture
def persisted_annotation():
    """Create an annotation read back from storage"""
    return Annotation(
        id=AnnotationId.persisted("7"),
        image_id="10",
        x=10,
        y=20,
        width=100,
        height=50,
        color="#3b82f6",
        created_at=datetime(2024, 1, 15, 11, 0),
    )


@pytest.fixture
def engine():
    """Create a drawing engine for image 10 with no annotations"""
    return AnnotationDraftEngine(image_id="10")


@pytest.fixture
def draw():
    """Helper that drags out one rectangle on an engine"""
    def _draw(engine, x, y, width, height, target=PointerTarget.IMAGE):
        engine.pointer_down(x, y, target)
        engine.pointer_move(x + width, y + height)
        return engine.pointer_up()
    return _draw


@pytest.fixture
def sample_image():
    """Create a simple test PIL image"""
    return Image.new('RGB', (2000, 1000), color='white')


@pytest.fixture
def local_store():
    """Create an OptimisticGateway over an in-memory local backend"""
    gateway = LocalGateway()
    gateway.initialize()
    return OptimisticGateway(gateway)
