"""
Shared CRUD contract run against every backend
"""
import pytest

from app.services.annotation import Annotation, CatalogImage, Category
from app.services.storage import DatabaseGateway, LocalGateway, MemoryStore, NotFound, RemoteDemoGateway

from .conftest import BASE_URL, FakeJsonServer

MISSING_ID = "999"


@pytest.fixture(params=["local", "remote", "database"])
def gateway(request):
    """Empty gateway of each backend type"""
    if request.param == "local":
        gateway = LocalGateway(store=MemoryStore())
    elif request.param == "remote":
        gateway = RemoteDemoGateway(base_url=BASE_URL, session=FakeJsonServer())
    else:
        gateway = DatabaseGateway(url="sqlite://")
    yield gateway
    gateway.close()


@pytest.fixture
def populated(gateway):
    """Gateway with one category, two images and three annotations"""
    category = gateway.categories.create(Category(name="Nature", description="Outdoors"))
    lake = gateway.images.create(CatalogImage(name="Lake", url="https://example.com/lake.jpg", category_id=category.id))
    street = gateway.images.create(CatalogImage(name="Street", url="https://example.com/street.jpg"))
    annotations = [
        gateway.annotations.create(Annotation(image_id=lake.id, x=10, y=10, width=50, height=40)),
        gateway.annotations.create(Annotation(image_id=lake.id, x=80, y=30, width=-20, height=20, color="#10b981")),
        gateway.annotations.create(Annotation(image_id=street.id, x=5, y=5, width=60, height=60)),
    ]
    return gateway, category, lake, street, annotations


class TestCrudContract:
    """Every backend behaves the same for the same sequence of calls"""

    def test_create_assigns_distinct_string_ids(self, populated):
        _, category, lake, street, annotations = populated

        ids = [lake.id, street.id]
        assert all(isinstance(i, str) for i in ids + [category.id])
        assert len(set(ids)) == 2
        assert all(a.id.is_persisted for a in annotations)

    def test_get_all(self, populated):
        gateway = populated[0]

        assert [c.name for c in gateway.categories.get_all()] == ["Nature"]
        assert [i.name for i in gateway.images.get_all()] == ["Lake", "Street"]
        assert len(gateway.annotations.get_all()) == 3

    def test_get_by_id(self, populated):
        gateway, category, lake, _, _ = populated

        stored = gateway.images.get_by_id(lake.id)
        assert stored.name == "Lake"
        assert stored.category_id == category.id
        assert gateway.categories.get_by_id(category.id).description == "Outdoors"

    def test_get_by_id_missing_returns_none(self, gateway):
        assert gateway.categories.get_by_id(MISSING_ID) is None
        assert gateway.images.get_by_id(MISSING_ID) is None
        assert gateway.annotations.get_by_id(MISSING_ID) is None

    def test_annotation_fields_preserved(self, populated):
        gateway, _, lake, _, annotations = populated

        stored = gateway.annotations.get_by_id(annotations[1].id.value)
        assert stored.image_id == lake.id
        assert (stored.x, stored.y, stored.width, stored.height) == (80, 30, -20, 20)
        assert stored.color == "#10b981"

    def test_get_by_image_id(self, populated):
        gateway, _, lake, street, annotations = populated

        assert [a.id for a in gateway.annotations.get_by_image_id(lake.id)] == [a.id for a in annotations[:2]]
        assert len(gateway.annotations.get_by_image_id(street.id)) == 1

    def test_update(self, populated):
        gateway, category, _, _, _ = populated

        updated = gateway.categories.update(category.id, {"name": "Landscapes"})

        assert updated.id == category.id
        assert updated.name == "Landscapes"
        assert updated.description == "Outdoors"
        assert gateway.categories.get_by_id(category.id).name == "Landscapes"

    def test_update_annotation_label(self, populated):
        gateway, _, _, _, annotations = populated

        updated = gateway.annotations.update(annotations[0].id.value, {"label": "tree"})
        assert updated.label == "tree"
        assert updated.width == 50

    def test_update_missing_raises(self, gateway):
        with pytest.raises(NotFound):
            gateway.categories.update(MISSING_ID, {"name": "x"})

    def test_delete(self, populated):
        gateway, _, _, _, annotations = populated

        assert gateway.annotations.delete(annotations[2].id.value) is True
        assert gateway.annotations.get_by_id(annotations[2].id.value) is None

    def test_delete_missing_raises(self, gateway):
        with pytest.raises(NotFound):
            gateway.annotations.delete(MISSING_ID)

    def test_image_delete_cascades_to_annotations(self, populated):
        gateway, _, lake, street, _ = populated

        gateway.images.delete(lake.id)

        assert gateway.images.get_by_id(lake.id) is None
        assert gateway.annotations.get_by_image_id(lake.id) == []
        remaining = gateway.annotations.get_all()
        assert [a.image_id for a in remaining] == [street.id]

    def test_category_delete_keeps_images(self, populated):
        gateway, category, lake, _, _ = populated

        gateway.categories.delete(category.id)

        assert gateway.images.get_by_id(lake.id) is not None
        assert gateway.categories.get_all() == []
