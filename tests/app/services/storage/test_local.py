"""
Tests for the local persisted backend
"""
import json
import re

import pytest

from app.services.annotation import Annotation, CatalogImage, Category
from app.services.storage import JsonFileStore, LocalGateway, MemoryStore, NotFound, TransportFailure, ValidationRejected
from app.services.storage.local import DEFAULT_DATASET, STORAGE_KEYS, generate_id


class TestGenerateId:
    """Tests for generate_id()"""

    def test_format(self):
        assert re.fullmatch(r"\d{13}_[a-z0-9]{9}", generate_id())

    def test_unique(self):
        assert len({generate_id() for _ in range(100)}) == 100


class TestInitialize:
    """Tests for first-run seeding"""

    def test_seeds_defaults_without_source(self, local_gateway):
        assert local_gateway.initialize() is True

        assert local_gateway.initialized
        assert len(local_gateway.categories.get_all()) == len(DEFAULT_DATASET["categories"])
        assert len(local_gateway.images.get_all()) == len(DEFAULT_DATASET["images"])
        assert local_gateway.annotations.get_all() == []

    def test_seeds_from_remote(self, local_gateway, remote_gateway):
        local_gateway.initialize(seed=remote_gateway)

        names = [c.name for c in local_gateway.categories.get_all()]
        assert names == ["Nature", "Urban"]
        assert local_gateway.images.get_by_id("1").category_id == "1"

    def test_falls_back_to_defaults_when_offline(self, local_gateway, offline_gateway):
        local_gateway.initialize(seed=offline_gateway)
        assert len(local_gateway.images.get_all()) == len(DEFAULT_DATASET["images"])

    def test_never_overwrites_after_initialized(self, local_gateway, remote_gateway):
        """Test a second initialize keeps user edits"""
        local_gateway.initialize()
        local_gateway.categories.create({"name": "Mine"})

        assert local_gateway.initialize(seed=remote_gateway) is False
        assert "Mine" in [c.name for c in local_gateway.categories.get_all()]

    def test_storage_keys(self):
        store = MemoryStore()
        LocalGateway(store=store).initialize()

        assert store.get("image_manager_initialized") == "true"
        assert json.loads(store.get("image_manager_annotations")) == []
        assert set(STORAGE_KEYS.values()) == {
            "image_manager_categories",
            "image_manager_images",
            "image_manager_annotations",
            "image_manager_initialized",
        }


class TestLocalRepository:
    """Tests for local CRUD"""

    def test_create_assigns_id_and_created_at(self, local_gateway):
        category = local_gateway.categories.create(Category(name="Nature"))

        assert re.fullmatch(r"\d{13}_[a-z0-9]{9}", category.id)
        assert category.created_at is not None
        assert local_gateway.categories.get_by_id(category.id) == category

    def test_create_image_stamps_upload_date(self, local_gateway):
        image = local_gateway.images.create({"name": "a", "url": "https://example.com/a.jpg"})
        assert image.upload_date is not None

    def test_create_invalid_fields_rejected(self, local_gateway):
        with pytest.raises(ValidationRejected):
            local_gateway.categories.create({"name": ""})
        with pytest.raises(ValidationRejected):
            local_gateway.images.create({"name": "no url"})

    def test_get_by_id_missing(self, local_gateway):
        assert local_gateway.categories.get_by_id("nope") is None

    def test_update_merges_fields(self, local_gateway):
        category = local_gateway.categories.create({"name": "Nature", "description": "old"})
        updated = local_gateway.categories.update(category.id, {"description": "new"})

        assert updated.name == "Nature"
        assert updated.description == "new"
        assert updated.id == category.id

    def test_update_missing_raises(self, local_gateway):
        with pytest.raises(NotFound):
            local_gateway.categories.update("nope", {"name": "x"})

    def test_delete(self, local_gateway):
        category = local_gateway.categories.create({"name": "Nature"})

        assert local_gateway.categories.delete(category.id) is True
        assert local_gateway.categories.get_all() == []

    def test_delete_missing_raises(self, local_gateway):
        with pytest.raises(NotFound):
            local_gateway.images.delete("nope")

    def test_put_upserts(self, local_gateway):
        local_gateway.categories.put("fixed", {"name": "First"})
        local_gateway.categories.put("fixed", {"name": "Second"})

        assert [c.name for c in local_gateway.categories.get_all()] == ["Second"]

    def test_image_delete_cascades(self, local_gateway):
        """Test deleting an image removes only its annotations"""
        keep = local_gateway.images.create(CatalogImage(name="keep", url="u1"))
        drop = local_gateway.images.create(CatalogImage(name="drop", url="u2"))
        for image in (keep, drop, drop):
            local_gateway.annotations.create(Annotation(image_id=image.id, x=0, y=0, width=10, height=10))

        local_gateway.images.delete(drop.id)

        assert local_gateway.annotations.get_by_image_id(drop.id) == []
        assert len(local_gateway.annotations.get_by_image_id(keep.id)) == 1

    def test_category_delete_leaves_images(self, local_gateway):
        category = local_gateway.categories.create({"name": "Nature"})
        image = local_gateway.images.create(CatalogImage(name="a", url="u", category_id=category.id))

        local_gateway.categories.delete(category.id)

        assert local_gateway.images.get_by_id(image.id).category_id == category.id

    def test_annotation_round_trip(self, local_gateway):
        annotation = Annotation(image_id="1", x=1.5, y=2, width=-30, height=40, color="#06b6d4", label="cat")
        stored = local_gateway.annotations.create(annotation)

        assert stored.id.is_persisted
        assert (stored.x, stored.width, stored.color, stored.label) == (1.5, -30, "#06b6d4", "cat")

    def test_annotation_color_must_be_in_palette(self, local_gateway):
        with pytest.raises(ValidationRejected):
            local_gateway.annotations.create(Annotation(image_id="1", x=0, y=0, width=10, height=10, color="#123456"))
        assert local_gateway.annotations.get_all() == []

    def test_annotation_color_normalized(self, local_gateway):
        stored = local_gateway.annotations.create(
            Annotation(image_id="1", x=0, y=0, width=10, height=10, color="#8B5CF6")
        )

        assert stored.color == "#8b5cf6"
        with pytest.raises(ValidationRejected):
            local_gateway.annotations.update(stored.id.value, {"color": "red"})


class TestJsonFileStore:
    """Tests for the JSON file backed store"""

    def test_persists_across_instances(self, file_store):
        gateway = LocalGateway(store=file_store)
        gateway.initialize()
        category = gateway.categories.create({"name": "Saved"})

        reopened = LocalGateway.from_path(file_store.path)

        assert reopened.initialized
        assert reopened.categories.get_by_id(category.id).name == "Saved"

    def test_missing_file_reads_empty(self, file_store):
        assert file_store.get("anything") is None

    def test_corrupted_file(self, file_store):
        file_store.path.write_text("{not json", encoding="utf-8")

        with pytest.raises(TransportFailure):
            file_store.get("image_manager_categories")

    def test_writes_are_complete_json(self, file_store):
        file_store.set("a", "1")
        file_store.set("b", "2")

        assert json.loads(file_store.path.read_text(encoding="utf-8")) == {"a": "1", "b": "2"}
        assert list(file_store.path.parent.glob(".*")) == []
