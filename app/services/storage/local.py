"""
Local persisted backend

Keeps three JSON-encoded collections in a durable key-value store:

    image_manager_categories    - JSON array of categories
    image_manager_images        - JSON array of images
    image_manager_annotations   - JSON array of annotations
    image_manager_initialized   - "true" once seeded

Each write is a read-modify-write of one whole collection. Concurrent
writers to the same file are last-writer-wins.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
import json
import logging
import os
import random
import string
import tempfile
import time

from .base import (
    ANNOTATIONS,
    CATEGORIES,
    IMAGES,
    KIND_LABELS,
    AnnotationRepository,
    EntityRepository,
    FieldsLike,
    PersistenceGateway,
    as_fields,
)
from .errors import NotFound, StorageError, TransportFailure, ValidationRejected

logger = logging.getLogger(__name__)

STORAGE_KEYS = {
    CATEGORIES: "image_manager_categories",
    IMAGES: "image_manager_images",
    ANNOTATIONS: "image_manager_annotations",
    "initialized": "image_manager_initialized",
}

_ID_ALPHABET = string.ascii_lowercase + string.digits

# Used when the demo API cannot be reached on first run
DEFAULT_DATASET: Dict[str, List[Dict[str, Any]]] = {
    CATEGORIES: [
        {"id": "1", "name": "Nature", "description": "Landscapes, plants and animals"},
        {"id": "2", "name": "Architecture", "description": "Buildings and structures"},
        {"id": "3", "name": "People", "description": "Portraits and street photography"},
    ],
    IMAGES: [
        {
            "id": "1",
            "name": "Mountain Lake",
            "url": "https://picsum.photos/id/1018/1600/1000",
            "categoryId": "1",
            "uploadDate": "2024-01-15T10:30:00",
            "metadata": {"location": "Alps", "camera": "Canon EOS R5"},
        },
        {
            "id": "2",
            "name": "City Bridge",
            "url": "https://picsum.photos/id/1047/1200/1600",
            "categoryId": "2",
            "uploadDate": "2024-02-03T16:05:00",
            "metadata": {"location": "San Francisco"},
        },
        {
            "id": "3",
            "name": "Forest Path",
            "url": "https://picsum.photos/id/1043/2000/1000",
            "categoryId": "1",
            "uploadDate": "2024-03-21T08:45:00",
            "metadata": {},
        },
    ],
}


def generate_id() -> str:
    """Composite id: millisecond timestamp plus 9 random base-36 characters"""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{int(time.time() * 1000)}_{suffix}"


class KeyValueStore(ABC):
    """Minimal durable string key-value store"""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass


class MemoryStore(KeyValueStore):
    """In-process store (session-only shadow state, tests)"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStore(KeyValueStore):
    """
    Key-value store backed by a single JSON file

    The file is re-read on every access so other processes' writes are seen.
    Writes go to a temp file that replaces the original.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except OSError as e:
            raise TransportFailure(f"Cannot read local store {self.path}: {e}") from e
        except json.JSONDecodeError as e:
            raise TransportFailure(f"Local store {self.path} is corrupted: {e}") from e

    def get(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except OSError as e:
            raise TransportFailure(f"Cannot write local store {self.path}: {e}") from e


class LocalRepository(EntityRepository):
    """One JSON collection in a KeyValueStore"""

    def __init__(self, gateway: "LocalGateway", kind: str):
        self.gateway = gateway
        self.kind = kind

    @property
    def key(self) -> str:
        return STORAGE_KEYS[self.kind]

    def _load(self) -> List[Dict[str, Any]]:
        raw = self.gateway.store.get(self.key)
        return json.loads(raw) if raw else []

    def _save(self, records: List[Dict[str, Any]]) -> None:
        self.gateway.store.set(self.key, json.dumps(records, ensure_ascii=False))

    @staticmethod
    def _find(records: List[Dict[str, Any]], entity_id) -> int:
        for i, record in enumerate(records):
            if str(record.get("id")) == str(entity_id):
                return i
        return -1

    def _build(self, record: Dict[str, Any]):
        try:
            return self.validate(self.to_entity(record))
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationRejected(f"Invalid {KIND_LABELS[self.kind].lower()} fields: {e}") from e

    def get_all(self) -> List:
        return [self.to_entity(r) for r in self._load()]

    def get_by_id(self, entity_id):
        records = self._load()
        index = self._find(records, entity_id)
        return self.to_entity(records[index]) if index >= 0 else None

    def create(self, fields: FieldsLike):
        return self.put(self.gateway.id_factory(), fields)

    def put(self, entity_id, fields: FieldsLike):
        """
        Create or replace the record with this id

        Used when the id is already known (e.g. local-only copies of writes
        another backend declined).
        """
        records = self._load()
        now = datetime.now().isoformat()
        record = {**as_fields(fields), "id": str(entity_id)}
        record.setdefault("created_at", now)
        if self.kind == IMAGES and not record.get("uploadDate"):
            record["uploadDate"] = now

        entity = self._build(record)
        index = self._find(records, entity_id)
        if index >= 0:
            records[index] = entity.to_dict()
        else:
            records.append(entity.to_dict())
        self._save(records)
        return entity

    def update(self, entity_id, fields: FieldsLike):
        records = self._load()
        index = self._find(records, entity_id)
        if index < 0:
            raise NotFound(KIND_LABELS[self.kind], entity_id)

        merged = {**records[index], **as_fields(fields), "id": records[index]["id"]}
        entity = self._build(merged)
        records[index] = entity.to_dict()
        self._save(records)
        return entity

    def delete(self, entity_id) -> bool:
        records = self._load()
        index = self._find(records, entity_id)
        if index < 0:
            raise NotFound(KIND_LABELS[self.kind], entity_id)
        records.pop(index)
        self._save(records)
        return True


class LocalImageRepository(LocalRepository):
    """Images; deleting one removes its annotations"""

    def __init__(self, gateway: "LocalGateway"):
        super().__init__(gateway, IMAGES)

    def delete(self, entity_id) -> bool:
        super().delete(entity_id)
        removed = self.gateway.annotations.delete_for_image(entity_id)
        logger.debug("Deleted image %s and %d annotation(s)", entity_id, removed)
        return True


class LocalAnnotationRepository(LocalRepository, AnnotationRepository):

    def __init__(self, gateway: "LocalGateway"):
        LocalRepository.__init__(self, gateway, ANNOTATIONS)

    def get_by_image_id(self, image_id) -> List:
        return [
            self.to_entity(r) for r in self._load()
            if str(r.get("imageId")) == str(image_id)
        ]

    def delete_for_image(self, image_id) -> int:
        """Remove every annotation of an image; returns how many were removed"""
        records = self._load()
        kept = [r for r in records if str(r.get("imageId")) != str(image_id)]
        if len(kept) != len(records):
            self._save(kept)
        return len(records) - len(kept)


class LocalGateway(PersistenceGateway):
    """
    Persistence gateway over a local key-value store

    Args:
        store: Backing store (default: in-memory)
        id_factory: Callable producing new ids (default: generate_id)
    """

    name = "local"

    def __init__(self, store: Optional[KeyValueStore] = None, id_factory=generate_id):
        self.store = store if store is not None else MemoryStore()
        self.id_factory = id_factory
        self._categories = LocalRepository(self, CATEGORIES)
        self._images = LocalImageRepository(self)
        self._annotations = LocalAnnotationRepository(self)

    @classmethod
    def from_path(cls, path: Path) -> "LocalGateway":
        return cls(store=JsonFileStore(path))

    @property
    def categories(self) -> LocalRepository:
        return self._categories

    @property
    def images(self) -> LocalImageRepository:
        return self._images

    @property
    def annotations(self) -> LocalAnnotationRepository:
        return self._annotations

    @property
    def initialized(self) -> bool:
        return self.store.get(STORAGE_KEYS["initialized"]) == "true"

    def initialize(self, seed: Optional[PersistenceGateway] = None) -> bool:
        """
        Seed the store on first run

        Categories and images come from the seed gateway when it returns
        data, otherwise from DEFAULT_DATASET. Once the initialized flag is
        set later calls do nothing, so user edits are never overwritten.

        Returns:
            True if the store was seeded by this call
        """
        if self.initialized:
            logger.info("Using cached data from local store")
            return False

        seeded = {}
        if seed is not None:
            logger.info("Fetching initial data from %s backend...", seed.name)
            for kind in (CATEGORIES, IMAGES):
                try:
                    seeded[kind] = [e.to_dict() for e in seed.repository(kind).get_all()]
                except StorageError as e:
                    logger.warning("Failed to fetch %s for seeding: %s", kind, e)

        for kind in (CATEGORIES, IMAGES):
            records = seeded.get(kind) or DEFAULT_DATASET[kind]
            self.store.set(STORAGE_KEYS[kind], json.dumps(records, ensure_ascii=False))
            logger.info("Cached %d %s (%s)", len(records), kind, "seed" if seeded.get(kind) else "defaults")

        if self.store.get(STORAGE_KEYS[ANNOTATIONS]) is None:
            self.store.set(STORAGE_KEYS[ANNOTATIONS], "[]")

        self.store.set(STORAGE_KEYS["initialized"], "true")
        logger.info("Local store initialized")
        return True
