"""
Base classes for persistence backends

Every backend exposes the same three repositories (categories, images,
annotations) with a uniform CRUD contract:

    get_all()             -> list of entities
    get_by_id(id)         -> entity or None
    create(fields)        -> entity with assigned id
    update(id, fields)    -> updated entity        (NotFound if missing)
    delete(id)            -> True                  (NotFound if missing)

Fields use the application (camelCase) names produced by to_dict().
Deleting an image also deletes its annotations.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Type, Union

from app.services.annotation.models import Annotation, CatalogImage, Category, find_swatch
from .errors import StorageError, TransportFailure, ValidationRejected

CATEGORIES = "categories"
IMAGES = "images"
ANNOTATIONS = "annotations"

ENTITY_TYPES: Dict[str, Type] = {
    CATEGORIES: Category,
    IMAGES: CatalogImage,
    ANNOTATIONS: Annotation,
}

# Human-readable names used in NotFound messages
KIND_LABELS = {
    CATEGORIES: "Category",
    IMAGES: "Image",
    ANNOTATIONS: "Annotation",
}

Entity = Union[Category, CatalogImage, Annotation]
FieldsLike = Union[Dict[str, Any], Entity]


def as_fields(data: FieldsLike) -> Dict[str, Any]:
    """
    Normalize create/update input to an application field dict

    Entities are converted with to_fields()/to_dict(); the id is dropped
    because backends assign it.
    """
    if hasattr(data, "to_fields"):
        fields = data.to_fields()
    elif hasattr(data, "to_dict"):
        fields = data.to_dict()
    else:
        fields = dict(data)
    fields.pop("id", None)
    return fields


class EntityRepository(ABC):
    """CRUD operations for one entity kind"""

    kind: str = ""

    @property
    def entity_type(self) -> Type:
        return ENTITY_TYPES[self.kind]

    def to_entity(self, data: Dict[str, Any]) -> Entity:
        return self.entity_type.from_dict(data)

    def validate(self, entity: Entity) -> Entity:
        """
        Check an entity before it is written

        Annotation colors must be palette colors; the hex is normalized to
        the palette spelling.

        Raises:
            ValueError: If the color is not in the palette
        """
        if isinstance(entity, Annotation):
            swatch = find_swatch(entity.color)
            if swatch is None:
                raise ValueError(f"Unknown palette color: {entity.color!r}")
            entity.color = swatch.hex
        return entity

    @abstractmethod
    def get_all(self) -> List[Entity]:
        pass

    @abstractmethod
    def get_by_id(self, entity_id) -> Optional[Entity]:
        pass

    @abstractmethod
    def create(self, fields: FieldsLike) -> Entity:
        pass

    @abstractmethod
    def update(self, entity_id, fields: FieldsLike) -> Entity:
        pass

    @abstractmethod
    def delete(self, entity_id) -> bool:
        pass


class AnnotationRepository(EntityRepository):
    """Annotations additionally support lookup by owning image"""

    kind = ANNOTATIONS

    @abstractmethod
    def get_by_image_id(self, image_id) -> List[Annotation]:
        pass


class PersistenceGateway(ABC):
    """
    Abstract store for categories, images and annotations

    Backends are chosen at construction time (see GatewayFactory).
    """

    name: str = "base"

    @property
    @abstractmethod
    def categories(self) -> EntityRepository:
        pass

    @property
    @abstractmethod
    def images(self) -> EntityRepository:
        pass

    @property
    @abstractmethod
    def annotations(self) -> AnnotationRepository:
        pass

    def repository(self, kind: str) -> EntityRepository:
        """Get a repository by kind name ('categories', 'images', 'annotations')"""
        if kind not in ENTITY_TYPES:
            raise ValueError(f"Unknown entity kind: '{kind}'. Available kinds: {', '.join(ENTITY_TYPES)}")
        return getattr(self, kind)

    def close(self) -> None:
        """Release backend resources"""


class WriteStatus(str, Enum):
    """Outcome of a write as seen by the caller"""
    PERSISTED = "persisted"
    LOCAL_ONLY = "local_only"
    FAILED = "failed"


@dataclass
class WriteResult:
    """
    Result of an optimistic write

    Attributes:
        status: PERSISTED (backend accepted), LOCAL_ONLY (backend declined or
            was unreachable, change kept locally) or FAILED (nothing kept)
        entity: Resulting entity (None for deletes and failures)
        error: Backend error behind a LOCAL_ONLY or FAILED status
    """
    status: WriteStatus
    entity: Optional[Any] = None
    error: Optional[StorageError] = None

    @property
    def persisted(self) -> bool:
        return self.status is WriteStatus.PERSISTED

    @property
    def severity(self) -> str:
        """Notification severity: success, info (expected rejection) or error"""
        if self.status is WriteStatus.PERSISTED:
            return "success"
        if isinstance(self.error, ValidationRejected):
            return "info"
        return "error"

    @classmethod
    def persisted_result(cls, entity: Any = None) -> "WriteResult":
        return cls(status=WriteStatus.PERSISTED, entity=entity)

    @classmethod
    def local_only(cls, entity: Any, error: StorageError) -> "WriteResult":
        return cls(status=WriteStatus.LOCAL_ONLY, entity=entity, error=error)

    @classmethod
    def failed(cls, error: StorageError) -> "WriteResult":
        return cls(status=WriteStatus.FAILED, error=error)

    @property
    def transport_failure(self) -> bool:
        return isinstance(self.error, TransportFailure)
