"""
Optimistic writes with local-only fallback

OptimisticGateway wraps a primary PersistenceGateway and an optional shadow
LocalGateway. Writes never raise for recoverable errors; they return a
WriteResult instead:

    PERSISTED   primary accepted the write
    LOCAL_ONLY  primary declined or was unreachable; the change was applied
                to the shadow store so the UI still reflects it
    FAILED      primary declined and there is no shadow store

Reads return the primary's data overlaid with local-only changes. Entities
that exist only in the shadow store (declined creates) are read back with a
LOCAL annotation id, so they still count as unsaved. If the
primary is unreachable, reads fall back to the shadow alone. NotFound is a
logic error and always propagates.
"""
from dataclasses import replace
from typing import Dict, List, Optional, Set
import logging

from app.services.annotation.models import AnnotationId, IdOrigin

from .base import (
    ANNOTATIONS,
    CATEGORIES,
    IMAGES,
    KIND_LABELS,
    FieldsLike,
    PersistenceGateway,
    WriteResult,
    as_fields,
)
from .errors import RECOVERABLE_ERRORS, NotFound, StorageError, TransportFailure, ValidationRejected
from .local import LocalGateway, generate_id

logger = logging.getLogger(__name__)


def _key(entity) -> str:
    return str(entity.to_dict()["id"])


class OptimisticRepository:
    """Caller-facing repository for one entity kind"""

    def __init__(self, gateway: "OptimisticGateway", kind: str):
        self.gateway = gateway
        self.kind = kind

    @property
    def primary(self):
        return self.gateway.primary.repository(self.kind)

    @property
    def shadow(self):
        if self.gateway.shadow is None:
            return None
        return self.gateway.shadow.repository(self.kind)

    @property
    def hidden(self) -> Set[str]:
        return self.gateway.hidden[self.kind]

    @property
    def local_only(self) -> Set[str]:
        """Ids of shadow entities the primary has never stored"""
        return self.gateway.local_only[self.kind]

    # -- reads ---------------------------------------------------------------

    def get_all(self) -> List:
        try:
            items = self.primary.get_all()
        except TransportFailure as e:
            if self.shadow is None:
                raise
            logger.warning("Reading %s from local store, %s backend unavailable: %s",
                           self.kind, self.gateway.primary.name, e)
            items = []
        local = self.shadow.get_all() if self.shadow is not None else []
        return self._overlay(items, local)

    def get_by_id(self, entity_id):
        if str(entity_id) in self.hidden:
            return None
        if self.shadow is not None:
            local = self.shadow.get_by_id(entity_id)
            if local is not None:
                return self._tagged(local)
        try:
            return self.primary.get_by_id(entity_id)
        except TransportFailure:
            if self.shadow is None:
                raise
            return None

    def _overlay(self, items: List, local: List) -> List:
        local_ids = {_key(e) for e in local}
        merged = [e for e in items if _key(e) not in local_ids]
        merged.extend(self._tagged(e) for e in local)
        return [e for e in merged if self._visible(e)]

    def _visible(self, entity) -> bool:
        return _key(entity) not in self.hidden

    def _tagged(self, entity):
        return entity

    # -- writes --------------------------------------------------------------

    def create(self, fields: FieldsLike, shadow_id: Optional[str] = None) -> WriteResult:
        """
        Create an entity

        Args:
            fields: Entity or application field dict
            shadow_id: Id to use for the local-only copy; repeated creates
                with the same shadow_id replace one local copy
        """
        try:
            entity = self.primary.create(fields)
        except RECOVERABLE_ERRORS as e:
            return self._fallback(
                "create", e, lambda: self._put_local_only(shadow_id or generate_id(), fields)
            )
        if shadow_id is not None:
            self._drop_shadow_copy(shadow_id)
        return WriteResult.persisted_result(entity)

    def update(self, entity_id, fields: FieldsLike) -> WriteResult:
        try:
            entity = self.primary.update(entity_id, fields)
        except NotFound:
            if self._has_shadow_copy(entity_id):
                entity = self._tagged(self.shadow.update(entity_id, fields))
                return WriteResult.local_only(entity, self._local_only_error(entity_id))
            raise
        except RECOVERABLE_ERRORS as e:
            return self._fallback("update", e, lambda: self._update_locally(entity_id, fields))
        self._drop_shadow_copy(entity_id)
        return WriteResult.persisted_result(entity)

    def delete(self, entity_id) -> WriteResult:
        try:
            self.primary.delete(entity_id)
        except NotFound:
            if self._has_shadow_copy(entity_id):
                self._drop_shadow_copy(entity_id)
                return WriteResult.local_only(None, self._local_only_error(entity_id))
            raise
        except RECOVERABLE_ERRORS as e:
            return self._fallback("delete", e, lambda: self._hide(entity_id))
        self._drop_shadow_copy(entity_id)
        return WriteResult.persisted_result()

    def _fallback(self, operation: str, error: StorageError, apply) -> WriteResult:
        if self.shadow is None:
            logger.error("%s %s failed on %s backend: %s",
                         KIND_LABELS[self.kind], operation, self.gateway.primary.name, error)
            return WriteResult.failed(error)
        logger.warning("%s %s declined by %s backend, keeping change locally: %s",
                       KIND_LABELS[self.kind], operation, self.gateway.primary.name, error)
        return WriteResult.local_only(apply(), error)

    def drop_local_copy(self, entity_id) -> None:
        """Forget the shadow copy of an entity, if any"""
        self._drop_shadow_copy(entity_id)

    def _put_local_only(self, entity_id, fields: FieldsLike):
        entity = self.shadow.put(entity_id, fields)
        self.local_only.add(str(entity_id))
        return self._tagged(entity)

    def _update_locally(self, entity_id, fields: FieldsLike):
        current = self.get_by_id(entity_id)
        if current is None:
            raise NotFound(KIND_LABELS[self.kind], entity_id)
        return self._tagged(self.shadow.put(entity_id, {**current.to_dict(), **as_fields(fields)}))

    def _hide(self, entity_id) -> None:
        self.hidden.add(str(entity_id))
        self._drop_shadow_copy(entity_id)

    def _has_shadow_copy(self, entity_id) -> bool:
        return self.shadow is not None and self.shadow.get_by_id(entity_id) is not None

    def _drop_shadow_copy(self, entity_id) -> None:
        if self._has_shadow_copy(entity_id):
            self.shadow.delete(entity_id)
        self.local_only.discard(str(entity_id))

    def _local_only_error(self, entity_id) -> ValidationRejected:
        return ValidationRejected(f"{KIND_LABELS[self.kind]} {entity_id} exists only locally")


class OptimisticImageRepository(OptimisticRepository):

    def __init__(self, gateway: "OptimisticGateway"):
        super().__init__(gateway, IMAGES)

    def _hide(self, entity_id) -> None:
        super()._hide(entity_id)
        # Primary still has the annotations; shadow ones went with the shadow image
        if self.gateway.shadow is not None:
            self.gateway.shadow.annotations.delete_for_image(entity_id)


class OptimisticAnnotationRepository(OptimisticRepository):

    def __init__(self, gateway: "OptimisticGateway"):
        super().__init__(gateway, ANNOTATIONS)

    def get_by_image_id(self, image_id) -> List:
        if str(image_id) in self.gateway.hidden[IMAGES]:
            return []
        try:
            items = self.primary.get_by_image_id(image_id)
        except TransportFailure as e:
            if self.shadow is None:
                raise
            logger.warning("Reading annotations from local store, %s backend unavailable: %s",
                           self.gateway.primary.name, e)
            items = []
        local = self.shadow.get_by_image_id(image_id) if self.shadow is not None else []
        return self._overlay(items, local)

    def _visible(self, entity) -> bool:
        return super()._visible(entity) and entity.image_id not in self.gateway.hidden[IMAGES]

    def _tagged(self, entity):
        if _key(entity) in self.local_only:
            return replace(entity, id=AnnotationId(IdOrigin.LOCAL, entity.id.value))
        return entity


class OptimisticGateway:
    """
    Caller-facing store that degrades declined writes to local-only state

    Args:
        primary: Backend that owns the data
        shadow: Local store for changes the primary declined (None to
            report such writes as FAILED instead)
    """

    def __init__(self, primary: PersistenceGateway, shadow: Optional[LocalGateway] = None):
        self.primary = primary
        self.shadow = shadow
        self.hidden: Dict[str, Set[str]] = {kind: set() for kind in (CATEGORIES, IMAGES, ANNOTATIONS)}
        self.local_only: Dict[str, Set[str]] = {kind: set() for kind in (CATEGORIES, IMAGES, ANNOTATIONS)}
        self.categories = OptimisticRepository(self, CATEGORIES)
        self.images = OptimisticImageRepository(self)
        self.annotations = OptimisticAnnotationRepository(self)

    @property
    def name(self) -> str:
        return self.primary.name

    def close(self) -> None:
        self.primary.close()
        if self.shadow is not None:
            self.shadow.close()
