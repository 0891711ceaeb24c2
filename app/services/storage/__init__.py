"""
Storage Service

Persistence gateways for categories, images and annotations.

Usage:
    from app.services.storage import GatewayFactory, BackendType

    # Raw backend (raises StorageError subclasses)
    gateway = GatewayFactory.create(BackendType.DATABASE, url="sqlite://")
    category = gateway.categories.create({"name": "Nature"})

    # Application store (writes return WriteResult, never raise on rejection)
    store = GatewayFactory.create_from_config()
    result = store.categories.create({"name": "Nature"})
    if result.status is WriteStatus.LOCAL_ONLY:
        ...
"""
from .errors import (
    StorageError,
    NotFound,
    ValidationRejected,
    TransportFailure,
    is_recoverable,
)
from .base import (
    PersistenceGateway,
    EntityRepository,
    AnnotationRepository,
    WriteResult,
    WriteStatus,
)
from .local import LocalGateway, MemoryStore, JsonFileStore
from .remote import RemoteDemoGateway
from .database import DatabaseGateway
from .optimistic import OptimisticGateway
from .factory import GatewayFactory, BackendType

__all__ = [
    "StorageError",
    "NotFound",
    "ValidationRejected",
    "TransportFailure",
    "is_recoverable",
    "PersistenceGateway",
    "EntityRepository",
    "AnnotationRepository",
    "WriteResult",
    "WriteStatus",
    "LocalGateway",
    "MemoryStore",
    "JsonFileStore",
    "RemoteDemoGateway",
    "DatabaseGateway",
    "OptimisticGateway",
    "GatewayFactory",
    "BackendType",
]
