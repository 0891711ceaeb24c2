"""
Persistence Gateway Factory - selects a storage backend at construction time
"""
from enum import Enum
from typing import Dict, List, Optional, Type, Union
import logging

from app import config
from .base import PersistenceGateway
from .database import DatabaseGateway
from .local import JsonFileStore, LocalGateway
from .optimistic import OptimisticGateway
from .remote import RemoteDemoGateway

logger = logging.getLogger(__name__)


class BackendType(str, Enum):
    """Available storage backends"""
    REMOTE = "remote"
    LOCAL = "local"
    DATABASE = "database"


class GatewayFactory:
    """
    Factory for creating persistence gateways

    Usage:
        gateway = GatewayFactory.create(BackendType.LOCAL)
        gateway = GatewayFactory.create('database', url='sqlite://')
        store = GatewayFactory.create_from_config()  # OptimisticGateway
    """

    _backends: Dict[str, Type[PersistenceGateway]] = {
        BackendType.REMOTE.value: RemoteDemoGateway,
        BackendType.LOCAL.value: LocalGateway,
        BackendType.DATABASE.value: DatabaseGateway,
    }

    @classmethod
    def create(cls, backend: Union[BackendType, str], **kwargs) -> PersistenceGateway:
        """
        Create a gateway instance

        Args:
            backend: Backend (e.g., BackendType.LOCAL or 'local')
            **kwargs: Backend-specific configuration

        Raises:
            ValueError: If the backend is unknown
        """
        if isinstance(backend, BackendType):
            backend = backend.value

        if backend not in cls._backends:
            available = ', '.join(cls.available_backends()) or 'none'
            raise ValueError(
                f"Unknown storage backend: '{backend}'. "
                f"Available backends: {available}"
            )
        return cls._backends[backend](**kwargs)

    @classmethod
    def create_from_config(
        cls,
        backend: Optional[Union[BackendType, str]] = None,
    ) -> OptimisticGateway:
        """
        Build the application store from app.config

        remote    demo API with an in-memory shadow for declined writes
        local     JSON file store, seeded on first run
        database  relational database with an in-memory shadow
        """
        backend = BackendType(backend or config.STORAGE_BACKEND)
        logger.info("Using %s storage backend", backend.value)

        if backend is BackendType.LOCAL:
            gateway = LocalGateway(store=JsonFileStore(config.LOCAL_STORE_PATH))
            seed = RemoteDemoGateway() if config.SEED_FROM_REMOTE else None
            try:
                gateway.initialize(seed=seed)
            finally:
                if seed is not None:
                    seed.close()
            return OptimisticGateway(gateway)

        if backend is BackendType.REMOTE:
            return OptimisticGateway(cls.create(backend), shadow=LocalGateway())

        return OptimisticGateway(cls.create(backend, url=config.DATABASE_URL), shadow=LocalGateway())

    @classmethod
    def available_backends(cls) -> List[str]:
        """Get list of registered backend names"""
        return sorted(cls._backends.keys())

    @classmethod
    def register_backend(cls, name: str, gateway_class: Type[PersistenceGateway]):
        """Register a backend"""
        cls._backends[name] = gateway_class
