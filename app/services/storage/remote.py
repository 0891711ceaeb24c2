"""
Remote demo backend

Talks to a json-server style REST API:

    GET    /categories            GET    /images            GET /annotations
    GET    /categories/{id}       GET    /images/{id}
    POST   /categories            POST   /images            POST /annotations
    PUT    /categories/{id}       PUT    /images/{id}       PUT  /annotations/{id}
    DELETE /categories/{id}       DELETE /images/{id}       DELETE /annotations/{id}
    GET    /images/{id}/annotations

The public demo service is read-only, so writes come back as non-2xx
responses and surface as ValidationRejected. Callers are expected to treat
that as recoverable (see OptimisticGateway).

Status mapping:
    5xx, connection errors, timeouts  -> TransportFailure
    404 on get_by_id                  -> None
    404 on update/delete              -> NotFound
    any other non-2xx on a write      -> ValidationRejected
"""
from typing import Any, Dict, List, Optional
import logging

import requests

from app import config
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
from .errors import NotFound, TransportFailure, ValidationRejected

logger = logging.getLogger(__name__)


class RemoteRepository(EntityRepository):
    """REST collection at /<kind>"""

    def __init__(self, gateway: "RemoteDemoGateway", kind: str):
        self.gateway = gateway
        self.kind = kind

    @property
    def endpoint(self) -> str:
        return f"/{self.kind}"

    def _entities(self, payload: Any) -> List:
        if not isinstance(payload, list):
            raise TransportFailure(f"Expected a list from {self.endpoint}, got {type(payload).__name__}")
        return [self.to_entity(item) for item in payload]

    def get_all(self) -> List:
        return self._entities(self.gateway.request("GET", self.endpoint))

    def get_by_id(self, entity_id):
        try:
            payload = self.gateway.request("GET", f"{self.endpoint}/{entity_id}")
        except NotFound:
            return None
        return self.to_entity(payload) if payload else None

    def create(self, fields: FieldsLike):
        try:
            payload = self.gateway.request("POST", self.endpoint, json=as_fields(fields))
        except NotFound as e:
            # The collection itself always exists; a 404 here is a declined write
            raise ValidationRejected(f"{self.endpoint} rejected create") from e
        return self.to_entity(payload)

    def update(self, entity_id, fields: FieldsLike):
        existing = self.get_by_id(entity_id)
        if existing is None:
            raise NotFound(KIND_LABELS[self.kind], entity_id)
        body = {**existing.to_dict(), **as_fields(fields), "id": existing.to_dict()["id"]}
        payload = self.gateway.request("PUT", f"{self.endpoint}/{entity_id}", json=body)
        return self.to_entity(payload)

    def delete(self, entity_id) -> bool:
        try:
            self.gateway.request("DELETE", f"{self.endpoint}/{entity_id}")
        except NotFound as e:
            raise NotFound(KIND_LABELS[self.kind], entity_id) from e
        return True


class RemoteImageRepository(RemoteRepository):

    def __init__(self, gateway: "RemoteDemoGateway"):
        super().__init__(gateway, IMAGES)

    def delete(self, entity_id) -> bool:
        owned = self.gateway.annotations.get_by_image_id(entity_id)
        super().delete(entity_id)
        for annotation in owned:
            try:
                self.gateway.annotations.delete(annotation.id.value)
            except NotFound:
                # Server already cascaded
                pass
        return True


class RemoteAnnotationRepository(RemoteRepository, AnnotationRepository):

    def __init__(self, gateway: "RemoteDemoGateway"):
        RemoteRepository.__init__(self, gateway, ANNOTATIONS)

    def get_by_image_id(self, image_id) -> List:
        try:
            payload = self.gateway.request("GET", f"/images/{image_id}/annotations")
        except NotFound:
            return []
        return self._entities(payload)


class RemoteDemoGateway(PersistenceGateway):
    """
    Gateway over the remote demo REST API

    Args:
        base_url: API root (default: config.DEMO_API_URL)
        timeout: Per-request timeout in seconds
        session: requests.Session to use (injectable for tests)
    """

    name = "remote"

    def __init__(
        self,
        base_url: str = config.DEMO_API_URL,
        timeout: float = config.REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()
        self._categories = RemoteRepository(self, CATEGORIES)
        self._images = RemoteImageRepository(self)
        self._annotations = RemoteAnnotationRepository(self)

    @property
    def categories(self) -> RemoteRepository:
        return self._categories

    @property
    def images(self) -> RemoteImageRepository:
        return self._images

    @property
    def annotations(self) -> RemoteAnnotationRepository:
        return self._annotations

    def request(self, method: str, endpoint: str, json: Optional[Dict[str, Any]] = None) -> Any:
        """
        Send a request and decode the JSON body

        Raises:
            NotFound: 404 response
            ValidationRejected: Other 4xx response
            TransportFailure: 5xx response, network error or undecodable body
        """
        url = f"{self.base_url}{endpoint}"
        try:
            response = self.session.request(method, url, json=json, timeout=self.timeout)
        except requests.Timeout as e:
            raise TransportFailure(f"{method} {url} timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise TransportFailure(f"{method} {url} failed: {e}") from e

        if not response.ok:
            message = f"API Error: {response.status_code} {response.reason} ({method} {endpoint})"
            logger.debug(message)
            if response.status_code >= 500:
                raise TransportFailure(message)
            if response.status_code == 404:
                raise NotFound(endpoint, endpoint.rsplit("/", 1)[-1])
            raise ValidationRejected(message)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise TransportFailure(f"Invalid JSON from {method} {url}") from e

    def close(self) -> None:
        self.session.close()
