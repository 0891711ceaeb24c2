"""
Shared pytest fixtures for storage tests
"""
import json
from urllib.parse import urlparse

import pytest
import requests

from app.services.storage import (
    DatabaseGateway,
    JsonFileStore,
    LocalGateway,
    MemoryStore,
    OptimisticGateway,
    RemoteDemoGateway,
)

BASE_URL = "https://api.example.test/demo"


def make_response(status_code, payload=None, reason="", url=BASE_URL):
    """Build a requests.Response with a JSON body"""
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    response.url = url
    response._content = b"" if payload is None else json.dumps(payload).encode("utf-8")
    return response


class FakeJsonServer:
    """
    In-process stand-in for a json-server REST API

    Implements the requests.Session.request() signature. Integer ids are
    assigned on create, like json-server.

    Args:
        data: Initial collections ({"categories": [...], ...})
        read_only: Answer every write with 405
        offline: Raise ConnectionError for every request
    """

    def __init__(self, data=None, read_only=False, offline=False):
        self.data = {kind: [] for kind in ("categories", "images", "annotations")}
        for kind, records in (data or {}).items():
            self.data[kind] = [dict(r) for r in records]
        self.read_only = read_only
        self.offline = offline
        self.requests = []
        self.closed = False

    def _next_id(self, kind):
        return max((int(r["id"]) for r in self.data[kind]), default=0) + 1

    def _find(self, kind, entity_id):
        for record in self.data[kind]:
            if str(record["id"]) == str(entity_id):
                return record
        return None

    def request(self, method, url, json=None, timeout=None):
        self.requests.append((method, url, json))
        if self.offline:
            raise requests.ConnectionError("Network is unreachable")

        parts = urlparse(url).path[len(urlparse(BASE_URL).path):].strip("/").split("/")
        kind = parts[0]
        if kind not in self.data:
            return make_response(404, {})

        if method != "GET" and self.read_only:
            return make_response(405, {}, reason="Method Not Allowed")

        if method == "GET" and len(parts) == 3 and kind == "images":
            return make_response(200, [
                r for r in self.data["annotations"] if str(r.get("imageId")) == parts[1]
            ])
        if method == "GET" and len(parts) == 1:
            return make_response(200, self.data[kind])
        if method == "POST" and len(parts) == 1:
            record = {**(json or {}), "id": self._next_id(kind)}
            self.data[kind].append(record)
            return make_response(201, record, reason="Created")

        record = self._find(kind, parts[1])
        if record is None:
            return make_response(404, {}, reason="Not Found")
        if method == "GET":
            return make_response(200, record)
        if method == "PUT":
            record.clear()
            record.update({**(json or {}), "id": int(parts[1])})
            return make_response(200, record)
        if method == "DELETE":
            self.data[kind].remove(record)
            return make_response(200, {})
        return make_response(405, {}, reason="Method Not Allowed")

    def close(self):
        self.closed = True


DEMO_DATA = {
    "categories": [
        {"id": 1, "name": "Nature", "description": "Natural landscapes"},
        {"id": 2, "name": "Urban", "description": "City scenes"},
    ],
    "images": [
        {
            "id": 1,
            "name": "Mountain Lake",
            "url": "https://example.com/lake.jpg",
            "categoryId": 1,
            "uploadDate": "2024-01-15T10:30:00.000Z",
            "metadata": {"size": "2.5MB"},
        },
        {
            "id": 2,
            "name": "Street",
            "url": "https://example.com/street.jpg",
            "categoryId": 2,
            "uploadDate": "2024-01-16T09:00:00.000Z",
            "metadata": {},
        },
    ],
    "annotations": [
        {"id": 1, "imageId": 1, "x": 10, "y": 10, "width": 50, "height": 40, "color": "#ef4444"},
        {"id": 2, "imageId": 1, "x": 80, "y": 30, "width": 20, "height": 20, "color": "#10b981"},
        {"id": 3, "imageId": 2, "x": 5, "y": 5, "width": 60, "height": 60, "color": "#3b82f6"},
    ],
}


@pytest.fixture
def json_server():
    """Writable fake API with demo data"""
    return FakeJsonServer(DEMO_DATA)


@pytest.fixture
def read_only_server():
    """Fake API that declines every write"""
    return FakeJsonServer(DEMO_DATA, read_only=True)


@pytest.fixture
def offline_server():
    """Fake API that cannot be reached"""
    return FakeJsonServer(DEMO_DATA, offline=True)


@pytest.fixture
def remote_gateway(json_server):
    return RemoteDemoGateway(base_url=BASE_URL, session=json_server)


@pytest.fixture
def read_only_gateway(read_only_server):
    return RemoteDemoGateway(base_url=BASE_URL, session=read_only_server)


@pytest.fixture
def offline_gateway(offline_server):
    return RemoteDemoGateway(base_url=BASE_URL, session=offline_server)


@pytest.fixture
def local_gateway():
    """Empty in-memory local backend"""
    return LocalGateway(store=MemoryStore())


@pytest.fixture
def file_store(tmp_path):
    return JsonFileStore(tmp_path / "store" / "local_store.json")


@pytest.fixture
def database_gateway():
    """In-memory SQLite backend"""
    gateway = DatabaseGateway(url="sqlite://")
    yield gateway
    gateway.close()


@pytest.fixture
def read_only_store(read_only_gateway):
    """Application store over the read-only API with a local shadow"""
    return OptimisticGateway(read_only_gateway, shadow=LocalGateway())
