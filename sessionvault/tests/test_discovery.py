"""
Tests for the discovery service, HTTP endpoint, and clients.
"""

import io
import json
import urllib.error
import urllib.request

import pytest

pytest.importorskip("fastapi")

from fastapi.testclient import TestClient

from sessionvault.core.canonical import canonical_json_bytes
from sessionvault.core.errors import NotFoundError, TransientStorageError
from sessionvault.discovery.app import create_app
from sessionvault.discovery.client import HttpDiscoveryClient, LocalDiscoveryClient
from sessionvault.discovery.service import DiscoveryService
from sessionvault.index.store import IndexStore
from sessionvault.tests.helpers import assistant, proof, user


class FailingIndexStore(IndexStore):
    def load(self, session_id):
        raise TransientStorageError("storage offline")


@pytest.fixture
def published(publisher):
    publisher.publish("s1", 0, proof(0), 0, 100, [user("hi"), assistant("hello")])
    return publisher.index_store.load("s1")


@pytest.fixture
def client(publisher):
    return TestClient(create_app(DiscoveryService(publisher.index_store)))


def test_service_returns_index(publisher, published):
    assert DiscoveryService(publisher.index_store).get_checkpoints("s1") == published


def test_service_missing_raises(publisher):
    with pytest.raises(NotFoundError):
        DiscoveryService(publisher.index_store).get_checkpoints("unknown")


def test_get_checkpoints_200(client, published):
    resp = client.get("/checkpoints/s1")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("application/json")
    assert resp.content == canonical_json_bytes(published.to_dict())
    assert resp.json()["hostAddress"] == published.host_address


def test_get_checkpoints_404(client):
    resp = client.get("/checkpoints/unknown")
    assert resp.status_code == 404
    assert resp.json()["error"] == "NOT_FOUND"
    assert "unknown" in resp.json()["message"]


def test_get_checkpoints_500(store, signer):
    app = create_app(DiscoveryService(FailingIndexStore(store, signer.address)))
    resp = TestClient(app).get("/checkpoints/s1")
    assert resp.status_code == 500
    assert resp.json() == {"error": "STORAGE_ERROR", "message": "storage offline"}


def test_invalid_session_id_400(client):
    resp = client.get("/checkpoints/bad$id")
    assert resp.status_code == 400
    assert resp.json()["error"] == "INVALID_SESSION_ID"


def test_cors_allows_any_origin(client, published):
    resp = client.get("/checkpoints/s1", headers={"Origin": "https://app.example"})
    assert resp.headers["access-control-allow-origin"] == "*"


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_local_client(publisher, published):
    local = LocalDiscoveryClient(DiscoveryService(publisher.index_store))
    assert local.get_index("s1") == published
    assert local.get_index("unknown") is None


class _Response(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def test_http_client_parses_index(monkeypatch, published):
    seen = {}

    def fake_urlopen(req, timeout):
        seen["url"] = req.full_url
        seen["timeout"] = timeout
        return _Response(json.dumps(published.to_dict()).encode("utf-8"))

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
    index = HttpDiscoveryClient("http://host:8083/", timeout=3.0).get_index("s1")

    assert index == published
    assert seen == {"url": "http://host:8083/checkpoints/s1", "timeout": 3.0}


def test_http_client_404_is_none(monkeypatch):
    def fake_urlopen(req, timeout):
        raise urllib.error.HTTPError(req.full_url, 404, "Not Found", None, None)

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
    assert HttpDiscoveryClient("http://host").get_index("s1") is None


def test_http_client_errors(monkeypatch):
    def server_error(req, timeout):
        raise urllib.error.HTTPError(req.full_url, 500, "Server Error", None, None)

    monkeypatch.setattr(urllib.request, "urlopen", server_error)
    with pytest.raises(TransientStorageError):
        HttpDiscoveryClient("http://host").get_index("s1")

    def unreachable(req, timeout):
        raise urllib.error.URLError("connection refused")

    monkeypatch.setattr(urllib.request, "urlopen", unreachable)
    with pytest.raises(TransientStorageError):
        HttpDiscoveryClient("http://host").get_index("s1")

    monkeypatch.setattr(urllib.request, "urlopen", lambda req, timeout: _Response(b'{"not": "an index"}'))
    with pytest.raises(TransientStorageError):
        HttpDiscoveryClient("http://host").get_index("s1")
