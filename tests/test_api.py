"""Tests for the FastAPI API endpoints."""

import base64

import pytest
from fastapi.testclient import TestClient

from host_autopilot.api.app import create_app
from host_autopilot.errors import RemoteError, TransportError
from host_autopilot.models.apps import PublishedApp

from fakes import FakeAdmin, FakeInstaller, FakeRegistry, make_agent_id, make_app_id

APP = make_app_id(1)


class RecordingInstaller(FakeInstaller):
    def __init__(self, admin, registry):
        super().__init__(admin, registry)
        self.proofs = []

    def install(self, app, membrane_proofs=None):
        self.proofs.append(membrane_proofs)
        super().install(app, membrane_proofs)


@pytest.fixture
def components():
    admin = FakeAdmin(enabled=["core-app:0_2_1"])
    registry = FakeRegistry(apps=[PublishedApp(
        id=APP,
        bundle_url="https://example.org/a.happ",
        provider_pubkey=make_agent_id(1),
    )])
    installer = RecordingInstaller(admin, registry)
    return admin, registry, installer


@pytest.fixture
def client(components):
    admin, registry, installer = components
    return TestClient(create_app(installer, registry, admin))


class TestInstallEndpoint:
    def test_install_published_app(self, client, components):
        admin, registry, installer = components
        proof = base64.b64encode(b"\x00").decode()

        response = client.post("/install", json={
            "happ_id": APP,
            "membrane_proofs": {"test": proof},
        })

        assert response.status_code == 200
        assert response.json() == {"status": "installed", "happ_id": APP}
        assert admin.apps[APP] is True
        assert installer.proofs == [{"test": b"\x00"}]
        assert registry.toggles == [(APP, "host-1", True)]

    def test_install_without_proofs(self, client, components):
        _, _, installer = components
        response = client.post("/install", json={"happ_id": APP})
        assert response.status_code == 200
        assert installer.proofs == [None]

    def test_unknown_app(self, client):
        response = client.post("/install", json={"happ_id": make_app_id(9)})
        assert response.status_code == 404
        assert response.json()["detail"] == "App not published"

    def test_bad_base64_proof(self, client, components):
        _, _, installer = components
        response = client.post("/install", json={
            "happ_id": APP,
            "membrane_proofs": {"test": "not base64!"},
        })
        assert response.status_code == 400
        assert installer.proofs == []

    def test_registry_unavailable(self, client, components):
        _, registry, _ = components
        registry.fail_reads = True
        response = client.post("/install", json={"happ_id": APP})
        assert response.status_code == 502

    def test_install_failure(self, client, components):
        admin, _, _ = components
        admin.fail_on[APP] = RemoteError("bundle rejected")
        response = client.post("/install", json={"happ_id": APP})
        assert response.status_code == 502
        assert "bundle rejected" in response.json()["detail"]

    def test_missing_happ_id(self, client):
        response = client.post("/install", json={})
        assert response.status_code == 422


class TestInstalledEndpoint:
    def test_lists_installed(self, client):
        response = client.get("/installed")
        assert response.status_code == 200
        assert response.json() == ["core-app:0_2_1"]

    def test_conductor_unavailable(self, client, components):
        admin, _, _ = components

        def fail(status_filter=None):
            raise TransportError("closed")

        admin.list_apps = fail
        response = client.get("/installed")
        assert response.status_code == 502
