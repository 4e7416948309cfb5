"""
Tests for the admin redirects API.
"""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.adapters.memory_store import InMemoryRuleStore
from src.api.deps import Settings, get_redirect_service, get_settings, require_admin
from src.api.routes.admin_redirects import router
from src.components.redirects import RedirectRule, RedirectService

# --- Test Fixtures ---


@pytest.fixture
def test_store() -> InMemoryRuleStore:
    """Store seeded with two rules (version 1)."""
    return InMemoryRuleStore(
        [
            {"from": "/old", "to": "/new", "type": 301},
            {"from": "/old/*", "to": "/new/$1", "type": 302},
        ]
    )


@pytest.fixture
def client(test_store: InMemoryRuleStore) -> TestClient:
    """Test client with dependency override."""
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_redirect_service] = lambda: RedirectService(test_store)
    app.dependency_overrides[require_admin] = lambda: None
    return TestClient(app)


# --- List ---


class TestListRedirects:
    """Test GET /redirects."""

    def test_list(self, client: TestClient) -> None:
        response = client.get("/redirects")

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert data["version"] == 1
        assert data["rules"][0] == {"from": "/old", "to": "/new", "type": 301}

    def test_list_empty(self) -> None:
        app = FastAPI()
        app.include_router(router)
        app.dependency_overrides[get_redirect_service] = lambda: RedirectService(
            InMemoryRuleStore()
        )
        app.dependency_overrides[require_admin] = lambda: None

        data = TestClient(app).get("/redirects").json()
        assert data == {"rules": [], "version": 0, "count": 0}


# --- Add ---


class TestAddRedirect:
    """Test POST /redirects."""

    def test_add(self, client: TestClient, test_store: InMemoryRuleStore) -> None:
        response = client.post("/redirects", json={"from": "about", "to": "/about", "type": 302})

        assert response.status_code == 200
        data = response.json()
        assert data["replaced"] is False
        assert data["rule"] == {"from": "/about", "to": "/about", "type": 302}
        assert test_store.get_rules()[-1] == RedirectRule("/about", "/about", 302)

    def test_add_existing_source_updates(self, client: TestClient) -> None:
        response = client.post("/redirects", json={"from": "/old", "to": "/newer"})

        assert response.status_code == 200
        assert response.json()["replaced"] is True

    def test_add_invalid_status(self, client: TestClient) -> None:
        response = client.post("/redirects", json={"from": "/a", "to": "/b", "type": 200})

        assert response.status_code == 400
        errors = response.json()["detail"]["errors"]
        assert errors[0]["code"] == "invalid_status_code"
        assert errors[0]["field"] == "type"

    def test_add_unsafe_target(self, client: TestClient) -> None:
        response = client.post("/redirects", json={"from": "/a", "to": "javascript:alert(1)"})

        assert response.status_code == 400
        assert response.json()["detail"]["errors"][0]["code"] == "invalid_target"

    def test_add_missing_fields(self, client: TestClient) -> None:
        response = client.post("/redirects", json={"from": "/a"})
        assert response.status_code == 422


# --- Replace ---


class TestReplaceRedirects:
    """Test PUT /redirects (form save)."""

    def test_replace_cleans_rows(self, client: TestClient) -> None:
        response = client.put(
            "/redirects",
            json={
                "rules": [
                    {"from": "x", "to": "/y", "type": 999},
                    {"from": "", "to": "/dropped"},
                    "garbage",
                ],
                "version": 1,
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["rules"] == [{"from": "/x", "to": "/y", "type": 301}]
        assert data["version"] == 2

    def test_replace_without_version(self, client: TestClient) -> None:
        response = client.put("/redirects", json={"rules": []})
        assert response.status_code == 200
        assert response.json()["count"] == 0

    def test_replace_stale_version(
        self, client: TestClient, test_store: InMemoryRuleStore
    ) -> None:
        client.post("/redirects", json={"from": "/concurrent", "to": "/edit"})

        response = client.put("/redirects", json={"rules": [], "version": 1})

        assert response.status_code == 409
        assert len(test_store.get_rules()) == 3


# --- Delete ---


class TestDeleteRedirect:
    """Test DELETE /redirects."""

    def test_delete(self, client: TestClient, test_store: InMemoryRuleStore) -> None:
        response = client.delete("/redirects", params={"from": "/old"})

        assert response.status_code == 200
        assert response.json() == {"deleted": True}
        assert [r.source for r in test_store.get_rules()] == ["/old/*"]

    def test_delete_not_found(self, client: TestClient) -> None:
        response = client.delete("/redirects", params={"from": "/missing"})
        assert response.status_code == 404

    def test_delete_requires_source(self, client: TestClient) -> None:
        response = client.delete("/redirects")
        assert response.status_code == 422


# --- Import / Export ---


class TestImportExport:
    """Test interchange endpoints."""

    def test_export(self, client: TestClient) -> None:
        response = client.get("/redirects/export")

        assert response.status_code == 200
        assert response.json() == [
            {"from": "/old", "to": "/new", "type": 301},
            {"from": "/old/*", "to": "/new/$1", "type": 302},
        ]

    def test_import_replaces(self, client: TestClient) -> None:
        payload = [{"from": "/a/*", "to": "https://example.com/$1", "type": 307}]
        response = client.post("/redirects/import", json=payload)

        assert response.status_code == 200
        assert response.json()["rules"] == payload
        assert client.get("/redirects/export").json() == payload

    def test_import_requires_array(self, client: TestClient) -> None:
        response = client.post("/redirects/import", json={"from": "/a", "to": "/b"})
        assert response.status_code == 422


# --- Dry Run ---


class TestDryRun:
    """Test GET /redirects/test."""

    def test_match(self, client: TestClient) -> None:
        response = client.get("/redirects/test", params={"url": "/old/blog/post-1?utm=abc"})

        assert response.status_code == 200
        assert response.json() == {
            "matched": True,
            "matched_from": "/old/*",
            "type": 302,
            "target": "/new/blog/post-1?utm=abc",
        }

    def test_exact_match_wins(self, client: TestClient) -> None:
        data = client.get("/redirects/test", params={"url": "/old"}).json()
        assert data["matched_from"] == "/old"
        assert data["target"] == "/new"

    def test_no_match(self, client: TestClient) -> None:
        data = client.get("/redirects/test", params={"url": "/nowhere"}).json()
        assert data == {"matched": False, "matched_from": None, "type": None, "target": None}


# --- Auth ---


class TestAdminAuth:
    """Test the bearer token guard on the admin API."""

    @pytest.fixture
    def auth_client(
        self, test_store: InMemoryRuleStore, monkeypatch: pytest.MonkeyPatch
    ) -> TestClient:
        monkeypatch.setenv("REDIRECTS_ADMIN_TOKEN", "s3cret")
        app = FastAPI()
        app.include_router(router)
        app.dependency_overrides[get_redirect_service] = lambda: RedirectService(test_store)
        app.dependency_overrides[get_settings] = Settings
        return TestClient(app)

    def test_missing_token_rejected(self, auth_client: TestClient) -> None:
        response = auth_client.get("/redirects")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_wrong_token_rejected(self, auth_client: TestClient) -> None:
        response = auth_client.post(
            "/redirects",
            json={"from": "/x", "to": "/y"},
            headers={"Authorization": "Bearer wrong"},
        )

        assert response.status_code == 401

    def test_rejected_write_leaves_rules(
        self, auth_client: TestClient, test_store: InMemoryRuleStore
    ) -> None:
        auth_client.delete("/redirects", params={"from": "/old"})

        assert len(test_store.get_rules()) == 2

    def test_valid_token_accepted(self, auth_client: TestClient) -> None:
        response = auth_client.get("/redirects", headers={"Authorization": "Bearer s3cret"})

        assert response.status_code == 200
        assert response.json()["count"] == 2

    def test_no_configured_token_disables_api(
        self, auth_client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("REDIRECTS_ADMIN_TOKEN")

        response = auth_client.get("/redirects", headers={"Authorization": "Bearer s3cret"})

        assert response.status_code == 403
