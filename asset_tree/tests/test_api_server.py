"""Tests for the REST API Server."""

import pytest
from fastapi.testclient import TestClient

from asset_tree import api_server
from asset_tree.api_server import app
from asset_tree.config import ResolvedConfig, ResolvedProjectConfig


@pytest.fixture
def client():
    """Create a test client with fresh state."""
    # Clear global state before each test
    api_server.apply_config(ResolvedConfig(), persist=False)
    yield TestClient(app)
    api_server.apply_config(ResolvedConfig(), persist=False)


@pytest.fixture
def project_payload(design_tree):
    """Project creation payload holding the design tree."""
    return {
        "id": "campaign",
        "name": "Spring Campaign",
        "assets": [node.to_dict() for node in design_tree]
    }


@pytest.fixture
def seeded(client, project_payload):
    """Client with one project already created."""
    response = client.post("/projects", json=project_payload)
    assert response.status_code == 201
    return client


def error_tag(response):
    return response.json()["detail"]["error"]


class TestRootEndpoint:
    """Tests for root endpoint."""

    def test_root(self, client):
        """Test root endpoint returns service info."""
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "asset-tree-api"
        assert data["version"] == "1.0.0"
        assert data["docs"] == "/docs"


class TestHealthEndpoint:
    """Tests for health check endpoint."""

    def test_health_check(self, client):
        """Test health check returns healthy status."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "asset-tree-api"


class TestStatusEndpoint:
    """Tests for status endpoint."""

    def test_status_empty(self, client):
        """Test status when no projects exist."""
        response = client.get("/status")
        assert response.status_code == 200
        data = response.json()
        assert data["projects_count"] == 0
        assert data["cached_indexes"] == 0
        assert data["cache_max_size"] == 128
        assert data["max_depth"] == 10
        assert data["persistent"] is False
        assert data["cache_policy"] == "LRU"

    def test_status_counts_cached_indexes(self, seeded):
        seeded.get("/projects/campaign/tree")
        data = seeded.get("/status").json()
        assert data["projects_count"] == 1
        assert data["cached_indexes"] == 1


class TestProjectManagement:
    """Tests for project endpoints."""

    def test_create_project(self, client, project_payload):
        response = client.post("/projects", json=project_payload)
        assert response.status_code == 201
        data = response.json()
        assert data["id"] == "campaign"
        assert data["revision"] == 1
        assert data["asset_count"] == 7

    def test_create_duplicate_project(self, seeded, project_payload):
        response = seeded.post("/projects", json=project_payload)
        assert response.status_code == 409

    def test_create_project_with_legacy_records(self, client, legacy_records):
        """Test legacy records are normalized to root nodes."""
        response = client.post("/projects", json={"id": "old", "name": "Old", "assets": legacy_records})
        assert response.status_code == 201

        assets = client.get("/projects/old/assets").json()
        assert [a["parent"] for a in assets] == [None, None]
        assert assets[0]["name"] == "Hero Banner"
        assert assets[0]["externalLink"] == "https://drive.google.com/file/d/1"

    def test_create_project_with_cycle(self, client):
        assets = [
            {"id": "a", "name": "A", "kind": "folder", "parent": "b"},
            {"id": "b", "name": "B", "kind": "folder", "parent": "a"},
        ]
        response = client.post("/projects", json={"id": "bad", "name": "Bad", "assets": assets})
        assert response.status_code == 422
        assert "cycle" in response.json()["detail"]

    def test_list_projects(self, seeded):
        response = seeded.get("/projects")
        assert response.status_code == 200
        assert [p["id"] for p in response.json()] == ["campaign"]

    def test_get_project(self, seeded):
        response = seeded.get("/projects/campaign")
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Spring Campaign"
        assert len(data["assets"]) == 7

    def test_get_missing_project(self, client):
        assert client.get("/projects/nope").status_code == 404

    def test_delete_project(self, seeded):
        response = seeded.delete("/projects/campaign")
        assert response.status_code == 200
        assert seeded.get("/projects/campaign").status_code == 404


class TestAssetMutations:
    """Tests for insert, move, rename and delete endpoints."""

    def test_insert_under_folder(self, seeded):
        response = seeded.post("/projects/campaign/assets", json={
            "id": "tablet", "name": "Tablet", "kind": "folder", "parent": "designs"
        })
        assert response.status_code == 201
        data = response.json()
        assert data["asset"]["parent"] == "designs"
        assert data["revision"] == 2

        detail = seeded.get("/projects/campaign/assets/tablet").json()
        assert detail["depth"] == 1
        assert detail["path"] == ["Designs", "Tablet"]

    def test_insert_generates_id(self, seeded):
        response = seeded.post("/projects/campaign/assets", json={"name": "loose.txt"})
        assert response.status_code == 201
        asset = response.json()["asset"]
        assert asset["id"]
        assert asset["kind"] == "file"
        assert asset["parent"] is None

    def test_insert_accepts_external_link_alias(self, seeded):
        response = seeded.post("/projects/campaign/assets", json={
            "name": "hero.png", "externalLink": "https://drive.example.com/hero"
        })
        assert response.json()["asset"]["externalLink"] == "https://drive.example.com/hero"

    def test_insert_unknown_parent(self, seeded):
        response = seeded.post("/projects/campaign/assets", json={"name": "x", "parent": "nope"})
        assert response.status_code == 404
        assert error_tag(response) == "ParentNotFound"

    def test_insert_under_file(self, seeded):
        response = seeded.post("/projects/campaign/assets", json={"name": "x", "parent": "notes"})
        assert response.status_code == 400
        assert error_tag(response) == "ParentNotFolder"

    def test_insert_duplicate_id(self, seeded):
        response = seeded.post("/projects/campaign/assets", json={"id": "notes", "name": "x"})
        assert response.status_code == 409
        assert error_tag(response) == "DuplicateId"

    def test_insert_blank_name(self, seeded):
        response = seeded.post("/projects/campaign/assets", json={"name": "   "})
        assert response.status_code == 400
        assert error_tag(response) == "InvalidName"

    def test_insert_bad_kind(self, seeded):
        response = seeded.post("/projects/campaign/assets", json={"name": "x", "kind": "symlink"})
        assert response.status_code == 422

    def test_insert_too_deep(self, client):
        """Test the configured depth limit is enforced."""
        api_server.apply_config(ResolvedConfig(max_depth=2), persist=False)
        client.post("/projects", json={"id": "p", "name": "P", "assets": [
            {"id": "a", "name": "A", "kind": "folder"},
            {"id": "b", "name": "B", "kind": "folder", "parent": "a"},
        ]})

        response = client.post("/projects/p/assets", json={"name": "x", "parent": "b"})
        assert response.status_code == 400
        assert error_tag(response) == "MaxDepthExceeded"

    def test_move(self, seeded):
        response = seeded.put("/projects/campaign/assets/mobile/parent", json={"parent": "desktop"})
        assert response.status_code == 200
        assert response.json()["asset"]["parent"] == "desktop"

        path = seeded.get("/projects/campaign/assets/login/path").json()
        assert path == ["Designs", "Desktop", "Mobile", "Login.fig"]

    def test_move_to_root(self, seeded):
        response = seeded.put("/projects/campaign/assets/mobile/parent", json={"parent": None})
        assert response.status_code == 200
        roots = seeded.get("/projects/campaign/roots").json()
        assert [r["id"] for r in roots] == ["designs", "mobile", "notes"]

    def test_move_to_root_with_empty_parent(self, seeded):
        response = seeded.put("/projects/campaign/assets/mobile/parent", json={"parent": ""})
        assert response.status_code == 200
        assert response.json()["asset"]["parent"] is None
        assert response.json()["message"].endswith("to root")

    def test_move_into_descendant(self, seeded):
        response = seeded.put("/projects/campaign/assets/designs/parent", json={"parent": "mobile"})
        assert response.status_code == 400
        assert error_tag(response) == "CircularReference"

    def test_move_self_parent(self, seeded):
        response = seeded.put("/projects/campaign/assets/mobile/parent", json={"parent": "mobile"})
        assert error_tag(response) == "SelfParent"

    def test_rejected_move_keeps_revision(self, seeded):
        seeded.put("/projects/campaign/assets/designs/parent", json={"parent": "mobile"})
        assert seeded.get("/projects/campaign").json()["revision"] == 1

    def test_move_missing_asset(self, seeded):
        response = seeded.put("/projects/campaign/assets/nope/parent", json={"parent": None})
        assert response.status_code == 404
        assert error_tag(response) == "NotFound"

    def test_rename(self, seeded):
        response = seeded.put("/projects/campaign/assets/mobile/name", json={"name": "Phone"})
        assert response.status_code == 200
        assert seeded.get("/projects/campaign/assets/login/path").json() == [
            "Designs", "Phone", "Login.fig"
        ]

    def test_rename_blank(self, seeded):
        response = seeded.put("/projects/campaign/assets/mobile/name", json={"name": ""})
        assert error_tag(response) == "InvalidName"

    def test_cascade_delete(self, seeded):
        response = seeded.delete("/projects/campaign/assets/designs")
        assert response.status_code == 200
        data = response.json()
        assert data["removed_count"] == 6
        assets = seeded.get("/projects/campaign/assets").json()
        assert [a["id"] for a in assets] == ["notes"]

    def test_delete_missing_asset(self, seeded):
        response = seeded.delete("/projects/campaign/assets/nope")
        assert response.status_code == 404


class TestHierarchyQueries:
    """Tests for read-only hierarchy endpoints."""

    def test_get_asset_detail(self, seeded):
        data = seeded.get("/projects/campaign/assets/login").json()
        assert data["asset"]["name"] == "Login.fig"
        assert data["depth"] == 2
        assert data["has_children"] is False

    def test_get_missing_asset(self, seeded):
        response = seeded.get("/projects/campaign/assets/nope")
        assert response.status_code == 404

    def test_children(self, seeded):
        data = seeded.get("/projects/campaign/assets/designs/children").json()
        assert [a["id"] for a in data] == ["mobile", "desktop", "brief"]

    def test_descendants(self, seeded):
        data = seeded.get("/projects/campaign/assets/designs/descendants").json()
        assert {a["id"] for a in data} == {"mobile", "login", "signup", "desktop", "brief"}

    def test_ancestors(self, seeded):
        data = seeded.get("/projects/campaign/assets/signup/ancestors").json()
        assert [a["id"] for a in data] == ["designs", "mobile"]

    def test_counts(self, seeded):
        data = seeded.get("/projects/campaign/assets/designs/counts").json()
        assert data["direct"] == {"total": 3, "files": 1, "folders": 2}
        assert data["nested"] == {"total": 5, "files": 3, "folders": 2}

    def test_tree(self, seeded):
        data = seeded.get("/projects/campaign/tree").json()
        assert [item["node"]["id"] for item in data] == ["designs", "notes"]
        mobile = data[0]["children"][0]
        assert mobile["depth"] == 1
        assert [c["node"]["id"] for c in mobile["children"]] == ["login", "signup"]

    def test_available_parents(self, seeded):
        data = seeded.get("/projects/campaign/available-parents").json()
        assert [o["path"] for o in data] == ["Designs", "Designs > Desktop", "Designs > Mobile"]

    def test_available_parents_excluding(self, seeded):
        data = seeded.get("/projects/campaign/available-parents", params={"exclude": "mobile"}).json()
        assert {o["id"] for o in data} == {"designs", "desktop"}

    def test_stats(self, seeded):
        data = seeded.get("/projects/campaign/stats").json()
        assert data == {"total_nodes": 7, "root_nodes": 2, "folders": 3, "files": 4, "max_depth": 2}

    def test_queries_see_new_revision(self, seeded):
        """Test cached indexes are not served after a mutation."""
        seeded.get("/projects/campaign/assets/designs/children")
        seeded.post("/projects/campaign/assets", json={"id": "extra", "name": "extra", "parent": "designs"})
        data = seeded.get("/projects/campaign/assets/designs/children").json()
        assert "extra" in [a["id"] for a in data]


class TestConfigEndpoints:
    """Tests for configuration endpoints and persistence."""

    def test_config_status_without_file(self, client):
        data = client.get("/config/status").json()
        assert data["max_depth"] == 10
        assert data["enforce_folder_parents"] is True

    def test_reload_without_config_path(self, client, monkeypatch):
        monkeypatch.setattr(api_server, "_config_path", None)
        monkeypatch.setattr(api_server, "_dev_mode", True)
        assert client.post("/config/reload").status_code == 400

    def test_reload_forbidden_in_production(self, client, monkeypatch):
        monkeypatch.setattr(api_server, "_dev_mode", False)
        assert client.post("/config/reload").status_code == 403

    def test_apply_config_seeds_projects(self, client, abc_nodes):
        resolved = ResolvedConfig(projects=[ResolvedProjectConfig(id="seed", name="Seed", assets=abc_nodes)])
        assert api_server.apply_config(resolved, persist=False) == 1
        assert client.get("/projects/seed/assets/c/path").json() == ["a", "b", "c"]

    def test_persistent_store(self, client, tmp_path, project_payload):
        """Test mutations survive re-applying the same storage config."""
        resolved = ResolvedConfig(storage_directory=str(tmp_path))
        api_server.apply_config(resolved)
        client.post("/projects", json=project_payload)
        client.delete("/projects/campaign/assets/mobile")
        assert client.get("/status").json()["persistent"] is True

        api_server.apply_config(resolved)
        data = client.get("/projects/campaign").json()
        assert data["revision"] == 2
        assert data["asset_count"] == 4
