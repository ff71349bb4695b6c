# backend/tests/integration/test_projects.py
import pytest
from unittest.mock import MagicMock

from mlcatalog.api.deps import get_authz_client
from mlcatalog.main import app
from mlcatalog.services.authorization import AuthorizationClient

ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}
ADMIN = {"X-User-Id": "root", "X-User-Roles": "admin"}


@pytest.fixture
def project_id(client):
    response = client.post(
        "/api/v1/projects",
        headers=ALICE,
        json={
            "name": "Churn",
            "description": "customer churn models",
            "tags": ["a", "b"],
            "attributes": [{"key": "team", "value_type": "STRING", "value": "growth"}],
        },
    )
    return response.json()["id"]


def test_create_project(client):
    response = client.post(
        "/api/v1/projects",
        headers=ALICE,
        json={"name": "Churn", "tags": ["a"], "readme_text": "# Churn"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Churn"
    assert data["owner"] == "alice"
    assert data["workspace"] == "alice"
    assert data["visibility"] == "PRIVATE"
    assert data["tags"] == ["a"]
    assert data["readme_text"] == "# Churn"
    assert "id" in data


def test_create_requires_caller(client):
    response = client.post("/api/v1/projects", json={"name": "Churn"})
    assert response.status_code == 401


def test_create_duplicate_returns_conflict(client, project_id):
    response = client.post("/api/v1/projects", headers=ALICE, json={"name": "Churn"})

    assert response.status_code == 409
    assert response.json()["code"] == "already_exists"


def test_get_project(client, project_id):
    response = client.get(f"/api/v1/projects/{project_id}", headers=ALICE)

    assert response.status_code == 200
    assert response.json()["attributes"] == [{"key": "team", "value_type": "STRING", "value": "growth"}]


def test_get_project_of_someone_else(client, project_id):
    response = client.get(f"/api/v1/projects/{project_id}", headers=BOB)

    assert response.status_code == 403
    assert response.json() == {
        "detail": "You don't have read access to this project",
        "code": "permission_denied",
    }


def test_get_missing_project(client):
    response = client.get("/api/v1/projects/missing", headers=ALICE)
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_find_projects(client):
    for name in ("p1", "p2", "p3"):
        client.post("/api/v1/projects", headers=ALICE, json={"name": name, "tags": [name]})
    client.post("/api/v1/projects", headers=BOB, json={"name": "bobs"})

    response = client.post(
        "/api/v1/projects/find",
        headers=ALICE,
        json={
            "filters": [{"key": "tags", "value": "p1"}, {"key": "tags", "value": "p3"}],
            "sort_key": "name",
            "ascending": True,
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["total_records"] == 2
    assert [p["name"] for p in data["items"]] == ["p1", "p3"]


def test_find_paginates(client):
    for i in range(5):
        client.post("/api/v1/projects", headers=ALICE, json={"name": f"p{i}"})

    response = client.post(
        "/api/v1/projects/find",
        headers=ALICE,
        json={"sort_key": "name", "ascending": True, "page_number": 2, "page_limit": 2},
    )

    data = response.json()
    assert data["total_records"] == 5
    assert [p["name"] for p in data["items"]] == ["p2", "p3"]


def test_find_with_invalid_filter(client):
    response = client.post(
        "/api/v1/projects/find",
        headers=ALICE,
        json={"filters": [{"key": "date_updated", "value_type": "STRING", "value": "x"}]},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_argument"


def test_find_when_authorization_service_is_down(client):
    failing = MagicMock(spec=AuthorizationClient)
    failing.accessible_ids.side_effect = TimeoutError("authz timed out")
    app.dependency_overrides[get_authz_client] = lambda: failing

    response = client.post("/api/v1/projects/find", headers=ALICE, json={})

    assert response.status_code == 503
    assert response.json()["code"] == "unavailable"


def test_admin_sees_everything(client):
    client.post("/api/v1/projects", headers=ALICE, json={"name": "a"})
    client.post("/api/v1/projects", headers=BOB, json={"name": "b"})

    response = client.post("/api/v1/projects/find", headers=ADMIN, json={})

    assert response.json()["total_records"] == 2


def test_public_listing_is_anonymous(client, project_id):
    client.patch(f"/api/v1/projects/{project_id}/visibility", headers=ALICE, json={"visibility": "PUBLIC"})
    client.post("/api/v1/projects", headers=ALICE, json={"name": "private"})

    response = client.get("/api/v1/projects/public")

    assert response.status_code == 200
    assert [p["id"] for p in response.json()["items"]] == [project_id]


def test_get_by_name(client, project_id):
    response = client.get("/api/v1/projects/by-name", headers=ALICE, params={"name": "Churn"})

    assert response.status_code == 200
    data = response.json()
    assert data["project_by_user"]["id"] == project_id
    assert data["shared_projects"] == []

    response = client.get("/api/v1/projects/by-name", headers=BOB, params={"name": "Churn"})
    assert response.status_code == 404


def test_tags(client, project_id):
    response = client.post(f"/api/v1/projects/{project_id}/tags", headers=ALICE, json={"tags": ["b", "c"]})
    assert response.status_code == 200
    assert response.json()["tags"] == ["a", "b", "c"]

    response = client.post(f"/api/v1/projects/{project_id}/tags/delete", headers=ALICE, json={"tags": ["a"]})
    assert response.json()["tags"] == ["b", "c"]

    response = client.get(f"/api/v1/projects/{project_id}/tags", headers=ALICE)
    assert response.json() == ["b", "c"]

    response = client.post(
        f"/api/v1/projects/{project_id}/tags/delete", headers=ALICE, json={"tags": [], "delete_all": True},
    )
    assert response.json()["tags"] == []


def test_tags_need_update_permission(client, project_id):
    response = client.post(f"/api/v1/projects/{project_id}/tags", headers=BOB, json={"tags": ["x"]})
    assert response.status_code == 403


def test_over_length_tag(client, project_id):
    response = client.post(f"/api/v1/projects/{project_id}/tags", headers=ALICE, json={"tags": ["x" * 41]})
    assert response.status_code == 400


def test_attributes(client, project_id):
    response = client.post(
        f"/api/v1/projects/{project_id}/attributes",
        headers=ALICE,
        json={"attributes": [{"key": "lr", "value_type": "NUMBER", "value": 0.01}]},
    )
    assert response.status_code == 200

    response = client.post(
        f"/api/v1/projects/{project_id}/attributes",
        headers=ALICE,
        json={"attributes": [{"key": "lr", "value_type": "NUMBER", "value": 0.02}]},
    )
    assert response.status_code == 409

    response = client.put(
        f"/api/v1/projects/{project_id}/attributes",
        headers=ALICE,
        json={"attribute": {"key": "lr", "value_type": "NUMBER", "value": 0.01}},
    )
    assert response.json()["rows_affected"] == 0

    response = client.put(
        f"/api/v1/projects/{project_id}/attributes",
        headers=ALICE,
        json={"attribute": {"key": "lr", "value_type": "NUMBER", "value": 0.05}},
    )
    assert response.json()["rows_affected"] == 1
    assert response.json()["project"]["id"] == project_id

    response = client.get(
        f"/api/v1/projects/{project_id}/attributes", headers=ALICE, params={"keys": ["lr"]},
    )
    assert response.json() == [{"key": "lr", "value_type": "NUMBER", "value": 0.05}]

    response = client.post(
        f"/api/v1/projects/{project_id}/attributes/delete", headers=ALICE, json={"delete_all": True},
    )
    assert response.json()["attributes"] == []


def test_out_of_range_number_is_rejected(client, project_id):
    response = client.post(
        f"/api/v1/projects/{project_id}/attributes",
        headers=ALICE,
        json={"attributes": [{"key": "big", "value_type": "NUMBER", "value": 10 ** 400}]},
    )
    assert response.status_code == 422

    response = client.post(
        "/api/v1/projects/find",
        headers=ALICE,
        json={"filters": [{"key": "date_updated", "operator": "GT", "value_type": "NUMBER", "value": 10 ** 30}]},
    )
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_argument"


def test_update_name_and_description(client, project_id):
    response = client.patch(f"/api/v1/projects/{project_id}/name", headers=ALICE, json={"name": "Retention"})
    assert response.json()["name"] == "Retention"

    response = client.patch(
        f"/api/v1/projects/{project_id}/description", headers=ALICE, json={"description": "new"},
    )
    assert response.json()["description"] == "new"

    response = client.patch(f"/api/v1/projects/{project_id}/readme", headers=ALICE, json={"readme_text": "# R"})
    assert response.json()["readme_text"] == "# R"


def test_short_name(client, project_id):
    url = f"/api/v1/projects/{project_id}/short-name"
    assert client.get(url, headers=ALICE).json() == {"short_name": None}

    response = client.patch(url, headers=ALICE, json={"short_name": "churn"})
    assert response.status_code == 200
    assert response.json()["short_name"] == "churn"
    assert client.get(url, headers=ALICE).json() == {"short_name": "churn"}

    response = client.patch(url, headers=ALICE, json={"short_name": "Churn Model"})
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_argument"
    assert client.patch(url, headers=BOB, json={"short_name": "mine"}).status_code == 403


def test_short_name_conflict(client, project_id):
    other = client.post("/api/v1/projects", headers=ALICE, json={"name": "Other"}).json()["id"]
    client.patch(f"/api/v1/projects/{project_id}/short-name", headers=ALICE, json={"short_name": "churn"})

    response = client.patch(f"/api/v1/projects/{other}/short-name", headers=ALICE, json={"short_name": "churn"})

    assert response.status_code == 409


def test_code_version_logged_once(client, project_id):
    url = f"/api/v1/projects/{project_id}/code-version"
    git = {"git_snapshot": {"repo": "git@example.com:ml/churn.git", "hash": "abc123", "is_dirty": True}}

    response = client.post(url, headers=ALICE, json=git)
    assert response.status_code == 200
    assert response.json()["code_version"]["git_snapshot"]["hash"] == "abc123"
    assert response.json()["code_version"]["code_archive"] is None

    response = client.post(url, headers=ALICE, json={"code_archive": {"path": "s3://bucket/code.zip"}})
    assert response.status_code == 409
    assert response.json()["code"] == "already_exists"
    project = client.get(f"/api/v1/projects/{project_id}", headers=ALICE).json()
    assert project["code_version"]["git_snapshot"]["is_dirty"] is True


def test_code_version_needs_one_source(client, project_id):
    response = client.post(f"/api/v1/projects/{project_id}/code-version", headers=ALICE, json={})
    assert response.status_code == 422


def test_collaborator_sharing(client, project_id):
    response = client.post(
        f"/api/v1/projects/{project_id}/collaborators",
        headers=ALICE,
        json={"principal": "bob", "action": "update"},
    )
    assert response.status_code == 201

    assert client.get(f"/api/v1/projects/{project_id}", headers=BOB).status_code == 200
    response = client.post(f"/api/v1/projects/{project_id}/tags", headers=BOB, json={"tags": ["bob"]})
    assert response.status_code == 200

    # bob can read but not manage collaborators or delete
    response = client.post(
        f"/api/v1/projects/{project_id}/collaborators", headers=BOB, json={"principal": "carol"},
    )
    assert response.status_code == 403
    assert client.delete(f"/api/v1/projects/{project_id}", headers=BOB).status_code == 403

    response = client.post("/api/v1/projects/find", headers=BOB, json={})
    assert [p["id"] for p in response.json()["items"]] == [project_id]

    client.delete(f"/api/v1/projects/{project_id}/collaborators/bob", headers=ALICE)
    assert client.get(f"/api/v1/projects/{project_id}", headers=BOB).status_code == 403


def test_experiments_runs_and_summary(client, project_id):
    response = client.post(f"/api/v1/projects/{project_id}/experiments", headers=ALICE, json={"name": "baseline"})
    assert response.status_code == 201
    experiment_id = response.json()["id"]

    response = client.post(
        f"/api/v1/projects/{project_id}/experiments/{experiment_id}/runs", headers=ALICE, json={"name": "run-1"},
    )
    assert response.status_code == 201

    runs = client.get(f"/api/v1/projects/{project_id}/experiments/{experiment_id}/runs", headers=ALICE).json()
    assert [r["name"] for r in runs] == ["run-1"]

    summary = client.get(f"/api/v1/projects/{project_id}/summary", headers=ALICE).json()
    assert summary["total_experiments"] == 1
    assert summary["total_experiment_runs"] == 1
    assert summary["last_modified_experiment_run"]["name"] == "run-1"


def test_delete_project(client, project_id):
    response = client.delete(f"/api/v1/projects/{project_id}", headers=ALICE)
    assert response.status_code == 200
    assert response.json() == {"deleted": [project_id]}

    # second delete is a no-op
    response = client.post("/api/v1/projects/delete", headers=ALICE, json={"ids": [project_id]})
    assert response.json() == {"deleted": []}

    assert client.get(f"/api/v1/projects/{project_id}", headers=ALICE).status_code == 404


def test_delete_unknown_id(client, project_id):
    response = client.post("/api/v1/projects/delete", headers=ALICE, json={"ids": [project_id, "missing"]})

    assert response.status_code == 404
    assert client.get(f"/api/v1/projects/{project_id}", headers=ALICE).status_code == 200


def test_deep_copy(client, project_id):
    client.post(f"/api/v1/projects/{project_id}/experiments", headers=ALICE, json={"name": "baseline"})
    client.post(
        f"/api/v1/projects/{project_id}/collaborators", headers=ALICE, json={"principal": "bob"},
    )

    response = client.post(f"/api/v1/projects/{project_id}/copy", headers=BOB, json={})

    assert response.status_code == 201
    data = response.json()
    assert data["owner"] == "bob"
    assert data["name"] == "Churn"
    assert data["tags"] == ["a", "b"]
    experiments = client.get(f"/api/v1/projects/{data['id']}/experiments", headers=BOB).json()
    assert [e["name"] for e in experiments] == ["baseline"]


def test_audit_logs_endpoint(client, project_id):
    response = client.get(f"/api/v1/projects/{project_id}/audit-logs", headers=ALICE)

    assert response.status_code == 200
    # Audit writes happen in the worker; nothing has been processed here
    assert response.json() == {"logs": [], "total": 0}


def test_health(client):
    response = client.get("/health")
    assert response.json()["status"] == "healthy"
