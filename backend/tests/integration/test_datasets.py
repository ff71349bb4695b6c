# backend/tests/integration/test_datasets.py
import pytest

ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}


@pytest.fixture
def dataset_id(client):
    response = client.post(
        "/api/v1/datasets",
        headers=ALICE,
        json={"name": "imagenet", "dataset_type": "PATH", "tags": ["vision"]},
    )
    assert response.status_code == 201
    return response.json()["id"]


def test_create_dataset(client):
    response = client.post("/api/v1/datasets", headers=ALICE, json={"name": "raw-logs"})

    assert response.status_code == 201
    data = response.json()
    assert data["resource_type"] == "dataset"
    assert data["dataset_type"] == "RAW"
    assert data["visibility"] == "PRIVATE"


def test_create_with_bad_attribute_value(client):
    response = client.post(
        "/api/v1/datasets",
        headers=ALICE,
        json={"name": "d", "attributes": [{"key": "rows", "value_type": "NUMBER", "value": "many"}]},
    )
    # Rejected by request validation before reaching the catalog
    assert response.status_code == 422


def test_versions(client, dataset_id):
    for _ in range(3):
        response = client.post(f"/api/v1/datasets/{dataset_id}/versions", headers=ALICE, json={})
        assert response.status_code == 201

    versions = client.get(f"/api/v1/datasets/{dataset_id}/versions", headers=ALICE).json()

    assert [v["version"] for v in versions] == [1, 2, 3]
    assert {v["dataset_id"] for v in versions} == {dataset_id}


def test_version_needs_update_permission(client, dataset_id):
    response = client.post(f"/api/v1/datasets/{dataset_id}/versions", headers=BOB, json={})
    assert response.status_code == 403


def test_find_by_attribute(client):
    for name, rows in (("small", 10), ("medium", 1_000), ("large", 1_000_000)):
        client.post(
            "/api/v1/datasets",
            headers=ALICE,
            json={"name": name, "attributes": [{"key": "rows", "value_type": "NUMBER", "value": rows}]},
        )

    response = client.post(
        "/api/v1/datasets/find",
        headers=ALICE,
        json={
            "filters": [{"key": "attributes.rows", "operator": "GTE", "value_type": "NUMBER", "value": 1000}],
            "sort_key": "name",
            "ascending": True,
        },
    )

    assert response.status_code == 200
    assert [d["name"] for d in response.json()["items"]] == ["large", "medium"]


def test_find_by_name_contains(client):
    for name in ("train_100%", "train_1000", "eval"):
        client.post("/api/v1/datasets", headers=ALICE, json={"name": name})

    response = client.post(
        "/api/v1/datasets/find",
        headers=ALICE,
        json={"filters": [{"key": "name", "operator": "CONTAINS", "value": "100%"}]},
    )

    assert [d["name"] for d in response.json()["items"]] == ["train_100%"]


def test_public_datasets(client, dataset_id):
    assert client.get("/api/v1/datasets/public").json()["total_records"] == 0

    client.patch(f"/api/v1/datasets/{dataset_id}/visibility", headers=ALICE, json={"visibility": "PUBLIC"})

    data = client.get("/api/v1/datasets/public").json()
    assert data["total_records"] == 1
    assert data["items"][0]["dataset_type"] == "PATH"
    # Anyone can read a public dataset but not change it
    assert client.get(f"/api/v1/datasets/{dataset_id}", headers=BOB).status_code == 200
    response = client.post(f"/api/v1/datasets/{dataset_id}/tags", headers=BOB, json={"tags": ["x"]})
    assert response.status_code == 403


def test_attribute_update_result(client, dataset_id):
    response = client.put(
        f"/api/v1/datasets/{dataset_id}/attributes",
        headers=ALICE,
        json={"attribute": {"key": "schema", "value_type": "BLOB", "value": {"cols": ["a", "b"]}}},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["rows_affected"] == 1
    assert data["dataset"]["attributes"] == [
        {"key": "schema", "value_type": "BLOB", "value": {"cols": ["a", "b"]}},
    ]


def test_delete_cascades_versions(client, dataset_id):
    client.post(f"/api/v1/datasets/{dataset_id}/versions", headers=ALICE, json={})

    response = client.delete(f"/api/v1/datasets/{dataset_id}", headers=ALICE)

    assert response.json() == {"deleted": [dataset_id]}
    assert client.get(f"/api/v1/datasets/{dataset_id}/versions", headers=ALICE).status_code == 404


def test_copy_dataset(client, dataset_id):
    client.post(f"/api/v1/datasets/{dataset_id}/versions", headers=ALICE, json={"description": "v1"})

    response = client.post(f"/api/v1/datasets/{dataset_id}/copy", headers=ALICE, json={})

    assert response.status_code == 201
    copy = response.json()
    assert copy["name"] == "imagenet (Copy)"
    versions = client.get(f"/api/v1/datasets/{copy['id']}/versions", headers=ALICE).json()
    assert [(v["version"], v["description"]) for v in versions] == [(1, "v1")]


def test_copy_needs_read_permission(client, dataset_id):
    response = client.post(f"/api/v1/datasets/{dataset_id}/copy", headers=BOB, json={})
    assert response.status_code == 403
