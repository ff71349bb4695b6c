# backend/tests/unit/test_dataset_service.py
import pytest

from mlcatalog.errors import NotFound
from mlcatalog.models import DatasetType, DatasetVersion
from mlcatalog.schemas.dataset import DatasetCreate, DatasetVersionCreate
from mlcatalog.schemas.resource import FindRequest


def test_insert_dataset(datasets, alice):
    dataset = datasets.insert(alice, DatasetCreate(
        name="clicks",
        dataset_type=DatasetType.QUERY,
        attributes=[{"key": "rows", "value_type": "NUMBER", "value": 1200}],
    ))

    assert dataset.resource_type == "dataset"
    assert dataset.dataset_type == DatasetType.QUERY
    assert dataset.attributes[0].value == 1200


def test_versions_are_numbered_and_never_reused(db_session, datasets, alice):
    dataset = datasets.insert(alice, DatasetCreate(name="d"))
    v1 = datasets.add_version(dataset.id, alice, DatasetVersionCreate())
    v2 = datasets.add_version(dataset.id, alice, DatasetVersionCreate(description="second"))
    v2.deleted = True
    db_session.commit()

    v3 = datasets.add_version(dataset.id, alice, DatasetVersionCreate())

    assert (v1.version, v3.version) == (1, 3)
    assert [v.version for v in datasets.list_versions(dataset.id)] == [1, 3]


def test_add_version_to_deleted_dataset(datasets, alice):
    dataset = datasets.insert(alice, DatasetCreate(name="d"))
    datasets.delete([dataset.id])

    with pytest.raises(NotFound):
        datasets.add_version(dataset.id, alice, DatasetVersionCreate())


def test_delete_cascades_to_versions(db_session, datasets, alice):
    dataset = datasets.insert(alice, DatasetCreate(name="d"))
    datasets.add_version(dataset.id, alice, DatasetVersionCreate())

    datasets.delete([dataset.id])

    assert db_session.query(DatasetVersion).filter(DatasetVersion.deleted.is_(False)).count() == 0


def test_find_by_tag_and_sort_by_name(datasets, alice):
    for name, tags in (("b", ["train"]), ("a", ["train", "eval"]), ("c", ["eval"])):
        datasets.insert(alice, DatasetCreate(name=name, tags=tags))

    items, total = datasets.find(alice, FindRequest(
        filters=[{"key": "tags", "value": "train"}], sort_key="name", ascending=True,
    ))

    assert total == 2
    assert [d.name for d in items] == ["a", "b"]
