# backend/mlcatalog/api/datasets.py
from typing import List, Optional

from fastapi import APIRouter, status

from mlcatalog.api.deps import Audit, CurrentCaller, Datasets, Resolver, get_dataset_accessor
from mlcatalog.api.resource_routes import add_resource_routes
from mlcatalog.models.audit_log import AuditAction
from mlcatalog.models.resource import ResourceAction
from mlcatalog.schemas.dataset import (
    DatasetAttributeUpdateResult, DatasetCreate, DatasetPage, DatasetResponse,
    DatasetVersionCreate, DatasetVersionResponse,
)
from mlcatalog.schemas.resource import FindRequest

router = APIRouter(prefix="/datasets", tags=["Datasets"])


@router.post("", response_model=DatasetResponse, status_code=status.HTTP_201_CREATED)
def create_dataset(data: DatasetCreate, datasets: Datasets, caller: CurrentCaller, audit: Audit):
    dataset = datasets.insert(caller, data)
    audit.record(AuditAction.CREATE, "dataset", [dataset.id], caller.id, {"name": dataset.name})
    return dataset


@router.post("/find", response_model=DatasetPage)
def find_datasets(request: FindRequest, datasets: Datasets, caller: CurrentCaller):
    items, total = datasets.find(caller, request)
    return DatasetPage(items=items, total_records=total)


@router.get("/public", response_model=DatasetPage)
def list_public_datasets(
    datasets: Datasets,
    workspace: Optional[str] = None,
    page_number: int = 0,
    page_limit: int = 0,
):
    items, total = datasets.get_public(workspace, page_number, page_limit)
    return DatasetPage(items=items, total_records=total)


@router.get("/{dataset_id}/versions", response_model=List[DatasetVersionResponse])
def list_versions(dataset_id: str, datasets: Datasets, resolver: Resolver, caller: CurrentCaller):
    resolver.check_permission(caller, ResourceAction.READ, "dataset", dataset_id)
    return datasets.list_versions(dataset_id)


@router.post("/{dataset_id}/versions", response_model=DatasetVersionResponse, status_code=status.HTTP_201_CREATED)
def create_version(dataset_id: str, data: DatasetVersionCreate, datasets: Datasets,
                   resolver: Resolver, caller: CurrentCaller, audit: Audit):
    resolver.check_permission(caller, ResourceAction.UPDATE, "dataset", dataset_id)
    version = datasets.add_version(dataset_id, caller, data)
    audit.record(
        AuditAction.CREATE, "dataset_version", [version.id], caller.id,
        {"dataset_id": dataset_id, "version": version.version},
    )
    return version


add_resource_routes(
    router,
    "dataset",
    get_dataset_accessor,
    DatasetResponse,
    DatasetAttributeUpdateResult,
    "dataset",
)
