# backend/mlcatalog/schemas/dataset.py
from typing import List, Optional
from pydantic import BaseModel, Field

from mlcatalog.models.dataset import DatasetType
from mlcatalog.models.resource import ResourceVisibility
from mlcatalog.schemas.resource import AttributeValue, ResourceResponse


class DatasetCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = ""
    dataset_type: DatasetType = DatasetType.RAW
    tags: List[str] = []
    attributes: List[AttributeValue] = []
    visibility: ResourceVisibility = ResourceVisibility.PRIVATE
    workspace: Optional[str] = None


class DatasetResponse(ResourceResponse):
    dataset_type: DatasetType


class DatasetPage(BaseModel):
    items: List[DatasetResponse]
    total_records: int


class DatasetVersionCreate(BaseModel):
    description: Optional[str] = ""


class DatasetVersionResponse(BaseModel):
    id: str
    dataset_id: str
    owner: str
    version: int
    description: Optional[str] = None
    date_created: int
    date_updated: int

    class Config:
        from_attributes = True


class DatasetAttributeUpdateResult(BaseModel):
    dataset: DatasetResponse
    rows_affected: int
