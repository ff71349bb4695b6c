# backend/mlcatalog/schemas/resource.py
import math
from enum import Enum
from typing import Any, List, Optional
from pydantic import BaseModel, Field, model_validator

from mlcatalog.models.resource import ResourceVisibility, ResourceAction
from mlcatalog.models.resource_attribute import ValueType


class FilterOperator(str, Enum):
    EQ = "EQ"
    NE = "NE"
    GT = "GT"
    GTE = "GTE"
    LT = "LT"
    LTE = "LTE"
    CONTAINS = "CONTAINS"


def _check_typed_value(value_type: ValueType, value: Any) -> None:
    if value_type == ValueType.NUMBER:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("NUMBER value must be an int or float")
        try:
            finite = math.isfinite(float(value))
        except OverflowError:
            finite = False
        if not finite:
            raise ValueError("NUMBER value is out of range")
    elif value_type == ValueType.STRING:
        if not isinstance(value, str):
            raise ValueError("STRING value must be a string")
    elif value is None:
        raise ValueError("BLOB value must not be null")


class AttributeValue(BaseModel):
    """A typed attribute value; ``value_type`` is the variant discriminant."""
    key: str
    value_type: ValueType
    value: Any

    @model_validator(mode="after")
    def check_value_type(self):
        _check_typed_value(self.value_type, self.value)
        return self


class FilterClause(BaseModel):
    """One raw filter clause as submitted by a client."""
    key: str
    operator: FilterOperator = FilterOperator.EQ
    value_type: ValueType = ValueType.STRING
    value: Any

    @model_validator(mode="after")
    def check_value_type(self):
        _check_typed_value(self.value_type, self.value)
        return self


class FindRequest(BaseModel):
    filters: List[FilterClause] = []
    ids: List[str] = []
    workspace: Optional[str] = None
    visibility: List[ResourceVisibility] = [ResourceVisibility.PRIVATE]
    sort_key: str = "date_updated"
    ascending: bool = False
    page_number: int = Field(0, ge=0)  # 0 = all pages
    page_limit: int = Field(0, ge=0)  # 0 = unbounded


class ResourceResponse(BaseModel):
    id: str
    resource_type: str
    owner: str
    name: str
    description: Optional[str] = None
    workspace: str
    visibility: ResourceVisibility
    tags: List[str] = []
    attributes: List[AttributeValue] = []
    date_created: int
    date_updated: int

    class Config:
        from_attributes = True


# Tag / attribute mutation payloads
class TagsRequest(BaseModel):
    tags: List[str] = Field(..., min_length=1)


class DeleteTagsRequest(BaseModel):
    tags: List[str] = []
    delete_all: bool = False


class AttributesRequest(BaseModel):
    attributes: List[AttributeValue] = Field(..., min_length=1)


class AttributeUpdateRequest(BaseModel):
    attribute: AttributeValue


class DeleteAttributesRequest(BaseModel):
    keys: List[str] = []
    delete_all: bool = False


class NameUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class DescriptionUpdate(BaseModel):
    description: str = ""


class DeleteResourcesRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1)


class DeepCopyRequest(BaseModel):
    workspace: Optional[str] = None


class CollaboratorGrant(BaseModel):
    principal: str = Field(..., min_length=1)
    action: ResourceAction = ResourceAction.READ


class VisibilityUpdate(BaseModel):
    visibility: ResourceVisibility


class DeleteResourcesResponse(BaseModel):
    deleted: List[str]
