# backend/mlcatalog/schemas/project.py
import json
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from mlcatalog.models.resource import ResourceVisibility
from mlcatalog.schemas.resource import AttributeValue, ResourceResponse


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = ""
    readme_text: Optional[str] = ""
    tags: List[str] = []
    attributes: List[AttributeValue] = []
    visibility: ResourceVisibility = ResourceVisibility.PRIVATE
    workspace: Optional[str] = None


class GitSnapshot(BaseModel):
    repo: str = ""
    hash: str = ""
    filepaths: List[str] = []
    is_dirty: bool = False


class CodeArchive(BaseModel):
    path: str = Field(..., min_length=1)
    size: Optional[int] = None


class CodeVersion(BaseModel):
    """Where a project's code lives: a git snapshot or an uploaded archive, not both."""
    git_snapshot: Optional[GitSnapshot] = None
    code_archive: Optional[CodeArchive] = None

    @model_validator(mode="after")
    def check_one_source(self):
        if (self.git_snapshot is None) == (self.code_archive is None):
            raise ValueError("Exactly one of git_snapshot or code_archive is required")
        return self


class ProjectResponse(ResourceResponse):
    readme_text: Optional[str] = None
    short_name: Optional[str] = None
    code_version: Optional[CodeVersion] = None

    @field_validator("code_version", mode="before")
    @classmethod
    def decode_code_version(cls, value):
        if isinstance(value, str):
            return json.loads(value)
        return value


class ProjectPage(BaseModel):
    items: List[ProjectResponse]
    total_records: int


class ProjectByNameResponse(BaseModel):
    project_by_user: Optional[ProjectResponse] = None
    shared_projects: List[ProjectResponse] = []


class ReadmeUpdate(BaseModel):
    readme_text: str


class ShortNameUpdate(BaseModel):
    short_name: str


class ShortNameResponse(BaseModel):
    short_name: Optional[str] = None


class ExperimentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = ""


class ExperimentRunCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = ""


class ChildResponse(BaseModel):
    id: str
    name: str
    owner: str
    date_created: int
    date_updated: int

    class Config:
        from_attributes = True


class LastModifiedRun(BaseModel):
    name: str
    last_updated_time: int


class ProjectSummary(BaseModel):
    name: str
    last_updated_time: int
    total_experiments: int
    total_experiment_runs: int
    last_modified_experiment_run: Optional[LastModifiedRun] = None


class ProjectAttributeUpdateResult(BaseModel):
    project: ProjectResponse
    rows_affected: int
