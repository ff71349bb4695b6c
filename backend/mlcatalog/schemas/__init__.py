# backend/mlcatalog/schemas/__init__.py
from mlcatalog.schemas.caller import Caller
from mlcatalog.schemas.resource import (
    FilterOperator, AttributeValue, FilterClause, FindRequest, ResourceResponse,
)
from mlcatalog.schemas.project import (
    CodeVersion, ProjectCreate, ProjectResponse, ProjectPage, ProjectSummary, ShortNameUpdate,
)
from mlcatalog.schemas.dataset import DatasetCreate, DatasetResponse, DatasetPage
from mlcatalog.schemas.audit_log import AuditLogResponse, AuditLogsResponse

__all__ = [
    "Caller",
    "FilterOperator", "AttributeValue", "FilterClause", "FindRequest", "ResourceResponse",
    "CodeVersion", "ProjectCreate", "ProjectResponse", "ProjectPage", "ProjectSummary", "ShortNameUpdate",
    "DatasetCreate", "DatasetResponse", "DatasetPage",
    "AuditLogResponse", "AuditLogsResponse",
]
