# backend/mlcatalog/models/__init__.py
from mlcatalog.models.base import Base
from mlcatalog.models.resource import ResourceVisibility, ResourceAction
from mlcatalog.models.resource_tag import ResourceTag
from mlcatalog.models.resource_attribute import ResourceAttribute, ValueType
from mlcatalog.models.project import Project, Experiment, ExperimentRun
from mlcatalog.models.dataset import Dataset, DatasetVersion, DatasetType
from mlcatalog.models.access_grant import AccessGrant
from mlcatalog.models.audit_log import AuditLog, AuditAction

# Resource types with owner/visibility/workspace that callers query and share
SCOPED_RESOURCE_TYPES = {
    "project": Project,
    "dataset": Dataset,
}

__all__ = [
    "Base",
    "ResourceVisibility", "ResourceAction",
    "ResourceTag",
    "ResourceAttribute", "ValueType",
    "Project", "Experiment", "ExperimentRun",
    "Dataset", "DatasetVersion", "DatasetType",
    "AccessGrant",
    "AuditLog", "AuditAction",
    "SCOPED_RESOURCE_TYPES",
]
