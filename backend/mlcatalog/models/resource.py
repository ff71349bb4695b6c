# backend/mlcatalog/models/resource.py
"""Columns shared by every top-level catalog resource (projects, datasets)."""
from enum import Enum
from typing import Optional

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mlcatalog.models.base import CatalogTimestampMixin, SoftDeleteMixin, UUIDMixin


class ResourceVisibility(str, Enum):
    PRIVATE = "PRIVATE"
    PUBLIC = "PUBLIC"
    ORGANIZATION = "ORGANIZATION"


class ResourceAction(str, Enum):
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class CatalogResourceMixin(UUIDMixin, CatalogTimestampMixin, SoftDeleteMixin):
    owner: Mapped[str] = mapped_column(String(255), index=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, default="")
    visibility: Mapped[ResourceVisibility] = mapped_column(
        default=ResourceVisibility.PRIVATE, index=True
    )
    workspace: Mapped[str] = mapped_column(String(255), index=True)
