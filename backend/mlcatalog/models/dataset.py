# backend/mlcatalog/models/dataset.py
from enum import Enum
from typing import Optional

from sqlalchemy import Integer, String, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from mlcatalog.models.base import (
    Base, CatalogTimestampMixin, SoftDeleteMixin, UUIDMixin,
)
from mlcatalog.models.resource import CatalogResourceMixin


class DatasetType(str, Enum):
    RAW = "RAW"
    PATH = "PATH"
    QUERY = "QUERY"


class Dataset(Base, CatalogResourceMixin):
    __tablename__ = "datasets"

    dataset_type: Mapped[DatasetType] = mapped_column(default=DatasetType.RAW)


class DatasetVersion(Base, UUIDMixin, CatalogTimestampMixin, SoftDeleteMixin):
    __tablename__ = "dataset_versions"

    dataset_id: Mapped[str] = mapped_column(ForeignKey("datasets.id"), index=True)
    owner: Mapped[str] = mapped_column(String(255), index=True)
    version: Mapped[int] = mapped_column(Integer, default=1)
    description: Mapped[Optional[str]] = mapped_column(Text, default="")
