# backend/mlcatalog/models/project.py
from typing import Optional

from sqlalchemy import String, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from mlcatalog.models.base import (
    Base, CatalogTimestampMixin, SoftDeleteMixin, UUIDMixin,
)
from mlcatalog.models.resource import CatalogResourceMixin


class Project(Base, CatalogResourceMixin):
    __tablename__ = "projects"

    readme_text: Mapped[Optional[str]] = mapped_column(Text, default="")
    # URL-safe handle, unique per owner and workspace among live projects
    short_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    # Canonical JSON of the logged code version; written once
    code_version: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class Experiment(Base, UUIDMixin, CatalogTimestampMixin, SoftDeleteMixin):
    __tablename__ = "experiments"

    # Parent references are plain indexed foreign keys, never ORM back-populated graphs
    project_id: Mapped[str] = mapped_column(ForeignKey("projects.id"), index=True)
    owner: Mapped[str] = mapped_column(String(255), index=True)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text, default="")


class ExperimentRun(Base, UUIDMixin, CatalogTimestampMixin, SoftDeleteMixin):
    __tablename__ = "experiment_runs"

    project_id: Mapped[str] = mapped_column(ForeignKey("projects.id"), index=True)
    experiment_id: Mapped[str] = mapped_column(ForeignKey("experiments.id"), index=True)
    owner: Mapped[str] = mapped_column(String(255), index=True)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text, default="")
